"""
PromptRecord model: the canonical, sanitized, publish-ready payload.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from prompt_ingest.core.constants import DEFAULT_IMAGE_RATIO, STATUS_PUBLISHED

PromptStatus = Literal["Published", "Pending", "Draft", "Rejected", "Review"]


class PromptRecord(BaseModel):
    """
    Publish-ready representation of one prompt.

    Only reachable through ``normalize_prompt``, which runs after validation
    succeeded. Instances are immutable; editing a row produces a new record.

    Attributes:
        title: Sanitized, trimmed title
        prompt: Sanitized, trimmed prompt text
        category: Sanitized category name (may be new to the catalogue)
        negative_prompt: Optional negative prompt
        tags: Lower-cased, de-duplicated tags, or None for "no tags"
        preview_image_url: Optional image URL
        attribution: Optional credit line
        attribution_link: Optional credit URL
        image_ratio: Ratio bucket resolved for the preview image
        status: Status the record is created with
        views: View counter, zero for new records
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "title": "Neon cat",
                "prompt": "A cat in neon rain, cinematic lighting",
                "category": "Animals",
                "negative_prompt": "blurry",
                "tags": ["cute", "cats"],
                "preview_image_url": "https://cdn.example.com/cat.png",
                "attribution": None,
                "attribution_link": None,
                "image_ratio": "16:9",
                "status": "Published",
                "views": 0,
            }
        },
    )

    title: str = Field(..., min_length=1)
    prompt: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    negative_prompt: str | None = None
    tags: list[str] | None = None
    preview_image_url: str | None = None
    attribution: str | None = None
    attribution_link: str | None = None
    image_ratio: str = DEFAULT_IMAGE_RATIO
    status: PromptStatus = STATUS_PUBLISHED
    views: int = Field(0, ge=0)

    @field_validator("tags")
    @classmethod
    def check_tags_not_empty(cls, v):
        """An empty tag list is spelled None so "no tags" has one representation."""
        if v is not None and len(v) == 0:
            raise ValueError("tags must be None when there are no tags")
        return v

    def with_status(self, status: str) -> "PromptRecord":
        """Return a copy of this record targeting another status."""
        return PromptRecord.model_validate({**self.to_payload(), "status": status})

    def to_payload(self) -> dict[str, Any]:
        """Return the insert payload for the backend store."""
        return self.model_dump()
