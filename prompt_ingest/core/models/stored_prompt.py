"""
StoredPrompt model: a prompt row as the backend returns it.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from prompt_ingest.core.constants import STATUS_PENDING


class StoredPrompt(BaseModel):
    """
    A persisted prompt, carrying backend-assigned identity and timestamps.

    Used as the result of a create and as the item type of the moderation
    view. Unknown columns are ignored so schema additions do not break sync.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str = ""
    prompt: str = ""
    negative_prompt: str | None = None
    category: str = ""
    tags: list[str] | None = None
    preview_image_url: str | None = None
    attribution: str | None = None
    attribution_link: str | None = None
    image_ratio: str | None = None
    status: str = STATUS_PENDING
    views: int = 0
    user_id: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v: Any):
        """UUID columns arrive as uuid.UUID from the driver."""
        if v is None:
            return v
        return str(v)
