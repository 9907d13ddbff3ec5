"""
UploadRow and DraftRow models: one item of an in-progress upload batch and
its persisted scratch-copy form.
"""

import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from prompt_ingest.core.constants import DEFAULT_IMAGE_RATIO

from .prompt_record import PromptRecord


class RowState(str, Enum):
    """
    Lifecycle of a row.

    PARSED and VALIDATING are passed through synchronously while a row is
    built, so an UploadRow only ever reports the last three.
    """

    PARSED = "parsed"
    VALIDATING = "validating"
    INVALID = "invalid"
    ENRICHING = "enriching"
    NORMALIZED = "normalized"


def new_row_id() -> str:
    """Generate a batch-local temporary row id."""
    return f"temp-{uuid.uuid4().hex}"


class UploadRow(BaseModel):
    """
    One row of the working batch.

    Attributes:
        row_id: Temporary id, stable for the lifetime of the batch
        raw: Record exactly as decoded (or as last edited)
        normalized: Publish-ready record, None iff validation failed
        validation_errors: Messages from the validator, empty iff valid
        image_ratio: Last resolved ratio bucket
        is_detecting_ratio: True while ratio detection is in flight
    """

    model_config = ConfigDict(frozen=True)

    row_id: str = Field(default_factory=new_row_id, min_length=1)
    raw: dict[str, Any]
    normalized: PromptRecord | None = None
    validation_errors: list[str] = Field(default_factory=list)
    image_ratio: str = DEFAULT_IMAGE_RATIO
    is_detecting_ratio: bool = False

    @model_validator(mode="after")
    def check_normalized_consistency(self):
        """A row is normalized exactly when it has no validation errors."""
        if (self.normalized is None) != bool(self.validation_errors):
            raise ValueError("normalized must be set if and only if validation_errors is empty")
        return self

    @property
    def is_valid(self) -> bool:
        return self.normalized is not None

    @property
    def state(self) -> RowState:
        if not self.is_valid:
            return RowState.INVALID
        if self.is_detecting_ratio:
            return RowState.ENRICHING
        return RowState.NORMALIZED

    def evolve(self, **changes: Any) -> "UploadRow":
        """Return a validated copy with the given fields replaced."""
        return UploadRow(**{**dict(self), **changes})

    def to_draft(self, position: int) -> "DraftRow":
        """Snapshot this row for the draft store."""
        return DraftRow(
            id=self.row_id,
            position=position,
            data=self.raw,
            normalized=self.normalized.to_payload() if self.normalized else None,
            validation_errors=list(self.validation_errors),
            image_ratio=self.image_ratio,
            is_detecting_ratio=self.is_detecting_ratio,
        )

    @classmethod
    def from_draft(cls, draft: "DraftRow") -> "UploadRow":
        """Rebuild a row from its draft snapshot."""
        normalized = PromptRecord.model_validate(draft.normalized) if draft.normalized else None
        return cls(
            row_id=draft.id,
            raw=draft.data,
            normalized=normalized,
            validation_errors=list(draft.validation_errors),
            image_ratio=draft.image_ratio or DEFAULT_IMAGE_RATIO,
            is_detecting_ratio=draft.is_detecting_ratio,
        )


class DraftRow(BaseModel):
    """
    Persisted scratch copy of one row (bulk_upload_drafts).

    Attributes:
        id: Row id, reused as the draft id
        position: Index of the row inside the batch
        data: Raw record
        normalized: Normalized payload or None
        validation_errors: Validation messages
        image_ratio: Ratio bucket
        is_detecting_ratio: Whether detection was in flight at save time
    """

    id: str = Field(..., min_length=1)
    position: int = Field(0, ge=0)
    data: dict[str, Any]
    normalized: dict[str, Any] | None = None
    validation_errors: list[str] = Field(default_factory=list)
    image_ratio: str = DEFAULT_IMAGE_RATIO
    is_detecting_ratio: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "id": "temp-3f1c0e8a",
                "position": 0,
                "data": {"title": "A cat", "prompt": "A prompt", "category": "Animals"},
                "normalized": None,
                "validation_errors": ["category is required"],
                "image_ratio": "4:3",
                "is_detecting_ratio": False,
            }
        }


class UploadBatch(BaseModel):
    """
    Read-only view of the working batch.

    Attributes:
        rows: Rows in upload order
        selected: Ids of selected rows, always valid rows of this batch
    """

    model_config = ConfigDict(frozen=True)

    rows: tuple[UploadRow, ...] = ()
    selected: frozenset[str] = frozenset()

    @model_validator(mode="after")
    def check_selection(self):
        """Only valid rows of this batch can be selected."""
        valid_ids = {row.row_id for row in self.rows if row.is_valid}
        if not self.selected <= valid_ids:
            raise ValueError("selection contains ids that are not valid rows of the batch")
        return self

    @property
    def valid_rows(self) -> list[UploadRow]:
        return [row for row in self.rows if row.is_valid]

    @property
    def invalid_rows(self) -> list[UploadRow]:
        return [row for row in self.rows if not row.is_valid]

    @property
    def all_selected(self) -> bool:
        valid = self.valid_rows
        return bool(valid) and self.selected == {row.row_id for row in valid}

    def __len__(self) -> int:
        return len(self.rows)
