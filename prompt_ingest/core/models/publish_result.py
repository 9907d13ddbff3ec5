"""
PublishResult and PublishSummary models: per-record outcome of a publish call.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PublishResult(BaseModel):
    """
    Outcome of one attempted create.

    Attributes:
        success: Whether the backend accepted the record
        index: Position of the record in the list handed to the publisher
        title: Record title, for display
        error: Failure message (only when success is False)
        row_id: Originating batch row, when known
        record_id: Backend id of the created record (only when success is True)
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    index: int = Field(..., ge=0)
    title: str
    error: str | None = None
    row_id: str | None = None
    record_id: str | None = None

    @model_validator(mode="after")
    def check_error_consistency(self):
        """Failures carry a message, successes do not."""
        if self.success and self.error is not None:
            raise ValueError("successful result cannot carry an error")
        if not self.success and not self.error:
            raise ValueError("failed result must carry an error message")
        return self


class PublishSummary(BaseModel):
    """
    Aggregate outcome of a publish call, ordered by input index.

    Attributes:
        results: One result per attempted record
        new_categories: Categories that were unknown before this publish
    """

    model_config = ConfigDict(frozen=True)

    results: tuple[PublishResult, ...] = ()
    new_categories: tuple[str, ...] = ()

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if not result.success)

    @property
    def succeeded_row_ids(self) -> set[str]:
        return {r.row_id for r in self.results if r.success and r.row_id is not None}

    @property
    def message(self) -> str:
        return f"{self.succeeded} succeeded, {self.failed} failed"
