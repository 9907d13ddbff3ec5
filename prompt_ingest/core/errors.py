"""
Exception hierarchy for the ingestion pipeline.

Only whole-file problems and explicit user actions surface as exceptions.
Per-row validation problems are data (lists of messages) and side-effect
failures are reported through ``prompt_ingest.utils.best_effort``.
"""


class PipelineError(Exception):
    """Base class for every error raised by prompt_ingest."""


class FileRejectedError(PipelineError):
    """
    Raised when an uploaded file cannot produce any rows.

    Attributes:
        reason: Short machine-readable reason (too_large, unsupported_type,
                malformed, empty)
        message: Human-readable message shown once to the user
    """

    def __init__(self, reason: str, message: str):
        self.reason = reason
        self.message = message
        super().__init__(message)


class RowNotFoundError(PipelineError):
    """Raised when an operation names a row that is not in the batch."""

    def __init__(self, row_id: str):
        self.row_id = row_id
        super().__init__(f"Row not found: {row_id}")


class NothingToPublishError(PipelineError):
    """Raised when a publish action selects no valid rows."""


class DraftStoreError(PipelineError):
    """Raised by draft store adapters when a read or write fails."""


class PublishError(PipelineError):
    """Raised by prompt store adapters when a single create fails."""


class CategoryMetaError(PipelineError):
    """Raised when category metadata cannot be written."""


class ConfigurationError(PipelineError):
    """Raised when settings cannot be loaded or are invalid."""
