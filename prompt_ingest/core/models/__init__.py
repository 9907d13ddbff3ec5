"""
Core data models for the prompt ingestion pipeline.

All models use Pydantic for runtime validation and type safety.
A raw record is a plain ``dict[str, Any]`` exactly as decoded; everything
past validation is one of the typed models below.
"""

from typing import Any

from .change_event import ChangeEvent, ChangeKind
from .moderation_view import ModerationView, sort_newest_first
from .prompt_record import PromptRecord, PromptStatus
from .publish_result import PublishResult, PublishSummary
from .stored_prompt import StoredPrompt
from .upload_row import DraftRow, RowState, UploadBatch, UploadRow, new_row_id
from .validation_result import ValidationResult

RawRecord = dict[str, Any]

__all__ = [
    "RawRecord",
    "PromptRecord",
    "PromptStatus",
    "StoredPrompt",
    "ValidationResult",
    "UploadRow",
    "UploadBatch",
    "DraftRow",
    "RowState",
    "new_row_id",
    "PublishResult",
    "PublishSummary",
    "ChangeEvent",
    "ChangeKind",
    "ModerationView",
    "sort_newest_first",
]
