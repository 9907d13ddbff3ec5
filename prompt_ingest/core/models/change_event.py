"""
ChangeEvent model: one insert/update/delete notification from the live stream.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, model_validator

from .stored_prompt import StoredPrompt

ChangeKind = Literal["insert", "update", "delete"]


class ChangeEvent(BaseModel):
    """
    A change to the prompts collection.

    Insert and update events carry the new row in ``record``. Delete events
    usually carry only the primary key in ``old_record``.

    Attributes:
        kind: insert, update or delete
        record: New row snapshot
        old_record: Previous row (possibly only its id)
    """

    model_config = ConfigDict(frozen=True)

    kind: ChangeKind
    record: StoredPrompt | None = None
    old_record: dict[str, Any] | None = None

    @model_validator(mode="after")
    def check_identity(self):
        """Every event must identify the record it concerns."""
        if self.kind in ("insert", "update") and self.record is None:
            raise ValueError(f"{self.kind} event requires a record")
        if self.record_id is None:
            raise ValueError("event does not identify a record")
        return self

    @property
    def record_id(self) -> str | None:
        if self.record is not None:
            return self.record.id
        if self.old_record and self.old_record.get("id") is not None:
            return str(self.old_record["id"])
        return None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ChangeEvent":
        """
        Build an event from a notification payload.

        Accepts ``{"type": "INSERT", "record": {...}, "old_record": {...}}``
        as emitted by the notify trigger (``eventType``/``new``/``old`` keys
        are accepted too).
        """
        kind = str(payload.get("type") or payload.get("eventType") or "").lower()
        record = payload.get("record") or payload.get("new") or None
        old_record = payload.get("old_record") or payload.get("old") or None
        if kind == "delete":
            # The row is gone; keep whatever identifies it
            return cls(kind="delete", old_record=old_record or record)
        return cls.model_validate({"kind": kind, "record": record, "old_record": old_record})
