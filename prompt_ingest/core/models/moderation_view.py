"""
ModerationView model: a live-synchronized, sorted listing plus a selection.
"""

from pydantic import BaseModel, ConfigDict, model_validator

from prompt_ingest.core.constants import PUBLISHED_STATUSES

from .stored_prompt import StoredPrompt


class ModerationView(BaseModel):
    """
    Immutable listing of prompts, newest first.

    Which records belong is decided by ``excluded_statuses`` (the moderation
    queue excludes published records) and, when set, ``included_statuses``.

    Attributes:
        items: Records sorted by created_at descending, unique by id
        selected: Ids of selected records, always a subset of item ids
        excluded_statuses: Statuses that drop a record from the view
        included_statuses: When set, only these statuses belong
    """

    model_config = ConfigDict(frozen=True)

    items: tuple[StoredPrompt, ...] = ()
    selected: frozenset[str] = frozenset()
    excluded_statuses: frozenset[str] = PUBLISHED_STATUSES
    included_statuses: frozenset[str] | None = None

    @model_validator(mode="after")
    def check_consistency(self):
        """Items are unique by id and the selection only names listed items."""
        ids = [item.id for item in self.items]
        if len(ids) != len(set(ids)):
            raise ValueError("moderation view contains duplicate ids")
        if not self.selected <= set(ids):
            raise ValueError("selection contains ids that are not in the view")
        return self

    @classmethod
    def moderation_queue(cls, records: list[StoredPrompt] | None = None) -> "ModerationView":
        """Build the moderation queue view (everything not yet published)."""
        return cls().seeded(records or [])

    def belongs(self, record: StoredPrompt) -> bool:
        """Return True if the record matches this view's filter."""
        if record.status in self.excluded_statuses:
            return False
        if self.included_statuses is not None and record.status not in self.included_statuses:
            return False
        return True

    def seeded(self, records: list[StoredPrompt]) -> "ModerationView":
        """Return a view replacing all items with the matching, de-duplicated records."""
        unique: dict[str, StoredPrompt] = {}
        for record in records:
            if self.belongs(record):
                unique[record.id] = record
        items = sort_newest_first(list(unique.values()))
        return self.model_copy(update={"items": tuple(items), "selected": frozenset()})

    @property
    def ids(self) -> list[str]:
        return [item.id for item in self.items]

    def index_of(self, record_id: str) -> int | None:
        for index, item in enumerate(self.items):
            if item.id == record_id:
                return index
        return None

    def __len__(self) -> int:
        return len(self.items)


def sort_newest_first(records: list[StoredPrompt]) -> list[StoredPrompt]:
    """Stable sort by creation time, newest first."""
    return sorted(records, key=lambda record: record.created_at, reverse=True)
