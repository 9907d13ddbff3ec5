"""
Moderation sync: keeps a ModerationView in step with a live change stream.

The reducer functions are pure: they take a view and return a new one.
Applying the same event twice yields the same view as applying it once, and
events for records the initial fetch never saw are handled like inserts.
"""

from collections.abc import AsyncIterable, Callable
from typing import Any

from pydantic import ValidationError

from prompt_ingest.core.models import ChangeEvent, ModerationView, StoredPrompt, sort_newest_first
from prompt_ingest.observability.logger import get_logger
from prompt_ingest.observability.metrics import (
    increment_counter,
    moderation_events_total,
    moderation_view_size,
    set_gauge,
)
from prompt_ingest.store.ports import PromptStore

logger = get_logger(__name__)

# Outcomes of applying one event
INSERTED = "inserted"
REPLACED = "replaced"
REMOVED = "removed"
IGNORED = "ignored"


def _is_stale(incoming: StoredPrompt, current: StoredPrompt) -> bool:
    """True if ``incoming`` is an older version than what the view holds."""
    if incoming.updated_at is None or current.updated_at is None:
        return False
    return incoming.updated_at < current.updated_at


def _without(view: ModerationView, record_id: str) -> ModerationView:
    return view.model_copy(
        update={
            "items": tuple(item for item in view.items if item.id != record_id),
            "selected": view.selected - {record_id},
        }
    )


def _with_items(view: ModerationView, items: list[StoredPrompt]) -> ModerationView:
    return view.model_copy(update={"items": tuple(sort_newest_first(items))})


def reconcile(view: ModerationView, event: ChangeEvent) -> tuple[ModerationView, str]:
    """
    Apply one change event to a view.

    Args:
        view: Current view
        event: Change to apply

    Returns:
        The new view and what happened (inserted, replaced, removed, ignored)
    """
    record_id = event.record_id
    index = view.index_of(record_id)

    if event.kind == "delete":
        if index is None:
            return view, IGNORED
        return _without(view, record_id), REMOVED

    record = event.record
    if index is not None and _is_stale(record, view.items[index]):
        return view, IGNORED

    if not view.belongs(record):
        if index is None:
            return view, IGNORED
        return _without(view, record_id), REMOVED

    items = list(view.items)
    if index is not None:
        items[index] = record
        return _with_items(view, items), REPLACED

    items.insert(0, record)
    return _with_items(view, items), INSERTED


def apply_change(view: ModerationView, event: ChangeEvent) -> ModerationView:
    """Apply one change event and return the new view."""
    return reconcile(view, event)[0]


def toggle_selection(view: ModerationView, record_id: str) -> ModerationView:
    """Select or deselect one listed record; unknown ids leave the view unchanged."""
    if view.index_of(record_id) is None:
        return view
    return view.model_copy(update={"selected": view.selected ^ {record_id}})


def select_all(view: ModerationView) -> ModerationView:
    return view.model_copy(update={"selected": frozenset(view.ids)})


def clear_selection(view: ModerationView) -> ModerationView:
    return view.model_copy(update={"selected": frozenset()})


class ModerationSync:
    """
    Seeds the moderation queue from one full fetch and follows the change stream.

    Usage:
        sync = ModerationSync(prompt_store)
        await sync.seed()
        await sync.run(PgNotifySource(pool).events())
    """

    def __init__(
        self,
        store: PromptStore,
        view: ModerationView | None = None,
        on_change: Callable[[ModerationView, ChangeEvent, str], Any] | None = None,
    ):
        """
        Args:
            store: Source of the initial fetch
            view: Starting view (defaults to an empty moderation queue)
            on_change: Called after every applied event with (view, event, action)
        """
        self.store = store
        self.view = view or ModerationView.moderation_queue()
        self.on_change = on_change

    async def seed(self) -> ModerationView:
        """Replace the view with a full fetch of the records awaiting moderation."""
        records = await self.store.fetch_for_review()
        self.view = self.view.seeded(records)
        set_gauge(moderation_view_size, len(self.view))
        logger.info("Seeded moderation view", extra={"record_count": len(self.view)})
        return self.view

    def apply(self, item: ChangeEvent | dict[str, Any]) -> str | None:
        """
        Apply one event or raw notification payload.

        Malformed payloads are logged and skipped.

        Returns:
            The action taken, or None if the payload was skipped
        """
        try:
            event = item if isinstance(item, ChangeEvent) else ChangeEvent.from_payload(item)
        except (ValidationError, TypeError, AttributeError) as e:
            increment_counter(moderation_events_total, kind="unknown", action="malformed")
            logger.warning(
                "Skipping malformed change event",
                extra={"error_type": type(e).__name__, "error_message": str(e)},
            )
            return None

        self.view, action = reconcile(self.view, event)
        increment_counter(moderation_events_total, kind=event.kind, action=action)
        set_gauge(moderation_view_size, len(self.view))
        logger.debug(
            "Applied change event",
            extra={"kind": event.kind, "record_id": event.record_id, "action": action},
        )
        if self.on_change is not None:
            self.on_change(self.view, event, action)
        return action

    async def run(self, events: AsyncIterable[ChangeEvent | dict[str, Any]]) -> ModerationView:
        """Consume a change stream until it ends."""
        async for item in events:
            self.apply(item)
        return self.view

    def toggle_selection(self, record_id: str) -> ModerationView:
        self.view = toggle_selection(self.view, record_id)
        return self.view

    def select_all(self) -> ModerationView:
        self.view = select_all(self.view)
        return self.view

    def clear_selection(self) -> ModerationView:
        self.view = clear_selection(self.view)
        return self.view
