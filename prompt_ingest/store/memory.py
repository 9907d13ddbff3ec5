"""
In-process adapters for the store interfaces.

Used for dry runs (``prompt-ingest check``) and by the test suite. Every
adapter can be told to fail so error isolation can be exercised.
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

from prompt_ingest.core.constants import PUBLISHED_STATUSES
from prompt_ingest.core.errors import CategoryMetaError, DraftStoreError, PublishError
from prompt_ingest.core.models import DraftRow, PromptRecord, StoredPrompt, sort_newest_first


class InMemoryDraftStore:
    """
    Draft store keeping the snapshot in a list.

    Attributes:
        rows: Current snapshot
        save_calls: Snapshots passed to ``save``, in call order
        fail_on: Operation names ("save", "load", "delete_row", "clear") that raise
    """

    def __init__(self, rows: list[DraftRow] | None = None):
        self.rows: list[DraftRow] = list(rows or [])
        self.save_calls: list[list[DraftRow]] = []
        self.deleted_ids: list[str] = []
        self.fail_on: set[str] = set()

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise DraftStoreError(f"draft store unavailable during {operation}")

    async def save(self, rows: list[DraftRow]) -> None:
        await asyncio.sleep(0)
        self._check("save")
        self.save_calls.append(list(rows))
        self.rows = sorted(rows, key=lambda row: row.position)

    async def load(self) -> list[DraftRow]:
        await asyncio.sleep(0)
        self._check("load")
        return list(self.rows)

    async def delete_row(self, row_id: str) -> None:
        await asyncio.sleep(0)
        self._check("delete_row")
        self.deleted_ids.append(row_id)
        self.rows = [row for row in self.rows if row.id != row_id]

    async def clear(self) -> None:
        await asyncio.sleep(0)
        self._check("clear")
        self.rows = []


class InMemoryPromptStore:
    """
    Prompt store backed by a list; also serves as the category source.

    Attributes:
        records: Every created record, in creation order
        reject_titles: Titles whose create raises PublishError
        empty_titles: Titles whose create returns nothing
        delay: Seconds each create waits before completing
        max_in_flight: Highest number of creates observed running at once
    """

    def __init__(self, records: list[StoredPrompt] | None = None, delay: float = 0.0):
        self.records: list[StoredPrompt] = list(records or [])
        self.reject_titles: set[str] = set()
        self.empty_titles: set[str] = set()
        self.fail_reads = False
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.create_calls = 0
        self.read_calls = 0
        self._clock = datetime.now(timezone.utc)

    def _next_timestamp(self) -> datetime:
        # Strictly increasing so "newest first" is deterministic
        self._clock += timedelta(milliseconds=1)
        return self._clock

    async def create_one(self, record: PromptRecord) -> StoredPrompt | None:
        self.create_calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if record.title in self.reject_titles:
                raise PublishError(f'duplicate key value violates unique constraint for "{record.title}"')
            if record.title in self.empty_titles:
                return None
            stored = StoredPrompt(
                id=str(uuid.uuid4()),
                created_at=self._next_timestamp(),
                **record.to_payload(),
            )
            self.records.append(stored)
            return stored
        finally:
            self.in_flight -= 1

    async def fetch_for_review(self) -> list[StoredPrompt]:
        await asyncio.sleep(0)
        if self.fail_reads:
            raise PublishError("prompt store unavailable")
        pending = [record for record in self.records if record.status not in PUBLISHED_STATUSES]
        return sort_newest_first(pending)

    def _published(self) -> list[StoredPrompt]:
        return [record for record in self.records if record.status in PUBLISHED_STATUSES]

    async def fetch_published_categories(self) -> list[str]:
        await asyncio.sleep(0)
        self.read_calls += 1
        if self.fail_reads:
            raise PublishError("prompt store unavailable")
        return [record.category for record in self._published() if record.category]

    async def fetch_published_tags(self) -> list[list[str]]:
        await asyncio.sleep(0)
        self.read_calls += 1
        if self.fail_reads:
            raise PublishError("prompt store unavailable")
        return [list(record.tags or []) for record in self._published()]


class InMemoryCategoryMetaStore:
    """
    Category metadata store keeping names in a set.

    Attributes:
        names: Categories with metadata
        fail_for: Category names whose upsert raises CategoryMetaError
    """

    def __init__(self):
        self.names: set[str] = set()
        self.upsert_calls: list[str] = []
        self.fail_for: set[str] = set()

    async def upsert(self, category_name: str) -> None:
        await asyncio.sleep(0)
        self.upsert_calls.append(category_name)
        if category_name in self.fail_for:
            raise CategoryMetaError(f"could not create metadata for {category_name!r}")
        self.names.add(category_name)
