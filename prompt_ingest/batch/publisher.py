"""
Publisher: creates normalized records in bounded-concurrency batches.

One record's failure never affects another record; every outcome is
captured as a PublishResult carrying the record's original index.
"""

import asyncio
from collections.abc import Sequence

from prompt_ingest.categories import CategoryRegistry
from prompt_ingest.core.models import PromptRecord, PublishResult, PublishSummary
from prompt_ingest.observability.logger import get_logger, log_operation
from prompt_ingest.observability.metrics import (
    publish_batch_duration_seconds,
    record_publish_outcome,
    track_duration,
)
from prompt_ingest.store.ports import PromptStore
from prompt_ingest.utils.best_effort import best_effort
from prompt_ingest.utils.validation import validate_batch_size

logger = get_logger(__name__)

DEFAULT_PUBLISH_BATCH_SIZE = 10
NO_DATA_RETURNED = "No data returned"


class Publisher:
    """
    Publishes normalized prompt records.

    Steps:
        1. Read the known categories and pre-create metadata for new ones
           (concurrently, each best effort)
        2. Create records in sequential batches of ``batch_size``; creates
           inside a batch run concurrently
        3. Invalidate the category registry once if anything succeeded
    """

    def __init__(
        self,
        prompt_store: PromptStore,
        registry: CategoryRegistry,
        batch_size: int = DEFAULT_PUBLISH_BATCH_SIZE,
    ):
        """
        Args:
            prompt_store: Backend record store
            registry: Category registry (read before, invalidated after)
            batch_size: Number of creates in flight at once
        """
        self.prompt_store = prompt_store
        self.registry = registry
        self.batch_size = validate_batch_size(batch_size)

    async def _ensure_category_metadata(self, records: Sequence[PromptRecord]) -> tuple[str, ...]:
        known = set(await self.registry.list_categories())

        new_categories: list[str] = []
        for record in records:
            if record.category and record.category not in known and record.category not in new_categories:
                new_categories.append(record.category)

        if new_categories:
            logger.info(
                "Creating metadata for new categories",
                extra={"categories": new_categories},
            )
            await asyncio.gather(
                *(
                    best_effort(
                        "category_meta_upsert",
                        self.registry.upsert_category_metadata(name),
                        logger=logger,
                        category=name,
                    )
                    for name in new_categories
                )
            )
        return tuple(new_categories)

    async def _create(self, index: int, record: PromptRecord, row_id: str | None) -> PublishResult:
        try:
            created = await self.prompt_store.create_one(record)
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "Record create failed",
                extra={
                    "index": index,
                    "title": record.title,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
            return PublishResult(
                success=False,
                index=index,
                title=record.title,
                error=str(e) or "Unknown error",
                row_id=row_id,
            )

        if created is None:
            return PublishResult(
                success=False, index=index, title=record.title, error=NO_DATA_RETURNED, row_id=row_id
            )
        return PublishResult(
            success=True, index=index, title=record.title, row_id=row_id, record_id=created.id
        )

    async def publish(
        self,
        records: Sequence[PromptRecord],
        row_ids: Sequence[str] | None = None,
    ) -> PublishSummary:
        """
        Publish records.

        Args:
            records: Normalized records, in display order
            row_ids: Originating row ids, parallel to ``records``

        Returns:
            PublishSummary with one result per record, ordered by index

        Raises:
            ValueError: If ``row_ids`` is given with a different length
        """
        if row_ids is not None and len(row_ids) != len(records):
            raise ValueError("row_ids must be parallel to records")
        if not records:
            return PublishSummary()

        statuses = sorted({record.status for record in records})
        with log_operation("Publishing records", logger=logger, record_count=len(records)):
            new_categories = await self._ensure_category_metadata(records)

            results: list[PublishResult] = []
            for start in range(0, len(records), self.batch_size):
                batch = records[start:start + self.batch_size]
                with track_duration(publish_batch_duration_seconds):
                    batch_results = await asyncio.gather(
                        *(
                            self._create(
                                start + offset,
                                record,
                                row_ids[start + offset] if row_ids is not None else None,
                            )
                            for offset, record in enumerate(batch)
                        )
                    )
                results.extend(batch_results)

            summary = PublishSummary(results=tuple(results), new_categories=new_categories)

            if summary.succeeded:
                self.registry.invalidate()

        for status in statuses:
            succeeded = sum(1 for r in results if r.success and records[r.index].status == status)
            failed = sum(1 for r in results if not r.success and records[r.index].status == status)
            record_publish_outcome(status, succeeded, failed)

        logger.info(
            "Publish finished",
            extra={"succeeded": summary.succeeded, "failed": summary.failed},
        )
        return summary
