"""
Batch orchestrator: owns the working upload batch of one operator session.

Every row moves through Parsed -> Validating -> Invalid, or through
Enriching -> Normalized while its image ratio is detected. State changes
schedule a debounced snapshot write to the draft store; publishing hands the
valid rows to the Publisher and drops the rows that were created.
"""

import asyncio
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError as ModelValidationError

from prompt_ingest.core.constants import (
    DEFAULT_IMAGE_RATIO,
    STATUS_DRAFT,
    STATUS_PUBLISHED,
    STATUS_REVIEW,
    get_field,
)
from prompt_ingest.core.errors import DraftStoreError, NothingToPublishError, RowNotFoundError
from prompt_ingest.core.models import (
    DraftRow,
    PromptRecord,
    PublishResult,
    PublishSummary,
    RawRecord,
    UploadBatch,
    UploadRow,
    new_row_id,
)
from prompt_ingest.core.normalization import normalize_prompt
from prompt_ingest.core.ratio import RatioInferrer
from prompt_ingest.core.rules import RuleEngine, validate_prompt
from prompt_ingest.observability.logger import get_logger
from prompt_ingest.observability.metrics import record_batch_state
from prompt_ingest.store.ports import DraftStore
from prompt_ingest.utils.best_effort import best_effort

from .autosave import DEFAULT_AUTOSAVE_DELAY_SECONDS, DebouncedAutosave
from .publisher import Publisher
from .readers import FileReader

logger = get_logger(__name__)

IMAGE_FIELD = "preview_image_url"


def _image_reference(raw: RawRecord) -> str | None:
    value = get_field(raw, IMAGE_FIELD)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _image_is_usable(raw: RawRecord, errors: list[str]) -> bool:
    """A row's image is worth loading when it is present and passed validation."""
    return _image_reference(raw) is not None and not any(e.startswith(IMAGE_FIELD) for e in errors)


def _normalization_errors(error: ValueError) -> list[str]:
    """Turn a refused payload into row messages, one per offending field."""
    if isinstance(error, ModelValidationError):
        return [
            f"{'.'.join(str(part) for part in item['loc']) or 'record'}: {item['msg']}"
            for item in error.errors()
        ]
    return [str(error)]


class BatchOrchestrator:
    """
    Working batch of one upload session.

    The batch has a single writer. Ratio detection for many rows runs
    concurrently, but each row's own detection is ordered: a result for an
    image reference that has since changed is discarded.

    Usage:
        orchestrator = BatchOrchestrator(draft_store, publisher)
        await orchestrator.restore()
        await orchestrator.ingest_file(content, "prompts.csv", "text/csv")
        summary = await orchestrator.publish_all()
        await orchestrator.close()
    """

    def __init__(
        self,
        draft_store: DraftStore,
        publisher: Publisher,
        inferrer: RatioInferrer | None = None,
        file_reader: FileReader | None = None,
        engine: RuleEngine | None = None,
        autosave_delay: float = DEFAULT_AUTOSAVE_DELAY_SECONDS,
    ):
        """
        Args:
            draft_store: Scratch copy of the batch
            publisher: Creates records in the backend
            inferrer: Ratio detection; None disables detection (default ratio)
            file_reader: Upload parser
            engine: Validation rules (defaults to the built-in prompt rules)
            autosave_delay: Debounce delay for snapshot writes, in seconds
        """
        self.draft_store = draft_store
        self.publisher = publisher
        self.inferrer = inferrer
        self.file_reader = file_reader or FileReader()
        self.engine = engine
        self.autosave = DebouncedAutosave(draft_store, self.snapshot, delay=autosave_delay)

        self._rows: list[UploadRow] = []
        self._selected: set[str] = set()
        self._generations: dict[str, int] = {}
        self._detections: dict[str, asyncio.Task] = {}
        self._restored = False

    # =======================
    # READ ACCESS
    # =======================

    @property
    def batch(self) -> UploadBatch:
        return UploadBatch(rows=tuple(self._rows), selected=frozenset(self._selected))

    @property
    def rows(self) -> tuple[UploadRow, ...]:
        return tuple(self._rows)

    @property
    def selected(self) -> frozenset[str]:
        return frozenset(self._selected)

    @property
    def valid_rows(self) -> list[UploadRow]:
        return [row for row in self._rows if row.is_valid]

    @property
    def invalid_rows(self) -> list[UploadRow]:
        return [row for row in self._rows if not row.is_valid]

    @property
    def all_selected(self) -> bool:
        valid_ids = {row.row_id for row in self.valid_rows}
        return bool(valid_ids) and self._selected == valid_ids

    def get_row(self, row_id: str) -> UploadRow:
        """
        Raises:
            RowNotFoundError: If the row is not in the batch
        """
        for row in self._rows:
            if row.row_id == row_id:
                return row
        raise RowNotFoundError(row_id)

    def snapshot(self) -> list[DraftRow]:
        """The batch as draft rows, in order."""
        return [row.to_draft(position) for position, row in enumerate(self._rows)]

    # =======================
    # ROW CONSTRUCTION
    # =======================

    def _evaluate(self, raw: RawRecord, image_ratio: str) -> tuple[list[str], PromptRecord | None]:
        """Validate with the configured engine and build the normalized payload when it passes."""
        errors = validate_prompt(raw, self.engine)
        if errors:
            return errors, None
        try:
            return [], normalize_prompt(raw, image_ratio, engine=self.engine)
        except ValueError as e:
            # A custom rule set can pass a record the payload model still refuses
            logger.warning("Record passed validation but cannot be normalized", extra={"error_message": str(e)})
            return _normalization_errors(e), None

    def _build_row(self, raw: RawRecord, row_id: str | None = None) -> UploadRow:
        """Validate and normalize a fresh record; flag it for detection when its image is usable."""
        errors, normalized = self._evaluate(raw, DEFAULT_IMAGE_RATIO)
        return UploadRow(
            row_id=row_id or new_row_id(),
            raw=raw,
            normalized=normalized,
            validation_errors=errors,
            image_ratio=DEFAULT_IMAGE_RATIO,
            is_detecting_ratio=self.inferrer is not None and _image_is_usable(raw, errors),
        )

    def _index_of(self, row_id: str) -> int | None:
        for index, row in enumerate(self._rows):
            if row.row_id == row_id:
                return index
        return None

    def _replace(self, row: UploadRow) -> None:
        index = self._index_of(row.row_id)
        if index is None:
            raise RowNotFoundError(row.row_id)
        self._rows[index] = row
        if not row.is_valid:
            self._selected.discard(row.row_id)

    def _remove(self, row_ids: Iterable[str]) -> None:
        doomed = set(row_ids)
        self._rows = [row for row in self._rows if row.row_id not in doomed]
        self._selected -= doomed
        for row_id in doomed:
            self._stop_detection(row_id)
            self._generations.pop(row_id, None)

    def _changed(self) -> None:
        """Record a state change: schedule the autosave and refresh gauges."""
        self.autosave.schedule()
        self._record_state()

    def _record_state(self) -> None:
        valid = sum(1 for row in self._rows if row.is_valid)
        record_batch_state(valid, len(self._rows) - valid)

    # =======================
    # RATIO DETECTION
    # =======================

    def _start_detection(self, row_id: str, source: str | bytes) -> None:
        self._stop_detection(row_id)
        generation = self._generations.get(row_id, 0) + 1
        self._generations[row_id] = generation

        task = asyncio.get_running_loop().create_task(self._detect(row_id, generation, source))
        self._detections[row_id] = task

        def _forget(done: asyncio.Task) -> None:
            if self._detections.get(row_id) is done:
                del self._detections[row_id]

        task.add_done_callback(_forget)

    def _stop_detection(self, row_id: str) -> None:
        """Supersede any detection in flight for the row."""
        self._generations[row_id] = self._generations.get(row_id, 0) + 1
        task = self._detections.pop(row_id, None)
        if task is not None and not task.done():
            task.cancel()

    async def _detect(self, row_id: str, generation: int, source: str | bytes) -> None:
        try:
            ratio = await self.inferrer.infer(source)
        except Exception as e:  # noqa: BLE001
            # The row must leave the enriching state whatever the inferrer does
            logger.warning(
                "Ratio inferrer raised, using default",
                extra={"row_id": row_id, "error_type": type(e).__name__, "error_message": str(e)},
            )
            ratio = DEFAULT_IMAGE_RATIO

        if self._generations.get(row_id) != generation:
            logger.debug("Discarding stale ratio detection", extra={"row_id": row_id})
            return
        index = self._index_of(row_id)
        if index is None:
            return

        row = self._rows[index]
        normalized = row.normalized.model_copy(update={"image_ratio": ratio}) if row.normalized else None
        self._rows[index] = row.evolve(image_ratio=ratio, normalized=normalized, is_detecting_ratio=False)
        self._changed()

    async def wait_for_enrichment(self, row_ids: Iterable[str] | None = None) -> None:
        """
        Wait until ratio detection has resolved.

        Args:
            row_ids: Rows to wait for (default: every row)
        """
        wanted = set(row_ids) if row_ids is not None else None
        while True:
            tasks = [
                task for row_id, task in self._detections.items()
                if wanted is None or row_id in wanted
            ]
            if not tasks:
                return
            done, _ = await asyncio.wait(tasks)
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    logger.error(
                        "Ratio detection task failed",
                        exc_info=task.exception(),
                    )

    # =======================
    # SESSION LIFECYCLE
    # =======================

    async def restore(self) -> list[UploadRow]:
        """
        Load the draft snapshot into an empty batch, once per session.

        Restoration does not schedule an autosave. Rows whose detection was
        in flight when the snapshot was written are detected again.

        Returns:
            The restored rows (empty if nothing was restored)
        """
        if self._restored:
            return []
        self._restored = True

        if self._rows:
            logger.info("Batch already has rows, skipping draft restore")
            return []

        try:
            drafts = await self.draft_store.load()
        except DraftStoreError as e:
            logger.warning("Failed to load drafts", extra={"error_message": str(e)})
            return []

        rows: list[UploadRow] = []
        for draft in drafts:
            try:
                row = UploadRow.from_draft(draft)
            except ModelValidationError:
                logger.warning("Rebuilding inconsistent draft row", extra={"row_id": draft.id})
                row = self._build_row(draft.data, row_id=draft.id)
            rows.append(row)

        self._rows = rows
        for row in rows:
            if not row.is_detecting_ratio:
                continue
            source = _image_reference(row.raw)
            if self.inferrer is not None and source is not None:
                self._start_detection(row.row_id, source)
            else:
                self._replace(row.evolve(is_detecting_ratio=False))

        self._record_state()
        logger.info("Restored drafts", extra={"row_count": len(rows)})
        return rows

    async def close(self) -> None:
        """Stop detections and write any pending snapshot."""
        for row_id in list(self._detections):
            self._stop_detection(row_id)
        if self.autosave.pending:
            await self.autosave.flush()

    # =======================
    # EDITING
    # =======================

    async def ingest_file(
        self,
        content: bytes,
        filename: str,
        content_type: str | None = None,
        append: bool = False,
    ) -> list[UploadRow]:
        """
        Parse an uploaded file into rows.

        A rejected file raises before the batch is touched.

        Args:
            content: Raw file bytes
            filename: Original file name
            content_type: MIME type reported by the client
            append: Add to the batch instead of replacing it

        Returns:
            The new rows, in file order

        Raises:
            FileRejectedError: If the file is rejected as a whole
        """
        records = self.file_reader.read(content, filename, content_type)
        rows = [self._build_row(raw) for raw in records]

        if not append:
            self._remove([row.row_id for row in self._rows])
        self._rows.extend(rows)

        for row in rows:
            if row.is_detecting_ratio:
                self._start_detection(row.row_id, _image_reference(row.raw))

        self._changed()
        logger.info(
            "Ingested file",
            extra={
                "file_name": filename,
                "row_count": len(rows),
                "invalid_rows": sum(1 for row in rows if not row.is_valid),
                "append": append,
            },
        )
        return rows

    async def edit_row(self, row_id: str, data: RawRecord, image: bytes | None = None) -> UploadRow:
        """
        Replace a row's raw record and re-run validation and normalization.

        Ratio detection runs again only when the image reference changed or a
        new image blob is supplied.

        Args:
            row_id: Row to edit
            data: The full edited record
            image: Uploaded image bytes, when the operator replaced the image

        Returns:
            The updated row

        Raises:
            RowNotFoundError: If the row is not in the batch
        """
        row = self.get_row(row_id)
        raw = dict(data)
        errors, normalized = self._evaluate(raw, row.image_ratio)

        image_changed = image is not None or _image_reference(raw) != _image_reference(row.raw)
        if image_changed:
            source: Any = image if image is not None else _image_reference(raw)
            detecting = self.inferrer is not None and (image is not None or _image_is_usable(raw, errors))
            if detecting:
                image_ratio = row.image_ratio
            else:
                self._stop_detection(row_id)
                image_ratio = DEFAULT_IMAGE_RATIO
                if normalized is not None:
                    normalized = normalized.model_copy(update={"image_ratio": image_ratio})
        else:
            detecting = row.is_detecting_ratio
            image_ratio = row.image_ratio

        updated = UploadRow(
            row_id=row_id,
            raw=raw,
            normalized=normalized,
            validation_errors=errors,
            image_ratio=image_ratio,
            is_detecting_ratio=detecting,
        )
        self._replace(updated)
        if image_changed and detecting:
            self._start_detection(row_id, source)

        self._changed()
        return updated

    async def delete_row(self, row_id: str) -> UploadRow:
        """
        Remove one row from the batch and from the draft store.

        Raises:
            RowNotFoundError: If the row is not in the batch
        """
        row = self.get_row(row_id)
        self._remove([row_id])
        await best_effort("draft_row_delete", self.draft_store.delete_row(row_id), logger=logger, row_id=row_id)
        self._changed()
        return row

    async def delete_selected(self) -> int:
        """Remove every selected row. Returns the number of rows removed."""
        doomed = set(self._selected)
        if not doomed:
            return 0
        self._remove(doomed)
        self._changed()
        return len(doomed)

    async def clear(self) -> None:
        """
        Empty the batch and the draft store.

        Raises:
            DraftStoreError: If the draft store could not be cleared; the
                batch is left untouched
        """
        async with self.autosave.paused():
            await self.draft_store.clear()
            self._remove([row.row_id for row in self._rows])
        self.autosave.cancel()
        self._record_state()
        logger.info("Cleared batch")

    # =======================
    # SELECTION
    # =======================

    def toggle_select(self, row_id: str) -> bool:
        """
        Toggle a row's selection. Rows with validation errors cannot be selected.

        Returns:
            True if the row is selected afterwards

        Raises:
            RowNotFoundError: If the row is not in the batch
        """
        row = self.get_row(row_id)
        if row_id in self._selected:
            self._selected.discard(row_id)
            return False
        if not row.is_valid:
            return False
        self._selected.add(row_id)
        return True

    def select_all(self) -> frozenset[str]:
        """Select every valid row, or clear the selection if all are selected."""
        if self.all_selected:
            self._selected.clear()
        else:
            self._selected = {row.row_id for row in self.valid_rows}
        return self.selected

    # =======================
    # PUBLISHING
    # =======================

    async def _publish_rows(self, row_ids: list[str], status: str | None) -> PublishSummary:
        await self.wait_for_enrichment(row_ids)

        rows = []
        for row_id in row_ids:
            index = self._index_of(row_id)
            if index is not None and self._rows[index].is_valid:
                rows.append(self._rows[index])
        if not rows:
            raise NothingToPublishError("No valid prompts to publish")

        records = [row.normalized if status is None else row.normalized.with_status(status) for row in rows]
        summary = await self.publisher.publish(records, [row.row_id for row in rows])

        published = summary.succeeded_row_ids
        if published:
            self._remove(published)
            self._record_state()
            await self.autosave.flush()
        return summary

    async def publish_all(self, status: str | None = None) -> PublishSummary:
        """
        Publish every valid row.

        Args:
            status: Status to create the records with (default: each
                record's normalized status)

        Raises:
            NothingToPublishError: If the batch has no valid row
        """
        summary = await self._publish_rows([row.row_id for row in self.valid_rows], status)
        self._selected.clear()
        return summary

    async def publish_selected(self, status: str | None = None) -> PublishSummary:
        """
        Publish the selected valid rows, in batch order.

        Raises:
            NothingToPublishError: If no valid row is selected
        """
        row_ids = [row.row_id for row in self.valid_rows if row.row_id in self._selected]
        summary = await self._publish_rows(row_ids, status)
        self._selected.clear()
        return summary

    async def _publish_single(self, row_id: str, status: str) -> PublishResult:
        row = self.get_row(row_id)
        if not row.is_valid:
            raise NothingToPublishError("Cannot publish row with validation errors")
        summary = await self._publish_rows([row_id], status)
        return summary.results[0]

    async def publish_row(self, row_id: str) -> PublishResult:
        """Publish one row now."""
        return await self._publish_single(row_id, STATUS_PUBLISHED)

    async def send_row_to_review(self, row_id: str) -> PublishResult:
        """Create one row's record with the Review status."""
        return await self._publish_single(row_id, STATUS_REVIEW)

    async def save_row_as_draft(self, row_id: str) -> PublishResult:
        """Create one row's record with the Draft status."""
        return await self._publish_single(row_id, STATUS_DRAFT)
