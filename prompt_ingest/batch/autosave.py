"""
Debounced autosave of the working batch to the draft store.
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from prompt_ingest.core.models import DraftRow
from prompt_ingest.observability.logger import get_logger
from prompt_ingest.observability.metrics import autosaves_total, increment_counter
from prompt_ingest.store.ports import DraftStore
from prompt_ingest.utils.best_effort import BestEffort, best_effort

logger = get_logger(__name__)

DEFAULT_AUTOSAVE_DELAY_SECONDS = 1.0


class DebouncedAutosave:
    """
    Single pending-write slot for batch snapshots.

    Scheduling cancels and replaces any write still waiting out its delay, so
    snapshot writes never stack up or land out of order. The snapshot is
    taken when the write fires, not when it was scheduled. Failed writes are
    logged, counted and swallowed.
    """

    def __init__(
        self,
        store: DraftStore,
        snapshot: Callable[[], list[DraftRow]],
        delay: float = DEFAULT_AUTOSAVE_DELAY_SECONDS,
    ):
        """
        Args:
            store: Draft store to write to
            snapshot: Returns the current batch as draft rows
            delay: Seconds to wait for further changes before writing
        """
        self.store = store
        self.snapshot = snapshot
        self.delay = delay
        self._pending: asyncio.Task | None = None
        self._write_lock = asyncio.Lock()
        self.last_outcome: BestEffort | None = None

    @property
    def pending(self) -> bool:
        """True while a scheduled write has not started yet."""
        return self._pending is not None and not self._pending.done()

    def schedule(self) -> None:
        """Schedule a write after the debounce delay, replacing any pending one."""
        self.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._delayed_write())

    def cancel(self) -> None:
        """Drop the pending write, if any."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    @asynccontextmanager
    async def paused(self) -> AsyncIterator[None]:
        """
        Hold off snapshot writes while the caller changes the store directly.

        The pending write is dropped and any write already running is waited
        out. A write that fires meanwhile runs after the block, against the
        snapshot as the block left it.
        """
        self.cancel()
        async with self._write_lock:
            yield

    async def _delayed_write(self) -> None:
        await asyncio.sleep(self.delay)
        # Past the delay this write is committed; a later schedule() must not cut it short
        self._pending = None
        await self._write()

    async def flush(self) -> BestEffort:
        """Cancel any pending write and write the current snapshot now."""
        self.cancel()
        return await self._write()

    async def _write(self) -> BestEffort:
        async with self._write_lock:
            rows = self.snapshot()
            outcome = await best_effort(
                "draft_autosave",
                self.store.save(rows),
                logger=logger,
                row_count=len(rows),
            )
        increment_counter(autosaves_total, status="success" if outcome.ok else "failure")
        self.last_outcome = outcome
        return outcome
