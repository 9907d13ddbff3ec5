"""
Draft store persisting the batch snapshot to a local JSON file.

Writes go to a temporary file in the same directory followed by an atomic
rename, so a crash mid-write leaves the previous snapshot intact.
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from prompt_ingest.core.errors import DraftStoreError
from prompt_ingest.core.models import DraftRow
from prompt_ingest.observability.logger import get_logger

logger = get_logger(__name__)

SNAPSHOT_VERSION = 1


class JsonFileDraftStore:
    """
    Draft store for single-operator use on one machine.

    Args:
        path: Snapshot file; created on first save
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> list[DraftRow]:
        if not self.path.exists():
            return []
        with open(self.path, encoding="utf-8") as f:
            document = json.load(f)
        rows = [DraftRow.model_validate(item) for item in document.get("rows", [])]
        return sorted(rows, key=lambda row: row.position)

    def _write(self, rows: list[DraftRow]) -> None:
        if not rows:
            self.path.unlink(missing_ok=True)
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            "version": SNAPSHOT_VERSION,
            "rows": [row.model_dump(mode="json") for row in rows],
        }
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def save(self, rows: list[DraftRow]) -> None:
        try:
            await asyncio.to_thread(self._write, list(rows))
        except OSError as e:
            raise DraftStoreError(f"Failed to save drafts: {e}") from e
        logger.debug("Saved draft snapshot", extra={"path": str(self.path), "row_count": len(rows)})

    async def load(self) -> list[DraftRow]:
        try:
            return await asyncio.to_thread(self._read)
        except (OSError, json.JSONDecodeError, ValidationError, AttributeError) as e:
            raise DraftStoreError(f"Failed to load drafts: {e}") from e

    async def delete_row(self, row_id: str) -> None:
        def _delete() -> None:
            rows = [row for row in self._read() if row.id != row_id]
            self._write(rows)

        try:
            await asyncio.to_thread(_delete)
        except (OSError, json.JSONDecodeError, ValidationError, AttributeError) as e:
            raise DraftStoreError(f"Failed to delete draft: {e}") from e

    async def clear(self) -> None:
        try:
            await asyncio.to_thread(self._write, [])
        except OSError as e:
            raise DraftStoreError(f"Failed to clear drafts: {e}") from e
