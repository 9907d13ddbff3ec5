"""
PostgreSQL adapters for the store interfaces.

Tables are created by ``docker/init-db.sql``: ``prompts``,
``bulk_upload_drafts`` and ``category_meta``.
"""

from typing import Any

from psycopg import Error as PsycopgError
from psycopg.types.json import Jsonb

from prompt_ingest.core.constants import PUBLISHED_STATUSES
from prompt_ingest.core.errors import CategoryMetaError, DraftStoreError, PublishError
from prompt_ingest.core.models import DraftRow, PromptRecord, StoredPrompt
from prompt_ingest.observability.logger import get_logger

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

PROMPT_COLUMNS = (
    "title",
    "prompt",
    "negative_prompt",
    "category",
    "tags",
    "preview_image_url",
    "attribution",
    "attribution_link",
    "image_ratio",
    "status",
    "views",
)


class PostgresPromptStore:
    """
    Prompt store over the ``prompts`` table.

    Also implements CategorySource for the category registry.
    """

    def __init__(self, pool: DatabaseConnectionPool, user_id: str | None = None):
        """
        Args:
            pool: Open connection pool
            user_id: Owner recorded on created rows (the uploading admin)
        """
        self.pool = pool
        self.user_id = user_id

    async def create_one(self, record: PromptRecord) -> StoredPrompt | None:
        """
        Insert one prompt in its own transaction.

        Raises:
            PublishError: If the database rejects the row
        """
        payload: dict[str, Any] = record.to_payload()
        columns = [*PROMPT_COLUMNS, "user_id"]
        values = {**payload, "user_id": self.user_id}
        placeholders = ", ".join(f"%({column})s" for column in columns)

        query = f"""
            INSERT INTO prompts ({", ".join(columns)})
            VALUES ({placeholders})
            RETURNING *
        """
        try:
            rows = await self.pool.execute_query(query, values)
        except PsycopgError as e:
            raise PublishError(str(e).strip() or type(e).__name__) from e

        if not rows:
            return None
        return StoredPrompt.model_validate(rows[0])

    async def fetch_for_review(self) -> list[StoredPrompt]:
        query = """
            SELECT * FROM prompts
            WHERE status <> ALL(%(published)s)
            ORDER BY created_at DESC
        """
        rows = await self.pool.execute_query(query, {"published": sorted(PUBLISHED_STATUSES)})
        return [StoredPrompt.model_validate(row) for row in rows]

    async def fetch_published_categories(self) -> list[str]:
        query = """
            SELECT category FROM prompts
            WHERE status = ANY(%(published)s) AND category IS NOT NULL AND category <> ''
        """
        rows = await self.pool.execute_query(query, {"published": sorted(PUBLISHED_STATUSES)})
        return [row["category"] for row in rows]

    async def fetch_published_tags(self) -> list[list[str]]:
        query = """
            SELECT tags FROM prompts
            WHERE status = ANY(%(published)s) AND tags IS NOT NULL
        """
        rows = await self.pool.execute_query(query, {"published": sorted(PUBLISHED_STATUSES)})
        return [list(row["tags"] or []) for row in rows]


class PostgresDraftStore:
    """
    Draft store over the ``bulk_upload_drafts`` table.

    ``save`` replaces the whole snapshot inside one transaction.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    async def save(self, rows: list[DraftRow]) -> None:
        insert = """
            INSERT INTO bulk_upload_drafts (
                id, position, data, normalized, validation_errors, image_ratio, is_detecting_ratio
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s)
        """
        params = [
            (
                row.id,
                row.position,
                Jsonb(row.data),
                Jsonb(row.normalized) if row.normalized is not None else None,
                Jsonb(row.validation_errors),
                row.image_ratio,
                row.is_detecting_ratio,
            )
            for row in rows
        ]
        try:
            async with self.pool.get_cursor() as cur:
                await cur.execute("DELETE FROM bulk_upload_drafts")
                if params:
                    await cur.executemany(insert, params)
        except PsycopgError as e:
            raise DraftStoreError(f"Failed to save drafts: {e}") from e

    async def load(self) -> list[DraftRow]:
        query = """
            SELECT id, position, data, normalized, validation_errors, image_ratio, is_detecting_ratio
            FROM bulk_upload_drafts
            ORDER BY position ASC, created_at ASC
        """
        try:
            rows = await self.pool.execute_query(query)
        except PsycopgError as e:
            raise DraftStoreError(f"Failed to load drafts: {e}") from e
        return [
            DraftRow.model_validate({**row, "validation_errors": row["validation_errors"] or []})
            for row in rows
        ]

    async def delete_row(self, row_id: str) -> None:
        try:
            await self.pool.execute_command("DELETE FROM bulk_upload_drafts WHERE id = %s", (row_id,))
        except PsycopgError as e:
            raise DraftStoreError(f"Failed to delete draft: {e}") from e

    async def clear(self) -> None:
        try:
            await self.pool.execute_command("DELETE FROM bulk_upload_drafts")
        except PsycopgError as e:
            raise DraftStoreError(f"Failed to clear drafts: {e}") from e


class PostgresCategoryMetaStore:
    """Category metadata over the ``category_meta`` table."""

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    async def upsert(self, category_name: str) -> None:
        command = """
            INSERT INTO category_meta (category_name, is_featured, display_order)
            VALUES (%s, FALSE, 0)
            ON CONFLICT (category_name) DO NOTHING
        """
        try:
            await self.pool.execute_command(command, (category_name,))
        except PsycopgError as e:
            raise CategoryMetaError(f"Failed to upsert category meta for {category_name!r}: {e}") from e
