"""
PostgreSQL LISTEN/NOTIFY change source.

The ``prompts_notify_change`` trigger (docker/init-db.sql) publishes one JSON
payload per row change:

    {"type": "INSERT" | "UPDATE" | "DELETE", "record": {...}, "old_record": {...}}
"""

import json
from collections.abc import AsyncIterator
from typing import Any

from psycopg import sql
from pydantic import ValidationError

from prompt_ingest.core.models import ChangeEvent
from prompt_ingest.observability.logger import get_logger
from prompt_ingest.observability.metrics import increment_counter, moderation_events_total
from prompt_ingest.store.connection import DatabaseConnectionPool

logger = get_logger(__name__)

DEFAULT_CHANNEL = "prompt_changes"


def parse_notification(payload: str) -> ChangeEvent | None:
    """
    Decode one notification payload.

    Returns:
        The change event, or None if the payload is malformed
    """
    try:
        document: Any = json.loads(payload)
        if not isinstance(document, dict):
            raise TypeError("notification payload must be a JSON object")
        return ChangeEvent.from_payload(document)
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        increment_counter(moderation_events_total, kind="unknown", action="malformed")
        logger.warning(
            "Skipping malformed notification",
            extra={"error_type": type(e).__name__, "error_message": str(e)},
        )
        return None


class PgNotifySource:
    """
    Live change stream over PostgreSQL notifications.

    Uses a dedicated autocommit connection, separate from the pool.
    """

    def __init__(self, pool: DatabaseConnectionPool, channel: str = DEFAULT_CHANNEL):
        """
        Args:
            pool: Pool whose connection settings are reused
            channel: Notification channel to LISTEN on
        """
        self.pool = pool
        self.channel = channel

    async def events(self) -> AsyncIterator[ChangeEvent]:
        """Yield change events until the connection closes or the consumer stops."""
        conn = await self.pool.listen_connection()
        try:
            await conn.execute(sql.SQL("LISTEN {}").format(sql.Identifier(self.channel)))
            logger.info("Listening for prompt changes", extra={"channel": self.channel})
            async for notify in conn.notifies():
                event = parse_notification(notify.payload)
                if event is not None:
                    yield event
        finally:
            await conn.close()
