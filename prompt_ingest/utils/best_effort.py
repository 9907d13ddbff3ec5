"""
Helpers for side effects whose failure must be logged but never raised.

Autosave writes, single draft-row deletions and category metadata upserts
all go through ``best_effort`` so their failures never reach the caller.
"""

import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any

from prompt_ingest.observability.logger import get_logger

_logger = get_logger(__name__)


@dataclass(frozen=True)
class BestEffort:
    """Outcome of one best-effort side effect.

    Attributes:
        operation: Short name of the side effect
        ok: True if the awaitable completed without raising
        error: Error message when ``ok`` is False
    """

    operation: str
    ok: bool
    error: str | None = None


async def best_effort(
    operation: str,
    awaitable: Awaitable[Any],
    logger: logging.Logger | None = None,
    **extra_fields: Any,
) -> BestEffort:
    """Await a side effect and convert any failure into a logged outcome.

    Cancellation is not a failure and still propagates.

    Args:
        operation: Short name used in logs and in the returned outcome
        awaitable: The side effect to await
        logger: Logger to report failures on (defaults to this module's)
        **extra_fields: Additional fields to include in the failure log

    Returns:
        BestEffort describing the outcome
    """
    try:
        await awaitable
    except Exception as exc:  # noqa: BLE001
        (logger or _logger).warning(
            f"Best-effort operation failed: {operation}",
            extra={
                "operation": operation,
                "error_type": type(exc).__name__,
                "error_message": str(exc),
                **extra_fields,
            },
        )
        return BestEffort(operation=operation, ok=False, error=str(exc) or type(exc).__name__)
    return BestEffort(operation=operation, ok=True)
