"""
Live synchronization of the moderation queue.
"""

from .reconciler import (
    ModerationSync,
    apply_change,
    clear_selection,
    reconcile,
    select_all,
    toggle_selection,
)
from .sources import PgNotifySource, parse_notification

__all__ = [
    "ModerationSync",
    "PgNotifySource",
    "apply_change",
    "clear_selection",
    "parse_notification",
    "reconcile",
    "select_all",
    "toggle_selection",
]
