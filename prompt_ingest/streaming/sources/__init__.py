"""
Change stream sources.
"""

from .pg_notify_source import DEFAULT_CHANNEL, PgNotifySource, parse_notification

__all__ = ["DEFAULT_CHANNEL", "PgNotifySource", "parse_notification"]
