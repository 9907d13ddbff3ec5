"""
Store interfaces and adapters.

PostgreSQL adapters live in ``prompt_ingest.store.postgres``.
"""

from .json_drafts import JsonFileDraftStore
from .memory import InMemoryCategoryMetaStore, InMemoryDraftStore, InMemoryPromptStore
from .ports import CategoryMetaStore, CategorySource, DraftStore, PromptStore

__all__ = [
    "CategoryMetaStore",
    "CategorySource",
    "DraftStore",
    "PromptStore",
    "InMemoryCategoryMetaStore",
    "InMemoryDraftStore",
    "InMemoryPromptStore",
    "JsonFileDraftStore",
]
