"""
Interfaces of the external collaborators the pipeline talks to.

Adapters live next to this module: ``memory`` (in-process, used by tests and
dry runs), ``json_drafts`` (local file drafts) and ``postgres``.
"""

from typing import Protocol

from prompt_ingest.core.models import DraftRow, PromptRecord, StoredPrompt


class DraftStore(Protocol):
    """
    Scratch copy of the working upload batch.

    Implementations raise DraftStoreError on failure.
    """

    async def save(self, rows: list[DraftRow]) -> None:
        """Replace the stored snapshot with ``rows`` (an empty list clears it)."""
        ...

    async def load(self) -> list[DraftRow]:
        """Return the stored snapshot ordered by position, or an empty list."""
        ...

    async def delete_row(self, row_id: str) -> None:
        """Remove one row from the stored snapshot."""
        ...

    async def clear(self) -> None:
        """Remove the whole snapshot."""
        ...


class PromptStore(Protocol):
    """Backend record store for prompts."""

    async def create_one(self, record: PromptRecord) -> StoredPrompt | None:
        """
        Create one record.

        Returns the created record, or None when the backend accepted the
        write but returned nothing. Raises on rejection.
        """
        ...

    async def fetch_for_review(self) -> list[StoredPrompt]:
        """Return every record that is not published, newest first."""
        ...


class CategorySource(Protocol):
    """Read side of the published catalogue used by the category registry."""

    async def fetch_published_categories(self) -> list[str]:
        """Return the category of every published record (with repeats)."""
        ...

    async def fetch_published_tags(self) -> list[list[str]]:
        """Return the tag list of every published record."""
        ...


class CategoryMetaStore(Protocol):
    """Optional per-category metadata (icon, accent colour, ordering)."""

    async def upsert(self, category_name: str) -> None:
        """Create default metadata for a category if none exists."""
        ...
