"""
Category registry: cached reads of the published catalogue.

Reads are cached per key for a fixed time window. When the source is not
configured, fails or has nothing published, category reads fall back to a
stable default list (which is never cached, so the next read retries).
"""

import time
from collections import Counter
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict

from prompt_ingest.core.errors import CategoryMetaError
from prompt_ingest.observability.logger import get_logger
from prompt_ingest.observability.metrics import (
    category_cache_invalidations_total,
    category_meta_writes_total,
    increment_counter,
)
from prompt_ingest.store.ports import CategoryMetaStore, CategorySource

logger = get_logger(__name__)

DEFAULT_CATEGORIES: tuple[str, ...] = (
    "Portraits",
    "Anime",
    "Logos",
    "UI/UX",
    "Cinematic",
    "3D Art",
    "Photography",
    "Illustrations",
)

DEFAULT_TTL_SECONDS = 300.0
ALL_TAGS_LIMIT = 1000


class CategoryCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    count: int


class TagCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: str
    count: int


class CategoryStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_categories: int
    total_prompts: int
    categories: tuple[CategoryCount, ...]


class TagStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_tags: int
    total_tag_usages: int
    tags: tuple[TagCount, ...]


def _ranked(counts: Counter) -> list[tuple[str, int]]:
    """Most used first, then alphabetical (case-insensitive)."""
    return sorted(counts.items(), key=lambda item: (-item[1], item[0].casefold(), item[0]))


class CategoryRegistry:
    """
    Cached category and tag views over a CategorySource.

    Usage:
        registry = CategoryRegistry(source=prompt_store, meta_store=meta_store)
        known = set(await registry.list_categories())
        ...
        registry.invalidate()
    """

    def __init__(
        self,
        source: CategorySource | None = None,
        meta_store: CategoryMetaStore | None = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            source: Published catalogue reader; None means "not configured"
            meta_store: Category metadata writer; None disables metadata writes
            ttl_seconds: Validity window of a cached read
            clock: Monotonic time source
        """
        self.source = source
        self.meta_store = meta_store
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: dict[str, tuple[float, Any]] = {}

    # ----- cache -----

    def _get_cached(self, key: str) -> Any | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._cache[key]
            return None
        return value

    def _set_cached(self, key: str, value: Any) -> None:
        self._cache[key] = (self._clock() + self.ttl_seconds, value)

    def invalidate(self) -> None:
        """Drop every cached read, including counts and tag views."""
        dropped = len(self._cache)
        self._cache.clear()
        increment_counter(category_cache_invalidations_total)
        logger.debug("Category cache invalidated", extra={"dropped_keys": dropped})

    @property
    def cached_keys(self) -> set[str]:
        return set(self._cache)

    # ----- source reads -----

    async def _category_counts(self) -> Counter | None:
        if self.source is None:
            logger.warning("Category source not configured, using default categories")
            return None
        try:
            categories = await self.source.fetch_published_categories()
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "Error fetching categories, using default categories",
                extra={"error_type": type(e).__name__, "error_message": str(e)},
            )
            return None
        counts = Counter(category for category in categories if category)
        return counts or None

    async def _tag_counts(self) -> Counter:
        if self.source is None:
            return Counter()
        try:
            tag_lists = await self.source.fetch_published_tags()
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "Error fetching tags",
                extra={"error_type": type(e).__name__, "error_message": str(e)},
            )
            return Counter()
        counts: Counter = Counter()
        for tags in tag_lists:
            for tag in tags or []:
                if isinstance(tag, str) and tag.strip():
                    counts[tag.strip().lower()] += 1
        return counts

    # ----- public reads -----

    async def list_categories(self) -> list[str]:
        """
        Return published categories, most used first.

        Returns:
            Category names, or DEFAULT_CATEGORIES when none can be read
        """
        cached = self._get_cached("categories")
        if cached is not None:
            return list(cached)

        counts = await self._category_counts()
        if counts is None:
            return list(DEFAULT_CATEGORIES)

        categories = [name for name, _ in _ranked(counts)]
        self._set_cached("categories", tuple(categories))
        return categories

    async def categories_with_counts(self) -> list[CategoryCount]:
        """Return published categories with their usage counts."""
        cached = self._get_cached("categories-with-counts")
        if cached is not None:
            return list(cached)

        counts = await self._category_counts()
        if counts is None:
            return [CategoryCount(category=name, count=0) for name in DEFAULT_CATEGORIES]

        result = [CategoryCount(category=name, count=count) for name, count in _ranked(counts)]
        self._set_cached("categories-with-counts", tuple(result))
        return result

    async def popular_tags(self, limit: int = 50) -> list[TagCount]:
        """
        Return the most used tags of published prompts.

        Args:
            limit: Maximum number of tags to return
        """
        key = f"popular-tags-{limit}"
        cached = self._get_cached(key)
        if cached is not None:
            return list(cached)

        counts = await self._tag_counts()
        if not counts:
            return []

        result = [TagCount(tag=tag, count=count) for tag, count in _ranked(counts)[:limit]]
        self._set_cached(key, tuple(result))
        return result

    async def all_tags(self) -> list[str]:
        """Return every known tag (for suggestions), most used first."""
        return [item.tag for item in await self.popular_tags(ALL_TAGS_LIMIT)]

    async def category_stats(self) -> CategoryStats:
        categories = await self.categories_with_counts()
        return CategoryStats(
            total_categories=len(categories),
            total_prompts=sum(item.count for item in categories),
            categories=tuple(categories),
        )

    async def tag_stats(self) -> TagStats:
        tags = await self.popular_tags(ALL_TAGS_LIMIT)
        return TagStats(
            total_tags=len(tags),
            total_tag_usages=sum(item.count for item in tags),
            tags=tuple(tags),
        )

    # ----- writes -----

    async def upsert_category_metadata(self, category_name: str) -> None:
        """
        Create default metadata for a new category.

        Raises:
            CategoryMetaError: If the metadata store rejects the write
        """
        if self.meta_store is None:
            logger.debug("No category metadata store configured", extra={"category": category_name})
            return
        try:
            await self.meta_store.upsert(category_name)
        except CategoryMetaError:
            increment_counter(category_meta_writes_total, outcome="failure")
            raise
        except Exception as e:  # noqa: BLE001
            increment_counter(category_meta_writes_total, outcome="failure")
            raise CategoryMetaError(f"Failed to create category metadata for {category_name!r}: {e}") from e
        increment_counter(category_meta_writes_total, outcome="success")
