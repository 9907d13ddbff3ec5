"""
Category registry.
"""

from .registry import (
    DEFAULT_CATEGORIES,
    CategoryCount,
    CategoryRegistry,
    CategoryStats,
    TagCount,
    TagStats,
)

__all__ = [
    "DEFAULT_CATEGORIES",
    "CategoryCount",
    "CategoryRegistry",
    "CategoryStats",
    "TagCount",
    "TagStats",
]
