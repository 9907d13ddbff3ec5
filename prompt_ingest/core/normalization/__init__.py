"""
Sanitization and normalization of raw records.
"""

from .normalizer import normalize_prompt, normalize_tags
from .sanitizer import sanitize_for_storage

__all__ = [
    "normalize_prompt",
    "normalize_tags",
    "sanitize_for_storage",
]
