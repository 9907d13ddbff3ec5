"""
Markup sanitization for free-text fields before they reach storage.
"""

import re
from typing import Any

# Blocks whose content is executable or embeds another document
_DANGEROUS_BLOCKS = [
    re.compile(rf"<{tag}\b[^<]*(?:(?!</{tag}\s*>)<[^<]*)*</{tag}\s*>", re.IGNORECASE)
    for tag in ("script", "style", "iframe", "object", "embed")
]

# Inline handlers such as onclick="..." or onerror='...'
_EVENT_HANDLER = re.compile(r"""\bon\w+\s*=\s*(?:"[^"]*"|'[^']*')""", re.IGNORECASE)

_SCRIPT_SCHEME = re.compile(r"(?:java|vb)script\s*:", re.IGNORECASE)

_ANY_TAG = re.compile(r"<[^>]*>")


def _strip_once(value: str) -> str:
    for pattern in _DANGEROUS_BLOCKS:
        value = pattern.sub("", value)
    value = _EVENT_HANDLER.sub("", value)
    value = _SCRIPT_SCHEME.sub("", value)
    value = _ANY_TAG.sub("", value)
    return value.strip()


def sanitize_for_storage(value: Any) -> str:
    """
    Strip executable markup from a value destined for storage.

    Removes script/style/iframe/object/embed blocks, inline event handler
    attributes, javascript:/vbscript: schemes and any remaining tags, then
    trims. Stripping repeats until nothing changes, so nested payloads such
    as ``<scr<script></script>ipt>`` cannot reassemble and the function is
    idempotent.

    Args:
        value: Anything; non-string input yields an empty string

    Returns:
        Sanitized, trimmed string
    """
    if not isinstance(value, str) or not value:
        return ""

    current = value
    while True:
        stripped = _strip_once(current)
        if stripped == current:
            return stripped
        current = stripped
