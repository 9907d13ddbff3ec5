"""
Shared vocabulary for prompt records: statuses, ratio buckets and field names.
"""

from typing import Any

STATUS_PUBLISHED = "Published"
STATUS_PENDING = "Pending"
STATUS_DRAFT = "Draft"
STATUS_REJECTED = "Rejected"
STATUS_REVIEW = "Review"

PROMPT_STATUSES = (
    STATUS_PUBLISHED,
    STATUS_PENDING,
    STATUS_DRAFT,
    STATUS_REJECTED,
    STATUS_REVIEW,
)

# Older exports wrote the published status in lower case
LEGACY_STATUS_ALIASES = {"published": STATUS_PUBLISHED}

ACCEPTED_STATUSES = PROMPT_STATUSES + tuple(LEGACY_STATUS_ALIASES)

PUBLISHED_STATUSES = frozenset({STATUS_PUBLISHED, *LEGACY_STATUS_ALIASES})

# Enumeration order matters: ties resolve to the earlier bucket
RATIO_BUCKETS: dict[str, float] = {
    "1:1": 1.0,
    "4:3": 4 / 3,
    "3:4": 3 / 4,
    "16:9": 16 / 9,
    "9:16": 9 / 16,
    "3:2": 3 / 2,
    "2:3": 2 / 3,
}

DEFAULT_IMAGE_RATIO = "4:3"

# Canonical field name -> accepted spellings, canonical first
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "negative_prompt": ("negative_prompt", "negativePrompt"),
    "preview_image_url": ("preview_image_url", "previewImageUrl"),
    "attribution_link": ("attribution_link", "attributionLink"),
}


def canonical_status(value: Any) -> str | None:
    """Return the canonical spelling of a status, or None if it is not one."""
    if not isinstance(value, str):
        return None
    if value in PROMPT_STATUSES:
        return value
    return LEGACY_STATUS_ALIASES.get(value)


def get_field(raw: dict[str, Any], field_name: str) -> Any:
    """
    Read a field from a raw record, honouring its alternative spellings.

    The first spelling holding a non-None value wins.
    """
    for key in FIELD_ALIASES.get(field_name, (field_name,)):
        value = raw.get(key)
        if value is not None:
            return value
    return None
