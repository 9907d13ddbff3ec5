"""
Normalization of validated raw records into publish-ready PromptRecords.
"""

from typing import TYPE_CHECKING, Any

from prompt_ingest.core.constants import (
    DEFAULT_IMAGE_RATIO,
    STATUS_PUBLISHED,
    canonical_status,
    get_field,
)
from prompt_ingest.core.models import PromptRecord, RawRecord

from .sanitizer import sanitize_for_storage

if TYPE_CHECKING:
    from prompt_ingest.core.rules import RuleEngine


def normalize_tags(tags: Any) -> list[str] | None:
    """
    Canonicalize a tag list.

    Tags are lower-cased, sanitized and trimmed; empty tags are dropped and
    duplicates removed, keeping the first occurrence.

    Args:
        tags: Tag list as found in the raw record

    Returns:
        The canonical tags, or None when nothing is left ("no tags")
    """
    if not isinstance(tags, list):
        return None

    seen: set[str] = set()
    canonical: list[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        value = sanitize_for_storage(tag.lower())
        if value and value not in seen:
            seen.add(value)
            canonical.append(value)

    return canonical or None


def _optional_text(value: Any) -> str | None:
    text = sanitize_for_storage(value)
    return text or None


def normalize_prompt(
    raw: RawRecord,
    image_ratio: str = DEFAULT_IMAGE_RATIO,
    target_status: str | None = None,
    engine: "RuleEngine | None" = None,
) -> PromptRecord:
    """
    Build the canonical record for a raw record that passed validation.

    The same function serves publish, send-to-review and save-as-draft;
    only ``target_status`` differs.

    Args:
        raw: Raw record with no validation errors
        image_ratio: Ratio bucket resolved for the preview image
        target_status: Status to create the record with. When omitted the
            record's own status (canonicalized) is used, else Published.
        engine: Rule engine the record was validated with (defaults to the
            built-in prompt rules)

    Returns:
        Immutable PromptRecord

    Raises:
        ValueError: If the raw record has validation errors, or the
            record it describes cannot be built
    """
    # Deferred: the rule engine imports this package for sanitization
    from prompt_ingest.core.rules import validate_prompt

    errors = validate_prompt(raw, engine)
    if errors:
        raise ValueError(f"cannot normalize an invalid record: {'; '.join(errors)}")

    status = target_status or canonical_status(raw.get("status")) or STATUS_PUBLISHED

    return PromptRecord(
        title=sanitize_for_storage(raw.get("title")),
        prompt=sanitize_for_storage(raw.get("prompt")),
        category=sanitize_for_storage(raw.get("category")),
        negative_prompt=_optional_text(get_field(raw, "negative_prompt")),
        tags=normalize_tags(raw.get("tags")),
        preview_image_url=_optional_text(get_field(raw, "preview_image_url")),
        attribution=_optional_text(raw.get("attribution")),
        attribution_link=_optional_text(get_field(raw, "attribution_link")),
        image_ratio=image_ratio,
        status=status,
        views=0,
    )
