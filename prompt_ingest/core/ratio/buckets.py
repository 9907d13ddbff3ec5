"""
Mapping of image dimensions onto the fixed set of ratio buckets.
"""

from prompt_ingest.core.constants import DEFAULT_IMAGE_RATIO, RATIO_BUCKETS


def bucket_for_ratio(ratio: float) -> str:
    """
    Return the bucket whose canonical ratio is closest to ``ratio``.

    Ties resolve to the bucket listed first in RATIO_BUCKETS.
    """
    best_name = DEFAULT_IMAGE_RATIO
    best_distance: float | None = None
    for name, value in RATIO_BUCKETS.items():
        distance = abs(ratio - value)
        if best_distance is None or distance < best_distance:
            best_name, best_distance = name, distance
    return best_name


def bucket_for_dimensions(width: int | float, height: int | float) -> str:
    """
    Map intrinsic image dimensions to a ratio bucket.

    Args:
        width: Image width in pixels
        height: Image height in pixels

    Returns:
        The nearest bucket name, or the default bucket for non-positive sizes

    Examples:
        >>> bucket_for_dimensions(1920, 1080)
        '16:9'
        >>> bucket_for_dimensions(0, 100)
        '4:3'
    """
    if width <= 0 or height <= 0:
        return DEFAULT_IMAGE_RATIO
    return bucket_for_ratio(width / height)
