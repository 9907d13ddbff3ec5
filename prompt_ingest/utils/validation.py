"""
Input validation utilities for the ingestion pipeline.

Provides reusable checks for operator input (file paths, batch sizes) and
the URL well-formedness test shared by the record validators.
"""

from urllib.parse import urlsplit


class ValidationError(ValueError):
    """Raised when input validation fails."""
    pass


def is_well_formed_url(value: str, schemes: tuple[str, ...] = ("http", "https")) -> bool:
    """
    Check that a string is an absolute URL with an allowed scheme and a host.

    Args:
        value: Candidate URL (already trimmed)
        schemes: Accepted schemes, lower case

    Returns:
        True if the URL parses with an accepted scheme and a network location

    Examples:
        >>> is_well_formed_url("https://cdn.example.com/a.png")
        True
        >>> is_well_formed_url("not a url")
        False
        >>> is_well_formed_url("ftp://example.com/a.png")
        False
    """
    if not value or any(ch.isspace() or not ch.isprintable() for ch in value):
        return False

    try:
        parts = urlsplit(value)
        # Accessing port validates it
        _ = parts.port
    except ValueError:
        return False

    return parts.scheme.lower() in schemes and bool(parts.hostname)


def validate_batch_size(batch_size: int, field_name: str = "batch_size", max_size: int = 100) -> int:
    """
    Validate a publish batch size.

    Args:
        batch_size: Number of concurrent creates per batch
        field_name: Name of the field (for error messages)
        max_size: Largest accepted value

    Returns:
        The validated batch size

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> validate_batch_size(10)
        10
        >>> validate_batch_size(0)  # doctest: +SKIP
        ValidationError: batch_size must be a positive integer
    """
    if isinstance(batch_size, bool) or not isinstance(batch_size, int):
        raise ValidationError(f"{field_name} must be an integer, got {type(batch_size).__name__}")

    if batch_size <= 0:
        raise ValidationError(f"{field_name} must be a positive integer, got {batch_size}")

    if batch_size > max_size:
        raise ValidationError(f"{field_name} exceeds maximum of {max_size}")

    return batch_size


def validate_file_path(file_path: str, field_name: str = "file_path") -> str:
    """
    Validate a file path given on the command line.

    Args:
        file_path: The file path to validate
        field_name: Name of the field (for error messages)

    Returns:
        The validated file path (stripped of whitespace)

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> validate_file_path("uploads/prompts.csv")
        'uploads/prompts.csv'
        >>> validate_file_path("../../../etc/passwd")  # doctest: +SKIP
        ValidationError: file_path contains path traversal characters
    """
    if not file_path or not isinstance(file_path, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    file_path = file_path.strip()

    if not file_path:
        raise ValidationError(f"{field_name} cannot be empty or whitespace-only")

    if ".." in file_path.replace("\\", "/").split("/"):
        raise ValidationError(f"{field_name} contains path traversal characters (..)")

    if "\x00" in file_path:
        raise ValidationError(f"{field_name} contains null bytes")

    if len(file_path) > 4096:
        raise ValidationError(f"{field_name} exceeds maximum length of 4096 characters")

    return file_path
