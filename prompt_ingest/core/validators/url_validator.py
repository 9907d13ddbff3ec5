"""
UrlValidator - validates optional link fields.
"""

from typing import Any

from prompt_ingest.core.normalization.sanitizer import sanitize_for_storage
from prompt_ingest.utils.validation import is_well_formed_url

from .base_validator import BaseValidator, ValidationError


class UrlValidator(BaseValidator):
    """
    Validates that a field, when provided, is a well-formed absolute URL.

    Blank values count as absent and pass. The check runs on the sanitized
    value because that is what gets stored.

    Parameters:
    - schemes: Allowed URL schemes (default http, https)
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.schemes = tuple(self.parameters.get("schemes", ("http", "https")))

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Validate that the value parses as a URL.

        Args:
            value: The field value to validate
            record: The entire record

        Raises:
            ValidationError: If the value is present but not a valid URL
        """
        if self.is_blank(value):
            return

        if not isinstance(value, str) or not is_well_formed_url(
            sanitize_for_storage(value), self.schemes
        ):
            raise ValidationError(
                self.rule_type,
                self.field_name,
                f"{self.field_name} must be a valid URL",
            )

    @property
    def rule_type(self) -> str:
        return "url"
