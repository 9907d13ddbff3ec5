"""
RequiredFieldValidator - ensures a field holds a non-empty string.
"""

from typing import Any

from prompt_ingest.core.normalization.sanitizer import sanitize_for_storage

from .base_validator import BaseValidator, ValidationError


class RequiredFieldValidator(BaseValidator):
    """
    Validates that a required field is a string with content.

    The value is judged after sanitization, so a title made only of markup
    (``<script>x</script>``) fails here instead of normalizing to nothing.

    Fails if:
    - Field is missing or None
    - Field value is not a string
    - Field value is empty once sanitized and trimmed
    """

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Validate that the field holds a non-empty string.

        Args:
            value: The field value to validate
            record: The entire record

        Raises:
            ValidationError: If the field is missing, not a string or empty
        """
        message = self.parameters.get("message", f"{self.field_name} is required")

        if value is None:
            raise ValidationError(self.rule_type, self.field_name, message)

        if not isinstance(value, str):
            raise ValidationError(
                self.rule_type,
                self.field_name,
                f"{self.field_name} must be a string",
            )

        if sanitize_for_storage(value) == "":
            raise ValidationError(self.rule_type, self.field_name, message)

    @property
    def rule_type(self) -> str:
        return "required_field"
