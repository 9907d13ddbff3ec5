"""
ChoiceValidator - validates a field against a fixed set of values.
"""

from typing import Any

from .base_validator import BaseValidator, ValidationError


class ChoiceValidator(BaseValidator):
    """
    Validates that a field, when present, is one of the allowed values.

    Matching is exact (case-sensitive); accept legacy spellings by listing
    them in ``choices``. Blank values count as absent.

    Parameters:
    - choices: Allowed values
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        choices = self.parameters.get("choices")
        if not choices:
            raise ValueError("ChoiceValidator requires 'choices' parameter")
        self.choices = tuple(choices)

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Validate that the value is one of the allowed choices.

        Args:
            value: The field value to validate
            record: The entire record

        Raises:
            ValidationError: If the value is not an allowed choice
        """
        if self.is_blank(value):
            return

        if value not in self.choices:
            raise ValidationError(
                self.rule_type,
                self.field_name,
                f"{self.field_name} must be one of: {', '.join(map(str, self.choices))}",
            )

    @property
    def rule_type(self) -> str:
        return "choice"
