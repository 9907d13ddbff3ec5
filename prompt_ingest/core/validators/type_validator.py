"""
TypeValidator - validates the JSON type of a field.
"""

from typing import Any

from .base_validator import BaseValidator, ValidationError


class TypeValidator(BaseValidator):
    """
    Validates that a field, when present, has the expected JSON type.

    No coercion is attempted: a comma separated string where an array is
    expected is an error, not a list.

    Supported types:
    - "array" / "list", "string" / "str", "integer" / "int", "boolean" / "bool"
    """

    TYPE_MAPPING: dict[str, tuple[type, ...]] = {
        "array": (list,),
        "list": (list,),
        "string": (str,),
        "str": (str,),
        "integer": (int,),
        "int": (int,),
        "boolean": (bool,),
        "bool": (bool,),
    }

    TYPE_LABELS = {
        "list": "an array",
        "array": "an array",
        "string": "a string",
        "str": "a string",
        "integer": "an integer",
        "int": "an integer",
        "boolean": "a boolean",
        "bool": "a boolean",
    }

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        expected_type = self.parameters.get("expected_type")
        if not expected_type:
            raise ValueError("TypeValidator requires 'expected_type' parameter")

        self.type_name = str(expected_type).lower()
        self.expected_types = self.TYPE_MAPPING.get(self.type_name)
        if not self.expected_types:
            raise ValueError(f"Unsupported type: {expected_type}")

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Validate that the value matches the expected type.

        Args:
            value: The field value to validate
            record: The entire record

        Raises:
            ValidationError: If type validation fails
        """
        # Absent is fine; presence is the required_field rule's concern
        if value is None:
            return

        # bool is an int subclass
        if isinstance(value, bool) and bool not in self.expected_types:
            matches = False
        else:
            matches = isinstance(value, self.expected_types)

        if not matches:
            raise ValidationError(
                self.rule_type,
                self.field_name,
                f"{self.field_name} must be {self.TYPE_LABELS[self.type_name]}",
            )

    @property
    def rule_type(self) -> str:
        return "type_check"
