"""
Validation rule implementations.

Provides validators for required fields, URLs, JSON types and enumerated
choices.
"""

from .base_validator import BaseValidator, ValidationError
from .choice_validator import ChoiceValidator
from .required_field_validator import RequiredFieldValidator
from .type_validator import TypeValidator
from .url_validator import UrlValidator

__all__ = [
    "BaseValidator",
    "ValidationError",
    "RequiredFieldValidator",
    "UrlValidator",
    "TypeValidator",
    "ChoiceValidator",
]
