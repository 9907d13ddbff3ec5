"""
ValidationResult model representing the outcome of validating a raw record (ephemeral).
"""

from typing import List

from pydantic import BaseModel, Field, field_validator


class ValidationResult(BaseModel):
    """
    Outcome of validating one raw record (ephemeral, never persisted alone).

    The error messages are what a row carries as ``validation_errors``.

    Attributes:
        passed: Overall validation status
        passed_rules: Rules that succeeded
        failed_rules: Rules that failed
        error_messages: Human-readable message per failed rule, same order
    """

    passed: bool
    passed_rules: List[str] = Field(default_factory=list)
    failed_rules: List[str] = Field(default_factory=list)
    error_messages: List[str] = Field(default_factory=list)

    @field_validator('failed_rules')
    @classmethod
    def check_passed_consistency(cls, v, info):
        """Validate that passed=True implies failed_rules is empty."""
        if info.data.get('passed') and len(v) > 0:
            raise ValueError("passed=True but failed_rules is not empty")
        return v

    @field_validator('error_messages')
    @classmethod
    def check_arrays_same_length(cls, v, info):
        """Validate that failed_rules and error_messages have the same length."""
        failed_rules = info.data.get('failed_rules', [])
        if len(v) != len(failed_rules):
            raise ValueError(
                f"error_messages length ({len(v)}) must match failed_rules length ({len(failed_rules)})"
            )
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "passed": False,
                "passed_rules": ["title_required", "prompt_required"],
                "failed_rules": ["category_required"],
                "error_messages": ["category is required"],
            }
        }
