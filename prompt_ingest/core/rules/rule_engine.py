"""
Rule engine for validating raw prompt records.

The rule engine builds validators from rule configurations, applies them to
a raw record in order and produces a ValidationResult whose error messages
become the row's ``validation_errors``.
"""

from functools import lru_cache
from typing import Any

from prompt_ingest.core.constants import get_field
from prompt_ingest.core.models import RawRecord, ValidationResult
from prompt_ingest.core.validators import (
    BaseValidator,
    ChoiceValidator,
    RequiredFieldValidator,
    TypeValidator,
    UrlValidator,
    ValidationError,
)
from prompt_ingest.observability.logger import get_logger
from prompt_ingest.observability.metrics import record_validation_failure

from .rule_config import RuleConfigBuilder

logger = get_logger(__name__)


class RuleEngine:
    """
    Orchestrates validation rules on raw records.

    Every enabled rule runs against every record; failures accumulate in rule
    order, one message per failed rule.
    """

    VALIDATOR_REGISTRY: dict[str, type[BaseValidator]] = {
        "required_field": RequiredFieldValidator,
        "url": UrlValidator,
        "type_check": TypeValidator,
        "choice": ChoiceValidator,
    }

    def __init__(self, rules: list[dict[str, Any]]):
        """
        Initialize the rule engine with validation rules.

        Args:
            rules: List of rule configurations, each containing:
                   - rule_name: str
                   - rule_type: str (required_field, url, type_check, choice)
                   - field_name: str
                   - parameters: Dict[str, Any] (optional)
                   - enabled: bool (default True)
        """
        self.rules = rules
        self.validators: list[tuple[str, BaseValidator]] = []
        self._build_validators()

    def _build_validators(self) -> None:
        """Build validator instances from rule configurations."""
        for rule in self.rules:
            if not rule.get("enabled", True):
                continue

            rule_name = rule["rule_name"]
            rule_type = rule["rule_type"]

            validator_class = self.VALIDATOR_REGISTRY.get(rule_type)
            if not validator_class:
                raise ValueError(f"Unknown rule type: {rule_type}")

            try:
                validator = validator_class(rule["field_name"], rule.get("parameters", {}))
            except ValueError as e:
                raise ValueError(f"Failed to create validator for rule '{rule_name}': {e}") from e

            self.validators.append((rule_name, validator))

    def validate_record(self, raw: RawRecord) -> ValidationResult:
        """
        Validate a raw record against all rules.

        Args:
            raw: Raw record exactly as decoded from the upload

        Returns:
            ValidationResult with pass/fail status and one message per failure
        """
        passed_rules: list[str] = []
        failed_rules: list[str] = []
        error_messages: list[str] = []

        for rule_name, validator in self.validators:
            value = get_field(raw, validator.field_name)

            try:
                validator.validate(value, raw)
                passed_rules.append(rule_name)
            except ValidationError as e:
                failed_rules.append(rule_name)
                error_messages.append(e.message)
                record_validation_failure(validator.rule_type, validator.field_name)

        return ValidationResult(
            passed=not failed_rules,
            passed_rules=passed_rules,
            failed_rules=failed_rules,
            error_messages=error_messages,
        )

    def validate_batch(self, records: list[RawRecord]) -> list[ValidationResult]:
        """
        Validate a batch of raw records.

        Args:
            records: Raw records in upload order

        Returns:
            List of ValidationResult objects, one per record
        """
        return [self.validate_record(record) for record in records]

    def get_rule_summary(self) -> dict[str, Any]:
        """
        Get summary of loaded rules.

        Returns:
            Dictionary with rule counts per type
        """
        counts: dict[str, int] = {}
        for _, validator in self.validators:
            counts[validator.rule_type] = counts.get(validator.rule_type, 0) + 1
        return {"total_rules": len(self.validators), "rules_by_type": counts}


@lru_cache(maxsize=1)
def default_engine() -> RuleEngine:
    """Return the shared engine for the built-in prompt rules."""
    return RuleEngine(RuleConfigBuilder.default_prompt_rules())


def validate_prompt(raw: Any, engine: RuleEngine | None = None) -> list[str]:
    """
    Validate one raw record and return its error messages.

    Never raises: a value that is not a mapping yields a single error.

    Args:
        raw: Raw record
        engine: Rule engine to use (defaults to the built-in prompt rules)

    Returns:
        Error messages in rule order; empty when the record is valid
    """
    if not isinstance(raw, dict):
        logger.debug("Rejected non-object record", extra={"value_type": type(raw).__name__})
        return ["record must be an object"]

    return (engine or default_engine()).validate_record(raw).error_messages
