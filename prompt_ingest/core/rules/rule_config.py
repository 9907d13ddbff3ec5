"""
Rule configuration management.

Loads validation rules from YAML files and provides the built-in rule set
for prompt records.
"""

from pathlib import Path
from typing import Any

import yaml

from prompt_ingest.core.constants import ACCEPTED_STATUSES


class RuleConfigLoader:
    """
    Loads validation rules from YAML configuration files.

    Expected YAML format:
    ```yaml
    rules:
      title:
        - type: required_field
      preview_image_url:
        - type: url
      tags:
        - type: type_check
          params:
            expected_type: array
      status:
        - type: choice
          params:
            choices: [Published, Pending, Draft, Rejected, Review, published]
    ```
    """

    def __init__(self, config_path: str | Path):
        """
        Initialize the rule config loader.

        Args:
            config_path: Path to the YAML configuration file
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"Rule configuration file not found: {config_path}")

    def load_rules(self) -> list[dict[str, Any]]:
        """
        Load and parse validation rules from YAML file.

        Returns:
            List of rule dictionaries suitable for RuleEngine

        Raises:
            ValueError: If YAML is invalid or missing required fields
        """
        with open(self.config_path, encoding="utf-8") as f:
            try:
                config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not config or "rules" not in config:
            raise ValueError("Configuration file must contain 'rules' section")

        rules = []
        for field_name, field_rule_list in config["rules"].items():
            if not isinstance(field_rule_list, list):
                raise ValueError(f"Rules for field '{field_name}' must be a list")

            for idx, rule_def in enumerate(field_rule_list):
                rules.append(self._parse_rule(field_name, rule_def, idx))

        return rules

    def _parse_rule(self, field_name: str, rule_def: dict[str, Any], idx: int) -> dict[str, Any]:
        """
        Parse a single rule definition.

        Args:
            field_name: The field this rule applies to
            rule_def: The rule definition from YAML
            idx: Index of this rule for the field (for naming)

        Returns:
            Parsed rule dictionary

        Raises:
            ValueError: If rule definition is invalid
        """
        if not isinstance(rule_def, dict) or "type" not in rule_def:
            raise ValueError(f"Rule for field '{field_name}' is missing 'type'")

        rule_type = rule_def["type"]

        return {
            "rule_name": rule_def.get("name", f"{field_name}_{rule_type}_{idx}"),
            "rule_type": rule_type,
            "field_name": field_name,
            "parameters": rule_def.get("params", rule_def.get("parameters", {})) or {},
            "enabled": rule_def.get("enabled", True),
        }


class RuleConfigBuilder:
    """
    Programmatically build rule configurations.
    """

    def __init__(self):
        """Initialize empty rule configuration."""
        self.rules: list[dict[str, Any]] = []

    def _add(self, rule_name: str, rule_type: str, field_name: str, parameters: dict[str, Any]) -> "RuleConfigBuilder":
        self.rules.append({
            "rule_name": rule_name,
            "rule_type": rule_type,
            "field_name": field_name,
            "parameters": parameters,
            "enabled": True,
        })
        return self

    def add_required_field(self, field_name: str) -> "RuleConfigBuilder":
        """Add a required non-empty string rule."""
        return self._add(f"{field_name}_required", "required_field", field_name, {})

    def add_url(self, field_name: str) -> "RuleConfigBuilder":
        """Add an optional URL rule."""
        return self._add(f"{field_name}_url", "url", field_name, {})

    def add_type_check(self, field_name: str, expected_type: str) -> "RuleConfigBuilder":
        """Add a type check rule."""
        return self._add(
            f"{field_name}_type_check", "type_check", field_name, {"expected_type": expected_type}
        )

    def add_choice(self, field_name: str, choices: list[str] | tuple[str, ...]) -> "RuleConfigBuilder":
        """Add an enumerated choice rule."""
        return self._add(f"{field_name}_choice", "choice", field_name, {"choices": list(choices)})

    def build(self) -> list[dict[str, Any]]:
        """Build and return the rule configuration."""
        return self.rules

    @classmethod
    def default_prompt_rules(cls) -> list[dict[str, Any]]:
        """The rule set every uploaded prompt record is checked against."""
        return (
            cls()
            .add_required_field("title")
            .add_required_field("prompt")
            .add_required_field("category")
            .add_url("preview_image_url")
            .add_url("attribution_link")
            .add_type_check("tags", "array")
            .add_choice("status", ACCEPTED_STATUSES)
            .build()
        )
