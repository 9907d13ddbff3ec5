"""
Rule engine and rule configuration for raw record validation.
"""

from .rule_config import RuleConfigBuilder, RuleConfigLoader
from .rule_engine import RuleEngine, default_engine, validate_prompt

__all__ = [
    "RuleConfigBuilder",
    "RuleConfigLoader",
    "RuleEngine",
    "default_engine",
    "validate_prompt",
]
