"""Rule registry exports."""

from .rule_registry import RuleRegistry, RuleSource

__all__ = ["RuleRegistry", "RuleSource"]
