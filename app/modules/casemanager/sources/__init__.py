"""Remote rule sources."""

from .grafana import GrafanaRuleSource

__all__ = ["GrafanaRuleSource"]
