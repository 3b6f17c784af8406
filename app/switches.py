"""Feature toggle helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .settings import Settings

log = logging.getLogger(__name__)


@dataclass
class CaseSwitch:
    settings: Settings

    def casemanager_on(self) -> bool:
        return bool(self.settings.casemanager_enabled)

    def sla_sweep_on(self) -> bool:
        return self.casemanager_on() and bool(self.settings.sla_sweep_enabled)

    def rule_sync_on(self) -> bool:
        enabled = self.casemanager_on() and bool(self.settings.rule_sync_enabled)
        if not enabled:
            return False

        missing = [name for name in ("grafana_url",) if not getattr(self.settings, name)]
        if missing:
            log.info("Rule sync requires %s, disabling sync.", ", ".join(missing))
            return False
        return True
