"""HTTP client that lists alert rules from Grafana's provisioning API."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

import httpx

from app.modules.casemanager.domain import RuleAssignment
from app.modules.casemanager.util import AlertLabels, Severity
from app.settings import Settings


class GrafanaRuleSource:
    """Rule source used by the registry sync; read-only."""

    RULES_PATH = "/api/v1/provisioning/alert-rules"

    def __init__(self, settings: Settings, client: Optional[httpx.Client] = None) -> None:
        if not settings.grafana_url:
            raise ValueError("grafana_url is required for the Grafana rule source")
        self.base_url = settings.grafana_url.rstrip("/")
        self.log = logging.getLogger(self.__class__.__name__)
        headers = {"Accept": "application/json"}
        if settings.grafana_token:
            headers["Authorization"] = f"Bearer {settings.grafana_token}"
        self._client = client or httpx.Client(timeout=30)
        self._headers = headers

    def list_rules(self) -> List[RuleAssignment]:
        url = f"{self.base_url}{self.RULES_PATH}"
        response = self._client.get(url, headers=self._headers)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, list):
            raise ValueError(f"unexpected rule listing payload: {type(data).__name__}")
        rules = [self._to_rule(item) for item in data if item.get("uid")]
        self.log.info("Fetched %d alert rules from %s", len(rules), self.base_url)
        return rules

    def lookup_rule(self, external_id: str) -> RuleAssignment | None:
        url = f"{self.base_url}{self.RULES_PATH}/{external_id}"
        response = self._client.get(url, headers=self._headers)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return self._to_rule(response.json())

    @staticmethod
    def _to_rule(item: Mapping[str, Any]) -> RuleAssignment:
        labels = item.get("labels") or {}
        datasource_uid = None
        for query in item.get("data") or []:
            uid = query.get("datasourceUid")
            # expression nodes use the "__expr__" pseudo datasource
            if uid and uid != "__expr__":
                datasource_uid = uid
                break
        return RuleAssignment(
            rule_uid=str(item["uid"]),
            rule_name=item.get("title") or "",
            folder_uid=item.get("folderUID"),
            folder_name=item.get("ruleGroup"),
            datasource_uid=datasource_uid,
            severity=Severity.parse(labels.get(AlertLabels.SEVERITY)) or Severity.MEDIUM,
        )
