"""Builds human-facing case fields from an alert."""

from __future__ import annotations

from typing import List

from app.modules.casemanager.domain import AlertEvent, RuleAssignment
from app.modules.casemanager.util import (
    AlertLabels,
    CaseCategory,
    CaseManagerConstant,
    Severity,
    format_display,
    truncate,
)

_CONTEXT_LABELS = (
    AlertLabels.SEVERITY,
    AlertLabels.ENVIRONMENT,
    AlertLabels.SERVICE,
    AlertLabels.INSTANCE,
)


def clean_text(value: str | None) -> str:
    if not value:
        return ""
    text = value.replace('\\"', "").replace('"', "").strip()
    return text.replace(CaseManagerConstant.NO_VALUE, CaseManagerConstant.NO_DATA)


class CaseContentBuilder:
    def title(self, alert: AlertEvent, rule: RuleAssignment | None = None) -> str:
        candidates = (
            alert.annotations.get(AlertLabels.SUMMARY),
            rule.rule_name if rule else None,
            alert.labels.get(AlertLabels.ALERT_NAME),
        )
        for candidate in candidates:
            text = clean_text(candidate)
            if text:
                return truncate(text, CaseManagerConstant.TITLE_MAX_LENGTH)
        return f"Alert {alert.fingerprint}"

    def description(self, alert: AlertEvent, rule: RuleAssignment | None = None) -> str:
        parts: List[str] = []
        if rule is not None:
            parts.append(f"Alert Rule: {rule.rule_name or rule.rule_uid}")
        details = clean_text(
            alert.annotations.get(AlertLabels.DESCRIPTION) or alert.annotations.get(AlertLabels.SUMMARY)
        )
        if details:
            parts.append(f"Alert Details: {details}")
        if rule is not None and rule.description:
            parts.append(f"Rule Configuration: {rule.description}")
        context = [
            f"- {key.capitalize()}: {alert.labels[key]}" for key in _CONTEXT_LABELS if alert.labels.get(key)
        ]
        if context:
            parts.append("Context Information:\n" + "\n".join(context))
        if alert.starts_at:
            parts.append(f"Alert Started: {format_display(alert.starts_at)}")
        return "\n\n".join(parts)

    def tags(self, alert: AlertEvent, severity: Severity, category: CaseCategory) -> List[str]:
        tags = ["grafana", category.value.lower(), severity.value.lower()]
        env = alert.labels.get(AlertLabels.ENVIRONMENT)
        if env:
            tags.append(f"env:{env}")
        service = alert.labels.get(AlertLabels.SERVICE)
        if service:
            tags.append(f"service:{service}")
        return tags

    def affected_services(self, alert: AlertEvent) -> str:
        return (
            alert.labels.get(AlertLabels.SERVICE)
            or alert.labels.get(AlertLabels.JOB)
            or CaseManagerConstant.UNKNOWN_SERVICE
        )

    def severity_from_labels(self, alert: AlertEvent) -> Severity:
        return Severity.parse(alert.labels.get(AlertLabels.SEVERITY)) or Severity.MEDIUM
