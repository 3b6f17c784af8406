"""Incoming webhook alert representations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, List, Mapping

from app.modules.casemanager.util import AlertStatus, now, parse_iso_datetime
from app.modules.casemanager.util.exceptions import PayloadException


def _str_map(value: Any) -> Mapping[str, str]:
    if not value:
        return MappingProxyType({})
    if not isinstance(value, Mapping):
        raise PayloadException(f"expected an object, got {type(value).__name__}")
    return MappingProxyType({str(k): "" if v is None else str(v) for k, v in value.items()})


@dataclass(frozen=True)
class AlertEvent:
    fingerprint: str
    status: AlertStatus
    labels: Mapping[str, str] = field(default_factory=dict)
    annotations: Mapping[str, str] = field(default_factory=dict)
    generator_url: str | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    values: Mapping[str, Any] = field(default_factory=dict)
    silence_url: str | None = None
    dashboard_url: str | None = None
    panel_url: str | None = None

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any]) -> "AlertEvent":
        if not isinstance(raw, Mapping):
            raise PayloadException("alert entry must be an object")
        status_text = str(raw.get("status") or AlertStatus.FIRING.value).lower()
        status = AlertStatus.RESOLVED if status_text == AlertStatus.RESOLVED.value else AlertStatus.FIRING
        values = raw.get("values") or {}
        return cls(
            fingerprint=str(raw.get("fingerprint") or "").strip(),
            status=status,
            labels=_str_map(raw.get("labels")),
            annotations=_str_map(raw.get("annotations")),
            generator_url=raw.get("generatorURL") or None,
            starts_at=parse_iso_datetime(raw.get("startsAt")),
            ends_at=parse_iso_datetime(raw.get("endsAt")),
            values=MappingProxyType(dict(values)) if isinstance(values, Mapping) else MappingProxyType({}),
            silence_url=raw.get("silenceURL") or None,
            dashboard_url=raw.get("dashboardURL") or None,
            panel_url=raw.get("panelURL") or None,
        )

    @property
    def alert_name(self) -> str | None:
        return self.labels.get("alertname") or None

    def to_alert_data(self) -> Dict[str, Any]:
        return {
            "labels": dict(self.labels),
            "annotations": dict(self.annotations),
            "values": dict(self.values),
            "generatorURL": self.generator_url,
            "silenceURL": self.silence_url,
            "dashboardURL": self.dashboard_url,
            "panelURL": self.panel_url,
        }


@dataclass(frozen=True)
class WebhookContext:
    receiver: str = ""
    status: str = ""
    group_key: str | None = None
    external_url: str | None = None
    common_labels: Mapping[str, str] = field(default_factory=dict)
    title: str | None = None
    message: str | None = None
    received_at: datetime = field(default_factory=now)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], received_at: datetime | None = None) -> "WebhookContext":
        return cls(
            receiver=str(payload.get("receiver") or ""),
            status=str(payload.get("status") or ""),
            group_key=payload.get("groupKey"),
            external_url=payload.get("externalURL"),
            common_labels=_str_map(payload.get("commonLabels")),
            title=payload.get("title"),
            message=payload.get("message"),
            received_at=received_at or now(),
        )


def split_payload(payload: Any) -> List[Mapping[str, Any]]:
    """Return the raw alert entries of a webhook payload."""
    if not isinstance(payload, Mapping):
        raise PayloadException("webhook payload must be an object")
    alerts = payload.get("alerts")
    if alerts is None:
        raise PayloadException("webhook payload has no alerts")
    if not isinstance(alerts, list):
        raise PayloadException("alerts must be a list")
    return alerts
