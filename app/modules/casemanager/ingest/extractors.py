"""Identity extraction for incoming alerts: rule uid, fingerprint, external id."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Sequence
from urllib.parse import urlsplit

from app.modules.casemanager.domain import AlertEvent
from app.modules.casemanager.util import (
    AlertLabels,
    CaseManagerConstant,
    epoch_millis,
    format_compact,
)

log = logging.getLogger(__name__)

Extractor = Callable[[AlertEvent], "str | None"]


def from_labels(alert: AlertEvent) -> str | None:
    for key in AlertLabels.RULE_UID_KEYS:
        value = (alert.labels.get(key) or "").strip()
        if value:
            return value
    return None


def from_url_path(alert: AlertEvent) -> str | None:
    url = alert.generator_url or ""
    marker = AlertLabels.RULE_PATH_MARKER
    start = url.find(marker)
    if start < 0:
        return None
    tail = url[start + len(marker):]
    end = len(tail)
    for stop in ("/", "?"):
        idx = tail.find(stop)
        if idx >= 0:
            end = min(end, idx)
    return tail[:end].strip() or None


def from_url_query(alert: AlertEvent) -> str | None:
    query = urlsplit(alert.generator_url or "").query
    if not query:
        return None
    params = query.split("&")
    for key in AlertLabels.RULE_QUERY_KEYS:
        for param in params:
            if param.startswith(key):
                value = param[len(key):].strip()
                if value:
                    return value
    return None


DEFAULT_EXTRACTORS: Sequence[Extractor] = (from_labels, from_url_path, from_url_query)


class RuleUidExtractor:
    """Runs extraction strategies in priority order; the first non-empty result wins."""

    def __init__(self, extractors: Sequence[Extractor] = DEFAULT_EXTRACTORS) -> None:
        self.extractors: List[Extractor] = list(extractors)

    def extract(self, alert: AlertEvent) -> str | None:
        for extractor in self.extractors:
            try:
                value = extractor(alert)
            except Exception:  # noqa: BLE001
                log.exception("Rule uid extractor %s failed", getattr(extractor, "__name__", extractor))
                continue
            if value:
                return value
        log.warning("No rule uid found for alert %s, it will become an unowned case", alert.fingerprint or "-")
        return None


def ensure_fingerprint(alert: AlertEvent, rule_uid: str | None, received_at: datetime) -> str:
    if alert.fingerprint:
        return alert.fingerprint
    base = rule_uid or alert.alert_name or "alert"
    fingerprint = f"{base}-{format_compact(alert.starts_at or received_at)}"
    log.info("Alert without fingerprint, synthesized %s", fingerprint)
    return fingerprint


def external_alert_id(alert: AlertEvent, fingerprint: str, rule_uid: str | None, received_at: datetime) -> str:
    label = (alert.labels.get(AlertLabels.ALERT_ID) or "").strip()
    if label:
        return label
    stamp = epoch_millis(received_at)
    prefix = CaseManagerConstant.ALERT_ID_PREFIX
    if rule_uid:
        return f"{prefix}-{rule_uid}-{stamp}"
    return f"{prefix}-{fingerprint[:8]}-{stamp}"
