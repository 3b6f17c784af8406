from datetime import datetime, timezone

from app.modules.casemanager.domain import AlertEvent
from app.modules.casemanager.ingest import RuleUidExtractor, ensure_fingerprint, external_alert_id

RECEIVED = datetime(2024, 3, 1, 10, 0, 0, tzinfo=timezone.utc)


def alert(labels=None, url=None, fingerprint="fp-1", starts_at=None) -> AlertEvent:
    return AlertEvent.from_payload(
        {
            "status": "firing",
            "fingerprint": fingerprint,
            "labels": labels or {},
            "generatorURL": url,
            "startsAt": starts_at,
        }
    )


def test_label_keys_are_tried_in_order():
    extractor = RuleUidExtractor()

    labels = {"rule_uid": "d", "alertuid": "c", "__alert_rule_uid__": "b", "rule_id": "a"}
    assert extractor.extract(alert(labels)) == "a"
    labels.pop("rule_id")
    assert extractor.extract(alert(labels)) == "b"
    labels.pop("__alert_rule_uid__")
    assert extractor.extract(alert(labels)) == "c"
    labels.pop("alertuid")
    assert extractor.extract(alert(labels)) == "d"


def test_labels_win_over_url():
    url = "https://grafana.local/alerting/grafana/from-path/view"

    assert RuleUidExtractor().extract(alert({"rule_id": "from-label"}, url)) == "from-label"


def test_blank_label_falls_through_to_url_path():
    url = "https://grafana.local/alerting/grafana/abc123/view?orgId=1"

    assert RuleUidExtractor().extract(alert({"rule_id": "  "}, url)) == "abc123"


def test_url_path_stops_at_query():
    url = "https://grafana.local/alerting/grafana/xyz?orgId=1"

    assert RuleUidExtractor().extract(alert(url=url)) == "xyz"


def test_query_prefers_rule_uid_param():
    extractor = RuleUidExtractor()

    assert extractor.extract(alert(url="https://grafana.local/alerting/list?uid=u2&ruleUID=r1")) == "r1"
    assert extractor.extract(alert(url="https://grafana.local/alerting/list?uid=u2")) == "u2"


def test_nothing_found_returns_none():
    assert RuleUidExtractor().extract(alert({"alertname": "Disk"}, "https://grafana.local/d/abc")) is None


def test_failing_extractor_is_skipped():
    def broken(_alert):
        raise RuntimeError("boom")

    extractor = RuleUidExtractor([broken, lambda a: "fallback"])

    assert extractor.extract(alert()) == "fallback"


def test_fingerprint_is_kept_when_present():
    assert ensure_fingerprint(alert(fingerprint="abc"), "rule-a", RECEIVED) == "abc"


def test_fingerprint_synthesised_from_rule_and_start():
    event = alert(fingerprint="", starts_at="2024-03-01T09:58:07Z")

    assert ensure_fingerprint(event, "rule-a", RECEIVED) == "rule-a-20240301095807"


def test_fingerprint_synthesised_from_alertname_and_receive_time():
    event = alert({"alertname": "Disk"}, fingerprint="")

    assert ensure_fingerprint(event, None, RECEIVED) == "Disk-20240301100000"
    assert ensure_fingerprint(alert(fingerprint=""), None, RECEIVED) == "alert-20240301100000"


def test_external_alert_id_sources():
    millis = int(RECEIVED.timestamp() * 1000)

    assert external_alert_id(alert({"alertId": "ext-9"}), "fp-1", "rule-a", RECEIVED) == "ext-9"
    assert external_alert_id(alert(), "fp-1", "rule-a", RECEIVED) == f"ALERT-rule-a-{millis}"
    assert external_alert_id(alert(), "0123456789", None, RECEIVED) == f"ALERT-01234567-{millis}"
