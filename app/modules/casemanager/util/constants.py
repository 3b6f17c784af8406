"""Constants shared by the case management pipeline."""

from __future__ import annotations


class CaseManagerConstant:
    SYSTEM_ACTOR = "system"
    UNASSIGNED = "Unassigned"

    TITLE_MAX_LENGTH = 500
    NO_VALUE = "[no value]"
    NO_DATA = "No Data"
    UNKNOWN_SERVICE = "Unknown"

    CASE_NUMBER_PREFIX = "CASE"
    ALERT_ID_PREFIX = "ALERT"

    AUTO_CLOSE_REASON = "Auto-closed: alert resolved in monitoring system"
    AUTO_SYNC_DESCRIPTION = "Auto-synced from Grafana"
    ADMIN_UNASSIGNED_EVENT = "admin.unassigned-case"

    # priority -> hours; anything else falls back to DEFAULT_SLA_HOURS
    SLA_HOURS_BY_PRIORITY = {1: 4, 2: 8, 3: 24, 4: 72}
    DEFAULT_SLA_HOURS = 24


class AlertLabels:
    RULE_UID_KEYS = ("rule_id", "__alert_rule_uid__", "alertuid", "rule_uid")
    RULE_QUERY_KEYS = ("ruleUID=", "uid=")
    RULE_PATH_MARKER = "/alerting/grafana/"

    ALERT_ID = "alertId"
    ALERT_NAME = "alertname"
    SEVERITY = "severity"
    ENVIRONMENT = "environment"
    SERVICE = "service"
    JOB = "job"
    INSTANCE = "instance"

    SUMMARY = "summary"
    DESCRIPTION = "description"
