"""Subject/body templates keyed by notification event."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Tuple

from app.modules.casemanager.domain import Case
from app.modules.casemanager.util import NotificationEvent, format_display, now

_CASE_BLOCK = (
    "Case: {CASE_NUMBER}\n"
    "Title: {TITLE}\n"
    "Severity: {SEVERITY}\n"
    "Priority: {PRIORITY}\n"
    "Status: {STATUS}\n"
    "SLA deadline: {SLA_DEADLINE}\n"
)

DEFAULT_TEMPLATES: Dict[NotificationEvent, Tuple[str, str]] = {
    NotificationEvent.CASE_CREATED: (
        "New Case Created: {CASE_NUMBER}",
        "Hello {RECIPIENT},\n\nA new case has been created and assigned to you.\n\n" + _CASE_BLOCK,
    ),
    NotificationEvent.CASE_ASSIGNED: (
        "New Case Assigned: {CASE_NUMBER}",
        "Hello {RECIPIENT},\n\nCase {CASE_NUMBER} has been assigned to you.\n\n" + _CASE_BLOCK,
    ),
    NotificationEvent.CASE_REOPENED: (
        "Case Reopened: {CASE_NUMBER}",
        "Hello {RECIPIENT},\n\nThe alert behind case {CASE_NUMBER} fired again and the case was reopened "
        "(reopen #{REOPEN_COUNT}).\n\n" + _CASE_BLOCK,
    ),
    NotificationEvent.SLA_BREACH: (
        "SLA Breach Alert: {CASE_NUMBER}",
        "Hello {RECIPIENT},\n\nCase {CASE_NUMBER} missed its SLA deadline of {SLA_DEADLINE} "
        "and needs immediate attention.\n\n" + _CASE_BLOCK,
    ),
    NotificationEvent.CASE_RESOLVED: (
        "Case Resolved: {CASE_NUMBER}",
        "Hello {RECIPIENT},\n\nCase {CASE_NUMBER} was resolved at {RESOLVED_AT}.\n\n" + _CASE_BLOCK,
    ),
    NotificationEvent.CASE_CLOSED: (
        "Case Closed: {CASE_NUMBER}",
        "Hello {RECIPIENT},\n\nCase {CASE_NUMBER} was closed at {CLOSED_AT}.\n"
        "Reason: {REASON}\nResolution time: {RESOLUTION_MINUTES} minutes\n\n" + _CASE_BLOCK,
    ),
}

ADMIN_UNASSIGNED_TEMPLATE = (
    "Unassigned Case: {CASE_NUMBER}",
    "Case {CASE_NUMBER} was created without an owner and needs manual assignment.\n\n"
    "Rule: {RULE_UID}\n" + _CASE_BLOCK,
)


class NotificationTemplates:
    """Applies ``{PLACEHOLDER}`` substitutions to the per-event templates."""

    def __init__(self, templates: Mapping[NotificationEvent, Tuple[str, str]] | None = None) -> None:
        self.templates = dict(DEFAULT_TEMPLATES)
        if templates:
            self.templates.update(templates)

    def render(
        self,
        case: Case,
        event: NotificationEvent,
        recipient: str,
        admin: bool = False,
    ) -> Tuple[str, str]:
        if admin and event == NotificationEvent.CASE_CREATED:
            subject_tpl, body_tpl = ADMIN_UNASSIGNED_TEMPLATE
        else:
            subject_tpl, body_tpl = self.templates[event]
        values = self._values(case, recipient)
        return self._apply(subject_tpl, values), self._apply(body_tpl, values)

    @staticmethod
    def _values(case: Case, recipient: str) -> Dict[str, Any]:
        return {
            "{CASE_NUMBER}": case.case_number,
            "{TITLE}": case.title,
            "{SEVERITY}": case.severity.value,
            "{PRIORITY}": case.priority if case.priority is not None else "-",
            "{STATUS}": case.status.value,
            "{SLA_DEADLINE}": format_display(case.sla_deadline),
            "{RULE_UID}": case.rule_uid or "-",
            "{REOPEN_COUNT}": case.reopen_count,
            "{RESOLVED_AT}": format_display(case.resolved_at),
            "{CLOSED_AT}": format_display(case.closed_at),
            "{REASON}": case.closure_reason,
            "{RESOLUTION_MINUTES}": case.resolution_time_minutes,
            "{RECIPIENT}": recipient,
            "{NOW}": format_display(now()),
        }

    @staticmethod
    def _apply(template: str, values: Mapping[str, Any]) -> str:
        formatted = template
        for placeholder, value in values.items():
            formatted = formatted.replace(placeholder, "" if value is None else str(value))
        return formatted
