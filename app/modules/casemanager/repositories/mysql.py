"""MySQL-backed repository for case management data."""

from __future__ import annotations

import hashlib
import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Sequence

from app.db import mysql_connection
from app.modules.casemanager.domain import (
    AlertRecord,
    AssignmentInfo,
    Case,
    CaseActivity,
    Notification,
    RuleAssignment,
    Team,
    User,
)
from app.modules.casemanager.repositories.base import CaseManagementRepository
from app.modules.casemanager.util import (
    ActivityType,
    AssignmentStrategy,
    CaseCategory,
    CaseManagerConstant,
    CaseStatus,
    NotificationChannel,
    NotificationEvent,
    NotificationStatus,
    Severity,
    UserRole,
)
from app.modules.casemanager.util.exceptions import (
    CaseConflictException,
    CaseManagementException,
    ResourceNotFoundException,
)
from app.settings import Settings

log = logging.getLogger(__name__)

_OPEN = (CaseStatus.OPEN.value, CaseStatus.ASSIGNED.value, CaseStatus.IN_PROGRESS.value)

SCHEMA = (
    """CREATE TABLE IF NOT EXISTS cm_alert_record (
        id BIGINT AUTO_INCREMENT PRIMARY KEY,
        fingerprint VARCHAR(255) NOT NULL,
        status VARCHAR(16) NOT NULL,
        rule_uid VARCHAR(128),
        external_alert_id VARCHAR(255),
        labels JSON,
        annotations JSON,
        generator_url TEXT,
        starts_at DATETIME(3),
        ends_at DATETIME(3),
        receiver VARCHAR(255),
        received_at DATETIME(3) NOT NULL,
        case_id BIGINT,
        outcome VARCHAR(16),
        KEY idx_alert_record_fp (fingerprint)
    )""",
    """CREATE TABLE IF NOT EXISTS cm_case_sequence (
        seq_year INT PRIMARY KEY,
        seq INT NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS cm_case (
        id BIGINT AUTO_INCREMENT PRIMARY KEY,
        case_number VARCHAR(32) NOT NULL UNIQUE,
        title VARCHAR(500) NOT NULL,
        description TEXT,
        severity VARCHAR(16) NOT NULL,
        priority INT,
        category VARCHAR(32) NOT NULL,
        status VARCHAR(16) NOT NULL,
        assignment JSON,
        assigned_at DATETIME(3),
        sla_deadline DATETIME(3),
        sla_breached TINYINT(1) NOT NULL DEFAULT 0,
        sla_breached_at DATETIME(3),
        alert_fingerprint VARCHAR(255),
        external_alert_id VARCHAR(255),
        rule_uid VARCHAR(128),
        affected_services VARCHAR(255),
        tags JSON,
        alert_data JSON,
        occurrence_count INT NOT NULL DEFAULT 1,
        last_alert_at DATETIME(3),
        reopen_count INT NOT NULL DEFAULT 0,
        resolved_at DATETIME(3),
        closed_at DATETIME(3),
        closed_by VARCHAR(128),
        closure_reason TEXT,
        root_cause TEXT,
        resolution_actions TEXT,
        resolution_time_minutes INT,
        created_at DATETIME(3) NOT NULL,
        updated_at DATETIME(3),
        version INT NOT NULL DEFAULT 1,
        KEY idx_case_fp (alert_fingerprint, created_at),
        KEY idx_case_sla (status, sla_breached, sla_deadline)
    )""",
    """CREATE TABLE IF NOT EXISTS cm_case_activity (
        id BIGINT AUTO_INCREMENT PRIMARY KEY,
        case_id BIGINT NOT NULL,
        type VARCHAR(32) NOT NULL,
        field_name VARCHAR(64),
        old_value TEXT,
        new_value TEXT,
        description TEXT,
        actor VARCHAR(128),
        created_at DATETIME(3) NOT NULL,
        KEY idx_activity_case (case_id)
    )""",
    """CREATE TABLE IF NOT EXISTS cm_notification (
        id BIGINT AUTO_INCREMENT PRIMARY KEY,
        recipient VARCHAR(255) NOT NULL,
        recipient_user_id BIGINT,
        channel VARCHAR(16) NOT NULL,
        type VARCHAR(32) NOT NULL,
        subject VARCHAR(500),
        message TEXT,
        status VARCHAR(16) NOT NULL,
        related_case_id BIGINT,
        sent_at DATETIME(3),
        error_message TEXT,
        metadata JSON,
        created_at DATETIME(3) NOT NULL,
        KEY idx_notification_case (related_case_id)
    )""",
    """CREATE TABLE IF NOT EXISTS cm_rule_assignment (
        id BIGINT AUTO_INCREMENT PRIMARY KEY,
        rule_uid VARCHAR(128) NOT NULL UNIQUE,
        rule_name VARCHAR(255),
        folder_uid VARCHAR(128),
        folder_name VARCHAR(255),
        datasource_uid VARCHAR(128),
        description TEXT,
        severity VARCHAR(16) NOT NULL,
        category VARCHAR(32) NOT NULL,
        strategy VARCHAR(16) NOT NULL,
        active TINYINT(1) NOT NULL DEFAULT 1,
        auto_assign_enabled TINYINT(1) NOT NULL DEFAULT 1,
        user_ids JSON,
        team_ids JSON,
        escalation_team_id BIGINT,
        rotation_index BIGINT NOT NULL DEFAULT 0,
        created_by VARCHAR(128),
        updated_by VARCHAR(128),
        created_at DATETIME(3),
        updated_at DATETIME(3)
    )""",
    """CREATE TABLE IF NOT EXISTS cm_user (
        id BIGINT PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        login VARCHAR(128),
        email VARCHAR(255),
        role VARCHAR(16) NOT NULL,
        active TINYINT(1) NOT NULL DEFAULT 1
    )""",
    """CREATE TABLE IF NOT EXISTS cm_team (
        id BIGINT PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        lead_id BIGINT,
        active TINYINT(1) NOT NULL DEFAULT 1
    )""",
    """CREATE TABLE IF NOT EXISTS cm_team_member (
        team_id BIGINT NOT NULL,
        user_id BIGINT NOT NULL,
        PRIMARY KEY (team_id, user_id)
    )""",
)


def _to_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def _json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _load_json(value: Any, default: Any) -> Any:
    if value is None or value == "":
        return default
    if isinstance(value, (dict, list)):
        return value
    return json.loads(value)


class MySQLCaseManagementRepository(CaseManagementRepository):
    """pymysql implementation; one short-lived connection per call."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @contextmanager
    def _conn(self):
        conn = mysql_connection(self.settings)
        try:
            yield conn
        finally:
            conn.close()

    def create_tables(self) -> None:
        with self._conn() as conn, conn.cursor() as cur:
            for ddl in SCHEMA:
                cur.execute(ddl)
        log.info("Case management schema ensured (%d tables).", len(SCHEMA))

    @contextmanager
    def fingerprint_lock(self, fingerprint: str) -> Iterator[None]:
        # GET_LOCK names are limited to 64 characters
        name = "cm-fp-" + hashlib.sha1(fingerprint.encode("utf-8")).hexdigest()
        timeout = self.settings.fingerprint_lock_timeout_seconds
        with self._conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT GET_LOCK(%s, %s) AS acquired", (name, timeout))
                row = cur.fetchone()
            if not row or row["acquired"] != 1:
                raise CaseManagementException(f"timed out waiting for fingerprint lock {fingerprint}")
            try:
                yield
            finally:
                with conn.cursor() as cur:
                    cur.execute("SELECT RELEASE_LOCK(%s)", (name,))

    # ---- alert audit ------------------------------------------------------
    def save_alert_record(self, record: AlertRecord) -> AlertRecord:
        sql = (
            "INSERT INTO cm_alert_record (fingerprint, status, rule_uid, external_alert_id, labels, annotations, "
            "generator_url, starts_at, ends_at, receiver, received_at, case_id, outcome) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)"
        )
        params = (
            record.fingerprint,
            record.status.value,
            record.rule_uid,
            record.external_alert_id,
            _json(record.labels),
            _json(record.annotations),
            record.generator_url,
            _to_db(record.starts_at),
            _to_db(record.ends_at),
            record.receiver,
            _to_db(record.received_at),
            record.case_id,
            record.outcome.value if record.outcome else None,
        )
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute(sql, params)
            record.id = cur.lastrowid
        return record

    def update_alert_record(self, record: AlertRecord) -> None:
        sql = "UPDATE cm_alert_record SET rule_uid=%s, external_alert_id=%s, case_id=%s, outcome=%s WHERE id=%s"
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute(
                sql,
                (
                    record.rule_uid,
                    record.external_alert_id,
                    record.case_id,
                    record.outcome.value if record.outcome else None,
                    record.id,
                ),
            )

    # ---- cases ------------------------------------------------------------
    def next_case_number(self, when: datetime) -> str:
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute(
                "INSERT INTO cm_case_sequence (seq_year, seq) VALUES (%s, LAST_INSERT_ID(1)) "
                "ON DUPLICATE KEY UPDATE seq = LAST_INSERT_ID(seq + 1)",
                (when.year,),
            )
            cur.execute("SELECT LAST_INSERT_ID() AS seq")
            seq = int(cur.fetchone()["seq"])
        return f"{CaseManagerConstant.CASE_NUMBER_PREFIX}-{when.year}-{seq:05d}"

    _CASE_COLUMNS = (
        "case_number",
        "title",
        "description",
        "severity",
        "priority",
        "category",
        "status",
        "assignment",
        "assigned_at",
        "sla_deadline",
        "sla_breached",
        "sla_breached_at",
        "alert_fingerprint",
        "external_alert_id",
        "rule_uid",
        "affected_services",
        "tags",
        "alert_data",
        "occurrence_count",
        "last_alert_at",
        "reopen_count",
        "resolved_at",
        "closed_at",
        "closed_by",
        "closure_reason",
        "root_cause",
        "resolution_actions",
        "resolution_time_minutes",
        "created_at",
        "updated_at",
    )

    @staticmethod
    def _case_params(case: Case) -> tuple:
        return (
            case.case_number,
            case.title,
            case.description,
            case.severity.value,
            case.priority,
            case.category.value,
            case.status.value,
            _json(case.assignment.to_dict()),
            _to_db(case.assigned_at),
            _to_db(case.sla_deadline),
            int(case.sla_breached),
            _to_db(case.sla_breached_at),
            case.alert_fingerprint,
            case.external_alert_id,
            case.rule_uid,
            case.affected_services,
            _json(case.tags),
            _json(case.alert_data),
            case.occurrence_count,
            _to_db(case.last_alert_at),
            case.reopen_count,
            _to_db(case.resolved_at),
            _to_db(case.closed_at),
            case.closed_by,
            case.closure_reason,
            case.root_cause,
            case.resolution_actions,
            case.resolution_time_minutes,
            _to_db(case.created_at),
            _to_db(case.updated_at),
        )

    @staticmethod
    def _row_to_case(row: Dict[str, Any]) -> Case:
        return Case(
            id=row["id"],
            case_number=row["case_number"],
            title=row["title"],
            description=row.get("description") or "",
            severity=Severity(row["severity"]),
            priority=row.get("priority"),
            category=CaseCategory(row["category"]),
            status=CaseStatus(row["status"]),
            assignment=AssignmentInfo.from_dict(_load_json(row.get("assignment"), {})),
            assigned_at=_from_db(row.get("assigned_at")),
            sla_deadline=_from_db(row.get("sla_deadline")),
            sla_breached=bool(row.get("sla_breached")),
            sla_breached_at=_from_db(row.get("sla_breached_at")),
            alert_fingerprint=row.get("alert_fingerprint"),
            external_alert_id=row.get("external_alert_id"),
            rule_uid=row.get("rule_uid"),
            affected_services=row.get("affected_services"),
            tags=_load_json(row.get("tags"), []),
            alert_data=_load_json(row.get("alert_data"), {}),
            occurrence_count=row.get("occurrence_count") or 1,
            last_alert_at=_from_db(row.get("last_alert_at")),
            reopen_count=row.get("reopen_count") or 0,
            resolved_at=_from_db(row.get("resolved_at")),
            closed_at=_from_db(row.get("closed_at")),
            closed_by=row.get("closed_by"),
            closure_reason=row.get("closure_reason"),
            root_cause=row.get("root_cause"),
            resolution_actions=row.get("resolution_actions"),
            resolution_time_minutes=row.get("resolution_time_minutes"),
            created_at=_from_db(row["created_at"]),
            updated_at=_from_db(row.get("updated_at")),
            version=row["version"],
        )

    def insert_case(self, case: Case) -> Case:
        columns = ", ".join(self._CASE_COLUMNS)
        placeholders = ", ".join(["%s"] * len(self._CASE_COLUMNS))
        sql = f"INSERT INTO cm_case ({columns}, version) VALUES ({placeholders}, 1)"
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute(sql, self._case_params(case))
            case.id = cur.lastrowid
        case.version = 1
        return case

    def update_case(self, case: Case) -> Case:
        assignments = ", ".join(f"{col}=%s" for col in self._CASE_COLUMNS[1:])
        sql = f"UPDATE cm_case SET {assignments}, version = version + 1 WHERE id=%s AND version=%s"
        params = self._case_params(case)[1:] + (case.id, case.version)
        with self._conn() as conn, conn.cursor() as cur:
            affected = cur.execute(sql, params)
            if affected == 0:
                cur.execute("SELECT version FROM cm_case WHERE id=%s", (case.id,))
                row = cur.fetchone()
                if row is None:
                    raise ResourceNotFoundException("Case", case.id)
                raise CaseConflictException(
                    f"Case {case.case_number} changed concurrently "
                    f"(expected version {case.version}, found {row['version']})"
                )
        case.version += 1
        return case

    def get_case(self, case_id: int) -> Case | None:
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute("SELECT * FROM cm_case WHERE id=%s", (case_id,))
            row = cur.fetchone()
        return self._row_to_case(row) if row else None

    def find_case_by_fingerprint(self, fingerprint: str) -> Case | None:
        sql = "SELECT * FROM cm_case WHERE alert_fingerprint=%s ORDER BY created_at DESC, id DESC LIMIT 1"
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute(sql, (fingerprint,))
            row = cur.fetchone()
        return self._row_to_case(row) if row else None

    def find_open_cases_by_fingerprint(self, fingerprint: str) -> List[Case]:
        sql = (
            "SELECT * FROM cm_case WHERE alert_fingerprint=%s AND status IN (%s, %s, %s) "
            "ORDER BY created_at, id"
        )
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute(sql, (fingerprint, *_OPEN))
            rows = cur.fetchall()
        return [self._row_to_case(row) for row in rows]

    def find_cases_due_for_sla(self, when: datetime) -> List[Case]:
        sql = (
            "SELECT * FROM cm_case WHERE status IN (%s, %s, %s) AND sla_breached = 0 "
            "AND sla_deadline IS NOT NULL AND sla_deadline < %s ORDER BY id"
        )
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute(sql, (*_OPEN, _to_db(when)))
            rows = cur.fetchall()
        return [self._row_to_case(row) for row in rows]

    def mark_sla_breached(self, case_id: int, when: datetime) -> bool:
        sql = (
            "UPDATE cm_case SET sla_breached = 1, sla_breached_at = %s, updated_at = %s, version = version + 1 "
            "WHERE id = %s AND sla_breached = 0 AND status IN (%s, %s, %s) AND sla_deadline < %s"
        )
        stamp = _to_db(when)
        with self._conn() as conn, conn.cursor() as cur:
            affected = cur.execute(sql, (stamp, stamp, case_id, *_OPEN, stamp))
        return affected == 1

    def _open_cases(self) -> List[Case]:
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute("SELECT * FROM cm_case WHERE status IN (%s, %s, %s) ORDER BY id", _OPEN)
            rows = cur.fetchall()
        return [self._row_to_case(row) for row in rows]

    def list_unassigned_cases(self) -> List[Case]:
        return [c for c in self._open_cases() if not c.assignment.has_assignments()]

    def count_open_cases_by_user(self, user_ids: Iterable[int]) -> Dict[int, int]:
        counts = {uid: 0 for uid in user_ids}
        if not counts:
            return counts
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute("SELECT assignment FROM cm_case WHERE status IN (%s, %s, %s)", _OPEN)
            rows = cur.fetchall()
        for row in rows:
            for uid in AssignmentInfo.from_dict(_load_json(row.get("assignment"), {})).user_ids:
                if uid in counts:
                    counts[uid] += 1
        return counts

    # ---- activities -------------------------------------------------------
    def add_activity(self, activity: CaseActivity) -> CaseActivity:
        sql = (
            "INSERT INTO cm_case_activity (case_id, type, field_name, old_value, new_value, description, actor, "
            "created_at) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)"
        )
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute(
                sql,
                (
                    activity.case_id,
                    activity.type.value,
                    activity.field_name,
                    activity.old_value,
                    activity.new_value,
                    activity.description,
                    activity.actor,
                    _to_db(activity.timestamp),
                ),
            )
            new_id = cur.lastrowid
        return CaseActivity(
            case_id=activity.case_id,
            type=activity.type,
            description=activity.description,
            actor=activity.actor,
            timestamp=activity.timestamp,
            field_name=activity.field_name,
            old_value=activity.old_value,
            new_value=activity.new_value,
            id=new_id,
        )

    def list_activities(self, case_id: int) -> List[CaseActivity]:
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute("SELECT * FROM cm_case_activity WHERE case_id=%s ORDER BY id", (case_id,))
            rows = cur.fetchall()
        return [
            CaseActivity(
                id=row["id"],
                case_id=row["case_id"],
                type=ActivityType(row["type"]),
                field_name=row.get("field_name"),
                old_value=row.get("old_value"),
                new_value=row.get("new_value"),
                description=row.get("description") or "",
                actor=row.get("actor") or "",
                timestamp=_from_db(row["created_at"]),
            )
            for row in rows
        ]

    # ---- notifications ----------------------------------------------------
    def save_notification(self, notification: Notification) -> Notification:
        sql = (
            "INSERT INTO cm_notification (recipient, recipient_user_id, channel, type, subject, message, status, "
            "related_case_id, sent_at, error_message, metadata, created_at) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)"
        )
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute(
                sql,
                (
                    notification.recipient,
                    notification.recipient_user_id,
                    notification.channel.value,
                    notification.type.value,
                    notification.subject,
                    notification.message,
                    notification.status.value,
                    notification.related_case_id,
                    _to_db(notification.sent_at),
                    notification.error_message,
                    _json(notification.metadata),
                    _to_db(notification.created_at),
                ),
            )
            notification.id = cur.lastrowid
        return notification

    def update_notification_status(
        self, notification_id: int, status: NotificationStatus, error: str | None = None
    ) -> None:
        with self._conn() as conn, conn.cursor() as cur:
            affected = cur.execute(
                "UPDATE cm_notification SET status=%s, error_message=%s WHERE id=%s",
                (status.value, error, notification_id),
            )
        if affected == 0:
            raise ResourceNotFoundException("Notification", notification_id)

    def list_notifications(self, case_id: int | None = None) -> List[Notification]:
        sql = "SELECT * FROM cm_notification"
        params: tuple = ()
        if case_id is not None:
            sql += " WHERE related_case_id=%s"
            params = (case_id,)
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute(sql + " ORDER BY id", params)
            rows = cur.fetchall()
        return [
            Notification(
                id=row["id"],
                recipient=row["recipient"],
                recipient_user_id=row.get("recipient_user_id"),
                channel=NotificationChannel(row["channel"]),
                type=NotificationEvent(row["type"]),
                subject=row.get("subject") or "",
                message=row.get("message") or "",
                status=NotificationStatus(row["status"]),
                related_case_id=row.get("related_case_id"),
                sent_at=_from_db(row.get("sent_at")),
                error_message=row.get("error_message"),
                metadata=_load_json(row.get("metadata"), {}),
                created_at=_from_db(row["created_at"]),
            )
            for row in rows
        ]

    # ---- rules ------------------------------------------------------------
    @staticmethod
    def _row_to_rule(row: Dict[str, Any]) -> RuleAssignment:
        return RuleAssignment(
            id=row["id"],
            rule_uid=row["rule_uid"],
            rule_name=row.get("rule_name") or "",
            folder_uid=row.get("folder_uid"),
            folder_name=row.get("folder_name"),
            datasource_uid=row.get("datasource_uid"),
            description=row.get("description"),
            severity=Severity(row["severity"]),
            category=CaseCategory(row["category"]),
            strategy=AssignmentStrategy(row["strategy"]),
            active=bool(row.get("active")),
            auto_assign_enabled=bool(row.get("auto_assign_enabled")),
            user_ids={int(v) for v in _load_json(row.get("user_ids"), [])},
            team_ids={int(v) for v in _load_json(row.get("team_ids"), [])},
            escalation_team_id=row.get("escalation_team_id"),
            rotation_index=row.get("rotation_index") or 0,
            created_by=row.get("created_by"),
            updated_by=row.get("updated_by"),
            created_at=_from_db(row.get("created_at")),
            updated_at=_from_db(row.get("updated_at")),
        )

    def get_rule(self, rule_uid: str) -> RuleAssignment | None:
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute("SELECT * FROM cm_rule_assignment WHERE rule_uid=%s", (rule_uid,))
            row = cur.fetchone()
        return self._row_to_rule(row) if row else None

    def list_rules(self) -> Sequence[RuleAssignment]:
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute("SELECT * FROM cm_rule_assignment ORDER BY id")
            rows = cur.fetchall()
        return [self._row_to_rule(row) for row in rows]

    def save_rule(self, rule: RuleAssignment) -> RuleAssignment:
        # rotation_index is deliberately left out of the update clause
        sql = (
            "INSERT INTO cm_rule_assignment (rule_uid, rule_name, folder_uid, folder_name, datasource_uid, "
            "description, severity, category, strategy, active, auto_assign_enabled, user_ids, team_ids, "
            "escalation_team_id, created_by, updated_by, created_at, updated_at) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s) "
            "ON DUPLICATE KEY UPDATE id=LAST_INSERT_ID(id), rule_name=VALUES(rule_name), "
            "folder_uid=VALUES(folder_uid), folder_name=VALUES(folder_name), "
            "datasource_uid=VALUES(datasource_uid), description=VALUES(description), "
            "severity=VALUES(severity), category=VALUES(category), strategy=VALUES(strategy), "
            "active=VALUES(active), auto_assign_enabled=VALUES(auto_assign_enabled), "
            "user_ids=VALUES(user_ids), team_ids=VALUES(team_ids), "
            "escalation_team_id=VALUES(escalation_team_id), updated_by=VALUES(updated_by), "
            "updated_at=VALUES(updated_at)"
        )
        params = (
            rule.rule_uid,
            rule.rule_name,
            rule.folder_uid,
            rule.folder_name,
            rule.datasource_uid,
            rule.description,
            rule.severity.value,
            rule.category.value,
            rule.strategy.value,
            int(rule.active),
            int(rule.auto_assign_enabled),
            _json(sorted(rule.user_ids)),
            _json(sorted(rule.team_ids)),
            rule.escalation_team_id,
            rule.created_by,
            rule.updated_by,
            _to_db(rule.created_at),
            _to_db(rule.updated_at),
        )
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute(sql, params)
            rule.id = cur.lastrowid
        return rule

    def advance_rotation(self, rule_uid: str) -> int:
        with self._conn() as conn, conn.cursor() as cur:
            affected = cur.execute(
                "UPDATE cm_rule_assignment SET rotation_index = LAST_INSERT_ID(rotation_index + 1) "
                "WHERE rule_uid=%s",
                (rule_uid,),
            )
            if affected == 0:
                raise ResourceNotFoundException("RuleAssignment", rule_uid)
            cur.execute("SELECT LAST_INSERT_ID() AS next_index")
            return int(cur.fetchone()["next_index"]) - 1

    # ---- directory --------------------------------------------------------
    @staticmethod
    def _row_to_user(row: Dict[str, Any]) -> User:
        return User(
            id=row["id"],
            name=row["name"],
            login=row.get("login") or "",
            email=row.get("email"),
            role=UserRole(row.get("role") or UserRole.ANALYST.value),
            active=bool(row.get("active")),
        )

    def find_user(self, user_id: int) -> User | None:
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute("SELECT * FROM cm_user WHERE id=%s", (user_id,))
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def find_team(self, team_id: int) -> Team | None:
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute("SELECT * FROM cm_team WHERE id=%s", (team_id,))
            row = cur.fetchone()
            if not row:
                return None
            cur.execute("SELECT user_id FROM cm_team_member WHERE team_id=%s ORDER BY user_id", (team_id,))
            members = [r["user_id"] for r in cur.fetchall()]
        return Team(
            id=row["id"],
            name=row["name"],
            lead_id=row.get("lead_id"),
            member_ids=members,
            active=bool(row.get("active")),
        )

    def team_members(self, team_id: int) -> List[User]:
        sql = (
            "SELECT u.* FROM cm_user u JOIN cm_team_member m ON m.user_id = u.id "
            "WHERE m.team_id=%s ORDER BY u.id"
        )
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute(sql, (team_id,))
            rows = cur.fetchall()
        return [self._row_to_user(row) for row in rows]

    def team_lead(self, team_id: int) -> User | None:
        sql = "SELECT u.* FROM cm_user u JOIN cm_team t ON t.lead_id = u.id WHERE t.id=%s"
        with self._conn() as conn, conn.cursor() as cur:
            cur.execute(sql, (team_id,))
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

