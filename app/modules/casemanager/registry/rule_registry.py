"""Read-mostly registry of rule assignments keyed by external rule uid."""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Protocol, Sequence

from app.modules.casemanager.domain import RuleAssignment, SyncReport
from app.modules.casemanager.repositories import CaseManagementRepository
from app.modules.casemanager.util import CaseManagerConstant, now
from app.modules.casemanager.util.exceptions import ResourceNotFoundException

log = logging.getLogger(__name__)


class RuleSource(Protocol):
    def lookup_rule(self, external_id: str) -> RuleAssignment | None:
        ...

    def list_rules(self) -> List[RuleAssignment]:
        ...


class RuleRegistry:
    """Serves rule lookups from an in-process snapshot backed by the repository.

    Readers never lock: the snapshot dict only ever has whole entries swapped
    in. Writes go to the repository first and then replace the cached entry.
    """

    def __init__(
        self,
        repository: CaseManagementRepository,
        clock: Callable[[], datetime] = now,
    ) -> None:
        self.repository = repository
        self._clock = clock
        self._rules: Dict[str, RuleAssignment] = {}

    def refresh(self) -> int:
        self._rules = {rule.rule_uid: rule for rule in self.repository.list_rules()}
        log.info("Rule registry loaded %d rule assignments.", len(self._rules))
        return len(self._rules)

    def lookup_rule(self, rule_uid: str | None) -> RuleAssignment | None:
        if not rule_uid:
            return None
        rule = self._rules.get(rule_uid)
        if rule is None:
            rule = self.repository.get_rule(rule_uid)
            if rule is not None:
                self._rules[rule_uid] = rule
        return rule

    def list_rules(self) -> Sequence[RuleAssignment]:
        return list(self._rules.values())

    def save_rule(self, rule: RuleAssignment, actor: str = CaseManagerConstant.SYSTEM_ACTOR) -> RuleAssignment:
        stamp = self._clock()
        if rule.created_at is None:
            rule.created_at = stamp
            rule.created_by = rule.created_by or actor
        rule.updated_at = stamp
        rule.updated_by = actor
        saved = self.repository.save_rule(rule)
        self._rules[saved.rule_uid] = saved
        return saved

    def _require(self, rule_uid: str) -> RuleAssignment:
        rule = self.lookup_rule(rule_uid)
        if rule is None:
            raise ResourceNotFoundException("RuleAssignment", rule_uid)
        return rule

    def assign_users_and_teams(
        self,
        rule_uid: str,
        user_ids: Iterable[int] = (),
        team_ids: Iterable[int] = (),
        actor: str = CaseManagerConstant.SYSTEM_ACTOR,
    ) -> RuleAssignment:
        rule = self._require(rule_uid)
        users = list(user_ids)
        teams = list(team_ids)
        for user_id in users:
            if self.repository.find_user(user_id) is None:
                raise ResourceNotFoundException("User", user_id)
        for team_id in teams:
            if self.repository.find_team(team_id) is None:
                raise ResourceNotFoundException("Team", team_id)
        updated = dataclasses.replace(
            rule,
            user_ids=set(rule.user_ids) | set(users),
            team_ids=set(rule.team_ids) | set(teams),
        )
        log.info("Rule %s: assigned users %s teams %s by %s", rule_uid, users, teams, actor)
        return self.save_rule(updated, actor)

    def remove_assignments(
        self,
        rule_uid: str,
        user_ids: Iterable[int] = (),
        team_ids: Iterable[int] = (),
        actor: str = CaseManagerConstant.SYSTEM_ACTOR,
    ) -> RuleAssignment:
        rule = self._require(rule_uid)
        updated = dataclasses.replace(
            rule,
            user_ids=set(rule.user_ids) - set(user_ids),
            team_ids=set(rule.team_ids) - set(team_ids),
        )
        return self.save_rule(updated, actor)

    def next_rotation(self, rule_uid: str) -> int:
        value = self.repository.advance_rotation(rule_uid)
        cached = self._rules.get(rule_uid)
        if cached is not None:
            self._rules[rule_uid] = dataclasses.replace(cached, rotation_index=value + 1)
        return value

    def sync_from(self, source: RuleSource, actor: str = CaseManagerConstant.SYSTEM_ACTOR) -> SyncReport:
        """Create rule assignments for remote rules we do not know yet.

        Existing assignments are never modified. A failure stops the run but
        keeps whatever was created before it.
        """
        report = SyncReport()
        try:
            remote_rules = source.list_rules()
        except Exception as exc:  # noqa: BLE001
            log.warning("Rule sync aborted, unable to list remote rules: %s", exc)
            report.error = str(exc)
            return report

        for remote in remote_rules:
            try:
                if self.lookup_rule(remote.rule_uid) is not None:
                    report.skipped += 1
                    continue
                rule = dataclasses.replace(
                    remote,
                    id=None,
                    description=CaseManagerConstant.AUTO_SYNC_DESCRIPTION,
                    active=True,
                    rotation_index=0,
                    created_by=actor,
                    created_at=None,
                )
                self.save_rule(rule, actor)
                report.created.append(rule.rule_uid)
            except Exception as exc:  # noqa: BLE001
                log.exception("Rule sync aborted at rule %s", remote.rule_uid)
                report.error = f"{remote.rule_uid}: {exc}"
                break

        log.info(
            "Rule sync finished: created=%d skipped=%d error=%s",
            len(report.created),
            report.skipped,
            report.error,
        )
        return report
