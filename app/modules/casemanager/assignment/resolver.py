"""Turns a rule assignment into concrete case owners."""

from __future__ import annotations

import logging
from typing import List

from app.modules.casemanager.domain import AssignmentInfo, RuleAssignment, User
from app.modules.casemanager.registry import RuleRegistry
from app.modules.casemanager.repositories import CaseManagementRepository
from app.modules.casemanager.util import AssignmentStrategy

log = logging.getLogger(__name__)


class AssignmentResolver:
    """Resolves owners strictly from the rule's configured users and teams."""

    def __init__(self, registry: RuleRegistry, directory: CaseManagementRepository) -> None:
        self.registry = registry
        self.directory = directory

    def resolve(self, rule: RuleAssignment | None) -> AssignmentInfo:
        if rule is None:
            return AssignmentInfo.empty()
        if not rule.can_auto_assign():
            log.info(
                "Rule %s not eligible for auto assignment (active=%s, auto_assign=%s, configured=%s)",
                rule.rule_uid,
                rule.active,
                rule.auto_assign_enabled,
                rule.has_assignments(),
            )
            return AssignmentInfo.empty()

        strategy = rule.strategy
        if strategy == AssignmentStrategy.ROUND_ROBIN:
            result = self._round_robin(rule)
        elif strategy == AssignmentStrategy.LOAD_BASED:
            result = self._load_based(rule)
        elif strategy == AssignmentStrategy.TEAM_BASED:
            result = self._team_based(rule)
        else:
            result = AssignmentInfo.of(rule.user_ids, rule.team_ids)

        log.debug("Rule %s resolved via %s -> %s", rule.rule_uid, strategy.value, result.to_dict())
        return result

    def _user_pool(self, rule: RuleAssignment) -> List[int]:
        if rule.user_ids:
            return sorted(rule.user_ids)
        pool = set()
        for team_id in self._active_teams(rule):
            pool.update(u.id for u in self.directory.team_members(team_id) if u.active)
        return sorted(pool)

    def _round_robin(self, rule: RuleAssignment) -> AssignmentInfo:
        pool = self._user_pool(rule)
        if not pool:
            return AssignmentInfo.of(team_ids=rule.team_ids)
        index = self.registry.next_rotation(rule.rule_uid) % len(pool)
        return AssignmentInfo.of(user_ids=[pool[index]])

    def _load_based(self, rule: RuleAssignment) -> AssignmentInfo:
        pool = self._user_pool(rule)
        if not pool:
            return AssignmentInfo.of(team_ids=rule.team_ids)
        candidates = self.directory.find_users_with_fewest_open_cases(pool)
        if not candidates:
            return AssignmentInfo.of(user_ids=[pool[0]])
        return AssignmentInfo.of(user_ids=[candidates[0].id])

    def _team_based(self, rule: RuleAssignment) -> AssignmentInfo:
        teams = sorted(rule.team_ids)
        active = self._active_teams(rule)
        for team_id in active:
            lead = self.directory.team_lead(team_id)
            if self._available(lead):
                return AssignmentInfo.of(user_ids=[lead.id], team_ids=[team_id])
        for team_id in active:
            for member in self.directory.team_members(team_id):
                if self._available(member):
                    return AssignmentInfo.of(user_ids=[member.id], team_ids=[team_id])
        if rule.user_ids:
            return AssignmentInfo.of(user_ids=[min(rule.user_ids)])
        return AssignmentInfo.of(team_ids=teams)

    def _active_teams(self, rule: RuleAssignment) -> List[int]:
        active = []
        for team_id in sorted(rule.team_ids):
            team = self.directory.find_team(team_id)
            if team is not None and team.active:
                active.append(team_id)
        return active

    @staticmethod
    def _available(user: User | None) -> bool:
        return user is not None and user.active
