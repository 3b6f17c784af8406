import pytest
from conftest import rule

from app.modules.casemanager.domain import AssignmentInfo, Case
from app.modules.casemanager.util import AssignmentStrategy, CaseCategory, Severity


def allowed_users(p, configured) -> set:
    users = set(configured.user_ids)
    for team_id in configured.team_ids:
        users.update(u.id for u in p.repo.team_members(team_id))
    return users


@pytest.mark.parametrize("strategy", list(AssignmentStrategy))
@pytest.mark.parametrize(
    "user_ids, team_ids",
    [({1, 5}, set()), (set(), {10, 20}), ({3}, {10}), (set(), {30})],
)
def test_owners_always_come_from_configuration(pipeline, strategy, user_ids, team_ids):
    configured = pipeline.registry.save_rule(rule(strategy=strategy, user_ids=user_ids, team_ids=team_ids))

    for _ in range(4):
        result = pipeline.resolver.resolve(pipeline.registry.lookup_rule(configured.rule_uid))
        assert result.has_assignments()
        assert result.user_ids <= allowed_users(pipeline, configured)
        assert result.team_ids <= configured.team_ids


def test_no_rule_or_ineligible_rule_is_empty(pipeline):
    resolver = pipeline.resolver

    assert resolver.resolve(None) == AssignmentInfo.empty()
    assert resolver.resolve(rule(active=False, user_ids={1})) == AssignmentInfo.empty()
    assert resolver.resolve(rule(auto_assign_enabled=False, user_ids={1})) == AssignmentInfo.empty()
    assert resolver.resolve(rule()) == AssignmentInfo.empty()


def test_manual_returns_configuration_verbatim(pipeline):
    result = pipeline.resolver.resolve(rule(user_ids={2, 3}, team_ids={10}))

    assert result == AssignmentInfo.of(user_ids=[2, 3], team_ids=[10])


def test_round_robin_cycles_through_sorted_users(pipeline):
    pipeline.registry.save_rule(rule(strategy=AssignmentStrategy.ROUND_ROBIN, user_ids={3, 1, 2}))

    picks = [
        next(iter(pipeline.resolver.resolve(pipeline.registry.lookup_rule("rule-a")).user_ids)) for _ in range(5)
    ]

    assert picks == [1, 2, 3, 1, 2]
    assert pipeline.repo.get_rule("rule-a").rotation_index == 5


def test_round_robin_counter_is_per_rule(pipeline):
    pipeline.registry.save_rule(rule("a", strategy=AssignmentStrategy.ROUND_ROBIN, user_ids={1, 2}))
    pipeline.registry.save_rule(rule("b", strategy=AssignmentStrategy.ROUND_ROBIN, user_ids={1, 2}))

    first_a = pipeline.resolver.resolve(pipeline.registry.lookup_rule("a"))
    first_b = pipeline.resolver.resolve(pipeline.registry.lookup_rule("b"))

    assert first_a.user_ids == first_b.user_ids == {1}


def test_round_robin_falls_back_to_active_team_members(pipeline):
    pipeline.registry.save_rule(rule(strategy=AssignmentStrategy.ROUND_ROBIN, team_ids={20}))

    picks = {next(iter(pipeline.resolver.resolve(pipeline.registry.lookup_rule("rule-a")).user_ids)) for _ in range(3)}

    assert picks == {3}


def test_load_based_picks_least_loaded_with_lowest_id_tiebreak(pipeline):
    pipeline.registry.save_rule(rule(strategy=AssignmentStrategy.LOAD_BASED, user_ids={1, 2, 3}))
    for idx, owner in enumerate([1, 1, 2]):
        pipeline.repo.insert_case(
            Case(
                case_number=f"CASE-2024-9{idx:04d}",
                title="busy",
                severity=Severity.LOW,
                category=CaseCategory.CUSTOM,
                created_at=pipeline.clock(),
                assignment=AssignmentInfo.of(user_ids=[owner]),
            )
        )

    assert pipeline.resolver.resolve(pipeline.registry.lookup_rule("rule-a")).user_ids == {3}

    pipeline.repo.insert_case(
        Case(
            case_number="CASE-2024-99999",
            title="busy",
            severity=Severity.LOW,
            category=CaseCategory.CUSTOM,
            created_at=pipeline.clock(),
            assignment=AssignmentInfo.of(user_ids=[3]),
        )
    )

    assert pipeline.resolver.resolve(pipeline.registry.lookup_rule("rule-a")).user_ids == {2}


def test_team_based_prefers_active_lead(pipeline):
    result = pipeline.resolver.resolve(rule(strategy=AssignmentStrategy.TEAM_BASED, team_ids={10, 20}))

    assert result == AssignmentInfo.of(user_ids=[1], team_ids=[10])


def test_team_based_skips_inactive_lead(pipeline):
    result = pipeline.resolver.resolve(rule(strategy=AssignmentStrategy.TEAM_BASED, team_ids={20}))

    assert result == AssignmentInfo.of(user_ids=[3], team_ids=[20])


def test_team_based_without_available_members(pipeline):
    with_users = pipeline.resolver.resolve(rule(strategy=AssignmentStrategy.TEAM_BASED, user_ids={2}, team_ids={30}))
    teams_only = pipeline.resolver.resolve(rule(strategy=AssignmentStrategy.TEAM_BASED, team_ids={30}))

    assert with_users == AssignmentInfo.of(user_ids=[2])
    assert teams_only == AssignmentInfo.of(team_ids=[30])
