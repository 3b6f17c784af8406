import dataclasses

import pytest

from app.modules.casemanager.domain import AssignmentInfo


def test_empty_has_no_assignments():
    info = AssignmentInfo.empty()

    assert not info.has_assignments()
    assert info.to_dict() == {"userIds": [], "teamIds": []}


def test_users_or_teams_alone_count_as_assigned():
    assert AssignmentInfo.of(user_ids=[1]).has_assignments()
    assert AssignmentInfo.of(team_ids=[10]).has_assignments()


def test_mutators_return_new_snapshots():
    base = AssignmentInfo.of(user_ids=[1], team_ids=[10])

    added = base.with_user(2).with_team(20)
    removed = added.without_user(1).without_team(10)

    assert base.user_ids == {1} and base.team_ids == {10}
    assert added.user_ids == {1, 2} and added.team_ids == {10, 20}
    assert removed.user_ids == {2} and removed.team_ids == {20}
    assert added.is_user_assigned(2)
    assert not removed.is_team_assigned(10)


def test_merge_is_a_union():
    left = AssignmentInfo.of(user_ids=[1], team_ids=[10])
    right = AssignmentInfo.of(user_ids=[1, 3], team_ids=[30])

    merged = left.merge(right)

    assert merged == AssignmentInfo.of(user_ids=[1, 3], team_ids=[10, 30])
    assert left == AssignmentInfo.of(user_ids=[1], team_ids=[10])


def test_frozen_instance():
    info = AssignmentInfo.of(user_ids=[1])

    with pytest.raises(dataclasses.FrozenInstanceError):
        info.user_ids = frozenset({2})


@pytest.mark.parametrize("bad", [[True], ["1"], [1.5], [None]])
def test_rejects_non_int_ids(bad):
    with pytest.raises(ValueError):
        AssignmentInfo.of(user_ids=bad)
    with pytest.raises(ValueError):
        AssignmentInfo.of(team_ids=bad)


def test_dict_serialisation_is_sorted_and_parsable():
    info = AssignmentInfo.of(user_ids=[3, 1], team_ids=[20, 10])

    data = info.to_dict()

    assert data == {"userIds": [1, 3], "teamIds": [10, 20]}
    assert AssignmentInfo.from_dict(data) == info
    assert AssignmentInfo.from_dict(None) == AssignmentInfo.empty()
