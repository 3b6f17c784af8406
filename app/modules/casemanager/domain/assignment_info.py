"""Ownership value type shared by cases and alert records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, Mapping


def _freeze_ids(values: Iterable[Any] | None, kind: str) -> FrozenSet[int]:
    if values is None:
        return frozenset()
    ids = set()
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{kind} id must be an int, got {value!r}")
        ids.add(value)
    return frozenset(ids)


@dataclass(frozen=True)
class AssignmentInfo:
    """Who owns a case: a set of user ids and a set of team ids.

    Instances are immutable. Every "mutation" returns a new snapshot, so a
    case always holds a complete assignment and never a half-updated one.
    """

    user_ids: FrozenSet[int] = field(default_factory=frozenset)
    team_ids: FrozenSet[int] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(self, "user_ids", _freeze_ids(self.user_ids, "user"))
        object.__setattr__(self, "team_ids", _freeze_ids(self.team_ids, "team"))

    @classmethod
    def empty(cls) -> "AssignmentInfo":
        return cls()

    @classmethod
    def of(cls, user_ids: Iterable[int] = (), team_ids: Iterable[int] = ()) -> "AssignmentInfo":
        return cls(frozenset(user_ids), frozenset(team_ids))

    def has_assignments(self) -> bool:
        return bool(self.user_ids or self.team_ids)

    def is_user_assigned(self, user_id: int) -> bool:
        return user_id in self.user_ids

    def is_team_assigned(self, team_id: int) -> bool:
        return team_id in self.team_ids

    def with_user(self, user_id: int) -> "AssignmentInfo":
        return AssignmentInfo(self.user_ids | {user_id}, self.team_ids)

    def without_user(self, user_id: int) -> "AssignmentInfo":
        return AssignmentInfo(self.user_ids - {user_id}, self.team_ids)

    def with_team(self, team_id: int) -> "AssignmentInfo":
        return AssignmentInfo(self.user_ids, self.team_ids | {team_id})

    def without_team(self, team_id: int) -> "AssignmentInfo":
        return AssignmentInfo(self.user_ids, self.team_ids - {team_id})

    def merge(self, other: "AssignmentInfo") -> "AssignmentInfo":
        return AssignmentInfo(self.user_ids | other.user_ids, self.team_ids | other.team_ids)

    def to_dict(self) -> dict:
        return {"userIds": sorted(self.user_ids), "teamIds": sorted(self.team_ids)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "AssignmentInfo":
        if not data:
            return cls()
        return cls(
            frozenset(int(v) for v in data.get("userIds") or ()),
            frozenset(int(v) for v in data.get("teamIds") or ()),
        )
