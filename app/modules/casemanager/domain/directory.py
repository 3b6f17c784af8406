"""User and team read models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from app.modules.casemanager.util import UserRole


@dataclass
class User:
    id: int
    name: str
    login: str = ""
    email: str | None = None
    role: UserRole = UserRole.ANALYST
    active: bool = True


@dataclass
class Team:
    id: int
    name: str
    lead_id: int | None = None
    member_ids: List[int] = field(default_factory=list)
    active: bool = True
