"""Repository exports."""

from .base import CaseManagementRepository
from .memory import InMemoryCaseManagementRepository

__all__ = ["CaseManagementRepository", "InMemoryCaseManagementRepository"]
