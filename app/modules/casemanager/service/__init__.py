"""Service exports."""

from .core import CaseManagementService, builder_error, builder_success

__all__ = ["CaseManagementService", "builder_success", "builder_error"]
