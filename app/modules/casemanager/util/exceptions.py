"""Exceptions raised by the case management module."""

from __future__ import annotations

from typing import Any


class CaseManagementException(Exception):
    """Base class for every error raised by the pipeline."""


class ResourceNotFoundException(CaseManagementException):
    def __init__(self, resource: str, identifier: Any) -> None:
        super().__init__(f"{resource} not found: {identifier}")
        self.resource = resource
        self.identifier = identifier


class InvalidTransitionException(CaseManagementException):
    pass


class CaseConflictException(CaseManagementException):
    """Raised when a case was modified by someone else since it was read."""


class NotificationSendException(CaseManagementException):
    pass


class PayloadException(CaseManagementException):
    pass
