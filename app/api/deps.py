"""Request-scoped lookups into the service container."""

from __future__ import annotations

from fastapi import Request

from app.modules.casemanager.service import CaseManagementService


def get_case_service(request: Request) -> CaseManagementService:
    container = getattr(request.app.state, "container", None)
    if not container:
        raise RuntimeError("Service container not initialized.")
    return container.case_service
