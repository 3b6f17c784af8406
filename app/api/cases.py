"""Case operation endpoints."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.modules.casemanager.service import CaseManagementService, builder_success
from app.modules.casemanager.util import CaseManagerConstant, CaseStatus, Severity
from app.modules.casemanager.util.exceptions import (
    CaseConflictException,
    CaseManagementException,
    InvalidTransitionException,
    ResourceNotFoundException,
)

from .deps import get_case_service

router = APIRouter(prefix="/cases", tags=["cases"])

SYSTEM = CaseManagerConstant.SYSTEM_ACTOR


class AssignRequest(BaseModel):
    user_id: Optional[int] = None
    team_id: Optional[int] = None
    replace: bool = True
    actor: str = SYSTEM


class CloseRequest(BaseModel):
    reason: str
    root_cause: Optional[str] = None
    resolution_actions: Optional[str] = None
    actor: str = SYSTEM


class EscalateRequest(BaseModel):
    reason: str
    actor: str = SYSTEM


class UpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[CaseStatus] = None
    severity: Optional[Severity] = None
    priority: Optional[int] = None
    actor: str = SYSTEM


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ResourceNotFoundException):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (InvalidTransitionException, CaseConflictException)):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


@router.get("/unassigned")
async def unassigned_cases(svc: CaseManagementService = Depends(get_case_service)) -> List[Dict[str, Any]]:
    return [case.to_dict() for case in svc.list_unassigned_cases()]


@router.post("/sla/sweep")
async def sla_sweep(svc: CaseManagementService = Depends(get_case_service)) -> Dict[str, Any]:
    breached = await svc.run_sla_sweep()
    return builder_success("OK", breached=[case.case_number for case in breached])


@router.get("/{case_id}")
async def get_case(case_id: int, svc: CaseManagementService = Depends(get_case_service)) -> Dict[str, Any]:
    try:
        return svc.get_case(case_id).to_dict()
    except CaseManagementException as exc:
        raise _http_error(exc) from exc


@router.post("/{case_id}/assign")
async def assign_case(
    case_id: int,
    body: AssignRequest,
    svc: CaseManagementService = Depends(get_case_service),
) -> Dict[str, Any]:
    try:
        case = await svc.assign(case_id, body.user_id, body.team_id, body.replace, body.actor)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except CaseManagementException as exc:
        raise _http_error(exc) from exc
    return case.to_dict()


@router.post("/{case_id}/close")
async def close_case(
    case_id: int,
    body: CloseRequest,
    svc: CaseManagementService = Depends(get_case_service),
) -> Dict[str, Any]:
    try:
        case = await svc.close(case_id, body.reason, body.root_cause, body.resolution_actions, body.actor)
    except CaseManagementException as exc:
        raise _http_error(exc) from exc
    return case.to_dict()


@router.post("/{case_id}/escalate")
async def escalate_case(
    case_id: int,
    body: EscalateRequest,
    svc: CaseManagementService = Depends(get_case_service),
) -> Dict[str, Any]:
    try:
        case = await svc.escalate(case_id, body.reason, body.actor)
    except CaseManagementException as exc:
        raise _http_error(exc) from exc
    return case.to_dict()


@router.patch("/{case_id}")
async def update_case(
    case_id: int,
    body: UpdateRequest,
    svc: CaseManagementService = Depends(get_case_service),
) -> Dict[str, Any]:
    try:
        case = await svc.update_case(
            case_id,
            title=body.title,
            description=body.description,
            status=body.status,
            severity=body.severity,
            priority=body.priority,
            actor=body.actor,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except CaseManagementException as exc:
        raise _http_error(exc) from exc
    return case.to_dict()
