"""Rule registry endpoints."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.modules.casemanager.service import CaseManagementService

from .deps import get_case_service

router = APIRouter(prefix="/rules", tags=["rules"])


@router.post("/sync")
async def sync_rules(svc: CaseManagementService = Depends(get_case_service)) -> Dict[str, Any]:
    report = await svc.sync_rules()
    return {"status": "error" if report.error else "success", **report.to_dict()}
