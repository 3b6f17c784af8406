"""Monitoring-system webhook endpoint."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from app.modules.casemanager.service import CaseManagementService, builder_error

from .deps import get_case_service

log = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/grafana")
async def grafana_webhook(
    request: Request,
    svc: CaseManagementService = Depends(get_case_service),
) -> Dict[str, Any]:
    # always 200 so the sender does not retry a payload we cannot parse
    body = await request.body()
    try:
        payload = json.loads(body or b"null")
    except ValueError as exc:
        log.warning("Webhook body is not JSON: %s", exc)
        return builder_error(f"invalid JSON: {exc}")
    return await svc.process_webhook(payload)
