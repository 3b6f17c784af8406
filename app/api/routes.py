"""Health probe."""

from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health probe")
async def health(request: Request) -> dict[str, object]:
    switches = getattr(request.app.state, "switches", None)
    return {
        "status": "ok",
        "casemanager": bool(switches and switches.casemanager_on()),
        "storage": request.app.state.container.settings.storage_backend,
    }
