"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from .api import cases_router, health_router, rules_router, webhook_router
from .bootstrap import ServiceContainer, bootstrap_services, shutdown_services
from .logging_config import configure_logging
from .settings import Settings, get_settings
from .switches import CaseSwitch


def create_app(settings: Settings | None = None, container: ServiceContainer | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    switches = CaseSwitch(settings)
    services = container or ServiceContainer(settings)

    app = FastAPI(title=settings.app_name, version=settings.version)
    app.include_router(health_router)
    app.include_router(webhook_router)
    app.include_router(cases_router)
    app.include_router(rules_router)
    app.state.container = services
    app.state.switches = switches

    @app.on_event("startup")
    async def _startup() -> None:  # pragma: no cover - invoked by FastAPI
        await bootstrap_services(services, switches)

    @app.on_event("shutdown")
    async def _shutdown() -> None:  # pragma: no cover - invoked by FastAPI
        await shutdown_services(services)

    return app
