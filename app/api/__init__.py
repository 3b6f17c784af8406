"""API exports."""

from .routes import router as health_router
from .cases import router as cases_router
from .rules import router as rules_router
from .webhook import router as webhook_router

__all__ = ["health_router", "cases_router", "rules_router", "webhook_router"]
