"""ASGI entrypoint for running with uvicorn: ``uvicorn app.main:app``."""

from __future__ import annotations

from .factory import create_app

app = create_app()
