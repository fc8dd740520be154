"""ASGI entry point: ``uvicorn investoscope.main:app``."""

from __future__ import annotations

from investoscope.api.app import create_api_app


app = create_api_app()
