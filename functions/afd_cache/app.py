"""
FastAPI application entry point for the AFD cache.
"""

from __future__ import annotations

from fastapi import FastAPI

from afd_cache.config import get_settings
from afd_cache.routes import router


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="AFD Cache", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
