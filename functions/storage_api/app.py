"""
FastAPI application entry point for the storage service.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from storage_api.config import get_settings
from storage_api.routes import router


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    app = FastAPI(title="Shared Storage API", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
