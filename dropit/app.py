"""
FastAPI application entry point for Dropit.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from dropit.config import Settings, get_settings
from dropit.content import ContentService
from dropit.errors import DropitError, ValidationFailed
from dropit.kv import build_kv_store
from dropit.routes import router
from dropit.storage import build_storage_client

logger = logging.getLogger(__name__)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DropitError)
    async def handle_dropit_error(request: Request, exc: DropitError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400, content={"error": ValidationFailed.default_message}
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500, content={"error": DropitError.default_message}
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="Dropit", version="0.1.0")
    app.state.settings = settings
    app.state.kv = build_kv_store(settings)
    app.state.content = ContentService(app.state.kv, max_messages=settings.max_messages)
    app.state.storage = build_storage_client(settings)
    logger.info(
        "Dropit using KV=%s storage=%s", app.state.kv.name, app.state.storage.name
    )

    _register_error_handlers(app)
    app.include_router(router, prefix=settings.api_prefix)

    # Files written by the local fallback are served from the same origin.
    # The directory is created at startup or by the first local write, so
    # importing this module leaves the filesystem alone.
    if settings.uploads_base_url.startswith("/"):

        @app.on_event("startup")
        def _create_uploads_dir():
            Path(settings.uploads_dir).mkdir(parents=True, exist_ok=True)

        app.mount(
            settings.uploads_base_url.rstrip("/"),
            StaticFiles(directory=settings.uploads_dir, check_dir=False),
            name="uploads",
        )
    return app


app = create_app()
