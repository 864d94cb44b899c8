"""
FastAPI application entry point for the STREAKr backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from streakr.admin_routes import router as admin_router
from streakr.config import get_settings
from streakr.errors import StreakrError
from streakr.routes import router

logger = logging.getLogger(__name__)


async def streakr_error_handler(request: Request, exc: StreakrError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="STREAKr Backend (FastAPI)", version="0.1.0")
    app.add_exception_handler(StreakrError, streakr_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(admin_router, prefix=settings.api_prefix)
    return app


app = create_app()
