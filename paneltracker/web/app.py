"""FastAPI application for Panel Tracker."""

from __future__ import annotations

from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from paneltracker import __version__
from paneltracker.config import get_config
from paneltracker.core.logging import configure_logging
from paneltracker.db.connection import close_db
from paneltracker.db.repository import StoreTimeoutError
from paneltracker.ingestion.orchestrator import (
    ImportStateError,
    NothingToImportError,
    PermissionDeniedError,
)
from paneltracker.ingestion.spreadsheet import SpreadsheetParseError
from paneltracker.web.routes import dashboard, imports

# Initialize structured logging
configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_db()


app = FastAPI(
    title=get_config().app_name,
    description="Panel production tracking: bulk imports and dashboard metrics",
    version=__version__,
    lifespan=lifespan,
)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        structlog.contextvars.clear_contextvars()

        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info("request_started", method=request.method, path=request.url.path)
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("request_failed", error=str(exc))
            raise
        logger.info("request_completed", status_code=response.status_code)
        return response


app.add_middleware(RequestLoggingMiddleware)


# Exception Handlers
_STATUS_BY_ERROR: dict[type[Exception], int] = {
    SpreadsheetParseError: 400,
    PermissionDeniedError: 403,
    ImportStateError: 409,
    NothingToImportError: 422,
    StoreTimeoutError: 504,
}


async def domain_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=_STATUS_BY_ERROR[type(exc)], content={"detail": str(exc)})


for _error in _STATUS_BY_ERROR:
    app.add_exception_handler(_error, domain_exception_handler)


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}


app.include_router(dashboard.router)
app.include_router(imports.router)
