# app/errors.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

log = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base for failures that map onto a structured HTTP error body."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, *, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class CatalogUnavailableError(ServiceError):
    """The plan catalog store could not be reached or queried."""

    status_code = 503
    code = "CATALOG_UNAVAILABLE"


class AIConfigError(ServiceError):
    status_code = 503
    code = "AI_CONFIG_ERROR"


class AIParseError(ServiceError):
    status_code = 502
    code = "AI_PARSE_ERROR"


class AISearchError(ServiceError):
    status_code = 500
    code = "AI_SEARCH_ERROR"


class AIRateLimitError(AISearchError):
    """Quota or rate limit hit on one model; callers may try the next one."""

    code = "AI_RATE_LIMITED"


def _field_name(loc) -> str:
    # drop the leading "body"/"query" segment FastAPI prepends
    parts = [str(p) for p in loc]
    if parts and parts[0] in ("body", "query", "path"):
        parts = parts[1:]
    return ".".join(parts) or "body"


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": _field_name(err.get("loc", ())), "message": err.get("msg", "Invalid value")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Validation failed", "details": details})


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    log.error("[%s] %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    body = {"error": exc.message, "code": exc.code}
    if exc.details:
        body["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return JSONResponse(status_code=404, content={"error": "Route not found"})
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error", "code": "INTERNAL_ERROR"})


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
