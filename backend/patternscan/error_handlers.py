"""
Pattern Scan — Global Exception Handlers

Every error response shares one JSON shape:
``{error, status_code, detail, request_id}`` (plus ``errors`` on 422).
Overlay synthesis itself never raises for bad data; what reaches these
handlers is malformed request bodies, unknown chart sessions, and bugs.
"""

from __future__ import annotations

import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

import structlog

from patternscan.surface import UnknownSeriesHandle

log = structlog.get_logger(__name__)


def _error_body(request: Request, status_code: int, detail, **extra) -> dict:
    return {
        "error": True,
        "status_code": status_code,
        "detail": detail,
        "request_id": getattr(request.state, "request_id", None),
        **extra,
    }


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions with consistent JSON format."""
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, exc.detail),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors → 422 with field details."""
        errors = []
        for err in exc.errors():
            errors.append({
                "field": " → ".join(str(loc) for loc in err.get("loc", [])),
                "message": err.get("msg", ""),
                "type": err.get("type", ""),
            })

        log.warning(
            "validation_error",
            path=str(request.url.path),
            errors=errors,
        )

        return JSONResponse(
            status_code=422,
            content=_error_body(request, 422, "Validation error", errors=errors),
        )

    @app.exception_handler(ValidationError)
    async def internal_validation_handler(request: Request, exc: ValidationError):
        """A model built inside the service failed (e.g. bad overlay settings): 500, not 400."""
        log.error(
            "internal_validation_error",
            path=str(request.url.path),
            model=exc.title,
            errors=exc.error_count(),
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(request, 500, "Internal server error"),
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        """Validator rejections (e.g. a malformed symbol) → 400."""
        log.warning("bad_request", path=str(request.url.path), error=str(exc))
        return JSONResponse(status_code=400, content=_error_body(request, 400, str(exc)))

    @app.exception_handler(UnknownSeriesHandle)
    async def surface_error_handler(request: Request, exc: UnknownSeriesHandle):
        """A surface was driven with a handle it never issued: a bug, not bad input."""
        log.error(
            "surface_contract_violation",
            path=str(request.url.path),
            handle=str(exc),
            traceback=traceback.format_exc(),
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(request, 500, "Internal server error"),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions → 500 with safe details."""
        log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
            traceback=traceback.format_exc(),
        )

        return JSONResponse(
            status_code=500,
            content=_error_body(request, 500, "Internal server error"),
        )
