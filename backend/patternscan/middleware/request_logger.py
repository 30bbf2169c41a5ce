"""
Pattern Scan — Request Logger Middleware

Structured request/response logging via structlog. Every request gets an
id (taken from ``X-Request-ID`` when the caller sends one), stored on
``request.state`` for error bodies and echoed back in the response header.
Requests against a chart session also bind ``chart_id``, so the overlay
engine's own events can be traced back to the chart that caused them.
"""

from __future__ import annotations

import re
import time
import uuid
from typing import Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

log = structlog.get_logger(__name__)

# Liveness probes and browser noise
_SKIP_PATHS = frozenset({"/health", "/favicon.ico"})

_CHART_PATH = re.compile(r"/charts/([^/]+)")


def _chart_id(path: str) -> Optional[str]:
    match = _CHART_PATH.search(path)
    return match.group(1) if match else None


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 1)


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    """Log every overlay request with its chart, status and latency."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        path = request.url.path

        if path in _SKIP_PATHS:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        structlog.contextvars.clear_contextvars()
        context = {"request_id": request_id}
        chart_id = _chart_id(path)
        if chart_id is not None:
            context["chart_id"] = chart_id
        structlog.contextvars.bind_contextvars(**context)

        start = time.perf_counter()
        log.info("request.start", method=request.method, path=path)

        try:
            response = await call_next(request)
        except Exception:
            log.error("request.error", method=request.method, path=path, latency_ms=_elapsed_ms(start))
            raise

        log.info(
            "request.complete",
            method=request.method,
            path=path,
            status=response.status_code,
            latency_ms=_elapsed_ms(start),
        )
        response.headers["X-Request-ID"] = request_id
        return response
