"""
Pattern Scan — API Routes

All HTTP endpoints. Thin layer — delegates to the overlay engine and the
chart session registry.
"""

from __future__ import annotations

import time as _time
from typing import Any, Optional

from fastapi import APIRouter, Body, HTTPException, Query
from fastapi.responses import HTMLResponse

from patternscan.config import OverlayConfig, get_settings
from patternscan.data.scan_payload import build_chart_title, normalize_scan_payload
from patternscan.engines.chart_engine import ChartEngine
from patternscan.engines.overlay_engine import OverlayEngine
from patternscan.models import HealthCheck, OverlayRequest, OverlayResponse, ViewportRequest
from patternscan.sessions import ChartSession, get_session_registry
from patternscan.utils.validators import validate_scrip

# Track module load time for uptime calculations
_START_TIME = _time.monotonic()


# ──────────────────────────────────────────────
# Health
# ──────────────────────────────────────────────

health_router = APIRouter()


@health_router.get("/health", response_model=HealthCheck)
async def health_check():
    """Liveness plus the number of chart sessions held in memory."""
    return HealthCheck(
        status="ok",
        uptime_seconds=round(_time.monotonic() - _START_TIME, 1),
        chart_sessions=len(get_session_registry()),
    )


# ──────────────────────────────────────────────
# Overlays (stateless)
# ──────────────────────────────────────────────

overlay_router = APIRouter()


@overlay_router.post("/overlays", response_model=OverlayResponse)
async def compute_overlays(body: OverlayRequest):
    """Compute the full overlay set for one chart against a fresh surface."""
    session = ChartSession("adhoc", OverlayConfig.from_settings())
    return session.render(body)


@overlay_router.post("/overlays/html", response_class=HTMLResponse)
async def render_overlay_html(body: OverlayRequest):
    """Render candles plus overlays as a standalone Plotly HTML page."""
    settings = get_settings()
    chart = ChartEngine(width=settings.chart_width, height=settings.chart_height)
    chart.set_candles(body.price_data)
    OverlayEngine(chart, OverlayConfig.from_settings()).recompute(
        body.price_data,
        body.markers,
        body.title,
        series=body.series,
        series_data=body.series_data,
        week52_high=body.week52_high,
    )
    return HTMLResponse(chart.to_html(chart.figure(body.title)))


# ──────────────────────────────────────────────
# Chart Sessions (stateful)
# ──────────────────────────────────────────────

chart_router = APIRouter()


@chart_router.post("/charts/{chart_id}/render", response_model=OverlayResponse)
async def render_chart(chart_id: str, body: OverlayRequest):
    """Render into a persistent chart session; reports keys created/updated/cleared."""
    session = get_session_registry().get_or_create(chart_id)
    return session.render(body)


@chart_router.get("/charts/{chart_id}", response_model=OverlayResponse)
async def get_chart(chart_id: str):
    """Current overlay state of a chart session."""
    session = get_session_registry().get(chart_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Chart '{chart_id}' not found")
    return session.snapshot()


@chart_router.post("/charts/{chart_id}/viewport")
async def resize_chart(chart_id: str, body: ViewportRequest):
    """Resize side channel: adjusts viewport width only."""
    session = get_session_registry().get(chart_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Chart '{chart_id}' not found")
    session.resize(body.width)
    return {"chart_id": chart_id, "width": session.surface.width}


@chart_router.delete("/charts/{chart_id}")
async def drop_chart(chart_id: str):
    """Forget a chart session and its line-series handles."""
    if not get_session_registry().drop(chart_id):
        raise HTTPException(status_code=404, detail=f"Chart '{chart_id}' not found")
    return {"chart_id": chart_id, "dropped": True}


# ──────────────────────────────────────────────
# Scan Payloads
# ──────────────────────────────────────────────

scan_router = APIRouter()


@scan_router.post("/scans/normalize")
async def normalize_scan(
    raw: Any = Body(...),
    scrip: Optional[str] = Query(None, description="Requested symbol"),
    pattern: Optional[str] = Query(None, description="Requested pattern, e.g. 'Bowl'"),
    parameter: Optional[str] = Query(None, description="close, ema21, ema50, ema200, rsc30, rsc500"),
):
    """Normalize a raw pattern-scan response and derive the chart title."""
    if scrip:
        scrip = validate_scrip(scrip)
    series = parameter if parameter and parameter != "close" else None
    payload = normalize_scan_payload(raw, scrip=scrip, pattern=pattern, series=series)
    return {
        "payload": payload,
        "title": build_chart_title(payload.scrip, payload.pattern, parameter),
    }
