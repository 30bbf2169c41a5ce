"""
Pattern Scan — Chart Session Registry

Keeps one overlay engine (and its in-memory surface) per chart id so that
repeated renders of the same chart reuse line-series handles instead of
recreating them. In-process only; sessions are evicted least-recently-used
once ``chart_session_limit`` is reached.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Optional

import structlog

from patternscan.config import OverlayConfig, get_settings
from patternscan.engines.overlay_engine import OverlayEngine
from patternscan.models import (
    OverlayRequest,
    OverlayResponse,
    OverlaySeries,
    ReconcileReport,
)
from patternscan.surface import InMemorySurface

log = structlog.get_logger(__name__)


class ChartSession:
    """One chart: its surface, its engine, and a lock serializing renders."""

    def __init__(self, chart_id: str, config: Optional[OverlayConfig] = None):
        settings = get_settings()
        self.chart_id = chart_id
        self.surface = InMemorySurface(width=settings.chart_width, height=settings.chart_height)
        self.engine = OverlayEngine(self.surface, config)
        self._lock = threading.Lock()

    def render(self, request: OverlayRequest) -> OverlayResponse:
        """Run one recompute cycle atomically and snapshot the result."""
        with self._lock:
            self.surface.set_candles(request.price_data)
            report = self.engine.recompute(
                request.price_data,
                request.markers,
                request.title,
                series=request.series,
                series_data=request.series_data,
                week52_high=request.week52_high,
            )
            return self.snapshot(report)

    def resize(self, width: int) -> None:
        """Viewport side channel; never touches the key → handle table."""
        with self._lock:
            self.surface.resize(width)

    def snapshot(self, report: Optional[ReconcileReport] = None) -> OverlayResponse:
        report = report or ReconcileReport()
        manager = self.engine.series_manager
        series = []
        for key in manager.keys:
            record = self.surface.series(manager.handle_for(key))
            series.append(OverlaySeries(key=key, style=record.style, points=record.points))
        return OverlayResponse(
            series=series,
            markers=list(self.surface.markers),
            created=report.created,
            updated=report.updated,
            cleared=report.cleared,
        )


class SessionRegistry:
    """Bounded LRU map of chart id → ChartSession."""

    def __init__(self, limit: int = 64, config: Optional[OverlayConfig] = None):
        self._limit = max(1, limit)
        self._config = config
        self._sessions: OrderedDict[str, ChartSession] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, chart_id: str) -> bool:
        return chart_id in self._sessions

    def get(self, chart_id: str) -> Optional[ChartSession]:
        with self._lock:
            session = self._sessions.get(chart_id)
            if session is not None:
                self._sessions.move_to_end(chart_id)
            return session

    def get_or_create(self, chart_id: str) -> ChartSession:
        with self._lock:
            session = self._sessions.get(chart_id)
            if session is None:
                session = ChartSession(chart_id, self._config)
                self._sessions[chart_id] = session
                log.info("chart_session.created", chart_id=chart_id, sessions=len(self._sessions))
                while len(self._sessions) > self._limit:
                    evicted, _ = self._sessions.popitem(last=False)
                    log.info("chart_session.evicted", chart_id=evicted)
            else:
                self._sessions.move_to_end(chart_id)
            return session

    def drop(self, chart_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(chart_id, None) is not None


# ──────────────────────────────────────────────
# Singleton
# ──────────────────────────────────────────────

_registry: Optional[SessionRegistry] = None


def get_session_registry() -> SessionRegistry:
    """Get or create the process-wide session registry."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry(
            limit=get_settings().chart_session_limit,
            config=OverlayConfig.from_settings(),
        )
    return _registry
