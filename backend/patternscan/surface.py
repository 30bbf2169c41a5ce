"""
Pattern Scan — Chart Surface Contract

The overlay engine draws through a deliberately small interface: create a
line series, replace its points, restyle it, and replace the batch of point
markers on the candlestick series. Anything that implements those four
calls can host the overlays: the Plotly chart engine, the in-memory surface
used by the HTTP API, or a browser-side lightweight-charts instance fed by
the API's JSON.
"""

from __future__ import annotations

import itertools
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Hashable, Protocol, Sequence, runtime_checkable

import structlog

from patternscan.models import LinePoint, LineStyle, PointMarker, PriceCandle

log = structlog.get_logger(__name__)


class UnknownSeriesHandle(KeyError):
    """A surface was handed a series handle it never created."""


@runtime_checkable
class ChartSurface(Protocol):
    """Minimal capability set the overlay engine needs."""

    def create_line_series(self, style: LineStyle) -> Hashable: ...

    def set_series_data(self, handle: Hashable, points: Sequence[LinePoint]) -> None: ...

    def set_point_markers(self, batch: Sequence[PointMarker]) -> None: ...

    def apply_style(self, handle: Hashable, style: LineStyle) -> None: ...


@runtime_checkable
class CandleSurface(ChartSurface, Protocol):
    """A surface that also owns the candlestick series and viewport width."""

    def set_candles(self, candles: Sequence[PriceCandle]) -> None: ...

    def resize(self, width: int) -> None: ...


# ──────────────────────────────────────────────
# In-Memory Surface
# ──────────────────────────────────────────────


@dataclass
class SeriesRecord:
    """State of one line series held by ``InMemorySurface``."""
    handle: int
    style: LineStyle
    points: list[LinePoint] = field(default_factory=list)


# Most recent surface calls kept in ``InMemorySurface.operations``
OPERATION_LOG_SIZE = 256


class InMemorySurface:
    """Records every overlay mutation instead of drawing it.

    Serves two purposes: the HTTP API serializes its state to JSON for
    browser clients, and tests inspect it to check what the engine did.
    ``operations`` keeps an ordered log of the last ``OPERATION_LOG_SIZE``
    ``(call, handle)`` tuples; a session re-rendered forever never grows it.
    """

    def __init__(self, width: int = 1200, height: int = 500, log_size: int = OPERATION_LOG_SIZE):
        self.width = width
        self.height = height
        self.candles: list[PriceCandle] = []
        self.markers: list[PointMarker] = []
        self.operations: deque[tuple[str, Any]] = deque(maxlen=log_size)
        self._series: dict[int, SeriesRecord] = {}
        self._handles = itertools.count(1)

    # ── ChartSurface ──────────────────────────────────

    def create_line_series(self, style: LineStyle) -> int:
        handle = next(self._handles)
        self._series[handle] = SeriesRecord(handle=handle, style=style)
        self.operations.append(("create", handle))
        return handle

    def set_series_data(self, handle: Hashable, points: Sequence[LinePoint]) -> None:
        self._record(handle).points = list(points)
        self.operations.append(("set_data", handle))

    def set_point_markers(self, batch: Sequence[PointMarker]) -> None:
        self.markers = list(batch)
        self.operations.append(("set_markers", None))

    def apply_style(self, handle: Hashable, style: LineStyle) -> None:
        self._record(handle).style = style
        self.operations.append(("apply_style", handle))

    # ── CandleSurface ─────────────────────────────────

    def set_candles(self, candles: Sequence[PriceCandle]) -> None:
        self.candles = list(candles)
        self.operations.append(("set_candles", None))

    def resize(self, width: int) -> None:
        if width == self.width:
            return
        self.width = width
        self.operations.append(("resize", width))

    # ── Inspection ────────────────────────────────────

    def series(self, handle: Hashable) -> SeriesRecord:
        return self._record(handle)

    @property
    def series_count(self) -> int:
        return len(self._series)

    def _record(self, handle: Hashable) -> SeriesRecord:
        try:
            return self._series[handle]
        except KeyError:
            log.error("surface.unknown_handle", handle=handle)
            raise UnknownSeriesHandle(handle) from None
