"""
Pattern Scan — Pydantic Models

All I/O schemas for the overlay service. The data source hands us candles
and markers, engines derive pattern instances and range segments from them,
and API routes serialize the resulting line series and point markers.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from patternscan.utils.validators import coerce_float, coerce_int, coerce_text


# ──────────────────────────────────────────────
# Enums & Rendering Defaults
# ──────────────────────────────────────────────

class IdentitySource(str, Enum):
    """Where a pattern instance's id came from."""
    EXPLICIT = "explicit"    # supplied by the detector as pattern_id
    INFERRED = "inferred"    # assigned by time-gap clustering


class LineStyleKind(int, Enum):
    """Line dash styles understood by the charting surface."""
    SOLID = 0
    DOTTED = 1
    DASHED = 2


class BreakDirection(str, Enum):
    """Breakout directions emitted by the narrow-range detector."""
    BULLISH = "Bullish Break"
    BEARISH = "Bearish Break"


DEFAULT_MARKER_POSITION = "belowBar"
DEFAULT_MARKER_COLOR = "#2196F3"
DEFAULT_MARKER_SHAPE = "circle"


# ──────────────────────────────────────────────
# Market Data Models
# ──────────────────────────────────────────────

class PriceCandle(BaseModel):
    """Single OHLC candle keyed by unix seconds."""
    time: int
    open: float
    high: float
    low: float
    close: float


class Marker(BaseModel):
    """One event marker from the analysis service.

    Only ``time`` is required. Every other field is optional and "no opinion"
    when missing: values that cannot be coerced to the expected type are
    treated exactly like absent ones.
    """
    model_config = ConfigDict(extra="ignore")

    time: int

    # Rendering hints
    position: Optional[str] = None
    color: Optional[str] = None
    shape: Optional[str] = None
    text: Optional[str] = None

    # Bowl grouping
    pattern_id: Optional[int] = None
    score: Optional[float] = None

    # Narrow-range info
    range_low: Optional[float] = None
    range_high: Optional[float] = None
    range_start_time: Optional[int] = None
    range_end_time: Optional[int] = None
    nrb_id: Optional[int] = None

    # Breakout info
    direction: Optional[str] = None

    @field_validator("time", mode="before")
    @classmethod
    def _coerce_time(cls, v):
        coerced = coerce_int(v)
        return v if coerced is None else coerced

    @field_validator("pattern_id", "range_start_time", "range_end_time", "nrb_id", mode="before")
    @classmethod
    def _coerce_optional_int(cls, v):
        return coerce_int(v)

    @field_validator("range_low", "range_high", "score", mode="before")
    @classmethod
    def _coerce_optional_float(cls, v):
        return coerce_float(v)

    @field_validator("position", "color", "shape", "text", "direction", mode="before")
    @classmethod
    def _coerce_optional_text(cls, v):
        return coerce_text(v)

    @property
    def has_range(self) -> bool:
        """True when all four range fields are present."""
        return (
            self.range_low is not None
            and self.range_high is not None
            and self.range_start_time is not None
            and self.range_end_time is not None
        )


class LinePoint(BaseModel):
    """A single (time, value) point of a line series."""
    time: int
    value: float


# ──────────────────────────────────────────────
# Derived Pattern Models
# ──────────────────────────────────────────────

class PatternIdentity(BaseModel):
    """Tagged identity of a pattern instance.

    Explicit ids come from the detector and are stable across renders.
    Inferred ids are cluster indexes and may be renumbered when the marker
    set changes, so they live in a separate key space.
    """
    model_config = ConfigDict(frozen=True)

    source: IdentitySource
    value: int

    @classmethod
    def explicit(cls, pattern_id: int) -> "PatternIdentity":
        return cls(source=IdentitySource.EXPLICIT, value=pattern_id)

    @classmethod
    def inferred(cls, cluster_index: int) -> "PatternIdentity":
        return cls(source=IdentitySource.INFERRED, value=cluster_index)

    @property
    def key(self) -> str:
        if self.source is IdentitySource.EXPLICIT:
            return f"pattern:{self.value}"
        return f"pattern:cluster-{self.value}"


class PatternInstance(BaseModel):
    """A group of bowl markers describing one reversal, sorted by time."""
    identity: PatternIdentity
    members: list[Marker]

    @property
    def key(self) -> str:
        return self.identity.key

    @property
    def first_time(self) -> int:
        return self.members[0].time

    @property
    def last_time(self) -> int:
        return self.members[-1].time


class RangeSegment(BaseModel):
    """Horizontal high/low bounds of one narrow-range regime."""
    id: str
    high: float
    low: float
    start_time: int
    end_time: int

    @property
    def high_key(self) -> str:
        return f"range:{self.id}-high"

    @property
    def low_key(self) -> str:
        return f"range:{self.id}-low"

    def high_points(self) -> list[LinePoint]:
        return [
            LinePoint(time=self.start_time, value=self.high),
            LinePoint(time=self.end_time, value=self.high),
        ]

    def low_points(self) -> list[LinePoint]:
        return [
            LinePoint(time=self.start_time, value=self.low),
            LinePoint(time=self.end_time, value=self.low),
        ]


class MarkerPartition(BaseModel):
    """Disjoint split of the marker list."""
    bowl: list[Marker] = Field(default_factory=list)
    ranges: list[Marker] = Field(default_factory=list)
    points: list[Marker] = Field(default_factory=list)


# ──────────────────────────────────────────────
# Surface Models
# ──────────────────────────────────────────────

class LineStyle(BaseModel):
    """Style applied to one overlay line series."""
    model_config = ConfigDict(frozen=True)

    color: str
    line_width: int = 3
    line_style: LineStyleKind = LineStyleKind.SOLID
    crosshair_marker_visible: bool = False
    price_line_visible: bool = False


class PointMarker(BaseModel):
    """A marker drawn on the candlestick series itself."""
    time: int
    position: str = DEFAULT_MARKER_POSITION
    color: str = DEFAULT_MARKER_COLOR
    shape: str = DEFAULT_MARKER_SHAPE
    text: str = ""


class OverlayPlan(BaseModel):
    """Everything one recompute wants on the surface, keyed by series key."""
    lines: dict[str, list[LinePoint]] = Field(default_factory=dict)
    styles: dict[str, LineStyle] = Field(default_factory=dict)
    points: list[PointMarker] = Field(default_factory=list)


class ReconcileReport(BaseModel):
    """Keys touched by one lifecycle reconciliation pass."""
    created: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)
    cleared: list[str] = Field(default_factory=list)


# ──────────────────────────────────────────────
# Scan Payload & API Models
# ──────────────────────────────────────────────

class ScanPayload(BaseModel):
    """Normalized response of the pattern-scan service."""
    scrip: str = ""
    pattern: str = ""
    price_data: list[PriceCandle] = Field(default_factory=list)
    markers: list[Marker] = Field(default_factory=list)
    series: Optional[str] = None
    series_data: list[LinePoint] = Field(default_factory=list)


class OverlayRequest(BaseModel):
    """One render cycle's inputs."""
    price_data: list[PriceCandle] = Field(default_factory=list)
    markers: list[Marker] = Field(default_factory=list)
    title: str = ""
    series: Optional[str] = None
    series_data: list[LinePoint] = Field(default_factory=list)
    week52_high: Optional[float] = None


class OverlaySeries(BaseModel):
    """One live line series as seen by the client."""
    key: str
    style: LineStyle
    points: list[LinePoint]


class OverlayResponse(BaseModel):
    """Overlay state after a render cycle."""
    series: list[OverlaySeries] = Field(default_factory=list)
    markers: list[PointMarker] = Field(default_factory=list)
    created: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)
    cleared: list[str] = Field(default_factory=list)


class ViewportRequest(BaseModel):
    """Resize side channel."""
    width: int = Field(ge=1, le=10_000)


class HealthCheck(BaseModel):
    """Health check response."""
    status: str = "ok"
    version: str = "1.0.0"
    uptime_seconds: float = 0.0
    chart_sessions: int = 0
    timestamp: datetime = Field(default_factory=datetime.utcnow)
