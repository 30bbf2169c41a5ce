"""
Pattern Scan — Overlay Engine

Runs one render cycle for a chart: classify the markers, cluster the bowl
candidates, fit a curve per bowl, build the narrow-range lines, then hand
the lot to the series lifecycle manager so the surface only sees the
mutations it needs. Point markers (breakouts and anything else that is
neither a bowl nor a range) replace the previous batch wholesale.

Recomputing is synchronous and idempotent: the same candles, markers and
title always produce the same keys, points and colors.
"""

from __future__ import annotations

from typing import Optional, Sequence

import structlog

from patternscan.config import OverlayConfig
from patternscan.engines.curve_engine import synthesize_curve
from patternscan.engines.marker_classifier import classify_markers
from patternscan.engines.pattern_clusterer import PatternClusterer
from patternscan.engines.range_engine import build_range_segments
from patternscan.engines.series_manager import SeriesLifecycleManager
from patternscan.models import (
    DEFAULT_MARKER_COLOR,
    DEFAULT_MARKER_POSITION,
    DEFAULT_MARKER_SHAPE,
    BreakDirection,
    LinePoint,
    LineStyle,
    LineStyleKind,
    Marker,
    OverlayPlan,
    PatternInstance,
    PointMarker,
    PriceCandle,
    ReconcileReport,
)
from patternscan.surface import ChartSurface

log = structlog.get_logger(__name__)

WEEK52_KEY = "week52:high"


def parameter_key(name: str) -> str:
    return f"parameter:{name}"


class OverlayEngine:
    """Synthesize pattern overlays and keep one chart surface in sync."""

    def __init__(self, surface: ChartSurface, config: Optional[OverlayConfig] = None):
        self.config = config or OverlayConfig()
        self._clusterer = PatternClusterer(self.config)
        self._series = SeriesLifecycleManager(surface)

    @property
    def surface(self) -> ChartSurface:
        return self._series.surface

    @property
    def series_manager(self) -> SeriesLifecycleManager:
        return self._series

    # ── Render Cycle ──────────────────────────────────

    def recompute(
        self,
        price_data: Sequence[PriceCandle],
        markers: Sequence[Marker],
        title: str = "",
        series: Optional[str] = None,
        series_data: Sequence[LinePoint] = (),
        week52_high: Optional[float] = None,
    ) -> ReconcileReport:
        """Recompute every overlay and apply the difference to the surface.

        Args:
            price_data: Candles for the chart; empty clears every overlay.
            markers: Event markers from the pattern scan, any order.
            title: Chart title (bowl-mode hint).
            series: Name of an optional parameter series (e.g. ``ema50``).
            series_data: Points of that parameter series.
            week52_high: Optional 52-week high drawn as a reference line.

        Returns:
            ReconcileReport of the line keys created, updated and cleared.
        """
        plan = self.plan(
            price_data, markers, title,
            series=series, series_data=series_data, week52_high=week52_high,
        )
        report = self._series.reconcile(plan.lines, plan.styles)
        self.surface.set_point_markers(plan.points)

        log.info(
            "overlay.recompute",
            candles=len(price_data),
            markers=len(markers),
            lines=len(plan.lines),
            points=len(plan.points),
            created=len(report.created),
            cleared=len(report.cleared),
        )
        return report

    def clear(self) -> ReconcileReport:
        """Remove every overlay from the surface."""
        report = self._series.clear_all()
        self.surface.set_point_markers([])
        return report

    def plan(
        self,
        price_data: Sequence[PriceCandle],
        markers: Sequence[Marker],
        title: str = "",
        series: Optional[str] = None,
        series_data: Sequence[LinePoint] = (),
        week52_high: Optional[float] = None,
    ) -> OverlayPlan:
        """Compute the desired overlay state without touching the surface."""
        plan = OverlayPlan()
        if not price_data:
            return plan

        candles = sorted(price_data, key=lambda c: c.time)
        partition = classify_markers(markers, title)

        for instance in self._clusterer.cluster(partition.bowl):
            points = synthesize_curve(instance, candles, self.config)
            if points:
                plan.lines[instance.key] = points
                plan.styles[instance.key] = self.bowl_style(instance)

        high_style, low_style = self.range_styles()
        for segment in build_range_segments(partition.ranges):
            plan.lines[segment.high_key] = segment.high_points()
            plan.styles[segment.high_key] = high_style
            plan.lines[segment.low_key] = segment.low_points()
            plan.styles[segment.low_key] = low_style

        if series and series_data:
            key = parameter_key(series)
            plan.lines[key] = _dedupe_points(series_data)
            plan.styles[key] = LineStyle(
                color=self.config.parameter_color,
                line_width=2,
            )

        if week52_high is not None:
            plan.lines[WEEK52_KEY] = [
                LinePoint(time=candles[0].time, value=week52_high),
                LinePoint(time=candles[-1].time, value=week52_high),
            ]
            plan.styles[WEEK52_KEY] = LineStyle(
                color=self.config.week52_color,
                line_width=1,
                line_style=LineStyleKind.DOTTED,
            )

        plan.points = sorted(
            (self.point_marker(m) for m in partition.points),
            key=lambda p: p.time,
        )
        return plan

    # ── Styling ───────────────────────────────────────

    def bowl_style(self, instance: PatternInstance) -> LineStyle:
        return LineStyle(
            color=self.config.color_for(instance.identity.value),
            line_width=self.config.bowl_line_width,
            line_style=LineStyleKind.SOLID,
        )

    def range_styles(self) -> tuple[LineStyle, LineStyle]:
        high = LineStyle(
            color=self.config.range_high_color,
            line_width=self.config.range_line_width,
            line_style=LineStyleKind.DASHED,
        )
        low = LineStyle(
            color=self.config.range_low_color,
            line_width=self.config.range_line_width,
            line_style=LineStyleKind.DASHED,
        )
        return high, low

    def point_marker(self, marker: Marker) -> PointMarker:
        """Style a plain marker; breakout directions override the hints.

        Text is always blanked so pattern names do not crowd the candles.
        """
        if marker.direction == BreakDirection.BULLISH.value:
            return PointMarker(
                time=marker.time,
                position="belowBar",
                color=self.config.bullish_color,
                shape="arrowUp",
            )
        if marker.direction == BreakDirection.BEARISH.value:
            return PointMarker(
                time=marker.time,
                position="aboveBar",
                color=self.config.bearish_color,
                shape="arrowDown",
            )
        return PointMarker(
            time=marker.time,
            position=marker.position or DEFAULT_MARKER_POSITION,
            color=marker.color or DEFAULT_MARKER_COLOR,
            shape=marker.shape or DEFAULT_MARKER_SHAPE,
        )


def _dedupe_points(points: Sequence[LinePoint]) -> list[LinePoint]:
    """Sort by time, keeping the last value reported for each timestamp."""
    by_time = {p.time: p for p in points}
    return [by_time[t] for t in sorted(by_time)]
