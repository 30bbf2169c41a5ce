"""
Pattern Scan — Chart Engine

A chart surface that renders candles, overlay lines and point markers into
a Plotly figure. Used for the HTML export endpoint and for offline reports.

Visual DNA follows TradingView dark theme:
  - Background: #131722
  - Bullish: #26a69a
  - Bearish: #ef5350
  - Grid: #363c4e
  - Text: #d1d4dc
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import plotly.graph_objects as go
import structlog

from patternscan.models import LineStyleKind, PointMarker
from patternscan.surface import InMemorySurface

log = structlog.get_logger(__name__)


# ──────────────────────────────────────────────
# TradingView Color Constants
# ──────────────────────────────────────────────

TV_BG = "#131722"
TV_GRID = "#363c4e"
TV_TEXT = "#d1d4dc"
TV_TEXT_DIM = "#787b86"
TV_BULLISH = "#26a69a"
TV_BEARISH = "#ef5350"

# lightweight-charts vocabulary → Plotly vocabulary
_DASHES = {
    LineStyleKind.SOLID: "solid",
    LineStyleKind.DOTTED: "dot",
    LineStyleKind.DASHED: "dash",
}
_SYMBOLS = {
    "circle": "circle",
    "square": "square",
    "arrowUp": "triangle-up",
    "arrowDown": "triangle-down",
}


def _to_datetime(ts: int) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


class ChartEngine(InMemorySurface):
    """Plotly-backed chart surface.

    Overlay calls are recorded exactly like ``InMemorySurface``; ``figure()``
    turns the current state into a TradingView-styled candlestick chart.
    """

    def figure(self, title: str = "") -> go.Figure:
        """Build a Plotly figure from the candles and every non-empty line."""
        if not self.candles:
            return self._empty_chart(title)

        fig = go.Figure()
        fig.add_trace(
            go.Candlestick(
                x=[_to_datetime(c.time) for c in self.candles],
                open=[c.open for c in self.candles],
                high=[c.high for c in self.candles],
                low=[c.low for c in self.candles],
                close=[c.close for c in self.candles],
                increasing_line_color=TV_BULLISH,
                decreasing_line_color=TV_BEARISH,
                increasing_fillcolor=TV_BULLISH,
                decreasing_fillcolor=TV_BEARISH,
                name="Price",
                showlegend=False,
            )
        )

        # ── Overlay lines (cleared handles have no points and are skipped) ──
        for handle in sorted(self._series):
            record = self._series[handle]
            if not record.points:
                continue
            fig.add_trace(
                go.Scatter(
                    x=[_to_datetime(p.time) for p in record.points],
                    y=[p.value for p in record.points],
                    mode="lines",
                    line=dict(
                        color=record.style.color,
                        width=record.style.line_width,
                        dash=_DASHES.get(record.style.line_style, "solid"),
                    ),
                    hoverinfo="all" if record.style.crosshair_marker_visible else "skip",
                    showlegend=False,
                )
            )

        marker_trace = self._marker_trace(self.markers)
        if marker_trace is not None:
            fig.add_trace(marker_trace)

        self._apply_tv_theme(fig, title)
        return fig

    def to_html(self, fig: go.Figure, full_html: bool = True) -> str:
        """Convert a chart to an HTML string."""
        return fig.to_html(
            include_plotlyjs="cdn",
            full_html=full_html,
            config={"displayModeBar": True, "scrollZoom": True},
        )

    # ── Helpers ───────────────────────────────────────

    def _marker_trace(self, markers: list[PointMarker]) -> Optional[go.Scatter]:
        """Place point markers above/below/in the candle at the same time."""
        by_time = {c.time: c for c in self.candles}
        xs, ys, colors, symbols = [], [], [], []
        for marker in markers:
            candle = by_time.get(marker.time)
            if candle is None:
                log.debug("chart.marker_without_candle", time=marker.time)
                continue
            if marker.position == "aboveBar":
                y = candle.high
            elif marker.position == "belowBar":
                y = candle.low
            else:
                y = candle.close
            xs.append(_to_datetime(marker.time))
            ys.append(y)
            colors.append(marker.color)
            symbols.append(_SYMBOLS.get(marker.shape, "circle"))

        if not xs:
            return None
        return go.Scatter(
            x=xs,
            y=ys,
            mode="markers",
            marker=dict(color=colors, symbol=symbols, size=10),
            name="Signals",
            showlegend=False,
        )

    def _apply_tv_theme(self, fig: go.Figure, title: str):
        """Apply TradingView dark theme to a figure."""
        fig.update_layout(
            title=dict(
                text=f"<b>{title}</b>" if title else "",
                x=0.5, xanchor="center",
                font=dict(size=18, color=TV_TEXT),
            ),
            template="plotly_dark",
            paper_bgcolor=TV_BG,
            plot_bgcolor=TV_BG,
            font=dict(color=TV_TEXT, family="Inter, system-ui, sans-serif", size=11),
            height=self.height,
            width=self.width,
            margin=dict(l=60, r=30, t=50, b=30),
            xaxis_rangeslider_visible=False,
            yaxis=dict(
                gridcolor=TV_GRID,
                gridwidth=0.5,
                zerolinecolor=TV_GRID,
                tickfont=dict(color=TV_TEXT_DIM, size=10),
            ),
        )
        fig.update_xaxes(
            gridcolor=TV_GRID, gridwidth=0.5,
            tickfont=dict(color=TV_TEXT_DIM, size=10),
            showgrid=True,
        )

    def _empty_chart(self, title: str) -> go.Figure:
        """Return an empty chart with a message."""
        fig = go.Figure()
        fig.add_annotation(
            text=f"No data available for {title}" if title else "No data available",
            xref="paper", yref="paper",
            x=0.5, y=0.5, showarrow=False,
            font=dict(size=18, color=TV_TEXT_DIM),
        )
        fig.update_layout(
            paper_bgcolor=TV_BG, plot_bgcolor=TV_BG,
            height=self.height, width=self.width,
        )
        return fig
