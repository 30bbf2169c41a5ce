"""
Pattern Scan — Bowl Curve Engine

Synthesizes the U-shaped line drawn through a bowl (rounding-bottom)
reversal. The detector only tells us *when* a bowl happened; the curve is
fitted to the candles around those markers:

  1. Widen the instance's marker window by ``curve_extension_seconds`` on
     both sides and take every candle inside it (the span).
  2. The lowest low in the span is the bottom of the bowl.
  3. For each candle, a normalized parabola centred on the bottom pulls a
     straight line between the span's edge lows down toward the bottom
     (``bowl_depth_factor`` of the way at the very bottom, none at the edges).
  4. That synthetic curve is blended with the candle's real low
     (``blend_ratio`` curve, the rest price) so the line follows price action.

Every value is clamped to ``[min_low, max(start_low, end_low)]``.
"""

from __future__ import annotations

from typing import Iterator, Optional, Sequence

import structlog

from patternscan.config import OverlayConfig
from patternscan.models import LinePoint, PatternInstance, PriceCandle

log = structlog.get_logger(__name__)


class BowlCurve:
    """Lazy, restartable sequence of curve points for one pattern instance.

    Iterating yields one ``LinePoint`` per candle in the span, in time order.
    Each iteration recomputes from the captured span; nothing is cached
    between iterations or between render cycles.
    """

    def __init__(
        self,
        instance: PatternInstance,
        candles: Sequence[PriceCandle],
        config: Optional[OverlayConfig] = None,
    ):
        self.config = config or OverlayConfig()
        self.instance = instance
        pad = self.config.curve_extension_seconds
        self.window_start = instance.first_time - pad
        self.window_end = instance.last_time + pad
        self.span = sorted(
            (c for c in candles if self.window_start <= c.time <= self.window_end),
            key=lambda c: c.time,
        )

    def __len__(self) -> int:
        return len(self.span)

    def __bool__(self) -> bool:
        return bool(self.span)

    @property
    def min_low(self) -> Optional[float]:
        return min(c.low for c in self.span) if self.span else None

    @property
    def upper_bound(self) -> Optional[float]:
        if not self.span:
            return None
        return max(self.span[0].low, self.span[-1].low)

    def __iter__(self) -> Iterator[LinePoint]:
        span = self.span
        if not span:
            return

        lows = [c.low for c in span]
        min_low = min(lows)
        bottom_index = lows.index(min_low)
        start_low = lows[0]
        end_low = lows[-1]
        upper = max(start_low, end_low)

        denominator = max(1, len(span) - 1)
        bottom_position = bottom_index / denominator
        max_distance = max(bottom_position, 1 - bottom_position)
        max_parabola = max_distance * max_distance

        depth_factor = self.config.bowl_depth_factor
        blend = self.config.blend_ratio

        for index, candle in enumerate(span):
            t = index / denominator

            distance = t - bottom_position
            parabola = distance * distance
            normalized = parabola / max_parabola if max_parabola > 0 else 0.0
            bowl_depth = 1 - normalized

            edge = start_low * (1 - t) + end_low * t
            curved = edge + (min_low - edge) * bowl_depth * depth_factor

            value = blend * curved + (1 - blend) * candle.low
            yield LinePoint(time=candle.time, value=min(max(value, min_low), upper))


def synthesize_curve(
    instance: PatternInstance,
    candles: Sequence[PriceCandle],
    config: Optional[OverlayConfig] = None,
) -> list[LinePoint]:
    """Materialize the bowl curve for *instance*; empty when no candle is in range."""
    curve = BowlCurve(instance, candles, config)
    if not curve:
        log.debug(
            "bowl_curve.empty_span",
            key=instance.key,
            window_start=curve.window_start,
            window_end=curve.window_end,
        )
        return []
    return list(curve)
