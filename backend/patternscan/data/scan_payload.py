"""
Pattern Scan — Scan Payload Normalization

The pattern-scan service has shipped a few response shapes over time:
markers under ``markers``, under the older ``triggers`` key, or a bare list
of markers. This module turns any of them into a typed ``ScanPayload``
with every marker field present (absent ones as ``None``, rendering hints
defaulted) and a clean, strictly increasing candle series.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

import structlog

from patternscan.models import (
    DEFAULT_MARKER_COLOR,
    DEFAULT_MARKER_POSITION,
    DEFAULT_MARKER_SHAPE,
    LinePoint,
    Marker,
    PriceCandle,
    ScanPayload,
)
from patternscan.utils.validators import coerce_float, coerce_int

log = structlog.get_logger(__name__)

_MARKER_FIELDS = (
    "pattern_id",
    "score",
    "text",
    "range_low",
    "range_high",
    "range_start_time",
    "range_end_time",
    "nrb_id",
    "direction",
)


def normalize_scan_payload(
    raw: Any,
    scrip: Optional[str] = None,
    pattern: Optional[str] = None,
    series: Optional[str] = None,
) -> ScanPayload:
    """Normalize a raw pattern-scan response.

    Args:
        raw: Decoded JSON body (mapping or bare marker list).
        scrip: Requested symbol, used when the body omits it.
        pattern: Requested pattern, used when the body omits it.
        series: Requested parameter series, used when the body omits it.

    Returns:
        ScanPayload ready for the overlay engine.
    """
    if isinstance(raw, list):
        body: Mapping[str, Any] = {}
        raw_markers: Any = raw
    elif isinstance(raw, Mapping):
        body = raw
        raw_markers = raw.get("markers")
        if raw_markers is None:
            raw_markers = raw.get("triggers")
    else:
        log.warning("scan_payload.unexpected_body", type=type(raw).__name__)
        body, raw_markers = {}, None

    markers = [m for m in (parse_marker(item) for item in raw_markers or []) if m is not None]
    candles = parse_candles(body.get("price_data") or [])
    series_data = parse_points(body.get("series_data") or [])

    payload = ScanPayload(
        scrip=body.get("scrip") or scrip or "",
        pattern=body.get("pattern") or pattern or "",
        price_data=candles,
        markers=markers,
        series=body.get("series") if body.get("series") is not None else series,
        series_data=series_data,
    )
    log.debug(
        "scan_payload.normalized",
        scrip=payload.scrip,
        pattern=payload.pattern,
        candles=len(candles),
        markers=len(markers),
        series=payload.series,
    )
    return payload


def parse_marker(item: Any) -> Optional[Marker]:
    """Build a ``Marker`` from one raw entry, or None when it has no usable time."""
    if not isinstance(item, Mapping):
        log.warning("scan_payload.marker_dropped", reason="not_an_object")
        return None

    time = coerce_int(item.get("time"))
    if time is None:
        log.warning("scan_payload.marker_dropped", reason="bad_time", time=item.get("time"))
        return None

    fields = {name: item.get(name) for name in _MARKER_FIELDS}
    return Marker(
        time=time,
        position=item.get("position") or DEFAULT_MARKER_POSITION,
        color=item.get("color") or DEFAULT_MARKER_COLOR,
        shape=item.get("shape") or DEFAULT_MARKER_SHAPE,
        **fields,
    )


def parse_candles(items: list[Any]) -> list[PriceCandle]:
    """Parse candles, dropping malformed rows; sorted and unique by time."""
    by_time: dict[int, PriceCandle] = {}
    dropped = 0
    for item in items:
        if not isinstance(item, Mapping):
            dropped += 1
            continue
        time = coerce_int(item.get("time"))
        values = [coerce_float(item.get(k)) for k in ("open", "high", "low", "close")]
        if time is None or any(v is None for v in values):
            dropped += 1
            continue
        o, h, l, c = values
        by_time[time] = PriceCandle(time=time, open=o, high=h, low=l, close=c)

    if dropped:
        log.warning("scan_payload.candles_dropped", count=dropped)
    return [by_time[t] for t in sorted(by_time)]


def parse_points(items: list[Any]) -> list[LinePoint]:
    """Parse ``{time, value}`` points; sorted and unique by time."""
    by_time: dict[int, LinePoint] = {}
    for item in items:
        if not isinstance(item, Mapping):
            continue
        time = coerce_int(item.get("time"))
        value = coerce_float(item.get("value"))
        if time is None or value is None:
            continue
        by_time[time] = LinePoint(time=time, value=value)
    return [by_time[t] for t in sorted(by_time)]


def build_chart_title(
    scrip: str,
    pattern: str,
    parameter: Optional[str] = None,
    filtered: bool = True,
) -> str:
    """Title shown above the chart; it also drives the bowl-mode hint.

    >>> build_chart_title('TCS', 'Bowl')
    'TCS - Bowl'
    >>> build_chart_title('TCS', 'Narrow Range Break', parameter='ema50')
    'TCS - Narrow Range Break [EMA50]'
    >>> build_chart_title('TCS', 'Bowl', filtered=False)
    'TCS - 10Y Price History'
    """
    if not scrip:
        return "Select a symbol to view chart"
    if not filtered:
        return f"{scrip} - 10Y Price History"
    suffix = f" [{parameter.upper()}]" if parameter and parameter != "close" else ""
    return f"{scrip} - {pattern}{suffix}"
