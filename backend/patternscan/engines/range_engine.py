"""
Pattern Scan — Narrow Range Engine

Turns narrow-range (NRB) markers into horizontal high/low segments. Each
segment is a constant two-point line from ``range_start_time`` to
``range_end_time``, keyed by ``nrb_id`` when the detector sends one and by
the marker's own time otherwise.
"""

from __future__ import annotations

from typing import Iterable

import structlog

from patternscan.models import Marker, RangeSegment

log = structlog.get_logger(__name__)


def segment_id(marker: Marker) -> str:
    """Stable identifier for the range a marker describes."""
    return str(marker.nrb_id if marker.nrb_id is not None else marker.time)


def build_range_segments(markers: Iterable[Marker]) -> list[RangeSegment]:
    """Build one ``RangeSegment`` per distinct range id.

    Markers missing any of the four range fields are skipped. Reversed
    start/end times are swapped. When several
    markers share an id, the last one wins, so a breakout reported twice
    still draws a single pair of lines.
    """
    segments: dict[str, RangeSegment] = {}
    for marker in markers:
        if not marker.has_range:
            continue
        sid = segment_id(marker)
        if sid in segments:
            log.debug("range_segments.duplicate_id", id=sid)
        # Line series need ascending time
        start, end = sorted((marker.range_start_time, marker.range_end_time))
        segments[sid] = RangeSegment(
            id=sid,
            high=marker.range_high,
            low=marker.range_low,
            start_time=start,
            end_time=end,
        )
    return list(segments.values())
