"""
Pattern Scan — Marker Classifier

Splits the flat marker list coming back from a pattern scan into the three
kinds of overlay it feeds: bowl curves, narrow-range lines, and plain point
markers. A marker lands in exactly one partition; bowl checks run first so a
bowl marker that happens to carry range fields is never drawn as an NRB line.
"""

from __future__ import annotations

from typing import Iterable

import structlog

from patternscan.models import Marker, MarkerPartition

log = structlog.get_logger(__name__)

BOWL_KEYWORD = "bowl"


def is_bowl_title(title: str) -> bool:
    """Chart titles mentioning "bowl" (any case) switch on bowl mode."""
    return BOWL_KEYWORD in (title or "").lower()


def is_bowl_marker(marker: Marker, bowl_mode: bool) -> bool:
    """Bowl candidate: grouped marker in bowl mode, or a BOWL label anywhere."""
    if bowl_mode and marker.pattern_id is not None:
        return True
    return BOWL_KEYWORD.upper() in (marker.text or "").upper()


def classify_markers(markers: Iterable[Marker], title: str = "") -> MarkerPartition:
    """Partition *markers* into bowl candidates, range candidates and points.

    Args:
        markers: Markers in any order.
        title: Chart title; used only for the bowl-mode hint.

    Returns:
        MarkerPartition whose three lists are disjoint and together hold
        every input marker, each list in input order.
    """
    bowl_mode = is_bowl_title(title)
    partition = MarkerPartition()

    for marker in markers:
        if is_bowl_marker(marker, bowl_mode):
            partition.bowl.append(marker)
        elif marker.has_range:
            partition.ranges.append(marker)
        else:
            partition.points.append(marker)

    if bowl_mode and not partition.bowl:
        log.warning(
            "markers.bowl_mode_without_bowls",
            title=title,
            markers=len(partition.ranges) + len(partition.points),
        )

    log.debug(
        "markers.classified",
        bowl=len(partition.bowl),
        ranges=len(partition.ranges),
        points=len(partition.points),
    )
    return partition
