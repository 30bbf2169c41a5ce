"""
Pattern Scan — Pattern Clusterer

Groups bowl-candidate markers into pattern instances.

The detector normally tags every marker of one bowl (left rim, bottom,
right rim) with a shared ``pattern_id``. When it does not (every marker
lacks an id, or all of them carry the same one), markers are clustered by
time instead: a new cluster starts whenever the gap to the previous marker
exceeds ``cluster_gap_seconds`` (30 days by default, the detector's own
grouping window).

Explicit ids and cluster indexes are kept apart through ``PatternIdentity``,
so a renumbered cluster never steals the key or color of a real pattern id.
"""

from __future__ import annotations

from typing import Optional, Sequence

import structlog

from patternscan.config import OverlayConfig
from patternscan.models import Marker, PatternIdentity, PatternInstance

log = structlog.get_logger(__name__)


def cluster_by_time(markers: Sequence[Marker], gap_seconds: int) -> list[list[Marker]]:
    """Split markers into chronological runs separated by gaps > *gap_seconds*.

    A gap of exactly *gap_seconds* keeps the markers together.
    """
    clusters: list[list[Marker]] = []
    last_time: Optional[int] = None
    for marker in sorted(markers, key=lambda m: m.time):
        if last_time is None or marker.time - last_time > gap_seconds:
            clusters.append([])
        clusters[-1].append(marker)
        last_time = marker.time
    return clusters


class PatternClusterer:
    """Turn bowl-candidate markers into ``PatternInstance`` groups."""

    def __init__(self, config: Optional[OverlayConfig] = None):
        self.config = config or OverlayConfig()

    def cluster(self, markers: Sequence[Marker]) -> list[PatternInstance]:
        """Group *markers* into pattern instances.

        Returns:
            Instances ordered by their first member's time; members of each
            instance are sorted by time. Empty input gives an empty list.
        """
        if not markers:
            return []

        distinct_ids = {m.pattern_id for m in markers if m.pattern_id is not None}

        if len(markers) == 1:
            only = markers[0]
            identity = (
                PatternIdentity.explicit(only.pattern_id)
                if only.pattern_id is not None
                else PatternIdentity.inferred(1)
            )
            return [PatternInstance(identity=identity, members=[only])]

        if len(distinct_ids) <= 1:
            log.warning(
                "bowl_clusters.fallback",
                markers=len(markers),
                shared_id=next(iter(distinct_ids), None),
                gap_seconds=self.config.cluster_gap_seconds,
            )
            return self._inferred(markers)

        return self._explicit(markers)

    # ── Grouping strategies ──────────────────────────

    def _inferred(self, markers: Sequence[Marker]) -> list[PatternInstance]:
        clusters = cluster_by_time(markers, self.config.cluster_gap_seconds)
        return [
            PatternInstance(identity=PatternIdentity.inferred(index), members=members)
            for index, members in enumerate(clusters, start=1)
        ]

    def _explicit(self, markers: Sequence[Marker]) -> list[PatternInstance]:
        groups: dict[int, list[Marker]] = {}
        orphans: list[Marker] = []
        for marker in markers:
            if marker.pattern_id is None:
                orphans.append(marker)
            else:
                groups.setdefault(marker.pattern_id, []).append(marker)

        instances = [
            PatternInstance(
                identity=PatternIdentity.explicit(pattern_id),
                members=sorted(members, key=lambda m: m.time),
            )
            for pattern_id, members in groups.items()
        ]

        # Id-less markers mixed in with tagged ones get their own inferred clusters
        if orphans:
            log.debug("bowl_clusters.orphans", markers=len(orphans))
            instances.extend(self._inferred(orphans))

        instances.sort(key=lambda inst: (inst.first_time, inst.key))
        log.debug("bowl_clusters.grouped", instances=len(instances))
        return instances


def cluster_patterns(
    markers: Sequence[Marker],
    config: Optional[OverlayConfig] = None,
) -> list[PatternInstance]:
    """Module-level shortcut for ``PatternClusterer(config).cluster(markers)``."""
    return PatternClusterer(config).cluster(markers)
