"""
Pattern Scan — Series Lifecycle Manager

Owns the key → line-series handle table that survives between render
cycles. Each cycle hands it the complete set of lines that should be
visible; it diffs that against the previous cycle and issues the smallest
set of surface calls that gets the chart there:

  - new key            → take an idle handle (or create one), set its data
  - key still present  → replace its data, re-apply its style
  - key gone           → clear its data and park the handle as idle

Handles are never destroyed. A cleared handle is invisible and, from the
following cycle on, gets recycled for the next new key, so the surface
holds at most as many line series as the two busiest adjacent cycles.
"""

from __future__ import annotations

from typing import Hashable, Mapping, Sequence

import structlog

from patternscan.models import LinePoint, LineStyle, ReconcileReport
from patternscan.surface import ChartSurface

log = structlog.get_logger(__name__)


class SeriesLifecycleManager:
    """Reconcile desired overlay lines against live surface handles."""

    def __init__(self, surface: ChartSurface):
        self._surface = surface
        self._handles: dict[str, Hashable] = {}
        self._idle: list[Hashable] = []

    # ── Inspection ────────────────────────────────────

    @property
    def surface(self) -> ChartSurface:
        return self._surface

    @property
    def keys(self) -> list[str]:
        """Keys with a live handle, in insertion order."""
        return list(self._handles)

    @property
    def idle_count(self) -> int:
        return len(self._idle)

    def handle_for(self, key: str) -> Hashable | None:
        return self._handles.get(key)

    # ── Reconciliation ────────────────────────────────

    def reconcile(
        self,
        lines: Mapping[str, Sequence[LinePoint]],
        styles: Mapping[str, LineStyle],
    ) -> ReconcileReport:
        """Bring the surface in line with *lines*.

        Args:
            lines: Desired points per series key.
            styles: Style per series key; must cover every key in *lines*.

        Returns:
            ReconcileReport listing the keys created, updated and cleared.
        """
        report = ReconcileReport()

        # Handles retired this cycle stay empty until the next one
        retired: list[Hashable] = []
        for key in [k for k in self._handles if k not in lines]:
            handle = self._handles.pop(key)
            self._surface.set_series_data(handle, [])
            retired.append(handle)
            report.cleared.append(key)
            log.debug("series.cleared", key=key)

        for key, points in lines.items():
            style = styles[key]
            handle = self._handles.get(key)

            if handle is None:
                if self._idle:
                    handle = self._idle.pop(0)
                    self._surface.set_series_data(handle, points)
                    self._surface.apply_style(handle, style)
                    log.debug("series.recycled", key=key)
                else:
                    handle = self._surface.create_line_series(style)
                    self._surface.set_series_data(handle, points)
                    log.debug("series.created", key=key)
                self._handles[key] = handle
                report.created.append(key)
            else:
                self._surface.set_series_data(handle, points)
                self._surface.apply_style(handle, style)
                report.updated.append(key)

        self._idle.extend(retired)
        return report

    def clear_all(self) -> ReconcileReport:
        """Clear every live line; handles stay allocated for reuse."""
        return self.reconcile({}, {})
