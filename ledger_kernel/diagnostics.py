"""
Ledger Kernel — Diagnostics

Compute a diagnostic snapshot of a chart: totals, reference problems
and span-of-control warnings.
"""

from __future__ import annotations

from typing import Sequence

from .constants import (
    BUSY_MANAGER_MAX_UTILIZATION,
    BUSY_MANAGER_MIN_REPORTS,
    MAX_HEALTHY_DIRECT_REPORTS,
)
from .domain_types import GlobalSettings, Position
from .financials import summarize_totals
from .hierarchy import count_direct_reports, find_unreachable


def compute_diagnostics(
    positions: Sequence[Position], settings: GlobalSettings,
) -> dict:
    """Return a diagnostic dict summarising the chart's health."""
    reports = count_direct_reports(positions)
    unreachable = find_unreachable(positions)
    totals = summarize_totals(positions, settings)

    wide_span = [
        p.id for p in positions if reports[p.id] > MAX_HEALTHY_DIRECT_REPORTS
    ]
    busy_managers = [
        p.id for p in positions
        if reports[p.id] > BUSY_MANAGER_MIN_REPORTS
        and p.is_billable
        and p.utilization > BUSY_MANAGER_MAX_UTILIZATION
    ]

    warnings: list[str] = []

    if unreachable:
        warnings.append(
            f"{len(unreachable)} position(s) not reachable from any root "
            f"(missing, self or cyclic manager): {', '.join(unreachable)}"
        )
    if wide_span:
        warnings.append(
            f"{len(wide_span)} manager(s) with more than "
            f"{MAX_HEALTHY_DIRECT_REPORTS} direct reports: {', '.join(wide_span)}"
        )
    if busy_managers:
        warnings.append(
            f"{len(busy_managers)} manager(s) with more than "
            f"{BUSY_MANAGER_MIN_REPORTS} reports and utilization above "
            f"{BUSY_MANAGER_MAX_UTILIZATION:g}%: {', '.join(busy_managers)}"
        )
    if positions and totals.profit < 0:
        warnings.append(f"Chart runs at a loss ({totals.profit:,.0f})")

    return {
        "position_count": len(positions),
        "billable_count": sum(1 for p in positions if p.is_billable),
        "root_count": sum(1 for p in positions if p.manager_id is None),
        "totals": totals.to_dict(),
        "unreachable_positions": unreachable,
        "wide_span_managers": wide_span,
        "busy_managers": busy_managers,
        "warnings": warnings,
    }
