"""
Ledger Kernel — Collaborator Payloads

Data shapes handed to the export table and the AI-analysis service.
Produces plain lists/dicts only; writing files and calling models
happen elsewhere.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from .constants import ANNUAL_BILLABLE_WEEKS, EXPORT_HEADERS
from .domain_types import GlobalSettings, Position
from .hierarchy import count_direct_reports


# ---------------------------------------------------------------------------
# Export table
# ---------------------------------------------------------------------------

def build_export_rows(positions: Sequence[Position]) -> List[List[Any]]:
    """
    Header row, one row per position, then a Totals row.

    Totals sum Salary, Total Salary, Overhead Cost, Revenue and Profit;
    Rate and Utilization are left blank.
    """
    rows: List[List[Any]] = [list(EXPORT_HEADERS)]
    totals = {"salary": 0.0, "total_salary": 0.0, "overhead_cost": 0.0,
              "revenue": 0.0, "profit": 0.0}

    for p in positions:
        f = p.financials
        rows.append([
            p.role, p.salary, f.total_salary, f.overhead_cost,
            p.rate, p.utilization, f.revenue, f.profit,
        ])
        totals["salary"] += p.salary
        totals["total_salary"] += f.total_salary
        totals["overhead_cost"] += f.overhead_cost
        totals["revenue"] += f.revenue
        totals["profit"] += f.profit

    rows.append([
        "Totals", totals["salary"], totals["total_salary"], totals["overhead_cost"],
        "", "", totals["revenue"], totals["profit"],
    ])
    return rows


# ---------------------------------------------------------------------------
# AI analysis
# ---------------------------------------------------------------------------

ANALYSIS_FIELDS = ("strengths", "risks_opportunities", "key_observations")


def build_analysis_payload(
    positions: Sequence[Position], settings: GlobalSettings,
) -> Dict[str, Any]:
    """
    Positions with a directReports count and without id/managerId,
    plus the chart settings.
    """
    reports = count_direct_reports(positions)
    payload_positions = []
    for p in positions:
        d = p.to_dict()
        d.pop("id")
        d.pop("managerId")
        d["directReports"] = reports[p.id]
        payload_positions.append(d)

    settings_dict = settings.to_dict()
    settings_dict["annualBillableWeeks"] = ANNUAL_BILLABLE_WEEKS
    return {"positions": payload_positions, "settings": settings_dict}


@dataclass(frozen=True)
class AnalysisResult:
    """What the analysis service must send back: three lists of sentences."""

    strengths: List[str] = field(default_factory=list)
    risks_opportunities: List[str] = field(default_factory=list)
    key_observations: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "AnalysisResult":
        """Hard fail unless *data* has exactly the three string-array fields."""
        if not isinstance(data, dict):
            raise ValueError("Analysis result must be a JSON object")
        keys = set(data)
        if keys != set(ANALYSIS_FIELDS):
            raise ValueError(
                f"Analysis result keys {sorted(keys)} != {sorted(ANALYSIS_FIELDS)}"
            )
        for name in ANALYSIS_FIELDS:
            value = data[name]
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ValueError(f"Analysis field {name!r} must be a list of strings")
        return cls(**{name: list(data[name]) for name in ANALYSIS_FIELDS})

    def to_dict(self) -> dict:
        return {name: list(getattr(self, name)) for name in ANALYSIS_FIELDS}
