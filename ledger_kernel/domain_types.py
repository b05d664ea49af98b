"""
Ledger Kernel — Core Domain Types

Pure data. No financial math, no store logic.
Python attributes are snake_case; the JSON wire shape is camelCase
(managerId, roleType, totalSalary, ...) so that persisted charts and
share links stay readable by every collaborator.

────────────────────────────────────────────────
DOMAIN GLOSSARY
────────────────────────────────────────────────

Position:
    A seat in the org chart with financial attributes.

Billable role:
    A position whose time is sold to clients and therefore earns revenue.

Utilization:
    Percentage of annual billable hours actually billed.

Overhead:
    Non-salary operating cost, as a percentage of total salary.

Margin:
    Profit as a percentage of revenue.

────────────────────────────────────────────────
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from .constants import (
    ANNUAL_BILLABLE_WEEKS,
    DEFAULT_BENEFITS_PERCENT,
    DEFAULT_OVERHEAD_PERCENT,
    DEFAULT_WORK_WEEK_HOURS,
)


# ── Role Types ────────────────────────────────────────────────
BILLABLE: str = "billable"
NON_BILLABLE: str = "nonBillable"
ROLE_TYPES = (BILLABLE, NON_BILLABLE)


# ── Numeric Coercion ──────────────────────────────────────────

def parse_number(value: Any) -> Optional[float]:
    """
    Parse user input to a finite float, or None if it is not one.
    Booleans, blanks, NaN and infinities are not numbers here.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def coerce_number(value: Any) -> float:
    """parse_number, with anything unparseable becoming 0.0."""
    number = parse_number(value)
    return 0.0 if number is None else number


# ── Core Domain Types ─────────────────────────────────────────

@dataclass(frozen=True)
class GlobalSettings:
    """Chart-wide multipliers. Replaced as a whole, never mutated."""

    benefits_percent: float = DEFAULT_BENEFITS_PERCENT
    overhead_percent: float = DEFAULT_OVERHEAD_PERCENT
    work_week_hours: float = DEFAULT_WORK_WEEK_HOURS

    @property
    def benefits_multiplier(self) -> float:
        return 1 + self.benefits_percent / 100

    @property
    def overhead_multiplier(self) -> float:
        return self.overhead_percent / 100

    @property
    def annual_billable_hours(self) -> float:
        return self.work_week_hours * ANNUAL_BILLABLE_WEEKS

    def to_dict(self) -> dict:
        return {
            "benefitsPercent": self.benefits_percent,
            "overheadPercent": self.overhead_percent,
            "workWeekHours": self.work_week_hours,
        }

    @classmethod
    def from_dict(
        cls,
        data: Optional[Dict[str, Any]],
        fallback: Optional["GlobalSettings"] = None,
    ) -> "GlobalSettings":
        """
        Missing or non-numeric keys keep *fallback*'s value, or the
        defaults when no fallback is given.
        """
        data = data or {}
        base = fallback or cls()
        return cls(
            benefits_percent=_number_or_default(
                data.get("benefitsPercent"), base.benefits_percent,
            ),
            overhead_percent=_number_or_default(
                data.get("overheadPercent"), base.overhead_percent,
            ),
            work_week_hours=_number_or_default(
                data.get("workWeekHours"), base.work_week_hours,
            ),
        )


def _number_or_default(value: Any, default: float) -> float:
    number = parse_number(value)
    return default if number is None else number


@dataclass(frozen=True)
class Financials:
    """Derived fields. Only ever produced by compute_financials."""

    total_salary: float = 0.0
    overhead_cost: float = 0.0
    total_cost: float = 0.0
    revenue: float = 0.0
    profit: float = 0.0
    margin: float = 0.0

    def to_dict(self) -> dict:
        return {
            "totalSalary": self.total_salary,
            "overheadCost": self.overhead_cost,
            "totalCost": self.total_cost,
            "revenue": self.revenue,
            "profit": self.profit,
            "margin": self.margin,
        }


@dataclass
class PositionInput:
    """Caller-supplied fields of a position (everything but id and financials)."""

    role: str = ""
    manager_id: Optional[str] = None
    role_type: str = BILLABLE
    salary: float = 0.0
    rate: float = 0.0
    utilization: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PositionInput":
        """Build from a camelCase dict, coercing every numeric field."""
        role_type = data.get("roleType") or BILLABLE
        if role_type not in ROLE_TYPES:
            raise ValueError(
                f"Invalid roleType {role_type!r}: must be one of {list(ROLE_TYPES)}"
            )
        return cls(
            role=str(data.get("role") or ""),
            manager_id=data.get("managerId") or None,
            role_type=role_type,
            salary=coerce_number(data.get("salary")),
            rate=coerce_number(data.get("rate")),
            utilization=coerce_number(data.get("utilization")),
        )


# Fields a caller may change through PositionStore.update()
INPUT_FIELDS = ("role", "manager_id", "role_type", "salary", "rate", "utilization")


@dataclass
class Position:
    """A single seat in the org chart. Derived fields live in ``financials``."""

    id: str
    role: str
    manager_id: Optional[str] = None
    role_type: str = BILLABLE
    salary: float = 0.0
    rate: float = 0.0
    utilization: float = 0.0
    financials: Financials = field(default_factory=Financials)

    @property
    def is_billable(self) -> bool:
        return self.role_type == BILLABLE

    def copy(self) -> "Position":
        return replace(self)

    def to_input(self) -> PositionInput:
        return PositionInput(
            role=self.role,
            manager_id=self.manager_id,
            role_type=self.role_type,
            salary=self.salary,
            rate=self.rate,
            utilization=self.utilization,
        )

    def to_dict(self) -> dict:
        """Serialise to the camelCase wire shape, financials flattened in."""
        d = {
            "id": self.id,
            "role": self.role,
            "managerId": self.manager_id,
            "roleType": self.role_type,
            "salary": self.salary,
            "rate": self.rate,
            "utilization": self.utilization,
        }
        d.update(self.financials.to_dict())
        return d


@dataclass
class TreeNode:
    """A position placed in the forest. Rebuilt on demand, never stored."""

    position: Position
    depth: int = 0
    children: List["TreeNode"] = field(default_factory=list)

    def to_dict(self) -> dict:
        d = self.position.to_dict()
        d["depth"] = self.depth
        d["children"] = [c.to_dict() for c in self.children]
        return d


@dataclass(frozen=True)
class ChartTotals:
    """Summary row across every position in a chart."""

    salary: float = 0.0
    total_salary: float = 0.0
    overhead_cost: float = 0.0
    total_cost: float = 0.0
    revenue: float = 0.0
    profit: float = 0.0
    avg_rate: float = 0.0
    avg_utilization: float = 0.0
    total_margin: float = 0.0

    def to_dict(self) -> dict:
        return {
            "salary": self.salary,
            "totalSalary": self.total_salary,
            "overheadCost": self.overhead_cost,
            "totalCost": self.total_cost,
            "revenue": self.revenue,
            "profit": self.profit,
            "avgRate": self.avg_rate,
            "avgUtilization": self.avg_utilization,
            "totalMargin": self.total_margin,
        }
