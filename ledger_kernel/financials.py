"""
Ledger Kernel — Financial Calculator

The only place derived position fields are computed.
Pure functions. Inputs are assumed already coerced (see coerce_number).
"""

from __future__ import annotations

from typing import Iterable

from .domain_types import (
    BILLABLE, ChartTotals, Financials, GlobalSettings, Position, PositionInput,
)


def compute_financials(
    position_input: PositionInput | Position,
    benefits_multiplier: float,
    overhead_multiplier: float,
    annual_billable_hours: float,
) -> Financials:
    """
    Map a position's raw inputs plus chart multipliers to derived fields.

        total_salary  = salary * benefits_multiplier
        overhead_cost = total_salary * overhead_multiplier
        total_cost    = total_salary + overhead_cost
        revenue       = rate * utilization% * annual_billable_hours  (billable only)
        profit        = revenue - total_cost
        margin        = profit / revenue * 100, else -100 with cost, else 0
    """
    total_salary = position_input.salary * benefits_multiplier
    overhead_cost = total_salary * overhead_multiplier
    total_cost = total_salary + overhead_cost

    revenue = 0.0
    if position_input.role_type == BILLABLE:
        revenue = (
            position_input.rate
            * (position_input.utilization / 100)
            * annual_billable_hours
        )

    profit = revenue - total_cost
    if revenue > 0:
        margin = (profit / revenue) * 100
    elif total_cost > 0:
        margin = -100.0
    else:
        margin = 0.0

    return Financials(
        total_salary=total_salary,
        overhead_cost=overhead_cost,
        total_cost=total_cost,
        revenue=revenue,
        profit=profit,
        margin=margin,
    )


def compute_with_settings(
    position_input: PositionInput | Position, settings: GlobalSettings,
) -> Financials:
    """compute_financials with the multipliers taken from *settings*."""
    return compute_financials(
        position_input,
        settings.benefits_multiplier,
        settings.overhead_multiplier,
        settings.annual_billable_hours,
    )


def summarize_totals(
    positions: Iterable[Position], settings: GlobalSettings,
) -> ChartTotals:
    """
    Totals row across a chart.

    avg_utilization is revenue-weighted: total revenue over the revenue
    every billable seat would earn at 100% utilization.
    """
    salary = total_salary = overhead_cost = total_cost = 0.0
    revenue = profit = 0.0
    billable_rate_sum = 0.0
    billable_count = 0

    for p in positions:
        f = p.financials
        salary += p.salary
        total_salary += f.total_salary
        overhead_cost += f.overhead_cost
        total_cost += f.total_cost
        revenue += f.revenue
        profit += f.profit
        if p.is_billable:
            billable_rate_sum += p.rate
            billable_count += 1

    potential_revenue = billable_rate_sum * settings.annual_billable_hours
    avg_rate = billable_rate_sum / billable_count if billable_count else 0.0
    avg_utilization = (
        revenue / potential_revenue * 100 if potential_revenue > 0 else 0.0
    )
    total_margin = profit / revenue * 100 if revenue > 0 else 0.0

    return ChartTotals(
        salary=salary,
        total_salary=total_salary,
        overhead_cost=overhead_cost,
        total_cost=total_cost,
        revenue=revenue,
        profit=profit,
        avg_rate=avg_rate,
        avg_utilization=avg_utilization,
        total_margin=total_margin,
    )
