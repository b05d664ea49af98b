"""
Ledger Kernel
Deterministic, in-memory financial org-chart engine.
Positions carry salary/rate/utilization inputs; every derived field is
recomputed from those inputs and the chart's GlobalSettings.
"""

from .domain_types import (
    BILLABLE,
    NON_BILLABLE,
    ROLE_TYPES,
    ChartTotals,
    Financials,
    GlobalSettings,
    Position,
    PositionInput,
    TreeNode,
    coerce_number,
    parse_number,
)
from .financials import compute_financials, compute_with_settings, summarize_totals
from .hierarchy import (
    build_forest,
    count_direct_reports,
    find_unreachable,
    flatten_forest,
    would_create_cycle,
)
from .invariants import InvariantViolationError, validate_manager_assignment
from .store import BULK_FIELDS, PositionStore
from .codec import (
    ShareLinkError,
    build_share_link,
    decode_share_data,
    encode_share_data,
    normalize_positions,
)
from .export import AnalysisResult, build_analysis_payload, build_export_rows
from .hashing import canonical_hash, canonical_serialize
from .diagnostics import compute_diagnostics
from .constants import (
    ANNUAL_BILLABLE_WEEKS,
    DEFAULT_BENEFITS_PERCENT,
    DEFAULT_OVERHEAD_PERCENT,
    DEFAULT_WORK_WEEK_HOURS,
    MAX_HISTORY_SIZE,
)

__all__ = [
    "BILLABLE",
    "NON_BILLABLE",
    "ROLE_TYPES",
    "ChartTotals",
    "Financials",
    "GlobalSettings",
    "Position",
    "PositionInput",
    "TreeNode",
    "coerce_number",
    "parse_number",
    "compute_financials",
    "compute_with_settings",
    "summarize_totals",
    "build_forest",
    "count_direct_reports",
    "find_unreachable",
    "flatten_forest",
    "would_create_cycle",
    "InvariantViolationError",
    "validate_manager_assignment",
    "BULK_FIELDS",
    "PositionStore",
    "ShareLinkError",
    "build_share_link",
    "decode_share_data",
    "encode_share_data",
    "normalize_positions",
    "AnalysisResult",
    "build_analysis_payload",
    "build_export_rows",
    "canonical_hash",
    "canonical_serialize",
    "compute_diagnostics",
    "ANNUAL_BILLABLE_WEEKS",
    "DEFAULT_BENEFITS_PERCENT",
    "DEFAULT_OVERHEAD_PERCENT",
    "DEFAULT_WORK_WEEK_HOURS",
    "MAX_HISTORY_SIZE",
]
