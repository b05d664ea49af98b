"""
Ledger Kernel — Default Values

All magic numbers live here as module-level defaults.
Runtime settings are carried in GlobalSettings and passed explicitly
into every financial computation.
"""

import re

# --- Global settings defaults ---
DEFAULT_BENEFITS_PERCENT: float = 30
DEFAULT_OVERHEAD_PERCENT: float = 15
DEFAULT_WORK_WEEK_HOURS: float = 35

# Assumed billable weeks per year. Fixed, not a setting.
ANNUAL_BILLABLE_WEEKS: int = 44

# --- Undo ---
MAX_HISTORY_SIZE: int = 30

# --- Import normalization ---
# Roles with no roleType that look like C-suite titles are non-billable.
C_SUITE_PATTERN = re.compile(r"^(ceo|coo|cfo|cto|cmo|chief)", re.IGNORECASE)

# --- Share links ---
SHARE_QUERY_PARAM: str = "data"

# --- Diagnostics ---
# Span of control above this many direct reports is flagged.
MAX_HEALTHY_DIRECT_REPORTS: int = 8
# A manager with more than this many reports ...
BUSY_MANAGER_MIN_REPORTS: int = 2
# ... and a utilization target above this percentage is flagged.
BUSY_MANAGER_MAX_UTILIZATION: float = 60

# --- Export ---
EXPORT_HEADERS = (
    "Role", "Salary", "Total Salary", "Overhead Cost",
    "Rate", "Utilization", "Revenue", "Profit",
)
