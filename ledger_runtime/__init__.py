"""
Ledger Runtime — Persistence Layer

Non-invasive persistence around the Ledger Kernel: one ChartSession per
chart id, autosaving the chart document after every change.
"""

from .chart_repository import ChartRepository, ChartRepositoryError
from .session import (
    AUTOSAVE_DISABLED,
    AUTOSAVE_ERROR,
    AUTOSAVE_IDLE,
    AUTOSAVE_SAVED,
    ChartSession,
)

__all__ = [
    "ChartRepository",
    "ChartRepositoryError",
    "ChartSession",
    "AUTOSAVE_DISABLED",
    "AUTOSAVE_ERROR",
    "AUTOSAVE_IDLE",
    "AUTOSAVE_SAVED",
]
