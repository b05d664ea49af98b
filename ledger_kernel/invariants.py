"""
Ledger Kernel — Write-Time Reference Checks

Hard-fail validation of manager assignments. Every check raises
InvariantViolationError on failure. Imported charts are not run through
these checks; diagnostics reports their unreachable positions instead.
"""

from __future__ import annotations

from typing import Optional, Sequence

from .domain_types import Position
from .hierarchy import would_create_cycle


class InvariantViolationError(Exception):
    """Raised when a write would break the org chart's reference rules."""

    def __init__(self, rule: str, detail: str) -> None:
        self.rule = rule
        self.detail = detail
        super().__init__(f"[INVARIANT:{rule}] {detail}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_manager_assignment(
    positions: Sequence[Position],
    position_id: str,
    manager_id: Optional[str],
) -> None:
    """
    Check that *position_id* may report to *manager_id*.

    positions is the collection as it stands before the write.
    """
    if manager_id is None:
        return
    _check_not_self(position_id, manager_id)
    _check_manager_exists(positions, manager_id)
    _check_no_cycle(positions, position_id, manager_id)


# ---------------------------------------------------------------------------
# Individual checks (private)
# ---------------------------------------------------------------------------

def _check_not_self(position_id: str, manager_id: str) -> None:
    if position_id == manager_id:
        raise InvariantViolationError(
            "self_manager",
            f"Position {position_id!r} cannot be its own manager",
        )


def _check_manager_exists(positions: Sequence[Position], manager_id: str) -> None:
    if not any(p.id == manager_id for p in positions):
        raise InvariantViolationError(
            "manager_ref",
            f"Manager {manager_id!r} does not exist",
        )


def _check_no_cycle(
    positions: Sequence[Position], position_id: str, manager_id: str,
) -> None:
    if would_create_cycle(positions, position_id, manager_id):
        raise InvariantViolationError(
            "manager_cycle",
            f"Reporting {position_id!r} to {manager_id!r} would create "
            f"a management cycle",
        )
