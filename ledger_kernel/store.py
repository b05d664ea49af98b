"""
Ledger Kernel — Position Store

Stateful owner of one chart's positions and settings.
Every mutation funnels through _refresh(), the single writer of derived
fields, before returning; callers never see stale financials.

Reference rules are checked by invariants.py on add/update.
Unknown ids are no-ops, not errors.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Deque, Dict, List, Mapping, Optional

from .codec import new_position_id, normalize_positions
from .constants import MAX_HISTORY_SIZE
from .domain_types import (
    INPUT_FIELDS, NON_BILLABLE, ROLE_TYPES, GlobalSettings, Position,
    PositionInput, coerce_number, parse_number,
)
from .financials import compute_with_settings
from .invariants import validate_manager_assignment
from .sample_data import sample_positions

logger = logging.getLogger(__name__)

# Fields bulk_overwrite may touch
BULK_FIELDS = ("rate", "utilization")

_NUMERIC_FIELDS = ("salary", "rate", "utilization")


class PositionStore:
    """
    Ordered in-memory collection of positions plus the current settings.

    Insertion order is kept for table display; it has no other meaning.
    Position-changing operations push an undo snapshot first.
    """

    def __init__(
        self,
        settings: GlobalSettings | None = None,
        history_size: int = MAX_HISTORY_SIZE,
    ) -> None:
        self._settings = settings or GlobalSettings()
        self._positions: List[Position] = []
        self._history: Deque[List[Position]] = deque(maxlen=history_size)

    # -- State access -------------------------------------------------------

    @property
    def settings(self) -> GlobalSettings:
        return self._settings

    @property
    def positions(self) -> List[Position]:
        """Copies, in display order. Mutating them does not touch the store."""
        return [p.copy() for p in self._positions]

    @property
    def can_undo(self) -> bool:
        return bool(self._history)

    def get(self, position_id: str) -> Optional[Position]:
        found = self._find(position_id)
        return found.copy() if found is not None else None

    def __len__(self) -> int:
        return len(self._positions)

    # -- Position operations ------------------------------------------------

    def add(self, position_input: PositionInput) -> Position:
        """Create a position with a fresh id under the current settings."""
        if position_input.role_type not in ROLE_TYPES:
            raise ValueError(
                f"Invalid role_type {position_input.role_type!r}: "
                f"must be one of {list(ROLE_TYPES)}"
            )
        position = Position(
            id=new_position_id(),
            role=position_input.role,
            manager_id=position_input.manager_id,
            role_type=position_input.role_type,
            salary=coerce_number(position_input.salary),
            rate=coerce_number(position_input.rate),
            utilization=coerce_number(position_input.utilization),
        )
        validate_manager_assignment(self._positions, position.id, position.manager_id)

        self._save_for_undo()
        self._refresh(position)
        self._positions.append(position)
        logger.debug("Added position %s (%s)", position.id, position.role)
        return position.copy()

    def update(
        self, position_id: str, changes: Mapping[str, Any],
    ) -> Optional[Position]:
        """
        Merge *changes* (snake_case input fields) into a position.
        Fields not named keep their values. Returns None for an unknown id.
        """
        unknown = sorted(set(changes) - set(INPUT_FIELDS))
        if unknown:
            raise ValueError(
                f"Unknown position field(s) {unknown}: valid fields {list(INPUT_FIELDS)}"
            )
        if "role_type" in changes and changes["role_type"] not in ROLE_TYPES:
            raise ValueError(
                f"Invalid role_type {changes['role_type']!r}: "
                f"must be one of {list(ROLE_TYPES)}"
            )

        position = self._find(position_id)
        if position is None:
            return None

        if "manager_id" in changes:
            new_manager = changes["manager_id"] or None
            if new_manager != position.manager_id:
                validate_manager_assignment(self._positions, position_id, new_manager)

        self._save_for_undo()
        for name, value in changes.items():
            if name in _NUMERIC_FIELDS:
                value = coerce_number(value)
            elif name == "manager_id":
                value = value or None
            elif name == "role":
                value = str(value or "")
            setattr(position, name, value)
        self._refresh(position)
        logger.debug("Updated position %s: %s", position_id, sorted(changes))
        return position.copy()

    def duplicate(self, position_id: str) -> Optional[Position]:
        """Add a copy of a position's inputs under the same manager."""
        source = self._find(position_id)
        if source is None:
            return None
        return self.add(source.to_input())

    def delete(self, position_id: str) -> bool:
        """
        Remove a position. Its direct reports move up to its own manager,
        or become roots when that manager is missing or is the report
        itself (a loop in imported data). Returns False for an unknown id.
        """
        position = self._find(position_id)
        if position is None:
            return False

        self._save_for_undo()
        new_manager = position.manager_id
        self._positions = [p for p in self._positions if p.id != position_id]
        remaining = {p.id for p in self._positions}
        for p in self._positions:
            if p.manager_id == position_id:
                if new_manager == p.id or new_manager not in remaining:
                    p.manager_id = None
                else:
                    p.manager_id = new_manager
        logger.debug(
            "Deleted position %s, reports re-parented to %s", position_id, new_manager,
        )
        return True

    def delete_all(self) -> None:
        self._save_for_undo()
        self._positions = []
        logger.debug("Deleted all positions")

    def bulk_overwrite(self, field_name: str, value: Any) -> int:
        """
        Set rate or utilization on every billable position.
        Non-billable positions are skipped. Returns how many were set.
        A value that is not a finite number raises ValueError and
        leaves the chart untouched.
        """
        if field_name not in BULK_FIELDS:
            raise ValueError(
                f"Cannot bulk overwrite {field_name!r}: must be one of {list(BULK_FIELDS)}"
            )
        number = parse_number(value)
        if number is None:
            raise ValueError(
                f"Cannot bulk overwrite {field_name!r} with {value!r}: not a finite number"
            )

        self._save_for_undo()
        touched = 0
        for p in self._positions:
            if not p.is_billable:
                continue
            setattr(p, field_name, number)
            self._refresh(p)
            touched += 1
        logger.debug("Bulk overwrite %s=%s on %d positions", field_name, number, touched)
        return touched

    def replace_all(self, raw_positions: Any) -> None:
        """Load untrusted position dicts through import normalization."""
        positions = normalize_positions(raw_positions, self._settings)
        self._save_for_undo()
        self._positions = positions

    def load_sample_data(self) -> None:
        self.replace_all(sample_positions())

    # -- Settings -----------------------------------------------------------

    def recompute_all(self, settings: GlobalSettings) -> None:
        """
        Install new settings and recompute every position's derived fields.
        Inputs are left untouched. This is the only way settings change.
        """
        self._settings = settings
        for p in self._positions:
            self._refresh(p)
        logger.debug("Recomputed %d positions under %s", len(self._positions), settings)

    # -- Undo ---------------------------------------------------------------

    def undo(self) -> bool:
        """
        Restore the collection as it was before the last position change,
        recomputed under the current settings. False if nothing to undo.
        """
        if not self._history:
            return False
        self._positions = self._history.pop()
        for p in self._positions:
            self._refresh(p)
        return True

    def clear_history(self) -> None:
        self._history.clear()

    # -- Internals ----------------------------------------------------------

    def _find(self, position_id: str) -> Optional[Position]:
        for p in self._positions:
            if p.id == position_id:
                return p
        return None

    def _save_for_undo(self) -> None:
        self._history.append([p.copy() for p in self._positions])

    def _refresh(self, position: Position) -> None:
        """Single writer of derived fields."""
        if position.role_type == NON_BILLABLE:
            position.rate = 0.0
            position.utilization = 0.0
        position.financials = compute_with_settings(position, self._settings)

    # -- Serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "positions": [p.to_dict() for p in self._positions],
            "settings": self._settings.to_dict(),
        }
