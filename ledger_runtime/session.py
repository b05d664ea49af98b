"""
Chart Session — orchestrates one PositionStore + persistence.

Apply-then-autosave order:
  1. store operation                 — may raise InvariantViolationError
  2. repo.save_chart(...)            — only if step 1 succeeded
  3. autosave failure                — logged, status 'error', never raised

A failed write is a missed autosave; the in-memory chart stays
authoritative and the next successful mutation saves it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from ledger_kernel.codec import decode_share_data
from ledger_kernel.diagnostics import compute_diagnostics
from ledger_kernel.domain_types import GlobalSettings, Position, PositionInput
from ledger_kernel.financials import summarize_totals
from ledger_kernel.hashing import canonical_hash
from ledger_kernel.hierarchy import build_forest
from ledger_kernel.store import PositionStore

from .chart_repository import ChartRepository, ChartRepositoryError

logger = logging.getLogger(__name__)

AUTOSAVE_IDLE = "idle"
AUTOSAVE_SAVED = "saved"
AUTOSAVE_ERROR = "error"
AUTOSAVE_DISABLED = "disabled"


class ChartSession:
    """
    Owns the PositionStore for one chart id and keeps the repository in
    step with it. Not thread-safe: callers serialize access per chart.
    """

    def __init__(
        self,
        chart_id: str,
        repo: ChartRepository,
        autosave: bool = True,
    ) -> None:
        self._chart_id = chart_id
        self._repo = repo
        self._autosave_enabled = autosave
        self._store = PositionStore()
        self._last_saved_hash: str = ""
        self._autosave_status: str = AUTOSAVE_IDLE if autosave else AUTOSAVE_DISABLED
        self._is_sample_data: bool = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def chart_id(self) -> str:
        return self._chart_id

    @property
    def store(self) -> PositionStore:
        return self._store

    @property
    def autosave_status(self) -> str:
        return self._autosave_status

    @property
    def is_sample_data(self) -> bool:
        return self._is_sample_data

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """
        Load the saved chart, or the sample organization if there is none
        or the saved one cannot be read. Loading is not undoable.
        """
        loaded = None
        try:
            loaded = self._repo.load_chart(self._chart_id)
        except ChartRepositoryError:
            logger.exception("Failed to load chart %r, loading sample data", self._chart_id)

        if loaded is not None:
            raw_positions, raw_settings = loaded
            self._store = PositionStore(GlobalSettings.from_dict(raw_settings))
            try:
                self._store.replace_all(raw_positions)
                self._is_sample_data = False
                self._last_saved_hash = self._state_hash()
            except ValueError:
                logger.exception("Saved chart %r is malformed, loading sample data", self._chart_id)
                loaded = None

        if loaded is None:
            self._store = PositionStore()
            self._store.load_sample_data()
            self._is_sample_data = True

        self._store.clear_history()
        if self._autosave_enabled and self._last_saved_hash:
            self._autosave_status = AUTOSAVE_SAVED

    # ------------------------------------------------------------------
    # Position operations
    # ------------------------------------------------------------------

    def add_position(self, position_input: PositionInput) -> Position:
        position = self._store.add(position_input)
        self._after_edit()
        return position

    def update_position(
        self, position_id: str, changes: Mapping[str, Any],
    ) -> Optional[Position]:
        position = self._store.update(position_id, changes)
        if position is not None:
            self._after_edit()
        return position

    def duplicate_position(self, position_id: str) -> Optional[Position]:
        position = self._store.duplicate(position_id)
        if position is not None:
            self._after_edit()
        return position

    def delete_position(self, position_id: str) -> bool:
        deleted = self._store.delete(position_id)
        if deleted:
            self._after_edit()
        return deleted

    def delete_all(self) -> None:
        self._store.delete_all()
        self._after_edit()

    def bulk_overwrite(self, field_name: str, value: Any) -> int:
        touched = self._store.bulk_overwrite(field_name, value)
        self._after_edit()
        return touched

    def update_settings(self, settings: GlobalSettings) -> None:
        self._store.recompute_all(settings)
        self._autosave()

    def undo(self) -> bool:
        undone = self._store.undo()
        if undone:
            self._autosave()
        return undone

    def load_sample_data(self) -> None:
        self._store.load_sample_data()
        self._is_sample_data = True
        self._autosave()

    def import_share_data(self, encoded: str) -> int:
        """
        Replace the chart with share-link data. Raises ShareLinkError
        without touching the chart if the data is bad.
        """
        positions = decode_share_data(encoded, self._store.settings)
        self._store.replace_all([p.to_dict() for p in positions])
        self._after_edit()
        return len(positions)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_state(self) -> Dict[str, Any]:
        """Everything a client needs to render the chart."""
        positions = self._store.positions
        settings = self._store.settings
        return {
            "chart_id": self._chart_id,
            "positions": [p.to_dict() for p in positions],
            "forest": [node.to_dict() for node in build_forest(positions)],
            "settings": settings.to_dict(),
            "totals": summarize_totals(positions, settings).to_dict(),
            "diagnostics": compute_diagnostics(positions, settings),
            "state_hash": canonical_hash(positions, settings),
            "autosave_status": self._autosave_status,
            "can_undo": self._store.can_undo,
            "is_sample_data": self._is_sample_data,
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> None:
        """Write the chart now. Raises ChartRepositoryError on failure."""
        state_hash = self._state_hash()
        data = self._store.to_dict()
        self._repo.save_chart(
            self._chart_id, data["positions"], data["settings"], state_hash,
        )
        self._last_saved_hash = state_hash

    def _after_edit(self) -> None:
        self._is_sample_data = False
        self._autosave()

    def _autosave(self) -> None:
        if not self._autosave_enabled:
            self._autosave_status = AUTOSAVE_DISABLED
            return
        if self._state_hash() == self._last_saved_hash:
            self._autosave_status = AUTOSAVE_SAVED
            return
        try:
            self.save()
        except ChartRepositoryError:
            logger.exception("Autosave failed for chart %r", self._chart_id)
            self._autosave_status = AUTOSAVE_ERROR
            return
        self._autosave_status = AUTOSAVE_SAVED

    def _state_hash(self) -> str:
        return canonical_hash(self._store.positions, self._store.settings)
