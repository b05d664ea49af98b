"""
Chart Repository — sqlite3-backed chart store.

One row per chart: the positions array and the settings object, both as
JSON, plus the canonical state hash of what was saved.

Stores the camelCase wire shape. Never trusts it on load: callers run
loaded positions through normalize_positions.

All writes are transaction-wrapped.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

_INIT_SQL = """
CREATE TABLE IF NOT EXISTS charts (
    chart_id        TEXT PRIMARY KEY,
    positions_json  TEXT NOT NULL,
    settings_json   TEXT NOT NULL,
    state_hash      TEXT NOT NULL DEFAULT '',
    position_count  INTEGER NOT NULL DEFAULT 0,
    updated_at      TEXT NOT NULL
);
"""


class ChartRepositoryError(Exception):
    """Raised when the underlying storage fails."""

    def __init__(self, chart_id: str, operation: str, cause: Exception) -> None:
        self.chart_id = chart_id
        self.operation = operation
        self.cause = cause
        super().__init__(
            f"Chart storage {operation} failed for {chart_id!r}: {cause}"
        )


class ChartRepository:
    """
    Chart document store backed by sqlite3.

    check_same_thread is off so a single repository can serve the
    backend's thread pool; a repository-wide lock serializes access
    to the shared connection.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._lock = threading.Lock()
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        self._conn.executescript(_INIT_SQL)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save_chart(
        self,
        chart_id: str,
        positions: List[dict],
        settings: dict,
        state_hash: str = "",
    ) -> None:
        """Insert or replace the chart document."""
        now = datetime.now(timezone.utc).isoformat()
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    """
                    INSERT OR REPLACE INTO charts
                        (chart_id, positions_json, settings_json, state_hash,
                         position_count, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        chart_id,
                        json.dumps(positions, ensure_ascii=False),
                        json.dumps(settings, ensure_ascii=False),
                        state_hash,
                        len(positions),
                        now,
                    ),
                )
        except sqlite3.Error as exc:
            raise ChartRepositoryError(chart_id, "save", exc) from exc

    def delete_chart(self, chart_id: str) -> bool:
        try:
            with self._lock, self._conn:
                cur = self._conn.execute(
                    "DELETE FROM charts WHERE chart_id = ?", (chart_id,),
                )
        except sqlite3.Error as exc:
            raise ChartRepositoryError(chart_id, "delete", exc) from exc
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load_chart(self, chart_id: str) -> Optional[Tuple[List[dict], dict]]:
        """Return ``(positions, settings)`` or None if never saved."""
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT positions_json, settings_json FROM charts WHERE chart_id = ?",
                    (chart_id,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise ChartRepositoryError(chart_id, "load", exc) from exc
        if row is None:
            return None
        return json.loads(row[0]), json.loads(row[1])

    def list_charts(self) -> List[dict]:
        """Chart metadata, newest first."""
        try:
            with self._lock:
                rows = self._conn.execute(
                    """
                    SELECT chart_id, position_count, state_hash, updated_at
                    FROM charts
                    ORDER BY updated_at DESC
                    """
                ).fetchall()
        except sqlite3.Error as exc:
            raise ChartRepositoryError("*", "list", exc) from exc
        return [
            {
                "chart_id": r[0],
                "position_count": r[1],
                "state_hash": r[2],
                "updated_at": r[3],
            }
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            self._conn.close()
