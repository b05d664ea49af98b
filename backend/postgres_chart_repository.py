# file: backend/postgres_chart_repository.py
"""
PostgreSQL Chart Repository.

Drop-in replacement for the SQLite ChartRepository.
Same interface, PostgreSQL storage via pg8000.

Stateless: no in-memory caching. Every read hits the DB.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import List, Optional, Tuple

import pg8000.exceptions
import pg8000.native

from ledger_runtime.chart_repository import ChartRepositoryError

_INIT_SQL = """
CREATE TABLE IF NOT EXISTS charts (
    chart_id        TEXT PRIMARY KEY,
    positions       JSONB NOT NULL,
    settings        JSONB NOT NULL,
    state_hash      TEXT NOT NULL DEFAULT '',
    position_count  INTEGER NOT NULL DEFAULT 0,
    updated_at      TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_charts_updated
    ON charts(updated_at);
"""

_DB_ERRORS = (pg8000.exceptions.Error, OSError)


def parse_database_url(database_url: str) -> dict:
    """
    Split a postgres URL into pg8000 connection kwargs.

    Manual parser: urlparse chokes on special chars ([], @) in passwords.
    """
    # Strip scheme (postgresql:// or postgres://)
    url = database_url.split("://", 1)[1]
    # Split at LAST @ to separate credentials from host (password may contain @)
    at_idx = url.rfind("@")
    credentials = url[:at_idx]
    host_part = url[at_idx + 1:]
    # Split credentials at FIRST : to get user and password
    colon_idx = credentials.find(":")
    user = credentials[:colon_idx]
    password = credentials[colon_idx + 1:]
    host_port, database = host_part.split("/", 1)
    if ":" in host_port:
        host, port_str = host_port.rsplit(":", 1)
    else:
        host, port_str = host_port, "5432"
    return {
        "user": user,
        "password": password,
        "host": host,
        "port": int(port_str),
        "database": database or "postgres",
    }


class PostgresChartRepository:
    """
    PostgreSQL-backed chart store.

    Thread-safe via connection-per-operation pattern.
    """

    def __init__(self, database_url: str, ssl: bool = True) -> None:
        self._conn_kwargs = parse_database_url(database_url)
        self._ssl = ssl
        try:
            self._ensure_schema()
        except _DB_ERRORS as exc:
            raise ChartRepositoryError("*", "init", exc) from exc

    def _get_conn(self) -> pg8000.native.Connection:
        return pg8000.native.Connection(
            ssl_context=True if self._ssl else None, **self._conn_kwargs,
        )

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            # pg8000 native runs one statement per .run()
            for stmt in _INIT_SQL.split(";"):
                if stmt.strip():
                    conn.run(stmt)
        finally:
            conn.close()

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
        try:
            conn = self._get_conn()
            try:
                conn.run(
                    """
                    INSERT INTO charts
                        (chart_id, positions, settings, state_hash, position_count, updated_at)
                    VALUES (:cid, CAST(:pos AS JSONB), CAST(:stg AS JSONB), :sh, :pc, NOW())
                    ON CONFLICT (chart_id) DO UPDATE SET
                        positions = EXCLUDED.positions,
                        settings = EXCLUDED.settings,
                        state_hash = EXCLUDED.state_hash,
                        position_count = EXCLUDED.position_count,
                        updated_at = NOW()
                    """,
                    cid=chart_id,
                    pos=json.dumps(positions),
                    stg=json.dumps(settings),
                    sh=state_hash,
                    pc=len(positions),
                )
            finally:
                conn.close()
        except _DB_ERRORS as exc:
            raise ChartRepositoryError(chart_id, "save", exc) from exc

    def delete_chart(self, chart_id: str) -> bool:
        try:
            conn = self._get_conn()
            try:
                rows = conn.run(
                    "DELETE FROM charts WHERE chart_id = :cid RETURNING chart_id",
                    cid=chart_id,
                )
            finally:
                conn.close()
        except _DB_ERRORS as exc:
            raise ChartRepositoryError(chart_id, "delete", exc) from exc
        return bool(rows)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load_chart(self, chart_id: str) -> Optional[Tuple[List[dict], dict]]:
        try:
            conn = self._get_conn()
            try:
                rows = conn.run(
                    "SELECT positions, settings FROM charts WHERE chart_id = :cid",
                    cid=chart_id,
                )
            finally:
                conn.close()
        except _DB_ERRORS as exc:
            raise ChartRepositoryError(chart_id, "load", exc) from exc
        if not rows:
            return None
        positions, settings = rows[0]
        # JSONB comes back decoded; plain text columns would not
        if isinstance(positions, str):
            positions = json.loads(positions)
        if isinstance(settings, str):
            settings = json.loads(settings)
        return positions, settings

    def list_charts(self) -> List[dict]:
        try:
            conn = self._get_conn()
            try:
                rows = conn.run(
                    """
                    SELECT chart_id, position_count, state_hash, updated_at
                    FROM charts
                    ORDER BY updated_at DESC
                    """
                )
            finally:
                conn.close()
        except _DB_ERRORS as exc:
            raise ChartRepositoryError("*", "list", exc) from exc
        return [
            {
                "chart_id": r[0],
                "position_count": r[1],
                "state_hash": r[2],
                "updated_at": r[3].isoformat() if isinstance(r[3], datetime) else r[3],
            }
            for r in rows
        ]
