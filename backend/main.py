# file: backend/main.py
"""
FastAPI Backend — TeamLedger Chart API v1.

One ChartSession (one PositionStore) per chart id, created on first use
and kept in-process. Writes to a chart are serialized by a per-chart
lock; every mutation autosaves through the configured repository.

Endpoints (all under /charts/{chart_id}):
  GET    /state                      — chart state + forest + diagnostics
  POST   /positions                  — add a position
  PATCH  /positions/{position_id}    — edit a position
  POST   /positions/{id}/duplicate   — copy a position's inputs
  DELETE /positions/{position_id}    — delete, re-parenting its reports
  DELETE /positions                  — delete every position
  POST   /bulk-overwrite             — set rate/utilization on billable roles
  PUT    /settings                   — change settings, recompute all
  POST   /undo                       — revert the last position change
  POST   /sample-data                — load the sample organization
  GET    /export                     — export table rows
  GET    /share-link                 — share link for the chart
  POST   /import-share               — replace chart from share-link data
  GET    /analysis-payload           — data for the AI-analysis service
"""
from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from dotenv import load_dotenv

env_path = os.path.join(os.path.dirname(__file__), ".env")
if os.path.exists(env_path):
    load_dotenv(env_path)

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from ledger_kernel.codec import ShareLinkError, build_share_link
from ledger_kernel.domain_types import GlobalSettings, PositionInput
from ledger_kernel.export import build_analysis_payload, build_export_rows
from ledger_kernel.invariants import InvariantViolationError
from ledger_runtime.chart_repository import ChartRepository, ChartRepositoryError
from ledger_runtime.session import ChartSession

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DATABASE_URL = os.environ.get("DATABASE_URL", "")
CHART_DB_PATH = os.environ.get("CHART_DB_PATH", "teamledger.db")
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")
PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", FRONTEND_URL)
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="TeamLedger API",
    version="1.0.0",
    description="Financial org-chart engine — positions, hierarchy, margins",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        FRONTEND_URL,
        "http://localhost:3000",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class PositionRequest(BaseModel):
    role: str = ""
    managerId: Optional[str] = None
    roleType: str = "billable"
    # Numbers arrive as typed by the user; the kernel coerces bad ones to 0
    salary: Any = 0
    rate: Any = 0
    utilization: Any = 0


class PositionPatchRequest(BaseModel):
    role: Optional[str] = None
    managerId: Optional[str] = None
    roleType: Optional[str] = None
    salary: Any = None
    rate: Any = None
    utilization: Any = None


class BulkOverwriteRequest(BaseModel):
    field: str
    value: Any


class SettingsRequest(BaseModel):
    benefitsPercent: Optional[float] = None
    overheadPercent: Optional[float] = None
    workWeekHours: Optional[float] = None


class ImportShareRequest(BaseModel):
    data: str


_PATCH_FIELD_MAP = {
    "role": "role",
    "managerId": "manager_id",
    "roleType": "role_type",
    "salary": "salary",
    "rate": "rate",
    "utilization": "utilization",
}

# ---------------------------------------------------------------------------
# Sessions + repository
# ---------------------------------------------------------------------------

_repo = None
_sessions: Dict[str, ChartSession] = {}
_chart_locks: Dict[str, threading.Lock] = {}
_registry_lock = threading.Lock()


def _get_repo():
    global _repo
    with _registry_lock:
        if _repo is None:
            if DATABASE_URL:
                from backend.postgres_chart_repository import PostgresChartRepository
                try:
                    _repo = PostgresChartRepository(DATABASE_URL)
                except ChartRepositoryError as exc:
                    logger.error("Postgres unavailable: %s", exc)
                    raise HTTPException(status_code=500, detail="Chart database unavailable")
            else:
                _repo = ChartRepository(CHART_DB_PATH)
                logger.info("Using sqlite chart store at %s", CHART_DB_PATH)
        return _repo


def set_repository(repo) -> None:
    """Swap the chart store and drop every cached session."""
    global _repo
    with _registry_lock:
        _repo = repo
        _sessions.clear()
        _chart_locks.clear()


def _chart_lock(chart_id: str) -> threading.Lock:
    with _registry_lock:
        return _chart_locks.setdefault(chart_id, threading.Lock())


@contextmanager
def _locked_session(chart_id: str) -> Iterator[ChartSession]:
    """Hold the chart's lock for the duration of one request."""
    repo = _get_repo()
    with _chart_lock(chart_id):
        session = _sessions.get(chart_id)
        if session is None:
            session = ChartSession(chart_id, repo)
            session.initialize()
            _sessions[chart_id] = session
        try:
            yield session
        except InvariantViolationError as exc:
            raise HTTPException(status_code=422, detail=str(exc))
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))


def _not_found(position_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Position {position_id!r} not found")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/charts")
def list_charts():
    """Returns metadata for every saved chart, newest first."""
    try:
        return _get_repo().list_charts()
    except ChartRepositoryError as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@app.delete("/charts/{chart_id}")
def delete_chart(chart_id: str):
    """Deletes a saved chart and forgets its session."""
    repo = _get_repo()
    with _chart_lock(chart_id):
        _sessions.pop(chart_id, None)
        try:
            deleted = repo.delete_chart(chart_id)
        except ChartRepositoryError as exc:
            raise HTTPException(status_code=500, detail=str(exc))
    return {"status": "deleted" if deleted else "not_found"}


@app.get("/charts/{chart_id}/state")
def get_state(chart_id: str):
    with _locked_session(chart_id) as session:
        return session.get_state()


@app.post("/charts/{chart_id}/positions")
def add_position(chart_id: str, req: PositionRequest):
    with _locked_session(chart_id) as session:
        position = session.add_position(PositionInput.from_dict(req.model_dump()))
        state = session.get_state()
    state["position"] = position.to_dict()
    return state


@app.patch("/charts/{chart_id}/positions/{position_id}")
def update_position(chart_id: str, position_id: str, req: PositionPatchRequest):
    changes = {
        _PATCH_FIELD_MAP[k]: v
        for k, v in req.model_dump(exclude_unset=True).items()
    }
    with _locked_session(chart_id) as session:
        position = session.update_position(position_id, changes)
        if position is None:
            raise _not_found(position_id)
        state = session.get_state()
    state["position"] = position.to_dict()
    return state


@app.post("/charts/{chart_id}/positions/{position_id}/duplicate")
def duplicate_position(chart_id: str, position_id: str):
    with _locked_session(chart_id) as session:
        position = session.duplicate_position(position_id)
        if position is None:
            raise _not_found(position_id)
        state = session.get_state()
    state["position"] = position.to_dict()
    return state


@app.delete("/charts/{chart_id}/positions/{position_id}")
def delete_position(chart_id: str, position_id: str):
    with _locked_session(chart_id) as session:
        if not session.delete_position(position_id):
            raise _not_found(position_id)
        return session.get_state()


@app.delete("/charts/{chart_id}/positions")
def delete_all_positions(chart_id: str):
    with _locked_session(chart_id) as session:
        session.delete_all()
        return session.get_state()


@app.post("/charts/{chart_id}/bulk-overwrite")
def bulk_overwrite(chart_id: str, req: BulkOverwriteRequest):
    with _locked_session(chart_id) as session:
        touched = session.bulk_overwrite(req.field, req.value)
        state = session.get_state()
    state["updated_count"] = touched
    return state


@app.put("/charts/{chart_id}/settings")
def update_settings(chart_id: str, req: SettingsRequest):
    with _locked_session(chart_id) as session:
        settings = GlobalSettings.from_dict(
            req.model_dump(exclude_none=True), fallback=session.store.settings,
        )
        session.update_settings(settings)
        return session.get_state()


@app.post("/charts/{chart_id}/undo")
def undo(chart_id: str):
    with _locked_session(chart_id) as session:
        undone = session.undo()
        state = session.get_state()
    state["undone"] = undone
    return state


@app.post("/charts/{chart_id}/sample-data")
def load_sample_data(chart_id: str):
    with _locked_session(chart_id) as session:
        session.load_sample_data()
        return session.get_state()


@app.get("/charts/{chart_id}/export")
def export_table(chart_id: str):
    with _locked_session(chart_id) as session:
        return {"rows": build_export_rows(session.store.positions)}


@app.get("/charts/{chart_id}/share-link")
def share_link(chart_id: str):
    with _locked_session(chart_id) as session:
        return {"link": build_share_link(PUBLIC_BASE_URL, session.store.positions)}


@app.post("/charts/{chart_id}/import-share")
def import_share(chart_id: str, req: ImportShareRequest):
    with _locked_session(chart_id) as session:
        try:
            count = session.import_share_data(req.data)
        except ShareLinkError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid share data: {exc}")
        state = session.get_state()
    state["imported_count"] = count
    return state


@app.get("/charts/{chart_id}/analysis-payload")
def analysis_payload(chart_id: str):
    with _locked_session(chart_id) as session:
        store = session.store
        return {"dataForAnalysis": build_analysis_payload(store.positions, store.settings)}


@app.get("/health")
def health():
    return {"status": "ok", "version": "1.0.0"}
