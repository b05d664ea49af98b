# file: ledger_runtime/test_runtime.py
"""
Ledger Runtime v1 -- Integration Test

Scenario:
  Phase 1: New chart id → sample organization, nothing saved yet
  Phase 2: Edits autosave; repository holds the same hash
  Phase 3: Restart session (new store instance), reload from DB
  Phase 4: Compare state equality
  Phase 5: Autosave failure → status 'error', chart still usable
  Phase 6: Malformed saved chart → sample data fallback
  Phase 7: Share import replaces chart; bad data leaves it untouched

Run:  pytest ledger_runtime/test_runtime.py
"""

from __future__ import annotations

import os
import sqlite3
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ledger_kernel.codec import ShareLinkError, encode_share_data
from ledger_kernel.domain_types import GlobalSettings, PositionInput
from ledger_kernel.invariants import InvariantViolationError
from ledger_kernel.store import PositionStore

from ledger_runtime.chart_repository import ChartRepository, ChartRepositoryError
from ledger_runtime.session import (
    AUTOSAVE_DISABLED, AUTOSAVE_ERROR, AUTOSAVE_IDLE, AUTOSAVE_SAVED, ChartSession,
)


@pytest.fixture
def repo(tmp_path):
    r = ChartRepository(tmp_path / "charts.db")
    yield r
    r.close()


def _open(repo, chart_id: str = "acme", **kw) -> ChartSession:
    session = ChartSession(chart_id, repo, **kw)
    session.initialize()
    return session


class FailingRepository:
    """Loads nothing and fails every write."""

    def load_chart(self, chart_id):
        return None

    def save_chart(self, chart_id, positions, settings, state_hash=""):
        raise ChartRepositoryError(chart_id, "save", sqlite3.OperationalError("disk I/O error"))


# ── Phase 1 ────────────────────────────────────────────────────

def test_new_chart_starts_with_sample_data(repo):
    session = _open(repo)
    state = session.get_state()

    assert session.is_sample_data
    assert len(state["positions"]) == 13
    assert state["autosave_status"] == AUTOSAVE_IDLE
    assert state["can_undo"] is False
    assert [n["id"] for n in state["forest"]] == ["ceo"]
    assert repo.load_chart("acme") is None


# ── Phases 2-4 ─────────────────────────────────────────────────

def test_edits_autosave_and_reload(repo):
    session = _open(repo)
    session.add_position(PositionInput(role="Strategist", manager_id="coo", salary=120000,
                                       rate=220, utilization=70))
    session.update_settings(GlobalSettings(benefits_percent=25, overhead_percent=20,
                                           work_week_hours=38))
    session.bulk_overwrite("rate", 210)
    state = session.get_state()

    assert state["autosave_status"] == AUTOSAVE_SAVED
    assert not session.is_sample_data
    assert repo.list_charts()[0]["state_hash"] == state["state_hash"]
    assert repo.list_charts()[0]["position_count"] == 14

    reloaded = _open(repo)
    reloaded_state = reloaded.get_state()
    assert not reloaded.is_sample_data
    assert reloaded_state["state_hash"] == state["state_hash"]
    assert reloaded_state["positions"] == state["positions"]
    assert reloaded_state["settings"] == {"benefitsPercent": 25, "overheadPercent": 20,
                                          "workWeekHours": 38}
    assert reloaded_state["autosave_status"] == AUTOSAVE_SAVED
    assert reloaded_state["can_undo"] is False


def test_undo_autosaves_previous_chart(repo):
    session = _open(repo)
    session.delete_position("jd")
    assert len(repo.load_chart("acme")[0]) == 12

    assert session.undo()
    assert len(repo.load_chart("acme")[0]) == 13
    assert not session.undo()


def test_invariant_error_does_not_save(repo):
    session = _open(repo)
    with pytest.raises(InvariantViolationError):
        session.update_position("ceo", {"manager_id": "jd"})
    assert repo.load_chart("acme") is None


def test_unknown_position_is_a_noop(repo):
    session = _open(repo)
    assert session.update_position("nobody", {"salary": 1}) is None
    assert session.duplicate_position("nobody") is None
    assert session.delete_position("nobody") is False
    assert repo.load_chart("acme") is None


def test_charts_are_isolated(repo):
    a = _open(repo, "a")
    b = _open(repo, "b")
    a.delete_all()
    b.add_position(PositionInput(role="Extra"))

    assert _open(repo, "a").get_state()["positions"] == []
    assert len(_open(repo, "b").get_state()["positions"]) == 14
    assert repo.delete_chart("a")
    assert not repo.delete_chart("a")
    assert [c["chart_id"] for c in repo.list_charts()] == ["b"]


# ── Phase 5 ────────────────────────────────────────────────────

def test_autosave_failure_sets_error_status():
    session = _open(FailingRepository())
    session.add_position(PositionInput(role="Dev"))

    assert session.autosave_status == AUTOSAVE_ERROR
    assert len(session.store) == 14
    with pytest.raises(ChartRepositoryError):
        session.save()


def test_autosave_disabled(repo):
    session = _open(repo, autosave=False)
    session.delete_all()
    assert session.autosave_status == AUTOSAVE_DISABLED
    assert repo.load_chart("acme") is None
    session.save()
    assert repo.load_chart("acme") == ([], GlobalSettings().to_dict())


# ── Phase 6 ────────────────────────────────────────────────────

def test_malformed_saved_chart_falls_back_to_sample(repo):
    repo.save_chart("broken", [{"salary": 1}], {})
    session = _open(repo, "broken")
    assert session.is_sample_data
    assert len(session.store) == 13


def test_saved_chart_is_normalized_on_load(repo):
    repo.save_chart("legacy", [
        {"id": "boss", "role": "Chief of Staff", "salary": 100000, "rate": 300,
         "utilization": 50, "totalSalary": 1},
    ], {"benefitsPercent": 10})
    [boss] = _open(repo, "legacy").store.positions

    assert boss.role_type == "nonBillable"
    assert boss.rate == 0
    assert boss.financials.total_salary == pytest.approx(110000)


# ── Phase 7 ────────────────────────────────────────────────────

def test_import_share_data(repo):
    source = PositionStore()
    source.add(PositionInput(role="Founder", salary=1))
    encoded = encode_share_data(source.positions)

    session = _open(repo)
    assert session.import_share_data(encoded) == 1
    assert [p["role"] for p in session.get_state()["positions"]] == ["Founder"]
    assert len(repo.load_chart("acme")[0]) == 1

    assert session.undo()
    assert len(session.store) == 13


def test_import_bad_share_data_leaves_chart(repo):
    session = _open(repo)
    before = session.get_state()["state_hash"]
    with pytest.raises(ShareLinkError):
        session.import_share_data("%%%")
    assert session.get_state()["state_hash"] == before
    assert session.is_sample_data
