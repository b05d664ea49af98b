# file: backend/test_api.py
"""
Chart API tests: FastAPI TestClient over a throwaway sqlite chart store.

Run:  pytest backend/test_api.py
"""

from __future__ import annotations

import os
import sys
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend import main
from ledger_runtime.chart_repository import ChartRepository


@pytest.fixture
def client(tmp_path):
    repo = ChartRepository(tmp_path / "api.db")
    main.set_repository(repo)
    yield TestClient(main.app)
    main.set_repository(None)
    repo.close()


def _state(client, chart_id="acme") -> dict:
    resp = client.get(f"/charts/{chart_id}/state")
    assert resp.status_code == 200
    return resp.json()


class TestState:
    def test_health(self, client):
        assert client.get("/health").json()["status"] == "ok"

    def test_new_chart_is_sample_data(self, client):
        state = _state(client)
        assert state["chart_id"] == "acme"
        assert state["is_sample_data"] is True
        assert len(state["positions"]) == 13
        assert state["forest"][0]["id"] == "ceo"
        assert state["forest"][0]["children"][0]["id"] == "coo"
        assert state["diagnostics"]["position_count"] == 13
        assert state["totals"]["revenue"] > 0
        assert len(state["state_hash"]) == 64
        assert state["can_undo"] is False


class TestPositions:
    def test_add_position(self, client):
        resp = client.post("/charts/acme/positions", json={
            "role": "Strategist", "managerId": "coo", "salary": 90000,
            "rate": 140, "utilization": 100,
        })
        assert resp.status_code == 200
        body = resp.json()
        position = body["position"]
        assert position["managerId"] == "coo"
        assert position["revenue"] == pytest.approx(215600)
        assert len(body["positions"]) == 14
        assert body["autosave_status"] == "saved"
        assert body["can_undo"] is True

    def test_add_coerces_bad_numbers(self, client):
        resp = client.post("/charts/acme/positions", json={"role": "Temp", "salary": "n/a"})
        assert resp.status_code == 200
        assert resp.json()["position"]["salary"] == 0

    def test_add_unknown_manager_is_422(self, client):
        resp = client.post("/charts/acme/positions", json={"role": "x", "managerId": "ghost"})
        assert resp.status_code == 422
        assert "manager_ref" in resp.json()["detail"]

    def test_add_bad_role_type_is_400(self, client):
        resp = client.post("/charts/acme/positions", json={"role": "x", "roleType": "contractor"})
        assert resp.status_code == 400

    def test_update_position(self, client):
        resp = client.patch("/charts/acme/positions/jd", json={"utilization": 50})
        assert resp.status_code == 200
        position = resp.json()["position"]
        assert position["utilization"] == 50
        assert position["rate"] == 150

    def test_update_cycle_is_422(self, client):
        resp = client.patch("/charts/acme/positions/ceo", json={"managerId": "jd"})
        assert resp.status_code == 422
        assert "manager_cycle" in resp.json()["detail"]

    def test_update_unknown_is_404(self, client):
        resp = client.patch("/charts/acme/positions/nobody", json={"rate": 1})
        assert resp.status_code == 404

    def test_duplicate(self, client):
        resp = client.post("/charts/acme/positions/sd/duplicate")
        assert resp.status_code == 200
        copy = resp.json()["position"]
        assert copy["id"] != "sd"
        assert copy["role"] == "Senior Developer"
        assert copy["managerId"] == "dd"
        assert client.post("/charts/acme/positions/nobody/duplicate").status_code == 404

    def test_delete_reparents(self, client):
        resp = client.delete("/charts/acme/positions/ld")
        assert resp.status_code == 200
        by_id = {p["id"]: p for p in resp.json()["positions"]}
        assert "ld" not in by_id
        assert by_id["jd"]["managerId"] == "dd"
        assert client.delete("/charts/acme/positions/ld").status_code == 404

    def test_delete_all_then_undo(self, client):
        assert client.delete("/charts/acme/positions").json()["positions"] == []
        body = client.post("/charts/acme/undo").json()
        assert body["undone"] is True
        assert len(body["positions"]) == 13
        assert client.post("/charts/acme/undo").json()["undone"] is False


class TestBulkAndSettings:
    def test_bulk_overwrite(self, client):
        body = client.post("/charts/acme/bulk-overwrite",
                           json={"field": "utilization", "value": 75}).json()
        assert body["updated_count"] == 11
        by_id = {p["id"]: p for p in body["positions"]}
        assert by_id["jd"]["utilization"] == 75
        assert by_id["ceo"]["utilization"] == 0

    def test_bulk_overwrite_rejects_salary(self, client):
        resp = client.post("/charts/acme/bulk-overwrite", json={"field": "salary", "value": 1})
        assert resp.status_code == 400

    def test_bulk_overwrite_blank_value_is_400_and_keeps_rates(self, client):
        resp = client.post("/charts/acme/bulk-overwrite", json={"field": "rate", "value": ""})
        assert resp.status_code == 400
        state = _state(client)
        by_id = {p["id"]: p for p in state["positions"]}
        assert by_id["jd"]["rate"] == 150
        assert state["can_undo"] is False

    def test_partial_settings_update(self, client):
        before = _state(client)["totals"]["revenue"]
        body = client.put("/charts/acme/settings", json={"workWeekHours": 40}).json()
        assert body["settings"] == {"benefitsPercent": 30, "overheadPercent": 15,
                                    "workWeekHours": 40}
        assert body["totals"]["revenue"] == pytest.approx(before * 40 / 35)


class TestCollaborators:
    def test_export(self, client):
        rows = client.get("/charts/acme/export").json()["rows"]
        assert rows[0][0] == "Role"
        assert rows[-1][0] == "Totals"
        assert len(rows) == 15

    def test_share_link_round_trip(self, client):
        link = client.get("/charts/acme/share-link").json()["link"]
        [data] = parse_qs(urlparse(link).query)["data"]

        client.delete("/charts/other/positions")
        body = client.post("/charts/other/import-share", json={"data": data}).json()
        assert body["imported_count"] == 13
        assert body["state_hash"] == _state(client)["state_hash"]

    def test_import_garbage_is_400(self, client):
        resp = client.post("/charts/acme/import-share", json={"data": "%%%"})
        assert resp.status_code == 400
        assert len(_state(client)["positions"]) == 13

    def test_analysis_payload(self, client):
        payload = client.get("/charts/acme/analysis-payload").json()["dataForAnalysis"]
        assert payload["settings"]["annualBillableWeeks"] == 44
        assert all("id" not in p for p in payload["positions"])
        assert {p["role"]: p["directReports"] for p in payload["positions"]}["COO"] == 3


class TestCharts:
    def test_list_and_delete(self, client):
        client.delete("/charts/acme/positions/jd")
        charts = client.get("/charts").json()
        assert [c["chart_id"] for c in charts] == ["acme"]
        assert charts[0]["position_count"] == 12

        assert client.delete("/charts/acme").json()["status"] == "deleted"
        assert client.delete("/charts/acme").json()["status"] == "not_found"
        assert _state(client)["is_sample_data"] is True

    def test_saved_chart_survives_session_reset(self, client, tmp_path):
        client.delete("/charts/acme/positions/jd")
        main.set_repository(ChartRepository(tmp_path / "api.db"))
        assert len(_state(client)["positions"]) == 12
