import logging
from datetime import date

import pytest

from store import SqlStore


@pytest.fixture(autouse=True)
def fixed_today(monkeypatch):
    monkeypatch.setattr("modules.facilities.routes.today", lambda: date(2024, 2, 1))


def _facility(client, **fields):
    data = {"name": "Main campus", "type": "Office", "location": "Berlin", "floors": "4"}
    data.update(fields)
    resp = client.post("/facilities/", json=data)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


def test_create_get_update(client):
    created = _facility(client)
    assert created["status"] == "Active"
    assert created["floors"] == 4

    resp = client.put(f"/facilities/{created['id']}", json={"manager": "K. Meyer", "area": 1250.5})
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["manager"] == "K. Meyer"
    assert data["area"] == 1250.5
    assert data["name"] == "Main campus"

    assert client.get(f"/facilities/{created['id']}").get_json()["data"]["manager"] == "K. Meyer"


def test_create_validation(client):
    resp = client.post("/facilities/", json={"name": " ", "floors": "many"})
    assert resp.status_code == 400
    assert set(resp.get_json()["details"]["errors"]) == {"name", "floors"}


def test_list_search_and_paging(client):
    _facility(client, name="Alpha depot", location="Hamburg")
    _facility(client, name="Beta office")
    _facility(client, name="Gamma lab", type="Lab")

    body = client.get("/facilities/?search=hamburg").get_json()
    assert [f["name"] for f in body["data"]] == ["Alpha depot"]

    body = client.get("/facilities/?type=Lab").get_json()
    assert [f["name"] for f in body["data"]] == ["Gamma lab"]

    body = client.get("/facilities/?limit=2&page=2&sort_order=desc").get_json()
    assert [f["name"] for f in body["data"]] == ["Alpha depot"]
    assert body["pagination"]["pages"] == 2


def test_dependents_and_delete(client):
    facility = _facility(client)
    fid = facility["id"]
    for i in range(3):
        assert client.post("/facilities/tasks", json={"what": f"check {i}", "facility_id": fid}).status_code == 201
    for i in range(2):
        resp = client.post("/facilities/electric-meters", json={"name": f"E{i}", "number": f"EM-{i}", "facility_id": fid})
        assert resp.status_code == 201
    resp = client.post("/facilities/heat-gas-meters",
                       json={"name": "Heat", "number": "HM-1", "meter_type": "Heat", "unit": "kWh",
                             "facility_id": fid})
    assert resp.status_code == 201
    assert resp.get_json()["data"]["meter_type"] == "heat"

    body = client.get(f"/facilities/{fid}/dependents").get_json()["data"]
    assert body["counts"] == {"tasks": 3, "electric_meters": 2, "heat_gas_meters": 1}
    assert body["total"] == 6

    resp = client.delete(f"/facilities/{fid}")
    assert resp.status_code == 200
    assert resp.get_json()["data"]["detached"] == {"tasks": 3, "electric_meters": 2, "heat_gas_meters": 1}
    assert client.get(f"/facilities/{fid}").status_code == 404
    assert client.delete(f"/facilities/{fid}").status_code == 404


def test_facility_stats(client):
    fid = _facility(client)["id"]
    client.post("/facilities/tasks", json={"what": "late", "deadline": "2024-01-15", "facility_id": fid})
    client.post("/facilities/tasks", json={"what": "done", "status": "Completed", "facility_id": fid})
    client.post("/facilities/electric-meters", json={"name": "E", "number": "EM-9", "facility_id": fid})

    data = client.get(f"/facilities/{fid}/stats").get_json()["data"]
    assert data["tasks"] == {"total": 2, "completed": 1, "pending": 1, "overdue": 1}
    assert data["meters"] == {"electric": 1, "heat_gas": 0}


def test_dependent_validation(client):
    resp = client.post("/facilities/tasks", json={"what": "orphan", "facility_id": 77})
    assert resp.status_code == 404

    resp = client.post("/facilities/tasks", json={"what": "x", "facility_id": "1"})
    assert resp.status_code == 400

    client.post("/facilities/electric-meters", json={"name": "E", "number": "EM-1"})
    resp = client.post("/facilities/electric-meters", json={"name": "E2", "number": "EM-1"})
    assert resp.status_code == 400
    assert "number" in resp.get_json()["details"]["errors"]

    resp = client.post("/facilities/heat-gas-meters", json={"name": "W", "number": "W-1", "meter_type": "water"})
    assert set(resp.get_json()["details"]["errors"]) == {"meter_type", "unit"}


def test_reassign_route(client):
    first = _facility(client)["id"]
    second = _facility(client, name="Annex")["id"]
    meter = client.post("/facilities/heat-gas-meters",
                        json={"name": "Gas", "number": "GM-1", "meter_type": "gas", "unit": "m3",
                              "facility_id": first}).get_json()["data"]

    resp = client.put(f"/facilities/heat-gas-meters/{meter['id']}/facility", json={"facility_id": second})
    assert resp.get_json()["data"]["facility_id"] == second

    resp = client.put(f"/facilities/heat-gas-meters/{meter['id']}/facility", json={"facility_id": None})
    assert resp.get_json()["data"]["facility_id"] is None

    assert client.put(f"/facilities/pumps/{meter['id']}/facility", json={}).status_code == 400
    assert client.put("/facilities/tasks/999/facility", json={"facility_id": first}).status_code == 404


@pytest.mark.parametrize("meter_type", [5, ["heat"], None])
def test_heat_gas_meter_type_must_be_text(client, meter_type):
    resp = client.post("/facilities/heat-gas-meters",
                       json={"name": "H", "number": "H-1", "unit": "kWh", "meter_type": meter_type})
    assert resp.status_code == 400
    assert set(resp.get_json()["details"]["errors"]) == {"meter_type"}


def test_list_reports_clamped_pagination(client):
    _facility(client)
    body = client.get("/facilities/?limit=1000&page=-3").get_json()
    assert body["pagination"] == {"page": 1, "limit": 100, "total": 1, "pages": 1}


def test_integrity_failure_logged_once(client, monkeypatch, caplog):
    fid = _facility(client)["id"]
    client.post("/facilities/tasks", json={"what": "inspect", "facility_id": fid})
    # detach and delete both claim success while the row stays referenced
    monkeypatch.setattr(SqlStore, "clear_facility_ref", lambda self, facility_id, kind: 0)
    monkeypatch.setattr(SqlStore, "delete_facility", lambda self, facility_id: 1)

    with caplog.at_level(logging.ERROR):
        resp = client.delete(f"/facilities/{fid}")

    assert resp.status_code == 500
    body = resp.get_json()
    assert body["error"] == "integrity_error"
    assert body["details"]["remaining"]["tasks"] == 1
    errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
    assert len(errors) == 1
    assert errors[0].name == "modules.facilities.integrity"
    assert client.get(f"/facilities/{fid}").status_code == 200
