import io
import json
import os
from datetime import date

import pytest

TODAY = date(2024, 2, 1)


@pytest.fixture(autouse=True)
def fixed_today(monkeypatch):
    monkeypatch.setattr("modules.maintenance.routes.today", lambda: TODAY)


def _payload(**overrides):
    data = {
        "system": "Sprinkler pump",
        "system_type": "Fire Safety",
        "cycle": "Monthly",
        "company": {"name": "AquaFire AG", "email": "Ops@AquaFire.example", "phone": "+49 30 1234"},
        "location": {"building": "B", "floor": "-1", "room": "Pump room"},
        "norms": ["DIN 14489"],
        "last_maintenance": "2024-01-31",
        "priority": "Critical",
        "cost": 120.5,
    }
    data.update(overrides)
    return data


def _create(client, **overrides):
    resp = client.post("/maintenance/", json=_payload(**overrides))
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


def test_create_and_get(client):
    created = _create(client)
    assert created["next_maintenance"] == "2024-02-29"
    assert created["status"] == "Active"
    assert created["days_until_next"] == 28
    assert created["company"] == {
        "name": "AquaFire AG", "contact": None, "phone": "+49 30 1234", "email": "ops@aquafire.example",
    }
    assert created["location"]["room"] == "Pump room"

    resp = client.get(f"/maintenance/{created['id']}")
    assert resp.status_code == 200
    assert resp.get_json()["data"]["system"] == "Sprinkler pump"


def test_create_validation_error_lists_fields(client):
    resp = client.post("/maintenance/", json=_payload(cycle="Custom", company={"name": ""}))
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["ok"] is False
    assert body["error"] == "validation_error"
    assert set(body["details"]["errors"]) == {"custom_cycle_days", "company_name"}


def test_create_requires_json_object(client):
    resp = client.post("/maintenance/", data="nope", content_type="text/plain")
    assert resp.status_code == 400
    assert "body" in resp.get_json()["details"]["errors"]


def test_get_missing_record(client):
    resp = client.get("/maintenance/999")
    assert resp.status_code == 404
    assert resp.get_json()["details"] == {"entity": "maintenance record", "id": 999}


def test_update_reschedules(client):
    record = _create(client)
    resp = client.put(f"/maintenance/{record['id']}",
                      json={"cycle": "Custom", "custom_cycle_days": 10, "company": {"contact": "J. Doe"}})
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["next_maintenance"] == "2024-02-10"
    assert data["company"]["contact"] == "J. Doe"
    assert data["company"]["name"] == "AquaFire AG"


def test_complete_defaults_to_today(client):
    record = _create(client, last_maintenance="2023-11-01")
    assert record["status"] == "Overdue"

    resp = client.post(f"/maintenance/{record['id']}/complete", json={"notes": "impeller replaced"})
    data = resp.get_json()["data"]
    assert data["last_maintenance"] == "2024-02-01"
    assert data["next_maintenance"] == "2024-03-01"
    assert data["status"] == "Active"
    assert data["notes"] == "impeller replaced"


def test_complete_with_future_date_is_rejected(client):
    record = _create(client)
    resp = client.post(f"/maintenance/{record['id']}/complete", json={"completion_date": "2024-02-05"})
    assert resp.status_code == 400
    assert "completion_date" in resp.get_json()["details"]["errors"]


def test_complete_requires_json_object(client):
    record = _create(client)
    resp = client.post(f"/maintenance/{record['id']}/complete", json=["2024-01-31"])
    assert resp.status_code == 400
    assert "body" in resp.get_json()["details"]["errors"]


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_create_rejects_non_finite_cost(client, literal):
    body = json.dumps(_payload())[:-1] + f', "cost": {literal}}}'
    resp = client.post("/maintenance/", data=body, content_type="application/json")
    assert resp.status_code == 400
    assert "cost" in resp.get_json()["details"]["errors"]
    assert client.get("/maintenance/").get_json()["pagination"]["total"] == 0


def test_create_with_last_date_of_calendar(client):
    resp = client.post("/maintenance/", json=_payload(last_maintenance="9999-12-31", cycle="Annual"))
    assert resp.status_code == 400
    assert "last_maintenance" in resp.get_json()["details"]["errors"]


def test_suspend_resume_cycle(client):
    record = _create(client, last_maintenance="2023-01-01")
    resp = client.post(f"/maintenance/{record['id']}/suspend")
    assert resp.get_json()["data"]["status"] == "Suspended"

    resp = client.post(f"/maintenance/{record['id']}/suspend")
    assert resp.status_code == 400

    resp = client.post(f"/maintenance/{record['id']}/resume")
    assert resp.get_json()["data"]["status"] == "Overdue"


def test_refresh_status(client, monkeypatch):
    _create(client, last_maintenance="2024-01-20")
    monkeypatch.setattr("modules.maintenance.routes.today", lambda: date(2024, 3, 1))
    resp = client.post("/maintenance/refresh-status")
    assert resp.get_json() == {"ok": True, "changed": 1}


def test_list_filters_and_pagination(client):
    _create(client, system="Pump A", last_maintenance="2023-05-01")
    _create(client, system="Pump B")
    _create(client, system="Chiller", system_type="HVAC", cycle="Annual")

    body = client.get("/maintenance/?overdue=true").get_json()
    assert [r["system"] for r in body["data"]] == ["Pump A"]

    body = client.get("/maintenance/?system=pump&limit=1&page=2").get_json()
    assert [r["system"] for r in body["data"]] == ["Pump B"]
    assert body["pagination"] == {"page": 2, "limit": 1, "total": 2, "pages": 2}

    body = client.get("/maintenance/?sort_by=system&sort_order=desc").get_json()
    assert [r["system"] for r in body["data"]] == ["Pump B", "Pump A", "Chiller"]

    resp = client.get("/maintenance/?status=Paused")
    assert resp.status_code == 400


def test_pagination_reports_clamped_values(client):
    for i in range(3):
        _create(client, system=f"Pump {i}")

    body = client.get("/maintenance/?limit=500&page=0").get_json()
    assert body["pagination"] == {"page": 1, "limit": 100, "total": 3, "pages": 1}
    assert len(body["data"]) == 3

    body = client.get("/maintenance/?limit=0").get_json()
    assert body["pagination"]["limit"] == 1
    assert body["pagination"]["pages"] == 3
    assert len(body["data"]) == 1


def test_stats_and_upcoming(client):
    _create(client, system="Pump A", last_maintenance="2024-01-15")
    _create(client, system="Chiller", system_type="HVAC", cycle="Annual")

    stats = client.get("/maintenance/stats/overview").get_json()["data"]
    assert stats["total"] == 2
    assert stats["upcoming"] == 1
    assert {"value": "Critical", "count": 2} in stats["by_priority"]
    assert stats["completed_this_month"] == 0

    upcoming = client.get("/maintenance/dashboard/upcoming?days=20").get_json()["data"]
    assert [r["system"] for r in upcoming] == ["Pump A"]


def _upload(client, record_id, *names):
    files = [(io.BytesIO(b"%PDF-1.4 proof"), name) for name in names]
    return client.post(f"/maintenance/{record_id}/documents",
                       data={"files": files}, content_type="multipart/form-data")


def test_upload_and_delete_documents(client, app):
    record = _create(client)
    resp = _upload(client, record["id"], "report 1.pdf", "photo.jpg")
    assert resp.status_code == 201
    files = resp.get_json()["files"]
    assert [f["original_name"] for f in files] == ["report 1.pdf", "photo.jpg"]
    for f in files:
        assert os.path.isfile(f["path"])
        assert f["path"].startswith(os.path.join(app.config["UPLOAD_FOLDER"], "maintenance"))

    first = files[0]
    resp = client.delete(f"/maintenance/{record['id']}/documents/{first['filename']}")
    assert resp.status_code == 200
    assert not os.path.exists(first["path"])

    docs = client.get(f"/maintenance/{record['id']}").get_json()["data"]["proof_documents"]
    assert [d["filename"] for d in docs] == [files[1]["filename"]]


def test_upload_rejects_bad_extension_without_leaving_files(client, app):
    record = _create(client)
    resp = _upload(client, record["id"], "ok.pdf", "virus.exe")
    assert resp.status_code == 400
    folder = os.path.join(app.config["UPLOAD_FOLDER"], "maintenance")
    assert not os.path.isdir(folder) or os.listdir(folder) == []


def test_upload_limits(client, app):
    record = _create(client)
    resp = _upload(client, record["id"], *[f"p{i}.pdf" for i in range(app.config["MAX_UPLOAD_FILES"] + 1)])
    assert resp.status_code == 400

    resp = client.post(f"/maintenance/{record['id']}/documents", data={}, content_type="multipart/form-data")
    assert resp.status_code == 400

    assert _upload(client, 999, "a.pdf").status_code == 404


def test_delete_record_removes_files(client):
    record = _create(client)
    files = _upload(client, record["id"], "a.pdf").get_json()["files"]

    resp = client.delete(f"/maintenance/{record['id']}")
    assert resp.get_json()["documents_removed"] == 1
    assert not os.path.exists(files[0]["path"])
    assert client.get(f"/maintenance/{record['id']}").status_code == 404
