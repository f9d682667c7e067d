# tests/conftest.py
import os
import sys
from datetime import date

import pytest

# so that `from app import create_app` works when pytest runs from the repo root
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from app import create_app  # noqa: E402
from extensions import db  # noqa: E402
from modules.facilities.integrity import FacilityIntegrityManager  # noqa: E402
from modules.maintenance.service import MaintenanceService  # noqa: E402
from store import SqlStore  # noqa: E402


@pytest.fixture()
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
        "SECRET_KEY": "test-secret",
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def store(app):
    return SqlStore(db.session)


@pytest.fixture()
def service(store):
    return MaintenanceService(store)


@pytest.fixture()
def manager(store):
    return FacilityIntegrityManager(store)


@pytest.fixture()
def record_fields():
    """Valid create payload; keyword arguments override or add fields."""
    def make(**overrides):
        fields = {
            "system": "Rooftop HVAC unit",
            "system_type": "HVAC",
            "cycle": "Monthly",
            "company_name": "CoolAir Service GmbH",
            "company_email": "Service@CoolAir.example",
            "norms": ["DIN EN 13779", "VDI 6022"],
            "last_maintenance": date(2024, 1, 10),
            "priority": "High",
            "cost": 250,
        }
        fields.update(overrides)
        return fields
    return make
