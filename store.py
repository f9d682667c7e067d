"""Persistence collaborator for the scheduling and integrity services.

``SqlStore`` wraps one SQLAlchemy session. Services receive it through their
constructor and run their steps inside ``store.transaction()``.
"""

from contextlib import contextmanager

from sqlalchemy import delete, func, select, update

from errors import ValidationError
from modules.facilities.models import DEPENDENT_MODELS, Facility
from modules.maintenance.models import MaintenanceRecord, ProofDocument


class SqlStore:

    def __init__(self, session):
        self.session = session

    @contextmanager
    def transaction(self):
        """Commit on success, roll back and re-raise on any error."""
        try:
            yield self
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    # ---------- maintenance ----------
    def load_maintenance(self, record_id):
        return self.session.get(MaintenanceRecord, record_id)

    def save_maintenance(self, record):
        self.session.add(record)
        self.session.flush()
        return record

    def delete_maintenance(self, record) -> None:
        self.session.delete(record)
        self.session.flush()

    def load_document(self, record_id, filename):
        return self.session.scalars(
            select(ProofDocument).filter_by(record_id=record_id, filename=filename)
        ).first()

    def scalars(self, statement):
        return self.session.scalars(statement)

    def scalar(self, statement):
        return self.session.scalar(statement)

    def execute(self, statement):
        return self.session.execute(statement)

    # ---------- facilities ----------
    def load_facility(self, facility_id):
        return self.session.get(Facility, facility_id)

    def dependent_model(self, kind: str):
        try:
            return DEPENDENT_MODELS[kind]
        except KeyError:
            allowed = ", ".join(DEPENDENT_MODELS)
            raise ValidationError({"kind": f"must be one of: {allowed} (got {kind!r})"}) from None

    def load_dependent(self, kind: str, dependent_id):
        return self.session.get(self.dependent_model(kind), dependent_id)

    def count_dependents(self, facility_id, kind: str) -> int:
        model = self.dependent_model(kind)
        return self.session.scalar(
            select(func.count()).select_from(model).where(model.facility_id == facility_id)
        )

    def clear_facility_ref(self, facility_id, kind: str) -> int:
        model = self.dependent_model(kind)
        result = self.session.execute(
            update(model).where(model.facility_id == facility_id).values(facility_id=None)
        )
        return result.rowcount

    def delete_facility(self, facility_id) -> int:
        result = self.session.execute(delete(Facility).where(Facility.id == facility_id))
        return result.rowcount
