"""SQLAlchemy models for the maintenance domain."""

from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import relationship

from extensions import db
from .choices import CycleKind, Priority, Status, SystemType
from .cycles import Cycle, parse_cycle
from .status import days_until_next


class MaintenanceRecord(db.Model):
    """A recurring maintenance contract for one building system.

    ``next_maintenance`` and ``status`` are derived; MaintenanceService keeps
    them in sync with ``last_maintenance`` and the cycle.
    """

    __tablename__ = "maintenance_records"

    id = db.Column(db.Integer, primary_key=True)
    system = db.Column(db.String(200), nullable=False, index=True)
    system_type = db.Column(db.String(32), nullable=False, default=SystemType.OTHER.value)
    cycle = db.Column(db.String(32), nullable=False, default=CycleKind.MONTHLY.value)
    custom_cycle_days = db.Column(db.Integer)  # only for Custom

    # contractor
    company_name = db.Column(db.String(150), nullable=False, index=True)
    company_contact = db.Column(db.String(100))
    company_phone = db.Column(db.String(20))
    company_email = db.Column(db.String(100))

    norms = db.Column(db.JSON, nullable=False, default=list)

    last_maintenance = db.Column(db.Date, nullable=False)
    next_maintenance = db.Column(db.Date, nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=Status.ACTIVE.value, index=True)
    priority = db.Column(db.String(16), nullable=False, default=Priority.MEDIUM.value)
    cost = db.Column(db.Float, nullable=False, default=0)
    notes = db.Column(db.String(1000))

    location_building = db.Column(db.String(100))
    location_floor = db.Column(db.String(50))
    location_room = db.Column(db.String(50))
    location_description = db.Column(db.String(200))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    proof_documents = relationship("ProofDocument", back_populates="record",
                                   cascade="all, delete-orphan",
                                   order_by="ProofDocument.id")

    @property
    def interval(self) -> Cycle:
        return parse_cycle(self.cycle, self.custom_cycle_days)

    def to_dict(self, today: Optional[date] = None) -> dict:
        data = {
            "id": self.id,
            "system": self.system,
            "system_type": self.system_type,
            "cycle": self.cycle,
            "custom_cycle_days": self.custom_cycle_days,
            "company": {
                "name": self.company_name,
                "contact": self.company_contact,
                "phone": self.company_phone,
                "email": self.company_email,
            },
            "norms": list(self.norms or []),
            "last_maintenance": self.last_maintenance.isoformat(),
            "next_maintenance": self.next_maintenance.isoformat(),
            "status": self.status,
            "priority": self.priority,
            "cost": self.cost,
            "notes": self.notes,
            "location": {
                "building": self.location_building,
                "floor": self.location_floor,
                "room": self.location_room,
                "description": self.location_description,
            },
            "proof_documents": [doc.to_dict() for doc in self.proof_documents],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if today is not None:
            data["days_until_next"] = days_until_next(self.next_maintenance, today)
        return data

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<MaintenanceRecord {self.id} {self.system} next={self.next_maintenance}>"


class ProofDocument(db.Model):
    """Uploaded proof of work. Owned by its record and deleted with it."""

    __tablename__ = "maintenance_proof_documents"

    id = db.Column(db.Integer, primary_key=True)
    record_id = db.Column(db.Integer,
                          db.ForeignKey("maintenance_records.id", ondelete="CASCADE"),
                          nullable=False)
    filename = db.Column(db.String(255), nullable=False)
    original_name = db.Column(db.String(255))
    path = db.Column(db.String(512), nullable=False)
    size = db.Column(db.Integer)
    mimetype = db.Column(db.String(128))
    uploaded_at = db.Column(db.DateTime, default=datetime.utcnow)

    record = relationship("MaintenanceRecord", back_populates="proof_documents")

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "original_name": self.original_name,
            "path": self.path,
            "size": self.size,
            "mimetype": self.mimetype,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }
