"""SQLAlchemy models for facilities and the rows that point at them.

Tasks and meters reference a facility through a nullable foreign key without
ON DELETE, so the database refuses to drop a facility that is still referenced.
FacilityIntegrityManager clears the references first.
"""

from datetime import datetime

from sqlalchemy.orm import relationship

from extensions import db


class Facility(db.Model):
    __tablename__ = "facilities"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    type = db.Column(db.String(100))
    location = db.Column(db.String(200))
    address = db.Column(db.String(255))
    description = db.Column(db.Text)
    status = db.Column(db.String(32), default="Active")
    manager = db.Column(db.String(150))
    contact = db.Column(db.String(150))
    area = db.Column(db.Float)
    floors = db.Column(db.Integer)
    year_built = db.Column(db.Integer)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "location": self.location,
            "address": self.address,
            "description": self.description,
            "status": self.status,
            "manager": self.manager,
            "contact": self.contact,
            "area": self.area,
            "floors": self.floors,
            "year_built": self.year_built,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Facility {self.id}: {self.name}>"


class Task(db.Model):
    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    what = db.Column(db.String(200), nullable=False)
    description = db.Column(db.String(1000))
    category = db.Column(db.String(32), default="Other")
    priority = db.Column(db.String(16), default="Medium")
    status = db.Column(db.String(16), default="Pending")  # Pending|In Progress|Completed|Cancelled|On Hold|Overdue
    deadline = db.Column(db.Date)
    facility_id = db.Column(db.Integer, db.ForeignKey("facilities.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    facility = relationship("Facility")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "what": self.what,
            "description": self.description,
            "category": self.category,
            "priority": self.priority,
            "status": self.status,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "facility_id": self.facility_id,
        }


class ElectricMeter(db.Model):
    __tablename__ = "electric_meters"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    number = db.Column(db.String(64), unique=True, nullable=False)
    location = db.Column(db.String(200))
    current_reading = db.Column(db.Float, default=0.0)
    previous_reading = db.Column(db.Float, default=0.0)
    status = db.Column(db.String(32), default="Active")
    facility_id = db.Column(db.Integer, db.ForeignKey("facilities.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    facility = relationship("Facility")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "number": self.number,
            "location": self.location,
            "current_reading": self.current_reading,
            "previous_reading": self.previous_reading,
            "status": self.status,
            "facility_id": self.facility_id,
        }


class HeatGasMeter(db.Model):
    __tablename__ = "heat_gas_meters"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    number = db.Column(db.String(64), unique=True, nullable=False)
    location = db.Column(db.String(200))
    meter_type = db.Column(db.String(8), nullable=False)  # heat|gas
    unit = db.Column(db.String(16), nullable=False)
    current_reading = db.Column(db.Float, default=0.0)
    previous_reading = db.Column(db.Float, default=0.0)
    status = db.Column(db.String(32), default="Active")
    facility_id = db.Column(db.Integer, db.ForeignKey("facilities.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    facility = relationship("Facility")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "number": self.number,
            "location": self.location,
            "meter_type": self.meter_type,
            "unit": self.unit,
            "current_reading": self.current_reading,
            "previous_reading": self.previous_reading,
            "status": self.status,
            "facility_id": self.facility_id,
        }


METER_TYPES = ("heat", "gas")

# dependent kind -> model holding a nullable facility_id
DEPENDENT_MODELS = {
    "tasks": Task,
    "electric_meters": ElectricMeter,
    "heat_gas_meters": HeatGasMeter,
}
