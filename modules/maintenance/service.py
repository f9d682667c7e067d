# -*- coding: utf-8 -*-
"""
Maintenance record manager.

Every write goes through MaintenanceService so that the derived fields stay
consistent:
- next_maintenance == next_due(last_maintenance, cycle) at all times;
- status is re-evaluated on every write unless it is a manual (sticky) state.

State machine:
    Active <-> Overdue                    automatic, on every evaluation
    Active|Overdue|Completed -> Completed update(status=Completed)
    Active|Overdue|Completed -> Suspended suspend()
    Suspended -> Active                   resume()
    complete()                            last = completion date, reschedule, back to Active

``today`` is always an argument; nothing here reads the clock.
"""

import logging
import math
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import func, select

from errors import NotFoundError, ValidationError
from utils import parse_date
from .choices import STICKY_STATUSES, CycleKind, Priority, Status, SystemType
from .cycles import next_due, parse_cycle
from .models import MaintenanceRecord, ProofDocument
from .status import evaluate

logger = logging.getLogger(__name__)

STRING_LIMITS = {
    "system": 200,
    "company_name": 150,
    "company_contact": 100,
    "company_phone": 20,
    "company_email": 100,
    "notes": 1000,
    "location_building": 100,
    "location_floor": 50,
    "location_room": 50,
    "location_description": 200,
}
REQUIRED_FIELDS = ("system", "company_name", "last_maintenance")
NORM_MAX_LENGTH = 100

SORT_FIELDS = {
    "next_maintenance": MaintenanceRecord.next_maintenance,
    "last_maintenance": MaintenanceRecord.last_maintenance,
    "system": MaintenanceRecord.system,
    "status": MaintenanceRecord.status,
    "priority": MaintenanceRecord.priority,
    "cost": MaintenanceRecord.cost,
    "created_at": MaintenanceRecord.created_at,
}
MAX_PAGE_SIZE = 100


def _parse_cost(value) -> float:
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
    if isinstance(value, bool):
        raise ValidationError({"cost": f"must be a number (got {value!r})"})
    try:
        cost = float(value)
    except (TypeError, ValueError):
        raise ValidationError({"cost": f"must be a number (got {value!r})"}) from None
    if not math.isfinite(cost):
        raise ValidationError({"cost": f"must be a finite number (got {value!r})"})
    if cost < 0:
        raise ValidationError({"cost": f"must not be negative (got {cost})"})
    return cost


def _parse_norms(value) -> list:
    if value is None:
        return []
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ValidationError({"norms": "must be a list of strings"})
    norms = []
    for i, norm in enumerate(value):
        if not isinstance(norm, str):
            raise ValidationError({"norms": f"item {i} must be a string"})
        norm = norm.strip()
        if len(norm) > NORM_MAX_LENGTH:
            raise ValidationError({"norms": f"item {i} is longer than {NORM_MAX_LENGTH} characters"})
        if norm:
            norms.append(norm)
    return norms


class MaintenanceService:
    """Create, update and reschedule maintenance records through a store."""

    def __init__(self, store):
        self.store = store

    # ---------- validation ----------
    def _clean(self, fields: dict, current: Optional[MaintenanceRecord] = None) -> dict:
        """Validate ``fields`` and return column values.

        With ``current`` set only the supplied keys are checked (update);
        otherwise required fields must be present (create). Unknown keys and
        ``next_maintenance`` are ignored. A resolved cycle is returned under
        ``"_cycle"`` when the cycle or its day count changed.
        """
        errors = {}
        data = {}

        def collect(key, parser, *args):
            try:
                data[key] = parser(fields[key], *args)
            except ValidationError as exc:
                errors.update(exc.errors)

        if current is None:
            for key in REQUIRED_FIELDS:
                value = fields.get(key)
                if value is None or (isinstance(value, str) and not value.strip()):
                    errors[key] = "is required"

        for key, limit in STRING_LIMITS.items():
            if key not in fields or key in errors:
                continue
            value = fields[key]
            if value is None:
                if key in REQUIRED_FIELDS:
                    errors[key] = "is required"
                else:
                    data[key] = None
                continue
            if not isinstance(value, str):
                errors[key] = "must be a string"
                continue
            value = value.strip()
            if key in REQUIRED_FIELDS and not value:
                errors[key] = "is required"
            elif len(value) > limit:
                errors[key] = f"must be at most {limit} characters (got {len(value)})"
            else:
                data[key] = value.lower() if key == "company_email" else (value or None)

        if "last_maintenance" in fields and "last_maintenance" not in errors:
            collect("last_maintenance", parse_date, "last_maintenance")
        if "system_type" in fields:
            collect("system_type", SystemType.parse, "system_type")
        if "priority" in fields:
            collect("priority", Priority.parse, "priority")
        if "status" in fields:
            collect("status", Status.parse, "status")
        if "cost" in fields:
            collect("cost", _parse_cost)
        if "norms" in fields:
            collect("norms", _parse_norms)

        if current is None or "cycle" in fields or "custom_cycle_days" in fields:
            if "cycle" in fields:
                cycle_name = fields["cycle"]
            elif current is not None:
                cycle_name = current.cycle
            else:
                cycle_name = CycleKind.MONTHLY
            if "custom_cycle_days" in fields:
                days = fields["custom_cycle_days"]
            else:
                days = current.custom_cycle_days if current is not None else None
            try:
                data["_cycle"] = parse_cycle(cycle_name, days)
            except ValidationError as exc:
                errors.update(exc.errors)

        if errors:
            raise ValidationError(errors)

        for key in ("system_type", "priority"):
            if key in data:
                data[key] = data[key].value
        return data

    @staticmethod
    def _schedule(record: MaintenanceRecord, cycle) -> None:
        record.cycle = cycle.kind.value
        record.custom_cycle_days = cycle.custom_days
        record.next_maintenance = next_due(record.last_maintenance, cycle)

    def _load(self, record_id) -> MaintenanceRecord:
        record = self.store.load_maintenance(record_id)
        if record is None:
            raise NotFoundError("maintenance record", record_id)
        return record

    # ---------- writes ----------
    def create(self, fields: dict, today: date) -> MaintenanceRecord:
        data = self._clean(fields)
        cycle = data.pop("_cycle")
        requested = data.pop("status", None)

        record = MaintenanceRecord(**data)
        self._schedule(record, cycle)
        base = requested if requested in STICKY_STATUSES else Status.ACTIVE
        record.status = evaluate(record.next_maintenance, base, today).value

        with self.store.transaction():
            self.store.save_maintenance(record)
        return record

    def update(self, record_id, fields: dict, today: date) -> MaintenanceRecord:
        with self.store.transaction():
            record = self._load(record_id)
            data = self._clean(fields, current=record)
            cycle = data.pop("_cycle", None)
            requested = data.pop("status", None)
            base = self._requested_base(record, requested)

            for key, value in data.items():
                setattr(record, key, value)
            if cycle is not None or "last_maintenance" in data:
                self._schedule(record, cycle or record.interval)
            record.status = evaluate(record.next_maintenance, base, today).value
            self.store.save_maintenance(record)
        return record

    @staticmethod
    def _requested_base(record: MaintenanceRecord, requested: Optional[Status]) -> Status:
        current = Status.parse(record.status, "status")
        if requested is None:
            return current
        if requested is Status.COMPLETED and current is Status.SUSPENDED:
            raise ValidationError({"status": "a suspended record must be resumed before it is completed"})
        if requested in STICKY_STATUSES:
            return requested
        # Active/Overdue are derived, asking for either means "re-evaluate"
        return Status.ACTIVE

    def complete(self, record_id, completion_date, today: date,
                 notes: Optional[str] = None, cost=None) -> MaintenanceRecord:
        """Record the work as done on ``completion_date`` and reschedule.

        Completion dates after ``today`` are rejected.
        """
        completion_date = parse_date(completion_date, "completion_date")
        if completion_date > today:
            raise ValidationError({
                "completion_date": f"cannot be in the future (got {completion_date}, today is {today})"
            })
        extra = {}
        if notes is not None:
            extra["notes"] = notes
        if cost is not None:
            extra["cost"] = cost

        with self.store.transaction():
            record = self._load(record_id)
            if Status.parse(record.status, "status") is Status.SUSPENDED:
                raise ValidationError({"status": "a suspended record must be resumed before it is completed"})
            data = self._clean(extra, current=record)
            data.pop("_cycle", None)
            for key, value in data.items():
                setattr(record, key, value)

            record.last_maintenance = completion_date
            self._schedule(record, record.interval)
            record.status = evaluate(record.next_maintenance, Status.ACTIVE, today).value
            self.store.save_maintenance(record)

        logger.info("maintenance %s completed on %s, next due %s",
                    record.id, completion_date, record.next_maintenance)
        return record

    def suspend(self, record_id) -> MaintenanceRecord:
        with self.store.transaction():
            record = self._load(record_id)
            if record.status == Status.SUSPENDED.value:
                raise ValidationError({"status": f"maintenance record {record_id} is already suspended"})
            record.status = Status.SUSPENDED.value
            self.store.save_maintenance(record)
        return record

    def resume(self, record_id, today: date) -> MaintenanceRecord:
        with self.store.transaction():
            record = self._load(record_id)
            if record.status != Status.SUSPENDED.value:
                raise ValidationError({
                    "status": f"only suspended records can be resumed (status is {record.status})"
                })
            record.status = evaluate(record.next_maintenance, Status.ACTIVE, today).value
            self.store.save_maintenance(record)
        return record

    def delete(self, record_id) -> list:
        """Delete a record with its proof documents; returns the document paths."""
        with self.store.transaction():
            record = self._load(record_id)
            paths = [doc.path for doc in record.proof_documents]
            self.store.delete_maintenance(record)
        return paths

    def refresh_overdue(self, today: date) -> int:
        """Re-evaluate every non-sticky record against ``today``."""
        changed = 0
        with self.store.transaction():
            records = self.store.scalars(
                select(MaintenanceRecord).where(
                    MaintenanceRecord.status.in_([Status.ACTIVE.value, Status.OVERDUE.value])
                )
            ).all()
            for record in records:
                status = evaluate(record.next_maintenance, record.status, today).value
                if status != record.status:
                    record.status = status
                    changed += 1
        logger.info("status refresh for %s: %d of %d records changed", today, changed, len(records))
        return changed

    # ---------- proof documents ----------
    def add_documents(self, record_id, documents: list) -> list:
        with self.store.transaction():
            record = self._load(record_id)
            added = [ProofDocument(**doc) for doc in documents]
            record.proof_documents.extend(added)
            self.store.save_maintenance(record)
        return added

    def remove_document(self, record_id, filename: str) -> dict:
        """Delete one proof document; returns its fields, path included."""
        with self.store.transaction():
            record = self._load(record_id)
            doc = self.store.load_document(record.id, filename)
            if doc is None:
                raise NotFoundError("proof document", filename)
            removed = doc.to_dict()
            record.proof_documents.remove(doc)
            self.store.save_maintenance(record)
        return removed

    # ---------- reads ----------
    def get(self, record_id) -> MaintenanceRecord:
        return self._load(record_id)

    def search(self, filters: dict, today: date, window_days: int = 30):
        """Filtered page of records. Returns ``(records, total)``."""
        stmt = select(MaintenanceRecord)
        if filters.get("status"):
            stmt = stmt.where(MaintenanceRecord.status == Status.parse(filters["status"], "status").value)
        if filters.get("system"):
            stmt = stmt.where(MaintenanceRecord.system.ilike(f"%{filters['system']}%"))
        if filters.get("company"):
            stmt = stmt.where(MaintenanceRecord.company_name.ilike(f"%{filters['company']}%"))
        if filters.get("overdue"):
            stmt = stmt.where(MaintenanceRecord.next_maintenance < today,
                              MaintenanceRecord.status.notin_([s.value for s in STICKY_STATUSES]))
        if filters.get("upcoming"):
            stmt = stmt.where(MaintenanceRecord.next_maintenance >= today,
                              MaintenanceRecord.next_maintenance <= today + timedelta(days=window_days))

        total = self.store.scalar(select(func.count()).select_from(stmt.subquery()))

        sort_by = filters.get("sort_by") or "next_maintenance"
        if sort_by not in SORT_FIELDS:
            raise ValidationError({"sort_by": f"must be one of: {', '.join(SORT_FIELDS)}"})
        column = SORT_FIELDS[sort_by]
        order = column.desc() if str(filters.get("sort_order", "asc")).lower() == "desc" else column.asc()

        page = max(int(filters.get("page") or 1), 1)
        limit = min(max(int(filters.get("limit") or 10), 1), MAX_PAGE_SIZE)
        stmt = stmt.order_by(order, MaintenanceRecord.id).offset((page - 1) * limit).limit(limit)
        return self.store.scalars(stmt).all(), total

    def upcoming(self, today: date, days: int = 30, limit: int = 10) -> list:
        stmt = (select(MaintenanceRecord)
                .where(MaintenanceRecord.next_maintenance >= today,
                       MaintenanceRecord.next_maintenance <= today + timedelta(days=days),
                       MaintenanceRecord.status != Status.COMPLETED.value)
                .order_by(MaintenanceRecord.next_maintenance.asc(), MaintenanceRecord.id)
                .limit(limit))
        return self.store.scalars(stmt).all()

    def stats(self, today: date, window_days: int = 30) -> dict:
        def count(*criteria) -> int:
            return self.store.scalar(select(func.count(MaintenanceRecord.id)).where(*criteria))

        def grouped(column) -> list:
            rows = self.store.execute(
                select(column, func.count(MaintenanceRecord.id).label("n"))
                .group_by(column)
                .order_by(func.count(MaintenanceRecord.id).desc(), column)
            ).all()
            return [{"value": value, "count": n} for value, n in rows]

        sticky = [s.value for s in STICKY_STATUSES]
        month_start = datetime(today.year, today.month, 1)
        next_month = datetime(today.year + today.month // 12, today.month % 12 + 1, 1)
        return {
            "total": count(),
            "active": count(MaintenanceRecord.status == Status.ACTIVE.value),
            "overdue": count(MaintenanceRecord.next_maintenance < today,
                             MaintenanceRecord.status.notin_(sticky)),
            "upcoming": count(MaintenanceRecord.next_maintenance >= today,
                              MaintenanceRecord.next_maintenance <= today + timedelta(days=window_days),
                              MaintenanceRecord.status != Status.COMPLETED.value),
            "completed": count(MaintenanceRecord.status == Status.COMPLETED.value),
            # last touched in today's calendar month
            "completed_this_month": count(MaintenanceRecord.status == Status.COMPLETED.value,
                                          MaintenanceRecord.updated_at >= month_start,
                                          MaintenanceRecord.updated_at < next_month),
            "suspended": count(MaintenanceRecord.status == Status.SUSPENDED.value),
            "by_system_type": grouped(MaintenanceRecord.system_type),
            "by_priority": grouped(MaintenanceRecord.priority),
        }
