# modules/facilities/routes.py
"""JSON endpoints for facilities, their tasks and meters."""

from flask import jsonify, request
from sqlalchemy import func, select

from errors import NotFoundError, ValidationError
from extensions import db
from utils import parse_date, today

from . import bp
from .integrity import DEPENDENT_KINDS, FacilityIntegrityManager
from .models import METER_TYPES, ElectricMeter, Facility, HeatGasMeter, Task

FACILITY_TEXT_FIELDS = {
    "name": 200, "type": 100, "location": 200, "address": 255, "description": None,
    "status": 32, "manager": 150, "contact": 150, "notes": None,
}
FACILITY_NUMBER_FIELDS = {"area": float, "floors": int, "year_built": int}
SORT_FIELDS = {"name", "type", "location", "created_at", "updated_at"}


# ---------- helpers ----------
def _manager() -> FacilityIntegrityManager:
    from store import SqlStore
    return FacilityIntegrityManager(SqlStore(db.session))


def _json() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError({"body": "expected a JSON object"})
    return data


def _text(data: dict, key: str, limit, errors: dict, required: bool = False):
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            errors[key] = "is required"
        return None
    if not isinstance(value, str):
        errors[key] = "must be a string"
        return None
    value = value.strip()
    if limit and len(value) > limit:
        errors[key] = f"must be at most {limit} characters (got {len(value)})"
    return value


def _facility_fields(data: dict, partial: bool) -> dict:
    errors = {}
    fields = {}
    for key, limit in FACILITY_TEXT_FIELDS.items():
        if partial and key not in data:
            continue
        fields[key] = _text(data, key, limit, errors, required=(key == "name"))
    for key, cast in FACILITY_NUMBER_FIELDS.items():
        if key not in data:
            continue
        value = data[key]
        if value is None or value == "":
            fields[key] = None
            continue
        try:
            fields[key] = cast(value)
        except (TypeError, ValueError):
            errors[key] = f"must be a number (got {value!r})"
    if errors:
        raise ValidationError(errors)
    if not partial and not fields.get("status"):
        fields["status"] = "Active"
    return fields


def _optional_facility_id(data: dict):
    facility_id = data.get("facility_id")
    if facility_id is None:
        return None
    if isinstance(facility_id, bool) or not isinstance(facility_id, int):
        raise ValidationError({"facility_id": f"must be an integer or null (got {facility_id!r})"})
    if db.session.get(Facility, facility_id) is None:
        raise NotFoundError("facility", facility_id)
    return facility_id


def _get_facility(facility_id: int) -> Facility:
    facility = db.session.get(Facility, facility_id)
    if facility is None:
        raise NotFoundError("facility", facility_id)
    return facility


# =================== FACILITIES ===================
@bp.route("/", methods=["GET"])
def list_facilities():
    q = request.args.get("search", "").strip()
    page = max(request.args.get("page", 1, type=int), 1)
    limit = min(max(request.args.get("limit", 10, type=int), 1), 100)
    sort_by = request.args.get("sort_by", "name")
    sort_col = getattr(Facility, sort_by if sort_by in SORT_FIELDS else "name")
    order = sort_col.desc() if request.args.get("sort_order", "asc").lower() == "desc" else sort_col.asc()

    stmt = select(Facility)
    if q:
        like = f"%{q}%"
        stmt = stmt.where(
            (Facility.name.ilike(like)) |
            (Facility.location.ilike(like)) |
            (Facility.address.ilike(like))
        )
    if request.args.get("type"):
        stmt = stmt.where(Facility.type == request.args["type"])
    if request.args.get("status"):
        stmt = stmt.where(Facility.status == request.args["status"])

    total = db.session.scalar(select(func.count()).select_from(stmt.subquery()))
    items = db.session.scalars(stmt.order_by(order, Facility.id).offset((page - 1) * limit).limit(limit)).all()
    return jsonify(ok=True,
                   data=[f.to_dict() for f in items],
                   pagination={"page": page, "limit": limit, "total": total,
                               "pages": -(-total // limit)})


@bp.route("/<int:facility_id>", methods=["GET"])
def get_facility(facility_id: int):
    return jsonify(ok=True, data=_get_facility(facility_id).to_dict())


@bp.route("/", methods=["POST"])
def create_facility():
    facility = Facility(**_facility_fields(_json(), partial=False))
    db.session.add(facility)
    db.session.commit()
    return jsonify(ok=True, data=facility.to_dict()), 201


@bp.route("/<int:facility_id>", methods=["PUT"])
def update_facility(facility_id: int):
    facility = _get_facility(facility_id)
    fields = _facility_fields(_json(), partial=True)
    if not fields:
        raise ValidationError({"body": "no valid fields to update"})
    for key, value in fields.items():
        setattr(facility, key, value)
    db.session.commit()
    return jsonify(ok=True, data=facility.to_dict())


@bp.route("/<int:facility_id>", methods=["DELETE"])
def delete_facility(facility_id: int):
    report = _manager().delete_facility(facility_id)
    return jsonify(ok=True,
                   message=f"facility {facility_id} deleted, {report.total} dependent record(s) detached",
                   data=report.to_dict())


@bp.route("/<int:facility_id>/dependents", methods=["GET"])
def facility_dependents(facility_id: int):
    counts = _manager().dependent_counts(facility_id)
    return jsonify(ok=True, data={"facility_id": facility_id, "counts": counts,
                                  "total": sum(counts.values())})


@bp.route("/<int:facility_id>/stats", methods=["GET"])
def facility_stats(facility_id: int):
    facility = _get_facility(facility_id)

    def tasks(*criteria) -> int:
        return db.session.scalar(
            select(func.count(Task.id)).where(Task.facility_id == facility_id, *criteria)
        )

    counts = _manager().dependent_counts(facility_id)
    return jsonify(ok=True, data={
        "facility": facility.to_dict(),
        "tasks": {
            "total": counts["tasks"],
            "completed": tasks(Task.status == "Completed"),
            "pending": tasks(Task.status == "Pending"),
            "overdue": tasks(Task.deadline < today(), Task.status.notin_(["Completed", "Cancelled"])),
        },
        "meters": {
            "electric": counts["electric_meters"],
            "heat_gas": counts["heat_gas_meters"],
        },
    })


# =================== DEPENDENTS ===================
@bp.route("/tasks", methods=["POST"])
def create_task():
    data = _json()
    errors = {}
    what = _text(data, "what", 200, errors, required=True)
    description = _text(data, "description", 1000, errors)
    deadline = None
    if data.get("deadline"):
        try:
            deadline = parse_date(data["deadline"], "deadline")
        except ValidationError as exc:
            errors.update(exc.errors)
    if errors:
        raise ValidationError(errors)

    task = Task(what=what, description=description, deadline=deadline,
                category=data.get("category") or "Other",
                priority=data.get("priority") or "Medium",
                status=data.get("status") or "Pending",
                facility_id=_optional_facility_id(data))
    db.session.add(task)
    db.session.commit()
    return jsonify(ok=True, data=task.to_dict()), 201


def _meter_base(data: dict, errors: dict, model) -> dict:
    fields = {
        "name": _text(data, "name", 150, errors, required=True),
        "number": _text(data, "number", 64, errors, required=True),
        "location": _text(data, "location", 200, errors),
    }
    if fields["number"] and db.session.scalars(select(model).filter_by(number=fields["number"])).first():
        errors["number"] = f"meter number {fields['number']} already exists"
    return fields


@bp.route("/electric-meters", methods=["POST"])
def create_electric_meter():
    data = _json()
    errors = {}
    fields = _meter_base(data, errors, ElectricMeter)
    if errors:
        raise ValidationError(errors)
    meter = ElectricMeter(facility_id=_optional_facility_id(data), **fields)
    db.session.add(meter)
    db.session.commit()
    return jsonify(ok=True, data=meter.to_dict()), 201


@bp.route("/heat-gas-meters", methods=["POST"])
def create_heat_gas_meter():
    data = _json()
    errors = {}
    fields = _meter_base(data, errors, HeatGasMeter)
    fields["unit"] = _text(data, "unit", 16, errors, required=True)
    meter_type = data.get("meter_type")
    meter_type = meter_type.strip().lower() if isinstance(meter_type, str) else ""
    if meter_type not in METER_TYPES:
        errors["meter_type"] = f"must be one of: {', '.join(METER_TYPES)}"
    if errors:
        raise ValidationError(errors)
    meter = HeatGasMeter(meter_type=meter_type, facility_id=_optional_facility_id(data), **fields)
    db.session.add(meter)
    db.session.commit()
    return jsonify(ok=True, data=meter.to_dict()), 201


@bp.route("/<string:kind>/<int:dependent_id>/facility", methods=["PUT"])
def reassign_dependent(kind: str, dependent_id: int):
    kind = kind.replace("-", "_")
    if kind not in DEPENDENT_KINDS:
        raise ValidationError({"kind": f"must be one of: {', '.join(DEPENDENT_KINDS)}"})
    data = _json()
    facility_id = data.get("facility_id")
    if facility_id is not None and (isinstance(facility_id, bool) or not isinstance(facility_id, int)):
        raise ValidationError({"facility_id": f"must be an integer or null (got {facility_id!r})"})
    dependent = _manager().reassign(kind, dependent_id, facility_id)
    return jsonify(ok=True, data=dependent.to_dict())
