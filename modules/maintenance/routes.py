# modules/maintenance/routes.py
"""JSON endpoints for maintenance records. All rules live in MaintenanceService."""

import os

from flask import current_app, jsonify, request

from errors import ValidationError
from extensions import db
from utils import parse_date, remove_upload, save_upload, today

from . import bp
from .service import MAX_PAGE_SIZE, MaintenanceService

# nested request objects -> flat column names
NESTED_FIELDS = {
    "company": ("name", "contact", "phone", "email"),
    "location": ("building", "floor", "room", "description"),
}


def _service() -> MaintenanceService:
    from store import SqlStore
    return MaintenanceService(SqlStore(db.session))


def _payload() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError({"body": "expected a JSON object"})
    fields = {k: v for k, v in data.items() if k not in NESTED_FIELDS}
    for group, keys in NESTED_FIELDS.items():
        nested = data.get(group)
        if nested is None:
            continue
        if not isinstance(nested, dict):
            raise ValidationError({group: "expected an object"})
        for key in keys:
            if key in nested:
                fields[f"{group}_{key}"] = nested[key]
    return fields


def _flag(name: str) -> bool:
    return request.args.get(name, "").lower() in ("1", "true", "yes")


# =================== RECORDS ===================
@bp.route("/", methods=["GET"])
def list_records():
    now = today()
    window = request.args.get("days", type=int) or current_app.config["UPCOMING_WINDOW_DAYS"]
    page = max(request.args.get("page", 1, type=int), 1)
    limit = min(max(request.args.get("limit", 10, type=int), 1), MAX_PAGE_SIZE)
    filters = {
        "status": request.args.get("status"),
        "system": request.args.get("system", "").strip(),
        "company": request.args.get("company", "").strip(),
        "overdue": _flag("overdue"),
        "upcoming": _flag("upcoming"),
        "sort_by": request.args.get("sort_by", "next_maintenance"),
        "sort_order": request.args.get("sort_order", "asc"),
        "page": page,
        "limit": limit,
    }
    records, total = _service().search(filters, now, window_days=window)
    return jsonify(ok=True,
                   data=[r.to_dict(now) for r in records],
                   pagination={"page": page, "limit": limit, "total": total,
                               "pages": -(-total // max(limit, 1))})


@bp.route("/<int:record_id>", methods=["GET"])
def get_record(record_id: int):
    record = _service().get(record_id)
    return jsonify(ok=True, data=record.to_dict(today()))


@bp.route("/", methods=["POST"])
def create_record():
    now = today()
    record = _service().create(_payload(), now)
    return jsonify(ok=True, data=record.to_dict(now)), 201


@bp.route("/<int:record_id>", methods=["PUT"])
def update_record(record_id: int):
    now = today()
    record = _service().update(record_id, _payload(), now)
    return jsonify(ok=True, data=record.to_dict(now))


@bp.route("/<int:record_id>", methods=["DELETE"])
def delete_record(record_id: int):
    paths = _service().delete(record_id)
    for path in paths:
        remove_upload(path)
    return jsonify(ok=True, message=f"maintenance record {record_id} deleted", documents_removed=len(paths))


# =================== LIFECYCLE ===================
@bp.route("/<int:record_id>/complete", methods=["POST"])
def complete_record(record_id: int):
    now = today()
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError({"body": "expected a JSON object"})
    completion_date = parse_date(data["completion_date"], "completion_date") \
        if data.get("completion_date") else now
    record = _service().complete(record_id, completion_date, now,
                                 notes=data.get("notes"), cost=data.get("cost"))
    return jsonify(ok=True, data=record.to_dict(now))


@bp.route("/<int:record_id>/suspend", methods=["POST"])
def suspend_record(record_id: int):
    record = _service().suspend(record_id)
    return jsonify(ok=True, data=record.to_dict(today()))


@bp.route("/<int:record_id>/resume", methods=["POST"])
def resume_record(record_id: int):
    now = today()
    record = _service().resume(record_id, now)
    return jsonify(ok=True, data=record.to_dict(now))


@bp.route("/refresh-status", methods=["POST"])
def refresh_status():
    changed = _service().refresh_overdue(today())
    return jsonify(ok=True, changed=changed)


# =================== DASHBOARD ===================
@bp.route("/stats/overview", methods=["GET"])
def stats_overview():
    stats = _service().stats(today(), window_days=current_app.config["UPCOMING_WINDOW_DAYS"])
    return jsonify(ok=True, data=stats)


@bp.route("/dashboard/upcoming", methods=["GET"])
def dashboard_upcoming():
    now = today()
    days = request.args.get("days", current_app.config["UPCOMING_WINDOW_DAYS"], type=int)
    records = _service().upcoming(now, days=days)
    return jsonify(ok=True, data=[r.to_dict(now) for r in records])


# =================== PROOF DOCUMENTS ===================
@bp.route("/<int:record_id>/documents", methods=["POST"])
def upload_documents(record_id: int):
    service = _service()
    service.get(record_id)  # 404 before anything touches the disk

    files = [f for f in request.files.getlist("files") if f and f.filename]
    if not files:
        raise ValidationError({"files": "no files uploaded"})
    max_files = current_app.config["MAX_UPLOAD_FILES"]
    if len(files) > max_files:
        raise ValidationError({"files": f"at most {max_files} files per request (got {len(files)})"})

    folder = os.path.join(current_app.config["UPLOAD_FOLDER"], "maintenance")
    saved = []
    for f in files:
        doc = save_upload(f, folder)
        if doc is None:
            for kept in saved:
                remove_upload(kept["path"])
            raise ValidationError({"files": f"file type not allowed: {f.filename}"})
        saved.append(doc)

    try:
        added = service.add_documents(record_id, saved)
    except Exception:
        for kept in saved:
            remove_upload(kept["path"])
        raise
    return jsonify(ok=True, files=[doc.to_dict() for doc in added], record_id=record_id), 201


@bp.route("/<int:record_id>/documents/<string:filename>", methods=["DELETE"])
def delete_document(record_id: int, filename: str):
    doc = _service().remove_document(record_id, filename)
    remove_upload(doc["path"])
    return jsonify(ok=True, message=f"{filename} removed")
