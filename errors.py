"""Service-level errors and their JSON rendering."""

from flask import jsonify


class ServiceError(Exception):
    """Base class for errors raised by the scheduling and integrity core."""

    status_code = 500
    kind = "error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"ok": False, "error": self.kind, "message": self.message, "details": self.details}


class ValidationError(ServiceError):
    """Bad or missing input. ``errors`` maps field name -> message."""

    status_code = 400
    kind = "validation_error"

    def __init__(self, errors: dict):
        self.errors = dict(errors)
        fields = ", ".join(sorted(self.errors))
        super().__init__(f"Invalid value for: {fields}", {"errors": self.errors})


class NotFoundError(ServiceError):
    status_code = 404
    kind = "not_found"

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found", {"entity": entity, "id": entity_id})


class IntegrityError(ServiceError):
    """A facility delete left dependents pointing at the removed row.

    Never retried: it means the detach logic itself is broken.
    """

    kind = "integrity_error"

    def __init__(self, facility_id, remaining: dict):
        self.facility_id = facility_id
        self.remaining = dict(remaining)
        super().__init__(
            f"facility {facility_id} still referenced after delete",
            {"facility_id": facility_id, "expected": 0, "remaining": self.remaining},
        )


def register_error_handlers(app) -> None:
    @app.errorhandler(ServiceError)
    def handle_service_error(exc: ServiceError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(404)
    def handle_missing_route(exc):
        return jsonify(ok=False, error="not_found", message="resource not found", details={}), 404

    @app.errorhandler(413)
    def handle_too_large(exc):
        return jsonify(ok=False, error="validation_error", message="upload too large",
                       details={"errors": {"files": "exceeds MAX_CONTENT_LENGTH"}}), 413
