import logging
import os

from flask import Flask, jsonify
from dotenv import load_dotenv

load_dotenv()

from config import Config  # noqa: E402  (load_dotenv needs to run first)
from extensions import db  # noqa: E402  (load_dotenv needs to run first)
from errors import register_error_handlers  # noqa: E402


def create_app(overrides: dict | None = None) -> Flask:
    """Application factory for the facility maintenance service."""

    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # init extensions
    db.init_app(app)

    # blueprints
    from modules.maintenance import bp as maintenance_bp
    from modules.facilities import bp as facilities_bp

    app.register_blueprint(maintenance_bp)
    app.register_blueprint(facilities_bp)
    register_error_handlers(app)

    @app.route("/")
    def index():
        return jsonify(ok=True, service="facility-maintenance",
                       endpoints=["/maintenance/", "/facilities/"])

    # DB
    with app.app_context():
        # models must be imported before create_all()
        from modules.maintenance import models as maintenance_models  # noqa: F401
        from modules.facilities import models as facility_models  # noqa: F401

        db.create_all()

    # uploads dir
    os.makedirs(app.config.get("UPLOAD_FOLDER", "uploads"), exist_ok=True)

    return app

if __name__ == "__main__":
    app = create_app()
    app.run(debug=True)
