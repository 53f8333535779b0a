from __future__ import annotations

import logging
import os

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .derangement import DerangementGenerationError, DuplicateParticipantError, InsufficientParticipantsError
from .extensions import db, migrate
from .services.draw import DrawPersistenceError
from .services.groups import (
    DuplicateInviteError,
    GroupStateError,
    GroupValidationError,
    InviteNotFoundError,
)
from .views.groups import groups_bp
from .views.members import members_bp
from .views.public import public_bp

# Exception -> HTTP status for the JSON API
ERROR_STATUS = (
    (InsufficientParticipantsError, 422),
    (DerangementGenerationError, 503),
    (DuplicateParticipantError, 422),
    (GroupStateError, 409),
    (DuplicateInviteError, 409),
    (InviteNotFoundError, 404),
    (GroupValidationError, 400),
    (DrawPersistenceError, 500),
)


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__)

    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///santadraw.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    # Fernet key(s) for sealed assignments; empty derives one from SECRET_KEY
    app.config["ASSIGNMENT_ENC_KEY"] = os.environ.get("ASSIGNMENT_ENC_KEY", "").strip()

    # Draw engine knobs
    app.config["DRAW_MIN_PARTICIPANTS"] = int(os.environ.get("DRAW_MIN_PARTICIPANTS", "3"))
    app.config["DRAW_MAX_ATTEMPTS"] = int(os.environ.get("DRAW_MAX_ATTEMPTS", "10"))
    app.config["DRAW_SHUFFLE_STRATEGY"] = os.environ.get("DRAW_SHUFFLE_STRATEGY", "restricted").strip()

    # Used to build invite / room links in notifications
    app.config["PUBLIC_BASE_URL"] = os.environ.get("PUBLIC_BASE_URL", "http://localhost:5000")
    app.config["LOG_LEVEL"] = os.environ.get("LOG_LEVEL", "INFO").upper()

    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    db.init_app(app)
    migrate.init_app(app, db)

    # Blueprints
    app.register_blueprint(public_bp)
    app.register_blueprint(groups_bp)
    app.register_blueprint(members_bp)

    _register_error_handlers(app)

    return app


def _register_error_handlers(app: Flask) -> None:
    def make_handler(status: int):
        def handle(e):
            if status >= 500:
                app.logger.error("Request failed: %s", e, exc_info=e)
            return jsonify({"error": str(e)}), status
        return handle

    for exc_class, status in ERROR_STATUS:
        app.register_error_handler(exc_class, make_handler(status))

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return jsonify({"error": e.description}), e.code
