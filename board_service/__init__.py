"""
Backlog & Board Service
Flask Application Factory.

Usage:
    from board_service import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from board_service.config import config
from board_service.core.exceptions import ServiceError
from board_service.middleware.jwt_auth import init_jwt_middleware
from board_service.middleware.logging_config import configure_logging
from board_service.middleware.rate_limiter import init_rate_limits
from board_service.middleware.timing import init_request_timing
from board_service.models import db
from board_service.utils.errors import E, api_error

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit — apply per-blueprint
    storage_uri=os.getenv("REDIS_URL") or "memory://",
)


def _register_error_handlers(app):
    """One JSON handler per failure kind, shared by every blueprint."""

    @app.errorhandler(ServiceError)
    def service_error(exc):
        # Nothing half-applied may leak into the next commit on this session
        db.session.rollback()
        if exc.error_type == E.TRANSIENT:
            logger.warning("Transient store failure: %s", exc.message)
        return api_error(exc.error_type, exc.message, details=exc.details or None)

    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", status=404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error("ERR_METHOD_NOT_ALLOWED", "Method not allowed", status=405)

    @app.errorhandler(413)
    def too_large(e):
        return api_error(E.VALIDATION, "Request body too large", status=413)

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error("ERR_RATE_LIMITED", "Too many requests", status=429,
                         details={"retry_after": e.description})

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error", status=500)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())
    os.makedirs(app.instance_path, exist_ok=True)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing, then bearer-token auth ───────────────────────────
    init_request_timing(app)
    init_jwt_middleware(app)

    # ── Models (register tables on the metadata) ─────────────────────────
    from board_service.models import auth, backlog, project  # noqa: F401

    # ── Blueprints ───────────────────────────────────────────────────────
    from board_service.blueprints.backlog_bp import backlog_bp
    from board_service.blueprints.board_bp import board_bp
    from board_service.blueprints.health_bp import health_bp
    from board_service.blueprints.projects_bp import projects_bp
    from board_service.blueprints.reporting_bp import reporting_bp
    from board_service.blueprints.users_bp import users_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(projects_bp)
    app.register_blueprint(backlog_bp)
    app.register_blueprint(board_bp)
    app.register_blueprint(reporting_bp)

    _register_error_handlers(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
