"""
IdeaFlow
Flask Application Factory.

Usage:
    from ideaflow import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS

from ideaflow.config import STORE_BACKENDS, config
from ideaflow.core.exceptions import ConfigurationError
from ideaflow.middleware.logging_config import configure_logging
from ideaflow.middleware.timing import init_request_timing
from ideaflow.models import db
from ideaflow.services.event_service import EventService
from ideaflow.services.idea_feed import IdeaFeed
from ideaflow.services.passport_service import PassportService
from ideaflow.services.pipeline_service import PipelineService
from ideaflow.store.memory import InMemoryDocumentStore
from ideaflow.store.sql import SqlDocumentStore

logger = logging.getLogger(__name__)


def _ensure_sqlite_dir(uri):
    """Create the instance/ folder for a file-backed SQLite database."""
    prefix = "sqlite:///"
    if uri.startswith(prefix) and ":memory:" not in uri:
        folder = os.path.dirname(uri[len(prefix):])
        if folder:
            os.makedirs(folder, exist_ok=True)


def _build_store(app):
    backend = app.config.get("STORE_BACKEND", "sql")
    if backend not in STORE_BACKENDS:
        raise ConfigurationError(
            f"STORE_BACKEND must be one of {', '.join(STORE_BACKENDS)}, got '{backend}'"
        )
    if backend == "memory":
        return InMemoryDocumentStore()
    return SqlDocumentStore()


def init_services(app, store):
    """Wire the store, services and idea feed into ``app.extensions["ideaflow"]``."""
    retries = int(app.config.get("PIPELINE_WRITE_RETRIES", 3))

    events = EventService(store, write_retries=retries)
    registry = {
        "store": store,
        "events": events,
        "pipeline": PipelineService(store, events, write_retries=retries),
        "passport": PassportService(store, events, write_retries=retries),
        "feed": IdeaFeed(store),
    }
    app.extensions["ideaflow"] = registry

    with app.app_context():
        registry["feed"].start()
    return registry


def create_app(config_name=None, store=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.
        store: Optional DocumentStore to use instead of STORE_BACKEND.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    cfg = config[config_name]
    app.config.from_object(cfg() if config_name == "production" else cfg)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Auto-create tables (CREATE IF NOT EXISTS) ─────────────────────────
    from ideaflow.models import document as _document_models  # noqa: F401

    if store is None:
        store = _build_store(app)
    if isinstance(store, SqlDocumentStore):
        _ensure_sqlite_dir(app.config["SQLALCHEMY_DATABASE_URI"])
        with app.app_context():
            db.create_all()
            app.logger.info("db.create_all() completed successfully")

    # ── Services & live idea feed ────────────────────────────────────────
    init_services(app, store)

    # ── Blueprints ───────────────────────────────────────────────────────
    from ideaflow.blueprints.ideas_bp import ideas_bp
    from ideaflow.blueprints.passport_bp import passport_bp

    app.register_blueprint(ideas_bp)
    app.register_blueprint(passport_bp)

    # ── Health check ─────────────────────────────────────────────────────
    @app.route("/api/v1/health")
    def health():
        registry = app.extensions["ideaflow"]
        return {
            "status": "ok",
            "app": "IdeaFlow",
            "store": type(registry["store"]).__name__,
            "feed": "live" if registry["feed"].started else "stopped",
        }

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    return app
