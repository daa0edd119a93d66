"""
Pitchboard
Flask Application Factory.

Usage:
    from pitchboard import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import json
import logging
import os

import click
from flask import Flask
from flask_cors import CORS

from pitchboard.config import config
from pitchboard.models import db
from pitchboard.middleware.logging_config import configure_logging

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections (elite → winner SET NULL)."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_app(config_name=None, *, store=None, mirror=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.
        store: Optional PrimaryStore override (tests).
        mirror: Optional LocalCacheMirror override (tests).

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Import models so create_all() sees the contest tables ────────────
    from pitchboard.models import contest as _contest_models  # noqa: F401

    # ── Auto-create tables for the SQL primary store ─────────────────────
    if app.config.get("PRIMARY_STORE") == "sql":
        if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///") and not app.testing:
            os.makedirs(app.instance_path, exist_ok=True)
        with app.app_context():
            try:
                db.create_all()
                app.logger.info("db.create_all() completed successfully")
            except Exception as e:
                # Primary store down at startup: run degraded from the cache mirror
                app.logger.warning("db.create_all() failed: %s", e)

    # ── Sync layer ───────────────────────────────────────────────────────
    from pitchboard.services import init_sync
    init_sync(app, store=store, mirror=mirror)

    # ── Blueprints ───────────────────────────────────────────────────────
    from pitchboard.blueprints.contest_bp import contest_bp
    from pitchboard.blueprints.health_bp import health_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(contest_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("export-backup")
    @click.argument("path", type=click.Path(dir_okay=False, writable=True))
    def export_backup_cmd(path):
        """Write winners, losers and elite records to a JSON backup file."""
        from pitchboard.services import get_sync
        from pitchboard.services.contest_service import export_backup
        backup = export_backup(get_sync())
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(backup, fh, indent=2, ensure_ascii=False)
        click.echo(
            f"Exported {len(backup['winners'])} winners, {len(backup['losers'])} losers, "
            f"{len(backup['elite'])} elite records to {path}"
        )

    @app.cli.command("restore-backup")
    @click.argument("path", type=click.Path(exists=True, dir_okay=False))
    def restore_backup_cmd(path):
        """Replace all collections with the contents of a JSON backup file."""
        from pitchboard.services import get_sync
        from pitchboard.services.contest_service import parse_restore_payload
        with open(path, encoding="utf-8") as fh:
            payload = parse_restore_payload(json.load(fh))
        report = get_sync().restorer.restore(payload)
        click.echo(json.dumps(report.to_dict(), indent=2))

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        from flask import request
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    return app
