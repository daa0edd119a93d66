"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready    simple 200 for load balancers
    GET /api/v1/health/live     primary store + cache mirror status
"""

import logging

from flask import Blueprint, current_app, jsonify

from pitchboard.services import EXTENSION_KEY

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe: always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Dependency status. The primary store being down means degraded, not dead."""
    sync = current_app.extensions[EXTENSION_KEY]
    checks = {}

    # ── Primary store ────────────────────────────────────────────────
    result = sync.store.ping()
    if result.ok:
        checks["primary_store"] = {
            "status": "ok", "backend": sync.store.name, "latency_ms": result.duration_ms,
        }
    else:
        checks["primary_store"] = {
            "status": "error", "backend": sync.store.name, "detail": result.error,
        }
        logger.error("Health check: primary store failed: %s", result.error)

    # ── Cache mirror ─────────────────────────────────────────────────
    checks["cache_mirror"] = sync.mirror.health_check()

    checks["app"] = {
        "name": "Pitchboard",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }

    cache_ok = checks["cache_mirror"]["status"] == "ok"
    overall = result.ok and cache_ok
    # Degraded mode still serves reads from the mirror, so only a dead mirror is a 503
    status_code = 200 if cache_ok else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
