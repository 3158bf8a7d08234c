"""
Health blueprint — probes for the load balancer and the deploy pipeline.

Endpoints:
    GET /api/v1/health/ready  — process is up; never touches the database
    GET /api/v1/health/live   — database round-trip plus the engine's tables

/live answers 503 when the database is unreachable or an engine table is missing.
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from dtplanner.middleware.diagnostics import missing_engine_tables
from dtplanner.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    checks = {}

    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        checks["database"] = {"status": "ok", "latency_ms": round((time.perf_counter() - t0) * 1000, 1)}
    except Exception as exc:
        logger.error("Liveness probe: database unreachable: %s", exc)
        checks["database"] = {"status": "error", "detail": str(exc)}
    else:
        missing = missing_engine_tables()
        if missing:
            logger.error("Liveness probe: engine tables missing: %s", missing)
        checks["schema"] = {"status": "error" if missing else "ok", "missing_tables": missing}

    checks["app"] = {"debug": current_app.debug, "testing": current_app.testing}

    healthy = all(c.get("status", "ok") == "ok" for c in checks.values())
    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "checks": checks,
    }), 200 if healthy else 503
