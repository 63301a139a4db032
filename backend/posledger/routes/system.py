# backend/posledger/routes/system.py
"""Liveness / database health endpoint."""

import time
from flask import Blueprint, jsonify, current_app
from sqlalchemy import text

from ..extensions import db
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


@system_bp.get("/api/health")
def health():
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return jsonify({
            "status": "ok",
            "database": {"status": "ok", "response_time_ms": round(elapsed_ms, 2)},
            "checked_at": to_utc_z(utcnow()),
        }), 200
    except Exception as e:
        current_app.logger.exception("Database health check failed")
        return jsonify({
            "status": "degraded",
            "database": {"status": "error", "error": str(e)},
            "checked_at": to_utc_z(utcnow()),
        }), 503
