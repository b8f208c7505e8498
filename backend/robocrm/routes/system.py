# Overview: Health and version endpoints.

import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from ..extensions import db


system_bp = Blueprint("system", __name__, url_prefix="/api")

API_VERSION = "1.0.0"


@system_bp.get("/health")
def health():
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
    except Exception:
        current_app.logger.exception("Database health check failed")
        return jsonify({"status": "unhealthy", "database": "error"}), 503
    latency_ms = round((time.time() - start_time) * 1000, 2)
    return jsonify({"status": "healthy", "database": "ok", "latency_ms": latency_ms})


@system_bp.get("/version")
def version():
    return jsonify({"name": "robocrm", "version": API_VERSION})
