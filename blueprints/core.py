"""Core routes — health check and shared API error handlers."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify

from state_store import StorageError
from tasks import is_async_available

logger = logging.getLogger(__name__)

bp = Blueprint("core", __name__)


@bp.route("/health")
def health():
    from database import get_db
    try:
        get_db().execute("SELECT 1").fetchone()
        db_status = "ok"
    except Exception as e:
        logger.error("Health check database error: %s", e)
        db_status = "error"
    status = 200 if db_status == "ok" else 503
    return jsonify({
        "status": "ok" if status == 200 else "degraded",
        "database": db_status,
        "sync": "queue" if is_async_available() else "inline",
    }), status


@bp.app_errorhandler(StorageError)
def handle_storage_error(err: StorageError):
    logger.error("Storage failure: %s", err)
    return jsonify({"error": str(err)}), 500


@bp.app_errorhandler(404)
def handle_not_found(err):
    return jsonify({"error": "Not found"}), 404
