"""
Audit trail for account and data events: signup, login outcomes, lockouts,
logout and device resets. Each event becomes an audit_log row and a log line.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime

from flask import has_request_context, request

from database import get_db

logger = logging.getLogger(__name__)


def _client_info() -> tuple[str, str]:
    if not has_request_context():
        return "", ""
    return request.remote_addr or "", request.headers.get("User-Agent", "")[:256]


def log_event(action: str, user_id: int | None = None, detail: str = "") -> None:
    """Record an event. A failed insert is logged and does not fail the caller."""
    ip, agent = _client_info()
    logger.info("audit %s user=%s %s", action, user_id if user_id is not None else "-", detail)
    db = get_db()
    try:
        db.execute(
            "INSERT INTO audit_log (user_id, action, detail, ip_address, user_agent, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (user_id, action, detail, ip, agent, datetime.now().isoformat()),
        )
        db.commit()
    except sqlite3.Error as e:
        logger.warning("Could not write audit event %s: %s", action, e)
