"""
Shared helpers used across blueprints.

A "device" is one browser session: it gets a random id on first contact, and
that id namespaces the progress document in kv_store. Signing in attaches a
sync adapter for the user but keeps the same device document.
"""

from __future__ import annotations

import uuid
from functools import wraps
from collections.abc import Callable
from typing import Any

from flask import current_app, g, jsonify, session
from flask_login import current_user

from database import database_path, get_db
from progress import ProgressService
from state_store import DatabaseStorage, StateStore

CHAPTER_COUNT = 114


def current_device_id() -> str:
    """Return this session's device id, creating one on first use."""
    device_id = session.get("device_id")
    if not device_id:
        device_id = uuid.uuid4().hex
        session["device_id"] = device_id
        session.permanent = True
    return device_id


def current_user_id() -> int | None:
    """Return the signed-in user's id, or None for anonymous devices."""
    if current_user.is_authenticated:
        return current_user.id
    return None


def build_sync_adapter():
    user_id = current_user_id()
    if user_id is None or not current_app.config.get("SYNC_ENABLED", True):
        return None
    from sync import DatabaseDocumentStore, SyncAdapter
    return SyncAdapter(DatabaseDocumentStore(database_path()), user_id)


def progress_service() -> ProgressService:
    """Request-scoped ProgressService for the current device."""
    if "progress_service" not in g:
        storage = DatabaseStorage(current_device_id(), db=get_db())
        store = StateStore(storage, key=current_app.config.get("STORAGE_KEY", "quran_hifdh_web_v1"))
        g.progress_service = ProgressService(store, sync=build_sync_adapter())
    return g.progress_service


def valid_chapter(f: Callable) -> Callable:
    """Reject chapter ids outside 1..114 before the view runs."""
    @wraps(f)
    def decorated(*args: Any, **kwargs: Any) -> Any:
        chapter_id = kwargs.get("chapter_id")
        if chapter_id is not None and not 1 <= chapter_id <= CHAPTER_COUNT:
            return jsonify({"error": f"Chapter must be between 1 and {CHAPTER_COUNT}."}), 400
        return f(*args, **kwargs)
    return decorated
