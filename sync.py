"""
Sync adapter — mirrors slices of the device document to per-user documents.

Best effort only: each local change that has already been saved is pushed as
a merge-write (top-level fields not in the payload are kept). Failures are
logged and dropped. There is no read-back, no retry and no reconciliation, so
two devices writing the same user's documents simply overwrite each other.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Callable, Protocol

from state_store import AppState, DEFAULT_DAILY_GOAL

logger = logging.getLogger(__name__)

PROFILE_PATH = "profile"
PROGRESS_PATH = "progress/data"


class RemoteDocumentStore(Protocol):
    def get(self, user_id: int, path: str) -> dict | None: ...
    def merge_set(self, user_id: int, path: str, data: dict) -> None: ...


class DatabaseDocumentStore:
    """user_documents rows, one JSON object per (user, path).

    Holds only the database path and opens a short-lived connection per call,
    so instances can be pickled into an RQ job.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    def _connect(self):
        from database import connect
        return connect(self.db_path)

    def get(self, user_id: int, path: str) -> dict | None:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT data FROM user_documents WHERE user_id = ? AND path = ?",
                (user_id, path),
            ).fetchone()
            return json.loads(row["data"]) if row else None
        finally:
            conn.close()

    def merge_set(self, user_id: int, path: str, data: dict) -> None:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT data FROM user_documents WHERE user_id = ? AND path = ?",
                (user_id, path),
            ).fetchone()
            merged = json.loads(row["data"]) if row else {}
            merged.update(data)
            conn.execute(
                "INSERT INTO user_documents (user_id, path, data, last_updated) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(user_id, path) DO UPDATE SET data = excluded.data, "
                "last_updated = excluded.last_updated",
                (user_id, path, json.dumps(merged, ensure_ascii=False),
                 data.get("lastUpdated", datetime.now().isoformat())),
            )
            conn.commit()
        finally:
            conn.close()


def write_document(store: RemoteDocumentStore, user_id: int, path: str, data: dict) -> bool:
    """Job body for one merge-write. Never raises."""
    try:
        store.merge_set(user_id, path, data)
        logger.debug("Synced %s for user %s", path, user_id)
        return True
    except Exception as e:
        logger.warning("Sync of %s for user %s failed: %s", path, user_id, e)
        return False


class SyncAdapter:
    """Pushes settings and progress for one signed-in user."""

    def __init__(
        self,
        store: RemoteDocumentStore,
        user_id: int,
        enqueue: Callable | None = None,
    ) -> None:
        self.store = store
        self.user_id = user_id
        if enqueue is None:
            from tasks import enqueue
        self._enqueue = enqueue

    def _push(self, path: str, data: dict) -> None:
        payload = {**data, "lastUpdated": datetime.now().isoformat()}
        try:
            self._enqueue(write_document, self.store, self.user_id, path, payload)
        except Exception as e:
            logger.warning("Could not dispatch sync of %s for user %s: %s", path, self.user_id, e)

    def push_settings(self, state: AppState) -> None:
        self._push(PROFILE_PATH, {"settings": state.settings.to_dict()})

    def push_progress(self, state: AppState) -> None:
        doc = state.to_dict()
        self._push(PROGRESS_PATH, {
            "ayahProgress": doc["ayahProgress"],
            "progress": doc["progress"],
            "lastMemorizedPosition": doc["lastMemorizedPosition"],
        })

    def seed_account(self, email: str, display_name: str, photo_url: str | None = None) -> None:
        """Create the profile document for a new account."""
        profile = {
            "email": email,
            "displayName": display_name,
            "createdAt": datetime.now().isoformat(),
            "settings": {"darkMode": False, "dailyGoal": DEFAULT_DAILY_GOAL},
        }
        if photo_url is not None:
            profile["photoURL"] = photo_url
        self._push(PROFILE_PATH, profile)

    def seed_account_if_absent(self, email: str, display_name: str, photo_url: str | None = None) -> bool:
        """Seed the profile only when the user has none yet.

        Returns True when a seed was dispatched. A failed read skips the seed
        so an existing profile is never overwritten.
        """
        try:
            existing = self.store.get(self.user_id, PROFILE_PATH)
        except Exception as e:
            logger.warning("Could not read profile for user %s, not seeding: %s", self.user_id, e)
            return False
        if existing is not None:
            return False
        self.seed_account(email, display_name, photo_url)
        return True
