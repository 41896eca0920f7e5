"""Tests for sync.py — merge-writes, failure handling and the web push path."""

from __future__ import annotations

from state_store import AppState
from progress import mark_memorized
from sync import (
    PROFILE_PATH,
    PROGRESS_PATH,
    DatabaseDocumentStore,
    SyncAdapter,
    write_document,
)


def _inline(func, *args, **kwargs):
    return func(*args, **kwargs)


class RecordingStore:
    def __init__(self):
        self.writes = []

    def get(self, user_id, path):
        return None

    def merge_set(self, user_id, path, data):
        self.writes.append((user_id, path, data))


class FailingStore(RecordingStore):
    def merge_set(self, user_id, path, data):
        raise ConnectionError("remote store unavailable")


class TestDatabaseDocumentStore:
    def test_merge_keeps_other_fields(self, app):
        store = DatabaseDocumentStore(app.config["DATABASE"])
        store.merge_set(1, PROFILE_PATH, {"email": "test@example.com", "settings": {"dailyGoal": 10}})
        store.merge_set(1, PROFILE_PATH, {"settings": {"dailyGoal": 20}})
        doc = store.get(1, PROFILE_PATH)
        assert doc["email"] == "test@example.com"
        assert doc["settings"] == {"dailyGoal": 20}

    def test_missing_document(self, app):
        assert DatabaseDocumentStore(app.config["DATABASE"]).get(1, PROGRESS_PATH) is None

    def test_last_updated_column(self, app, db):
        store = DatabaseDocumentStore(app.config["DATABASE"])
        store.merge_set(1, PROGRESS_PATH, {"progress": {}, "lastUpdated": "2026-03-10T09:30:00"})
        row = db.execute(
            "SELECT last_updated FROM user_documents WHERE user_id = 1 AND path = ?", (PROGRESS_PATH,),
        ).fetchone()
        assert row["last_updated"] == "2026-03-10T09:30:00"


class TestWriteDocument:
    def test_success(self):
        store = RecordingStore()
        assert write_document(store, 1, PROFILE_PATH, {"a": 1}) is True
        assert store.writes == [(1, PROFILE_PATH, {"a": 1})]

    def test_failure_is_swallowed(self):
        assert write_document(FailingStore(), 1, PROFILE_PATH, {"a": 1}) is False


class TestSyncAdapter:
    def test_push_progress_payload(self, now):
        store = RecordingStore()
        adapter = SyncAdapter(store, 7, enqueue=_inline)
        state = mark_memorized(AppState(), 2, 5, now=now)
        adapter.push_progress(state)

        user_id, path, data = store.writes[0]
        assert (user_id, path) == (7, PROGRESS_PATH)
        assert set(data) == {"ayahProgress", "progress", "lastMemorizedPosition", "lastUpdated"}
        assert data["ayahProgress"]["2"]["5"]["memorized"] is True
        assert data["progress"] == {"2026-03-10": 1}

    def test_push_settings_payload(self):
        store = RecordingStore()
        SyncAdapter(store, 7, enqueue=_inline).push_settings(AppState())
        _, path, data = store.writes[0]
        assert path == PROFILE_PATH
        assert data["settings"]["dailyGoal"] == 10
        assert "lastUpdated" in data

    def test_seed_account(self):
        store = RecordingStore()
        SyncAdapter(store, 7, enqueue=_inline).seed_account("a@b.co", "Amina")
        _, path, data = store.writes[0]
        assert path == PROFILE_PATH
        assert data["email"] == "a@b.co"
        assert data["displayName"] == "Amina"
        assert data["settings"] == {"darkMode": False, "dailyGoal": 10}
        assert "createdAt" in data
        assert "photoURL" not in data

    def test_seed_if_absent_writes_new_profile(self):
        store = RecordingStore()
        seeded = SyncAdapter(store, 7, enqueue=_inline).seed_account_if_absent(
            "a@b.co", "Amina", "https://photos.test/a.png",
        )
        assert seeded is True
        assert store.writes[0][2]["photoURL"] == "https://photos.test/a.png"

    def test_seed_if_absent_keeps_existing_profile(self):
        class ExistingStore(RecordingStore):
            def get(self, user_id, path):
                return {"email": "a@b.co", "settings": {"dailyGoal": 25}}

        store = ExistingStore()
        assert SyncAdapter(store, 7, enqueue=_inline).seed_account_if_absent("a@b.co", "Amina") is False
        assert store.writes == []

    def test_seed_if_absent_skips_on_read_failure(self):
        class UnreadableStore(RecordingStore):
            def get(self, user_id, path):
                raise ConnectionError("remote store unavailable")

        store = UnreadableStore()
        assert SyncAdapter(store, 7, enqueue=_inline).seed_account_if_absent("a@b.co", "Amina") is False
        assert store.writes == []

    def test_remote_failure_does_not_raise(self):
        SyncAdapter(FailingStore(), 7, enqueue=_inline).push_settings(AppState())

    def test_dispatch_failure_does_not_raise(self):
        def broken_enqueue(*args, **kwargs):
            raise RuntimeError("queue full")

        SyncAdapter(RecordingStore(), 7, enqueue=broken_enqueue).push_progress(AppState())

    def test_default_enqueue_runs_inline(self, app):
        store = RecordingStore()
        SyncAdapter(store, 7).push_settings(AppState())
        assert len(store.writes) == 1


class TestWebSync:
    """Requests run in their own app context, so documents are read back
    through DatabaseDocumentStore rather than the db fixture."""

    def test_mark_pushes_progress(self, app, auth_client):
        resp = auth_client.post("/api/ayahs/2/5")
        assert resp.status_code == 200
        doc = DatabaseDocumentStore(app.config["DATABASE"]).get(1, PROGRESS_PATH)
        assert doc["ayahProgress"]["2"]["5"]["memorized"] is True
        assert doc["lastMemorizedPosition"]["chapterId"] == 2

    def test_settings_push_profile(self, app, auth_client):
        auth_client.put("/api/settings/dailyGoal", json={"value": 25})
        doc = DatabaseDocumentStore(app.config["DATABASE"]).get(1, PROFILE_PATH)
        assert doc["settings"]["dailyGoal"] == 25

    def test_anonymous_device_not_synced(self, app, client):
        client.post("/api/ayahs/1/1")
        from database import connect
        conn = connect(app.config["DATABASE"])
        try:
            assert conn.execute("SELECT COUNT(*) FROM user_documents").fetchone()[0] == 0
        finally:
            conn.close()

    def test_absent_unmark_not_synced(self, app, auth_client):
        auth_client.delete("/api/ayahs/3/3")
        assert DatabaseDocumentStore(app.config["DATABASE"]).get(1, PROGRESS_PATH) is None

    def test_sync_disabled(self, app, auth_client):
        app.config["SYNC_ENABLED"] = False
        auth_client.post("/api/ayahs/1/1")
        assert DatabaseDocumentStore(app.config["DATABASE"]).get(1, PROGRESS_PATH) is None

    def test_signup_seeds_profile(self, app, client):
        resp = client.post("/api/auth/signup", json={
            "email": "new@example.com", "password": "secret1", "display_name": "New Reader",
        })
        assert resp.status_code == 201
        user_id = resp.get_json()["user"]["id"]
        doc = DatabaseDocumentStore(app.config["DATABASE"]).get(user_id, PROFILE_PATH)
        assert doc["displayName"] == "New Reader"
