"""
SQLite database layer for the Quran Hifdh tracker.

Uses raw sqlite3 with WAL mode and parameterized queries.
A schema_version table handles migrations.

Three concerns share the file:
- users / audit_log: identity and security events
- kv_store: the per-device key-value storage that holds the progress document
- user_documents: the per-user document namespace that sync mirrors into
"""

from __future__ import annotations

import fcntl
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from flask import current_app, g

DEFAULT_DATABASE = str(Path(__file__).parent / "quran_hifdh.db")


SCHEMA = """
-- Migration tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL,
    applied_at TEXT NOT NULL
);

-- Users
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    email TEXT UNIQUE NOT NULL,
    display_name TEXT NOT NULL DEFAULT '',
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT ''
);

-- Device-local key-value storage (one namespace per browser session)
CREATE TABLE IF NOT EXISTS kv_store (
    namespace TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT '',
    PRIMARY KEY(namespace, key)
);

-- Per-user documents written by the sync adapter
CREATE TABLE IF NOT EXISTS user_documents (
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    path TEXT NOT NULL,
    data TEXT NOT NULL DEFAULT '{}',
    last_updated TEXT NOT NULL DEFAULT '',
    PRIMARY KEY(user_id, path)
);

-- Security events
CREATE TABLE IF NOT EXISTS audit_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER,
    action TEXT NOT NULL,
    detail TEXT NOT NULL DEFAULT '',
    ip_address TEXT NOT NULL DEFAULT '',
    user_agent TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT ''
);
"""


MIGRATIONS: list[tuple[int, str]] = [
    # Version 1 = base schema.
    # Migration 2: Account lockout after repeated failed logins
    (2, """
        ALTER TABLE users ADD COLUMN login_attempts INTEGER NOT NULL DEFAULT 0;
        ALTER TABLE users ADD COLUMN locked_until TEXT NOT NULL DEFAULT '';
    """),
    # Migration 3: Lookup indexes
    (3, """
        CREATE INDEX IF NOT EXISTS idx_audit_user_created ON audit_log(user_id, created_at);
        CREATE INDEX IF NOT EXISTS idx_user_documents_updated ON user_documents(last_updated);
    """),
    # Migration 4: Google sign-in
    (4, """
        ALTER TABLE users ADD COLUMN oauth_provider TEXT NOT NULL DEFAULT '';
        ALTER TABLE users ADD COLUMN oauth_id TEXT NOT NULL DEFAULT '';
        CREATE INDEX IF NOT EXISTS idx_users_oauth ON users(oauth_provider, oauth_id);
    """),
]


def connect(db_path: str) -> sqlite3.Connection:
    """Open a configured SQLite connection outside of the request context."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def database_path() -> str:
    return current_app.config.get("DATABASE", DEFAULT_DATABASE)


def get_db():
    """Return a DB connection from Flask g, creating if needed."""
    if "db" not in g:
        g.db = connect(database_path())
    return g.db


def close_db(e=None) -> None:
    """Teardown handler — close DB connection."""
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db() -> None:
    """Create all tables; the base schema counts as version 1."""
    db = get_db()
    db.executescript(SCHEMA)
    if not db.execute("SELECT 1 FROM schema_version WHERE version = 1").fetchone():
        _record_version(db, 1)
    db.commit()


@contextmanager
def _migration_lock(db_path: str):
    """Exclusive flock beside the database file, so only one worker migrates.

    Lock files that cannot be created (read-only directory) are skipped.
    """
    try:
        handle = open(Path(db_path).with_suffix(".migration.lock"), "w")
    except OSError:
        yield
        return
    with handle:
        fcntl.flock(handle, fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(handle, fcntl.LOCK_UN)


def _record_version(db, version: int) -> None:
    db.execute(
        "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
        (version, datetime.now().isoformat()),
    )


def run_migrations() -> None:
    """Apply every entry of MIGRATIONS not yet recorded in schema_version."""
    with _migration_lock(database_path()):
        db = get_db()
        done = {r["version"] for r in db.execute("SELECT version FROM schema_version")}
        for version, sql in MIGRATIONS:
            if version in done:
                continue
            try:
                db.executescript(sql)
            except sqlite3.OperationalError as e:
                # A crashed earlier run may have applied part of the script
                if not any(s in str(e).lower() for s in ("duplicate column", "already exists")):
                    raise
            _record_version(db, version)
            db.commit()


def init_app(app) -> None:
    """Register teardown and auto-init on first request."""
    app.teardown_appcontext(close_db)

    @app.before_request
    def _ensure_db():
        if not getattr(app, "_db_initialized", False):
            init_db()
            run_migrations()
            app._db_initialized = True
