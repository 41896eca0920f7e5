"""
User Authentication — Flask-Login blueprint with JSON endpoints.

Provides signup, login, logout and "me". Uses werkzeug.security for password
hashing. Failures are reported as AuthError codes, each mapped to the single
message the client shows the user.
"""

from __future__ import annotations

import math
import re
import sqlite3
from datetime import datetime, timedelta

from flask import Blueprint, current_app, jsonify, request
from flask_login import LoginManager, UserMixin, current_user, login_required, login_user, logout_user
from werkzeug.security import check_password_hash, generate_password_hash

from audit import log_event
from database import database_path, get_db
from extensions import limiter

LOCKOUT_THRESHOLD = 5
LOCKOUT_MINUTES = 15
MIN_PASSWORD_LENGTH = 6

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

GENERIC_SIGNUP_ERROR = "Failed to create account. Please try again."

AUTH_ERRORS: dict[str, tuple[str, int]] = {
    "auth/missing-fields": ("Please fill in all fields", 400),
    "auth/password-mismatch": ("Passwords do not match", 400),
    "auth/weak-password": (f"Password must be at least {MIN_PASSWORD_LENGTH} characters", 400),
    "auth/invalid-email": ("Invalid email address", 400),
    "auth/email-already-in-use": ("Email already in use", 409),
    "auth/invalid-credential": ("Failed to login. Please check your credentials.", 401),
    "auth/too-many-requests": ("Account temporarily locked. Try again later.", 429),
}

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
login_manager = LoginManager()


class AuthError(Exception):
    """Identity failure carrying a provider-style error code."""

    def __init__(self, code: str, message: str | None = None):
        self.code = code
        self.message = message or auth_error_message(code)
        self.status = AUTH_ERRORS.get(code, (None, 400))[1]
        super().__init__(self.message)


def auth_error_message(code: str | None) -> str:
    """User-facing text for an error code; unknown codes get the generic message."""
    if code in AUTH_ERRORS:
        return AUTH_ERRORS[code][0]
    return GENERIC_SIGNUP_ERROR


class User(UserMixin):
    """Wraps a DB user row for Flask-Login."""

    def __init__(self, id: int, email: str, display_name: str = ""):
        self.id = id
        self.email = email
        self.display_name = display_name

    def to_dict(self) -> dict:
        return {"id": self.id, "email": self.email, "displayName": self.display_name}

    @staticmethod
    def get(user_id: int):
        db = get_db()
        row = db.execute(
            "SELECT id, email, display_name FROM users WHERE id = ?", (user_id,),
        ).fetchone()
        if row:
            return User(row["id"], row["email"], row["display_name"])
        return None

    @staticmethod
    def get_by_email(email: str):
        db = get_db()
        return db.execute(
            "SELECT id, email, display_name, password_hash, login_attempts, locked_until "
            "FROM users WHERE email = ?", (email,),
        ).fetchone()


@login_manager.user_loader
def load_user(user_id):
    return User.get(int(user_id))


@login_manager.unauthorized_handler
def _unauthorized():
    return jsonify({"error": "Please log in to continue."}), 401


@auth_bp.errorhandler(AuthError)
def _handle_auth_error(err: AuthError):
    return jsonify({"error": err.message, "code": err.code}), err.status


def _payload() -> dict:
    return request.get_json(silent=True) or request.form.to_dict()


def _seed_remote_profile(user_id: int, email: str, display_name: str) -> None:
    if not current_app.config.get("SYNC_ENABLED", True):
        return
    from sync import DatabaseDocumentStore, SyncAdapter
    SyncAdapter(DatabaseDocumentStore(database_path()), user_id).seed_account(email, display_name)


def register_user(email: str, password: str, display_name: str, confirm: str | None = None) -> User:
    """Validate and create an account. Raises AuthError."""
    email = (email or "").strip().lower()
    display_name = (display_name or "").strip()

    if not email or not password or not display_name:
        raise AuthError("auth/missing-fields")
    if confirm is not None and password != confirm:
        raise AuthError("auth/password-mismatch")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AuthError("auth/weak-password")
    if not EMAIL_RE.match(email):
        raise AuthError("auth/invalid-email")
    if User.get_by_email(email):
        raise AuthError("auth/email-already-in-use")

    db = get_db()
    try:
        cur = db.execute(
            "INSERT INTO users (email, display_name, password_hash, created_at) VALUES (?, ?, ?, ?)",
            (email, display_name, generate_password_hash(password), datetime.now().isoformat()),
        )
        db.commit()
    except sqlite3.IntegrityError:
        raise AuthError("auth/email-already-in-use")

    user_id = cur.lastrowid
    log_event("signup", user_id, f"email={email}")
    _seed_remote_profile(user_id, email, display_name)
    return User(user_id, email, display_name)


def authenticate(email: str, password: str) -> User:
    """Check credentials with lockout after repeated failures. Raises AuthError."""
    email = (email or "").strip().lower()
    if not email or not password:
        raise AuthError("auth/missing-fields")

    row = User.get_by_email(email)
    if not row:
        raise AuthError("auth/invalid-credential")

    if row["locked_until"]:
        try:
            remaining = (datetime.fromisoformat(row["locked_until"]) - datetime.now()).total_seconds()
        except ValueError:
            remaining = 0
        if remaining > 0:
            log_event("login_locked", row["id"], f"email={email}")
            mins = math.ceil(remaining / 60)
            raise AuthError(
                "auth/too-many-requests",
                f"Account temporarily locked. Try again in {mins} minute(s).",
            )

    db = get_db()
    if not check_password_hash(row["password_hash"], password):
        attempts = row["login_attempts"] + 1
        if attempts >= LOCKOUT_THRESHOLD:
            db.execute(
                "UPDATE users SET login_attempts=?, locked_until=? WHERE id=?",
                (attempts, (datetime.now() + timedelta(minutes=LOCKOUT_MINUTES)).isoformat(), row["id"]),
            )
        else:
            db.execute("UPDATE users SET login_attempts=? WHERE id=?", (attempts, row["id"]))
        db.commit()
        log_event("login_failed", row["id"], f"email={email} attempts={attempts}")
        raise AuthError("auth/invalid-credential")

    db.execute("UPDATE users SET login_attempts=0, locked_until='' WHERE id=?", (row["id"],))
    db.commit()
    log_event("login_success", row["id"])
    return User(row["id"], row["email"], row["display_name"])


@auth_bp.route("/signup", methods=["POST"])
@limiter.limit("5 per hour")
def signup():
    data = _payload()
    user = register_user(
        data.get("email", ""),
        data.get("password", ""),
        data.get("display_name") or data.get("name", ""),
        confirm=data.get("confirm_password"),
    )
    login_user(user, remember=True)
    return jsonify({"user": user.to_dict()}), 201


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("10 per 15 minutes")
def login():
    data = _payload()
    user = authenticate(data.get("email", ""), data.get("password", ""))
    login_user(user, remember=True)
    return jsonify({"user": user.to_dict()})


@auth_bp.route("/logout", methods=["POST"])
def logout():
    if current_user.is_authenticated:
        log_event("logout", current_user.id)
    logout_user()
    return jsonify({"success": True})


@auth_bp.route("/me")
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})
