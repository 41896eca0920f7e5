"""Google sign-in — optional login via Google OpenID Connect.

Disabled unless GOOGLE_OAUTH_CLIENT_ID is set. A Google account is matched by
its subject id, then linked to an existing account with the same email, and
otherwise registered as a new account. The user's profile document is seeded
only if they do not already have one.
"""

from __future__ import annotations

import logging
from datetime import datetime

from authlib.integrations.flask_client import OAuth
from flask import Blueprint, current_app, jsonify, url_for
from flask_login import login_user

from audit import log_event
from auth import User
from database import database_path, get_db

logger = logging.getLogger(__name__)

oauth_bp = Blueprint("oauth", __name__, url_prefix="/api/auth")

GOOGLE_METADATA_URL = "https://accounts.google.com/.well-known/openid-configuration"
EXTENSION_KEY = "google_oauth"


def init_oauth(app) -> None:
    """Register the Google client on this app. Called once from create_app()."""
    client_id = app.config.get("GOOGLE_OAUTH_CLIENT_ID", "")
    if not client_id:
        app.logger.info("Google sign-in disabled (GOOGLE_OAUTH_CLIENT_ID not set)")
        return

    oauth = OAuth(app)
    oauth.register(
        name="google",
        client_id=client_id,
        client_secret=app.config.get("GOOGLE_OAUTH_CLIENT_SECRET", ""),
        server_metadata_url=GOOGLE_METADATA_URL,
        client_kwargs={"scope": "openid email profile"},
    )
    app.extensions[EXTENSION_KEY] = oauth


def google_client():
    """The registered Google client, or None when sign-in is not configured."""
    oauth = current_app.extensions.get(EXTENSION_KEY)
    if oauth is None or not current_app.config.get("GOOGLE_OAUTH_CLIENT_ID"):
        return None
    return oauth.google


def _seed_profile(user_id: int, email: str, display_name: str, photo_url: str) -> None:
    if not current_app.config.get("SYNC_ENABLED", True):
        return
    from sync import DatabaseDocumentStore, SyncAdapter
    adapter = SyncAdapter(DatabaseDocumentStore(database_path()), user_id)
    if adapter.seed_account_if_absent(email, display_name, photo_url):
        logger.info("Seeded profile for Google user %s", user_id)


def sign_in_with_google(user_info: dict) -> User:
    """Resolve Google userinfo to a local account, creating one if needed.

    Raises ValueError when Google did not return an email address.
    """
    google_id = user_info.get("sub", "")
    email = (user_info.get("email") or "").strip().lower()
    if not email:
        raise ValueError("Google did not return an email address")
    name = user_info.get("name") or email.split("@")[0]
    photo_url = user_info.get("picture") or ""

    db = get_db()
    row = db.execute(
        "SELECT id, email, display_name FROM users WHERE oauth_provider = 'google' AND oauth_id = ?",
        (google_id,),
    ).fetchone()
    if row:
        log_event("login_google", row["id"])
        user = User(row["id"], row["email"], row["display_name"])
    else:
        row = db.execute(
            "SELECT id, email, display_name FROM users WHERE email = ?", (email,),
        ).fetchone()
        if row:
            db.execute(
                "UPDATE users SET oauth_provider = 'google', oauth_id = ? WHERE id = ?",
                (google_id, row["id"]),
            )
            db.commit()
            log_event("login_google_linked", row["id"])
            user = User(row["id"], row["email"], row["display_name"])
        else:
            # Password login stays impossible: an empty hash never verifies
            cur = db.execute(
                "INSERT INTO users (email, display_name, password_hash, oauth_provider, oauth_id, created_at) "
                "VALUES (?, ?, '', 'google', ?, ?)",
                (email, name, google_id, datetime.now().isoformat()),
            )
            db.commit()
            log_event("signup_google", cur.lastrowid, f"email={email}")
            user = User(cur.lastrowid, email, name)

    _seed_profile(user.id, email, user.display_name or name, photo_url)
    return user


def _not_configured():
    return jsonify({"error": "Google sign-in is not configured."}), 503


@oauth_bp.route("/google")
def google_login():
    """Redirect to the Google consent screen."""
    google = google_client()
    if google is None:
        return _not_configured()
    return google.authorize_redirect(url_for("oauth.google_callback", _external=True))


@oauth_bp.route("/google/callback")
def google_callback():
    google = google_client()
    if google is None:
        return _not_configured()

    try:
        token = google.authorize_access_token()
        user_info = token.get("userinfo") or google.userinfo()
    except Exception as e:
        logger.error("Google OAuth error: %s", e)
        return jsonify({"error": "Failed to sign in with Google. Please try again."}), 401

    try:
        user = sign_in_with_google(dict(user_info))
    except ValueError as e:
        logger.warning("Google sign-in rejected: %s", e)
        return jsonify({"error": "Could not get an email address from Google."}), 400

    login_user(user, remember=True)
    return jsonify({"user": user.to_dict()})
