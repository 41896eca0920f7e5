"""
Quran Hifdh — Flask Web Application

JSON API for tracking Quran memorization: mark ayahs as memorized, follow
daily goals and streaks, browse chapters and verses from the content API,
and mirror progress to the signed-in user's documents.
"""

from __future__ import annotations

import os
from typing import Any

import click
from flask import Flask, Response

import database
from auth import auth_bp, login_manager
from blueprints import register_blueprints
from extensions import limiter
from oauth import init_oauth, oauth_bp


def _load_config(app: Flask, test_config: dict[str, Any] | None) -> None:
    from config import config_by_name, TestingConfig

    if test_config is not None:
        app.config.from_object(TestingConfig)
        app.config.update(test_config)
        return

    cfg = config_by_name.get(os.environ.get("FLASK_ENV", "development"), config_by_name["development"])
    if hasattr(cfg, "validate"):
        cfg.validate()
    app.config.from_object(cfg)


def _add_response_headers(app: Flask) -> None:
    hsts = not app.debug and not app.testing

    @app.after_request
    def security_headers(response: Response) -> Response:
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        if hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


def _register_commands(app: Flask) -> None:
    @app.cli.command("init-db")
    def init_db_command():
        """Create tables and apply pending migrations."""
        database.init_db()
        database.run_migrations()
        click.echo(f"Database ready at {database.database_path()}")


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)
    _load_config(app, test_config)
    app.secret_key = app.config["SECRET_KEY"]

    from logging_config import init_logging
    from tasks import init_tasks

    init_logging(app)
    init_tasks(app)
    database.init_app(app)

    limiter.init_app(app)
    if app.testing:
        limiter.enabled = False

    login_manager.init_app(app)
    init_oauth(app)
    app.register_blueprint(auth_bp)
    app.register_blueprint(oauth_bp)
    register_blueprints(app)

    _add_response_headers(app)
    _register_commands(app)
    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5001)
