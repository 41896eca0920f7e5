"""
Blueprint registration for the Quran Hifdh tracker.

All JSON routes live under /api; the health check sits at the root.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.core import bp as core_bp
    from blueprints.progress import bp as progress_bp
    from blueprints.settings import bp as settings_bp
    from blueprints.content import bp as content_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(progress_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(content_bp)
