"""
Application configuration, selected by FLASK_ENV.

Every setting reads an environment variable of the same name (DATABASE reads
DATABASE_URL) and falls back to a default that works for local runs.
"""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(__file__).parent
INSECURE_SECRET = "dev-key-change-in-production"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class BaseConfig:
    SECRET_KEY = os.environ.get("SECRET_KEY", INSECURE_SECRET)
    DATABASE = os.environ.get("DATABASE_URL", str(BASE_DIR / "quran_hifdh.db"))

    # Device sessions live for a month; the device id in them keys the progress document
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    PERMANENT_SESSION_LIFETIME = 86400 * 30
    REMEMBER_COOKIE_HTTPONLY = True
    STORAGE_KEY = os.environ.get("STORAGE_KEY", "quran_hifdh_web_v1")

    # Content API
    QURAN_API_BASE_URL = os.environ.get(
        "QURAN_API_BASE_URL", "https://quran.shayanshehzadqureshi.workers.dev"
    )
    QURAN_API_PER_PAGE = int(os.environ.get("QURAN_API_PER_PAGE", "300"))
    QURAN_API_TIMEOUT = float(os.environ.get("QURAN_API_TIMEOUT", "15"))

    # Per-user document sync; REDIS_URL moves the writes onto an RQ worker
    SYNC_ENABLED = _env_flag("SYNC_ENABLED", True)
    REDIS_URL = os.environ.get("REDIS_URL", "")

    # Google sign-in stays off until a client id is configured
    GOOGLE_OAUTH_CLIENT_ID = os.environ.get("GOOGLE_OAUTH_CLIENT_ID", "")
    GOOGLE_OAUTH_CLIENT_SECRET = os.environ.get("GOOGLE_OAUTH_CLIENT_SECRET", "")

    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    RATELIMIT_STORAGE_URI = REDIS_URL or "memory://"


class DevelopmentConfig(BaseConfig):
    DEBUG = True


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")
    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True

    @classmethod
    def validate(cls):
        """Raise RuntimeError listing every unsafe production setting."""
        problems = []
        if not cls.SECRET_KEY or cls.SECRET_KEY == INSECURE_SECRET:
            problems.append("SECRET_KEY is unset or still the development default")
        if not cls.QURAN_API_BASE_URL.startswith(("http://", "https://")):
            problems.append(f"QURAN_API_BASE_URL is not an http(s) URL: {cls.QURAN_API_BASE_URL!r}")
        if cls.QURAN_API_TIMEOUT <= 0:
            problems.append("QURAN_API_TIMEOUT must be positive")
        if problems:
            raise RuntimeError("Refusing to start in production:\n  - " + "\n  - ".join(problems))


class TestingConfig(BaseConfig):
    TESTING = True
    SYNC_ENABLED = True
    RATELIMIT_ENABLED = False
    REDIS_URL = ""


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
