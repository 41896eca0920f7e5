"""
Shared extension objects: the rate limiter and the content client singleton.
"""

from __future__ import annotations

from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["300 per hour"])


class ContentClientManager:
    """Lazily built QuranContentClient shared across requests."""

    _client = None

    @classmethod
    def get_client(cls):
        if cls._client is None:
            from quran_client import QuranContentClient
            cfg = current_app.config
            cls._client = QuranContentClient(
                base_url=cfg["QURAN_API_BASE_URL"],
                per_page=cfg.get("QURAN_API_PER_PAGE", 300),
                timeout=cfg.get("QURAN_API_TIMEOUT", 15),
            )
        return cls._client

    @classmethod
    def set_client(cls, client) -> None:
        """Install a specific client (tests, scripts)."""
        cls._client = client

    @classmethod
    def reset(cls):
        cls._client = None
