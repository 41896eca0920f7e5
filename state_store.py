"""
Persistent State Store — the single progress document kept per device.

The whole document (ayah progress, daily counters, settings, achievements) is
serialised as one JSON object under a fixed key. Storage is pluggable: the web
app keeps it in the kv_store table namespaced by device id, tests use an
in-memory dict.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)

STORAGE_KEY = "quran_hifdh_web_v1"

DEFAULT_DAILY_GOAL = 10
FONT_SIZES = ("Small", "Medium", "Large", "Extra Large")
SCRIPT_TYPES = ("uthmani", "indopak", "tajweed")


class StorageError(Exception):
    """Raised when the document could not be read back or written."""


def _int_or(value: Any, default: Any) -> Any:
    """int(value), or default for null, boolean and non-numeric values."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


# ── Document model ─────────────────────────────────────────


@dataclass
class AyahRecord:
    memorized: bool = True
    date_memorized: str = ""  # YYYY-MM-DD
    difficulty: int = 2

    def to_dict(self) -> dict:
        return {
            "memorized": self.memorized,
            "dateMemorized": self.date_memorized,
            "difficulty": self.difficulty,
        }

    @staticmethod
    def from_dict(data: dict) -> AyahRecord:
        return AyahRecord(
            memorized=bool(data.get("memorized", False)),
            date_memorized=data.get("dateMemorized") or "",
            difficulty=_int_or(data.get("difficulty"), 2),
        )


@dataclass
class LastPosition:
    chapter_id: int
    verse_number: int
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "chapterId": self.chapter_id,
            "verseNumber": self.verse_number,
            "timestamp": self.timestamp,
        }

    @staticmethod
    def from_dict(data: dict) -> Optional[LastPosition]:
        """None when either id is missing."""
        # Documents written by the browser app use surahId / ayahNumber
        chapter_id = _int_or(data.get("chapterId", data.get("surahId")), None)
        verse_number = _int_or(data.get("verseNumber", data.get("ayahNumber")), None)
        if chapter_id is None or verse_number is None:
            return None
        return LastPosition(chapter_id, verse_number, data.get("timestamp") or "")


@dataclass
class Settings:
    daily_goal: int = DEFAULT_DAILY_GOAL
    user_name: str = "User"
    dark_mode: bool = False
    show_translations: bool = True
    arabic_font_size: str = "Medium"
    translation_font_size: str = "Medium"
    auto_play_next: bool = True
    selected_reciter: Optional[Any] = None
    script_type: str = "uthmani"

    # document key -> attribute name
    FIELDS = {
        "dailyGoal": "daily_goal",
        "userName": "user_name",
        "darkMode": "dark_mode",
        "showTranslations": "show_translations",
        "arabicFontSize": "arabic_font_size",
        "translationFontSize": "translation_font_size",
        "autoPlayNext": "auto_play_next",
        "selectedReciter": "selected_reciter",
        "scriptType": "script_type",
    }

    def to_dict(self) -> dict:
        return {key: getattr(self, attr) for key, attr in self.FIELDS.items()}

    @staticmethod
    def from_dict(data: dict) -> Settings:
        settings = Settings()
        for key, attr in Settings.FIELDS.items():
            if key in data:
                setattr(settings, attr, data[key])
        return settings

    @staticmethod
    def from_user_settings(user_settings: dict | None) -> Settings:
        """Defaults for a fresh document, overridden by any truthy user choice.

        showTranslations and autoPlayNext stay on unless explicitly False.
        """
        us = user_settings or {}
        return Settings(
            daily_goal=us.get("dailyGoal") or DEFAULT_DAILY_GOAL,
            user_name=us.get("userName") or "User",
            dark_mode=bool(us.get("darkMode") or False),
            show_translations=us.get("showTranslations") is not False,
            arabic_font_size=us.get("arabicFontSize") or "Medium",
            translation_font_size=us.get("translationFontSize") or "Medium",
            auto_play_next=us.get("autoPlayNext") is not False,
            selected_reciter=us.get("selectedReciter") or None,
            script_type=us.get("scriptType") or "uthmani",
        )


@dataclass
class AppState:
    ayah_progress: dict[int, dict[int, AyahRecord]] = field(default_factory=dict)
    progress: dict[str, int] = field(default_factory=dict)
    revision_progress: dict = field(default_factory=dict)
    last_memorized_position: Optional[LastPosition] = None
    earned_achievements: list[str] = field(default_factory=list)
    settings: Settings = field(default_factory=Settings)
    last_confetti_date: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "ayahProgress": {
                str(chapter_id): {
                    str(verse): record.to_dict() for verse, record in verses.items()
                }
                for chapter_id, verses in self.ayah_progress.items()
            },
            "progress": dict(self.progress),
            "revisionProgress": self.revision_progress,
            "lastMemorizedPosition": (
                self.last_memorized_position.to_dict()
                if self.last_memorized_position else None
            ),
            "earnedAchievements": list(self.earned_achievements),
            "settings": self.settings.to_dict(),
            "lastConfettiDate": self.last_confetti_date,
        }

    @staticmethod
    def from_dict(data: dict) -> AppState:
        """Build the document, dropping entries that cannot be read.

        Raises ValueError only when data is not a JSON object.
        """
        if not isinstance(data, dict):
            raise ValueError("progress document is not an object")

        ayah_progress: dict[int, dict[int, AyahRecord]] = {}
        for chapter_key, verses in _as_dict(data.get("ayahProgress")).items():
            chapter_id = _int_or(chapter_key, None)
            if chapter_id is None or not isinstance(verses, dict):
                continue
            records = {}
            for verse_key, record in verses.items():
                verse = _int_or(verse_key, None)
                if verse is not None and isinstance(record, dict):
                    records[verse] = AyahRecord.from_dict(record)
            ayah_progress[chapter_id] = records

        position = data.get("lastMemorizedPosition")
        achievements = data.get("earnedAchievements")
        if not isinstance(achievements, list):
            achievements = []
        return AppState(
            ayah_progress=ayah_progress,
            progress={
                str(day): _int_or(count, 0)
                for day, count in _as_dict(data.get("progress")).items()
            },
            revision_progress=_as_dict(data.get("revisionProgress")),
            last_memorized_position=(
                LastPosition.from_dict(position) if isinstance(position, dict) else None
            ),
            earned_achievements=[a for a in achievements if isinstance(a, str)],
            settings=Settings.from_dict(_as_dict(data.get("settings"))),
            last_confetti_date=data.get("lastConfettiDate"),
        )


# ── Storage backends ───────────────────────────────────────


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> str | None: ...
    def set_item(self, key: str, value: str) -> None: ...
    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Dict-backed storage for tests and scripts."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class DatabaseStorage:
    """kv_store rows scoped to one namespace (the device id)."""

    def __init__(self, namespace: str, db=None) -> None:
        self.namespace = namespace
        self._db = db

    @property
    def db(self):
        if self._db is None:
            from database import get_db
            self._db = get_db()
        return self._db

    def get_item(self, key: str) -> str | None:
        row = self.db.execute(
            "SELECT value FROM kv_store WHERE namespace = ? AND key = ?",
            (self.namespace, key),
        ).fetchone()
        return row["value"] if row else None

    def set_item(self, key: str, value: str) -> None:
        self.db.execute(
            "INSERT INTO kv_store (namespace, key, value, updated_at) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(namespace, key) DO UPDATE SET value = excluded.value, "
            "updated_at = excluded.updated_at",
            (self.namespace, key, value, datetime.now().isoformat()),
        )
        self.db.commit()

    def remove_item(self, key: str) -> None:
        self.db.execute(
            "DELETE FROM kv_store WHERE namespace = ? AND key = ?",
            (self.namespace, key),
        )
        self.db.commit()


# ── State store ────────────────────────────────────────────


class StateStore:
    """Reads and replaces the whole progress document under one key."""

    def __init__(self, storage: KeyValueStorage, key: str = STORAGE_KEY) -> None:
        self.storage = storage
        self.key = key

    def get_state(self) -> AppState | None:
        """Return the stored document, or None if absent or unreadable."""
        try:
            raw = self.storage.get_item(self.key)
            if not raw:
                return None
            return AppState.from_dict(json.loads(raw))
        except Exception:
            logger.exception("Error reading state %s", self.key)
            return None

    def save_state(self, state: AppState) -> bool:
        try:
            self.storage.set_item(self.key, json.dumps(state.to_dict(), ensure_ascii=False))
            return True
        except Exception:
            logger.exception("Error saving state %s", self.key)
            return False

    def initialize_state(self, user_settings: dict | None = None) -> AppState:
        state = AppState(settings=Settings.from_user_settings(user_settings))
        self.save_state(state)
        return state

    def load_or_initialize(self) -> AppState:
        """The stored document, or a new default one when the key is absent.

        A document that is present but unreadable raises StorageError and
        stays in place; only clear_state() removes it.
        """
        try:
            raw = self.storage.get_item(self.key)
        except Exception as e:
            logger.exception("Error reading state %s", self.key)
            raise StorageError("Could not read progress on this device.") from e
        if not raw:
            return self.initialize_state()
        try:
            return AppState.from_dict(json.loads(raw))
        except ValueError as e:
            logger.error("Unreadable state %s left in place: %s", self.key, e)
            raise StorageError("Saved progress on this device could not be read.") from e

    def clear_state(self) -> bool:
        try:
            self.storage.remove_item(self.key)
            return True
        except Exception:
            logger.exception("Error clearing state %s", self.key)
            return False
