"""
Progress Engine — memorization marks, daily counters, streaks and settings.

The module-level functions are pure: they take an AppState (and the current
time) and mutate/inspect only that object. ProgressService wires them to a
StateStore with a read-modify-write cycle per call and hands every committed
change to the optional sync adapter.

Behaviour notes:
- re-marking an already memorized ayah counts again for today
- unmarking leaves lastMemorizedPosition pointing at the removed ayah
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, asdict
from datetime import date, datetime, time, timedelta
from typing import Any, Callable, Optional

from state_store import (
    FONT_SIZES,
    SCRIPT_TYPES,
    AppState,
    AyahRecord,
    LastPosition,
    Settings,
    StateStore,
    StorageError,
    DEFAULT_DAILY_GOAL,
)

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
HISTORY_DAYS = 7
SECONDS_PER_DAY = 86400


@dataclass
class Statistics:
    total_memorized: int = 0
    today_progress: int = 0
    current_streak: int = 0
    daily_goal: int = DEFAULT_DAILY_GOAL

    @property
    def daily_goal_met(self) -> bool:
        return self.daily_goal > 0 and self.today_progress >= self.daily_goal

    @property
    def daily_goal_pct(self) -> int:
        if self.daily_goal <= 0:
            return 0
        return min(100, int(self.today_progress / self.daily_goal * 100))

    def to_dict(self) -> dict:
        return {
            "totalMemorized": self.total_memorized,
            "todayProgress": self.today_progress,
            "currentStreak": self.current_streak,
            "dailyGoal": self.daily_goal,
            "dailyGoalMet": self.daily_goal_met,
            "dailyGoalPct": self.daily_goal_pct,
        }


@dataclass
class DayCount:
    day: str  # short weekday name
    date: str  # YYYY-MM-DD
    count: int


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now()


# ── Mark / unmark ──────────────────────────────────────────


def mark_memorized(
    state: AppState,
    chapter_id: int,
    verse_number: int,
    difficulty: int = 2,
    now: Optional[datetime] = None,
) -> AppState:
    """Record an ayah as memorized today and bump today's counter.

    Overwrites any existing record and always adds 1 to today's count, even
    when the ayah was already memorized.
    """
    now = _now(now)
    today = now.date().isoformat()

    chapter = state.ayah_progress.setdefault(chapter_id, {})
    chapter[verse_number] = AyahRecord(
        memorized=True, date_memorized=today, difficulty=difficulty,
    )
    state.progress[today] = state.progress.get(today, 0) + 1
    state.last_memorized_position = LastPosition(
        chapter_id=chapter_id,
        verse_number=verse_number,
        timestamp=now.isoformat(),
    )
    return state


def unmark_memorized(state: AppState, chapter_id: int, verse_number: int) -> tuple[AppState, bool]:
    """Delete an ayah record and decrement the day it was memorized.

    Returns (state, changed). Absent records leave the state untouched.
    """
    chapter = state.ayah_progress.get(chapter_id)
    if not chapter or verse_number not in chapter:
        return state, False

    record = chapter.pop(verse_number)
    day = record.date_memorized
    if state.progress.get(day):
        state.progress[day] = max(0, state.progress[day] - 1)
    return state, True


def is_memorized(state: AppState | None, chapter_id: int, verse_number: int) -> bool:
    if state is None:
        return False
    record = state.ayah_progress.get(chapter_id, {}).get(verse_number)
    return bool(record and record.memorized)


# ── Statistics ─────────────────────────────────────────────


def total_memorized(state: AppState) -> int:
    return sum(
        1
        for verses in state.ayah_progress.values()
        for record in verses.values()
        if record.memorized
    )


def current_streak(progress: dict[str, int], now: datetime) -> int:
    """Count consecutive active days walking back from now.

    Dates are visited newest first. A date whose gap from the cursor is more
    than one day ends the walk; an adjacent date with a positive count extends
    the streak and becomes the new cursor; an adjacent zero-count date is
    skipped.
    """
    streak = 0
    cursor = now
    for day in sorted(progress, reverse=True):
        day_start = datetime.combine(date.fromisoformat(day), time.min, tzinfo=now.tzinfo)
        gap = math.floor((cursor - day_start).total_seconds() / SECONDS_PER_DAY)
        if gap not in (0, 1):
            break
        if progress[day] > 0:
            streak += 1
            cursor = day_start
    return streak


def compute_statistics(state: AppState | None, now: Optional[datetime] = None) -> Statistics:
    if state is None:
        return Statistics()
    now = _now(now)
    return Statistics(
        total_memorized=total_memorized(state),
        today_progress=state.progress.get(now.date().isoformat(), 0),
        current_streak=current_streak(state.progress, now),
        daily_goal=state.settings.daily_goal,
    )


def compute_weekly_history(state: AppState | None, now: Optional[datetime] = None) -> list[DayCount]:
    """Trailing seven days, oldest first and today last, zero-filled."""
    today = _now(now).date()
    progress = state.progress if state is not None else {}
    history = []
    for offset in range(HISTORY_DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        iso = day.isoformat()
        history.append(DayCount(day=WEEKDAY_NAMES[day.weekday()], date=iso, count=progress.get(iso, 0)))
    return history


def chapter_progress(state: AppState | None, chapter_id: int, total_verses: int) -> dict:
    memorized = 0
    if state is not None:
        memorized = sum(
            1 for record in state.ayah_progress.get(chapter_id, {}).values() if record.memorized
        )
    percentage = round(memorized / total_verses * 100) if total_verses > 0 else 0
    return {"memorized": memorized, "total": total_verses, "percentage": percentage}


# ── Settings ───────────────────────────────────────────────


def _validate_setting(key: str, value: Any) -> Any:
    if key not in Settings.FIELDS:
        raise ValueError(f"Unknown setting: {key}")

    if key == "dailyGoal":
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValueError("dailyGoal must be a positive integer")
    elif key == "userName":
        if not isinstance(value, str) or not value.strip():
            raise ValueError("userName must be a non-empty string")
        value = value.strip()
    elif key in ("darkMode", "showTranslations", "autoPlayNext"):
        if not isinstance(value, bool):
            raise ValueError(f"{key} must be true or false")
    elif key in ("arabicFontSize", "translationFontSize"):
        if value not in FONT_SIZES:
            raise ValueError(f"{key} must be one of: {', '.join(FONT_SIZES)}")
    elif key == "scriptType":
        if value not in SCRIPT_TYPES:
            raise ValueError(f"scriptType must be one of: {', '.join(SCRIPT_TYPES)}")
    elif key == "selectedReciter":
        if value is not None and (isinstance(value, bool) or not isinstance(value, (int, str))):
            raise ValueError("selectedReciter must be a reciter id or null")
    return value


def apply_setting(state: AppState, key: str, value: Any) -> AppState:
    value = _validate_setting(key, value)
    setattr(state.settings, Settings.FIELDS[key], value)
    return state


def apply_settings(state: AppState, updates: dict[str, Any]) -> AppState:
    """Validate every update first so a bad key leaves the state untouched."""
    validated = {key: _validate_setting(key, value) for key, value in updates.items()}
    for key, value in validated.items():
        setattr(state.settings, Settings.FIELDS[key], value)
    return state


# ── Service ────────────────────────────────────────────────


class ProgressService:
    """Read-modify-write wrapper binding the engine to one device's store."""

    def __init__(
        self,
        store: StateStore,
        sync=None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.sync = sync
        self.clock = clock

    def _commit(self, state: AppState) -> None:
        if not self.store.save_state(state):
            raise StorageError("Could not save progress on this device.")

    def _push_progress(self, state: AppState) -> None:
        if self.sync is not None:
            self.sync.push_progress(state)

    def _push_settings(self, state: AppState) -> None:
        if self.sync is not None:
            self.sync.push_settings(state)

    def get_state(self) -> AppState:
        return self.store.load_or_initialize()

    def mark(self, chapter_id: int, verse_number: int, difficulty: int = 2) -> AppState:
        state = self.store.load_or_initialize()
        mark_memorized(state, chapter_id, verse_number, difficulty, now=self.clock())
        self._commit(state)
        logger.debug("Marked %s:%s memorized", chapter_id, verse_number)
        self._push_progress(state)
        return state

    def unmark(self, chapter_id: int, verse_number: int) -> AppState:
        state = self.store.load_or_initialize()
        state, changed = unmark_memorized(state, chapter_id, verse_number)
        if changed:
            self._commit(state)
            logger.debug("Unmarked %s:%s", chapter_id, verse_number)
            self._push_progress(state)
        return state

    def toggle(self, chapter_id: int, verse_number: int) -> tuple[AppState, bool]:
        """Flip an ayah's status; returns the new state and whether it is now memorized."""
        if self.is_memorized(chapter_id, verse_number):
            return self.unmark(chapter_id, verse_number), False
        return self.mark(chapter_id, verse_number), True

    def is_memorized(self, chapter_id: int, verse_number: int) -> bool:
        return is_memorized(self.store.get_state(), chapter_id, verse_number)

    def statistics(self) -> Statistics:
        return compute_statistics(self.store.get_state(), now=self.clock())

    def weekly_history(self) -> list[dict]:
        return [asdict(d) for d in compute_weekly_history(self.store.get_state(), now=self.clock())]

    def chapter_progress(self, chapter_id: int, total_verses: int) -> dict:
        return chapter_progress(self.store.get_state(), chapter_id, total_verses)

    def update_setting(self, key: str, value: Any) -> Settings:
        state = self.store.load_or_initialize()
        apply_setting(state, key, value)
        self._commit(state)
        self._push_settings(state)
        return state.settings

    def update_settings(self, updates: dict[str, Any]) -> Settings:
        state = self.store.load_or_initialize()
        apply_settings(state, updates)
        self._commit(state)
        self._push_settings(state)
        return state.settings

    def reset(self) -> None:
        """Delete the whole document; the next access starts from defaults."""
        if not self.store.clear_state():
            raise StorageError("Could not delete data on this device.")
        logger.info("Progress document reset")
