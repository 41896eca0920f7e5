"""
Remote content client — chapters, verses, reciters and mushaf pages.

Thin read-only wrapper over the third-party Quran API. Every call is a fresh
round trip: no cache and no retry. Anything that goes wrong (transport error,
non-2xx status, bad JSON, missing fields) surfaces as ContentFetchError so the
caller can offer the user a retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)

# Script type -> API textFormat
TEXT_FORMATS = {
    "uthmani": "uthmani",
    "indopak": "imlaei",
    "tajweed": "tajweed",
}
DEFAULT_TEXT_FORMAT = "uthmani"


class ContentFetchError(Exception):
    """The content API could not be reached or returned an unusable payload."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class Chapter:
    id: int
    name_arabic: str = ""
    name_simple: str = ""
    name_complex: str = ""
    revelation_place: str = ""
    verses_count: int = 0
    pages: list = field(default_factory=list)
    translated_name: Any = None

    @staticmethod
    def from_api(data: dict) -> Chapter:
        return Chapter(
            id=data["id"],
            name_arabic=data.get("name_arabic", ""),
            name_simple=data.get("name_simple", ""),
            name_complex=data.get("name_complex", ""),
            revelation_place=data.get("revelation_place", ""),
            verses_count=data.get("verses_count", 0),
            pages=data.get("pages") or [],
            translated_name=data.get("translated_name"),
        )


def filter_chapters(chapters: list[Chapter], query: str | None) -> list[Chapter]:
    """Chapters whose number, simple name or Arabic name contains query.

    Number and simple name match case-insensitively. A blank query keeps all.
    """
    if not query or not query.strip():
        return list(chapters)
    query = query.lower()
    return [
        c for c in chapters
        if query in str(c.id)
        or query in (c.name_simple or "").lower()
        or query in (c.name_arabic or "")
    ]


@dataclass
class ChapterInfo:
    id: int
    name_arabic: str = ""
    name_simple: str = ""
    revelation_place: str = ""
    verses_count: int = 0
    has_bismillah: bool = False


@dataclass
class Verse:
    key: str
    number: int
    text: str
    translation: str = ""
    id: Optional[int] = None
    audio_url: Optional[str] = None
    page_number: Optional[int] = None
    juz_number: Optional[int] = None
    hizb_number: Optional[int] = None

    @staticmethod
    def from_api(data: dict) -> Verse:
        return Verse(
            id=data.get("id"),
            key=data.get("key", ""),
            number=data["number"],
            text=data.get("text", ""),
            translation=data.get("translationHtml") or "",
            audio_url=data.get("audioUrl") or None,
            page_number=data.get("page_number"),
            juz_number=data.get("juz_number"),
            hizb_number=data.get("hizb_number"),
        )


@dataclass
class ChapterVerses:
    chapter: ChapterInfo
    verses: list[Verse]
    bismillah: Any = None
    metadata: Any = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PageInfo:
    number: int
    total_pages: Optional[int] = None
    juz_number: Optional[int] = None
    hizb_number: Optional[int] = None


@dataclass
class PageVerses:
    page: PageInfo
    verses: list[Verse]

    def to_dict(self) -> dict:
        return asdict(self)


def text_format_for(script_type: str | None) -> str:
    return TEXT_FORMATS.get(script_type or "", DEFAULT_TEXT_FORMAT)


class QuranContentClient:
    """Stateless accessor for the content API."""

    def __init__(
        self,
        base_url: str,
        per_page: int = 300,
        timeout: float | None = 15,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.per_page = per_page
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get(self, path: str, params: dict | None = None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Content API request failed: %s %s", url, e)
            raise ContentFetchError(f"Could not reach content API: {e}") from e

        if not response.ok:
            logger.error("Content API error: %s -> HTTP %s", url, response.status_code)
            raise ContentFetchError(
                f"HTTP error! status: {response.status_code}", status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.error("Content API returned invalid JSON: %s", url)
            raise ContentFetchError("Invalid JSON from content API") from e

        if not isinstance(data, dict):
            raise ContentFetchError("Unexpected response shape from content API")
        return data

    def list_chapters(self) -> list[Chapter]:
        data = self._get("/api/qf/chapters")
        try:
            return [Chapter.from_api(c) for c in data.get("chapters") or []]
        except (KeyError, TypeError) as e:
            raise ContentFetchError(f"Malformed chapter entry: {e}") from e

    def get_chapter(
        self,
        chapter_id: int,
        reciter_id: Any = None,
        script_type: str = "uthmani",
    ) -> ChapterVerses:
        """Verses of one chapter with translation and (per reciter) audio."""
        params = {
            "chapter": chapter_id,
            "perPage": self.per_page,
            "textFormat": text_format_for(script_type),
        }
        if reciter_id:
            params["reciterId"] = reciter_id

        data = self._get("/api/qf/verses", params)
        if not data.get("verses"):
            raise ContentFetchError("No verses returned from API")

        info = data.get("chapter") or data.get("surah")
        if not info:
            raise ContentFetchError("No chapter information returned from API")

        try:
            chapter = ChapterInfo(
                id=info["id"],
                name_arabic=info.get("name_arabic", ""),
                name_simple=info.get("name_simple", ""),
                revelation_place=info.get("revelation_place", ""),
                verses_count=info.get("verses_count") or info.get("total_ayahs") or 0,
                has_bismillah=bool(info.get("bismillah_pre") or info.get("has_bismillah")),
            )
            verses = [Verse.from_api(v) for v in data["verses"]]
        except (KeyError, TypeError) as e:
            raise ContentFetchError(f"Malformed verse payload: {e}") from e

        return ChapterVerses(
            chapter=chapter,
            verses=verses,
            bismillah=data.get("bismillah"),
            metadata=data.get("metadata"),
        )

    def list_reciters(self) -> list[dict]:
        data = self._get("/api/qf/reciters")
        reciters = data.get("reciters") or []
        if not isinstance(reciters, list):
            raise ContentFetchError("Malformed reciter list")
        return reciters

    def get_page(self, page_number: int, script_type: str = "uthmani") -> PageVerses:
        """One mushaf page and the verses printed on it."""
        data = self._get(
            "/api/qf/page",
            {"pageNumber": page_number, "textFormat": text_format_for(script_type)},
        )
        page = data.get("page")
        if not page or "verses" not in data:
            raise ContentFetchError("Invalid API response structure")

        try:
            return PageVerses(
                page=PageInfo(
                    number=page["number"],
                    total_pages=page.get("total_pages"),
                    juz_number=page.get("juz_number"),
                    hizb_number=page.get("hizb_number"),
                ),
                verses=[Verse.from_api(v) for v in data["verses"] or []],
            )
        except (KeyError, TypeError) as e:
            raise ContentFetchError(f"Malformed page payload: {e}") from e
