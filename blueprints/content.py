"""Content routes — chapter list, chapter verses, reciters and mushaf pages.

Responses pass straight through from the content API; failures become a 502
with a message the client shows next to its retry button.
"""

from __future__ import annotations

from dataclasses import asdict

from flask import Blueprint, jsonify, request

from extensions import ContentClientManager
from helpers import progress_service, valid_chapter
from progress import chapter_progress
from quran_client import ContentFetchError, filter_chapters

bp = Blueprint("content", __name__)

MUSHAF_PAGES = 604


@bp.errorhandler(ContentFetchError)
def _handle_fetch_error(err: ContentFetchError):
    return jsonify({
        "error": "Failed to load content. Please check your connection and try again.",
        "detail": str(err),
        "retry": True,
    }), 502


@bp.route("/api/chapters")
def api_chapters():
    """Chapter list, optionally filtered by ?q=, each with this device's progress."""
    chapters = filter_chapters(
        ContentClientManager.get_client().list_chapters(), request.args.get("q")
    )
    state = progress_service().store.get_state()
    return jsonify({"chapters": [
        dict(asdict(c), progress=chapter_progress(state, c.id, c.verses_count or 1)["percentage"])
        for c in chapters
    ]})


@bp.route("/api/chapters/<int:chapter_id>/verses")
@valid_chapter
def api_chapter_verses(chapter_id):
    settings = progress_service().get_state().settings
    reciter = request.args.get("reciter") or settings.selected_reciter
    script = request.args.get("script") or settings.script_type
    result = ContentClientManager.get_client().get_chapter(chapter_id, reciter, script)
    return jsonify(result.to_dict())


@bp.route("/api/reciters")
def api_reciters():
    return jsonify({"reciters": ContentClientManager.get_client().list_reciters()})


@bp.route("/api/pages/<int:page_number>")
def api_page(page_number):
    if not 1 <= page_number <= MUSHAF_PAGES:
        return jsonify({"error": f"Page must be between 1 and {MUSHAF_PAGES}."}), 400
    script = request.args.get("script", "uthmani")
    return jsonify(ContentClientManager.get_client().get_page(page_number, script).to_dict())
