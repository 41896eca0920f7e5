"""Memorization routes — mark/unmark ayahs, statistics, history, reset."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from audit import log_event
from helpers import current_device_id, current_user_id, progress_service, valid_chapter

bp = Blueprint("progress", __name__)

DIFFICULTY_LEVELS = (1, 2, 3)


def _ayah_response(chapter_id: int, verse_number: int, memorized: bool, service):
    return jsonify({
        "chapterId": chapter_id,
        "verseNumber": verse_number,
        "memorized": memorized,
        "statistics": service.statistics().to_dict(),
    })


@bp.route("/api/state")
def api_state():
    return jsonify(progress_service().get_state().to_dict())


@bp.route("/api/state", methods=["DELETE"])
def api_state_reset():
    progress_service().reset()
    log_event("data_reset", current_user_id(), f"device={current_device_id()}")
    return jsonify({"success": True})


@bp.route("/api/ayahs/<int:chapter_id>/<int:verse_number>")
@valid_chapter
def api_ayah_status(chapter_id, verse_number):
    memorized = progress_service().is_memorized(chapter_id, verse_number)
    return jsonify({"chapterId": chapter_id, "verseNumber": verse_number, "memorized": memorized})


@bp.route("/api/ayahs/<int:chapter_id>/<int:verse_number>", methods=["POST"])
@valid_chapter
def api_ayah_mark(chapter_id, verse_number):
    data = request.get_json(silent=True) or {}
    difficulty = data.get("difficulty", 2)
    if not isinstance(difficulty, int) or isinstance(difficulty, bool) or difficulty not in DIFFICULTY_LEVELS:
        return jsonify({"error": "difficulty must be 1, 2 or 3"}), 400
    service = progress_service()
    service.mark(chapter_id, verse_number, difficulty)
    return _ayah_response(chapter_id, verse_number, True, service)


@bp.route("/api/ayahs/<int:chapter_id>/<int:verse_number>", methods=["DELETE"])
@valid_chapter
def api_ayah_unmark(chapter_id, verse_number):
    service = progress_service()
    service.unmark(chapter_id, verse_number)
    return _ayah_response(chapter_id, verse_number, False, service)


@bp.route("/api/ayahs/<int:chapter_id>/<int:verse_number>/toggle", methods=["POST"])
@valid_chapter
def api_ayah_toggle(chapter_id, verse_number):
    service = progress_service()
    _, memorized = service.toggle(chapter_id, verse_number)
    return _ayah_response(chapter_id, verse_number, memorized, service)


@bp.route("/api/statistics")
def api_statistics():
    return jsonify(progress_service().statistics().to_dict())


@bp.route("/api/history/weekly")
def api_weekly_history():
    return jsonify({"history": progress_service().weekly_history()})


@bp.route("/api/chapters/<int:chapter_id>/progress")
@valid_chapter
def api_chapter_progress(chapter_id):
    total = request.args.get("total", type=int)
    if total is None or total < 0:
        return jsonify({"error": "total must be a non-negative integer"}), 400
    return jsonify(progress_service().chapter_progress(chapter_id, total))
