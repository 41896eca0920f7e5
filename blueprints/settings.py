"""Settings routes — read and update the device's reader preferences."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from helpers import progress_service

bp = Blueprint("settings", __name__)


@bp.errorhandler(ValueError)
def _handle_invalid_setting(err: ValueError):
    return jsonify({"error": str(err)}), 400


@bp.route("/api/settings")
def api_settings():
    return jsonify(progress_service().get_state().settings.to_dict())


@bp.route("/api/settings", methods=["PATCH"])
def api_settings_update():
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return jsonify({"error": "Send a JSON object of settings to change."}), 400
    settings = progress_service().update_settings(data)
    return jsonify(settings.to_dict())


@bp.route("/api/settings/<key>", methods=["PUT"])
def api_setting_update(key):
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or "value" not in data:
        return jsonify({"error": "Send {\"value\": ...}."}), 400
    settings = progress_service().update_setting(key, data["value"])
    return jsonify(settings.to_dict())
