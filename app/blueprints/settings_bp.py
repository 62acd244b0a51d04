"""
Settings Blueprint — per-user preferences.

  GET   /api/v1/settings   — Current preferences
  PATCH /api/v1/settings   — Update (numeric values clamped, bad types ignored)
"""

from flask import Blueprint, g, jsonify

from app.blueprints import register_error_handlers
from app.middleware.ownership import login_required
from app.services import settings_service
from app.utils.helpers import db_commit_or_error, json_body

settings_bp = Blueprint("settings", __name__, url_prefix="/api/v1/settings")
register_error_handlers(settings_bp)


@settings_bp.route("", methods=["GET"])
@login_required
def get_settings():
    return jsonify({"settings": g.current_user.settings_dict()})


@settings_bp.route("", methods=["PATCH"])
@login_required
def update_settings():
    data = json_body()
    user = settings_service.update_settings(g.current_user, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"settings": user.settings_dict()})
