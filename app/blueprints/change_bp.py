"""
Project Planner
Change Blueprint — change requests, lifecycle transitions and history.

Endpoints:
    GET    /api/v1/projects/<id>/changes                           — List (with latest analysis)
    POST   /api/v1/projects/<id>/changes                           — Create (status open)
    GET    /api/v1/projects/<id>/changes/<change_id>               — Detail
    PATCH  /api/v1/projects/<id>/changes/<change_id>               — Edit descriptive fields
    DELETE /api/v1/projects/<id>/changes/<change_id>               — Delete
    POST   /api/v1/projects/<id>/changes/<change_id>/approve       — analyzed → approved
    POST   /api/v1/projects/<id>/changes/<change_id>/reject        — any → rejected
    GET    /api/v1/projects/<id>/change-history                    — Audit trail, newest first

Analysis (open → analyzed) lives at POST /api/v1/ai/analyze-change.
"""

import logging

from flask import Blueprint, jsonify

from app.blueprints import register_error_handlers
from app.middleware.ownership import require_project_owner
from app.services import change_service, history_service
from app.utils.helpers import db_commit_or_error, json_body

logger = logging.getLogger(__name__)

change_bp = Blueprint("change", __name__, url_prefix="/api/v1")
register_error_handlers(change_bp)


@change_bp.route("/projects/<int:project_id>/changes", methods=["GET"])
@require_project_owner()
def list_changes(project_id, project):
    changes = change_service.list_changes(project.id)
    return jsonify({"changeRequests": [c.to_dict(include_analysis=True) for c in changes]})


@change_bp.route("/projects/<int:project_id>/changes", methods=["POST"])
@require_project_owner()
def create_change(project_id, project):
    data = json_body()
    change = change_service.create_change(project.id, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"changeRequest": change.to_dict()}), 201


@change_bp.route("/projects/<int:project_id>/changes/<int:change_id>", methods=["GET"])
@require_project_owner()
def get_change(project_id, change_id, project):
    change = change_service.get_change(project.id, change_id)
    return jsonify({"changeRequest": change.to_dict(include_analysis=True)})


@change_bp.route("/projects/<int:project_id>/changes/<int:change_id>", methods=["PATCH"])
@require_project_owner()
def update_change(project_id, change_id, project):
    data = json_body()
    change = change_service.get_change(project.id, change_id)
    change_service.update_change(change, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"changeRequest": change.to_dict()})


@change_bp.route("/projects/<int:project_id>/changes/<int:change_id>", methods=["DELETE"])
@require_project_owner()
def delete_change(project_id, change_id, project):
    change = change_service.get_change(project.id, change_id)
    change_service.delete_change(change)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"success": True})


@change_bp.route("/projects/<int:project_id>/changes/<int:change_id>/approve", methods=["POST"])
@require_project_owner()
def approve_change(project_id, change_id, project):
    change, created = change_service.approve_change(project, change_id)
    return jsonify({
        "success": True,
        "message": "Change request approved",
        "tasksCreated": created,
        "changeRequest": change.to_dict(),
    })


@change_bp.route("/projects/<int:project_id>/changes/<int:change_id>/reject", methods=["POST"])
@require_project_owner()
def reject_change(project_id, change_id, project):
    """Body (optional): { "reason": "..." }"""
    data = json_body()
    change = change_service.reject_change(project, change_id, data.get("reason"))
    return jsonify({
        "success": True,
        "message": "Change request rejected",
        "changeRequest": change.to_dict(),
    })


@change_bp.route("/projects/<int:project_id>/change-history", methods=["GET"])
@require_project_owner()
def change_history(project_id, project):
    history = history_service.list_history(project.id)
    return jsonify({"history": [h.to_dict() for h in history]})
