"""
Project Planner
Resource Blueprint — team members, workload and task allocations.

Resources belong to the project owner and are shared across that user's
projects; the workload views only count tasks of the project in the URL.

Endpoints:
    GET    /api/v1/projects/<id>/resources                   — Workload summaries
    POST   /api/v1/projects/<id>/resources                   — Create resource
    PUT    /api/v1/projects/<id>/resources                   — Update {resource_id, ...}
    DELETE /api/v1/projects/<id>/resources/<resource_id>     — Delete resource

    GET    /api/v1/projects/<id>/resources/allocations       — Per-sprint allocation grid
    POST   /api/v1/projects/<id>/resources/allocations       — Upsert task assignment
    DELETE /api/v1/projects/<id>/resources/allocations       — Remove task assignment
"""

import logging

from flask import Blueprint, jsonify

from app.blueprints import register_error_handlers
from app.middleware.ownership import require_project_owner
from app.services import workload_service
from app.utils.helpers import db_commit_or_error, json_body

logger = logging.getLogger(__name__)

resource_bp = Blueprint("resource", __name__, url_prefix="/api/v1")
register_error_handlers(resource_bp)


# ── Resources ────────────────────────────────────────────────────────────────


@resource_bp.route("/projects/<int:project_id>/resources", methods=["GET"])
@require_project_owner()
def list_resources(project_id, project):
    """Returns: { resources: [...workload], team_summary: {...}, sprints: [...] }"""
    return jsonify(workload_service.get_project_workload(project))


@resource_bp.route("/projects/<int:project_id>/resources", methods=["POST"])
@require_project_owner()
def create_resource(project_id, project):
    data = json_body()
    resource = workload_service.create_resource(project.user_id, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"resource": resource.to_dict()}), 201


@resource_bp.route("/projects/<int:project_id>/resources", methods=["PUT"])
@require_project_owner()
def update_resource(project_id, project):
    data = json_body()
    resource = workload_service.update_resource(project.user_id, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"resource": resource.to_dict()})


@resource_bp.route("/projects/<int:project_id>/resources/<int:resource_id>", methods=["DELETE"])
@require_project_owner()
def delete_resource(project_id, resource_id, project):
    workload_service.delete_resource(project.user_id, resource_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"success": True})


# ── Allocations ──────────────────────────────────────────────────────────────


@resource_bp.route("/projects/<int:project_id>/resources/allocations", methods=["GET"])
@require_project_owner()
def list_allocations(project_id, project):
    return jsonify({"allocations": workload_service.list_allocations(project)})


@resource_bp.route("/projects/<int:project_id>/resources/allocations", methods=["POST"])
@require_project_owner()
def upsert_allocation(project_id, project):
    """Body: { task_id, resource_id, assigned_hours? } → 201 created / 200 updated."""
    data = json_body()
    assignment, created = workload_service.upsert_assignment(project, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"assignment": assignment.to_dict()}), 201 if created else 200


@resource_bp.route("/projects/<int:project_id>/resources/allocations", methods=["DELETE"])
@require_project_owner()
def delete_allocation(project_id, project):
    data = json_body()
    workload_service.remove_assignment(project, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"success": True})
