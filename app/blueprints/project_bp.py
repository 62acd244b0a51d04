"""
Project Planner
Project Blueprint — projects and their planning data.

Endpoints:
    Projects:
        GET    /api/v1/projects                                  — List own projects
        POST   /api/v1/projects                                  — Create
        GET    /api/v1/projects/<id>                             — Detail
        PATCH  /api/v1/projects/<id>                             — Update
        DELETE /api/v1/projects/<id>                             — Delete (cascades)

    Tasks:
        GET    /api/v1/projects/<id>/tasks                       — List (order_index)
        POST   /api/v1/projects/<id>/tasks                       — Bulk create {tasks: [...]}
        PATCH  /api/v1/projects/<id>/tasks/<task_id>             — Update

    Sprints:
        GET    /api/v1/projects/<id>/sprints                     — List with tasks
        POST   /api/v1/projects/<id>/sprints                     — Bulk create {sprints: [...]}

    Inputs:
        GET    /api/v1/projects/<id>/inputs                      — List, newest first
        POST   /api/v1/projects/<id>/inputs                      — Add a versioned input

    Baseline:
        GET    /api/v1/projects/<id>/baseline                    — List, newest first
        POST   /api/v1/projects/<id>/baseline                    — Snapshot current plan
        GET    /api/v1/projects/<id>/baseline-comparison         — Current vs latest baseline
"""

import logging

from flask import Blueprint, g, jsonify

from app.blueprints import register_error_handlers
from app.middleware.ownership import login_required, require_project_owner
from app.services import baseline_service, project_service
from app.utils.helpers import db_commit_or_error, json_body

logger = logging.getLogger(__name__)

project_bp = Blueprint("project", __name__, url_prefix="/api/v1")
register_error_handlers(project_bp)


# ═════════════════════════════════════════════════════════════════════════════
#  PROJECTS
# ═════════════════════════════════════════════════════════════════════════════


@project_bp.route("/projects", methods=["GET"])
@login_required
def list_projects():
    projects = project_service.list_projects(g.current_user.id)
    return jsonify({"projects": [p.to_dict() for p in projects]})


@project_bp.route("/projects", methods=["POST"])
@login_required
def create_project():
    data = json_body()
    project = project_service.create_project(g.current_user.id, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"project": project.to_dict()}), 201


@project_bp.route("/projects/<int:project_id>", methods=["GET"])
@require_project_owner()
def get_project(project_id, project):
    return jsonify({"project": project.to_dict()})


@project_bp.route("/projects/<int:project_id>", methods=["PATCH"])
@require_project_owner()
def update_project(project_id, project):
    data = json_body()
    project_service.update_project(project, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"project": project.to_dict()})


@project_bp.route("/projects/<int:project_id>", methods=["DELETE"])
@require_project_owner()
def delete_project(project_id, project):
    project_service.delete_project(project)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"success": True})


# ═════════════════════════════════════════════════════════════════════════════
#  TASKS
# ═════════════════════════════════════════════════════════════════════════════


@project_bp.route("/projects/<int:project_id>/tasks", methods=["GET"])
@require_project_owner()
def list_tasks(project_id, project):
    tasks = project_service.list_tasks(project.id)
    return jsonify({"tasks": [t.to_dict() for t in tasks]})


@project_bp.route("/projects/<int:project_id>/tasks", methods=["POST"])
@require_project_owner()
def create_tasks(project_id, project):
    """Body: { "tasks": [{title, description?, task_type?, estimated_hours?, ...}] }"""
    data = json_body()
    tasks = project_service.create_tasks(project.id, data.get("tasks"))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"tasks": [t.to_dict() for t in tasks]}), 201


@project_bp.route("/projects/<int:project_id>/tasks/<int:task_id>", methods=["PATCH"])
@require_project_owner()
def update_task(project_id, task_id, project):
    data = json_body()
    task = project_service.get_task(project.id, task_id)
    project_service.update_task(task, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"task": task.to_dict()})


# ═════════════════════════════════════════════════════════════════════════════
#  SPRINTS
# ═════════════════════════════════════════════════════════════════════════════


@project_bp.route("/projects/<int:project_id>/sprints", methods=["GET"])
@require_project_owner()
def list_sprints(project_id, project):
    sprints = project_service.list_sprints(project.id)
    return jsonify({"sprints": [s.to_dict(include_tasks=True) for s in sprints]})


@project_bp.route("/projects/<int:project_id>/sprints", methods=["POST"])
@require_project_owner()
def create_sprints(project_id, project):
    data = json_body()
    sprints = project_service.create_sprints(project.id, data.get("sprints"))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"sprints": [s.to_dict() for s in sprints]}), 201


# ═════════════════════════════════════════════════════════════════════════════
#  INPUTS
# ═════════════════════════════════════════════════════════════════════════════


@project_bp.route("/projects/<int:project_id>/inputs", methods=["GET"])
@require_project_owner()
def list_inputs(project_id, project):
    inputs = project_service.list_inputs(project.id)
    return jsonify({"inputs": [i.to_dict() for i in inputs]})


@project_bp.route("/projects/<int:project_id>/inputs", methods=["POST"])
@require_project_owner()
def create_input(project_id, project):
    data = json_body()
    item = project_service.create_input(project.id, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"input": item.to_dict()}), 201


# ═════════════════════════════════════════════════════════════════════════════
#  BASELINE
# ═════════════════════════════════════════════════════════════════════════════


@project_bp.route("/projects/<int:project_id>/baseline", methods=["GET"])
@require_project_owner()
def list_baselines(project_id, project):
    baselines = baseline_service.list_baselines(project.id)
    return jsonify({"baselines": [b.to_dict() for b in baselines]})


@project_bp.route("/projects/<int:project_id>/baseline", methods=["POST"])
@require_project_owner()
def create_baseline(project_id, project):
    data = json_body()
    baseline = baseline_service.create_baseline(project, data.get("name"))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"baseline": baseline.to_dict()}), 201


@project_bp.route("/projects/<int:project_id>/baseline-comparison", methods=["GET"])
@require_project_owner()
def baseline_comparison(project_id, project):
    return jsonify({"comparison": baseline_service.compare_project(project)})
