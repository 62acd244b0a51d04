"""
Project Planner
Governance blueprint — risk, decision and milestone registers.

Endpoints summary:
    RISK       /api/v1/projects/<id>/risks                      GET, POST
               /api/v1/projects/<id>/risks/<risk_id>            PATCH, DELETE

    DECISION   /api/v1/projects/<id>/decisions                  GET, POST
               /api/v1/projects/<id>/decisions/<decision_id>    PATCH, DELETE

    MILESTONE  /api/v1/projects/<id>/milestones                 GET, POST
               /api/v1/projects/<id>/milestones/<milestone_id>  PATCH, DELETE

    SNAPSHOT   /api/v1/projects/<id>/governance                 GET
"""

import logging

from flask import Blueprint, jsonify

from app.blueprints import register_error_handlers
from app.middleware.ownership import require_project_owner
from app.models.governance import ProjectDecision, ProjectMilestone, ProjectRisk
from app.services import governance_service as gov_svc
from app.services.helpers.scoped_queries import get_scoped
from app.utils.helpers import db_commit_or_error, json_body

logger = logging.getLogger(__name__)

governance_bp = Blueprint("governance", __name__, url_prefix="/api/v1")
register_error_handlers(governance_bp)


def _created(key, item):
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({key: item.to_dict()}), 201


def _updated(key, item):
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({key: item.to_dict()})


def _deleted(item):
    gov_svc.delete_item(item)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"success": True})


# ═══════════════════════════════════════════════════════════════════════════
#  RISKS
# ═══════════════════════════════════════════════════════════════════════════


@governance_bp.route("/projects/<int:project_id>/risks", methods=["GET"])
@require_project_owner()
def list_risks(project_id, project):
    return jsonify({"risks": [r.to_dict() for r in gov_svc.list_risks(project.id)]})


@governance_bp.route("/projects/<int:project_id>/risks", methods=["POST"])
@require_project_owner()
def create_risk(project_id, project):
    data = json_body()
    return _created("risk", gov_svc.create_risk(project.id, data))


@governance_bp.route("/projects/<int:project_id>/risks/<int:risk_id>", methods=["PATCH"])
@require_project_owner()
def update_risk(project_id, risk_id, project):
    risk = get_scoped(ProjectRisk, risk_id, project_id=project.id)
    data = json_body()
    return _updated("risk", gov_svc.update_risk(risk, data))


@governance_bp.route("/projects/<int:project_id>/risks/<int:risk_id>", methods=["DELETE"])
@require_project_owner()
def delete_risk(project_id, risk_id, project):
    return _deleted(get_scoped(ProjectRisk, risk_id, project_id=project.id))


# ═══════════════════════════════════════════════════════════════════════════
#  DECISIONS
# ═══════════════════════════════════════════════════════════════════════════


@governance_bp.route("/projects/<int:project_id>/decisions", methods=["GET"])
@require_project_owner()
def list_decisions(project_id, project):
    return jsonify({"decisions": [d.to_dict() for d in gov_svc.list_decisions(project.id)]})


@governance_bp.route("/projects/<int:project_id>/decisions", methods=["POST"])
@require_project_owner()
def create_decision(project_id, project):
    data = json_body()
    return _created("decision", gov_svc.create_decision(project.id, data))


@governance_bp.route("/projects/<int:project_id>/decisions/<int:decision_id>", methods=["PATCH"])
@require_project_owner()
def update_decision(project_id, decision_id, project):
    decision = get_scoped(ProjectDecision, decision_id, project_id=project.id)
    data = json_body()
    return _updated("decision", gov_svc.update_decision(decision, data))


@governance_bp.route("/projects/<int:project_id>/decisions/<int:decision_id>", methods=["DELETE"])
@require_project_owner()
def delete_decision(project_id, decision_id, project):
    return _deleted(get_scoped(ProjectDecision, decision_id, project_id=project.id))


# ═══════════════════════════════════════════════════════════════════════════
#  MILESTONES
# ═══════════════════════════════════════════════════════════════════════════


@governance_bp.route("/projects/<int:project_id>/milestones", methods=["GET"])
@require_project_owner()
def list_milestones(project_id, project):
    return jsonify({"milestones": [m.to_dict() for m in gov_svc.list_milestones(project.id)]})


@governance_bp.route("/projects/<int:project_id>/milestones", methods=["POST"])
@require_project_owner()
def create_milestone(project_id, project):
    data = json_body()
    return _created("milestone", gov_svc.create_milestone(project.id, data))


@governance_bp.route("/projects/<int:project_id>/milestones/<int:milestone_id>",
                     methods=["PATCH"])
@require_project_owner()
def update_milestone(project_id, milestone_id, project):
    milestone = get_scoped(ProjectMilestone, milestone_id, project_id=project.id)
    data = json_body()
    return _updated("milestone", gov_svc.update_milestone(milestone, data))


@governance_bp.route("/projects/<int:project_id>/milestones/<int:milestone_id>",
                     methods=["DELETE"])
@require_project_owner()
def delete_milestone(project_id, milestone_id, project):
    return _deleted(get_scoped(ProjectMilestone, milestone_id, project_id=project.id))


# ═══════════════════════════════════════════════════════════════════════════
#  SNAPSHOT
# ═══════════════════════════════════════════════════════════════════════════


@governance_bp.route("/projects/<int:project_id>/governance", methods=["GET"])
@require_project_owner()
def governance_snapshot(project_id, project):
    return jsonify(gov_svc.governance_snapshot(project.id))
