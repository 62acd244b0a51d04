"""Governance service — risk, decision and milestone registers.

Transaction policy: methods use flush() for ID generation, never commit().
Caller (route handler) is responsible for db.session.commit().

Ordering:
    risks       newest first
    decisions   due date ascending, undated last
    milestones  due date ascending
"""
import logging

from app.core.exceptions import ValidationError
from app.models import db
from app.models.governance import (
    DECISION_STATUSES,
    MILESTONE_STATUSES,
    RISK_SEVERITIES,
    RISK_STATUSES,
    ProjectDecision,
    ProjectMilestone,
    ProjectRisk,
)
from app.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)


def _require(data, *fields, message):
    missing = [f for f in fields if not str(data.get(f) or "").strip()]
    if missing:
        raise ValidationError(message, details={f: "required" for f in missing})


def _choice(value, allowed, field):
    if value not in allowed:
        raise ValidationError(
            f"Invalid {field}. Must be one of: {', '.join(sorted(allowed))}",
            details={field: value},
        )
    return value


def _progress(value):
    try:
        progress = int(value or 0)
    except (TypeError, ValueError):
        raise ValidationError("progress must be a number", details={"progress": value}) from None
    if not 0 <= progress <= 100:
        raise ValidationError("progress must be between 0 and 100", details={"progress": value})
    return progress


def _apply_text(item, data, fields):
    for field in fields:
        if field in data:
            setattr(item, field, data[field])


# ── Risks ────────────────────────────────────────────────────────────────


def list_risks(project_id):
    return (
        ProjectRisk.query.filter_by(project_id=project_id)
        .order_by(ProjectRisk.created_at.desc(), ProjectRisk.id.desc())
        .all()
    )


def create_risk(project_id, data):
    _require(data, "title", "owner", "severity", "impact",
             message="Title, owner, severity, and impact are required")
    risk = ProjectRisk(
        project_id=project_id,
        title=data["title"].strip(),
        description=data.get("description"),
        owner=data["owner"].strip(),
        severity=_choice(data["severity"], RISK_SEVERITIES, "severity"),
        status=_choice(data.get("status") or "open", RISK_STATUSES, "status"),
        impact=data["impact"],
        mitigation_plan=data.get("mitigation_plan"),
        due_date=parse_date_input(data.get("due_date"), "due_date"),
    )
    db.session.add(risk)
    db.session.flush()
    return risk


def update_risk(risk, data):
    for field in ("title", "owner", "impact"):
        if field in data and not str(data[field] or "").strip():
            raise ValidationError(f"{field} must not be empty")
    _apply_text(risk, data, ("title", "owner", "impact", "description", "mitigation_plan"))
    if "severity" in data:
        risk.severity = _choice(data["severity"], RISK_SEVERITIES, "severity")
    if "status" in data:
        risk.status = _choice(data["status"], RISK_STATUSES, "status")
    if "due_date" in data:
        risk.due_date = parse_date_input(data["due_date"], "due_date")
    db.session.flush()
    return risk


# ── Decisions ────────────────────────────────────────────────────────────


def list_decisions(project_id):
    return (
        ProjectDecision.query.filter_by(project_id=project_id)
        .order_by(
            ProjectDecision.due_date.is_(None),
            ProjectDecision.due_date.asc(),
            ProjectDecision.id.asc(),
        )
        .all()
    )


def create_decision(project_id, data):
    _require(data, "title", "owner", message="Title and owner are required")
    decision = ProjectDecision(
        project_id=project_id,
        title=data["title"].strip(),
        description=data.get("description"),
        owner=data["owner"].strip(),
        due_date=parse_date_input(data.get("due_date"), "due_date"),
        status=_choice(data.get("status") or "pending", DECISION_STATUSES, "status"),
        rationale=data.get("rationale"),
    )
    db.session.add(decision)
    db.session.flush()
    return decision


def update_decision(decision, data):
    for field in ("title", "owner"):
        if field in data and not str(data[field] or "").strip():
            raise ValidationError(f"{field} must not be empty")
    _apply_text(decision, data, ("title", "owner", "description", "rationale"))
    if "status" in data:
        decision.status = _choice(data["status"], DECISION_STATUSES, "status")
    if "due_date" in data:
        decision.due_date = parse_date_input(data["due_date"], "due_date")
    db.session.flush()
    return decision


# ── Milestones ───────────────────────────────────────────────────────────


def list_milestones(project_id):
    return (
        ProjectMilestone.query.filter_by(project_id=project_id)
        .order_by(ProjectMilestone.due_date.asc(), ProjectMilestone.id.asc())
        .all()
    )


def create_milestone(project_id, data):
    _require(data, "name", "due_date", message="Name and due_date are required")
    milestone = ProjectMilestone(
        project_id=project_id,
        name=data["name"].strip(),
        description=data.get("description"),
        due_date=parse_date_input(data["due_date"], "due_date"),
        status=_choice(data.get("status") or "planned", MILESTONE_STATUSES, "status"),
        progress=_progress(data.get("progress")),
        owner=data.get("owner"),
    )
    db.session.add(milestone)
    db.session.flush()
    return milestone


def update_milestone(milestone, data):
    if "name" in data and not str(data["name"] or "").strip():
        raise ValidationError("name must not be empty")
    _apply_text(milestone, data, ("name", "description", "owner"))
    if "status" in data:
        milestone.status = _choice(data["status"], MILESTONE_STATUSES, "status")
    if "progress" in data:
        milestone.progress = _progress(data["progress"])
    if "due_date" in data:
        due = parse_date_input(data["due_date"], "due_date")
        if due is None:
            raise ValidationError("due_date must not be empty")
        milestone.due_date = due
    db.session.flush()
    return milestone


# ── Shared ───────────────────────────────────────────────────────────────


def delete_item(item):
    db.session.delete(item)
    db.session.flush()


def governance_snapshot(project_id):
    """All three registers in their display order."""
    return {
        "risks": [r.to_dict() for r in list_risks(project_id)],
        "decisions": [d.to_dict() for d in list_decisions(project_id)],
        "milestones": [m.to_dict() for m in list_milestones(project_id)],
    }
