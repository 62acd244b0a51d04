"""
Project Planner
Change management models — baselines, change requests, AI impact analyses
and the append-only change history.

Change request lifecycle:
    open → analyzed → approved | rejected
    (``implemented`` is a reserved terminal status; no transition reaches it.)
"""

from datetime import datetime, timezone

from app.models import db

# ── Constants ────────────────────────────────────────────────────────────────

CHANGE_TYPES = {"new_feature", "modification", "removal", "bug", "urgent"}
CHANGE_PRIORITIES = {"low", "medium", "high", "critical"}
CHANGE_AREAS = {"frontend", "backend", "api", "database", "integration", "other"}
CHANGE_STATUSES = {"open", "analyzed", "approved", "rejected", "implemented"}
HISTORY_ACTIONS = {
    "created", "analyzed", "approved", "rejected", "implemented", "baseline_created",
}
RISK_LEVELS = {"low", "medium", "high", "critical"}

CHANGE_TRANSITIONS = {
    "open":        ["analyzed", "rejected"],
    "analyzed":    ["analyzed", "approved", "rejected"],   # re-analysis allowed
    "approved":    ["rejected"],
    "rejected":    ["rejected"],
    "implemented": ["rejected"],
}


def validate_change_transition(old_status, new_status):
    """Return True if ChangeRequest status transition is valid."""
    return new_status in CHANGE_TRANSITIONS.get(old_status, [])


class ProjectBaseline(db.Model):
    """Immutable snapshot of a project's plan totals."""

    __tablename__ = "project_baselines"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    total_hours = db.Column(db.Float, nullable=False, default=0)
    task_count = db.Column(db.Integer, nullable=False, default=0)
    sprint_count = db.Column(db.Integer, nullable=False, default=0)
    planned_delivery_date = db.Column(db.Date, nullable=True)
    risk_level = db.Column(db.String(20), nullable=True, comment="low | medium | high | critical")
    tasks_snapshot = db.Column(db.JSON, nullable=False, default=list)
    sprints_snapshot = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self, include_snapshots=True):
        result = {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "total_hours": self.total_hours,
            "task_count": self.task_count,
            "sprint_count": self.sprint_count,
            "planned_delivery_date": (
                self.planned_delivery_date.isoformat() if self.planned_delivery_date else None
            ),
            "risk_level": self.risk_level,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_snapshots:
            result["tasks_snapshot"] = self.tasks_snapshot or []
            result["sprints_snapshot"] = self.sprints_snapshot or []
        return result

    def __repr__(self):
        return f"<ProjectBaseline {self.id}: {self.name}>"


class ChangeRequest(db.Model):
    """A proposed scope change tracked through the analysis/approval lifecycle."""

    __tablename__ = "change_requests"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    change_type = db.Column(db.String(20), nullable=False, default="modification")
    priority = db.Column(db.String(20), nullable=False, default="medium")
    area = db.Column(db.String(20), nullable=True, default="other")
    status = db.Column(
        db.String(20), nullable=False, default="open",
        comment="open | analyzed | approved | rejected | implemented",
    )
    desired_due_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    analyses = db.relationship(
        "ChangeRequestAnalysis",
        backref="change_request",
        lazy="dynamic",
        cascade="all, delete-orphan",
        order_by="ChangeRequestAnalysis.id.desc()",
    )

    @property
    def latest_analysis(self):
        return self.analyses.first()

    def to_dict(self, include_analysis=False):
        result = {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "change_type": self.change_type,
            "priority": self.priority,
            "area": self.area,
            "status": self.status,
            "desired_due_date": (
                self.desired_due_date.isoformat() if self.desired_due_date else None
            ),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_analysis:
            latest = self.latest_analysis
            result["analysis"] = latest.to_dict() if latest else None
        return result

    def summary_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "change_type": self.change_type,
            "priority": self.priority,
        }

    def __repr__(self):
        return f"<ChangeRequest {self.id}: {self.title[:40]} [{self.status}]>"


class ChangeRequestAnalysis(db.Model):
    """AI-produced impact estimate for a change request."""

    __tablename__ = "change_request_analyses"

    id = db.Column(db.Integer, primary_key=True)
    change_request_id = db.Column(
        db.Integer,
        db.ForeignKey("change_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    impact_summary = db.Column(db.Text, nullable=True)
    affected_modules = db.Column(db.JSON, nullable=False, default=list)
    new_tasks = db.Column(db.JSON, nullable=False, default=list)
    updated_tasks = db.Column(db.JSON, nullable=False, default=list)
    risks = db.Column(db.JSON, nullable=False, default=list)
    effort_hours = db.Column(db.Float, nullable=False, default=0)
    rework_hours = db.Column(db.Float, nullable=False, default=0)
    impact_on_deadline_days = db.Column(db.Integer, nullable=False, default=0)
    baseline_comparison = db.Column(db.JSON, nullable=False, default=dict)
    model_used = db.Column(db.String(80), nullable=False, default="")
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "change_request_id": self.change_request_id,
            "impact_summary": self.impact_summary,
            "affected_modules": self.affected_modules or [],
            "new_tasks": self.new_tasks or [],
            "updated_tasks": self.updated_tasks or [],
            "risks": self.risks or [],
            "effort_hours": self.effort_hours,
            "rework_hours": self.rework_hours,
            "impact_on_deadline_days": self.impact_on_deadline_days,
            "baseline_comparison": self.baseline_comparison or {},
            "model_used": self.model_used,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class ChangeHistory(db.Model):
    """
    Append-only audit trail per project.

    Rows are only ever inserted through ``history_service.append_history``;
    there is no update or delete path.
    """

    __tablename__ = "change_history"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    change_request_id = db.Column(
        db.Integer,
        db.ForeignKey("change_requests.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action = db.Column(db.String(30), nullable=False)
    description = db.Column(db.Text, nullable=True)
    delta_hours = db.Column(db.Float, nullable=True)
    delta_days = db.Column(db.Integer, nullable=True)
    # "metadata" is reserved on declarative models
    meta = db.Column("metadata", db.JSON, nullable=False, default=dict)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    change_request = db.relationship("ChangeRequest", lazy="joined")

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "change_request_id": self.change_request_id,
            "action": self.action,
            "description": self.description,
            "delta_hours": self.delta_hours,
            "delta_days": self.delta_days,
            "metadata": self.meta or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "change_request": (
                self.change_request.summary_dict() if self.change_request else None
            ),
        }

    def __repr__(self):
        return f"<ChangeHistory {self.id}: {self.action}>"
