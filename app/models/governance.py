"""
Project Planner
Governance models — project risks, decisions and milestones.

Independent per-project registers. No derived computation beyond a
severity rank used to order risks for display.
"""

from datetime import datetime, timezone

from app.models import db

# ── Constants ────────────────────────────────────────────────────────────────

RISK_SEVERITIES = {"low", "medium", "high", "critical"}
RISK_STATUSES = {"open", "mitigating", "watch", "closed"}
DECISION_STATUSES = {"pending", "approved", "rejected"}
MILESTONE_STATUSES = {"planned", "on_track", "at_risk", "delayed", "done"}

SEVERITY_RANK = {"critical": 4, "high": 3, "medium": 2, "low": 1}


def _iso(value):
    return value.isoformat() if value else None


class ProjectRisk(db.Model):
    __tablename__ = "project_risks"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    owner = db.Column(db.String(150), nullable=False)
    severity = db.Column(db.String(20), nullable=False, comment="low | medium | high | critical")
    status = db.Column(db.String(20), nullable=False, default="open")
    impact = db.Column(db.Text, nullable=False)
    mitigation_plan = db.Column(db.Text, nullable=True)
    due_date = db.Column(db.Date, nullable=True)
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

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "owner": self.owner,
            "severity": self.severity,
            "severity_rank": SEVERITY_RANK.get(self.severity, 0),
            "status": self.status,
            "impact": self.impact,
            "mitigation_plan": self.mitigation_plan,
            "due_date": _iso(self.due_date),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<ProjectRisk {self.id}: {self.title[:40]}>"


class ProjectDecision(db.Model):
    __tablename__ = "project_decisions"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    owner = db.Column(db.String(150), nullable=False)
    due_date = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="pending")
    rationale = db.Column(db.Text, nullable=True)
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

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "owner": self.owner,
            "due_date": _iso(self.due_date),
            "status": self.status,
            "rationale": self.rationale,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<ProjectDecision {self.id}: {self.title[:40]}>"


class ProjectMilestone(db.Model):
    __tablename__ = "project_milestones"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    due_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="planned")
    progress = db.Column(db.Integer, nullable=False, default=0)
    owner = db.Column(db.String(150), nullable=True)
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

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "due_date": _iso(self.due_date),
            "status": self.status,
            "progress": self.progress,
            "owner": self.owner,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<ProjectMilestone {self.id}: {self.name[:40]}>"
