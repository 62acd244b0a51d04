"""
Project Planner
Project domain models — Project and its versioned requirement inputs.

A Project is the top-level unit of work. It owns tasks, sprints, baselines,
change requests and governance records; resources belong to the user and
are linked to tasks through assignments.
"""

from datetime import datetime, timezone

from app.models import db

# ── Constants ────────────────────────────────────────────────────────────────

PROJECT_STATUSES = {"planning", "in_progress", "completed", "on_hold"}
PROJECT_HEALTH = {"healthy", "at_risk", "critical"}
INPUT_TYPES = {"prd_text", "note", "ui_description", "json_example", "other"}


class Project(db.Model):
    """A user-owned project."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(
        db.String(20), nullable=False, default="planning",
        comment="planning | in_progress | completed | on_hold",
    )
    health = db.Column(
        db.String(20), nullable=False, default="healthy",
        comment="healthy | at_risk | critical",
    )
    deadline = db.Column(db.Date, nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    progress = db.Column(db.Integer, nullable=False, default=0)

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

    tasks = db.relationship(
        "Task", backref="project", lazy="dynamic", cascade="all, delete-orphan",
    )
    sprints = db.relationship(
        "Sprint", backref="project", lazy="dynamic", cascade="all, delete-orphan",
    )
    inputs = db.relationship(
        "ProjectInput", backref="project", lazy="dynamic", cascade="all, delete-orphan",
    )
    baselines = db.relationship(
        "ProjectBaseline", backref="project", lazy="dynamic", cascade="all, delete-orphan",
    )
    change_requests = db.relationship(
        "ChangeRequest", backref="project", lazy="dynamic", cascade="all, delete-orphan",
    )
    history = db.relationship(
        "ChangeHistory", backref="project", lazy="dynamic", cascade="all, delete-orphan",
    )
    risks = db.relationship(
        "ProjectRisk", backref="project", lazy="dynamic", cascade="all, delete-orphan",
    )
    decisions = db.relationship(
        "ProjectDecision", backref="project", lazy="dynamic", cascade="all, delete-orphan",
    )
    milestones = db.relationship(
        "ProjectMilestone", backref="project", lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "health": self.health,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "progress": self.progress,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Project {self.id}: {self.name}>"


class ProjectInput(db.Model):
    """A versioned piece of requirements text attached to a project."""

    __tablename__ = "project_inputs"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    input_type = db.Column(db.String(30), nullable=False, default="prd_text")
    content = db.Column(db.Text, nullable=False)
    version = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "input_type": self.input_type,
            "content": self.content,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
