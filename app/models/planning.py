"""
Project Planner
Planning models — Task and Sprint.

Tasks may nest through ``parent_id`` and may be scheduled into a Sprint of
the same project through ``sprint_id``.
"""

from datetime import datetime, timezone

from app.models import db

# ── Constants ────────────────────────────────────────────────────────────────

TASK_TYPES = {"backend", "frontend", "api", "database", "qa", "design", "devops", "other"}
TASK_STATUSES = {"pending", "in_progress", "completed", "blocked"}
SPRINT_STATUSES = {"planned", "active", "completed"}


class Task(db.Model):
    """A unit of work with an hour estimate."""

    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    parent_id = db.Column(
        db.Integer, db.ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True,
    )
    sprint_id = db.Column(
        db.Integer,
        db.ForeignKey("sprints.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    task_type = db.Column(db.String(20), nullable=False, default="other")
    status = db.Column(
        db.String(20), nullable=False, default="pending",
        comment="pending | in_progress | completed | blocked",
    )
    priority = db.Column(db.Integer, nullable=False, default=2, comment="1 = highest")
    estimated_hours = db.Column(db.Float, nullable=False, default=0)
    actual_hours = db.Column(db.Float, nullable=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)

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

    assignments = db.relationship(
        "TaskAssignment", backref="task", lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "parent_id": self.parent_id,
            "sprint_id": self.sprint_id,
            "title": self.title,
            "description": self.description,
            "task_type": self.task_type,
            "status": self.status,
            "priority": self.priority,
            "estimated_hours": self.estimated_hours,
            "actual_hours": self.actual_hours,
            "order_index": self.order_index,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Task {self.id}: {self.title[:40]}>"


class Sprint(db.Model):
    """Time-boxed iteration within a project."""

    __tablename__ = "sprints"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    goal = db.Column(db.Text, nullable=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    status = db.Column(
        db.String(20), nullable=False, default="planned",
        comment="planned | active | completed",
    )
    order_index = db.Column(db.Integer, nullable=False, default=0)

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
        "Task", backref="sprint", lazy="dynamic", order_by="Task.order_index",
    )

    def to_dict(self, include_tasks=False):
        result = {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "goal": self.goal,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "status": self.status,
            "order_index": self.order_index,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_tasks:
            result["tasks"] = [t.to_dict() for t in self.tasks]
        return result

    def __repr__(self):
        return f"<Sprint {self.id}: {self.name}>"
