"""
Project Planner
Resource models — team members and their task assignments.

Resources belong to a user, not to a project, so the same person can be
allocated across several projects. ``TaskAssignment.assigned_hours`` is
optional: when NULL the effective hours are the task's current estimate,
resolved at read time rather than copied.
"""

from datetime import datetime, timezone

from app.models import db


class Resource(db.Model):
    """A team member with a weekly hour capacity."""

    __tablename__ = "resources"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(100), nullable=True, default="other")
    weekly_capacity_hours = db.Column(db.Float, nullable=False, default=40)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    assignments = db.relationship(
        "TaskAssignment", backref="resource", lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "role": self.role,
            "weekly_capacity_hours": self.weekly_capacity_hours,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Resource {self.id}: {self.name}>"


class TaskAssignment(db.Model):
    """Many-to-many link between tasks and resources."""

    __tablename__ = "task_assignments"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(
        db.Integer,
        db.ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    resource_id = db.Column(
        db.Integer,
        db.ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_hours = db.Column(db.Float, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("task_id", "resource_id", name="uq_task_assignment"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "task_id": self.task_id,
            "resource_id": self.resource_id,
            "assigned_hours": self.assigned_hours,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
