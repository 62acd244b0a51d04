"""
Project Planner
User model — account identity plus per-user planning and AI preferences.

The preference columns back ``GET/PATCH /api/v1/settings``; the numeric ones
carry hard limits enforced by ``settings_service``.
"""

from datetime import datetime, timezone

from app.models import db

# ── Preference limits ────────────────────────────────────────────────────────

WEEKLY_CAPACITY_RANGE = (1, 80)
SPRINT_LENGTH_RANGE = (1, 28)
WORK_HOURS_PER_DAY_RANGE = (1, 24)
REPORT_TONES = {"internal", "client"}


class User(db.Model):
    """A person who owns projects and resources."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=True)
    full_name = db.Column(db.String(200), nullable=True)

    # Planning preferences
    weekly_capacity_hours = db.Column(db.Integer, nullable=False, default=40)
    timezone = db.Column(db.String(64), nullable=False, default="UTC")
    default_sprint_length_days = db.Column(db.Integer, nullable=False, default=14)
    default_work_hours_per_day = db.Column(db.Integer, nullable=False, default=8)

    # AI preferences
    ai_use_wizard_suggestions = db.Column(db.Boolean, nullable=False, default=True)
    ai_show_rebalance_hints = db.Column(db.Boolean, nullable=False, default=True)
    ai_report_tone = db.Column(
        db.String(20), nullable=False, default="internal",
        comment="internal | client",
    )

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

    projects = db.relationship(
        "Project", backref="owner", lazy="dynamic", cascade="all, delete-orphan",
    )
    resources = db.relationship(
        "Resource", backref="owner", lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def settings_dict(self):
        """Serialize the preference whitelist exposed by the settings API."""
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "weekly_capacity_hours": self.weekly_capacity_hours,
            "timezone": self.timezone,
            "default_sprint_length_days": self.default_sprint_length_days,
            "default_work_hours_per_day": self.default_work_hours_per_day,
            "ai_use_wizard_suggestions": self.ai_use_wizard_suggestions,
            "ai_show_rebalance_hints": self.ai_show_rebalance_hints,
            "ai_report_tone": self.ai_report_tone,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.email}>"
