"""Settings service — per-user planning and AI preferences.

Numeric preferences are rounded half-up and clamped into their ranges;
wrongly typed values are ignored rather than rejected. A PATCH that carries
no usable field is a ValidationError.
"""
import logging

from app.core.exceptions import ValidationError
from app.models import db
from app.models.user import (
    SPRINT_LENGTH_RANGE,
    WEEKLY_CAPACITY_RANGE,
    WORK_HOURS_PER_DAY_RANGE,
)
from app.services.workload_service import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"

_CLAMPED_FIELDS = {
    "weekly_capacity_hours": WEEKLY_CAPACITY_RANGE,
    "default_sprint_length_days": SPRINT_LENGTH_RANGE,
    "default_work_hours_per_day": WORK_HOURS_PER_DAY_RANGE,
}
_BOOLEAN_FIELDS = ("ai_use_wizard_suggestions", "ai_show_rebalance_hints")


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def clamp(value, bounds):
    low, high = bounds
    return min(high, max(low, round_half_up(value)))


def normalize_settings(data):
    """Whitelist and coerce a settings payload into column updates."""
    changes = {}

    if isinstance(data.get("full_name"), str):
        changes["full_name"] = data["full_name"].strip()
    if isinstance(data.get("timezone"), str):
        changes["timezone"] = data["timezone"].strip() or DEFAULT_TIMEZONE

    for field, bounds in _CLAMPED_FIELDS.items():
        if _is_number(data.get(field)):
            changes[field] = clamp(data[field], bounds)

    for field in _BOOLEAN_FIELDS:
        if isinstance(data.get(field), bool):
            changes[field] = data[field]

    if isinstance(data.get("ai_report_tone"), str):
        changes["ai_report_tone"] = "client" if data["ai_report_tone"] == "client" else "internal"

    return changes


def update_settings(user, data):
    changes = normalize_settings(data or {})
    if not changes:
        raise ValidationError("No valid fields to update")
    for field, value in changes.items():
        setattr(user, field, value)
    db.session.flush()
    logger.info("User %s updated settings: %s", user.id, sorted(changes))
    return user
