"""Change history — the append-only audit trail of a project.

``append_history`` is the only writer of ``change_history`` rows. Nothing
updates or deletes them; deleting a change request merely clears the link.
"""
import logging

from app.models import db
from app.models.change import HISTORY_ACTIONS, ChangeHistory

logger = logging.getLogger(__name__)


def append_history(project_id, action, description, *, change_request_id=None,
                   delta_hours=None, delta_days=None, metadata=None):
    """Insert one history row (flushed, not committed)."""
    if action not in HISTORY_ACTIONS:
        raise ValueError(f"Unknown history action: {action}")
    entry = ChangeHistory(
        project_id=project_id,
        change_request_id=change_request_id,
        action=action,
        description=description,
        delta_hours=delta_hours,
        delta_days=delta_days,
        meta=metadata or {},
    )
    db.session.add(entry)
    db.session.flush()
    logger.debug("History %s appended to project %s", action, project_id)
    return entry


def list_history(project_id):
    """History rows of a project, newest first."""
    return (
        ChangeHistory.query.filter_by(project_id=project_id)
        .order_by(ChangeHistory.created_at.desc(), ChangeHistory.id.desc())
        .all()
    )