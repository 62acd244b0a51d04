"""Baseline service — plan snapshots and drift against the latest one.

Transaction policy: methods use flush() for ID generation, never commit().
Caller (route handler) is responsible for db.session.commit().

Two capacity models exist side by side and must not be mixed:

* Sprint overload here uses a flat ``weekly_capacity_hours`` per sprint
  week (``SPRINT_WEEKLY_CAPACITY_HOURS``, default 40), independent of team
  size. It answers "does this sprint look heavier than a nominal one?".
* ``workload_service.sprint_team_loads`` uses the real summed resource
  capacity and answers "can this team finish the sprint?".
"""
import logging

from flask import current_app

from app.models import db
from app.models.change import ProjectBaseline
from app.models.planning import Sprint, Task
from app.services import history_service
from app.services.workload_service import sprint_weeks

logger = logging.getLogger(__name__)

DEFAULT_WEEKLY_CAPACITY_HOURS = 40.0
DEFAULT_OVERLOAD_RATIO = 0.9

HEALTH_RISK_LEVELS = {"critical": "critical", "at_risk": "high"}


def _iso(value):
    return value.isoformat() if value else None


def total_hours(tasks):
    return sum(t.estimated_hours or 0 for t in tasks)


def delivery_date(sprints, project):
    """Latest sprint end date, falling back to the project deadline."""
    ends = [s.end_date for s in sprints if s.end_date]
    if ends:
        return max(ends)
    return project.deadline


def overloaded_sprints(sprints, tasks, *, weekly_capacity_hours=DEFAULT_WEEKLY_CAPACITY_HOURS,
                       overload_ratio=DEFAULT_OVERLOAD_RATIO):
    """Names of sprints whose task hours exceed ``ratio × weeks × weekly capacity``."""
    names = []
    for sprint in sprints:
        hours = total_hours(t for t in tasks if t.sprint_id == sprint.id)
        capacity = sprint_weeks(sprint.start_date, sprint.end_date) * weekly_capacity_hours
        if hours > capacity * overload_ratio:
            names.append(sprint.name)
    return names


def compare_to_baseline(baseline, tasks, sprints, project, *,
                        weekly_capacity_hours=DEFAULT_WEEKLY_CAPACITY_HOURS,
                        overload_ratio=DEFAULT_OVERLOAD_RATIO):
    """Compare current totals with ``baseline``; no side effects.

    Without a baseline every delta is zero: the baseline defaults to the
    current state.
    """
    current_hours = total_hours(tasks)
    current_delivery = delivery_date(sprints, project)

    delta = {"hours": 0, "tasks": 0, "sprints": 0, "days": 0}
    if baseline is not None:
        delta["hours"] = current_hours - (baseline.total_hours or 0)
        delta["tasks"] = len(tasks) - (baseline.task_count or 0)
        delta["sprints"] = len(sprints) - (baseline.sprint_count or 0)
        if baseline.planned_delivery_date and current_delivery:
            delta["days"] = (current_delivery - baseline.planned_delivery_date).days

    return {
        "has_baseline": baseline is not None,
        "baseline": baseline.to_dict(include_snapshots=False) if baseline else None,
        "current": {
            "total_hours": current_hours,
            "task_count": len(tasks),
            "sprint_count": len(sprints),
            "planned_delivery_date": _iso(current_delivery),
            "health": project.health,
        },
        "delta": delta,
        "sprint_overload": overloaded_sprints(
            sprints, tasks,
            weekly_capacity_hours=weekly_capacity_hours,
            overload_ratio=overload_ratio,
        ),
    }


def capacity_settings():
    """Sprint overload parameters from app config."""
    return {
        "weekly_capacity_hours": current_app.config.get(
            "SPRINT_WEEKLY_CAPACITY_HOURS", DEFAULT_WEEKLY_CAPACITY_HOURS,
        ),
        "overload_ratio": current_app.config.get(
            "SPRINT_OVERLOAD_RATIO", DEFAULT_OVERLOAD_RATIO,
        ),
    }


# ── DB-facing ────────────────────────────────────────────────────────────


def latest_baseline(project_id):
    return (
        ProjectBaseline.query.filter_by(project_id=project_id)
        .order_by(ProjectBaseline.created_at.desc(), ProjectBaseline.id.desc())
        .first()
    )


def list_baselines(project_id):
    return (
        ProjectBaseline.query.filter_by(project_id=project_id)
        .order_by(ProjectBaseline.created_at.desc(), ProjectBaseline.id.desc())
        .all()
    )


def project_rows(project):
    tasks = Task.query.filter_by(project_id=project.id).order_by(Task.order_index).all()
    sprints = Sprint.query.filter_by(project_id=project.id).order_by(Sprint.order_index).all()
    return tasks, sprints


def compare_project(project):
    tasks, sprints = project_rows(project)
    return compare_to_baseline(
        latest_baseline(project.id), tasks, sprints, project, **capacity_settings(),
    )


def create_baseline(project, name=None):
    """Snapshot the current plan and log ``baseline_created``.

    Returns:
        ProjectBaseline instance (already flushed).
    """
    tasks, sprints = project_rows(project)
    hours = total_hours(tasks)
    count = ProjectBaseline.query.filter_by(project_id=project.id).count()
    name = (name or "").strip() or f"Baseline {count + 1}"

    baseline = ProjectBaseline(
        project_id=project.id,
        name=name,
        total_hours=hours,
        task_count=len(tasks),
        sprint_count=len(sprints),
        planned_delivery_date=delivery_date(sprints, project),
        risk_level=HEALTH_RISK_LEVELS.get(project.health, "low"),
        tasks_snapshot=[t.to_dict() for t in tasks],
        sprints_snapshot=[s.to_dict() for s in sprints],
    )
    db.session.add(baseline)
    db.session.flush()

    history_service.append_history(
        project.id,
        "baseline_created",
        f'Baseline "{name}" created',
        metadata={
            "baseline_id": baseline.id,
            "total_hours": hours,
            "task_count": len(tasks),
            "sprint_count": len(sprints),
        },
    )
    logger.info("Baseline %s created for project %s (%.1fh)", baseline.id, project.id, hours)
    return baseline
