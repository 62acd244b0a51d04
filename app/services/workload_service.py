"""Workload service — resource utilisation and allocation views.

Transaction policy: methods use flush() for ID generation, never commit().
Caller (route handler) is responsible for db.session.commit().

The aggregation helpers at the top of the module are pure: they take
already-loaded rows (ORM instances or anything with the same attributes)
and never touch the session. The DB-facing functions below them load the
rows for one project and hand them to the helpers.

Utilisation buckets (first match wins):
    < 50 %   underloaded
    <= 80 %  optimal
    <= 100 % heavy
    > 100 %  overloaded
"""
import logging
import math

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.planning import Sprint, Task
from app.models.resource import Resource, TaskAssignment
from app.services.helpers.scoped_queries import get_scoped
from app.utils.helpers import to_number

logger = logging.getLogger(__name__)

WORKLOAD_LEVELS = ("underloaded", "optimal", "heavy", "overloaded")


# ── Arithmetic ───────────────────────────────────────────────────────────


def round_half_up(value):
    """Round .5 away from zero for positive values (2.5 → 3, not 2)."""
    return int(math.floor(value + 0.5))


def utilization_percentage(hours, capacity):
    """Whole-number utilisation; 0 when capacity is zero or negative."""
    if not capacity or capacity <= 0:
        return 0
    return round_half_up(100 * (hours or 0) / capacity)


def classify_workload(pct):
    if pct < 50:
        return "underloaded"
    if pct <= 80:
        return "optimal"
    if pct <= 100:
        return "heavy"
    return "overloaded"


def sprint_weeks(start, end):
    """Whole weeks a sprint spans, rounded up. 0 when a date is missing."""
    if not start or not end:
        return 0
    return math.ceil((end - start).days / 7)


def effective_hours(assignment, task):
    """Assigned hours, falling back to the task's estimate at read time."""
    if assignment.assigned_hours is not None:
        return assignment.assigned_hours
    if task is None:
        return 0
    return task.estimated_hours or 0


def _task_hours(tasks):
    return sum(t.estimated_hours or 0 for t in tasks)


# ── Aggregation ──────────────────────────────────────────────────────────


def summarize_resource(resource, tasks, assignments, sprints):
    """Per-resource workload view.

    Only assignments pointing at one of ``tasks`` are counted, so passing a
    single project's tasks gives that project's slice of a resource that
    is shared between projects.
    """
    task_by_id = {t.id: t for t in tasks}
    own = [
        a for a in assignments
        if a.resource_id == resource.id and a.task_id in task_by_id
    ]
    assigned = [task_by_id[a.task_id] for a in own]
    hours_by_task = {a.task_id: effective_hours(a, task_by_id[a.task_id]) for a in own}

    total = sum(hours_by_task.values())
    completed = _task_hours(t for t in assigned if t.status == "completed")
    capacity = resource.weekly_capacity_hours or 0
    pct = utilization_percentage(total, capacity)

    breakdown = []
    for sprint in sprints:
        sprint_capacity = capacity * sprint_weeks(sprint.start_date, sprint.end_date)
        sprint_hours = _task_hours(t for t in assigned if t.sprint_id == sprint.id)
        breakdown.append({
            "sprint_id": sprint.id,
            "sprint_name": sprint.name,
            "start_date": sprint.start_date.isoformat() if sprint.start_date else None,
            "end_date": sprint.end_date.isoformat() if sprint.end_date else None,
            "capacity_hours": sprint_capacity,
            "assigned_hours": sprint_hours,
            "utilization_percentage": utilization_percentage(sprint_hours, sprint_capacity),
        })

    return {
        "id": resource.id,
        "name": resource.name,
        "role": resource.role,
        "weekly_capacity_hours": capacity,
        "total_assigned_hours": total,
        "completed_hours": completed,
        # Not clamped: reassigned-then-completed work can push this below zero.
        "remaining_hours": total - completed,
        "utilization_percentage": pct,
        "workload_level": classify_workload(pct),
        "assigned_task_count": len(assigned),
        "overdue_tasks": 0,
        "assigned_tasks": [
            {
                "id": t.id,
                "title": t.title,
                "task_type": t.task_type,
                "status": t.status,
                "sprint_id": t.sprint_id,
                "estimated_hours": t.estimated_hours,
                "assigned_hours": hours_by_task[t.id],
            }
            for t in assigned
        ],
        "sprint_breakdown": breakdown,
    }


def summarize_team(resource_summaries):
    """Team totals, bucket counts and overloaded resources."""
    total_capacity = sum(r["weekly_capacity_hours"] for r in resource_summaries)
    total_assigned = sum(r["total_assigned_hours"] for r in resource_summaries)

    distribution = {level: 0 for level in WORKLOAD_LEVELS}
    for r in resource_summaries:
        distribution[r["workload_level"]] += 1

    bottlenecks = [
        {
            "resource_id": r["id"],
            "resource_name": r["name"],
            "overload_hours": r["total_assigned_hours"] - r["weekly_capacity_hours"],
            "affected_tasks": [
                t["title"] for t in r["assigned_tasks"] if t["status"] != "completed"
            ],
        }
        for r in resource_summaries
        if r["workload_level"] == "overloaded"
    ]

    return {
        "total_team_capacity": total_capacity,
        "total_assigned_hours": total_assigned,
        "team_utilization_percentage": utilization_percentage(total_assigned, total_capacity),
        "overallocated_resources": distribution["overloaded"],
        "underutilized_resources": distribution["underloaded"],
        "workload_distribution": distribution,
        "bottlenecks": bottlenecks,
    }


def sprint_team_loads(sprints, tasks, resources):
    """Sprint load against the real team capacity (Σ weekly capacity × weeks)."""
    weekly = sum(r.weekly_capacity_hours or 0 for r in resources)
    loads = []
    for sprint in sprints:
        sprint_tasks = [t for t in tasks if t.sprint_id == sprint.id]
        hours = _task_hours(sprint_tasks)
        capacity = weekly * sprint_weeks(sprint.start_date, sprint.end_date)
        loads.append({
            "id": sprint.id,
            "name": sprint.name,
            "start_date": sprint.start_date.isoformat() if sprint.start_date else None,
            "end_date": sprint.end_date.isoformat() if sprint.end_date else None,
            "status": sprint.status,
            "total_hours": hours,
            "capacity": capacity,
            "utilization_percentage": utilization_percentage(hours, capacity),
            "task_count": len(sprint_tasks),
        })
    return loads


def unassigned_tasks(tasks, assignments):
    assigned_ids = {a.task_id for a in assignments}
    return [t for t in tasks if t.id not in assigned_ids]


def resource_task_load(resource, tasks, assignments):
    """Estimate-based load of one resource, as handed to the optimiser prompt."""
    assigned_ids = {a.task_id for a in assignments if a.resource_id == resource.id}
    assigned = [t for t in tasks if t.id in assigned_ids]
    total = _task_hours(assigned)
    completed = _task_hours(t for t in assigned if t.status == "completed")
    capacity = resource.weekly_capacity_hours or 0
    pct = utilization_percentage(total, capacity)
    return {
        "id": resource.id,
        "name": resource.name,
        "role": resource.role,
        "capacity": capacity,
        "assigned_hours": total,
        "completed_hours": completed,
        "remaining_hours": total - completed,
        "utilization_percentage": pct,
        "is_overloaded": pct > 100,
        "assigned_tasks": [
            {
                "id": t.id,
                "title": t.title,
                "type": t.task_type,
                "hours": t.estimated_hours,
                "status": t.status,
                "sprint_id": t.sprint_id,
            }
            for t in assigned
        ],
    }


# ── Loading ──────────────────────────────────────────────────────────────


def _load_project_rows(project):
    tasks = (
        Task.query.filter_by(project_id=project.id)
        .order_by(Task.order_index, Task.id)
        .all()
    )
    sprints = (
        Sprint.query.filter_by(project_id=project.id)
        .order_by(Sprint.order_index, Sprint.id)
        .all()
    )
    resources = (
        Resource.query.filter_by(user_id=project.user_id)
        .order_by(Resource.name)
        .all()
    )
    task_ids = [t.id for t in tasks]
    assignments = (
        TaskAssignment.query.filter(TaskAssignment.task_id.in_(task_ids)).all()
        if task_ids else []
    )
    return tasks, sprints, resources, assignments


def get_project_workload(project):
    """Workload of every resource of the project owner against this project."""
    tasks, sprints, resources, assignments = _load_project_rows(project)
    summaries = [summarize_resource(r, tasks, assignments, sprints) for r in resources]
    return {
        "resources": summaries,
        "team_summary": summarize_team(summaries),
        "sprints": [s.to_dict() for s in sprints],
    }


def list_allocations(project):
    """Per-resource allocation grid grouped by sprint."""
    tasks, sprints, resources, assignments = _load_project_rows(project)
    task_by_id = {t.id: t for t in tasks}

    def _entry(assignment, task):
        return {
            "task_id": task.id,
            "task_title": task.title,
            "task_type": task.task_type,
            "status": task.status,
            "allocated_hours": effective_hours(assignment, task),
        }

    allocations = []
    for resource in resources:
        own = [a for a in assignments if a.resource_id == resource.id]
        pairs = [(a, task_by_id[a.task_id]) for a in own if a.task_id in task_by_id]

        sprint_allocations = []
        for sprint in sprints:
            in_sprint = [(a, t) for a, t in pairs if t.sprint_id == sprint.id]
            sprint_allocations.append({
                "sprint_id": sprint.id,
                "sprint_name": sprint.name,
                "tasks": [_entry(a, t) for a, t in in_sprint],
                "total_hours": _task_hours(t for _, t in in_sprint),
            })

        allocations.append({
            "resource_id": resource.id,
            "resource_name": resource.name,
            "role": resource.role,
            "sprint_allocations": sprint_allocations,
            "unassigned_tasks": [_entry(a, t) for a, t in pairs if t.sprint_id is None],
            "total_allocated_hours": _task_hours(t for _, t in pairs),
        })
    return allocations


def optimization_state(project):
    """Everything the workload optimiser needs: per-resource, per-sprint and backlog."""
    tasks, sprints, resources, assignments = _load_project_rows(project)
    workloads = [resource_task_load(r, tasks, assignments) for r in resources]
    total_capacity = sum(w["capacity"] for w in workloads)
    total_assigned = sum(w["assigned_hours"] for w in workloads)
    return {
        "tasks": tasks,
        "resources": workloads,
        "sprints": sprint_team_loads(sprints, tasks, resources),
        "unassigned_tasks": unassigned_tasks(tasks, assignments),
        "team_summary": {
            "total_capacity": total_capacity,
            "total_assigned": total_assigned,
            "team_utilization": utilization_percentage(total_assigned, total_capacity),
            "overloaded_resources": sum(1 for w in workloads if w["is_overloaded"]),
            "underutilized_resources": sum(
                1 for w in workloads if w["utilization_percentage"] < 50
            ),
        },
    }


# ── Resources ────────────────────────────────────────────────────────────


def _capacity(value, default=40.0):
    hours = to_number(value, default)
    if hours < 0:
        raise ValidationError("weekly_capacity_hours must not be negative")
    return hours


def create_resource(user_id, data):
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Name is required")
    resource = Resource(
        user_id=user_id,
        name=name,
        role=data.get("role") or "other",
        weekly_capacity_hours=_capacity(data.get("weekly_capacity_hours")) or 40.0,
    )
    db.session.add(resource)
    db.session.flush()
    logger.info("Resource %s created for user %s", resource.id, user_id)
    return resource


def update_resource(user_id, data):
    resource_id = data.get("resource_id")
    if not resource_id:
        raise ValidationError("Resource ID is required")
    resource = get_scoped(Resource, resource_id, user_id=user_id)

    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Name must not be empty")
        resource.name = name
    if "role" in data:
        resource.role = data["role"] or "other"
    if "weekly_capacity_hours" in data:
        resource.weekly_capacity_hours = _capacity(
            data["weekly_capacity_hours"], resource.weekly_capacity_hours,
        )
    db.session.flush()
    return resource


def delete_resource(user_id, resource_id):
    resource = get_scoped(Resource, resource_id, user_id=user_id)
    db.session.delete(resource)
    db.session.flush()


# ── Assignments ──────────────────────────────────────────────────────────


def _assignment_parties(project, data):
    task_id = data.get("task_id")
    resource_id = data.get("resource_id")
    if not task_id or not resource_id:
        raise ValidationError("task_id and resource_id are required")
    try:
        task = get_scoped(Task, task_id, project_id=project.id)
    except NotFoundError:
        raise NotFoundError(resource="Task in project", resource_id=task_id) from None
    resource = get_scoped(Resource, resource_id, user_id=project.user_id)
    return task, resource


def upsert_assignment(project, data):
    """Create or update the (task, resource) assignment.

    ``assigned_hours`` is stored only when given; otherwise the row keeps
    NULL and reads fall back to the task's estimate.

    Returns:
        (TaskAssignment, created) tuple.
    """
    task, resource = _assignment_parties(project, data)
    raw_hours = data.get("assigned_hours")
    hours = None if raw_hours in (None, "") else to_number(raw_hours, None)
    if hours is not None and hours < 0:
        raise ValidationError("assigned_hours must not be negative")

    assignment = TaskAssignment.query.filter_by(
        task_id=task.id, resource_id=resource.id,
    ).first()
    created = assignment is None
    if created:
        assignment = TaskAssignment(task_id=task.id, resource_id=resource.id)
        db.session.add(assignment)
    assignment.assigned_hours = hours
    db.session.flush()
    return assignment, created


def remove_assignment(project, data):
    task, resource = _assignment_parties(project, data)
    deleted = TaskAssignment.query.filter_by(
        task_id=task.id, resource_id=resource.id,
    ).delete()
    db.session.flush()
    return deleted
