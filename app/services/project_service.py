"""Project service — projects, tasks, sprints and requirement inputs.

Transaction policy: methods use flush() for ID generation, never commit().
Caller (route handler) is responsible for db.session.commit().
"""
import logging

from app.core.exceptions import ValidationError
from app.models import db
from app.models.planning import SPRINT_STATUSES, TASK_STATUSES, TASK_TYPES, Sprint, Task
from app.models.project import INPUT_TYPES, PROJECT_HEALTH, PROJECT_STATUSES, Project, ProjectInput
from app.services.helpers.scoped_queries import get_scoped, get_scoped_or_none
from app.utils.helpers import parse_date_input, to_number

logger = logging.getLogger(__name__)

DEFAULT_TASK_PRIORITY = 2


def _choice(value, allowed, field):
    if value not in allowed:
        raise ValidationError(
            f"Invalid {field}. Must be one of: {', '.join(sorted(allowed))}",
            details={field: value},
        )
    return value


def _int(value, field, default):
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", details={field: value}) from None


# ── Projects ─────────────────────────────────────────────────────────────


def list_projects(user_id):
    return (
        Project.query.filter_by(user_id=user_id)
        .order_by(Project.created_at.desc(), Project.id.desc())
        .all()
    )


def create_project(user_id, data):
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Project name is required")

    project = Project(
        user_id=user_id,
        name=name,
        description=data.get("description"),
        status=_choice(data.get("status") or "planning", PROJECT_STATUSES, "status"),
        health=_choice(data.get("health") or "healthy", PROJECT_HEALTH, "health"),
        deadline=parse_date_input(data.get("deadline"), "deadline"),
        start_date=parse_date_input(data.get("start_date"), "start_date"),
    )
    db.session.add(project)
    db.session.flush()
    logger.info("Project %s created for user %s", project.id, user_id)
    return project


def update_project(project, data):
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Project name must not be empty")
        project.name = name
    if "description" in data:
        project.description = data["description"]
    if "status" in data:
        project.status = _choice(data["status"], PROJECT_STATUSES, "status")
    if "health" in data:
        project.health = _choice(data["health"], PROJECT_HEALTH, "health")
    for field in ("deadline", "start_date"):
        if field in data:
            setattr(project, field, parse_date_input(data[field], field))
    if "progress" in data:
        progress = _int(data["progress"], "progress", 0)
        project.progress = max(0, min(100, progress))
    db.session.flush()
    return project


def delete_project(project):
    db.session.delete(project)
    db.session.flush()


# ── Tasks ────────────────────────────────────────────────────────────────


def list_tasks(project_id):
    return (
        Task.query.filter_by(project_id=project_id)
        .order_by(Task.order_index.asc(), Task.id.asc())
        .all()
    )


def _resolve_sprint(project_id, sprint_id):
    if sprint_id in (None, ""):
        return None
    sprint = get_scoped_or_none(Sprint, sprint_id, project_id=project_id)
    if sprint is None:
        raise ValidationError("Sprint does not belong to this project",
                              details={"sprint_id": sprint_id})
    return sprint.id


def _resolve_parent(project_id, parent_id):
    if parent_id in (None, ""):
        return None
    parent = get_scoped_or_none(Task, parent_id, project_id=project_id)
    if parent is None:
        raise ValidationError("Parent task does not belong to this project",
                              details={"parent_id": parent_id})
    return parent.id


def create_tasks(project_id, items):
    """Bulk insert tasks in the given order.

    ``order_index`` defaults to the item's position in the list.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("Tasks array is required")

    created = []
    for position, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"tasks[{position}] must be an object")
        title = (item.get("title") or "").strip()
        if not title:
            raise ValidationError(f"tasks[{position}].title is required")
        task = Task(
            project_id=project_id,
            title=title,
            description=item.get("description"),
            task_type=_choice(item.get("task_type") or "other", TASK_TYPES, "task_type"),
            status=_choice(item.get("status") or "pending", TASK_STATUSES, "status"),
            priority=_int(item.get("priority"), "priority", DEFAULT_TASK_PRIORITY),
            estimated_hours=to_number(item.get("estimated_hours")),
            parent_id=_resolve_parent(project_id, item.get("parent_id")),
            sprint_id=_resolve_sprint(project_id, item.get("sprint_id")),
            order_index=_int(item.get("order_index"), "order_index", position),
        )
        db.session.add(task)
        created.append(task)
    db.session.flush()
    return created


def get_task(project_id, task_id):
    return get_scoped(Task, task_id, project_id=project_id)


def update_task(task, data):
    if "title" in data:
        title = (data.get("title") or "").strip()
        if not title:
            raise ValidationError("Task title must not be empty")
        task.title = title
    if "description" in data:
        task.description = data["description"]
    if "status" in data:
        task.status = _choice(data["status"], TASK_STATUSES, "status")
    if "task_type" in data:
        task.task_type = _choice(data["task_type"], TASK_TYPES, "task_type")
    if "priority" in data:
        task.priority = _int(data["priority"], "priority", DEFAULT_TASK_PRIORITY)
    if "estimated_hours" in data:
        task.estimated_hours = to_number(data["estimated_hours"])
    if "actual_hours" in data:
        task.actual_hours = to_number(data["actual_hours"], default=None)
    if "order_index" in data:
        task.order_index = _int(data["order_index"], "order_index", task.order_index)
    if "sprint_id" in data:
        task.sprint_id = _resolve_sprint(task.project_id, data["sprint_id"])
    db.session.flush()
    return task


# ── Sprints ──────────────────────────────────────────────────────────────


def list_sprints(project_id):
    return (
        Sprint.query.filter_by(project_id=project_id)
        .order_by(Sprint.order_index.asc(), Sprint.start_date.asc(), Sprint.id.asc())
        .all()
    )


def create_sprints(project_id, items):
    if not isinstance(items, list) or not items:
        raise ValidationError("Sprints array is required")

    created = []
    for position, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"sprints[{position}] must be an object")
        name = (item.get("name") or "").strip()
        start = parse_date_input(item.get("start_date"), "start_date")
        end = parse_date_input(item.get("end_date"), "end_date")
        if not name or start is None or end is None:
            raise ValidationError(
                f"sprints[{position}] requires name, start_date and end_date",
            )
        if end < start:
            raise ValidationError(f"sprints[{position}].end_date is before start_date")
        sprint = Sprint(
            project_id=project_id,
            name=name,
            goal=item.get("goal"),
            start_date=start,
            end_date=end,
            status=_choice(item.get("status") or "planned", SPRINT_STATUSES, "status"),
            order_index=_int(item.get("order_index"), "order_index", position),
        )
        db.session.add(sprint)
        created.append(sprint)
    db.session.flush()
    return created


# ── Inputs ───────────────────────────────────────────────────────────────


def list_inputs(project_id):
    return (
        ProjectInput.query.filter_by(project_id=project_id)
        .order_by(ProjectInput.created_at.desc(), ProjectInput.id.desc())
        .all()
    )


def create_input(project_id, data):
    content = data.get("content")
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("Content is required")

    version = ProjectInput.query.filter_by(project_id=project_id).count() + 1
    item = ProjectInput(
        project_id=project_id,
        input_type=_choice(data.get("inputType") or "prd_text", INPUT_TYPES, "inputType"),
        content=content,
        version=version,
    )
    db.session.add(item)
    db.session.flush()
    return item
