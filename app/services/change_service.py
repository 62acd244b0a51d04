"""Change request service — lifecycle, AI impact analysis and approval.

Lifecycle:
    open ──analyze──▶ analyzed ──approve──▶ approved
      │                 │  ▲ (re-analyze)
      └──────reject─────┴──────────────────▶ rejected   (reject allowed from any state)

Transaction policy: CRUD functions flush and leave the commit to the route
handler. ``analyze_change``, ``approve_change`` and ``reject_change`` own
their unit of work: every write of the transition is committed together
or rolled back together, so a failure never leaves an analysis row without
the status change (or new tasks without the approval).

``updated_tasks`` proposed by an analysis are stored and counted in the
approval history, but approval never edits existing tasks. Applying them
is an open product decision.
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import update

from app.ai import composer
from app.ai.schemas import validate_response
from app.core.exceptions import ValidationError
from app.models import db
from app.models.change import (
    CHANGE_AREAS,
    CHANGE_PRIORITIES,
    CHANGE_TYPES,
    ChangeHistory,
    ChangeRequest,
    ChangeRequestAnalysis,
    validate_change_transition,
)
from app.models.planning import TASK_TYPES, Task
from app.services import baseline_service, history_service
from app.services.helpers.scoped_queries import get_scoped
from app.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)

PRIORITY_MAP = {"critical": 1, "high": 2, "medium": 3, "low": 4}
DEFAULT_TASK_PRIORITY = 3
APPROVED_TASK_ORDER_OFFSET = 1000


def _check_choice(value, allowed, field):
    if value not in allowed:
        raise ValidationError(
            f"Invalid {field}. Must be one of: {', '.join(sorted(allowed))}",
            details={field: value},
        )
    return value


# ── CRUD ─────────────────────────────────────────────────────────────────


def list_changes(project_id):
    return (
        ChangeRequest.query.filter_by(project_id=project_id)
        .order_by(ChangeRequest.created_at.desc(), ChangeRequest.id.desc())
        .all()
    )


def get_change(project_id, change_id):
    return get_scoped(ChangeRequest, change_id, project_id=project_id)


def create_change(project_id, data):
    """Create an ``open`` change request and log ``created``.

    Returns:
        ChangeRequest instance (already flushed).
    """
    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationError("Title is required")

    change = ChangeRequest(
        project_id=project_id,
        title=title,
        description=data.get("description"),
        change_type=_check_choice(data.get("change_type") or "modification", CHANGE_TYPES,
                                  "change_type"),
        priority=_check_choice(data.get("priority") or "medium", CHANGE_PRIORITIES, "priority"),
        area=_check_choice(data.get("area") or "other", CHANGE_AREAS, "area"),
        desired_due_date=parse_date_input(data.get("desired_due_date"), "desired_due_date"),
        status="open",
    )
    db.session.add(change)
    db.session.flush()

    history_service.append_history(
        project_id, "created", f'Change request "{title}" created',
        change_request_id=change.id,
    )
    return change


def update_change(change, data):
    """Edit descriptive fields. Status only moves through analyze/approve/reject."""
    if "status" in data and data["status"] != change.status:
        raise ValidationError(
            "Status cannot be edited directly; use the analyze, approve or reject actions",
            details={"status": data["status"]},
        )

    if "title" in data:
        title = (data.get("title") or "").strip()
        if not title:
            raise ValidationError("Title must not be empty")
        change.title = title
    if "description" in data:
        change.description = data["description"]
    if "change_type" in data:
        change.change_type = _check_choice(data["change_type"], CHANGE_TYPES, "change_type")
    if "priority" in data:
        change.priority = _check_choice(data["priority"], CHANGE_PRIORITIES, "priority")
    if "area" in data:
        change.area = _check_choice(data["area"], CHANGE_AREAS, "area")
    if "desired_due_date" in data:
        change.desired_due_date = parse_date_input(data["desired_due_date"], "desired_due_date")

    db.session.flush()
    return change


def delete_change(change):
    """Delete a request and its analyses; history rows stay, unlinked."""
    db.session.execute(
        update(ChangeHistory)
        .where(ChangeHistory.change_request_id == change.id)
        .values(change_request_id=None)
    )
    ChangeRequestAnalysis.query.filter_by(change_request_id=change.id).delete()
    db.session.delete(change)
    db.session.flush()


# ── Analysis ─────────────────────────────────────────────────────────────


def impact_comparison(impact, tasks, sprints, project, baseline, **capacity):
    """Baseline-vs-proposed numbers for an impact estimate. Pure."""
    current_hours = baseline_service.total_hours(tasks)
    delta_hours = impact.effort_hours + impact.rework_hours
    delta_days = impact.impact_on_deadline_days

    if baseline is not None and baseline.planned_delivery_date:
        base_date = baseline.planned_delivery_date
    else:
        base_date = project.deadline
    new_date = base_date + timedelta(days=delta_days) if base_date and delta_days > 0 else None

    return {
        "baseline_total_hours": baseline.total_hours if baseline else current_hours,
        "new_total_hours": current_hours + delta_hours,
        "delta_hours": delta_hours,
        "baseline_delivery_date": base_date.isoformat() if base_date else None,
        "new_delivery_date": new_date.isoformat() if new_date else None,
        "delta_days": delta_days,
        "baseline_sprint_count": baseline.sprint_count if baseline else len(sprints),
        "new_sprint_count": len(sprints),
        "sprint_overload": baseline_service.overloaded_sprints(sprints, tasks, **capacity),
    }


def analyze_change(project, change_id, *, gateway, registry, user_id=None):
    """Ask the model for an impact estimate and record it.

    The completion call happens first; the analysis row, the status flip and
    the history entry are then committed in one transaction.

    Returns:
        (ChangeRequestAnalysis, baseline_comparison dict)

    Raises:
        NotFoundError: change request not in this project.
        ValidationError: the request is approved or rejected.
        AIServiceError / UpstreamContractError: completion failed or malformed.
    """
    change = get_change(project.id, change_id)
    if not validate_change_transition(change.status, "analyzed"):
        raise ValidationError(f"Change request cannot be analyzed in status '{change.status}'")

    tasks, sprints = baseline_service.project_rows(project)
    baseline = baseline_service.latest_baseline(project.id)

    template = registry.require("change_impact")
    messages = template.render(
        context=composer.change_impact_context(project, change, tasks, sprints, baseline),
    )
    payload = gateway.chat_json(
        messages,
        purpose="change_impact",
        user_id=user_id,
        project_id=project.id,
        **template.completion_options,
    )
    impact = validate_response("change_impact", payload)
    comparison = impact_comparison(
        impact, tasks, sprints, project, baseline, **baseline_service.capacity_settings(),
    )

    try:
        analysis = ChangeRequestAnalysis(
            change_request_id=change.id,
            impact_summary=impact.impact_summary,
            affected_modules=impact.affected_modules,
            new_tasks=[t.model_dump() for t in impact.new_tasks],
            updated_tasks=[t.model_dump() for t in impact.updated_tasks],
            risks=[r.model_dump() for r in impact.risks],
            effort_hours=impact.effort_hours,
            rework_hours=impact.rework_hours,
            impact_on_deadline_days=impact.impact_on_deadline_days,
            baseline_comparison=comparison,
            model_used=gateway.model_name,
        )
        db.session.add(analysis)
        change.status = "analyzed"
        history_service.append_history(
            project.id, "analyzed", f'Change request "{change.title}" analyzed',
            change_request_id=change.id,
            delta_hours=comparison["delta_hours"],
            delta_days=impact.impact_on_deadline_days,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Failed to store analysis for change request %s", change_id,
                         extra={"change_request_id": change_id})
        raise

    logger.info("Change request %s analyzed: +%.1fh, +%dd",
                change.id, comparison["delta_hours"], impact.impact_on_deadline_days,
                extra={"change_request_id": change.id})
    return analysis, comparison


# ── Approval / rejection ─────────────────────────────────────────────────


def _task_priority(value):
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return PRIORITY_MAP.get(str(value or "").lower(), DEFAULT_TASK_PRIORITY)


def _task_type(value):
    return value if value in TASK_TYPES else "other"


def approve_change(project, change_id):
    """Approve an analyzed request and materialise its proposed tasks.

    The status guard is a conditional UPDATE, so of two concurrent approvals
    exactly one sees an affected row; the other is rejected before any task
    is inserted.

    Returns:
        (ChangeRequest, created task count)
    """
    change = get_change(project.id, change_id)

    try:
        result = db.session.execute(
            update(ChangeRequest)
            .where(ChangeRequest.id == change.id, ChangeRequest.status == "analyzed")
            .values(status="approved", updated_at=datetime.now(timezone.utc))
        )
        if result.rowcount != 1:
            raise ValidationError("Change request must be analyzed before approval")

        analysis = change.latest_analysis
        new_tasks = (analysis.new_tasks if analysis else None) or []
        updated_tasks = (analysis.updated_tasks if analysis else None) or []

        for index, proposed in enumerate(new_tasks):
            db.session.add(Task(
                project_id=project.id,
                title=proposed.get("title") or "Untitled task",
                description=proposed.get("description"),
                task_type=_task_type(proposed.get("task_type")),
                status="pending",
                priority=_task_priority(proposed.get("priority")),
                estimated_hours=proposed.get("estimate_hours") or 0,
                order_index=APPROVED_TASK_ORDER_OFFSET + index,
            ))

        history_service.append_history(
            project.id, "approved", f'Change request "{change.title}" approved',
            change_request_id=change.id,
            delta_hours=analysis.effort_hours if analysis else 0,
            delta_days=analysis.impact_on_deadline_days if analysis else 0,
            metadata={
                "new_tasks_count": len(new_tasks),
                "updated_tasks_count": len(updated_tasks),
            },
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    db.session.refresh(change)
    logger.info("Change request %s approved, %d task(s) created", change.id, len(new_tasks),
                extra={"change_request_id": change.id})
    return change, len(new_tasks)


def reject_change(project, change_id, reason=None):
    change = get_change(project.id, change_id)
    if not validate_change_transition(change.status, "rejected"):
        raise ValidationError(f"Change request cannot be rejected in status '{change.status}'")

    reason = (reason or "").strip() or None
    description = f'Change request "{change.title}" rejected'
    if reason:
        description += f": {reason}"

    try:
        change.status = "rejected"
        history_service.append_history(
            project.id, "rejected", description,
            change_request_id=change.id,
            metadata={"rejection_reason": reason},
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("Change request %s rejected", change.id,
                extra={"change_request_id": change.id})
    return change
