"""
Project Planner
Response schemas for the JSON returned by the completion provider.

The model is asked for a documented JSON shape; these schemas enforce it
right after the call so that a malformed answer surfaces as an
``UpstreamContractError`` (HTTP 502) instead of a KeyError deep inside a
service. Unknown extra keys are kept: prompts evolve faster than code.
"""

import math
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, field_validator

from app.core.exceptions import UpstreamContractError


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="allow")


def _none_to_zero(value):
    return 0 if value is None else value


Hours = Annotated[float, BeforeValidator(_none_to_zero)]


# ── Change impact ────────────────────────────────────────────────────────


class ProposedTask(_Lenient):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    task_type: Optional[str] = "other"
    estimate_hours: Hours = 0
    priority: str | int | None = "medium"


class UpdatedTask(_Lenient):
    original_task: str
    impact: Optional[str] = None
    new_estimate_hours: Optional[float] = None


class ImpactRisk(_Lenient):
    title: str
    severity: Optional[str] = None


class ChangeImpactResult(_Lenient):
    impact_summary: Optional[str] = None
    affected_modules: List[str] = []
    new_tasks: List[ProposedTask] = []
    updated_tasks: List[UpdatedTask] = []
    risks: List[ImpactRisk] = []
    effort_hours: Hours = 0
    rework_hours: Hours = 0
    impact_on_deadline_days: int = 0

    @field_validator("affected_modules", "new_tasks", "updated_tasks", "risks", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return [] if value is None else value

    @field_validator("impact_on_deadline_days", mode="before")
    @classmethod
    def whole_days(cls, value):
        if value is None:
            return 0
        if isinstance(value, float):
            return int(math.floor(value + 0.5))
        return value


# ── Planning ─────────────────────────────────────────────────────────────


class ProjectAnalysisResult(_Lenient):
    summary: str
    technical_overview: Optional[str] = None
    risks: List[dict] = []
    dependencies: List[dict] = []
    complexity_score: Optional[float] = None
    effort_estimate_hours: Optional[float] = None
    key_features: List[str] = []
    suggested_phases: List[dict] = []


class BreakdownSubtask(_Lenient):
    title: str
    description: Optional[str] = None
    task_type: Optional[str] = "other"
    estimated_hours: Hours = 0
    priority: int | str | None = None


class BreakdownTask(BreakdownSubtask):
    dependencies: List[str] = []
    subtasks: List[BreakdownSubtask] = []


class TaskBreakdownResult(_Lenient):
    tasks: List[BreakdownTask]
    total_estimated_hours: Optional[float] = None
    recommended_team_size: Optional[int] = None
    critical_path: List[str] = []


class PlannedSprint(_Lenient):
    name: str
    goal: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    tasks: List[str] = []
    total_hours: Optional[float] = None
    focus_areas: List[str] = []


class SprintPlanResult(_Lenient):
    sprints: List[PlannedSprint]
    timeline_summary: Optional[str] = None
    risks: List[Any] = []
    recommendations: List[Any] = []
    buffer_percentage: Optional[float] = None


# ── Free-form replies ────────────────────────────────────────────────────


class ReportResult(_Lenient):
    content: Optional[str] = None
    report: Optional[str] = None


class AdvisorReply(_Lenient):
    response: Optional[str] = None
    message: Optional[str] = None


class WorkloadOptimizationResult(_Lenient):
    summary: Optional[str] = None
    health_score: Optional[float] = None
    issues: List[dict] = []
    recommendations: List[dict] = []
    assignment_suggestions: List[dict] = []
    sprint_adjustments: List[dict] = []


RESPONSE_SCHEMAS = {
    "project_analysis": ProjectAnalysisResult,
    "task_breakdown": TaskBreakdownResult,
    "sprint_planner": SprintPlanResult,
    "report_generator": ReportResult,
    "advisor": AdvisorReply,
    "change_impact": ChangeImpactResult,
    "workload_optimization": WorkloadOptimizationResult,
}


def _format_errors(exc: ValidationError) -> list[str]:
    errors = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"]) or "<root>"
        errors.append(f"{location}: {err['msg']}")
    return errors


def validate_response(purpose: str, payload):
    """Validate ``payload`` against the schema registered for ``purpose``.

    Returns:
        The parsed pydantic model.

    Raises:
        UpstreamContractError: the payload does not fit the schema.
    """
    schema = RESPONSE_SCHEMAS[purpose]
    try:
        return schema.model_validate(payload)
    except ValidationError as exc:
        raise UpstreamContractError(purpose, _format_errors(exc)) from exc
