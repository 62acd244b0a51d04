"""
Project Planner
AI Blueprint — completion-backed planning endpoints.

Endpoints:
    PLANNING     /api/v1/ai/analyze                 POST  requirements → structured analysis
                 /api/v1/ai/breakdown               POST  requirements/analysis → tasks
                 /api/v1/ai/sprint-plan             POST  tasks → sprints
                 /api/v1/ai/report                  POST  project data → markdown report
                 /api/v1/ai/advisor                 POST  chat turn

    CHANGES      /api/v1/ai/analyze-change          POST  change request → impact analysis
    WORKLOAD     /api/v1/ai/optimize-workload       POST  project → rebalancing advice

    DOCUMENTS    /api/v1/ai/parse-file              POST  multipart upload → text

    USAGE        /api/v1/ai/usage                   GET   caller's token/cost totals
    PROMPTS      /api/v1/ai/prompts                 GET   registered templates

Every completion is parsed as JSON and validated against its pydantic
response schema before anything is returned or stored.
"""

import json
import logging
from datetime import date, datetime, timedelta, timezone

from flask import Blueprint, current_app, g, jsonify, request

from app.ai import composer
from app.ai.gateway import LLMGateway
from app.ai.prompt_registry import PromptRegistry
from app.ai.schemas import validate_response
from app.blueprints import register_error_handlers
from app.middleware.ownership import login_required, require_project_owner
from app.models import db
from app.models.ai import AIUsageLog
from app.services import change_service, file_parser, workload_service
from app.utils.errors import E, api_error
from app.utils.helpers import json_body

logger = logging.getLogger(__name__)

ai_bp = Blueprint("ai", __name__, url_prefix="/api/v1/ai")
register_error_handlers(ai_bp)

# ── Rate limiting ─────────────────────────────────────────────────────────
from app import limiter  # noqa: E402

_ai_generate_limit = limiter.shared_limit("30/minute", scope="ai_generate")


# ── Lazy singletons stored on Flask app (test-isolation safe) ───────────────

def _get_gateway():
    if not hasattr(current_app, "_ai_gateway"):
        current_app._ai_gateway = LLMGateway(app=current_app)
    return current_app._ai_gateway


def _get_prompt_registry():
    if not hasattr(current_app, "_ai_prompt_registry"):
        current_app._ai_prompt_registry = PromptRegistry()
    return current_app._ai_prompt_registry


def _complete(purpose, project_id=None, **variables):
    """Render ``purpose``'s template, call the gateway and validate the reply."""
    template = _get_prompt_registry().require(purpose)
    payload = _get_gateway().chat_json(
        template.render(**variables),
        purpose=purpose,
        user_id=g.current_user.id,
        project_id=project_id,
        **template.completion_options,
    )
    result = validate_response(purpose, payload)
    db.session.commit()  # usage row
    return result


# ══════════════════════════════════════════════════════════════════════════════
# PLANNING
# ══════════════════════════════════════════════════════════════════════════════

@ai_bp.route("/analyze", methods=["POST"])
@login_required
@_ai_generate_limit
def analyze():
    """Body: { requirements, projectName?, deadline? } → { analysis }"""
    data = json_body()
    requirements = data.get("requirements")
    if not requirements:
        return api_error(E.VALIDATION_REQUIRED, "Requirements are required")

    result = _complete(
        "project_analysis",
        **composer.analysis_request(requirements, data.get("projectName"), data.get("deadline")),
    )
    return jsonify({"analysis": result.model_dump()})


@ai_bp.route("/breakdown", methods=["POST"])
@login_required
@_ai_generate_limit
def breakdown():
    """Body: { requirements? , analysis?, projectName? } → { breakdown }"""
    data = json_body()
    requirements = data.get("requirements")
    analysis = data.get("analysis")
    if not requirements and not analysis:
        return api_error(E.VALIDATION_REQUIRED, "Requirements or analysis is required")

    result = _complete(
        "task_breakdown",
        request=composer.breakdown_request(requirements, analysis, data.get("projectName")),
    )
    return jsonify({"breakdown": result.model_dump()})


@ai_bp.route("/sprint-plan", methods=["POST"])
@login_required
@_ai_generate_limit
def sprint_plan():
    """Body: { tasks, startDate?, deadline?, weeklyCapacity?, sprintLength? } → { sprintPlan }

    Capacity and sprint length default to the caller's settings.
    """
    data = json_body()
    tasks = data.get("tasks")
    if not isinstance(tasks, list) or not tasks:
        return api_error(E.VALIDATION_REQUIRED, "Tasks array is required")

    user = g.current_user
    result = _complete(
        "sprint_planner",
        request=composer.sprint_plan_request(
            tasks,
            start_date=data.get("startDate") or date.today().isoformat(),
            deadline=data.get("deadline"),
            weekly_capacity=data.get("weeklyCapacity") or user.weekly_capacity_hours,
            sprint_length=data.get("sprintLength") or user.default_sprint_length_days,
        ),
    )
    return jsonify({"sprintPlan": result.model_dump()})


@ai_bp.route("/report", methods=["POST"])
@login_required
@_ai_generate_limit
def report():
    """Body: { projectData, reportType?, customPrompt? } → { report, reportType, generatedAt }"""
    data = json_body()
    project_data = data.get("projectData")
    if not project_data:
        return api_error(E.VALIDATION_REQUIRED, "Project data is required")

    report_type = data.get("reportType") or "project_status"
    if not isinstance(report_type, str):
        return api_error(E.VALIDATION_INVALID, "reportType must be a string")
    result = _complete(
        "report_generator",
        request=composer.report_request(
            project_data, report_type, data.get("customPrompt"), g.current_user.ai_report_tone,
        ),
    )
    return jsonify({
        "report": result.content or result.report or json.dumps(result.model_dump()),
        "reportType": report_type,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
    })


@ai_bp.route("/advisor", methods=["POST"])
@login_required
@_ai_generate_limit
def advisor():
    """Body: { message, projectContext?, conversationHistory? } → { response, role }"""
    data = json_body()
    message = data.get("message")
    if not message:
        return api_error(E.VALIDATION_REQUIRED, "Message is required")

    project_context = data.get("projectContext")
    history = data.get("conversationHistory")
    result = _complete(
        "advisor",
        context=composer.advisor_context(
            message,
            project_context if isinstance(project_context, dict) else None,
            history if isinstance(history, list) else None,
        ),
    )
    return jsonify({
        "response": result.response or result.message or json.dumps(result.model_dump()),
        "role": "assistant",
    })


# ══════════════════════════════════════════════════════════════════════════════
# CHANGE IMPACT & WORKLOAD
# ══════════════════════════════════════════════════════════════════════════════

@ai_bp.route("/analyze-change", methods=["POST"])
@require_project_owner(body_key="projectId")
@_ai_generate_limit
def analyze_change(project):
    """Body: { changeRequestId, projectId } → { analysis, baselineComparison }"""
    data = json_body()
    change_id = data.get("changeRequestId")
    if not change_id:
        return api_error(E.VALIDATION_REQUIRED, "changeRequestId and projectId are required")

    analysis, comparison = change_service.analyze_change(
        project, change_id,
        gateway=_get_gateway(),
        registry=_get_prompt_registry(),
        user_id=g.current_user.id,
    )
    return jsonify({"analysis": analysis.to_dict(), "baselineComparison": comparison})


@ai_bp.route("/optimize-workload", methods=["POST"])
@require_project_owner(body_key="projectId")
@_ai_generate_limit
def optimize_workload(project):
    """Body: { projectId } → { optimization, current_state }"""
    state = workload_service.optimization_state(project)
    result = _complete(
        "workload_optimization",
        project_id=project.id,
        context=composer.workload_context(project, state),
    )
    return jsonify({
        "optimization": result.model_dump(),
        "current_state": {
            "resources": state["resources"],
            "sprints": state["sprints"],
            "unassigned_tasks": len(state["unassigned_tasks"]),
            "team_summary": state["team_summary"],
        },
    })


# ══════════════════════════════════════════════════════════════════════════════
# DOCUMENTS
# ══════════════════════════════════════════════════════════════════════════════

@ai_bp.route("/parse-file", methods=["POST"])
@login_required
def parse_file():
    """Multipart ``file`` (txt, md, pdf, xlsx, docx) → { content }"""
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return api_error(E.VALIDATION_REQUIRED, "No file provided")

    content = file_parser.extract_text(
        upload.filename,
        upload.read(),
        max_bytes=current_app.config.get("PARSE_FILE_MAX_BYTES", file_parser.DEFAULT_MAX_BYTES),
    )
    return jsonify({"content": content})


# ══════════════════════════════════════════════════════════════════════════════
# USAGE & PROMPTS
# ══════════════════════════════════════════════════════════════════════════════

@ai_bp.route("/usage", methods=["GET"])
@login_required
def usage_stats():
    """Token usage of the caller over the last ``days`` days (default 30)."""
    days = request.args.get("days", 30, type=int)
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    logs = AIUsageLog.query.filter(
        AIUsageLog.user_id == g.current_user.id,
        AIUsageLog.created_at >= cutoff,
    ).all()

    total_calls = len(logs)
    by_purpose = {}
    for log in logs:
        p = log.purpose or "other"
        if p not in by_purpose:
            by_purpose[p] = {"calls": 0, "tokens": 0, "cost": 0.0}
        by_purpose[p]["calls"] += 1
        by_purpose[p]["tokens"] += log.total_tokens or 0
        by_purpose[p]["cost"] += log.cost_usd or 0.0

    return jsonify({
        "period_days": days,
        "total_calls": total_calls,
        "total_prompt_tokens": sum(log.prompt_tokens or 0 for log in logs),
        "total_completion_tokens": sum(log.completion_tokens or 0 for log in logs),
        "total_cost_usd": round(sum(log.cost_usd or 0.0 for log in logs), 6),
        "avg_latency_ms": round(sum(log.latency_ms or 0 for log in logs) / max(total_calls, 1)),
        "error_count": sum(1 for log in logs if not log.success),
        "by_purpose": by_purpose,
    })


@ai_bp.route("/prompts", methods=["GET"])
@login_required
def list_prompts():
    """List all registered prompt templates."""
    return jsonify({"prompts": _get_prompt_registry().list_templates()})
