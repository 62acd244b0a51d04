"""
Project Planner
Prompt Composer — renders project data into the text blocks handed to
the completion provider.

Pure string building: every function takes already-loaded rows or request
payloads and returns text (or template variables). No queries, no I/O.
"""

import json
from datetime import date

ADVISOR_HISTORY_LIMIT = 10
ADVISOR_RISK_PREVIEW = 3

REPORT_INSTRUCTIONS = {
    "project_status": "Generate a comprehensive project status report.",
    "sprint_review": "Generate a sprint review report focusing on completed work and velocity.",
    "resource_usage": "Generate a resource utilization report analyzing time spent and capacity.",
}

REPORT_TONES = {
    "internal": "Write for the internal delivery team: direct, technical detail is welcome.",
    "client": "Write for the client: polished, outcome-focused, avoid internal jargon.",
}

SPRINT_PLAN_GOALS = (
    "Respects task dependencies",
    "Balances workload across sprints",
    "Keeps each sprint focused on related work",
    "Includes buffer time for unexpected issues",
    "Prioritizes critical path items early",
)


def _or(value, fallback):
    if value is None or value == "":
        return fallback
    return value


def _iso(value):
    if isinstance(value, date):
        return value.isoformat()
    return value


def _hours(value):
    """12.0 → "12", 7.5 → "7.5"."""
    value = value or 0
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def _json(value):
    return json.dumps(value, indent=2, default=str)


# ── Planning prompts ─────────────────────────────────────────────────────


def analysis_request(requirements, project_name=None, deadline=None) -> dict:
    """Template variables for ``project_analysis``."""
    return {
        "project_name": _or(project_name, "Untitled Project"),
        "deadline": _or(deadline, "Not specified"),
        "requirements": requirements,
    }


def breakdown_request(requirements=None, analysis=None, project_name=None) -> str:
    lines = [f"Project Name: {_or(project_name, 'Untitled Project')}", ""]
    if analysis:
        lines += ["Previous Analysis:", _json(analysis), ""]
    lines += [
        "Requirements:",
        _or(requirements, "See previous analysis."),
        "",
        "Break down these requirements into detailed, actionable tasks. Consider all "
        "aspects: backend, frontend, database, API design, testing, and deployment.",
    ]
    return "\n".join(lines)


def sprint_plan_request(tasks, *, start_date, deadline, weekly_capacity, sprint_length) -> str:
    lines = [
        "Planning Constraints:",
        f"- Start Date: {start_date}",
        f"- Target Deadline: {_or(deadline, 'Flexible')}",
        f"- Weekly Capacity: {_hours(weekly_capacity)} hours",
        f"- Preferred Sprint Length: {sprint_length} days",
        "",
        "Tasks to Plan:",
        _json(tasks),
        "",
        "Create a sprint plan that:",
    ]
    lines += [f"{i}. {goal}" for i, goal in enumerate(SPRINT_PLAN_GOALS, start=1)]
    return "\n".join(lines)


def report_instructions(report_type, custom_prompt=None, tone=None) -> str:
    if report_type == "custom":
        text = _or(custom_prompt, "Generate a custom project report.")
    else:
        text = REPORT_INSTRUCTIONS.get(report_type, "Generate a project status report.")
    if tone in REPORT_TONES:
        text = f"{text} {REPORT_TONES[tone]}"
    return text


def report_request(project_data, report_type="project_status", custom_prompt=None,
                   tone=None) -> str:
    return "\n".join([
        f"Report Type: {report_type}",
        f"Instructions: {report_instructions(report_type, custom_prompt, tone)}",
        "",
        "Project Data:",
        _json(project_data),
        "",
        "Generate a professional markdown report. Include relevant metrics, charts "
        "suggestions (describe them), and actionable recommendations.",
    ])


# ── Advisor ──────────────────────────────────────────────────────────────


def advisor_context(message, project_context=None, conversation_history=None) -> str:
    """User prompt for the advisor: project summary, recent turns, question."""
    parts = []
    if isinstance(project_context, dict) and project_context:
        risks = project_context.get("risks")
        if not isinstance(risks, list):
            risks = []
        risk_text = ", ".join(str(r) for r in risks[:ADVISOR_RISK_PREVIEW]) or "None identified"
        parts.append("\n".join([
            "Current Project Context:",
            f"- Project: {_or(project_context.get('name'), 'Unknown')}",
            f"- Status: {_or(project_context.get('status'), 'Unknown')}",
            f"- Progress: {_or(project_context.get('progress'), 0)}%",
            f"- Deadline: {_or(project_context.get('deadline'), 'Not set')}",
            f"- Total Tasks: {_or(project_context.get('totalTasks'), 0)}",
            f"- Completed Tasks: {_or(project_context.get('completedTasks'), 0)}",
            f"- Active Sprint: {_or(project_context.get('activeSprint'), 'None')}",
            f"- Key Risks: {risk_text}",
        ]))

    recent = (conversation_history or [])[-ADVISOR_HISTORY_LIMIT:]
    history = "\n".join(
        f"{turn.get('role', 'user')}: {turn.get('content', '')}"
        for turn in recent if isinstance(turn, dict)
    )
    if history:
        parts.append(f"Previous conversation:\n{history}")

    parts.append(f"User question: {message}")
    return "\n\n".join(parts)


# ── Change impact ────────────────────────────────────────────────────────


def change_impact_context(project, change_request, tasks, sprints, baseline) -> str:
    current_hours = sum(t.estimated_hours or 0 for t in tasks)

    if baseline is not None:
        baseline_text = "\n".join([
            f"- Total Hours: {_hours(baseline.total_hours)}",
            f"- Task Count: {baseline.task_count}",
            f"- Sprint Count: {baseline.sprint_count}",
            f"- Planned Delivery: {_or(_iso(baseline.planned_delivery_date), 'Not set')}",
        ])
    else:
        baseline_text = "No baseline exists yet"

    task_lines = "\n".join(
        f"- {t.title} ({t.task_type}, {_hours(t.estimated_hours)}h, {t.status})" for t in tasks
    ) or "No tasks"
    sprint_lines = "\n".join(
        f"- {s.name}: {_iso(s.start_date)} to {_iso(s.end_date)} ({s.status})" for s in sprints
    ) or "No sprints"

    return "\n".join([
        "PROJECT CONTEXT:",
        f"Name: {project.name}",
        f"Description: {_or(project.description, 'No description')}",
        f"Deadline: {_or(_iso(project.deadline), 'Not set')}",
        f"Current Status: {project.status}",
        "",
        "BASELINE (if exists):",
        baseline_text,
        "",
        "CURRENT STATE:",
        f"- Total Hours: {_hours(current_hours)}",
        f"- Task Count: {len(tasks)}",
        f"- Sprint Count: {len(sprints)}",
        "",
        "CURRENT TASKS:",
        task_lines,
        "",
        "CURRENT SPRINTS:",
        sprint_lines,
        "",
        "CHANGE REQUEST:",
        f"Title: {change_request.title}",
        f"Description: {_or(change_request.description, 'No description')}",
        f"Type: {change_request.change_type}",
        f"Priority: {change_request.priority}",
        f"Area: {change_request.area}",
        f"Desired Due Date: {_or(_iso(change_request.desired_due_date), 'Not specified')}",
        "",
        "Analyze this change request and provide impact assessment.",
    ])


# ── Workload optimisation ────────────────────────────────────────────────


def workload_context(project, state) -> str:
    """User prompt for the optimiser from ``workload_service.optimization_state``."""
    tasks = state["tasks"]

    resource_blocks = []
    for r in state["resources"]:
        task_text = ", ".join(
            f"{t['title']} ({_hours(t['hours'])}h, {t['status']})" for t in r["assigned_tasks"]
        ) or "None"
        resource_blocks.append("\n".join([
            f"- {r['name']} ({_or(r['role'], 'unspecified role')})",
            f"  Capacity: {_hours(r['capacity'])}h/week",
            f"  Assigned: {_hours(r['assigned_hours'])}h ({r['utilization_percentage']}% utilization)",
            f"  Status: {'OVERLOADED' if r['is_overloaded'] else 'OK'}",
            f"  Tasks: {task_text}",
        ]))

    sprint_blocks = [
        "\n".join([
            f"- {s['name']}: {s['start_date']} to {s['end_date']}",
            f"  Status: {s['status']}",
            f"  Load: {_hours(s['total_hours'])}h / {_hours(s['capacity'])}h capacity "
            f"({s['utilization_percentage']}%)",
            f"  Tasks: {s['task_count']}",
        ])
        for s in state["sprints"]
    ]

    unassigned = state["unassigned_tasks"]
    unassigned_lines = "\n".join(
        f"- {t.title} ({t.task_type}, {_hours(t.estimated_hours)}h, priority: {t.priority})"
        for t in unassigned
    ) or "None"

    def _count(status):
        return sum(1 for t in tasks if t.status == status)

    return "\n".join([
        "PROJECT CONTEXT:",
        f"Name: {project.name}",
        f"Description: {_or(project.description, 'No description')}",
        f"Deadline: {_or(_iso(project.deadline), 'Not set')}",
        f"Current Status: {project.status}",
        "",
        "TEAM RESOURCES:",
        "\n".join(resource_blocks) or "No resources",
        "",
        "SPRINTS:",
        "\n".join(sprint_blocks) or "No sprints defined",
        "",
        f"UNASSIGNED TASKS ({len(unassigned)}):",
        unassigned_lines,
        "",
        "ALL TASKS SUMMARY:",
        f"Total Tasks: {len(tasks)}",
        f"Total Hours: {_hours(sum(t.estimated_hours or 0 for t in tasks))}h",
        f"Completed: {_count('completed')}",
        f"In Progress: {_count('in_progress')}",
        f"Pending: {_count('pending')}",
        f"Blocked: {_count('blocked')}",
        "",
        "Analyze this workload distribution and provide optimization recommendations.",
    ])
