"""
Project Planner
LLM Gateway — single entry point for chat completions.

Provider routing:
    LLM_PROVIDER=openai  → OpenAIProvider (JSON mode, lazy client)
    LLM_PROVIDER=local   → LocalStubProvider (deterministic, no key needed)

Every call is recorded in ``ai_usage_logs`` (tokens, cost, latency,
purpose, success). Logging uses flush() only, so the row lands in the
caller's transaction. Calls are not retried; a failure surfaces to the
caller as ``AIServiceError``.

Usage:
    from app.ai.gateway import LLMGateway
    gw = LLMGateway(app=flask_app)
    payload = gw.chat_json(messages, purpose="change_impact",
                           temperature=0.7, max_tokens=4096)
"""

import json
import logging
import time
from abc import ABC, abstractmethod

import openai

from app.core.exceptions import AIServiceError, UpstreamContractError
from app.models import db
from app.models.ai import AIUsageLog, calculate_cost

logger = logging.getLogger(__name__)


# ── Provider Abstract Base ────────────────────────────────────────────────────

class LLMProvider(ABC):
    """Abstract interface for completion providers."""

    name = "abstract"

    @abstractmethod
    def chat(self, messages: list, model: str, **kwargs) -> dict:
        """
        Send a chat completion request.

        Args:
            messages: List of {"role": "...", "content": "..."} dicts.
            model: Model identifier string.
            **kwargs: temperature, max_tokens, purpose.

        Returns:
            dict with keys: content, prompt_tokens, completion_tokens, model
        """
        ...


# ── OpenAI Provider ───────────────────────────────────────────────────────────

class OpenAIProvider(LLMProvider):
    """OpenAI chat completions in JSON-object mode."""

    name = "openai"

    def __init__(self, api_key: str | None, timeout: float = 60.0):
        self.api_key = api_key or ""
        self.timeout = timeout
        self._client = None

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise AIServiceError("OPENAI_API_KEY environment variable is not set")
            self._client = openai.OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def chat(self, messages: list, model: str = "gpt-4o-mini", **kwargs) -> dict:
        client = self._get_client()
        response = client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=kwargs.get("temperature", 0.7),
            max_tokens=kwargs.get("max_tokens", 4096),
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content if response.choices else None
        usage = response.usage
        return {
            "content": content,
            "prompt_tokens": usage.prompt_tokens if usage else 0,
            "completion_tokens": usage.completion_tokens if usage else 0,
            "model": model,
        }


# ── Local Stub (dev/test) ─────────────────────────────────────────────────────

class LocalStubProvider(LLMProvider):
    """
    Returns deterministic JSON shaped like each prompt's contract.
    No API key required.
    """

    name = "local"

    def chat(self, messages: list, model: str = "local-stub", **kwargs) -> dict:
        user_msg = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_msg = m["content"]
                break

        content = json.dumps(self._stub_payload(kwargs.get("purpose", "")))
        return {
            "content": content,
            "prompt_tokens": len(user_msg.split()) * 2,  # rough estimate
            "completion_tokens": len(content.split()) * 2,
            "model": "local-stub",
        }

    @staticmethod
    def _stub_payload(purpose: str) -> dict:
        if purpose == "change_impact":
            return {
                "impact_summary": "The change adds one backend endpoint and touches the "
                                  "existing API contract.",
                "affected_modules": ["api", "backend"],
                "new_tasks": [
                    {"title": "Implement change", "description": "Build the requested change",
                     "task_type": "backend", "estimate_hours": 8, "priority": "high"},
                    {"title": "Test change", "description": "Regression and new tests",
                     "task_type": "qa", "estimate_hours": 4, "priority": "medium"},
                ],
                "updated_tasks": [],
                "risks": [{"title": "Regression in existing endpoints", "severity": "medium"}],
                "effort_hours": 12,
                "rework_hours": 2,
                "impact_on_deadline_days": 2,
            }
        if purpose == "project_analysis":
            return {
                "summary": "A small web application with a REST backend.",
                "technical_overview": "Single service with a relational store.",
                "risks": [{"title": "Unclear scope", "description": "Requirements are brief",
                           "severity": "medium", "mitigation": "Refine with stakeholders"}],
                "dependencies": [],
                "complexity_score": 4,
                "effort_estimate_hours": 120,
                "key_features": ["Authentication", "Dashboard"],
                "suggested_phases": [
                    {"name": "Foundation", "description": "Setup and auth", "estimated_hours": 40},
                ],
            }
        if purpose == "task_breakdown":
            return {
                "tasks": [
                    {"title": "Set up project", "description": "Repository and CI",
                     "task_type": "devops", "estimated_hours": 4, "priority": 1,
                     "dependencies": [], "subtasks": []},
                ],
                "total_estimated_hours": 4,
                "recommended_team_size": 1,
                "critical_path": ["Set up project"],
            }
        if purpose == "sprint_planner":
            return {
                "sprints": [
                    {"name": "Sprint 1", "goal": "Foundation", "start_date": "2025-01-06",
                     "end_date": "2025-01-19", "tasks": ["Set up project"], "total_hours": 4,
                     "focus_areas": ["devops"]},
                ],
                "timeline_summary": "One sprint.",
                "risks": [],
                "recommendations": [],
                "buffer_percentage": 20,
            }
        if purpose == "report_generator":
            return {"content": "# Project Status Report\n\nAll work is on track."}
        if purpose == "advisor":
            return {"response": "Focus on the critical path and keep scope stable."}
        if purpose == "workload_optimization":
            return {
                "summary": "Workload is unevenly distributed.",
                "health_score": 6,
                "issues": [],
                "recommendations": [],
                "assignment_suggestions": [],
                "sprint_adjustments": [],
            }
        return {"response": "OK"}


# ── Gateway ───────────────────────────────────────────────────────────────────

class LLMGateway:
    """
    Central gateway for all completion calls.

    Usage:
        gw = LLMGateway(app=flask_app)
        result = gw.chat(messages, purpose="advisor", user_id=7)
    """

    DEFAULT_CHAT_MODEL = "gpt-4o-mini"

    def __init__(self, app=None):
        config = app.config if app is not None else {}
        self.provider_name = config.get("LLM_PROVIDER", "openai")
        self.default_model = config.get("LLM_DEFAULT_CHAT_MODEL", self.DEFAULT_CHAT_MODEL)
        if self.provider_name == "local":
            self._provider = LocalStubProvider()
        else:
            self._provider = OpenAIProvider(
                api_key=config.get("OPENAI_API_KEY"),
                timeout=config.get("LLM_TIMEOUT_SECONDS", 60.0),
            )

    @property
    def model_name(self) -> str:
        if isinstance(self._provider, LocalStubProvider):
            return "local-stub"
        return self.default_model

    def chat(
        self,
        messages: list,
        model: str | None = None,
        *,
        purpose: str = "",
        user_id: int | None = None,
        project_id: int | None = None,
        **kwargs,
    ) -> dict:
        """
        Send one chat completion request and record its usage.

        Returns:
            dict: {content, prompt_tokens, completion_tokens, model, cost_usd,
                   latency_ms, provider}

        Raises:
            AIServiceError: provider not configured, request failed, or the
                completion was empty.
        """
        model = model or self.default_model
        start_time = time.time()
        try:
            result = self._provider.chat(messages, model, purpose=purpose, **kwargs)
        except AIServiceError as exc:
            self._log_usage(
                model=model, prompt_tokens=0, completion_tokens=0, cost_usd=0.0,
                latency_ms=int((time.time() - start_time) * 1000),
                purpose=purpose, user_id=user_id, project_id=project_id,
                success=False, error_message=str(exc),
            )
            raise
        except openai.OpenAIError as exc:
            latency_ms = int((time.time() - start_time) * 1000)
            logger.warning("LLM call failed (purpose=%s): %s", purpose, exc)
            self._log_usage(
                model=model, prompt_tokens=0, completion_tokens=0, cost_usd=0.0,
                latency_ms=latency_ms, purpose=purpose, user_id=user_id,
                project_id=project_id, success=False, error_message=str(exc),
            )
            raise AIServiceError("AI request failed") from exc

        latency_ms = int((time.time() - start_time) * 1000)
        cost = calculate_cost(result["model"], result["prompt_tokens"], result["completion_tokens"])
        result["cost_usd"] = cost
        result["latency_ms"] = latency_ms
        result["provider"] = self._provider.name

        self._log_usage(
            model=result["model"],
            prompt_tokens=result["prompt_tokens"],
            completion_tokens=result["completion_tokens"],
            cost_usd=cost, latency_ms=latency_ms,
            purpose=purpose, user_id=user_id, project_id=project_id,
            success=bool(result["content"]),
            error_message=None if result["content"] else "empty completion",
        )
        logger.info(
            "LLM call purpose=%s model=%s tokens=%d latency=%dms",
            purpose, result["model"],
            result["prompt_tokens"] + result["completion_tokens"], latency_ms,
            extra={"purpose": purpose, "user_id": user_id, "project_id": project_id},
        )

        if not result["content"]:
            raise AIServiceError("No response from AI")
        return result

    def chat_json(self, messages: list, model: str | None = None, **kwargs) -> dict:
        """Like chat() but returns the completion parsed as a JSON object.

        Raises:
            UpstreamContractError: the completion is not valid JSON.
        """
        result = self.chat(messages, model, **kwargs)
        try:
            return json.loads(result["content"])
        except json.JSONDecodeError as exc:
            raise UpstreamContractError(
                kwargs.get("purpose", ""), [f"response is not valid JSON: {exc.msg}"],
            ) from exc

    # ── Internal Logging ──────────────────────────────────────────────────

    def _log_usage(self, *, model, prompt_tokens, completion_tokens, cost_usd,
                   latency_ms, purpose, user_id, project_id, success,
                   error_message=None):
        """Add a usage row to the current session (flushed by the caller's commit)."""
        log = AIUsageLog(
            provider=self._provider.name, model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            cost_usd=cost_usd, latency_ms=latency_ms,
            purpose=purpose, user_id=user_id, project_id=project_id,
            success=success, error_message=error_message,
        )
        db.session.add(log)
