"""
Project Planner
AI usage model — token/cost tracking for every completion call.
"""

from datetime import datetime, timezone

from app.models import db

# ── Constants ────────────────────────────────────────────────────────────────

AI_PROVIDERS = {"openai", "local"}

# Token costs per 1M tokens (input/output)
TOKEN_COSTS = {
    "gpt-4o-mini":   {"input": 0.15, "output": 0.60},
    "gpt-4o":        {"input": 2.50, "output": 10.00},
    "gpt-4.1-mini":  {"input": 0.40, "output": 1.60},
    "gpt-4.1":       {"input": 2.00, "output": 8.00},
}


def calculate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Calculate USD cost for a given model + token counts."""
    costs = TOKEN_COSTS.get(model, {"input": 0.0, "output": 0.0})
    return (prompt_tokens * costs["input"] + completion_tokens * costs["output"]) / 1_000_000


# ── AIUsageLog ───────────────────────────────────────────────────────────────

class AIUsageLog(db.Model):
    """
    Tracks token usage and cost for every LLM API call.
    Failed calls are logged too, with ``success=False`` and the error text.
    """

    __tablename__ = "ai_usage_logs"

    id = db.Column(db.Integer, primary_key=True)
    provider = db.Column(db.String(30), nullable=False, comment="openai / local")
    model = db.Column(db.String(80), nullable=False)
    prompt_tokens = db.Column(db.Integer, default=0)
    completion_tokens = db.Column(db.Integer, default=0)
    total_tokens = db.Column(db.Integer, default=0)
    cost_usd = db.Column(db.Float, default=0.0)
    latency_ms = db.Column(db.Integer, default=0, comment="End-to-end latency in milliseconds")

    # Context
    purpose = db.Column(db.String(100), default="", comment="e.g. change_impact, advisor")
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True,
    )

    # Status
    success = db.Column(db.Boolean, default=True)
    error_message = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "provider": self.provider,
            "model": self.model,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
            "cost_usd": round(self.cost_usd or 0.0, 6),
            "latency_ms": self.latency_ms,
            "purpose": self.purpose,
            "user_id": self.user_id,
            "project_id": self.project_id,
            "success": self.success,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
