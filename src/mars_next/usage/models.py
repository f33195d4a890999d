"""
Usage ledger data models.

UsageRecord is one row of the append-only ledger: one per inference call,
agent-level or synthesis-level. agent_id is None for synthesis calls.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


class UsageStatus:
    SUCCESS = "success"
    ERROR = "error"


class UsageAction:
    """Values for UsageRecord.action. Projects may add their own strings."""

    AGENT_RESPONSE = "agent_response"
    SYNTHESIS = "synthesis"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class UsageRecord:
    user_id: str
    provider: str
    model: str
    project_id: str | None = None
    agent_id: str | None = None
    action: str | None = None
    tokens_prompt: int = 0
    tokens_completion: int = 0
    tokens_total: int = 0
    status: str = UsageStatus.SUCCESS
    duration_ms: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=_now)


# =============================================================================
# SUMMARY SHAPES
# =============================================================================


@dataclass
class DailyUsage:
    date: str
    tokens: int


@dataclass
class ProviderUsage:
    provider: str
    tokens: int
    percentage: float


@dataclass
class ModelUsage:
    model: str
    provider: str
    tokens: int
    percentage: float


@dataclass
class ProjectUsage:
    project_id: str
    tokens: int
    percentage: float


@dataclass
class UsageSummary:
    """Aggregated view of a user's ledger rows over a date range."""

    total_tokens: int = 0
    total_cost_estimate: float = 0.0
    total_calls: int = 0
    error_calls: int = 0
    daily_usage: list[DailyUsage] = field(default_factory=list)
    provider_usage: list[ProviderUsage] = field(default_factory=list)
    model_usage: list[ModelUsage] = field(default_factory=list)
    project_usage: list[ProjectUsage] = field(default_factory=list)
