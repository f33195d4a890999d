"""
Pydantic response models -- what the API returns to clients.
"""

from pydantic import BaseModel, Field

from ...orchestration.models import AgentResponse, RoundResult, SynthesisResult
from ...usage.models import UsageRecord, UsageSummary


class TokensModel(BaseModel):
    prompt: int = 0
    completion: int = 0
    total: int = 0


# =============================================================================
# ROUNDS
# =============================================================================


class FallbackModel(BaseModel):
    original_provider: str
    original_model: str
    reason: str


class AgentResponseModel(BaseModel):
    agent_id: str
    agent_name: str
    content: str
    model: str
    provider: str = ""
    tokens: TokensModel = Field(default_factory=TokensModel)
    finish_reason: str = "stop"
    duration_ms: int = 0
    error: str | None = None
    error_type: str | None = None
    fallback_used: FallbackModel | None = None

    @classmethod
    def from_response(cls, r: AgentResponse) -> "AgentResponseModel":
        return cls(
            agent_id=r.agent_id,
            agent_name=r.agent_name,
            content=r.content,
            model=r.model,
            provider=r.provider,
            tokens=TokensModel(prompt=r.tokens.prompt, completion=r.tokens.completion, total=r.tokens.total),
            finish_reason=r.finish_reason,
            duration_ms=r.duration_ms,
            error=r.error,
            error_type=r.error_type,
            fallback_used=(
                FallbackModel(
                    original_provider=r.fallback_used.original_provider,
                    original_model=r.fallback_used.original_model,
                    reason=r.fallback_used.reason,
                )
                if r.fallback_used
                else None
            ),
        )


class SynthesisModel(BaseModel):
    content: str
    model: str
    provider: str = ""
    tokens: TokensModel = Field(default_factory=TokensModel)
    finish_reason: str = "stop"
    duration_ms: int = 0
    agent_count: int = 0

    @classmethod
    def from_result(cls, s: SynthesisResult) -> "SynthesisModel":
        return cls(
            content=s.content,
            model=s.model,
            provider=s.provider,
            tokens=TokensModel(prompt=s.tokens.prompt, completion=s.tokens.completion, total=s.tokens.total),
            finish_reason=s.finish_reason,
            duration_ms=s.duration_ms,
            agent_count=s.agent_count,
        )


class RoundResponse(BaseModel):
    """Complete round output returned to the client."""

    status: str
    message: str = ""
    responses: list[AgentResponseModel] = Field(default_factory=list)
    synthesis: SynthesisModel | None = None
    duration_ms: int = 0

    @classmethod
    def from_result(cls, result: RoundResult) -> "RoundResponse":
        return cls(
            status=result.status,
            message=result.message,
            responses=[AgentResponseModel.from_response(r) for r in result.responses],
            synthesis=SynthesisModel.from_result(result.synthesis) if result.synthesis else None,
            duration_ms=result.duration_ms,
        )


# =============================================================================
# USAGE
# =============================================================================


class UsageRecordModel(BaseModel):
    id: str
    user_id: str
    project_id: str | None = None
    agent_id: str | None = None
    provider: str
    model: str
    action: str | None = None
    tokens_prompt: int = 0
    tokens_completion: int = 0
    tokens_total: int = 0
    status: str
    duration_ms: int = 0
    metadata: dict = Field(default_factory=dict)
    created_at: str

    @classmethod
    def from_record(cls, r: UsageRecord) -> "UsageRecordModel":
        return cls(**{name: getattr(r, name) for name in cls.model_fields})


class UsageRecordsResponse(BaseModel):
    records: list[UsageRecordModel] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 50


class DailyUsageModel(BaseModel):
    date: str
    tokens: int


class ProviderUsageModel(BaseModel):
    provider: str
    tokens: int
    percentage: float


class ModelUsageModel(BaseModel):
    model: str
    provider: str
    tokens: int
    percentage: float


class ProjectUsageModel(BaseModel):
    project_id: str
    tokens: int
    percentage: float


class UsageSummaryResponse(BaseModel):
    total_tokens: int = 0
    total_cost_estimate: float = 0.0
    total_calls: int = 0
    error_calls: int = 0
    daily_usage: list[DailyUsageModel] = Field(default_factory=list)
    provider_usage: list[ProviderUsageModel] = Field(default_factory=list)
    model_usage: list[ModelUsageModel] = Field(default_factory=list)
    project_usage: list[ProjectUsageModel] = Field(default_factory=list)

    @classmethod
    def from_summary(cls, s: UsageSummary) -> "UsageSummaryResponse":
        return cls(
            total_tokens=s.total_tokens,
            total_cost_estimate=round(s.total_cost_estimate, 6),
            total_calls=s.total_calls,
            error_calls=s.error_calls,
            daily_usage=[DailyUsageModel(date=d.date, tokens=d.tokens) for d in s.daily_usage],
            provider_usage=[
                ProviderUsageModel(provider=p.provider, tokens=p.tokens, percentage=p.percentage)
                for p in s.provider_usage
            ],
            model_usage=[
                ModelUsageModel(model=m.model, provider=m.provider, tokens=m.tokens, percentage=m.percentage)
                for m in s.model_usage
            ],
            project_usage=[
                ProjectUsageModel(project_id=p.project_id, tokens=p.tokens, percentage=p.percentage)
                for p in s.project_usage
            ],
        )


# =============================================================================
# HEALTH & METRICS
# =============================================================================


class HealthResponse(BaseModel):
    status: str = "healthy"
    inference_mode: str = "live"
    uptime_seconds: float = 0.0


class MetricsResponse(BaseModel):
    rounds_completed: int = 0
    rounds_failed: int = 0
    rounds_no_agents: int = 0
    total_agent_calls: int = 0
    failed_agent_calls: int = 0
    average_duration_ms: float = 0.0
    usage_record_failures: int = 0
