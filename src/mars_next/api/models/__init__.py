"""Pydantic models for API request/response contracts."""
from .requests import AgentConfigPayload, ContextPayload, RoundRequest
from .responses import (
    AgentResponseModel,
    HealthResponse,
    MetricsResponse,
    RoundResponse,
    SynthesisModel,
    UsageRecordModel,
    UsageRecordsResponse,
    UsageSummaryResponse,
)
