"""
Health and metrics endpoints.

  GET /health   -- Liveness probe (always 200 if the process is alive)
  GET /metrics  -- Round and agent-call counters
"""

import logging
import time

from fastapi import APIRouter, Request

from ..models.responses import HealthResponse, MetricsResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def liveness(request: Request) -> HealthResponse:
    """Liveness probe -- returns 200 if the process is running."""
    start_time = getattr(request.app.state, "start_time", time.time())
    return HealthResponse(
        status="healthy",
        inference_mode=request.app.state.settings.inference_mode,
        uptime_seconds=round(time.time() - start_time, 1),
    )


@router.get("/metrics", response_model=MetricsResponse)
async def metrics(request: Request) -> MetricsResponse:
    """Basic operational metrics."""
    m = request.app.state.metrics
    completed = m["rounds_completed"]
    avg_duration = m["total_duration_ms"] / completed if completed > 0 else 0.0
    return MetricsResponse(
        rounds_completed=completed,
        rounds_failed=m["rounds_failed"],
        rounds_no_agents=m["rounds_no_agents"],
        total_agent_calls=m["total_agent_calls"],
        failed_agent_calls=m["failed_agent_calls"],
        average_duration_ms=round(avg_duration, 1),
        usage_record_failures=request.app.state.usage_recorder.failure_count,
    )
