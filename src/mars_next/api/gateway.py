"""
API Gateway -- FastAPI application factory.

    uvicorn mars_next.api.gateway:create_app --factory --host 0.0.0.0 --port 8000

or `mars-next serve`.

Security:
  - CORS restricted to configured origins (default: localhost only)
  - Production auth check on startup
  - Rate limiting per client
  - All external input validated at the boundary

Route logic lives in routes/.
"""

import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import Settings, build_provider, build_round, load_settings
from ..llm import InferenceProvider
from ..usage import BestEffortRecorder, UsageLedger, UsageSink
from .middleware.auth import check_production_auth
from .middleware.rate_limit import SlidingWindowLimiter
from .routes import health, rounds, usage

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    provider: InferenceProvider | None = None,
    ledger: UsageLedger | None = None,
    sink: UsageSink | None = None,
) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Runtime settings (loaded from the environment if None).
        provider: Inference provider (built from settings.inference_mode if None).
        ledger: Usage ledger for reads and writes (opened at settings.usage_db_path if None).
        sink: Where usage records are written. Defaults to the ledger.
    """
    settings = settings or load_settings()
    check_production_auth(settings)

    application = FastAPI(
        title="MARS Next API",
        description="Multi-agent rounds with synthesis and usage accounting",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type"],
    )

    if ledger is None:
        ledger = UsageLedger(settings.usage_db_path)
    if provider is None:
        provider = build_provider(settings)

    usage_recorder = BestEffortRecorder.for_sink(sink or ledger)

    application.state.settings = settings
    application.state.ledger = ledger
    application.state.usage_recorder = usage_recorder
    application.state.round = build_round(settings, provider, usage_recorder)
    application.state.rate_limiter = SlidingWindowLimiter(settings.rate_limit_per_minute)
    application.state.start_time = time.time()
    application.state.metrics = {
        "rounds_completed": 0,
        "rounds_failed": 0,
        "rounds_no_agents": 0,
        "total_duration_ms": 0,
        "total_agent_calls": 0,
        "failed_agent_calls": 0,
    }

    application.include_router(health.router, tags=["Health"])
    application.include_router(rounds.router, prefix="/api/v1", tags=["Rounds"])
    application.include_router(usage.router, prefix="/api/v1", tags=["Usage"])

    logger.info(
        f"[Gateway] API gateway initialized (inference={settings.inference_mode}, "
        f"ledger={settings.usage_db_path})"
    )
    return application
