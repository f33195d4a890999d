"""
Runtime configuration -- environment variables in, Settings out.

    MAX_CONCURRENT_AGENTS   semaphore bound for agent calls        (5)
    AGENT_CALL_TIMEOUT      per-call timeout in seconds            (120)
    SYNTHESIS_MODEL         model used for the synthesis call      (gpt-4-turbo)
    SYNTHESIS_PROVIDER      provider hint for synthesis            (from model name)
    PARTIAL_FAILURE_POLICY  synthesize_successful | include_failures | abort
    MODEL_FALLBACK          retry failed agents on a fallback      (false)
    USAGE_DB_PATH           SQLite ledger path                     (data/usage.db)
    INFERENCE_MODE          live | simulated                       (live)
    API_KEY, AUTH_DISABLED, ENV   HTTP bearer gate (see api/middleware/auth.py)
    RATE_LIMIT_PER_MINUTE   per-client HTTP rate limit             (60)
    CORS_ORIGINS            comma-separated origins                (localhost)

Malformed numbers fall back to their defaults with a warning. An unknown
policy or inference mode is a startup error.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from .llm import InferenceProvider, ProviderRouter, SimulatedProvider
from .orchestration import (
    PARTIAL_FAILURE_POLICIES,
    AgentInvoker,
    MultiAgentRound,
    RoundConfig,
    Synthesizer,
)
from .security.validators import validate_in_choices
from .usage import BestEffortRecorder

logger = logging.getLogger(__name__)

INFERENCE_MODES = ("live", "simulated")

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8000",
    "http://localhost:8080",
]


@dataclass
class Settings:
    max_concurrent_agents: int = 5
    agent_call_timeout: float = 120.0
    synthesis_model: str = "gpt-4-turbo"
    synthesis_provider: str | None = None
    partial_failure_policy: str = "synthesize_successful"
    model_fallback: bool = False
    usage_db_path: Path = Path("data/usage.db")
    inference_mode: str = "live"
    api_key: str | None = None
    auth_disabled: bool = False
    environment: str = "development"
    rate_limit_per_minute: int = 60
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    def __post_init__(self):
        validate_in_choices(self.partial_failure_policy, PARTIAL_FAILURE_POLICIES, "PARTIAL_FAILURE_POLICY")
        validate_in_choices(self.inference_mode, INFERENCE_MODES, "INFERENCE_MODE")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod", "staging")


def _int(env: Mapping[str, str], name: str, default: int, minimum: int = 1) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"[Config] Invalid {name}={raw!r}, using {default}")
        return default
    if value < minimum:
        logger.warning(f"[Config] {name}={value} is below {minimum}, using {default}")
        return default
    return value


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"[Config] Invalid {name}={raw!r}, using {default}")
        return default
    if value <= 0:
        logger.warning(f"[Config] {name}={value} must be positive, using {default}")
        return default
    return value


def _flag(env: Mapping[str, str], name: str) -> bool:
    return env.get(name, "").strip().lower() in ("true", "1", "yes")


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from the environment (os.environ unless env is given)."""
    env = os.environ if env is None else env

    origins = [o.strip() for o in env.get("CORS_ORIGINS", "").split(",") if o.strip()]

    return Settings(
        max_concurrent_agents=_int(env, "MAX_CONCURRENT_AGENTS", 5),
        agent_call_timeout=_float(env, "AGENT_CALL_TIMEOUT", 120.0),
        synthesis_model=env.get("SYNTHESIS_MODEL", "").strip() or "gpt-4-turbo",
        synthesis_provider=env.get("SYNTHESIS_PROVIDER", "").strip().lower() or None,
        partial_failure_policy=(
            env.get("PARTIAL_FAILURE_POLICY", "").strip().lower() or "synthesize_successful"
        ),
        model_fallback=_flag(env, "MODEL_FALLBACK"),
        usage_db_path=Path(env.get("USAGE_DB_PATH", "").strip() or "data/usage.db"),
        inference_mode=env.get("INFERENCE_MODE", "").strip().lower() or "live",
        api_key=env.get("API_KEY", "").strip() or None,
        auth_disabled=_flag(env, "AUTH_DISABLED"),
        environment=env.get("ENV", env.get("ENVIRONMENT", "development")),
        rate_limit_per_minute=_int(env, "RATE_LIMIT_PER_MINUTE", 60),
        cors_origins=origins or list(DEFAULT_CORS_ORIGINS),
    )


def build_provider(settings: Settings) -> InferenceProvider:
    """The live ProviderRouter, or the SimulatedProvider when INFERENCE_MODE=simulated."""
    if settings.inference_mode == "simulated":
        logger.info("[Config] Using simulated inference")
        return SimulatedProvider()
    return ProviderRouter(timeout=settings.agent_call_timeout)


def build_round(
    settings: Settings,
    provider: InferenceProvider,
    usage: BestEffortRecorder,
) -> MultiAgentRound:
    """Wire invoker, synthesizer and round around one provider and one usage recorder."""
    invoker = AgentInvoker(
        provider=provider,
        usage=usage,
        max_concurrent=settings.max_concurrent_agents,
        call_timeout=settings.agent_call_timeout,
        fallback=settings.model_fallback,
    )
    synthesizer = Synthesizer(
        provider=provider,
        usage=usage,
        model=settings.synthesis_model,
        provider_hint=settings.synthesis_provider,
        call_timeout=settings.agent_call_timeout,
    )
    return MultiAgentRound(
        invoker,
        synthesizer,
        RoundConfig(partial_failure_policy=settings.partial_failure_policy),
    )
