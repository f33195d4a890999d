"""Settings loading and wiring."""

import asyncio
import logging
from pathlib import Path

import pytest

from mars_next.config import Settings, build_provider, build_round, load_settings
from mars_next.llm import ProviderRouter, SimulatedProvider
from mars_next.orchestration import AgentConfig, MultiAgentRound, SynthesisError
from mars_next.security import ValidationError
from mars_next.usage import BestEffortRecorder

from .conftest import FakeProvider, MemorySink, StatusError


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings({})

        assert settings.max_concurrent_agents == 5
        assert settings.agent_call_timeout == 120.0
        assert settings.synthesis_model == "gpt-4-turbo"
        assert settings.synthesis_provider is None
        assert settings.partial_failure_policy == "synthesize_successful"
        assert settings.model_fallback is False
        assert settings.usage_db_path == Path("data/usage.db")
        assert settings.inference_mode == "live"
        assert settings.api_key is None
        assert settings.rate_limit_per_minute == 60
        assert "http://localhost:3000" in settings.cors_origins

    def test_values_from_environment(self):
        settings = load_settings(
            {
                "MAX_CONCURRENT_AGENTS": "3",
                "AGENT_CALL_TIMEOUT": "30.5",
                "SYNTHESIS_MODEL": "claude-3-opus",
                "SYNTHESIS_PROVIDER": "Anthropic",
                "PARTIAL_FAILURE_POLICY": "abort",
                "MODEL_FALLBACK": "true",
                "USAGE_DB_PATH": "/tmp/u.db",
                "INFERENCE_MODE": "simulated",
                "API_KEY": " key ",
                "AUTH_DISABLED": "yes",
                "ENV": "production",
                "CORS_ORIGINS": "https://a.example, https://b.example",
            }
        )

        assert settings.max_concurrent_agents == 3
        assert settings.agent_call_timeout == 30.5
        assert settings.synthesis_model == "claude-3-opus"
        assert settings.synthesis_provider == "anthropic"
        assert settings.partial_failure_policy == "abort"
        assert settings.model_fallback
        assert settings.usage_db_path == Path("/tmp/u.db")
        assert settings.inference_mode == "simulated"
        assert settings.api_key == "key"
        assert settings.auth_disabled
        assert settings.is_production
        assert settings.cors_origins == ["https://a.example", "https://b.example"]

    @pytest.mark.parametrize("name", ["MAX_CONCURRENT_AGENTS", "RATE_LIMIT_PER_MINUTE"])
    @pytest.mark.parametrize("raw", ["lots", "0", "-2"])
    def test_bad_integers_fall_back_with_warning(self, name, raw, caplog):
        with caplog.at_level(logging.WARNING):
            settings = load_settings({name: raw})

        assert getattr(settings, name.lower()) == getattr(Settings(), name.lower())
        assert "[Config]" in caplog.text

    def test_bad_timeout_falls_back(self):
        assert load_settings({"AGENT_CALL_TIMEOUT": "soon"}).agent_call_timeout == 120.0
        assert load_settings({"AGENT_CALL_TIMEOUT": "-1"}).agent_call_timeout == 120.0

    def test_unknown_policy_is_a_startup_error(self):
        with pytest.raises(ValidationError):
            load_settings({"PARTIAL_FAILURE_POLICY": "shrug"})

    def test_unknown_inference_mode_is_a_startup_error(self):
        with pytest.raises(ValueError):
            load_settings({"INFERENCE_MODE": "psychic"})


class TestWiring:
    def test_build_provider_by_mode(self):
        assert isinstance(build_provider(Settings(inference_mode="simulated")), SimulatedProvider)
        assert isinstance(build_provider(Settings()), ProviderRouter)

    @pytest.mark.asyncio
    async def test_build_round_applies_settings(self, context, agents):
        provider = FakeProvider()
        sink = MemorySink()
        settings = Settings(synthesis_model="merge-model", max_concurrent_agents=1)

        round_ = build_round(settings, provider, BestEffortRecorder.for_sink(sink))
        result = await round_.run("hello", agents, context)

        assert isinstance(round_, MultiAgentRound)
        assert provider.max_in_flight == 1
        assert result.synthesis.model == "merge-model"
        assert len(sink.records) == 3

    @pytest.mark.asyncio
    async def test_build_round_times_out_synthesis(self, context, agents):
        provider = FakeProvider(delays={"merge-model": 5.0})
        sink = MemorySink()
        settings = Settings(synthesis_model="merge-model", agent_call_timeout=0.05)

        round_ = build_round(settings, provider, BestEffortRecorder.for_sink(sink))
        with pytest.raises(SynthesisError):
            await asyncio.wait_for(round_.run("hello", agents, context), timeout=1.0)

        assert len(sink.records) == 3

    @pytest.mark.asyncio
    async def test_build_round_enables_fallback(self, context):
        provider = FakeProvider(failures={"gpt-4": StatusError("Not found", 404)})
        sink = MemorySink()
        settings = Settings(synthesis_model="merge-model", model_fallback=True)
        agent = AgentConfig(id="g", name="Generalist", model="gpt-4")

        round_ = build_round(settings, provider, BestEffortRecorder.for_sink(sink))
        result = await round_.run("hello", [agent], context)

        assert result.responses[0].fallback_used.original_model == "gpt-4"
        assert len(sink.records) == 3
