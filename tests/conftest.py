"""Test fixtures -- fake inference provider, in-memory and failing usage sinks."""

import asyncio

import pytest

from mars_next.llm import CacheablePrompt, InferenceParams, InferenceResult, TokenCounts
from mars_next.orchestration import AgentConfig, ExecutionContext
from mars_next.usage import BestEffortRecorder, UsageRecord

SYNTH_MODEL = "synth-model"


class FakeProvider:
    """
    InferenceProvider that answers from memory.

    failures: model -> exception raised for calls to that model
    delays:   model -> seconds to sleep before answering
    """

    def __init__(self, failures=None, delays=None):
        self.failures = dict(failures or {})
        self.delays = dict(delays or {})
        self.calls: list[tuple[str, InferenceParams, CacheablePrompt]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.cancelled = 0

    def calls_for(self, model: str) -> list:
        return [c for c in self.calls if c[0] == model]

    async def call(self, model, params, prompt):
        if isinstance(prompt, str):
            prompt = CacheablePrompt(user_message=prompt)
        self.calls.append((model, params, prompt))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delays.get(model, 0)
            if delay:
                await asyncio.sleep(delay)
            else:
                await asyncio.sleep(0)
            if model in self.failures:
                raise self.failures[model]
            return InferenceResult(
                content=f"{model} answer",
                tokens=TokenCounts.of(10, 5),
                model=model,
                provider="fake",
            )
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.in_flight -= 1


class MemorySink:
    def __init__(self):
        self.records: list[UsageRecord] = []

    def append(self, record):
        self.records.append(record)
        return record

    def for_action(self, action: str) -> list[UsageRecord]:
        return [r for r in self.records if r.action == action]


class FailingSink(MemorySink):
    """Raises for the record numbers listed in fail_on (1-based); all if None."""

    def __init__(self, fail_on=None):
        super().__init__()
        self.fail_on = fail_on
        self.attempts = 0

    def append(self, record):
        self.attempts += 1
        if self.fail_on is None or self.attempts in self.fail_on:
            raise RuntimeError("ledger unavailable")
        return super().append(record)


class StatusError(Exception):
    """Mimics an SDK error carrying an HTTP status code."""

    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def usage(sink):
    return BestEffortRecorder.for_sink(sink)


@pytest.fixture
def context():
    return ExecutionContext(user_id="user-1", project_id="project-1", thread_id="thread-1")


@pytest.fixture
def agents():
    return [
        AgentConfig(id="a", name="Analyst", model="model-a", system_prompt="You analyze."),
        AgentConfig(id="b", name="Critic", model="model-b", temperature=0.2, max_tokens=300),
    ]
