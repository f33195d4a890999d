"""
Round data models -- agent configuration, execution context, per-agent and merged results.

All of these are created once and never mutated. A round builds an
ExecutionContext fresh per request, reads AgentConfigs, produces one
AgentResponse per agent and at most one SynthesisResult.
"""

from dataclasses import dataclass, field

from ..llm.models import InferenceParams, TokenCounts


@dataclass(frozen=True)
class AgentConfig:
    """A named model + parameters + instructions: one voice in a round."""

    id: str
    name: str
    model: str
    provider: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    system_prompt: str | None = None

    def inference_params(self) -> InferenceParams:
        return InferenceParams(
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            system_prompt=self.system_prompt,
            provider=self.provider,
        )


@dataclass(frozen=True)
class ExecutionContext:
    """Ambient parameters for one round. context_text is an optional context document body."""

    user_id: str
    project_id: str | None = None
    context_id: str | None = None
    thread_id: str | None = None
    context_text: str | None = None


@dataclass(frozen=True)
class FallbackInfo:
    """Which model an agent was configured with, when another one answered instead."""

    original_provider: str
    original_model: str
    reason: str


@dataclass(frozen=True)
class AgentResponse:
    """
    One agent's output for one round.

    error is None on success. On failure, content carries a user-facing
    explanation and error the technical message; error_type is the
    classified ApiErrorType value.

    fallback_used is set when the answer came from a fallback model
    rather than the agent's configured one.
    """

    agent_id: str
    agent_name: str
    content: str
    model: str
    tokens: TokenCounts = field(default_factory=TokenCounts)
    finish_reason: str = "stop"
    provider: str = ""
    duration_ms: int = 0
    error: str | None = None
    error_type: str | None = None
    fallback_used: FallbackInfo | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class SynthesisResult:
    content: str
    model: str
    tokens: TokenCounts = field(default_factory=TokenCounts)
    provider: str = ""
    finish_reason: str = "stop"
    duration_ms: int = 0
    agent_count: int = 0


class RoundStatus:
    COMPLETED = "completed"
    NO_AGENTS = "no_agents"


NO_AGENTS_MESSAGE = "No agents available. Add an agent to this project to start a conversation."


@dataclass
class RoundResult:
    """Outcome of one prompt-in, synthesized-reply-out cycle."""

    status: str
    responses: list[AgentResponse] = field(default_factory=list)
    synthesis: SynthesisResult | None = None
    duration_ms: int = 0

    @property
    def message(self) -> str:
        if self.status == RoundStatus.NO_AGENTS:
            return NO_AGENTS_MESSAGE
        return self.synthesis.content if self.synthesis else ""

    @property
    def failed_agents(self) -> list[AgentResponse]:
        return [r for r in self.responses if not r.ok]

    @classmethod
    def no_agents(cls) -> "RoundResult":
        return cls(status=RoundStatus.NO_AGENTS)
