"""
Inference data models and the InferenceProvider protocol.

Anything that can answer call(model, params, prompt) can serve agent and
synthesis calls: the live LLMClient, the ProviderRouter, the SimulatedProvider,
or a test fake.
"""

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass
class CacheablePrompt:
    """
    Separates a prompt into cacheable (stable) and dynamic parts.

      - system: agent instructions (stable across rounds)
      - context: context documents (stable within a thread)
      - user_message: the actual request (changes every call)
    """

    system: str = ""
    context: str = ""
    user_message: str = ""

    def to_flat_prompt(self) -> str:
        """Flatten to a single string (for providers that don't support caching)."""
        return "\n\n".join(p for p in (self.system, self.context, self.user_message) if p)

    @property
    def total_length(self) -> int:
        return len(self.system) + len(self.context) + len(self.user_message)


@dataclass(frozen=True)
class TokenCounts:
    """Prompt/completion/total token accounting for one call."""

    prompt: int = 0
    completion: int = 0
    total: int = 0

    @classmethod
    def of(cls, prompt: int, completion: int) -> "TokenCounts":
        return cls(prompt=prompt, completion=completion, total=prompt + completion)


@dataclass(frozen=True)
class InferenceParams:
    """Optional per-call knobs. None means "provider default"."""

    temperature: float | None = None
    max_tokens: int | None = None
    system_prompt: str | None = None
    provider: str | None = None


@dataclass
class InferenceResult:
    content: str
    tokens: TokenCounts = field(default_factory=TokenCounts)
    finish_reason: str = "stop"
    model: str = ""
    provider: str = ""


@runtime_checkable
class InferenceProvider(Protocol):
    """One-method interface every inference backend implements."""

    async def call(
        self,
        model: str,
        params: InferenceParams,
        prompt: "str | CacheablePrompt",
    ) -> InferenceResult: ...
