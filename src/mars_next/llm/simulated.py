"""
SimulatedProvider -- offline stand-in for real inference.

Used for local development, demos and the CLI's --simulate flag. Mirrors how
the platform behaved before real providers were wired in: a short delay,
a canned answer, prompt tokens estimated at four characters per token and a
randomised completion size.
"""

import asyncio
import random

from .models import CacheablePrompt, InferenceParams, InferenceResult, TokenCounts
from .router import provider_for_model

CHARS_PER_TOKEN = 4

# (base completion tokens, random spread, latency seconds)
PROVIDER_PROFILES = {
    "openai": (100, 400, 0.5),
    "anthropic": (80, 320, 0.7),
    "google": (60, 240, 0.6),
}
DEFAULT_PROFILE = (100, 400, 0.5)


def estimate_tokens(text: str) -> int:
    return len(text) // CHARS_PER_TOKEN


class SimulatedProvider:
    """InferenceProvider that never leaves the process."""

    def __init__(self, latency_scale: float = 1.0, seed: int | None = None):
        self._latency_scale = latency_scale
        self._random = random.Random(seed)

    async def call(
        self,
        model: str,
        params: InferenceParams,
        prompt: str | CacheablePrompt,
    ) -> InferenceResult:
        text = prompt if isinstance(prompt, str) else prompt.to_flat_prompt()
        if params.system_prompt and isinstance(prompt, str):
            text = f"{params.system_prompt}\n\n{text}"

        provider = params.provider or provider_for_model(model) or "simulated"
        base, spread, latency = PROVIDER_PROFILES.get(provider, DEFAULT_PROFILE)
        if self._latency_scale > 0:
            await asyncio.sleep(latency * self._latency_scale)

        completion = base + self._random.randint(0, spread)
        if params.max_tokens is not None:
            completion = min(completion, params.max_tokens)

        preview = text[-60:].replace("\n", " ").strip()
        content = (
            f"[{provider} {model}] Response to: \"{preview}\" "
            f"(temp: {params.temperature if params.temperature is not None else 'default'}, "
            f"max tokens: {params.max_tokens or 'default'})"
        )
        return InferenceResult(
            content=content,
            tokens=TokenCounts.of(estimate_tokens(text), completion),
            finish_reason="stop",
            model=model,
            provider=provider,
        )
