"""
ProviderRouter -- one InferenceProvider in front of several LLMClients.

Agents in the same round may target different vendors. The router resolves
the vendor from params.provider, or failing that from the model name, and
lazily creates one LLMClient per vendor.
"""

import logging
from typing import Callable

from .client import LLMClient
from .errors import ApiErrorInfo, ApiErrorType, InferenceError
from .models import CacheablePrompt, InferenceParams, InferenceResult

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "openai"

MODEL_PREFIXES = {
    "claude": "anthropic",
    "gpt": "openai",
    "o1": "openai",
    "o3": "openai",
    "o4": "openai",
    "chatgpt": "openai",
    "gemini": "google",
}


def provider_for_model(model: str) -> str | None:
    """Guess the vendor from a model identifier. None if unrecognised."""
    lowered = model.lower()
    for prefix, provider in MODEL_PREFIXES.items():
        if lowered.startswith(prefix):
            return provider
    return None


def resolve_provider(model: str, provider: str | None = None, default: str = DEFAULT_PROVIDER) -> str:
    """Explicit provider, else the one the model name implies, else default."""
    return provider or provider_for_model(model) or default


class ProviderRouter:
    """
    Routes each call to the right vendor client.

    Usage:
        router = ProviderRouter(default_provider="openai")
        await router.call("claude-3-haiku", InferenceParams(), "hi")   # -> anthropic
        await router.call("gpt-4o", InferenceParams(), "hi")           # -> openai
    """

    def __init__(
        self,
        default_provider: str = DEFAULT_PROVIDER,
        client_factory: Callable[[str], LLMClient] | None = None,
        **client_kwargs,
    ):
        self._default_provider = default_provider
        self._client_kwargs = client_kwargs
        self._factory = client_factory or self._build_client
        self._clients: dict[str, LLMClient] = {}

    def _build_client(self, provider: str) -> LLMClient:
        return LLMClient(provider=provider, **self._client_kwargs)

    def resolve(self, model: str, params: InferenceParams) -> str:
        return resolve_provider(model, params.provider, self._default_provider)

    def client_for(self, provider: str) -> LLMClient:
        if provider not in self._clients:
            self._clients[provider] = self._factory(provider)
        return self._clients[provider]

    async def call(
        self,
        model: str,
        params: InferenceParams,
        prompt: str | CacheablePrompt,
    ) -> InferenceResult:
        provider = self.resolve(model, params)
        try:
            client = self.client_for(provider)
        except ValueError as e:
            raise InferenceError(
                ApiErrorInfo(ApiErrorType.BAD_REQUEST, str(e), provider, model)
            ) from e
        logger.debug(f"[LLM] Routing {model} -> {provider}")
        return await client.call(model, params, prompt)
