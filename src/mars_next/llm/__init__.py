"""
Inference layer -- the pluggable InferenceProvider and its implementations.

  - LLMClient: live Anthropic / OpenAI / Google calls with retries
  - ProviderRouter: picks the vendor client per model
  - SimulatedProvider: offline stand-in for development

Usage:
    from .llm import ProviderRouter, InferenceParams

    provider = ProviderRouter()
    result = await provider.call("gpt-4o", InferenceParams(temperature=0.3), "Analyze this")
    print(result.content, result.tokens.total)
"""

from .client import LLMClient
from .errors import (
    ApiErrorInfo,
    ApiErrorType,
    InferenceError,
    classify_error,
    fallback_model,
    user_friendly_message,
)
from .models import CacheablePrompt, InferenceParams, InferenceProvider, InferenceResult, TokenCounts
from .rate_limits import RateLimitMemory
from .router import ProviderRouter, provider_for_model, resolve_provider
from .simulated import SimulatedProvider
