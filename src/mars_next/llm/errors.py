"""
Provider error classification -- one taxonomy for Anthropic, OpenAI and Google failures.

Every provider SDK raises its own exception types. classify_error() maps them
onto ApiErrorType so the rest of the system can decide two things without
knowing which SDK was involved:

  - Is this worth retrying?      (ApiErrorInfo.retryable / retry_after_ms)
  - What do we tell the user?    (user_friendly_message)

Classification is heuristic: HTTP status first, then exception class name,
then message keywords. Unknown errors are never retryable.

"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_MS = 60_000

RETRYABLE_EXCEPTION_NAMES = {
    "RateLimitError",
    "APITimeoutError",
    "InternalServerError",
    "ServiceUnavailableError",
    "APIConnectionError",
    "ResourceExhausted",
    "Timeout",
    "ConnectError",
}


class ApiErrorType(str, Enum):
    RATE_LIMIT = "rate_limit"
    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_API_KEY = "invalid_api_key"
    MODEL_UNAVAILABLE = "model_unavailable"
    BAD_REQUEST = "bad_request"
    TIMEOUT = "timeout"
    CONTENT_FILTER = "content_filter"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ApiErrorInfo:
    """Normalized description of a failed provider call."""

    type: ApiErrorType
    message: str
    provider: str
    model: str
    retryable: bool = False
    retry_after_ms: int | None = None


class InferenceError(Exception):
    """Raised by inference providers when a call fails after retries."""

    def __init__(self, info: ApiErrorInfo):
        super().__init__(info.message)
        self.info = info

    @property
    def error_type(self) -> ApiErrorType:
        return self.info.type


def _status_code(error: Exception) -> int:
    for attr in ("status_code", "status", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else 0


def _retry_after_ms(error: Exception) -> int:
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None) or getattr(error, "headers", None)
    if headers:
        try:
            raw = headers.get("retry-after")
        except AttributeError:
            raw = None
        if raw:
            try:
                return int(float(raw) * 1000)
            except (TypeError, ValueError):
                pass
    return DEFAULT_RETRY_AFTER_MS


def classify_error(error: Exception, provider: str, model: str) -> ApiErrorInfo:
    """
    Map a provider exception onto an ApiErrorInfo.

    InferenceError instances are returned unchanged (already classified).
    """
    if isinstance(error, InferenceError):
        return error.info

    name = type(error).__name__
    message = str(error) or name
    lowered = message.lower()
    status = _status_code(error)
    label = provider.capitalize() if provider else "Provider"

    if isinstance(error, (asyncio.TimeoutError, TimeoutError)) or name in ("APITimeoutError", "Timeout"):
        return ApiErrorInfo(
            ApiErrorType.TIMEOUT, f"{label} request timed out", provider, model, retryable=True
        )

    if status == 429 or name in ("RateLimitError", "ResourceExhausted") or "rate limit" in lowered:
        if "quota" in lowered and provider == "openai":
            return ApiErrorInfo(
                ApiErrorType.QUOTA_EXCEEDED, f"{label} quota exceeded", provider, model
            )
        return ApiErrorInfo(
            ApiErrorType.RATE_LIMIT,
            f"{label} rate limit exceeded",
            provider,
            model,
            retryable=True,
            retry_after_ms=_retry_after_ms(error),
        )

    if "insufficient_quota" in lowered or "quota" in lowered:
        return ApiErrorInfo(ApiErrorType.QUOTA_EXCEEDED, f"{label} quota exceeded", provider, model)

    if status == 401 or name == "AuthenticationError" or (provider == "google" and status == 403):
        return ApiErrorInfo(
            ApiErrorType.INVALID_API_KEY, f"Invalid {label} API key", provider, model
        )

    if "content filter" in lowered or "content_filter" in lowered or (
        "content" in lowered and ("policy" in lowered or "safety" in lowered)
    ):
        return ApiErrorInfo(
            ApiErrorType.CONTENT_FILTER, f"Content filtered by {label}", provider, model
        )

    if status == 404 or name == "NotFoundError":
        return ApiErrorInfo(
            ApiErrorType.MODEL_UNAVAILABLE,
            f"{label} model '{model}' not available",
            provider,
            model,
        )

    if status == 400 or name == "BadRequestError":
        return ApiErrorInfo(
            ApiErrorType.BAD_REQUEST, f"{label} bad request: {message}", provider, model
        )

    if status >= 500 or name in RETRYABLE_EXCEPTION_NAMES:
        return ApiErrorInfo(
            ApiErrorType.UNKNOWN, f"{label} error: {message}", provider, model, retryable=True
        )

    return ApiErrorInfo(ApiErrorType.UNKNOWN, f"{label} error: {message}", provider, model)


def user_friendly_message(info: ApiErrorInfo) -> str:
    """Message safe to show an end user (no stack traces, no keys)."""
    provider = info.provider or "AI"
    if info.type == ApiErrorType.RATE_LIMIT:
        return (
            f"The {provider} API is currently experiencing high demand. "
            f"Please try again in a few minutes."
        )
    if info.type == ApiErrorType.QUOTA_EXCEEDED:
        return (
            f"Your {provider} API quota has been exceeded. "
            f"Please check your billing settings or use a different model."
        )
    if info.type == ApiErrorType.INVALID_API_KEY:
        return f"There's an issue with your {provider} API key. Please check your API key settings."
    if info.type == ApiErrorType.MODEL_UNAVAILABLE:
        return f"The {info.model} model is currently unavailable. Try a different model."
    if info.type == ApiErrorType.CONTENT_FILTER:
        return (
            f"Your request was flagged by {provider}'s content filter. "
            f"Please modify your input and try again."
        )
    if info.type == ApiErrorType.BAD_REQUEST:
        return (
            f"There was an issue with your request to the {provider} API. "
            f"Please try again with different parameters."
        )
    if info.type == ApiErrorType.TIMEOUT:
        return f"The request to {provider} timed out. Please try again."
    return f"An error occurred with the {provider} API. Please try again later."


# =============================================================================
# FALLBACK MODELS
# =============================================================================

# (provider, model) -> (provider, model) to try when the primary is unusable
FALLBACK_MODELS = {
    ("openai", "gpt-4-turbo"): ("openai", "gpt-4"),
    ("openai", "gpt-4"): ("openai", "gpt-3.5-turbo"),
    ("openai", "gpt-3.5-turbo"): ("anthropic", "claude-3-haiku"),
    ("anthropic", "claude-3-opus"): ("anthropic", "claude-3-sonnet"),
    ("anthropic", "claude-3-sonnet"): ("anthropic", "claude-3-haiku"),
    ("anthropic", "claude-3-haiku"): ("openai", "gpt-3.5-turbo"),
    ("google", "gemini-1.5-pro"): ("google", "gemini-pro"),
    ("google", "gemini-pro"): ("openai", "gpt-3.5-turbo"),
}
GENERAL_FALLBACK = ("openai", "gpt-3.5-turbo")


def fallback_model(provider: str, model: str) -> tuple[str, str] | None:
    """
    The (provider, model) to retry on after provider/model failed.

    Unlisted models fall back to GENERAL_FALLBACK. None when the only
    candidate is the model that just failed.
    """
    candidate = FALLBACK_MODELS.get((provider, model), GENERAL_FALLBACK)
    if candidate == (provider, model):
        return None
    return candidate
