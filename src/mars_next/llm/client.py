"""
Provider-specific LLM client with prompt caching, retries and error classification.

Features:
  - Automatic prompt caching hints (Anthropic cache_control, OpenAI prefix caching)
  - Token accounting per call (prompt, completion, total)
  - Retry with exponential backoff on transient failures
  - Timeout enforcement
  - Security: prompt sanitization, size limits, no secrets in logs

Supports: Anthropic (Claude), OpenAI (GPT/o-series), Google (Gemini).

LLMClient implements InferenceProvider. One client talks to one provider; the
model is chosen per call so a single client serves every agent on that provider:

    client = LLMClient(provider="openai")
    result = await client.call("gpt-4o", InferenceParams(temperature=0.3), "Summarize X")
    result.content, result.tokens.total

Failures are raised as InferenceError after retries are exhausted. Callers
decide whether a failure is fatal (synthesis) or contained (agent calls).
"""

import asyncio
import logging
import os
import time
from typing import Any

from ..security.prompt_guard import sanitize_for_prompt
from .errors import ApiErrorInfo, ApiErrorType, InferenceError, classify_error
from .models import CacheablePrompt, InferenceParams, InferenceResult, TokenCounts

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120
DEFAULT_MAX_RETRIES = 2
DEFAULT_MAX_PROMPT_LENGTH = 200_000
DEFAULT_MAX_TOKENS = 4096
RETRY_BASE_DELAY = 1.0
RETRY_MAX_DELAY = 30.0

SUPPORTED_PROVIDERS = ("anthropic", "openai", "google")

API_KEY_ENV_VARS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "google": "GOOGLE_API_KEY",
}


class LLMClient:
    """
    Live inference provider for a single vendor.

    Usage:
        client = LLMClient(provider="anthropic")
        result = await client.call(
            "claude-3-sonnet",
            InferenceParams(temperature=0.2, system_prompt="You are a reviewer."),
            "Review this paragraph: ...",
        )
    """

    def __init__(
        self,
        provider: str = "openai",
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_prompt_length: int = DEFAULT_MAX_PROMPT_LENGTH,
    ):
        self._provider = provider.lower()
        if self._provider not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported provider: {provider}")
        self._api_key = api_key or self._load_api_key()
        self._timeout = timeout
        self._max_retries = max_retries
        self._max_prompt_length = max_prompt_length
        self._client: Any = None
        self._init_error: str | None = None
        self._calls = 0
        self._total_tokens = 0

        self._init_client()
        logger.info(f"[LLM] Initialized {self._provider} client (timeout={self._timeout}s)")

    def _load_api_key(self) -> str:
        env_var = API_KEY_ENV_VARS[self._provider]
        key = os.environ.get(env_var, "")
        if not key:
            logger.warning(f"[LLM] {env_var} not set -- calls will fail")
        return key

    def _init_client(self) -> None:
        """Initialize the provider-specific SDK client."""
        try:
            if self._provider == "anthropic":
                import anthropic

                self._client = anthropic.AsyncAnthropic(
                    api_key=self._api_key, timeout=self._timeout
                )
            elif self._provider == "openai":
                import openai

                self._client = openai.AsyncOpenAI(
                    api_key=self._api_key, timeout=self._timeout
                )
            else:
                import google.generativeai as genai

                genai.configure(api_key=self._api_key)
                self._client = genai
        except ImportError:
            self._init_error = f"{self._provider} SDK not installed"
            logger.error(f"[LLM] {self._init_error}. Install the provider extra.")
            self._client = None

    async def call(
        self,
        model: str,
        params: InferenceParams,
        prompt: str | CacheablePrompt,
    ) -> InferenceResult:
        """
        Make one inference call, retrying transient failures.

        Args:
            model: Provider model identifier (e.g. "gpt-4o").
            params: Temperature / max tokens / system prompt. None fields use defaults.
            prompt: String or CacheablePrompt. Strings become the user message and
                    params.system_prompt (if any) becomes the system block.

        Raises:
            InferenceError: the call failed and no retry succeeded.
        """
        if isinstance(prompt, str):
            prompt = CacheablePrompt(system=params.system_prompt or "", user_message=prompt)
        elif params.system_prompt and not prompt.system:
            prompt = CacheablePrompt(
                system=params.system_prompt,
                context=prompt.context,
                user_message=prompt.user_message,
            )
        prompt = self._sanitize_prompt(prompt)

        if self._client is None:
            raise InferenceError(
                ApiErrorInfo(
                    ApiErrorType.UNKNOWN,
                    self._init_error or "LLM client not initialized",
                    self._provider,
                    model,
                )
            )

        start = time.time()
        last_info: ApiErrorInfo | None = None

        for attempt in range(self._max_retries + 1):
            try:
                result = await self._call_provider(model, params, prompt)
                self._calls += 1
                self._total_tokens += result.tokens.total
                logger.debug(
                    f"[LLM] {self._provider}/{model}: "
                    f"{result.tokens.prompt}in + {result.tokens.completion}out = "
                    f"{result.tokens.total}tok ({(time.time() - start) * 1000:.0f}ms)"
                )
                return result
            except Exception as e:
                last_info = classify_error(e, self._provider, model)
                if last_info.retryable and attempt < self._max_retries:
                    delay = min(RETRY_BASE_DELAY * (2**attempt), RETRY_MAX_DELAY)
                    logger.warning(
                        f"[LLM] Retryable error (attempt {attempt + 1}): "
                        f"{last_info.type.value}. Retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                else:
                    break

        logger.error(
            f"[LLM] {self._provider}/{model} failed after {attempt + 1} attempt(s): "
            f"{last_info.message}"
        )
        raise InferenceError(last_info)

    def _sanitize_prompt(self, prompt: CacheablePrompt) -> CacheablePrompt:
        """Enforce size limits and sanitize prompt content."""
        limit = self._max_prompt_length // 3
        return CacheablePrompt(
            system=sanitize_for_prompt(prompt.system, max_length=limit),
            context=sanitize_for_prompt(prompt.context, max_length=limit),
            user_message=sanitize_for_prompt(prompt.user_message, max_length=limit),
        )

    async def _call_provider(
        self, model: str, params: InferenceParams, prompt: CacheablePrompt
    ) -> InferenceResult:
        if self._provider == "anthropic":
            return await self._call_anthropic(model, params, prompt)
        if self._provider == "openai":
            return await self._call_openai(model, params, prompt)
        return await self._call_google(model, params, prompt)

    async def _call_anthropic(
        self, model: str, params: InferenceParams, prompt: CacheablePrompt
    ) -> InferenceResult:
        """Anthropic Claude with explicit prompt caching (cache_control)."""
        system_blocks = [
            {"type": "text", "text": text, "cache_control": {"type": "ephemeral"}}
            for text in (prompt.system, prompt.context)
            if text
        ]
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": params.max_tokens or DEFAULT_MAX_TOKENS,
            "messages": [{"role": "user", "content": prompt.user_message}],
        }
        if system_blocks:
            kwargs["system"] = system_blocks
        if params.temperature is not None:
            kwargs["temperature"] = params.temperature

        response = await self._client.messages.create(**kwargs)

        usage = response.usage
        text = "".join(
            getattr(block, "text", "") for block in response.content
        )
        return InferenceResult(
            content=text,
            tokens=TokenCounts.of(
                getattr(usage, "input_tokens", 0) or 0,
                getattr(usage, "output_tokens", 0) or 0,
            ),
            finish_reason=response.stop_reason or "stop",
            model=model,
            provider="anthropic",
        )

    async def _call_openai(
        self, model: str, params: InferenceParams, prompt: CacheablePrompt
    ) -> InferenceResult:
        """OpenAI with automatic prefix caching (stable messages first)."""
        messages = []
        if prompt.system:
            messages.append({"role": "system", "content": prompt.system})
        if prompt.context:
            messages.append({"role": "system", "content": prompt.context})
        messages.append({"role": "user", "content": prompt.user_message})

        kwargs: dict[str, Any] = {"model": model, "messages": messages}
        if params.temperature is not None:
            kwargs["temperature"] = params.temperature
        if params.max_tokens is not None:
            kwargs["max_tokens"] = params.max_tokens

        response = await self._client.chat.completions.create(**kwargs)

        usage = response.usage
        prompt_tok = usage.prompt_tokens if usage else 0
        completion_tok = usage.completion_tokens if usage else 0
        choice = response.choices[0]
        return InferenceResult(
            content=choice.message.content or "",
            tokens=TokenCounts(
                prompt=prompt_tok,
                completion=completion_tok,
                total=usage.total_tokens if usage else 0,
            ),
            finish_reason=choice.finish_reason or "stop",
            model=model,
            provider="openai",
        )

    async def _call_google(
        self, model: str, params: InferenceParams, prompt: CacheablePrompt
    ) -> InferenceResult:
        """Google Gemini (no explicit caching API in current SDK)."""
        generation_config: dict[str, Any] = {}
        if params.temperature is not None:
            generation_config["temperature"] = params.temperature
        if params.max_tokens is not None:
            generation_config["max_output_tokens"] = params.max_tokens

        gemini = self._client.GenerativeModel(model)
        response = await asyncio.to_thread(
            gemini.generate_content,
            prompt.to_flat_prompt(),
            generation_config=generation_config or None,
        )

        prompt_tok = 0
        completion_tok = 0
        if hasattr(response, "usage_metadata"):
            prompt_tok = getattr(response.usage_metadata, "prompt_token_count", 0) or 0
            completion_tok = getattr(response.usage_metadata, "candidates_token_count", 0) or 0

        finish_reason = "stop"
        candidates = getattr(response, "candidates", None)
        if candidates:
            reason = getattr(candidates[0], "finish_reason", None)
            finish_reason = str(getattr(reason, "name", reason) or "stop").lower()

        return InferenceResult(
            content=response.text,
            tokens=TokenCounts.of(prompt_tok, completion_tok),
            finish_reason=finish_reason,
            model=model,
            provider="google",
        )

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def total_tokens(self) -> int:
        """Cumulative tokens across all successful calls on this client."""
        return self._total_tokens

    @property
    def call_count(self) -> int:
        return self._calls

