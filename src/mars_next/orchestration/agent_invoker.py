"""
AgentInvoker -- fan one prompt out to every configured agent, concurrently.

Each agent gets its own inference call (separate context window), launched
together on the event loop and bounded by a semaphore. The invoker returns
only when every call has resolved, so it doubles as the fan-in barrier the
synthesizer waits behind.

Guarantees:
  - one AgentResponse per input agent, in input order
  - one usage record per call, written before invoke() returns
  - a failing call becomes an error-tagged AgentResponse; siblings carry on
  - cancelling the round cancels every in-flight call

With fallback enabled, a failed agent is retried once on the model
fallback_model() names for it, and a provider/model pair that recently
returned 429 goes straight to its fallback. Every attempt writes its own
usage record.
"""

import asyncio
import logging
import time
from dataclasses import replace

from ..content.markdown import process_document_for_agents
from ..llm.errors import ApiErrorInfo, ApiErrorType, classify_error, fallback_model, user_friendly_message
from ..llm.models import CacheablePrompt, InferenceProvider, TokenCounts
from ..llm.rate_limits import RateLimitMemory
from ..llm.router import resolve_provider
from ..usage.models import UsageAction, UsageStatus
from ..usage.recorder import BestEffortRecorder
from .errors import NoAgentsAvailable
from .models import AgentConfig, AgentResponse, ExecutionContext, FallbackInfo

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT_AGENTS = 5
DEFAULT_CALL_TIMEOUT = 120.0
CHARS_PER_TOKEN = 4


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class AgentInvoker:
    """
    Usage:
        invoker = AgentInvoker(provider=router, usage=BestEffortRecorder.for_sink(ledger))
        responses = await invoker.invoke(agents, "summarize X", ExecutionContext(user_id="u1"))
        failed = [r for r in responses if not r.ok]
    """

    def __init__(
        self,
        provider: InferenceProvider,
        usage: BestEffortRecorder,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT_AGENTS,
        call_timeout: float | None = DEFAULT_CALL_TIMEOUT,
        fallback: bool = False,
        rate_limits: RateLimitMemory | None = None,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._provider = provider
        self._usage = usage
        self._max_concurrent = max_concurrent
        self._call_timeout = call_timeout
        self._fallback = fallback
        self._rate_limits = rate_limits or RateLimitMemory()

    async def invoke(
        self,
        agents: list[AgentConfig],
        prompt: str,
        context: ExecutionContext,
    ) -> list[AgentResponse]:
        """Run every agent against prompt. Raises NoAgentsAvailable for an empty roster."""
        if not agents:
            raise NoAgentsAvailable()

        document = ""
        if context.context_text:
            document = process_document_for_agents(context.context_text)

        semaphore = asyncio.Semaphore(self._max_concurrent)
        logger.info(
            f"[Invoker] Dispatching {len(agents)} agent(s) "
            f"(max {self._max_concurrent} concurrent) for user={context.user_id}"
        )
        results = await asyncio.gather(
            *[self._invoke_one(agent, prompt, document, context, semaphore) for agent in agents],
            return_exceptions=True,
        )

        responses = []
        for agent, result in zip(agents, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.error(f"[Invoker] {agent.name} crashed outside the call: {result!r}")
                responses.append(self._error_response(agent, str(result), ApiErrorType.UNKNOWN.value,
                                                      "An unexpected error occurred.", 0, ""))
                continue
            responses.append(result)

        failed = sum(1 for r in responses if not r.ok)
        logger.info(f"[Invoker] {len(responses) - failed}/{len(responses)} agent(s) succeeded")
        return responses

    def _build_prompt(self, agent: AgentConfig, prompt: str, document: str) -> CacheablePrompt:
        return CacheablePrompt(
            system=agent.system_prompt or "",
            context=f"CONTEXT:\n{document}" if document else "",
            user_message=prompt,
        )

    def _fallback_agent(self, agent: AgentConfig, provider: str) -> AgentConfig | None:
        target = fallback_model(provider, agent.model)
        if target is None:
            return None
        fallback_provider, model = target
        return replace(agent, provider=fallback_provider, model=model)

    async def _invoke_one(
        self,
        agent: AgentConfig,
        prompt: str,
        document: str,
        context: ExecutionContext,
        semaphore: asyncio.Semaphore,
    ) -> AgentResponse:
        cprompt = self._build_prompt(agent, prompt, document)
        provider = resolve_provider(agent.model, agent.provider)

        if self._fallback and self._rate_limits.is_limited(provider, agent.model):
            substitute = self._fallback_agent(agent, provider)
            if substitute is not None:
                logger.info(
                    f"[Invoker] {provider}/{agent.model} is rate limited, "
                    f"{agent.name} using {substitute.provider}/{substitute.model}"
                )
                used = FallbackInfo(provider, agent.model, "Rate limit exceeded")
                response, _ = await self._attempt(substitute, cprompt, context, semaphore, used)
                return response

        response, info = await self._attempt(agent, cprompt, context, semaphore)
        if info is None or not self._fallback:
            return response

        substitute = self._fallback_agent(agent, provider)
        if substitute is None:
            return response
        logger.info(
            f"[Invoker] Retrying {agent.name} on fallback "
            f"{substitute.provider}/{substitute.model} after {info.type.value}"
        )
        used = FallbackInfo(provider, agent.model, info.message)
        retried, retry_info = await self._attempt(substitute, cprompt, context, semaphore, used)
        # a failed fallback reports the original error
        return response if retry_info is not None else retried

    async def _attempt(
        self,
        agent: AgentConfig,
        cprompt: CacheablePrompt,
        context: ExecutionContext,
        semaphore: asyncio.Semaphore,
        fallback_used: FallbackInfo | None = None,
    ) -> tuple[AgentResponse, ApiErrorInfo | None]:
        """One provider call and its usage record. Returns the response and the error, if any."""
        provider = resolve_provider(agent.model, agent.provider)
        metadata = {}
        if context.thread_id:
            metadata["thread_id"] = context.thread_id
        if fallback_used is not None:
            metadata["fallback_from"] = f"{fallback_used.original_provider}/{fallback_used.original_model}"

        async with semaphore:
            start = time.monotonic()
            try:
                call = self._provider.call(agent.model, agent.inference_params(), cprompt)
                result = await asyncio.wait_for(call, timeout=self._call_timeout)
                error = None
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error = e
        duration = _elapsed_ms(start)

        if error is not None:
            info = classify_error(error, provider, agent.model)
            logger.warning(
                f"[Invoker] {agent.name} ({provider}/{agent.model}) failed "
                f"after {duration}ms: {info.type.value}: {info.message}"
            )
            if info.type == ApiErrorType.RATE_LIMIT:
                self._rate_limits.record(provider, info.retry_after_ms, agent.model)
            await self._usage.record(
                user_id=context.user_id,
                project_id=context.project_id,
                agent_id=agent.id,
                provider=provider,
                model=agent.model,
                action=UsageAction.AGENT_RESPONSE,
                tokens_prompt=cprompt.total_length // CHARS_PER_TOKEN,
                tokens_completion=0,
                status=UsageStatus.ERROR,
                duration_ms=duration,
                metadata={**metadata, "error_type": info.type.value, "error": info.message},
            )
            response = self._error_response(
                agent,
                info.message,
                info.type.value,
                user_friendly_message(info),
                duration,
                provider,
                fallback_used,
            )
            return response, info

        provider = result.provider or provider
        await self._usage.record(
            user_id=context.user_id,
            project_id=context.project_id,
            agent_id=agent.id,
            provider=provider,
            model=result.model or agent.model,
            action=UsageAction.AGENT_RESPONSE,
            tokens_prompt=result.tokens.prompt,
            tokens_completion=result.tokens.completion,
            tokens_total=result.tokens.total,
            status=UsageStatus.SUCCESS,
            duration_ms=duration,
            metadata=metadata or None,
        )
        logger.debug(f"[Invoker] {agent.name}: {result.tokens.total}tok in {duration}ms")
        response = AgentResponse(
            agent_id=agent.id,
            agent_name=agent.name,
            content=result.content,
            model=result.model or agent.model,
            tokens=result.tokens,
            finish_reason=result.finish_reason,
            provider=provider,
            duration_ms=duration,
            fallback_used=fallback_used,
        )
        return response, None

    def _error_response(
        self,
        agent: AgentConfig,
        error: str,
        error_type: str,
        content: str,
        duration_ms: int,
        provider: str,
        fallback_used: FallbackInfo | None = None,
    ) -> AgentResponse:
        return AgentResponse(
            agent_id=agent.id,
            agent_name=agent.name,
            content=content,
            model=agent.model,
            tokens=TokenCounts(),
            finish_reason="error",
            provider=provider,
            duration_ms=duration_ms,
            error=error,
            error_type=error_type,
            fallback_used=fallback_used,
        )
