"""
RateLimitMemory -- remembers which provider/model pairs recently returned 429.

A rate-limited pair stays blocked for its retry-after window. Callers check
is_limited() before dispatching and go straight to a fallback model instead
of spending a call that will be rejected. One instance per invoker, in memory.
"""

import logging
import time

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_MS = 60_000


class RateLimitMemory:
    def __init__(self):
        # (provider, model or None) -> monotonic deadline in seconds
        self._until: dict[tuple[str, str | None], float] = {}

    def record(
        self,
        provider: str,
        retry_after_ms: int | None = None,
        model: str | None = None,
        now: float | None = None,
    ) -> None:
        now = time.monotonic() if now is None else now
        delay_ms = retry_after_ms or DEFAULT_RETRY_AFTER_MS
        self._until[(provider, model)] = now + delay_ms / 1000
        logger.info(f"[RateLimit] {provider}/{model or '*'} blocked for {delay_ms}ms")
        self._expire(now)

    def retry_after_ms(self, provider: str, model: str | None = None, now: float | None = None) -> int:
        """Milliseconds until provider/model may be called again; 0 if not limited."""
        now = time.monotonic() if now is None else now
        deadlines = [self._until.get((provider, None), 0.0)]
        if model is not None:
            deadlines.append(self._until.get((provider, model), 0.0))
        remaining = max(deadlines) - now
        return int(remaining * 1000) if remaining > 0 else 0

    def is_limited(self, provider: str, model: str | None = None, now: float | None = None) -> bool:
        return self.retry_after_ms(provider, model, now) > 0

    def _expire(self, now: float) -> None:
        for key in [k for k, deadline in self._until.items() if deadline <= now]:
            del self._until[key]
