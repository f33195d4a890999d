"""
Rate limiting -- prevents abuse from any single client.

In-memory sliding window per client IP, one limiter per app instance
(stored on app.state). For multiple replicas, replace with a shared store.

Configuration: RATE_LIMIT_PER_MINUTE (default 60).
"""

import logging
import time
from collections import defaultdict

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


class SlidingWindowLimiter:
    def __init__(self, limit: int, window_seconds: float = WINDOW_SECONDS):
        self.limit = limit
        self.window_seconds = window_seconds
        self._requests: dict[str, list[float]] = defaultdict(list)

    def allow(self, client_id: str, now: float | None = None) -> bool:
        """Record a request and return False if the client is over the limit."""
        now = time.time() if now is None else now
        cutoff = now - self.window_seconds
        recent = [ts for ts in self._requests[client_id] if ts > cutoff]
        if len(recent) >= self.limit:
            self._requests[client_id] = recent
            return False
        recent.append(now)
        self._requests[client_id] = recent
        return True


async def check_rate_limit(request: Request) -> None:
    """
    FastAPI dependency. Raises HTTP 429 when the client exceeded the limit.
    """
    limiter: SlidingWindowLimiter = request.app.state.rate_limiter
    client_ip = request.client.host if request.client else "unknown"

    if not limiter.allow(client_ip):
        logger.warning(f"[RateLimit] Client {client_ip} exceeded {limiter.limit}/min")
        raise HTTPException(
            status_code=429,
            detail=f"Rate limit exceeded ({limiter.limit} requests per minute)",
            headers={"Retry-After": str(int(limiter.window_seconds))},
        )
