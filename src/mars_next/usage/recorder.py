"""
Usage recording -- strict recorder plus the best-effort wrapper the flow depends on.

  UsageRecorder       builds a UsageRecord and appends it to a UsageSink.
                      Sink failures propagate.
  BestEffortRecorder  same call signature, but a failing sink is logged and
                      swallowed. Returns None instead of the record.

The invoker and synthesizer take a BestEffortRecorder in their constructors,
so "telemetry never fails the user path" is visible in the type, not in
try/except blocks at each call site.

SQLite inserts are blocking, so the sink runs in a worker thread.
"""

import asyncio
import logging
from typing import Any, Protocol, runtime_checkable

from .models import UsageRecord, UsageStatus

logger = logging.getLogger(__name__)


@runtime_checkable
class UsageSink(Protocol):
    """Anything that can durably append a UsageRecord."""

    def append(self, record: UsageRecord) -> UsageRecord: ...


class UsageRecorder:
    """Append one record per inference call. Raises if the sink fails."""

    def __init__(self, sink: UsageSink):
        self._sink = sink

    async def record(
        self,
        *,
        user_id: str,
        provider: str,
        model: str,
        project_id: str | None = None,
        agent_id: str | None = None,
        action: str | None = None,
        tokens_prompt: int = 0,
        tokens_completion: int = 0,
        tokens_total: int | None = None,
        status: str = UsageStatus.SUCCESS,
        duration_ms: int = 0,
        metadata: dict[str, Any] | None = None,
    ) -> UsageRecord:
        record = UsageRecord(
            user_id=user_id,
            project_id=project_id,
            agent_id=agent_id,
            provider=provider,
            model=model,
            action=action,
            tokens_prompt=int(tokens_prompt),
            tokens_completion=int(tokens_completion),
            tokens_total=int(
                tokens_total if tokens_total is not None else tokens_prompt + tokens_completion
            ),
            status=status,
            duration_ms=int(duration_ms),
            metadata=dict(metadata or {}),
        )
        return await asyncio.to_thread(self._sink.append, record)


class BestEffortRecorder:
    """
    Wraps a UsageRecorder so recording can never raise.

    Usage:
        usage = BestEffortRecorder(UsageRecorder(ledger))
        await usage.record(user_id="u1", provider="openai", model="gpt-4o", ...)
    """

    def __init__(self, recorder: UsageRecorder):
        self._recorder = recorder
        self._failures = 0

    @classmethod
    def for_sink(cls, sink: UsageSink) -> "BestEffortRecorder":
        return cls(UsageRecorder(sink))

    async def record(self, **fields: Any) -> UsageRecord | None:
        try:
            return await self._recorder.record(**fields)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._failures += 1
            logger.error(
                f"[Usage] Failed to record usage for "
                f"{fields.get('provider')}/{fields.get('model')} "
                f"agent={fields.get('agent_id')}: {type(e).__name__}: {e}"
            )
            return None

    @property
    def failure_count(self) -> int:
        """Number of swallowed recording failures since construction."""
        return self._failures
