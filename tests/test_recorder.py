"""UsageRecorder and BestEffortRecorder."""

import asyncio

import pytest

from mars_next.usage import BestEffortRecorder, UsageLedger, UsageRecorder, UsageStatus

from .conftest import FailingSink, MemorySink


class CancelledRecorder:
    async def record(self, **fields):
        raise asyncio.CancelledError()


class TestUsageRecorder:
    @pytest.mark.asyncio
    async def test_builds_record_with_generated_id_and_total(self):
        sink = MemorySink()
        recorder = UsageRecorder(sink)

        record = await recorder.record(
            user_id="u1", provider="openai", model="gpt-4o", tokens_prompt=12, tokens_completion=8
        )

        assert record is sink.records[0]
        assert record.tokens_total == 20
        assert record.status == UsageStatus.SUCCESS
        assert record.id and record.created_at
        assert record.metadata == {}

    @pytest.mark.asyncio
    async def test_explicit_total_wins(self):
        recorder = UsageRecorder(MemorySink())

        record = await recorder.record(
            user_id="u1", provider="openai", model="gpt-4o",
            tokens_prompt=12, tokens_completion=8, tokens_total=25,
        )

        assert record.tokens_total == 25

    @pytest.mark.asyncio
    async def test_sink_failure_propagates(self):
        recorder = UsageRecorder(FailingSink())

        with pytest.raises(RuntimeError):
            await recorder.record(user_id="u1", provider="openai", model="gpt-4o")

    @pytest.mark.asyncio
    async def test_writes_to_sqlite_ledger(self, tmp_path):
        ledger = UsageLedger(tmp_path / "usage.db")
        recorder = UsageRecorder(ledger)

        await recorder.record(user_id="u1", provider="anthropic", model="claude-3-haiku", agent_id="a")

        assert ledger.count(user_id="u1", agent_id="a") == 1


class TestBestEffortRecorder:
    @pytest.mark.asyncio
    async def test_returns_record_on_success(self):
        usage = BestEffortRecorder.for_sink(MemorySink())

        record = await usage.record(user_id="u1", provider="openai", model="gpt-4o")

        assert record is not None
        assert usage.failure_count == 0

    @pytest.mark.asyncio
    async def test_swallows_and_logs_sink_failures(self, caplog):
        usage = BestEffortRecorder.for_sink(FailingSink())

        record = await usage.record(user_id="u1", provider="openai", model="gpt-4o", agent_id="a1")

        assert record is None
        assert usage.failure_count == 1
        assert "[Usage] Failed to record usage for openai/gpt-4o agent=a1" in caplog.text

    @pytest.mark.asyncio
    async def test_cancellation_is_not_swallowed(self):
        usage = BestEffortRecorder(CancelledRecorder())

        with pytest.raises(asyncio.CancelledError):
            await usage.record(user_id="u1", provider="openai", model="gpt-4o")
