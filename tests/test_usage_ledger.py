"""UsageLedger -- SQLite append, paginated records, aggregated summary, cost estimates."""

from datetime import datetime, timedelta, timezone

import pytest

from mars_next.security import ValidationError
from mars_next.usage import UsageLedger, UsageRecord, UsageStatus, estimate_cost
from mars_next.usage.costs import DEFAULT_COST_PER_1K

START = datetime(2026, 1, 1, tzinfo=timezone.utc)
END = datetime(2026, 12, 31, tzinfo=timezone.utc)


@pytest.fixture
def ledger(tmp_path):
    return UsageLedger(tmp_path / "usage.db")


def _record(day, tokens, provider="openai", model="gpt-4o", project="p1", user="u1", **kwargs):
    created = datetime(2026, 3, day, 12, 0, tzinfo=timezone.utc).isoformat()
    return UsageRecord(
        user_id=user,
        project_id=project,
        provider=provider,
        model=model,
        tokens_prompt=tokens // 2,
        tokens_completion=tokens - tokens // 2,
        tokens_total=tokens,
        created_at=created,
        **kwargs,
    )


class TestAppendAndRead:
    def test_append_round_trips_every_field(self, ledger):
        record = _record(
            1, 100, agent_id="a1", action="agent_response", duration_ms=42,
            metadata={"error_type": "timeout"}, status=UsageStatus.ERROR,
        )
        ledger.append(record)

        records, total = ledger.get_records("u1", START, END)

        assert total == 1
        assert records[0] == record

    def test_records_are_newest_first_and_paginated(self, ledger):
        for day in range(1, 8):
            ledger.append(_record(day, 10))

        page1, total = ledger.get_records("u1", START, END, page=1, page_size=3)
        page3, _ = ledger.get_records("u1", START, END, page=3, page_size=3)

        assert total == 7
        assert [r.created_at[:10] for r in page1] == ["2026-03-07", "2026-03-06", "2026-03-05"]
        assert len(page3) == 1

    def test_records_are_scoped_by_user_and_range(self, ledger):
        ledger.append(_record(1, 10))
        ledger.append(_record(2, 10, user="someone-else"))

        _, total = ledger.get_records("u1", START, END)
        _, in_april = ledger.get_records(
            "u1", datetime(2026, 4, 1, tzinfo=timezone.utc), END
        )

        assert total == 1
        assert in_april == 0

    def test_count_filters(self, ledger):
        ledger.append(_record(1, 10, agent_id="a", action="agent_response"))
        ledger.append(_record(1, 10, agent_id="b", action="agent_response"))
        ledger.append(_record(1, 10, action="synthesis"))

        assert ledger.count() == 3
        assert ledger.count(agent_id="a") == 1
        assert ledger.count(action="synthesis") == 1

    def test_oversized_metadata_is_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.append(_record(1, 10, metadata={"blob": "x" * 50_000}))
        assert ledger.count() == 0

    def test_naive_datetimes_are_treated_as_utc(self, ledger):
        ledger.append(_record(1, 10))

        _, total = ledger.get_records("u1", datetime(2026, 1, 1), datetime(2026, 12, 31))

        assert total == 1


class TestSummary:
    def test_empty_range_gives_zero_summary(self, ledger):
        summary = ledger.get_usage_summary("u1", START, END)

        assert summary.total_tokens == 0
        assert summary.daily_usage == []

    def test_breakdowns_sorted_with_percentages(self, ledger):
        ledger.append(_record(1, 300, provider="openai", model="gpt-4o", project="p1"))
        ledger.append(_record(1, 100, provider="anthropic", model="claude-3-haiku", project="p2"))
        ledger.append(_record(2, 600, provider="openai", model="gpt-4o", project="p1"))
        ledger.append(_record(2, 0, status=UsageStatus.ERROR))

        summary = ledger.get_usage_summary("u1", START, END)

        assert summary.total_tokens == 1000
        assert summary.total_calls == 4
        assert summary.error_calls == 1
        assert [(d.date, d.tokens) for d in summary.daily_usage] == [
            ("2026-03-01", 400),
            ("2026-03-02", 600),
        ]
        assert [p.provider for p in summary.provider_usage] == ["openai", "anthropic"]
        assert [p.percentage for p in summary.provider_usage] == pytest.approx([90.0, 10.0])
        assert summary.model_usage[0].model == "gpt-4o"
        assert summary.model_usage[0].provider == "openai"
        assert summary.project_usage[0].project_id == "p1"
        assert summary.total_cost_estimate > 0


class TestCosts:
    def test_known_model_uses_its_price(self):
        # gpt-4-turbo: 0.01 in, 0.03 out per 1K
        assert estimate_cost("gpt-4-turbo", 1000, 1000) == pytest.approx(0.04)

    def test_unknown_model_uses_default_price(self):
        expected = DEFAULT_COST_PER_1K[0] * 2 + DEFAULT_COST_PER_1K[1]
        assert estimate_cost("mystery-model", 2000, 1000) == pytest.approx(expected)

    def test_zero_tokens_cost_nothing(self):
        assert estimate_cost("gpt-4o", 0, 0) == 0


def test_default_range_helpers_cover_recent_records(ledger):
    ledger.append(UsageRecord(user_id="u1", provider="openai", model="gpt-4o", tokens_total=5))
    now = datetime.now(timezone.utc)

    _, total = ledger.get_records("u1", now - timedelta(days=1), now + timedelta(minutes=1))

    assert total == 1
