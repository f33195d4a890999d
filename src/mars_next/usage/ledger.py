"""
UsageLedger -- append-only SQLite store of per-call token/latency records.

Every inference call the platform makes (agent or synthesis) lands here as
one UsageRecord. Rows are never updated or deleted by the application.
Queries power the usage dashboard: paginated records and an aggregated
summary with cost estimates.

Security:
  - Metadata is size-limited before storage
  - All SQL is parameterized
"""

import json
import logging
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path

from ..security.validators import validate_dict_size
from .costs import estimate_cost
from .models import (
    DailyUsage,
    ModelUsage,
    ProjectUsage,
    ProviderUsage,
    UsageRecord,
    UsageStatus,
    UsageSummary,
)
from .schema import DEFAULT_DB_PATH, dict_from_row, get_connection, initialize_schema

logger = logging.getLogger(__name__)

MAX_METADATA_BYTES = 20_000
MAX_PAGE_SIZE = 500


def _iso(value: datetime | str) -> str:
    if isinstance(value, str):
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _percentage(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole > 0 else 0.0


class UsageLedger:
    """
    SQLite-backed usage ledger. Implements the UsageSink protocol.

    Usage:
        ledger = UsageLedger(Path("data/usage.db"))
        ledger.append(UsageRecord(user_id="u1", provider="openai", model="gpt-4o"))

        records, total = ledger.get_records("u1", start, end, page=1, page_size=50)
        summary = ledger.get_usage_summary("u1", start, end)
    """

    def __init__(self, db_path: Path = DEFAULT_DB_PATH):
        self._db_path = db_path
        initialize_schema(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def append(self, record: UsageRecord) -> UsageRecord:
        """Insert one record. Returns it unchanged (id and timestamp are client-generated)."""
        validate_dict_size(record.metadata, "metadata", max_size_bytes=MAX_METADATA_BYTES)

        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """INSERT INTO api_usage
                   (id, user_id, project_id, agent_id, provider, model, action,
                    tokens_prompt, tokens_completion, tokens_total, status,
                    duration_ms, metadata_json, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    record.id,
                    record.user_id,
                    record.project_id,
                    record.agent_id,
                    record.provider,
                    record.model,
                    record.action,
                    record.tokens_prompt,
                    record.tokens_completion,
                    record.tokens_total,
                    record.status,
                    record.duration_ms,
                    json.dumps(record.metadata, default=str),
                    record.created_at,
                ),
            )
            conn.commit()
            logger.debug(
                f"[Usage] Recorded {record.status} {record.provider}/{record.model} "
                f"agent={record.agent_id} tokens={record.tokens_total}"
            )
            return record
        finally:
            conn.close()

    def get_records(
        self,
        user_id: str,
        start: datetime | str,
        end: datetime | str,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[UsageRecord], int]:
        """Newest-first page of a user's records plus the total matching count."""
        page = max(page, 1)
        page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
        params = [user_id, _iso(start), _iso(end)]
        where = "WHERE user_id = ? AND created_at >= ? AND created_at <= ?"

        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                f"SELECT * FROM api_usage {where} ORDER BY created_at DESC LIMIT ? OFFSET ?",
                params + [page_size, (page - 1) * page_size],
            ).fetchall()
            total = conn.execute(f"SELECT COUNT(*) FROM api_usage {where}", params).fetchone()[0]
        finally:
            conn.close()
        return [self._row_to_record(dict_from_row(r)) for r in rows], int(total)

    def count(
        self,
        user_id: str | None = None,
        agent_id: str | None = None,
        action: str | None = None,
    ) -> int:
        """Count rows, optionally filtered. Mostly useful for tests and health checks."""
        query = "SELECT COUNT(*) FROM api_usage WHERE 1 = 1"
        params: list = []
        if user_id:
            query += " AND user_id = ?"
            params.append(user_id)
        if agent_id:
            query += " AND agent_id = ?"
            params.append(agent_id)
        if action:
            query += " AND action = ?"
            params.append(action)

        conn = get_connection(self._db_path)
        try:
            return int(conn.execute(query, params).fetchone()[0])
        finally:
            conn.close()

    def get_usage_summary(
        self,
        user_id: str,
        start: datetime | str,
        end: datetime | str,
    ) -> UsageSummary:
        """Aggregate tokens and estimated cost by day, provider, model and project."""
        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                """SELECT project_id, provider, model, status, tokens_prompt,
                          tokens_completion, tokens_total, created_at
                   FROM api_usage
                   WHERE user_id = ? AND created_at >= ? AND created_at <= ?
                   ORDER BY created_at ASC""",
                (user_id, _iso(start), _iso(end)),
            ).fetchall()
        finally:
            conn.close()

        summary = UsageSummary()
        if not rows:
            return summary

        by_provider: dict[str, int] = defaultdict(int)
        by_model: dict[str, list] = {}
        by_project: dict[str, int] = defaultdict(int)
        by_day: dict[str, int] = defaultdict(int)

        for row in rows:
            tokens = row["tokens_total"]
            summary.total_tokens += tokens
            summary.total_calls += 1
            if row["status"] == UsageStatus.ERROR:
                summary.error_calls += 1
            summary.total_cost_estimate += estimate_cost(
                row["model"], row["tokens_prompt"], row["tokens_completion"]
            )
            by_provider[row["provider"]] += tokens
            by_model.setdefault(row["model"], [row["provider"], 0])[1] += tokens
            if row["project_id"]:
                by_project[row["project_id"]] += tokens
            by_day[row["created_at"][:10]] += tokens

        total = summary.total_tokens
        summary.daily_usage = [DailyUsage(date=d, tokens=t) for d, t in sorted(by_day.items())]
        summary.provider_usage = sorted(
            (ProviderUsage(p, t, _percentage(t, total)) for p, t in by_provider.items()),
            key=lambda u: u.tokens,
            reverse=True,
        )
        summary.model_usage = sorted(
            (ModelUsage(m, p, t, _percentage(t, total)) for m, (p, t) in by_model.items()),
            key=lambda u: u.tokens,
            reverse=True,
        )
        summary.project_usage = sorted(
            (ProjectUsage(p, t, _percentage(t, total)) for p, t in by_project.items()),
            key=lambda u: u.tokens,
            reverse=True,
        )
        return summary

    def _row_to_record(self, d: dict) -> UsageRecord:
        return UsageRecord(
            id=d["id"],
            user_id=d["user_id"],
            project_id=d.get("project_id"),
            agent_id=d.get("agent_id"),
            provider=d["provider"],
            model=d["model"],
            action=d.get("action"),
            tokens_prompt=d.get("tokens_prompt", 0),
            tokens_completion=d.get("tokens_completion", 0),
            tokens_total=d.get("tokens_total", 0),
            status=d.get("status", UsageStatus.SUCCESS),
            duration_ms=d.get("duration_ms", 0),
            metadata=d.get("metadata", {}),
            created_at=d["created_at"],
        )
