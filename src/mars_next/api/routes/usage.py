"""
Usage API -- read-only views over the usage ledger.

  GET /api/v1/usage/summary  -- totals, cost estimate, daily/provider/model/project breakdown
  GET /api/v1/usage/records  -- newest-first paginated records

Both take user_id and an optional start/end range (ISO 8601). The default
range is the last 30 days.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ...usage import UsageLedger
from ...usage.ledger import MAX_PAGE_SIZE
from ..middleware.auth import AuthContext, verify_api_key
from ..middleware.rate_limit import check_rate_limit
from ..models.responses import UsageRecordModel, UsageRecordsResponse, UsageSummaryResponse

logger = logging.getLogger(__name__)
router = APIRouter()

DEFAULT_RANGE_DAYS = 30


def _utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _resolve_range(start: datetime | None, end: datetime | None) -> tuple[datetime, datetime]:
    start, end = _utc(start), _utc(end)
    end = end or datetime.now(timezone.utc)
    start = start or end - timedelta(days=DEFAULT_RANGE_DAYS)
    if start > end:
        raise HTTPException(status_code=400, detail="start must be before end")
    return start, end


@router.get("/usage/summary", response_model=UsageSummaryResponse)
async def usage_summary(
    request: Request,
    user_id: str = Query(..., min_length=1, max_length=128),
    start: datetime | None = None,
    end: datetime | None = None,
    auth: AuthContext = Depends(verify_api_key),
    _rate: None = Depends(check_rate_limit),
) -> UsageSummaryResponse:
    ledger: UsageLedger = request.app.state.ledger
    start, end = _resolve_range(start, end)
    summary = await asyncio.to_thread(ledger.get_usage_summary, user_id, start, end)
    return UsageSummaryResponse.from_summary(summary)


@router.get("/usage/records", response_model=UsageRecordsResponse)
async def usage_records(
    request: Request,
    user_id: str = Query(..., min_length=1, max_length=128),
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
    auth: AuthContext = Depends(verify_api_key),
    _rate: None = Depends(check_rate_limit),
) -> UsageRecordsResponse:
    ledger: UsageLedger = request.app.state.ledger
    start, end = _resolve_range(start, end)
    records, total = await asyncio.to_thread(
        ledger.get_records, user_id, start, end, page, page_size
    )
    return UsageRecordsResponse(
        records=[UsageRecordModel.from_record(r) for r in records],
        total=total,
        page=page,
        page_size=page_size,
    )
