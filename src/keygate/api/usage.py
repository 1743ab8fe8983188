"""Usage statistics endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from keygate.core.usage_ledger import UsageLedger
from keygate.dependencies import CurrentCaller, DbSession
from keygate.schemas.usage import DailyPlanStatsResponse, UsageStatsResponse

router = APIRouter()


@router.get("/usage/stats", response_model=UsageStatsResponse)
async def usage_stats(db: DbSession, caller: CurrentCaller):
    """Today's stored counters; zeros when nothing has been used yet."""
    ledger = UsageLedger(db)
    today = ledger.today()
    record = await ledger.get_record(caller.identity, today)
    if record is None:
        return UsageStatsResponse(
            search_count=0, api_call_count=0, search_limit=0, api_call_limit=0, date=today
        )
    return UsageStatsResponse(
        search_count=record.search_count,
        api_call_count=record.api_call_count,
        search_limit=record.search_limit,
        api_call_limit=record.api_call_limit,
        date=record.usage_date,
    )


@router.get("/plans/daily-stats", response_model=DailyPlanStatsResponse)
async def daily_plan_stats(db: DbSession, caller: CurrentCaller):
    """Today's counts against the caller's current plan limits."""
    stats = await UsageLedger(db).daily_stats(caller.identity, caller.plan_tier)
    return DailyPlanStatsResponse(
        plan_type=stats.plan_tier.value,
        search_count=stats.search_count,
        api_call_count=stats.api_call_count,
        search_limit=stats.search_limit,
        api_call_limit=stats.api_call_limit,
        searches_remaining=stats.searches_remaining,
        api_calls_remaining=stats.api_calls_remaining,
        date=stats.usage_date,
    )
