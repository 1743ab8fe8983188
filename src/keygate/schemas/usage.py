"""Usage statistics schemas."""

from __future__ import annotations

import datetime

from pydantic import BaseModel


class UsageStatsResponse(BaseModel):
    search_count: int
    api_call_count: int
    search_limit: int
    api_call_limit: int
    date: datetime.date


class DailyPlanStatsResponse(UsageStatsResponse):
    plan_type: str
    searches_remaining: int
    api_calls_remaining: int
