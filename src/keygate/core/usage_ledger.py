"""Per-identity daily usage counters and quota enforcement.

Records are keyed by ``(owner_identity, usage_date)`` with ``usage_date`` the
UTC calendar day, so rollover needs no reset job: a new day simply has no
row yet. Limits are re-derived from the caller's current plan tier on every
check, so an upgrade takes effect immediately; the stored limit columns are
refreshed on each successful increment for display.

``check_and_increment`` is a single conditional UPDATE
(``WHERE search_count < limit AND api_call_count < limit``). The database
serialises concurrent updates of the row, so the counters never pass the
limit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from keygate.core.errors import InvalidArgument, QuotaExceeded, persistence_guard
from keygate.core.plans import PlanLimits, PlanTier, limits_for, parse_plan_tier
from keygate.db.queries import insert_if_absent
from keygate.models.usage_record import UsageRecord
from keygate.utils.datetime import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DailyStats:
    plan_tier: PlanTier
    usage_date: date
    search_count: int
    api_call_count: int
    search_limit: int
    api_call_limit: int

    @property
    def searches_remaining(self) -> int:
        return max(self.search_limit - self.search_count, 0)

    @property
    def api_calls_remaining(self) -> int:
        return max(self.api_call_limit - self.api_call_count, 0)


class UsageLedger:
    def __init__(self, session: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.session = session
        self.clock = clock

    def today(self) -> date:
        return self.clock().date()

    async def get_record(self, identity: str, day: date) -> UsageRecord | None:
        async with persistence_guard("usage lookup", self.session):
            return await self._load(identity, day)

    async def _load(self, identity: str, day: date) -> UsageRecord | None:
        result = await self.session.execute(
            select(UsageRecord)
            .where(UsageRecord.owner_identity == identity, UsageRecord.usage_date == day)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _ensure(self, identity: str, day: date, limits: PlanLimits) -> None:
        created = await insert_if_absent(
            self.session,
            UsageRecord,
            {
                "owner_identity": identity,
                "usage_date": day,
                "search_count": 0,
                "api_call_count": 0,
                "search_limit": limits.searches,
                "api_call_limit": limits.api_calls,
            },
            conflict_columns=["owner_identity", "usage_date"],
        )
        if created:
            logger.debug("Started usage record for %s on %s", identity, day.isoformat())

    async def get_or_create_today_record(
        self, identity: str, plan_tier: str | PlanTier
    ) -> UsageRecord:
        """Today's record for ``identity``, created with zero counts if absent."""
        identity = _require_identity(identity)
        limits = limits_for(plan_tier)
        day = self.today()
        async with persistence_guard("usage record creation", self.session):
            await self._ensure(identity, day, limits)
            await self.session.commit()
            return await self._load(identity, day)

    async def check_and_increment(
        self, identity: str, plan_tier: str | PlanTier
    ) -> UsageRecord:
        """Count one search and one provider call, or raise ``QuotaExceeded``.

        Nothing is incremented when either limit has been reached.
        """
        identity = _require_identity(identity)
        limits = limits_for(plan_tier)
        day = self.today()

        async with persistence_guard("quota increment", self.session):
            await self._ensure(identity, day, limits)
            result = await self.session.execute(
                update(UsageRecord)
                .where(
                    UsageRecord.owner_identity == identity,
                    UsageRecord.usage_date == day,
                    UsageRecord.search_count < limits.searches,
                    UsageRecord.api_call_count < limits.api_calls,
                )
                .values(
                    search_count=UsageRecord.search_count + 1,
                    api_call_count=UsageRecord.api_call_count + 1,
                    search_limit=limits.searches,
                    api_call_limit=limits.api_calls,
                )
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
            record = await self._load(identity, day)

        if result.rowcount == 0:
            if record.search_count >= limits.searches:
                exc = QuotaExceeded(QuotaExceeded.SEARCHES, limits.searches)
            else:
                exc = QuotaExceeded(QuotaExceeded.API_CALLS, limits.api_calls)
            logger.info("Quota reached for %s: %s limit %d", identity, exc.limit_kind, exc.limit)
            raise exc

        return record

    async def daily_stats(self, identity: str, plan_tier: str | PlanTier) -> DailyStats:
        """Today's counts against the live plan limits, without creating a record."""
        tier = parse_plan_tier(plan_tier)
        limits = limits_for(tier)
        day = self.today()
        record = await self.get_record(_require_identity(identity), day)
        return DailyStats(
            plan_tier=tier,
            usage_date=day,
            search_count=record.search_count if record else 0,
            api_call_count=record.api_call_count if record else 0,
            search_limit=limits.searches,
            api_call_limit=limits.api_calls,
        )


def _require_identity(identity: str | None) -> str:
    if not identity or not identity.strip():
        raise InvalidArgument("Identity is required")
    return identity.strip()
