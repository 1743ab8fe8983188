"""The search pipeline: quota, provider call, search log."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from keygate.core.errors import persistence_guard
from keygate.core.identity import Caller
from keygate.core.query_validation import validate_search
from keygate.core.search_provider import SearchProvider
from keygate.core.usage_ledger import UsageLedger
from keygate.models.search_log import SearchLog

logger = logging.getLogger(__name__)


async def perform_search(
    session: AsyncSession,
    caller: Caller,
    provider: SearchProvider,
    search_type: str,
    query: str,
) -> tuple[str, str, Any]:
    """Run one search for ``caller``. Returns ``(type, query, cleaned data)``.

    The quota is consumed before the provider is called; a provider failure
    after that point still counts against the day.
    """
    kind, cleaned = validate_search(search_type, query)

    await UsageLedger(session).check_and_increment(caller.identity, caller.plan_tier)

    data = await provider.search(kind, cleaned)

    async with persistence_guard("search log", session):
        session.add(SearchLog(owner_identity=caller.identity, search_type=kind, query=cleaned))
        await session.commit()

    logger.info("Search %s by %s via %s", kind, caller.identity, caller.via)
    return kind, cleaned, data
