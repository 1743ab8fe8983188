"""Search API endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from keygate.core.search_service import perform_search
from keygate.dependencies import CurrentCaller, DbSession, Provider, RateLimit
from keygate.schemas.search import SearchRequest, SearchResponse
from keygate.utils.datetime import utcnow

router = APIRouter()


@router.post("", response_model=SearchResponse, dependencies=[RateLimit])
async def search(request: SearchRequest, db: DbSession, caller: CurrentCaller, provider: Provider):
    kind, query, data = await perform_search(db, caller, provider, request.type, request.query)
    return SearchResponse(scan_type=kind, query=query, timestamp=utcnow(), csint=data)
