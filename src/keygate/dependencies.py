"""FastAPI dependency injection."""

from __future__ import annotations

import math
from typing import Annotated

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from keygate.config import settings
from keygate.core.errors import AuthError, RateLimited
from keygate.core.identity import AccessKeyStrategy, Caller, CredentialStrategy, SessionTokenStrategy
from keygate.core.rate_limiter import Limited, RateLimiter
from keygate.core.search_provider import SearchProvider
from keygate.core.session_lifecycle import SessionLifecycle
from keygate.db.session import get_session
from keygate.models.session import AdminSession

ADMIN_COOKIE = "admin_token"
USER_COOKIE = "user_token"

security = HTTPBearer(auto_error=False)


async def get_db() -> AsyncSession:
    """Get a database session."""
    async for session in get_session():
        yield session


def bearer_or_cookie(
    credentials: HTTPAuthorizationCredentials | None, request: Request, cookie: str
) -> str | None:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(cookie)


def client_key(request: Request, trusted_proxies: int | None = None) -> str:
    """Network origin of the request.

    With N trusted proxies, each appends the address it saw to
    X-Forwarded-For, so the client is the Nth hop from the right. Hops further
    left are client-supplied and ignored. Without trusted proxies the header
    is ignored entirely and the socket peer is used.
    """
    if trusted_proxies is None:
        trusted_proxies = settings.trusted_proxy_count
    forwarded = request.headers.get("x-forwarded-for")
    if trusted_proxies > 0 and forwarded:
        hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
        if hops:
            return hops[-min(trusted_proxies, len(hops))]
    if request.client:
        return request.client.host
    return "unknown"


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_search_provider(request: Request) -> SearchProvider:
    return request.app.state.search_provider


async def enforce_rate_limit(
    request: Request,
    response: Response,
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> None:
    decision = limiter.admit(client_key(request))
    if isinstance(decision, Limited):
        raise RateLimited(decision.retry_after)
    response.headers["X-RateLimit-Limit"] = str(limiter.max_requests)
    response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
    response.headers["X-RateLimit-Reset"] = str(math.ceil(decision.reset_in))


def credential_strategy(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> CredentialStrategy:
    """Pick the credential path: direct access key headers, else a session token."""
    api_key = request.headers.get("x-api-key")
    if api_key:
        return AccessKeyStrategy(secret=api_key, identity=request.headers.get("x-identity", ""))

    token = bearer_or_cookie(credentials, request, USER_COOKIE)
    if not token:
        raise AuthError(AuthError.NO_SESSION, "Not authenticated")
    return SessionTokenStrategy(token=token)


async def get_caller(
    strategy: Annotated[CredentialStrategy, Depends(credential_strategy)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Caller:
    return await strategy.resolve(db)


async def get_admin_session(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AdminSession:
    token = bearer_or_cookie(credentials, request, ADMIN_COOKIE)
    admin_session = await SessionLifecycle.for_admins(db).validate(token)
    if admin_session is None:
        raise AuthError(AuthError.NO_SESSION, "Admin authentication required")
    return admin_session


# Common dependency aliases
DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentCaller = Annotated[Caller, Depends(get_caller)]
AdminUser = Annotated[AdminSession, Depends(get_admin_session)]
Provider = Annotated[SearchProvider, Depends(get_search_provider)]
RateLimit = Depends(enforce_rate_limit)
