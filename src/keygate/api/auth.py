"""User auth API endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials

from keygate.config import settings
from keygate.core.errors import AuthError
from keygate.core.identity import SessionTokenStrategy
from keygate.core.key_lifecycle import KeyLifecycle
from keygate.core.session_lifecycle import SessionLifecycle
from keygate.dependencies import USER_COOKIE, DbSession, RateLimit, bearer_or_cookie, security
from keygate.schemas.auth import AuthCheckResponse, MessageResponse, TokenResponse, UserLoginRequest
from keygate.utils.datetime import as_utc

logger = logging.getLogger(__name__)

router = APIRouter()

Credentials = Annotated[HTTPAuthorizationCredentials | None, Depends(security)]


def _set_session_cookie(response: Response, token: str, expires_at) -> None:
    response.set_cookie(
        USER_COOKIE,
        token,
        expires=expires_at,
        path="/",
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
    )


@router.post("/login", response_model=TokenResponse, dependencies=[RateLimit])
async def login(request: UserLoginRequest, response: Response, db: DbSession):
    """Redeem or validate an access key and open a user session."""
    key = await KeyLifecycle(db).redeem_or_validate(request.key, request.email)
    user_session = await SessionLifecycle.for_users(db).create_session(
        key.owner_identity, bound_key_id=key.id
    )
    expires_at = as_utc(user_session.expires_at)
    _set_session_cookie(response, user_session.token, expires_at)
    return TokenResponse(access_token=user_session.token, expires_at=expires_at)


@router.get("/check", response_model=AuthCheckResponse)
async def check(request: Request, response: Response, db: DbSession, credentials: Credentials):
    token = bearer_or_cookie(credentials, request, USER_COOKIE)
    if not token:
        response.status_code = 401
        return AuthCheckResponse(authenticated=False)
    try:
        caller = await SessionTokenStrategy(token).resolve(db)
    except AuthError as e:
        logger.debug("Auth check failed: %s", e.reason)
        response.status_code = 401
        return AuthCheckResponse(authenticated=False)
    return AuthCheckResponse(authenticated=True, email=caller.identity, plan_tier=caller.plan_tier)


@router.post("/refresh", response_model=TokenResponse, dependencies=[RateLimit])
async def refresh(request: Request, response: Response, db: DbSession, credentials: Credentials):
    token = bearer_or_cookie(credentials, request, USER_COOKIE)
    if not token:
        raise AuthError(AuthError.NO_SESSION)
    # A revoked or expired key must not yield fresh credentials
    await SessionTokenStrategy(token).resolve(db)
    user_session = await SessionLifecycle.for_users(db).refresh(token)
    expires_at = as_utc(user_session.expires_at)
    _set_session_cookie(response, user_session.token, expires_at)
    return TokenResponse(access_token=user_session.token, expires_at=expires_at)


@router.post("/logout", response_model=MessageResponse)
async def logout(request: Request, response: Response, db: DbSession, credentials: Credentials):
    token = bearer_or_cookie(credentials, request, USER_COOKIE)
    await SessionLifecycle.for_users(db).revoke(token)
    response.delete_cookie(USER_COOKIE, path="/")
    return MessageResponse(message="Logged out")
