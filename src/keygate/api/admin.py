"""Admin API endpoints: admin login and access key management."""

from __future__ import annotations

from fastapi import APIRouter, Query, Response

from keygate.config import settings
from keygate.core.admin_auth import verify_admin_credentials
from keygate.core.errors import AuthError
from keygate.core.key_lifecycle import KeyLifecycle
from keygate.core.plans import PlanTier
from keygate.core.session_lifecycle import SessionLifecycle
from keygate.dependencies import ADMIN_COOKIE, AdminUser, DbSession, RateLimit
from keygate.schemas.access_key import (
    AccessKeyBatchCreated,
    AccessKeyBatchIssue,
    AccessKeyCreated,
    AccessKeyIssue,
    AccessKeyListResponse,
    AccessKeyResponse,
)
from keygate.schemas.auth import AdminLoginRequest, MessageResponse, TokenResponse
from keygate.utils.datetime import as_utc

router = APIRouter()


@router.post("/login", response_model=TokenResponse, dependencies=[RateLimit])
async def admin_login(request: AdminLoginRequest, response: Response, db: DbSession):
    if not verify_admin_credentials(request.username, request.password):
        raise AuthError(AuthError.INVALID_CREDENTIALS)

    admin_session = await SessionLifecycle.for_admins(db).create_session(request.username)
    expires_at = as_utc(admin_session.expires_at)
    response.set_cookie(
        ADMIN_COOKIE,
        admin_session.token,
        expires=expires_at,
        path="/",
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
    )
    return TokenResponse(access_token=admin_session.token, expires_at=expires_at)


@router.post("/logout", response_model=MessageResponse)
async def admin_logout(
    response: Response,
    db: DbSession,
    admin: AdminUser,
):
    await SessionLifecycle.for_admins(db).revoke(admin.token)
    response.delete_cookie(ADMIN_COOKIE, path="/")
    return MessageResponse(message="Logged out")


@router.post("/keys", response_model=AccessKeyCreated)
async def issue_key(request: AccessKeyIssue, db: DbSession, admin: AdminUser):
    key = await KeyLifecycle(db).issue(
        request.plan_tier, request.duration_days, created_by=admin.subject_identity
    )
    return AccessKeyCreated.from_key(key)


@router.post("/keys/batch", response_model=AccessKeyBatchCreated)
async def issue_key_batch(request: AccessKeyBatchIssue, db: DbSession, admin: AdminUser):
    keys = await KeyLifecycle(db).issue_batch(
        request.plan_tier, request.duration_days, request.count, created_by=admin.subject_identity
    )
    return AccessKeyBatchCreated(count=len(keys), keys=[AccessKeyCreated.from_key(k) for k in keys])


@router.get("/keys", response_model=AccessKeyListResponse)
async def list_keys(
    db: DbSession,
    admin: AdminUser,
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    plan_tier: PlanTier | None = None,
    active: bool | None = None,
):
    items, total = await KeyLifecycle(db).list(offset, limit, plan_tier=plan_tier, active=active)
    return AccessKeyListResponse(
        items=[AccessKeyResponse.from_key(k) for k in items],
        total=total,
        offset=offset,
        limit=limit,
    )


@router.get("/keys/{key_id}", response_model=AccessKeyResponse)
async def get_key(key_id: int, db: DbSession, admin: AdminUser):
    return AccessKeyResponse.from_key(await KeyLifecycle(db).get(key_id))


@router.post("/keys/{key_id}/revoke", response_model=AccessKeyResponse)
async def revoke_key(key_id: int, db: DbSession, admin: AdminUser):
    return AccessKeyResponse.from_key(await KeyLifecycle(db).revoke(key_id))
