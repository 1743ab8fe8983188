"""Access key schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from keygate.config import settings
from keygate.core.credentials import obfuscate
from keygate.core.plans import PlanTier
from keygate.models.access_key import AccessKey
from keygate.utils.datetime import as_utc


class AccessKeyIssue(BaseModel):
    plan_tier: PlanTier = PlanTier.BASIC
    duration_days: int = Field(default=settings.default_key_duration_days, ge=1, le=3650)


class AccessKeyBatchIssue(AccessKeyIssue):
    count: int = Field(ge=1, le=settings.max_batch_size)


class AccessKeyResponse(BaseModel):
    id: int
    key_preview: str
    plan_tier: str
    owner_identity: str | None
    is_active: bool
    duration_days: int
    redeemed_at: datetime | None
    expires_at: datetime | None
    last_used_at: datetime | None
    created_at: datetime

    @classmethod
    def from_key(cls, access_key: AccessKey, **extra) -> "AccessKeyResponse":
        return cls(
            id=access_key.id,
            key_preview=obfuscate(access_key.secret),
            plan_tier=access_key.plan_tier,
            owner_identity=access_key.owner_identity,
            is_active=access_key.is_active,
            duration_days=access_key.duration_days,
            redeemed_at=as_utc(access_key.redeemed_at),
            # The stored placeholder means nothing until redemption
            expires_at=as_utc(access_key.expires_at) if access_key.redeemed_at else None,
            last_used_at=as_utc(access_key.last_used_at),
            created_at=as_utc(access_key.created_at),
            **extra,
        )


class AccessKeyCreated(AccessKeyResponse):
    """Response when issuing a key - includes the secret itself."""
    key: str

    @classmethod
    def from_key(cls, access_key: AccessKey, **extra) -> "AccessKeyCreated":
        return super().from_key(access_key, key=access_key.secret, **extra)


class AccessKeyBatchCreated(BaseModel):
    count: int
    keys: list[AccessKeyCreated]


class AccessKeyListResponse(BaseModel):
    items: list[AccessKeyResponse]
    total: int
    offset: int
    limit: int
