"""Access key issuance, redemption, validation and revocation.

A key is issued unredeemed with a placeholder expiry. The first successful
use binds it to the caller's identity and starts the validity window. The
binding is a conditional UPDATE (``WHERE owner_identity IS NULL``) so that
exactly one of several concurrent first uses wins; the others re-read the
row and are treated as ordinary uses of an already redeemed key.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from keygate.config import settings
from keygate.core.credentials import generate_key, obfuscate
from keygate.core.errors import AuthError, InvalidArgument, NotFound, persistence_guard
from keygate.core.plans import PlanTier, parse_plan_tier
from keygate.db.queries import paginate
from keygate.models.access_key import PLACEHOLDER_EXPIRY, AccessKey, Redeemed, Unredeemed
from keygate.utils.datetime import utcnow

logger = logging.getLogger(__name__)

MAX_DURATION_DAYS = 3650


def _require_duration(duration_days: int) -> int:
    if not isinstance(duration_days, int) or isinstance(duration_days, bool):
        raise InvalidArgument("Duration must be a whole number of days")
    if duration_days <= 0 or duration_days > MAX_DURATION_DAYS:
        raise InvalidArgument(f"Duration must be between 1 and {MAX_DURATION_DAYS} days")
    return duration_days


def _require_text(value: str | None, what: str) -> str:
    if value is None or not value.strip():
        raise InvalidArgument(f"{what} is required")
    return value.strip()


class KeyLifecycle:
    """Business operations on access keys, bound to one database session."""

    def __init__(self, session: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.session = session
        self.clock = clock

    def _new_key(self, plan_tier: PlanTier, duration_days: int, created_by: str) -> AccessKey:
        return AccessKey(
            secret=generate_key(),
            plan_tier=plan_tier.value,
            duration_days=duration_days,
            is_active=True,
            created_by=created_by,
            owner_identity=None,
            redeemed_at=None,
            expires_at=PLACEHOLDER_EXPIRY,
            last_used_at=None,
            created_at=self.clock(),
        )

    async def issue(
        self,
        plan_tier: str | PlanTier,
        duration_days: int,
        created_by: str = "admin",
    ) -> AccessKey:
        """Create and persist a new unredeemed key."""
        tier = parse_plan_tier(plan_tier)
        _require_duration(duration_days)

        key = self._new_key(tier, duration_days, created_by)
        async with persistence_guard("key issuance", self.session):
            self.session.add(key)
            await self.session.commit()

        logger.info("Issued %s key #%d (%s, %d days)", tier.value, key.id, obfuscate(key.secret), duration_days)
        return key

    async def issue_batch(
        self,
        plan_tier: str | PlanTier,
        duration_days: int,
        count: int,
        created_by: str = "admin",
    ) -> list[AccessKey]:
        """Create ``count`` keys in a single transaction."""
        tier = parse_plan_tier(plan_tier)
        _require_duration(duration_days)
        if not isinstance(count, int) or count <= 0 or count > settings.max_batch_size:
            raise InvalidArgument(f"Count must be between 1 and {settings.max_batch_size}")

        keys = [self._new_key(tier, duration_days, created_by) for _ in range(count)]
        async with persistence_guard("batch key issuance", self.session):
            self.session.add_all(keys)
            await self.session.commit()

        logger.info("Issued batch of %d %s keys (%d days)", count, tier.value, duration_days)
        return keys

    async def _load(self, *criteria) -> AccessKey | None:
        result = await self.session.execute(
            select(AccessKey).where(*criteria).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def redeem_or_validate(self, secret: str, identity: str) -> AccessKey:
        """Redeem an unused key for ``identity``, or validate an existing binding.

        Raises ``AuthError`` with reason ``invalid_key``, ``identity_mismatch``
        or ``expired``.
        """
        secret = _require_text(secret, "Access key")
        identity = _require_text(identity, "Identity")

        async with persistence_guard("key redemption", self.session):
            key = await self._load(AccessKey.secret == secret)
            if key is None or not key.is_active:
                logger.info("Rejected unknown or inactive key %s", obfuscate(secret))
                raise AuthError(AuthError.INVALID_KEY)

            won = False
            if isinstance(key.state, Unredeemed):
                key, won = await self._redeem(key, identity)

            state: Redeemed = key.state
            if state.identity != identity:
                logger.warning("Key #%d presented by a second identity", key.id)
                raise AuthError(AuthError.IDENTITY_MISMATCH)

            now = self.clock()
            if now > state.expires_at:
                logger.info("Key #%d expired at %s", key.id, state.expires_at.isoformat())
                raise AuthError(AuthError.EXPIRED)

            if not won:
                result = await self.session.execute(
                    update(AccessKey)
                    .where(AccessKey.id == key.id, AccessKey.is_active.is_(True))
                    .values(last_used_at=now)
                    .execution_options(synchronize_session=False)
                )
                await self.session.commit()
                if result.rowcount == 0:
                    # Revoked between the read and the write
                    raise AuthError(AuthError.INVALID_KEY)
                key.last_used_at = now

        return key

    async def _redeem(self, key: AccessKey, identity: str) -> tuple[AccessKey, bool]:
        now = self.clock()
        expires_at = now + timedelta(days=key.duration_days)
        result = await self.session.execute(
            update(AccessKey)
            .where(
                AccessKey.id == key.id,
                AccessKey.owner_identity.is_(None),
                AccessKey.is_active.is_(True),
            )
            .values(
                owner_identity=identity,
                redeemed_at=now,
                expires_at=expires_at,
                last_used_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

        won = result.rowcount == 1
        if won:
            logger.info("Key #%d redeemed, valid until %s", key.id, expires_at.isoformat())
        else:
            logger.info("Key #%d redeemed concurrently by another request", key.id)

        # Winner and loser both continue from the stored row
        reloaded = await self._load(AccessKey.id == key.id)
        if reloaded is None or not reloaded.is_active or reloaded.owner_identity is None:
            raise AuthError(AuthError.INVALID_KEY)
        return reloaded, won

    async def require_usable(self, key_id: int, identity: str) -> AccessKey:
        """Re-check a key bound to an existing session: active, same owner, unexpired."""
        async with persistence_guard("key lookup", self.session):
            key = await self._load(AccessKey.id == key_id)
        if key is None or not key.is_active:
            raise AuthError(AuthError.INVALID_KEY)
        if key.owner_identity != identity:
            raise AuthError(AuthError.IDENTITY_MISMATCH)
        if key.is_expired(self.clock()):
            raise AuthError(AuthError.EXPIRED)
        return key

    async def revoke(self, key_id: int) -> AccessKey:
        """Deactivate a key permanently. Revoking an inactive key is a no-op."""
        async with persistence_guard("key revocation", self.session):
            result = await self.session.execute(
                update(AccessKey)
                .where(AccessKey.id == key_id)
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
            if result.rowcount == 0:
                raise NotFound(f"Access key {key_id} not found")
            key = await self._load(AccessKey.id == key_id)

        logger.info("Revoked key #%d", key_id)
        return key

    async def get(self, key_id: int) -> AccessKey:
        async with persistence_guard("key lookup", self.session):
            key = await self._load(AccessKey.id == key_id)
        if key is None:
            raise NotFound(f"Access key {key_id} not found")
        return key

    async def list(
        self,
        offset: int = 0,
        limit: int = 50,
        plan_tier: str | None = None,
        active: bool | None = None,
    ) -> tuple[Sequence[AccessKey], int]:
        """Keys newest first, with the total count for pagination."""
        stmt = select(AccessKey)
        if plan_tier:
            stmt = stmt.where(AccessKey.plan_tier == parse_plan_tier(plan_tier).value)
        if active is not None:
            stmt = stmt.where(AccessKey.is_active.is_(active))
        stmt = stmt.order_by(AccessKey.created_at.desc(), AccessKey.id.desc())
        async with persistence_guard("key listing", self.session):
            return await paginate(self.session, stmt, offset, limit)
