"""Caller resolution for the two credential paths.

A request authenticates either with a user session token (issued at login)
or directly with an access key plus identity. Both produce a ``Caller`` so
quota and search code never branch on how the caller got in.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from keygate.core.errors import AuthError
from keygate.core.key_lifecycle import KeyLifecycle
from keygate.core.session_lifecycle import SessionLifecycle


@dataclass(frozen=True)
class Caller:
    identity: str
    key_id: int
    plan_tier: str
    via: str


class CredentialStrategy(Protocol):
    async def resolve(self, session: AsyncSession) -> Caller: ...


@dataclass(frozen=True)
class SessionTokenStrategy:
    token: str

    async def resolve(self, session: AsyncSession) -> Caller:
        user_session = await SessionLifecycle.for_users(session).validate(self.token)
        if user_session is None:
            raise AuthError(AuthError.NO_SESSION)

        # Revocation or expiry of the key ends every session derived from it
        key = await KeyLifecycle(session).require_usable(
            user_session.bound_key_id, user_session.subject_identity
        )
        return Caller(
            identity=user_session.subject_identity,
            key_id=key.id,
            plan_tier=key.plan_tier,
            via="session",
        )


@dataclass(frozen=True)
class AccessKeyStrategy:
    secret: str
    identity: str

    async def resolve(self, session: AsyncSession) -> Caller:
        key = await KeyLifecycle(session).redeem_or_validate(self.secret, self.identity)
        return Caller(
            identity=key.owner_identity,
            key_id=key.id,
            plan_tier=key.plan_tier,
            via="access_key",
        )
