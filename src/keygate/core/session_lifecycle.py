"""Bearer sessions for admins and users.

Expiry is the only liveness signal. Refresh swaps the token in a single
conditional UPDATE keyed on the old token, so the old token stops validating
in the same statement that activates the new one.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Generic, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from keygate.config import settings
from keygate.core.credentials import generate_token
from keygate.core.errors import AuthError, InvalidArgument, persistence_guard
from keygate.models.session import AdminSession, UserSession
from keygate.utils.datetime import as_utc, utcnow

logger = logging.getLogger(__name__)

S = TypeVar("S", AdminSession, UserSession)


class SessionLifecycle(Generic[S]):
    """Create, validate, refresh and revoke sessions stored in ``model``."""

    def __init__(
        self,
        session: AsyncSession,
        model: type[S],
        window_days: int,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.model = model
        self.window = timedelta(days=window_days)
        self.clock = clock

    @classmethod
    def for_admins(cls, session: AsyncSession, **kwargs) -> "SessionLifecycle[AdminSession]":
        return cls(session, AdminSession, settings.admin_session_days, **kwargs)

    @classmethod
    def for_users(cls, session: AsyncSession, **kwargs) -> "SessionLifecycle[UserSession]":
        return cls(session, UserSession, settings.user_session_days, **kwargs)

    async def create_session(
        self,
        identity: str,
        bound_key_id: int | None = None,
        window_days: int | None = None,
    ) -> S:
        if not identity or not identity.strip():
            raise InvalidArgument("Session identity is required")
        now = self.clock()
        window = timedelta(days=window_days) if window_days is not None else self.window

        values = {
            "token": generate_token(),
            "subject_identity": identity.strip(),
            "expires_at": now + window,
            "created_at": now,
        }
        if self.model is UserSession:
            if bound_key_id is None:
                raise InvalidArgument("User sessions must be bound to an access key")
            values["bound_key_id"] = bound_key_id

        record = self.model(**values)
        async with persistence_guard("session creation", self.session):
            self.session.add(record)
            await self.session.commit()

        logger.info("Created %s for %s", self.model.__tablename__[:-1], record.subject_identity)
        return record

    async def _by_token(self, token: str) -> S | None:
        result = await self.session.execute(
            select(self.model)
            .where(self.model.token == token)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def validate(self, token: str | None) -> S | None:
        """Return the live session for ``token``, or None."""
        if not token:
            return None
        async with persistence_guard("session validation", self.session):
            record = await self._by_token(token)
        if record is None or self.clock() >= as_utc(record.expires_at):
            return None
        return record

    async def refresh(self, token: str | None) -> S:
        """Replace ``token`` with a fresh one and restart the window."""
        if not token:
            raise AuthError(AuthError.NO_SESSION)
        now = self.clock()
        new_token = generate_token()

        async with persistence_guard("session refresh", self.session):
            result = await self.session.execute(
                update(self.model)
                .where(self.model.token == token, self.model.expires_at > now)
                .values(token=new_token, expires_at=now + self.window)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
            if result.rowcount == 0:
                logger.info("Refresh rejected for unknown or expired %s", self.model.__tablename__[:-1])
                raise AuthError(AuthError.NO_SESSION)
            record = await self._by_token(new_token)

        return record

    async def revoke(self, token: str | None) -> bool:
        """Delete the session immediately. Returns whether one existed."""
        if not token:
            return False
        async with persistence_guard("session revocation", self.session):
            result = await self.session.execute(
                delete(self.model)
                .where(self.model.token == token)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        return result.rowcount > 0

    async def purge_expired(self) -> int:
        """Delete every session whose window has elapsed."""
        async with persistence_guard("session purge", self.session):
            result = await self.session.execute(
                delete(self.model)
                .where(self.model.expires_at <= self.clock())
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        if result.rowcount:
            logger.info("Purged %d expired %s", result.rowcount, self.model.__tablename__)
        return result.rowcount
