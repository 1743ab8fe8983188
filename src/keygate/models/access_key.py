"""Access key model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from keygate.db.session import Base
from keygate.utils.datetime import as_utc

# Stored as ``expires_at`` until the key is redeemed.
PLACEHOLDER_EXPIRY = datetime(2099, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Unredeemed:
    duration_days: int


@dataclass(frozen=True)
class Redeemed:
    identity: str
    redeemed_at: datetime
    expires_at: datetime


KeyState = Unredeemed | Redeemed


class AccessKey(Base):
    __tablename__ = "access_keys"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    secret: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    plan_tier: Mapped[str] = mapped_column(String(20), nullable=False, default="basic")
    owner_identity: Mapped[str | None] = mapped_column(String(320))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False, default="admin")
    redeemed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=PLACEHOLDER_EXPIRY
    )
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    @property
    def state(self) -> KeyState:
        """Redemption state as a tagged variant over the nullable columns."""
        if self.owner_identity is None:
            return Unredeemed(duration_days=self.duration_days)
        return Redeemed(
            identity=self.owner_identity,
            redeemed_at=as_utc(self.redeemed_at),
            expires_at=as_utc(self.expires_at),
        )

    def is_expired(self, now: datetime) -> bool:
        state = self.state
        if isinstance(state, Unredeemed):
            return False
        return now > state.expires_at
