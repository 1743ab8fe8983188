"""Daily usage counter model."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from keygate.db.session import Base


class UsageRecord(Base):
    __tablename__ = "usage_records"
    __table_args__ = (
        UniqueConstraint("owner_identity", "usage_date", name="uq_usage_records_identity_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_identity: Mapped[str] = mapped_column(String(320), nullable=False)
    usage_date: Mapped[date] = mapped_column(Date, nullable=False)
    search_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    api_call_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Limits in force at the last successful increment, kept for display
    search_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    api_call_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )
