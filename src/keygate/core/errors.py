"""Error taxonomy shared by the core components and the HTTP layer."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class KeygateError(Exception):
    """Base class; ``code`` is stable and machine-readable."""

    code = "error"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class InvalidArgument(KeygateError):
    code = "invalid_argument"
    status_code = 400


class NotFound(KeygateError):
    code = "not_found"
    status_code = 404


class AuthError(KeygateError):
    """Authentication failure. ``reason`` is one of the class constants."""

    INVALID_KEY = "invalid_key"
    IDENTITY_MISMATCH = "identity_mismatch"
    EXPIRED = "expired"
    NO_SESSION = "no_session"
    INVALID_CREDENTIALS = "invalid_credentials"

    code = "unauthorized"
    status_code = 401

    _messages = {
        INVALID_KEY: "Invalid or inactive access key",
        IDENTITY_MISMATCH: "Access key is bound to a different identity",
        EXPIRED: "Access key has expired",
        NO_SESSION: "Invalid or expired session",
        INVALID_CREDENTIALS: "Invalid credentials",
    }

    def __init__(self, reason: str, message: str | None = None):
        self.reason = reason
        if reason == self.IDENTITY_MISMATCH:
            self.status_code = 403
        super().__init__(message or self._messages.get(reason, "Unauthorized"))

    def to_dict(self) -> dict:
        return {**super().to_dict(), "reason": self.reason}


class QuotaExceeded(KeygateError):
    SEARCHES = "searches"
    API_CALLS = "api_calls"

    code = "quota_exceeded"
    status_code = 429

    def __init__(self, limit_kind: str, limit: int):
        self.limit_kind = limit_kind
        self.limit = limit
        label = "search" if limit_kind == self.SEARCHES else "API call"
        super().__init__(f"Daily {label} limit of {limit} reached; it resets at 00:00 UTC")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "limit_kind": self.limit_kind, "limit": self.limit}


class RateLimited(KeygateError):
    code = "rate_limited"
    status_code = 429

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(f"Too many requests; retry in {retry_after} seconds")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "retry_after": self.retry_after}


class PersistenceError(KeygateError):
    code = "persistence_error"
    status_code = 503


class UpstreamError(KeygateError):
    code = "upstream_error"
    status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None):
        self.upstream_status = upstream_status
        super().__init__(message)

    def to_dict(self) -> dict:
        return {**super().to_dict(), "upstream_status": self.upstream_status}


@asynccontextmanager
async def persistence_guard(
    operation: str, session: AsyncSession | None = None
) -> AsyncIterator[None]:
    """Re-raise store failures and timeouts as ``PersistenceError``.

    When ``session`` is given its transaction is rolled back first, so the
    session stays usable for the caller's next operation.
    """
    try:
        yield
    except (SQLAlchemyError, asyncio.TimeoutError, OSError) as e:
        logger.error("Persistence failure during %s: %s", operation, e)
        if session is not None:
            try:
                await session.rollback()
            except (SQLAlchemyError, OSError) as rollback_error:
                logger.error("Rollback after %s failed: %s", operation, rollback_error)
        raise PersistenceError(f"Store unavailable during {operation}") from e
