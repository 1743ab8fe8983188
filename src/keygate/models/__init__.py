"""SQLAlchemy ORM models."""

from keygate.models.access_key import AccessKey
from keygate.models.session import AdminSession, UserSession
from keygate.models.usage_record import UsageRecord
from keygate.models.search_log import SearchLog

__all__ = [
    "AccessKey",
    "AdminSession",
    "UserSession",
    "UsageRecord",
    "SearchLog",
]
