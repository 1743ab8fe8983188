"""Admin credential verification."""

from __future__ import annotations

import logging
import secrets

from passlib.hash import bcrypt

from keygate.config import settings

logger = logging.getLogger(__name__)


def verify_admin_credentials(username: str, password: str) -> bool:
    """Check a username/password pair against the configured admin account."""
    if not settings.admin_password_hash:
        logger.warning("ADMIN_PASSWORD_HASH is not set; admin login is disabled")
        return False
    if not username or not password:
        return False

    username_ok = secrets.compare_digest(username.encode(), settings.admin_username.encode())
    try:
        password_ok = bcrypt.verify(password, settings.admin_password_hash)
    except ValueError:
        logger.error("ADMIN_PASSWORD_HASH is not a valid bcrypt hash")
        return False
    return username_ok and password_ok
