"""Search type validation and query sanitisation."""

from __future__ import annotations

import re

from keygate.core.errors import InvalidArgument

SUPPORTED_TYPES = ("email", "username", "domain", "phone", "ip")

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_DOMAIN_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9-]{1,61}[a-zA-Z0-9]\.[a-zA-Z]{2,}$")
_IPV4_RE = re.compile(
    r"^(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
    r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)$"
)
_USERNAME_RE = re.compile(r"^[a-zA-Z0-9_-]{3,30}$")

_ESCAPES = {
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
    "\\": "&#x5C;",
    "`": "&#96;",
}


def sanitize_input(value: str) -> str:
    """HTML-escape characters that could be reflected back into a page."""
    return "".join(_ESCAPES.get(ch, ch) for ch in value)


def validate_search(search_type: str | None, query: str | None) -> tuple[str, str]:
    """Return the normalised ``(type, query)`` pair or raise ``InvalidArgument``."""
    if not search_type or not query:
        raise InvalidArgument("Missing 'type' or 'query' in request body")

    kind = search_type.strip().lower()
    if kind not in SUPPORTED_TYPES:
        raise InvalidArgument(f"Invalid type. Supported types: {', '.join(SUPPORTED_TYPES)}")

    cleaned = sanitize_input(query.strip())

    if kind == "email":
        ok = bool(_EMAIL_RE.match(cleaned))
    elif kind == "domain":
        ok = bool(_DOMAIN_RE.match(cleaned))
    elif kind == "ip":
        ok = bool(_IPV4_RE.match(cleaned))
    elif kind == "phone":
        cleaned = re.sub(r"\D", "", cleaned)
        ok = len(cleaned) >= 7
    else:
        ok = bool(_USERNAME_RE.match(cleaned))

    if not ok:
        raise InvalidArgument(f"Invalid {kind} query")
    return kind, cleaned
