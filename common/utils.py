from __future__ import annotations

from datetime import datetime, timezone
from urllib.parse import urlsplit, urlunsplit

from common.errors import MalformedCoordinate


def iso_now_ms() -> str:
    """UTC ISO-8601 timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_uint(token, name: str = "value") -> int:
    """
    Parse a base-10 non-negative integer.

    Accepts ints and strings of ASCII digits only. Whitespace, signs,
    underscores, unicode digits and empty strings are rejected.
    """
    if isinstance(token, bool):
        raise MalformedCoordinate(f"{name} must be a non-negative integer, got {token!r}")
    if isinstance(token, int):
        if token < 0:
            raise MalformedCoordinate(f"{name} must be a non-negative integer, got {token!r}")
        return token
    s = str(token)
    if not s or not (s.isascii() and s.isdigit()):
        raise MalformedCoordinate(f"{name} must be a non-negative integer, got {token!r}")
    return int(s, 10)


def redact_url(url: str) -> str:
    """Drop any password from a connection URL so it can be logged or shown."""
    parts = urlsplit(url)
    if not parts.password:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    user = parts.username or ""
    netloc = f"{user}:***@{host}" if user else f"***@{host}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
