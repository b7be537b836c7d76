from __future__ import annotations

import secrets
import string
from datetime import date, datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union

_ID_ALPHABET = string.ascii_lowercase + string.digits

# Absent timestamps compare as the oldest possible instant.
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

TimestampInput = Union[datetime, date, str, None]


# PUBLIC_INTERFACE
def generate_id(prefix: str = "t", length: int = 7) -> str:
    """Return a short random identifier such as 't_k3j9x0a'."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))
    return f"{prefix}_{suffix}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# PUBLIC_INTERFACE
def parse_timestamp(value: TimestampInput) -> Optional[datetime]:
    """
    Normalize a timestamp into an aware UTC datetime.

    - datetime values are returned in UTC; naive values are taken to be UTC.
    - date values are promoted to midnight UTC.
    - strings are parsed as ISO8601 (a trailing 'Z' is accepted).
    - anything unparseable yields None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        if s.endswith("Z") or s.endswith("z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# PUBLIC_INTERFACE
def format_timestamp(value: datetime) -> str:
    """Render a datetime as ISO8601 UTC with millisecond precision, e.g. '2026-01-01T09:00:00.000Z'."""
    dt = parse_timestamp(value) or EPOCH
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def timestamp_or_epoch(value: Optional[datetime]) -> datetime:
    return parse_timestamp(value) or EPOCH


def utc_or_now(value: Optional[datetime]) -> datetime:
    """Normalize `value` to aware UTC, defaulting to the current time."""
    return parse_timestamp(value) or utc_now()


# PUBLIC_INTERFACE
def session_summary(session: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Build the list-view summary of a stored session.

    Returns:
        Dict with keys: id, createdAt, title, todoCount, messageCount.
    """
    todos = session.get("todos") or []
    messages = session.get("messages") or []
    return {
        "id": session["id"],
        "createdAt": session["createdAt"],
        "title": session.get("title"),
        "todoCount": len(todos),
        "messageCount": len(messages),
    }
