"""
Soft identity for todos.

Ids produced on the client and ids produced by the model rarely agree for
the same logical task, so matching falls back to a fingerprint built from
the normalized fields:

    "<title key>|<canonical due>|<priority>|<minutes>"

- title key: title stripped and lower-cased
- canonical due: YYYY-MM-DD when the value parses as an ISO date/datetime
  (aware values converted to UTC first), otherwise the stripped text
- priority: as stored
- minutes: integral numbers without a decimal point, others via str()

Absent parts render as empty strings.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

from .models import Todo, format_minutes


def title_key(title: Optional[str]) -> str:
    return title.strip().lower() if title else ""


# PUBLIC_INTERFACE
def canonical_due(due: Optional[str]) -> str:
    """Canonicalize a due value to YYYY-MM-DD when it is an ISO date or datetime."""
    if due is None:
        return ""
    s = str(due).strip()
    if not s:
        return ""
    iso = s[:-1] + "+00:00" if s.endswith(("Z", "z")) else s
    try:
        dt = datetime.fromisoformat(iso)
    except ValueError:
        try:
            return date.fromisoformat(iso).isoformat()
        except ValueError:
            return s
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.date().isoformat()


def _minutes_key(value: Optional[float]) -> str:
    if value is None:
        return ""
    return str(format_minutes(value))


# PUBLIC_INTERFACE
def fingerprint(todo: Todo) -> str:
    """Return the fingerprint of a todo, e.g. 'buy milk|2026-01-01|low|30'."""
    return "|".join(
        (
            title_key(todo.title),
            canonical_due(todo.due),
            todo.priority or "",
            _minutes_key(todo.estimated_minutes),
        )
    )
