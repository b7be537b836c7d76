from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, TypedDict

from .utils import format_timestamp

PRIORITIES = ("low", "medium", "high")


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class Todo:
    """
    A todo item as seen by the extractor and the merger.

    Every optional field uses None for "absent". For `done` that is the
    third state: None means the source expressed no opinion, which is
    different from False.

    Fields:
    - id: Identifier, unique among live todos; None until one is generated
    - title: Non-empty title
    - due: ISO date or free-form due text
    - priority: 'low', 'medium' or 'high'
    - estimated_minutes: Non-negative estimate
    - done: Completion flag (tri-state)
    - created_at: UTC timestamp, the last-writer-wins clock for `done`
    """

    title: str
    id: Optional[str] = None
    due: Optional[str] = None
    priority: Optional[str] = None
    estimated_minutes: Optional[float] = None
    done: Optional[bool] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase wire shape, omitting absent fields."""
        out: Dict[str, Any] = {}
        if self.id is not None:
            out["id"] = self.id
        out["title"] = self.title
        if self.due is not None:
            out["due"] = self.due
        if self.priority is not None:
            out["priority"] = self.priority
        if self.estimated_minutes is not None:
            out["estimatedMinutes"] = format_minutes(self.estimated_minutes)
        if self.done is not None:
            out["done"] = self.done
        if self.created_at is not None:
            out["createdAt"] = format_timestamp(self.created_at)
        return out


def format_minutes(value: float) -> Any:
    """Return integral estimates as int so 30.0 renders as 30."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


# PUBLIC_INTERFACE
class StoredSession(TypedDict):
    """
    A chat session snapshot as kept by the history store.

    Fields:
    - id: Session identifier
    - createdAt: ISO8601 UTC creation timestamp, set by the store
    - todos: Opaque todo records
    - messages: Opaque chat message records
    - title: Optional display title
    """

    id: str
    createdAt: str
    todos: List[Any]
    messages: List[Any]
    title: Optional[str]
