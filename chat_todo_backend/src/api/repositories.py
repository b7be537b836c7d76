from __future__ import annotations

import json
import logging
import uuid
from abc import ABC, abstractmethod
from functools import lru_cache
from threading import RLock
from typing import Any, Dict, List, Optional

from .models import StoredSession
from .schemas import SessionCreate
from .settings import get_settings
from .utils import format_timestamp, generate_id, utc_now

logger = logging.getLogger(__name__)

KEY_PREFIX = "session:"


def session_key(session_id: str) -> str:
    return f"{KEY_PREFIX}{session_id}"


def _normalize_todos(todos: List[Any]) -> List[Dict[str, Any]]:
    """Keep object entries only and give each one an id."""
    out: List[Dict[str, Any]] = []
    for item in todos:
        if not isinstance(item, dict):
            logger.debug("Dropping non-object todo entry from session payload")
            continue
        entry = dict(item)
        if not entry.get("id"):
            entry["id"] = generate_id("todo", 8)
        out.append(entry)
    return out


def build_session(data: SessionCreate) -> StoredSession:
    """Turn a create payload into the stored document, filling defaults."""
    session: StoredSession = {
        "id": data.id or str(uuid.uuid4()),
        "createdAt": format_timestamp(utc_now()),
        "todos": _normalize_todos(data.todos),
        "messages": list(data.messages),
        "title": data.title,
    }
    return session


def encode_session(session: StoredSession) -> str:
    return json.dumps(session, ensure_ascii=False)


def decode_session(raw: str) -> Optional[StoredSession]:
    try:
        value = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring unreadable stored session value")
        return None
    if not isinstance(value, dict) or not value.get("id"):
        return None
    value.setdefault("createdAt", format_timestamp(utc_now()))
    value["todos"] = value.get("todos") or []
    value["messages"] = value.get("messages") or []
    value.setdefault("title", None)
    return value  # type: ignore[return-value]


def sort_newest_first(sessions: List[StoredSession]) -> List[StoredSession]:
    return sorted(sessions, key=lambda s: s["createdAt"], reverse=True)


# PUBLIC_INTERFACE
class HistoryRepository(ABC):
    """Abstract key-value contract for chat session snapshots."""

    @abstractmethod
    def create(self, data: SessionCreate) -> StoredSession:
        """Store a new session under 'session:{id}' and return it."""

    @abstractmethod
    def get(self, session_id: str) -> Optional[StoredSession]:
        """Return a session by id, or None if not found."""

    @abstractmethod
    def list(self) -> List[StoredSession]:
        """Return all sessions, newest createdAt first."""

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Delete a session by id. Return True if it existed."""


class InMemoryHistoryRepository(HistoryRepository):
    """
    Thread-safe in-memory store suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[str, str] = {}

    def create(self, data: SessionCreate) -> StoredSession:
        session = build_session(data)
        with self._lock:
            self._items[session_key(session["id"])] = encode_session(session)
        return session

    def get(self, session_id: str) -> Optional[StoredSession]:
        with self._lock:
            raw = self._items.get(session_key(session_id))
        return None if raw is None else decode_session(raw)

    def list(self) -> List[StoredSession]:
        with self._lock:
            values = [v for k, v in self._items.items() if k.startswith(KEY_PREFIX)]
        sessions = [s for s in (decode_session(v) for v in values) if s is not None]
        return sort_newest_first(sessions)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._items.pop(session_key(session_id), None) is not None


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_repository() -> HistoryRepository:
    """
    Factory to return the configured history store based on settings.
    - memory: InMemoryHistoryRepository
    - sqlite: SQLiteHistoryRepository
    The instance is cached so every request sees the same store.
    """
    settings = get_settings()
    if settings.history_backend == "sqlite":
        from .db import SQLiteHistoryRepository

        return SQLiteHistoryRepository(settings.history_db_path)
    return InMemoryHistoryRepository()
