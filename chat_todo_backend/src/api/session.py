"""
One user's live todo list and the chat-facing operations on it.

Every edit is applied optimistically to the in-memory list first. Methods that
correspond to a UI action return the markdown note that should be sent back
into the conversation so the assistant stays in sync.
"""
from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .client import TodoApiClient
from .extraction import parse_todos_from_json, parse_todos_from_markdown_table, todos_to_markdown_table
from .merge import delete_todo, merge_todos, new_todo_id, prune_deleted, toggle_done, update_todo
from .models import Todo
from .tombstones import SessionState
from .utils import parse_timestamp, utc_or_now

logger = logging.getLogger(__name__)


def _text_parts(message: Mapping[str, Any]) -> List[str]:
    """Text of a chat message, given either as 'content' or as typed 'parts'."""
    content = message.get("content")
    if isinstance(content, str):
        return [content]
    texts = []
    for part in message.get("parts") or []:
        if isinstance(part, Mapping) and part.get("type") == "text" and isinstance(part.get("text"), str):
            texts.append(part["text"])
    return texts


# PUBLIC_INTERFACE
class TodoSession:
    """Holds the editable todo list, its session state and at most one displayed history."""

    def __init__(
        self,
        client: Optional[TodoApiClient] = None,
        state: Optional[SessionState] = None,
        todos: Optional[Iterable[Todo]] = None,
    ) -> None:
        self.client = client
        self.state = state or SessionState()
        self._todos: List[Todo] = list(todos or [])
        self.displayed: Optional[Dict[str, Any]] = None

    @property
    def todos(self) -> List[Todo]:
        return list(self._todos)

    def get(self, todo_id: str) -> Optional[Todo]:
        return next((t for t in self._todos if t.id == todo_id), None)

    def merge(self, incoming: Sequence[Todo], now: Optional[datetime] = None) -> List[Todo]:
        self._todos = merge_todos(incoming, self._todos, self.state, now)
        return self.todos

    async def submit(self, text: str, now: Optional[datetime] = None) -> str:
        """
        Handle text typed by the user.

        Todos found locally (JSON, then markdown) or, failing that, by the
        server-side model are merged and an 'Added todos' note is returned.
        Otherwise the text itself is returned, to be sent to the agent as is.
        """
        parsed = parse_todos_from_json(text) or parse_todos_from_markdown_table(text)
        if parsed:
            logger.debug("Merging %d todos parsed locally", len(parsed))
            self.merge(parsed, now)
            return f"Added todos:\n\n{todos_to_markdown_table(parsed)}"

        if self.client is not None and text.strip():
            remote = await self.client.parse_todos(text)
            if remote:
                logger.debug("Merging %d todos parsed by the server", len(remote))
                self.merge(remote, now)
                return f"Added todos:\n\n{todos_to_markdown_table(remote)}"
        return text

    def ingest_assistant_messages(
        self, messages: Iterable[Mapping[str, Any]], now: Optional[datetime] = None
    ) -> List[Todo]:
        """Collect todos from every assistant text part and merge them as one batch."""
        collected: List[Todo] = []
        for message in messages:
            if message.get("role") != "assistant":
                continue
            for text in _text_parts(message):
                found = parse_todos_from_json(text) or parse_todos_from_markdown_table(text)
                if found:
                    collected.extend(found)
        if collected:
            logger.debug("Merging %d todos parsed from assistant messages", len(collected))
            self.merge(collected, now)
        return self.todos

    def toggle(self, todo_id: str, now: Optional[datetime] = None) -> Optional[str]:
        if self.get(todo_id) is None:
            return None
        self._todos = toggle_done(self._todos, todo_id, self.state, now)
        return f"Updated todos (toggled {todo_id}):\n\n{todos_to_markdown_table(self._todos)}"

    def add(self, todo: Todo, now: Optional[datetime] = None) -> str:
        self.merge([todo], now)
        return f"Added todo:\n\n{todos_to_markdown_table(self._todos)}"

    def update(self, todo_id: str, **fields: Any) -> Optional[Todo]:
        self._todos = update_todo(self._todos, todo_id, **fields)
        return self.get(todo_id)

    def delete(self, todo_id: str, now: Optional[datetime] = None) -> Optional[str]:
        if self.get(todo_id) is None:
            return None
        self._todos = delete_todo(self._todos, todo_id, self.state, now)
        return f"Deleted todo ({todo_id}):\n\n{todos_to_markdown_table(self._todos)}"

    def prune(self, now: Optional[datetime] = None) -> int:
        return self.state.prune(now)

    def restore(
        self,
        todos: Iterable[Todo],
        state_data: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> List[Todo]:
        """
        Reload a persisted list and session state.

        Expired tombstones are pruned, missing ids and timestamps are filled in,
        and todos matching a live tombstone are dropped.
        """
        now = utc_or_now(now)
        if state_data is not None:
            self.state = SessionState.from_dict(state_data)
        self.state.prune(now)
        filled = [
            dataclasses.replace(t, id=t.id or new_todo_id(), created_at=parse_timestamp(t.created_at) or now)
            for t in todos
        ]
        self._todos = prune_deleted(filled, self.state.tombstones, now)
        if len(self._todos) != len(filled):
            logger.debug("Pruned locally deleted todos on restore: before=%d after=%d", len(filled), len(self._todos))
        return self.todos

    async def save(self, messages: Sequence[Any], title: Optional[str] = None) -> Optional[str]:
        if self.client is None:
            return None
        return await self.client.create_history(self._todos, messages, title)

    async def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a stored session for read-only display; the live list is untouched."""
        if self.client is None:
            return None
        session = await self.client.get_history(session_id)
        if session is not None:
            self.displayed = session
        return session

    async def delete_history(self, session_id: str) -> bool:
        if self.client is None:
            return False
        ok = await self.client.delete_history(session_id)
        if ok and self.displayed is not None and self.displayed.get("id") == session_id:
            self.displayed = None
        return ok
