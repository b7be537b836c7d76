"""
Reconcile incoming todos (from the user's text or an assistant reply) with the
live list.

Matching order for an incoming record: exact id, then fingerprint, then
normalized title. Matched records receive only the fields the incoming record
defines. `done` is guarded twice: a fresh local toggle outranks it, and it must
carry a strictly newer `createdAt` than the record it overwrites. Records that
hit a live tombstone no older than themselves are dropped.
"""
from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .fingerprints import fingerprint, title_key
from .models import Todo
from .tombstones import SessionState, TombstoneTracker
from .utils import generate_id, parse_timestamp, timestamp_or_epoch, utc_or_now

logger = logging.getLogger(__name__)

_PATCHABLE = ("title", "due", "priority", "estimated_minutes")


def new_todo_id() -> str:
    return generate_id("todo", 8)


class _Index:
    """Position lookups by id, fingerprint and title key over the result list."""

    def __init__(self, todos: Sequence[Todo]) -> None:
        self.by_id: Dict[str, int] = {}
        self.by_fingerprint: Dict[str, int] = {}
        self.by_title: Dict[str, int] = {}
        for pos, todo in enumerate(todos):
            self.add(pos, todo)

    def add(self, pos: int, todo: Todo) -> None:
        # First occurrence wins, matching a scan from the top of the list.
        if todo.id is not None:
            self.by_id.setdefault(todo.id, pos)
        self.by_fingerprint.setdefault(fingerprint(todo), pos)
        self.by_title.setdefault(title_key(todo.title), pos)

    def find(self, todo: Todo, fp: str) -> Optional[int]:
        if todo.id is not None and todo.id in self.by_id:
            return self.by_id[todo.id]
        if fp in self.by_fingerprint:
            return self.by_fingerprint[fp]
        return self.by_title.get(title_key(todo.title))


def _is_tombstoned(todo: Todo, fp: str, tombstones: TombstoneTracker, now: datetime) -> bool:
    if todo.id is not None and tombstones.is_recently_deleted(todo.id, todo.created_at, now):
        logger.debug("Skipping incoming todo %s: local deletion is newer", todo.id)
        return True
    if tombstones.is_recently_deleted(fp, todo.created_at, now):
        logger.debug("Skipping incoming todo %r: deleted fingerprint is newer", fp)
        return True
    return False


def _apply_patch(existing: Todo, incoming: Todo, state: SessionState, now: datetime) -> Todo:
    changes = {
        name: getattr(incoming, name)
        for name in _PATCHABLE
        if getattr(incoming, name) is not None
    }
    if "title" in changes:
        changes["title"] = changes["title"].strip()

    existing_ts = timestamp_or_epoch(existing.created_at)
    incoming_ts = timestamp_or_epoch(incoming.created_at)
    newer = incoming_ts > existing_ts

    if incoming.done is not None:
        if existing.id is not None and state.toggles.recently_toggled(existing.id, now):
            logger.debug("Ignoring incoming done for %s: recent local toggle", existing.id)
        elif newer:
            changes["done"] = incoming.done
    if newer:
        changes["created_at"] = incoming_ts

    return dataclasses.replace(existing, **changes) if changes else existing


def _insertable(incoming: Todo, now: datetime) -> Todo:
    return dataclasses.replace(
        incoming,
        id=incoming.id or new_todo_id(),
        title=incoming.title.strip(),
        done=incoming.done if incoming.done is not None else False,
        created_at=parse_timestamp(incoming.created_at) or now,
    )


# PUBLIC_INTERFACE
def merge_todos(
    incoming: Iterable[Todo],
    current: Sequence[Todo],
    state: Optional[SessionState] = None,
    now: Optional[datetime] = None,
) -> List[Todo]:
    """
    Merge a batch of observed todos into the current list and return the new list.

    Neither the inputs nor `state` are mutated. Existing records keep their
    positions; new records are appended in incoming order.
    """
    state = state or SessionState()
    now = utc_or_now(now)
    result: List[Todo] = list(current)
    index = _Index(result)
    batch = list(incoming)

    for todo in batch:
        fp = fingerprint(todo)
        if _is_tombstoned(todo, fp, state.tombstones, now):
            continue
        pos = index.find(todo, fp)
        if pos is not None:
            result[pos] = _apply_patch(result[pos], todo, state, now)
            index.add(pos, result[pos])
        else:
            result.append(_insertable(todo, now))
            index.add(len(result) - 1, result[-1])

    logger.debug("merge_todos: current=%d incoming=%d result=%d", len(current), len(batch), len(result))
    return result


def _locate(todos: Sequence[Todo], todo_id: str) -> Tuple[int, Optional[Todo]]:
    for pos, todo in enumerate(todos):
        if todo.id == todo_id:
            return pos, todo
    return -1, None


# PUBLIC_INTERFACE
def toggle_done(
    todos: Sequence[Todo], todo_id: str, state: SessionState, now: Optional[datetime] = None
) -> List[Todo]:
    """Flip `done` on a todo, stamp it with `now` and remember the local toggle."""
    now = utc_or_now(now)
    pos, todo = _locate(todos, todo_id)
    result = list(todos)
    if todo is None:
        return result
    result[pos] = dataclasses.replace(todo, done=not todo.done, created_at=now)
    state.toggles.record(todo_id, now)
    return result


# PUBLIC_INTERFACE
def delete_todo(
    todos: Sequence[Todo], todo_id: str, state: SessionState, now: Optional[datetime] = None
) -> List[Todo]:
    """Remove a todo and record its tombstone."""
    now = utc_or_now(now)
    pos, todo = _locate(todos, todo_id)
    if todo is None:
        return list(todos)
    state.tombstones.record_deletion(todo, now)
    return [t for i, t in enumerate(todos) if i != pos]


# PUBLIC_INTERFACE
def update_todo(todos: Sequence[Todo], todo_id: str, **fields) -> List[Todo]:
    """Apply a local edit to one todo. Unknown ids leave the list unchanged."""
    pos, todo = _locate(todos, todo_id)
    result = list(todos)
    if todo is not None:
        result[pos] = dataclasses.replace(todo, **fields)
    return result


# PUBLIC_INTERFACE
def prune_deleted(
    todos: Iterable[Todo], tombstones: TombstoneTracker, now: Optional[datetime] = None
) -> List[Todo]:
    """Drop todos that match a live tombstone by id or fingerprint (reload path)."""
    kept = [t for t in todos if not tombstones.matches(t, now)]
    return kept
