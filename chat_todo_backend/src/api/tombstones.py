from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional

from .fingerprints import fingerprint
from .models import Todo
from .utils import format_timestamp, parse_timestamp, timestamp_or_epoch, utc_or_now

logger = logging.getLogger(__name__)

DELETION_RETENTION = timedelta(minutes=5)
TOGGLE_GRACE = timedelta(seconds=10)


# PUBLIC_INTERFACE
class TombstoneTracker:
    """
    Remembers recently deleted todos by id and by fingerprint.

    A delayed assistant reply can still carry a todo the user just deleted;
    while its tombstone is live and no older than the record, the record is
    rejected. Entries expire after the retention window.
    """

    def __init__(self, retention: timedelta = DELETION_RETENTION) -> None:
        self.retention = retention
        self._ids: Dict[str, datetime] = {}
        self._fingerprints: Dict[str, datetime] = {}

    def __len__(self) -> int:
        return len(self._ids) + len(self._fingerprints)

    def record_deletion(self, todo: Todo, now: Optional[datetime] = None) -> None:
        """Store id -> now and fingerprint -> now for a deleted todo."""
        ts = utc_or_now(now)
        if todo.id:
            self._ids[todo.id] = ts
        self._fingerprints[fingerprint(todo)] = ts

    def _expired(self, ts: datetime, now: Optional[datetime]) -> bool:
        return now is not None and utc_or_now(now) - ts > self.retention

    def is_recently_deleted(
        self, key: str, as_of: Optional[datetime], now: Optional[datetime] = None
    ) -> bool:
        """
        Return True if `key` (an id or a fingerprint) was deleted at or after `as_of`.

        A missing `as_of` counts as the oldest possible instant, so any tombstone
        for the key wins. When `now` is given, expired tombstones are ignored.
        """
        threshold = timestamp_or_epoch(as_of)
        for entries in (self._ids, self._fingerprints):
            ts = entries.get(key)
            if ts is not None and ts >= threshold and not self._expired(ts, now):
                return True
        return False

    def matches(self, todo: Todo, now: Optional[datetime] = None) -> bool:
        """Return True if a live tombstone exists for the todo's id or fingerprint."""
        if todo.id and self.is_recently_deleted(todo.id, None, now):
            return True
        return self.is_recently_deleted(fingerprint(todo), None, now)

    def prune(self, now: Optional[datetime] = None) -> int:
        """Drop expired tombstones and return how many were removed."""
        current = utc_or_now(now)
        removed = 0
        for entries in (self._ids, self._fingerprints):
            for key in [k for k, ts in entries.items() if self._expired(ts, current)]:
                del entries[key]
                removed += 1
        if removed:
            logger.debug("Pruned %d expired tombstones", removed)
        return removed

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {
            "ids": {k: format_timestamp(v) for k, v in self._ids.items()},
            "fps": {k: format_timestamp(v) for k, v in self._fingerprints.items()},
        }

    @classmethod
    def from_dict(
        cls, data: Optional[Mapping[str, Any]], retention: timedelta = DELETION_RETENTION
    ) -> "TombstoneTracker":
        """Rebuild a tracker from `to_dict()` output, skipping malformed entries."""
        tracker = cls(retention=retention)
        if not isinstance(data, Mapping):
            return tracker
        for name, target in (("ids", tracker._ids), ("fps", tracker._fingerprints)):
            raw = data.get(name)
            if not isinstance(raw, Mapping):
                continue
            for key, value in raw.items():
                ts = parse_timestamp(value)
                if ts is None:
                    logger.debug("Skipping unreadable tombstone %r=%r", key, value)
                    continue
                target[str(key)] = ts
        return tracker


# PUBLIC_INTERFACE
class ToggleTracker:
    """Per-id timestamps of local `done` toggles, honored for a short grace window."""

    def __init__(self, grace: timedelta = TOGGLE_GRACE) -> None:
        self.grace = grace
        self._toggles: Dict[str, datetime] = {}

    def record(self, todo_id: str, now: Optional[datetime] = None) -> None:
        self._toggles[todo_id] = utc_or_now(now)

    def recently_toggled(self, todo_id: str, now: Optional[datetime] = None) -> bool:
        ts = self._toggles.get(todo_id)
        if ts is None:
            return False
        return utc_or_now(now) - ts < self.grace

    def prune(self, now: Optional[datetime] = None) -> int:
        current = utc_or_now(now)
        stale = [k for k, ts in self._toggles.items() if current - ts >= self.grace]
        for key in stale:
            del self._toggles[key]
        return len(stale)


# PUBLIC_INTERFACE
@dataclass
class SessionState:
    """Local-intent signals for one interactive session, passed into every merge."""

    tombstones: TombstoneTracker = field(default_factory=TombstoneTracker)
    toggles: ToggleTracker = field(default_factory=ToggleTracker)

    def prune(self, now: Optional[datetime] = None) -> int:
        """Expire stale tombstones and toggle marks; returns the number of entries removed."""
        current = utc_or_now(now)
        return self.tombstones.prune(current) + self.toggles.prune(current)

    def to_dict(self) -> Dict[str, Any]:
        # Toggle marks only matter for seconds and are not persisted.
        return {"tombstones": self.tombstones.to_dict()}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SessionState":
        raw = data.get("tombstones") if isinstance(data, Mapping) else None
        return cls(tombstones=TombstoneTracker.from_dict(raw))
