from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, List, Optional

from .models import StoredSession
from .repositories import (
    KEY_PREFIX,
    HistoryRepository,
    build_session,
    decode_session,
    encode_session,
    session_key,
    sort_newest_first,
)
from .schemas import SessionCreate


@dataclass(frozen=True)
class _Cols:
    table: str = "kv"
    key: str = "key"
    value: str = "value"


_COLS = _Cols()


class SQLiteHistoryRepository(HistoryRepository):
    """
    Key-value history store backed by a single SQLite table.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.key} TEXT PRIMARY KEY,
                    {_COLS.value} TEXT NOT NULL
                )
                """
            )

    def create(self, data: SessionCreate) -> StoredSession:
        session = build_session(data)
        with self._conn() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {_COLS.table} ({_COLS.key}, {_COLS.value}) VALUES (?, ?)",
                (session_key(session["id"]), encode_session(session)),
            )
        return session

    def get(self, session_id: str) -> Optional[StoredSession]:
        with self._conn() as conn:
            row = conn.execute(
                f"SELECT {_COLS.value} FROM {_COLS.table} WHERE {_COLS.key} = ?",
                (session_key(session_id),),
            ).fetchone()
        return decode_session(row[_COLS.value]) if row else None

    def list(self) -> List[StoredSession]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT {_COLS.value} FROM {_COLS.table} WHERE {_COLS.key} LIKE ?",
                (f"{KEY_PREFIX}%",),
            ).fetchall()
        sessions = [s for s in (decode_session(r[_COLS.value]) for r in rows) if s is not None]
        return sort_newest_first(sessions)

    def delete(self, session_id: str) -> bool:
        with self._conn() as conn:
            cur = conn.execute(
                f"DELETE FROM {_COLS.table} WHERE {_COLS.key} = ?", (session_key(session_id),)
            )
            return cur.rowcount > 0
