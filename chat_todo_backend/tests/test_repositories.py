from datetime import datetime, timedelta, timezone

import pytest

from src.api import repositories
from src.api.db import SQLiteHistoryRepository
from src.api.repositories import InMemoryHistoryRepository, decode_session
from src.api.schemas import SessionCreate


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "sqlite":
        return SQLiteHistoryRepository(str(tmp_path / "data" / "histories.db"))
    return InMemoryHistoryRepository()


@pytest.fixture
def ticking_clock(monkeypatch):
    base = datetime(2026, 3, 1, tzinfo=timezone.utc)
    ticks = iter(base + timedelta(seconds=i) for i in range(100))
    monkeypatch.setattr(repositories, "utc_now", lambda: next(ticks))


class TestHistoryRepository:
    def test_create_get_delete(self, store):
        created = store.create(SessionCreate(todos=[{"id": "t1", "title": "A"}], messages=["hi"], title="T"))
        fetched = store.get(created["id"])
        assert fetched == created
        assert fetched["messages"] == ["hi"]
        assert store.delete(created["id"]) is True
        assert store.get(created["id"]) is None
        assert store.delete(created["id"]) is False

    def test_generated_id_is_uuid(self, store):
        created = store.create(SessionCreate())
        assert len(created["id"]) == 36
        assert created["todos"] == []
        assert created["title"] is None

    def test_create_with_same_id_overwrites(self, store):
        store.create(SessionCreate(id="s1", title="first"))
        store.create(SessionCreate(id="s1", title="second"))
        assert store.get("s1")["title"] == "second"
        assert len(store.list()) == 1

    def test_list_is_newest_first(self, store, ticking_clock):
        for title in ("a", "b", "c"):
            store.create(SessionCreate(title=title))
        assert [s["title"] for s in store.list()] == ["c", "b", "a"]

    def test_sqlite_survives_reopen(self, tmp_path):
        path = str(tmp_path / "h.db")
        sid = SQLiteHistoryRepository(path).create(SessionCreate(title="kept"))["id"]
        assert SQLiteHistoryRepository(path).get(sid)["title"] == "kept"


class TestDecodeSession:
    def test_unreadable_values_are_skipped(self):
        assert decode_session("{not json") is None
        assert decode_session("[1, 2]") is None
        assert decode_session('{"title": "no id"}') is None

    def test_missing_arrays_default(self):
        session = decode_session('{"id": "s", "createdAt": "2026-01-01T00:00:00.000Z", "todos": null}')
        assert session["todos"] == []
        assert session["messages"] == []
        assert session["title"] is None
