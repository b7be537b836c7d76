import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from src.api.client import TodoApiClient
from src.api.models import Todo
from src.api.session import TodoSession

NOW = datetime(2026, 1, 10, 12, 0, 0, tzinfo=timezone.utc)


def at(seconds: float) -> datetime:
    return NOW + timedelta(seconds=seconds)


def assistant(text):
    return {"role": "assistant", "parts": [{"type": "text", "text": text}]}


class TestSubmit:
    def test_local_json_is_merged_and_announced(self):
        session = TodoSession()
        note = asyncio.run(session.submit('[{"title": "Buy milk", "priority": "low"}]', now=NOW))
        assert [t.title for t in session.todos] == ["Buy milk"]
        assert session.todos[0].done is False
        assert note.startswith("Added todos:\n\n| id | title |")
        assert "Buy milk" in note

    def test_local_markdown_is_merged(self):
        session = TodoSession()
        asyncio.run(session.submit("| title | due |\n|---|---|\n| Pay rent | 2026-02-01 |", now=NOW))
        assert session.todos[0].due == "2026-02-01"

    def test_falls_back_to_server_parse(self):
        client = MagicMock(spec=TodoApiClient)
        client.parse_todos = AsyncMock(return_value=[Todo(id="todo-0_x", title="Call mom", done=False)])
        session = TodoSession(client=client)
        note = asyncio.run(session.submit("remind me to call mom", now=NOW))
        client.parse_todos.assert_awaited_once_with("remind me to call mom")
        assert [t.id for t in session.todos] == ["todo-0_x"]
        assert note.startswith("Added todos:")

    def test_plain_text_passes_through(self):
        client = MagicMock(spec=TodoApiClient)
        client.parse_todos = AsyncMock(return_value=None)
        session = TodoSession(client=client)
        assert asyncio.run(session.submit("how are you?")) == "how are you?"
        assert session.todos == []

    def test_without_client_plain_text_passes_through(self):
        assert asyncio.run(TodoSession().submit("hello")) == "hello"


class TestAssistantMessages:
    def test_collects_from_all_assistant_parts(self):
        session = TodoSession()
        messages = [
            {"role": "user", "content": '[{"title": "Ignored user todo"}]'},
            assistant('Here:\n```json\n[{"title": "Write report", "done": false}]\n```'),
            {"role": "assistant", "content": "| title |\n|---|\n| Buy milk |"},
        ]
        session.ingest_assistant_messages(messages, now=NOW)
        assert [t.title for t in session.todos] == ["Write report", "Buy milk"]

    def test_echo_does_not_duplicate_or_override_local_done(self):
        session = TodoSession(todos=[Todo(id="t1", title="Write report", done=False, created_at=at(-60))])
        session.toggle("t1", now=NOW)
        session.ingest_assistant_messages(
            [assistant('```json\n[{"title": "Write report", "done": false}]\n```')], now=at(2)
        )
        assert len(session.todos) == 1
        assert session.todos[0].done is True

    def test_repeated_messages_are_idempotent(self):
        session = TodoSession()
        messages = [assistant('[{"title": "A"}, {"title": "B", "priority": "high"}]')]
        first = session.ingest_assistant_messages(messages, now=NOW)
        second = session.ingest_assistant_messages(messages, now=at(1))
        assert first == second


class TestLocalActions:
    def test_toggle_returns_note_and_unknown_id_returns_none(self):
        session = TodoSession(todos=[Todo(id="t1", title="A", done=False)])
        note = session.toggle("t1", now=NOW)
        assert note.startswith("Updated todos (toggled t1):")
        assert "[x]" in note
        assert session.toggle("nope") is None

    def test_add_merges_and_dedupes(self):
        session = TodoSession(todos=[Todo(id="t1", title="Buy milk")])
        note = session.add(Todo(title="buy milk", priority="low"), now=NOW)
        assert note.startswith("Added todo:")
        assert len(session.todos) == 1
        assert session.todos[0].priority == "low"

    def test_update(self):
        session = TodoSession(todos=[Todo(id="t1", title="A")])
        assert session.update("t1", due="2026-05-05").due == "2026-05-05"
        assert session.update("missing", due="x") is None

    def test_delete_then_stale_echo_is_suppressed(self):
        session = TodoSession(todos=[Todo(id="t1", title="Buy milk"), Todo(id="t2", title="Stay")])
        note = session.delete("t1", now=NOW)
        assert note.startswith("Deleted todo (t1):")
        assert "Buy milk" not in note
        session.ingest_assistant_messages([assistant('[{"id": "t1", "title": "Buy milk"}]')], now=at(30))
        assert [t.id for t in session.todos] == ["t2"]
        assert session.delete("t1") is None


class TestRestore:
    def test_restore_prunes_deleted_and_fills_defaults(self):
        previous = TodoSession(todos=[Todo(id="t1", title="Gone"), Todo(id="t2", title="Stay")])
        previous.delete("t1", now=NOW)
        persisted_state = previous.state.to_dict()

        reloaded = TodoSession()
        todos = reloaded.restore(
            [Todo(id="t1", title="Gone"), Todo(title="New one")],
            persisted_state,
            now=at(60),
        )
        assert [t.title for t in todos] == ["New one"]
        assert todos[0].id.startswith("todo_")
        assert todos[0].created_at == at(60)

    def test_restore_after_retention_keeps_everything(self):
        previous = TodoSession(todos=[Todo(id="t1", title="Gone")])
        previous.delete("t1", now=NOW)
        reloaded = TodoSession()
        todos = reloaded.restore([Todo(id="t1", title="Gone")], previous.state.to_dict(), now=NOW + timedelta(minutes=6))
        assert [t.id for t in todos] == ["t1"]
        assert len(reloaded.state.tombstones) == 0


class TestHistoryCalls:
    def test_without_client_history_calls_no_op(self):
        session = TodoSession()
        assert asyncio.run(session.save([])) is None
        assert asyncio.run(session.load("x")) is None
        assert asyncio.run(session.delete_history("x")) is False

    def test_load_sets_displayed_without_touching_live_list(self):
        client = MagicMock(spec=TodoApiClient)
        client.get_history = AsyncMock(return_value={"id": "s1", "todos": [{"id": "x", "title": "Old"}]})
        client.delete_history = AsyncMock(return_value=True)
        session = TodoSession(client=client, todos=[Todo(id="t1", title="Live")])

        asyncio.run(session.load("s1"))
        assert session.displayed["id"] == "s1"
        assert [t.id for t in session.todos] == ["t1"]

        assert asyncio.run(session.delete_history("s1")) is True
        assert session.displayed is None
