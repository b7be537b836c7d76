from datetime import datetime, timezone

from src.api.extraction import (
    extract,
    normalize_todo,
    parse_todos_from_json,
    parse_todos_from_markdown_table,
    todos_to_markdown_table,
)
from src.api.models import Todo


class TestJsonReader:
    def test_top_level_array(self):
        todos = parse_todos_from_json('[{"id": "a", "title": "Buy milk"}, {"title": "Walk dog"}]')
        assert [t.title for t in todos] == ["Buy milk", "Walk dog"]
        assert todos[0].id == "a"
        assert todos[1].id.startswith("j_")

    def test_object_with_todos_or_tasks(self):
        assert parse_todos_from_json('{"todos": [{"title": "A"}]}')[0].title == "A"
        assert parse_todos_from_json('{"tasks": [{"task": "B"}]}')[0].title == "B"

    def test_fenced_block_inside_prose(self):
        text = (
            "Here you go:\n\n```json\n"
            '[{"title": "Write report", "due": "2026-02-12", "priority": "High", "estimatedMinutes": 120}]\n'
            "```\nAnything else?"
        )
        todos = parse_todos_from_json(text)
        assert len(todos) == 1
        todo = todos[0]
        assert todo.due == "2026-02-12"
        assert todo.priority == "high"
        assert todo.estimated_minutes == 120

    def test_bracket_and_brace_substrings(self):
        assert parse_todos_from_json('Sure: [{"title": "A"}] done.')[0].title == "A"
        assert parse_todos_from_json('Result -> {"todos": [{"title": "B"}]} <-')[0].title == "B"

    def test_done_stays_absent_unless_boolean(self):
        todos = parse_todos_from_json('[{"title": "A"}, {"title": "B", "done": "yes"}, {"title": "C", "done": true}]')
        assert [t.done for t in todos] == [None, None, True]

    def test_created_at_kept_only_when_present(self):
        todos = parse_todos_from_json('[{"title": "A", "createdAt": "2026-01-01T10:00:00Z"}, {"title": "B"}]')
        assert todos[0].created_at == datetime(2026, 1, 1, 10, tzinfo=timezone.utc)
        assert todos[1].created_at is None

    def test_items_without_title_are_skipped(self):
        todos = parse_todos_from_json('[{"due": "2026-01-01"}, "text", {"title": "  "}, {"title": "Real"}]')
        assert [t.title for t in todos] == ["Real"]

    def test_invalid_fields_become_absent(self):
        todo = normalize_todo({"title": "A", "priority": "urgent", "estimatedMinutes": "soon"})
        assert todo.priority is None
        assert todo.estimated_minutes is None

    def test_numeric_string_minutes_and_date_alias(self):
        todo = normalize_todo({"title": "A", "estimatedMinutes": "45", "date": "2026-03-01"})
        assert todo.estimated_minutes == 45
        assert todo.due == "2026-03-01"

    def test_no_json_returns_none(self):
        assert parse_todos_from_json("just chatting") is None
        assert parse_todos_from_json("[]") is None
        assert parse_todos_from_json('{"other": [1, 2]}') is None
        assert parse_todos_from_json("") is None


class TestMarkdownReader:
    TABLE = "\n".join(
        [
            "Here is the table:",
            "| id | title | due | priority | estimatedMinutes | done |",
            "| --- | --- | --- | --- | --- | --- |",
            "| t1 | Buy milk | 2026-01-01 | low | 15 | [x] |",
            "| t2 | Call mom |  | HIGH |  | [ ] |",
            "| t3 | Pay rent |  |  |  |  |",
        ]
    )

    def test_reads_rows_keyed_by_header(self):
        todos = parse_todos_from_markdown_table(self.TABLE)
        assert [t.id for t in todos] == ["t1", "t2", "t3"]
        first = todos[0]
        assert first.title == "Buy milk"
        assert first.due == "2026-01-01"
        assert first.priority == "low"
        assert first.estimated_minutes == 15
        assert first.done is True

    def test_empty_cells_keep_their_column(self):
        second = parse_todos_from_markdown_table(self.TABLE)[1]
        assert second.due is None
        assert second.priority == "high"
        assert second.estimated_minutes is None
        assert second.done is False

    def test_empty_done_cell_is_absent(self):
        assert parse_todos_from_markdown_table(self.TABLE)[2].done is None

    def test_done_prefixes(self):
        table = "| task | done |\n|---|---|\n| A | Yes |\n| B | true |\n| C | no |"
        todos = parse_todos_from_markdown_table(table)
        assert [t.title for t in todos] == ["A", "B", "C"]
        assert [t.done for t in todos] == [True, True, False]
        assert all(t.id.startswith("md_") for t in todos)

    def test_requires_separator_line(self):
        assert parse_todos_from_markdown_table("| title |\n| Buy milk |") is None

    def test_no_table_returns_none(self):
        assert parse_todos_from_markdown_table("no table here\nat all") is None

    def test_stops_at_first_non_table_line(self):
        table = "| title |\n| --- |\n| A |\n\nsome prose\n| B |"
        assert [t.title for t in parse_todos_from_markdown_table(table)] == ["A"]


class TestExtract:
    def test_json_wins_over_markdown(self):
        text = '[{"title": "From JSON"}]'
        assert extract(text)[0].title == "From JSON"

    def test_falls_back_to_markdown(self):
        assert extract("| title |\n|---|\n| From table |")[0].title == "From table"

    def test_nothing_found(self):
        assert extract("what's the weather?") is None


class TestMarkdownWriter:
    def test_round_trip_through_markdown_reader(self):
        todo = Todo(id="1", title="A", due="2026-01-01", priority="high", estimated_minutes=30, done=True)
        parsed = parse_todos_from_markdown_table(todos_to_markdown_table([todo]))
        assert len(parsed) == 1
        back = parsed[0]
        assert back.id == "1"
        assert back.title == "A"
        assert back.due == "2026-01-01"
        assert back.priority == "high"
        assert back.estimated_minutes == 30
        assert back.done is True

    def test_pipes_in_titles_are_escaped(self):
        md = todos_to_markdown_table([Todo(id="p", title="A | B")])
        assert "A \\| B" in md
        assert parse_todos_from_markdown_table(md)[0].title == "A | B"

    def test_absent_fields_render_as_empty_cells(self):
        md = todos_to_markdown_table([Todo(id="x", title="Bare", estimated_minutes=30.0)])
        lines = md.splitlines()
        assert lines[0] == "| id | title | due | priority | estimatedMinutes | done |"
        assert lines[2] == "| x | Bare |  |  | 30 | [ ] |"
