"""
Recover structured todos from free-form text.

Two readers are tried in order: a JSON reader that tolerates surrounding
prose and fenced code blocks, then a markdown table reader. Neither raises
on bad input; a miss is simply None.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from .models import PRIORITIES, Todo, format_minutes
from .utils import generate_id, parse_timestamp

logger = logging.getLogger(__name__)

_FENCED_BLOCK_RE = re.compile(r"```[ \t]*[\w-]*[ \t]*\r?\n?(.*?)```", re.DOTALL)
_CELL_SPLIT_RE = re.compile(r"(?<!\\)\|")

MARKDOWN_HEADERS = ("id", "title", "due", "priority", "estimatedMinutes", "done")


def _clean_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    s = str(value).strip()
    return s or None


def _parse_priority(value: Any) -> Optional[str]:
    s = _clean_str(value)
    if s is None:
        return None
    s = s.lower()
    return s if s in PRIORITIES else None


def _parse_minutes(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
    if number != number or number < 0:  # NaN or negative
        return None
    return number


# PUBLIC_INTERFACE
def normalize_todo(raw: Any, id_prefix: str = "j") -> Optional[Todo]:
    """
    Normalize one decoded JSON item into a Todo.

    - Non-object items and items without a title ('title' or 'task') yield None.
    - A missing id is generated.
    - `done` is kept only when it is a real boolean; otherwise it stays absent.
    - `createdAt` is kept only when present and parseable.
    """
    if not isinstance(raw, dict):
        return None
    title = _clean_str(raw.get("title")) or _clean_str(raw.get("task"))
    if title is None:
        return None
    raw_id = _clean_str(raw.get("id"))
    due = _clean_str(raw.get("due")) or _clean_str(raw.get("date"))
    done = raw.get("done")
    return Todo(
        id=raw_id or generate_id(id_prefix, 6),
        title=title,
        due=due,
        priority=_parse_priority(raw.get("priority")),
        estimated_minutes=_parse_minutes(raw.get("estimatedMinutes")),
        done=done if isinstance(done, bool) else None,
        created_at=parse_timestamp(raw.get("createdAt")) if isinstance(raw.get("createdAt"), str) else None,
    )


def _todos_from_decoded(obj: Any) -> List[Todo]:
    items: Any = None
    if isinstance(obj, list):
        items = obj
    elif isinstance(obj, dict):
        for key in ("todos", "tasks"):
            if isinstance(obj.get(key), list):
                items = obj[key]
                break
    if items is None:
        return []
    return [todo for todo in (normalize_todo(item) for item in items) if todo is not None]


def _json_candidates(text: str) -> Iterator[str]:
    yield text
    fenced = _FENCED_BLOCK_RE.search(text)
    if fenced:
        yield fenced.group(1)
    for opener, closer in (("[", "]"), ("{", "}")):
        start = text.find(opener)
        end = text.rfind(closer)
        if start != -1 and end > start:
            yield text[start : end + 1]


# PUBLIC_INTERFACE
def parse_todos_from_json(text: str) -> Optional[List[Todo]]:
    """
    Parse todos from JSON embedded in text.

    Tries the whole text, then the first fenced code block, then the widest
    [...] substring, then the widest {...} substring. Accepts a top-level array
    or an object with a 'todos' or 'tasks' array. Returns None if nothing yields
    at least one todo.
    """
    if not text or not text.strip():
        return None
    for candidate in _json_candidates(text):
        try:
            decoded = json.loads(candidate)
        except ValueError:
            continue
        todos = _todos_from_decoded(decoded)
        if todos:
            return todos
    logger.debug("No JSON todos found in %d chars of text", len(text))
    return None


def _split_row(line: str) -> List[str]:
    inner = line.strip()
    if inner.startswith("|"):
        inner = inner[1:]
    if inner.endswith("|") and not inner.endswith("\\|"):
        inner = inner[:-1]
    return [cell.strip().replace("\\|", "|") for cell in _CELL_SPLIT_RE.split(inner)]


def _parse_done_cell(cell: str) -> Optional[bool]:
    s = cell.strip().lower()
    if not s:
        return None
    return s.startswith("y") or s.startswith("t") or "[x]" in s


# PUBLIC_INTERFACE
def parse_todos_from_markdown_table(text: str) -> Optional[List[Todo]]:
    """
    Parse todos from the first markdown table in text.

    Expects a header row such as | title | due | priority | estimatedMinutes | done |
    followed by a '---' separator line. Returns None when no rows with a title exist.
    """
    if not text:
        return None
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    header_idx = next((i for i, line in enumerate(lines) if line.startswith("|")), None)
    if header_idx is None or header_idx + 1 >= len(lines):
        return None
    if "---" not in lines[header_idx + 1]:
        return None

    header = [h.lower() for h in _split_row(lines[header_idx])]
    todos: List[Todo] = []
    for line in lines[header_idx + 2 :]:
        if not line.startswith("|"):
            break
        cells = _split_row(line)
        row: Dict[str, str] = {name: (cells[i] if i < len(cells) else "") for i, name in enumerate(header)}
        title = row.get("title") or row.get("task") or ""
        if not title:
            continue
        todos.append(
            Todo(
                id=row.get("id") or generate_id("md", 6),
                title=title,
                due=row.get("due") or None,
                priority=_parse_priority(row.get("priority")),
                estimated_minutes=_parse_minutes(row.get("estimatedminutes") or None),
                done=_parse_done_cell(row.get("done", "")),
            )
        )
    return todos or None


# PUBLIC_INTERFACE
def extract(text: str) -> Optional[List[Todo]]:
    """Return todos found in text via the JSON reader, then the markdown reader, or None."""
    return parse_todos_from_json(text) or parse_todos_from_markdown_table(text)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value).replace("|", "\\|")


# PUBLIC_INTERFACE
def todos_to_markdown_table(todos: Iterable[Todo]) -> str:
    """Render todos as a compact markdown table the markdown reader can parse back."""
    lines = [
        "| " + " | ".join(MARKDOWN_HEADERS) + " |",
        "| " + " | ".join("---" for _ in MARKDOWN_HEADERS) + " |",
    ]
    for t in todos:
        minutes = format_minutes(t.estimated_minutes) if t.estimated_minutes is not None else None
        cells: Sequence[str] = (
            _cell(t.id),
            _cell(t.title),
            _cell(t.due),
            _cell(t.priority),
            _cell(minutes),
            "[x]" if t.done else "[ ]",
        )
        lines.append("| " + " | ".join(cells) + " |")
    return "\n".join(lines)
