"""Shared fixtures: an isolated history store and a scripted model client."""
import os
from typing import List, Optional

import pytest

# Must be set before importing app modules.
os.environ.setdefault("HISTORY_BACKEND", "memory")
os.environ.pop("OPENAI_API_KEY", None)

from src.api.llm import LLMError, get_llm_client  # noqa: E402
from src.api.main import app  # noqa: E402
from src.api.repositories import InMemoryHistoryRepository, get_repository  # noqa: E402
from src.api.schemas import ExtractedTodo  # noqa: E402


class FakeLLM:
    """Stands in for LLMClient; records calls and replays scripted answers."""

    def __init__(self) -> None:
        self.has_api_key = True
        self.todos: Optional[List[ExtractedTodo]] = None
        self.reply = "Nothing to add."
        self.error: Optional[Exception] = None
        self.extract_calls: List[str] = []
        self.chat_calls: List[list] = []

    async def extract_todos(self, text):
        self.extract_calls.append(text)
        if self.error:
            raise self.error
        return self.todos

    async def chat(self, messages):
        self.chat_calls.append(list(messages))
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def fake_llm():
    llm = FakeLLM()
    app.dependency_overrides[get_llm_client] = lambda: llm
    yield llm
    app.dependency_overrides.pop(get_llm_client, None)


@pytest.fixture
def repo():
    store = InMemoryHistoryRepository()
    app.dependency_overrides[get_repository] = lambda: store
    yield store
    app.dependency_overrides.pop(get_repository, None)


@pytest.fixture
def llm_error():
    return LLMError("Model request failed: boom")
