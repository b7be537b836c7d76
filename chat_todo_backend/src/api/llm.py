from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from .schemas import ChatMessage, ExtractedTodo
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = (
    "Extract todos from the following text. If there are todos present, return a JSON object with "
    'a single key "todos" whose value is an array of todo objects. Each todo object must contain: '
    "title (string), due (ISO date string, optional), priority (one of \"low\", \"medium\", \"high\"; "
    "optional), estimatedMinutes (number, optional), done (boolean, optional). If there are no todos, "
    'return { "todos": null }. Output must be valid JSON only, nothing else.'
)

CHAT_SYSTEM_PROMPT = (
    "You are a helpful assistant that can do various tasks. When the user provides or refers to todo "
    "tasks, always include a machine-readable JSON representation in your reply wrapped in a "
    "triple-backtick json code block so the frontend can parse it. The JSON must be an array of objects "
    'with these fields: title (string), due (ISO date string, optional), priority ("low"|"medium"|"high", '
    "optional), estimatedMinutes (number, optional), done (boolean). Example:\n\n"
    "I can help, here's a summary:\n- ...human friendly text...\n\n"
    "```json\n"
    '[\n  { "title": "Write report", "due": "2026-02-12", "priority": "high", "estimatedMinutes": 120, "done": false }\n]\n'
    "```\n\n"
    "If there are no tasks to extract, do not emit an empty JSON array. Keep the human-friendly text, "
    "but only include JSON when tasks are present. Make the JSON valid and parsable."
)


class LLMError(RuntimeError):
    """Raised when the model cannot be reached or answers with something unusable."""


# PUBLIC_INTERFACE
class LLMClient:
    """
    Minimal client for an OpenAI-compatible chat completions endpoint.

    Calls are made once; failures surface as LLMError and are not retried.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    @property
    def has_api_key(self) -> bool:
        return bool(self.settings.openai_api_key)

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.has_api_key:
            raise LLMError("OPENAI_API_KEY is not configured")
        try:
            async with httpx.AsyncClient(timeout=self.settings.llm_timeout_seconds) as client:
                response = await client.post(
                    f"{self.settings.openai_base_url}/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self.settings.openai_api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise LLMError(f"Model request failed: {exc}") from exc
        if not isinstance(body, dict):
            raise LLMError("Provider response is not a JSON object")
        return body

    @staticmethod
    def _extract_content(payload: Dict[str, Any]) -> str:
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            raise LLMError("Provider response missing choices")
        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict):
            raise LLMError("Provider message is invalid")
        content = message.get("content")
        if isinstance(content, list):
            parts = [p.get("text") for p in content if isinstance(p, dict)]
            content = "\n".join(p for p in parts if isinstance(p, str)).strip()
        if not isinstance(content, str):
            raise LLMError("Provider content is not text")
        return content

    @staticmethod
    def _normalize_todos(payload: Any) -> Optional[List[ExtractedTodo]]:
        if not isinstance(payload, dict):
            raise LLMError("Parsed provider content is not an object")
        items = payload.get("todos")
        if not isinstance(items, list):
            return None
        todos: List[ExtractedTodo] = []
        for item in items:
            try:
                todos.append(ExtractedTodo.model_validate(item))
            except ValidationError as exc:
                logger.warning("Dropping extracted todo that fails the schema: %s", exc.errors())
        return todos or None

    async def extract_todos(self, text: str) -> Optional[List[ExtractedTodo]]:
        """Ask the model for todos in `text`. Returns None when it finds none."""
        payload = {
            "model": self.settings.openai_model,
            "temperature": 0,
            "max_tokens": self.settings.llm_max_output_tokens,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": EXTRACTION_PROMPT},
                {"role": "user", "content": text},
            ],
        }
        content = self._extract_content(await self._post(payload))
        try:
            parsed = json.loads(content)
        except ValueError as exc:
            raise LLMError("Provider content is not JSON") from exc
        return self._normalize_todos(parsed)

    async def chat(self, messages: Sequence[ChatMessage]) -> str:
        """Return the assistant's reply to the conversation."""
        payload = {
            "model": self.settings.openai_model,
            "messages": [{"role": "system", "content": CHAT_SYSTEM_PROMPT}]
            + [{"role": m.role, "content": m.content} for m in messages],
        }
        return self._extract_content(await self._post(payload))


# PUBLIC_INTERFACE
def get_llm_client() -> LLMClient:
    """FastAPI dependency returning a model client bound to current settings."""
    return LLMClient()
