from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .models import Todo
from .utils import generate_id

logger = logging.getLogger(__name__)


def todo_from_extraction(raw: Dict[str, Any], index: int = 0) -> Optional[Todo]:
    """
    Normalize one item of a /parse-todos response for local use.

    A missing title becomes 'Untitled', a missing id is generated and `done`
    defaults to False, since the caller asked for these todos explicitly.
    """
    if not isinstance(raw, dict):
        return None
    minutes = raw.get("estimatedMinutes")
    priority = raw.get("priority")
    done = raw.get("done")
    return Todo(
        id=str(raw["id"]) if raw.get("id") else generate_id(f"todo-{index}", 6),
        title=str(raw.get("title") or "Untitled").strip() or "Untitled",
        due=raw.get("due") or None,
        priority=priority if priority in ("low", "medium", "high") else None,
        estimated_minutes=float(minutes) if isinstance(minutes, (int, float)) and not isinstance(minutes, bool) else None,
        done=done if isinstance(done, bool) else False,
    )


# PUBLIC_INTERFACE
class TodoApiClient:
    """
    Async client for the chat todo API.

    Every call absorbs network and HTTP failures: the failure is logged and the
    call returns its "nothing happened" value (None, False or an empty list).
    Nothing is retried.
    """

    def __init__(
        self,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout

    async def _request(self, method: str, path: str, **kwargs: Any) -> Optional[Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, transport=self._transport, timeout=self._timeout
            ) as client:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            return None

    async def parse_todos(self, text: str) -> Optional[List[Todo]]:
        body = await self._request("POST", "/parse-todos", json={"text": text})
        items = body.get("todos") if isinstance(body, dict) else None
        if not isinstance(items, list):
            return None
        todos = [t for t in (todo_from_extraction(item, i) for i, item in enumerate(items)) if t is not None]
        return todos or None

    async def check_open_ai_key(self) -> bool:
        body = await self._request("GET", "/check-open-ai-key")
        return bool(isinstance(body, dict) and body.get("success"))

    async def create_history(
        self,
        todos: Sequence[Todo],
        messages: Sequence[Any],
        title: Optional[str] = None,
    ) -> Optional[str]:
        payload: Dict[str, Any] = {
            "todos": [t.to_dict() for t in todos],
            "messages": list(messages),
        }
        if title is not None:
            payload["title"] = title
        body = await self._request("POST", "/api/histories", json=payload)
        return body.get("id") if isinstance(body, dict) else None

    async def list_histories(self) -> List[Dict[str, Any]]:
        body = await self._request("GET", "/api/histories")
        histories = body.get("histories") if isinstance(body, dict) else None
        return histories if isinstance(histories, list) else []

    async def get_history(self, session_id: str) -> Optional[Dict[str, Any]]:
        body = await self._request("GET", f"/api/histories/{session_id}")
        session = body.get("session") if isinstance(body, dict) else None
        return session if isinstance(session, dict) else None

    async def delete_history(self, session_id: str) -> bool:
        body = await self._request("DELETE", f"/api/histories/{session_id}")
        return bool(isinstance(body, dict) and body.get("ok"))

    async def chat(self, messages: Sequence[Dict[str, str]]) -> Optional[Dict[str, Any]]:
        body = await self._request("POST", "/api/chat", json={"messages": list(messages)})
        return body if isinstance(body, dict) else None
