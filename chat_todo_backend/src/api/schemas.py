from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer

Priority = Literal["low", "medium", "high"]


# PUBLIC_INTERFACE
class ParseTodosRequest(BaseModel):
    """
    Request body for POST /parse-todos.
    """

    model_config = ConfigDict(
        json_schema_extra={"example": {"text": "Write the report by Friday, high priority, about 2 hours"}}
    )

    text: str = Field(default="", description="Free-form text that may describe todos")

    @field_validator("text", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        """
        Treat a missing or non-string text as empty.
        """
        return v if isinstance(v, str) else ""


# PUBLIC_INTERFACE
class ExtractedTodo(BaseModel):
    """
    A todo as returned by the model's structured extraction.
    """

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., description="Short title for the todo item", min_length=1)
    due: Optional[str] = Field(default=None, description="ISO date string")
    priority: Optional[Priority] = Field(default=None, description="low, medium or high")
    estimated_minutes: Optional[float] = Field(
        default=None, alias="estimatedMinutes", ge=0, description="Estimated effort in minutes"
    )
    done: Optional[bool] = Field(default=None, description="Completion flag, if stated")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("title must not be blank")
        return s

    @model_serializer(mode="wrap")
    def omit_absent(self, handler):
        """
        Leave absent optional fields out of the output instead of sending null.
        """
        return {k: v for k, v in handler(self).items() if v is not None}


# PUBLIC_INTERFACE
class ParseTodosResponse(BaseModel):
    """
    Response body for POST /parse-todos. `todos` is null when nothing was found.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "todos": [
                    {"title": "Write report", "due": "2026-02-12", "priority": "high", "estimatedMinutes": 120}
                ]
            }
        }
    )

    todos: Optional[List[ExtractedTodo]] = Field(default=None, description="Extracted todos or null")


# PUBLIC_INTERFACE
class KeyCheckResponse(BaseModel):
    """
    Response body for GET /check-open-ai-key.
    """

    success: bool = Field(..., description="Whether the model credential is configured")


# PUBLIC_INTERFACE
class SessionCreate(BaseModel):
    """
    Schema for saving a chat session snapshot. Missing arrays default to empty.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Monday planning",
                "todos": [{"id": "t_1", "title": "Write report", "done": False}],
                "messages": [{"role": "user", "content": "Add: write report"}],
            }
        }
    )

    id: Optional[str] = Field(default=None, description="Session id; generated when omitted")
    todos: List[Any] = Field(default_factory=list, description="Todo records (opaque JSON objects)")
    messages: List[Any] = Field(default_factory=list, description="Chat messages (opaque JSON)")
    title: Optional[str] = Field(default=None, description="Optional display title")

    @field_validator("todos", "messages", mode="before")
    @classmethod
    def default_empty(cls, v: Any) -> List[Any]:
        """
        Null or non-array values become an empty list.
        """
        return v if isinstance(v, list) else []

    @field_validator("id", mode="before")
    @classmethod
    def blank_id_is_missing(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        s = str(v).strip()
        return s or None


# PUBLIC_INTERFACE
class SessionOut(BaseModel):
    """
    A stored chat session snapshot.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Session id")
    created_at: str = Field(..., alias="createdAt", description="ISO8601 UTC creation timestamp")
    todos: List[Any] = Field(default_factory=list)
    messages: List[Any] = Field(default_factory=list)
    title: Optional[str] = Field(default=None)


# PUBLIC_INTERFACE
class SessionSummary(BaseModel):
    """
    List-view entry for a stored session.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    created_at: str = Field(..., alias="createdAt")
    title: Optional[str] = None
    todo_count: int = Field(..., alias="todoCount")
    message_count: int = Field(..., alias="messageCount")


class HistoryList(BaseModel):
    histories: List[SessionSummary] = Field(..., description="Sessions, newest first")


class SessionEnvelope(BaseModel):
    session: SessionOut


class SessionCreated(BaseModel):
    ok: bool = True
    id: str


class OkResponse(BaseModel):
    ok: bool = True


class ErrorResponse(BaseModel):
    error: str


# PUBLIC_INTERFACE
class ChatMessage(BaseModel):
    """
    One message of the conversation relayed to the model.
    """

    role: Literal["user", "assistant", "system"]
    content: str


# PUBLIC_INTERFACE
class ChatRequest(BaseModel):
    """
    Request body for POST /api/chat.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"messages": [{"role": "user", "content": "I need to buy milk tomorrow"}]}
        }
    )

    messages: List[ChatMessage] = Field(..., min_length=1, description="Conversation so far")


# PUBLIC_INTERFACE
class ChatResponse(BaseModel):
    """
    The model's reply and the todos recovered from it (null when none).
    """

    reply: str
    todos: Optional[List[Dict[str, Any]]] = None
