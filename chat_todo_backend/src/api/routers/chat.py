from __future__ import annotations

from fastapi import APIRouter, Depends

from ..extraction import extract
from ..llm import LLMClient, get_llm_client
from ..schemas import ChatRequest, ChatResponse, ErrorResponse

router = APIRouter(
    prefix="/api/chat",
    tags=["chat"],
)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ChatResponse,
    summary="Chat",
    description=(
        "Relay the conversation to the model. The model is instructed to echo any todo set as a "
        "fenced JSON array; the todos recovered from the reply are returned alongside it."
    ),
    responses={500: {"model": ErrorResponse, "description": "Model call failed"}},
)
async def chat(payload: ChatRequest, llm: LLMClient = Depends(get_llm_client)) -> ChatResponse:
    """
    Return the assistant reply and the todos it carries, if any.
    """
    reply = await llm.chat(payload.messages)
    todos = extract(reply)
    return ChatResponse(reply=reply, todos=[t.to_dict() for t in todos] if todos else None)
