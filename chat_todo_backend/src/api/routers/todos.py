from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from ..llm import LLMClient, get_llm_client
from ..schemas import ErrorResponse, KeyCheckResponse, ParseTodosRequest, ParseTodosResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["todos"])


def _get_llm(llm: LLMClient = Depends(get_llm_client)) -> LLMClient:
    """
    Dependency wrapper for the model client to keep signatures clean.
    """
    return llm


# PUBLIC_INTERFACE
@router.post(
    "/parse-todos",
    response_model=ParseTodosResponse,
    summary="Parse Todos",
    description=(
        "Extract structured todos from free-form text using the hosted model.\n\n"
        "Returns {todos: null} for blank input or when the model finds no todos."
    ),
    openapi_extra={
        "requestBody": {
            "required": False,
            "content": {"application/json": {"schema": ParseTodosRequest.model_json_schema()}},
        }
    },
    responses={
        200: {"description": "Extraction finished (todos may be null)"},
        500: {"model": ErrorResponse, "description": "Model call failed"},
    },
)
async def parse_todos(request: Request, llm: LLMClient = Depends(_get_llm)) -> ParseTodosResponse:
    """
    Extract todos from text.

    A missing or unreadable body, or one that is not a JSON object, counts as
    empty input.
    """
    try:
        body = await request.json()
    except ValueError:
        logger.debug("/parse-todos body is not JSON; treating as empty")
        body = {}
    payload = ParseTodosRequest.model_validate(body if isinstance(body, dict) else {})
    if not payload.text.strip():
        return ParseTodosResponse(todos=None)
    todos = await llm.extract_todos(payload.text)
    logger.debug("/parse-todos extracted %d todos", len(todos or []))
    return ParseTodosResponse(todos=todos)


# PUBLIC_INTERFACE
@router.get(
    "/check-open-ai-key",
    response_model=KeyCheckResponse,
    summary="Check Model Credential",
    description="Report whether the model credential is configured.",
)
def check_open_ai_key(llm: LLMClient = Depends(_get_llm)) -> KeyCheckResponse:
    """
    Return {success: true} when OPENAI_API_KEY is set.
    """
    return KeyCheckResponse(success=llm.has_api_key)
