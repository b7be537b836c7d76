from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..repositories import HistoryRepository, get_repository
from ..schemas import (
    ErrorResponse,
    HistoryList,
    OkResponse,
    SessionCreate,
    SessionCreated,
    SessionEnvelope,
    SessionOut,
    SessionSummary,
)
from ..utils import session_summary

router = APIRouter(
    prefix="/api/histories",
    tags=["histories"],
)


def _get_repo(repo: HistoryRepository = Depends(get_repository)) -> HistoryRepository:
    """
    Dependency wrapper for repository to keep signatures clean.
    """
    return repo


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=SessionCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Save Session",
    description="Store a chat session snapshot {todos, messages, title} and return its id.",
    responses={201: {"description": "Session stored"}},
)
def create_history(payload: SessionCreate, repo: HistoryRepository = Depends(_get_repo)) -> SessionCreated:
    """
    Save a session snapshot.
    """
    session = repo.create(payload)
    return SessionCreated(ok=True, id=session["id"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=HistoryList,
    summary="List Sessions",
    description="List stored sessions as summaries, newest first.",
)
def list_histories(repo: HistoryRepository = Depends(_get_repo)) -> HistoryList:
    """
    List session summaries sorted by createdAt descending.
    """
    return HistoryList(histories=[SessionSummary(**session_summary(s)) for s in repo.list()])


# PUBLIC_INTERFACE
@router.get(
    "/{session_id}",
    response_model=SessionEnvelope,
    summary="Get Session",
    description="Get one stored session by id.",
    responses={
        200: {"description": "Session found"},
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
def get_history(session_id: str, repo: HistoryRepository = Depends(_get_repo)):
    """
    Retrieve a stored session. Returns 404 {error: 'not_found'} when missing.
    """
    session = repo.get(session_id)
    if session is None:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": "not_found"})
    return SessionEnvelope(session=SessionOut(**session))


# PUBLIC_INTERFACE
@router.delete(
    "/{session_id}",
    response_model=OkResponse,
    summary="Delete Session",
    description="Delete a stored session. Deleting a missing session also succeeds.",
)
def delete_history(session_id: str, repo: HistoryRepository = Depends(_get_repo)) -> OkResponse:
    """
    Delete a session by id.
    """
    repo.delete(session_id)
    return OkResponse(ok=True)
