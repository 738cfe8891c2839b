"""Practice exam endpoints."""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from psyexam.dependencies import get_request_context, get_session_registry, get_store
from psyexam.models import (
    AnswerRequest,
    ExamFilters,
    ExamSummary,
    QuestionSet,
    QuestionSetUpdate,
    RequestContext,
    SessionView,
)
from psyexam.services.question_store import SetNotFoundError, SqlQuestionSetStore
from psyexam.services.selection import SelectionError, resolve_selection
from psyexam.services.session_registry import (
    SessionAccessError,
    SessionNotFoundError,
    SessionRegistry,
    new_session_id,
)
from psyexam.services.session_runner import EditFetchError, EditSaveError, ExamSession
from psyexam.utils import validate_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/exam/sessions", tags=["exam"])


def _load_session(
    registry: SessionRegistry, session_id: str, context: RequestContext
) -> ExamSession:
    session_id = validate_id("sessionId", session_id)
    try:
        return registry.get(session_id, context)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    except SessionAccessError:
        raise HTTPException(status_code=403, detail="Access denied")


@router.post("", response_model=SessionView, status_code=201)
def start_session(
    filters: ExamFilters,
    context: Annotated[RequestContext, Depends(get_request_context)],
    store: Annotated[SqlQuestionSetStore, Depends(get_store)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> SessionView:
    """Resolve the selection and start a practice session."""
    session = ExamSession(new_session_id(), context, filters)
    try:
        result = resolve_selection(store, filters, context)
    except SelectionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    session.load(result)
    registry.add(session)
    return session.view()


@router.get("/{session_id}", response_model=SessionView)
def get_session(
    session_id: str,
    context: Annotated[RequestContext, Depends(get_request_context)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> SessionView:
    """Current state of a session."""
    return _load_session(registry, session_id, context).view()


@router.post("/{session_id}/answer", response_model=SessionView)
def select_answer(
    session_id: str,
    payload: AnswerRequest,
    context: Annotated[RequestContext, Depends(get_request_context)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> SessionView:
    """Answer the current question. Only the first answer counts."""
    session = _load_session(registry, session_id, context)
    session.select_answer(payload.option_index)
    return session.view()


@router.post("/{session_id}/next", response_model=SessionView)
def next_question(
    session_id: str,
    context: Annotated[RequestContext, Depends(get_request_context)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> SessionView:
    """Move to the next question, or finish after the last one."""
    session = _load_session(registry, session_id, context)
    if not session.advance_if_answered():
        raise HTTPException(status_code=409, detail="Answer the current question first")
    return session.view()


@router.post("/{session_id}/previous", response_model=SessionView)
def previous_question(
    session_id: str,
    context: Annotated[RequestContext, Depends(get_request_context)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> SessionView:
    """Go back one question."""
    session = _load_session(registry, session_id, context)
    session.retreat()
    return session.view()


@router.get("/{session_id}/edit", response_model=QuestionSet)
def open_editor(
    session_id: str,
    context: Annotated[RequestContext, Depends(get_request_context)],
    store: Annotated[SqlQuestionSetStore, Depends(get_store)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> QuestionSet:
    """Fetch the set behind the current question for editing."""
    session = _load_session(registry, session_id, context)
    try:
        question_set = session.begin_edit(store)
    except EditFetchError as e:
        raise HTTPException(status_code=502, detail=str(e))
    if question_set is None:
        raise HTTPException(status_code=404, detail="Question set not found")
    return question_set


@router.patch("/{session_id}/edit", response_model=SessionView)
def save_edit(
    session_id: str,
    payload: QuestionSetUpdate,
    context: Annotated[RequestContext, Depends(get_request_context)],
    store: Annotated[SqlQuestionSetStore, Depends(get_store)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> SessionView:
    """Save edits to the set behind the current question and refresh the session."""
    session = _load_session(registry, session_id, context)
    if session.current_question is None:
        raise HTTPException(status_code=409, detail="No question to edit")
    try:
        refreshed = session.apply_edit(store, payload.to_patch())
    except SetNotFoundError:
        raise HTTPException(status_code=404, detail="Question set not found")
    except EditSaveError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(f"Session {session.session_id}: refreshed {refreshed} questions after edit")
    return session.view()


@router.get("/{session_id}/summary", response_model=ExamSummary)
def get_summary(
    session_id: str,
    context: Annotated[RequestContext, Depends(get_request_context)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> ExamSummary:
    """Score of a finished session."""
    summary = _load_session(registry, session_id, context).summary()
    if summary is None:
        raise HTTPException(status_code=409, detail="Session is still in progress")
    return summary


@router.delete("/{session_id}")
def exit_session(
    session_id: str,
    context: Annotated[RequestContext, Depends(get_request_context)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> dict[str, object]:
    """Leave a session and discard its state."""
    _load_session(registry, session_id, context)
    registry.discard(session_id, context)
    return {"status": "discarded", "sessionId": session_id}
