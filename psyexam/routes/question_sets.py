"""Question set management endpoints."""
import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from psyexam.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from psyexam.dependencies import get_request_context, get_store, require_admin
from psyexam.models import (
    BulkDeleteRequest,
    QuestionFilters,
    QuestionSet,
    QuestionSetCreate,
    QuestionSetPage,
    QuestionSetUpdate,
    RequestContext,
    StatusUpdate,
)
from psyexam.services.question_store import (
    SetNotFoundError,
    SqlQuestionSetStore,
    StoreError,
)
from psyexam.taxonomy import SetStatus
from psyexam.utils import validate_id, validate_ids

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/question-sets", tags=["question-sets"])


def _store_unavailable(e: StoreError) -> HTTPException:
    return HTTPException(status_code=502, detail=str(e) or "Question store unavailable")


def _fetch_page(
    store: SqlQuestionSetStore,
    limit: int,
    cursor: str | None,
    sort_field: str,
    sort_dir: str,
    filters: QuestionFilters,
) -> QuestionSetPage:
    try:
        return store.fetch_candidate_sets(limit, cursor, sort_field, sort_dir, filters)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError as e:
        raise _store_unavailable(e)


@router.get("", response_model=QuestionSetPage)
def list_question_sets(
    context: Annotated[RequestContext, Depends(get_request_context)],
    store: Annotated[SqlQuestionSetStore, Depends(get_store)],
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    cursor: str | None = Query(None),
    sort_field: str = Query("created_at", alias="sortField"),
    sort_dir: str = Query("desc", alias="sortDir"),
    category: str | None = Query(None),
    subcategory: list[str] | None = Query(None),
    difficulty: str | None = Query(None),
    status: SetStatus | None = Query(None),
    creator: str | None = Query(None),
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
) -> QuestionSetPage:
    """List question sets with optional filters.

    Args:
        limit: Page size
        cursor: Cursor returned with the previous page
        sort_field: Field to sort by
        sort_dir: "asc" or "desc"
        category: Exact category
        subcategory: One or more sub-categories (any of)
        difficulty: Exact set difficulty
        status: Review status
        creator: Author name
        start_date: Created at or after
        end_date: Created at or before
    """
    filters = QuestionFilters(
        category=category,
        subcategory=subcategory or None,
        difficulty=difficulty,
        status=status.value if status else None,
        author=creator,
        start_date=start_date,
        end_date=end_date,
    )
    return _fetch_page(store, limit, cursor, sort_field, sort_dir, filters)


@router.post("", response_model=QuestionSet, status_code=201)
def create_question_set(
    payload: QuestionSetCreate,
    context: Annotated[RequestContext, Depends(get_request_context)],
    store: Annotated[SqlQuestionSetStore, Depends(get_store)],
) -> QuestionSet:
    """Create a new question set authored by the caller."""
    try:
        created = store.create_set(payload, context.author_name)
    except StoreError as e:
        raise _store_unavailable(e)
    logger.info(f"Question set {created.id} created by {context.user_id}")
    return created


@router.get("/inbox", response_model=QuestionSetPage)
def review_inbox(
    context: Annotated[RequestContext, Depends(get_request_context)],
    store: Annotated[SqlQuestionSetStore, Depends(get_store)],
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    cursor: str | None = Query(None),
) -> QuestionSetPage:
    """Pending sets written by other authors, waiting for the caller's review."""
    filters = QuestionFilters(
        status=SetStatus.PENDING.value,
        exclude_author=context.author_name,
    )
    return _fetch_page(store, limit, cursor, "author", "asc", filters)


@router.post("/delete")
def delete_question_sets(
    payload: BulkDeleteRequest,
    context: Annotated[RequestContext, Depends(require_admin)],
    store: Annotated[SqlQuestionSetStore, Depends(get_store)],
) -> dict[str, object]:
    """Delete question sets in bulk (admin only)."""
    ids = validate_ids("setId", payload.ids)
    try:
        deleted = store.delete_sets(ids)
    except StoreError as e:
        raise _store_unavailable(e)
    logger.info(f"{context.user_id} deleted {deleted} question sets")
    return {"deleted": deleted}


@router.get("/{set_id}", response_model=QuestionSet)
def get_question_set(
    set_id: str,
    context: Annotated[RequestContext, Depends(get_request_context)],
    store: Annotated[SqlQuestionSetStore, Depends(get_store)],
) -> QuestionSet:
    """Get a question set."""
    set_id = validate_id("setId", set_id)
    try:
        question_set = store.fetch_set_by_id(set_id)
    except StoreError as e:
        raise _store_unavailable(e)
    if question_set is None:
        raise HTTPException(status_code=404, detail="Question set not found")
    return question_set


def _update(store: SqlQuestionSetStore, set_id: str, patch: dict[str, object]) -> QuestionSet:
    try:
        return store.update_set(set_id, patch)
    except SetNotFoundError:
        raise HTTPException(status_code=404, detail="Question set not found")
    except StoreError as e:
        raise _store_unavailable(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/{set_id}", response_model=QuestionSet)
def update_question_set(
    set_id: str,
    payload: QuestionSetUpdate,
    context: Annotated[RequestContext, Depends(get_request_context)],
    store: Annotated[SqlQuestionSetStore, Depends(get_store)],
) -> QuestionSet:
    """Update an existing question set."""
    set_id = validate_id("setId", set_id)
    return _update(store, set_id, payload.to_patch())


@router.post("/{set_id}/status", response_model=QuestionSet)
def change_status(
    set_id: str,
    payload: StatusUpdate,
    context: Annotated[RequestContext, Depends(get_request_context)],
    store: Annotated[SqlQuestionSetStore, Depends(get_store)],
) -> QuestionSet:
    """Move a question set through the review workflow."""
    set_id = validate_id("setId", set_id)
    updated = _update(store, set_id, {"status": payload.status.value})
    logger.info(f"Question set {set_id} marked {payload.status.value} by {context.user_id}")
    return updated
