"""Statistics and taxonomy endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from psyexam.dependencies import get_request_context, get_store, require_admin
from psyexam.models import RequestContext, Statistics
from psyexam.services.question_store import SqlQuestionSetStore, StoreError
from psyexam.taxonomy import taxonomy_payload

router = APIRouter(prefix="/api", tags=["statistics"])


@router.get("/taxonomy")
def get_taxonomy() -> dict[str, object]:
    """Categories, sub-categories, topics and option lists for the forms."""
    return taxonomy_payload()


@router.get("/statistics", response_model=Statistics)
def get_statistics(
    context: Annotated[RequestContext, Depends(get_request_context)],
    store: Annotated[SqlQuestionSetStore, Depends(get_store)],
) -> Statistics:
    """Question set counters."""
    try:
        return store.get_statistics()
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/statistics/recalculate", response_model=Statistics)
def recalculate_statistics(
    context: Annotated[RequestContext, Depends(require_admin)],
    store: Annotated[SqlQuestionSetStore, Depends(get_store)],
) -> Statistics:
    """Rebuild the counters from the stored sets (admin only)."""
    try:
        return store.recalculate_statistics()
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))
