"""Store and session registry dependencies."""
from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session as DbSession

from psyexam.database import get_db
from psyexam.services.question_store import SqlQuestionSetStore
from psyexam.services.session_registry import SessionRegistry, registry


def get_store(db: Annotated[DbSession, Depends(get_db)]) -> SqlQuestionSetStore:
    """Question set store bound to the request's database session."""
    return SqlQuestionSetStore(db)


def get_session_registry() -> SessionRegistry:
    return registry
