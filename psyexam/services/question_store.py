"""Question set store backed by SQLAlchemy.

The practice pipeline only depends on the ``QuestionSetStore`` protocol;
``SqlQuestionSetStore`` adapts the module-level functions to it and turns
backend failures into ``StoreError``.
"""
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DbSession

from psyexam.config import MAX_IN_FILTER_VALUES
from psyexam.models.db.question_set import METADATA_FIELDS, QuestionSetRecord
from psyexam.models.question_sets import (
    QuestionFilters,
    QuestionSet,
    QuestionSetBase,
    QuestionSetCreate,
    QuestionSetPage,
    Statistics,
    authoring_errors,
)
from psyexam.services import statistics_service
from psyexam.taxonomy import Difficulty

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "created_at": QuestionSetRecord.created_at,
    "updated_at": QuestionSetRecord.updated_at,
    "category": QuestionSetRecord.category,
    "subcategory": QuestionSetRecord.subcategory,
    "difficulty": QuestionSetRecord.difficulty,
    "status": QuestionSetRecord.status,
    "author": QuestionSetRecord.author,
}
SORT_DIRECTIONS = ("asc", "desc")

# Document keys the store owns; patches cannot overwrite them
PROTECTED_KEYS = {"id", "author", "createdAt", "updatedAt"}


class StoreError(Exception):
    """Raised when the question set store fails."""


class SetNotFoundError(StoreError):
    """Raised when a question set does not exist."""


class QuestionSetStore(Protocol):
    """What the practice pipeline needs from the document store."""

    def fetch_candidate_sets(
        self,
        limit: int,
        cursor: str | None = None,
        sort_field: str = "created_at",
        sort_dir: str = "desc",
        filters: QuestionFilters | None = None,
    ) -> QuestionSetPage: ...

    def fetch_set_by_id(self, set_id: str) -> QuestionSet | None: ...

    def save_set_edits(self, set_id: str, patch: dict[str, object]) -> None: ...


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def record_to_set(record: QuestionSetRecord) -> QuestionSet:
    """Build a question set from its stored document and metadata columns."""
    payload = dict(record.document)
    payload.update(record.metadata_values())
    payload.update(
        {
            "id": record.id,
            "author": record.author,
            "createdAt": record.created_at,
            "updatedAt": record.updated_at,
        }
    )
    return QuestionSet.model_validate(payload)


def _decode_cursor(cursor: str | None) -> int:
    if cursor is None:
        return 0
    try:
        offset = int(cursor)
    except ValueError:
        raise ValueError("Invalid cursor") from None
    if offset < 0:
        raise ValueError("Invalid cursor")
    return offset


def _apply_filters(query, filters: QuestionFilters | None):
    if filters is None:
        return query

    if filters.author:
        query = query.where(QuestionSetRecord.author == filters.author)
    if filters.exclude_author:
        query = query.where(
            or_(
                QuestionSetRecord.author.is_(None),
                QuestionSetRecord.author != filters.exclude_author,
            )
        )
    if filters.category:
        query = query.where(QuestionSetRecord.category == filters.category)
    if isinstance(filters.subcategory, list):
        if len(filters.subcategory) > MAX_IN_FILTER_VALUES:
            raise ValueError(
                f"subcategory filter accepts at most {MAX_IN_FILTER_VALUES} values"
            )
        if filters.subcategory:
            query = query.where(QuestionSetRecord.subcategory.in_(filters.subcategory))
    elif filters.subcategory:
        query = query.where(QuestionSetRecord.subcategory == filters.subcategory)
    if filters.status:
        query = query.where(QuestionSetRecord.status == filters.status)
    if filters.difficulty:
        query = query.where(QuestionSetRecord.difficulty == filters.difficulty)
    if filters.start_date:
        query = query.where(QuestionSetRecord.created_at >= _utc(filters.start_date))
    if filters.end_date:
        query = query.where(QuestionSetRecord.created_at <= _utc(filters.end_date))
    return query


def list_question_sets(
    db: DbSession,
    limit: int = 20,
    cursor: str | None = None,
    sort_field: str = "created_at",
    sort_dir: str = "desc",
    filters: QuestionFilters | None = None,
) -> QuestionSetPage:
    """
    Fetch one page of question sets.

    Args:
        db: Database session
        limit: Page size
        cursor: Opaque cursor from the previous page, None for the first page
        sort_field: One of ``SORT_FIELDS``
        sort_dir: "asc" or "desc"
        filters: Optional store-side filters, ANDed together
    """
    if limit < 1:
        raise ValueError("limit must be positive")
    column = SORT_FIELDS.get(sort_field)
    if column is None:
        raise ValueError(f"Unsupported sort field '{sort_field}'")
    if sort_dir not in SORT_DIRECTIONS:
        raise ValueError(f"Unsupported sort direction '{sort_dir}'")
    offset = _decode_cursor(cursor)

    query = _apply_filters(select(QuestionSetRecord), filters)
    if sort_dir == "asc":
        query = query.order_by(column.asc(), QuestionSetRecord.id.asc())
    else:
        query = query.order_by(column.desc(), QuestionSetRecord.id.desc())
    query = query.limit(limit).offset(offset)

    records = db.execute(query).scalars().all()
    next_cursor = str(offset + len(records)) if len(records) == limit else None
    return QuestionSetPage(
        sets=[record_to_set(record) for record in records],
        next_cursor=next_cursor,
    )


def get_question_set(db: DbSession, set_id: str) -> QuestionSet | None:
    """Get question set by ID."""
    record = db.get(QuestionSetRecord, set_id)
    if record is None:
        return None
    return record_to_set(record)


def create_question_set(
    db: DbSession, data: QuestionSetCreate, author: str | None
) -> QuestionSet:
    """Store a new question set and count it in the statistics."""
    difficulty = data.difficulty
    if not difficulty:
        difficulty = data.questions[0].difficulty if data.questions else None
    difficulty = difficulty or Difficulty.MEDIUM.value

    document = data.model_dump(by_alias=True, mode="json")
    document["difficulty"] = difficulty

    record = QuestionSetRecord(
        id=uuid.uuid4().hex,
        category=data.category,
        subcategory=data.subcategory,
        topic=data.topic or None,
        difficulty=difficulty,
        status=data.status.value,
        author=author,
        created_at=datetime.now(timezone.utc),
    )
    record.document = document
    db.add(record)
    statistics_service.record_created(db, record.metadata_values())
    db.commit()
    db.refresh(record)
    return record_to_set(record)


def update_question_set(
    db: DbSession, set_id: str, patch: dict[str, object]
) -> QuestionSet:
    """
    Apply a partial update to a stored set.

    The patch is merged into the stored document and the result must pass
    the same authoring rules as a new set.
    Statistics follow any change of category, sub-category, status or topic.

    Raises:
        SetNotFoundError: No set with this id
        ValueError: The merged set breaks an authoring rule
    """
    record = db.get(QuestionSetRecord, set_id)
    if record is None:
        raise SetNotFoundError(f"Question set {set_id} not found")

    patch = {key: value for key, value in patch.items() if key not in PROTECTED_KEYS}
    for name in METADATA_FIELDS:
        if name in patch and patch[name] is None and name != "topic":
            # Required columns keep their value
            patch.pop(name)
    if "topic" in patch:
        patch["topic"] = patch["topic"] or None

    document = record.document
    document.update(record.metadata_values())
    document.update(patch)
    errors = authoring_errors(QuestionSetBase.model_validate(document))
    if errors:
        raise ValueError("; ".join(errors))

    old_values = record.metadata_values()
    for name in METADATA_FIELDS:
        setattr(record, name, document.get(name))
    record.document = document
    record.updated_at = datetime.now(timezone.utc)

    statistics_service.record_changed(db, old_values, record.metadata_values())
    db.commit()
    db.refresh(record)
    return record_to_set(record)


def delete_question_sets(db: DbSession, ids: list[str]) -> int:
    """Delete question sets in bulk, then rebuild the statistics."""
    if not ids:
        return 0
    result = db.execute(delete(QuestionSetRecord).where(QuestionSetRecord.id.in_(ids)))
    statistics_service.recalculate_statistics(db)
    db.commit()
    return result.rowcount or 0


class SqlQuestionSetStore:
    """``QuestionSetStore`` over a SQLAlchemy session."""

    def __init__(self, db: DbSession) -> None:
        self.db = db

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error {action}: {e}")
            raise StoreError(f"Error {action}") from e

    def fetch_candidate_sets(
        self,
        limit: int,
        cursor: str | None = None,
        sort_field: str = "created_at",
        sort_dir: str = "desc",
        filters: QuestionFilters | None = None,
    ) -> QuestionSetPage:
        with self._guard("fetching question sets"):
            return list_question_sets(
                self.db, limit, cursor, sort_field, sort_dir, filters
            )

    def fetch_set_by_id(self, set_id: str) -> QuestionSet | None:
        with self._guard(f"fetching question set {set_id}"):
            return get_question_set(self.db, set_id)

    def save_set_edits(self, set_id: str, patch: dict[str, object]) -> None:
        with self._guard(f"updating question set {set_id}"):
            update_question_set(self.db, set_id, patch)

    def update_set(self, set_id: str, patch: dict[str, object]) -> QuestionSet:
        with self._guard(f"updating question set {set_id}"):
            return update_question_set(self.db, set_id, patch)

    def create_set(self, data: QuestionSetCreate, author: str | None) -> QuestionSet:
        with self._guard("saving question set"):
            return create_question_set(self.db, data, author)

    def delete_sets(self, ids: list[str]) -> int:
        with self._guard("deleting question sets"):
            return delete_question_sets(self.db, ids)

    def get_statistics(self) -> Statistics:
        with self._guard("fetching statistics"):
            return statistics_service.get_statistics(self.db)

    def recalculate_statistics(self) -> Statistics:
        with self._guard("recalculating statistics"):
            stats = statistics_service.recalculate_statistics(self.db)
            self.db.commit()
            return stats
