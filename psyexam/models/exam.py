"""Practice exam Pydantic models."""
from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict, Field, field_validator

from psyexam.models.base import ApiModel
from psyexam.models.question_sets import Question


def _unique(values: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(v for v in values if v))


class ExamFilters(ApiModel):
    """Scope of one practice session. Immutable once the session starts."""

    model_config = ConfigDict(frozen=True)

    categories: tuple[str, ...] = Field(..., min_length=1)
    subcategories: tuple[str, ...] = ()
    topics: tuple[str, ...] = ()
    difficulties: tuple[str, ...] = ()
    limit: int | Literal["all"] = 10
    time_limit_minutes: int | None = Field(None, ge=1)

    @field_validator("categories", "subcategories", "topics", "difficulties")
    @classmethod
    def _dedupe(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return _unique(value)

    @field_validator("limit")
    @classmethod
    def _positive_limit(cls, value: int | str) -> int | str:
        if isinstance(value, int) and value < 1:
            raise ValueError("limit must be a positive integer or 'all'")
        return value


class FlattenedQuestion(Question):
    """One question of a set, decorated for a practice session."""

    id: str
    parent_id: str
    original_index: int
    category: str
    subcategory: str
    topic: str | None = None
    asset_text: str = ""
    asset_image_url: str | None = None


class AnswerRequest(ApiModel):
    option_index: int = Field(..., ge=1, le=4)


class SessionView(ApiModel):
    """Snapshot of a practice session for rendering."""

    session_id: str
    status: Literal["loading", "active", "finished", "empty"]
    finish_reason: str | None = None
    fetch_error: str | None = None
    current_index: int
    total_questions: int
    progress: int
    current_question: FlattenedQuestion | None = None
    selected_answer: int | None = None
    is_answered: bool = False
    can_advance: bool = False
    can_retreat: bool = False
    is_last: bool = False
    remaining_seconds: int | None = None
    answered_count: int = 0


class QuestionReview(ApiModel):
    question_id: str
    parent_id: str
    selected_answer: int | None
    correct_answer: str
    is_correct: bool
    explanation: str = ""


class ExamSummary(ApiModel):
    total_questions: int
    correct_count: int
    score: int
    tier: str
    message: str
    review: list[QuestionReview] = Field(default_factory=list)
