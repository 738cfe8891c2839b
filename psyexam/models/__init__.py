"""Pydantic models."""
from psyexam.models.context import RequestContext, Role
from psyexam.models.exam import (
    AnswerRequest,
    ExamFilters,
    ExamSummary,
    FlattenedQuestion,
    QuestionReview,
    SessionView,
)
from psyexam.models.question_sets import (
    BulkDeleteRequest,
    Question,
    QuestionFilters,
    QuestionSet,
    QuestionSetCreate,
    QuestionSetPage,
    QuestionSetUpdate,
    Statistics,
    StatusUpdate,
)

__all__ = [
    "AnswerRequest",
    "BulkDeleteRequest",
    "ExamFilters",
    "ExamSummary",
    "FlattenedQuestion",
    "Question",
    "QuestionFilters",
    "QuestionReview",
    "QuestionSet",
    "QuestionSetCreate",
    "QuestionSetPage",
    "QuestionSetUpdate",
    "RequestContext",
    "Role",
    "SessionView",
    "Statistics",
    "StatusUpdate",
]
