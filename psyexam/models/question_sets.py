"""Question set Pydantic models."""
from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator, model_validator

from psyexam.models.base import ApiModel
from psyexam.taxonomy import (
    CHART_SUBCATEGORY,
    READING_SUBCATEGORIES,
    Category,
    SetStatus,
    category_values,
    difficulty_values,
    subcategories_for,
    topics_for,
)

ANSWER_SLOTS = (1, 2, 3, 4)
CORRECT_ANSWER_VALUES = {str(slot) for slot in ANSWER_SLOTS}


class Question(ApiModel):
    """Single multiple-choice question inside a set.

    Stored documents are read leniently; authoring rules are enforced by
    ``QuestionSetCreate`` and ``QuestionSetUpdate``.
    """

    id: int | str | None = None
    question_text: str = ""
    question_image_url: str | None = None
    answer1: str = ""
    answer1_image_url: str | None = None
    answer2: str = ""
    answer2_image_url: str | None = None
    answer3: str = ""
    answer3_image_url: str | None = None
    answer4: str = ""
    answer4_image_url: str | None = None
    correct_answer: str = ""
    explanation: str = ""
    difficulty: str | None = None
    answers_mode: str | None = None

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _stringify_correct(cls, value: object) -> object:
        # Older documents store the option index as a number
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    def answer_text(self, slot: int) -> str:
        return getattr(self, f"answer{slot}")

    def answer_image(self, slot: int) -> str | None:
        return getattr(self, f"answer{slot}_image_url")

    def validation_errors(self, prefix: str) -> list[str]:
        """Authoring errors for this question, keyed by ``prefix``."""
        errors = []
        if not self.difficulty:
            errors.append(f"{prefix}: difficulty is required")
        elif self.difficulty not in difficulty_values():
            errors.append(f"{prefix}: unknown difficulty '{self.difficulty}'")
        if not self.question_text.strip():
            errors.append(f"{prefix}: question text is required")
        for slot in ANSWER_SLOTS:
            text = self.answer_text(slot).strip()
            image = self.answer_image(slot)
            if text and image:
                errors.append(f"{prefix}: answer {slot} has both text and image")
            elif not text and not image:
                errors.append(f"{prefix}: answer {slot} is required")
        if self.correct_answer not in CORRECT_ANSWER_VALUES:
            errors.append(f"{prefix}: correct answer must be one of 1-4")
        if not self.explanation.strip():
            errors.append(f"{prefix}: explanation is required")
        return errors


class QuestionSetBase(ApiModel):
    category: str
    subcategory: str
    topic: str | None = None
    difficulty: str | None = None
    status: SetStatus = SetStatus.PENDING
    asset_text: str = ""
    asset_image_url: str | None = None
    questions: list[Question] = Field(default_factory=list)


class QuestionSet(QuestionSetBase):
    """Stored question set as returned by the store."""

    id: str
    author: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


def _metadata_errors(
    category: str, subcategory: str, topic: str | None
) -> list[str]:
    errors = []
    if category not in category_values():
        errors.append(f"unknown category '{category}'")
        return errors
    if subcategory not in subcategories_for(category):
        errors.append(f"sub-category '{subcategory}' does not belong to '{category}'")
        return errors
    valid_topics = topics_for(subcategory)
    if topic:
        if topic not in valid_topics:
            errors.append(f"topic '{topic}' does not belong to '{subcategory}'")
    elif category == Category.QUANTITATIVE.value and subcategory != CHART_SUBCATEGORY:
        errors.append("topic is required for quantitative questions")
    return errors


def _asset_errors(
    subcategory: str, asset_text: str, asset_image_url: str | None
) -> list[str]:
    if subcategory in READING_SUBCATEGORIES and not asset_text.strip():
        return ["reading passage is required for reading comprehension"]
    if subcategory == CHART_SUBCATEGORY and not asset_image_url:
        return ["chart image is required for chart inference"]
    return []


def _question_errors(questions: list[Question]) -> list[str]:
    errors = []
    for index, question in enumerate(questions):
        errors.extend(question.validation_errors(f"question {index + 1}"))
    return errors


def authoring_errors(question_set: QuestionSetBase) -> list[str]:
    """Every authoring rule a stored question set must satisfy."""
    errors = _metadata_errors(
        question_set.category, question_set.subcategory, question_set.topic
    )
    errors += _asset_errors(
        question_set.subcategory, question_set.asset_text, question_set.asset_image_url
    )
    difficulty = question_set.difficulty
    if difficulty is not None and difficulty not in difficulty_values():
        errors.append(f"unknown difficulty '{difficulty}'")
    if not question_set.questions:
        errors.append("a question set needs at least one question")
    errors += _question_errors(question_set.questions)
    return errors


class QuestionSetCreate(QuestionSetBase):
    """Model for authoring a new question set."""

    questions: list[Question] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _check_authoring_rules(self) -> "QuestionSetCreate":
        errors = authoring_errors(self)
        if errors:
            raise ValueError("; ".join(errors))
        return self


class QuestionSetUpdate(ApiModel):
    """Partial update of a question set. Unset fields are left untouched.

    Only the sent values are checked here; the store validates the merged
    set with ``authoring_errors`` before saving.
    """

    category: str | None = None
    subcategory: str | None = None
    topic: str | None = None
    difficulty: str | None = None
    status: SetStatus | None = None
    asset_text: str | None = None
    asset_image_url: str | None = None
    questions: list[Question] | None = None

    @model_validator(mode="after")
    def _check_provided_fields(self) -> "QuestionSetUpdate":
        errors = []
        if self.category is not None and self.category not in category_values():
            errors.append(f"unknown category '{self.category}'")
        if self.difficulty is not None and self.difficulty not in difficulty_values():
            errors.append(f"unknown difficulty '{self.difficulty}'")
        if self.questions is not None:
            if not self.questions:
                errors.append("a question set needs at least one question")
            errors += _question_errors(self.questions)
        if errors:
            raise ValueError("; ".join(errors))
        return self

    def to_patch(self) -> dict[str, object]:
        """Stored-document patch containing only the fields that were sent."""
        return self.model_dump(exclude_unset=True, by_alias=True, mode="json")


class StatusUpdate(ApiModel):
    status: SetStatus


class BulkDeleteRequest(ApiModel):
    ids: list[str] = Field(..., min_length=1)


class QuestionFilters(ApiModel):
    """Store-side filters. All given filters are ANDed."""

    category: str | None = None
    subcategory: str | list[str] | None = None
    difficulty: str | None = None
    status: str | None = None
    author: str | None = None
    exclude_author: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


class QuestionSetPage(ApiModel):
    """One page of question sets; ``next_cursor`` is None on the last page."""

    sets: list[QuestionSet]
    next_cursor: str | None = None


class Statistics(ApiModel):
    total_questions: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)
    by_subcategory: dict[str, int] = Field(default_factory=dict)
    by_status: dict[str, int] = Field(default_factory=dict)
    by_topic: dict[str, int] = Field(default_factory=dict)
