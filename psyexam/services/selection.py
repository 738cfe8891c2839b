"""Practice question selection.

Turns an ``ExamFilters`` scope into the flat, ordered list of questions a
practice session runs over:

1. coarse store query (single category / difficulty as equality, sub-categories
   as a bounded "one of");
2. exact client-side filtering, including smart topic filtering;
3. uniform shuffle of the surviving sets;
4. flattening, keeping each set's question order;
5. truncation to the requested limit.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field

from psyexam.config import CANDIDATE_FETCH_LIMIT, MAX_IN_FILTER_VALUES
from psyexam.models.context import RequestContext
from psyexam.models.exam import ExamFilters, FlattenedQuestion
from psyexam.models.question_sets import QuestionFilters, QuestionSet
from psyexam.services.question_store import QuestionSetStore, StoreError
from psyexam.taxonomy import topics_for

logger = logging.getLogger(__name__)


class SelectionError(ValueError):
    """Raised when a selection cannot be resolved from the given filters."""


@dataclass
class SelectionResult:
    """Outcome of one resolution pass.

    ``fetch_error`` is set when the store query failed; ``questions`` is then
    empty and the session shows its empty state.
    """

    questions: list[FlattenedQuestion] = field(default_factory=list)
    fetch_error: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.questions


def build_store_filters(filters: ExamFilters) -> QuestionFilters:
    """Coarse query: only what the store can filter exactly and cheaply."""
    store_filters = QuestionFilters()
    if len(filters.categories) == 1:
        store_filters.category = filters.categories[0]
    if len(filters.difficulties) == 1:
        store_filters.difficulty = filters.difficulties[0]
    if filters.subcategories and len(filters.subcategories) <= MAX_IN_FILTER_VALUES:
        store_filters.subcategory = list(filters.subcategories)
    return store_filters


def topic_allows(question_set: QuestionSet, selected_topics: set[str]) -> bool:
    """
    Smart topic filtering: topics only restrict sub-categories for which at
    least one of their own topics was selected.
    """
    relevant = selected_topics & topics_for(question_set.subcategory)
    if not relevant:
        return True
    return question_set.topic in relevant


def matches_filters(question_set: QuestionSet, filters: ExamFilters) -> bool:
    """Exact client-side check of a fetched set against the session scope."""
    if question_set.category not in filters.categories:
        return False
    if filters.subcategories and question_set.subcategory not in filters.subcategories:
        return False
    if filters.difficulties and question_set.difficulty not in filters.difficulties:
        return False
    return topic_allows(question_set, set(filters.topics))


def shuffle_sets(
    sets: list[QuestionSet], rng: random.Random | None = None
) -> list[QuestionSet]:
    """Return a uniformly shuffled copy (Fisher-Yates via ``Random.shuffle``)."""
    shuffled = list(sets)
    (rng or random).shuffle(shuffled)
    return shuffled


def synthesize_question_id(set_id: str, index: int) -> str:
    return f"{set_id}_{index}"


def flattened_question_id(
    own_id: int | str | None, set_id: str, index: int, taken: set[str]
) -> str:
    """
    Session-unique id: the question's own id when present and unused,
    otherwise ``{set_id}_{index}``. Records the id in ``taken``.
    """
    candidate = str(own_id) if own_id is not None else None
    if candidate is None or candidate in taken:
        candidate = synthesize_question_id(set_id, index)
    unique = candidate
    suffix = 1
    while unique in taken:
        unique = f"{candidate}~{suffix}"
        suffix += 1
    taken.add(unique)
    return unique


def flatten_question(
    question_set: QuestionSet, index: int, question_id: str
) -> FlattenedQuestion:
    """Decorate one question of a set for a session."""
    question = question_set.questions[index]
    data = question.model_dump(exclude={"id"})
    data.update(
        id=question_id,
        parent_id=question_set.id,
        original_index=index,
        difficulty=question.difficulty or question_set.difficulty,
        category=question_set.category,
        subcategory=question_set.subcategory,
        topic=question_set.topic,
        asset_text=question_set.asset_text,
        asset_image_url=question_set.asset_image_url,
    )
    return FlattenedQuestion.model_validate(data)


def flatten_sets(sets: list[QuestionSet]) -> list[FlattenedQuestion]:
    """Flatten sets in order, keeping each set's internal question order."""
    taken: set[str] = set()
    flattened = []
    for question_set in sets:
        for index, question in enumerate(question_set.questions):
            question_id = flattened_question_id(question.id, question_set.id, index, taken)
            flattened.append(flatten_question(question_set, index, question_id))
    return flattened


def apply_limit(
    questions: list[FlattenedQuestion], limit: int | str
) -> list[FlattenedQuestion]:
    if limit == "all":
        return questions
    return questions[:limit]


def resolve_selection(
    store: QuestionSetStore,
    filters: ExamFilters,
    context: RequestContext,
    rng: random.Random | None = None,
    fetch_limit: int = CANDIDATE_FETCH_LIMIT,
) -> SelectionResult:
    """Resolve a practice scope into the session's working set."""
    if not filters.categories:
        raise SelectionError("At least one category is required")

    store_filters = build_store_filters(filters)
    try:
        page = store.fetch_candidate_sets(
            fetch_limit, None, "created_at", "desc", store_filters
        )
    except (StoreError, ValueError) as e:
        logger.error(f"Failed to fetch questions for {context.user_id}: {e}")
        return SelectionResult(fetch_error=str(e) or "Failed to fetch questions")

    valid_sets = [s for s in page.sets if matches_filters(s, filters)]
    questions = apply_limit(flatten_sets(shuffle_sets(valid_sets, rng)), filters.limit)

    logger.info(
        f"Resolved {len(questions)} questions from {len(valid_sets)}/{len(page.sets)} "
        f"sets for {context.user_id}"
    )
    return SelectionResult(questions=questions)
