import random

from conftest import make_question, make_set

from psyexam.models import ExamFilters, QuestionSet
from psyexam.models.question_sets import QuestionFilters, QuestionSetPage
from psyexam.services import selection
from psyexam.services.question_store import StoreError


class RecordingStore:
    """Store double returning fixed sets and remembering the coarse query."""

    def __init__(self, sets: list[QuestionSet], error: Exception | None = None) -> None:
        self.sets = sets
        self.error = error
        self.calls: list[dict[str, object]] = []

    def fetch_candidate_sets(self, limit, cursor=None, sort_field="created_at",
                             sort_dir="desc", filters=None):
        self.calls.append({"limit": limit, "filters": filters, "sort": (sort_field, sort_dir)})
        if self.error is not None:
            raise self.error
        return QuestionSetPage(sets=self.sets[:limit])

    def fetch_set_by_id(self, set_id):
        return next((s for s in self.sets if s.id == set_id), None)

    def save_set_edits(self, set_id, patch):
        raise NotImplementedError


def stored(set_id: str, **kwargs) -> QuestionSet:
    data = make_set(**kwargs).model_dump()
    return QuestionSet(id=set_id, **data)


def test_build_store_filters_single_values_go_to_store() -> None:
    filters = ExamFilters(
        categories=["quantitative"],
        subcategories=["algebra", "geometry"],
        difficulties=["easy"],
    )
    store_filters = selection.build_store_filters(filters)
    assert store_filters.category == "quantitative"
    assert store_filters.difficulty == "easy"
    assert store_filters.subcategory == ["algebra", "geometry"]


def test_build_store_filters_multiple_values_stay_client_side() -> None:
    filters = ExamFilters(
        categories=["quantitative", "verbal"],
        difficulties=["easy", "hard"],
    )
    store_filters = selection.build_store_filters(filters)
    assert store_filters == QuestionFilters()


def test_build_store_filters_drops_oversized_subcategory_list(monkeypatch) -> None:
    monkeypatch.setattr(selection, "MAX_IN_FILTER_VALUES", 1)
    filters = ExamFilters(categories=["quantitative"], subcategories=["algebra", "geometry"])
    assert selection.build_store_filters(filters).subcategory is None


def test_resolve_end_to_end_scenario(context) -> None:
    sets = [stored(f"match{i}") for i in range(8)]
    sets += [
        stored("verbal1", category="verbal", subcategory="analogies", topic=None),
        stored("hard1", difficulty="hard"),
        stored("geo1", subcategory="geometry", topic="circles"),
    ]
    store = RecordingStore(sets)
    filters = ExamFilters(
        categories=["quantitative"],
        subcategories=["algebra"],
        topics=[],
        difficulties=["easy"],
        limit=5,
    )

    result = selection.resolve_selection(store, filters, context, rng=random.Random(7))

    assert result.fetch_error is None
    assert len(result.questions) == 5
    for question in result.questions:
        assert question.category == "quantitative"
        assert question.subcategory == "algebra"
        assert question.difficulty == "easy"
    call = store.calls[0]
    assert call["limit"] == selection.CANDIDATE_FETCH_LIMIT
    assert call["sort"] == ("created_at", "desc")


def test_resolve_never_returns_unselected_categories(context) -> None:
    sets = [
        stored("q1"),
        stored("v1", category="verbal", subcategory="analogies", topic=None),
        stored("e1", category="english", subcategory="restatements", topic=None),
    ]
    filters = ExamFilters(categories=["quantitative", "english"], limit="all")

    result = selection.resolve_selection(RecordingStore(sets), filters, context)

    assert {q.category for q in result.questions} == {"quantitative", "english"}
    assert len(result.questions) == 2


def test_smart_topic_filter_only_restricts_subcategories_with_chosen_topics(context) -> None:
    sets = [
        stored("alg-eq", subcategory="algebra", topic="equations"),
        stored("alg-pct", subcategory="algebra", topic="percentages"),
        stored("geo-tri", subcategory="geometry", topic="triangles"),
        stored("geo-circ", subcategory="geometry", topic="circles"),
    ]
    filters = ExamFilters(
        categories=["quantitative"],
        subcategories=["algebra", "geometry"],
        topics=["equations"],
        limit="all",
    )

    result = selection.resolve_selection(RecordingStore(sets), filters, context)

    parents = {q.parent_id for q in result.questions}
    assert parents == {"alg-eq", "geo-tri", "geo-circ"}


def test_topic_filter_ignores_subcategories_without_taxonomy() -> None:
    chart = stored(
        "chart",
        subcategory="chart_inference",
        topic=None,
        asset_image_url="https://img/chart.png",
    )
    assert selection.topic_allows(chart, {"equations", "circles"})


def test_limit_truncates_and_all_keeps_everything(context) -> None:
    sets = [stored(f"s{i}", questions=2) for i in range(4)]
    store = RecordingStore(sets)

    limited = selection.resolve_selection(
        store, ExamFilters(categories=["quantitative"], limit=3), context
    )
    everything = selection.resolve_selection(
        store, ExamFilters(categories=["quantitative"], limit="all"), context
    )
    short = selection.resolve_selection(
        store, ExamFilters(categories=["quantitative"], limit=20), context
    )

    assert len(limited.questions) == 3
    assert len(everything.questions) == 8
    assert len(short.questions) == 8


def test_questions_keep_set_order_after_shuffle(context) -> None:
    sets = [stored(f"s{i}", questions=3) for i in range(5)]
    filters = ExamFilters(categories=["quantitative"], limit="all")

    result = selection.resolve_selection(
        RecordingStore(sets), filters, context, rng=random.Random(3)
    )

    by_parent: dict[str, list[int]] = {}
    for question in result.questions:
        by_parent.setdefault(question.parent_id, []).append(question.original_index)
    assert all(indexes == [0, 1, 2] for indexes in by_parent.values())
    # Each set's questions are contiguous
    assert len(by_parent) == 5
    parents_in_order = [q.parent_id for q in result.questions]
    for parent in by_parent:
        first = parents_in_order.index(parent)
        assert parents_in_order[first:first + 3] == [parent] * 3


def test_flatten_ids_are_unique_and_fall_back_to_synthesized() -> None:
    first = stored("a", questions=[make_question(id=1), make_question(id=None)])
    second = stored("b", questions=[make_question(id=1), make_question(id=0)])

    flattened = selection.flatten_sets([first, second])

    ids = [q.id for q in flattened]
    assert ids == ["1", "a_1", "b_0", "0"]
    assert len(set(ids)) == len(ids)


def test_flattened_question_id_resolves_synthesized_collision() -> None:
    taken = {"a_0"}
    assert selection.flattened_question_id("a_0", "a", 0, taken) == "a_0~1"
    assert "a_0~1" in taken


def test_flatten_copies_shared_asset_and_difficulty_fallback() -> None:
    question = make_question()
    reading = stored(
        "r1",
        category="verbal",
        subcategory="reading_comprehension_verbal",
        topic=None,
        difficulty="hard",
        asset_text="Once upon a time",
        questions=[question],
    )
    reading.questions[0].difficulty = None

    [flat] = selection.flatten_sets([reading])

    assert flat.asset_text == "Once upon a time"
    assert flat.difficulty == "hard"
    assert flat.parent_id == "r1"
    assert flat.original_index == 0


def test_fetch_failure_yields_empty_result_with_error(context) -> None:
    store = RecordingStore([], error=StoreError("backend down"))
    result = selection.resolve_selection(
        store, ExamFilters(categories=["verbal"]), context
    )
    assert result.is_empty
    assert result.fetch_error == "backend down"
