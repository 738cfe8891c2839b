from datetime import datetime, timedelta, timezone

import pytest
from conftest import make_set
from sqlalchemy.exc import OperationalError

from psyexam.models import QuestionFilters
from psyexam.services import question_store
from psyexam.services.question_store import SetNotFoundError, StoreError


def test_create_and_fetch_round_trip(store) -> None:
    created = store.create_set(make_set(questions=2, asset_text="shared"), "Dana")

    fetched = store.fetch_set_by_id(created.id)

    assert fetched is not None
    assert fetched.author == "Dana"
    assert fetched.status.value == "pending"
    assert fetched.asset_text == "shared"
    assert [q.question_text for q in fetched.questions] == ["Question 1", "Question 2"]
    assert store.fetch_set_by_id("missing") is None


def test_create_defaults_difficulty_from_first_question(store) -> None:
    data = make_set(difficulty="hard")
    data.difficulty = None
    created = store.create_set(data, "Dana")
    assert created.difficulty == "hard"


def test_filters_are_anded(store) -> None:
    store.create_set(make_set(), "Dana")
    store.create_set(make_set(difficulty="hard"), "Dana")
    store.create_set(make_set(subcategory="geometry", topic="circles"), "Noa")
    store.create_set(make_set(category="verbal", subcategory="analogies", topic=None), "Noa")

    page = store.fetch_candidate_sets(
        50, filters=QuestionFilters(category="quantitative", difficulty="easy")
    )
    assert len(page.sets) == 2

    page = store.fetch_candidate_sets(
        50, filters=QuestionFilters(subcategory=["geometry", "analogies"])
    )
    assert {s.subcategory for s in page.sets} == {"geometry", "analogies"}

    page = store.fetch_candidate_sets(50, filters=QuestionFilters(author="Noa"))
    assert len(page.sets) == 2

    page = store.fetch_candidate_sets(50, filters=QuestionFilters(exclude_author="Noa"))
    assert {s.author for s in page.sets} == {"Dana"}


def test_date_range_filter(store) -> None:
    store.create_set(make_set(), "Dana")
    now = datetime.now(timezone.utc)

    inside = store.fetch_candidate_sets(
        10, filters=QuestionFilters(start_date=now - timedelta(hours=1))
    )
    outside = store.fetch_candidate_sets(
        10, filters=QuestionFilters(end_date=now - timedelta(hours=1))
    )

    assert len(inside.sets) == 1
    assert outside.sets == []


def test_pagination_with_cursor(store) -> None:
    for _ in range(5):
        store.create_set(make_set(), "Dana")

    first = store.fetch_candidate_sets(2)
    second = store.fetch_candidate_sets(2, cursor=first.next_cursor)
    third = store.fetch_candidate_sets(2, cursor=second.next_cursor)

    ids = [s.id for page in (first, second, third) for s in page.sets]
    assert len(ids) == 5
    assert len(set(ids)) == 5
    assert third.next_cursor is None


def test_sort_ascending_by_difficulty(store) -> None:
    store.create_set(make_set(difficulty="medium"), "Dana")
    store.create_set(make_set(difficulty="easy"), "Dana")
    store.create_set(make_set(difficulty="hard"), "Dana")

    page = store.fetch_candidate_sets(10, sort_field="difficulty", sort_dir="asc")

    assert [s.difficulty for s in page.sets] == ["easy", "hard", "medium"]


def test_invalid_query_arguments(store) -> None:
    with pytest.raises(ValueError):
        store.fetch_candidate_sets(10, sort_field="nope")
    with pytest.raises(ValueError):
        store.fetch_candidate_sets(10, sort_dir="sideways")
    with pytest.raises(ValueError):
        store.fetch_candidate_sets(10, cursor="abc")


def test_subcategory_filter_is_bounded(store, monkeypatch) -> None:
    monkeypatch.setattr(question_store, "MAX_IN_FILTER_VALUES", 2)
    with pytest.raises(ValueError):
        store.fetch_candidate_sets(
            10, filters=QuestionFilters(subcategory=["algebra", "geometry", "problems"])
        )


def test_update_moves_statistics(store) -> None:
    created = store.create_set(make_set(), "Dana")

    updated = store.update_set(
        created.id,
        {"status": "approved", "subcategory": "geometry", "topic": "circles", "id": "hijack"},
    )

    assert updated.id == created.id
    assert updated.status.value == "approved"
    assert updated.updated_at is not None
    stats = store.get_statistics()
    assert stats.total_questions == 1
    assert stats.by_status == {"approved": 1}
    assert stats.by_subcategory == {"geometry": 1}
    assert stats.by_topic == {"circles": 1}


def test_update_missing_set(store) -> None:
    with pytest.raises(SetNotFoundError):
        store.save_set_edits("missing", {"status": "approved"})


def test_delete_recalculates_statistics(store) -> None:
    keep = store.create_set(make_set(category="verbal", subcategory="analogies", topic=None), "Dana")
    drop = store.create_set(make_set(), "Dana")

    deleted = store.delete_sets([drop.id, "missing"])

    assert deleted == 1
    assert store.fetch_set_by_id(keep.id) is not None
    stats = store.get_statistics()
    assert stats.total_questions == 1
    assert stats.by_category == {"verbal": 1}
    assert stats.by_topic == {}


def test_recalculate_matches_incremental_counts(store) -> None:
    store.create_set(make_set(), "Dana")
    store.create_set(make_set(subcategory="problems", topic="motion"), "Dana")
    incremental = store.get_statistics()

    rebuilt = store.recalculate_statistics()

    assert rebuilt == incremental
    assert rebuilt.by_category == {"quantitative": 2}


def test_backend_errors_become_store_errors(store, monkeypatch) -> None:
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(question_store, "get_question_set", broken)

    with pytest.raises(StoreError):
        store.fetch_set_by_id("anything")


@pytest.mark.parametrize(
    "patch",
    [
        {"subcategory": "analogies"},
        {"topic": "not-a-topic"},
        {"subcategory": "chart_inference", "topic": None},
    ],
)
def test_update_validates_the_merged_set(store, patch) -> None:
    created = store.create_set(make_set(), "Dana")

    with pytest.raises(ValueError):
        store.update_set(created.id, patch)

    unchanged = store.fetch_set_by_id(created.id)
    assert unchanged.subcategory == "algebra"
    assert unchanged.topic == "equations"
    assert store.get_statistics().by_subcategory == {"algebra": 1}


def test_update_accepts_chart_switch_with_image(store) -> None:
    created = store.create_set(make_set(), "Dana")

    updated = store.update_set(
        created.id,
        {
            "subcategory": "chart_inference",
            "topic": None,
            "assetImageUrl": "https://img/chart.png",
        },
    )

    assert updated.subcategory == "chart_inference"
    assert updated.topic is None
    assert updated.asset_image_url == "https://img/chart.png"


def test_exclude_author_keeps_sets_without_author(store) -> None:
    store.create_set(make_set(), "Dana")
    anonymous = store.create_set(make_set(), None)

    page = store.fetch_candidate_sets(10, filters=QuestionFilters(exclude_author="Dana"))

    assert [s.id for s in page.sets] == [anonymous.id]
