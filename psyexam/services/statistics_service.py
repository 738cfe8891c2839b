"""Statistics counters for stored question sets.

Counters are adjusted inside the caller's transaction; the caller commits.
"""
from collections import Counter

from sqlalchemy import delete, select
from sqlalchemy.orm import Session as DbSession

from psyexam.models.db.question_set import QuestionSetRecord
from psyexam.models.db.stats import StatCounter
from psyexam.models.question_sets import Statistics
from psyexam.taxonomy import SetStatus

DIMENSIONS = ("category", "subcategory", "status", "topic")
TOTAL_DIMENSION = "total"
TOTAL_KEY = "questions"


def _get_counter(db: DbSession, dimension: str, key: str) -> StatCounter:
    counter = db.execute(
        select(StatCounter).where(
            StatCounter.dimension == dimension,
            StatCounter.key == key,
        )
    ).scalar_one_or_none()
    if counter is None:
        counter = StatCounter(dimension=dimension, key=key, count=0)
        db.add(counter)
        db.flush()
    return counter


def bump(db: DbSession, dimension: str, key: str | None, delta: int) -> None:
    """Add ``delta`` to a counter; empty keys are not counted."""
    if not key:
        return
    counter = _get_counter(db, dimension, key)
    counter.count = max(0, counter.count + delta)


def record_created(db: DbSession, values: dict[str, str | None]) -> None:
    """Count a newly created set."""
    bump(db, TOTAL_DIMENSION, TOTAL_KEY, 1)
    for dimension in DIMENSIONS:
        bump(db, dimension, values.get(dimension), 1)


def record_changed(
    db: DbSession,
    old: dict[str, str | None],
    new: dict[str, str | None],
) -> bool:
    """Move counts for every dimension whose value changed."""
    changed = False
    for dimension in DIMENSIONS:
        before, after = old.get(dimension), new.get(dimension)
        if before == after:
            continue
        bump(db, dimension, before, -1)
        bump(db, dimension, after, 1)
        changed = True
    return changed


def get_statistics(db: DbSession) -> Statistics:
    """Read the counters into a statistics document."""
    stats = Statistics()
    counters = db.execute(select(StatCounter)).scalars().all()
    for counter in counters:
        if counter.dimension == TOTAL_DIMENSION:
            stats.total_questions = counter.count
            continue
        bucket = getattr(stats, f"by_{counter.dimension}", None)
        if bucket is not None and counter.count > 0:
            bucket[counter.key] = counter.count
    return stats


def recalculate_statistics(db: DbSession) -> Statistics:
    """Rebuild every counter from the stored question sets."""
    rows = db.execute(
        select(
            QuestionSetRecord.category,
            QuestionSetRecord.subcategory,
            QuestionSetRecord.status,
            QuestionSetRecord.topic,
        )
    ).all()

    counts: dict[str, Counter] = {dimension: Counter() for dimension in DIMENSIONS}
    for category, subcategory, status, topic in rows:
        counts["category"][category or "unknown"] += 1
        counts["subcategory"][subcategory or "unknown"] += 1
        counts["status"][status or SetStatus.PENDING.value] += 1
        if topic:
            counts["topic"][topic] += 1

    db.execute(delete(StatCounter))
    db.add(StatCounter(dimension=TOTAL_DIMENSION, key=TOTAL_KEY, count=len(rows)))
    for dimension, counter in counts.items():
        for key, count in counter.items():
            db.add(StatCounter(dimension=dimension, key=key, count=count))
    db.flush()

    return Statistics(
        total_questions=len(rows),
        by_category=dict(counts["category"]),
        by_subcategory=dict(counts["subcategory"]),
        by_status=dict(counts["status"]),
        by_topic=dict(counts["topic"]),
    )
