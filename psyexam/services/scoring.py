"""Practice session scoring."""
import enum
import math

from psyexam.models.exam import ExamSummary, FlattenedQuestion, QuestionReview


class ScoreTier(str, enum.Enum):
    PERFECT = "perfect"
    VERY_GOOD = "very_good"
    GOOD = "good"
    KEEP_PRACTICING = "keep_practicing"


TIER_MESSAGES = {
    ScoreTier.PERFECT: "מצוין! ביצוע מושלם",
    ScoreTier.VERY_GOOD: "עבודה טובה מאוד!",
    ScoreTier.GOOD: "טוב, אבל יש מקום לשיפור",
    ScoreTier.KEEP_PRACTICING: "כדאי להמשיך לתרגל",
}


def is_correct(question: FlattenedQuestion, selected: int | None) -> bool:
    return selected is not None and str(selected) == str(question.correct_answer)


def percent_score(correct_count: int, total_questions: int) -> int:
    """Percentage rounded half up; 0 for an empty session."""
    if total_questions == 0:
        return 0
    return math.floor(100 * correct_count / total_questions + 0.5)


def score_tier(score: int) -> ScoreTier:
    if score == 100:
        return ScoreTier.PERFECT
    if score >= 80:
        return ScoreTier.VERY_GOOD
    if score >= 60:
        return ScoreTier.GOOD
    return ScoreTier.KEEP_PRACTICING


def score_session(
    questions: list[FlattenedQuestion], answers: dict[str, int]
) -> ExamSummary:
    """Tally a finished session."""
    review = []
    correct_count = 0
    for question in questions:
        selected = answers.get(question.id)
        correct = is_correct(question, selected)
        if correct:
            correct_count += 1
        review.append(
            QuestionReview(
                question_id=question.id,
                parent_id=question.parent_id,
                selected_answer=selected,
                correct_answer=question.correct_answer,
                is_correct=correct,
                explanation=question.explanation,
            )
        )

    score = percent_score(correct_count, len(questions))
    tier = score_tier(score)
    return ExamSummary(
        total_questions=len(questions),
        correct_count=correct_count,
        score=score,
        tier=tier.value,
        message=TIER_MESSAGES[tier],
        review=review,
    )
