"""Database models."""
from psyexam.models.db.question_set import METADATA_FIELDS, QuestionSetRecord
from psyexam.models.db.stats import StatCounter

__all__ = [
    "METADATA_FIELDS",
    "QuestionSetRecord",
    "StatCounter",
]
