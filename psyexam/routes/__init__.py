"""API route modules."""
from psyexam.routes import exam, question_sets, statistics

__all__ = ["exam", "question_sets", "statistics"]
