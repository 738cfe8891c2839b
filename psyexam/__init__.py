"""Psychometric question panel: authoring, review and practice exams."""

__version__ = "0.1.0"
