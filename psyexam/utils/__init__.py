"""Utility modules."""
from psyexam.utils.validation import validate_id, validate_ids

__all__ = ["validate_id", "validate_ids"]
