"""Validation utilities."""
import re

from fastapi import HTTPException

_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{1,64}$")


def validate_id(name: str, value: str) -> str:
    """Validate an opaque id (set or session id)."""
    if not isinstance(value, str):
        raise HTTPException(status_code=400, detail=f"{name} is required")
    cleaned = value.strip()
    if not cleaned:
        raise HTTPException(status_code=400, detail=f"{name} is required")
    if not _ID_PATTERN.match(cleaned):
        raise HTTPException(status_code=400, detail=f"Invalid {name}")
    return cleaned


def validate_ids(name: str, values: list[str]) -> list[str]:
    """Validate a list of ids, dropping duplicates while keeping order."""
    return list(dict.fromkeys(validate_id(name, value) for value in values))
