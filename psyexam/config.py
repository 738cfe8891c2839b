"""Application configuration and constants."""
import logging
import os
from pathlib import Path


def _parse_int_env(name: str, default: int) -> int:
    """Parse integer from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# Database
DB_DIR = Path(os.environ.get("DB_DIR", Path.cwd() / "data"))
DB_DIR.mkdir(parents=True, exist_ok=True)
DATABASE_URL = os.environ.get(
    "DATABASE_URL", f"sqlite:///{DB_DIR / 'question_panel.db'}"
)

# Identity provider tokens
IDENTITY_SECRET = os.environ.get(
    "IDENTITY_SECRET",
    "CHANGE_ME_IN_PRODUCTION_USE_openssl_rand_hex_32"
)
IDENTITY_ALGORITHM = os.environ.get("IDENTITY_ALGORITHM", "HS256")

# Practice exams
CANDIDATE_FETCH_LIMIT = _parse_int_env("CANDIDATE_FETCH_LIMIT", 200)
MAX_IN_FILTER_VALUES = _parse_int_env("MAX_IN_FILTER_VALUES", 30)
SESSION_IDLE_TIMEOUT_MINUTES = _parse_int_env("SESSION_IDLE_TIMEOUT_MINUTES", 120)
SESSION_CLEANUP_INTERVAL_SECONDS = _parse_int_env(
    "SESSION_CLEANUP_INTERVAL_SECONDS", 10 * 60
)

# Admin listing
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 500

# Logging
LOG_LEVEL = logging.getLevelName(os.environ.get("LOG_LEVEL", "INFO").upper())
if not isinstance(LOG_LEVEL, int):
    LOG_LEVEL = logging.INFO
