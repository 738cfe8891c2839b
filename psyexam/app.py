"""Main FastAPI application with modularized routes."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from psyexam.config import LOG_LEVEL
from psyexam.database import init_db
from psyexam.logging_setup import setup_console_logging
import psyexam.models.db  # noqa: F401  table definitions for init_db
from psyexam.routes import exam, question_sets, statistics
from psyexam.services.session_registry import schedule_session_cleanup

setup_console_logging(LOG_LEVEL)

app = FastAPI(title="Psychometric Question Panel API")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Startup events
@app.on_event("startup")
def startup_events() -> None:
    """Initialize database and schedule session cleanup on startup."""
    init_db()
    schedule_session_cleanup()


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# Include routers
app.include_router(question_sets.router)
app.include_router(statistics.router)
app.include_router(exam.router)
