"""FastAPI dependencies."""
from psyexam.dependencies.context import get_request_context, require_admin
from psyexam.dependencies.store import get_session_registry, get_store

__all__ = ["get_request_context", "get_session_registry", "get_store", "require_admin"]
