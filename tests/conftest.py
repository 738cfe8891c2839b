from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session as DbSession, sessionmaker
from sqlalchemy.pool import StaticPool

import psyexam.models.db  # noqa: F401
from psyexam.config import IDENTITY_ALGORITHM, IDENTITY_SECRET
from psyexam.database import Base
from psyexam.models import Question, QuestionSetCreate, RequestContext, Role
from psyexam.services.question_store import SqlQuestionSetStore
from psyexam.services.session_registry import SessionRegistry


class FakeClock:
    """Monotonic clock driven by the test."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_question(text: str = "2 + 2 = ?", correct: str = "1", **overrides) -> Question:
    data = {
        "question_text": text,
        "answer1": "4",
        "answer2": "5",
        "answer3": "6",
        "answer4": "7",
        "correct_answer": correct,
        "explanation": "Basic addition",
        "difficulty": "easy",
    }
    data.update(overrides)
    return Question(**data)


def make_set(
    category: str = "quantitative",
    subcategory: str = "algebra",
    topic: str | None = "equations",
    difficulty: str = "easy",
    questions: int | list[Question] = 1,
    **overrides,
) -> QuestionSetCreate:
    if isinstance(questions, int):
        questions = [
            make_question(f"Question {i + 1}", difficulty=difficulty)
            for i in range(questions)
        ]
    data = {
        "category": category,
        "subcategory": subcategory,
        "topic": topic,
        "difficulty": difficulty,
        "questions": questions,
    }
    data.update(overrides)
    return QuestionSetCreate(**data)


def make_token(
    user_id: str = "user-1",
    role: str = "tester",
    name: str | None = "Dana",
    email: str | None = "dana@example.com",
) -> str:
    claims = {"sub": user_id, "role": role, "name": name, "email": email}
    return jwt.encode(claims, IDENTITY_SECRET, algorithm=IDENTITY_ALGORITHM)


def auth_headers(**kwargs) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(**kwargs)}"}


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture()
def db(session_factory) -> Iterator[DbSession]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def store(db: DbSession) -> SqlQuestionSetStore:
    return SqlQuestionSetStore(db)


@pytest.fixture()
def context() -> RequestContext:
    return RequestContext(user_id="user-1", role=Role.TESTER, display_name="Dana")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture()
def client(session_factory, registry: SessionRegistry) -> Iterator[TestClient]:
    from psyexam.app import app
    from psyexam.database import get_db
    from psyexam.dependencies.store import get_session_registry

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_registry] = lambda: registry
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
