"""
Pytest configuration and shared fixtures for testing.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator, Optional, Sequence

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from qbank.core.practice.session_state import QuestionDifficulty
from qbank.main import app
from qbank.models import (
    Base,
    Choice,
    Question,
    Tag,
    get_db,
)
from qbank.models.models import QuestionStatus

TEST_USER_ID = "user-1"
OTHER_USER_ID = "user-2"


@asynccontextmanager
async def _test_lifespan(app):
    """No-op lifespan for tests.

    Skips Sentry initialization and engine disposal.
    """
    yield


# Neutralize the production lifespan on the singleton app.
app.router.lifespan_context = _test_lifespan


def create_test_application():
    """Create the production app with the lifespan disabled."""
    from qbank.main import create_application

    test_app = create_application()
    test_app.router.lifespan_context = _test_lifespan
    return test_app


# File-backed SQLite so separate sessions (and separate connections) see each
# other's commits; path is relative to this file.
_TEST_DB = Path(__file__).parent / "test.db"
ASYNC_SQLALCHEMY_DATABASE_URL = f"sqlite+aiosqlite:///{_TEST_DB}"

async_test_engine = create_async_engine(
    ASYNC_SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
AsyncTestingSessionLocal = async_sessionmaker(
    async_test_engine, class_=AsyncSession, expire_on_commit=False
)


@pytest.fixture(scope="function")
async def async_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh async database session for each test.
    """
    async with async_test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncTestingSessionLocal() as session:
        yield session

    async with async_test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_factory():
    """Expose the session factory for tests that need a second connection."""
    return AsyncTestingSessionLocal


@pytest.fixture(scope="function")
async def async_client(
    async_db_session: AsyncSession,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an async test client with async database dependency override.

    Each request gets its own session on the same test database, like
    production requests do.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with AsyncTestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def user_headers():
    return {"X-User-Id": TEST_USER_ID}


async def create_question(
    db: AsyncSession,
    slug: str,
    *,
    difficulty: QuestionDifficulty = QuestionDifficulty.MEDIUM,
    status: QuestionStatus = QuestionStatus.PUBLISHED,
    tags: Sequence[Tag] = (),
    choice_count: int = 4,
    correct_index: int = 0,
    created_at: Optional[datetime] = None,
) -> Question:
    """
    Insert a question with ``choice_count`` choices labelled A.. in order.

    The choice at ``correct_index`` is correct; pass a negative index for a
    question with no correct choice.
    """
    question = Question(
        slug=slug,
        stem_md=f"Stem for {slug}",
        explanation_md=f"Explanation for {slug}",
        difficulty=difficulty,
        status=status,
        created_at=created_at or datetime.now(timezone.utc),
    )
    question.tags = list(tags)
    question.choices = [
        Choice(
            label="ABCDE"[index],
            text_md=f"Choice {index + 1} of {slug}",
            is_correct=index == correct_index,
            explanation_md=f"Why choice {index + 1} of {slug}",
            sort_order=index + 1,
        )
        for index in range(choice_count)
    ]
    db.add(question)
    await db.commit()
    return question


async def create_tag(db: AsyncSession, slug: str) -> Tag:
    tag = Tag(slug=slug, name=slug.replace("-", " ").title())
    db.add(tag)
    await db.commit()
    return tag


@pytest.fixture
async def published_questions(async_db_session):
    """
    Three published questions created one minute apart, oldest first, plus an
    archived question that must never be served.
    """
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    questions = [
        await create_question(
            async_db_session,
            f"q-{index}",
            difficulty=difficulty,
            created_at=base + timedelta(minutes=index),
        )
        for index, difficulty in enumerate(
            [
                QuestionDifficulty.EASY,
                QuestionDifficulty.MEDIUM,
                QuestionDifficulty.HARD,
            ]
        )
    ]
    await create_question(
        async_db_session,
        "q-archived",
        status=QuestionStatus.ARCHIVED,
        created_at=base + timedelta(minutes=10),
    )
    return questions


def correct_choice(question: Question) -> Choice:
    return next(choice for choice in question.choices if choice.is_correct)


def wrong_choice(question: Question) -> Choice:
    return next(choice for choice in question.choices if not choice.is_correct)
