"""
FastAPI dependencies: caller identity, idempotency keys and use case wiring.

This is the only place that reads ``settings`` for the practice engine; the
use cases and adapters receive every limit through their constructors.
"""
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from qbank.core.config import settings
from qbank.core.error_responses import ErrorMessages, raise_validation_error
from qbank.models import get_db
from qbank.repositories import (
    SqlAlchemyAttemptRepository,
    SqlAlchemyBookmarkRepository,
    SqlAlchemyIdempotencyKeyStore,
    SqlAlchemyPracticeSessionStore,
    SqlAlchemyQuestionRepository,
)
from qbank.services.idempotency import IdempotencyCoordinator
from qbank.services.practice import (
    EndPracticeSession,
    GetBookmarks,
    GetIncompletePracticeSession,
    GetMissedQuestions,
    GetNextQuestion,
    GetPracticeSessionReview,
    GetSessionHistory,
    SetPracticeSessionQuestionMark,
    StartPracticeSession,
    SubmitAnswer,
    ToggleBookmark,
)

MAX_IDEMPOTENCY_KEY_LENGTH = 255


async def get_current_user_id(
    x_user_id: str = Header(..., alias="X-User-Id", description="Resolved user ID"),
) -> str:
    """Identity is resolved upstream; the engine only needs a non-empty id."""
    user_id = x_user_id.strip()
    if not user_id:
        raise_validation_error(
            ErrorMessages.INVALID_INPUT,
            {"X-User-Id": ["User id header must not be empty."]},
        )
    return user_id


async def get_idempotency_key(
    idempotency_key: Optional[str] = Header(
        None,
        alias="Idempotency-Key",
        description="Client key that makes retries of this mutation safe",
    ),
) -> Optional[str]:
    if idempotency_key is None:
        return None
    key = idempotency_key.strip()
    if not key or len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise_validation_error(
            ErrorMessages.INVALID_INPUT,
            {
                "Idempotency-Key": [
                    f"Idempotency key must be 1-{MAX_IDEMPOTENCY_KEY_LENGTH} characters."
                ]
            },
        )
    return key


def get_question_repository(
    db: AsyncSession = Depends(get_db),
) -> SqlAlchemyQuestionRepository:
    return SqlAlchemyQuestionRepository(db)


def get_attempt_repository(
    db: AsyncSession = Depends(get_db),
) -> SqlAlchemyAttemptRepository:
    return SqlAlchemyAttemptRepository(db)


def get_bookmark_repository(
    db: AsyncSession = Depends(get_db),
) -> SqlAlchemyBookmarkRepository:
    return SqlAlchemyBookmarkRepository(db)


def get_practice_session_store(
    db: AsyncSession = Depends(get_db),
) -> SqlAlchemyPracticeSessionStore:
    return SqlAlchemyPracticeSessionStore(
        db, max_cas_attempts=settings.SESSION_STATE_MAX_CAS_ATTEMPTS
    )


def get_idempotency_coordinator(
    db: AsyncSession = Depends(get_db),
) -> IdempotencyCoordinator:
    return IdempotencyCoordinator(
        SqlAlchemyIdempotencyKeyStore(db),
        ttl_seconds=settings.IDEMPOTENCY_TTL_SECONDS,
        max_wait_seconds=settings.IDEMPOTENCY_MAX_WAIT_SECONDS,
        poll_interval_seconds=settings.IDEMPOTENCY_POLL_INTERVAL_SECONDS,
    )


def get_start_practice_session(
    questions: SqlAlchemyQuestionRepository = Depends(get_question_repository),
    sessions: SqlAlchemyPracticeSessionStore = Depends(get_practice_session_store),
) -> StartPracticeSession:
    return StartPracticeSession(
        questions,
        sessions,
        max_questions=settings.MAX_PRACTICE_SESSION_QUESTIONS,
        max_tag_filters=settings.MAX_PRACTICE_SESSION_TAG_FILTERS,
        max_difficulty_filters=settings.MAX_PRACTICE_SESSION_DIFFICULTY_FILTERS,
    )


def get_next_question(
    questions: SqlAlchemyQuestionRepository = Depends(get_question_repository),
    attempts: SqlAlchemyAttemptRepository = Depends(get_attempt_repository),
    sessions: SqlAlchemyPracticeSessionStore = Depends(get_practice_session_store),
) -> GetNextQuestion:
    return GetNextQuestion(questions, attempts, sessions)


def get_submit_answer(
    questions: SqlAlchemyQuestionRepository = Depends(get_question_repository),
    attempts: SqlAlchemyAttemptRepository = Depends(get_attempt_repository),
    sessions: SqlAlchemyPracticeSessionStore = Depends(get_practice_session_store),
) -> SubmitAnswer:
    return SubmitAnswer(
        questions,
        attempts,
        sessions,
        max_time_spent_seconds=settings.MAX_TIME_SPENT_SECONDS,
    )


def get_set_question_mark(
    sessions: SqlAlchemyPracticeSessionStore = Depends(get_practice_session_store),
) -> SetPracticeSessionQuestionMark:
    return SetPracticeSessionQuestionMark(sessions)


def get_end_practice_session(
    sessions: SqlAlchemyPracticeSessionStore = Depends(get_practice_session_store),
) -> EndPracticeSession:
    return EndPracticeSession(sessions)


def get_practice_session_review(
    sessions: SqlAlchemyPracticeSessionStore = Depends(get_practice_session_store),
    questions: SqlAlchemyQuestionRepository = Depends(get_question_repository),
) -> GetPracticeSessionReview:
    return GetPracticeSessionReview(sessions, questions)


def get_incomplete_practice_session(
    sessions: SqlAlchemyPracticeSessionStore = Depends(get_practice_session_store),
) -> GetIncompletePracticeSession:
    return GetIncompletePracticeSession(sessions)


def get_session_history(
    sessions: SqlAlchemyPracticeSessionStore = Depends(get_practice_session_store),
) -> GetSessionHistory:
    return GetSessionHistory(sessions)


def get_missed_questions(
    attempts: SqlAlchemyAttemptRepository = Depends(get_attempt_repository),
    questions: SqlAlchemyQuestionRepository = Depends(get_question_repository),
) -> GetMissedQuestions:
    return GetMissedQuestions(attempts, questions)


def get_toggle_bookmark(
    bookmarks: SqlAlchemyBookmarkRepository = Depends(get_bookmark_repository),
    questions: SqlAlchemyQuestionRepository = Depends(get_question_repository),
) -> ToggleBookmark:
    return ToggleBookmark(bookmarks, questions)


def get_bookmarks(
    bookmarks: SqlAlchemyBookmarkRepository = Depends(get_bookmark_repository),
    questions: SqlAlchemyQuestionRepository = Depends(get_question_repository),
) -> GetBookmarks:
    return GetBookmarks(bookmarks, questions)
