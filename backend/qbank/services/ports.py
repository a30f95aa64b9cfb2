"""
Storage ports consumed by the practice use cases.

Use cases depend on these Protocols only; the SQLAlchemy repositories in
``qbank.repositories`` implement them, and tests may substitute fakes.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from qbank.core.error_responses import ErrorCode
from qbank.core.practice.grading import GradableChoice
from qbank.core.practice.session_state import (
    PracticeMode,
    PracticeSessionSnapshot,
    QuestionDifficulty,
)


class PublishedQuestion(Protocol):
    """Question content as read by the engine."""

    @property
    def id(self) -> str:
        ...

    @property
    def slug(self) -> str:
        ...

    @property
    def stem_md(self) -> str:
        ...

    @property
    def explanation_md(self) -> str:
        ...

    @property
    def difficulty(self) -> QuestionDifficulty:
        ...

    @property
    def choices(self) -> Sequence[GradableChoice]:
        ...


@dataclass(frozen=True)
class NewAttempt:
    user_id: str
    question_id: str
    practice_session_id: Optional[str]
    selected_choice_id: str
    is_correct: bool
    time_spent_seconds: int


@dataclass(frozen=True)
class AttemptRecord:
    id: str
    user_id: str
    question_id: str
    practice_session_id: Optional[str]
    selected_choice_id: str
    is_correct: bool
    time_spent_seconds: int
    answered_at: datetime


@dataclass(frozen=True)
class MissedQuestionAttempt:
    """A question whose latest attempt by the user was incorrect."""

    question_id: str
    answered_at: datetime


@dataclass(frozen=True)
class BookmarkRecord:
    user_id: str
    question_id: str
    created_at: datetime


@dataclass(frozen=True)
class PracticeSessionPage:
    rows: Tuple[PracticeSessionSnapshot, ...]
    total: int


@dataclass(frozen=True)
class IdempotencyRecord:
    """Stored outcome of an idempotent action.

    Neither ``result_json`` nor ``error_code`` set means the key is claimed
    and the executor has not finished yet.
    """

    user_id: str
    action: str
    key: str
    result_json: Optional[Any]
    error_code: Optional[ErrorCode]
    error_message: Optional[str]
    expires_at: datetime


class QuestionRepository(Protocol):
    async def find_published_by_id(self, question_id: str) -> Optional[PublishedQuestion]:
        ...

    async def find_published_by_ids(
        self, question_ids: Sequence[str]
    ) -> List[PublishedQuestion]:
        ...

    async def list_published_candidate_ids(
        self,
        tag_slugs: Sequence[str],
        difficulties: Sequence[QuestionDifficulty],
    ) -> List[str]:
        ...


class AttemptRepository(Protocol):
    async def insert(self, attempt: NewAttempt) -> AttemptRecord:
        ...

    async def delete_by_id(self, attempt_id: str, user_id: str) -> bool:
        ...

    async def find_most_recent_answered_at_by_question_ids(
        self, user_id: str, question_ids: Sequence[str]
    ) -> Dict[str, datetime]:
        ...

    async def list_missed_questions(
        self, user_id: str, limit: int, offset: int
    ) -> List[MissedQuestionAttempt]:
        ...

    async def count_missed_questions(self, user_id: str) -> int:
        ...


class BookmarkRepository(Protocol):
    async def exists(self, user_id: str, question_id: str) -> bool:
        ...

    async def add(self, user_id: str, question_id: str) -> BookmarkRecord:
        ...

    async def remove(self, user_id: str, question_id: str) -> bool:
        """True if a bookmark was removed, False if there was none."""
        ...

    async def list_by_user_id(self, user_id: str) -> List[BookmarkRecord]:
        """Newest first."""
        ...


class PracticeSessionStore(Protocol):
    async def create(
        self,
        *,
        user_id: str,
        mode: PracticeMode,
        question_ids: Sequence[str],
        tag_filters: Sequence[str],
        difficulty_filters: Sequence[QuestionDifficulty],
        started_at: datetime,
    ) -> PracticeSessionSnapshot:
        ...

    async def find_by_id_and_user_id(
        self, session_id: str, user_id: str
    ) -> Optional[PracticeSessionSnapshot]:
        ...

    async def find_latest_incomplete_by_user_id(
        self, user_id: str
    ) -> Optional[PracticeSessionSnapshot]:
        ...

    async def find_completed_by_user_id(
        self, user_id: str, limit: int, offset: int
    ) -> PracticeSessionPage:
        ...

    async def record_question_answer(
        self,
        *,
        session_id: str,
        user_id: str,
        question_id: str,
        selected_choice_id: str,
        is_correct: bool,
        answered_at: datetime,
    ) -> PracticeSessionSnapshot:
        ...

    async def set_question_marked_for_review(
        self,
        *,
        session_id: str,
        user_id: str,
        question_id: str,
        marked_for_review: bool,
    ) -> PracticeSessionSnapshot:
        ...

    async def end(
        self, session_id: str, user_id: str, ended_at: datetime
    ) -> PracticeSessionSnapshot:
        ...


class IdempotencyKeyStore(Protocol):
    async def claim(
        self, user_id: str, action: str, key: str, expires_at: datetime
    ) -> bool:
        ...

    async def find(
        self, user_id: str, action: str, key: str
    ) -> Optional[IdempotencyRecord]:
        ...

    async def store_result(
        self, user_id: str, action: str, key: str, result_json: Any
    ) -> None:
        ...

    async def store_error(
        self,
        user_id: str,
        action: str,
        key: str,
        error_code: ErrorCode,
        error_message: str,
    ) -> None:
        ...

    async def prune_expired_before(self, cutoff: datetime, limit: int) -> int:
        ...
