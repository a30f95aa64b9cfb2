"""
Practice session storage with compare-and-swap state writes.

Question states live in a JSON column on the session row, so one conditional
UPDATE carries a whole state transition. Every write follows the same loop:

1. Read the row fresh (bypassing the identity map)
2. Compute the new state collection in memory, replacing only the target entry
3. ``UPDATE ... WHERE id AND user_id AND ended_at IS NULL AND version = :read``
   setting the new states and ``version + 1``
4. Zero rows updated means another writer won: roll back and retry from 1

Attempts are bounded by ``max_cas_attempts``; running out raises
INTERNAL_ERROR instead of silently dropping the write. Ending a session goes
through the same guard and also bumps the version, so a state write racing an
end re-reads the row and reports CONFLICT.
"""
import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from qbank.core.datetime_utils import ensure_timezone_aware
from qbank.core.db_error_handling import handle_db_error
from qbank.core.error_responses import (
    ErrorCode,
    ErrorMessages,
    PracticeError,
    raise_conflict,
    raise_not_found,
)
from qbank.core.practice.session_state import (
    PracticeMode,
    PracticeSessionSnapshot,
    QuestionDifficulty,
    fresh_question_states,
    replace_question_state,
    states_from_json,
    states_to_json,
)
from qbank.models import PracticeSession
from qbank.services.ports import PracticeSessionPage

logger = logging.getLogger(__name__)

DEFAULT_MAX_CAS_ATTEMPTS = 3


def to_snapshot(row: PracticeSession) -> PracticeSessionSnapshot:
    question_ids = tuple(row.question_ids or [])
    return PracticeSessionSnapshot(
        id=row.id,
        user_id=row.user_id,
        mode=PracticeMode(row.mode),
        question_ids=question_ids,
        tag_filters=tuple(row.tag_filters or []),
        difficulty_filters=tuple(
            QuestionDifficulty(d) for d in row.difficulty_filters or []
        ),
        question_states=states_from_json(question_ids, row.question_states),
        version=row.version,
        started_at=ensure_timezone_aware(row.started_at),
        ended_at=(
            ensure_timezone_aware(row.ended_at) if row.ended_at is not None else None
        ),
    )


class SqlAlchemyPracticeSessionStore:
    """Practice session persistence backed by an AsyncSession."""

    def __init__(
        self, db: AsyncSession, *, max_cas_attempts: int = DEFAULT_MAX_CAS_ATTEMPTS
    ):
        if max_cas_attempts < 1:
            raise ValueError("max_cas_attempts must be at least 1")
        self.db = db
        self.max_cas_attempts = max_cas_attempts

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
        row = PracticeSession(
            user_id=user_id,
            mode=PracticeMode(mode),
            question_ids=list(question_ids),
            tag_filters=list(tag_filters),
            difficulty_filters=[QuestionDifficulty(d).value for d in difficulty_filters],
            question_states=states_to_json(fresh_question_states(question_ids)),
            version=0,
            started_at=started_at,
            ended_at=None,
        )
        async with handle_db_error(
            self.db, "create practice session", context={"user_id": user_id}
        ):
            self.db.add(row)
            await self.db.commit()
            await self.db.refresh(row)

        logger.info(
            f"Created {row.mode.value} practice session {row.id} "
            f"with {len(row.question_ids)} questions",
            extra={"user_id": user_id, "session_id": row.id},
        )
        return to_snapshot(row)

    async def _load_row(
        self, session_id: str, user_id: str
    ) -> Optional[PracticeSession]:
        """Read the session row, overwriting any stale identity-map copy."""
        result = await self.db.execute(
            select(PracticeSession)
            .where(
                PracticeSession.id == session_id,
                PracticeSession.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_by_id_and_user_id(
        self, session_id: str, user_id: str
    ) -> Optional[PracticeSessionSnapshot]:
        async with handle_db_error(self.db, "load practice session"):
            row = await self._load_row(session_id, user_id)
        return to_snapshot(row) if row is not None else None

    async def find_latest_incomplete_by_user_id(
        self, user_id: str
    ) -> Optional[PracticeSessionSnapshot]:
        stmt = (
            select(PracticeSession)
            .where(
                PracticeSession.user_id == user_id,
                PracticeSession.ended_at.is_(None),
            )
            .order_by(PracticeSession.started_at.desc(), PracticeSession.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        async with handle_db_error(self.db, "load incomplete practice session"):
            result = await self.db.execute(stmt)
            row = result.scalar_one_or_none()
        return to_snapshot(row) if row is not None else None

    async def find_completed_by_user_id(
        self, user_id: str, limit: int, offset: int
    ) -> PracticeSessionPage:
        completed = (
            PracticeSession.user_id == user_id,
            PracticeSession.ended_at.is_not(None),
        )
        rows_stmt = (
            select(PracticeSession)
            .where(*completed)
            .order_by(PracticeSession.ended_at.desc(), PracticeSession.id.desc())
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        count_stmt = select(func.count()).select_from(PracticeSession).where(*completed)

        async with handle_db_error(self.db, "list practice session history"):
            rows = (await self.db.execute(rows_stmt)).scalars().all()
            total = (await self.db.execute(count_stmt)).scalar_one()

        return PracticeSessionPage(
            rows=tuple(to_snapshot(row) for row in rows), total=int(total)
        )

    async def _compare_and_swap(
        self,
        session_id: str,
        user_id: str,
        operation: str,
        transition: Callable[[PracticeSessionSnapshot], PracticeSessionSnapshot],
        *,
        exhausted_message: str,
        question_id: Optional[str] = None,
    ) -> PracticeSessionSnapshot:
        """
        Apply ``transition`` to the session's current snapshot and persist it.

        ``transition`` must be pure: it can run once per attempt against a
        freshly read snapshot.
        """
        context = {
            "user_id": user_id,
            "session_id": session_id,
            "question_id": question_id,
        }

        for attempt in range(1, self.max_cas_attempts + 1):
            async with handle_db_error(self.db, operation, context=context):
                row = await self._load_row(session_id, user_id)
                if row is None:
                    raise_not_found(ErrorMessages.PRACTICE_SESSION_NOT_FOUND)

                current = to_snapshot(row)
                if not current.is_active:
                    raise_conflict(ErrorMessages.SESSION_ALREADY_ENDED)

                updated = replace(transition(current), version=current.version + 1)

                result = await self.db.execute(
                    update(PracticeSession)
                    .where(
                        PracticeSession.id == session_id,
                        PracticeSession.user_id == user_id,
                        PracticeSession.ended_at.is_(None),
                        PracticeSession.version == current.version,
                    )
                    .values(
                        question_states=states_to_json(updated.question_states),
                        ended_at=updated.ended_at,
                        version=updated.version,
                    )
                    .execution_options(synchronize_session=False)
                )

                if result.rowcount == 1:
                    await self.db.commit()
                    return updated

                await self.db.rollback()

            logger.info(
                f"Practice session {session_id} changed during {operation} "
                f"(attempt {attempt}/{self.max_cas_attempts}), retrying",
                extra={**context, "attempt": attempt},
            )

        logger.error(
            f"Gave up on {operation} for practice session {session_id} "
            f"after {self.max_cas_attempts} attempts",
            extra={**context, "error_code": ErrorCode.INTERNAL_ERROR.value},
        )
        raise PracticeError(ErrorCode.INTERNAL_ERROR, exhausted_message)

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
        """Overwrite the question's latest answer. Raises NOT_FOUND if it is not in the session."""

        def answer(current: PracticeSessionSnapshot) -> PracticeSessionSnapshot:
            return replace(
                current,
                question_states=replace_question_state(
                    current.question_states,
                    question_id,
                    lambda state: state.with_answer(
                        selected_choice_id, is_correct, answered_at
                    ),
                ),
            )

        return await self._compare_and_swap(
            session_id,
            user_id,
            "record question answer",
            answer,
            exhausted_message=ErrorMessages.SESSION_STATE_CONTENTION,
            question_id=question_id,
        )

    async def set_question_marked_for_review(
        self,
        *,
        session_id: str,
        user_id: str,
        question_id: str,
        marked_for_review: bool,
    ) -> PracticeSessionSnapshot:
        def mark(current: PracticeSessionSnapshot) -> PracticeSessionSnapshot:
            return replace(
                current,
                question_states=replace_question_state(
                    current.question_states,
                    question_id,
                    lambda state: state.with_mark(marked_for_review),
                ),
            )

        return await self._compare_and_swap(
            session_id,
            user_id,
            "mark question for review",
            mark,
            exhausted_message=ErrorMessages.SESSION_STATE_CONTENTION,
            question_id=question_id,
        )

    async def end(
        self, session_id: str, user_id: str, ended_at: datetime
    ) -> PracticeSessionSnapshot:
        """Terminal transition. Raises CONFLICT if the session already ended."""
        return await self._compare_and_swap(
            session_id,
            user_id,
            "end practice session",
            lambda current: replace(current, ended_at=ended_at),
            exhausted_message=ErrorMessages.SESSION_DID_NOT_END,
        )
