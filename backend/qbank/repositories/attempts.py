"""
Append-only attempt log.

The only delete is the compensating rollback used when a session state write
fails after its attempt was recorded.
"""
from datetime import datetime
from typing import Dict, List, Sequence

from sqlalchemy import and_, delete, false, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from qbank.core.datetime_utils import ensure_timezone_aware, utc_now
from qbank.core.db_error_handling import handle_db_error
from qbank.models import Attempt
from qbank.services.ports import AttemptRecord, MissedQuestionAttempt, NewAttempt


def _to_record(row: Attempt) -> AttemptRecord:
    return AttemptRecord(
        id=row.id,
        user_id=row.user_id,
        question_id=row.question_id,
        practice_session_id=row.practice_session_id,
        selected_choice_id=row.selected_choice_id,
        is_correct=row.is_correct,
        time_spent_seconds=row.time_spent_seconds,
        answered_at=ensure_timezone_aware(row.answered_at),
    )


class SqlAlchemyAttemptRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, attempt: NewAttempt) -> AttemptRecord:
        row = Attempt(
            user_id=attempt.user_id,
            question_id=attempt.question_id,
            practice_session_id=attempt.practice_session_id,
            selected_choice_id=attempt.selected_choice_id,
            is_correct=attempt.is_correct,
            time_spent_seconds=attempt.time_spent_seconds,
            answered_at=utc_now(),
        )
        async with handle_db_error(
            self.db,
            "record attempt",
            context={"user_id": attempt.user_id, "question_id": attempt.question_id},
        ):
            self.db.add(row)
            await self.db.commit()
            await self.db.refresh(row)
        return _to_record(row)

    async def delete_by_id(self, attempt_id: str, user_id: str) -> bool:
        """Delete one of the user's attempts. Returns False if nothing was deleted."""
        async with handle_db_error(
            self.db, "delete attempt", context={"user_id": user_id}
        ):
            result = await self.db.execute(
                delete(Attempt).where(
                    Attempt.id == attempt_id, Attempt.user_id == user_id
                )
            )
            await self.db.commit()
        return result.rowcount > 0

    async def find_most_recent_answered_at_by_question_ids(
        self, user_id: str, question_ids: Sequence[str]
    ) -> Dict[str, datetime]:
        if not question_ids:
            return {}

        stmt = (
            select(Attempt.question_id, func.max(Attempt.answered_at))
            .where(
                Attempt.user_id == user_id,
                Attempt.question_id.in_(list(question_ids)),
            )
            .group_by(Attempt.question_id)
        )
        async with handle_db_error(self.db, "load attempt history"):
            result = await self.db.execute(stmt)
            rows = result.all()

        return {
            question_id: ensure_timezone_aware(answered_at)
            for question_id, answered_at in rows
            if answered_at is not None
        }

    def _latest_attempts(self, user_id: str):
        """Each question's most recent attempt by the user, ranked 1."""
        attempt_rank = (
            func.row_number()
            .over(
                partition_by=Attempt.question_id,
                order_by=(Attempt.answered_at.desc(), Attempt.id.desc()),
            )
            .label("attempt_rank")
        )
        return (
            select(
                Attempt.question_id.label("question_id"),
                Attempt.answered_at.label("answered_at"),
                Attempt.is_correct.label("is_correct"),
                attempt_rank,
            )
            .where(Attempt.user_id == user_id)
            .subquery("latest_attempt_rows")
        )

    async def list_missed_questions(
        self, user_id: str, limit: int, offset: int
    ) -> List[MissedQuestionAttempt]:
        latest = self._latest_attempts(user_id)
        stmt = (
            select(latest.c.question_id, latest.c.answered_at)
            .where(and_(latest.c.attempt_rank == 1, latest.c.is_correct == false()))
            .order_by(latest.c.answered_at.desc(), latest.c.question_id.desc())
            .limit(limit)
            .offset(offset)
        )
        async with handle_db_error(self.db, "list missed questions"):
            result = await self.db.execute(stmt)
            rows = result.all()

        return [
            MissedQuestionAttempt(
                question_id=question_id,
                answered_at=ensure_timezone_aware(answered_at),
            )
            for question_id, answered_at in rows
        ]

    async def count_missed_questions(self, user_id: str) -> int:
        latest = self._latest_attempts(user_id)
        stmt = (
            select(func.count())
            .select_from(latest)
            .where(and_(latest.c.attempt_rank == 1, latest.c.is_correct == false()))
        )
        async with handle_db_error(self.db, "count missed questions"):
            result = await self.db.execute(stmt)
            return int(result.scalar_one())
