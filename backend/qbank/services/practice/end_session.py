"""
End a practice session and summarize it.
"""
import logging
from datetime import datetime
from typing import Callable

from qbank.core.datetime_utils import utc_now
from qbank.core.error_responses import (
    ErrorMessages,
    raise_conflict,
    raise_internal_error,
    raise_not_found,
)
from qbank.core.practice.session_rules import compute_session_totals
from qbank.schemas.practice import EndPracticeSessionResponse, SessionTotalsResponse
from qbank.services.ports import PracticeSessionStore

logger = logging.getLogger(__name__)


class EndPracticeSession:
    """
    Terminal transition with a server-assigned end time.

    Totals come from the persisted question states only; the attempt log is
    not consulted.
    """

    def __init__(
        self,
        sessions: PracticeSessionStore,
        *,
        now: Callable[[], datetime] = utc_now,
    ):
        self.sessions = sessions
        self.now = now

    async def execute(
        self, *, user_id: str, session_id: str
    ) -> EndPracticeSessionResponse:
        session = await self.sessions.find_by_id_and_user_id(session_id, user_id)
        if session is None:
            raise_not_found(ErrorMessages.PRACTICE_SESSION_NOT_FOUND)
        if not session.is_active:
            raise_conflict(ErrorMessages.SESSION_ALREADY_ENDED)

        ended = await self.sessions.end(session.id, user_id, self.now())
        if ended.ended_at is None:
            raise_internal_error(ErrorMessages.SESSION_DID_NOT_END)

        totals = compute_session_totals(ended, ended.ended_at)

        logger.info(
            f"Ended practice session: {totals.correct}/{totals.answered} correct "
            f"of {len(ended.question_ids)} questions",
            extra={"user_id": user_id, "session_id": ended.id},
        )

        return EndPracticeSessionResponse(
            session_id=ended.id,
            ended_at=ended.ended_at,
            totals=SessionTotalsResponse(
                answered=totals.answered,
                correct=totals.correct,
                accuracy=totals.accuracy,
                duration_seconds=totals.duration_seconds,
            ),
        )
