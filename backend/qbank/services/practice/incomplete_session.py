"""
Find the user's most recent session that has not ended.
"""
from typing import Optional

from qbank.core.practice.session_rules import count_answered
from qbank.schemas.practice import IncompletePracticeSessionResponse
from qbank.services.ports import PracticeSessionStore


class GetIncompletePracticeSession:
    def __init__(self, sessions: PracticeSessionStore):
        self.sessions = sessions

    async def execute(self, *, user_id: str) -> Optional[IncompletePracticeSessionResponse]:
        session = await self.sessions.find_latest_incomplete_by_user_id(user_id)
        if session is None:
            return None

        return IncompletePracticeSessionResponse(
            session_id=session.id,
            mode=session.mode,
            answered_count=count_answered(session.question_states),
            total_count=len(session.question_ids),
            started_at=session.started_at,
        )
