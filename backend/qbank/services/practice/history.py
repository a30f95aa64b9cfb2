"""
Paginated history of ended practice sessions.
"""
from qbank.core.practice.session_rules import compute_session_totals
from qbank.schemas.practice import SessionHistoryResponse, SessionHistoryRow
from qbank.services.ports import PracticeSessionStore


class GetSessionHistory:
    """Ended sessions, most recently ended first, scored from question state."""

    def __init__(self, sessions: PracticeSessionStore):
        self.sessions = sessions

    async def execute(
        self, *, user_id: str, limit: int, offset: int
    ) -> SessionHistoryResponse:
        page = await self.sessions.find_completed_by_user_id(user_id, limit, offset)

        rows = []
        for session in page.rows:
            if session.ended_at is None:
                continue
            totals = compute_session_totals(session, session.ended_at)
            rows.append(
                SessionHistoryRow(
                    session_id=session.id,
                    mode=session.mode,
                    question_count=len(session.question_ids),
                    answered=totals.answered,
                    correct=totals.correct,
                    accuracy=totals.accuracy,
                    duration_seconds=totals.duration_seconds,
                    started_at=session.started_at,
                    ended_at=session.ended_at,
                )
            )

        return SessionHistoryResponse(
            rows=rows, total=page.total, limit=limit, offset=offset
        )
