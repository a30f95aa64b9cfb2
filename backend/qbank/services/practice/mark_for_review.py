"""
Mark or unmark an exam question for review.
"""
from qbank.core.error_responses import (
    ErrorMessages,
    raise_conflict,
    raise_not_found,
)
from qbank.core.practice.session_state import PracticeMode
from qbank.schemas.practice import SetQuestionMarkResponse
from qbank.services.ports import PracticeSessionStore


class SetPracticeSessionQuestionMark:
    """
    Only active exam sessions accept marks. Setting the flag to the value it
    already has succeeds and leaves the question state unchanged.
    """

    def __init__(self, sessions: PracticeSessionStore):
        self.sessions = sessions

    async def execute(
        self,
        *,
        user_id: str,
        session_id: str,
        question_id: str,
        marked_for_review: bool,
    ) -> SetQuestionMarkResponse:
        session = await self.sessions.find_by_id_and_user_id(session_id, user_id)
        if session is None:
            raise_not_found(ErrorMessages.PRACTICE_SESSION_NOT_FOUND)
        if session.mode != PracticeMode.EXAM:
            raise_conflict(ErrorMessages.MARK_REQUIRES_EXAM_MODE)
        if not session.is_active:
            raise_conflict(ErrorMessages.SESSION_ALREADY_ENDED)

        updated = await self.sessions.set_question_marked_for_review(
            session_id=session.id,
            user_id=user_id,
            question_id=question_id,
            marked_for_review=marked_for_review,
        )

        state = updated.state_for(question_id)
        return SetQuestionMarkResponse(
            question_id=question_id,
            marked_for_review=state.marked_for_review if state else marked_for_review,
        )
