"""
Per-question review of a practice session.
"""
import logging

from qbank.core.error_responses import ErrorMessages, raise_not_found
from qbank.core.practice.session_rules import count_answered, count_marked
from qbank.schemas.practice import (
    PracticeSessionReviewResponse,
    PracticeSessionReviewRow,
)
from qbank.services.ports import PracticeSessionStore, QuestionRepository

logger = logging.getLogger(__name__)


class GetPracticeSessionReview:
    """
    One row per session question, in session order.

    Questions that are no longer published become unavailable rows that keep
    the answer and mark state, so missing content never fails the review.
    """

    def __init__(self, sessions: PracticeSessionStore, questions: QuestionRepository):
        self.sessions = sessions
        self.questions = questions

    async def execute(
        self, *, user_id: str, session_id: str
    ) -> PracticeSessionReviewResponse:
        session = await self.sessions.find_by_id_and_user_id(session_id, user_id)
        if session is None:
            raise_not_found(ErrorMessages.PRACTICE_SESSION_NOT_FOUND)

        questions = await self.questions.find_published_by_ids(list(session.question_ids))
        question_by_id = {question.id: question for question in questions}

        rows = []
        for order, state in enumerate(session.question_states, start=1):
            question = question_by_id.get(state.question_id)
            if question is None:
                logger.warning(
                    "Practice session review references missing question",
                    extra={
                        "user_id": user_id,
                        "session_id": session.id,
                        "question_id": state.question_id,
                    },
                )

            rows.append(
                PracticeSessionReviewRow(
                    is_available=question is not None,
                    question_id=state.question_id,
                    order=order,
                    is_answered=state.is_answered,
                    is_correct=state.latest_is_correct,
                    marked_for_review=state.marked_for_review,
                    stem_md=question.stem_md if question else None,
                    difficulty=question.difficulty if question else None,
                )
            )

        return PracticeSessionReviewResponse(
            session_id=session.id,
            mode=session.mode,
            total_count=len(session.question_ids),
            answered_count=count_answered(session.question_states),
            marked_count=count_marked(session.question_states),
            rows=rows,
        )
