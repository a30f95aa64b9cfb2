"""
Grade and record an answer.

The attempt row and the session state write form one logical unit. The
attempt is appended first; if the session state write then fails, the attempt
is deleted again before the original error propagates, so a failed submit
never leaves a dangling attempt.
"""
import logging
import math
from typing import List, Optional

from qbank.core.error_responses import (
    ErrorCode,
    ErrorMessages,
    PracticeError,
    raise_conflict,
    raise_internal_error,
    raise_not_found,
)
from qbank.core.practice.choice_views import build_shuffled_choice_views
from qbank.core.practice.grading import grade_answer
from qbank.core.practice.session_rules import should_show_explanation
from qbank.core.practice.session_state import PracticeSessionSnapshot
from qbank.schemas.practice import ChoiceExplanationResponse, SubmitAnswerResponse
from qbank.services.ports import (
    AttemptRecord,
    AttemptRepository,
    NewAttempt,
    PracticeSessionStore,
    PublishedQuestion,
    QuestionRepository,
)

logger = logging.getLogger(__name__)


def clamp_time_spent(value: Optional[float], max_seconds: int) -> int:
    """Whole seconds in [0, max_seconds]; missing or non-finite values count as 0."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(seconds):
        return 0
    return int(min(max(0.0, seconds), float(max_seconds)))


def choice_explanations(
    question: PublishedQuestion, user_id: str
) -> List[ChoiceExplanationResponse]:
    return [
        ChoiceExplanationResponse(
            choice_id=view.choice_id,
            display_label=view.display_label,
            text_md=view.text_md,
            is_correct=view.is_correct,
            explanation_md=view.explanation_md,
        )
        for view in build_shuffled_choice_views(question, user_id)
    ]


class SubmitAnswer:
    def __init__(
        self,
        questions: QuestionRepository,
        attempts: AttemptRepository,
        sessions: PracticeSessionStore,
        *,
        max_time_spent_seconds: int,
    ):
        self.questions = questions
        self.attempts = attempts
        self.sessions = sessions
        self.max_time_spent_seconds = max_time_spent_seconds

    async def _load_session(
        self, session_id: str, user_id: str, question_id: str
    ) -> PracticeSessionSnapshot:
        session = await self.sessions.find_by_id_and_user_id(session_id, user_id)
        if session is None:
            raise_not_found(ErrorMessages.PRACTICE_SESSION_NOT_FOUND)
        if not session.is_active:
            raise_conflict(ErrorMessages.SESSION_ALREADY_ENDED)
        if question_id not in session.question_ids:
            raise_not_found(ErrorMessages.QUESTION_NOT_IN_SESSION)
        return session

    async def _roll_back_attempt(self, attempt: AttemptRecord, user_id: str) -> None:
        try:
            deleted = await self.attempts.delete_by_id(attempt.id, user_id)
        except Exception as e:
            logger.error(
                f"Failed to delete attempt {attempt.id} after session state error",
                exc_info=True,
                extra={"user_id": user_id, "session_id": attempt.practice_session_id},
            )
            raise PracticeError(
                ErrorCode.INTERNAL_ERROR, ErrorMessages.ATTEMPT_ROLLBACK_FAILED
            ) from e

        if not deleted:
            logger.error(
                f"Attempt {attempt.id} was already gone during rollback",
                extra={"user_id": user_id, "session_id": attempt.practice_session_id},
            )
            raise_internal_error(ErrorMessages.ATTEMPT_ROLLBACK_FAILED)

    async def execute(
        self,
        *,
        user_id: str,
        question_id: str,
        choice_id: str,
        session_id: Optional[str] = None,
        time_spent_seconds: Optional[float] = None,
    ) -> SubmitAnswerResponse:
        """
        Raises:
            PracticeError: NOT_FOUND for an unknown question, choice or
                session, or a question outside the session; CONFLICT if the
                session already ended; INTERNAL_ERROR if the question content
                is invalid or the state write could not be completed.
        """
        question = await self.questions.find_published_by_id(question_id)
        if question is None:
            raise_not_found(ErrorMessages.QUESTION_NOT_FOUND)

        grade = grade_answer(question, choice_id)

        session: Optional[PracticeSessionSnapshot] = None
        if session_id is not None:
            session = await self._load_session(session_id, user_id, question.id)

        attempt = await self.attempts.insert(
            NewAttempt(
                user_id=user_id,
                question_id=question.id,
                practice_session_id=session.id if session else None,
                selected_choice_id=choice_id,
                is_correct=grade.is_correct,
                time_spent_seconds=clamp_time_spent(
                    time_spent_seconds, self.max_time_spent_seconds
                ),
            )
        )

        if session is not None:
            try:
                await self.sessions.record_question_answer(
                    session_id=session.id,
                    user_id=user_id,
                    question_id=question.id,
                    selected_choice_id=choice_id,
                    is_correct=grade.is_correct,
                    answered_at=attempt.answered_at,
                )
            except Exception as error:
                logger.warning(
                    f"Session state write failed, rolling back attempt {attempt.id}: "
                    f"{error}",
                    extra={
                        "user_id": user_id,
                        "session_id": session.id,
                        "question_id": question.id,
                    },
                )
                await self._roll_back_attempt(attempt, user_id)
                raise

        show_explanation = should_show_explanation(session.mode if session else None)

        return SubmitAnswerResponse(
            attempt_id=attempt.id,
            is_correct=grade.is_correct,
            correct_choice_id=grade.correct_choice_id,
            explanation_md=question.explanation_md if show_explanation else None,
            choice_explanations=(
                choice_explanations(question, user_id) if show_explanation else []
            ),
        )
