"""
Serve the next question, either from a session or ad hoc from filters.
"""
from typing import List, Optional

from qbank.core.error_responses import ErrorMessages, raise_not_found
from qbank.core.practice.choice_views import build_shuffled_choice_views
from qbank.core.practice.question_selection import (
    FilterTarget,
    NextQuestionTarget,
    SessionTarget,
    select_next_question_id,
)
from qbank.core.practice.session_rules import (
    next_unanswered_question_id,
    question_index,
)
from qbank.schemas.practice import (
    NextQuestionResponse,
    PublicChoiceResponse,
    SessionProgressResponse,
)
from qbank.services.ports import (
    AttemptRepository,
    PracticeSessionStore,
    PublishedQuestion,
    QuestionRepository,
)


def public_choices(question: PublishedQuestion, user_id: str) -> List[PublicChoiceResponse]:
    """The user's stable choice order, without correctness."""
    return [
        PublicChoiceResponse(
            id=view.choice_id,
            label=view.display_label,
            text_md=view.text_md,
            sort_order=view.sort_order,
        )
        for view in build_shuffled_choice_views(question, user_id)
    ]


class GetNextQuestion:
    def __init__(
        self,
        questions: QuestionRepository,
        attempts: AttemptRepository,
        sessions: PracticeSessionStore,
    ):
        self.questions = questions
        self.attempts = attempts
        self.sessions = sessions

    async def execute(
        self, *, user_id: str, target: NextQuestionTarget
    ) -> Optional[NextQuestionResponse]:
        """
        Returns None when there is nothing left to serve: every session
        question is answered, or no published question matches the filters.

        Raises:
            PracticeError: NOT_FOUND if the session is not the user's, the
                target question is not in the session, or the chosen question
                is no longer published.
        """
        if isinstance(target, SessionTarget):
            return await self._for_session(user_id, target)
        if isinstance(target, FilterTarget):
            return await self._for_filters(user_id, target)
        raise TypeError(f"Unsupported next-question target: {type(target).__name__}")

    async def _load_published(self, question_id: str) -> PublishedQuestion:
        question = await self.questions.find_published_by_id(question_id)
        if question is None:
            raise_not_found(ErrorMessages.QUESTION_NOT_FOUND)
        return question

    async def _for_session(
        self, user_id: str, target: SessionTarget
    ) -> Optional[NextQuestionResponse]:
        session = await self.sessions.find_by_id_and_user_id(target.session_id, user_id)
        if session is None:
            raise_not_found(ErrorMessages.PRACTICE_SESSION_NOT_FOUND)

        if target.question_id is not None:
            if target.question_id not in session.question_ids:
                raise_not_found(ErrorMessages.QUESTION_NOT_IN_SESSION)
            question_id: Optional[str] = target.question_id
        else:
            question_id = next_unanswered_question_id(session)

        if question_id is None:
            return None

        question = await self._load_published(question_id)

        return NextQuestionResponse(
            question_id=question.id,
            slug=question.slug,
            stem_md=question.stem_md,
            difficulty=question.difficulty,
            choices=public_choices(question, user_id),
            session=SessionProgressResponse(
                session_id=session.id,
                mode=session.mode,
                index=question_index(session, question.id),
                total=len(session.question_ids),
            ),
        )

    async def _for_filters(
        self, user_id: str, target: FilterTarget
    ) -> Optional[NextQuestionResponse]:
        candidate_ids = await self.questions.list_published_candidate_ids(
            tag_slugs=list(target.tag_slugs), difficulties=list(target.difficulties)
        )
        if not candidate_ids:
            return None

        history = await self.attempts.find_most_recent_answered_at_by_question_ids(
            user_id, candidate_ids
        )
        selected_id = select_next_question_id(candidate_ids, history)
        if selected_id is None:
            return None

        question = await self._load_published(selected_id)

        return NextQuestionResponse(
            question_id=question.id,
            slug=question.slug,
            stem_md=question.stem_md,
            difficulty=question.difficulty,
            choices=public_choices(question, user_id),
            session=None,
        )
