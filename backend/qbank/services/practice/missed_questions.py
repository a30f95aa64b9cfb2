"""
Questions the user most recently answered incorrectly.
"""
import logging

from qbank.schemas.practice import MissedQuestionRow, MissedQuestionsResponse
from qbank.services.ports import AttemptRepository, QuestionRepository

logger = logging.getLogger(__name__)


class GetMissedQuestions:
    """
    Newest misses first. A question counts as missed only while its latest
    attempt is incorrect; a later correct answer removes it from the list.
    """

    def __init__(self, attempts: AttemptRepository, questions: QuestionRepository):
        self.attempts = attempts
        self.questions = questions

    async def execute(
        self, *, user_id: str, limit: int, offset: int
    ) -> MissedQuestionsResponse:
        total_count = await self.attempts.count_missed_questions(user_id)
        if total_count == 0:
            return MissedQuestionsResponse(
                rows=[], limit=limit, offset=offset, total_count=0
            )

        missed = await self.attempts.list_missed_questions(user_id, limit, offset)
        questions = await self.questions.find_published_by_ids(
            [m.question_id for m in missed]
        )
        question_by_id = {question.id: question for question in questions}

        rows = []
        for miss in missed:
            question = question_by_id.get(miss.question_id)
            if question is None:
                logger.warning(
                    "Missed question references missing question",
                    extra={"user_id": user_id, "question_id": miss.question_id},
                )
                rows.append(
                    MissedQuestionRow(
                        is_available=False,
                        question_id=miss.question_id,
                        last_answered_at=miss.answered_at,
                    )
                )
                continue

            rows.append(
                MissedQuestionRow(
                    is_available=True,
                    question_id=question.id,
                    last_answered_at=miss.answered_at,
                    slug=question.slug,
                    stem_md=question.stem_md,
                    difficulty=question.difficulty,
                )
            )

        return MissedQuestionsResponse(
            rows=rows, limit=limit, offset=offset, total_count=total_count
        )
