"""
Start a practice session.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, List, Sequence

from qbank.core.datetime_utils import to_epoch_ms, utc_now
from qbank.core.error_responses import (
    ErrorMessages,
    raise_not_found,
    raise_validation_error,
)
from qbank.core.practice.session_state import PracticeMode, QuestionDifficulty
from qbank.core.practice.shuffle import create_seed, shuffle_with_seed
from qbank.schemas.practice import StartPracticeSessionResponse
from qbank.services.ports import PracticeSessionStore, QuestionRepository

logger = logging.getLogger(__name__)


class StartPracticeSession:
    """
    Create a session from filtered candidates in a per-session seeded order.

    The order is fixed at creation: the seed derives from the user and the
    start timestamp, and the shuffled ids are stored on the session row.
    """

    def __init__(
        self,
        questions: QuestionRepository,
        sessions: PracticeSessionStore,
        *,
        max_questions: int,
        max_tag_filters: int,
        max_difficulty_filters: int,
        now: Callable[[], datetime] = utc_now,
    ):
        self.questions = questions
        self.sessions = sessions
        self.max_questions = max_questions
        self.max_tag_filters = max_tag_filters
        self.max_difficulty_filters = max_difficulty_filters
        self.now = now

    def _validate(
        self,
        mode: str,
        count: int,
        tag_slugs: Sequence[str],
        difficulties: Sequence[str],
    ) -> None:
        field_errors: Dict[str, List[str]] = {}

        if mode not in {m.value for m in PracticeMode}:
            field_errors["mode"] = ["Mode must be 'tutor' or 'exam'."]

        if isinstance(count, bool) or not isinstance(count, int):
            field_errors["count"] = ["Count must be an integer."]
        elif not 1 <= count <= self.max_questions:
            field_errors["count"] = [
                f"Count must be between 1 and {self.max_questions}."
            ]

        if len(tag_slugs) > self.max_tag_filters:
            field_errors["tag_slugs"] = [
                f"At most {self.max_tag_filters} tags may be selected."
            ]
        elif any(not slug or not slug.strip() for slug in tag_slugs):
            field_errors["tag_slugs"] = ["Tag slugs must not be empty."]

        valid_difficulties = {d.value for d in QuestionDifficulty}
        if len(difficulties) > self.max_difficulty_filters:
            field_errors["difficulties"] = [
                f"At most {self.max_difficulty_filters} difficulties may be selected."
            ]
        elif any(d not in valid_difficulties for d in difficulties):
            field_errors["difficulties"] = [
                "Difficulties must be easy, medium or hard."
            ]

        if field_errors:
            raise_validation_error(ErrorMessages.INVALID_INPUT, field_errors)

    async def execute(
        self,
        *,
        user_id: str,
        mode: str,
        count: int,
        tag_slugs: Sequence[str] = (),
        difficulties: Sequence[str] = (),
    ) -> StartPracticeSessionResponse:
        """
        Raises:
            PracticeError: VALIDATION_ERROR for malformed input; NOT_FOUND when
                no published question matches the filters (no session is
                created).
        """
        mode_value = mode.value if isinstance(mode, PracticeMode) else mode
        difficulty_values = [
            d.value if isinstance(d, QuestionDifficulty) else d for d in difficulties
        ]
        self._validate(mode_value, count, tag_slugs, difficulty_values)

        practice_mode = PracticeMode(mode_value)
        difficulty_filters = [QuestionDifficulty(d) for d in difficulty_values]

        candidate_ids = await self.questions.list_published_candidate_ids(
            tag_slugs=list(tag_slugs), difficulties=difficulty_filters
        )
        if not candidate_ids:
            raise_not_found(ErrorMessages.NO_QUESTIONS_MATCH_FILTERS)

        started_at = self.now()
        seed = create_seed(user_id, to_epoch_ms(started_at))
        question_ids = shuffle_with_seed(candidate_ids, seed)[:count]

        session = await self.sessions.create(
            user_id=user_id,
            mode=practice_mode,
            question_ids=question_ids,
            tag_filters=list(tag_slugs),
            difficulty_filters=difficulty_filters,
            started_at=started_at,
        )

        logger.info(
            f"Started practice session with {len(question_ids)} of "
            f"{len(candidate_ids)} candidate questions",
            extra={"user_id": user_id, "session_id": session.id},
        )
        return StartPracticeSessionResponse(session_id=session.id)
