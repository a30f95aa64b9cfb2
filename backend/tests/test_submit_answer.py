"""
Tests for grading and recording submitted answers.
"""
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from qbank.core.error_responses import ErrorCode, ErrorMessages, PracticeError
from qbank.models import Attempt
from qbank.repositories import (
    SqlAlchemyAttemptRepository,
    SqlAlchemyPracticeSessionStore,
    SqlAlchemyQuestionRepository,
)
from qbank.services.practice import (
    EndPracticeSession,
    StartPracticeSession,
    SubmitAnswer,
)
from qbank.services.practice.submit_answer import clamp_time_spent
from tests.conftest import (
    OTHER_USER_ID,
    TEST_USER_ID,
    correct_choice,
    create_question,
    wrong_choice,
)

STARTED = datetime(2026, 4, 1, 8, 0, tzinfo=timezone.utc)


def submit_use_case(db, sessions=None, attempts=None):
    return SubmitAnswer(
        SqlAlchemyQuestionRepository(db),
        attempts or SqlAlchemyAttemptRepository(db),
        sessions or SqlAlchemyPracticeSessionStore(db),
        max_time_spent_seconds=86_400,
    )


async def start_session(db, mode):
    response = await StartPracticeSession(
        SqlAlchemyQuestionRepository(db),
        SqlAlchemyPracticeSessionStore(db),
        max_questions=200,
        max_tag_filters=50,
        max_difficulty_filters=3,
        now=lambda: STARTED,
    ).execute(user_id=TEST_USER_ID, mode=mode, count=10)
    return await SqlAlchemyPracticeSessionStore(db).find_by_id_and_user_id(
        response.session_id, TEST_USER_ID
    )


async def attempt_rows(db):
    result = await db.execute(select(Attempt))
    return result.scalars().all()


async def attempt_count(db):
    result = await db.execute(select(func.count()).select_from(Attempt))
    return result.scalar_one()


class FailingSessionStore(SqlAlchemyPracticeSessionStore):
    """Session store whose state writes always fail."""

    async def record_question_answer(self, **kwargs):
        raise PracticeError(ErrorCode.INTERNAL_ERROR, ErrorMessages.SESSION_STATE_CONTENTION)


class UndeletableAttemptRepository(SqlAlchemyAttemptRepository):
    async def delete_by_id(self, attempt_id, user_id):
        return False


class BrokenDeleteAttemptRepository(SqlAlchemyAttemptRepository):
    async def delete_by_id(self, attempt_id, user_id):
        raise RuntimeError("database went away")


class TestClampTimeSpent:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, 0),
            (-5, 0),
            (12.9, 12),
            (float("nan"), 0),
            (float("inf"), 0),
            (10**9, 86_400),
            (True, 0),
        ],
    )
    def test_clamp(self, value, expected):
        assert clamp_time_spent(value, 86_400) == expected


class TestSubmitAnswerAdHoc:
    """Tests for answers submitted outside a session."""

    async def test_correct_answer_with_explanations(self, async_db_session, published_questions):
        question = published_questions[0]

        response = await submit_use_case(async_db_session).execute(
            user_id=TEST_USER_ID,
            question_id=question.id,
            choice_id=correct_choice(question).id,
            time_spent_seconds=30,
        )

        assert response.is_correct is True
        assert response.correct_choice_id == correct_choice(question).id
        assert response.explanation_md == question.explanation_md
        assert len(response.choice_explanations) == 4
        assert [c.display_label for c in response.choice_explanations] == ["A", "B", "C", "D"]

        rows = await attempt_rows(async_db_session)
        assert len(rows) == 1
        assert rows[0].id == response.attempt_id
        assert rows[0].practice_session_id is None
        assert rows[0].time_spent_seconds == 30

    async def test_incorrect_answer(self, async_db_session, published_questions):
        question = published_questions[1]

        response = await submit_use_case(async_db_session).execute(
            user_id=TEST_USER_ID,
            question_id=question.id,
            choice_id=wrong_choice(question).id,
        )

        assert response.is_correct is False
        assert response.correct_choice_id == correct_choice(question).id

    async def test_time_spent_clamped(self, async_db_session, published_questions):
        question = published_questions[0]

        await submit_use_case(async_db_session).execute(
            user_id=TEST_USER_ID,
            question_id=question.id,
            choice_id=correct_choice(question).id,
            time_spent_seconds=1_000_000,
        )

        rows = await attempt_rows(async_db_session)
        assert rows[0].time_spent_seconds == 86_400

    async def test_unknown_question(self, async_db_session, published_questions):
        with pytest.raises(PracticeError) as exc_info:
            await submit_use_case(async_db_session).execute(
                user_id=TEST_USER_ID, question_id="missing", choice_id="missing"
            )

        assert exc_info.value.message == ErrorMessages.QUESTION_NOT_FOUND
        assert await attempt_count(async_db_session) == 0

    async def test_choice_from_other_question(self, async_db_session, published_questions):
        with pytest.raises(PracticeError) as exc_info:
            await submit_use_case(async_db_session).execute(
                user_id=TEST_USER_ID,
                question_id=published_questions[0].id,
                choice_id=correct_choice(published_questions[1]).id,
            )

        assert exc_info.value.message == ErrorMessages.CHOICE_NOT_FOUND
        assert await attempt_count(async_db_session) == 0

    async def test_invalid_content_is_internal_error(self, async_db_session):
        broken = await create_question(async_db_session, "broken", correct_index=-1)

        with pytest.raises(PracticeError) as exc_info:
            await submit_use_case(async_db_session).execute(
                user_id=TEST_USER_ID,
                question_id=broken.id,
                choice_id=broken.choices[0].id,
            )

        assert exc_info.value.code == ErrorCode.INTERNAL_ERROR
        assert await attempt_count(async_db_session) == 0


class TestSubmitAnswerInSession:
    """Tests for answers submitted inside a session."""

    async def test_tutor_session_records_state(self, async_db_session, published_questions):
        session = await start_session(async_db_session, "tutor")
        question = next(q for q in published_questions if q.id == session.question_ids[0])

        response = await submit_use_case(async_db_session).execute(
            user_id=TEST_USER_ID,
            question_id=question.id,
            choice_id=wrong_choice(question).id,
            session_id=session.id,
        )

        assert response.explanation_md == question.explanation_md
        assert response.choice_explanations

        stored = await SqlAlchemyPracticeSessionStore(async_db_session).find_by_id_and_user_id(
            session.id, TEST_USER_ID
        )
        state = stored.state_for(question.id)
        assert state.latest_selected_choice_id == wrong_choice(question).id
        assert state.latest_is_correct is False
        assert state.latest_answered_at is not None

        rows = await attempt_rows(async_db_session)
        assert rows[0].practice_session_id == session.id

    async def test_exam_session_withholds_explanations(
        self, async_db_session, published_questions
    ):
        session = await start_session(async_db_session, "exam")
        question = next(q for q in published_questions if q.id == session.question_ids[0])

        response = await submit_use_case(async_db_session).execute(
            user_id=TEST_USER_ID,
            question_id=question.id,
            choice_id=correct_choice(question).id,
            session_id=session.id,
        )

        assert response.is_correct is True
        assert response.correct_choice_id == correct_choice(question).id
        assert response.explanation_md is None
        assert response.choice_explanations == []

    async def test_resubmission_overwrites_state_and_appends_attempt(
        self, async_db_session, published_questions
    ):
        session = await start_session(async_db_session, "tutor")
        question = next(q for q in published_questions if q.id == session.question_ids[0])
        use_case = submit_use_case(async_db_session)

        for choice in (wrong_choice(question), correct_choice(question)):
            await use_case.execute(
                user_id=TEST_USER_ID,
                question_id=question.id,
                choice_id=choice.id,
                session_id=session.id,
            )

        stored = await SqlAlchemyPracticeSessionStore(async_db_session).find_by_id_and_user_id(
            session.id, TEST_USER_ID
        )
        assert stored.state_for(question.id).latest_is_correct is True
        assert await attempt_count(async_db_session) == 2

    async def test_ended_session_conflicts(self, async_db_session, published_questions):
        session = await start_session(async_db_session, "exam")
        await EndPracticeSession(SqlAlchemyPracticeSessionStore(async_db_session)).execute(
            user_id=TEST_USER_ID, session_id=session.id
        )
        question = next(q for q in published_questions if q.id == session.question_ids[0])

        with pytest.raises(PracticeError) as exc_info:
            await submit_use_case(async_db_session).execute(
                user_id=TEST_USER_ID,
                question_id=question.id,
                choice_id=correct_choice(question).id,
                session_id=session.id,
            )

        assert exc_info.value.code == ErrorCode.CONFLICT
        assert await attempt_count(async_db_session) == 0

    async def test_question_outside_session(self, async_db_session, published_questions):
        session = await start_session(async_db_session, "tutor")
        outsider = await create_question(async_db_session, "outsider")

        with pytest.raises(PracticeError) as exc_info:
            await submit_use_case(async_db_session).execute(
                user_id=TEST_USER_ID,
                question_id=outsider.id,
                choice_id=correct_choice(outsider).id,
                session_id=session.id,
            )

        assert exc_info.value.message == ErrorMessages.QUESTION_NOT_IN_SESSION
        assert await attempt_count(async_db_session) == 0

    async def test_other_users_session(self, async_db_session, published_questions):
        session = await start_session(async_db_session, "tutor")
        question = published_questions[0]

        with pytest.raises(PracticeError) as exc_info:
            await submit_use_case(async_db_session).execute(
                user_id=OTHER_USER_ID,
                question_id=question.id,
                choice_id=correct_choice(question).id,
                session_id=session.id,
            )

        assert exc_info.value.message == ErrorMessages.PRACTICE_SESSION_NOT_FOUND


class TestSubmitAnswerRollback:
    """Tests for the compensating attempt delete."""

    async def test_state_failure_removes_attempt(self, async_db_session, published_questions):
        session = await start_session(async_db_session, "tutor")
        question = next(q for q in published_questions if q.id == session.question_ids[0])
        use_case = submit_use_case(
            async_db_session, sessions=FailingSessionStore(async_db_session)
        )

        with pytest.raises(PracticeError) as exc_info:
            await use_case.execute(
                user_id=TEST_USER_ID,
                question_id=question.id,
                choice_id=correct_choice(question).id,
                session_id=session.id,
            )

        assert exc_info.value.message == ErrorMessages.SESSION_STATE_CONTENTION
        assert await attempt_count(async_db_session) == 0

    async def test_missing_attempt_on_rollback_is_internal_error(
        self, async_db_session, published_questions
    ):
        session = await start_session(async_db_session, "tutor")
        question = next(q for q in published_questions if q.id == session.question_ids[0])
        use_case = submit_use_case(
            async_db_session,
            sessions=FailingSessionStore(async_db_session),
            attempts=UndeletableAttemptRepository(async_db_session),
        )

        with pytest.raises(PracticeError) as exc_info:
            await use_case.execute(
                user_id=TEST_USER_ID,
                question_id=question.id,
                choice_id=correct_choice(question).id,
                session_id=session.id,
            )

        assert exc_info.value.code == ErrorCode.INTERNAL_ERROR
        assert exc_info.value.message == ErrorMessages.ATTEMPT_ROLLBACK_FAILED

    async def test_failing_rollback_is_internal_error(self, async_db_session, published_questions):
        session = await start_session(async_db_session, "tutor")
        question = next(q for q in published_questions if q.id == session.question_ids[0])
        use_case = submit_use_case(
            async_db_session,
            sessions=FailingSessionStore(async_db_session),
            attempts=BrokenDeleteAttemptRepository(async_db_session),
        )

        with pytest.raises(PracticeError) as exc_info:
            await use_case.execute(
                user_id=TEST_USER_ID,
                question_id=question.id,
                choice_id=correct_choice(question).id,
                session_id=session.id,
            )

        assert exc_info.value.message == ErrorMessages.ATTEMPT_ROLLBACK_FAILED
        assert isinstance(exc_info.value.__cause__, RuntimeError)
