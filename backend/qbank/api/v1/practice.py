"""
Practice session endpoints.

Mutating endpoints accept an optional ``Idempotency-Key`` header; a retried
request with the same key replays the first outcome instead of running again.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query

from qbank.api.v1.deps import (
    get_current_user_id,
    get_end_practice_session,
    get_idempotency_coordinator,
    get_idempotency_key,
    get_incomplete_practice_session,
    get_missed_questions,
    get_next_question,
    get_practice_session_review,
    get_session_history,
    get_set_question_mark,
    get_start_practice_session,
    get_submit_answer,
)
from qbank.core.config import settings
from qbank.core.error_responses import ErrorMessages, raise_validation_error
from qbank.core.practice.question_selection import FilterTarget, SessionTarget
from qbank.core.practice.session_state import QuestionDifficulty
from qbank.schemas.practice import (
    EndPracticeSessionResponse,
    IncompletePracticeSessionResponse,
    MissedQuestionsResponse,
    NextQuestionResponse,
    PracticeSessionReviewResponse,
    SessionHistoryResponse,
    SetQuestionMarkRequest,
    SetQuestionMarkResponse,
    StartPracticeSessionRequest,
    StartPracticeSessionResponse,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
)
from qbank.services.idempotency import IdempotencyCoordinator, run_idempotent
from qbank.services.practice import (
    EndPracticeSession,
    GetIncompletePracticeSession,
    GetMissedQuestions,
    GetNextQuestion,
    GetPracticeSessionReview,
    GetSessionHistory,
    SetPracticeSessionQuestionMark,
    StartPracticeSession,
    SubmitAnswer,
)

router = APIRouter()

START_SESSION_ACTION = "start_practice_session"
SUBMIT_ANSWER_ACTION = "submit_answer"
END_SESSION_ACTION = "end_practice_session"


@router.post("/sessions", response_model=StartPracticeSessionResponse)
async def start_practice_session(
    body: StartPracticeSessionRequest,
    user_id: str = Depends(get_current_user_id),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
    coordinator: IdempotencyCoordinator = Depends(get_idempotency_coordinator),
    use_case: StartPracticeSession = Depends(get_start_practice_session),
):
    """
    Freeze a new practice session from the published questions matching the
    filters. Returns 404 when nothing matches; no session is created then.
    """

    async def execute() -> StartPracticeSessionResponse:
        return await use_case.execute(
            user_id=user_id,
            mode=body.mode.value,
            count=body.count,
            tag_slugs=body.tag_slugs,
            difficulties=[d.value for d in body.difficulties],
        )

    return await run_idempotent(
        coordinator,
        user_id=user_id,
        action=START_SESSION_ACTION,
        key=idempotency_key,
        result_type=StartPracticeSessionResponse,
        execute=execute,
    )


@router.get(
    "/sessions/incomplete",
    response_model=Optional[IncompletePracticeSessionResponse],
)
async def get_incomplete_practice_session(
    user_id: str = Depends(get_current_user_id),
    use_case: GetIncompletePracticeSession = Depends(get_incomplete_practice_session),
):
    """The most recently started session that has not ended, or null."""
    return await use_case.execute(user_id=user_id)


@router.get("/sessions/history", response_model=SessionHistoryResponse)
async def get_session_history(
    limit: int = Query(
        default=50,
        ge=1,
        le=settings.MAX_PAGINATION_LIMIT,
        description="Maximum number of sessions to return",
    ),
    offset: int = Query(default=0, ge=0, description="Number of sessions to skip"),
    user_id: str = Depends(get_current_user_id),
    use_case: GetSessionHistory = Depends(get_session_history),
):
    """Ended sessions, most recently ended first."""
    return await use_case.execute(user_id=user_id, limit=limit, offset=offset)


@router.get(
    "/sessions/{session_id}/review",
    response_model=PracticeSessionReviewResponse,
)
async def get_practice_session_review(
    session_id: str = Path(..., description="Practice session ID"),
    user_id: str = Depends(get_current_user_id),
    use_case: GetPracticeSessionReview = Depends(get_practice_session_review),
):
    return await use_case.execute(user_id=user_id, session_id=session_id)


@router.post(
    "/sessions/{session_id}/end",
    response_model=EndPracticeSessionResponse,
)
async def end_practice_session(
    session_id: str = Path(..., description="Practice session ID"),
    user_id: str = Depends(get_current_user_id),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
    coordinator: IdempotencyCoordinator = Depends(get_idempotency_coordinator),
    use_case: EndPracticeSession = Depends(get_end_practice_session),
):
    """End an active session and return its final totals."""

    async def execute() -> EndPracticeSessionResponse:
        return await use_case.execute(user_id=user_id, session_id=session_id)

    return await run_idempotent(
        coordinator,
        user_id=user_id,
        action=END_SESSION_ACTION,
        key=idempotency_key,
        result_type=EndPracticeSessionResponse,
        execute=execute,
    )


@router.put(
    "/sessions/{session_id}/questions/{question_id}/mark",
    response_model=SetQuestionMarkResponse,
)
async def set_question_mark(
    body: SetQuestionMarkRequest,
    session_id: str = Path(..., description="Practice session ID"),
    question_id: str = Path(..., description="Question ID within the session"),
    user_id: str = Depends(get_current_user_id),
    use_case: SetPracticeSessionQuestionMark = Depends(get_set_question_mark),
):
    """Set or clear the mark-for-review flag. Exam sessions only."""
    return await use_case.execute(
        user_id=user_id,
        session_id=session_id,
        question_id=question_id,
        marked_for_review=body.marked_for_review,
    )


@router.get("/next", response_model=Optional[NextQuestionResponse])
async def get_next_question(
    session_id: Optional[str] = Query(
        default=None, description="Serve from this practice session"
    ),
    question_id: Optional[str] = Query(
        default=None,
        description="Specific session question to serve (requires session_id)",
    ),
    tag_slugs: Optional[List[str]] = Query(
        default=None, description="Ad-hoc practice: any-match tag filter"
    ),
    difficulties: Optional[List[QuestionDifficulty]] = Query(
        default=None, description="Ad-hoc practice: difficulty filter"
    ),
    user_id: str = Depends(get_current_user_id),
    use_case: GetNextQuestion = Depends(get_next_question),
):
    """
    Next question for a session, or ad hoc from filters when no session is
    given. Returns null when nothing is left to serve.
    """
    if session_id is not None:
        if tag_slugs or difficulties:
            raise_validation_error(
                ErrorMessages.INVALID_INPUT,
                {"session_id": ["Filters cannot be combined with a session."]},
            )
        target = SessionTarget(session_id=session_id, question_id=question_id)
    else:
        if question_id is not None:
            raise_validation_error(
                ErrorMessages.INVALID_INPUT,
                {"question_id": ["question_id requires session_id."]},
            )
        target = FilterTarget(
            tag_slugs=tuple(tag_slugs or ()),
            difficulties=tuple(d.value for d in difficulties or ()),
        )

    return await use_case.execute(user_id=user_id, target=target)


@router.post("/answers", response_model=SubmitAnswerResponse)
async def submit_answer(
    body: SubmitAnswerRequest,
    user_id: str = Depends(get_current_user_id),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
    coordinator: IdempotencyCoordinator = Depends(get_idempotency_coordinator),
    use_case: SubmitAnswer = Depends(get_submit_answer),
):
    """
    Grade a submitted choice and record the attempt.

    In exam sessions explanations are withheld; correctness is still returned.
    """

    async def execute() -> SubmitAnswerResponse:
        return await use_case.execute(
            user_id=user_id,
            question_id=body.question_id,
            choice_id=body.choice_id,
            session_id=body.session_id,
            time_spent_seconds=body.time_spent_seconds,
        )

    return await run_idempotent(
        coordinator,
        user_id=user_id,
        action=SUBMIT_ANSWER_ACTION,
        key=idempotency_key,
        result_type=SubmitAnswerResponse,
        execute=execute,
    )


@router.get("/missed", response_model=MissedQuestionsResponse)
async def get_missed_questions(
    limit: int = Query(
        default=50,
        ge=1,
        le=settings.MAX_PAGINATION_LIMIT,
        description="Maximum number of questions to return",
    ),
    offset: int = Query(default=0, ge=0, description="Number of questions to skip"),
    user_id: str = Depends(get_current_user_id),
    use_case: GetMissedQuestions = Depends(get_missed_questions),
):
    """Questions whose latest attempt was incorrect, newest miss first."""
    return await use_case.execute(user_id=user_id, limit=limit, offset=offset)
