"""
Pydantic schemas for practice endpoints.

Use case results are these models too: idempotent actions store them as JSON
(``model_dump(mode="json")``) and replay them with ``model_validate``.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from qbank.core.practice.session_state import PracticeMode, QuestionDifficulty


# =============================================================================
# Requests
# =============================================================================


class StartPracticeSessionRequest(BaseModel):
    """Schema for starting a practice session."""

    mode: PracticeMode = Field(..., description="Practice mode (tutor or exam)")
    count: int = Field(..., description="Requested number of questions")
    tag_slugs: List[str] = Field(
        default_factory=list, description="Tag filter; any tag matches"
    )
    difficulties: List[QuestionDifficulty] = Field(
        default_factory=list, description="Difficulty filter; any difficulty matches"
    )


class SubmitAnswerRequest(BaseModel):
    """Schema for submitting an answer."""

    question_id: str = Field(..., min_length=1, description="Answered question ID")
    choice_id: str = Field(..., min_length=1, description="Selected choice ID")
    session_id: Optional[str] = Field(
        None, description="Practice session ID (omit for ad-hoc practice)"
    )
    time_spent_seconds: Optional[float] = Field(
        None, description="Client-measured time on question; clamped server-side"
    )


class SetQuestionMarkRequest(BaseModel):
    """Schema for marking a question for review."""

    marked_for_review: bool = Field(..., description="New mark-for-review flag")


# =============================================================================
# Results
# =============================================================================


class StartPracticeSessionResponse(BaseModel):
    session_id: str = Field(..., description="Created practice session ID")


class PublicChoiceResponse(BaseModel):
    """Choice as displayed to the user. Correctness is never included."""

    id: str
    label: str = Field(..., description="Display label (A-E) in the user's order")
    text_md: str
    sort_order: int = Field(..., description="1-based display position")


class SessionProgressResponse(BaseModel):
    session_id: str
    mode: PracticeMode
    index: int = Field(..., description="0-based position of the question in the session")
    total: int


class NextQuestionResponse(BaseModel):
    question_id: str
    slug: str
    stem_md: str
    difficulty: QuestionDifficulty
    choices: List[PublicChoiceResponse]
    session: Optional[SessionProgressResponse] = Field(
        None, description="Session progress; null for ad-hoc practice"
    )


class ChoiceExplanationResponse(BaseModel):
    choice_id: str
    display_label: str
    text_md: str
    is_correct: bool
    explanation_md: Optional[str] = None


class SubmitAnswerResponse(BaseModel):
    """Schema for a graded answer.

    In exam sessions ``explanation_md`` is null and ``choice_explanations`` is
    empty; explanations are surfaced by the session review instead.
    """

    attempt_id: str
    is_correct: bool
    correct_choice_id: str
    explanation_md: Optional[str] = None
    choice_explanations: List[ChoiceExplanationResponse] = Field(default_factory=list)


class SetQuestionMarkResponse(BaseModel):
    question_id: str
    marked_for_review: bool


class SessionTotalsResponse(BaseModel):
    answered: int
    correct: int
    accuracy: float = Field(..., description="correct / answered, 0 when nothing answered")
    duration_seconds: int


class EndPracticeSessionResponse(BaseModel):
    session_id: str
    ended_at: datetime
    totals: SessionTotalsResponse


class PracticeSessionReviewRow(BaseModel):
    """One question of a session review.

    ``stem_md`` and ``difficulty`` are null when the question is no longer
    available (``is_available`` false).
    """

    is_available: bool
    question_id: str
    order: int = Field(..., description="1-based position in the session")
    is_answered: bool
    is_correct: Optional[bool] = None
    marked_for_review: bool
    stem_md: Optional[str] = None
    difficulty: Optional[QuestionDifficulty] = None


class PracticeSessionReviewResponse(BaseModel):
    session_id: str
    mode: PracticeMode
    total_count: int
    answered_count: int
    marked_count: int
    rows: List[PracticeSessionReviewRow]


class IncompletePracticeSessionResponse(BaseModel):
    session_id: str
    mode: PracticeMode
    answered_count: int
    total_count: int
    started_at: datetime


class SessionHistoryRow(BaseModel):
    session_id: str
    mode: PracticeMode
    question_count: int
    answered: int
    correct: int
    accuracy: float
    duration_seconds: int
    started_at: datetime
    ended_at: datetime


class SessionHistoryResponse(BaseModel):
    rows: List[SessionHistoryRow]
    total: int
    limit: int
    offset: int


class MissedQuestionRow(BaseModel):
    is_available: bool
    question_id: str
    last_answered_at: datetime
    slug: Optional[str] = None
    stem_md: Optional[str] = None
    difficulty: Optional[QuestionDifficulty] = None


class MissedQuestionsResponse(BaseModel):
    rows: List[MissedQuestionRow]
    limit: int
    offset: int
    total_count: int


class ToggleBookmarkResponse(BaseModel):
    question_id: str
    bookmarked: bool = Field(..., description="Whether the question is bookmarked now")


class BookmarkRow(BaseModel):
    """
    One bookmark. Questions that are no longer published keep their row with
    ``is_available = False`` and no content fields.
    """

    is_available: bool
    question_id: str
    bookmarked_at: datetime
    slug: Optional[str] = None
    stem_md: Optional[str] = None
    difficulty: Optional[QuestionDifficulty] = None


class BookmarksResponse(BaseModel):
    rows: List[BookmarkRow]


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""

    code: str
    message: str
    field_errors: Optional[Dict[str, List[str]]] = None
    error_id: Optional[str] = None
