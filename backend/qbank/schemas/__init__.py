"""
Pydantic schemas for request/response validation.
"""
from .practice import (
    StartPracticeSessionRequest,
    SubmitAnswerRequest,
    SetQuestionMarkRequest,
    StartPracticeSessionResponse,
    PublicChoiceResponse,
    SessionProgressResponse,
    NextQuestionResponse,
    ChoiceExplanationResponse,
    SubmitAnswerResponse,
    SetQuestionMarkResponse,
    SessionTotalsResponse,
    EndPracticeSessionResponse,
    PracticeSessionReviewRow,
    PracticeSessionReviewResponse,
    IncompletePracticeSessionResponse,
    SessionHistoryRow,
    SessionHistoryResponse,
    MissedQuestionRow,
    MissedQuestionsResponse,
    ToggleBookmarkResponse,
    BookmarkRow,
    BookmarksResponse,
    ErrorResponse,
)

__all__ = [
    "StartPracticeSessionRequest",
    "SubmitAnswerRequest",
    "SetQuestionMarkRequest",
    "StartPracticeSessionResponse",
    "PublicChoiceResponse",
    "SessionProgressResponse",
    "NextQuestionResponse",
    "ChoiceExplanationResponse",
    "SubmitAnswerResponse",
    "SetQuestionMarkResponse",
    "SessionTotalsResponse",
    "EndPracticeSessionResponse",
    "PracticeSessionReviewRow",
    "PracticeSessionReviewResponse",
    "IncompletePracticeSessionResponse",
    "SessionHistoryRow",
    "SessionHistoryResponse",
    "MissedQuestionRow",
    "MissedQuestionsResponse",
    "ToggleBookmarkResponse",
    "BookmarkRow",
    "BookmarksResponse",
    "ErrorResponse",
]
