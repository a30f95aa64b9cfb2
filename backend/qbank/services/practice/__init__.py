"""
Practice session use cases.

Each use case receives its storage ports and limits through the constructor
and exposes a single ``execute`` coroutine.
"""
from .bookmarks import GetBookmarks, ToggleBookmark
from .end_session import EndPracticeSession
from .history import GetSessionHistory
from .incomplete_session import GetIncompletePracticeSession
from .mark_for_review import SetPracticeSessionQuestionMark
from .missed_questions import GetMissedQuestions
from .next_question import GetNextQuestion
from .review import GetPracticeSessionReview
from .start_session import StartPracticeSession
from .submit_answer import SubmitAnswer

__all__ = [
    "EndPracticeSession",
    "GetBookmarks",
    "GetIncompletePracticeSession",
    "GetMissedQuestions",
    "GetNextQuestion",
    "GetPracticeSessionReview",
    "GetSessionHistory",
    "SetPracticeSessionQuestionMark",
    "StartPracticeSession",
    "SubmitAnswer",
    "ToggleBookmark",
]
