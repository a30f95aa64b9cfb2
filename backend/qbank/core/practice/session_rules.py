"""
Pure session rules: explanation visibility, progress and scoring.

Scoring reads only the session's persisted question states, never the attempt
log, so a session summary cannot disagree with what the session says was
answered.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from qbank.core.datetime_utils import elapsed_whole_seconds
from qbank.core.practice.session_state import (
    PracticeMode,
    PracticeSessionSnapshot,
    QuestionState,
)


def should_show_explanation(mode: Optional[PracticeMode]) -> bool:
    """
    Whether a submit response may include explanations.

    Ad-hoc answers (no session) and tutor sessions always show them. Exam
    sessions never do at submit time, whether active or ended; explanations
    for exams are surfaced by the review read path instead.
    """
    if mode is None:
        return True
    return mode == PracticeMode.TUTOR


def next_unanswered_question_id(session: PracticeSessionSnapshot) -> Optional[str]:
    """First question in session order with no recorded answer, or None."""
    for state in session.question_states:
        if not state.is_answered:
            return state.question_id
    return None


def question_index(session: PracticeSessionSnapshot, question_id: str) -> Optional[int]:
    """0-based position of a question in the session order."""
    try:
        return session.question_ids.index(question_id)
    except ValueError:
        return None


def compute_accuracy(answered: int, correct: int) -> float:
    """Fraction correct; 0.0 when nothing was answered."""
    if answered <= 0:
        return 0.0
    return correct / answered


@dataclass(frozen=True)
class SessionTotals:
    answered: int
    correct: int
    accuracy: float
    duration_seconds: int


def count_answered(states: Iterable[QuestionState]) -> int:
    return sum(1 for state in states if state.is_answered)


def count_marked(states: Iterable[QuestionState]) -> int:
    return sum(1 for state in states if state.marked_for_review)


def compute_session_totals(
    session: PracticeSessionSnapshot, ended_at: datetime
) -> SessionTotals:
    """
    Summarize a session from its question states.

    answered counts states with a selected choice, correct counts states whose
    latest answer was correct, and duration is whole seconds from start to
    ``ended_at``, floored and never negative.
    """
    answered_states = [s for s in session.question_states if s.is_answered]
    answered = len(answered_states)
    correct = sum(1 for s in answered_states if s.latest_is_correct is True)

    return SessionTotals(
        answered=answered,
        correct=correct,
        accuracy=compute_accuracy(answered, correct),
        duration_seconds=elapsed_whole_seconds(session.started_at, ended_at),
    )
