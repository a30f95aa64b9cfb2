"""
Practice engine domain logic: seeded shuffling, grading, question selection
and session rules. Nothing in this package touches storage.
"""
from .choice_views import (
    CHOICE_LABELS,
    ShuffledChoiceView,
    build_shuffled_choice_views,
    stable_choice_order,
)
from .grading import GradeResult, grade_answer
from .question_selection import (
    FilterTarget,
    NextQuestionTarget,
    SessionTarget,
    select_next_question_id,
)
from .session_rules import (
    SessionTotals,
    compute_accuracy,
    compute_session_totals,
    next_unanswered_question_id,
    should_show_explanation,
)
from .session_state import (
    PracticeMode,
    PracticeSessionSnapshot,
    QuestionDifficulty,
    QuestionState,
    fresh_question_states,
)
from .shuffle import create_question_seed, create_seed, shuffle_with_seed

__all__ = [
    "CHOICE_LABELS",
    "FilterTarget",
    "GradeResult",
    "NextQuestionTarget",
    "PracticeMode",
    "PracticeSessionSnapshot",
    "QuestionDifficulty",
    "QuestionState",
    "SessionTarget",
    "SessionTotals",
    "ShuffledChoiceView",
    "build_shuffled_choice_views",
    "compute_accuracy",
    "compute_session_totals",
    "create_question_seed",
    "create_seed",
    "fresh_question_states",
    "grade_answer",
    "next_unanswered_question_id",
    "select_next_question_id",
    "should_show_explanation",
    "shuffle_with_seed",
    "stable_choice_order",
]
