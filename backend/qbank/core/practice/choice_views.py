"""
Per-user choice display order.

A question's choices are sorted into a canonical order, shuffled with the
(user, question) seed, then relabelled A..E by display position. The stored
label is never shown; clients see display labels only.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence

from qbank.core.error_responses import ErrorMessages, raise_internal_error
from qbank.core.practice.grading import GradableChoice, GradableQuestion
from qbank.core.practice.shuffle import create_question_seed, shuffle_with_seed

CHOICE_LABELS = ("A", "B", "C", "D", "E")


@dataclass(frozen=True)
class ShuffledChoiceView:
    choice_id: str
    display_label: str
    text_md: str
    is_correct: bool
    explanation_md: Optional[str]
    # 1-based display position
    sort_order: int


def stable_choice_order(choices: Sequence[GradableChoice]) -> List[GradableChoice]:
    """Canonical pre-shuffle order: sort order, then id."""
    return sorted(choices, key=lambda c: (c.sort_order, c.id))


def build_shuffled_choice_views(
    question: GradableQuestion, user_id: str
) -> List[ShuffledChoiceView]:
    """
    Choices in the user's stable display order with display labels.

    Raises:
        PracticeError: INTERNAL_ERROR if the question has more choices than
            display labels.
    """
    if len(question.choices) > len(CHOICE_LABELS):
        raise_internal_error(ErrorMessages.too_many_choices(question.id))

    seed = create_question_seed(user_id, question.id)
    shuffled = shuffle_with_seed(stable_choice_order(question.choices), seed)

    return [
        ShuffledChoiceView(
            choice_id=choice.id,
            display_label=CHOICE_LABELS[index],
            text_md=choice.text_md,
            is_correct=choice.is_correct,
            explanation_md=choice.explanation_md,
            sort_order=index + 1,
        )
        for index, choice in enumerate(shuffled)
    ]
