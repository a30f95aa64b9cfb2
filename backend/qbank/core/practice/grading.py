"""
Answer grading.
"""
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from qbank.core.error_responses import (
    ErrorMessages,
    raise_internal_error,
    raise_not_found,
)


class GradableChoice(Protocol):
    """Choice attributes needed for grading and display."""

    @property
    def id(self) -> str:
        ...

    @property
    def label(self) -> str:
        ...

    @property
    def text_md(self) -> str:
        ...

    @property
    def is_correct(self) -> bool:
        ...

    @property
    def explanation_md(self) -> Optional[str]:
        ...

    @property
    def sort_order(self) -> int:
        ...


class GradableQuestion(Protocol):
    """Question attributes needed for grading and display."""

    @property
    def id(self) -> str:
        ...

    @property
    def choices(self) -> Sequence[GradableChoice]:
        ...


@dataclass(frozen=True)
class GradeResult:
    """Outcome of grading a single answer."""

    is_correct: bool
    correct_choice_id: str
    correct_label: str


def find_choice(
    question: GradableQuestion, choice_id: str
) -> Optional[GradableChoice]:
    """Return the question's choice with ``choice_id``, if any."""
    for choice in question.choices:
        if choice.id == choice_id:
            return choice
    return None


def grade_answer(question: GradableQuestion, selected_choice_id: str) -> GradeResult:
    """
    Grade a selected choice against the question's single correct choice.

    Raises:
        PracticeError: NOT_FOUND if the choice does not belong to the question;
            INTERNAL_ERROR if the question does not have exactly one correct
            choice (content invariant violation).
    """
    if find_choice(question, selected_choice_id) is None:
        raise_not_found(ErrorMessages.CHOICE_NOT_FOUND)

    correct_choices = [c for c in question.choices if c.is_correct]
    if len(correct_choices) != 1:
        raise_internal_error(
            ErrorMessages.question_invalid(question.id, len(correct_choices))
        )

    correct = correct_choices[0]
    return GradeResult(
        is_correct=selected_choice_id == correct.id,
        correct_choice_id=correct.id,
        correct_label=correct.label,
    )
