"""
Practice session state: the session snapshot and its embedded per-question states.

Question states are an owned collection, one entry per session question id in
session order. Every write replaces the whole collection; entries are never
edited in place (all types here are frozen).
"""
import enum
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from qbank.core.datetime_utils import ensure_timezone_aware, parse_iso_datetime
from qbank.core.error_responses import ErrorMessages, raise_not_found


class PracticeMode(str, enum.Enum):
    """Practice session mode."""

    TUTOR = "tutor"
    EXAM = "exam"


class QuestionDifficulty(str, enum.Enum):
    """Question difficulty."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


@dataclass(frozen=True)
class QuestionState:
    """Latest answer and mark state for one question of a session.

    ``latest_is_correct`` is tri-state: None means unanswered.
    """

    question_id: str
    marked_for_review: bool = False
    latest_selected_choice_id: Optional[str] = None
    latest_is_correct: Optional[bool] = None
    latest_answered_at: Optional[datetime] = None

    @property
    def is_answered(self) -> bool:
        return self.latest_selected_choice_id is not None

    def with_answer(
        self, choice_id: str, is_correct: bool, answered_at: datetime
    ) -> "QuestionState":
        """Overwrite the latest answer. The mark flag is preserved."""
        return replace(
            self,
            latest_selected_choice_id=choice_id,
            latest_is_correct=is_correct,
            latest_answered_at=answered_at,
        )

    def with_mark(self, marked: bool) -> "QuestionState":
        return replace(self, marked_for_review=marked)

    def to_json(self) -> Dict[str, Any]:
        return {
            "question_id": self.question_id,
            "marked_for_review": self.marked_for_review,
            "latest_selected_choice_id": self.latest_selected_choice_id,
            "latest_is_correct": self.latest_is_correct,
            "latest_answered_at": (
                ensure_timezone_aware(self.latest_answered_at).isoformat()
                if self.latest_answered_at is not None
                else None
            ),
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "QuestionState":
        return cls(
            question_id=str(data["question_id"]),
            marked_for_review=bool(data.get("marked_for_review", False)),
            latest_selected_choice_id=data.get("latest_selected_choice_id"),
            latest_is_correct=data.get("latest_is_correct"),
            latest_answered_at=parse_iso_datetime(data.get("latest_answered_at")),
        )


def fresh_question_states(question_ids: Iterable[str]) -> Tuple[QuestionState, ...]:
    """One unanswered, unmarked state per question id, in order."""
    return tuple(QuestionState(question_id=qid) for qid in question_ids)


def align_question_states(
    question_ids: Sequence[str], states: Iterable[QuestionState]
) -> Tuple[QuestionState, ...]:
    """
    Project stored states onto the session's question ids.

    The result has exactly one entry per question id, in session order. Ids
    with no stored state get a fresh entry; stored states for ids outside the
    session are dropped.
    """
    by_id = {state.question_id: state for state in states}
    return tuple(by_id.get(qid) or QuestionState(question_id=qid) for qid in question_ids)


def states_to_json(states: Iterable[QuestionState]) -> List[Dict[str, Any]]:
    return [state.to_json() for state in states]


def states_from_json(
    question_ids: Sequence[str], raw: Optional[Iterable[Mapping[str, Any]]]
) -> Tuple[QuestionState, ...]:
    return align_question_states(
        question_ids, (QuestionState.from_json(item) for item in raw or [])
    )


def replace_question_state(
    states: Sequence[QuestionState],
    question_id: str,
    update: Callable[[QuestionState], QuestionState],
) -> Tuple[QuestionState, ...]:
    """
    Return a new state collection with only ``question_id``'s entry updated.

    Raises:
        PracticeError: NOT_FOUND if the question is not part of the session.
    """
    index = next(
        (i for i, state in enumerate(states) if state.question_id == question_id),
        None,
    )
    if index is None:
        raise_not_found(ErrorMessages.QUESTION_NOT_IN_SESSION)

    updated = update(states[index])
    return tuple(states[:index]) + (updated,) + tuple(states[index + 1 :])


@dataclass(frozen=True)
class PracticeSessionSnapshot:
    """Read-only view of a practice session row."""

    id: str
    user_id: str
    mode: PracticeMode
    question_ids: Tuple[str, ...]
    tag_filters: Tuple[str, ...]
    difficulty_filters: Tuple[QuestionDifficulty, ...]
    question_states: Tuple[QuestionState, ...]
    version: int
    started_at: datetime
    ended_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.ended_at is None

    def state_for(self, question_id: str) -> Optional[QuestionState]:
        for state in self.question_states:
            if state.question_id == question_id:
                return state
        return None
