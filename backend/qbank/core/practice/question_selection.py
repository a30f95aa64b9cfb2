"""
Next-question selection for ad-hoc (filter-bound) practice.

Priority:
1. A candidate the user has never attempted wins; among several, the first in
   candidate order.
2. Otherwise the candidate whose most recent attempt is the oldest wins
   ("longest untouched"); ties keep the earlier candidate.

Candidate order is the repository's deterministic order (newest created
first, then id), so selection is reproducible for a given history.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Optional, Sequence, Tuple, Union

from qbank.core.datetime_utils import ensure_timezone_aware
from qbank.core.practice.session_state import QuestionDifficulty


@dataclass(frozen=True)
class SessionTarget:
    """Serve the next question of an existing session.

    When ``question_id`` is given, that question is served instead of the
    first unanswered one; it must belong to the session.
    """

    session_id: str
    question_id: Optional[str] = None


@dataclass(frozen=True)
class FilterTarget:
    """Serve an ad-hoc question matching tag and difficulty filters.

    Empty filters mean "no restriction".
    """

    tag_slugs: Tuple[str, ...] = field(default_factory=tuple)
    difficulties: Tuple[QuestionDifficulty, ...] = field(default_factory=tuple)


NextQuestionTarget = Union[SessionTarget, FilterTarget]


def select_next_question_id(
    candidate_ids: Sequence[str],
    most_recent_answered_at: Mapping[str, datetime],
) -> Optional[str]:
    """
    Pick the next question id from ordered candidates.

    Args:
        candidate_ids: Published candidate ids in deterministic order
        most_recent_answered_at: Latest attempt time per question id for the
            user; ids missing from the mapping were never attempted

    Returns:
        The selected id, or None when there are no candidates
    """
    for question_id in candidate_ids:
        if question_id not in most_recent_answered_at:
            return question_id

    oldest_id: Optional[str] = None
    oldest_at: Optional[datetime] = None
    for question_id in candidate_ids:
        answered_at = ensure_timezone_aware(most_recent_answered_at[question_id])
        if oldest_at is None or answered_at < oldest_at:
            oldest_id = question_id
            oldest_at = answered_at

    return oldest_id
