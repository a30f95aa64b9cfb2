"""
Tests for ad-hoc next-question selection.
"""
from datetime import datetime, timedelta, timezone

from qbank.core.practice.question_selection import select_next_question_id

NOW = datetime(2026, 5, 1, tzinfo=timezone.utc)


class TestSelectNextQuestionId:
    """Tests for select_next_question_id."""

    def test_no_candidates(self):
        assert select_next_question_id([], {}) is None

    def test_first_never_attempted_wins(self):
        history = {"q1": NOW}

        assert select_next_question_id(["q1", "q2", "q3"], history) == "q2"

    def test_candidate_order_breaks_unattempted_ties(self):
        assert select_next_question_id(["q3", "q1"], {}) == "q3"

    def test_oldest_attempt_when_all_attempted(self):
        history = {
            "q1": NOW,
            "q2": NOW - timedelta(days=2),
            "q3": NOW - timedelta(days=1),
        }

        assert select_next_question_id(["q1", "q2", "q3"], history) == "q2"

    def test_equal_timestamps_keep_earlier_candidate(self):
        history = {"q1": NOW, "q2": NOW}

        assert select_next_question_id(["q1", "q2"], history) == "q1"

    def test_naive_timestamps_compare_as_utc(self):
        history = {
            "q1": NOW,
            "q2": datetime(2026, 4, 1),
        }

        assert select_next_question_id(["q1", "q2"], history) == "q2"
