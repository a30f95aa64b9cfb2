"""
End-to-end tests for the practice endpoints.
"""
from sqlalchemy import func, select

from qbank.models import Attempt, IdempotencyKey
from tests.conftest import correct_choice, wrong_choice

PREFIX = "/v1/practice"


async def start(client, headers, **body):
    payload = {"mode": "tutor", "count": 3, **body}
    response = await client.post(f"{PREFIX}/sessions", json=payload, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["session_id"]


async def next_question(client, headers, session_id):
    response = await client.get(
        f"{PREFIX}/next", params={"session_id": session_id}, headers=headers
    )
    assert response.status_code == 200, response.text
    return response.json()


def by_id(questions):
    return {question.id: question for question in questions}


class TestStartSessionEndpoint:
    """Tests for POST /v1/practice/sessions."""

    async def test_start_and_serve(self, async_client, user_headers, published_questions):
        session_id = await start(async_client, user_headers)

        data = await next_question(async_client, user_headers, session_id)

        assert data["session"]["session_id"] == session_id
        assert data["session"]["index"] == 0
        assert data["session"]["total"] == 3
        assert data["question_id"] in by_id(published_questions)
        assert [c["label"] for c in data["choices"]] == ["A", "B", "C", "D"]
        assert all("is_correct" not in c for c in data["choices"])

    async def test_invalid_count(self, async_client, user_headers, published_questions):
        response = await async_client.post(
            f"{PREFIX}/sessions", json={"mode": "tutor", "count": 0}, headers=user_headers
        )

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert "count" in body["field_errors"]

    async def test_unknown_mode(self, async_client, user_headers, published_questions):
        response = await async_client.post(
            f"{PREFIX}/sessions", json={"mode": "sprint", "count": 1}, headers=user_headers
        )

        assert response.status_code == 422
        assert "mode" in response.json()["field_errors"]

    async def test_no_matching_questions(self, async_client, user_headers, published_questions):
        response = await async_client.post(
            f"{PREFIX}/sessions",
            json={"mode": "exam", "count": 2, "tag_slugs": ["nothing-here"]},
            headers=user_headers,
        )

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_missing_user_header(self, async_client, published_questions):
        response = await async_client.post(
            f"{PREFIX}/sessions", json={"mode": "tutor", "count": 1}
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_blank_user_header(self, async_client, published_questions):
        response = await async_client.post(
            f"{PREFIX}/sessions",
            json={"mode": "tutor", "count": 1},
            headers={"X-User-Id": "   "},
        )

        assert response.status_code == 422
        assert "X-User-Id" in response.json()["field_errors"]

    async def test_idempotent_start(self, async_client, user_headers, published_questions):
        headers = {**user_headers, "Idempotency-Key": "start-1"}
        first = await async_client.post(
            f"{PREFIX}/sessions", json={"mode": "exam", "count": 2}, headers=headers
        )
        second = await async_client.post(
            f"{PREFIX}/sessions", json={"mode": "exam", "count": 2}, headers=headers
        )

        assert first.status_code == 200
        assert second.json() == first.json()
        incomplete = await async_client.get(
            f"{PREFIX}/sessions/incomplete", headers=user_headers
        )
        assert incomplete.json()["session_id"] == first.json()["session_id"]

    async def test_oversized_idempotency_key(
        self, async_client, user_headers, published_questions
    ):
        headers = {**user_headers, "Idempotency-Key": "k" * 256}
        response = await async_client.post(
            f"{PREFIX}/sessions", json={"mode": "exam", "count": 2}, headers=headers
        )

        assert response.status_code == 422
        assert "Idempotency-Key" in response.json()["field_errors"]


class TestAnswerEndpoint:
    """Tests for POST /v1/practice/answers."""

    async def test_tutor_answer_flow(self, async_client, user_headers, published_questions):
        questions = by_id(published_questions)
        session_id = await start(async_client, user_headers, count=1)
        served = await next_question(async_client, user_headers, session_id)
        question = questions[served["question_id"]]

        response = await async_client.post(
            f"{PREFIX}/answers",
            json={
                "question_id": question.id,
                "choice_id": correct_choice(question).id,
                "session_id": session_id,
                "time_spent_seconds": 12.4,
            },
            headers=user_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["is_correct"] is True
        assert data["explanation_md"] == question.explanation_md
        assert len(data["choice_explanations"]) == 4

        done = await async_client.get(
            f"{PREFIX}/next", params={"session_id": session_id}, headers=user_headers
        )
        assert done.status_code == 200
        assert done.json() is None

    async def test_exam_answer_withholds_explanations(
        self, async_client, user_headers, published_questions
    ):
        questions = by_id(published_questions)
        session_id = await start(async_client, user_headers, mode="exam", count=1)
        served = await next_question(async_client, user_headers, session_id)
        question = questions[served["question_id"]]

        response = await async_client.post(
            f"{PREFIX}/answers",
            json={
                "question_id": question.id,
                "choice_id": wrong_choice(question).id,
                "session_id": session_id,
            },
            headers=user_headers,
        )

        data = response.json()
        assert data["is_correct"] is False
        assert data["correct_choice_id"] == correct_choice(question).id
        assert data["explanation_md"] is None
        assert data["choice_explanations"] == []

    async def test_idempotent_submit_records_once(
        self, async_client, user_headers, published_questions, session_factory
    ):
        questions = by_id(published_questions)
        session_id = await start(async_client, user_headers, count=1)
        served = await next_question(async_client, user_headers, session_id)
        question = questions[served["question_id"]]
        payload = {
            "question_id": question.id,
            "choice_id": correct_choice(question).id,
            "session_id": session_id,
        }
        headers = {**user_headers, "Idempotency-Key": "submit-1"}

        first = await async_client.post(f"{PREFIX}/answers", json=payload, headers=headers)
        second = await async_client.post(f"{PREFIX}/answers", json=payload, headers=headers)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json() == first.json()
        async with session_factory() as db:
            attempts = (
                await db.execute(select(func.count()).select_from(Attempt))
            ).scalar_one()
            keys = (
                await db.execute(select(func.count()).select_from(IdempotencyKey))
            ).scalar_one()
        assert attempts == 1
        assert keys == 1

    async def test_replayed_error(self, async_client, user_headers, published_questions):
        headers = {**user_headers, "Idempotency-Key": "submit-missing"}
        payload = {"question_id": "missing", "choice_id": "missing"}

        first = await async_client.post(f"{PREFIX}/answers", json=payload, headers=headers)
        second = await async_client.post(f"{PREFIX}/answers", json=payload, headers=headers)

        assert first.status_code == 404
        assert second.status_code == 404
        assert second.json() == first.json()

    async def test_answer_after_end_conflicts(
        self, async_client, user_headers, published_questions
    ):
        questions = by_id(published_questions)
        session_id = await start(async_client, user_headers, count=1)
        served = await next_question(async_client, user_headers, session_id)
        question = questions[served["question_id"]]
        ended = await async_client.post(
            f"{PREFIX}/sessions/{session_id}/end", headers=user_headers
        )
        assert ended.status_code == 200

        response = await async_client.post(
            f"{PREFIX}/answers",
            json={
                "question_id": question.id,
                "choice_id": correct_choice(question).id,
                "session_id": session_id,
            },
            headers=user_headers,
        )

        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"


class TestNextQuestionEndpoint:
    """Tests for GET /v1/practice/next."""

    async def test_ad_hoc(self, async_client, user_headers, published_questions):
        response = await async_client.get(
            f"{PREFIX}/next", params={"difficulties": ["hard"]}, headers=user_headers
        )

        data = response.json()
        assert data["question_id"] == published_questions[2].id
        assert data["session"] is None

    async def test_ad_hoc_nothing_left(self, async_client, user_headers, published_questions):
        response = await async_client.get(
            f"{PREFIX}/next", params={"tag_slugs": ["unknown"]}, headers=user_headers
        )

        assert response.status_code == 200
        assert response.json() is None

    async def test_filters_with_session_rejected(
        self, async_client, user_headers, published_questions
    ):
        response = await async_client.get(
            f"{PREFIX}/next",
            params={"session_id": "abc", "difficulties": ["easy"]},
            headers=user_headers,
        )

        assert response.status_code == 422
        assert "session_id" in response.json()["field_errors"]

    async def test_question_without_session_rejected(
        self, async_client, user_headers, published_questions
    ):
        response = await async_client.get(
            f"{PREFIX}/next", params={"question_id": "abc"}, headers=user_headers
        )

        assert response.status_code == 422
        assert "question_id" in response.json()["field_errors"]

    async def test_unknown_session(self, async_client, user_headers, published_questions):
        response = await async_client.get(
            f"{PREFIX}/next", params={"session_id": "missing"}, headers=user_headers
        )

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"


class TestSessionEndpoints:
    """Tests for mark, end, review, incomplete and history endpoints."""

    async def test_exam_round_trip(self, async_client, user_headers, published_questions):
        session_id = await start(async_client, user_headers, mode="exam")
        served = await next_question(async_client, user_headers, session_id)

        marked = await async_client.put(
            f"{PREFIX}/sessions/{session_id}/questions/{served['question_id']}/mark",
            json={"marked_for_review": True},
            headers=user_headers,
        )
        assert marked.status_code == 200
        assert marked.json() == {
            "question_id": served["question_id"],
            "marked_for_review": True,
        }

        review = await async_client.get(
            f"{PREFIX}/sessions/{session_id}/review", headers=user_headers
        )
        assert review.status_code == 200
        review_data = review.json()
        assert review_data["marked_count"] == 1
        assert review_data["answered_count"] == 0
        assert [row["order"] for row in review_data["rows"]] == [1, 2, 3]

        end_headers = {**user_headers, "Idempotency-Key": "end-1"}
        ended = await async_client.post(
            f"{PREFIX}/sessions/{session_id}/end", headers=end_headers
        )
        replayed = await async_client.post(
            f"{PREFIX}/sessions/{session_id}/end", headers=end_headers
        )
        assert ended.status_code == 200
        assert replayed.json() == ended.json()
        assert ended.json()["totals"]["answered"] == 0

        again = await async_client.post(
            f"{PREFIX}/sessions/{session_id}/end", headers=user_headers
        )
        assert again.status_code == 409

        history = await async_client.get(
            f"{PREFIX}/sessions/history", params={"limit": 5}, headers=user_headers
        )
        assert history.json()["total"] == 1
        assert history.json()["rows"][0]["session_id"] == session_id

        incomplete = await async_client.get(
            f"{PREFIX}/sessions/incomplete", headers=user_headers
        )
        assert incomplete.status_code == 200
        assert incomplete.json() is None

    async def test_mark_in_tutor_conflicts(
        self, async_client, user_headers, published_questions
    ):
        session_id = await start(async_client, user_headers)
        served = await next_question(async_client, user_headers, session_id)

        response = await async_client.put(
            f"{PREFIX}/sessions/{session_id}/questions/{served['question_id']}/mark",
            json={"marked_for_review": True},
            headers=user_headers,
        )

        assert response.status_code == 409

    async def test_history_limit_bounds(self, async_client, user_headers):
        response = await async_client.get(
            f"{PREFIX}/sessions/history", params={"limit": 0}, headers=user_headers
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_other_users_session_is_hidden(
        self, async_client, user_headers, published_questions
    ):
        session_id = await start(async_client, user_headers)

        response = await async_client.get(
            f"{PREFIX}/sessions/{session_id}/review", headers={"X-User-Id": "intruder"}
        )

        assert response.status_code == 404

    async def test_missed_questions(self, async_client, user_headers, published_questions):
        questions = by_id(published_questions)
        session_id = await start(async_client, user_headers, count=1)
        served = await next_question(async_client, user_headers, session_id)
        question = questions[served["question_id"]]
        await async_client.post(
            f"{PREFIX}/answers",
            json={"question_id": question.id, "choice_id": wrong_choice(question).id},
            headers=user_headers,
        )

        response = await async_client.get(f"{PREFIX}/missed", headers=user_headers)

        data = response.json()
        assert data["total_count"] == 1
        assert data["rows"][0]["question_id"] == question.id
        assert data["limit"] == 50


class TestApplication:
    """Tests for app-level routes and error handling."""

    async def test_health(self, async_client):
        response = await async_client.get("/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_ping(self, async_client):
        response = await async_client.get("/v1/ping")

        assert response.json() == {"message": "pong"}

    async def test_unknown_route(self, async_client):
        response = await async_client.get("/v1/nowhere")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_exception_handlers_registered(self):
        from fastapi.exceptions import RequestValidationError
        from starlette.exceptions import HTTPException as StarletteHTTPException

        from qbank.core.error_responses import PracticeError
        from qbank.main import app

        for exc_class in (
            PracticeError,
            StarletteHTTPException,
            RequestValidationError,
            Exception,
        ):
            assert exc_class in app.exception_handlers
