"""
Unit tests for the remote scoring client.
"""

import pytest
import pytest_asyncio
from httpx import ConnectError, Request, Response

from src.assessment.errors import RemoteScoringUnavailable
from src.assessment.models import UNANSWERED
from src.assessment.quiz_session import QuizSession
from src.integrations.scoring_client import ScoringClient

BASE = "http://localhost:3000/api"


@pytest_asyncio.fixture
async def client():
    """Scoring client instance."""
    client = ScoringClient(
        api_url=BASE,
        parent_id="parent-1",
        kid_id="kid-1",
        timeout_ms=5000,
        retry_attempts=2,
        backoff_seconds=0,
    )
    yield client
    await client.close()


@pytest.fixture
def graded_quiz_response(quiz_payload):
    """Backend response echoing the graded quiz."""
    graded = dict(quiz_payload)
    graded["questions"] = [
        {**q, "userAnswerIndex": answer}
        for q, answer in zip(quiz_payload["questions"], [0, 1, 2, 3, -1])
    ]
    return {"quiz": graded, "correctAnswers": 3, "totalQuestions": 5, "score": 60}


class TestScoringClient:
    """Tests for ScoringClient class."""

    @pytest.mark.asyncio
    async def test_score_quiz(self, client, quiz_activity, graded_quiz_response, monkeypatch):
        calls = []

        async def mock_post(url, **kwargs):
            calls.append((url, kwargs["json"]))
            return Response(200, json=graded_quiz_response, request=Request("POST", url))

        monkeypatch.setattr(client.client, "post", mock_post)

        score = await client.score_quiz(quiz_activity, [0, 1, 2, 3, UNANSWERED])

        assert calls == [(
            f"{BASE}/parents/parent-1/kids/kid-1/quizzes/quiz-001/submit",
            {"answers": [0, 1, 2, 3, -1]},
        )]
        assert score.score == 60
        assert score.count_correct == 3
        assert score.total == 5
        assert score.correctness == (True, True, True, False, False)

    @pytest.mark.asyncio
    async def test_score_quiz_without_echo(self, client, quiz_activity, monkeypatch):
        async def mock_post(url, **kwargs):
            return Response(
                200, json={"correctAnswers": 5, "totalQuestions": 5, "score": 100},
                request=Request("POST", url),
            )

        monkeypatch.setattr(client.client, "post", mock_post)

        score = await client.score_quiz(quiz_activity, [0, 1, 2, 2, 0])

        assert score.score == 100
        assert score.correctness == ()

    @pytest.mark.asyncio
    async def test_score_puzzle(self, client, puzzle_activity, monkeypatch):
        calls = []

        async def mock_post(url, **kwargs):
            calls.append((url, kwargs["json"]))
            return Response(
                200,
                json={"isCorrect": True, "score": 100, "attempts": 2, "message": "Well done!"},
                request=Request("POST", url),
            )

        monkeypatch.setattr(client.client, "post", mock_post)

        score = await client.score_puzzle(puzzle_activity, [0, 1, 2, 3], 37)

        assert calls == [(
            f"{BASE}/parents/parent-1/kids/kid-1/puzzles/puzzle-001/submit",
            {"positions": [0, 1, 2, 3], "timeSpent": 37},
        )]
        assert score.is_correct is True
        assert score.attempts == 2
        assert score.message == "Well done!"

    @pytest.mark.asyncio
    async def test_transport_failure_maps_to_unavailable(self, client, quiz_activity, monkeypatch):
        call_count = 0

        async def mock_post(url, **kwargs):
            nonlocal call_count
            call_count += 1
            raise ConnectError("connection refused")

        monkeypatch.setattr(client.client, "post", mock_post)

        with pytest.raises(RemoteScoringUnavailable):
            await client.score_quiz(quiz_activity, [0] * 5)

        assert call_count == 2

    @pytest.mark.asyncio
    async def test_unreadable_score(self, client, puzzle_activity, monkeypatch):
        async def mock_post(url, **kwargs):
            return Response(200, json={"ok": True}, request=Request("POST", url))

        monkeypatch.setattr(client.client, "post", mock_post)

        with pytest.raises(RemoteScoringUnavailable):
            await client.score_puzzle(puzzle_activity, [0, 1, 2, 3], 1)

    @pytest.mark.asyncio
    async def test_session_falls_back_when_service_is_down(self, client, quiz_activity, monkeypatch):
        async def mock_post(url, **kwargs):
            return Response(500, json={"error": "boom"}, request=Request("POST", url))

        monkeypatch.setattr(client.client, "post", mock_post)
        session = QuizSession(quiz_activity, scoring=client)
        for answer in [0, 1, 2, 2]:
            session.select_option(answer)
            await session.advance()

        result = await session.advance()

        assert result.scored_locally is True
        assert result.count_correct == 4
        assert result.score == 80
