"""
Remote scoring client.

Submits answers and arrangements to the backend, which grades them and
records the attempt.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pydantic import ValidationError

from src.assessment.collaborators import RemotePuzzleScore, RemoteQuizScore
from src.assessment.errors import RemoteScoringUnavailable
from src.assessment.models import PuzzleActivity, QuizActivity
from src.integrations.backend_client import BackendClient
from src.integrations.schemas import (
    PuzzleSubmitBody,
    PuzzleSubmitResponse,
    QuizSubmitBody,
    QuizSubmitResponse,
    dump_body,
)

logger = logging.getLogger(__name__)


class ScoringClient(BackendClient):
    """HTTP client for quiz and puzzle submissions."""

    service_name = "Scoring service"
    error_class = RemoteScoringUnavailable

    async def score_quiz(
        self, activity: QuizActivity, answers: Sequence[int]
    ) -> RemoteQuizScore:
        """
        Submit quiz answers for grading.

        Args:
            activity: The quiz being submitted
            answers: Selected option per question, -1 for unanswered

        Returns:
            Aggregate score plus per-question correctness when the
            backend echoes the graded quiz

        Raises:
            RemoteScoringUnavailable: On any failure
        """
        body = QuizSubmitBody(answers=list(answers))
        data = await self._send(
            "POST", self.kid_url(f"quizzes/{activity.id}/submit"), json=dump_body(body)
        )
        try:
            response = QuizSubmitResponse.model_validate(data)
        except ValidationError as e:
            raise RemoteScoringUnavailable(f"Unreadable quiz score: {e}") from e

        logger.info(
            f"Quiz {activity.id} scored remotely: "
            f"{response.correct_answers}/{response.total_questions} ({response.score}%)"
        )
        return RemoteQuizScore(
            score=response.score,
            count_correct=response.correct_answers,
            total=response.total_questions,
            correctness=tuple(response.correctness()),
        )

    async def score_puzzle(
        self, activity: PuzzleActivity, positions: Sequence[int], time_spent: int
    ) -> RemotePuzzleScore:
        """
        Submit a puzzle arrangement for grading.

        Raises:
            RemoteScoringUnavailable: On any failure
        """
        body = PuzzleSubmitBody(positions=list(positions), time_spent=time_spent)
        data = await self._send(
            "POST", self.kid_url(f"puzzles/{activity.id}/submit"), json=dump_body(body)
        )
        try:
            response = PuzzleSubmitResponse.model_validate(data)
        except ValidationError as e:
            raise RemoteScoringUnavailable(f"Unreadable puzzle score: {e}") from e

        logger.info(
            f"Puzzle {activity.id} scored remotely: correct={response.is_correct}, "
            f"score={response.score}, attempts={response.attempts}"
        )
        return RemotePuzzleScore(
            is_correct=response.is_correct,
            score=response.score,
            attempts=response.attempts,
            message=response.message,
        )
