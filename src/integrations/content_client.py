"""
Content provider client.

Fetches and generates quizzes and puzzles for one child. Generation
requests with no subject put the backend in adaptive/retry mode.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from src.assessment.collaborators import GenerationRequest, PuzzleRequest
from src.assessment.errors import ContentProviderUnavailable
from src.assessment.models import PuzzleDifficulty, RetryDirective
from src.integrations.backend_client import BackendClient
from src.integrations.schemas import (
    PuzzleGenerationBody,
    PuzzlePayload,
    QuizGenerationBody,
    QuizPayload,
    RetryGenerationBody,
    dump_body,
)

logger = logging.getLogger(__name__)


class ContentClient(BackendClient):
    """HTTP client for quiz and puzzle content."""

    service_name = "Content provider"
    error_class = ContentProviderUnavailable

    async def fetch_quiz(self, quiz_id: str) -> QuizPayload:
        """Load an existing quiz."""
        data = await self._send("GET", self.kid_url(f"quizzes/{quiz_id}"))
        return self._parse_quiz(data)

    async def list_quizzes(self) -> list[QuizPayload]:
        """All quizzes of the child, as stored by the backend."""
        data = await self._send("GET", self.kid_url("quizzes"))
        if not isinstance(data, list):
            raise ContentProviderUnavailable("Quiz list response is not a list")
        return [self._parse_quiz(item) for item in data]

    async def generate_quiz(self, request: GenerationRequest) -> QuizPayload:
        """
        Generate a new quiz.

        Args:
            request: Subject, difficulty, question count and topic

        Returns:
            The generated quiz payload

        Raises:
            ContentProviderUnavailable: On any failure
        """
        body = QuizGenerationBody(
            subject=request.subject,
            difficulty=request.difficulty,
            nbr_questions=request.question_count,
            topic=request.topic,
        )
        logger.info(f"Generating quiz: {request.subject}/{request.topic} ({request.difficulty})")
        data = await self._send("POST", self.kid_url("quizzes"), json=dump_body(body))
        return self._parse_quiz(data)

    async def generate_retry(self, directive: RetryDirective) -> QuizPayload:
        """Generate a practice quiz focused on the missed questions."""
        body = RetryGenerationBody(
            missed_question_ids=list(directive.missed_item_ids),
            missed_tags=list(directive.missed_tags),
            source_quiz_id=directive.activity_id,
        )
        logger.info(
            f"Generating retry quiz for {directive.activity_id} "
            f"({len(directive.missed_item_ids)} missed questions)"
        )
        data = await self._send("POST", self.kid_url("quizzes"), json=dump_body(body))
        return self._parse_quiz(data)

    async def fetch_puzzle(self, puzzle_id: str) -> PuzzlePayload:
        """Load an existing puzzle."""
        data = await self._send("GET", self.kid_url(f"puzzles/{puzzle_id}"))
        return self._parse_puzzle(data)

    async def generate_puzzle(self, request: PuzzleRequest) -> PuzzlePayload:
        """
        Generate a new puzzle.

        An empty request lets the backend pick type and difficulty.
        """
        grid_size = request.grid_size
        if grid_size is None and request.difficulty:
            grid_size = PuzzleDifficulty.parse(request.difficulty).grid_size
        body = PuzzleGenerationBody(
            type=request.puzzle_type,
            difficulty=request.difficulty,
            topic=request.topic,
            grid_size=grid_size,
        )
        logger.info(
            f"Generating puzzle: type={request.puzzle_type or 'auto'}, "
            f"difficulty={request.difficulty or 'auto'}"
        )
        data = await self._send("POST", self.kid_url("puzzles"), json=dump_body(body))
        return self._parse_puzzle(data)

    def _parse_quiz(self, data: Any) -> QuizPayload:
        try:
            return QuizPayload.model_validate(data)
        except ValidationError as e:
            logger.error(f"Unreadable quiz payload: {e}")
            raise ContentProviderUnavailable(f"Unreadable quiz payload: {e}") from e

    def _parse_puzzle(self, data: Any) -> PuzzlePayload:
        try:
            return PuzzlePayload.model_validate(data)
        except ValidationError as e:
            logger.error(f"Unreadable puzzle payload: {e}")
            raise ContentProviderUnavailable(f"Unreadable puzzle payload: {e}") from e
