"""
Assessment engine facade.

Wires the content provider, remote scorer and history sink into quiz and
puzzle sessions. Everything is injected; nothing here is a singleton.
"""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from loguru import logger

from config import Settings, get_settings
from src.analytics.performance import QuizSummary, analyze_performance, question_count
from src.assessment.collaborators import (
    ContentProvider,
    GenerationRequest,
    PuzzleRequest,
    ResultSink,
    ScoringService,
)
from src.assessment.errors import SessionStateError
from src.assessment.models import (
    PuzzleActivity,
    QuizActivity,
    RetryDirective,
    SessionResult,
    SessionStatus,
)
from src.assessment.normalization import normalize_puzzle, normalize_quiz
from src.assessment.puzzle import PuzzleSession
from src.assessment.quiz_session import QuizSession
from src.assessment.retry_planner import RetryDispatcher, plan
from src.history.records import HistoryEntry, QuizHistoryEntry
from src.integrations.schemas import PuzzlePayload, QuizPayload


@dataclass
class SessionOutcome:
    """What finishing a session produced."""

    result: SessionResult
    directive: RetryDirective
    retry_task: asyncio.Task | None = None

    async def practice_created(self) -> QuizActivity | None:
        """Wait for the background practice quiz, if one was requested."""
        if self.retry_task is None:
            return None
        return await self.retry_task


class AssessmentEngine:
    """Starts sessions, finishes them, and plans what comes next."""

    def __init__(
        self,
        content_provider: ContentProvider | None,
        scoring: ScoringService | None = None,
        history: ResultSink | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] | None = None,
        rng: random.Random | None = None,
    ):
        self.settings = settings or get_settings()
        self._content = content_provider
        self._scoring = scoring
        self._history = history
        self._clock = clock or time.monotonic
        self._rng = rng
        self._retry = RetryDispatcher(
            content_provider, enabled=self.settings.retry_generation_enabled
        )

    # ------------------------------------------------------------------
    # Starting sessions
    # ------------------------------------------------------------------

    async def start_quiz(self, request: GenerationRequest | str) -> QuizSession:
        """
        Fetch a quiz and open a session on it.

        Args:
            request: Generation parameters, or the id of an existing quiz

        Raises:
            ContentProviderUnavailable: If the quiz could not be obtained
            MalformedActivity: If the payload cannot be read
        """
        self._require_content()
        if isinstance(request, str):
            payload = await self._content.fetch_quiz(request)
        else:
            logger.info(
                f"Generating {request.difficulty} {request.subject} quiz "
                f"({request.question_count} questions, topic {request.topic})"
            )
            payload = await self._content.generate_quiz(request)
        return self.open_quiz(payload)

    async def start_puzzle(self, request: PuzzleRequest | str) -> PuzzleSession:
        """
        Fetch a puzzle and open a session on it.

        Raises:
            ContentProviderUnavailable: If the puzzle could not be obtained
            MalformedActivity: If its arrangement is not a valid permutation
        """
        self._require_content()
        if isinstance(request, str):
            payload = await self._content.fetch_puzzle(request)
        else:
            payload = await self._content.generate_puzzle(request)
        return self.open_puzzle(payload)

    def open_quiz(
        self, content: QuizPayload | QuizActivity | dict, attempt: int = 1
    ) -> QuizSession:
        """Open a session on already-fetched quiz content."""
        activity = content if isinstance(content, QuizActivity) else normalize_quiz(content)
        if activity.is_submitted:
            raise SessionStateError(f"Quiz {activity.id} has already been submitted")
        logger.info(f"Starting quiz {activity.id} '{activity.title}' ({activity.question_count} questions)")
        return QuizSession(activity, scoring=self._scoring, clock=self._clock, attempt=attempt)

    def open_puzzle(self, content: PuzzlePayload | PuzzleActivity | dict) -> PuzzleSession:
        """Open a session on already-fetched puzzle content."""
        activity = content if isinstance(content, PuzzleActivity) else normalize_puzzle(content)
        logger.info(
            f"Starting puzzle {activity.id} '{activity.title}' "
            f"({activity.grid_size}x{activity.grid_size})"
        )
        return PuzzleSession(activity, scoring=self._scoring, clock=self._clock)

    def _require_content(self) -> None:
        if self._content is None:
            raise SessionStateError("No content provider configured")

    # ------------------------------------------------------------------
    # Finishing sessions
    # ------------------------------------------------------------------

    async def finish(self, session: QuizSession | PuzzleSession) -> SessionOutcome:
        """
        Submit (if needed), record, and plan a retry for a session.

        A history sink failure is logged and does not affect the outcome.
        The retry request runs in the background.

        Raises:
            SessionStateError: If the session failed or was never submitted
            RemoteScoringUnavailable: If a quiz could not be scored at all
        """
        result = await self._result_of(session)
        directive = plan(result, session.activity)
        self._record(result, session.activity)
        retry_task = self._retry.dispatch(directive)
        return SessionOutcome(result=result, directive=directive, retry_task=retry_task)

    async def _result_of(self, session: QuizSession | PuzzleSession) -> SessionResult:
        if session.status is SessionStatus.IN_PROGRESS:
            return await session.submit()
        if isinstance(session, QuizSession) and session.result is not None:
            return session.result
        if isinstance(session, PuzzleSession) and session.last_result is not None:
            return session.last_result
        raise SessionStateError(f"Session for {session.activity.id} is {session.status.value}")

    def _record(self, result: SessionResult, activity: QuizActivity | PuzzleActivity) -> None:
        if self._history is None:
            return
        try:
            self._history.append_result(result, activity)
        except Exception as e:  # History is best-effort
            logger.error(f"Failed to record result for {result.activity_id}: {e}")

    async def drain(self) -> None:
        """Wait for background retry requests to settle."""
        await self._retry.drain()

    # ------------------------------------------------------------------
    # Adaptive recommendation
    # ------------------------------------------------------------------

    def recommend_next(
        self,
        history: Iterable[HistoryEntry | QuizSummary],
        age: int | None = None,
    ) -> GenerationRequest:
        """
        Build the request for the next adaptive quiz from a child's history.

        Args:
            history: History entries or quiz summaries, oldest first
            age: Child's age; without it the configured question count is used
        """
        summaries = []
        for item in history:
            if isinstance(item, QuizSummary):
                summaries.append(item)
            elif isinstance(item, QuizHistoryEntry):
                summaries.append(QuizSummary.from_entry(item))

        analytics = analyze_performance(summaries, rng=self._rng)
        count = (
            question_count(age, analytics.recommended_difficulty)
            if age is not None
            else self.settings.default_question_count
        )
        return GenerationRequest(
            subject=analytics.recommended_subject,
            difficulty=analytics.recommended_difficulty,
            question_count=count,
            topic=analytics.recommended_topic,
        )
