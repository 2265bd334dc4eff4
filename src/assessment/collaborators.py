"""
Protocols for the engine's external collaborators.

The engine receives these at construction time; tests pass fakes.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from src.assessment.models import (
    PuzzleActivity,
    QuizActivity,
    RetryDirective,
    SessionResult,
)
from src.integrations.schemas import PuzzlePayload, QuizPayload


@dataclass(frozen=True)
class GenerationRequest:
    """Parameters for a freshly generated quiz."""

    subject: str
    difficulty: str
    question_count: int
    topic: str


@dataclass(frozen=True)
class PuzzleRequest:
    """Parameters for a freshly generated puzzle (all optional)."""

    puzzle_type: str | None = None
    difficulty: str | None = None
    topic: str | None = None
    grid_size: int | None = None


@dataclass(frozen=True)
class RemoteQuizScore:
    """What the remote scorer reports for a quiz submission."""

    score: int
    count_correct: int
    total: int
    correctness: tuple[bool, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RemotePuzzleScore:
    """What the remote scorer reports for a puzzle submission."""

    is_correct: bool
    score: int
    attempts: int = 0
    message: str = ""


class ContentProvider(Protocol):
    """Supplies activities; may raise ContentProviderUnavailable."""

    async def fetch_quiz(self, quiz_id: str) -> QuizPayload:
        ...

    async def generate_quiz(self, request: GenerationRequest) -> QuizPayload:
        ...

    async def generate_retry(self, directive: RetryDirective) -> QuizPayload:
        ...

    async def fetch_puzzle(self, puzzle_id: str) -> PuzzlePayload:
        ...

    async def generate_puzzle(self, request: PuzzleRequest) -> PuzzlePayload:
        ...


class ScoringService(Protocol):
    """Scores submissions remotely; may raise RemoteScoringUnavailable."""

    async def score_quiz(
        self, activity: QuizActivity, answers: Sequence[int]
    ) -> RemoteQuizScore:
        ...

    async def score_puzzle(
        self, activity: PuzzleActivity, positions: Sequence[int], time_spent: int
    ) -> RemotePuzzleScore:
        ...


class ResultSink(Protocol):
    """Write-only destination for finished results."""

    def append_result(
        self, result: SessionResult, activity: QuizActivity | PuzzleActivity
    ) -> None:
        ...
