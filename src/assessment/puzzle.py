"""
Puzzle arrangement model.

The board only changes through ``swap``, a transposition of two pieces'
current positions. Starting from a valid permutation, every reachable
state is therefore also a valid permutation: no position is ever empty
or shared.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable

from loguru import logger

from src.assessment.collaborators import ScoringService
from src.assessment.errors import MalformedActivity, RemoteScoringUnavailable, SessionStateError
from src.assessment.models import Piece, PuzzleActivity, SessionResult, SessionStatus
from src.assessment.normalization import validate_arrangement
from src.assessment.recorder import build_puzzle_result
from src.assessment.scoring import arrangement_is_solved, grade_puzzle


class PuzzleBoard:
    """Tracks piece positions and the tap-to-swap selection."""

    def __init__(self, activity: PuzzleActivity):
        problems = validate_arrangement(activity.pieces, activity.grid_size)
        if problems:
            raise MalformedActivity(activity.id, problems)
        self.activity = activity
        self._selected: int | None = None
        self.moves = 0

    @property
    def pieces(self) -> list[Piece]:
        return self.activity.pieces

    @property
    def selected(self) -> int | None:
        """Index of the piece waiting for a swap partner, if any."""
        return self._selected

    def _check_index(self, piece_index: int) -> None:
        if not 0 <= piece_index < len(self.pieces):
            raise IndexError(f"Piece index {piece_index} out of range 0..{len(self.pieces) - 1}")

    def select_for_swap(self, piece_index: int) -> bool:
        """
        Handle a tap on a piece.

        First tap selects. A tap on a different piece swaps the two and
        clears the selection. A second tap on the same piece deselects it.

        Returns:
            True if a swap happened
        """
        self._check_index(piece_index)
        if self._selected is None:
            self._selected = piece_index
            return False

        selected, self._selected = self._selected, None
        if selected == piece_index:
            return False
        self.swap(selected, piece_index)
        return True

    def select_cell(self, position: int) -> bool:
        """Same as select_for_swap, addressed by grid position."""
        return self.select_for_swap(self.index_at(position))

    def swap(self, a: int, b: int) -> None:
        """Exchange the current positions of pieces a and b."""
        self._check_index(a)
        self._check_index(b)
        if a == b:
            return
        first, second = self.pieces[a], self.pieces[b]
        first.current_position, second.current_position = (
            second.current_position,
            first.current_position,
        )
        self.moves += 1

    def is_solved(self) -> bool:
        """Check the arrangement. Meant for an explicit "check" action only."""
        return arrangement_is_solved(self.pieces)

    def positions(self) -> list[int]:
        """Current position of each piece, in piece order."""
        return [piece.current_position for piece in self.pieces]

    def index_at(self, position: int) -> int:
        """Index of the piece occupying a grid position."""
        for i, piece in enumerate(self.pieces):
            if piece.current_position == position:
                return i
        raise IndexError(f"No piece at position {position}")

    def piece_at(self, position: int) -> Piece:
        return self.pieces[self.index_at(position)]

    def rows(self) -> list[list[Piece]]:
        """Pieces laid out row by row as the child sees them."""
        ordered = sorted(self.pieces, key=lambda p: p.current_position)
        size = self.activity.grid_size
        return [ordered[row * size:(row + 1) * size] for row in range(size)]

    def shuffle(self, rng: random.Random | None = None) -> None:
        """
        Scramble the board using swaps only (Fisher-Yates).

        A board with more than one piece never ends up solved.
        """
        rng = rng or random.Random()
        for i in range(len(self.pieces) - 1, 0, -1):
            self.swap(i, rng.randrange(i + 1))
        if len(self.pieces) > 1 and self.is_solved():
            self.swap(0, 1)
        self._selected = None
        self.moves = 0


class PuzzleSession:
    """
    One child's attempt(s) at a puzzle.

    A wrong arrangement keeps the session open so the child can keep
    swapping and resubmit; every submission increments the attempt count.
    """

    def __init__(
        self,
        activity: PuzzleActivity,
        scoring: ScoringService | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.board = PuzzleBoard(activity)
        self.activity = activity
        self._scoring = scoring
        self._clock = clock
        self.started_at = clock()
        self.status = SessionStatus.IN_PROGRESS
        self.attempts = 0
        self.results: list[SessionResult] = []

    @property
    def last_result(self) -> SessionResult | None:
        return self.results[-1] if self.results else None

    def _ensure_in_progress(self) -> None:
        if self.status is SessionStatus.SUBMITTING:
            raise SessionStateError("Puzzle submission already in progress")
        if self.status is not SessionStatus.IN_PROGRESS:
            raise SessionStateError(f"Puzzle session is {self.status.value}")

    def select_for_swap(self, piece_index: int) -> bool:
        self._ensure_in_progress()
        return self.board.select_for_swap(piece_index)

    def select_cell(self, position: int) -> bool:
        self._ensure_in_progress()
        return self.board.select_cell(position)

    def swap(self, a: int, b: int) -> None:
        self._ensure_in_progress()
        self.board.swap(a, b)

    def is_solved(self) -> bool:
        return self.board.is_solved()

    async def submit(self) -> SessionResult:
        """
        Check the current arrangement.

        The remote scorer is asked first so it can record the attempt. The
        embedded ground truth is authoritative: it is used when the remote
        call fails, for locally created puzzles, and when the two disagree.
        """
        self._ensure_in_progress()
        self.status = SessionStatus.SUBMITTING
        self.attempts += 1
        elapsed = self._clock() - self.started_at

        try:
            breakdown = grade_puzzle(self.board.pieces)
            solved = breakdown.score > 0
            scored_locally = True

            if self._scoring is not None and not self.activity.is_local:
                try:
                    remote = await self._scoring.score_puzzle(
                        self.activity, self.board.positions(), int(elapsed)
                    )
                    scored_locally = False
                    if remote.is_correct != solved:
                        logger.warning(
                            f"Remote scorer says puzzle {self.activity.id} "
                            f"correct={remote.is_correct}, local check says {solved}; "
                            "keeping the local verdict"
                        )
                except RemoteScoringUnavailable as e:
                    logger.warning(f"Remote puzzle scoring unavailable, checking locally: {e}")

            result = build_puzzle_result(
                self.activity,
                breakdown,
                elapsed_seconds=elapsed,
                attempt=self.attempts,
                scored_locally=scored_locally,
            )
        except Exception:
            self.status = SessionStatus.IN_PROGRESS
            raise

        self.results.append(result)
        self.status = SessionStatus.COMPLETED if result.passed else SessionStatus.IN_PROGRESS
        logger.info(
            f"Puzzle {self.activity.id} attempt {self.attempts}: "
            f"{'solved' if result.passed else 'not solved'} "
            f"({result.count_correct}/{result.total_count} pieces placed)"
        )
        return result
