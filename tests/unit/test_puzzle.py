"""
Unit tests for the puzzle arrangement model and puzzle sessions.
"""

import random

import pytest

from src.assessment.collaborators import RemotePuzzleScore
from src.assessment.errors import MalformedActivity, SessionStateError
from src.assessment.models import Piece, PuzzleActivity, SessionStatus
from src.assessment.puzzle import PuzzleBoard, PuzzleSession


def _identity_puzzle(grid_size=3):
    pieces = [
        Piece(id=i, correct_position=i, current_position=i, content=str(i))
        for i in range(grid_size * grid_size)
    ]
    return PuzzleActivity(id="p-identity", title="Numbers", grid_size=grid_size, pieces=pieces)


def _assert_permutation(board):
    assert sorted(board.positions()) == list(range(board.activity.piece_count))


class TestPuzzleBoard:
    """Tests for tap-to-swap and the permutation invariant."""

    def test_rejects_invalid_arrangement(self):
        pieces = [
            Piece(id=0, correct_position=0, current_position=0),
            Piece(id=1, correct_position=1, current_position=0),
            Piece(id=2, correct_position=2, current_position=2),
            Piece(id=3, correct_position=3, current_position=3),
        ]
        with pytest.raises(MalformedActivity) as exc:
            PuzzleBoard(PuzzleActivity(id="bad", title="Bad", grid_size=2, pieces=pieces))

        assert exc.value.activity_id == "bad"
        assert exc.value.problems

    def test_first_tap_selects_without_moving(self, puzzle_activity):
        board = PuzzleBoard(puzzle_activity)
        before = board.positions()

        swapped = board.select_for_swap(0)

        assert swapped is False
        assert board.selected == 0
        assert board.positions() == before

    def test_second_tap_on_other_piece_swaps(self, puzzle_activity):
        board = PuzzleBoard(puzzle_activity)

        board.select_for_swap(0)
        swapped = board.select_for_swap(1)

        assert swapped is True
        assert board.selected is None
        assert board.positions()[:2] == [0, 1]
        assert board.moves == 1

    def test_second_tap_on_same_piece_deselects(self, puzzle_activity):
        board = PuzzleBoard(puzzle_activity)
        before = board.positions()

        board.select_for_swap(2)
        swapped = board.select_for_swap(2)

        assert swapped is False
        assert board.selected is None
        assert board.positions() == before

    def test_out_of_range_index(self, puzzle_activity):
        board = PuzzleBoard(puzzle_activity)

        with pytest.raises(IndexError):
            board.select_for_swap(4)

    def test_permutation_holds_after_random_taps(self):
        board = PuzzleBoard(_identity_puzzle(4))
        rng = random.Random(7)

        _assert_permutation(board)
        for _ in range(200):
            board.select_for_swap(rng.randrange(16))
            _assert_permutation(board)

    def test_identity_arrangement_is_solved(self):
        board = PuzzleBoard(_identity_puzzle())

        assert board.is_solved() is True

    def test_single_transposition_is_not_solved(self):
        board = PuzzleBoard(_identity_puzzle())

        board.swap(3, 7)

        assert board.is_solved() is False
        board.swap(3, 7)
        assert board.is_solved() is True

    def test_swap_with_itself_is_noop(self):
        board = PuzzleBoard(_identity_puzzle())

        board.swap(2, 2)

        assert board.moves == 0
        assert board.is_solved() is True

    def test_select_cell_addresses_by_position(self, puzzle_activity):
        board = PuzzleBoard(puzzle_activity)

        # piece 1 sits at position 0, piece 0 at position 1
        board.select_cell(0)
        board.select_cell(1)

        assert board.piece_at(0).id == 0
        assert board.piece_at(1).id == 1

    def test_rows_follow_current_positions(self, puzzle_activity):
        board = PuzzleBoard(puzzle_activity)

        rows = board.rows()

        assert [[p.content for p in row] for row in rows] == [["A", "C"], ["S", "T"]]

    def test_shuffle_keeps_permutation_and_never_solves(self):
        for seed in range(20):
            board = PuzzleBoard(_identity_puzzle(2))
            board.shuffle(random.Random(seed))

            _assert_permutation(board)
            assert board.is_solved() is False
            assert board.moves == 0
            assert board.selected is None


class TestPuzzleSession:
    """Tests for puzzle submission and resubmission."""

    @pytest.mark.asyncio
    async def test_wrong_arrangement_stays_open(self, puzzle_activity, clock):
        session = PuzzleSession(puzzle_activity, clock=clock)

        result = await session.submit()

        assert result.passed is False
        assert result.score == 0
        assert result.attempt == 1
        assert result.scored_locally is True
        assert session.status is SessionStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_resubmission_increments_attempt(self, puzzle_activity, clock):
        session = PuzzleSession(puzzle_activity, clock=clock)
        await session.submit()

        session.swap(0, 1)
        session.swap(2, 3)
        clock.advance(42)
        result = await session.submit()

        assert result.passed is True
        assert result.score == 100
        assert result.attempt == 2
        assert result.elapsed_seconds == 42
        assert session.status is SessionStatus.COMPLETED
        assert len(session.results) == 2

    @pytest.mark.asyncio
    async def test_completed_session_rejects_moves(self, solved_puzzle_payload, clock):
        from src.assessment.normalization import normalize_puzzle

        session = PuzzleSession(normalize_puzzle(solved_puzzle_payload), clock=clock)
        await session.submit()

        with pytest.raises(SessionStateError):
            session.select_for_swap(0)
        with pytest.raises(SessionStateError):
            await session.submit()

    @pytest.mark.asyncio
    async def test_remote_and_local_agree(self, puzzle_activity, clock, make_scoring):
        scoring = make_scoring(puzzle_score=RemotePuzzleScore(is_correct=False, score=0, attempts=1))
        session = PuzzleSession(puzzle_activity, scoring=scoring, clock=clock)
        clock.advance(12)

        result = await session.submit()

        assert scoring.puzzle_calls == [("puzzle-001", [1, 0, 3, 2], 12)]
        assert result.scored_locally is False
        assert result.passed is False

    @pytest.mark.asyncio
    async def test_remote_failure_falls_back_to_local(self, puzzle_activity, clock, make_scoring):
        session = PuzzleSession(puzzle_activity, scoring=make_scoring(fail=True), clock=clock)
        session.swap(0, 1)
        session.swap(2, 3)

        result = await session.submit()

        assert result.passed is True
        assert result.scored_locally is True

    @pytest.mark.asyncio
    async def test_local_verdict_wins_on_disagreement(self, puzzle_activity, clock, make_scoring):
        scoring = make_scoring(puzzle_score=RemotePuzzleScore(is_correct=True, score=100))
        session = PuzzleSession(puzzle_activity, scoring=scoring, clock=clock)

        result = await session.submit()

        assert result.passed is False
        assert result.score == 0

    @pytest.mark.asyncio
    async def test_local_puzzle_never_calls_remote(self, puzzle_payload, clock, make_scoring):
        from src.assessment.normalization import normalize_puzzle

        payload = {k: v for k, v in puzzle_payload.items() if k != "_id"}
        activity = normalize_puzzle(payload)
        scoring = make_scoring(puzzle_score=RemotePuzzleScore(is_correct=False, score=0))
        session = PuzzleSession(activity, scoring=scoring, clock=clock)

        await session.submit()

        assert activity.is_local is True
        assert scoring.puzzle_calls == []

    @pytest.mark.asyncio
    async def test_empty_puzzle_scores_zero(self, clock):
        activity = PuzzleActivity(id="empty", title="Empty", grid_size=0, pieces=[])
        session = PuzzleSession(activity, clock=clock)

        result = await session.submit()

        assert result.total_count == 0
        assert result.score == 0
        assert result.passed is False
