"""
Scoring and validation core.

Pure functions that compare submissions with ground truth. Quizzes earn
partial credit per question; puzzles are all-or-nothing.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from src.assessment.errors import InvalidSubmission
from src.assessment.models import Piece, Question

MAX_SCORE = 100
MIN_SCORE = 0


@dataclass(frozen=True)
class ScoreBreakdown:
    """Per-item correctness plus the aggregate score."""

    correctness: tuple[bool, ...]
    count_correct: int
    total: int
    score: int
    scorable: tuple[bool, ...] = ()

    def is_scorable(self, index: int) -> bool:
        return self.scorable[index] if self.scorable else True


def percent(correct: int, total: int) -> int:
    """
    Integer percentage, rounding halves up.

    Returns 0 for an empty activity instead of dividing by zero.
    """
    if total <= 0:
        return MIN_SCORE
    return (200 * correct + total) // (2 * total)


def grade(expected: Sequence[int], submitted: Sequence[int]) -> ScoreBreakdown:
    """
    Compare a submission with ground truth index by index.

    Args:
        expected: Correct answer (or position) per item
        submitted: Submitted answer (or position) per item

    Returns:
        ScoreBreakdown with partial credit

    Raises:
        InvalidSubmission: If the two sequences differ in length
    """
    if len(expected) != len(submitted):
        raise InvalidSubmission(
            f"Submission has {len(submitted)} items, expected {len(expected)}"
        )
    correctness = tuple(e == s for e, s in zip(expected, submitted))
    count = sum(correctness)
    return ScoreBreakdown(
        correctness=correctness,
        count_correct=count,
        total=len(correctness),
        score=percent(count, len(correctness)),
    )


def grade_quiz(questions: Sequence[Question], answers: Sequence[int]) -> ScoreBreakdown:
    """
    Grade quiz answers against each question's correct option.

    Unanswerable questions (bad ground truth) stay in the breakdown but are
    not counted towards the total. The unanswered sentinel never matches a
    valid option, so it always counts as incorrect.
    """
    if len(questions) != len(answers):
        raise InvalidSubmission(
            f"Submission has {len(answers)} answers for {len(questions)} questions"
        )

    correctness: list[bool] = []
    scorable: list[bool] = []
    for question, answer in zip(questions, answers):
        if question.is_answerable:
            correctness.append(answer == question.correct_option_index)
            scorable.append(True)
        else:
            correctness.append(False)
            scorable.append(False)

    total = sum(scorable)
    count = sum(1 for ok, counted in zip(correctness, scorable) if ok and counted)
    return ScoreBreakdown(
        correctness=tuple(correctness),
        count_correct=count,
        total=total,
        score=percent(count, total),
        scorable=tuple(scorable),
    )


def arrangement_is_solved(pieces: Sequence[Piece]) -> bool:
    """
    True iff every piece sits in its correct position.

    A board with no pieces counts as unsolved, so an empty puzzle can never
    be passed and always scores zero.
    """
    return bool(pieces) and all(piece.is_placed for piece in pieces)


def grade_positions(
    correct_positions: Sequence[int],
    submitted_positions: Sequence[int],
) -> ScoreBreakdown:
    """Grade a puzzle arrangement given as raw position arrays."""
    per_piece = grade(correct_positions, submitted_positions)
    solved = per_piece.total > 0 and per_piece.count_correct == per_piece.total
    return ScoreBreakdown(
        correctness=per_piece.correctness,
        count_correct=per_piece.count_correct,
        total=per_piece.total,
        score=MAX_SCORE if solved else MIN_SCORE,
    )


def grade_puzzle(pieces: Sequence[Piece]) -> ScoreBreakdown:
    """Grade a puzzle: full marks when solved, nothing otherwise."""
    return grade_positions(
        [piece.correct_position for piece in pieces],
        [piece.current_position for piece in pieces],
    )
