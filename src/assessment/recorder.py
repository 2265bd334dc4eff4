"""
Session result recorder.

Builds the immutable SessionResult for a finished quiz or puzzle, a
read-only "review wrong answers" projection, and the typed history entry
handed to the persistence sink.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from src.assessment.models import (
    ActivityKind,
    ItemDetail,
    PuzzleActivity,
    QuizActivity,
    SessionResult,
)
from src.assessment.scoring import ScoreBreakdown
from src.history.records import HistoryEntry, PuzzleHistoryEntry, QuizHistoryEntry


@dataclass(frozen=True)
class ReviewItem:
    """One wrongly answered question, ready for an explanation view."""

    question_id: str
    question_text: str
    chosen_option: str | None
    correct_option: str | None
    explanation: str | None


def build_quiz_result(
    activity: QuizActivity,
    answers: Sequence[int],
    breakdown: ScoreBreakdown,
    elapsed_seconds: float,
    attempt: int = 1,
    scored_locally: bool = False,
) -> SessionResult:
    """Assemble the result of a submitted quiz."""
    items = tuple(
        ItemDetail(
            item_id=question.id,
            submitted=answers[i],
            expected=question.correct_option_index if question.is_answerable else None,
            is_correct=breakdown.correctness[i],
            tags=question.tags,
            scorable=breakdown.is_scorable(i),
        )
        for i, question in enumerate(activity.questions)
    )
    return SessionResult(
        activity_id=activity.id,
        kind=ActivityKind.QUIZ,
        score=breakdown.score,
        count_correct=breakdown.count_correct,
        total_count=breakdown.total,
        elapsed_seconds=max(0.0, elapsed_seconds),
        attempt=attempt,
        items=items,
        scored_locally=scored_locally,
    )


def build_puzzle_result(
    activity: PuzzleActivity,
    breakdown: ScoreBreakdown,
    elapsed_seconds: float,
    attempt: int,
    scored_locally: bool = False,
) -> SessionResult:
    """Assemble the result of one puzzle submission."""
    items = tuple(
        ItemDetail(
            item_id=str(piece.id),
            submitted=piece.current_position,
            expected=piece.correct_position,
            is_correct=breakdown.correctness[i],
        )
        for i, piece in enumerate(activity.pieces)
    )
    return SessionResult(
        activity_id=activity.id,
        kind=ActivityKind.PUZZLE,
        score=breakdown.score,
        count_correct=breakdown.count_correct,
        total_count=breakdown.total,
        elapsed_seconds=max(0.0, elapsed_seconds),
        attempt=attempt,
        items=items,
        scored_locally=scored_locally,
    )


def review_wrong_answers(activity: QuizActivity, result: SessionResult) -> list[ReviewItem]:
    """List the questions answered incorrectly, without touching the quiz."""
    questions = {q.id: q for q in activity.questions}
    review = []
    for item in result.incorrect_items:
        question = questions.get(item.item_id)
        if question is None:
            continue
        review.append(ReviewItem(
            question_id=question.id,
            question_text=question.text,
            chosen_option=question.option_text(item.submitted),
            correct_option=question.correct_option,
            explanation=question.explanation,
        ))
    return review


def to_history_entry(
    result: SessionResult,
    activity: QuizActivity | PuzzleActivity,
    child_id: str = "",
) -> HistoryEntry:
    """Convert a result into the append-only history record for its kind."""
    if isinstance(activity, QuizActivity):
        return QuizHistoryEntry(
            child_id=child_id,
            activity_id=result.activity_id,
            title=activity.title,
            subject=activity.subject,
            topic=activity.topic,
            difficulty=activity.difficulty.value,
            score=result.score,
            count_correct=result.count_correct,
            total_count=result.total_count,
            elapsed_seconds=result.elapsed_seconds,
            attempt=result.attempt,
            scored_locally=result.scored_locally,
            missed_item_ids=[item.item_id for item in result.incorrect_items],
            recorded_at=result.completed_at,
        )
    return PuzzleHistoryEntry(
        child_id=child_id,
        activity_id=result.activity_id,
        title=activity.title,
        puzzle_type=activity.puzzle_type.value,
        difficulty=activity.difficulty.value,
        grid_size=activity.grid_size,
        solved=result.passed,
        score=result.score,
        elapsed_seconds=result.elapsed_seconds,
        attempt=result.attempt,
        scored_locally=result.scored_locally,
        recorded_at=result.completed_at,
    )
