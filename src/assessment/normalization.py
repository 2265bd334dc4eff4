"""
Activity normalization.

Runs once when an activity is loaded. Optional or inconsistent ground-truth
fields are resolved here so that session code never re-interprets raw
payload data:

- a question's correct option comes from ``correctAnswerIndex``, or failing
  that from ``correctAnswer`` (option text, or an index written as text)
- questions whose ground truth is still unusable are kept but flagged as
  unanswerable, and scoring skips them
- puzzles whose pieces do not form a permutation of the grid are rejected
"""

from __future__ import annotations

import uuid
from collections import Counter
from typing import Any

from loguru import logger
from pydantic import ValidationError

from src.assessment.errors import MalformedActivity
from src.assessment.models import (
    Difficulty,
    Piece,
    PuzzleActivity,
    PuzzleDifficulty,
    PuzzleType,
    Question,
    QuizActivity,
)
from src.integrations.schemas import PuzzlePayload, QuestionPayload, QuizPayload

KNOWN_SUBJECTS = ("math", "science", "english", "history", "geography")
LOCAL_ID_PREFIX = "temp_"


def _local_id() -> str:
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}"


def _match_option(options: list[str], answer: str) -> int | None:
    for i, option in enumerate(options):
        if option.strip() == answer:
            return i
    lowered = answer.lower()
    for i, option in enumerate(options):
        if option.strip().lower() == lowered:
            return i
    return None


def resolve_correct_index(question: QuestionPayload) -> int | None:
    """
    Work out the correct option index from whichever field is present.

    The index is used when it points at an option and the answer text does
    not name a different one. Otherwise the answer text decides. An index
    that nothing confirms is returned as is, so the question is flagged
    unanswerable rather than silently regraded.
    """
    index = question.correct_answer_index
    answer = (question.correct_answer or "").strip()
    text_index = _match_option(question.options, answer) if answer else None

    if index is not None and 0 <= index < len(question.options):
        return index if text_index is None else text_index
    if text_index is not None:
        return text_index
    if index is not None:
        return index
    if answer.isdigit():
        return int(answer)
    return None


def _infer_subject(payload: QuizPayload) -> str:
    if payload.subject:
        return payload.subject.lower()
    title = payload.title.lower()
    kind = (payload.type or "").lower()
    for subject in KNOWN_SUBJECTS:
        if subject in title or kind == subject:
            return subject
    return kind or "general"


def _infer_topic(payload: QuizPayload) -> str:
    if payload.topic:
        return payload.topic
    # Generated titles look like "Math - Counting Quiz"
    _, dash, tail = payload.title.partition("-")
    if not dash:
        return "General"
    topic = tail.replace("Quiz", "").replace("quiz", "").strip()
    return topic or "General"


def _infer_difficulty(payload: QuizPayload) -> Difficulty:
    if payload.difficulty:
        return Difficulty.parse(payload.difficulty)
    title = payload.title.lower()
    for level in Difficulty:
        if level.value in title:
            return level
    return Difficulty.BEGINNER


def normalize_question(raw: QuestionPayload, quiz_id: str, position: int) -> Question:
    """Build a domain question; unusable ground truth leaves it unanswerable."""
    question = Question(
        id=raw.id or f"{quiz_id}-q{position}",
        text=raw.question_text,
        options=tuple(raw.options),
        correct_option_index=resolve_correct_index(raw),
        explanation=raw.explanation,
        subject=raw.type,
        level=raw.level,
        image_url=raw.image_url,
    )
    if not question.is_answerable:
        logger.warning(
            f"Question {question.id} in quiz {quiz_id} has no usable correct option "
            f"({len(question.options)} options, index={question.correct_option_index}); "
            "it will not be scored"
        )
    return question


def normalize_quiz(payload: QuizPayload | dict[str, Any]) -> QuizActivity:
    """
    Turn a provider quiz payload into a QuizActivity.

    Raises:
        MalformedActivity: If the payload cannot be parsed at all
    """
    if isinstance(payload, dict):
        try:
            payload = QuizPayload.model_validate(payload)
        except ValidationError as e:
            raise MalformedActivity(str(payload.get("_id", "unknown")), [str(e)]) from e

    quiz_id = payload.id or _local_id()
    questions = tuple(
        normalize_question(raw, quiz_id, i) for i, raw in enumerate(payload.questions)
    )
    activity = QuizActivity(
        id=quiz_id,
        title=payload.title,
        questions=questions,
        subject=_infer_subject(payload),
        topic=_infer_topic(payload),
        difficulty=_infer_difficulty(payload),
    )
    logger.debug(
        f"Loaded quiz {activity.id}: {activity.question_count} questions, "
        f"{len(activity.unanswerable_ids)} unanswerable"
    )
    return activity


def validate_arrangement(pieces: list[Piece], grid_size: int) -> list[str]:
    """Return the list of permutation problems (empty when valid)."""
    problems: list[str] = []
    if grid_size < 0:
        return [f"grid size {grid_size} is negative"]

    expected = grid_size * grid_size
    if len(pieces) != expected:
        problems.append(f"expected {expected} pieces for a {grid_size}x{grid_size} grid, got {len(pieces)}")

    duplicate_ids = [pid for pid, n in Counter(p.id for p in pieces).items() if n > 1]
    if duplicate_ids:
        problems.append(f"duplicate piece ids {sorted(duplicate_ids)}")

    grid = set(range(expected))
    for label, positions in (
        ("correct", [p.correct_position for p in pieces]),
        ("current", [p.current_position for p in pieces]),
    ):
        if len(set(positions)) != len(positions):
            problems.append(f"{label} positions contain duplicates")
        stray = sorted(set(positions) - grid)
        if stray:
            problems.append(f"{label} positions {stray} fall outside the grid")
        if len(pieces) == expected and set(positions) != grid:
            problems.append(f"{label} positions do not cover the grid")
    return problems


def normalize_puzzle(payload: PuzzlePayload | dict[str, Any]) -> PuzzleActivity:
    """
    Turn a provider puzzle payload into a PuzzleActivity.

    Raises:
        MalformedActivity: If the pieces do not form a permutation of the grid
    """
    if isinstance(payload, dict):
        try:
            payload = PuzzlePayload.model_validate(payload)
        except ValidationError as e:
            raise MalformedActivity(str(payload.get("_id", "unknown")), [str(e)]) from e

    is_local = payload.id is None
    puzzle_id = payload.id or _local_id()
    if is_local:
        logger.warning(f"Puzzle payload has no _id, using local id {puzzle_id}")

    pieces = [
        Piece(
            id=raw.id,
            correct_position=raw.correct_position,
            current_position=raw.current_position,
            content=raw.content,
            image_url=raw.image_url,
        )
        for raw in payload.pieces
    ]
    problems = validate_arrangement(pieces, payload.grid_size)
    if problems:
        raise MalformedActivity(puzzle_id, problems)

    return PuzzleActivity(
        id=puzzle_id,
        title=payload.title,
        grid_size=payload.grid_size,
        pieces=sorted(pieces, key=lambda p: p.id),
        puzzle_type=PuzzleType.parse(payload.type),
        difficulty=PuzzleDifficulty.parse(payload.difficulty),
        hint=payload.hint,
        solution=payload.solution,
        is_local=is_local,
    )
