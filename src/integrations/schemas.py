"""
Wire models for the content provider and the remote scoring service.

These mirror the backend's JSON (camelCase keys, Mongo-style ``_id``).
Optional ground-truth fields are kept raw here; ``src.assessment.normalization``
turns them into strictly-valid domain records exactly once.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    """Base for backend payloads: accept aliases and field names, ignore extras."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ========================================
# Quiz payloads
# ========================================


class QuestionPayload(_WireModel):
    """A question as sent by the content provider."""

    id: Optional[str] = Field(None, alias="_id")
    question_text: str = Field("", alias="questionText")
    options: list[str] = Field(default_factory=list)
    correct_answer_index: Optional[int] = Field(None, alias="correctAnswerIndex")
    correct_answer: Optional[str] = Field(None, alias="correctAnswer")
    explanation: Optional[str] = None
    image_url: Optional[str] = Field(None, alias="imageUrl")
    type: Optional[str] = None
    level: Optional[str] = None
    user_answer_index: Optional[int] = Field(None, alias="userAnswerIndex")


class QuizPayload(_WireModel):
    """A quiz as sent by the content provider."""

    id: Optional[str] = Field(None, alias="_id")
    title: str = "Quiz"
    subject: Optional[str] = None
    topic: Optional[str] = None
    difficulty: Optional[str] = None
    type: Optional[str] = None
    questions: list[QuestionPayload] = Field(default_factory=list)
    score: Optional[int] = None
    answered: Optional[int] = None
    is_answered: Optional[bool] = Field(None, alias="isAnswered")
    created_at: Optional[str] = Field(None, alias="createdAt")


class QuizGenerationBody(_WireModel):
    """Request body for generating a quiz."""

    subject: str
    difficulty: str
    nbr_questions: int = Field(..., alias="nbrQuestions")
    topic: str


class RetryGenerationBody(_WireModel):
    """
    Request body for a retry quiz.

    The backend switches to retry mode when no subject is given; the missed
    items narrow the practice set.
    """

    missed_question_ids: list[str] = Field(default_factory=list, alias="missedQuestionIds")
    missed_tags: list[str] = Field(default_factory=list, alias="missedTags")
    source_quiz_id: Optional[str] = Field(None, alias="sourceQuizId")


class QuizSubmitBody(_WireModel):
    """Request body for submitting quiz answers: ``{"answers": [0, 2, 1, 3]}``."""

    answers: list[int]


class QuizSubmitResponse(_WireModel):
    """Remote scoring response for a quiz submission."""

    correct_answers: int = Field(..., alias="correctAnswers")
    total_questions: int = Field(..., alias="totalQuestions")
    score: int
    quiz: Optional[QuizPayload] = None

    def correctness(self) -> list[bool]:
        """Per-question correctness from the echoed quiz, if present."""
        if self.quiz is None:
            return []
        return [
            q.user_answer_index is not None
            and q.correct_answer_index is not None
            and q.user_answer_index == q.correct_answer_index
            for q in self.quiz.questions
        ]


# ========================================
# Puzzle payloads
# ========================================


class PiecePayload(_WireModel):
    """A puzzle piece as sent by the content provider."""

    id: int
    correct_position: int = Field(..., alias="correctPosition")
    current_position: int = Field(..., alias="currentPosition")
    content: str = ""
    image_url: Optional[str] = Field(None, alias="imageUrl")


class PuzzlePayload(_WireModel):
    """A puzzle as sent by the content provider."""

    id: Optional[str] = Field(None, alias="_id")
    title: str = "Puzzle"
    type: str = "word"
    difficulty: str = "easy"
    grid_size: int = Field(..., alias="gridSize")
    pieces: list[PiecePayload] = Field(default_factory=list)
    hint: Optional[str] = None
    solution: Optional[str] = None
    image_url: Optional[str] = Field(None, alias="imageUrl")
    is_completed: bool = Field(False, alias="isCompleted")
    attempts: int = 0
    time_spent: int = Field(0, alias="timeSpent")
    score: int = 0


class PuzzleGenerationBody(_WireModel):
    """Request body for generating a puzzle."""

    type: Optional[str] = None
    difficulty: Optional[str] = None
    topic: Optional[str] = None
    grid_size: Optional[int] = Field(None, alias="gridSize")


class PuzzleSubmitBody(_WireModel):
    """Request body for submitting an arrangement."""

    positions: list[int]
    time_spent: Optional[int] = Field(None, alias="timeSpent")


class PuzzleSubmitResponse(_WireModel):
    """Remote scoring response for a puzzle submission."""

    is_correct: bool = Field(..., alias="isCorrect")
    score: int
    attempts: int = 0
    message: str = ""


def dump_body(model: BaseModel) -> dict[str, Any]:
    """Serialize a request body using the backend's key names."""
    return model.model_dump(by_alias=True, exclude_none=True)
