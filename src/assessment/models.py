"""
Domain models for assessment sessions.

Activities arrive from the content provider as wire payloads and are
normalised once (see ``normalization.py``) into the records below. The
session logic only ever sees these strictly-valid records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from src.assessment.errors import SessionStateError

# Slot value for a question the child has not answered yet
UNANSWERED = -1

# Unicode blocks treated as single-glyph symbol content on puzzle pieces
_SYMBOL_RANGES = (
    (0x1F600, 0x1F64F),  # Emoticons
    (0x1F300, 0x1F5FF),  # Misc symbols and pictographs
    (0x1F680, 0x1F6FF),  # Transport and map
    (0x1F1E6, 0x1F1FF),  # Regional indicators
    (0x2600, 0x26FF),  # Misc symbols
    (0x2700, 0x27BF),  # Dingbats
    (0x1F900, 0x1F9FF),  # Supplemental symbols and pictographs
    (0x1F018, 0x1F270),
    (0x1F7E0, 0x1F7EB),  # Geometric shapes extended (coloured circles)
)
_VARIATION_SELECTORS = {"\ufe0e", "\ufe0f"}


class ActivityKind(str, Enum):
    """Kinds of activity a session can run."""

    QUIZ = "quiz"
    PUZZLE = "puzzle"


class SessionStatus(str, Enum):
    """Lifecycle states shared by quiz and puzzle sessions."""

    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    FAILED = "failed"


class Difficulty(str, Enum):
    """Quiz difficulty levels understood by the content provider."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @classmethod
    def parse(cls, value: str | None) -> Difficulty:
        """Lenient parse; unknown values fall back to beginner."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.BEGINNER


class PuzzleType(str, Enum):
    """Puzzle families produced by the content provider."""

    IMAGE = "image"
    WORD = "word"
    NUMBER = "number"
    SEQUENCE = "sequence"
    PATTERN = "pattern"

    @classmethod
    def parse(cls, value: str | None) -> PuzzleType:
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.WORD


class PuzzleDifficulty(str, Enum):
    """Puzzle difficulty, which determines the grid dimension."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def parse(cls, value: str | None) -> PuzzleDifficulty:
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.EASY

    @property
    def grid_size(self) -> int:
        return {
            PuzzleDifficulty.EASY: 2,
            PuzzleDifficulty.MEDIUM: 3,
            PuzzleDifficulty.HARD: 4,
        }[self]


class PieceContent(str, Enum):
    """How a piece's display content should be rendered."""

    TEXT = "text"
    SYMBOL = "symbol"
    IMAGE = "image"


def is_single_symbol(text: str) -> bool:
    """Check if text is exactly one emoji-like glyph."""
    stripped = "".join(ch for ch in text if ch not in _VARIATION_SELECTORS)
    if len(stripped) != 1:
        return False
    code_point = ord(stripped)
    return any(low <= code_point <= high for low, high in _SYMBOL_RANGES)


# =============================================================================
# Quiz
# =============================================================================

@dataclass(frozen=True)
class Question:
    """A multiple-choice question after normalization."""

    id: str
    text: str
    options: tuple[str, ...]
    correct_option_index: int | None
    explanation: str | None = None
    subject: str | None = None
    level: str | None = None
    image_url: str | None = None

    @property
    def is_answerable(self) -> bool:
        """True if the ground truth points at one of at least two options."""
        return (
            len(self.options) >= 2
            and self.correct_option_index is not None
            and 0 <= self.correct_option_index < len(self.options)
        )

    @property
    def correct_option(self) -> str | None:
        if not self.is_answerable:
            return None
        return self.options[self.correct_option_index]

    def option_text(self, option_index: int) -> str | None:
        """Text of an option, or None for the unanswered sentinel."""
        if 0 <= option_index < len(self.options):
            return self.options[option_index]
        return None

    @property
    def tags(self) -> tuple[str, ...]:
        return tuple(tag for tag in (self.subject, self.level) if tag)


@dataclass
class QuizActivity:
    """
    An ordered set of questions produced by the content provider.

    Immutable apart from ``answered_count`` and ``score``, which are set
    exactly once when the quiz is submitted.
    """

    id: str
    title: str
    questions: tuple[Question, ...]
    subject: str = "general"
    topic: str = "General"
    difficulty: Difficulty = Difficulty.BEGINNER
    answered_count: int | None = None
    score: int | None = None

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def is_submitted(self) -> bool:
        return self.score is not None

    @property
    def has_ground_truth(self) -> bool:
        """True if at least one question can be graded locally."""
        return any(q.is_answerable for q in self.questions)

    @property
    def unanswerable_ids(self) -> list[str]:
        return [q.id for q in self.questions if not q.is_answerable]

    def mark_submitted(self, answered_count: int, score: int) -> None:
        """Record the submission outcome on the activity (once only)."""
        if self.is_submitted:
            raise SessionStateError(f"Quiz {self.id} was already submitted")
        self.answered_count = answered_count
        self.score = score


# =============================================================================
# Puzzle
# =============================================================================

@dataclass
class Piece:
    """A puzzle piece; only ``current_position`` ever changes."""

    id: int
    correct_position: int
    current_position: int
    content: str = ""
    image_url: str | None = None

    @property
    def is_placed(self) -> bool:
        return self.current_position == self.correct_position

    @property
    def content_kind(self) -> PieceContent:
        if self.image_url:
            return PieceContent.IMAGE
        if is_single_symbol(self.content):
            return PieceContent.SYMBOL
        return PieceContent.TEXT


@dataclass
class PuzzleActivity:
    """A jigsaw-style arrangement puzzle of grid_size x grid_size pieces."""

    id: str
    title: str
    grid_size: int
    pieces: list[Piece]
    puzzle_type: PuzzleType = PuzzleType.WORD
    difficulty: PuzzleDifficulty = PuzzleDifficulty.EASY
    hint: str | None = None
    solution: str | None = None
    is_local: bool = False

    @property
    def piece_count(self) -> int:
        return self.grid_size * self.grid_size

    @property
    def correct_positions(self) -> list[int]:
        return [piece.correct_position for piece in self.pieces]

    @property
    def current_positions(self) -> list[int]:
        return [piece.current_position for piece in self.pieces]


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class ItemDetail:
    """Per-item outcome of a scored session."""

    item_id: str
    submitted: int
    expected: int | None
    is_correct: bool
    tags: tuple[str, ...] = ()
    scorable: bool = True


@dataclass(frozen=True)
class SessionResult:
    """Immutable summary of a completed session."""

    activity_id: str
    kind: ActivityKind
    score: int
    count_correct: int
    total_count: int
    elapsed_seconds: float
    attempt: int
    items: tuple[ItemDetail, ...]
    scored_locally: bool = False
    completed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def passed(self) -> bool:
        return self.total_count > 0 and self.count_correct == self.total_count

    @property
    def incorrect_items(self) -> list[ItemDetail]:
        return [item for item in self.items if item.scorable and not item.is_correct]


@dataclass(frozen=True)
class RetryDirective:
    """Advice on whether to request a focused follow-up activity."""

    should_generate_retry: bool
    activity_id: str
    kind: ActivityKind
    missed_item_ids: tuple[str, ...] = ()
    missed_tags: tuple[str, ...] = ()
    subject: str | None = None
    topic: str | None = None
    difficulty: str | None = None

    @classmethod
    def none_needed(cls, activity_id: str, kind: ActivityKind) -> RetryDirective:
        return cls(should_generate_retry=False, activity_id=activity_id, kind=kind)
