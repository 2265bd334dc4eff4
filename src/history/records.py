"""
Typed records for the activity history log.

The history is append-only. Each entry is one of a closed set of record
kinds, discriminated by ``kind``, with a stable schema.
"""
from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


def _now() -> datetime:
    return datetime.now(UTC)


class _Entry(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    child_id: str = ""
    score: int = Field(..., ge=0, le=100)
    elapsed_seconds: float = Field(0.0, ge=0)
    recorded_at: datetime = Field(default_factory=_now)


class QuizHistoryEntry(_Entry):
    """A submitted quiz."""

    kind: Literal["quiz"] = "quiz"
    activity_id: str
    title: str = ""
    subject: str = "general"
    topic: str = "General"
    difficulty: str = "beginner"
    count_correct: int = Field(..., ge=0)
    total_count: int = Field(..., ge=0)
    attempt: int = Field(1, ge=1)
    scored_locally: bool = False
    missed_item_ids: list[str] = Field(default_factory=list)


class PuzzleHistoryEntry(_Entry):
    """One submission of a puzzle arrangement."""

    kind: Literal["puzzle"] = "puzzle"
    activity_id: str
    title: str = ""
    puzzle_type: str = "word"
    difficulty: str = "easy"
    grid_size: int = Field(..., ge=0)
    solved: bool
    attempt: int = Field(1, ge=1)
    scored_locally: bool = False


class GameHistoryEntry(_Entry):
    """A round of one of the simple mini-games."""

    kind: Literal["game"] = "game"
    game: Literal["memory", "color"]
    moves: Optional[int] = Field(None, ge=0)
    rounds: Optional[int] = Field(None, ge=0)


HistoryEntry = Annotated[
    Union[QuizHistoryEntry, PuzzleHistoryEntry, GameHistoryEntry],
    Field(discriminator="kind"),
]

history_entry_adapter: TypeAdapter[HistoryEntry] = TypeAdapter(HistoryEntry)


def parse_entry(raw: str | bytes) -> HistoryEntry:
    """Parse a JSON-encoded history entry into its typed record."""
    return history_entry_adapter.validate_json(raw)
