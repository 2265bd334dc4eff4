"""
Activity history: typed, append-only records of finished sessions.

Components:
- records: QuizHistoryEntry, PuzzleHistoryEntry, GameHistoryEntry (tagged union)
- store: HistoryStore (SQLAlchemy) and InMemoryHistory
"""
from src.history.records import (
    GameHistoryEntry,
    HistoryEntry,
    PuzzleHistoryEntry,
    QuizHistoryEntry,
    parse_entry,
)

__all__ = [
    "GameHistoryEntry",
    "HistoryEntry",
    "PuzzleHistoryEntry",
    "QuizHistoryEntry",
    "parse_entry",
]
