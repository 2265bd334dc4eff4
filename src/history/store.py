"""
Append-only activity history.

The engine only ever appends here; reading is for the parent-facing
dashboards and the adaptive recommender.
"""
from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime
from typing import Literal, Optional

from loguru import logger
from sqlalchemy import DateTime, Integer, String, Text, create_engine, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from config import Settings
from src.assessment.models import PuzzleActivity, QuizActivity, SessionResult
from src.assessment.recorder import to_history_entry
from src.history.records import GameHistoryEntry, HistoryEntry, QuizHistoryEntry, parse_entry


class Base(DeclarativeBase):
    pass


class HistoryRow(Base):
    """One serialized history entry."""

    __tablename__ = "activity_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    child_id: Mapped[str] = mapped_column(String(64), index=True, default="")
    kind: Mapped[str] = mapped_column(String(16), index=True)
    activity_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    score: Mapped[int] = mapped_column(Integer)
    payload: Mapped[str] = mapped_column(Text)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


def _is_memory_url(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


class HistoryStore:
    """SQLAlchemy-backed history log."""

    def __init__(self, database_url: str, child_id: str = "", echo: bool = False):
        self.child_id = child_id
        engine_kwargs: dict = {"echo": echo, "pool_pre_ping": True}
        if _is_memory_url(database_url):
            engine_kwargs.update(
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        self.engine = create_engine(database_url, **engine_kwargs)
        Base.metadata.create_all(bind=self.engine)
        self._session_factory = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> HistoryStore:
        return cls(
            settings.history_database_url,
            child_id=settings.kid_id,
            echo=settings.log_level == "DEBUG",
        )

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:  # Intentionally broad - rollback on any error before re-raising
            session.rollback()
            raise
        finally:
            session.close()

    def append(self, entry: HistoryEntry) -> None:
        """Append one entry to the log."""
        with self.session_scope() as session:
            session.add(HistoryRow(
                child_id=entry.child_id or self.child_id,
                kind=entry.kind,
                activity_id=getattr(entry, "activity_id", None),
                score=entry.score,
                payload=entry.model_dump_json(),
                recorded_at=entry.recorded_at,
            ))
        logger.debug(f"History: appended {entry.kind} entry (score {entry.score})")

    def append_result(
        self, result: SessionResult, activity: QuizActivity | PuzzleActivity
    ) -> None:
        self.append(to_history_entry(result, activity, self.child_id))

    def record_game(
        self,
        game: Literal["memory", "color"],
        score: int,
        elapsed_seconds: float,
        moves: int | None = None,
        rounds: int | None = None,
    ) -> None:
        """Append a mini-game round."""
        self.append(GameHistoryEntry(
            child_id=self.child_id,
            game=game,
            score=score,
            elapsed_seconds=elapsed_seconds,
            moves=moves,
            rounds=rounds,
        ))

    def entries(self, child_id: str | None = None, kind: str | None = None) -> list[HistoryEntry]:
        """All entries for a child, oldest first."""
        query = select(HistoryRow.payload).where(
            HistoryRow.child_id == (self.child_id if child_id is None else child_id)
        )
        if kind:
            query = query.where(HistoryRow.kind == kind)
        query = query.order_by(HistoryRow.id)
        with self.session_scope() as session:
            payloads = session.scalars(query).all()
        return [parse_entry(payload) for payload in payloads]

    def quiz_entries(self, child_id: str | None = None) -> list[QuizHistoryEntry]:
        return [e for e in self.entries(child_id, kind="quiz") if isinstance(e, QuizHistoryEntry)]

    def close(self) -> None:
        self.engine.dispose()


class InMemoryHistory:
    """History log kept in a list, for offline play and tests."""

    def __init__(self, child_id: str = ""):
        self.child_id = child_id
        self._entries: list[HistoryEntry] = []

    def append(self, entry: HistoryEntry) -> None:
        self._entries.append(entry)

    def append_result(
        self, result: SessionResult, activity: QuizActivity | PuzzleActivity
    ) -> None:
        self.append(to_history_entry(result, activity, self.child_id))

    def entries(self, child_id: str | None = None, kind: str | None = None) -> list[HistoryEntry]:
        wanted = self.child_id if child_id is None else child_id
        return [
            e for e in self._entries
            if e.child_id == wanted and (kind is None or e.kind == kind)
        ]

    def quiz_entries(self, child_id: str | None = None) -> list[QuizHistoryEntry]:
        return [e for e in self.entries(child_id, kind="quiz") if isinstance(e, QuizHistoryEntry)]
