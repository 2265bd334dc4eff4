"""
Typer CLI for the EduKid assessment engine.

Commands:
    edukid play-quiz          - Play a quiz (generated, fetched, or from a JSON file)
    edukid play-puzzle        - Play a puzzle (generated, fetched, or from a JSON file)
    edukid history            - Show the child's activity history
    edukid recommend          - Show the next adaptive quiz recommendation
    edukid config             - Show the active configuration

Usage:
    edukid play-quiz --file quiz.json --offline
    edukid play-quiz --subject science --difficulty beginner --count 5
    edukid play-puzzle --difficulty medium
    edukid history --kind quiz
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from config import Settings, get_settings
from src.assessment.collaborators import GenerationRequest, PuzzleRequest
from src.assessment.engine import AssessmentEngine, SessionOutcome
from src.assessment.errors import AssessmentError
from src.assessment.models import SessionStatus
from src.assessment.puzzle import PuzzleSession
from src.assessment.quiz_session import QuizSession
from src.assessment.recorder import review_wrong_answers
from src.history.store import HistoryStore
from src.integrations.content_client import ContentClient
from src.integrations.scoring_client import ScoringClient

app = typer.Typer(
    name="edukid",
    help="EduKid assessment engine: play quizzes and puzzles from the terminal",
    no_args_is_help=True,
)

console = Console()


# ========================================
# Context Builder (Dependency Injection)
# ========================================


class CLIContext:
    """
    Dependency injection container for CLI commands.

    Remote clients are only built when their URL is configured and the
    command is not running offline.
    """

    def __init__(self, offline: bool = False):
        self.settings = get_settings()
        self.offline = offline
        self._content: ContentClient | None = None
        self._scoring: ScoringClient | None = None
        self._history: HistoryStore | None = None

    @property
    def content(self) -> ContentClient | None:
        if self._content is None and not self.offline and self.settings.content_api_url:
            self._content = ContentClient.from_config(
                self.settings.content_api_url, self.settings.get_http_config()
            )
        return self._content

    @property
    def scoring(self) -> ScoringClient | None:
        if self._scoring is None and not self.offline and self.settings.scoring_api_url:
            self._scoring = ScoringClient.from_config(
                self.settings.scoring_api_url, self.settings.get_http_config()
            )
        return self._scoring

    @property
    def history(self) -> HistoryStore:
        if self._history is None:
            self._history = HistoryStore.from_settings(self.settings)
        return self._history

    def engine(self) -> AssessmentEngine:
        return AssessmentEngine(
            content_provider=self.content,
            scoring=self.scoring,
            history=self.history,
            settings=self.settings,
        )

    async def close(self) -> None:
        for client in (self._content, self._scoring):
            if client is not None:
                await client.close()
        if self._history is not None:
            self._history.close()


def _load_json(path: Path) -> dict[str, Any]:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        rprint(f"[red]Cannot read {path}: {e}[/red]")
        raise typer.Exit(code=1)


# ========================================
# Rendering
# ========================================


def _show_outcome(outcome: SessionOutcome) -> None:
    result = outcome.result
    colour = "green" if result.passed else ("yellow" if result.score >= 50 else "red")
    rprint(Panel(
        f"[bold {colour}]{result.count_correct}/{result.total_count} correct  ({result.score}%)[/bold {colour}]\n"
        f"Time: {result.elapsed_seconds:.0f}s   Attempt: {result.attempt}"
        + ("   [dim](scored offline)[/dim]" if result.scored_locally else ""),
        title="Result",
    ))


async def _show_practice(outcome: SessionOutcome) -> None:
    if outcome.retry_task is None:
        return
    practice = await outcome.practice_created()
    if practice is not None:
        rprint(f"[cyan]A practice quiz is ready: {practice.title} ({practice.question_count} questions)[/cyan]")


def _show_review(session: QuizSession) -> None:
    if session.result is None:
        return
    items = review_wrong_answers(session.activity, session.result)
    if not items:
        return
    table = Table(title="Review", show_header=True)
    table.add_column("Question", style="cyan")
    table.add_column("Your answer", style="red")
    table.add_column("Correct answer", style="green")
    table.add_column("Explanation", style="dim")
    for item in items:
        table.add_row(
            item.question_text,
            item.chosen_option or "-",
            item.correct_option or "?",
            item.explanation or "",
        )
    console.print(table)


def _render_board(session: PuzzleSession) -> None:
    board = session.board
    table = Table(show_header=False, show_lines=True)
    for _ in range(session.activity.grid_size):
        table.add_column(justify="center")
    for row in board.rows():
        cells = []
        for piece in row:
            label = f"{piece.current_position}: {piece.content or piece.id}"
            if board.selected is not None and board.pieces[board.selected] is piece:
                label = f"[reverse]{label}[/reverse]"
            cells.append(label)
        table.add_row(*cells)
    console.print(table)
    if session.activity.hint:
        rprint(f"[dim]Hint: {session.activity.hint}[/dim]")


# ========================================
# Interactive loops
# ========================================


async def _play_quiz_session(engine: AssessmentEngine, session: QuizSession) -> SessionOutcome:
    activity = session.activity
    rprint(f"\n[bold cyan]{activity.title}[/bold cyan]  ({activity.subject} / {activity.difficulty.value})")

    while session.status is SessionStatus.IN_PROGRESS and session.current_question is not None:
        question = session.current_question
        rprint(f"\n[bold]Question {session.current_index + 1}/{session.question_count}[/bold]: {question.text}")
        for i, option in enumerate(question.options, start=1):
            marker = "*" if session.current_answer == i - 1 else " "
            rprint(f"  {marker} {i}. {option}")

        choice = Prompt.ask("Answer number, b (back) or s (submit)").strip().lower()
        if choice == "b":
            session.retreat()
        elif choice == "s":
            await session.submit()
        elif choice.isdigit():
            try:
                session.select_option(int(choice) - 1)
            except AssessmentError as e:
                rprint(f"[yellow]{e}[/yellow]")
                continue
            await session.advance()
        else:
            rprint("[yellow]Type an option number, b or s[/yellow]")

    outcome = await engine.finish(session)
    _show_outcome(outcome)
    _show_review(session)
    await _show_practice(outcome)
    return outcome


async def _play_puzzle_session(engine: AssessmentEngine, session: PuzzleSession) -> SessionOutcome | None:
    rprint(f"\n[bold cyan]{session.activity.title}[/bold cyan]  (tap two cells to swap them)")
    outcome = None

    while session.status is SessionStatus.IN_PROGRESS:
        _render_board(session)
        choice = Prompt.ask("Cell number, c (check) or q (quit)").strip().lower()
        if choice == "q":
            break
        if choice == "c":
            outcome = await engine.finish(session)
            _show_outcome(outcome)
            if not outcome.result.passed:
                rprint("[yellow]Not quite, keep swapping![/yellow]")
            continue
        if choice.isdigit():
            try:
                session.select_cell(int(choice))
            except IndexError as e:
                rprint(f"[yellow]{e}[/yellow]")
        else:
            rprint("[yellow]Type a cell number, c or q[/yellow]")

    if outcome is not None and outcome.result.passed and session.activity.solution:
        rprint(f"[green]Solution: {session.activity.solution}[/green]")
    return outcome


# ========================================
# Commands
# ========================================


@app.command("play-quiz")
def play_quiz(
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Quiz JSON payload to play"),
    quiz_id: Optional[str] = typer.Option(None, "--id", help="Existing quiz to fetch"),
    subject: Optional[str] = typer.Option(None, "--subject", "-s", help="Subject of a generated quiz"),
    difficulty: str = typer.Option("beginner", "--difficulty", "-d", help="beginner, intermediate or advanced"),
    count: Optional[int] = typer.Option(None, "--count", "-n", help="Number of questions"),
    topic: str = typer.Option("general", "--topic", "-t", help="Topic of a generated quiz"),
    adaptive: bool = typer.Option(False, "--adaptive", help="Pick subject and difficulty from history"),
    age: Optional[int] = typer.Option(None, "--age", help="Child's age, for adaptive quiz length"),
    offline: bool = typer.Option(False, "--offline", help="Never contact the backend"),
) -> None:
    """
    Play a quiz in the terminal.

    Examples:
        edukid play-quiz --file quiz.json --offline
        edukid play-quiz --subject math --topic addition --count 5
        edukid play-quiz --adaptive --age 7
    """
    ctx = CLIContext(offline=offline)

    async def run() -> None:
        try:
            engine = ctx.engine()
            if file is not None:
                session = engine.open_quiz(_load_json(file))
            elif quiz_id is not None:
                session = await engine.start_quiz(quiz_id)
            else:
                if adaptive:
                    request = engine.recommend_next(ctx.history.entries(kind="quiz"), age=age)
                else:
                    request = GenerationRequest(
                        subject=subject or ctx.settings.default_subject,
                        difficulty=difficulty,
                        question_count=count or ctx.settings.default_question_count,
                        topic=topic,
                    )
                session = await engine.start_quiz(request)
            await _play_quiz_session(engine, session)
            await engine.drain()
        finally:
            await ctx.close()

    try:
        asyncio.run(run())
    except AssessmentError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


@app.command("play-puzzle")
def play_puzzle(
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Puzzle JSON payload to play"),
    puzzle_id: Optional[str] = typer.Option(None, "--id", help="Existing puzzle to fetch"),
    puzzle_type: Optional[str] = typer.Option(None, "--type", help="word, number, sequence, pattern or image"),
    difficulty: Optional[str] = typer.Option(None, "--difficulty", "-d", help="easy, medium or hard"),
    topic: Optional[str] = typer.Option(None, "--topic", "-t", help="Topic of a generated puzzle"),
    shuffle: bool = typer.Option(False, "--shuffle", help="Scramble the pieces before playing"),
    offline: bool = typer.Option(False, "--offline", help="Never contact the backend"),
) -> None:
    """
    Play a puzzle in the terminal.

    Examples:
        edukid play-puzzle --file puzzle.json --offline --shuffle
        edukid play-puzzle --type number --difficulty medium
    """
    ctx = CLIContext(offline=offline)

    async def run() -> None:
        try:
            engine = ctx.engine()
            if file is not None:
                session = engine.open_puzzle(_load_json(file))
            elif puzzle_id is not None:
                session = await engine.start_puzzle(puzzle_id)
            else:
                session = await engine.start_puzzle(
                    PuzzleRequest(puzzle_type=puzzle_type, difficulty=difficulty, topic=topic)
                )
            if shuffle:
                session.board.shuffle()
            await _play_puzzle_session(engine, session)
        finally:
            await ctx.close()

    try:
        asyncio.run(run())
    except AssessmentError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


@app.command("history")
def show_history(
    kind: Optional[str] = typer.Option(None, "--kind", "-k", help="quiz, puzzle or game"),
    child: Optional[str] = typer.Option(None, "--child", help="Child id (defaults to EDUKID_KID_ID)"),
) -> None:
    """Show the recorded activity history."""
    ctx = CLIContext(offline=True)
    try:
        entries = ctx.history.entries(child_id=child, kind=kind)
    finally:
        ctx.history.close()

    if not entries:
        rprint("[yellow]No history recorded yet[/yellow]")
        return

    table = Table(title=f"Activity History ({len(entries)})", show_header=True)
    table.add_column("When", style="dim")
    table.add_column("Kind", style="cyan")
    table.add_column("Activity")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Time", justify="right")

    for entry in entries:
        if entry.kind == "quiz":
            label = f"{entry.title or entry.activity_id} ({entry.count_correct}/{entry.total_count})"
        elif entry.kind == "puzzle":
            label = f"{entry.title or entry.activity_id} ({'solved' if entry.solved else 'unsolved'})"
        else:
            label = entry.game
        table.add_row(
            entry.recorded_at.strftime("%Y-%m-%d %H:%M"),
            entry.kind,
            label,
            f"{entry.score}%",
            f"{entry.elapsed_seconds:.0f}s",
        )
    console.print(table)


@app.command("recommend")
def recommend(
    age: Optional[int] = typer.Option(None, "--age", help="Child's age, for quiz length"),
) -> None:
    """Show what the next adaptive quiz would be."""
    ctx = CLIContext(offline=True)
    try:
        engine = ctx.engine()
        request = engine.recommend_next(ctx.history.entries(kind="quiz"), age=age)
    finally:
        ctx.history.close()

    rprint("\n[bold cyan]Next adaptive quiz[/bold cyan]")
    rprint(f"  Subject: {request.subject}")
    rprint(f"  Topic: {request.topic}")
    rprint(f"  Difficulty: {request.difficulty}")
    rprint(f"  Questions: {request.question_count}")


@app.command("config")
def show_config() -> None:
    """Show the active configuration (secrets masked)."""
    settings: Settings = get_settings()
    table = Table(title="Configuration", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    for name, value in settings.model_dump().items():
        if name == "api_token" and value:
            value = value[:4] + "..."
        table.add_row(name, "-" if value in (None, "") else str(value))
    console.print(table)


# =============================================================================
# Entry Point
# =============================================================================

def main() -> None:
    """CLI entry point."""
    settings = get_settings()

    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level if settings.log_level != "INFO" else "WARNING",
        format="<level>{message}</level>",
    )
    if settings.log_file:
        logger.add(settings.log_file, level=settings.log_level, rotation="10 MB")

    app()


if __name__ == "__main__":
    main()
