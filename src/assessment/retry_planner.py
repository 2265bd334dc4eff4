"""
Adaptive retry planner.

Any mistake at all triggers a retry request for the missed material.
The request itself is best-effort: it runs in the background and its
failure only means no "practice activity created" notice is shown.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from src.assessment.collaborators import ContentProvider
from src.assessment.errors import AssessmentError
from src.assessment.models import (
    ActivityKind,
    PuzzleActivity,
    QuizActivity,
    RetryDirective,
    SessionResult,
)
from src.assessment.normalization import normalize_quiz


def plan(
    result: SessionResult,
    activity: QuizActivity | PuzzleActivity | None = None,
) -> RetryDirective:
    """
    Decide whether a follow-up activity should be requested.

    Args:
        result: The completed session's result
        activity: The activity that was played, used for request hints

    Returns:
        RetryDirective listing every incorrect item and its tags
    """
    if result.count_correct >= result.total_count:
        return RetryDirective.none_needed(result.activity_id, result.kind)

    missed = result.incorrect_items
    tags: list[str] = []
    for item in missed:
        for tag in item.tags:
            if tag not in tags:
                tags.append(tag)

    subject = topic = difficulty = None
    if isinstance(activity, QuizActivity):
        subject, topic, difficulty = activity.subject, activity.topic, activity.difficulty.value
    elif isinstance(activity, PuzzleActivity):
        subject, difficulty = activity.puzzle_type.value, activity.difficulty.value

    return RetryDirective(
        should_generate_retry=True,
        activity_id=result.activity_id,
        kind=result.kind,
        missed_item_ids=tuple(item.item_id for item in missed),
        missed_tags=tuple(tags),
        subject=subject,
        topic=topic,
        difficulty=difficulty,
    )


class RetryDispatcher:
    """
    Fires retry-quiz requests at the content provider in the background.

    Puzzle directives are not dispatched: a puzzle is retried by
    resubmitting the same arrangement session.
    """

    def __init__(self, provider: ContentProvider | None, enabled: bool = True):
        self._provider = provider
        self.enabled = enabled
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def dispatch(self, directive: RetryDirective) -> asyncio.Task | None:
        """
        Schedule a retry request if the directive asks for one.

        Must be called from a running event loop. Never raises because of
        the provider; the returned task resolves to the new activity or None.
        """
        if not directive.should_generate_retry:
            return None
        if not self.enabled or self._provider is None:
            logger.debug(f"Retry generation skipped for {directive.activity_id} (disabled)")
            return None
        if directive.kind is not ActivityKind.QUIZ:
            return None

        task = asyncio.get_running_loop().create_task(self._generate(directive))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _generate(self, directive: RetryDirective) -> QuizActivity | None:
        logger.info(
            f"Requesting practice quiz for {directive.activity_id} "
            f"({len(directive.missed_item_ids)} missed questions)"
        )
        try:
            payload = await self._provider.generate_retry(directive)
            activity = normalize_quiz(payload)
        except AssessmentError as e:
            logger.warning(f"Practice quiz not created for {directive.activity_id}: {e}")
            return None
        except Exception as e:  # Best-effort: nothing may escape into the session
            logger.exception(f"Unexpected error creating practice quiz for {directive.activity_id}: {e}")
            return None

        logger.info(f"Practice quiz {activity.id} created with {activity.question_count} questions")
        return activity

    async def drain(self) -> None:
        """Wait for all in-flight requests (e.g. before the loop shuts down)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
