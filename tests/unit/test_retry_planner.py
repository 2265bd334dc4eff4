"""
Unit tests for the adaptive retry planner and the background dispatcher.
"""

import pytest

from src.assessment.models import ActivityKind, ItemDetail, SessionResult
from src.assessment.normalization import normalize_quiz
from src.assessment.recorder import build_quiz_result
from src.assessment.retry_planner import RetryDispatcher, plan
from src.assessment.scoring import grade_quiz


def _quiz_result(activity, answers):
    return build_quiz_result(activity, answers, grade_quiz(activity.questions, answers), elapsed_seconds=10)


class TestPlan:
    """Tests for the retry decision."""

    def test_perfect_result_needs_no_retry(self, quiz_activity):
        directive = plan(_quiz_result(quiz_activity, [0, 1, 2, 2, 0]), quiz_activity)

        assert directive.should_generate_retry is False
        assert directive.missed_item_ids == ()

    def test_any_mistake_triggers_retry(self, quiz_activity):
        directive = plan(_quiz_result(quiz_activity, [0, 1, 2, 2, 3]), quiz_activity)

        assert directive.should_generate_retry is True
        assert directive.missed_item_ids == ("q5",)

    def test_directive_carries_every_missed_item_and_tag(self, quiz_activity):
        directive = plan(_quiz_result(quiz_activity, [0, 1, 2, 3, -1]), quiz_activity)

        assert directive.missed_item_ids == ("q4", "q5")
        assert directive.missed_tags == ("math", "beginner")
        assert directive.subject == "math"
        assert directive.topic == "counting"
        assert directive.difficulty == "beginner"
        assert directive.kind is ActivityKind.QUIZ

    def test_unscorable_questions_are_not_missed(self, make_question_payload):
        activity = normalize_quiz({
            "_id": "quiz-x",
            "title": "Mixed",
            "questions": [make_question_payload("ok", 0), make_question_payload("broken", 9)],
        })
        directive = plan(_quiz_result(activity, [1, 0]), activity)

        assert directive.missed_item_ids == ("ok",)

    def test_plan_without_activity(self):
        result = SessionResult(
            activity_id="p1",
            kind=ActivityKind.PUZZLE,
            score=0,
            count_correct=2,
            total_count=4,
            elapsed_seconds=3,
            attempt=1,
            items=(
                ItemDetail("0", 0, 0, True),
                ItemDetail("1", 2, 1, False),
                ItemDetail("2", 1, 2, False),
                ItemDetail("3", 3, 3, True),
            ),
        )

        directive = plan(result)

        assert directive.should_generate_retry is True
        assert directive.missed_item_ids == ("1", "2")
        assert directive.subject is None

    def test_empty_activity_needs_no_retry(self):
        result = SessionResult(
            activity_id="empty", kind=ActivityKind.QUIZ, score=0, count_correct=0,
            total_count=0, elapsed_seconds=0, attempt=1, items=(),
        )

        assert plan(result).should_generate_retry is False


class TestRetryDispatcher:
    """Tests for fire-and-forget retry generation."""

    @pytest.mark.asyncio
    async def test_dispatch_creates_practice_quiz(self, quiz_activity, make_content, retry_payload):
        content = make_content(retry=retry_payload)
        dispatcher = RetryDispatcher(content)
        directive = plan(_quiz_result(quiz_activity, [0, 0, 0, 0, 0]), quiz_activity)

        task = dispatcher.dispatch(directive)
        practice = await task

        assert content.retry_directives == [directive]
        assert practice.id == "quiz-retry-001"
        assert practice.question_count == 2
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_provider_failure_is_swallowed(self, quiz_activity, make_content):
        dispatcher = RetryDispatcher(make_content(fail_retry=True))
        directive = plan(_quiz_result(quiz_activity, [3, 3, 3, 3, 3]), quiz_activity)

        task = dispatcher.dispatch(directive)

        assert await task is None

    @pytest.mark.asyncio
    async def test_unexpected_error_is_swallowed(self, quiz_activity):
        class BrokenProvider:
            async def generate_retry(self, directive):
                raise RuntimeError("boom")

        dispatcher = RetryDispatcher(BrokenProvider())
        directive = plan(_quiz_result(quiz_activity, [3, 3, 3, 3, 3]), quiz_activity)

        assert await dispatcher.dispatch(directive) is None

    @pytest.mark.asyncio
    async def test_nothing_dispatched_without_mistakes(self, quiz_activity, make_content):
        content = make_content()
        dispatcher = RetryDispatcher(content)

        task = dispatcher.dispatch(plan(_quiz_result(quiz_activity, [0, 1, 2, 2, 0]), quiz_activity))

        assert task is None
        assert content.retry_directives == []

    @pytest.mark.asyncio
    async def test_disabled_dispatcher(self, quiz_activity, make_content):
        content = make_content()
        dispatcher = RetryDispatcher(content, enabled=False)

        task = dispatcher.dispatch(plan(_quiz_result(quiz_activity, [3, 3, 3, 3, 3]), quiz_activity))

        assert task is None
        assert content.retry_directives == []

    @pytest.mark.asyncio
    async def test_puzzle_directives_are_not_dispatched(self, puzzle_activity, make_content):
        from src.assessment.recorder import build_puzzle_result
        from src.assessment.scoring import grade_puzzle

        content = make_content()
        result = build_puzzle_result(puzzle_activity, grade_puzzle(puzzle_activity.pieces), 5, attempt=1)

        task = RetryDispatcher(content).dispatch(plan(result, puzzle_activity))

        assert task is None
        assert content.retry_directives == []

    @pytest.mark.asyncio
    async def test_drain_waits_for_pending(self, quiz_activity, make_content, retry_payload):
        dispatcher = RetryDispatcher(make_content(retry=retry_payload))
        dispatcher.dispatch(plan(_quiz_result(quiz_activity, [3, 3, 3, 3, 3]), quiz_activity))

        await dispatcher.drain()

        assert dispatcher.pending == 0
