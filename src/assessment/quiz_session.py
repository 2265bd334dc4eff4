"""
Quiz session state machine.

States: IN_PROGRESS -> SUBMITTING -> COMPLETED | FAILED.

Navigation and option selection only happen while IN_PROGRESS. ``submit``
is the only suspension point; while it runs the session is SUBMITTING and
every other interaction is rejected, which rules out double submission.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from loguru import logger

from src.assessment.collaborators import RemoteQuizScore, ScoringService
from src.assessment.errors import (
    AssessmentError,
    InvalidSubmission,
    RemoteScoringUnavailable,
    SessionStateError,
)
from src.assessment.models import (
    UNANSWERED,
    Question,
    QuizActivity,
    SessionResult,
    SessionStatus,
)
from src.assessment.recorder import build_quiz_result
from src.assessment.scoring import ScoreBreakdown, grade_quiz


class QuizSession:
    """Drives one child through one quiz."""

    def __init__(
        self,
        activity: QuizActivity,
        scoring: ScoringService | None = None,
        clock: Callable[[], float] = time.monotonic,
        attempt: int = 1,
    ):
        if activity.is_submitted:
            raise SessionStateError(f"Quiz {activity.id} has already been submitted")
        self.activity = activity
        self._scoring = scoring
        self._clock = clock
        self.attempt = attempt
        self.started_at = clock()
        self.current_index = 0
        self.selected_answers: list[int] = [UNANSWERED] * activity.question_count
        self.status = SessionStatus.IN_PROGRESS
        self.result: SessionResult | None = None
        self.error: AssessmentError | None = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def question_count(self) -> int:
        return self.activity.question_count

    @property
    def current_question(self) -> Question | None:
        if not self.activity.questions:
            return None
        return self.activity.questions[self.current_index]

    @property
    def current_answer(self) -> int:
        if not self.selected_answers:
            return UNANSWERED
        return self.selected_answers[self.current_index]

    @property
    def is_last(self) -> bool:
        return self.current_index >= self.question_count - 1

    @property
    def progress(self) -> tuple[int, int]:
        """(answered, total) question counts."""
        answered = sum(1 for a in self.selected_answers if a != UNANSWERED)
        return answered, self.question_count

    def unanswered_indices(self) -> list[int]:
        return [i for i, a in enumerate(self.selected_answers) if a == UNANSWERED]

    # ------------------------------------------------------------------
    # Interaction
    # ------------------------------------------------------------------

    def _ensure_in_progress(self) -> None:
        if self.status is SessionStatus.SUBMITTING:
            raise SessionStateError("Quiz submission already in progress")
        if self.status is not SessionStatus.IN_PROGRESS:
            raise SessionStateError(f"Quiz session is {self.status.value}")

    def select_option(self, option_index: int) -> None:
        """Record the child's choice for the current question."""
        self._ensure_in_progress()
        question = self.current_question
        if question is None:
            raise InvalidSubmission("Quiz has no questions to answer")
        if not 0 <= option_index < len(question.options):
            raise InvalidSubmission(
                f"Option {option_index} out of range for question {question.id} "
                f"({len(question.options)} options)"
            )
        self.selected_answers[self.current_index] = option_index

    async def advance(self) -> SessionResult | None:
        """
        Move to the next question; on the last question this submits.

        Returns:
            The result if the quiz was submitted, otherwise None
        """
        self._ensure_in_progress()
        if self.current_index < self.question_count - 1:
            self.current_index += 1
            return None
        return await self.submit()

    def retreat(self) -> None:
        """Move to the previous question; no-op on the first one."""
        self._ensure_in_progress()
        if self.current_index > 0:
            self.current_index -= 1

    async def submit(self) -> SessionResult:
        """
        Score the quiz and complete the session.

        Unanswered questions never block submission; they count as wrong.
        Remote scoring is tried first and local grading is the fallback.
        Only if neither works does the session end up FAILED.

        Raises:
            SessionStateError: If the session is not in progress
            RemoteScoringUnavailable: If remote and local scoring both failed
        """
        self._ensure_in_progress()
        self.status = SessionStatus.SUBMITTING
        answers = list(self.selected_answers)
        elapsed = self._clock() - self.started_at

        try:
            breakdown, scored_locally = await self._score(answers)
        except AssessmentError as e:
            self.status = SessionStatus.FAILED
            self.error = e
            logger.error(f"Quiz {self.activity.id} could not be scored: {e}")
            raise

        result = build_quiz_result(
            self.activity,
            answers,
            breakdown,
            elapsed_seconds=elapsed,
            attempt=self.attempt,
            scored_locally=scored_locally,
        )
        answered, _ = self.progress
        try:
            self.activity.mark_submitted(answered_count=answered, score=result.score)
        except SessionStateError as e:
            self.status = SessionStatus.FAILED
            self.error = e
            raise
        self.result = result
        self.status = SessionStatus.COMPLETED
        logger.info(
            f"Quiz {self.activity.id} completed: {result.count_correct}/{result.total_count} "
            f"({result.score}%){' [local]' if scored_locally else ''}"
        )
        return result

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    async def _score(self, answers: list[int]) -> tuple[ScoreBreakdown, bool]:
        if self._scoring is not None:
            try:
                remote = await self._scoring.score_quiz(self.activity, answers)
                if remote.correctness and len(remote.correctness) != len(answers):
                    raise RemoteScoringUnavailable(
                        f"Remote scorer graded {len(remote.correctness)} questions, "
                        f"quiz has {len(answers)}"
                    )
                return self._from_remote(remote, answers), False
            except RemoteScoringUnavailable as e:
                logger.warning(f"Remote scoring unavailable, grading quiz locally: {e}")

        if self.question_count > 0 and not self.activity.has_ground_truth:
            raise RemoteScoringUnavailable(
                f"Quiz {self.activity.id} cannot be scored remotely and has no local answers"
            )
        return grade_quiz(self.activity.questions, answers), True

    def _from_remote(self, remote: RemoteQuizScore, answers: list[int]) -> ScoreBreakdown:
        """
        Turn the remote verdict into a breakdown.

        Questions the remote graded one by one all count, even those with
        unusable local ground truth, and their verdicts must add up to the
        reported count. A verdict without per-question detail is only
        accepted when local grading reaches the same counts.

        Raises:
            RemoteScoringUnavailable: If the verdict contradicts itself or
                cannot be matched to individual questions
        """
        if remote.correctness:
            correctness = tuple(remote.correctness)
            if sum(correctness) != remote.count_correct or remote.total != len(correctness):
                raise RemoteScoringUnavailable(
                    f"Remote scorer reported {remote.count_correct}/{remote.total} but graded "
                    f"{sum(correctness)}/{len(correctness)} questions"
                )
            return ScoreBreakdown(
                correctness=correctness,
                count_correct=remote.count_correct,
                total=remote.total,
                score=remote.score,
                scorable=(True,) * len(correctness),
            )

        if not self.activity.has_ground_truth:
            raise RemoteScoringUnavailable(
                f"Remote scorer gave no per-question detail for quiz {self.activity.id}"
            )
        local = grade_quiz(self.activity.questions, answers)
        if (local.count_correct, local.total) != (remote.count_correct, remote.total):
            raise RemoteScoringUnavailable(
                f"Remote scorer reported {remote.count_correct}/{remote.total} without detail, "
                f"local grading found {local.count_correct}/{local.total}"
            )
        return ScoreBreakdown(
            correctness=local.correctness,
            count_correct=remote.count_correct,
            total=remote.total,
            score=remote.score,
            scorable=local.scorable,
        )
