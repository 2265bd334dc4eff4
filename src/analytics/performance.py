"""
Child performance analytics.

Summarises quiz history per subject and topic, detects the score trend,
and recommends the subject, topic, difficulty and length of the next
adaptive quiz.
"""
from __future__ import annotations

import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from src.history.records import QuizHistoryEntry

SUBJECT_CATALOGUE = ("math", "science", "english", "history", "geography")

TREND_WINDOW = 3
TREND_THRESHOLD = 10.0
IMPROVEMENT_THRESHOLD = 5.0
NOVICE_QUIZ_LIMIT = 3

WEAK_FOCUS_PROBABILITY = 0.7
STRONG_FOCUS_PROBABILITY = 0.67


class PerformanceTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"
    INSUFFICIENT_DATA = "insufficient_data"


@dataclass(frozen=True)
class QuizSummary:
    """One quiz as seen by the analytics: where it was and how it went."""

    subject: str
    topic: str
    score: float
    attempted: bool = True

    @classmethod
    def from_entry(cls, entry: QuizHistoryEntry) -> QuizSummary:
        return cls(
            subject=entry.subject,
            topic=entry.topic,
            score=float(entry.score),
            attempted=entry.total_count > 0,
        )


@dataclass(frozen=True)
class TopicPerformance:
    topic: str
    average_score: float
    attempts: int


@dataclass(frozen=True)
class SubjectPerformance:
    subject: str
    average_score: float
    quizzes_taken: int
    last_score: float | None
    topics: tuple[TopicPerformance, ...] = field(default_factory=tuple)  # weakest first


@dataclass(frozen=True)
class PerformanceAnalytics:
    average_score: float
    subjects: tuple[SubjectPerformance, ...]
    strong_subjects: tuple[SubjectPerformance, ...]
    weak_subjects: tuple[SubjectPerformance, ...]
    trend: PerformanceTrend
    recent_improvement: bool
    recommended_difficulty: str
    recommended_subject: str
    recommended_topic: str
    total_quizzes: int


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def analyze_subjects(summaries: Sequence[QuizSummary]) -> list[SubjectPerformance]:
    """Per-subject performance, weakest subject first."""
    by_subject: dict[str, list[QuizSummary]] = {}
    for summary in summaries:
        by_subject.setdefault(summary.subject, []).append(summary)

    subjects = []
    for subject, quizzes in by_subject.items():
        by_topic: dict[str, list[float]] = {}
        for quiz in quizzes:
            by_topic.setdefault(quiz.topic, []).append(quiz.score)
        topics = sorted(
            (TopicPerformance(topic, _mean(scores), len(scores)) for topic, scores in by_topic.items()),
            key=lambda t: t.average_score,
        )
        subjects.append(SubjectPerformance(
            subject=subject,
            average_score=_mean([q.score for q in quizzes]),
            quizzes_taken=len(quizzes),
            last_score=quizzes[-1].score,
            topics=tuple(topics),
        ))
    return sorted(subjects, key=lambda s: s.average_score)


def determine_trend(scores: Sequence[float]) -> PerformanceTrend:
    """Compare the first and last of the most recent three scores."""
    if len(scores) < TREND_WINDOW:
        return PerformanceTrend.INSUFFICIENT_DATA
    recent = scores[-TREND_WINDOW:]
    difference = recent[-1] - recent[0]
    if difference > TREND_THRESHOLD:
        return PerformanceTrend.IMPROVING
    if difference < -TREND_THRESHOLD:
        return PerformanceTrend.DECLINING
    return PerformanceTrend.STABLE


def detect_recent_improvement(scores: Sequence[float]) -> bool:
    if len(scores) < 2:
        return False
    return scores[-1] > scores[-2] + IMPROVEMENT_THRESHOLD


def determine_difficulty(average_score: float, trend: PerformanceTrend, total_quizzes: int) -> str:
    """
    Pick the next difficulty level.

    Children with three quizzes or fewer always start at beginner.
    """
    if total_quizzes <= NOVICE_QUIZ_LIMIT:
        return "beginner"
    improving = trend is PerformanceTrend.IMPROVING
    if average_score >= 80:
        return "advanced" if improving else "intermediate"
    if average_score >= 60:
        return "intermediate" if improving else "beginner"
    return "beginner"


def recommend_topic(
    weak_subjects: Sequence[SubjectPerformance],
    strong_subjects: Sequence[SubjectPerformance],
    subjects: Sequence[SubjectPerformance],
    rng: random.Random | None = None,
) -> tuple[str, str]:
    """
    Choose (subject, topic) for the next quiz.

    Mostly drills the weakest topic of the weakest subject, sometimes
    reinforces the strongest subject, and otherwise introduces a subject
    the child has not tried yet.
    """
    rng = rng or random.Random()

    if rng.random() < WEAK_FOCUS_PROBABILITY and weak_subjects:
        weakest = weak_subjects[0]
        topic = weakest.topics[0].topic if weakest.topics else "general"
        logger.debug(f"Recommendation: focus on weak subject {weakest.subject} ({topic})")
        return weakest.subject, topic

    if rng.random() < STRONG_FOCUS_PROBABILITY and strong_subjects:
        strongest = strong_subjects[0]
        topic = strongest.topics[-1].topic if strongest.topics else "general"
        logger.debug(f"Recommendation: reinforce {strongest.subject} ({topic})")
        return strongest.subject, topic

    tried = {s.subject for s in subjects}
    untried = [s for s in SUBJECT_CATALOGUE if s not in tried]
    if untried:
        subject = rng.choice(untried)
        logger.debug(f"Recommendation: introduce {subject}")
        return subject, "introduction"

    return "math", "general"


def question_count(age: int, difficulty: str) -> int:
    """Quiz length for a child's age and the chosen difficulty."""
    if age <= 5:
        base = 5
    elif age <= 8:
        base = 8
    elif age <= 12:
        base = 10
    else:
        base = 12
    return base + {"intermediate": 2, "advanced": 4}.get(difficulty, 0)


def analyze_performance(
    summaries: Iterable[QuizSummary],
    rng: random.Random | None = None,
) -> PerformanceAnalytics:
    """
    Analyze a child's quiz history, oldest quiz first.

    Args:
        summaries: Quiz summaries in chronological order
        rng: Random source for the recommendation strategy

    Returns:
        PerformanceAnalytics with recommendations for the next quiz
    """
    summaries = list(summaries)
    if not summaries:
        return PerformanceAnalytics(
            average_score=0.0,
            subjects=(),
            strong_subjects=(),
            weak_subjects=(),
            trend=PerformanceTrend.INSUFFICIENT_DATA,
            recent_improvement=False,
            recommended_difficulty="beginner",
            recommended_subject="math",
            recommended_topic="counting",
            total_quizzes=0,
        )

    attempted = [s for s in summaries if s.attempted]
    scores = [s.score for s in attempted]

    subjects = analyze_subjects(attempted)
    by_strength = sorted(subjects, key=lambda s: s.average_score, reverse=True)
    strong = tuple(by_strength[:2])
    weak = tuple(subjects[:2])

    trend = determine_trend(scores)
    average = _mean(scores)
    difficulty = determine_difficulty(average, trend, len(attempted))
    subject, topic = recommend_topic(weak, strong, subjects, rng)

    logger.info(
        f"Performance: {len(attempted)} quizzes, average {average:.1f}%, trend {trend.value}; "
        f"next {subject}/{topic} ({difficulty})"
    )
    return PerformanceAnalytics(
        average_score=average,
        subjects=tuple(subjects),
        strong_subjects=strong,
        weak_subjects=weak,
        trend=trend,
        recent_improvement=detect_recent_improvement(scores),
        recommended_difficulty=difficulty,
        recommended_subject=subject,
        recommended_topic=topic,
        total_quizzes=len(summaries),
    )
