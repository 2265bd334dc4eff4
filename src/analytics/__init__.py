"""Performance analytics and next-quiz recommendations."""
from src.analytics.performance import (
    PerformanceAnalytics,
    PerformanceTrend,
    QuizSummary,
    analyze_performance,
    question_count,
)

__all__ = [
    "PerformanceAnalytics",
    "PerformanceTrend",
    "QuizSummary",
    "analyze_performance",
    "question_count",
]
