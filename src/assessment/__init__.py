"""
Assessment core: quiz and puzzle sessions, scoring, retry planning.

Components:
- models: activities, results and retry directives
- scoring: pure grading functions
- puzzle / quiz_session: interactive session state machines
- retry_planner: decides and dispatches practice requests
- recorder: result assembly and history projection
- engine: AssessmentEngine facade with injected collaborators
"""
from src.assessment.engine import AssessmentEngine, SessionOutcome
from src.assessment.errors import (
    AssessmentError,
    ContentProviderUnavailable,
    InvalidSubmission,
    MalformedActivity,
    RemoteScoringUnavailable,
    SessionStateError,
)
from src.assessment.puzzle import PuzzleBoard, PuzzleSession
from src.assessment.quiz_session import QuizSession

__all__ = [
    "AssessmentEngine",
    "AssessmentError",
    "ContentProviderUnavailable",
    "InvalidSubmission",
    "MalformedActivity",
    "PuzzleBoard",
    "PuzzleSession",
    "QuizSession",
    "RemoteScoringUnavailable",
    "SessionOutcome",
    "SessionStateError",
]
