"""
Error taxonomy for assessment sessions.

Recoverable errors (remote scoring, retry generation) are handled inside
the engine through fallback paths. Unrecoverable ones propagate to the
caller as the typed exceptions below.
"""

from __future__ import annotations


class AssessmentError(Exception):
    """Base class for all assessment engine errors."""


class InvalidSubmission(AssessmentError):
    """Caller contract violation, e.g. a submission of the wrong length."""


class SessionStateError(AssessmentError):
    """An interaction arrived while the session could not accept it."""


class RemoteScoringUnavailable(AssessmentError):
    """The remote scoring service failed or returned an unusable result."""


class ContentProviderUnavailable(AssessmentError):
    """The content provider could not supply an activity."""


class MalformedActivity(AssessmentError):
    """An activity failed validation when it was loaded."""

    def __init__(self, activity_id: str, problems: list[str]):
        self.activity_id = activity_id
        self.problems = list(problems)
        detail = "; ".join(self.problems) or "invalid activity"
        super().__init__(f"Activity {activity_id} is malformed: {detail}")
