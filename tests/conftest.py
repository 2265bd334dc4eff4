"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from src.assessment.errors import ContentProviderUnavailable, RemoteScoringUnavailable  # noqa: E402
from src.assessment.normalization import normalize_puzzle, normalize_quiz  # noqa: E402
from src.integrations.schemas import QuizPayload  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


# ========================================
# Fakes for the engine's collaborators
# ========================================


class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeScoring:
    """Scoring service returning canned answers, or failing on demand."""

    def __init__(self, quiz_score=None, puzzle_score=None, fail: bool = False):
        self.quiz_score = quiz_score
        self.puzzle_score = puzzle_score
        self.fail = fail
        self.quiz_calls = []
        self.puzzle_calls = []

    async def score_quiz(self, activity, answers):
        self.quiz_calls.append((activity.id, list(answers)))
        if self.fail or self.quiz_score is None:
            raise RemoteScoringUnavailable("scoring service down")
        return self.quiz_score

    async def score_puzzle(self, activity, positions, time_spent):
        self.puzzle_calls.append((activity.id, list(positions), time_spent))
        if self.fail or self.puzzle_score is None:
            raise RemoteScoringUnavailable("scoring service down")
        return self.puzzle_score


class FakeContent:
    """Content provider serving fixed payloads."""

    def __init__(self, quiz=None, puzzle=None, retry=None, fail: bool = False, fail_retry: bool = False):
        self.quiz = quiz
        self.puzzle = puzzle
        self.retry = retry
        self.fail = fail
        self.fail_retry = fail_retry
        self.generation_requests = []
        self.retry_directives = []

    async def fetch_quiz(self, quiz_id):
        if self.fail:
            raise ContentProviderUnavailable("content provider down")
        return self.quiz

    async def generate_quiz(self, request):
        self.generation_requests.append(request)
        if self.fail:
            raise ContentProviderUnavailable("content provider down")
        return self.quiz

    async def generate_retry(self, directive):
        self.retry_directives.append(directive)
        if self.fail_retry:
            raise ContentProviderUnavailable("retry generation failed")
        return self.retry

    async def fetch_puzzle(self, puzzle_id):
        if self.fail:
            raise ContentProviderUnavailable("content provider down")
        return self.puzzle

    async def generate_puzzle(self, request):
        self.generation_requests.append(request)
        if self.fail:
            raise ContentProviderUnavailable("content provider down")
        return self.puzzle


# ========================================
# Payload fixtures
# ========================================


def make_question(qid, correct, options=("A", "B", "C", "D"), **extra):
    return {
        "_id": qid,
        "questionText": f"Question {qid}?",
        "options": list(options),
        "correctAnswerIndex": correct,
        "explanation": f"Because of {qid}",
        "type": "math",
        "level": "beginner",
        **extra,
    }


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def quiz_payload():
    """Five-question quiz with correct indices [0, 1, 2, 2, 0]."""
    return {
        "_id": "quiz-001",
        "title": "Math - Counting Quiz",
        "subject": "math",
        "topic": "counting",
        "difficulty": "beginner",
        "questions": [
            make_question(f"q{i + 1}", correct)
            for i, correct in enumerate([0, 1, 2, 2, 0])
        ],
    }


@pytest.fixture
def quiz_activity(quiz_payload):
    return normalize_quiz(quiz_payload)


@pytest.fixture
def retry_payload():
    """Practice quiz returned by the content provider after mistakes."""
    return QuizPayload.model_validate({
        "_id": "quiz-retry-001",
        "title": "Math - Counting Practice Quiz",
        "questions": [make_question("r1", 1), make_question("r2", 3)],
    })


@pytest.fixture
def puzzle_payload():
    """2x2 puzzle with every piece out of place."""
    return {
        "_id": "puzzle-001",
        "title": "Spell CATS",
        "type": "word",
        "difficulty": "easy",
        "gridSize": 2,
        "hint": "A pet that says meow",
        "solution": "CATS",
        "pieces": [
            {"id": 0, "correctPosition": 0, "currentPosition": 1, "content": "C"},
            {"id": 1, "correctPosition": 1, "currentPosition": 0, "content": "A"},
            {"id": 2, "correctPosition": 2, "currentPosition": 3, "content": "T"},
            {"id": 3, "correctPosition": 3, "currentPosition": 2, "content": "S"},
        ],
    }


@pytest.fixture
def puzzle_activity(puzzle_payload):
    return normalize_puzzle(puzzle_payload)


@pytest.fixture
def solved_puzzle_payload(puzzle_payload):
    payload = dict(puzzle_payload)
    payload["pieces"] = [
        {**piece, "currentPosition": piece["correctPosition"]}
        for piece in puzzle_payload["pieces"]
    ]
    return payload


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        history_database_url="sqlite://",
        kid_id="kid-1",
        parent_id="parent-1",
        retry_generation_enabled=True,
        default_question_count=5,
    )


@pytest.fixture
def make_scoring():
    """Build a FakeScoring: make_scoring(quiz_score=..., puzzle_score=..., fail=...)."""
    return FakeScoring


@pytest.fixture
def make_content():
    """Build a FakeContent: make_content(quiz=..., puzzle=..., retry=..., fail=...)."""
    return FakeContent


@pytest.fixture
def make_question_payload():
    """Build a raw question dict: make_question_payload("q1", correct_index)."""
    return make_question
