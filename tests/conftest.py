"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests:
an in-memory Test Provider, controllable clocks and in-memory progress storage.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.assessment.errors import SessionNotResumable  # noqa: E402
from src.assessment.models import ProviderTest, Question, QuestionSet  # noqa: E402
from src.assessment.progress_store import MemoryStorage, ProgressStore  # noqa: E402
from src.assessment.schemas import BEHAVIORAL  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


BASE_NOW = datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class FrozenNow:
    """Wall clock that only moves when told to."""

    def __init__(self, start: datetime = BASE_NOW):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeMonotonic:
    """Monotonic time source for Clock."""

    def __init__(self) -> None:
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


def make_questions(count: int = 3, tpa: bool = False) -> list[Question]:
    questions = []
    for n in range(1, count + 1):
        if tpa:
            questions.append(
                Question.from_dict(
                    {
                        "id": f"Q{n}",
                        "question_text": f"Reasoning question {n}",
                        "option_a": "one",
                        "option_b": "two",
                        "option_c": "three",
                        "option_d": "four",
                        "option_e": "five",
                        "category": "Verbal Reasoning",
                        "difficulty_level": 2,
                    }
                )
            )
        else:
            questions.append(
                Question.from_dict(
                    {
                        "id": f"Q{n}",
                        "body": f"Statement {n}",
                        "max_weight": 5,
                        "category": {"id": f"C{n % 2}", "code": "H", "name": "Habits"},
                    }
                )
            )
    return questions


def make_test(
    test_id: str = "T-1",
    count: int = 3,
    time_limit: int = 600,
    status: str = "in_progress",
    expires_at: Optional[datetime] = None,
    tpa: bool = False,
) -> ProviderTest:
    return ProviderTest(
        id=test_id,
        status=status,
        expires_at=expires_at or BASE_NOW + timedelta(hours=2),
        time_limit=time_limit,
        started_at=BASE_NOW,
        questions=make_questions(count, tpa=tpa),
    )


class FakeProvider:
    """In-memory Test Provider recording every call."""

    def __init__(self, test: Optional[ProviderTest] = None, question_set_name: str = "Behavioral Set"):
        self.next_test = test or make_test()
        self.question_set = QuestionSet(
            id="QS-1",
            name=question_set_name,
            time_limit=self.next_test.time_limit,
            questions=list(self.next_test.questions),
        )
        self.tests: dict[str, ProviderTest] = {}
        self.calls: list[tuple[str, Any]] = []
        self.submissions: list[tuple[str, dict]] = []
        self.submit_errors: list[Exception] = []
        self.load_error: Optional[Exception] = None
        # When set, whether the progress slot exists at each submit call
        self.watch_store: Optional[ProgressStore] = None
        self.store_states: list[bool] = []

    def add_test(self, test: ProviderTest) -> ProviderTest:
        self.tests[test.id] = test
        return test

    async def get_active_question_set(self) -> QuestionSet:
        self.calls.append(("get_active_question_set", None))
        if self.load_error:
            raise self.load_error
        return self.question_set

    async def create_test(self, question_set_id: str, order_id: Optional[str] = None) -> ProviderTest:
        self.calls.append(("create_test", (question_set_id, order_id)))
        return self.add_test(self.next_test)

    async def get_test(self, session_id: str) -> ProviderTest:
        self.calls.append(("get_test", session_id))
        if self.load_error:
            raise self.load_error
        if session_id not in self.tests:
            raise SessionNotResumable(f"Test {session_id} not found", status_code=404)
        return self.tests[session_id]

    async def submit_answers(self, session_id: str, payload: dict) -> dict:
        self.calls.append(("submit_answers", session_id))
        self.submissions.append((session_id, payload))
        if self.watch_store is not None:
            self.store_states.append(self.watch_store.exists())
        if self.submit_errors:
            raise self.submit_errors.pop(0)
        self.tests.get(session_id, self.next_test).status = "completed"
        return {"status": "ok"}

    def call_count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


@pytest.fixture
def frozen_now():
    return FrozenNow()


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage, frozen_now):
    return ProgressStore(storage, BEHAVIORAL.storage_key, now=frozen_now)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def schema():
    return BEHAVIORAL


@pytest.fixture
def build_test():
    """Factory for ProviderTest instances."""
    return make_test


@pytest.fixture
def build_provider():
    """Factory for FakeProvider instances around a given test."""
    return FakeProvider
