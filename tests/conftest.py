"""Shared pytest fixtures for MindPair tests."""
from datetime import datetime, timedelta, timezone

import pytest

from mindpair.config import Settings
from mindpair.services.attempt_service import AttemptService
from mindpair.services.comparison_service import ComparisonService
from mindpair.services.observer import CompareObserver
from mindpair.services.scoring_service import DEFAULT_SCORE_BANDS
from mindpair.services.session_service import SessionResolver
from mindpair.services.store import InMemoryCompareStore
from mindpair.services.token_service import CompareTokenService


class FakeClock:
    """Settable UTC clock; call it to read the current time."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingObserver(CompareObserver):
    def __init__(self):
        self.events = []

    def invite_created(self, subject_attempt_id, token, reused):
        self.events.append(("created", subject_attempt_id, token, reused))

    def invite_superseded(self, subject_attempt_id, token):
        self.events.append(("superseded", subject_attempt_id, token))

    def invite_completed(self, token, paired_attempt_id, already_completed):
        self.events.append(("completed", token, paired_attempt_id, already_completed))

    def invite_resolved(self, token, status):
        self.events.append(("resolved", token, status))


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        STORE_BACKEND="memory",
        STORE_TIMEOUT_SECONDS=1.0,
        STORE_RETRY_ATTEMPTS=3,
        STORE_RETRY_MAX_WAIT_SECONDS=0,
        COMPARE_TOKEN_TTL_MINUTES=1440,
        TOKEN_GENERATION_MAX_ATTEMPTS=5,
        PUBLIC_BASE_URL="https://mindpair.test/",
    )


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def memory_store():
    return InMemoryCompareStore(score_bands=DEFAULT_SCORE_BANDS)


@pytest.fixture
def token_service(memory_store, clock, observer, settings):
    return CompareTokenService(
        memory_store, clock=clock, observer=observer, settings=settings
    )


@pytest.fixture
def attempt_service(memory_store, clock, settings):
    return AttemptService(memory_store, clock=clock, settings=settings)


@pytest.fixture
def session_resolver(token_service):
    return SessionResolver(token_service, ComparisonService())


@pytest.fixture
def comparison_service():
    return ComparisonService()


@pytest.fixture
def answers_a():
    """Mixed answer vector: total 25, dimensions 0.5 / 2.5 / 3.3 / 0.5."""
    return [1, 2, 3, 4, 0, 1, 2, 3, 4, 0, 1, 2]


@pytest.fixture
def answers_b():
    return [2, 2, 1, 1, 3, 1, 1, 2, 0, 2, 3, 1]
