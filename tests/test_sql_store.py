"""Tests for the SQLAlchemy compare store against SQLite."""
import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from mindpair.database import Base
from mindpair.errors import (
    ConflictError,
    ExpiredError,
    NotFoundError,
    ResourceExhaustedError,
    SupersededError,
    TransientStoreError,
)
from mindpair.models import ScoreBand
from mindpair.services.attempt_service import AttemptService
from mindpair.services.scoring_service import DEFAULT_SCORE_BANDS
from mindpair.services.session_service import SessionResolver
from mindpair.services.sql_store import SqlCompareStore
from mindpair.services.token_service import CompareTokenService, generate_token

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.execute(ScoreBand.__table__.insert(), [dict(b) for b in DEFAULT_SCORE_BANDS])
    yield engine
    await engine.dispose()


@pytest.fixture
def sql_store(engine):
    return SqlCompareStore(engine)


def _factory(*tokens):
    pool = iter(tokens)
    return lambda: next(pool)


async def _subject(store):
    row = await store.create_attempt("rumination", now=NOW)
    return row["id"]


class TestAttempts:
    @pytest.mark.asyncio
    async def test_lifecycle(self, sql_store):
        row = await sql_store.create_attempt(
            "rumination", "p-1", {"first_name": "Ada"}, now=NOW
        )
        uuid.UUID(row["id"])
        assert row["status"] == "started"
        assert row["first_name"] == "Ada"
        assert row["created_at"] == NOW

        row = await sql_store.record_answers(row["id"], [1] * 12)
        assert row["status"] == "in_progress"
        assert row["answers"] == [1] * 12

        done = await sql_store.complete_attempt(
            row["id"], 12, {"stickiness": 1.0}, 2, now=NOW
        )
        assert done["status"] == "completed"
        assert done["score_band_id"] == 2
        assert done["dimension_scores"] == {"stickiness": 1.0}

        again = await sql_store.complete_attempt(
            row["id"], 40, {"stickiness": 4.0}, 6, now=NOW + timedelta(hours=1)
        )
        assert again == done

    @pytest.mark.asyncio
    async def test_unknown_attempt(self, sql_store):
        assert await sql_store.read_attempt(str(uuid.uuid4())) is None
        with pytest.raises(NotFoundError):
            await sql_store.record_answers(str(uuid.uuid4()), [0] * 12)

    @pytest.mark.asyncio
    async def test_score_bands_in_id_order(self, sql_store):
        bands = await sql_store.list_score_bands()
        assert [b["id"] for b in bands] == [1, 2, 3, 4, 5, 6]
        assert bands[-1]["max_score"] == 48

    @pytest.mark.asyncio
    async def test_attempt_service_over_sql(self, sql_store, settings, answers_a):
        service = AttemptService(sql_store, clock=lambda: NOW, settings=settings)
        result = await service.submit_answers(answers_a)
        assert result["score_band_id"] == 4
        attempt = await service.get_attempt(result["attempt_id"])
        assert attempt.total_score == 25
        assert attempt.completed_at == NOW


class TestPendingTokens:
    @pytest.mark.asyncio
    async def test_create_then_reuse(self, sql_store):
        subject = await _subject(sql_store)
        row, reused = await sql_store.create_or_reuse_pending_token(
            subject, 60, now=NOW, token_factory=_factory("a" * 64), max_attempts=3
        )
        assert reused is False
        assert row["token"] == "a" * 64
        assert row["subject_attempt_id"] == subject
        assert row["expires_at"] == NOW + timedelta(minutes=60)

        again, reused = await sql_store.create_or_reuse_pending_token(
            subject, 60, now=NOW, token_factory=_factory("b" * 64), max_attempts=3
        )
        assert reused is True
        assert again["token"] == "a" * 64

    @pytest.mark.asyncio
    async def test_expired_pending_row_is_retired(self, sql_store):
        subject = await _subject(sql_store)
        await sql_store.create_or_reuse_pending_token(
            subject, 60, now=NOW, token_factory=_factory("a" * 64), max_attempts=3
        )
        later = NOW + timedelta(minutes=61)
        row, reused = await sql_store.create_or_reuse_pending_token(
            subject, 60, now=later, token_factory=_factory("b" * 64), max_attempts=3
        )
        assert reused is False
        assert row["token"] == "b" * 64
        old = await sql_store.read_token_row("a" * 64)
        assert old["status"] == "superseded"

    @pytest.mark.asyncio
    async def test_collision_is_retried(self, sql_store):
        first, second = await _subject(sql_store), await _subject(sql_store)
        await sql_store.create_or_reuse_pending_token(
            first, 60, now=NOW, token_factory=_factory("a" * 64), max_attempts=3
        )
        row, reused = await sql_store.create_or_reuse_pending_token(
            second, 60, now=NOW, token_factory=_factory("a" * 64, "c" * 64), max_attempts=3
        )
        assert reused is False
        assert row["token"] == "c" * 64
        assert row["subject_attempt_id"] == second

    @pytest.mark.asyncio
    async def test_collisions_exhaust(self, sql_store):
        first, second = await _subject(sql_store), await _subject(sql_store)
        await sql_store.create_or_reuse_pending_token(
            first, 60, now=NOW, token_factory=_factory("a" * 64), max_attempts=3
        )
        with pytest.raises(ResourceExhaustedError):
            await sql_store.create_or_reuse_pending_token(
                second, 60, now=NOW, token_factory=lambda: "a" * 64, max_attempts=3
            )

    @pytest.mark.asyncio
    async def test_supersede_and_create(self, sql_store):
        subject = await _subject(sql_store)
        await sql_store.create_or_reuse_pending_token(
            subject, 60, now=NOW, token_factory=_factory("a" * 64), max_attempts=3
        )
        row, superseded = await sql_store.supersede_and_create_token(
            subject, 60, now=NOW, token_factory=_factory("b" * 64), max_attempts=3
        )
        assert row["token"] == "b" * 64
        assert row["status"] == "pending"
        assert superseded == ["a" * 64]
        assert (await sql_store.read_token_row("a" * 64))["status"] == "superseded"


class TestCompleteToken:
    @pytest_asyncio.fixture
    async def pending(self, sql_store):
        subject = await _subject(sql_store)
        row, _ = await sql_store.create_or_reuse_pending_token(
            subject, 60, now=NOW, token_factory=_factory("a" * 64), max_attempts=3
        )
        return row

    @pytest.mark.asyncio
    async def test_complete_and_repeat(self, sql_store, pending):
        paired = str(uuid.uuid4())
        row, already = await sql_store.complete_token(pending["token"], paired, now=NOW)
        assert already is False
        assert row["status"] == "completed"
        assert row["paired_attempt_id"] == paired
        assert row["completed_at"] == NOW

        row, already = await sql_store.complete_token(
            pending["token"], paired.upper(), now=NOW + timedelta(minutes=1)
        )
        assert already is True
        assert row["completed_at"] == NOW

    @pytest.mark.asyncio
    async def test_other_paired_attempt_conflicts(self, sql_store, pending):
        await sql_store.complete_token(pending["token"], str(uuid.uuid4()), now=NOW)
        with pytest.raises(ConflictError):
            await sql_store.complete_token(pending["token"], str(uuid.uuid4()), now=NOW)

    @pytest.mark.asyncio
    async def test_expired(self, sql_store, pending):
        with pytest.raises(ExpiredError):
            await sql_store.complete_token(
                pending["token"], str(uuid.uuid4()), now=NOW + timedelta(minutes=61)
            )
        assert (await sql_store.read_token_row(pending["token"]))["status"] == "pending"

    @pytest.mark.asyncio
    async def test_superseded(self, sql_store, pending):
        await sql_store.supersede_and_create_token(
            pending["subject_attempt_id"], 60, now=NOW,
            token_factory=_factory("b" * 64), max_attempts=3,
        )
        with pytest.raises(SupersededError):
            await sql_store.complete_token(pending["token"], str(uuid.uuid4()), now=NOW)

    @pytest.mark.asyncio
    async def test_unknown(self, sql_store):
        with pytest.raises(NotFoundError):
            await sql_store.complete_token("f" * 64, str(uuid.uuid4()), now=NOW)


class TestEndToEndOverSql:
    @pytest.mark.asyncio
    async def test_invite_flow(self, sql_store, settings, answers_a, answers_b):
        attempts = AttemptService(sql_store, clock=lambda: NOW, settings=settings)
        tokens = CompareTokenService(sql_store, clock=lambda: NOW, settings=settings)
        sessions = SessionResolver(tokens)

        subject = await attempts.submit_answers(answers_a)
        link = await tokens.get_or_create_pending_token(subject["attempt_id"])
        paired = await attempts.submit_answers(answers_b)
        await tokens.complete_token(link["token"], paired["attempt_id"])

        view = await sessions.resolve_session(link["token"])
        assert view["status"] == "completed"
        assert view["comparison"]["subject_score"] == 25
        assert view["comparison"]["paired_score"] == 19


@pytest_asyncio.fixture
async def file_store(tmp_path):
    """Store over a file database with a real connection pool, so each
    concurrent caller gets its own connection and SQLite locking applies."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'race.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield SqlCompareStore(engine)
    await engine.dispose()


class TestConcurrentWriters:
    @pytest.mark.asyncio
    async def test_one_pending_token_per_subject(self, file_store):
        subject = await _subject(file_store)

        results = await asyncio.gather(
            *(
                file_store.create_or_reuse_pending_token(
                    subject, 60, now=NOW, token_factory=generate_token, max_attempts=3
                )
                for _ in range(8)
            )
        )

        created = [row for row, reused in results if not reused]
        assert len(created) == 1
        assert {row["token"] for row, _ in results} == {created[0]["token"]}

    @pytest.mark.asyncio
    async def test_one_winner_among_competing_pairings(self, file_store):
        subject = await _subject(file_store)
        pending, _ = await file_store.create_or_reuse_pending_token(
            subject, 60, now=NOW, token_factory=generate_token, max_attempts=3
        )
        paired_ids = [str(uuid.uuid4()) for _ in range(8)]

        results = await asyncio.gather(
            *(
                file_store.complete_token(pending["token"], paired, now=NOW)
                for paired in paired_ids
            ),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, BaseException)]
        losers = [r for r in results if isinstance(r, BaseException)]
        assert len(winners) == 1
        row, already = winners[0]
        assert already is False
        assert row["paired_attempt_id"] in paired_ids
        assert len(losers) == 7
        assert all(isinstance(exc, ConflictError) for exc in losers)

        stored = await file_store.read_token_row(pending["token"])
        assert stored["status"] == "completed"
        assert stored["paired_attempt_id"] == row["paired_attempt_id"]


class TestConnectionFailures:
    @pytest.mark.asyncio
    async def test_unreachable_database_is_transient(self, tmp_path):
        missing = tmp_path / "no-such-dir" / "mindpair.db"
        engine = create_async_engine(f"sqlite+aiosqlite:///{missing}")
        store = SqlCompareStore(engine)
        try:
            with pytest.raises(TransientStoreError):
                await store.read_token_row("a" * 64)
        finally:
            await engine.dispose()
