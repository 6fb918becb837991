"""Tests for the compare token lifecycle over the in-process store."""
import asyncio
import uuid
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from mindpair.errors import (
    ConflictError,
    ExpiredError,
    NotFoundError,
    ResourceExhaustedError,
    StoreDataError,
    SupersededError,
    TransientStoreError,
    ValidationError,
)
from mindpair.services.observer import CompareObserver
from mindpair.services.token_service import (
    CompareTokenService,
    normalize_attempt_id,
    normalize_token,
)


@pytest.fixture
def subject_id():
    return str(uuid.uuid4())


@pytest.fixture
def paired_id():
    return str(uuid.uuid4())


class TestInputValidation:
    def test_token_is_trimmed(self):
        assert normalize_token("  abc123\n") == "abc123"

    @pytest.mark.parametrize("raw", ["", "   ", "abc/../def", "a" * 129, None])
    def test_bad_tokens_rejected(self, raw):
        with pytest.raises(ValidationError):
            normalize_token(raw)

    def test_attempt_id_must_be_uuid(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize_attempt_id("not-a-uuid")
        assert exc_info.value.constraint == "not_a_uuid"

    def test_attempt_id_is_canonicalised(self):
        raw = "6F9619FF-8B86-D011-B42D-00C04FC964FF"
        assert normalize_attempt_id(raw) == raw.lower()


class TestGetOrCreatePendingToken:
    """Tests for the idempotent create path."""

    @pytest.mark.asyncio
    async def test_creates_pending_token(self, token_service, subject_id, clock):
        link = await token_service.get_or_create_pending_token(subject_id)

        assert len(link["token"]) == 64
        int(link["token"], 16)
        assert link["status"] == "pending"
        assert link["reused"] is False
        assert link["subject_attempt_id"] == subject_id
        assert link["expires_at"] == clock.now + timedelta(minutes=1440)
        assert link["share_url"] == f"https://mindpair.test/compare/invite/{link['token']}"

    @pytest.mark.asyncio
    async def test_second_call_returns_same_token(self, token_service, subject_id):
        first = await token_service.get_or_create_pending_token(subject_id)
        second = await token_service.get_or_create_pending_token(subject_id)
        assert second["token"] == first["token"]
        assert second["reused"] is True
        assert second["expires_at"] == first["expires_at"]

    @pytest.mark.asyncio
    async def test_expired_pending_token_is_replaced(
        self, token_service, memory_store, subject_id, clock
    ):
        old = await token_service.get_or_create_pending_token(subject_id)
        clock.advance(minutes=1441)

        new = await token_service.get_or_create_pending_token(subject_id)

        assert new["token"] != old["token"]
        assert new["reused"] is False
        assert new["expires_at"] > clock.now
        assert memory_store.tokens[old["token"]]["status"] == "superseded"
        pending = [r for r in memory_store.tokens.values() if r["status"] == "pending"]
        assert len(pending) == 1

    @pytest.mark.asyncio
    async def test_custom_ttl(self, token_service, subject_id, clock):
        link = await token_service.get_or_create_pending_token(subject_id, ttl_minutes=5)
        assert link["expires_at"] == clock.now + timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_invalid_ttl_rejected(self, token_service, subject_id):
        with pytest.raises(ValidationError):
            await token_service.get_or_create_pending_token(subject_id, ttl_minutes=0)

    @pytest.mark.asyncio
    async def test_concurrent_callers_converge(self, token_service, memory_store, subject_id):
        links = await asyncio.gather(
            *(token_service.get_or_create_pending_token(subject_id) for _ in range(20))
        )
        assert len({link["token"] for link in links}) == 1
        assert sum(1 for link in links if not link["reused"]) == 1
        assert len(memory_store.tokens) == 1

    @pytest.mark.asyncio
    async def test_token_collisions_are_retried(
        self, memory_store, clock, settings, subject_id
    ):
        tokens = iter(["a" * 64, "a" * 64, "a" * 64, "b" * 64])
        service = CompareTokenService(
            memory_store, clock=clock, token_factory=lambda: next(tokens), settings=settings
        )
        await service.get_or_create_pending_token(str(uuid.uuid4()))
        link = await service.get_or_create_pending_token(subject_id)
        assert link["token"] == "b" * 64

    @pytest.mark.asyncio
    async def test_collisions_exhaust(self, memory_store, clock, settings):
        service = CompareTokenService(
            memory_store, clock=clock, token_factory=lambda: "c" * 64, settings=settings
        )
        await service.get_or_create_pending_token(str(uuid.uuid4()))
        with pytest.raises(ResourceExhaustedError):
            await service.get_or_create_pending_token(str(uuid.uuid4()))


class TestSupersedeAndCreate:
    @pytest.mark.asyncio
    async def test_supersedes_pending_and_issues_new(
        self, token_service, memory_store, subject_id
    ):
        old = await token_service.get_or_create_pending_token(subject_id)
        new = await token_service.supersede_and_create(subject_id)

        assert new["token"] != old["token"]
        assert new["superseded"] == [old["token"]]
        assert memory_store.tokens[old["token"]]["status"] == "superseded"
        assert memory_store.tokens[new["token"]]["status"] == "pending"

        resolution = await token_service.resolve_token(old["token"])
        assert resolution.status == "superseded"

    @pytest.mark.asyncio
    async def test_leaves_completed_tokens_alone(
        self, token_service, memory_store, subject_id, paired_id
    ):
        link = await token_service.get_or_create_pending_token(subject_id)
        await token_service.complete_token(link["token"], paired_id)

        fresh = await token_service.supersede_and_create(subject_id)

        assert fresh["superseded"] == []
        row = memory_store.tokens[link["token"]]
        assert row["status"] == "completed"
        assert row["paired_attempt_id"] == paired_id

    @pytest.mark.asyncio
    async def test_transient_failure_is_not_retried(self, token_service, memory_store, subject_id):
        memory_store.supersede_and_create_token = AsyncMock(
            side_effect=TransientStoreError("connection reset")
        )
        with pytest.raises(TransientStoreError):
            await token_service.supersede_and_create(subject_id)
        assert memory_store.supersede_and_create_token.await_count == 1


class TestCompleteToken:
    """Tests for binding the paired attempt."""

    @pytest.mark.asyncio
    async def test_completes_pending_token(self, token_service, memory_store, subject_id, paired_id, clock):
        link = await token_service.get_or_create_pending_token(subject_id)
        result = await token_service.complete_token(link["token"], paired_id)

        assert result == {
            "token": link["token"],
            "subject_attempt_id": subject_id,
            "paired_attempt_id": paired_id,
            "already_completed": False,
        }
        row = memory_store.tokens[link["token"]]
        assert row["status"] == "completed"
        assert row["completed_at"] == clock.now

    @pytest.mark.asyncio
    async def test_same_paired_attempt_is_idempotent(self, token_service, subject_id, paired_id):
        link = await token_service.get_or_create_pending_token(subject_id)
        await token_service.complete_token(link["token"], paired_id)
        again = await token_service.complete_token(link["token"], paired_id)
        assert again["already_completed"] is True
        assert again["paired_attempt_id"] == paired_id

    @pytest.mark.asyncio
    async def test_different_paired_attempt_conflicts(
        self, token_service, memory_store, subject_id, paired_id
    ):
        link = await token_service.get_or_create_pending_token(subject_id)
        await token_service.complete_token(link["token"], paired_id)

        with pytest.raises(ConflictError) as exc_info:
            await token_service.complete_token(link["token"], str(uuid.uuid4()))
        assert exc_info.value.notice == "already_used"
        assert memory_store.tokens[link["token"]]["paired_attempt_id"] == paired_id

    @pytest.mark.asyncio
    async def test_racing_completions_have_one_winner(self, token_service, memory_store, subject_id):
        link = await token_service.get_or_create_pending_token(subject_id)
        contenders = [str(uuid.uuid4()) for _ in range(5)]

        results = await asyncio.gather(
            *(token_service.complete_token(link["token"], c) for c in contenders),
            return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, dict)]
        assert len(winners) == 1
        assert all(isinstance(r, ConflictError) for r in results if not isinstance(r, dict))
        assert memory_store.tokens[link["token"]]["paired_attempt_id"] == winners[0]["paired_attempt_id"]

    @pytest.mark.asyncio
    async def test_unknown_token(self, token_service, paired_id):
        with pytest.raises(NotFoundError):
            await token_service.complete_token("f" * 64, paired_id)

    @pytest.mark.asyncio
    async def test_expired_token(self, token_service, subject_id, paired_id, clock):
        link = await token_service.get_or_create_pending_token(subject_id)
        clock.advance(minutes=1440, seconds=1)
        with pytest.raises(ExpiredError):
            await token_service.complete_token(link["token"], paired_id)

    @pytest.mark.asyncio
    async def test_token_usable_at_exact_expiry(self, token_service, subject_id, paired_id, clock):
        link = await token_service.get_or_create_pending_token(subject_id)
        clock.advance(minutes=1440)
        result = await token_service.complete_token(link["token"], paired_id)
        assert result["already_completed"] is False

    @pytest.mark.asyncio
    async def test_superseded_token(self, token_service, subject_id, paired_id):
        old = await token_service.get_or_create_pending_token(subject_id)
        await token_service.supersede_and_create(subject_id)
        with pytest.raises(SupersededError):
            await token_service.complete_token(old["token"], paired_id)

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(
        self, token_service, memory_store, subject_id, paired_id
    ):
        link = await token_service.get_or_create_pending_token(subject_id)
        real = memory_store.complete_token
        attempts = {"n": 0}

        async def flaky(token, paired, *, now):
            attempts["n"] += 1
            if attempts["n"] < 3:
                raise TransientStoreError("blip")
            return await real(token, paired, now=now)

        memory_store.complete_token = flaky
        result = await token_service.complete_token(link["token"], paired_id)
        assert result["already_completed"] is False
        assert attempts["n"] == 3


class TestResolveToken:
    """Tests for read-time classification."""

    @pytest.mark.asyncio
    async def test_not_found(self, token_service):
        resolution = await token_service.resolve_token("e" * 64)
        assert resolution.status == "not_found"
        assert resolution.row is None

    @pytest.mark.asyncio
    async def test_pending(self, token_service, subject_id):
        link = await token_service.get_or_create_pending_token(subject_id)
        resolution = await token_service.resolve_token(f"  {link['token']}\n")
        assert resolution.status == "pending"
        assert resolution.subject_attempt_id == subject_id
        assert resolution.paired_attempt_id is None

    @pytest.mark.asyncio
    async def test_completed(self, token_service, subject_id, paired_id):
        link = await token_service.get_or_create_pending_token(subject_id)
        await token_service.complete_token(link["token"], paired_id)
        resolution = await token_service.resolve_token(link["token"])
        assert resolution.status == "completed"
        assert resolution.paired_attempt_id == paired_id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stored_status", ["pending", "completed", "superseded"])
    async def test_expiry_wins_over_stored_status(
        self, token_service, memory_store, subject_id, clock, stored_status
    ):
        link = await token_service.get_or_create_pending_token(subject_id)
        memory_store.tokens[link["token"]]["status"] = stored_status
        clock.advance(days=2)
        resolution = await token_service.resolve_token(link["token"])
        assert resolution.status == "expired"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_value", ["not-a-date", None])
    async def test_malformed_expiry_is_surfaced(
        self, token_service, memory_store, subject_id, bad_value
    ):
        link = await token_service.get_or_create_pending_token(subject_id)
        memory_store.tokens[link["token"]]["expires_at"] = bad_value
        with pytest.raises(StoreDataError):
            await token_service.resolve_token(link["token"])

    @pytest.mark.asyncio
    async def test_iso_string_expiry_is_accepted(
        self, token_service, memory_store, subject_id, clock
    ):
        link = await token_service.get_or_create_pending_token(subject_id)
        memory_store.tokens[link["token"]]["expires_at"] = (
            clock.now + timedelta(hours=1)
        ).isoformat()
        resolution = await token_service.resolve_token(link["token"])
        assert resolution.status == "pending"

    @pytest.mark.asyncio
    async def test_read_is_retried_then_gives_up(self, token_service, memory_store):
        memory_store.read_token_row = AsyncMock(side_effect=TransientStoreError("down"))
        with pytest.raises(TransientStoreError):
            await token_service.resolve_token("e" * 64)
        assert memory_store.read_token_row.await_count == 3

    @pytest.mark.asyncio
    async def test_slow_store_times_out(self, memory_store, clock, settings):
        async def slow(token):
            await asyncio.sleep(1)

        memory_store.read_token_row = slow
        fast_settings = settings.model_copy(
            update={"STORE_TIMEOUT_SECONDS": 0.01, "STORE_RETRY_ATTEMPTS": 1}
        )
        service = CompareTokenService(memory_store, clock=clock, settings=fast_settings)
        with pytest.raises(TransientStoreError):
            await service.resolve_token("e" * 64)

    @pytest.mark.asyncio
    async def test_resolution_never_writes(self, token_service, memory_store, subject_id, clock):
        link = await token_service.get_or_create_pending_token(subject_id)
        before = dict(memory_store.tokens[link["token"]])
        clock.advance(days=3)
        await token_service.resolve_token(link["token"])
        assert memory_store.tokens[link["token"]] == before


class TestObserver:
    @pytest.mark.asyncio
    async def test_events_are_reported(self, token_service, observer, subject_id, paired_id):
        link = await token_service.get_or_create_pending_token(subject_id)
        await token_service.get_or_create_pending_token(subject_id)
        await token_service.complete_token(link["token"], paired_id)

        assert observer.events[:2] == [
            ("created", subject_id, link["token"], False),
            ("created", subject_id, link["token"], True),
        ]
        assert observer.events[2] == ("completed", link["token"], paired_id, False)

    @pytest.mark.asyncio
    async def test_broken_observer_does_not_change_results(
        self, memory_store, clock, settings, subject_id
    ):
        class BrokenObserver(CompareObserver):
            def invite_created(self, subject_attempt_id, token, reused):
                raise RuntimeError("analytics down")

        service = CompareTokenService(
            memory_store, clock=clock, observer=BrokenObserver(), settings=settings
        )
        link = await service.get_or_create_pending_token(subject_id)
        assert link["status"] == "pending"
