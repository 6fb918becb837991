"""Tests for compare session resolution."""
import uuid

import pytest

from mindpair.errors import (
    ExpiredError,
    NotFoundError,
    NotReadyError,
    StoreDataError,
    SupersededError,
)


async def _invite(attempt_service, token_service, answers, intake=None):
    subject = await attempt_service.submit_answers(answers, intake=intake)
    link = await token_service.get_or_create_pending_token(subject["attempt_id"])
    return subject["attempt_id"], link["token"]


class TestResolveSession:
    @pytest.mark.asyncio
    async def test_unknown_token(self, session_resolver):
        with pytest.raises(NotFoundError):
            await session_resolver.resolve_session("d" * 64)

    @pytest.mark.asyncio
    async def test_pending(self, session_resolver, attempt_service, token_service, answers_a, clock):
        _, token = await _invite(attempt_service, token_service, answers_a)

        view = await session_resolver.resolve_session(token)

        assert view["status"] == "pending"
        assert view["subject_attempt_id"] is None
        assert view["inviter_name"] is None
        assert view["comparison"] is None
        assert view["created_at"] == clock.now

    @pytest.mark.asyncio
    async def test_pending_shows_normalized_inviter_name(
        self, session_resolver, attempt_service, token_service, answers_a
    ):
        _, token = await _invite(
            attempt_service,
            token_service,
            answers_a,
            intake={"first_name": "  ریحانهه ", "last_name": "طهراانیییی  "},
        )

        view = await session_resolver.resolve_session(token)

        assert view["inviter_name"] == "ریحانهه طهراانیی"

    @pytest.mark.asyncio
    async def test_completed_has_comparison(
        self, session_resolver, attempt_service, token_service, answers_a, answers_b
    ):
        subject_id, token = await _invite(attempt_service, token_service, answers_a)
        paired = await attempt_service.submit_answers(answers_b)
        await token_service.complete_token(token, paired["attempt_id"])

        view = await session_resolver.resolve_session(token)

        assert view["status"] == "completed"
        comparison = view["comparison"]
        assert comparison["subject_attempt_id"] == subject_id
        assert comparison["paired_attempt_id"] == paired["attempt_id"]
        assert comparison["subject_score"] == 25
        assert comparison["paired_score"] == 19
        assert comparison["subject_level"] == "medium"
        assert comparison["paired_level"] == "medium"
        assert len(comparison["per_question"]["all_questions"]) == 12
        assert set(comparison["per_dimension"]["per_dimension"]) == {
            "stickiness", "past_brooding", "future_worry", "interpersonal",
        }
        assert comparison["card"]["share_text"]
        assert view["subject_attempt_id"] == subject_id
        assert view["inviter_name"] is None

    @pytest.mark.asyncio
    async def test_completed_names_reach_share_text(
        self, session_resolver, attempt_service, token_service, answers_a, answers_b
    ):
        _, token = await _invite(
            attempt_service, token_service, answers_a, intake={"first_name": "Sara", "last_name": "Ahmadi"}
        )
        paired = await attempt_service.submit_answers(answers_b, intake={"first_name": "Reza"})
        await token_service.complete_token(token, paired["attempt_id"])

        view = await session_resolver.resolve_session(token)

        assert view["inviter_name"] == "Sara Ahmadi"
        assert view["comparison"]["paired_name"] == "Reza"
        lines = view["comparison"]["card"]["share_text"].split("\n")
        assert lines[2] == "مقایسه نتایج: Sara Ahmadi و Reza"

    @pytest.mark.asyncio
    async def test_share_text_has_no_names_line_without_both_names(
        self, session_resolver, attempt_service, token_service, answers_a, answers_b
    ):
        _, token = await _invite(
            attempt_service, token_service, answers_a, intake={"first_name": "Sara"}
        )
        paired = await attempt_service.submit_answers(answers_b)
        await token_service.complete_token(token, paired["attempt_id"])

        view = await session_resolver.resolve_session(token)

        assert view["inviter_name"] == "Sara"
        assert view["comparison"]["paired_name"] is None
        assert not any(
            line.startswith("مقایسه نتایج:")
            for line in view["comparison"]["card"]["share_text"].split("\n")
        )

    @pytest.mark.asyncio
    async def test_expired_hides_attempts(
        self, session_resolver, attempt_service, token_service, answers_a, clock
    ):
        _, token = await _invite(attempt_service, token_service, answers_a)
        clock.advance(days=2)

        view = await session_resolver.resolve_session(token)

        assert view["status"] == "expired"
        assert view["subject_attempt_id"] is None
        assert view["comparison"] is None

    @pytest.mark.asyncio
    async def test_superseded(self, session_resolver, attempt_service, token_service, answers_a):
        subject_id, token = await _invite(attempt_service, token_service, answers_a)
        await token_service.supersede_and_create(subject_id)

        view = await session_resolver.resolve_session(token)
        assert view["status"] == "superseded"
        assert view["subject_attempt_id"] is None

    @pytest.mark.asyncio
    async def test_comparison_follows_stored_answers(
        self, session_resolver, attempt_service, token_service, memory_store, answers_a, answers_b
    ):
        _, token = await _invite(attempt_service, token_service, answers_a)
        paired = await attempt_service.submit_answers(answers_b)
        await token_service.complete_token(token, paired["attempt_id"])

        memory_store.attempts[paired["attempt_id"]]["answers"] = list(answers_a)
        view = await session_resolver.resolve_session(token)

        assert view["comparison"]["paired_score"] == 25
        assert view["comparison"]["per_question"]["similarity_percent"] == 100


class TestGetComparison:
    @pytest.mark.asyncio
    async def test_not_ready_while_pending(self, session_resolver, attempt_service, token_service, answers_a):
        _, token = await _invite(attempt_service, token_service, answers_a)
        with pytest.raises(NotReadyError):
            await session_resolver.get_comparison(token)

    @pytest.mark.asyncio
    async def test_expired(self, session_resolver, attempt_service, token_service, answers_a, clock):
        _, token = await _invite(attempt_service, token_service, answers_a)
        clock.advance(days=2)
        with pytest.raises(ExpiredError):
            await session_resolver.get_comparison(token)

    @pytest.mark.asyncio
    async def test_superseded(self, session_resolver, attempt_service, token_service, answers_a):
        subject_id, token = await _invite(attempt_service, token_service, answers_a)
        await token_service.supersede_and_create(subject_id)
        with pytest.raises(SupersededError):
            await session_resolver.get_comparison(token)

    @pytest.mark.asyncio
    async def test_unknown(self, session_resolver):
        with pytest.raises(NotFoundError):
            await session_resolver.get_comparison("d" * 64)

    @pytest.mark.asyncio
    async def test_completed(self, session_resolver, attempt_service, token_service, answers_a, answers_b):
        _, token = await _invite(attempt_service, token_service, answers_a)
        paired = await attempt_service.submit_answers(answers_b)
        await token_service.complete_token(token, paired["attempt_id"])

        comparison = await session_resolver.get_comparison(token)
        assert comparison["paired_attempt_id"] == paired["attempt_id"]

    @pytest.mark.asyncio
    async def test_missing_paired_attempt(self, session_resolver, attempt_service, token_service, answers_a):
        _, token = await _invite(attempt_service, token_service, answers_a)
        await token_service.complete_token(token, str(uuid.uuid4()))
        with pytest.raises(StoreDataError):
            await session_resolver.get_comparison(token)

    @pytest.mark.asyncio
    async def test_corrupt_stored_answers(
        self, session_resolver, attempt_service, token_service, memory_store, answers_a, answers_b
    ):
        subject_id, token = await _invite(attempt_service, token_service, answers_a)
        paired = await attempt_service.submit_answers(answers_b)
        await token_service.complete_token(token, paired["attempt_id"])
        memory_store.attempts[subject_id]["answers"] = [9] * 12

        with pytest.raises(StoreDataError):
            await session_resolver.get_comparison(token)
