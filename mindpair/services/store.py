"""
MindPair — Compare store.

The lifecycle and resolution layers talk to persistence only through the
named procedures on ``CompareStore``.  Every procedure that changes token
state is atomic with respect to other callers of the same store:

  * ``create_or_reuse_pending_token``  retire expired pending rows, then
                                       return the live pending row or insert
  * ``supersede_and_create_token``     mark all pending rows superseded,
                                       then insert
  * ``complete_token``                 conditional pending -> completed

Rows cross this boundary as plain dicts.  Two implementations exist:
``InMemoryCompareStore`` (below; local development and tests) and
``SqlCompareStore`` (``mindpair.services.sql_store``).
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Iterable, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from mindpair.config import Settings
from mindpair.errors import (
    ConflictError,
    ExpiredError,
    NotFoundError,
    ResourceExhaustedError,
    SupersededError,
    TransientStoreError,
)

logger = structlog.get_logger("mindpair.store")

T = TypeVar("T")

TokenFactory = Callable[[], str]

PENDING = "pending"
COMPLETED = "completed"
SUPERSEDED = "superseded"

ATTEMPT_STARTED = "started"
ATTEMPT_IN_PROGRESS = "in_progress"
ATTEMPT_COMPLETED = "completed"
ATTEMPT_ABANDONED = "abandoned"


async def call_store(operation: str, call: Awaitable[T], timeout: float) -> T:
    """Await one store call with a deadline.

    Timeouts and OS-level connection failures surface as
    ``TransientStoreError``; typed store errors pass through unchanged.
    """
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.warning("store_call_timeout", operation=operation, timeout=timeout)
        raise TransientStoreError(
            f"Store operation {operation} timed out after {timeout}s",
            operation=operation,
        ) from exc
    except (ConnectionError, OSError) as exc:
        logger.warning("store_call_failed", operation=operation, error=str(exc))
        raise TransientStoreError(
            f"Store operation {operation} failed: {exc}",
            operation=operation,
        ) from exc


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, TransientStoreError)


async def run_store_call(
    operation: str,
    make_call: Callable[[], Awaitable[T]],
    settings: Settings,
    retry: bool = True,
) -> T:
    """Run one store procedure under the call policy.

    Each attempt gets its own deadline.  With ``retry`` set, a
    ``TransientStoreError`` is retried with exponential backoff up to
    ``STORE_RETRY_ATTEMPTS`` times; other errors propagate at once.  Only
    reads and idempotent writes may pass ``retry=True``.
    """
    timeout = settings.STORE_TIMEOUT_SECONDS
    if not retry:
        return await call_store(operation, make_call(), timeout)

    async for attempt in AsyncRetrying(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(settings.STORE_RETRY_ATTEMPTS),
        wait=wait_exponential(
            multiplier=0.1,
            max=settings.STORE_RETRY_MAX_WAIT_SECONDS,
        ),
        reraise=True,
    ):
        with attempt:
            if attempt.retry_state.attempt_number > 1:
                logger.warning(
                    "store_call_retry",
                    operation=operation,
                    attempt_number=attempt.retry_state.attempt_number,
                )
            result = await call_store(operation, make_call(), timeout)
    return result


def classify_unbound_token(row: dict | None, paired_attempt_id: str) -> bool:
    """Explain why a conditional completion did not update ``row``.

    Returns ``True`` when the row is already completed by the same paired
    attempt (idempotent success); raises the matching typed error otherwise.
    Shared by every store so that the precedence is identical everywhere.
    """
    if row is None:
        raise NotFoundError("Invite token not found")

    token = row["token"]
    if row["status"] == COMPLETED:
        if str(row["paired_attempt_id"]) == str(paired_attempt_id):
            return True
        raise ConflictError(
            "Invite token was already completed by another attempt",
            token=token[:12],
        )
    if row["status"] == SUPERSEDED:
        raise SupersededError(
            "Invite token was replaced by a newer link", token=token[:12]
        )
    raise ExpiredError("Invite token has expired", token=token[:12])


class CompareStore:
    """Named store procedures.  Subclasses implement every method."""

    # ── Attempts ────────────────────────────────────────────────────

    async def create_attempt(
        self,
        quiz_id: str,
        participant_id: str | None = None,
        intake: dict | None = None,
        *,
        now: datetime,
    ) -> dict:
        raise NotImplementedError

    async def record_answers(self, attempt_id: str, answers: list[int]) -> dict:
        raise NotImplementedError

    async def read_attempt(self, attempt_id: str) -> dict | None:
        raise NotImplementedError

    async def complete_attempt(
        self,
        attempt_id: str,
        total_score: int,
        dimension_scores: dict[str, float],
        score_band_id: int | None,
        *,
        now: datetime,
    ) -> dict:
        raise NotImplementedError

    async def list_score_bands(self) -> list[dict]:
        raise NotImplementedError

    # ── Compare tokens ──────────────────────────────────────────────

    async def create_or_reuse_pending_token(
        self,
        subject_attempt_id: str,
        ttl_minutes: int,
        *,
        now: datetime,
        token_factory: TokenFactory,
        max_attempts: int,
    ) -> tuple[dict, bool]:
        """Return ``(row, reused)``."""
        raise NotImplementedError

    async def supersede_and_create_token(
        self,
        subject_attempt_id: str,
        ttl_minutes: int,
        *,
        now: datetime,
        token_factory: TokenFactory,
        max_attempts: int,
    ) -> tuple[dict, list[str]]:
        """Return ``(new_row, superseded_tokens)``."""
        raise NotImplementedError

    async def complete_token(
        self, token: str, paired_attempt_id: str, *, now: datetime
    ) -> tuple[dict, bool]:
        """Return ``(row, already_completed)``."""
        raise NotImplementedError

    async def read_token_row(self, token: str) -> dict | None:
        raise NotImplementedError


class InMemoryCompareStore(CompareStore):
    """Process-local store.

    A single ``asyncio.Lock`` serialises every procedure, which gives the
    same atomicity the SQL store gets from conditional statements.
    """

    def __init__(self, score_bands: Iterable[dict] = ()) -> None:
        self.attempts: dict[str, dict] = {}
        self.tokens: dict[str, dict] = {}
        self.score_bands: list[dict] = [dict(band) for band in score_bands]
        self._lock = asyncio.Lock()

    # ── Attempts ────────────────────────────────────────────────────

    async def create_attempt(
        self,
        quiz_id: str,
        participant_id: str | None = None,
        intake: dict | None = None,
        *,
        now: datetime,
    ) -> dict:
        intake = intake or {}
        row = {
            "id": str(uuid.uuid4()),
            "quiz_id": quiz_id,
            "participant_id": participant_id,
            "first_name": intake.get("first_name"),
            "last_name": intake.get("last_name"),
            "phone": intake.get("phone"),
            "status": ATTEMPT_STARTED,
            "answers": None,
            "total_score": None,
            "dimension_scores": None,
            "score_band_id": None,
            "created_at": now,
            "completed_at": None,
        }
        async with self._lock:
            self.attempts[row["id"]] = row
        return dict(row)

    async def record_answers(self, attempt_id: str, answers: list[int]) -> dict:
        async with self._lock:
            row = self.attempts.get(str(attempt_id))
            if row is None:
                raise NotFoundError("Attempt not found", attempt_id=str(attempt_id))
            if row["status"] in (ATTEMPT_STARTED, ATTEMPT_IN_PROGRESS):
                row["answers"] = list(answers)
                row["status"] = ATTEMPT_IN_PROGRESS
            return dict(row)

    async def read_attempt(self, attempt_id: str) -> dict | None:
        async with self._lock:
            row = self.attempts.get(str(attempt_id))
            return dict(row) if row is not None else None

    async def complete_attempt(
        self,
        attempt_id: str,
        total_score: int,
        dimension_scores: dict[str, float],
        score_band_id: int | None,
        *,
        now: datetime,
    ) -> dict:
        async with self._lock:
            row = self.attempts.get(str(attempt_id))
            if row is None:
                raise NotFoundError("Attempt not found", attempt_id=str(attempt_id))
            if row["status"] == ATTEMPT_COMPLETED:
                return dict(row)
            if row["status"] == ATTEMPT_ABANDONED:
                raise ConflictError(
                    "Attempt was abandoned and cannot be completed",
                    attempt_id=str(attempt_id),
                )
            row.update(
                status=ATTEMPT_COMPLETED,
                total_score=total_score,
                dimension_scores=dict(dimension_scores),
                score_band_id=score_band_id,
                completed_at=now,
            )
            return dict(row)

    async def list_score_bands(self) -> list[dict]:
        async with self._lock:
            return [dict(band) for band in self.score_bands]

    # ── Compare tokens ──────────────────────────────────────────────

    async def create_or_reuse_pending_token(
        self,
        subject_attempt_id: str,
        ttl_minutes: int,
        *,
        now: datetime,
        token_factory: TokenFactory,
        max_attempts: int,
    ) -> tuple[dict, bool]:
        subject_attempt_id = str(subject_attempt_id)
        async with self._lock:
            live: dict | None = None
            for row in self._pending_rows(subject_attempt_id):
                if row["expires_at"] < now:
                    row["status"] = SUPERSEDED
                else:
                    live = row
            if live is not None:
                return dict(live), True

            row = self._insert_token(
                subject_attempt_id, ttl_minutes, now, token_factory, max_attempts
            )
            return dict(row), False

    async def supersede_and_create_token(
        self,
        subject_attempt_id: str,
        ttl_minutes: int,
        *,
        now: datetime,
        token_factory: TokenFactory,
        max_attempts: int,
    ) -> tuple[dict, list[str]]:
        subject_attempt_id = str(subject_attempt_id)
        async with self._lock:
            superseded: list[str] = []
            for row in self._pending_rows(subject_attempt_id):
                row["status"] = SUPERSEDED
                superseded.append(row["token"])

            row = self._insert_token(
                subject_attempt_id, ttl_minutes, now, token_factory, max_attempts
            )
            return dict(row), superseded

    async def complete_token(
        self, token: str, paired_attempt_id: str, *, now: datetime
    ) -> tuple[dict, bool]:
        paired_attempt_id = str(paired_attempt_id)
        async with self._lock:
            row = self.tokens.get(token)
            if (
                row is not None
                and row["status"] == PENDING
                and row["expires_at"] >= now
            ):
                row.update(
                    status=COMPLETED,
                    paired_attempt_id=paired_attempt_id,
                    completed_at=now,
                )
                return dict(row), False

            already_completed = classify_unbound_token(row, paired_attempt_id)
            return dict(row), already_completed

    async def read_token_row(self, token: str) -> dict | None:
        async with self._lock:
            row = self.tokens.get(token)
            return dict(row) if row is not None else None

    # ── Internal helpers (lock held) ────────────────────────────────

    def _pending_rows(self, subject_attempt_id: str) -> list[dict]:
        return [
            row
            for row in self.tokens.values()
            if row["subject_attempt_id"] == subject_attempt_id
            and row["status"] == PENDING
        ]

    def _insert_token(
        self,
        subject_attempt_id: str,
        ttl_minutes: int,
        now: datetime,
        token_factory: TokenFactory,
        max_attempts: int,
    ) -> dict:
        for _ in range(max_attempts):
            token = token_factory()
            if token in self.tokens:
                logger.warning("token_collision", token=token[:12])
                continue
            row = {
                "token": token,
                "subject_attempt_id": subject_attempt_id,
                "paired_attempt_id": None,
                "status": PENDING,
                "created_at": now,
                "expires_at": now + timedelta(minutes=ttl_minutes),
                "completed_at": None,
            }
            self.tokens[token] = row
            return row

        raise ResourceExhaustedError(
            f"Could not generate a unique invite token in {max_attempts} attempts",
            subject_attempt_id=subject_attempt_id,
        )
