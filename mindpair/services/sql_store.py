"""
MindPair — SQLAlchemy compare store.

Implements the ``CompareStore`` procedures with single conditional
statements so that atomicity comes from the database, not from the process:

  * inserts use ``INSERT ... ON CONFLICT DO NOTHING`` and inspect the row
    count (a token collision and a concurrently created pending row are
    told apart by re-reading the subject's pending row)
  * completion is one ``UPDATE ... WHERE status = 'pending' AND
    expires_at >= :now``; when it touches no row, the loser reads the row
    back and classifies it

Works against PostgreSQL (asyncpg) and SQLite (aiosqlite).  SQLite returns
naive datetimes; every timestamp in this store is written as UTC, so naive
values read back are tagged as UTC.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator

import structlog
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from mindpair.errors import ConflictError, NotFoundError, ResourceExhaustedError, TransientStoreError
from mindpair.models import Attempt, CompareToken, ScoreBand
from mindpair.services.store import (
    ATTEMPT_ABANDONED,
    ATTEMPT_COMPLETED,
    ATTEMPT_IN_PROGRESS,
    ATTEMPT_STARTED,
    COMPLETED,
    PENDING,
    SUPERSEDED,
    CompareStore,
    TokenFactory,
    classify_unbound_token,
)

logger = structlog.get_logger("mindpair.sql_store")

_attempts = Attempt.__table__
_tokens = CompareToken.__table__
_bands = ScoreBand.__table__

_OPEN_ATTEMPT_STATUSES = (ATTEMPT_STARTED, ATTEMPT_IN_PROGRESS)


def _as_uuid(value: Any) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def _row(mapping: Any) -> dict:
    """Convert a result mapping into a plain dict with str ids and UTC
    timestamps."""
    row = dict(mapping)
    for key, value in row.items():
        if isinstance(value, uuid.UUID):
            row[key] = str(value)
        elif isinstance(value, datetime) and value.tzinfo is None:
            row[key] = value.replace(tzinfo=timezone.utc)
    return row


class SqlCompareStore(CompareStore):
    def __init__(self, engine: AsyncEngine | None = None) -> None:
        if engine is None:
            from mindpair.database import engine as default_engine

            engine = default_engine
        self._engine = engine
        self._dialect = engine.dialect.name
        self._sessions = async_sessionmaker(
            bind=engine, class_=AsyncSession, expire_on_commit=False
        )

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        """One session, one transaction; connection failures become
        ``TransientStoreError``."""
        try:
            async with self._sessions() as session:
                async with session.begin():
                    yield session
        except (OperationalError, InterfaceError) as exc:
            logger.warning("sql_store_unavailable", operation=operation, error=str(exc))
            raise TransientStoreError(
                f"Store operation {operation} failed: {exc.orig or exc}",
                operation=operation,
            ) from exc
        except DBAPIError as exc:
            if not exc.connection_invalidated:
                raise
            logger.warning("sql_store_connection_lost", operation=operation)
            raise TransientStoreError(
                f"Store connection lost during {operation}", operation=operation
            ) from exc

    def _insert(self, table: Any):
        if self._dialect == "postgresql":
            return pg_insert(table)
        if self._dialect == "sqlite":
            return sqlite_insert(table)
        raise NotImplementedError(f"Unsupported SQL dialect: {self._dialect}")

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
        attempt_id = uuid.uuid4()
        async with self._transaction("create_attempt") as session:
            await session.execute(
                _attempts.insert().values(
                    id=attempt_id,
                    quiz_id=quiz_id,
                    participant_id=participant_id,
                    first_name=intake.get("first_name"),
                    last_name=intake.get("last_name"),
                    phone=intake.get("phone"),
                    status=ATTEMPT_STARTED,
                    created_at=now,
                )
            )
            return await self._read_attempt(session, attempt_id)

    async def record_answers(self, attempt_id: str, answers: list[int]) -> dict:
        key = _as_uuid(attempt_id)
        async with self._transaction("record_answers") as session:
            await session.execute(
                update(_attempts)
                .where(_attempts.c.id == key)
                .where(_attempts.c.status.in_(_OPEN_ATTEMPT_STATUSES))
                .values(answers=list(answers), status=ATTEMPT_IN_PROGRESS)
            )
            row = await self._read_attempt(session, key)
            if row is None:
                raise NotFoundError("Attempt not found", attempt_id=str(attempt_id))
            return row

    async def read_attempt(self, attempt_id: str) -> dict | None:
        async with self._transaction("read_attempt") as session:
            return await self._read_attempt(session, _as_uuid(attempt_id))

    async def complete_attempt(
        self,
        attempt_id: str,
        total_score: int,
        dimension_scores: dict[str, float],
        score_band_id: int | None,
        *,
        now: datetime,
    ) -> dict:
        key = _as_uuid(attempt_id)
        async with self._transaction("complete_attempt") as session:
            await session.execute(
                update(_attempts)
                .where(_attempts.c.id == key)
                .where(_attempts.c.status.in_(_OPEN_ATTEMPT_STATUSES))
                .values(
                    status=ATTEMPT_COMPLETED,
                    total_score=total_score,
                    dimension_scores=dict(dimension_scores),
                    score_band_id=score_band_id,
                    completed_at=now,
                )
            )
            row = await self._read_attempt(session, key)

        if row is None:
            raise NotFoundError("Attempt not found", attempt_id=str(attempt_id))
        if row["status"] == ATTEMPT_ABANDONED:
            raise ConflictError(
                "Attempt was abandoned and cannot be completed",
                attempt_id=str(attempt_id),
            )
        return row

    async def list_score_bands(self) -> list[dict]:
        async with self._transaction("list_score_bands") as session:
            result = await session.execute(select(_bands).order_by(_bands.c.id))
            return [_row(m) for m in result.mappings().all()]

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
        subject = _as_uuid(subject_attempt_id)
        async with self._transaction("create_or_reuse_pending_token") as session:
            # Expired pending rows would otherwise block the one-pending rule
            await session.execute(
                update(_tokens)
                .where(_tokens.c.subject_attempt_id == subject)
                .where(_tokens.c.status == PENDING)
                .where(_tokens.c.expires_at < now)
                .values(status=SUPERSEDED)
            )

            live = await self._read_pending(session, subject)
            if live is not None:
                return live, True

            for _ in range(max_attempts):
                token = token_factory()
                if await self._try_insert_token(session, token, subject, ttl_minutes, now):
                    return await self._read_token(session, token), False

                # Either another caller created the pending row first, or
                # the token collided with an existing one.
                live = await self._read_pending(session, subject)
                if live is not None:
                    return live, True
                logger.warning("token_collision", token=token[:12])

        raise ResourceExhaustedError(
            f"Could not generate a unique invite token in {max_attempts} attempts",
            subject_attempt_id=str(subject_attempt_id),
        )

    async def supersede_and_create_token(
        self,
        subject_attempt_id: str,
        ttl_minutes: int,
        *,
        now: datetime,
        token_factory: TokenFactory,
        max_attempts: int,
    ) -> tuple[dict, list[str]]:
        subject = _as_uuid(subject_attempt_id)
        superseded: list[str] = []
        async with self._transaction("supersede_and_create_token") as session:
            for _ in range(max_attempts):
                result = await session.execute(
                    update(_tokens)
                    .where(_tokens.c.subject_attempt_id == subject)
                    .where(_tokens.c.status == PENDING)
                    .values(status=SUPERSEDED)
                    .returning(_tokens.c.token)
                )
                superseded.extend(result.scalars().all())

                token = token_factory()
                if await self._try_insert_token(session, token, subject, ttl_minutes, now):
                    return await self._read_token(session, token), superseded
                logger.warning("token_insert_skipped", token=token[:12])

        raise ResourceExhaustedError(
            f"Could not generate a unique invite token in {max_attempts} attempts",
            subject_attempt_id=str(subject_attempt_id),
        )

    async def complete_token(
        self, token: str, paired_attempt_id: str, *, now: datetime
    ) -> tuple[dict, bool]:
        paired = _as_uuid(paired_attempt_id)
        async with self._transaction("complete_token") as session:
            result = await session.execute(
                update(_tokens)
                .where(_tokens.c.token == token)
                .where(_tokens.c.status == PENDING)
                .where(_tokens.c.expires_at >= now)
                .values(status=COMPLETED, paired_attempt_id=paired, completed_at=now)
            )
            row = await self._read_token(session, token)

        if result.rowcount == 1:
            return row, False
        return row, classify_unbound_token(row, str(paired))

    async def read_token_row(self, token: str) -> dict | None:
        async with self._transaction("read_token_row") as session:
            return await self._read_token(session, token)

    # ── Internal helpers ────────────────────────────────────────────

    async def _try_insert_token(
        self,
        session: AsyncSession,
        token: str,
        subject: uuid.UUID,
        ttl_minutes: int,
        now: datetime,
    ) -> bool:
        stmt = (
            self._insert(_tokens)
            .values(
                token=token,
                subject_attempt_id=subject,
                status=PENDING,
                created_at=now,
                expires_at=now + timedelta(minutes=ttl_minutes),
            )
            .on_conflict_do_nothing()
        )
        result = await session.execute(stmt)
        return result.rowcount == 1

    async def _read_token(self, session: AsyncSession, token: str) -> dict | None:
        result = await session.execute(select(_tokens).where(_tokens.c.token == token))
        mapping = result.mappings().first()
        return _row(mapping) if mapping is not None else None

    async def _read_pending(self, session: AsyncSession, subject: uuid.UUID) -> dict | None:
        result = await session.execute(
            select(_tokens)
            .where(_tokens.c.subject_attempt_id == subject)
            .where(_tokens.c.status == PENDING)
        )
        mapping = result.mappings().first()
        return _row(mapping) if mapping is not None else None

    async def _read_attempt(self, session: AsyncSession, attempt_id: uuid.UUID) -> dict | None:
        result = await session.execute(select(_attempts).where(_attempts.c.id == attempt_id))
        mapping = result.mappings().first()
        return _row(mapping) if mapping is not None else None
