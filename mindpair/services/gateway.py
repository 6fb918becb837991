"""
MindPair — Caller-facing gateway.

The five operations callers (HTTP routes, scripts) use.  Each returns an
``Outcome``: ``ok=True`` with a payload, or ``ok=False`` with a typed error
``{kind, message, notice}``.  Only ``MindPairError`` becomes an error
outcome with its own kind; any other exception is logged with its
traceback and becomes an ``internal`` outcome so callers always get a tagged
result.

Caller-side preconditions that the token lifecycle deliberately ignores
live here: an invite can only be requested for a completed attempt, and an
invite can only be completed by a different, completed attempt.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

import structlog

from mindpair.config import Settings, get_settings
from mindpair.errors import MindPairError, ValidationError
from mindpair.schemas.attempt import AttemptRow
from mindpair.schemas.compare import Outcome, OutcomeError
from mindpair.services.attempt_service import AttemptService
from mindpair.services.observer import CompareObserver, LoggingCompareObserver
from mindpair.services.scoring_service import DEFAULT_SCORE_BANDS
from mindpair.services.session_service import SessionResolver
from mindpair.services.store import ATTEMPT_COMPLETED, CompareStore, InMemoryCompareStore
from mindpair.services.token_service import (
    NOT_FOUND,
    CompareTokenService,
    normalize_attempt_id,
    normalize_token,
)

logger = structlog.get_logger("mindpair.gateway")


def _require_completed(attempt: AttemptRow, role: str) -> None:
    if attempt.status != ATTEMPT_COMPLETED:
        raise ValidationError(
            f"The {role} attempt has not been completed",
            constraint="attempt_not_completed",
        )


class CompareGateway:
    def __init__(
        self,
        attempts: AttemptService,
        tokens: CompareTokenService,
        sessions: SessionResolver,
    ) -> None:
        self.attempts = attempts
        self.tokens = tokens
        self.sessions = sessions

    # ── Public API ──────────────────────────────────────────────────

    async def submit_answers(
        self,
        answers: Any,
        participant_id: str | None = None,
        intake: dict | None = None,
        invite_token: str | None = None,
    ) -> Outcome:
        """Record a finished questionnaire run; with ``invite_token``, also
        bind it to that invite.

        The attempt is kept even when pairing fails; the pairing failure is
        reported under ``data["pairing"]["error"]``.
        """

        async def run() -> dict:
            token = normalize_token(invite_token) if invite_token is not None else None
            result = await self.attempts.submit_answers(answers, participant_id, intake)
            if token is not None:
                result["pairing"] = await self._pair_after_submit(token, result["attempt_id"])
            return result

        return await self._run("submit_answers", run)

    async def request_invite_link(
        self, subject_attempt_id: str, fresh: bool = False
    ) -> Outcome:
        """Live pending link for the subject; ``fresh=True`` supersedes any
        pending link and always issues a new one."""

        async def run() -> dict:
            attempt = await self.attempts.get_attempt(subject_attempt_id)
            _require_completed(attempt, "subject")
            if fresh:
                return await self.tokens.supersede_and_create(attempt.id)
            return await self.tokens.get_or_create_pending_token(attempt.id)

        return await self._run("request_invite_link", run)

    async def resolve_invite(self, token: str) -> Outcome:
        return await self._run(
            "resolve_invite", lambda: self.sessions.resolve_session(token)
        )

    async def complete_pairing(self, token: str, paired_attempt_id: str) -> Outcome:
        async def run() -> dict:
            return await self._complete_pairing(
                normalize_token(token), normalize_attempt_id(paired_attempt_id)
            )

        return await self._run("complete_pairing", run)

    async def get_comparison(self, token: str) -> Outcome:
        return await self._run(
            "get_comparison", lambda: self.sessions.get_comparison(token)
        )

    # ── Internal helpers ────────────────────────────────────────────

    async def _complete_pairing(self, token: str, paired_attempt_id: str) -> dict:
        paired = await self.attempts.get_attempt(paired_attempt_id)
        _require_completed(paired, "paired")

        resolution = await self.tokens.resolve_token(token)
        if resolution.status != NOT_FOUND and resolution.subject_attempt_id == paired.id:
            raise ValidationError(
                "An attempt cannot be compared with itself",
                constraint="self_pairing",
            )
        return await self.tokens.complete_token(token, paired.id)

    async def _pair_after_submit(self, token: str, attempt_id: str) -> dict:
        try:
            data = await self._complete_pairing(token, attempt_id)
        except MindPairError as exc:
            logger.info(
                "pairing_after_submit_failed", attempt_id=attempt_id, kind=exc.kind
            )
            return {"ok": False, "error": exc.to_dict()}
        return {"ok": True, **data}

    async def _run(self, operation: str, call: Callable[[], Awaitable[Any]]) -> Outcome:
        try:
            data = await call()
        except MindPairError as exc:
            logger.info(
                "gateway_error",
                operation=operation,
                kind=exc.kind,
                notice=exc.notice,
                error=exc.message,
            )
            return Outcome(ok=False, error=OutcomeError(**exc.to_dict()))
        except Exception:
            logger.exception("gateway_unexpected_error", operation=operation)
            return Outcome(
                ok=False,
                error=OutcomeError(kind="internal", message="Internal error", notice="internal"),
            )
        return Outcome(ok=True, data=data)


def build_gateway(
    settings: Settings | None = None,
    store: CompareStore | None = None,
    observer: CompareObserver | None = None,
) -> CompareGateway:
    """Wire the services for the configured ``STORE_BACKEND``."""
    settings = settings or get_settings()
    if store is None:
        if settings.STORE_BACKEND == "memory":
            store = InMemoryCompareStore(score_bands=DEFAULT_SCORE_BANDS)
        else:
            from mindpair.services.sql_store import SqlCompareStore

            store = SqlCompareStore()

    tokens = CompareTokenService(
        store,
        observer=observer or LoggingCompareObserver(),
        settings=settings,
    )
    logger.info("gateway_built", backend=type(store).__name__)
    return CompareGateway(
        attempts=AttemptService(store, settings=settings),
        tokens=tokens,
        sessions=SessionResolver(tokens),
    )
