"""
MindPair — Compare session resolution.

Read path over the token lifecycle.  ``resolve_session`` turns a token into a
session view; pending sessions read the subject attempt for the inviter's
display name, completed sessions read both attempts, and their
comparison is recomputed from the stored answers on every read so it always
reflects the current scoring rules.  Nothing here writes to the store.
"""

from __future__ import annotations

from typing import Any

import pydantic
import structlog

from mindpair.errors import (
    ExpiredError,
    NotFoundError,
    NotReadyError,
    StoreDataError,
    SupersededError,
    ValidationError,
)
from mindpair.schemas.attempt import AttemptRow
from mindpair.services.comparison_service import ComparisonService, display_name
from mindpair.services.observer import token_preview
from mindpair.services.scoring_service import (
    AnswerVector,
    compute_total_score,
    level_of_total,
    normalize_answers,
)
from mindpair.services.store import run_store_call
from mindpair.services.token_service import (
    COMPLETED,
    EXPIRED,
    NOT_FOUND,
    PENDING,
    SUPERSEDED,
    CompareTokenService,
    TokenResolution,
)

logger = structlog.get_logger("mindpair.session_service")


class SessionResolver:
    def __init__(
        self,
        token_service: CompareTokenService,
        comparison_service: ComparisonService | None = None,
    ) -> None:
        self.tokens = token_service
        self.comparisons = comparison_service or ComparisonService()

    # ── Public API ──────────────────────────────────────────────────

    async def resolve_session(self, token: str) -> dict:
        """Classify ``token`` into a session view.

        Returns
        -------
        dict with keys:
            status        pending | completed | expired | superseded
            token, expires_at, created_at
            inviter_name         display name of the subject; pending and
                                 completed only, None when no name was given
            subject_attempt_id   completed only
            comparison           completed only

        Raises
        ------
        NotFoundError
            When no token row exists.
        """
        resolution = await self.tokens.resolve_token(token)
        log = logger.bind(token=token_preview(resolution.token), status=resolution.status)

        if resolution.status == NOT_FOUND:
            log.info("session_not_found")
            raise NotFoundError("Invite link not found")

        row = resolution.row
        view: dict[str, Any] = {
            "status": resolution.status,
            "token": resolution.token,
            "expires_at": row.expires_at,
            "created_at": row.created_at,
            "inviter_name": None,
            "subject_attempt_id": None,
            "comparison": None,
        }

        if resolution.status in (EXPIRED, SUPERSEDED):
            log.info("session_inactive")
            return view

        if resolution.status == COMPLETED:
            comparison = await self._build_comparison(resolution)
            view["subject_attempt_id"] = row.subject_attempt_id
            view["inviter_name"] = comparison["subject_name"]
            view["comparison"] = comparison
        else:
            subject = await self._load_attempt(row.subject_attempt_id)
            view["inviter_name"] = display_name(subject.first_name, subject.last_name)

        log.info("session_resolved")
        return view

    async def get_comparison(self, token: str) -> dict:
        """Return the comparison of a completed session, or raise the error
        matching the session's state."""
        resolution = await self.tokens.resolve_token(token)

        if resolution.status == NOT_FOUND:
            raise NotFoundError("Invite link not found")
        if resolution.status == EXPIRED:
            raise ExpiredError("Invite link has expired")
        if resolution.status == SUPERSEDED:
            raise SupersededError("Invite link was replaced by a newer link")
        if resolution.status == PENDING:
            raise NotReadyError("The invited person has not finished yet")

        return await self._build_comparison(resolution)

    # ── Internal helpers ────────────────────────────────────────────

    async def _build_comparison(self, resolution: TokenResolution) -> dict:
        subject_id = resolution.subject_attempt_id
        paired_id = resolution.paired_attempt_id
        if paired_id is None:
            raise StoreDataError(
                "Completed invite has no paired attempt",
                token=token_preview(resolution.token),
            )

        subject_attempt = await self._load_attempt(subject_id)
        paired_attempt = await self._load_attempt(paired_id)
        subject = self._answers_of(subject_attempt)
        paired = self._answers_of(paired_attempt)

        subject_name = display_name(subject_attempt.first_name, subject_attempt.last_name)
        paired_name = display_name(paired_attempt.first_name, paired_attempt.last_name)
        names = (subject_name, paired_name) if subject_name and paired_name else None

        subject_score = compute_total_score(subject)
        paired_score = compute_total_score(paired)
        per_dimension = self.comparisons.compare_dimensions(subject, paired)

        return {
            "subject_attempt_id": subject_id,
            "paired_attempt_id": paired_id,
            "subject_name": subject_name,
            "paired_name": paired_name,
            "subject_score": subject_score,
            "paired_score": paired_score,
            "subject_level": level_of_total(subject_score),
            "paired_level": level_of_total(paired_score),
            "per_question": self.comparisons.compare_answers(subject, paired),
            "per_dimension": per_dimension,
            "card": self.comparisons.build_compare_card(per_dimension, names),
        }

    async def _load_attempt(self, attempt_id: str) -> AttemptRow:
        store = self.tokens.store
        raw = await run_store_call(
            "read_attempt",
            lambda: store.read_attempt(attempt_id),
            self.tokens.settings,
        )
        if raw is None:
            raise StoreDataError(
                "Attempt referenced by invite does not exist", attempt_id=attempt_id
            )

        try:
            return AttemptRow.model_validate(raw)
        except pydantic.ValidationError as exc:
            raise StoreDataError(
                "Attempt row is malformed", attempt_id=attempt_id
            ) from exc

    def _answers_of(self, attempt: AttemptRow) -> AnswerVector:
        try:
            return normalize_answers(attempt.answers)
        except ValidationError as exc:
            logger.error(
                "stored_answers_invalid",
                attempt_id=attempt.id,
                constraint=exc.constraint,
                index=exc.index,
            )
            raise StoreDataError(
                f"Stored answers of attempt {attempt.id} are invalid: {exc.message}",
                attempt_id=attempt.id,
            ) from exc
