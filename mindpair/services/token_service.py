"""
MindPair — Invite/compare token lifecycle.

State machine over compare tokens:

    pending ──complete──▶ completed   (terminal)
       │
       └────supersede───▶ superseded  (terminal)

``expired`` is never stored: a token is expired when ``now > expires_at`` at
the moment it is read, whatever its stored status.  Every clock read goes
through the injected ``clock`` so expiry is decided by the server alone.

Atomicity lives in the store procedures; this service validates input,
applies the call policy (deadline per call, tenacity retries for reads and
for the idempotent writes), classifies rows and reports to the observer.
"""

from __future__ import annotations

import re
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, TypeVar

import pydantic
import structlog

from mindpair.config import Settings, get_settings
from mindpair.errors import StoreDataError, ValidationError
from mindpair.schemas.compare import TokenRow
from mindpair.services.observer import CompareObserver, notify, token_preview
from mindpair.services.store import CompareStore, run_store_call

logger = structlog.get_logger("mindpair.token_service")

T = TypeVar("T")

Clock = Callable[[], datetime]

NOT_FOUND = "not_found"
EXPIRED = "expired"
PENDING = "pending"
COMPLETED = "completed"
SUPERSEDED = "superseded"

TOKEN_BYTES = 32  # 64 hex characters
MAX_TOKEN_LENGTH = 128
_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def normalize_token(token: Any) -> str:
    """Trim and sanity-check a client-supplied token."""
    if not isinstance(token, str):
        raise ValidationError("Invite token must be a string", constraint="not_a_string")
    token = token.strip()
    if not token:
        raise ValidationError("Invite token is empty", constraint="empty")
    if len(token) > MAX_TOKEN_LENGTH or not _TOKEN_PATTERN.match(token):
        raise ValidationError("Invite token is malformed", constraint="malformed")
    return token


def normalize_attempt_id(attempt_id: Any, field: str = "attempt_id") -> str:
    """Return the canonical (lower-case, hyphenated) form of a UUID id."""
    try:
        return str(uuid.UUID(str(attempt_id).strip()))
    except (ValueError, AttributeError) as exc:
        raise ValidationError(
            f"{field} must be a UUID, got {attempt_id!r}", constraint="not_a_uuid"
        ) from exc


def parse_token_row(row: dict) -> TokenRow:
    """Validate a raw store row.  Malformed rows (including a missing or
    unparseable ``expires_at``) raise ``StoreDataError``."""
    try:
        return TokenRow.model_validate(row)
    except pydantic.ValidationError as exc:
        fields = sorted({".".join(str(p) for p in e["loc"]) for e in exc.errors()})
        logger.error(
            "token_row_malformed",
            token=token_preview(str(row.get("token", ""))),
            fields=fields,
        )
        raise StoreDataError(
            f"Compare token row is malformed ({', '.join(fields)})",
            fields=fields,
        ) from exc


@dataclass(frozen=True)
class TokenResolution:
    """Read-time classification of one token."""

    status: str
    token: str
    row: TokenRow | None = None

    @property
    def subject_attempt_id(self) -> str | None:
        return self.row.subject_attempt_id if self.row else None

    @property
    def paired_attempt_id(self) -> str | None:
        return self.row.paired_attempt_id if self.row else None


class CompareTokenService:
    """Lifecycle operations over compare tokens."""

    def __init__(
        self,
        store: CompareStore,
        clock: Clock | None = None,
        observer: CompareObserver | None = None,
        token_factory: Callable[[], str] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.clock = clock or utc_now
        self.observer = observer or CompareObserver()
        self.token_factory = token_factory or generate_token
        self.settings = settings or get_settings()

    # ── Public API ──────────────────────────────────────────────────

    def share_url(self, token: str) -> str:
        return f"{self.settings.PUBLIC_BASE_URL}/compare/invite/{token}"

    async def get_or_create_pending_token(
        self, subject_attempt_id: str, ttl_minutes: int | None = None
    ) -> dict:
        """Return the live pending token of the subject, or create one.

        Safe to retry: concurrent or repeated calls converge on one token.

        Returns
        -------
        dict with keys: token, share_url, subject_attempt_id, status,
        created_at, expires_at, reused
        """
        subject = normalize_attempt_id(subject_attempt_id, "subject_attempt_id")
        ttl = self._ttl(ttl_minutes)

        row, reused = await self._call(
            "create_or_reuse_pending_token",
            lambda: self.store.create_or_reuse_pending_token(
                subject,
                ttl,
                now=self.clock(),
                token_factory=self.token_factory,
                max_attempts=self.settings.TOKEN_GENERATION_MAX_ATTEMPTS,
            ),
            retry=True,
        )
        link = self._link(parse_token_row(row), reused=reused)

        logger.info(
            "pending_token_ready",
            subject_attempt_id=subject,
            token=token_preview(link["token"]),
            reused=reused,
        )
        notify(
            self.observer, "invite_created",
            subject_attempt_id=subject, token=link["token"], reused=reused,
        )
        return link

    async def supersede_and_create(
        self, subject_attempt_id: str, ttl_minutes: int | None = None
    ) -> dict:
        """Retire every pending token of the subject and issue a fresh one.

        Not retried automatically: a retry after an unknown outcome would
        supersede the token the first call created.
        """
        subject = normalize_attempt_id(subject_attempt_id, "subject_attempt_id")
        ttl = self._ttl(ttl_minutes)

        row, superseded = await self._call(
            "supersede_and_create_token",
            lambda: self.store.supersede_and_create_token(
                subject,
                ttl,
                now=self.clock(),
                token_factory=self.token_factory,
                max_attempts=self.settings.TOKEN_GENERATION_MAX_ATTEMPTS,
            ),
            retry=False,
        )
        link = self._link(parse_token_row(row), reused=False)
        link["superseded"] = list(superseded)

        logger.info(
            "token_superseded_and_created",
            subject_attempt_id=subject,
            token=token_preview(link["token"]),
            superseded_count=len(superseded),
        )
        for old_token in superseded:
            notify(
                self.observer, "invite_superseded",
                subject_attempt_id=subject, token=old_token,
            )
        notify(
            self.observer, "invite_created",
            subject_attempt_id=subject, token=link["token"], reused=False,
        )
        return link

    async def complete_token(self, token: str, paired_attempt_id: str) -> dict:
        """Bind the paired attempt to a pending token.

        Completing again with the same paired attempt is an idempotent
        success (``already_completed=True``); a different paired attempt gets
        ``ConflictError``.  Missing, superseded and expired tokens raise
        ``NotFoundError``, ``SupersededError`` and ``ExpiredError``.
        """
        token = normalize_token(token)
        paired = normalize_attempt_id(paired_attempt_id, "paired_attempt_id")
        log = logger.bind(token=token_preview(token), paired_attempt_id=paired)

        try:
            row, already_completed = await self._call(
                "complete_token",
                lambda: self.store.complete_token(token, paired, now=self.clock()),
                retry=True,
            )
        except Exception as exc:
            log.info("complete_token_rejected", reason=getattr(exc, "kind", type(exc).__name__))
            raise

        parsed = parse_token_row(row)
        log.info("token_completed", already_completed=already_completed)
        notify(
            self.observer, "invite_completed",
            token=token, paired_attempt_id=paired, already_completed=already_completed,
        )
        return {
            "token": parsed.token,
            "subject_attempt_id": parsed.subject_attempt_id,
            "paired_attempt_id": parsed.paired_attempt_id,
            "already_completed": already_completed,
        }

    async def resolve_token(self, token: str) -> TokenResolution:
        """Read-only classification: not_found, expired, pending, completed
        or superseded.  Expiry wins over the stored status."""
        token = normalize_token(token)

        raw = await self._call(
            "read_token_row", lambda: self.store.read_token_row(token), retry=True
        )
        if raw is None:
            resolution = TokenResolution(status=NOT_FOUND, token=token)
        else:
            row = parse_token_row(raw)
            if self.clock() > row.expires_at:
                status = EXPIRED
            else:
                status = row.status
            resolution = TokenResolution(status=status, token=token, row=row)

        logger.debug(
            "token_resolved", token=token_preview(token), status=resolution.status
        )
        notify(self.observer, "invite_resolved", token=token, status=resolution.status)
        return resolution

    # ── Internal helpers ────────────────────────────────────────────

    def _ttl(self, ttl_minutes: int | None) -> int:
        ttl = self.settings.COMPARE_TOKEN_TTL_MINUTES if ttl_minutes is None else ttl_minutes
        if isinstance(ttl, bool) or not isinstance(ttl, int) or ttl < 1:
            raise ValidationError(
                f"ttl_minutes must be a positive integer, got {ttl!r}",
                constraint="out_of_range",
            )
        return ttl

    def _link(self, row: TokenRow, reused: bool) -> dict:
        return {
            "token": row.token,
            "share_url": self.share_url(row.token),
            "subject_attempt_id": row.subject_attempt_id,
            "status": row.status,
            "created_at": row.created_at,
            "expires_at": row.expires_at,
            "reused": reused,
        }

    async def _call(
        self,
        operation: str,
        make_call: Callable[[], Awaitable[T]],
        retry: bool,
    ) -> T:
        return await run_store_call(operation, make_call, self.settings, retry=retry)
