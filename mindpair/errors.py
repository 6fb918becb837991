"""
MindPair — Error taxonomy.

Every failure that crosses a service boundary is a ``MindPairError``.  Each
subclass carries a stable ``kind`` (used as the tagged-result discriminator
and for HTTP status mapping) and a ``notice`` naming the user-facing message
class the caller should render:

    retry         transient problem, safe to try again
    fix_input     the caller sent something malformed
    link_invalid  the invite link can no longer be used
    already_used  somebody else already completed the invite
    internal      content or data defect on our side
"""

from __future__ import annotations

from typing import Any


class MindPairError(Exception):
    """Base class for all typed MindPair failures."""

    kind: str = "internal"
    notice: str = "internal"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "notice": self.notice,
        }


class ValidationError(MindPairError):
    """Malformed input: answers, attempt ids, tokens."""

    kind = "validation"
    notice = "fix_input"

    def __init__(
        self,
        message: str,
        *,
        index: int | None = None,
        constraint: str | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message, **context)
        self.index = index
        self.constraint = constraint

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.index is not None:
            payload["index"] = self.index
        if self.constraint is not None:
            payload["constraint"] = self.constraint
        return payload


class InvalidInputError(ValidationError):
    """Raised by the scoring functions for an out-of-contract answer vector."""


class NotFoundError(MindPairError):
    kind = "not_found"
    notice = "link_invalid"


class ExpiredError(MindPairError):
    kind = "expired"
    notice = "link_invalid"


class SupersededError(MindPairError):
    kind = "superseded"
    notice = "link_invalid"


class NotReadyError(MindPairError):
    """The invite is still pending; there is nothing to compare yet."""

    kind = "not_ready"
    notice = "retry"


class ConflictError(MindPairError):
    """The invite was completed by a different paired attempt."""

    kind = "conflict"
    notice = "already_used"


class ConfigurationError(MindPairError):
    """A content lookup table is missing an entry for a valid key."""

    kind = "configuration"
    notice = "internal"


class StoreDataError(MindPairError):
    """A store row does not match the expected shape (e.g. unparseable
    ``expires_at``)."""

    kind = "store_data"
    notice = "internal"


class ResourceExhaustedError(MindPairError):
    """Bounded retries (e.g. token generation) ran out."""

    kind = "resource_exhausted"
    notice = "retry"


class TransientStoreError(MindPairError):
    """I/O failure or timeout talking to the store."""

    kind = "transient_store"
    notice = "retry"
