from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, field_validator


class TokenRow(BaseModel):
    """A compare_tokens row as read from the store."""

    token: str
    subject_attempt_id: str
    paired_attempt_id: Optional[str] = None
    status: Literal["pending", "completed", "superseded"]
    created_at: Optional[datetime] = None
    expires_at: datetime
    completed_at: Optional[datetime] = None

    @field_validator("subject_attempt_id", "paired_attempt_id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> Any:
        return str(v) if v is not None else None

    @field_validator("created_at", "expires_at", "completed_at")
    @classmethod
    def _assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class InviteRequest(BaseModel):
    subject_attempt_id: str
    fresh: bool = False  # supersede any pending link and issue a new one


class CompletePairingRequest(BaseModel):
    paired_attempt_id: str


class OutcomeError(BaseModel):
    kind: str
    message: str
    notice: str
    index: Optional[int] = None
    constraint: Optional[str] = None


class Outcome(BaseModel):
    """Tagged result returned by every gateway operation."""

    ok: bool
    data: Optional[Any] = None
    error: Optional[OutcomeError] = None
