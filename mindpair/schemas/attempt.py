from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, field_validator


class AttemptRow(BaseModel):
    """An attempts row as read from the store."""

    id: str
    quiz_id: Optional[str] = None
    participant_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    status: str
    answers: Optional[list[Any]] = None
    total_score: Optional[int] = None
    dimension_scores: Optional[dict[str, float]] = None
    score_band_id: Optional[int] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> Any:
        return str(v) if v is not None else v

    @field_validator("created_at", "completed_at")
    @classmethod
    def _assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class AttemptIntake(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


class SubmitAnswersRequest(BaseModel):
    answers: Any = None  # validated by the scoring engine
    participant_id: Optional[str] = None
    intake: Optional[AttemptIntake] = None
    invite_token: Optional[str] = None
