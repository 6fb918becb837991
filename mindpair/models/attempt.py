"""
MindPair — Questionnaire attempt model.
"""

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from mindpair.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Attempt(Base):
    __tablename__ = "attempts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    quiz_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    participant_id: Mapped[str | None] = mapped_column(String, nullable=True)

    # ── Intake ─────────────────────────────────────────────────────
    first_name: Mapped[str | None] = mapped_column(String, nullable=True)
    last_name: Mapped[str | None] = mapped_column(String, nullable=True)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)

    status: Mapped[str] = mapped_column(
        String(16), default="started", server_default="started", nullable=False,
        comment="started | in_progress | completed | abandoned",
    )
    answers: Mapped[list | None] = mapped_column(
        JSONType, nullable=True, comment="12 integers in 0..4"
    )
    total_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    dimension_scores: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    score_band_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("score_bands.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Attempt id={self.id} status={self.status!r}>"
