"""
MindPair — Compare (invite) token model.

At most one ``pending`` row may exist per subject attempt.  The partial
unique index below backs that rule at the database level; the store
procedures are written so that they never rely on hitting it.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from mindpair.database import Base


class CompareToken(Base):
    __tablename__ = "compare_tokens"
    __table_args__ = (
        Index(
            "uq_compare_tokens_one_pending",
            "subject_attempt_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    token: Mapped[str] = mapped_column(String(64), primary_key=True)
    subject_attempt_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("attempts.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    paired_attempt_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("attempts.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(16), default="pending", server_default="pending", nullable=False,
        comment="pending | completed | superseded",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<CompareToken {self.token[:12]} status={self.status!r}>"
