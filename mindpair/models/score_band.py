"""
MindPair — Score band model.

Reference data: six inclusive total-score ranges, seeded by
``scripts/seed_score_bands.py``.
"""

from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, mapped_column

from mindpair.database import Base


class ScoreBand(Base):
    __tablename__ = "score_bands"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    min_score: Mapped[int] = mapped_column(Integer, nullable=False)
    max_score: Mapped[int] = mapped_column(Integer, nullable=False)
    order_index: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<ScoreBand {self.id} [{self.min_score}, {self.max_score}]>"
