"""
MindPair — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from mindpair.models.attempt import Attempt
from mindpair.models.compare_token import CompareToken
from mindpair.models.score_band import ScoreBand

__all__ = [
    "Attempt",
    "CompareToken",
    "ScoreBand",
]
