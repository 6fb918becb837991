"""
MindPair — Main API Router

Aggregates all sub-routers under a single prefix so that ``mindpair.main``
can mount the entire API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from mindpair.api import attempts, compare

router = APIRouter()

router.include_router(attempts.router, prefix="/attempts", tags=["Attempts"])
router.include_router(compare.router, prefix="/compare", tags=["Compare"])
