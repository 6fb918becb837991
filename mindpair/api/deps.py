"""
MindPair — Shared API dependencies.

One gateway per process (so the in-process store and the score-band cache
are shared by every route) and the mapping from gateway outcomes to HTTP
responses.
"""

from __future__ import annotations

from fastapi import status
from fastapi.responses import JSONResponse

from mindpair.schemas.compare import Outcome
from mindpair.services.gateway import CompareGateway, build_gateway

# Error kind -> HTTP status
ERROR_STATUS: dict[str, int] = {
    "validation": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "not_found": status.HTTP_404_NOT_FOUND,
    "expired": status.HTTP_410_GONE,
    "superseded": status.HTTP_410_GONE,
    "conflict": status.HTTP_409_CONFLICT,
    "not_ready": status.HTTP_409_CONFLICT,
    "configuration": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "store_data": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "resource_exhausted": status.HTTP_503_SERVICE_UNAVAILABLE,
    "transient_store": status.HTTP_503_SERVICE_UNAVAILABLE,
    "internal": status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# ── Gateway singleton ─────────────────────────────────────────────────────────

_gateway: CompareGateway | None = None


def get_gateway() -> CompareGateway:
    global _gateway
    if _gateway is None:
        _gateway = build_gateway()
    return _gateway


def reset_gateway() -> None:
    global _gateway
    _gateway = None


def outcome_response(outcome: Outcome, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    if outcome.ok:
        code = success_status
    else:
        code = ERROR_STATUS.get(outcome.error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(
        status_code=code,
        content=outcome.model_dump(mode="json", exclude_none=True),
    )
