"""
MindPair — Compare invites API

Invite links for a completed attempt, resolution of an invite by the
invited person, pairing, and the comparison of a completed pair.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from mindpair.api.deps import get_gateway, outcome_response
from mindpair.schemas.compare import CompletePairingRequest, InviteRequest
from mindpair.services.gateway import CompareGateway
from mindpair.services.observer import token_preview

logger = structlog.get_logger("mindpair.api.compare")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# POST /invites — Get (or refresh) the invite link of an attempt
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/invites", summary="Request an invite link")
async def request_invite_link(
    payload: InviteRequest,
    gateway: CompareGateway = Depends(get_gateway),
) -> JSONResponse:
    """Return the live pending link of the attempt, creating one if needed.

    ``fresh=true`` supersedes any pending link and always issues a new one.
    """
    outcome = await gateway.request_invite_link(
        payload.subject_attempt_id, fresh=payload.fresh
    )
    return outcome_response(outcome)


# ──────────────────────────────────────────────────────────────────────────────
# GET /invites/{token} — Resolve an invite
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/invites/{token}", summary="Resolve an invite link")
async def resolve_invite(
    token: str,
    gateway: CompareGateway = Depends(get_gateway),
) -> JSONResponse:
    logger.debug("resolve_invite_request", token=token_preview(token))
    return outcome_response(await gateway.resolve_invite(token))


# ──────────────────────────────────────────────────────────────────────────────
# POST /invites/{token}/complete — Bind the invited person's attempt
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/invites/{token}/complete",
    summary="Complete an invite with the invited person's attempt",
)
async def complete_pairing(
    token: str,
    payload: CompletePairingRequest,
    gateway: CompareGateway = Depends(get_gateway),
) -> JSONResponse:
    """Completing again with the same attempt succeeds with
    ``already_completed=true``; a different attempt gets 409."""
    outcome = await gateway.complete_pairing(token, payload.paired_attempt_id)
    return outcome_response(outcome)


# ──────────────────────────────────────────────────────────────────────────────
# GET /invites/{token}/comparison — Comparison of a completed pair
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/invites/{token}/comparison",
    summary="Compare the two attempts of a completed invite",
    status_code=status.HTTP_200_OK,
)
async def get_comparison(
    token: str,
    gateway: CompareGateway = Depends(get_gateway),
) -> JSONResponse:
    return outcome_response(await gateway.get_comparison(token))
