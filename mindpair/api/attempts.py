"""
MindPair — Attempts API

Submitting a finished questionnaire run, optionally on behalf of an invite.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from mindpair.api.deps import get_gateway, outcome_response
from mindpair.schemas.attempt import SubmitAnswersRequest
from mindpair.services.gateway import CompareGateway

logger = structlog.get_logger("mindpair.api.attempts")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# POST / — Submit answers
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Submit a completed questionnaire",
)
async def submit_answers(
    payload: SubmitAnswersRequest,
    gateway: CompareGateway = Depends(get_gateway),
) -> JSONResponse:
    """Score and store 12 answers (0..4 each).

    With ``invite_token`` the new attempt is also bound to that invite; a
    pairing failure is reported under ``data.pairing`` and does not undo the
    attempt.
    """
    logger.info("submit_answers_request", with_invite=payload.invite_token is not None)
    outcome = await gateway.submit_answers(
        payload.answers,
        participant_id=payload.participant_id,
        intake=payload.intake.model_dump() if payload.intake else None,
        invite_token=payload.invite_token,
    )
    return outcome_response(outcome, success_status=status.HTTP_201_CREATED)
