"""
MindPair — Attempt workflow.

Submitting answers runs the whole attempt life in order:

  1. validate the raw answers
  2. create the attempt row           (started)
  3. record the answers               (in_progress)
  4. score: total, dimensions, levels
  5. look up the score band           (best effort, cached)
  6. complete the attempt             (completed; idempotent)

Attempt writes are never retried automatically.  The score-band table is
read once per process through a ``ReadThroughCache``; a failed band lookup
is logged and leaves ``score_band_id`` empty rather than failing the
submission.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

import pydantic
import structlog

from mindpair.config import Settings, get_settings
from mindpair.errors import MindPairError, NotFoundError, StoreDataError
from mindpair.schemas.attempt import AttemptRow
from mindpair.services.scoring_service import (
    band_for_score,
    level_of_dimension,
    level_of_total,
    normalize_answers,
    score_attempt,
)
from mindpair.services.store import CompareStore, run_store_call
from mindpair.services.token_service import normalize_attempt_id, utc_now
from mindpair.utils.cache import ReadThroughCache

logger = structlog.get_logger("mindpair.attempt_service")


class AttemptService:
    def __init__(
        self,
        store: CompareStore,
        clock: Callable[[], datetime] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.clock = clock or utc_now
        self.settings = settings or get_settings()
        self.band_cache: ReadThroughCache[list[dict]] = ReadThroughCache(
            self._load_score_bands
        )

    # ── Public API ──────────────────────────────────────────────────

    async def submit_answers(
        self,
        answers: Any,
        participant_id: str | None = None,
        intake: dict | None = None,
    ) -> dict:
        """Validate, persist, score and complete one questionnaire run.

        Returns
        -------
        dict with keys: attempt_id, total_score, level, dimension_scores,
        dimension_levels, score_band_id
        """
        vector = normalize_answers(answers)

        created = await run_store_call(
            "create_attempt",
            lambda: self.store.create_attempt(
                self.settings.QUIZ_SLUG,
                participant_id,
                intake,
                now=self.clock(),
            ),
            self.settings,
            retry=False,
        )
        attempt_id = str(created["id"])
        log = logger.bind(attempt_id=attempt_id)
        log.info("attempt_started")

        await run_store_call(
            "record_answers",
            lambda: self.store.record_answers(attempt_id, list(vector)),
            self.settings,
            retry=False,
        )

        scored = score_attempt(attempt_id, vector)
        band_id = await self.band_for(scored.total_score)

        completed = await run_store_call(
            "complete_attempt",
            lambda: self.store.complete_attempt(
                attempt_id,
                scored.total_score,
                scored.dimension_scores,
                band_id,
                now=self.clock(),
            ),
            self.settings,
            retry=False,
        )

        log.info(
            "attempt_completed",
            total_score=scored.total_score,
            score_band_id=completed.get("score_band_id"),
        )
        return {
            "attempt_id": attempt_id,
            "total_score": scored.total_score,
            "level": level_of_total(scored.total_score),
            "dimension_scores": scored.dimension_scores,
            "dimension_levels": {
                key: level_of_dimension(value)
                for key, value in scored.dimension_scores.items()
            },
            "score_band_id": completed.get("score_band_id"),
        }

    async def get_attempt(self, attempt_id: str) -> AttemptRow:
        attempt_id = normalize_attempt_id(attempt_id)
        raw = await run_store_call(
            "read_attempt",
            lambda: self.store.read_attempt(attempt_id),
            self.settings,
        )
        if raw is None:
            raise NotFoundError("Attempt not found", attempt_id=attempt_id)
        try:
            return AttemptRow.model_validate(raw)
        except pydantic.ValidationError as exc:
            raise StoreDataError("Attempt row is malformed", attempt_id=attempt_id) from exc

    async def band_for(self, total_score: int) -> int | None:
        """Score band id for ``total_score``; ``None`` when the bands cannot
        be loaded or none matches."""
        try:
            bands = await self.band_cache.get()
        except MindPairError as exc:
            logger.warning("score_bands_unavailable", kind=exc.kind, error=exc.message)
            return None

        band_id = band_for_score(total_score, bands)
        if band_id is None:
            logger.warning("score_band_not_found", total_score=total_score)
        return band_id

    # ── Internal helpers ────────────────────────────────────────────

    async def _load_score_bands(self) -> list[dict]:
        bands = await run_store_call(
            "list_score_bands", self.store.list_score_bands, self.settings
        )
        if not bands:
            raise StoreDataError("No score bands found")
        logger.info("score_bands_loaded", count=len(bands))
        return bands
