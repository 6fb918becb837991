"""
MindPair — Scoring Engine.

Pure functions over the 12-item rumination questionnaire (Likert 0..4):

  * total score (0..48) with questions 11 and 12 reverse-scored
  * four dimension scores (mean of raw answers, one decimal)
  * level lookups for dimensions and totals
  * score-band lookup against the band table held in the store

``normalize_answers`` is the entry point for untrusted input (JSON bodies,
store rows); the scoring functions themselves only accept vectors that are
already well formed and raise ``InvalidInputError`` otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, Sequence

from mindpair.errors import InvalidInputError, ValidationError

# ──────────────────────────────────────────────────────────────────────────────
# Constants
# ──────────────────────────────────────────────────────────────────────────────

QUESTION_COUNT: int = 12
MIN_ANSWER: int = 0
MAX_ANSWER: int = 4
MAX_TOTAL_SCORE: int = QUESTION_COUNT * MAX_ANSWER  # 48

# 1-indexed question numbers
REVERSE_SCORED_QUESTIONS: tuple[int, ...] = (11, 12)

DIMENSION_KEYS: tuple[str, ...] = (
    "stickiness", "past_brooding", "future_worry", "interpersonal",
)

# Dimension -> 1-indexed question numbers.  Subsets are fixed lists; they do
# not have to partition the questionnaire.
DIMENSION_QUESTION_MAP: dict[str, tuple[int, ...]] = {
    "stickiness": (1, 10),
    "past_brooding": (2, 8),
    "future_worry": (4, 7, 9),
    "interpersonal": (5, 6),
}

# Inclusive upper bounds
DIMENSION_LOW_MAX: float = 1.3
DIMENSION_MEDIUM_MAX: float = 2.6

TOTAL_LEVELS: tuple[tuple[str, int, int], ...] = (
    ("low", 0, 16),
    ("medium", 17, 32),
    ("high", 33, 48),
)

VALID_BAND_IDS = range(1, 7)

# Seed data for the score_bands table (and the in-process store)
DEFAULT_SCORE_BANDS: tuple[dict[str, int], ...] = (
    {"id": 1, "min_score": 0, "max_score": 7, "order_index": 1},
    {"id": 2, "min_score": 8, "max_score": 15, "order_index": 2},
    {"id": 3, "min_score": 16, "max_score": 23, "order_index": 3},
    {"id": 4, "min_score": 24, "max_score": 31, "order_index": 4},
    {"id": 5, "min_score": 32, "max_score": 39, "order_index": 5},
    {"id": 6, "min_score": 40, "max_score": 48, "order_index": 6},
)

AnswerVector = tuple[int, ...]


@dataclass(frozen=True)
class ScoredAttempt:
    """Derived, never-mutated view of one completed questionnaire run."""

    id: str
    answers: AnswerVector
    total_score: int
    dimension_scores: dict[str, float] = field(default_factory=dict)


def round_half_away(value: float, ndigits: int = 0) -> float:
    """Round ``value`` to ``ndigits`` decimals, halves away from zero.

    Python's built-in ``round`` uses banker's rounding, which would turn a
    2.5 average into 2 rather than 3.
    """
    quantum = Decimal(1).scaleb(-ndigits)
    rounded = Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return float(rounded)


# ──────────────────────────────────────────────────────────────────────────────
# Validation
# ──────────────────────────────────────────────────────────────────────────────

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_vector(answers: Sequence[Any]) -> None:
    """Raise ``InvalidInputError`` naming the first offending index/value."""
    if len(answers) != QUESTION_COUNT:
        raise InvalidInputError(
            f"Expected {QUESTION_COUNT} answers, got {len(answers)}",
            constraint="wrong_length",
        )
    for index, value in enumerate(answers):
        if not _is_int(value):
            raise InvalidInputError(
                f"Answer at index {index} must be an integer, got {value!r}",
                index=index,
                constraint="non_integer",
            )
        if not MIN_ANSWER <= value <= MAX_ANSWER:
            raise InvalidInputError(
                f"Answer at index {index} must be {MIN_ANSWER}..{MAX_ANSWER}, "
                f"got {value}",
                index=index,
                constraint="out_of_range",
            )


def normalize_answers(raw: Any) -> AnswerVector:
    """Validate arbitrary input into a well-formed answer vector.

    Accepts lists and tuples only.  Integral floats (``2.0``) are accepted
    because JSON decoders may produce them; ``True``/``False`` are not.

    Raises
    ------
    ValidationError
        With ``constraint`` set to one of ``not_an_array``, ``wrong_length``,
        ``non_integer`` or ``out_of_range`` and ``index`` set for the
        per-item constraints.
    """
    if not isinstance(raw, (list, tuple)):
        raise ValidationError(
            f"Answers must be an array, got {type(raw).__name__}",
            constraint="not_an_array",
        )
    if len(raw) != QUESTION_COUNT:
        raise ValidationError(
            f"Expected {QUESTION_COUNT} answers, got {len(raw)}",
            constraint="wrong_length",
        )

    normalized: list[int] = []
    for index, value in enumerate(raw):
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if not _is_int(value):
            raise ValidationError(
                f"Answer at index {index} must be an integer, got {value!r}",
                index=index,
                constraint="non_integer",
            )
        if not MIN_ANSWER <= value <= MAX_ANSWER:
            raise ValidationError(
                f"Answer at index {index} must be {MIN_ANSWER}..{MAX_ANSWER}, "
                f"got {value}",
                index=index,
                constraint="out_of_range",
            )
        normalized.append(value)

    return tuple(normalized)


# ──────────────────────────────────────────────────────────────────────────────
# Scoring
# ──────────────────────────────────────────────────────────────────────────────

def compute_total_score(answers: Sequence[int]) -> int:
    """Sum of all answers with questions 11 and 12 contributing ``4 - v``."""
    _check_vector(answers)

    total = 0
    for index, value in enumerate(answers):
        if index + 1 in REVERSE_SCORED_QUESTIONS:
            total += MAX_ANSWER - value
        else:
            total += value
    return total


def compute_dimension_scores(answers: Sequence[int]) -> dict[str, float]:
    """Average the raw (non-reversed) answers of each dimension's questions,
    rounded to one decimal."""
    _check_vector(answers)

    scores: dict[str, float] = {}
    for dimension in DIMENSION_KEYS:
        questions = DIMENSION_QUESTION_MAP[dimension]
        total = sum(answers[q - 1] for q in questions)
        scores[dimension] = round_half_away(total / len(questions), 1)
    return scores


def level_of_dimension(score: float) -> str:
    if score <= DIMENSION_LOW_MAX:
        return "low"
    if score <= DIMENSION_MEDIUM_MAX:
        return "medium"
    return "high"


def level_of_total(total: int) -> str:
    """Map a total score to low (0-16), medium (17-32) or high (33-48)."""
    for key, low, high in TOTAL_LEVELS:
        if low <= total <= high:
            return key
    raise InvalidInputError(
        f"Total score must be 0..{MAX_TOTAL_SCORE}, got {total}",
        constraint="out_of_range",
    )


def score_attempt(attempt_id: str, answers: Sequence[int]) -> ScoredAttempt:
    """Score a full answer vector into an immutable ``ScoredAttempt``."""
    vector = tuple(answers)
    return ScoredAttempt(
        id=str(attempt_id),
        answers=vector,
        total_score=compute_total_score(vector),
        dimension_scores=compute_dimension_scores(vector),
    )


def band_for_score(
    total_score: int, bands: Iterable[Mapping[str, Any]]
) -> int | None:
    """Return the id of the band whose inclusive range holds ``total_score``.

    Bands are walked in ``order_index`` order (rows without one keep their
    position after the ordered ones).  Bands whose id falls outside 1..6 are
    skipped.  Returns ``None`` when no band matches.
    """
    ordered = sorted(
        bands,
        key=lambda b: (b.get("order_index") is None, b.get("order_index") or 0),
    )
    for band in ordered:
        if int(band["min_score"]) <= total_score <= int(band["max_score"]):
            band_id = int(band["id"])
            if band_id not in VALID_BAND_IDS:
                continue
            return band_id
    return None
