"""
MindPair — Pairwise comparison engine.

Two comparison strategies run side by side over the same pair of answer
vectors:

  Per-question (free-form invite links)
    1. diff_i = |subject_i - paired_i|                     (0..4)
    2. category: 0 same, 1 close, 2 different, >=3 very_different
    3. similarity_percent = round((1 - sum(diff) / 48) * 100)
    4. band: >=80 high, >=60 medium, >=40 low, else very_different
    5. similarities = 3 lowest diffs, differences = 3 highest (reversed)

  Per-dimension (relationship-insight card)
    1. delta = round(|subject - paired|, 1) per dimension
    2. relation: similar if delta < 0.8 else different
    3. severity: similar < 0.8, different < 1.6, else very_different
    4. aggregate: similar count 0-1 low, 2 medium, 3-4 high
    5. risk: very_different count 0 low, 1 medium, >=2 high
    6. dominant: largest delta, ties broken by dimension order
    7. highlights: different dims by delta desc, then similar dims, max 3

Both strategies are pure and fail fast on malformed vectors.  Narrative
lookups that miss raise ``ConfigurationError``.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Sequence

import structlog

from mindpair.errors import ConfigurationError, ValidationError
from mindpair.services import compare_content
from mindpair.services.scoring_service import (
    DIMENSION_KEYS,
    MAX_ANSWER,
    MAX_TOTAL_SCORE,
    MIN_ANSWER,
    AnswerVector,
    compute_dimension_scores,
    compute_total_score,
    level_of_dimension,
    normalize_answers,
    round_half_away,
)

logger = structlog.get_logger("mindpair.comparison_service")

MAX_DISPLAY_NAME_LENGTH = 32
_REPEATED_CHAR_RUN = re.compile(r"(.)\1{2,}")
_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_display_name(name: str | None) -> str | None:
    """Presentation form of a respondent's name; stored names are untouched.

    Trims, collapses whitespace, limits runs of one character to two and
    clamps to ``MAX_DISPLAY_NAME_LENGTH`` with a trailing ellipsis.
    """
    if name is None:
        return None
    normalized = _WHITESPACE_RUN.sub(" ", name.strip())
    normalized = _REPEATED_CHAR_RUN.sub(r"\1\1", normalized)
    if len(normalized) > MAX_DISPLAY_NAME_LENGTH:
        normalized = normalized[: MAX_DISPLAY_NAME_LENGTH - 1] + "…"
    return normalized or None


def display_name(first_name: str | None, last_name: str | None) -> str | None:
    parts = [part for part in (first_name, last_name) if part and part.strip()]
    return normalize_display_name(" ".join(parts)) if parts else None


class ComparisonService:
    """Compare two completed attempts and assemble shareable payloads.

    Content tables default to :mod:`mindpair.services.compare_content` and
    can be swapped per instance (tests use this to exercise lookup misses).
    """

    # ── Per-question constants ──────────────────────────────────────
    MAX_SUM_DIFF: int = MAX_TOTAL_SCORE  # 12 questions x max diff 4
    HIGHLIGHT_COUNT: int = 3

    DIFF_CATEGORIES: dict[int, str] = {
        0: "same",
        1: "close",
        2: "different",
    }
    LARGE_DIFF_CATEGORY: str = "very_different"

    # (inclusive lower bound, band), evaluated top-down
    PERCENT_BANDS: tuple[tuple[int, str], ...] = (
        (80, "high"),
        (60, "medium"),
        (40, "low"),
    )
    LOWEST_PERCENT_BAND: str = "very_different"

    # ── Per-dimension constants ─────────────────────────────────────
    SIMILAR_DELTA_THRESHOLD: float = 0.8
    VERY_DIFFERENT_DELTA_THRESHOLD: float = 1.6
    DOMINANT_TIE_EPSILON: float = 0.01
    EQUAL_DIRECTION_EPSILON: float = 0.1
    MAX_HIGHLIGHTS: int = 3
    CONVERSATION_STARTER_COUNT: int = 2

    def __init__(
        self,
        question_texts: Sequence[str] | None = None,
        question_insights: Sequence[Mapping[str, str]] | None = None,
        similarity_labels: Mapping[str, str] | None = None,
        dimension_titles: Mapping[str, str] | None = None,
        similar_texts: Mapping[str, str] | None = None,
        different_texts: Mapping[str, str] | None = None,
        definitions: Mapping[str, str] | None = None,
        risk_labels: Mapping[str, str] | None = None,
    ) -> None:
        c = compare_content
        self.question_texts = question_texts if question_texts is not None else c.QUESTION_TEXTS
        self.question_insights = (
            question_insights if question_insights is not None else c.QUESTION_INSIGHTS
        )
        self.similarity_labels = (
            similarity_labels if similarity_labels is not None else c.SIMILARITY_LABELS
        )
        self.dimension_titles = (
            dimension_titles if dimension_titles is not None else c.DIMENSION_TITLES
        )
        self.similar_texts = similar_texts if similar_texts is not None else c.SIMILAR_TEXTS
        self.different_texts = (
            different_texts if different_texts is not None else c.DIFFERENT_TEXTS
        )
        self.definitions = definitions if definitions is not None else c.DEFINITIONS
        self.risk_labels = risk_labels if risk_labels is not None else c.RISK_LABELS

    # ── Public API: per-question ────────────────────────────────────

    def compare_answers(
        self, subject_answers: Sequence[Any], paired_answers: Sequence[Any]
    ) -> dict:
        """Per-question comparison of two answer vectors.

        Returns
        -------
        dict with keys:
            similarity_percent, similarity_band, similarity_label,
            similarities (3 items), differences (3 items),
            all_questions (12 items)
        """
        subject = self._validated(subject_answers, "subject")
        paired = self._validated(paired_answers, "paired")

        all_questions: list[dict] = []
        sum_diff = 0
        for index, (a, b) in enumerate(zip(subject, paired)):
            diff = abs(a - b)
            sum_diff += diff
            category = self._categorise_diff(diff)
            all_questions.append(
                {
                    "question_index": index,
                    "question_text": self._question_text(index),
                    "subject_answer": a,
                    "paired_answer": b,
                    "diff": diff,
                    "category": category,
                    "insight": self._insight(index, category),
                }
            )

        similarity_percent = int(
            round_half_away((1 - sum_diff / self.MAX_SUM_DIFF) * 100)
        )
        band = self._percent_band(similarity_percent)

        # Stable sort keeps question order on equal diffs
        by_diff = sorted(all_questions, key=lambda q: q["diff"])
        similarities = [
            self._highlight_item(q) for q in by_diff[: self.HIGHLIGHT_COUNT]
        ]
        differences = [
            self._highlight_item(q)
            for q in reversed(by_diff[-self.HIGHLIGHT_COUNT:])
        ]

        logger.info(
            "comparison.per_question_done",
            sum_diff=sum_diff,
            similarity_percent=similarity_percent,
            band=band,
        )

        return {
            "similarity_percent": similarity_percent,
            "similarity_band": band,
            "similarity_label": self._similarity_label(band),
            "similarities": similarities,
            "differences": differences,
            "all_questions": all_questions,
        }

    # ── Public API: per-dimension ───────────────────────────────────

    def compare_dimensions(
        self, subject_answers: Sequence[Any], paired_answers: Sequence[Any]
    ) -> dict:
        """Per-dimension comparison of two answer vectors.

        Dimension scores are recomputed from the answers so the result always
        reflects the current scoring rules.
        """
        subject = self._validated(subject_answers, "subject")
        paired = self._validated(paired_answers, "paired")

        return self._compare_scores(
            subject_score=compute_total_score(subject),
            paired_score=compute_total_score(paired),
            subject_dimensions=compute_dimension_scores(subject),
            paired_dimensions=compute_dimension_scores(paired),
        )

    def compare_dimension_scores(
        self,
        subject_dimensions: Mapping[str, Any],
        paired_dimensions: Mapping[str, Any],
    ) -> dict:
        """Per-dimension comparison of two precomputed dimension-score sets.

        Total scores are unknown on this path and reported as ``None``.
        """
        return self._compare_scores(
            subject_score=None,
            paired_score=None,
            subject_dimensions=self._validated_dimensions(subject_dimensions, "subject"),
            paired_dimensions=self._validated_dimensions(paired_dimensions, "paired"),
        )

    def build_compare_card(
        self, comparison: dict, names: tuple[str, str] | None = None
    ) -> dict:
        """Build the relationship-insight card from a per-dimension comparison.

        Highlights prefer "different" dimensions sorted by delta descending,
        then fill up to :pyattr:`MAX_HIGHLIGHTS` from "similar" dimensions
        sorted the same way.  ``names`` (subject, paired display names) adds
        a names line to the share text.
        """
        per_dimension = comparison["per_dimension"]

        different = [k for k in DIMENSION_KEYS if per_dimension[k]["relation"] == "different"]
        similar = [k for k in DIMENSION_KEYS if per_dimension[k]["relation"] == "similar"]
        different.sort(key=lambda k: per_dimension[k]["delta"], reverse=True)
        similar.sort(key=lambda k: per_dimension[k]["delta"], reverse=True)

        selected = different[: self.MAX_HIGHLIGHTS]
        if len(selected) < self.MAX_HIGHLIGHTS:
            selected += similar[: self.MAX_HIGHLIGHTS - len(selected)]

        highlights: list[dict] = []
        for key in selected:
            relation = per_dimension[key]["relation"]
            narratives = self.similar_texts if relation == "similar" else self.different_texts
            highlights.append(
                {
                    "key": key,
                    "title": self._lookup(self.dimension_titles, key, "dimension title"),
                    "relation": relation,
                    "body": self._lookup(narratives, key, f"{relation} narrative"),
                    "definition": self._lookup(self.definitions, key, "definition"),
                }
            )

        share_text = self.build_share_text(highlights, names)

        logger.debug(
            "comparison.card_built",
            aggregate_similarity=comparison["aggregate_similarity"],
            highlights=[h["key"] for h in highlights],
        )

        return {
            "aggregate_similarity": comparison["aggregate_similarity"],
            "risk_level": comparison["risk_level"],
            "risk_label": comparison["risk_label"],
            "dominant_dimension": comparison["dominant_dimension"],
            "dominant_tied": comparison["dominant_tied"],
            "highlights": highlights,
            "safety_phrases": list(compare_content.SAFETY_PHRASES),
            "conversation_starters": list(
                compare_content.CONVERSATION_STARTERS[: self.CONVERSATION_STARTER_COUNT]
            ),
            "share_text": share_text,
        }

    def build_share_text(
        self, highlights: list[dict], names: tuple[str, str] | None = None
    ) -> str:
        """Deterministic multi-line share text.

        Layout: header, names line (when ``names`` is given), intro, similar
        bullets (if any), different bullets (if any), safety disclaimers,
        call to action.
        """
        c = compare_content
        lines: list[str] = [c.SHARE_HEADER, ""]
        if names is not None:
            lines.extend([f"{c.SHARE_NAMES_PREFIX} {names[0]} و {names[1]}", ""])
        lines.extend([c.SHARE_INTRO, ""])

        similar = [h["title"] for h in highlights if h["relation"] == "similar"]
        different = [h["title"] for h in highlights if h["relation"] == "different"]

        if similar:
            lines.append(c.SHARE_SIMILAR_HEADING)
            lines.extend(f"• {title}" for title in similar)
            lines.append("")

        if different:
            lines.append(c.SHARE_DIFFERENT_HEADING)
            lines.extend(f"• {title}" for title in different)
            lines.append("")

        lines.append(c.SHARE_SAFETY_HEADING)
        lines.extend(f"• {phrase}" for phrase in c.SAFETY_PHRASES)
        lines.append("")
        lines.append(c.SHARE_QUIZ_INVITE)
        lines.append(c.format_invite_text(include_url=True))

        return "\n".join(lines)

    # ── Internal helpers ────────────────────────────────────────────

    def _compare_scores(
        self,
        subject_score: int | None,
        paired_score: int | None,
        subject_dimensions: Mapping[str, float],
        paired_dimensions: Mapping[str, float],
    ) -> dict:
        per_dimension: dict[str, dict] = {}
        similar_count = 0
        very_different_count = 0

        for key in DIMENSION_KEYS:
            a = subject_dimensions[key]
            b = paired_dimensions[key]
            delta = round_half_away(abs(a - b), 1)
            relation = "similar" if delta < self.SIMILAR_DELTA_THRESHOLD else "different"
            severity = self._severity(delta)
            if relation == "similar":
                similar_count += 1
            if severity == "very_different":
                very_different_count += 1

            per_dimension[key] = {
                "subject_value": a,
                "paired_value": b,
                "delta": delta,
                "relation": relation,
                "severity": severity,
                "direction": self._direction(a, b),
                "subject_level": level_of_dimension(a),
                "paired_level": level_of_dimension(b),
            }

        aggregate = self._aggregate_similarity(similar_count)
        risk_level = self._risk_level(very_different_count)
        dominant, tied = self._dominant_dimension(per_dimension)

        logger.info(
            "comparison.per_dimension_done",
            similar_count=similar_count,
            aggregate_similarity=aggregate,
            risk_level=risk_level,
            dominant_dimension=dominant,
        )

        return {
            "subject_score": subject_score,
            "paired_score": paired_score,
            "per_dimension": per_dimension,
            "similar_count": similar_count,
            "aggregate_similarity": aggregate,
            "very_different_count": very_different_count,
            "risk_level": risk_level,
            "risk_label": self._risk_label(risk_level, very_different_count),
            "dominant_dimension": dominant,
            "dominant_tied": tied,
        }

    def _validated(self, answers: Any, side: str) -> AnswerVector:
        try:
            return normalize_answers(answers)
        except ValidationError as exc:
            raise ValidationError(
                f"{side} answers: {exc.message}",
                index=exc.index,
                constraint=exc.constraint,
            ) from exc

    def _validated_dimensions(
        self, scores: Mapping[str, Any], side: str
    ) -> dict[str, float]:
        validated: dict[str, float] = {}
        for key in DIMENSION_KEYS:
            if key not in scores:
                raise ValidationError(
                    f"{side} dimension scores are missing {key!r}",
                    constraint="missing_dimension",
                )
            value = scores[key]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(
                    f"{side} dimension {key!r} must be a number, got {value!r}",
                    constraint="non_numeric",
                )
            if not MIN_ANSWER <= value <= MAX_ANSWER:
                raise ValidationError(
                    f"{side} dimension {key!r} must be "
                    f"{MIN_ANSWER}..{MAX_ANSWER}, got {value}",
                    constraint="out_of_range",
                )
            validated[key] = float(value)
        return validated

    def _categorise_diff(self, diff: int) -> str:
        return self.DIFF_CATEGORIES.get(diff, self.LARGE_DIFF_CATEGORY)

    def _percent_band(self, percent: int) -> str:
        for lower, band in self.PERCENT_BANDS:
            if percent >= lower:
                return band
        return self.LOWEST_PERCENT_BAND

    def _aggregate_similarity(self, similar_count: int) -> str:
        """0-1 similar dimensions -> low, 2 -> medium, 3-4 -> high."""
        if similar_count <= 1:
            return "low"
        if similar_count == 2:
            return "medium"
        return "high"

    def _severity(self, delta: float) -> str:
        if delta < self.SIMILAR_DELTA_THRESHOLD:
            return "similar"
        if delta < self.VERY_DIFFERENT_DELTA_THRESHOLD:
            return "different"
        return "very_different"

    def _risk_level(self, very_different_count: int) -> str:
        """0 very different dimensions -> low, 1 -> medium, 2+ -> high."""
        if very_different_count == 0:
            return "low"
        if very_different_count == 1:
            return "medium"
        return "high"

    def _risk_label(self, risk_level: str, very_different_count: int) -> str:
        key = risk_level
        if risk_level == "high" and very_different_count >= 3:
            key = "high_widespread"
        return self._lookup(self.risk_labels, key, "risk label")

    def _dominant_dimension(self, per_dimension: Mapping[str, dict]) -> tuple[str, bool]:
        """Dimension with the largest delta and whether other dimensions tie
        with it.  Ties go to the earliest key in ``DIMENSION_KEYS``."""
        largest = max(per_dimension[key]["delta"] for key in DIMENSION_KEYS)
        candidates = [
            key
            for key in DIMENSION_KEYS
            if abs(per_dimension[key]["delta"] - largest) < self.DOMINANT_TIE_EPSILON
        ]
        return candidates[0], len(candidates) > 1

    def _direction(self, a: float, b: float) -> str:
        if abs(a - b) < self.EQUAL_DIRECTION_EPSILON:
            return "equal"
        return "subject_higher" if a > b else "paired_higher"

    def _question_text(self, index: int) -> str:
        if index >= len(self.question_texts):
            raise ConfigurationError(
                f"Missing question text for question {index}",
                question_index=index,
            )
        return self.question_texts[index]

    def _insight(self, index: int, category: str) -> str:
        if index >= len(self.question_insights):
            raise ConfigurationError(
                f"Missing compare rule for question {index}",
                question_index=index,
            )
        return self._lookup(
            self.question_insights[index], category, f"insight for question {index}"
        )

    def _similarity_label(self, band: str) -> str:
        return self._lookup(self.similarity_labels, band, "similarity label")

    @staticmethod
    def _lookup(table: Mapping[str, str], key: str, what: str) -> str:
        text = table.get(key)
        if not text:
            raise ConfigurationError(f"Missing {what} for {key!r}", key=key)
        return text

    @staticmethod
    def _highlight_item(question: dict) -> dict:
        return {
            "question_index": question["question_index"],
            "question_text": question["question_text"],
            "diff": question["diff"],
            "insight": question["insight"],
        }
