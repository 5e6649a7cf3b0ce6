"""Explanation generator — plain-language reasons derived from ``MatchScores``.

Deterministic templates only: the same scored resource always yields the
same text, and nothing outside the scores, the eligibility result and the
intent is consulted.
"""

import math

from navigator.domain.entities import (
    SCORE_WEIGHTS,
    CapacityStatus,
    EligibilityStatus,
    Explanation,
    KeyFactor,
    QueryIntent,
    ScoredResource,
)
from navigator.domain.exceptions import MalformedScoreError

_FACTOR_ORDER = list(SCORE_WEIGHTS)

_STATUS_SENTENCES = {
    EligibilityStatus.LIKELY_ELIGIBLE: "You likely meet the eligibility requirements.",
    EligibilityStatus.MAY_QUALIFY: "You may qualify based on what you shared.",
    EligibilityStatus.UNLIKELY: "Some eligibility requirements may not be met.",
    EligibilityStatus.UNKNOWN: "Eligibility could not be checked with the information provided.",
}


class ExplanationGenerator:
    """Builds an ``Explanation`` for a scored resource."""

    def __init__(self, *, min_contribution: float = 0.05):
        self._min_contribution = min_contribution

    def explain(self, scored: ScoredResource, intent: QueryIntent) -> Explanation:
        self._check(scored)
        scores = scored.scores
        need = (intent.primary_need or "your request").strip()

        contributions = scores.contributions()
        selected = [
            (name, value)
            for name, value in contributions.items()
            if value >= self._min_contribution
        ]
        selected.sort(key=lambda item: (-round(item[1], 6), _FACTOR_ORDER.index(item[0])))

        factors = tuple(
            KeyFactor(
                factor=name,
                contribution=round(value, 4),
                description=self._describe(name, scored, need),
            )
            for name, value in selected
        )

        status = scored.eligibility.status
        parts = [f"{scored.resource.name} matches your request for {need}."]
        if factors:
            parts.append(f"Main reason: {factors[0].description[0].lower()}{factors[0].description[1:]}.")
        parts.append(_STATUS_SENTENCES[status])
        if scored.eligibility.missing_info:
            parts.append(
                "Sharing your " + _join(scored.eligibility.missing_info) + " would help confirm eligibility."
            )
        if scored.eligibility.required_documents:
            parts.append("Bring: " + _join(scored.eligibility.required_documents) + ".")

        return Explanation(
            summary=" ".join(parts),
            key_factors=factors,
            eligibility_status=status,
            missing_info=scored.eligibility.missing_info,
            required_documents=scored.eligibility.required_documents,
        )

    def _describe(self, factor: str, scored: ScoredResource, need: str) -> str:
        scores = scored.scores
        if factor == "semantic_similarity":
            value = scores.semantic_similarity
            if value >= 0.8:
                return f"Closely matches your need for {need}"
            if value >= 0.5:
                return f"Relevant to your need for {need}"
            return f"Partly related to your need for {need}"
        if factor == "eligibility_match":
            if scored.eligibility.status is EligibilityStatus.UNKNOWN:
                return "No eligibility rules rule you out"
            return f"Eligibility match of {scores.eligibility_match:.0%}"
        if factor == "geographic_proximity":
            if scored.distance_miles is None:
                return "Available regardless of your location"
            return f"About {scored.distance_miles:.1f} miles from you"
        if factor == "availability":
            if scored.resource.capacity_status is CapacityStatus.ACCEPTING:
                return "Currently accepting new clients"
            return "Currently running a waitlist"
        if scores.historical_success >= 0.7:
            return "Often helpful for similar requests"
        return "Has a track record with similar requests"

    @staticmethod
    def _check(scored: ScoredResource) -> None:
        resource_id = getattr(getattr(scored, "resource", None), "id", "<unknown>")
        scores = getattr(scored, "scores", None)
        if scores is None:
            raise MalformedScoreError(resource_id, "missing MatchScores")
        if getattr(scored, "eligibility", None) is None:
            raise MalformedScoreError(resource_id, "missing eligibility result")
        for name in (*SCORE_WEIGHTS, "final"):
            value = getattr(scores, name, None)
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise MalformedScoreError(resource_id, f"{name} is missing or not numeric")
            if not math.isfinite(value) or not 0.0 <= value <= 1.0:
                raise MalformedScoreError(resource_id, f"{name}={value!r} outside [0, 1]")


def _join(items: tuple[str, ...]) -> str:
    words = [i.replace("_", " ") for i in items]
    if len(words) <= 1:
        return "".join(words)
    return ", ".join(words[:-1]) + " and " + words[-1]
