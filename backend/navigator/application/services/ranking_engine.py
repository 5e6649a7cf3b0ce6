"""Ranking engine — weighted multi-factor scoring with deterministic ordering.

    final = 0.5*semantic + 0.2*eligibility + 0.15*geographic
          + 0.1*availability + 0.05*historical

Pure with respect to its inputs and the snapshot it is given: the same
candidates, context and snapshot version always yield the same ordering
and the same scores.
"""

import logging
from dataclasses import dataclass, field, replace

from navigator.application.services.eligibility_evaluator import EligibilityEvaluator
from navigator.domain.entities import (
    CapacityStatus,
    EligibilityResult,
    EligibilityStatus,
    MatchScores,
    QueryCluster,
    QueryIntent,
    Resource,
    ScoredResource,
    ScoringSnapshot,
    UserContext,
)

logger = logging.getLogger(__name__)

AVAILABILITY_SCORES: dict[CapacityStatus, float] = {
    CapacityStatus.ACCEPTING: 1.0,
    CapacityStatus.WAITLIST: 0.5,
    CapacityStatus.FULL: 0.0,
    CapacityStatus.CLOSED: 0.0,
}

# Finals are compared at this precision so float noise never decides a tie.
_SCORE_PRECISION = 6


@dataclass(frozen=True)
class RankingResult:
    """Ordered, renormalized results plus the scored-but-unavailable rest."""

    ranked: tuple[ScoredResource, ...]
    unavailable: tuple[ScoredResource, ...] = ()
    snapshot_version: int = 0
    eligibility: dict[str, EligibilityResult] = field(default_factory=dict)


class RankingEngine:
    """Scores candidates and orders them."""

    def __init__(
        self,
        evaluator: EligibilityEvaluator,
        *,
        geo_half_distance_miles: float = 10.0,
    ):
        self._evaluator = evaluator
        self._half_distance = geo_half_distance_miles

    def rank(
        self,
        candidates: list[tuple[Resource, float]],
        intent: QueryIntent,
        context: UserContext | None = None,
        snapshot: ScoringSnapshot | None = None,
        eligibility: dict[str, EligibilityResult] | None = None,
    ) -> RankingResult:
        """Score every candidate, order them, and renormalize to the top score.

        Full resources are scored (kept in ``unavailable`` for diagnostics)
        but never appear in ``ranked``. ``eligibility`` may carry results the
        caller already computed, keyed by resource id.
        """
        context = context or UserContext()
        snapshot = snapshot or ScoringSnapshot.initial()
        eligibility = dict(eligibility or {})

        scored: list[ScoredResource] = []
        for resource, similarity in candidates:
            result = eligibility.get(resource.id)
            if result is None:
                result = self._evaluator.evaluate(resource.eligibility, context)
                eligibility[resource.id] = result
            scored.append(self.score(resource, similarity, intent, context, snapshot, result))

        available: list[ScoredResource] = []
        unavailable: list[ScoredResource] = []
        for s in scored:
            if s.resource.capacity_status in (CapacityStatus.ACCEPTING, CapacityStatus.WAITLIST):
                available.append(s)
            else:
                unavailable.append(s)

        ordered = sorted(available, key=_sort_key)
        ranked = normalize(ordered)

        logger.debug(
            "Ranked %d candidates (%d unavailable) with snapshot v%d",
            len(ranked),
            len(unavailable),
            snapshot.version,
        )
        return RankingResult(
            ranked=tuple(ranked),
            unavailable=tuple(sorted(unavailable, key=_sort_key)),
            snapshot_version=snapshot.version,
            eligibility=eligibility,
        )

    def order_by_similarity(
        self,
        candidates: list[tuple[Resource, float]],
        eligibility: dict[str, EligibilityResult],
        snapshot_version: int = 0,
    ) -> RankingResult:
        """Degraded ordering from signals already in hand.

        Uses similarity, availability and the eligibility results computed
        during filtering. Location and history are not evaluated and add
        nothing to the final. No per-candidate evaluation runs here.
        """
        neutral = EligibilityResult(eligibility_match=0.5, status=EligibilityStatus.UNKNOWN)
        available: list[ScoredResource] = []
        unavailable: list[ScoredResource] = []
        for resource, similarity in candidates:
            result = eligibility.get(resource.id, neutral)
            scores = MatchScores.combine(
                semantic_similarity=similarity,
                eligibility_match=result.eligibility_match,
                geographic_proximity=0.0,
                availability=AVAILABILITY_SCORES[resource.capacity_status],
                historical_success=0.0,
            )
            item = ScoredResource(resource=resource, scores=scores, eligibility=result, score=scores.final)
            if resource.capacity_status in (CapacityStatus.ACCEPTING, CapacityStatus.WAITLIST):
                available.append(item)
            else:
                unavailable.append(item)

        return RankingResult(
            ranked=tuple(normalize(sorted(available, key=_sort_key))),
            unavailable=tuple(sorted(unavailable, key=_sort_key)),
            snapshot_version=snapshot_version,
            eligibility=dict(eligibility),
        )

    def score(
        self,
        resource: Resource,
        similarity: float,
        intent: QueryIntent,
        context: UserContext,
        snapshot: ScoringSnapshot,
        eligibility: EligibilityResult,
    ) -> ScoredResource:
        """Compute the five sub-scores and the weighted final for one resource."""
        proximity, distance = self.geographic_proximity(resource, context)
        cluster = QueryCluster.for_intent(intent, resource.category)
        scores = MatchScores.combine(
            semantic_similarity=similarity,
            eligibility_match=eligibility.eligibility_match,
            geographic_proximity=proximity,
            availability=AVAILABILITY_SCORES[resource.capacity_status],
            historical_success=snapshot.success_for(resource.id, cluster),
        )
        return ScoredResource(
            resource=resource,
            scores=scores,
            eligibility=eligibility,
            score=scores.final,
            distance_miles=distance,
        )

    def geographic_proximity(self, resource: Resource, context: UserContext) -> tuple[float, float | None]:
        """(proximity in [0,1], distance in miles or None).

        No user location → 1.0. Resources without a location (phone or
        online services) → 1.0. Outside a declared service area → 0.0.
        Otherwise halves every ``geo_half_distance_miles``.
        """
        if context.location is None or resource.location is None:
            return 1.0, None
        distance = resource.location.distance_miles(context.location)
        if resource.service_area is not None and not resource.service_area.covers(context.location):
            return 0.0, distance
        if self._half_distance <= 0:
            return (1.0 if distance == 0 else 0.0), distance
        return 0.5 ** (distance / self._half_distance), distance


def normalize(ordered: list[ScoredResource]) -> list[ScoredResource]:
    """Scale scores so the first item maps to 1.0, preserving order."""
    if not ordered:
        return []
    top = ordered[0].scores.final
    if top <= 0.0:
        return [replace(s, score=1.0 if i == 0 else 0.0) for i, s in enumerate(ordered)]
    result = []
    for i, s in enumerate(ordered):
        value = 1.0 if i == 0 else min(1.0, max(0.0, s.scores.final / top))
        result.append(replace(s, score=value))
    return result


def _sort_key(s: ScoredResource):
    return (
        -round(s.scores.final, _SCORE_PRECISION),
        -s.scores.availability,
        -s.resource.last_verified_at.timestamp(),
        s.resource.id,
    )
