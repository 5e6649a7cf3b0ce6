"""Unit tests for the RankingEngine."""

import pytest

from navigator.application.services import EligibilityEvaluator, RankingEngine
from navigator.domain.entities import (
    CapacityStatus,
    EligibilityCriteria,
    GeoPoint,
    IncomeCriterion,
    QueryCluster,
    QueryIntent,
    ScoringSnapshot,
    ServiceArea,
    Urgency,
    UserContext,
)
from tests.support import build_resource

MILES_PER_DEGREE_LAT = 69.09
HOME = GeoPoint(37.0, -122.0)


def _north_of_home(miles: float) -> GeoPoint:
    return GeoPoint(HOME.lat + miles / MILES_PER_DEGREE_LAT, HOME.lon)


@pytest.fixture
def engine() -> RankingEngine:
    return RankingEngine(EligibilityEvaluator())


@pytest.fixture
def intent() -> QueryIntent:
    return QueryIntent(primary_need="food assistance", urgency=Urgency.IMMEDIATE)


def test_final_score_uses_fixed_weights(engine: RankingEngine, intent: QueryIntent):
    resource = build_resource("r1", status=CapacityStatus.WAITLIST)

    result = engine.rank([(resource, 0.8)], intent)

    scores = result.ranked[0].scores
    assert scores.eligibility_match == 0.5          # no criteria
    assert scores.geographic_proximity == 1.0       # no user location
    assert scores.availability == 0.5
    assert scores.historical_success == 0.5        # no snapshot history
    assert scores.final == pytest.approx(0.5 * 0.8 + 0.2 * 0.5 + 0.15 * 1.0 + 0.1 * 0.5 + 0.05 * 0.5)


def test_scores_are_renormalized_to_top_result(engine: RankingEngine, intent: QueryIntent):
    result = engine.rank(
        [(build_resource("a"), 0.9), (build_resource("b"), 0.5), (build_resource("c"), 0.2)],
        intent,
    )

    scores = [s.score for s in result.ranked]
    assert scores[0] == 1.0
    assert scores == sorted(scores, reverse=True)
    assert all(0.0 <= s <= 1.0 for s in scores)
    assert result.ranked[1].score == pytest.approx(result.ranked[1].scores.final / result.ranked[0].scores.final)


def test_negative_similarity_is_clipped(engine: RankingEngine, intent: QueryIntent):
    result = engine.rank([(build_resource("a"), -0.4)], intent)
    assert result.ranked[0].scores.semantic_similarity == 0.0


def test_accepting_ranks_above_waitlist_at_equal_relevance(engine: RankingEngine, intent: QueryIntent):
    waitlist = build_resource("a-waitlist", status=CapacityStatus.WAITLIST)
    accepting = build_resource("b-accepting", status=CapacityStatus.ACCEPTING)

    result = engine.rank([(waitlist, 0.9), (accepting, 0.9)], intent)

    assert [s.resource.id for s in result.ranked] == ["b-accepting", "a-waitlist"]


def test_nearer_resource_ranks_first(engine: RankingEngine, intent: QueryIntent):
    near = build_resource("near", location=_north_of_home(2))
    far = build_resource("far", location=_north_of_home(50))

    result = engine.rank([(far, 0.85), (near, 0.85)], intent, UserContext(location=HOME))

    assert [s.resource.id for s in result.ranked] == ["near", "far"]
    assert result.ranked[0].distance_miles == pytest.approx(2.0, abs=0.05)
    assert result.ranked[0].scores.geographic_proximity > result.ranked[1].scores.geographic_proximity


def test_full_and_closed_resources_are_scored_but_excluded(engine: RankingEngine, intent: QueryIntent):
    result = engine.rank(
        [
            (build_resource("full", status=CapacityStatus.FULL), 0.99),
            (build_resource("closed", status=CapacityStatus.CLOSED), 0.99),
            (build_resource("open"), 0.3),
        ],
        intent,
    )

    assert [s.resource.id for s in result.ranked] == ["open"]
    assert {s.resource.id for s in result.unavailable} == {"full", "closed"}
    assert all(s.scores.availability == 0.0 for s in result.unavailable)


def test_ties_break_on_verification_then_id(engine: RankingEngine, intent: QueryIntent):
    stale = build_resource("a-stale", verified_days_ago=30)
    fresh = build_resource("z-fresh", verified_days_ago=1)
    twin = build_resource("b-twin", verified_days_ago=30)

    result = engine.rank([(stale, 0.7), (twin, 0.7), (fresh, 0.7)], intent)

    assert [s.resource.id for s in result.ranked] == ["z-fresh", "a-stale", "b-twin"]


def test_ranking_is_deterministic(engine: RankingEngine, intent: QueryIntent):
    candidates = [(build_resource(f"r{i}", verified_days_ago=i % 3), 0.5 + (i % 4) * 0.1) for i in range(12)]

    first = engine.rank(candidates, intent)
    second = engine.rank(list(reversed(candidates)), intent)

    assert [(s.resource.id, s.score) for s in first.ranked] == [(s.resource.id, s.score) for s in second.ranked]


def test_historical_success_comes_from_snapshot(engine: RankingEngine, intent: QueryIntent):
    cluster = QueryCluster.for_intent(intent, "food")
    snapshot = ScoringSnapshot(
        version=3,
        historical_success={("a", cluster.signature): 0.9},
        resource_success={"b": 0.2},
    )

    result = engine.rank([(build_resource("a"), 0.6), (build_resource("b"), 0.6), (build_resource("c"), 0.6)], intent, snapshot=snapshot)

    by_id = {s.resource.id: s.scores.historical_success for s in result.ranked}
    assert by_id == {"a": 0.9, "b": 0.2, "c": 0.5}
    assert result.snapshot_version == 3


def test_outside_service_area_gets_zero_proximity(engine: RankingEngine, intent: QueryIntent):
    resource = build_resource(
        "local",
        location=_north_of_home(20),
        service_area=ServiceArea(center=_north_of_home(20), radius_miles=5),
    )

    proximity, distance = engine.geographic_proximity(resource, UserContext(location=HOME))

    assert proximity == 0.0
    assert distance == pytest.approx(20.0, abs=0.1)


def test_resource_without_location_is_not_penalized(engine: RankingEngine):
    proximity, distance = engine.geographic_proximity(build_resource("hotline"), UserContext(location=HOME))
    assert (proximity, distance) == (1.0, None)


def test_precomputed_eligibility_is_reused(engine: RankingEngine, intent: QueryIntent):
    criteria = EligibilityCriteria(income=IncomeCriterion(maximum=20000))
    resource = build_resource("r1", eligibility=criteria)
    precomputed = EligibilityEvaluator().evaluate(criteria, None)

    result = engine.rank([(resource, 0.9)], intent, eligibility={"r1": precomputed})

    assert result.ranked[0].eligibility is precomputed
    assert result.eligibility["r1"] is precomputed


def test_similarity_ordering_uses_only_cached_signals(engine: RankingEngine):
    candidates = [
        (build_resource("a-wait", status=CapacityStatus.WAITLIST), 0.9),
        (build_resource("b-open"), 0.9),
        (build_resource("c-full", status=CapacityStatus.FULL), 0.95),
        (build_resource("d-weak"), 0.4),
    ]
    eligibility = {"b-open": EligibilityEvaluator().evaluate(EligibilityCriteria(), UserContext())}

    result = engine.order_by_similarity(candidates, eligibility, snapshot_version=3)

    assert [s.resource.id for s in result.ranked] == ["b-open", "a-wait", "d-weak"]
    assert [s.resource.id for s in result.unavailable] == ["c-full"]
    assert result.ranked[0].score == 1.0
    assert result.snapshot_version == 3
    assert all(s.scores.geographic_proximity == 0.0 for s in result.ranked)
    assert all(s.scores.historical_success == 0.0 for s in result.ranked)
