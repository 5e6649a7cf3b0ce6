"""Unit tests for domain value objects: query lifecycle, scores, clusters."""

import pytest

from navigator.domain.entities import (
    SCORE_WEIGHTS,
    GeoPoint,
    MatchScores,
    QueryCluster,
    QueryStage,
    QueryTrace,
    ServiceArea,
    Urgency,
)
from navigator.domain.exceptions import RecommendationError
from tests.support import build_resource


def test_trace_moves_forward_through_every_stage():
    trace = QueryTrace("q-1")
    for stage in (
        QueryStage.RETRIEVED,
        QueryStage.FILTERED,
        QueryStage.RANKED,
        QueryStage.EXPLAINED,
        QueryStage.DELIVERED,
    ):
        trace.advance(stage)

    assert trace.delivered
    assert [s for s, _ in trace.history][-1] is QueryStage.DELIVERED

    trace.advance(QueryStage.FEEDBACK_RECEIVED)
    trace.advance(QueryStage.FEEDBACK_RECEIVED)
    assert trace.stage is QueryStage.FEEDBACK_RECEIVED


@pytest.mark.parametrize(
    ("start", "target"),
    [
        ([], QueryStage.RANKED),
        ([QueryStage.RETRIEVED, QueryStage.FILTERED], QueryStage.RETRIEVED),
        ([], QueryStage.FEEDBACK_RECEIVED),
    ],
)
def test_trace_rejects_skipped_or_backward_moves(start, target):
    trace = QueryTrace("q-1")
    for stage in start:
        trace.advance(stage)
    with pytest.raises(ValueError):
        trace.advance(target)


def test_weights_sum_to_one():
    assert sum(SCORE_WEIGHTS.values()) == pytest.approx(1.0)


def test_match_scores_clip_sub_scores():
    scores = MatchScores.combine(
        semantic_similarity=1.4,
        eligibility_match=-0.2,
        geographic_proximity=1.0,
        availability=1.0,
        historical_success=0.5,
    )

    assert scores.semantic_similarity == 1.0
    assert scores.eligibility_match == 0.0
    assert scores.final == pytest.approx(0.5 + 0.15 + 0.1 + 0.025)
    assert sum(scores.contributions().values()) == pytest.approx(scores.final)


def test_cluster_signature_normalizes_labels():
    cluster = QueryCluster.build("Emergency  Food!", Urgency.IMMEDIATE, "Food Pantry")

    assert cluster.signature == "emergency_food|immediate|food_pantry"
    assert QueryCluster.parse(cluster.signature) == cluster


def test_cluster_without_labels_is_wildcard():
    assert QueryCluster.build(None, None, None).signature == "*|*|*"


def test_distance_and_service_area():
    sf = GeoPoint(37.7749, -122.4194)
    oakland = GeoPoint(37.8044, -122.2712)

    assert sf.distance_miles(oakland) == pytest.approx(8.3, abs=0.3)
    assert ServiceArea(sf, 10).covers(oakland)
    assert not ServiceArea(sf, 5).covers(oakland)


def test_resource_updates_return_new_instances():
    resource = build_resource("r1")

    flagged = resource.with_flag("closed on weekends")
    moved = resource.with_embedding([0, 1, 0, 0])

    assert not resource.flagged
    assert flagged.flag_reasons == ("closed on weekends",)
    assert moved.embedding == (0.0, 1.0, 0.0, 0.0)
    assert resource.embedding == (1.0, 0.0, 0.0, 0.0)


def test_recommendation_error_serializes():
    error = RecommendationError("pipeline_failure", "could not complete", "q-9")
    assert error.as_dict() == {"code": "pipeline_failure", "message": "could not complete", "query_id": "q-9"}
