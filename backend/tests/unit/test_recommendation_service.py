"""Unit tests for the recommendation pipeline orchestration."""

import asyncio
import time

import pytest

from navigator.application.services import (
    EligibilityEvaluator,
    ExplanationGenerator,
    RankingEngine,
    RecommendationService,
    ResourceIndex,
    SnapshotStore,
)
from navigator.domain.entities import (
    CapacityStatus,
    Demographics,
    EligibilityCriteria,
    EligibilityStatus,
    GeoPoint,
    IncomeCriterion,
    QueryIntent,
    RecommendationRequest,
    RecommendationStatus,
    ResidencyCriterion,
    UserContext,
)
from navigator.domain.exceptions import RecommendationError
from tests.support import FakeQueryLogRepository, build_resource, unit

HOME = GeoPoint(37.77, -122.42)


class SlowRankingEngine(RankingEngine):
    """Stalls on every full ranking call."""

    def __init__(self, evaluator, delay: float):
        super().__init__(evaluator)
        self._delay = delay
        self.calls = 0

    def rank(self, *args, **kwargs):
        self.calls += 1
        time.sleep(self._delay)
        return super().rank(*args, **kwargs)


class BrokenIndex(ResourceIndex):
    def retrieve(self, *args, **kwargs):
        raise RuntimeError("index shard offline")


class StaleIndex(ResourceIndex):
    """Returns a resource that has been retired since the search began."""

    def retrieve(self, *args, **kwargs):
        return [(build_resource("retired-pantry"), 0.99), *super().retrieve(*args, **kwargs)]


class ExplodingExplainer(ExplanationGenerator):
    def explain(self, scored, intent):
        raise RuntimeError("template missing")


def _resources():
    return [
        build_resource(
            "pantry",
            unit(1, 0, 0, 0),
            name="Eastside Food Pantry",
            keywords=("food", "groceries"),
            description="Free groceries every weekday",
        ),
        build_resource("kitchen", unit(0.9, 0.3, 0, 0), name="Community Kitchen", keywords=("meals",)),
        build_resource("shelter", unit(0, 1, 0, 0), category="housing", name="Harbor Shelter"),
        build_resource("clinic", unit(0, 0, 1, 0), category="health", name="Mission Clinic"),
    ]


def _index(cls=ResourceIndex, resources=None) -> ResourceIndex:
    idx = cls(dimensions=4, ann_enabled=False)
    idx.load(resources if resources is not None else _resources())
    return idx


def _service(index=None, query_log=None, *, ranking=None, explainer=None, **options) -> RecommendationService:
    evaluator = EligibilityEvaluator()
    return RecommendationService(
        index=index or _index(),
        evaluator=evaluator,
        ranking=ranking or RankingEngine(evaluator),
        explainer=explainer or ExplanationGenerator(),
        snapshots=SnapshotStore(),
        query_log=query_log,
        **options,
    )


def _request(embedding=unit(1, 0, 0, 0), *, need="food assistance", context=None, **intent_fields) -> RecommendationRequest:
    return RecommendationRequest(
        intent=QueryIntent(primary_need=need, **intent_fields),
        embedding=embedding,
        context=context or UserContext(),
    )


@pytest.mark.asyncio
async def test_close_match_is_recommended_with_similarity_explanation():
    result = await _service().recommend(_request(unit(1, 0.05, 0, 0)))

    assert result.status is RecommendationStatus.OK
    assert not result.degraded
    top = result.recommendations[0]
    assert top.resource_id == "pantry"
    assert top.score == 1.0
    assert top.scores.semantic_similarity > 0.9
    assert top.explanation.key_factors[0].factor == "semantic_similarity"
    assert result.query_interpretation.primary_need == "food assistance"


@pytest.mark.asyncio
async def test_accepting_beats_waitlist_end_to_end():
    index = _index(resources=[
        build_resource("a-wait", unit(1, 0, 0, 0), status=CapacityStatus.WAITLIST),
        build_resource("b-open", unit(1, 0, 0, 0), status=CapacityStatus.ACCEPTING),
    ])

    result = await _service(index).recommend(_request())

    assert [r.resource_id for r in result.recommendations] == ["b-open", "a-wait"]


@pytest.mark.asyncio
async def test_nearer_resource_wins_at_equal_similarity():
    index = _index(resources=[
        build_resource("far", unit(1, 0, 0, 0), location=GeoPoint(HOME.lat + 50 / 69.09, HOME.lon)),
        build_resource("near", unit(1, 0, 0, 0), location=GeoPoint(HOME.lat + 2 / 69.09, HOME.lon)),
    ])

    result = await _service(index).recommend(_request(context=UserContext(location=HOME)))

    assert [r.resource_id for r in result.recommendations] == ["near", "far"]


@pytest.mark.asyncio
async def test_missing_income_is_reported_and_resource_kept():
    index = _index(resources=[
        build_resource("snap-office", unit(1, 0, 0, 0), eligibility=EligibilityCriteria(income=IncomeCriterion(maximum=30000))),
    ])

    result = await _service(index).recommend(_request())

    explanation = result.recommendations[0].explanation
    assert explanation.eligibility_status is EligibilityStatus.UNKNOWN
    assert "income" in explanation.missing_info
    assert any("income" in s for s in result.suggestions_for_refinement)


@pytest.mark.asyncio
async def test_clearly_ineligible_resources_are_filtered_out():
    index = _index(resources=[
        build_resource("ca-only", unit(1, 0, 0, 0), eligibility=EligibilityCriteria(residency=ResidencyCriterion(("US-CA",)))),
        build_resource("anyone", unit(0.9, 0.2, 0, 0)),
    ])
    context = UserContext(demographics=Demographics(residency="US-NV"))

    result = await _service(index).recommend(_request(context=context))

    assert [r.resource_id for r in result.recommendations] == ["anyone"]


@pytest.mark.asyncio
async def test_full_resources_are_never_returned():
    index = _index(resources=[
        build_resource("full", unit(1, 0, 0, 0), status=CapacityStatus.FULL),
        build_resource("open", unit(0.5, 0.5, 0, 0)),
    ])

    result = await _service(index).recommend(_request())

    assert [r.resource_id for r in result.recommendations] == ["open"]
    assert result.total_found == 1


@pytest.mark.asyncio
async def test_orthogonal_resources_are_not_candidates():
    result = await _service().recommend(_request(unit(0, 0, 0, 1)))

    assert result.recommendations == ()
    assert result.status is RecommendationStatus.OK
    assert "Try describing your need in broader terms." in result.suggestions_for_refinement


@pytest.mark.asyncio
async def test_max_results_limits_delivery_not_total():
    result = await _service(max_results=1).recommend(_request(unit(1, 0.4, 0.2, 0)))

    assert len(result.recommendations) == 1
    assert result.total_found > 1


@pytest.mark.asyncio
async def test_unsupported_language_asks_for_clarification():
    result = await _service().recommend(_request(language="fr"))

    assert result.status is RecommendationStatus.NEEDS_CLARIFICATION
    assert result.recommendations == ()
    assert result.clarifying_questions


@pytest.mark.asyncio
async def test_empty_query_asks_for_clarification():
    result = await _service().recommend(_request(embedding=None, need="  "))

    assert result.status is RecommendationStatus.NEEDS_CLARIFICATION
    assert "What kind of help are you looking for?" in result.clarifying_questions


@pytest.mark.asyncio
async def test_low_confidence_returns_results_with_questions():
    result = await _service().recommend(_request(confidence=0.2))

    assert result.recommendations
    assert result.clarifying_questions[0] == "Are you looking for help with food assistance?"


@pytest.mark.asyncio
async def test_missing_embedding_uses_keyword_retrieval():
    result = await _service().recommend(_request(embedding=None, need="groceries"))

    assert result.degraded
    assert result.status is RecommendationStatus.DEGRADED
    assert result.degraded_reason == "embedding unavailable"
    assert [r.resource_id for r in result.recommendations] == ["pantry"]


@pytest.mark.asyncio
async def test_unavailable_index_degrades_to_keywords():
    result = await _service(_index(BrokenIndex)).recommend(_request(need="groceries"))

    assert result.degraded_reason == "resource index unavailable"
    assert [r.resource_id for r in result.recommendations] == ["pantry"]


@pytest.mark.asyncio
async def test_retrieval_deadline_degrades_to_keywords():
    result = await _service(deadline_seconds=0.0).recommend(_request(need="groceries"))

    assert result.degraded
    assert result.degraded_reason == "retrieval timed out"
    assert [r.resource_id for r in result.recommendations] == ["pantry"]


@pytest.mark.asyncio
async def test_ranking_deadline_orders_a_shortlist_without_blocking():
    evaluator = EligibilityEvaluator()
    slow = SlowRankingEngine(evaluator, delay=0.5)
    service = _service(ranking=slow, deadline_seconds=0.2, degraded_max_candidates=1)
    ticks = 0

    async def ticker():
        nonlocal ticks
        while True:
            await asyncio.sleep(0.01)
            ticks += 1

    task = asyncio.create_task(ticker())
    started = time.perf_counter()
    result = await service.recommend(_request())
    elapsed = time.perf_counter() - started
    task.cancel()

    assert result.degraded_reason == "ranking timed out"
    assert [r.resource_id for r in result.recommendations] == ["pantry"]
    assert slow.calls == 1
    assert elapsed < 0.45
    assert ticks >= 8
    top = result.recommendations[0]
    assert top.scores.geographic_proximity == 0.0
    assert top.scores.historical_success == 0.0
    assert top.explanation.key_factors[0].factor == "semantic_similarity"


@pytest.mark.asyncio
async def test_stale_ids_are_dropped():
    result = await _service(_index(StaleIndex)).recommend(_request())

    ids = [r.resource_id for r in result.recommendations]
    assert "retired-pantry" not in ids
    assert ids[0] == "pantry"


@pytest.mark.asyncio
async def test_delivered_query_is_logged_without_context(query_log):
    context = UserContext(location=HOME, demographics=Demographics(household_income=12000))

    result = await _service(query_log=query_log).recommend(_request(context=context))

    record = query_log.records[result.query_id]
    assert record.primary_need == "food assistance"
    assert record.embedding == unit(1, 0, 0, 0)
    assert record.resource_ids == tuple(r.resource_id for r in result.recommendations)
    assert not hasattr(record, "context")


@pytest.mark.asyncio
async def test_query_log_failure_does_not_fail_the_request():
    result = await _service(query_log=FakeQueryLogRepository(fail=True)).recommend(_request())
    assert result.recommendations


@pytest.mark.asyncio
async def test_caller_supplied_query_id_is_kept():
    request = RecommendationRequest(intent=QueryIntent(primary_need="food"), embedding=unit(1, 0, 0, 0), query_id="abc123")
    assert (await _service().recommend(request)).query_id == "abc123"


@pytest.mark.asyncio
async def test_wrong_dimension_embedding_is_a_structured_error():
    with pytest.raises(RecommendationError) as exc_info:
        await _service().recommend(_request((1.0, 0.0)))
    assert exc_info.value.code == "invalid_embedding"


@pytest.mark.asyncio
async def test_out_of_range_top_k_is_a_structured_error():
    request = RecommendationRequest(intent=QueryIntent(primary_need="food"), embedding=unit(1, 0, 0, 0), top_k=500)
    with pytest.raises(RecommendationError) as exc_info:
        await _service().recommend(request)
    assert exc_info.value.code == "invalid_request"


@pytest.mark.asyncio
async def test_unexpected_failures_are_wrapped():
    with pytest.raises(RecommendationError) as exc_info:
        await _service(explainer=ExplodingExplainer()).recommend(_request())
    assert exc_info.value.code == "pipeline_failure"
    assert exc_info.value.query_id


@pytest.mark.asyncio
async def test_history_and_secondary_needs_shape_suggestions():
    context = UserContext(location=HOME, history=("housing", "food assistance"))

    result = await _service().recommend(_request(context=context, secondary_needs=("transportation",)))

    assert any("transportation" in s for s in result.suggestions_for_refinement)
    assert any("housing" in s for s in result.suggestions_for_refinement)
    assert not any("Add your location" in s for s in result.suggestions_for_refinement)
