"""Recommendation pipeline — retrieval → eligibility filter → ranking → explanation.

The only exception that leaves ``recommend`` is ``RecommendationError``.
Input problems become a ``needs_clarification`` response, upstream failures
and timeouts become a response explicitly marked ``degraded``.
"""

import asyncio
import logging
import uuid
from dataclasses import replace

from navigator.application.interfaces import QueryLogRepository
from navigator.application.services.eligibility_evaluator import EligibilityEvaluator
from navigator.application.services.explanation_generator import ExplanationGenerator
from navigator.application.services.ranking_engine import RankingEngine, RankingResult
from navigator.application.services.resource_index import ResourceIndex
from navigator.application.services.snapshot_store import SnapshotStore
from navigator.config import Settings
from navigator.domain.entities import (
    EligibilityResult,
    QueryInterpretation,
    QueryIntent,
    QueryRecord,
    QueryStage,
    QueryTrace,
    Recommendation,
    RecommendationRequest,
    RecommendationSet,
    RecommendationStatus,
    Resource,
    ScoredResource,
    ScoringSnapshot,
    UserContext,
)
from navigator.domain.exceptions import (
    InvalidEmbeddingError,
    MalformedScoreError,
    QueryInputError,
    RecommendationError,
)
from navigator.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
log = PipelineLogger("RecommendationPipeline")

FEW_RESULTS = 3


class RecommendationService:
    """Orchestrates one query through the matching pipeline under a deadline."""

    def __init__(
        self,
        index: ResourceIndex,
        evaluator: EligibilityEvaluator,
        ranking: RankingEngine,
        explainer: ExplanationGenerator,
        snapshots: SnapshotStore,
        query_log: QueryLogRepository | None = None,
        *,
        deadline_seconds: float = 3.0,
        default_top_k: int = 50,
        max_results: int = 10,
        min_similarity: float = 0.05,
        min_intent_confidence: float = 0.4,
        degraded_max_candidates: int = 25,
        supported_languages: tuple[str, ...] = ("en", "es"),
        history_limit: int = 10,
    ):
        self._index = index
        self._evaluator = evaluator
        self._ranking = ranking
        self._explainer = explainer
        self._snapshots = snapshots
        self._query_log = query_log
        self._deadline = deadline_seconds
        self._default_top_k = default_top_k
        self._max_results = max_results
        self._min_similarity = min_similarity
        self._min_confidence = min_intent_confidence
        self._degraded_max = degraded_max_candidates
        self._languages = tuple(lang.lower() for lang in supported_languages)
        self._history_limit = history_limit

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        index: ResourceIndex,
        snapshots: SnapshotStore,
        query_log: QueryLogRepository | None = None,
    ) -> "RecommendationService":
        evaluator = EligibilityEvaluator(
            income_tolerance=settings.income_tolerance,
            age_tolerance_years=settings.age_tolerance_years,
        )
        return cls(
            index=index,
            evaluator=evaluator,
            ranking=RankingEngine(evaluator, geo_half_distance_miles=settings.geo_half_distance_miles),
            explainer=ExplanationGenerator(min_contribution=settings.explanation_min_contribution),
            snapshots=snapshots,
            query_log=query_log,
            deadline_seconds=settings.pipeline_deadline_seconds,
            default_top_k=settings.default_top_k,
            max_results=settings.max_results,
            min_similarity=settings.min_similarity,
            min_intent_confidence=settings.min_intent_confidence,
            degraded_max_candidates=settings.degraded_max_candidates,
            supported_languages=tuple(settings.supported_languages),
            history_limit=settings.context_history_limit,
        )

    async def recommend(self, request: RecommendationRequest) -> RecommendationSet:
        query_id = request.query_id or uuid.uuid4().hex
        try:
            return await self._run(query_id, request)
        except RecommendationError:
            raise
        except InvalidEmbeddingError as exc:
            log.step_error(PipelineStage.ERROR, "Rejected query embedding", error=exc)
            raise RecommendationError("invalid_embedding", str(exc), query_id) from exc
        except MalformedScoreError as exc:
            log.step_error(PipelineStage.ERROR, "Scoring contract violated", error=exc)
            raise RecommendationError("malformed_score", str(exc), query_id) from exc
        except ValueError as exc:
            log.step_error(PipelineStage.ERROR, "Invalid request parameters", error=exc)
            raise RecommendationError("invalid_request", str(exc), query_id) from exc
        except Exception as exc:
            log.step_error(PipelineStage.ERROR, f"Pipeline failed for query {query_id}", error=exc)
            raise RecommendationError("pipeline_failure", "The recommendation could not be completed.", query_id) from exc

    async def _run(self, query_id: str, request: RecommendationRequest) -> RecommendationSet:
        intent = request.intent
        context = request.context or UserContext()
        trace = QueryTrace(query_id)
        interpretation = _interpret(intent)

        try:
            self._check_input(request)
        except QueryInputError as exc:
            log.detail(f"Query {query_id} needs clarification: {exc.reason}")
            return RecommendationSet(
                query_id=query_id,
                recommendations=(),
                total_found=0,
                query_interpretation=interpretation,
                status=RecommendationStatus.NEEDS_CLARIFICATION,
                clarifying_questions=tuple(exc.clarifying_questions),
            )

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._deadline
        snapshot = self._snapshots.current()
        top_k = request.top_k or self._default_top_k
        max_results = request.max_results or self._max_results

        # ── Retrieve ────────────────────────────────────────────────
        with log.timed_step(PipelineStage.RETRIEVE, "Retrieving candidates", query_id=query_id, top_k=top_k):
            candidates, degraded_reason = await self._retrieve(request, top_k, deadline)
        candidates = self._drop_stale(candidates)
        trace.advance(QueryStage.RETRIEVED)
        log.detail(f"{len(candidates)} candidates", degraded=degraded_reason is not None)

        # ── Filter ──────────────────────────────────────────────────
        with log.timed_step(PipelineStage.FILTER, "Evaluating eligibility", candidates=len(candidates)):
            candidates, eligibility = self._filter(candidates, context)
        trace.advance(QueryStage.FILTERED)

        # ── Rank ────────────────────────────────────────────────────
        with log.timed_step(PipelineStage.RANK, "Ranking", candidates=len(candidates), snapshot=snapshot.version):
            ranking, rank_degraded = await self._rank(candidates, intent, context, snapshot, eligibility, deadline)
        degraded_reason = degraded_reason or rank_degraded
        trace.advance(QueryStage.RANKED)

        # ── Explain ─────────────────────────────────────────────────
        with log.timed_step(PipelineStage.EXPLAIN, "Explaining results"):
            selected = [
                replace(item, explanation=self._explainer.explain(item, intent))
                for item in ranking.ranked[:max_results]
            ]
        trace.advance(QueryStage.EXPLAINED)

        recommendations = tuple(_to_recommendation(item) for item in selected)
        clarifying = self._clarifying_questions(intent)
        result = RecommendationSet(
            query_id=query_id,
            recommendations=recommendations,
            total_found=len(ranking.ranked),
            query_interpretation=interpretation,
            suggestions_for_refinement=self._suggestions(intent, context, selected, len(ranking.ranked)),
            status=RecommendationStatus.DEGRADED if degraded_reason else RecommendationStatus.OK,
            degraded=degraded_reason is not None,
            degraded_reason=degraded_reason,
            snapshot_version=ranking.snapshot_version,
            clarifying_questions=clarifying,
        )

        # ── Deliver ─────────────────────────────────────────────────
        trace.advance(QueryStage.DELIVERED)
        await self._record(query_id, request, snapshot, recommendations)
        log.step_complete(
            PipelineStage.DELIVER,
            f"Delivered {len(recommendations)} of {result.total_found}",
            query_id=query_id,
            degraded=result.degraded,
        )
        return result

    # ── Steps ────────────────────────────────────────────────────────

    def _check_input(self, request: RecommendationRequest) -> None:
        intent = request.intent
        language = (intent.language or "").lower()
        if language and language not in self._languages:
            raise QueryInputError(
                f"unsupported language {intent.language!r}",
                [f"Could you ask again in one of: {', '.join(self._languages)}?"],
            )
        if not (intent.primary_need or "").strip() and not request.embedding:
            raise QueryInputError(
                "empty query",
                [
                    "What kind of help are you looking for?",
                    "Is this about food, housing, health care, legal help or something else?",
                ],
            )

    async def _retrieve(
        self,
        request: RecommendationRequest,
        top_k: int,
        deadline: float,
    ) -> tuple[list[tuple[Resource, float]], str | None]:
        intent = request.intent
        if not request.embedding:
            log.degraded("No query embedding; using keyword retrieval")
            return self._keyword_candidates(intent), "embedding unavailable"

        remaining = deadline - asyncio.get_running_loop().time()
        try:
            found = await asyncio.wait_for(
                asyncio.to_thread(self._index.retrieve, request.embedding, intent.category_hint, top_k),
                timeout=max(remaining, 0.0),
            )
        except asyncio.TimeoutError:
            log.degraded("Retrieval exceeded deadline; using keyword retrieval", deadline=self._deadline)
            return self._keyword_candidates(intent), "retrieval timed out"
        except ValueError:
            raise
        except Exception as exc:
            log.degraded("Resource index unavailable; using keyword retrieval", error=type(exc).__name__)
            return self._keyword_candidates(intent), "resource index unavailable"

        kept = [(resource, sim) for resource, sim in found if sim > self._min_similarity]
        if len(kept) < len(found):
            log.detail(f"Dropped {len(found) - len(kept)} non-matching candidates", min_similarity=self._min_similarity)
        return kept, None

    def _keyword_candidates(self, intent: QueryIntent) -> list[tuple[Resource, float]]:
        terms = [intent.primary_need, *intent.secondary_needs]
        terms.extend(entity.normalized or entity.value for entity in intent.entities)
        return self._index.keyword_search(
            [t for t in terms if t],
            category_hint=intent.category_hint,
            limit=self._degraded_max,
        )

    def _drop_stale(self, candidates: list[tuple[Resource, float]]) -> list[tuple[Resource, float]]:
        fresh = []
        for resource, similarity in candidates:
            current = self._index.get(resource.id)
            if current is None:
                logger.warning("Dropping stale resource id %s from results", resource.id)
                continue
            fresh.append((current, similarity))
        return fresh

    def _filter(
        self,
        candidates: list[tuple[Resource, float]],
        context: UserContext,
    ) -> tuple[list[tuple[Resource, float]], dict[str, EligibilityResult]]:
        kept = []
        results: dict[str, EligibilityResult] = {}
        for resource, similarity in candidates:
            result = self._evaluator.evaluate(resource.eligibility, context)
            if result.details and result.eligibility_match == 0.0:
                continue
            results[resource.id] = result
            kept.append((resource, similarity))
        if len(kept) < len(candidates):
            log.detail(f"Filtered out {len(candidates) - len(kept)} ineligible resources")
        return kept, results

    async def _rank(
        self,
        candidates: list[tuple[Resource, float]],
        intent: QueryIntent,
        context: UserContext,
        snapshot: ScoringSnapshot,
        eligibility: dict[str, EligibilityResult],
        deadline: float,
    ) -> tuple[RankingResult, str | None]:
        remaining = deadline - asyncio.get_running_loop().time()
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(self._ranking.rank, candidates, intent, context, snapshot, eligibility),
                timeout=max(remaining, 0.0),
            )
            return result, None
        except asyncio.TimeoutError:
            # The worker thread cannot be cancelled; its result is discarded.
            log.degraded("Ranking exceeded deadline; ordering top candidates by similarity", kept=self._degraded_max)
        shortlist = sorted(candidates, key=lambda pair: (-pair[1], pair[0].id))[: self._degraded_max]
        return self._ranking.order_by_similarity(shortlist, eligibility, snapshot.version), "ranking timed out"

    async def _record(
        self,
        query_id: str,
        request: RecommendationRequest,
        snapshot: ScoringSnapshot,
        recommendations: tuple[Recommendation, ...],
    ) -> None:
        if self._query_log is None:
            return
        intent = request.intent
        record = QueryRecord(
            query_id=query_id,
            primary_need=intent.primary_need,
            urgency=intent.urgency,
            category=intent.category_hint,
            embedding=tuple(request.embedding or ()),
            snapshot_version=snapshot.version,
            resource_ids=tuple(r.resource_id for r in recommendations),
        )
        try:
            await self._query_log.record(record)
        except Exception:
            logger.exception("Failed to record delivered query %s", query_id)

    # ── Guidance ─────────────────────────────────────────────────────

    def _clarifying_questions(self, intent: QueryIntent) -> tuple[str, ...]:
        if intent.confidence >= self._min_confidence:
            return ()
        questions = ["Could you tell us a bit more about what you need?"]
        if intent.primary_need:
            questions.insert(0, f"Are you looking for help with {intent.primary_need}?")
        return tuple(questions)

    def _suggestions(
        self,
        intent: QueryIntent,
        context: UserContext,
        selected: list[ScoredResource],
        total: int,
    ) -> tuple[str, ...]:
        suggestions: list[str] = []

        missing: list[str] = []
        for item in selected:
            for name in item.eligibility.missing_info:
                if name not in missing:
                    missing.append(name)
        if missing:
            suggestions.append(
                "Sharing your " + ", ".join(m.replace("_", " ") for m in missing) + " would help check eligibility."
            )
        if context.location is None:
            suggestions.append("Add your location to see services closest to you.")
        if total < FEW_RESULTS:
            if intent.category_hint:
                suggestions.append(f"Try searching beyond the {intent.category_hint} category.")
            suggestions.append("Try describing your need in broader terms.")
        for need in intent.secondary_needs:
            suggestions.append(f"You also mentioned {need}. Search for it separately to see more options.")

        current = (intent.primary_need or "").strip().lower()
        recent = [h for h in context.history[-self._history_limit:] if h and h.strip().lower() != current]
        if recent:
            suggestions.append(f"Looking for help with {recent[-1]} as well? Include it in your search.")
        return tuple(suggestions)


def _interpret(intent: QueryIntent) -> QueryInterpretation:
    return QueryInterpretation(
        primary_need=intent.primary_need,
        secondary_needs=tuple(intent.secondary_needs),
        urgency=intent.urgency,
        confidence=intent.confidence,
        language=intent.language,
        category_hint=intent.category_hint,
    )


def _to_recommendation(item: ScoredResource) -> Recommendation:
    resource = item.resource
    return Recommendation(
        resource_id=resource.id,
        name=resource.name,
        provider=resource.provider,
        category=resource.category,
        capacity_status=resource.capacity_status.value,
        score=item.score,
        scores=item.scores,
        explanation=item.explanation,
        distance_miles=item.distance_miles,
        flagged=resource.flagged,
    )
