"""Learning service — turns accumulated feedback into ranking adjustments.

Two cycles, both run off the request path:

* ``run_cycle`` aggregates new feedback per (resource, query cluster),
  smooths the success rates into the previous values and publishes the next
  ``ScoringSnapshot``.
* ``run_embedding_cycle`` nudges resource vectors toward queries they helped
  with and away from queries they did not, then swaps them into the index.
"""

from collections import defaultdict
from datetime import datetime, timezone

import numpy as np

from navigator.application.interfaces import (
    FeedbackRepository,
    QueryLogRepository,
    ResourceRepository,
    SnapshotRepository,
)
from navigator.application.services.resource_index import ResourceIndex, unit_rows, unit_vector
from navigator.application.services.snapshot_store import SnapshotStore
from navigator.domain.entities import (
    ClusterTally,
    EmbeddingUpdate,
    Feedback,
    Pattern,
    QueryCluster,
    QueryRecord,
    ScoringSnapshot,
)
from navigator.domain.entities.insight import NEUTRAL_SUCCESS, WILDCARD, SnapshotKey
from navigator.domain.exceptions import EntityNotFoundError, InvalidEmbeddingError
from navigator.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

log = PipelineLogger("LearningService")


class LearningService:
    """Batch learner over the feedback ledger."""

    def __init__(
        self,
        feedback_repository: FeedbackRepository,
        query_log_repository: QueryLogRepository,
        snapshot_repository: SnapshotRepository | None,
        snapshot_store: SnapshotStore,
        index: ResourceIndex | None = None,
        resource_repository: ResourceRepository | None = None,
        *,
        min_samples: int = 5,
        smoothing: float = 0.3,
        rating_weight: float = 2.0,
        embedding_learning_rate: float = 0.05,
        embedding_max_displacement: float = 0.1,
        watermark_overlap: int = 1000,
    ):
        self._feedback = feedback_repository
        self._queries = query_log_repository
        self._snapshots = snapshot_repository
        self._store = snapshot_store
        self._index = index
        self._resources = resource_repository
        self._min_samples = min_samples
        self._alpha = smoothing
        self._rating_weight = rating_weight
        self._learning_rate = embedding_learning_rate
        self._max_displacement = embedding_max_displacement
        self._overlap = max(0, watermark_overlap)

    # ── Scoring cycle ────────────────────────────────────────────────

    async def run_cycle(self) -> ScoringSnapshot:
        """Aggregate feedback since the last watermark and publish a snapshot.

        Returns the current snapshot unchanged when there is no new feedback.
        """
        previous = self._store.current()
        feedback = await self._unseen(previous.feedback_watermark, previous.feedback_seen)
        if not feedback:
            log.detail("No new feedback since watermark", watermark=previous.feedback_watermark)
            return previous

        with log.timed_step(PipelineStage.LEARN, "Aggregating feedback", records=len(feedback)):
            records = await self._queries.get_many(sorted({f.query_id for f in feedback}))
            tallies: dict[SnapshotKey, ClusterTally] = dict(previous.pending)
            for item in feedback:
                key = (item.resource_id, self._cluster_for(item, records.get(item.query_id)).signature)
                tallies[key] = tallies.get(key, ClusterTally()).merge(self.tally(item))

            historical = dict(previous.historical_success)
            pending: dict[SnapshotKey, ClusterTally] = {}
            patterns: list[Pattern] = []
            matured_by_resource: dict[str, ClusterTally] = defaultdict(ClusterTally)

            for key in sorted(tallies):
                tally = tallies[key]
                if tally.count < self._min_samples:
                    pending[key] = tally
                    continue
                resource_id, signature = key
                prior = historical.get(key, NEUTRAL_SUCCESS)
                updated = self.smooth(prior, tally.success_rate)
                historical[key] = updated
                matured_by_resource[resource_id] = matured_by_resource[resource_id].merge(tally)
                patterns.append(
                    Pattern(
                        resource_id=resource_id,
                        cluster=QueryCluster.parse(signature),
                        success_rate=tally.success_rate,
                        sample_size=tally.count,
                        previous_success=prior,
                        historical_success=updated,
                    )
                )

            resource_success = dict(previous.resource_success)
            for resource_id, tally in matured_by_resource.items():
                prior = resource_success.get(resource_id, NEUTRAL_SUCCESS)
                resource_success[resource_id] = self.smooth(prior, tally.success_rate)

        watermark, seen = self._advance(previous.feedback_watermark, previous.feedback_seen, feedback)
        snapshot = ScoringSnapshot(
            version=previous.version + 1,
            created_at=datetime.now(timezone.utc),
            historical_success=historical,
            resource_success=resource_success,
            patterns=tuple(patterns),
            pending=pending,
            feedback_watermark=watermark,
            feedback_seen=seen,
            embedding_watermark=previous.embedding_watermark,
            embedding_seen=previous.embedding_seen,
            embedding_updates=0,
        )
        with log.timed_step(PipelineStage.PUBLISH, f"Publishing snapshot v{snapshot.version}"):
            await self._store.publish(snapshot, self._snapshots)
        log.stats(
            feedback=len(feedback),
            patterns=len(patterns),
            pending=len(pending),
            version=snapshot.version,
        )
        return snapshot

    def tally(self, feedback: Feedback) -> ClusterTally:
        """Weighted success of one record: helpful flag weight 1, rating weight ``rating_weight``.

        A rating refines the flag but stays on its side of neutral: helpful
        records score at least 0.5 for the rating, unhelpful ones at most 0.5,
        so a helpful record never lowers the rate below neutral.
        """
        success = 1.0 if feedback.helpful else 0.0
        weight = 1.0
        if feedback.rating is not None:
            rating = (feedback.rating - 1) / 4.0
            rating = max(rating, NEUTRAL_SUCCESS) if feedback.helpful else min(rating, NEUTRAL_SUCCESS)
            success += self._rating_weight * rating
            weight += self._rating_weight
        return ClusterTally(weighted_success=success, weight=weight, count=1)

    def smooth(self, previous: float, rate: float) -> float:
        return (1.0 - self._alpha) * previous + self._alpha * rate

    def _cluster_for(self, feedback: Feedback, record: QueryRecord | None) -> QueryCluster:
        category = None
        if self._index is not None:
            resource = self._index.get(feedback.resource_id)
            if resource is not None:
                category = resource.category
        if record is None:
            return QueryCluster.build(WILDCARD, WILDCARD, category)
        return QueryCluster.build(record.primary_need, record.urgency, category or record.category)

    # ── Embedding cycle ──────────────────────────────────────────────

    async def run_embedding_cycle(self) -> list[EmbeddingUpdate]:
        """Contrastive adjustment of resource vectors from query/feedback pairs.

        New vectors are computed first and persisted with the snapshot that
        advances the embedding watermark; the index swaps them in only after
        that snapshot is published, so a failed publish leaves the index as
        it was and the next run starts from the same vectors.
        """
        if self._index is None:
            raise RuntimeError("embedding cycle requires a resource index")

        previous = self._store.current()
        feedback = await self._unseen(previous.embedding_watermark, previous.embedding_seen)
        if not feedback:
            log.detail("No new feedback for embedding refinement")
            return []

        planned: list[tuple[EmbeddingUpdate, tuple[float, ...]]] = []
        with log.timed_step(PipelineStage.LEARN, "Refining resource embeddings", records=len(feedback)):
            records = await self._queries.get_many(sorted({f.query_id for f in feedback}))
            positives: dict[str, list[tuple[float, ...]]] = defaultdict(list)
            negatives: dict[str, list[tuple[float, ...]]] = defaultdict(list)
            for item in feedback:
                record = records.get(item.query_id)
                if record is None or len(record.embedding) != self._index.dimensions:
                    continue
                (positives if item.helpful else negatives)[item.resource_id].append(record.embedding)

            for resource_id in sorted(set(positives) | set(negatives)):
                resource = self._index.get(resource_id)
                if resource is None:
                    continue
                vector, displacement = self.nudge(resource.embedding, positives[resource_id], negatives[resource_id])
                if displacement == 0.0:
                    continue
                update = EmbeddingUpdate(
                    resource_id=resource_id,
                    positive_pairs=len(positives[resource_id]),
                    negative_pairs=len(negatives[resource_id]),
                    displacement=displacement,
                )
                planned.append((update, vector))

        # Written in the publishing session so they commit with the snapshot.
        if self._resources is not None:
            for update, vector in planned:
                await self._resources.update_embedding(update.resource_id, vector)

        watermark, seen = self._advance(previous.embedding_watermark, previous.embedding_seen, feedback)
        snapshot = ScoringSnapshot(
            version=previous.version + 1,
            created_at=datetime.now(timezone.utc),
            historical_success=previous.historical_success,
            resource_success=previous.resource_success,
            patterns=previous.patterns,
            pending=previous.pending,
            feedback_watermark=previous.feedback_watermark,
            feedback_seen=previous.feedback_seen,
            embedding_watermark=watermark,
            embedding_seen=seen,
            embedding_updates=len(planned),
        )
        await self._store.publish(snapshot, self._snapshots)

        updates: list[EmbeddingUpdate] = []
        for update, vector in planned:
            try:
                self._index.replace_embedding(update.resource_id, vector)
            except (EntityNotFoundError, InvalidEmbeddingError) as exc:
                log.step_error(PipelineStage.LEARN, f"Skipping embedding update for {update.resource_id}", error=exc)
                continue
            updates.append(update)
        log.stats(updated=len(updates), version=snapshot.version)
        return updates

    def nudge(
        self,
        embedding: tuple[float, ...],
        positives: list[tuple[float, ...]],
        negatives: list[tuple[float, ...]],
    ) -> tuple[tuple[float, ...], float]:
        """Move a unit vector toward helpful queries and away from unhelpful ones.

        The step is capped at ``embedding_max_displacement`` and the result is
        renormalized. Returns (new vector, displacement applied).
        """
        current = unit_vector(np.asarray(embedding, dtype=np.float64))
        direction = np.zeros_like(current)
        if positives:
            direction += unit_rows(np.asarray(positives, dtype=np.float64)).mean(axis=0) - current
        if negatives:
            direction -= unit_rows(np.asarray(negatives, dtype=np.float64)).mean(axis=0) - current

        step = self._learning_rate * direction
        length = float(np.linalg.norm(step))
        if length == 0.0 or not np.isfinite(length):
            return tuple(float(x) for x in current), 0.0
        if length > self._max_displacement:
            step *= self._max_displacement / length
            length = self._max_displacement

        moved = unit_vector(current + step)
        return tuple(float(x) for x in moved), length

    # ── Watermarks ───────────────────────────────────────────────────

    async def _unseen(self, watermark: int, seen: frozenset[int]) -> list[Feedback]:
        """Feedback not yet learned from.

        Ids are assigned at insert but become visible at commit, so a lower
        id can appear after a higher one was processed. Rows within
        ``watermark_overlap`` ids below the watermark are re-read and kept
        unless already in ``seen``.
        """
        floor = max(0, watermark - self._overlap)
        return [f for f in await self._feedback.get_since(floor) if f.id > watermark or f.id not in seen]

    def _advance(self, watermark: int, seen: frozenset[int], processed: list[Feedback]) -> tuple[int, frozenset[int]]:
        new_watermark = max(watermark, max(f.id for f in processed))
        floor = new_watermark - self._overlap
        kept = {i for i in seen if i > floor}
        kept.update(f.id for f in processed if f.id > floor)
        return new_watermark, frozenset(kept)
