"""Resource index — in-memory vector + metadata index over active resources.

Readers work against an immutable ``IndexSnapshot``; every write (load,
upsert, retire, embedding swap, flag) builds a new snapshot off-path and
swaps the active pointer in one assignment, so a reader never observes a
half-applied change.

Search is approximate (inverted-file partitions over the unit sphere) once
the index is large enough, with exact brute-force search as the fallback
for cold, small, or degraded indexes.
"""

import logging
import math
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Iterable, Mapping

import numpy as np

from navigator.config import Settings
from navigator.domain.entities import Resource
from navigator.domain.exceptions import EntityNotFoundError, InvalidEmbeddingError

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[a-z0-9]{2,}")
_SEED = 7


def unit_rows(matrix: np.ndarray) -> np.ndarray:
    """Scale each row to unit length; zero rows stay zero."""
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0.0] = 1.0
    return matrix / norms


def unit_vector(vector: np.ndarray) -> np.ndarray:
    norm = float(np.linalg.norm(vector))
    return vector / norm if norm > 0.0 else vector


def _tokens(text: str) -> set[str]:
    return set(_TOKEN_RE.findall((text or "").lower()))


# ── Approximate search ───────────────────────────────────────────────


class PartitionedSearch:
    """Inverted-file partitioning of unit vectors (spherical k-means).

    Each partition keeps its member rows and angular radius (largest angle
    between the centroid and a member). For a query at angle θ from a
    centroid, no member can be closer than θ − radius, which gives an upper
    bound on the similarity any member can reach. Partitions whose bound
    reaches ``recall_threshold`` are always searched, so every vector above the
    threshold is returned.
    """

    def __init__(self, centroids: np.ndarray, members: list[np.ndarray], radii: np.ndarray):
        self.centroids = centroids
        self.members = members
        self.radii = radii

    @classmethod
    def train(cls, matrix: np.ndarray, n_partitions: int, iterations: int) -> "PartitionedSearch":
        n = matrix.shape[0]
        k = max(1, min(n_partitions, n))
        rng = np.random.default_rng(_SEED)
        centroids = matrix[np.sort(rng.choice(n, size=k, replace=False))].copy()

        for _ in range(max(1, iterations)):
            assignment = np.argmax(matrix @ centroids.T, axis=1)
            for p in range(k):
                rows = matrix[assignment == p]
                if rows.shape[0]:
                    centroids[p] = rows.mean(axis=0)
            centroids = unit_rows(centroids)

        return cls.assign(matrix, centroids)

    @classmethod
    def assign(cls, matrix: np.ndarray, centroids: np.ndarray) -> "PartitionedSearch":
        """Reassign rows to fixed centroids and recompute radii."""
        assignment = np.argmax(matrix @ centroids.T, axis=1)
        members: list[np.ndarray] = []
        radii = np.zeros(centroids.shape[0])
        for p in range(centroids.shape[0]):
            rows = np.flatnonzero(assignment == p)
            members.append(rows)
            if rows.size:
                cos = np.clip(matrix[rows] @ centroids[p], -1.0, 1.0)
                radii[p] = float(np.max(np.arccos(cos)))
        return cls(centroids, members, radii)

    def candidate_rows(
        self,
        query: np.ndarray,
        probes: int,
        recall_threshold: float,
        allowed: np.ndarray | None = None,
        min_rows: int = 0,
    ) -> np.ndarray:
        """Rows of every searched partition, in ascending row order.

        With ``allowed`` (sorted row ids), partitions are narrowed to those
        rows first and partitions holding none of them are never searched.
        Search continues past ``probes`` until at least ``min_rows`` rows
        are collected or the non-empty partitions run out.
        """
        members = self.members
        if allowed is not None:
            members = [np.intersect1d(m, allowed, assume_unique=True) for m in self.members]

        centroid_sims = np.clip(self.centroids @ query, -1.0, 1.0)
        order = np.argsort(-centroid_sims, kind="stable")
        selected: set[int] = set()
        collected = 0
        for p in (int(p) for p in order):
            if not members[p].size:
                continue
            if len(selected) >= probes and collected >= min_rows:
                break
            selected.add(p)
            collected += members[p].size

        angles = np.arccos(centroid_sims)
        bounds = np.cos(np.maximum(0.0, angles - self.radii))
        selected.update(int(p) for p in np.flatnonzero(bounds >= recall_threshold) if members[int(p)].size)

        if not selected:
            return np.empty(0, dtype=np.int64)
        return np.sort(np.concatenate([members[p] for p in sorted(selected)]))


# ── Snapshot ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class IndexSnapshot:
    """Immutable view of the indexed resources.

    Rows are sorted by resource id, so row order doubles as the
    deterministic tie-breaker.
    """

    version: int
    dimensions: int
    resources: tuple[Resource, ...]
    positions: Mapping[str, int]
    matrix: np.ndarray
    partitions: PartitionedSearch | None = None
    built_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def build(
        cls,
        version: int,
        dimensions: int,
        resources: Iterable[Resource],
        partitions: PartitionedSearch | None = None,
    ) -> "IndexSnapshot":
        ordered = tuple(sorted(resources, key=lambda r: r.id))
        if ordered:
            matrix = unit_rows(np.asarray([r.embedding for r in ordered], dtype=np.float64))
        else:
            matrix = np.zeros((0, dimensions), dtype=np.float64)
        matrix.setflags(write=False)
        return cls(
            version=version,
            dimensions=dimensions,
            resources=ordered,
            positions=MappingProxyType({r.id: i for i, r in enumerate(ordered)}),
            matrix=matrix,
            partitions=partitions,
        )

    def __len__(self) -> int:
        return len(self.resources)


# ── Index ────────────────────────────────────────────────────────────


class ResourceIndex:
    """Versioned, read-mostly index of active resources.

    ``retrieve`` and the metadata lookups never lock; writers serialize on a
    lock, build the next snapshot, then publish it with a single assignment.
    """

    def __init__(
        self,
        *,
        dimensions: int,
        max_top_k: int = 200,
        ann_enabled: bool = True,
        ann_min_index_size: int = 256,
        ann_partitions: int = 16,
        ann_probes: int = 4,
        ann_training_iterations: int = 10,
        recall_threshold: float = 0.75,
        recall_sla: float = 0.99,
    ):
        self._dimensions = dimensions
        self._max_top_k = max_top_k
        self._ann_enabled = ann_enabled
        self._ann_min_index_size = ann_min_index_size
        self._ann_partitions = ann_partitions
        self._ann_probes = ann_probes
        self._ann_iterations = ann_training_iterations
        self.recall_threshold = recall_threshold
        self.recall_sla = recall_sla
        self._write_lock = threading.Lock()
        self._degraded_reason: str | None = None
        self._snapshot = IndexSnapshot.build(0, dimensions, ())

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResourceIndex":
        return cls(
            dimensions=settings.embedding_dimensions,
            max_top_k=settings.index_max_top_k,
            ann_enabled=settings.ann_enabled,
            ann_min_index_size=settings.ann_min_index_size,
            ann_partitions=settings.ann_partitions,
            ann_probes=settings.ann_probes,
            ann_training_iterations=settings.ann_training_iterations,
            recall_threshold=settings.recall_threshold,
            recall_sla=settings.recall_sla,
        )

    # ── State ────────────────────────────────────────────────────────

    @property
    def snapshot(self) -> IndexSnapshot:
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def size(self) -> int:
        return len(self._snapshot)

    @property
    def degraded(self) -> bool:
        return self._degraded_reason is not None

    def mark_degraded(self, reason: str) -> None:
        """Route searches to exact search until cleared or rebuilt."""
        logger.warning("Resource index marked degraded: %s", reason)
        self._degraded_reason = reason

    def clear_degraded(self) -> None:
        self._degraded_reason = None

    @property
    def uses_ann(self) -> bool:
        snap = self._snapshot
        return (
            self._ann_enabled
            and not self.degraded
            and snap.partitions is not None
            and len(snap) >= self._ann_min_index_size
        )

    def stats(self) -> dict:
        """Index state and the recall guarantee it currently offers.

        Every resource whose similarity reaches ``recall_threshold`` is
        returned with probability at least ``recall_sla``. The partition
        bound makes approximate search meet it deterministically; exact
        search trivially does.
        """
        return {
            "version": self.version,
            "resources": self.size,
            "approximate": self.uses_ann,
            "degraded": self.degraded,
            "recall_threshold": self.recall_threshold,
            "recall_sla": self.recall_sla,
        }

    # ── Read path ────────────────────────────────────────────────────

    def retrieve(
        self,
        query_embedding: Iterable[float],
        category_hint: str | None = None,
        top_k: int = 20,
    ) -> list[tuple[Resource, float]]:
        """Nearest resources by cosine similarity, best first.

        The category pre-filter restricts the candidate rows before any
        similarity is computed. Returns at most ``top_k`` pairs with
        similarity in [-1, 1].
        """
        if not 1 <= top_k <= self._max_top_k:
            raise ValueError(f"top_k must be between 1 and {self._max_top_k}, got {top_k}")

        query = np.asarray(list(query_embedding), dtype=np.float64)
        if query.ndim != 1 or query.shape[0] != self._dimensions:
            raise InvalidEmbeddingError(self._dimensions, int(query.size))
        if not np.all(np.isfinite(query)):
            raise InvalidEmbeddingError(self._dimensions, int(query.size))

        snap = self._snapshot
        if not len(snap):
            return []

        norm = float(np.linalg.norm(query))
        if norm > 0.0:
            query = query / norm

        allowed = self._category_rows(snap, category_hint)
        if allowed is not None and allowed.size == 0:
            return []

        rows = self._candidate_rows(snap, query, allowed, top_k)
        if rows.size == 0:
            return []

        sims = np.clip(snap.matrix[rows] @ query, -1.0, 1.0)
        order = np.lexsort((rows, -sims))[:top_k]
        return [(snap.resources[int(rows[i])], float(sims[i])) for i in order]

    def _category_rows(self, snap: IndexSnapshot, category_hint: str | None) -> np.ndarray | None:
        if not category_hint:
            return None
        return np.asarray(
            [i for i, r in enumerate(snap.resources) if r.in_category(category_hint)],
            dtype=np.int64,
        )

    def _candidate_rows(
        self,
        snap: IndexSnapshot,
        query: np.ndarray,
        allowed: np.ndarray | None,
        top_k: int,
    ) -> np.ndarray:
        """Rows to score: all allowed rows (exact) or the searched partitions' allowed rows."""
        exact_rows = allowed if allowed is not None else np.arange(len(snap))
        if not self.uses_ann or exact_rows.size < self._ann_min_index_size:
            return exact_rows

        try:
            return snap.partitions.candidate_rows(
                query,
                self._ann_probes,
                self.recall_threshold,
                allowed=allowed,
                min_rows=top_k,
            )
        except Exception as exc:
            logger.warning("Approximate search failed, falling back to exact search: %s", exc)
            return exact_rows

    def get(self, resource_id: str) -> Resource | None:
        snap = self._snapshot
        pos = snap.positions.get(resource_id)
        return snap.resources[pos] if pos is not None else None

    def by_category(self, category: str) -> list[Resource]:
        return [r for r in self._snapshot.resources if r.in_category(category)]

    def keyword_search(
        self,
        terms: Iterable[str],
        category_hint: str | None = None,
        limit: int = 25,
    ) -> list[tuple[Resource, float]]:
        """Metadata-only lookup used when vector retrieval is unavailable.

        Score is the fraction of query terms found in a resource's name,
        category, description or keywords. With no matching terms, a category
        hint alone still yields that category's resources at score 0.
        """
        wanted: set[str] = set()
        for term in terms:
            wanted |= _tokens(term)

        scored: list[tuple[Resource, float]] = []
        for resource in self._snapshot.resources:
            in_category = bool(category_hint) and resource.in_category(category_hint)
            haystack = _tokens(
                " ".join(
                    [
                        resource.name,
                        resource.category,
                        " ".join(resource.subcategories),
                        resource.description,
                        " ".join(resource.keywords),
                    ]
                )
            )
            hits = len(wanted & haystack)
            if hits == 0 and not in_category:
                continue
            score = hits / len(wanted) if wanted else 0.0
            scored.append((resource, score))

        scored.sort(key=lambda pair: (-pair[1], pair[0].id))
        return scored[:limit]

    # ── Write path ───────────────────────────────────────────────────

    def load(self, resources: Iterable[Resource]) -> int:
        """Replace the whole index; retired resources are skipped."""
        active = {}
        for resource in resources:
            if resource.retired:
                continue
            self.validate(resource)
            active[resource.id] = resource
        with self._write_lock:
            self._publish(active, retrain=True)
        logger.info("Resource index loaded: %d resources (version %d)", len(active), self.version)
        return len(active)

    def upsert(self, resource: Resource) -> None:
        """Add or replace one resource; a closed resource is removed instead."""
        if resource.retired:
            self.retire(resource.id)
            return
        self.validate(resource)
        with self._write_lock:
            current = {r.id: r for r in self._snapshot.resources}
            current[resource.id] = resource
            self._publish(current, retrain=False)

    def retire(self, resource_id: str) -> bool:
        with self._write_lock:
            current = {r.id: r for r in self._snapshot.resources}
            if current.pop(resource_id, None) is None:
                return False
            self._publish(current, retrain=False)
        logger.info("Retired resource %s from index", resource_id)
        return True

    def replace_embedding(self, resource_id: str, embedding: Iterable[float]) -> Resource:
        """Swap one resource's vector; readers see either the old or new vector."""
        vector = tuple(float(x) for x in embedding)
        with self._write_lock:
            current = {r.id: r for r in self._snapshot.resources}
            resource = current.get(resource_id)
            if resource is None:
                raise EntityNotFoundError("Resource", resource_id)
            updated = resource.with_embedding(vector)
            self.validate(updated)
            current[resource_id] = updated
            self._publish(current, retrain=False)
        return updated

    def flag(self, resource_id: str, reason: str) -> Resource:
        with self._write_lock:
            current = {r.id: r for r in self._snapshot.resources}
            resource = current.get(resource_id)
            if resource is None:
                raise EntityNotFoundError("Resource", resource_id)
            updated = resource.with_flag(reason)
            current[resource_id] = updated
            self._publish(current, retrain=False)
        return updated

    def rebuild(self) -> None:
        """Retrain partitions from scratch and clear degraded mode."""
        with self._write_lock:
            self._publish({r.id: r for r in self._snapshot.resources}, retrain=True)
        self.clear_degraded()

    def validate(self, resource: Resource) -> None:
        """Raise InvalidEmbeddingError unless the vector is finite and of index dimension."""
        embedding = resource.embedding
        if len(embedding) != self._dimensions:
            raise InvalidEmbeddingError(self._dimensions, len(embedding), owner=f"resource {resource.id}")
        if not all(math.isfinite(x) for x in embedding):
            raise InvalidEmbeddingError(self._dimensions, len(embedding), owner=f"resource {resource.id}")

    def _publish(self, resources: dict[str, Resource], *, retrain: bool) -> None:
        """Build the next snapshot and swap it in. Caller holds the write lock."""
        previous = self._snapshot
        snap = IndexSnapshot.build(previous.version + 1, self._dimensions, resources.values())

        partitions = None
        if self._ann_enabled and len(snap) >= self._ann_min_index_size:
            if retrain or previous.partitions is None:
                partitions = PartitionedSearch.train(snap.matrix, self._ann_partitions, self._ann_iterations)
            else:
                partitions = PartitionedSearch.assign(snap.matrix, previous.partitions.centroids)

        self._snapshot = IndexSnapshot(
            version=snap.version,
            dimensions=snap.dimensions,
            resources=snap.resources,
            positions=snap.positions,
            matrix=snap.matrix,
            partitions=partitions,
        )
