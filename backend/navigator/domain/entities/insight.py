"""Domain entities produced by the learning loop — clusters, patterns, snapshots.

A ``ScoringSnapshot`` is an immutable, versioned view of the ranking
adjustments. New learning runs publish a new snapshot; existing ones are
never patched.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping

from .query import QueryIntent, Urgency

WILDCARD = "*"
NEUTRAL_SUCCESS = 0.5

_NON_WORD_RE = re.compile(r"[^a-z0-9]+")


def normalize_need(text: str | None) -> str:
    """Canonical form of a need label: lowercase words joined by underscores."""
    if not text:
        return WILDCARD
    normalized = _NON_WORD_RE.sub("_", text.strip().lower()).strip("_")
    return normalized or WILDCARD


@dataclass(frozen=True)
class QueryCluster:
    """Coarse query-characteristic signature: need × urgency × category."""

    primary_need: str
    urgency: str
    category: str

    @classmethod
    def build(cls, primary_need: str | None, urgency: Urgency | str | None, category: str | None) -> "QueryCluster":
        if isinstance(urgency, Urgency):
            urgency = urgency.value
        return cls(
            primary_need=normalize_need(primary_need),
            urgency=(urgency or WILDCARD).lower(),
            category=normalize_need(category),
        )

    @classmethod
    def for_intent(cls, intent: QueryIntent, resource_category: str) -> "QueryCluster":
        return cls.build(intent.primary_need, intent.urgency, resource_category)

    @property
    def signature(self) -> str:
        return f"{self.primary_need}|{self.urgency}|{self.category}"

    @classmethod
    def parse(cls, signature: str) -> "QueryCluster":
        need, urgency, category = signature.split("|", 2)
        return cls(primary_need=need, urgency=urgency, category=category)


@dataclass(frozen=True)
class ClusterTally:
    """Weighted outcome counts for one (resource, cluster) pair."""

    weighted_success: float = 0.0
    weight: float = 0.0
    count: int = 0

    def merge(self, other: "ClusterTally") -> "ClusterTally":
        return ClusterTally(
            weighted_success=self.weighted_success + other.weighted_success,
            weight=self.weight + other.weight,
            count=self.count + other.count,
        )

    @property
    def success_rate(self) -> float:
        if self.weight <= 0.0:
            return NEUTRAL_SUCCESS
        return self.weighted_success / self.weight


@dataclass(frozen=True)
class Pattern:
    """Aggregated success statistics for one (resource, query cluster) pair."""

    resource_id: str
    cluster: QueryCluster
    success_rate: float
    sample_size: int
    previous_success: float
    historical_success: float


SnapshotKey = tuple[str, str]   # (resource_id, cluster signature)


@dataclass(frozen=True)
class ScoringSnapshot:
    """Published ranking adjustments, tagged with a monotonic version."""

    version: int
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    historical_success: Mapping[SnapshotKey, float] = field(default_factory=dict)
    resource_success: Mapping[str, float] = field(default_factory=dict)
    patterns: tuple[Pattern, ...] = ()
    pending: Mapping[SnapshotKey, ClusterTally] = field(default_factory=dict)
    feedback_watermark: int = 0
    embedding_watermark: int = 0
    embedding_updates: int = 0
    # Ids already learned from within the late-commit window below each watermark
    feedback_seen: frozenset[int] = frozenset()
    embedding_seen: frozenset[int] = frozenset()

    def __post_init__(self) -> None:
        # Freeze the mappings so readers can share the snapshot without copying.
        object.__setattr__(self, "historical_success", MappingProxyType(dict(self.historical_success)))
        object.__setattr__(self, "resource_success", MappingProxyType(dict(self.resource_success)))
        object.__setattr__(self, "pending", MappingProxyType(dict(self.pending)))
        object.__setattr__(self, "feedback_seen", frozenset(self.feedback_seen))
        object.__setattr__(self, "embedding_seen", frozenset(self.embedding_seen))

    @classmethod
    def initial(cls) -> "ScoringSnapshot":
        return cls(version=0)

    def success_for(self, resource_id: str, cluster: QueryCluster) -> float:
        """Cluster value, then resource-wide value, then neutral 0.5."""
        value = self.historical_success.get((resource_id, cluster.signature))
        if value is not None:
            return value
        return self.resource_success.get(resource_id, NEUTRAL_SUCCESS)


@dataclass(frozen=True)
class EmbeddingUpdate:
    """Audit record of one contrastive embedding adjustment."""

    resource_id: str
    positive_pairs: int
    negative_pairs: int
    displacement: float
