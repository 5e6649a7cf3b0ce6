"""Pydantic DTOs for learning-loop insights and snapshots."""

from datetime import datetime

from pydantic import BaseModel

from navigator.domain.entities import EmbeddingUpdate, ScoringSnapshot


class PatternSchema(BaseModel):
    resource_id: str
    cluster: str
    success_rate: float
    sample_size: int
    previous_success: float
    historical_success: float


class SnapshotResponse(BaseModel):
    """A published scoring snapshot and the patterns its learning run produced."""

    version: int
    created_at: datetime
    feedback_watermark: int
    embedding_watermark: int
    cluster_values: int
    resource_values: int
    pending_clusters: int
    embedding_updates: int
    patterns: list[PatternSchema]

    @classmethod
    def from_entity(cls, snapshot: ScoringSnapshot) -> "SnapshotResponse":
        return cls(
            version=snapshot.version,
            created_at=snapshot.created_at,
            feedback_watermark=snapshot.feedback_watermark,
            embedding_watermark=snapshot.embedding_watermark,
            cluster_values=len(snapshot.historical_success),
            resource_values=len(snapshot.resource_success),
            pending_clusters=len(snapshot.pending),
            embedding_updates=snapshot.embedding_updates,
            patterns=[
                PatternSchema(
                    resource_id=p.resource_id,
                    cluster=p.cluster.signature,
                    success_rate=p.success_rate,
                    sample_size=p.sample_size,
                    previous_success=p.previous_success,
                    historical_success=p.historical_success,
                )
                for p in snapshot.patterns
            ],
        )


class SnapshotVersionSchema(BaseModel):
    version: int
    created_at: str


class EmbeddingUpdateSchema(BaseModel):
    resource_id: str
    positive_pairs: int
    negative_pairs: int
    displacement: float

    @classmethod
    def from_entity(cls, update: EmbeddingUpdate) -> "EmbeddingUpdateSchema":
        return cls(
            resource_id=update.resource_id,
            positive_pairs=update.positive_pairs,
            negative_pairs=update.negative_pairs,
            displacement=update.displacement,
        )


class EmbeddingRunResponse(BaseModel):
    snapshot_version: int
    updates: list[EmbeddingUpdateSchema]
