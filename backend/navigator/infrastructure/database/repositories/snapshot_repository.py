"""Concrete scoring snapshot repository backed by SQLAlchemy."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from navigator.application.interfaces import SnapshotRepository
from navigator.domain.entities import ClusterTally, Pattern, QueryCluster, ScoringSnapshot
from navigator.infrastructure.database.models import ScoringSnapshotModel
from navigator.infrastructure.database.repositories._time import as_utc


class SQLAlchemySnapshotRepository(SnapshotRepository):
    """Insert-only. ``save`` commits so a published version is durable before it is served."""

    def __init__(self, session: AsyncSession):
        self._session = session

    def _to_entity(self, model: ScoringSnapshotModel) -> ScoringSnapshot:
        payload = model.payload
        return ScoringSnapshot(
            version=model.version,
            created_at=as_utc(model.created_at),
            historical_success={(rid, sig): value for rid, sig, value in payload.get("historical_success", [])},
            resource_success=dict(payload.get("resource_success", {})),
            patterns=tuple(
                Pattern(
                    resource_id=p["resource_id"],
                    cluster=QueryCluster.parse(p["cluster"]),
                    success_rate=p["success_rate"],
                    sample_size=p["sample_size"],
                    previous_success=p["previous_success"],
                    historical_success=p["historical_success"],
                )
                for p in payload.get("patterns", [])
            ),
            pending={
                (rid, sig): ClusterTally(weighted_success=ws, weight=w, count=n)
                for rid, sig, ws, w, n in payload.get("pending", [])
            },
            feedback_watermark=model.feedback_watermark,
            embedding_watermark=model.embedding_watermark,
            embedding_updates=payload.get("embedding_updates", 0),
            feedback_seen=frozenset(payload.get("feedback_seen", [])),
            embedding_seen=frozenset(payload.get("embedding_seen", [])),
        )

    @staticmethod
    def _payload(snapshot: ScoringSnapshot) -> dict[str, Any]:
        return {
            "historical_success": [[rid, sig, value] for (rid, sig), value in sorted(snapshot.historical_success.items())],
            "resource_success": dict(sorted(snapshot.resource_success.items())),
            "patterns": [
                {
                    "resource_id": p.resource_id,
                    "cluster": p.cluster.signature,
                    "success_rate": p.success_rate,
                    "sample_size": p.sample_size,
                    "previous_success": p.previous_success,
                    "historical_success": p.historical_success,
                }
                for p in snapshot.patterns
            ],
            "pending": [
                [rid, sig, t.weighted_success, t.weight, t.count]
                for (rid, sig), t in sorted(snapshot.pending.items())
            ],
            "embedding_updates": snapshot.embedding_updates,
            "feedback_seen": sorted(snapshot.feedback_seen),
            "embedding_seen": sorted(snapshot.embedding_seen),
        }

    async def save(self, snapshot: ScoringSnapshot) -> None:
        if await self._session.get(ScoringSnapshotModel, snapshot.version) is not None:
            raise ValueError(f"Snapshot version {snapshot.version} already exists")
        self._session.add(
            ScoringSnapshotModel(
                version=snapshot.version,
                created_at=as_utc(snapshot.created_at),
                feedback_watermark=snapshot.feedback_watermark,
                embedding_watermark=snapshot.embedding_watermark,
                payload=self._payload(snapshot),
            )
        )
        await self._session.commit()

    async def get_latest(self) -> ScoringSnapshot | None:
        stmt = select(ScoringSnapshotModel).order_by(ScoringSnapshotModel.version.desc()).limit(1)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_by_version(self, version: int) -> ScoringSnapshot | None:
        model = await self._session.get(ScoringSnapshotModel, version)
        return self._to_entity(model) if model else None

    async def list_versions(self, limit: int = 20) -> list[tuple[int, str]]:
        stmt = select(ScoringSnapshotModel).order_by(ScoringSnapshotModel.version.desc()).limit(limit)
        result = await self._session.execute(stmt)
        return [(row.version, as_utc(row.created_at).isoformat()) for row in result.scalars().all()]
