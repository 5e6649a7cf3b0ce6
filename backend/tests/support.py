"""Test helpers: resource builders and in-memory repository fakes."""

import math
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from navigator.application.interfaces import (
    FeedbackRepository,
    QueryLogRepository,
    ResourceRepository,
    SnapshotRepository,
)
from navigator.domain.entities import (
    CapacityStatus,
    EligibilityCriteria,
    Feedback,
    GeoPoint,
    QueryRecord,
    QueryStage,
    Resource,
    ResourceFlag,
    ScoringSnapshot,
)

VERIFIED_AT = datetime(2026, 1, 1, tzinfo=timezone.utc)


def unit(*values: float) -> tuple[float, ...]:
    norm = math.sqrt(sum(v * v for v in values))
    return tuple(v / norm for v in values)


def build_resource(
    resource_id: str,
    embedding: tuple[float, ...] = (1.0, 0.0, 0.0, 0.0),
    *,
    category: str = "food",
    status: CapacityStatus = CapacityStatus.ACCEPTING,
    location: GeoPoint | None = None,
    eligibility: EligibilityCriteria | None = None,
    verified_days_ago: int = 0,
    **fields,
) -> Resource:
    return Resource(
        id=resource_id,
        name=fields.pop("name", f"Resource {resource_id}"),
        category=category,
        provider=fields.pop("provider", "Community Services"),
        embedding=tuple(embedding),
        capacity_status=status,
        location=location,
        eligibility=eligibility or EligibilityCriteria(),
        last_verified_at=VERIFIED_AT - timedelta(days=verified_days_ago),
        **fields,
    )


# ── In-memory repositories ───────────────────────────────────────────


class FakeResourceRepository(ResourceRepository):
    def __init__(self, resources: list[Resource] | None = None):
        self._resources = {r.id: r for r in resources or []}
        self._flags: list[ResourceFlag] = []

    async def get_by_id(self, resource_id: str) -> Resource | None:
        return self._resources.get(resource_id)

    async def get_active(self) -> list[Resource]:
        return sorted((r for r in self._resources.values() if not r.retired), key=lambda r: r.id)

    async def save(self, resource: Resource) -> Resource:
        self._resources[resource.id] = resource
        return resource

    async def update_embedding(self, resource_id: str, embedding: tuple[float, ...]) -> bool:
        if resource_id not in self._resources:
            return False
        self._resources[resource_id] = self._resources[resource_id].with_embedding(embedding)
        return True

    async def add_flag(self, flag: ResourceFlag) -> ResourceFlag:
        stored = replace(flag, id=len(self._flags) + 1)
        self._flags.append(stored)
        self._resources[flag.resource_id] = self._resources[flag.resource_id].with_flag(flag.reason)
        return stored

    async def get_flags(self, resource_id: str | None = None) -> list[ResourceFlag]:
        return [f for f in reversed(self._flags) if resource_id is None or f.resource_id == resource_id]


class FakeFeedbackRepository(FeedbackRepository):
    def __init__(self):
        self.records: list[Feedback] = []

    async def append(self, feedback: Feedback) -> Feedback:
        stored = replace(feedback, id=len(self.records) + 1)
        self.records.append(stored)
        return stored

    async def get_by_query(self, query_id: str) -> list[Feedback]:
        return [f for f in self.records if f.query_id == query_id]

    async def get_by_resource(self, resource_id: str) -> list[Feedback]:
        return [f for f in self.records if f.resource_id == resource_id]

    async def get_since(self, after_id: int, limit: int | None = None) -> list[Feedback]:
        found = [f for f in self.records if f.id > after_id]
        return found[:limit] if limit is not None else found


class FakeQueryLogRepository(QueryLogRepository):
    def __init__(self, fail: bool = False):
        self.records: dict[str, QueryRecord] = {}
        self._fail = fail

    async def record(self, record: QueryRecord) -> None:
        if self._fail:
            raise RuntimeError("query log unavailable")
        self.records[record.query_id] = record

    async def get_many(self, query_ids: list[str]) -> dict[str, QueryRecord]:
        return {q: self.records[q] for q in query_ids if q in self.records}

    async def mark_feedback_received(self, query_id: str) -> bool:
        if query_id not in self.records:
            return False
        self.records[query_id] = replace(self.records[query_id], stage=QueryStage.FEEDBACK_RECEIVED)
        return True


class FakeSnapshotRepository(SnapshotRepository):
    def __init__(self):
        self.saved: dict[int, ScoringSnapshot] = {}

    async def save(self, snapshot: ScoringSnapshot) -> None:
        if snapshot.version in self.saved:
            raise ValueError(f"Snapshot version {snapshot.version} already exists")
        self.saved[snapshot.version] = snapshot

    async def get_latest(self) -> ScoringSnapshot | None:
        return self.saved[max(self.saved)] if self.saved else None

    async def get_by_version(self, version: int) -> ScoringSnapshot | None:
        return self.saved.get(version)

    async def list_versions(self, limit: int = 20) -> list[tuple[int, str]]:
        return [(v, self.saved[v].created_at.isoformat()) for v in sorted(self.saved, reverse=True)][:limit]


