"""Domain entity for community resources — the records the engine matches against."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum

from .eligibility import EligibilityCriteria
from .geo import GeoPoint, ServiceArea


class CapacityStatus(str, Enum):
    """Whether a resource can take new clients right now."""

    ACCEPTING = "accepting"
    WAITLIST = "waitlist"
    FULL = "full"
    CLOSED = "closed"   # permanent — the resource is retired


@dataclass(frozen=True)
class Resource:
    """A service offered by a provider, as handed over by the ingestion service.

    Instances are immutable: updates (embedding swaps, flags) produce a new
    instance through ``dataclasses.replace`` so concurrent readers never see a
    half-written record.
    """

    id: str
    name: str
    category: str
    provider: str = ""
    subcategories: tuple[str, ...] = ()
    description: str = ""
    keywords: tuple[str, ...] = ()
    location: GeoPoint | None = None
    service_area: ServiceArea | None = None
    languages: tuple[str, ...] = ("en",)
    accessibility_features: tuple[str, ...] = ()
    eligibility: EligibilityCriteria = field(default_factory=EligibilityCriteria)
    capacity_status: CapacityStatus = CapacityStatus.ACCEPTING
    last_verified_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    embedding: tuple[float, ...] = ()
    flagged: bool = False
    flag_reasons: tuple[str, ...] = ()

    @property
    def retired(self) -> bool:
        return self.capacity_status == CapacityStatus.CLOSED

    def in_category(self, category: str) -> bool:
        """True when the category or any subcategory matches (case-insensitive)."""
        wanted = category.strip().lower()
        return self.category.lower() == wanted or any(s.lower() == wanted for s in self.subcategories)

    def with_embedding(self, embedding: tuple[float, ...]) -> "Resource":
        return replace(self, embedding=tuple(float(x) for x in embedding))

    def with_flag(self, reason: str) -> "Resource":
        """Mark for administrative review; the resource stays searchable."""
        return replace(self, flagged=True, flag_reasons=(*self.flag_reasons, reason))


@dataclass(frozen=True)
class ResourceFlag:
    """A request for administrative review of a resource record."""

    resource_id: str
    reason: str
    source: str = "feedback"    # "feedback" | "admin"
    id: int | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
