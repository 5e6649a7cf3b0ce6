"""Pydantic schemas for resource records (ingestion handoff, catalog, storage payloads)."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from navigator.domain.entities import (
    AgeCriterion,
    CapacityStatus,
    DocumentationCriterion,
    EligibilityCriteria,
    GeoPoint,
    IncomeCriterion,
    PredicateCriterion,
    ResidencyCriterion,
    Resource,
    ResourceFlag,
    ServiceArea,
)


class GeoPointSchema(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class ServiceAreaSchema(BaseModel):
    center: GeoPointSchema
    radius_miles: float = Field(..., gt=0)


class RangeSchema(BaseModel):
    """Bounds for income or age; either side may be open."""

    min: float | None = None
    max: float | None = None


class PredicateSchema(BaseModel):
    name: str
    description: str = ""
    attribute: str
    operator: str
    value: Any = None


class EligibilitySchema(BaseModel):
    income: RangeSchema | None = None
    age: RangeSchema | None = None
    residency: list[str] | None = None
    documentation: list[str] | None = None
    other: list[PredicateSchema] = []

    def to_entity(self) -> EligibilityCriteria:
        return EligibilityCriteria(
            income=IncomeCriterion(self.income.min, self.income.max) if self.income else None,
            age=AgeCriterion(
                int(self.age.min) if self.age.min is not None else None,
                int(self.age.max) if self.age.max is not None else None,
            ) if self.age else None,
            residency=ResidencyCriterion(tuple(self.residency)) if self.residency else None,
            documentation=DocumentationCriterion(tuple(self.documentation)) if self.documentation else None,
            other=tuple(
                PredicateCriterion(p.name, p.description, p.attribute, p.operator, p.value)
                for p in self.other
            ),
        )

    @classmethod
    def from_entity(cls, criteria: EligibilityCriteria) -> "EligibilitySchema":
        return cls(
            income=RangeSchema(min=criteria.income.minimum, max=criteria.income.maximum) if criteria.income else None,
            age=RangeSchema(min=criteria.age.minimum, max=criteria.age.maximum) if criteria.age else None,
            residency=list(criteria.residency.regions) if criteria.residency else None,
            documentation=list(criteria.documentation.documents) if criteria.documentation else None,
            other=[
                PredicateSchema(
                    name=p.name,
                    description=p.description,
                    attribute=p.attribute,
                    operator=p.operator,
                    value=p.value,
                )
                for p in criteria.other
            ],
        )


class ResourceCreate(BaseModel):
    """A resource as handed over by the ingestion service (embedding precomputed)."""

    id: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    provider: str = ""
    subcategories: list[str] = []
    description: str = ""
    keywords: list[str] = []
    location: GeoPointSchema | None = None
    service_area: ServiceAreaSchema | None = None
    languages: list[str] = ["en"]
    accessibility_features: list[str] = []
    eligibility: EligibilitySchema = EligibilitySchema()
    capacity_status: CapacityStatus = CapacityStatus.ACCEPTING
    last_verified_at: datetime | None = None
    embedding: list[float] = []

    def to_entity(self, *, flagged: bool = False, flag_reasons: tuple[str, ...] = ()) -> Resource:
        verified = self.last_verified_at or datetime.now(timezone.utc)
        if verified.tzinfo is None:
            verified = verified.replace(tzinfo=timezone.utc)
        return Resource(
            id=self.id,
            name=self.name,
            category=self.category,
            provider=self.provider,
            subcategories=tuple(self.subcategories),
            description=self.description,
            keywords=tuple(self.keywords),
            location=GeoPoint(self.location.lat, self.location.lon) if self.location else None,
            service_area=ServiceArea(
                GeoPoint(self.service_area.center.lat, self.service_area.center.lon),
                self.service_area.radius_miles,
            ) if self.service_area else None,
            languages=tuple(self.languages),
            accessibility_features=tuple(self.accessibility_features),
            eligibility=self.eligibility.to_entity(),
            capacity_status=self.capacity_status,
            last_verified_at=verified,
            embedding=tuple(float(x) for x in self.embedding),
            flagged=flagged,
            flag_reasons=flag_reasons,
        )


class ResourceResponse(BaseModel):
    """Resource record returned to the client (embedding omitted)."""

    id: str
    name: str
    category: str
    provider: str
    subcategories: list[str]
    description: str
    location: GeoPointSchema | None = None
    languages: list[str]
    accessibility_features: list[str]
    eligibility: EligibilitySchema
    capacity_status: CapacityStatus
    last_verified_at: datetime
    flagged: bool
    flag_reasons: list[str]


class FlagRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class FlagResponse(BaseModel):
    id: int | None = None
    resource_id: str
    reason: str
    source: str
    created_at: datetime


def resource_to_payload(resource: Resource) -> dict[str, Any]:
    """JSON-safe dict of a resource's descriptive fields (no embedding, no flags)."""
    return ResourceCreate(
        id=resource.id,
        name=resource.name,
        category=resource.category,
        provider=resource.provider,
        subcategories=list(resource.subcategories),
        description=resource.description,
        keywords=list(resource.keywords),
        location=GeoPointSchema(lat=resource.location.lat, lon=resource.location.lon) if resource.location else None,
        service_area=ServiceAreaSchema(
            center=GeoPointSchema(lat=resource.service_area.center.lat, lon=resource.service_area.center.lon),
            radius_miles=resource.service_area.radius_miles,
        ) if resource.service_area else None,
        languages=list(resource.languages),
        accessibility_features=list(resource.accessibility_features),
        eligibility=EligibilitySchema.from_entity(resource.eligibility),
        capacity_status=resource.capacity_status,
        last_verified_at=resource.last_verified_at,
    ).model_dump(mode="json", exclude={"embedding"})


def resource_response(resource: Resource) -> ResourceResponse:
    return ResourceResponse(
        id=resource.id,
        name=resource.name,
        category=resource.category,
        provider=resource.provider,
        subcategories=list(resource.subcategories),
        description=resource.description,
        location=GeoPointSchema(lat=resource.location.lat, lon=resource.location.lon) if resource.location else None,
        languages=list(resource.languages),
        accessibility_features=list(resource.accessibility_features),
        eligibility=EligibilitySchema.from_entity(resource.eligibility),
        capacity_status=resource.capacity_status,
        last_verified_at=resource.last_verified_at,
        flagged=resource.flagged,
        flag_reasons=list(resource.flag_reasons),
    )


def flag_response(flag: ResourceFlag) -> FlagResponse:
    return FlagResponse(
        id=flag.id,
        resource_id=flag.resource_id,
        reason=flag.reason,
        source=flag.source,
        created_at=flag.created_at,
    )
