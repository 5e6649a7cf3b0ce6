"""Pydantic DTOs for the recommendation endpoint."""

from typing import Any

from pydantic import BaseModel, Field

from navigator.application.schemas.resources import GeoPointSchema
from navigator.domain.entities import (
    Demographics,
    EligibilityStatus,
    ExtractedEntity,
    GeoPoint,
    QueryIntent,
    RecommendationRequest,
    RecommendationStatus,
    Urgency,
    UserContext,
)


class ExtractedEntitySchema(BaseModel):
    kind: str
    value: str
    normalized: str = ""


class QueryIntentSchema(BaseModel):
    """Structured intent produced by the upstream NLP service."""

    primary_need: str = Field("", max_length=200, examples=["food assistance"])
    secondary_needs: list[str] = []
    urgency: Urgency = Urgency.SOON
    entities: list[ExtractedEntitySchema] = []
    confidence: float = Field(1.0, ge=0.0, le=1.0)
    language: str = "en"
    category_hint: str | None = Field(None, examples=["food"])


class DemographicsSchema(BaseModel):
    household_income: float | None = Field(None, ge=0)
    age: int | None = Field(None, ge=0, le=130)
    residency: str | None = None
    documents: list[str] | None = None
    attributes: dict[str, Any] = {}


class UserContextSchema(BaseModel):
    location: GeoPointSchema | None = None
    language: str | None = None
    accessibility_needs: list[str] = []
    demographics: DemographicsSchema | None = None
    anonymous: bool = True
    history: list[str] = Field([], max_length=50)


class RecommendationRequestSchema(BaseModel):
    query_id: str | None = Field(None, max_length=64)
    intent: QueryIntentSchema
    embedding: list[float] | None = None
    context: UserContextSchema = UserContextSchema()
    top_k: int | None = Field(None, ge=1, le=200)
    max_results: int | None = Field(None, ge=1, le=50)

    def to_entity(self, history_limit: int = 10) -> RecommendationRequest:
        intent = self.intent
        ctx = self.context
        demographics = None
        if ctx.demographics is not None:
            d = ctx.demographics
            demographics = Demographics(
                household_income=d.household_income,
                age=d.age,
                residency=d.residency,
                documents=tuple(d.documents) if d.documents is not None else None,
                attributes=dict(d.attributes),
            )
        return RecommendationRequest(
            intent=QueryIntent(
                primary_need=intent.primary_need,
                secondary_needs=tuple(intent.secondary_needs),
                urgency=intent.urgency,
                entities=tuple(ExtractedEntity(e.kind, e.value, e.normalized) for e in intent.entities),
                confidence=intent.confidence,
                language=intent.language,
                category_hint=intent.category_hint,
            ),
            embedding=tuple(self.embedding) if self.embedding else None,
            context=UserContext(
                location=GeoPoint(ctx.location.lat, ctx.location.lon) if ctx.location else None,
                language=ctx.language,
                accessibility_needs=tuple(ctx.accessibility_needs),
                demographics=demographics,
                anonymous=ctx.anonymous,
                history=tuple(ctx.history[-history_limit:]) if history_limit > 0 else (),
            ),
            query_id=self.query_id,
            top_k=self.top_k,
            max_results=self.max_results,
        )


# ── Responses ────────────────────────────────────────────────────────


class MatchScoresSchema(BaseModel):
    semantic_similarity: float
    eligibility_match: float
    geographic_proximity: float
    availability: float
    historical_success: float
    final: float

    model_config = {"from_attributes": True}


class KeyFactorSchema(BaseModel):
    factor: str
    contribution: float
    description: str

    model_config = {"from_attributes": True}


class ExplanationSchema(BaseModel):
    summary: str
    key_factors: list[KeyFactorSchema]
    eligibility_status: EligibilityStatus
    missing_info: list[str]
    required_documents: list[str]

    model_config = {"from_attributes": True}


class RecommendationSchema(BaseModel):
    resource_id: str
    name: str
    provider: str
    category: str
    capacity_status: str
    score: float
    scores: MatchScoresSchema
    explanation: ExplanationSchema
    distance_miles: float | None = None
    flagged: bool = False

    model_config = {"from_attributes": True}


class QueryInterpretationSchema(BaseModel):
    primary_need: str
    secondary_needs: list[str]
    urgency: Urgency
    confidence: float
    language: str
    category_hint: str | None = None

    model_config = {"from_attributes": True}


class RecommendationSetResponse(BaseModel):
    query_id: str
    recommendations: list[RecommendationSchema]
    total_found: int
    query_interpretation: QueryInterpretationSchema
    suggestions_for_refinement: list[str]
    status: RecommendationStatus
    degraded: bool
    degraded_reason: str | None = None
    snapshot_version: int
    clarifying_questions: list[str]

    model_config = {"from_attributes": True}
