"""Domain entities for incoming queries — structured intent and user context.

Both are produced upstream (NLP service, API gateway) and treated as
read-only input by the matching pipeline.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .geo import GeoPoint


class Urgency(str, Enum):
    """How soon the user needs help."""

    IMMEDIATE = "immediate"
    SOON = "soon"
    PLANNING = "planning"


@dataclass(frozen=True)
class ExtractedEntity:
    """A typed key/value pair extracted from the query text."""

    kind: str          # "location" | "household_size" | "program" | ...
    value: str
    normalized: str = ""


@dataclass(frozen=True)
class QueryIntent:
    """Structured interpretation of a user's request."""

    primary_need: str
    secondary_needs: tuple[str, ...] = ()
    urgency: Urgency = Urgency.SOON
    entities: tuple[ExtractedEntity, ...] = ()
    confidence: float = 1.0
    language: str = "en"
    category_hint: str | None = None


@dataclass(frozen=True)
class Demographics:
    """Optional self-reported facts used only for eligibility evaluation."""

    household_income: float | None = None
    age: int | None = None
    residency: str | None = None                 # region code, e.g. "US-CA-SF"
    documents: tuple[str, ...] | None = None     # None = not shared, () = none held
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UserContext:
    """Per-request context supplied by the gateway. Every field is optional."""

    location: GeoPoint | None = None
    language: str | None = None
    accessibility_needs: tuple[str, ...] = ()
    demographics: Demographics | None = None
    anonymous: bool = True
    history: tuple[str, ...] = ()   # recent primary needs, most recent last


class QueryStage(str, Enum):
    """Lifecycle states of a query in the synchronous pipeline."""

    SUBMITTED = "submitted"
    RETRIEVED = "retrieved"
    FILTERED = "filtered"
    RANKED = "ranked"
    EXPLAINED = "explained"
    DELIVERED = "delivered"
    FEEDBACK_RECEIVED = "feedback_received"


_TRANSITIONS: dict[QueryStage, frozenset[QueryStage]] = {
    QueryStage.SUBMITTED: frozenset({QueryStage.RETRIEVED}),
    QueryStage.RETRIEVED: frozenset({QueryStage.FILTERED}),
    QueryStage.FILTERED: frozenset({QueryStage.RANKED}),
    QueryStage.RANKED: frozenset({QueryStage.EXPLAINED}),
    QueryStage.EXPLAINED: frozenset({QueryStage.DELIVERED}),
    QueryStage.DELIVERED: frozenset({QueryStage.FEEDBACK_RECEIVED}),
    QueryStage.FEEDBACK_RECEIVED: frozenset({QueryStage.FEEDBACK_RECEIVED}),
}


@dataclass
class QueryTrace:
    """Tracks a single query through the pipeline stages.

    Stages only move forward; feedback is a repeatable side branch
    after delivery.
    """

    query_id: str
    stage: QueryStage = QueryStage.SUBMITTED
    history: list[tuple[QueryStage, datetime]] = field(default_factory=list)

    def advance(self, stage: QueryStage) -> None:
        """Transition to the next stage, rejecting skipped or backward moves."""
        if stage not in _TRANSITIONS[self.stage]:
            raise ValueError(
                f"Query {self.query_id}: illegal transition {self.stage.value} → {stage.value}"
            )
        self.stage = stage
        self.history.append((stage, datetime.now(timezone.utc)))

    @property
    def delivered(self) -> bool:
        return self.stage in (QueryStage.DELIVERED, QueryStage.FEEDBACK_RECEIVED)


@dataclass(frozen=True)
class QueryRecord:
    """Anonymous record of a delivered query, kept for the learning loop.

    Holds only the structured intent signature and the query vector — never
    raw text or user context.
    """

    query_id: str
    primary_need: str
    urgency: Urgency
    category: str | None
    embedding: tuple[float, ...] = ()
    snapshot_version: int = 0
    resource_ids: tuple[str, ...] = ()
    stage: QueryStage = QueryStage.DELIVERED
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
