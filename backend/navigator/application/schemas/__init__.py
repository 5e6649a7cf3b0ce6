from .resources import (
    EligibilitySchema,
    FlagRequest,
    FlagResponse,
    GeoPointSchema,
    ResourceCreate,
    ResourceResponse,
    flag_response,
    resource_response,
    resource_to_payload,
)
from .recommendation import (
    RecommendationRequestSchema,
    RecommendationSetResponse,
    QueryIntentSchema,
    UserContextSchema,
)
from .feedback import FeedbackCreate, FeedbackReceiptResponse, FeedbackResponse
from .insights import (
    EmbeddingRunResponse,
    EmbeddingUpdateSchema,
    SnapshotResponse,
    SnapshotVersionSchema,
)

__all__ = [
    "EligibilitySchema",
    "FlagRequest",
    "FlagResponse",
    "GeoPointSchema",
    "ResourceCreate",
    "ResourceResponse",
    "flag_response",
    "resource_response",
    "resource_to_payload",
    "RecommendationRequestSchema",
    "RecommendationSetResponse",
    "QueryIntentSchema",
    "UserContextSchema",
    "FeedbackCreate",
    "FeedbackReceiptResponse",
    "FeedbackResponse",
    "EmbeddingRunResponse",
    "EmbeddingUpdateSchema",
    "SnapshotResponse",
    "SnapshotVersionSchema",
]
