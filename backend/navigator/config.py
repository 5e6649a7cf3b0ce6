import logging
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

_config_logger = logging.getLogger(__name__)

_BACKEND_DIR = Path(__file__).resolve().parents[1]
_ENV_FILES = (
    _BACKEND_DIR / ".env",
    ".env",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_title: str = "Resource Navigator API"
    app_version: str = "0.1.0"
    app_env: str = "development"
    database_url: str = "sqlite:///./navigator.db"
    cors_origins: list[str] = ["http://localhost:3020"]

    # Seed catalog handed over by the ingestion/sync service (relative to backend directory)
    resource_catalog_file: str = "data/resources.yaml"

    # Logging — per-category log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = "INFO"                  # Root / app-wide
    log_level_sql: str = "WARNING"           # sqlalchemy.engine — SQL queries
    log_level_uvicorn: str = "INFO"          # uvicorn.access / uvicorn.error
    log_level_pipeline: str = "INFO"         # RecommendationPipeline stages
    log_level_learning: str = "INFO"         # LearningService batch runs

    # Resource index
    embedding_dimensions: int = 384
    index_max_top_k: int = 200
    ann_enabled: bool = True
    ann_min_index_size: int = 256            # below this, exact search only
    ann_partitions: int = 16
    ann_probes: int = 4
    ann_training_iterations: int = 10
    recall_threshold: float = 0.75
    recall_sla: float = 0.99

    # Ranking
    geo_half_distance_miles: float = 10.0
    explanation_min_contribution: float = 0.05

    # Eligibility
    income_tolerance: float = 0.10
    age_tolerance_years: int = 2

    # Learning loop
    learning_min_samples: int = 5
    learning_smoothing: float = 0.3
    learning_rating_weight: float = 2.0
    learning_interval_seconds: int = 900
    embedding_interval_seconds: int = 86400
    embedding_learning_rate: float = 0.05
    embedding_max_displacement: float = 0.1
    learning_watermark_overlap: int = 1000   # ids re-read below the watermark for late commits

    # Pipeline orchestration
    pipeline_deadline_seconds: float = 3.0
    default_top_k: int = 50
    max_results: int = 10
    min_similarity: float = 0.05
    min_intent_confidence: float = 0.4
    degraded_max_candidates: int = 25
    supported_languages: list[str] = ["en", "es"]
    context_history_limit: int = 10

    model_config = {
        "env_file": _ENV_FILES,
        "env_file_encoding": "utf-8",
    }

    def model_post_init(self, __context: object) -> None:
        """Keep ``ann_probes`` within the partition count."""
        if self.ann_probes > self.ann_partitions:
            _config_logger.warning(
                "ann_probes=%d exceeds ann_partitions=%d; clamping",
                self.ann_probes,
                self.ann_partitions,
            )
            object.__setattr__(self, "ann_probes", self.ann_partitions)


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance — reads .env once."""
    return Settings()
