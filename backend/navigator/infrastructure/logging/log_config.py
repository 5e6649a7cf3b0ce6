"""Per-category log levels for the navigator service.

The recommendation pipeline and the learning loop log under their own
category so an operator can turn one up to DEBUG while SQL and uvicorn
access logs stay quiet.

Usage:
    from navigator.infrastructure.logging.log_config import setup_logging
    setup_logging()   # once, from the FastAPI lifespan
"""

import logging
import sys

from navigator.config import get_settings


# Settings field → logger names it controls.
_CATEGORY_MAP: dict[str, list[str]] = {
    "log_level_sql": [
        "sqlalchemy.engine",
        "sqlalchemy.pool",
        "aiosqlite",
    ],
    "log_level_uvicorn": [
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
    ],
    "log_level_pipeline": [
        "RecommendationPipeline",
        "navigator.application.services.recommendation_service",
        "navigator.application.services.resource_index",
        "navigator.application.services.ranking_engine",
        "navigator.application.services.eligibility_evaluator",
    ],
    "log_level_learning": [
        "LearningService",
        "navigator.application.services.learning_service",
        "navigator.application.services.learning_scheduler",
        "navigator.application.services.snapshot_store",
        "navigator.application.services.feedback_store",
    ],
}


def setup_logging() -> None:
    """Apply the root level and every category level from Settings."""
    settings = get_settings()
    root = logging.getLogger()
    root.setLevel(_parse_level(settings.log_level))

    # uvicorn installs its own handlers; tests and scripts may not have any
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)-8s %(name)s — %(message)s"))
        root.addHandler(handler)

    for settings_field, logger_names in _CATEGORY_MAP.items():
        level = _parse_level(getattr(settings, settings_field, "INFO"))
        for name in logger_names:
            logging.getLogger(name).setLevel(level)

    logging.getLogger(__name__).debug(
        "Logging configured — root=%s, sql=%s, uvicorn=%s, pipeline=%s, learning=%s",
        settings.log_level,
        settings.log_level_sql,
        settings.log_level_uvicorn,
        settings.log_level_pipeline,
        settings.log_level_learning,
    )


def _parse_level(raw: str) -> int:
    numeric = getattr(logging, raw.upper(), None)
    return numeric if isinstance(numeric, int) else logging.INFO
