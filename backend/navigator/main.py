"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from navigator.config import get_settings
from navigator.infrastructure.database import Base, engine
from navigator.infrastructure.database.session import async_session_factory
from navigator.infrastructure.database.repositories import (
    SQLAlchemyResourceRepository,
    SQLAlchemySnapshotRepository,
)
from navigator.application.services import LearningScheduler, ResourceCatalogLoader
from navigator.infrastructure.dependencies import (
    build_learning_service,
    get_resource_index,
    get_snapshot_store,
)
from navigator.infrastructure.logging.log_config import setup_logging
from navigator.presentation.api.router import router as api_router

logger = logging.getLogger(__name__)

_BACKEND_DIR = Path(__file__).resolve().parents[1]


async def _ensure_database_exists() -> None:
    """Create the PostgreSQL database if it does not yet exist.

    Connects to the default ``postgres`` maintenance database, checks for the
    target database name, and issues ``CREATE DATABASE`` when missing.
    SQLite databases are created on first connect and need nothing here.
    """
    from urllib.parse import urlparse

    settings = get_settings()
    if not settings.database_url.startswith("postgresql"):
        return

    import asyncpg

    parsed = urlparse(settings.database_url)
    db_name = parsed.path.lstrip("/")
    if not db_name:
        return

    maintenance_url = settings.database_url.rsplit("/", 1)[0] + "/postgres"

    try:
        conn = await asyncpg.connect(maintenance_url)
        try:
            exists = await conn.fetchval(
                "SELECT 1 FROM pg_database WHERE datname = $1", db_name
            )
            if not exists:
                # CREATE DATABASE cannot run inside a transaction block
                await conn.execute(f'CREATE DATABASE "{db_name}"')
                logger.info("Created database '%s'", db_name)
            else:
                logger.debug("Database '%s' already exists", db_name)
        finally:
            await conn.close()
    except Exception as exc:
        logger.warning("Could not auto-create database '%s': %s", db_name, exc)


def _catalog_path(raw: str) -> Path:
    path = Path(raw)
    return path if path.is_absolute() else _BACKEND_DIR / path


async def _warm_up() -> None:
    """Seed the catalog, then load the index and the latest scoring snapshot."""
    settings = get_settings()
    index = get_resource_index()

    async with async_session_factory() as session:
        resource_repo = SQLAlchemyResourceRepository(session)
        try:
            loader = ResourceCatalogLoader(
                _catalog_path(settings.resource_catalog_file),
                resource_repo,
                dimensions=settings.embedding_dimensions,
            )
            await loader.load()
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Failed to seed resource catalog — continuing without it")

        resources = await resource_repo.get_active()
        valid = [r for r in resources if len(r.embedding) == settings.embedding_dimensions]
        if len(valid) < len(resources):
            logger.warning("%d stored resources have unusable embeddings and were not indexed", len(resources) - len(valid))
        index.load(valid)

        snapshot = await get_snapshot_store().load_latest(SQLAlchemySnapshotRepository(session))

    logger.info("Warm-up complete: %d resources indexed, scoring snapshot v%d", index.size, snapshot.version)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan — create tables, warm caches, start the learning scheduler."""
    settings = get_settings()
    setup_logging()

    # 0. Ensure the PostgreSQL database exists (auto-create if missing)
    await _ensure_database_exists()

    # 1. Create all database tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # 2. Seed catalog, warm index and snapshot
    await _warm_up()

    # 3. Start learning scheduler
    scheduler = LearningScheduler(
        async_session_factory,
        build_learning_service,
        learning_interval=settings.learning_interval_seconds,
        embedding_interval=settings.embedding_interval_seconds,
    )
    await scheduler.start()

    yield

    # Shutdown
    await scheduler.stop()
    await engine.dispose()


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount API routes
    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "navigator.main:app",
        host="0.0.0.0",
        port=8020,
        reload=True,
    )
