"""Learning Scheduler — asyncio daemon that runs the learning cycles periodically."""

import asyncio
import logging
import time
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from navigator.application.services.learning_service import LearningService

logger = logging.getLogger(__name__)

# Upper bound on a single sleep so stop() and interval changes are noticed promptly
MAX_SLEEP = 30.0


class LearningScheduler:
    """Asyncio daemon that runs ``run_cycle`` and ``run_embedding_cycle`` on timers.

    Runs as an asyncio.Task inside FastAPI's lifespan, never on the request
    path. Each cycle gets its own database session with commit/rollback
    boundaries; a failed cycle is logged and retried at the next tick.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        service_factory: Callable[[AsyncSession], LearningService],
        *,
        learning_interval: float = 900,
        embedding_interval: float = 86400,
    ) -> None:
        self._session_factory = session_factory
        self._service_factory = service_factory
        self._learning_interval = learning_interval
        self._embedding_interval = embedding_interval
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the scheduling loop."""
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "LearningScheduler started (scoring every %ss, embeddings every %ss)",
            self._learning_interval,
            self._embedding_interval,
        )

    async def stop(self) -> None:
        """Gracefully stop the scheduling loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("LearningScheduler stopped")

    async def _loop(self) -> None:
        now = time.monotonic()
        next_scoring = now + self._learning_interval
        next_embedding = now + self._embedding_interval

        while self._running:
            now = time.monotonic()
            if now >= next_scoring:
                await self.run_once(embeddings=False)
                next_scoring = time.monotonic() + self._learning_interval
            if now >= next_embedding:
                await self.run_once(embeddings=True)
                next_embedding = time.monotonic() + self._embedding_interval

            delay = min(next_scoring, next_embedding) - time.monotonic()
            try:
                await asyncio.sleep(max(0.0, min(delay, MAX_SLEEP)))
            except asyncio.CancelledError:
                break

    async def run_once(self, *, embeddings: bool = False) -> bool:
        """Run one cycle in its own session. Returns False when the cycle failed."""
        async with self._session_factory() as session:
            try:
                service = self._service_factory(session)
                if embeddings:
                    await service.run_embedding_cycle()
                else:
                    await service.run_cycle()
                await session.commit()
                return True
            except asyncio.CancelledError:
                await session.rollback()
                raise
            except Exception:
                await session.rollback()
                logger.exception("LearningScheduler %s cycle failed", "embedding" if embeddings else "scoring")
                return False
