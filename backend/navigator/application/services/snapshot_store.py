"""Holds the last fully published ``ScoringSnapshot``.

Ranking reads ``current()`` without locking. Publishing persists the new
snapshot first and only then swaps the pointer, so a reader can never see a
version that is not durable.
"""

import asyncio
import logging

from navigator.application.interfaces import SnapshotRepository
from navigator.domain.entities import ScoringSnapshot

logger = logging.getLogger(__name__)


class SnapshotStore:
    def __init__(self, initial: ScoringSnapshot | None = None):
        self._snapshot = initial or ScoringSnapshot.initial()
        self._publish_lock = asyncio.Lock()

    def current(self) -> ScoringSnapshot:
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    async def load_latest(self, repository: SnapshotRepository) -> ScoringSnapshot:
        """Adopt the newest persisted snapshot, if newer than the current one."""
        latest = await repository.get_latest()
        if latest is not None and latest.version > self._snapshot.version:
            self._snapshot = latest
            logger.info("Scoring snapshot v%d loaded", latest.version)
        return self._snapshot

    async def publish(self, snapshot: ScoringSnapshot, repository: SnapshotRepository | None) -> ScoringSnapshot:
        async with self._publish_lock:
            expected = self._snapshot.version + 1
            if snapshot.version != expected:
                raise ValueError(f"snapshot version {snapshot.version} is not the successor of {self._snapshot.version}")
            if repository is not None:
                await repository.save(snapshot)
            self._snapshot = snapshot
        logger.info("Scoring snapshot v%d published (%d cluster values)", snapshot.version, len(snapshot.historical_success))
        return snapshot
