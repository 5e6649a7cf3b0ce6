"""Abstract repository interface (port) for versioned scoring snapshots."""

from abc import ABC, abstractmethod

from navigator.domain.entities import ScoringSnapshot


class SnapshotRepository(ABC):
    """Port for snapshot persistence. Snapshots are insert-only."""

    @abstractmethod
    async def save(self, snapshot: ScoringSnapshot) -> None:
        """Persist a new snapshot. Saving an existing version is an error."""
        ...

    @abstractmethod
    async def get_latest(self) -> ScoringSnapshot | None:
        ...

    @abstractmethod
    async def get_by_version(self, version: int) -> ScoringSnapshot | None:
        ...

    @abstractmethod
    async def list_versions(self, limit: int = 20) -> list[tuple[int, str]]:
        """(version, ISO creation time) pairs, newest first."""
        ...
