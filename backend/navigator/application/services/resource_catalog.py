"""Resource catalog loader — parses a YAML seed catalog into the resource repository.

Executed once at application startup via the FastAPI lifespan, before the
index is warmed from the repository.
"""

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from navigator.application.interfaces import ResourceRepository
from navigator.application.schemas.resources import ResourceCreate
from navigator.domain.entities import Resource

logger = logging.getLogger(__name__)


class ResourceCatalogLoader:
    """Seeds resources from a YAML file of the form ``resources: [...]``.

    Entries already present in the repository are kept as stored unless
    ``refresh`` is set, so learned embeddings survive restarts.
    """

    def __init__(self, path: str | Path, repository: ResourceRepository, dimensions: int):
        self._path = Path(path)
        self._repo = repository
        self._dimensions = dimensions

    async def load(self, *, refresh: bool = False) -> int:
        """Persist catalog entries; returns the number of resources written."""
        if not self._path.exists():
            logger.info("No resource catalog at %s — skipping seed", self._path)
            return 0

        written = 0
        for resource in self.parse():
            if not refresh and await self._repo.get_by_id(resource.id) is not None:
                continue
            await self._repo.save(resource)
            written += 1

        logger.info("Resource catalog %s: %d resources written", self._path.name, written)
        return written

    def parse(self) -> list[Resource]:
        """Valid catalog entries as entities. Invalid entries are logged and skipped."""
        data = self._load_yaml(self._path)
        if data is None:
            return []

        entries = data.get("resources", [])
        resources: list[Resource] = []
        for i, entry in enumerate(entries):
            try:
                resource = ResourceCreate.model_validate(entry).to_entity()
            except ValidationError as exc:
                logger.warning("Skipping catalog entry #%d: %s", i, exc.errors()[0].get("msg", exc))
                continue
            if len(resource.embedding) != self._dimensions:
                logger.warning(
                    "Skipping resource %s: embedding has %d dimensions, expected %d",
                    resource.id,
                    len(resource.embedding),
                    self._dimensions,
                )
                continue
            resources.append(resource)
        return resources

    @staticmethod
    def _load_yaml(path: Path) -> dict | None:
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError:
            logger.exception("Failed to parse YAML file %s", path)
            return None
        if not isinstance(data, dict):
            logger.warning("Resource catalog %s has no top-level mapping", path)
            return None
        return data
