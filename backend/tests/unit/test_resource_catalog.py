"""Unit tests for the YAML resource catalog loader."""

from pathlib import Path
from textwrap import dedent

import pytest

from navigator.application.services import ResourceCatalogLoader
from navigator.domain.entities import CapacityStatus
from tests.support import FakeResourceRepository, build_resource

CATALOG = dedent(
    """\
    resources:
      - id: eastside-pantry
        name: Eastside Food Pantry
        category: food
        provider: Eastside Community Center
        keywords: [groceries, produce]
        location: {lat: 37.77, lon: -122.41}
        capacity_status: accepting
        last_verified_at: "2026-02-01T09:00:00"
        eligibility:
          income: {max: 30000}
          documentation: [photo_id]
        embedding: [1.0, 0.0, 0.0, 0.0]
      - id: harbor-shelter
        name: Harbor Shelter
        category: housing
        capacity_status: waitlist
        eligibility:
          other:
            - name: veteran
              description: Priority for veterans
              attribute: veteran
              operator: "true"
        embedding: [0.0, 1.0, 0.0, 0.0]
      - id: short-vector
        name: Broken Record
        category: legal
        embedding: [1.0, 0.0]
      - name: Missing Id
        category: health
        embedding: [0.0, 0.0, 1.0, 0.0]
    """
)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "resources.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_parse_skips_invalid_entries(tmp_path: Path):
    loader = ResourceCatalogLoader(_write(tmp_path, CATALOG), FakeResourceRepository(), dimensions=4)

    resources = {r.id: r for r in loader.parse()}

    assert set(resources) == {"eastside-pantry", "harbor-shelter"}
    pantry = resources["eastside-pantry"]
    assert pantry.eligibility.income.maximum == 30000
    assert pantry.eligibility.required_documents == ("photo_id",)
    assert pantry.last_verified_at.tzinfo is not None
    shelter = resources["harbor-shelter"]
    assert shelter.capacity_status is CapacityStatus.WAITLIST
    assert shelter.eligibility.other[0].operator == "true"


@pytest.mark.asyncio
async def test_load_keeps_existing_records_unless_refreshing(tmp_path: Path):
    learned = build_resource("eastside-pantry", (0.9, 0.1, 0.0, 0.0), name="Eastside Food Pantry")
    repo = FakeResourceRepository([learned])
    loader = ResourceCatalogLoader(_write(tmp_path, CATALOG), repo, dimensions=4)

    assert await loader.load() == 1
    assert (await repo.get_by_id("eastside-pantry")).embedding == (0.9, 0.1, 0.0, 0.0)

    assert await loader.load(refresh=True) == 2
    assert (await repo.get_by_id("eastside-pantry")).embedding == (1.0, 0.0, 0.0, 0.0)


@pytest.mark.asyncio
async def test_missing_file_is_not_an_error(tmp_path: Path):
    loader = ResourceCatalogLoader(tmp_path / "absent.yaml", FakeResourceRepository(), dimensions=4)
    assert await loader.load() == 0


@pytest.mark.parametrize("text", ["resources: [unclosed", "- just\n- a list\n"])
def test_malformed_yaml_yields_nothing(tmp_path: Path, text: str):
    loader = ResourceCatalogLoader(_write(tmp_path, text), FakeResourceRepository(), dimensions=4)
    assert loader.parse() == []
