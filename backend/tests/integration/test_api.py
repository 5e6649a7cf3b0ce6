"""End-to-end API tests: ingestion → recommendation → feedback → learning."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from navigator.infrastructure.database import Base, engine
from navigator.infrastructure.dependencies import get_resource_index, get_snapshot_store
from navigator.main import app

PANTRY = {
    "id": "eastside-pantry",
    "name": "Eastside Food Pantry",
    "category": "food",
    "provider": "Eastside Community Center",
    "keywords": ["groceries"],
    "location": {"lat": 37.77, "lon": -122.41},
    "eligibility": {"income": {"max": 30000}},
    "last_verified_at": "2026-02-01T09:00:00Z",
    "embedding": [0.8, 0.6, 0.0, 0.0],
}

SHELTER = {
    "id": "harbor-shelter",
    "name": "Harbor Shelter",
    "category": "housing",
    "capacity_status": "waitlist",
    "embedding": [0.0, 1.0, 0.0, 0.0],
}

FOOD_QUERY = {
    "intent": {"primary_need": "food assistance", "urgency": "immediate"},
    "embedding": [1.0, 0.0, 0.0, 0.0],
}


@pytest_asyncio.fixture
async def client():
    get_resource_index.cache_clear()
    get_snapshot_store.cache_clear()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    await engine.dispose()
    get_resource_index.cache_clear()
    get_snapshot_store.cache_clear()


async def _seed(client: AsyncClient, *resources: dict) -> None:
    for resource in resources:
        response = await client.post("/api/v1/resources", json=resource)
        assert response.status_code == 200, response.text


@pytest.mark.asyncio
async def test_ingested_resource_is_recommended(client: AsyncClient):
    await _seed(client, PANTRY, SHELTER)

    response = await client.post("/api/v1/recommendations", json=FOOD_QUERY)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    top = data["recommendations"][0]
    assert top["resource_id"] == "eastside-pantry"
    assert top["score"] == 1.0
    assert top["explanation"]["eligibility_status"] == "unknown"
    assert "income" in top["explanation"]["missing_info"]
    assert set(top["scores"]) == {
        "semantic_similarity",
        "eligibility_match",
        "geographic_proximity",
        "availability",
        "historical_success",
        "final",
    }


@pytest.mark.asyncio
async def test_wrong_embedding_dimension_is_rejected(client: AsyncClient):
    await _seed(client, PANTRY)

    response = await client.post(
        "/api/v1/recommendations",
        json={"intent": {"primary_need": "food"}, "embedding": [1.0, 0.0]},
    )

    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "invalid_embedding"


@pytest.mark.asyncio
async def test_resource_with_wrong_dimension_is_not_ingested(client: AsyncClient):
    response = await client.post("/api/v1/resources", json={**PANTRY, "embedding": [1.0]})

    assert response.status_code == 422
    assert (await client.get("/api/v1/resources/eastside-pantry")).status_code == 404


@pytest.mark.asyncio
async def test_missing_embedding_returns_degraded_keyword_results(client: AsyncClient):
    await _seed(client, PANTRY, SHELTER)

    response = await client.post(
        "/api/v1/recommendations",
        json={"intent": {"primary_need": "groceries"}},
    )

    data = response.json()
    assert response.status_code == 200
    assert data["degraded"] is True
    assert data["status"] == "degraded"
    assert [r["resource_id"] for r in data["recommendations"]] == ["eastside-pantry"]


@pytest.mark.asyncio
async def test_retired_resource_disappears_from_results(client: AsyncClient):
    await _seed(client, PANTRY)

    retired = await client.post("/api/v1/resources/eastside-pantry/retire")
    response = await client.post("/api/v1/recommendations", json=FOOD_QUERY)

    assert retired.json()["capacity_status"] == "closed"
    assert response.json()["recommendations"] == []


@pytest.mark.asyncio
async def test_flagging_queues_review(client: AsyncClient):
    await _seed(client, PANTRY)

    created = await client.post("/api/v1/resources/eastside-pantry/flag", json={"reason": "hours changed"})
    flags = await client.get("/api/v1/resources/eastside-pantry/flags")
    resource = await client.get("/api/v1/resources/eastside-pantry")
    missing = await client.post("/api/v1/resources/nope/flag", json={"reason": "x"})

    assert created.status_code == 201
    assert created.json()["source"] == "admin"
    assert [f["reason"] for f in flags.json()] == ["hours changed"]
    assert resource.json()["flagged"] is True
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_feedback_is_acknowledged_and_screened(client: AsyncClient):
    await _seed(client, PANTRY)
    query_id = (await client.post("/api/v1/recommendations", json=FOOD_QUERY)).json()["query_id"]

    accepted = await client.post(
        "/api/v1/feedback",
        json={"query_id": query_id, "resource_id": "eastside-pantry", "helpful": True, "rating": 5},
    )
    rejected = await client.post(
        "/api/v1/feedback",
        json={
            "query_id": query_id,
            "resource_id": "eastside-pantry",
            "helpful": True,
            "comment": "email me at sam@example.com",
        },
    )
    identity = await client.post(
        "/api/v1/feedback",
        json={"query_id": query_id, "resource_id": "eastside-pantry", "helpful": True, "user_id": "u-1"},
    )
    listed = await client.get("/api/v1/feedback", params={"query_id": query_id})

    assert accepted.status_code == 201
    assert accepted.json()["usage"]
    assert rejected.status_code == 422
    assert rejected.json()["detail"]["field"] == "comment"
    assert identity.status_code == 422
    assert len(listed.json()) == 1
    assert "comment" not in listed.json()[0]


@pytest.mark.asyncio
async def test_feedback_listing_needs_exactly_one_key(client: AsyncClient):
    assert (await client.get("/api/v1/feedback")).status_code == 400
    assert (await client.get("/api/v1/feedback", params={"query_id": "a", "resource_id": "b"})).status_code == 400


@pytest.mark.asyncio
async def test_reported_problem_flags_resource(client: AsyncClient):
    await _seed(client, PANTRY)

    response = await client.post(
        "/api/v1/feedback",
        json={
            "query_id": "q-1",
            "resource_id": "eastside-pantry",
            "helpful": False,
            "issue_type": "wrong_information",
        },
    )

    assert response.json()["flagged_for_review"] is True
    assert (await client.get("/api/v1/resources/eastside-pantry")).json()["flagged"] is True


@pytest.mark.asyncio
async def test_learning_cycle_publishes_snapshot_used_by_ranking(client: AsyncClient):
    await _seed(client, PANTRY)
    query_id = (await client.post("/api/v1/recommendations", json=FOOD_QUERY)).json()["query_id"]
    for _ in range(5):
        await client.post(
            "/api/v1/feedback",
            json={"query_id": query_id, "resource_id": "eastside-pantry", "helpful": True},
        )

    run = await client.post("/api/v1/insights/run")
    latest = await client.get("/api/v1/insights/latest")
    versions = await client.get("/api/v1/insights/versions")
    audited = await client.get("/api/v1/insights/1")
    unknown = await client.get("/api/v1/insights/99")
    ranked = await client.post("/api/v1/recommendations", json=FOOD_QUERY)

    assert run.status_code == 200
    snapshot = run.json()
    assert snapshot["version"] == 1
    assert snapshot["feedback_watermark"] == 5
    assert snapshot["patterns"][0]["cluster"] == "food_assistance|immediate|food"
    assert latest.json()["version"] == 1
    assert [v["version"] for v in versions.json()] == [1]
    assert audited.status_code == 200
    assert unknown.status_code == 404
    assert ranked.json()["snapshot_version"] == 1
    assert ranked.json()["recommendations"][0]["scores"]["historical_success"] == pytest.approx(0.65)


@pytest.mark.asyncio
async def test_embedding_cycle_reports_updates(client: AsyncClient):
    await _seed(client, PANTRY)
    query_id = (await client.post("/api/v1/recommendations", json=FOOD_QUERY)).json()["query_id"]
    await client.post(
        "/api/v1/feedback",
        json={"query_id": query_id, "resource_id": "eastside-pantry", "helpful": True},
    )

    response = await client.post("/api/v1/insights/embeddings/run")

    assert response.status_code == 200
    data = response.json()
    assert data["snapshot_version"] == 1
    assert [u["resource_id"] for u in data["updates"]] == ["eastside-pantry"]
    assert data["updates"][0]["displacement"] > 0
