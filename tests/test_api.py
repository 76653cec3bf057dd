"""HTTP-level tests for api.py using FastAPI's TestClient."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

import api
from config import Settings
from external_recommender import DisabledRecommender
from repository import CatalogRepository, InMemoryCatalog, InMemorySearchLog

from tests.conftest import FakeRecommender


class BrokenCatalog(CatalogRepository):
    async def list_products(self, organization_id=None):
        raise ConnectionError("database is down")


@pytest.fixture
def catalog(make_product):
    cat = InMemoryCatalog()
    terpenes = [
        {"myrcene": 0.8}, {"linalool": 0.7}, {"myrcene": 0.4},
        {"limonene": 0.9}, {}, {"caryophyllene": 0.25},
    ]
    for i, t in enumerate(terpenes):
        cat.add(make_product(id=f"p{i}", name=f"Strain {i}", terpenes=t), "org-1")
    cat.add(make_product(id="gone", inventory_level=0), "org-1")
    cat.add(make_product(id="other-store", terpenes={"limonene": 0.9}), "org-2")
    return cat


@pytest.fixture
def settings():
    return Settings(default_page_size=3, max_page_size=4, ai_recommender_url=None)


@pytest.fixture
def search_log():
    return InMemorySearchLog()


@pytest.fixture
def client_for(settings, search_log):
    def _build(catalog, recommender=None):
        api.install_state(catalog, recommender or DisabledRecommender(), search_log, settings)
        return TestClient(api.app)

    yield _build
    api._state.engine = None


class TestRecommend:

    def test_local_first_page(self, client_for, catalog):
        resp = client_for(catalog).post("/recommend", json={"vibe": "relaxed"})
        assert resp.status_code == 200
        body = resp.json()

        assert [p["id"] for p in body["products"]] == ["p0", "p1", "p2"]
        assert body["effects"] == ["Relaxation", "Stress Relief"]
        assert body["is_ai_powered"] is False
        assert body["personalized_message"] is None
        assert body["context_factors"] is None
        assert body["fallback_message"].startswith("Time to unwind!")
        assert body["fallback_context_factors"][0] == "calming"
        assert body["total_available"] == 7
        assert body["offset"] == 0
        assert body["has_more"] is True
        assert "X-Response-Time-Ms" in resp.headers

    def test_later_page_has_no_narrative(self, client_for, catalog):
        resp = client_for(catalog).post("/recommend", json={"vibe": "relaxed", "offset": 6})
        body = resp.json()
        assert len(body["products"]) == 1
        assert body["has_more"] is False
        assert body["fallback_message"] is None
        assert body["fallback_context_factors"] is None

    def test_organization_scopes_catalog(self, client_for, catalog):
        resp = client_for(catalog).post(
            "/recommend", json={"vibe": "relaxed", "organization_id": "org-2"}
        )
        assert [p["id"] for p in resp.json()["products"]] == ["other-store"]

    def test_unknown_organization_sees_no_other_store(self, client_for, catalog):
        resp = client_for(catalog).post(
            "/recommend", json={"vibe": "relaxed", "organization_id": "org-9"}
        )
        body = resp.json()
        assert body["products"] == []
        assert body["total_available"] == 0

    def test_page_size_is_clamped(self, client_for, catalog):
        resp = client_for(catalog).post("/recommend", json={"vibe": "relaxed", "page_size": 40})
        assert len(resp.json()["products"]) == 4

    @pytest.mark.parametrize("payload", [
        {"vibe": "relaxed", "page_size": 0},
        {"vibe": "relaxed", "offset": -1},
        {"vibe": "relaxed", "user_type": "robot"},
        {},
    ])
    def test_rejects_invalid_requests(self, client_for, catalog, payload):
        assert client_for(catalog).post("/recommend", json=payload).status_code == 422

    def test_ai_narrative_on_first_page_only(self, client_for, catalog, ai_response):
        client = client_for(catalog, FakeRecommender(response=ai_response))

        first = client.post("/recommend", json={"vibe": "relaxed"}).json()
        assert first["is_ai_powered"] is True
        assert first["personalized_message"] == "Time to unwind with something mellow."
        assert first["context_factors"] == ["calming", "evening"]
        assert first["fallback_message"] is None
        assert first["effects"] == ["Relaxation", "Calm"]

        second = client.post("/recommend", json={"vibe": "relaxed", "offset": 3}).json()
        assert second["is_ai_powered"] is True
        assert second["personalized_message"] is None
        assert second["context_factors"] is None

    def test_ai_failure_degrades_to_local(self, client_for, catalog):
        client = client_for(catalog, FakeRecommender(error=RuntimeError("timeout")))
        body = client.post("/recommend", json={"vibe": "relaxed"}).json()
        assert body["is_ai_powered"] is False
        assert [p["id"] for p in body["products"]] == ["p0", "p1", "p2"]

    def test_catalog_failure_is_503(self, client_for):
        resp = client_for(BrokenCatalog()).post("/recommend", json={"vibe": "relaxed"})
        assert resp.status_code == 503
        assert resp.json()["detail"] == "Product catalog unavailable"

    def test_search_is_logged_for_organization(self, client_for, catalog, search_log):
        with client_for(catalog) as client:
            client.post("/recommend", json={
                "vibe": "relaxed", "user_type": "staff", "organization_id": "org-1",
            })
        assert len(search_log.records) == 1
        record = search_log.records[0]
        assert record.search_phrase == "relaxed"
        assert record.user_type.value == "staff"
        assert record.returned_product_ids == ["p0", "p1", "p2"]
        assert record.organization_id == "org-1"


class TestVibes:

    def test_parse(self, client_for, catalog):
        body = client_for(catalog).post("/vibes/parse", json={"query": "sleepy edibles"}).json()
        assert body["query"] == "sleepy edibles"
        assert body["category"] == "edible"
        assert body["effects"] == ["Long-lasting", "Body Effects"]

    def test_parse_without_category(self, client_for, catalog):
        body = client_for(catalog).post("/vibes/parse", json={"query": "focused"}).json()
        assert body["category"] is None
        assert body["terpene_profile"]["pinene"] == 0.9

    def test_list(self, client_for, catalog):
        vibes = client_for(catalog).get("/vibes").json()["vibes"]
        names = [v["vibe"] for v in vibes]
        assert "relaxed" in names and "pain relief" in names
        relaxed = next(v for v in vibes if v["vibe"] == "relaxed")
        assert relaxed["effects"] == ["Relaxation", "Stress Relief"]


def test_health(client_for, catalog):
    body = client_for(catalog).get("/health").json()
    assert body["status"] == "healthy"
    assert body["version"] == api.VERSION
    assert body["components"]["catalog"]["source"] == "memory"
    assert body["components"]["catalog"]["products"] == 8
    assert body["components"]["ai_recommender"]["status"] == "disabled"


def test_health_counts_requests(client_for, catalog):
    client = client_for(catalog)
    before = client.get("/health").json()["request_count"]
    client.get("/vibes")
    after = client.get("/health").json()["request_count"]
    assert after - before == 2
