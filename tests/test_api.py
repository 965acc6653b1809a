"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from cnpj_pull.api import main, routes
from cnpj_pull.api.main import app
from cnpj_pull.config import settings
from cnpj_pull.discovery import FirecrawlSearchProvider, MockSearchProvider, SearchHit
from cnpj_pull.models import ResolvedEntity
from cnpj_pull.models.events import FrameDecoder
from cnpj_pull.pipeline import DiscoveryService
from cnpj_pull.registry import MockRegistryProvider, RegistryResolver

ENTITIES = [
    ResolvedEntity(
        cnpj="11222333000181",
        legal_name="Cantina Teste Ltda",
        status="ATIVA",
        municipality="CAMPINAS",
        region="SP",
        source="test",
    ),
    ResolvedEntity(
        cnpj="00000000000191",
        legal_name="Lanchonete Fechada Ltda",
        status="BAIXADA",
        municipality="CAMPINAS",
        region="SP",
        source="test",
    ),
]


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def fake_backend(monkeypatch, cache):
    def build_resolver(use_mock=False):
        return RegistryResolver([MockRegistryProvider(ENTITIES)], cache)

    def build_service(use_mock=False):
        hits = [SearchHit(url="https://cnpj.biz/x", content="11.222.333/0001-81 e 00.000.000/0001-91")]
        return DiscoveryService(search_provider=MockSearchProvider(hits), resolver=build_resolver())

    monkeypatch.setattr(routes, "build_resolver", build_resolver)
    monkeypatch.setattr(routes, "build_discovery_service", build_service)


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_shutdown_waits_for_background_runs(self, monkeypatch):
        waited = []

        async def fake_wait():
            waited.append(True)

        monkeypatch.setattr(main, "wait_for_background_runs", fake_wait)
        with TestClient(app) as client:
            assert client.get("/health").status_code == 200
            assert waited == []
        assert waited == [True]


class TestDiscoverEndpoint:
    """Tests for POST /api/discover."""

    def test_missing_filters_rejected_without_network(self, client, monkeypatch):
        def must_not_build(use_mock=False):
            raise AssertionError("service built for invalid request")

        monkeypatch.setattr(routes, "build_discovery_service", must_not_build)
        response = client.post("/api/discover", json={"segment": "Restaurantes"})
        assert response.status_code == 422
        assert response.json()["detail"]["missing"] == ["region"]

    def test_streaming(self, client, fake_backend):
        response = client.post(
            "/api/discover",
            json={"segment": "Restaurantes", "region": "SP", "city": "Campinas", "limit": 5},
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")

        events = FrameDecoder().feed(response.text)
        assert events[0].type == "status"
        assert events[-1].type == "complete"
        matches = [e for e in events if e.type == "match"]
        assert [m.entity.cnpj for m in matches] == ["11222333000181"]
        assert events[-1].stats.rejected_inactive == 1

    def test_non_streaming(self, client, fake_backend):
        response = client.post(
            "/api/discover",
            json={"segment": "Restaurantes", "region": "SP", "streaming": False},
        )
        assert response.status_code == 200
        body = response.json()
        assert [m["cnpj"] for m in body["matches"]] == ["11222333000181"]
        assert body["stats"]["processed"] == 2

    def test_non_streaming_search_unavailable(self, client, monkeypatch, cache):
        def build_service(use_mock=False):
            return DiscoveryService(
                search_provider=FirecrawlSearchProvider(api_key=""),
                resolver=RegistryResolver([MockRegistryProvider([])], cache),
            )

        monkeypatch.setattr(routes, "build_discovery_service", build_service)
        response = client.post(
            "/api/discover",
            json={"segment": "Restaurantes", "region": "SP", "streaming": False},
        )
        assert response.status_code == 503

    @pytest.mark.parametrize("streaming", [True, False])
    def test_unknown_search_provider(self, client, monkeypatch, streaming):
        monkeypatch.setattr(settings, "search_provider", "altavista")
        response = client.post(
            "/api/discover",
            json={"segment": "Restaurantes", "region": "SP", "streaming": streaming},
        )
        assert response.status_code == 503
        assert response.json()["detail"]["error"] == "search_unavailable"

    def test_negative_limit_rejected(self, client):
        response = client.post("/api/discover", json={"segment": "x", "region": "SP", "limit": -1})
        assert response.status_code == 422


class TestRegistryEndpoint:
    """Tests for GET /api/registry/{identifier}."""

    def test_lookup(self, client, fake_backend):
        response = client.get("/api/registry/11222333000181")
        assert response.status_code == 200
        assert response.json()["legal_name"] == "Cantina Teste Ltda"

    def test_invalid_identifier(self, client, fake_backend):
        response = client.get("/api/registry/11222333000182")
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "invalid_identifier"

    def test_not_found(self, client, fake_backend):
        response = client.get("/api/registry/33000167000101")
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "not_found"
