"""Tests for the collection index HTTP endpoints."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from conftest import make_index
from dollhouse.integrations.collection.errors import CollectionIndexUnavailable, FetchTimeout
from dollhouse.main import app


@pytest.fixture
def client():
    return TestClient(app)


def _manager_mock(**overrides) -> MagicMock:
    manager = MagicMock()
    manager.config.index_url = "https://example.test/collection-index.json"
    manager.get_index = AsyncMock(return_value=make_index())
    manager.force_refresh = AsyncMock(return_value=make_index(version="2.0.0"))
    manager.clear_cache = AsyncMock(return_value=None)
    manager.get_cache_stats.return_value = {
        "is_valid": True,
        "age": 12,
        "has_cache": True,
        "version": "1.2.3",
        "total_elements": 3,
        "is_refreshing": False,
        "circuit_breaker_failures": 0,
        "circuit_breaker_open": False,
    }
    for name, value in overrides.items():
        setattr(manager, name, value)
    return manager


class TestIndexEndpoints:
    def test_get_index(self, client):
        with patch("dollhouse.modules.api.router.index_manager", _manager_mock()):
            r = client.get("/api/collection/index")
        assert r.status_code == 200
        assert r.json()["total_elements"] == 3

    def test_get_index_unavailable_returns_503(self, client):
        manager = _manager_mock(
            get_index=AsyncMock(side_effect=CollectionIndexUnavailable("HTTP 503: Service Unavailable"))
        )
        with patch("dollhouse.modules.api.router.index_manager", manager):
            r = client.get("/api/collection/index")
        assert r.status_code == 503
        assert "Collection index not available" in r.json()["detail"]
        assert "HTTP 503" in r.json()["detail"]

    def test_refresh(self, client):
        with patch("dollhouse.modules.api.router.index_manager", _manager_mock()):
            r = client.post("/api/collection/refresh")
        assert r.status_code == 200
        assert r.json()["version"] == "2.0.0"

    def test_refresh_timeout_returns_503(self, client):
        manager = _manager_mock(force_refresh=AsyncMock(side_effect=FetchTimeout(5000)))
        with patch("dollhouse.modules.api.router.index_manager", manager):
            r = client.post("/api/collection/refresh")
        assert r.status_code == 503
        assert "5000ms" in r.json()["detail"]

    def test_stats(self, client):
        with patch("dollhouse.modules.api.router.index_manager", _manager_mock()):
            r = client.get("/api/collection/stats")
        assert r.status_code == 200
        assert r.json()["age"] == 12
        assert r.json()["circuit_breaker_open"] is False

    def test_clear_cache(self, client):
        manager = _manager_mock()
        with patch("dollhouse.modules.api.router.index_manager", manager):
            r = client.delete("/api/collection/cache")
        assert r.status_code == 200
        manager.clear_cache.assert_awaited_once()


class TestBrowseEndpoints:
    def test_browse(self, client):
        browser = MagicMock()
        browser.browse = AsyncMock(return_value={"items": [], "categories": [{"name": "personas", "type": "dir"}]})
        with patch("dollhouse.modules.api.router.browser", browser):
            r = client.get("/api/collection/browse", params={"section": "library"})
        assert r.status_code == 200
        assert r.json()["categories"][0]["name"] == "personas"
        browser.browse.assert_awaited_once_with("library", None)

    def test_browse_unavailable_returns_503(self, client):
        browser = MagicMock()
        browser.browse = AsyncMock(return_value=None)
        with (
            patch("dollhouse.modules.api.router.browser", browser),
            patch("dollhouse.modules.api.router.index_manager", _manager_mock()),
        ):
            r = client.get("/api/collection/browse")
        assert r.status_code == 503

    def test_search(self, client):
        browser = MagicMock()
        browser.search = AsyncMock(return_value=[{"name": "Creative Writer"}])
        with patch("dollhouse.modules.api.router.browser", browser):
            r = client.get("/api/collection/search", params={"q": "writer", "limit": 5})
        assert r.status_code == 200
        assert r.json() == {"query": "writer", "results": [{"name": "Creative Writer"}]}
        browser.search.assert_awaited_once_with("writer", element_type=None, limit=5)

    def test_search_requires_query(self, client):
        r = client.get("/api/collection/search")
        assert r.status_code == 422


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json()["ok"] is True
