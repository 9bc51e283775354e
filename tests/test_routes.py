"""Tests for the history HTTP routes."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from history_insights import setup_insights
from history_insights.config import InsightsConfig
from history_insights.core.store import InMemoryHistoryStore
from history_insights.errors import StoreError

NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


def _client(store=None):
    insights = setup_insights(
        config=InsightsConfig(classifier_provider="none"),
        store=store or InMemoryHistoryStore(clock=lambda: NOW),
    )
    app = FastAPI()
    app.include_router(insights.router, prefix="/api")
    return TestClient(app), insights


def _payload(count: int = 3) -> dict:
    return {
        "items": [
            {
                "url": f"https://github.com/org/repo{i}",
                "title": f"repo{i}",
                "visitCount": i + 1,
                "lastVisitTime": (NOW - timedelta(hours=i)).isoformat(),
            }
            for i in range(count)
        ]
    }


class TestHealth:
    """Test the health endpoint."""

    def test_health(self):
        client, _ = _client()
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestSyncRoute:
    """Test history upload."""

    def test_sync(self):
        client, _ = _client()
        payload = _payload()
        payload["items"].append({"title": "missing url"})

        response = client.post("/api/users/u1/history", json=payload)

        assert response.status_code == 200
        assert response.json() == {"added": 3, "updated": 0, "filtered": 1}

    def test_resync_updates(self):
        client, _ = _client()
        client.post("/api/users/u1/history", json=_payload())
        response = client.post("/api/users/u1/history", json=_payload(1))
        assert response.json() == {"added": 0, "updated": 1, "filtered": 0}

    def test_empty_batch_rejected(self):
        client, _ = _client()
        response = client.post("/api/users/u1/history", json={"items": []})
        assert response.status_code == 400

    def test_store_failure(self):
        store = InMemoryHistoryStore()
        store.sync_history = AsyncMock(side_effect=StoreError("D1 down"))
        client, _ = _client(store)

        response = client.post("/api/users/u1/history", json=_payload())

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to save browsing history"


class TestListRoute:
    """Test paginated history listing."""

    def test_list_uses_client_field_names(self):
        client, _ = _client()
        client.post("/api/users/u1/history", json=_payload(5))

        response = client.get("/api/users/u1/history", params={"page": 1, "limit": 2})
        body = response.json()

        assert response.status_code == 200
        assert body["pagination"] == {"total": 5, "page": 1, "limit": 2, "total_pages": 3}
        first = body["items"][0]
        assert first["url"] == "https://github.com/org/repo0"
        assert first["visitCount"] == 1
        assert "lastVisitTime" in first

    def test_limit_capped(self):
        client, _ = _client()
        response = client.get("/api/users/u1/history", params={"limit": 1000})
        assert response.status_code == 422

    def test_unknown_user_is_empty(self):
        client, _ = _client()
        body = client.get("/api/users/nobody/history").json()
        assert body["items"] == []
        assert body["pagination"]["total"] == 0


class TestAnalysisRoute:
    """Test the analysis endpoint."""

    def test_no_history_is_404(self):
        client, _ = _client()
        response = client.get("/api/users/nobody/analysis")
        assert response.status_code == 404
        assert response.json()["detail"] == "No browsing history found for user nobody"

    def test_analysis_then_cache(self):
        client, _ = _client()
        client.post("/api/users/u1/history", json=_payload())

        first = client.get("/api/users/u1/analysis").json()
        second = client.get("/api/users/u1/analysis").json()
        forced = client.get("/api/users/u1/analysis", params={"force_refresh": "true"}).json()

        assert first["fromCache"] is False
        assert first["analysis"]["total_events"] == 3
        assert first["analysis"]["content_types"]["primary_type"] == "Reference & Learning"
        assert first["analysis"]["behavior_details"] == {
            "error": "Behavior analysis unavailable: no classifier configured"
        }
        assert second["fromCache"] is True
        assert second["analysisTimestamp"] == first["analysisTimestamp"]
        assert "from_cache" not in first
        assert forced["fromCache"] is False

    def test_store_failure_is_500(self):
        store = InMemoryHistoryStore()
        store.get_history = AsyncMock(side_effect=StoreError("D1 down"))
        client, _ = _client(store)

        response = client.get("/api/users/u1/analysis")

        assert response.status_code == 500


class TestClearRoute:
    """Test clearing history."""

    def test_clear(self):
        client, _ = _client()
        client.post("/api/users/u1/history", json=_payload())

        response = client.delete("/api/users/u1/history")

        assert response.status_code == 200
        assert response.json() == {"message": "Browsing history cleared successfully"}
        assert client.get("/api/users/u1/analysis").status_code == 404
