"""
HTTP surface tests through FastAPI's TestClient. The service singleton is
replaced with one backed by a small in-memory store.
"""

import pytest
from fastapi.testclient import TestClient

from conftest import StubExtractor
from tradescribe.ai.capabilities import Ok
from tradescribe.api.webapp import app, set_service
from tradescribe.journal.service import JournalService


@pytest.fixture
def client(sample_store, settings):
    set_service(JournalService(sample_store, settings=settings))
    with TestClient(app) as test_client:
        yield test_client
    set_service(None)


class TestTradeRoutes:

    def test_list_with_filters(self, client):
        response = client.get("/api/trades", params={"status": "closed"})
        assert response.status_code == 200
        ids = [t["trade_id"] for t in response.json()["trades"]]
        assert ids == ["tsla-closed", "msft-closed"]

    def test_list_invalid_status_is_400(self, client):
        response = client.get("/api/trades", params={"status": "pending"})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_create_from_note(self, client):
        response = client.post("/api/trades", json={"note": "Bought 100 AMD calls @ 2.10"})
        assert response.status_code == 200
        body = response.json()
        assert body["action"] == "create"
        assert body["trade"]["ticker"] == "AMD"
        assert body["trade"]["entry_price"] == 2.1

    def test_blank_note_is_400(self, client):
        response = client.post("/api/trades", json={"note": " "})
        assert response.status_code == 400
        assert response.json() == {"error": "A journal note is required."}

    def test_unknown_forced_id_is_404(self, client):
        response = client.post("/api/trades", json={"note": "more", "tradeId": "ghost"})
        assert response.status_code == 404

    def test_get_update_delete(self, client):
        assert client.get("/api/trades/aapl-open").json()["trade"]["ticker"] == "AAPL"

        response = client.put("/api/trades/aapl-open",
                               json={"trade": {"sentiment": "neutral"}, "note": "edited"})
        assert response.status_code == 200
        assert response.json()["trade"]["sentiment"] == "neutral"

        assert client.delete("/api/trades/aapl-open").json() == {"ok": True}
        assert client.get("/api/trades/aapl-open").status_code == 404

    def test_reanalyze_without_model_keeps_the_edit(self, client):
        response = client.put("/api/trades/tsla-closed",
                              json={"trade": {"pnl_usd": -180}, "note": "fees included",
                                    "reanalyze": True})
        assert response.status_code == 200
        trade = response.json()["trade"]
        assert trade["pnl_usd"] == -180.0
        assert trade["notes"][-1]["text"] == "fees included"

    def test_reanalyze_applies_model_corrections(self, sample_store, settings):
        extractor = StubExtractor(Ok({"action": "update", "trade": {"pnl_usd": -175.5}}))
        set_service(JournalService(sample_store, extractor=extractor, settings=settings))
        with TestClient(app) as test_client:
            response = test_client.put("/api/trades/tsla-closed",
                                       json={"trade": {}, "note": "fees were 24.50",
                                             "reanalyze": True})
        set_service(None)
        assert response.json()["trade"]["pnl_usd"] == -175.5


class TestSearchAndAnalytics:

    def test_search_with_answer(self, client):
        response = client.post("/api/search", json={"query": "nervous", "includeAnswer": True})
        body = response.json()
        assert [t["trade_id"] for t in body["results"]] == ["tsla-closed"]
        assert body["answer"].startswith("I found one trade")

    @pytest.mark.parametrize("limit,expected", [("1", 1), (1, 1), ("many", 3), (-2, 3)])
    def test_search_limit_is_coerced(self, client, limit, expected):
        response = client.post("/api/search", json={"query": "!!!", "limit": limit})
        assert response.status_code == 200
        assert len(response.json()["results"]) == expected

    def test_search_bad_filters_is_400(self, client):
        response = client.post("/api/search", json={"query": "x", "filters": {"status": "maybe"}})
        assert response.status_code == 400

    def test_search_blank_query_is_400(self, client):
        assert client.post("/api/search", json={"query": ""}).status_code == 400

    def test_analytics(self, client):
        body = client.get("/api/analytics").json()
        assert body["count"] == 3
        assert body["analytics"]["closed_trades"] == 2
        assert body["analytics"]["win_rate"] == 50.0

    def test_analytics_route_applies_default_limit(self, sample_store, settings):
        settings.analytics_default_limit = 2
        set_service(JournalService(sample_store, settings=settings))
        with TestClient(app) as test_client:
            assert test_client.get("/api/analytics").json()["count"] == 2
            assert test_client.get("/api/analytics", params={"limit": "1"}).json()["count"] == 1
        set_service(None)
