"""HTTP surface, with the detector swapped for one built on fakes."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from backend.api import register_routes
from backend.detection.service import LiveInteractionRegistry, get_detector, get_registry
from tests.fakes import FakeLLM, pick_by_word


@pytest.fixture
def client(build_detector):
    llm = FakeLLM(
        DisambiguationVerdict=pick_by_word({"tap": "PLUMB-TAP-REPAIR", "tv": "HANDY-TV-MOUNT"}),
        TaskBreakdown={"tasks": [{"description": "fix my dripping tap"}, {"description": "mount my tv"}]},
    )
    detector, _, _, _ = build_detector(llm=llm)
    registry = LiveInteractionRegistry(max_interactions=2)

    app = FastAPI()
    register_routes(app)
    app.dependency_overrides[get_detector] = lambda: detector
    app.dependency_overrides[get_registry] = lambda: registry
    return TestClient(app)


class TestDetectRoutes:
    def test_detect(self, client):
        res = client.post("/sku/detect", json={"text": "my tap keeps dripping"})
        assert res.status_code == 200
        body = res.json()
        assert body["matched"] is True
        assert body["service"]["sku_code"] == "PLUMB-TAP-REPAIR"
        assert body["route"] == "instant_price"

    def test_blank_text_rejected(self, client):
        assert client.post("/sku/detect", json={"text": "   "}).status_code == 400

    def test_detect_multi(self, client):
        res = client.post("/sku/detect-multi", json={"text": "fix my dripping tap and mount my tv"})
        assert res.status_code == 200
        body = res.json()
        assert body["route"] == "instant_price"
        assert body["total_price_pence"] == 18000
        assert len(body["matched_services"]) == 2

    def test_detect_with_lead_type(self, client):
        res = client.post("/sku/detect", json={"text": "my tap keeps dripping", "lead_type": "commercial"})
        assert res.json()["route"] == "site_visit"


class TestLiveRoutes:
    def test_live_conversation_lifecycle(self, client):
        first = client.post("/sku/live/call-1", json={"text": "hi, it's about the kitchen"})
        assert first.status_code == 200
        second = client.post("/sku/live/call-1", json={"text": "the tap keeps dripping"})
        assert second.json()["service"]["sku_code"] == "PLUMB-TAP-REPAIR"
        assert client.get("/sku/live").json() == {"interaction_ids": ["call-1"]}
        assert client.delete("/sku/live/call-1").status_code == 204
        assert client.delete("/sku/live/call-1").status_code == 404
        assert client.get("/sku/live").json() == {"interaction_ids": []}

    def test_registry_evicts_oldest(self):
        registry = LiveInteractionRegistry(max_interactions=2)
        for call_id in ("a", "b", "c"):
            registry.get_or_create(call_id)
        assert registry.active_ids() == ["b", "c"]


class TestCatalogRoutes:
    def test_active_catalog(self, client):
        res = client.get("/sku/active")
        assert res.status_code == 200
        assert {s["sku_code"] for s in res.json()} == {
            "PLUMB-TAP-REPAIR", "PLUMB-TOILET-REPAIR", "HANDY-TV-MOUNT", "ELEC-SOCKET-REPLACE",
        }

    def test_refresh(self, client):
        res = client.post("/sku/refresh")
        assert res.json() == {"refreshed": True, "active_count": 4}
