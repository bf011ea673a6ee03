"""Test api — Growth Engine."""
from __future__ import annotations

import random

import pytest

try:
    from fastapi.testclient import TestClient

    from growth_engine.ab_testing import ABTestEngine
    from growth_engine.api import app, state
    from growth_engine.psychological_triggers import PsychologicalTriggerService
    HAS_MODULE = True
except ImportError:
    HAS_MODULE = False

pytestmark = pytest.mark.skipif(
    not HAS_MODULE, reason="api module or fastapi not available"
)

TWO_ARM = {
    "test_id": "hero-test",
    "name": "Hero Test",
    "status": "active",
    "variants": [
        {"variant_id": "control", "weight": 0.5, "config": {"headline": "A"}},
        {"variant_id": "b", "weight": 0.5, "config": {"headline": "B"}},
    ],
}


@pytest.fixture
def client(tmp_path):
    with TestClient(app) as c:
        # Per-test state so created tests and histories never leak
        state.ab = ABTestEngine(
            data_dir=tmp_path / "ab_testing", rng=random.Random(0), tracker=state.tracker,
        )
        state.psych = PsychologicalTriggerService(data_dir=tmp_path / "psychological_triggers")
        yield c


# ===================================================================
# Health
# ===================================================================

class TestHealth:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["subsystems"]["engagement"] == "ready"
        assert data["subsystems"]["ab_testing"] == "ready"
        assert data["subsystems"]["tracking"] == "buffer"


# ===================================================================
# Engagement
# ===================================================================

class TestEngagement:

    def test_score(self, client):
        resp = client.post("/engagement/score", json={
            "session_duration_seconds": 600,
            "scroll_depth_percent": 100,
            "sections_viewed": ["a", "b"],
            "ctas_clicked": ["x"],
            "content_consumed": ["morning-blog", "habits-guide"],
            "tools_used": ["t1", "t2"],
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["engagement"]["score"] == 25
        assert data["engagement"]["tier"] == "engaged"
        assert data["breakdown"]["total"] == 25
        assert "primary_interest" in data["insights"]
        assert "engagement" not in data["insights"]

    def test_invalid_device(self, client):
        resp = client.post("/engagement/score", json={"device_type": "smartwatch"})
        assert resp.status_code == 400

    def test_scroll_out_of_range(self, client):
        resp = client.post("/engagement/score", json={"scroll_depth_percent": 150})
        assert resp.status_code == 422

    def test_escalation(self, client):
        resp = client.post("/engagement/escalation", json={})
        assert resp.status_code == 200
        assert resp.json()["current_level"] == "micro"
        assert resp.json()["next_level"] == "midi"


# ===================================================================
# Selection
# ===================================================================

class TestSelection:

    def test_cta_select(self, client):
        resp = client.post("/cta/select", json={"behavior": {"session_duration_seconds": 60}})
        assert resp.status_code == 200
        ids = [c["cta_id"] for c in resp.json()["ctas"]]
        assert ids == ["see-your-score", "calculate-now"]
        assert all(c["variant_id"] is None for c in resp.json()["ctas"])

    def test_cta_select_applies_variant(self, client):
        state.ab.get_test("cta-copy-test").traffic_allocation = 1.0
        resp = client.post("/cta/select", json={
            "behavior": {"session_duration_seconds": 60}, "user_id": "u1", "max_items": 1,
        })
        [cta] = resp.json()["ctas"]
        assert cta["cta_id"] == "see-your-score"
        assert cta["variant_id"] in {"control", "curiosity", "urgency", "social-proof"}
        assert state.ab.get_variant("u1", "cta-copy-test") == cta["variant_id"]

    def test_zero_items(self, client):
        resp = client.post("/cta/select", json={"max_items": 0})
        assert resp.json()["ctas"] == []

    def test_too_many_items(self, client):
        resp = client.post("/cta/select", json={"max_items": 50})
        assert resp.status_code == 422

    def test_content_select(self, client):
        resp = client.post("/content/select", json={
            "behavior": {"tools_used": ["potential-assessment"], "time_of_day": "morning"},
        })
        assert resp.status_code == 200
        data = resp.json()
        assert "potential-assessment" not in [c["content_id"] for c in data["content"]]
        assert data["hero"]["title"] == "Start Your Day Right"


# ===================================================================
# A/B Testing
# ===================================================================

class TestABTesting:

    def test_list(self, client):
        resp = client.get("/ab/tests")
        assert resp.status_code == 200
        assert len(resp.json()["tests"]) == 4

    def test_list_by_status(self, client):
        assert len(client.get("/ab/tests", params={"status": "active"}).json()["tests"]) == 4
        assert client.get("/ab/tests", params={"status": "draft"}).json()["tests"] == []
        assert client.get("/ab/tests", params={"status": "bogus"}).status_code == 400

    def test_create_and_get(self, client):
        resp = client.post("/ab/tests", json=TWO_ARM)
        assert resp.status_code == 200
        assert resp.json()["status"] == "active"
        assert client.get("/ab/tests/hero-test").json()["name"] == "Hero Test"

    def test_create_rejects_duplicates(self, client):
        client.post("/ab/tests", json=TWO_ARM)
        assert client.post("/ab/tests", json=TWO_ARM).status_code == 400

    def test_create_rejects_bad_status(self, client):
        assert client.post("/ab/tests", json={**TWO_ARM, "status": "weird"}).status_code == 400

    def test_unknown_test(self, client):
        assert client.get("/ab/tests/nope").status_code == 404
        assert client.post("/ab/tests/nope/assign", json={"user_id": "u1"}).status_code == 404
        assert client.get("/ab/tests/nope/results").status_code == 404
        assert client.post("/ab/tests/nope/status", json={"action": "pause"}).status_code == 404

    def test_assign_is_sticky(self, client):
        client.post("/ab/tests", json=TWO_ARM)
        first = client.post("/ab/tests/hero-test/assign", json={"user_id": "u1"}).json()
        assert first["variant_id"] in {"control", "b"}
        assert first["excluded"] is False
        assert first["config"]["headline"] in {"A", "B"}
        again = client.post("/ab/tests/hero-test/assign", json={"user_id": "u1"}).json()
        assert again["variant_id"] == first["variant_id"]

    def test_assign_with_targeting(self, client):
        client.post("/ab/tests", json={
            **TWO_ARM,
            "targeting_rules": [
                {"type": "device", "operator": "eq", "value": "mobile"},
                {"type": "engagement", "operator": "gte", "value": 0},
            ],
        })
        no_context = client.post("/ab/tests/hero-test/assign", json={"user_id": "u1"}).json()
        assert no_context["variant_id"] is None
        assert no_context["excluded"] is False

        desktop = client.post("/ab/tests/hero-test/assign", json={
            "user_id": "u2", "behavior": {"device_type": "desktop"},
        }).json()
        assert desktop["variant_id"] is None

        mobile = client.post("/ab/tests/hero-test/assign", json={
            "user_id": "u1", "behavior": {"device_type": "mobile", "session_duration_seconds": 90},
        }).json()
        assert mobile["variant_id"] in {"control", "b"}
        assert state.ab.get_variant("u1", "hero-test") == mobile["variant_id"]

    def test_assign_with_custom_targeting(self, client):
        client.post("/ab/tests", json={
            **TWO_ARM,
            "targeting_rules": [{"type": "custom", "field": "plan", "operator": "eq", "value": "pro"}],
        })
        resp = client.post("/ab/tests/hero-test/assign", json={
            "user_id": "u1", "custom_data": {"plan": "pro"},
        })
        assert resp.json()["variant_id"] in {"control", "b"}

    def test_events(self, client):
        client.post("/ab/tests", json=TWO_ARM)
        resp = client.post("/ab/tests/hero-test/events", json={
            "user_id": "u1", "variant_id": "b", "event": "impression",
        })
        assert resp.status_code == 200
        assert resp.json()["impressions"] == 1

    def test_event_validation(self, client):
        client.post("/ab/tests", json=TWO_ARM)
        bad_event = client.post("/ab/tests/hero-test/events", json={
            "user_id": "u1", "variant_id": "b", "event": "hover",
        })
        assert bad_event.status_code == 400
        bad_variant = client.post("/ab/tests/hero-test/events", json={
            "user_id": "u1", "variant_id": "nope", "event": "click",
        })
        assert bad_variant.status_code == 404

    def test_results(self, client):
        client.post("/ab/tests", json=TWO_ARM)
        client.post("/ab/tests/hero-test/assign", json={"user_id": "u1"})
        data = client.get("/ab/tests/hero-test/results").json()
        assert data["test_id"] == "hero-test"
        assert data["assignments"] == 1
        assert data["winner"] is None
        assert len(data["variant_results"]) == 2

    def test_status_changes(self, client):
        client.post("/ab/tests", json=TWO_ARM)
        resp = client.post("/ab/tests/hero-test/status", json={"action": "pause"})
        assert resp.json() == {"test_id": "hero-test", "status": "paused"}
        assert client.post("/ab/tests/hero-test/status", json={"action": "explode"}).status_code == 400
        assert client.post("/ab/tests/hero-test/assign", json={"user_id": "u2"}).json()["variant_id"] is None


# ===================================================================
# Triggers
# ===================================================================

class TestTriggers:

    def test_psychological(self, client):
        resp = client.post("/triggers/psychological", json={
            "page": "/webinar",
            "city": "Addis Ababa",
            "behavior": {
                "session_duration_seconds": 240,
                "sections_viewed": ["success-gap", "change-paradox", "vision-void"],
                "tools_used": ["potential-assessment"],
                "ctas_clicked": ["see-your-score"],
            },
        })
        assert resp.status_code == 200
        triggers = {t["category"]: t for t in resp.json()["triggers"]}
        assert len(triggers) == 7
        assert triggers["reciprocity"]["intensity"] == "medium"
        assert triggers["scarcity"]["content"]["subtext"].endswith("hours left")
        assert triggers["liking"]["content"]["subtext"].endswith(" in Addis Ababa")

    def test_psychological_new_visitor(self, client):
        resp = client.post("/triggers/psychological", json={})
        assert resp.json()["triggers"] == []

    def test_behavioral(self, client):
        resp = client.post("/triggers/behavioral", json={
            "behavior": {"session_duration_seconds": 20, "return_visitor": True},
            "trigger_type": "time-based",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert [m["trigger_id"] for m in data["matching"]] == ["return-visitor-welcome"]
        [blocked] = data["blocked"]
        assert blocked["trigger_id"] == "mobile-optimization"
        assert {c["type"] for c in blocked["failing"]} == {"device", "time", "engagement"}

    def test_behavioral_custom_data(self, client):
        resp = client.post("/triggers/behavioral", json={
            "behavior": {"session_duration_seconds": 20},
            "custom_data": {"returnVisitor": True},
            "trigger_type": "time-based",
        })
        assert [m["trigger_id"] for m in resp.json()["matching"]] == ["return-visitor-welcome"]
