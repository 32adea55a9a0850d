"""
tests/test_market_sessions_api.py -- Integration tests for /api/v1/market-sessions.

Reads are public; writes need a session (cookie from app_env.login()).
"""

from __future__ import annotations

import pytest

BASE = "/api/v1/market-sessions"


@pytest.fixture
def authed(app_env):
    app_env.login()
    return app_env


class TestReads:
    def test_list_default_sessions(self, app_env) -> None:
        resp = app_env.client.get(BASE)
        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "no-cache, no-store, must-revalidate"
        body = resp.json()
        assert body["success"] is True
        assert [s["session_name"] for s in body["data"]] == ["morning", "afternoon"]

    def test_get_one(self, app_env) -> None:
        first = app_env.client.get(BASE).json()["data"][0]
        resp = app_env.client.get(f"{BASE}/{first['id']}")
        assert resp.status_code == 200
        assert resp.json()["data"]["session_time"] == "12:55"

    def test_get_missing(self, app_env) -> None:
        resp = app_env.client.get(f"{BASE}/999")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "Session not found"}

    def test_non_integer_id(self, app_env) -> None:
        assert app_env.client.get(f"{BASE}/abc").status_code == 400

    def test_status_shape(self, app_env) -> None:
        resp = app_env.client.get(f"{BASE}/status")
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert set(data) == {"isMarketOpen", "currentSession", "nextSession", "statusText"}
        assert data["currentSession"]["name"] in ("morning", "afternoon")

    def test_status_without_sessions(self, app_env) -> None:
        for session in app_env.session_store.list_sessions():
            app_env.session_store.delete(session.id)
        resp = app_env.client.get(f"{BASE}/status")
        assert resp.status_code == 404
        assert resp.json()["error"] == "No market sessions configured"


class TestWrites:
    def test_create(self, authed) -> None:
        resp = authed.client.post(
            BASE,
            json={"session_name": "evening", "session_time": "20:30", "display_order": 3, "is_market_open": True},
        )
        assert resp.status_code == 201
        new_id = resp.json()["data"]["id"]
        created = authed.session_store.get(new_id)
        assert created.session_name == "evening"
        assert created.is_market_open is True

    def test_create_duplicate(self, authed) -> None:
        resp = authed.client.post(BASE, json={"session_name": "morning", "session_time": "12:55", "display_order": 5})
        assert resp.status_code == 409

    @pytest.mark.parametrize("bad_time", ["24:00", "9:30", "12:60", "noon"])
    def test_create_rejects_bad_time(self, authed, bad_time) -> None:
        resp = authed.client.post(BASE, json={"session_name": "x", "session_time": bad_time, "display_order": 3})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Validation error"

    def test_update(self, authed) -> None:
        first = authed.session_store.list_sessions()[0]
        resp = authed.client.put(f"{BASE}/{first.id}", json={"is_market_open": True})
        assert resp.status_code == 200
        assert resp.json()["message"] == "Session updated successfully"
        assert authed.session_store.get(first.id).is_market_open is True

    def test_update_empty_body(self, authed) -> None:
        first = authed.session_store.list_sessions()[0]
        resp = authed.client.put(f"{BASE}/{first.id}", json={})
        assert resp.status_code == 400
        assert resp.json()["error"] == "No fields to update"

    def test_update_missing(self, authed) -> None:
        assert authed.client.put(f"{BASE}/999", json={"display_order": 4}).status_code == 404

    def test_update_collision(self, authed) -> None:
        second = authed.session_store.list_sessions()[1]
        resp = authed.client.put(f"{BASE}/{second.id}", json={"session_name": "morning", "session_time": "12:55"})
        assert resp.status_code == 409

    def test_delete(self, authed) -> None:
        first = authed.session_store.list_sessions()[0]
        assert authed.client.delete(f"{BASE}/{first.id}").status_code == 200
        assert authed.client.delete(f"{BASE}/{first.id}").status_code == 404

    def test_writes_need_session(self, app_env) -> None:
        first = app_env.session_store.list_sessions()[0]
        assert app_env.client.put(f"{BASE}/{first.id}", json={"display_order": 4}).status_code == 401
        assert app_env.client.delete(f"{BASE}/{first.id}").status_code == 401
        assert len(app_env.session_store.list_sessions()) == 2
