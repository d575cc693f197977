from __future__ import annotations

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from golf_leaderboard.auth import Session, get_session
from golf_leaderboard.config import Settings, get_settings, reset_settings_cache
from golf_leaderboard.metrics import route_label
from golf_leaderboard.routes.deps import get_data_store
from golf_leaderboard.security import load_api_keys, require_api_key
from golf_leaderboard.store import MemoryDataStore, RestDataStore


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings_cache()
    yield
    reset_settings_cache()


def test_settings_read_env_aliases(monkeypatch):
    monkeypatch.setenv("DATA_STORE", "REST")
    monkeypatch.setenv("LEADERBOARD_FETCH_RETRIES", "4")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.test, ,https://b.test")

    settings = get_settings()

    assert settings.backend == "rest"
    assert settings.fetch_retries == 4
    assert settings.retry_backoff_s == 0.25
    assert settings.cors_origins == ["https://a.test", "https://b.test"]
    assert get_settings() is settings


def test_unknown_backend_falls_back_to_memory():
    assert Settings(DATA_STORE="mongo").backend == "memory"


def test_rest_backend_requires_credentials():
    settings = Settings(DATA_STORE="rest", SUPABASE_URL=None, SUPABASE_ANON_KEY=None)

    with pytest.raises(HTTPException) as excinfo:
        get_data_store(session=Session(), settings=settings)

    assert excinfo.value.status_code == 503


def test_rest_backend_carries_session():
    settings = Settings(
        DATA_STORE="rest",
        SUPABASE_URL="https://db.example.test",
        SUPABASE_ANON_KEY="anon",
    )

    store = get_data_store(session=Session(access_token="jwt"), settings=settings)

    assert isinstance(store, RestDataStore)
    assert store.base_url == "https://db.example.test"


def test_memory_backend_is_shared():
    settings = Settings(DATA_STORE="memory")

    first = get_data_store(session=Session(), settings=settings)
    second = get_data_store(session=Session(), settings=settings)

    assert isinstance(first, MemoryDataStore)
    assert first is second


def test_session_reads_bearer_token():
    session = get_session(user_id="u1", authorization="Bearer abc", role="Admin")

    assert session.access_token == "abc"
    assert session.is_admin
    assert get_session(user_id=None, authorization="Basic xyz", role=None).access_token is None


def test_api_key_optional_by_default(monkeypatch):
    monkeypatch.delenv("REQUIRE_API_KEY", raising=False)

    assert require_api_key(x_api_key=None, api_key_query=None) is None


def test_api_key_enforced_when_enabled(monkeypatch):
    monkeypatch.setenv("REQUIRE_API_KEY", "1")
    monkeypatch.setenv("API_KEYS", "alpha, beta")

    assert load_api_keys() == {"alpha", "beta"}
    assert require_api_key(x_api_key=None, api_key_query="beta") == "beta"
    with pytest.raises(HTTPException) as excinfo:
        require_api_key(x_api_key="gamma", api_key_query=None)
    assert excinfo.value.status_code == 401


def test_routes_reject_missing_api_key(client: TestClient, seeded, monkeypatch):
    monkeypatch.setenv("REQUIRE_API_KEY", "true")
    monkeypatch.setenv("API_KEY", "secret")
    tid = seeded["tournament_id"]

    assert client.get(f"/tournaments/{tid}/leaderboard").status_code == 401
    allowed = client.get(
        f"/tournaments/{tid}/leaderboard", headers={"x-api-key": "secret"}
    )
    assert allowed.status_code == 200


def test_health_reports_backend(client: TestClient):
    response = client.get("/health")

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "ok"
    assert body["env"]["data_store"] == "memory"
    assert body["env"]["fetch_retries"] == 2


def test_metrics_exposes_leaderboard_series(client: TestClient, seeded):
    client.get(f"/tournaments/{seeded['tournament_id']}/leaderboard")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "leaderboard_http_requests_total" in response.text
    assert 'route="/tournaments/{tournament_id}/leaderboard"' in response.text
    assert seeded["tournament_id"] not in response.text
    assert "live_leaderboards" in response.text


def test_route_label_falls_back_to_path_params():
    scope = {
        "path": "/tournaments/t-9/scores/s-1",
        "endpoint": object(),
        "path_params": {"tournament_id": "t-9", "score_id": "s-1"},
    }

    assert route_label(scope) == "/tournaments/{tournament_id}/scores/{score_id}"
    assert route_label({"path": "/nowhere"}) == "<unmatched>"
