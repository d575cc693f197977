"""Shared pytest fixtures for leaderboard tests."""

from __future__ import annotations

from typing import Dict, List, Tuple

import pytest
from fastapi.testclient import TestClient

from golf_leaderboard.app import app
from golf_leaderboard.config import reset_settings_cache
from golf_leaderboard.routes.deps import get_data_store
from golf_leaderboard.store import MemoryDataStore
from golf_leaderboard.telemetry import events as telemetry_events


@pytest.fixture
def anyio_backend() -> str:  # pragma: no cover - fixture declaration
    return "asyncio"


@pytest.fixture
def store() -> MemoryDataStore:
    return MemoryDataStore()


@pytest.fixture
def seeded(store: MemoryDataStore) -> Dict[str, str]:
    course = store.create_course(
        "Quinta da Marinha",
        [
            {"hole_number": 1, "par": 4, "handicap_index": 1},
            {"hole_number": 2, "par": 3, "handicap_index": 2},
        ],
        location="Cascais",
    )
    alice = store.add_profile("Alice", player_id="alice")
    bob = store.add_profile("Bob", player_id="bob")
    tournament = store.create_tournament(
        "Spring Open", course["id"], tournament_date="2026-04-12"
    )
    return {
        "course_id": course["id"],
        "tournament_id": tournament["id"],
        "alice": alice["id"],
        "bob": bob["id"],
    }


@pytest.fixture
def client(store: MemoryDataStore, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("REQUIRE_API_KEY", raising=False)
    monkeypatch.delenv("DATA_STORE", raising=False)
    reset_settings_cache()
    app.dependency_overrides[get_data_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.pop(get_data_store, None)
    reset_settings_cache()


@pytest.fixture
def telemetry_sink():
    captured: List[Tuple[str, dict]] = []

    def _emit(name: str, payload):
        captured.append((name, dict(payload)))

    telemetry_events.set_events_telemetry_emitter(_emit)
    yield captured
    telemetry_events.set_events_telemetry_emitter(None)
