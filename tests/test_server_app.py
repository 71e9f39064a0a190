"""Tests for the FastAPI server application."""

from __future__ import annotations

import random
import threading
import time

import pytest
from fastapi import status
from fastapi.testclient import TestClient

import evosim.server.app as server_app
from evosim.engine.evolution import (
    ColorEvolutionEngine,
    TickStatus,
    TributeEvolutionEngine,
    Variant,
)
from evosim.model import ENVIRONMENTS, TargetColor
from evosim.server.app import SimulationRunner, app


@pytest.fixture
def runners(monkeypatch: pytest.MonkeyPatch) -> dict[Variant, SimulationRunner]:
    """Install fresh seeded runners for each test."""
    fresh = {
        Variant.COLOR: SimulationRunner(
            ColorEvolutionEngine(rng=random.Random(1)), interval_ms=200
        ),
        Variant.TRIBUTES: SimulationRunner(
            TributeEvolutionEngine(rng=random.Random(2)), interval_ms=800
        ),
    }
    monkeypatch.setattr(server_app, "_runners", fresh)
    return fresh


@pytest.fixture
def client(runners) -> TestClient:
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def color_runner() -> SimulationRunner:
    return SimulationRunner(ColorEvolutionEngine(rng=random.Random(0)))


class TestSimulationRunner:
    """Tests for SimulationRunner."""

    def test_initial_state(self, color_runner: SimulationRunner) -> None:
        assert color_runner.paused is True
        assert color_runner.interval_ms == 200
        assert color_runner.latest.generation == 0
        assert len(color_runner.latest.population) == 20

    def test_interval_clamped(self, color_runner: SimulationRunner) -> None:
        color_runner.interval_ms = 500
        assert color_runner.interval_ms == 500
        color_runner.interval_ms = 10
        assert color_runner.interval_ms == 50
        color_runner.interval_ms = 10_000
        assert color_runner.interval_ms == 3000

    def test_step_publishes_snapshot(self, color_runner: SimulationRunner) -> None:
        snapshot = color_runner.step()
        assert snapshot.generation == 1
        assert color_runner.latest is snapshot

    def test_reset(self, color_runner: SimulationRunner) -> None:
        for _ in range(3):
            color_runner.step()
        snapshot = color_runner.reset(seed=4)
        assert snapshot.generation == 0
        assert color_runner.latest is snapshot

    def test_set_context_without_reset(self, color_runner: SimulationRunner) -> None:
        color_runner.step()
        snapshot = color_runner.set_context(TargetColor(0, 0, 0))
        assert snapshot.context == TargetColor(0, 0, 0)
        assert snapshot.generation == 1

    def test_set_context_with_reset(self, color_runner: SimulationRunner) -> None:
        color_runner.step()
        snapshot = color_runner.set_context(TargetColor(0, 0, 0), reset=True)
        assert snapshot.generation == 0

    def test_extinct_step_pauses(self) -> None:
        runner = SimulationRunner(TributeEvolutionEngine(rng=random.Random(0)))
        runner.paused = False
        for ind in runner.engine.population:
            ind.alive = False
        snapshot = runner.step()
        assert snapshot.status is TickStatus.EXTINCT
        assert runner.paused is True

    def test_background_loop_ticks(self, color_runner: SimulationRunner) -> None:
        color_runner.interval_ms = 50
        color_runner.paused = False
        color_runner.start()
        try:
            deadline = time.monotonic() + 5.0
            while color_runner.latest.generation < 2 and time.monotonic() < deadline:
                time.sleep(0.02)
        finally:
            color_runner.stop()
        assert color_runner.latest.generation >= 2

    def test_paused_loop_does_not_tick(self, color_runner: SimulationRunner) -> None:
        color_runner.interval_ms = 50
        color_runner.start()
        try:
            time.sleep(0.3)
        finally:
            color_runner.stop()
        assert color_runner.latest.generation == 0

    def test_concurrent_steps_serialized(self, color_runner: SimulationRunner) -> None:
        threads = [threading.Thread(target=color_runner.step) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert color_runner.latest.generation == 10
        assert len(color_runner.latest.population) == 20


class TestRestEndpoints:
    """Tests for REST endpoints."""

    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"status": "healthy"}

    def test_list_simulations(self, client: TestClient) -> None:
        data = client.get("/api/simulations").json()
        assert {s["variant"] for s in data} == {"color", "tributes"}
        assert all(s["paused"] for s in data)

    def test_color_state(self, client: TestClient) -> None:
        response = client.get("/api/color/state")
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["variant"] == "color"
        assert data["generation"] == 0
        assert len(data["population"]) == 20
        assert data["context"]["hex"] == "#ff6496"
        assert data["population"][0]["hex"].startswith("#")

    def test_tribute_state(self, client: TestClient) -> None:
        data = client.get("/api/tributes/state").json()
        assert data["variant"] == "tributes"
        assert data["living"] == 24
        assert data["context"]["key"] == "balanced"
        assert data["total_deaths"] == 0
        assert data["battle_log"] == []

    def test_step(self, client: TestClient) -> None:
        data = client.post("/api/tributes/step").json()
        assert data["generation"] == 1
        assert data["total_deaths"] == 12
        assert len(data["battle_log"]) == 5
        assert len(client.get("/api/tributes/battles").json()) == 5

    def test_play_pause(self, client: TestClient, runners) -> None:
        assert client.post("/api/color/play").json()["success"] is True
        assert runners[Variant.COLOR].paused is False
        assert client.post("/api/color/pause").json()["success"] is True
        assert runners[Variant.COLOR].paused is True

    def test_reset(self, client: TestClient) -> None:
        client.post("/api/color/step")
        data = client.post("/api/color/reset", params={"seed": 3}).json()
        assert data["generation"] == 0

    def test_interval(self, client: TestClient, runners) -> None:
        response = client.post("/api/tributes/interval", params={"interval_ms": 1500})
        assert response.json()["success"] is True
        assert runners[Variant.TRIBUTES].interval_ms == 1500

    def test_set_target_rgb(self, client: TestClient) -> None:
        data = client.post("/api/color/target", json={"r": 1, "g": 2, "b": 3}).json()
        assert data["context"] == {"r": 1, "g": 2, "b": 3, "hex": "#010203"}

    def test_set_target_hex_with_reset(self, client: TestClient) -> None:
        client.post("/api/color/step")
        data = client.post("/api/color/target", json={"hex": "#00ff00", "reset": True}).json()
        assert data["context"]["hex"] == "#00ff00"
        assert data["generation"] == 0

    def test_set_random_target(self, client: TestClient) -> None:
        response = client.post("/api/color/target", json={"random": True})
        assert response.status_code == status.HTTP_200_OK

    def test_environments(self, client: TestClient) -> None:
        data = client.get("/api/environments").json()
        assert {e["key"] for e in data} == set(ENVIRONMENTS)

    def test_set_environment(self, client: TestClient) -> None:
        data = client.post("/api/tributes/environment", json={"environment": "desert"}).json()
        assert data["context"]["name"] == "Desert Wasteland"


class TestWebSockets:
    """Tests for WebSocket endpoints."""

    def test_snapshot_stream_sends_current_state(self, client: TestClient) -> None:
        with client.websocket_connect("/ws/tributes/snapshots") as websocket:
            data = websocket.receive_json()
            assert data["variant"] == "tributes"
            assert data["generation"] == 0

    def test_control_commands(self, client: TestClient, runners) -> None:
        with client.websocket_connect("/ws/color/control") as websocket:
            websocket.send_json({"type": "play"})
            assert websocket.receive_json()["success"] is True
            assert runners[Variant.COLOR].paused is False

            websocket.send_json({"type": "pause"})
            assert websocket.receive_json()["success"] is True

            websocket.send_json({"type": "step"})
            assert websocket.receive_json()["message"] == "Generation 1"

            websocket.send_json({"type": "set_interval", "interval_ms": 400})
            assert websocket.receive_json()["success"] is True
            assert runners[Variant.COLOR].interval_ms == 400

            websocket.send_json({"type": "reset"})
            assert websocket.receive_json()["success"] is True
            assert runners[Variant.COLOR].latest.generation == 0

            websocket.send_json({"type": "explode"})
            response = websocket.receive_json()
            assert response["success"] is False
            assert "Unknown command" in response["message"]

    def test_invalid_interval_value(self, client: TestClient) -> None:
        with client.websocket_connect("/ws/color/control") as websocket:
            websocket.send_json({"type": "set_interval", "interval_ms": "fast"})
            assert websocket.receive_json()["success"] is False

    @pytest.mark.parametrize("seed", [[1, 2], "abc", 1.5, True])
    def test_invalid_reset_seed(self, client: TestClient, runners, seed) -> None:
        runners[Variant.COLOR].step()
        with client.websocket_connect("/ws/color/control") as websocket:
            websocket.send_json({"type": "reset", "seed": seed})
            response = websocket.receive_json()
            assert response == {"success": False, "message": "Invalid seed"}
            assert runners[Variant.COLOR].latest.generation == 1

            websocket.send_json({"type": "reset", "seed": 7})
            assert websocket.receive_json()["success"] is True
        assert runners[Variant.COLOR].latest.generation == 0
