"""
Tests for API endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from lapwatch.main import app
from lapwatch.services.repository import init_repository


@pytest.fixture
def repo(tmp_path):
    """Initialize the global repository with an empty database."""
    return init_repository(tmp_path / "laps.db")


@pytest.fixture
def client(repo):
    """Create test client with an empty database."""
    return TestClient(app)


@pytest.fixture
def client_with_data(repo):
    """Create test client with a few stored laps."""
    repo.insert("Jane", "Porsche 963", "Spa", 125.400)
    repo.insert("Jane", "Porsche 963", "Spa", 124.950)
    repo.insert("Max", "Ferrari 499P", "Spa", 124.700)
    repo.insert("Max", "Ferrari 499P", "Monza", 96.300)
    return TestClient(app)


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, client):
        """Root endpoint should return basic info."""
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Lap Time Tracker"
        assert data["status"] == "running"

    def test_health_endpoint(self, client, repo):
        """Health endpoint should return status."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["db_path"] == str(repo.db_path)
        assert data["listener_running"] is False


class TestLapTimeEndpoints:
    """Tests for lap time CRUD endpoints."""

    def test_list_empty(self, client):
        response = client.get("/api/lap-times")

        assert response.status_code == 200
        assert response.json() == []

    def test_list_lap_times(self, client_with_data):
        """Should list laps newest first with the stored row shape."""
        response = client_with_data.get("/api/lap-times")

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 4
        assert data[0]["track"] == "Monza"

        lap = data[0]
        for key in ("id", "driver_name", "car", "track", "lap_time", "sim", "recorded_at"):
            assert key in lap

    def test_add_lap_time(self, client):
        """Should store a lap and return it with an id."""
        response = client.post("/api/lap-times", json={
            "driver_name": "Jane",
            "car": "Porsche 963",
            "track": "Spa",
            "lap_time": 123.456,
        })

        assert response.status_code == 201
        data = response.json()
        assert data["id"] > 0
        assert data["lap_time"] == 123.456
        assert data["sim"] == "LMU"

    def test_add_lap_time_missing_fields(self, client):
        """Missing fields should be rejected with 400."""
        response = client.post("/api/lap-times", json={"driver_name": "Jane", "car": "GT3"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing required fields"

    def test_add_lap_time_negative(self, client):
        response = client.post("/api/lap-times", json={
            "driver_name": "Jane",
            "car": "Porsche 963",
            "track": "Spa",
            "lap_time": -1.0,
        })

        assert response.status_code == 400

    def test_best_laps(self, client_with_data):
        response = client_with_data.get("/api/lap-times/best")

        assert response.status_code == 200
        times = [lap["lap_time"] for lap in response.json()]
        assert times == sorted(times)
        assert times[0] == 96.3

    def test_best_laps_filtered(self, client_with_data):
        response = client_with_data.get(
            "/api/lap-times/best",
            params={"track": "Spa", "car": "Porsche 963"},
        )

        assert response.status_code == 200
        assert [lap["lap_time"] for lap in response.json()] == [124.95, 125.4]

    def test_delete_lap_time(self, client_with_data):
        lap_id = client_with_data.get("/api/lap-times").json()[0]["id"]

        response = client_with_data.delete(f"/api/lap-times/{lap_id}")

        assert response.status_code == 200
        assert response.json()["message"] == "Lap time deleted successfully"
        assert len(client_with_data.get("/api/lap-times").json()) == 3

    def test_delete_not_found(self, client):
        response = client.delete("/api/lap-times/9999")

        assert response.status_code == 404


class TestPersonalBestEndpoint:
    """Tests for the personal best lookup."""

    def test_personal_best(self, client_with_data):
        response = client_with_data.get(
            "/api/lap-times/personal-best",
            params={"driver_name": "Jane", "track": "Spa", "car": "Porsche 963"},
        )

        assert response.status_code == 200
        assert response.json()["personalBest"]["lap_time"] == 124.95

    def test_personal_best_none(self, client_with_data):
        response = client_with_data.get(
            "/api/lap-times/personal-best",
            params={"driver_name": "Nobody", "track": "Spa", "car": "Porsche 963"},
        )

        assert response.status_code == 200
        assert response.json() == {"personalBest": None}

    def test_personal_best_missing_params(self, client):
        response = client.get("/api/lap-times/personal-best", params={"driver_name": "Jane"})

        assert response.status_code == 400


class TestStatsEndpoints:
    """Tests for statistics and status endpoints."""

    def test_stats(self, client_with_data):
        response = client_with_data.get("/api/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["totalLaps"] == 4
        assert data["bestLap"]["lap_time"] == 96.3
        assert data["uniqueTracks"] == 2
        assert data["uniqueCars"] == 2

    def test_stats_empty(self, client):
        data = client.get("/api/stats").json()

        assert data["totalLaps"] == 0
        assert data["bestLap"] is None

    def test_status_without_listener(self, client):
        response = client.get("/api/status")

        assert response.status_code == 200
        assert response.json()["listener_running"] is False


class TestLifespan:
    """Tests for the application lifespan."""

    def test_lifespan_starts_listener(self, tmp_path, monkeypatch):
        """Entering the app should open the database and bind the listener."""
        monkeypatch.setenv("LAPWATCH_DB_PATH", str(tmp_path / "lifespan.db"))
        monkeypatch.setenv("LAPWATCH_UDP_HOST", "127.0.0.1")
        monkeypatch.setenv("LAPWATCH_UDP_PORT", "0")

        with TestClient(app) as client:
            status = client.get("/api/status").json()
            health = client.get("/health").json()

        assert status["listener_running"] is True
        assert status["packets_received"] == 0
        assert health["db_path"] == str(tmp_path / "lifespan.db")

    def test_lifespan_without_listener(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LAPWATCH_DB_PATH", str(tmp_path / "lifespan.db"))
        monkeypatch.setenv("LAPWATCH_LISTENER", "0")

        with TestClient(app) as client:
            status = client.get("/api/status").json()

        assert status["listener_running"] is False


class TestOpenApiSchema:
    """Tests for the documented error responses."""

    def test_error_model_published(self, client):
        schema = client.get("/openapi.json").json()

        assert "ErrorResponse" in schema["components"]["schemas"]

    def test_error_responses_per_route(self, client):
        paths = client.get("/openapi.json").json()["paths"]

        assert {"201", "400", "500"} <= set(paths["/api/lap-times"]["post"]["responses"])
        assert {"200", "404", "500"} <= set(paths["/api/lap-times/{lap_id}"]["delete"]["responses"])
        assert "500" in paths["/api/stats"]["get"]["responses"]
