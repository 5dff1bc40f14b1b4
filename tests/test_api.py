"""Tests for the FastAPI REST mapping."""

import pytest
from fastapi.testclient import TestClient

from homelab_dashboard.api import create_app
from homelab_dashboard.config import Settings
from homelab_dashboard.errors import StorageError
from homelab_dashboard.sampler import MetricsSampler


@pytest.fixture
def settings(db_path) -> Settings:
    return Settings(database_path=db_path, metrics_interval=60.0, cpu_sample_interval=0.01)


@pytest.fixture
def sampler(fake_probe) -> MetricsSampler:
    return MetricsSampler(probe=fake_probe, cpu_window=0.01)


@pytest.fixture
def client(settings, sampler):
    app = create_app(settings, sampler=sampler)
    with TestClient(app) as test_client:
        yield test_client


def _create(client, **overrides):
    body = {"name": "Plex", "url": "http://plex.local:32400"}
    body.update(overrides)
    response = client.post("/api/apps", json=body)
    assert response.status_code == 201, response.text
    return response.json()


class TestApplicationsEndpoints:
    def test_list_starts_empty(self, client):
        response = client.get("/api/apps")
        assert response.status_code == 200
        assert response.json() == []

    def test_create_and_fetch(self, client):
        created = _create(client, description="media", icon="plex.png")

        assert set(created) == {"id", "name", "description", "url", "icon", "created_at", "updated_at"}
        assert created["created_at"] == created["updated_at"]
        assert client.get(f"/api/apps/{created['id']}").json() == created
        assert client.get("/api/apps").json() == [created]

    def test_create_without_optional_fields(self, client):
        created = _create(client)
        assert created["description"] == ""
        assert created["icon"] == ""

    @pytest.mark.parametrize(
        "body,message",
        [
            ({"name": "", "url": "x"}, "Name is required"),
            ({"name": "Plex"}, "URL is required"),
            ({"name": "Plex", "url": "plex"}, "Invalid URL format"),
        ],
    )
    def test_create_validation_errors(self, client, body, message):
        response = client.post("/api/apps", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": message}
        assert client.get("/api/apps").json() == []

    def test_malformed_body(self, client):
        response = client.post("/api/apps", content=b"{not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body"}

    def test_wrong_field_type(self, client):
        response = client.post("/api/apps", json={"name": ["Plex"], "url": "http://plex.local"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body"}

    def test_get_unknown(self, client):
        response = client.get("/api/apps/missing")
        assert response.status_code == 404
        assert response.json() == {"error": "Application not found"}

    def test_update(self, client):
        created = _create(client)
        response = client.put(
            f"/api/apps/{created['id']}",
            json={"name": "Plex Media Server", "url": "http://plex.local:32400"},
        )

        assert response.status_code == 200
        updated = response.json()
        assert updated["id"] == created["id"]
        assert updated["created_at"] == created["created_at"]
        assert updated["updated_at"] > created["updated_at"]
        assert updated["name"] == "Plex Media Server"

    def test_update_unknown(self, client):
        response = client.put("/api/apps/missing", json={"name": "Plex", "url": "http://plex.local"})
        assert response.status_code == 404

    def test_update_invalid(self, client):
        created = _create(client)
        response = client.put(f"/api/apps/{created['id']}", json={"name": "", "url": "http://plex.local"})
        assert response.status_code == 400
        assert client.get(f"/api/apps/{created['id']}").json() == created

    def test_delete(self, client):
        created = _create(client)

        response = client.delete(f"/api/apps/{created['id']}")
        assert response.status_code == 204
        assert response.content == b""
        assert client.get(f"/api/apps/{created['id']}").status_code == 404
        assert client.delete(f"/api/apps/{created['id']}").status_code == 404

    def test_storage_failure_is_500(self, client, monkeypatch):
        registry = client.app.state.registry

        def broken():
            raise StorageError("disk full")

        monkeypatch.setattr(registry, "list", broken)
        response = client.get("/api/apps")
        assert response.status_code == 500
        assert response.json() == {"error": "Storage operation failed"}


class TestMetricsEndpoint:
    def test_returns_snapshot_document(self, client):
        response = client.get("/api/metrics")
        assert response.status_code == 200
        body = response.json()
        assert body["cpu"] == {"usage": 20.0, "cores": [{"core": 0, "usage": 10.0}, {"core": 1, "usage": 30.0}]}
        assert body["memory"] == {"total": 1000, "used": 400, "free": 600, "usedPercent": 40.0}
        assert body["disk"]["total"] == 5000
        assert body["disk"]["usedPercent"] == 20.0
        assert body["disk"]["mount"]


class TestLifespan:
    def test_sampler_started_and_stopped_with_app(self, settings, sampler):
        app = create_app(settings, sampler=sampler)
        assert sampler.state == "new"
        with TestClient(app):
            assert sampler.is_running
        assert sampler.state == "stopped"

    def test_running_sampler_is_left_alone(self, settings, sampler):
        sampler.start(60.0)
        try:
            with TestClient(create_app(settings, sampler=sampler)):
                pass
            assert sampler.is_running
        finally:
            sampler.stop()

    def test_storage_failure_aborts_startup(self, tmp_path, sampler):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(StorageError):
            create_app(Settings(database_path=str(blocker / "apps.db")), sampler=sampler)


class TestSystemEndpoints:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.text == "OK"

    def test_cors_preflight(self, client):
        response = client.options(
            "/api/apps",
            headers={"Origin": "http://dashboard.local", "Access-Control-Request-Method": "POST"},
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert "PUT" in response.headers["access-control-allow-methods"]
