"""Tests for the Snapforge HTTP API (FastAPI TestClient over in-memory fakes)"""

import pytest
from fastapi.testclient import TestClient

from snapforge.app import MEMORY_DATABASE, Snapforge
from snapforge.errors import (
    ExternalServiceError,
    InternalError,
    OperationTimeout,
    ProjectNotFound,
    ProjectNotInitialized,
    VersionCorrupt,
    VersionNotFound,
)
from snapforge.server import app as server_app
from snapforge.server.app import api, set_app, status_for_error
from snapforge.vault.cipher import generate_key

from conftest import external_error


@pytest.fixture
def snapforge(tmp_path, orchestrator):
    """A Snapforge app whose orchestrator runs against the in-memory fakes."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        f"database: {MEMORY_DATABASE}\n"
        f"encryption_key: '{generate_key()}'\n"
        "neon:\n  api_key: test\n"
        "freestyle:\n  api_key: test\n"
    )
    app = Snapforge(str(config_file))
    app._orchestrator = orchestrator
    app._initialized = True
    set_app(app)
    yield app
    set_app(None)


@pytest.fixture
def client(snapforge):
    return TestClient(api)


def _create(client, name="demo", owner_id="owner-1"):
    resp = client.post("/api/projects", json={"name": name, "owner_id": owner_id})
    assert resp.status_code == 200, resp.text
    return resp.json()


class TestProjectRoutes:

    def test_create_and_get(self, client):
        body = _create(client)

        project = body["project"]
        assert body["success"] is True
        assert body["version_id"] == project["current_version_id"]

        resp = client.get(f"/api/projects/{project['id']}")
        assert resp.status_code == 200
        assert resp.json()["name"] == "demo"

    def test_list_by_owner(self, client):
        _create(client, owner_id="owner-1")
        _create(client, owner_id="owner-2")
        resp = client.get("/api/projects", params={"owner_id": "owner-2"})
        assert [p["owner_id"] for p in resp.json()] == ["owner-2"]

    def test_unknown_project_is_404(self, client):
        assert client.get("/api/projects/nope").status_code == 404

    def test_provider_failure_is_502(self, client, database):
        database.fail["create_database"] = external_error("neon", "create project")
        resp = client.post("/api/projects", json={"name": "demo"})
        assert resp.status_code == 502
        assert resp.json()["detail"]["error"]["service"] == "neon"

    def test_delete(self, client):
        project = _create(client)["project"]
        resp = client.delete(f"/api/projects/{project['id']}")
        assert resp.status_code == 200
        assert resp.json()["deleted"] is True
        assert client.get(f"/api/projects/{project['id']}").status_code == 404

    def test_initialize_existing_project_returns_current(self, client):
        project = _create(client)["project"]
        resp = client.post(f"/api/projects/{project['id']}/initialize")
        assert resp.json()["version_id"] == project["current_version_id"]


class TestVersionRoutes:

    def test_checkpoint_list_and_restore(self, client):
        project = _create(client)["project"]
        v0 = project["current_version_id"]

        resp = client.post(
            f"/api/projects/{project['id']}/checkpoint",
            json={"summary": "added todos", "triggering_message_id": "msg-1"},
        )
        assert resp.status_code == 200
        v1 = resp.json()["version_id"]

        listing = client.get(f"/api/projects/{project['id']}/versions").json()
        assert [v["id"] for v in listing] == [v1, v0]
        assert listing[0]["is_current"] is True
        assert listing[0]["summary"] == "added todos"

        resp = client.post(f"/api/projects/{project['id']}/versions/{v0}/restore")
        assert resp.status_code == 200
        assert client.get(f"/api/projects/{project['id']}").json()["current_version_id"] == v0

    def test_checkpoint_without_body_uses_default_summary(self, client):
        project = _create(client)["project"]
        resp = client.post(f"/api/projects/{project['id']}/checkpoint")
        assert resp.status_code == 200
        listing = client.get(f"/api/projects/{project['id']}/versions").json()
        assert listing[0]["summary"] == "Manual checkpoint"

    def test_restore_unknown_version_is_404(self, client):
        project = _create(client)["project"]
        resp = client.post(f"/api/projects/{project['id']}/versions/nope/restore")
        assert resp.status_code == 404
        assert resp.json()["detail"]["error"]["live_state"] == "unchanged"


class TestStatusMapping:

    @pytest.mark.parametrize("error,status", [
        (ProjectNotFound("p"), 404),
        (VersionNotFound("v", "p"), 404),
        (VersionCorrupt("v"), 409),
        (ProjectNotInitialized("p"), 409),
        (OperationTimeout({"op": None}, 1.0), 504),
        (ExternalServiceError("neon", "x", "boom"), 502),
        (InternalError("checkpoint", ConnectionResetError("connection lost")), 500),
    ])
    def test_status_for_error(self, error, status):
        assert status_for_error(error) == status


class TestApiKey:

    def test_open_without_configured_key(self, client, monkeypatch):
        monkeypatch.setattr(server_app, "_API_KEY", None)
        assert client.get("/api/projects").status_code == 200

    def test_rejects_missing_key(self, client, monkeypatch):
        monkeypatch.setattr(server_app, "_API_KEY", "secret")
        assert client.get("/api/projects").status_code == 401

    def test_accepts_header_or_bearer(self, client, monkeypatch):
        monkeypatch.setattr(server_app, "_API_KEY", "secret")
        assert client.get("/api/projects", headers={"X-API-Key": "secret"}).status_code == 200
        assert client.get(
            "/api/projects", headers={"Authorization": "Bearer secret"}
        ).status_code == 200

    def test_unconfigured_app_is_503(self, monkeypatch):
        monkeypatch.setattr(server_app, "_config_path", "/nonexistent/config.yaml")
        set_app(None)
        assert TestClient(api).get("/api/projects").status_code == 503
