"""
Application factory smoke tests.
"""

import pytest
from fastapi.testclient import TestClient

from app.config.settings import Settings
from app.core.app_factory import create_app


@pytest.fixture
def client(tmp_path):
    settings = Settings(MEDIA_ROOT=str(tmp_path / "media"), DEBUG=False)
    return TestClient(create_app(settings))


def test_health_is_public(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_root(client):
    assert client.get("/").json()["name"] == "ARIS CRM API"


def test_protected_route_needs_bearer_token(client):
    response = client.get("/api/v1/followups")

    assert response.status_code == 401
    assert response.json() == {"error": True, "message": "Authentication required", "status_code": 401}
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_malformed_authorization_header(client):
    response = client.get("/api/v1/contacts", headers={"Authorization": "Token abc"})
    assert response.status_code == 401


def test_docs_hidden_outside_debug(client):
    assert client.get("/docs").status_code == 404
