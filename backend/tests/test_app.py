from fastapi.testclient import TestClient

from app.main import app
from app.services.metadata_inference import get_inference_provider


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/v1/nothing-here")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["statusCode"] == 404


def test_validation_errors_use_error_envelope(client, auth_headers):
    response = client.get("/api/v1/videos", params={"page": "first"}, headers=auth_headers)

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Request validation failed"
    assert body["errors"][0]["loc"] == ["query", "page"]


def test_startup_checks_inference_provider_health(client, provider):
    assert provider.health_checks == 1


def test_startup_survives_an_unhealthy_provider(provider):
    provider.error = RuntimeError("quota exhausted")
    app.dependency_overrides[get_inference_provider] = lambda: provider
    try:
        with TestClient(app) as test_client:
            assert test_client.get("/health").status_code == 200
    finally:
        app.dependency_overrides.clear()

    assert provider.health_checks == 1
