from fastapi.testclient import TestClient

from subsku.main import app


def test_app_starts_and_stops_without_database():
    with TestClient(app) as client:
        response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_app_exposes_webhook_route():
    paths = {route.path for route in app.routes}

    assert "/api/v1/webhooks/shopify" in paths
