"""
Integration tests for the FastAPI application
"""
import pytest
from fastapi.testclient import TestClient

from public_api_server.main_api import create_app
from tests.conftest import ACCOUNT_KEY, PREMIUM_KEY, SMM_KEY


@pytest.fixture
def client(settings, gateway):
    """Test client over the seeded gateway"""
    return TestClient(create_app(settings=settings, gateway=gateway))


def _auth(key=PREMIUM_KEY):
    return {"Authorization": f"Bearer {key}"}


class TestHealthEndpoints:
    """Test health check endpoints"""

    def test_health_check(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "storefront-public-api"
        assert "timestamp" in data

    def test_readiness_check(self, client):
        response = client.get("/api/v1/ready")

        assert response.status_code == 200
        assert response.json()["ready"] is True
        assert response.json()["checks"]["record_store"]["status"] == "healthy"

    def test_readiness_when_store_down(self, client, store, monkeypatch):
        async def down():
            return False

        monkeypatch.setattr(store, "ping", down)

        response = client.get("/api/v1/ready")

        assert response.status_code == 503
        assert response.json()["ready"] is False

    def test_metrics_count_requests(self, client):
        client.get("/functions/v1/public-api/products", headers=_auth())
        client.get("/functions/v1/public-api/products")

        data = client.get("/api/v1/metrics").json()["metrics"]["requests"]

        assert data["total"] >= 2
        assert data["by_status"]["200"] >= 1
        assert data["by_status"]["401"] == 1

    def test_version(self, client):
        data = client.get("/api/v1/version").json()

        assert data["version"] == "1.0.0"
        assert data["environment"] == "test"


class TestPublicAPI:
    """Requests routed through the gateway"""

    def test_products(self, client):
        response = client.get("/functions/v1/public-api/products", headers=_auth(),
                              params={"limit": "2"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert len(data["data"]) == 2
        assert data["total"] == 3
        # Decimal prices survive JSON encoding
        assert data["data"][0]["price"] in (9.99, "9.99")

    def test_unauthorized(self, client):
        response = client.get("/functions/v1/public-api/products")

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Missing or invalid API key"}

    def test_cors_and_security_headers(self, client):
        response = client.get("/functions/v1/public-api/categories", headers=_auth())

        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["x-frame-options"] == "DENY"
        assert "x-request-id" in response.headers

    def test_preflight(self, client):
        response = client.options("/functions/v1/public-api/products")

        assert response.status_code == 204
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "*"

    def test_forwarded_for_reaches_usage_log(self, client, store):
        client.get("/functions/v1/public-api/categories",
                   headers={**_auth(), "X-Forwarded-For": "203.0.113.7"})

        assert store.rows("api_usage_logs")[0]["ip_address"] == "203.0.113.7"

    def test_account_inventory_query(self, client):
        response = client.get("/functions/v1/public-api/account-inventory",
                              headers=_auth(ACCOUNT_KEY), params={"product_id": "prod-ml-account"})

        assert response.json()["data"] == {"available_count": 2}

    def test_smm_order(self, client, store):
        response = client.post(
            "/functions/v1/public-api/smm/order",
            headers=_auth(SMM_KEY),
            json={"service": 42, "link": "https://instagram.com/storefront", "quantity": 1000},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["charge"] == 12
        assert data["external_order_id"] == 999888
        assert len(store.rows("smm_orders")) == 1

    def test_smm_order_wrong_method(self, client):
        response = client.put("/functions/v1/public-api/smm/order", headers=_auth(SMM_KEY), json={})

        assert response.status_code == 405
        assert response.json()["error"] == "Method not allowed. Use POST."
