"""Tests for health check endpoints."""

from fastapi.testclient import TestClient

from api.app import create_app
from shared.config import Settings, get_settings


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self, client):
        """Health endpoint should return 200 with status."""
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data == {"status": "healthy", "version": "0.1.0"}

    def test_readiness_degraded_without_database(self, client):
        """Test settings configure Stripe but not Supabase or the generation gateway."""
        response = client.get("/api/ready")
        assert response.status_code == 200
        assert response.json() == {
            "status": "degraded",
            "database": "not_configured",
            "payments": "configured",
            "generation": "not_configured",
        }

    def test_readiness_ready(self):
        settings = Settings(
            _env_file=None,
            supabase_url="https://db.example.com",
            supabase_service_role_key="service-key",
            stripe_secret_key="sk_test_123",
            stripe_webhook_secret="whsec_test",
            generation_gateway_url="https://gen.example.com",
        )
        app = create_app()
        app.dependency_overrides[get_settings] = lambda: settings

        response = TestClient(app).get("/api/ready")

        assert response.json()["status"] == "ready"
