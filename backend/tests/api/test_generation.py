"""Tests for generation endpoints."""

from modules.credits.models import AccountRef, Feature
from modules.generation.exceptions import GenerationFailedError, ProviderRateLimitedError
from tests.conftest import TEST_TEAM_ID, TEST_USER_ID

USER_REF = AccountRef.user(TEST_USER_ID)


class TestGenerate:
    def test_charges_on_success(self, client, auth_headers, generation_gateway, credit_repo):
        response = client.post(
            "/api/generate/quick_image",
            json={"payload": {"prompt": "a cat"}},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["credits_charged"] == 5
        assert data["new_balance"] == 45
        assert data["output"] == {"image_url": "https://cdn.example.com/out.png"}
        assert generation_gateway.calls == [(Feature.QUICK_IMAGE, {"prompt": "a cat"})]

    def test_insufficient_credits_is_402_without_provider_call(
        self, client, auth_headers, generation_gateway, credit_repo
    ):
        credit_repo.accounts[USER_REF] = credit_repo.accounts[USER_REF].model_copy(update={"credits": 10})

        response = client.post("/api/generate/video_generation", json={}, headers=auth_headers)

        assert response.status_code == 402
        data = response.json()
        assert data["error"] == "INSUFFICIENT_CREDITS"
        assert data["details"]["required"] == 20
        assert data["details"]["available"] == 10
        assert generation_gateway.calls == []
        assert credit_repo.accounts[USER_REF].credits == 10

    def test_provider_failure_is_not_charged(self, client, auth_headers, generation_gateway, credit_repo):
        generation_gateway.error = GenerationFailedError("quick_image", "gateway returned an error", 500)

        response = client.post("/api/generate/quick_image", json={}, headers=auth_headers)

        assert response.status_code == 502
        assert credit_repo.accounts[USER_REF].credits == 50
        assert credit_repo.history == []

    def test_rate_limited(self, client, auth_headers, generation_gateway):
        generation_gateway.error = ProviderRateLimitedError("5")

        response = client.post("/api/generate/quick_image", json={}, headers=auth_headers)

        assert response.status_code == 429
        assert response.json()["error"] == "PROVIDER_RATE_LIMITED"

    def test_team_account(self, client, auth_headers, credit_repo):
        response = client.post(
            "/api/generate/image_edit",
            params={"account_type": "team", "team_id": TEST_TEAM_ID},
            json={},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert credit_repo.accounts[AccountRef.team(TEST_TEAM_ID)].credits == 99

    def test_unknown_feature(self, client, auth_headers):
        response = client.post("/api/generate/telepathy", json={}, headers=auth_headers)
        assert response.status_code == 422

    def test_requires_auth(self, client):
        response = client.post("/api/generate/quick_image", json={})
        assert response.status_code == 401
