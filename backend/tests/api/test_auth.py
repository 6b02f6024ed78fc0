"""
Tests for JWT authentication on protected endpoints.
"""

from tests.conftest import TEST_USER_ID, create_test_token


class TestAuthentication:
    def test_missing_token(self, client):
        response = client.get("/api/credits/balance")

        assert response.status_code == 401
        assert response.json()["error"] == "MISSING_TOKEN"
        assert response.headers["www-authenticate"] == "Bearer"

    def test_expired_token(self, client):
        token = create_test_token(expired=True)
        response = client.get("/api/credits/balance", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["error"] == "TOKEN_EXPIRED"

    def test_wrong_secret(self, client):
        token = create_test_token(secret="not-the-secret")
        response = client.get("/api/credits/balance", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["error"] == "INVALID_TOKEN"

    def test_malformed_token(self, client):
        response = client.get("/api/credits/balance", headers={"Authorization": "Bearer not.a.jwt"})
        assert response.status_code == 401

    def test_valid_token(self, client, auth_headers):
        response = client.get("/api/credits/balance", headers=auth_headers)
        assert response.status_code == 200


class TestCurrentUser:
    def test_me(self, client, auth_headers):
        response = client.get("/api/users/me", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == TEST_USER_ID
        assert data["email"] == "test@example.com"
        assert data["email_verified"] is True
        assert data["role"] == "user"
        assert data["team_id"] == "team-1"
        assert data["is_team_admin"] is True

    def test_me_without_profile(self, client):
        token = create_test_token(user_id="no-profile", email="new@example.com")
        response = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})

        data = response.json()
        assert data["team_id"] is None
        assert data["plan_id"] == "free"
        assert data["is_team_admin"] is False
