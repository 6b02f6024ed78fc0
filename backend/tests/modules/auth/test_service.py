import pytest
from unittest.mock import patch, MagicMock
import jwt
from datetime import datetime, timedelta, timezone

from modules.auth.service import AuthService
from modules.auth.exceptions import (
    InvalidTokenError,
    ExpiredTokenError,
    MissingTokenError,
)
from shared.exceptions import ConfigurationError


def _token(secret: str = "test-secret", **overrides) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": "user-123",
        "email": "test@example.com",
        "exp": now + timedelta(hours=1),
        "iat": now,
        "aud": "authenticated",
        "role": "authenticated",
    }
    payload.update(overrides)
    return jwt.encode(payload, secret, algorithm="HS256")


def _db_returning(rows: list[dict]) -> MagicMock:
    db = MagicMock()
    db.table.return_value.select.return_value.eq.return_value.execute.return_value.data = rows
    return db


class TestValidateToken:
    @pytest.fixture
    def service(self):
        """Create auth service with mocked dependencies."""
        with patch("modules.auth.service.get_settings") as mock_settings:
            mock_settings.return_value.supabase_jwt_secret = "test-secret"
            yield AuthService(db=MagicMock())

    @pytest.mark.asyncio
    async def test_valid_token(self, service):
        user = await service.validate_token(_token())
        assert user.id == "user-123"
        assert user.email == "test@example.com"
        assert user.role == "user"

    @pytest.mark.asyncio
    async def test_email_verified_from_confirmation_claim(self, service):
        user = await service.validate_token(_token(email_confirmed_at="2025-01-01T00:00:00Z"))
        assert user.email_verified is True

    @pytest.mark.asyncio
    async def test_expired_token(self, service):
        now = datetime.now(timezone.utc)
        token = _token(exp=now - timedelta(hours=1), iat=now - timedelta(hours=2))
        with pytest.raises(ExpiredTokenError):
            await service.validate_token(token)

    @pytest.mark.asyncio
    async def test_wrong_secret(self, service):
        with pytest.raises(InvalidTokenError):
            await service.validate_token(_token(secret="other-secret"))

    @pytest.mark.asyncio
    async def test_wrong_audience(self, service):
        with pytest.raises(InvalidTokenError):
            await service.validate_token(_token(aud="anon"))

    @pytest.mark.asyncio
    async def test_malformed_token(self, service):
        with pytest.raises(InvalidTokenError):
            await service.validate_token("not-a-valid-token")

    @pytest.mark.asyncio
    async def test_missing_email_claim(self, service):
        with pytest.raises(InvalidTokenError):
            await service.validate_token(_token(email=None))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", ["", None])
    async def test_missing_token(self, service, token):
        with pytest.raises(MissingTokenError):
            await service.validate_token(token)

    @pytest.mark.asyncio
    async def test_missing_secret_is_configuration_error(self):
        with patch("modules.auth.service.get_settings") as mock_settings:
            mock_settings.return_value.supabase_jwt_secret = ""
            service = AuthService(db=MagicMock())
        with pytest.raises(ConfigurationError):
            await service.validate_token(_token())


class TestLookups:
    @pytest.fixture(autouse=True)
    def settings_patch(self):
        with patch("modules.auth.service.get_settings"):
            yield

    def test_database_is_not_touched_on_construction(self):
        with patch("modules.auth.service.get_supabase_client") as mock_client:
            AuthService()
            mock_client.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_user_by_id(self):
        db = _db_returning([{"id": "user-123", "email": "a@example.com", "team_id": "team-1", "plan_id": None}])
        profile = await AuthService(db=db).get_user_by_id("user-123")

        assert profile.team_id == "team-1"
        assert profile.plan_id == "free"
        db.table.assert_called_with("profiles")

    @pytest.mark.asyncio
    async def test_get_user_by_email_is_case_insensitive(self):
        db = MagicMock()
        db.table.return_value.select.return_value.ilike.return_value.execute.return_value.data = []
        assert await AuthService(db=db).get_user_by_email("A_b@Example.com") is None
        db.table.return_value.select.return_value.ilike.assert_called_with("email", "A\\_b@Example.com")

    @pytest.mark.asyncio
    async def test_is_team_admin(self):
        db = _db_returning([{"id": "team-1", "name": "T", "admin_id": "user-123", "plan_id": "pro"}])
        service = AuthService(db=db)

        assert await service.is_team_admin("user-123", "team-1") is True
        assert await service.is_team_admin("user-456", "team-1") is False

    @pytest.mark.asyncio
    async def test_is_team_admin_unknown_team(self):
        assert await AuthService(db=_db_returning([])).is_team_admin("user-123", "team-x") is False

    @pytest.mark.asyncio
    async def test_is_team_member(self):
        db = _db_returning([{"id": "user-123", "email": "a@example.com", "team_id": "team-1"}])
        service = AuthService(db=db)

        assert await service.is_team_member("user-123", "team-1") is True
        assert await service.is_team_member("user-123", "team-2") is False
