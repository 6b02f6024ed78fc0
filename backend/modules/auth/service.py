"""
Authentication service implementation.

Validates Supabase JWT tokens and answers profile/team membership
questions from the Supabase database.
"""

from datetime import datetime, timezone
from typing import Any, Optional
import jwt

from shared.config import get_settings
from shared.database import get_supabase_client
from shared.exceptions import ConfigurationError
from shared.models import AuthenticatedUser
from shared.repository import escape_like

from .interfaces import IAuthService
from .models import JWTPayload, Team, UserProfile
from .exceptions import (
    InvalidTokenError,
    ExpiredTokenError,
    MissingTokenError,
)


class AuthService(IAuthService):
    """
    Implementation of the authentication service.

    Uses Supabase JWT tokens for authentication and the Supabase
    profiles/teams tables for membership lookups.
    """

    def __init__(self, db: Any = None):
        self._settings = get_settings()
        self._client = db

    @property
    def _db(self) -> Any:
        # Token validation needs no database, so connect on first lookup
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    async def validate_token(self, token: str) -> AuthenticatedUser:
        """
        Validate a JWT token and return the authenticated user.

        This implementation validates Supabase JWTs using the JWT secret.
        """
        if not token:
            raise MissingTokenError()
        if not self._settings.supabase_jwt_secret:
            raise ConfigurationError("Supabase JWT secret is not configured", "supabase_jwt_secret")

        try:
            payload = jwt.decode(
                token,
                self._settings.supabase_jwt_secret,
                algorithms=["HS256"],
                audience="authenticated",
            )

            jwt_payload = JWTPayload(**payload)
            if not jwt_payload.email:
                raise InvalidTokenError("Token has no email claim")

            return AuthenticatedUser(
                id=jwt_payload.sub,
                email=jwt_payload.email,
                email_verified=jwt_payload.email_confirmed_at is not None,
                last_sign_in=datetime.fromtimestamp(jwt_payload.iat, tz=timezone.utc),
                role=jwt_payload.role if jwt_payload.role != "authenticated" else "user",
            )

        except jwt.ExpiredSignatureError:
            raise ExpiredTokenError()
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(str(e))

    async def get_user_by_id(self, user_id: str) -> Optional[UserProfile]:
        result = self._db.table("profiles").select(
            "id, email, name, team_id, plan_id"
        ).eq("id", user_id).execute()

        if not result.data:
            return None
        return self._map_to_profile(result.data[0])

    async def get_user_by_email(self, email: str) -> Optional[UserProfile]:
        result = self._db.table("profiles").select(
            "id, email, name, team_id, plan_id"
        ).ilike("email", escape_like(email)).execute()

        if not result.data:
            return None
        return self._map_to_profile(result.data[0])

    async def get_team(self, team_id: str) -> Optional[Team]:
        result = self._db.table("teams").select(
            "id, name, admin_id, plan_id"
        ).eq("id", team_id).execute()

        if not result.data:
            return None
        row = result.data[0]
        return Team(
            id=str(row["id"]),
            name=row["name"],
            admin_id=str(row["admin_id"]),
            plan_id=row.get("plan_id") or "free",
        )

    async def is_team_member(self, user_id: str, team_id: str) -> bool:
        profile = await self.get_user_by_id(user_id)
        return profile is not None and profile.team_id == team_id

    async def is_team_admin(self, user_id: str, team_id: str) -> bool:
        team = await self.get_team(team_id)
        return team is not None and team.admin_id == user_id

    @staticmethod
    def _map_to_profile(row: dict[str, Any]) -> UserProfile:
        return UserProfile(
            id=str(row["id"]),
            email=row.get("email") or "",
            name=row.get("name"),
            team_id=row.get("team_id"),
            plan_id=row.get("plan_id") or "free",
        )
