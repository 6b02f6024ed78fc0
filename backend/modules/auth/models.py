"""
Authentication module data models.

These models define the data structures used by the auth module
and exposed to other modules through the interface.
"""

from typing import Optional
from pydantic import BaseModel, Field


class JWTPayload(BaseModel):
    """
    Decoded JWT token payload from Supabase.

    This matches the structure of Supabase Auth JWTs.
    """

    sub: str = Field(..., description="Subject (user ID)")
    email: Optional[str] = Field(None, description="User's email")
    email_confirmed_at: Optional[str] = Field(None, description="Email confirmation time")
    exp: int = Field(..., description="Expiration timestamp")
    iat: int = Field(..., description="Issued at timestamp")
    aud: str = Field(default="authenticated", description="Audience")
    role: str = Field(default="authenticated", description="User role")

    # Supabase-specific claims
    app_metadata: dict = Field(default_factory=dict)
    user_metadata: dict = Field(default_factory=dict)


class UserProfile(BaseModel):
    """
    A row of the profiles table.

    Balance fields are owned by the credits module and not exposed here.
    """

    id: str = Field(..., description="User ID (UUID)")
    email: str = Field(..., description="Email address")
    name: Optional[str] = Field(None, description="Display name")
    team_id: Optional[str] = Field(None, description="Team the user belongs to")
    plan_id: str = Field(default="free", description="Current plan")


class Team(BaseModel):
    """A row of the teams table."""

    id: str = Field(..., description="Team ID (UUID)")
    name: str = Field(..., description="Team name")
    admin_id: str = Field(..., description="User ID of the team admin")
    plan_id: str = Field(default="free", description="Current plan")
