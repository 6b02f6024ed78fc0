"""
User-related endpoints.

Provides endpoints for user profile and account management.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr

from modules.auth.interfaces import IAuthService
from shared.models import AuthenticatedUser
from ..dependencies import get_auth_service
from ..middleware.auth import get_current_user

router = APIRouter()


class UserProfileResponse(BaseModel):
    """User profile response model."""

    id: str
    email: EmailStr
    email_verified: bool
    role: str
    name: Optional[str] = None
    team_id: Optional[str] = None
    plan_id: str = "free"
    is_team_admin: bool = False


@router.get("/me", response_model=UserProfileResponse)
async def get_current_user_profile(
    user: AuthenticatedUser = Depends(get_current_user),
    auth: IAuthService = Depends(get_auth_service),
) -> UserProfileResponse:
    """
    Get the current user's profile, team and plan.

    Requires authentication.
    """
    profile = await auth.get_user_by_id(user.id)
    team_id = profile.team_id if profile else None
    return UserProfileResponse(
        id=user.id,
        email=user.email,
        email_verified=user.email_verified,
        role=user.role,
        name=profile.name if profile else None,
        team_id=team_id,
        plan_id=profile.plan_id if profile else "free",
        is_team_admin=bool(team_id) and await auth.is_team_admin(user.id, team_id),
    )
