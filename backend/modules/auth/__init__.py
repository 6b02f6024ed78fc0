"""
Authentication module.

Handles JWT validation and profile/team membership lookups.

Public API:
- IAuthService: Interface for auth operations
- UserProfile / Team: Profile and team records
- Auth exceptions: InvalidTokenError, ExpiredTokenError, etc.
"""

from .interfaces import IAuthService
from .models import UserProfile, Team, JWTPayload
from .exceptions import (
    InvalidTokenError,
    ExpiredTokenError,
    MissingTokenError,
    NotTeamMemberError,
)

__all__ = [
    # Interface
    "IAuthService",
    # Models
    "UserProfile",
    "Team",
    "JWTPayload",
    # Exceptions
    "InvalidTokenError",
    "ExpiredTokenError",
    "MissingTokenError",
    "NotTeamMemberError",
]
