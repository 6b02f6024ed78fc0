"""
Base exception classes for the Creator backend.

Each module should define its own exceptions that inherit from these bases.
The API layer maps this hierarchy to HTTP status codes.
"""

from typing import Optional, Any


class CreatorError(Exception):
    """
    Base exception for all Creator errors.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(CreatorError):
    """Resource not found."""

    pass


class ValidationError(CreatorError):
    """Input validation failed."""

    pass


class AuthenticationError(CreatorError):
    """Authentication failed (invalid or missing credentials)."""

    pass


class AuthorizationError(CreatorError):
    """Authorization failed (insufficient permissions)."""

    pass


class ConflictError(CreatorError):
    """The request conflicts with the current state of a resource."""

    pass


class ExternalServiceError(CreatorError):
    """Error communicating with an external service."""

    def __init__(
        self,
        message: str,
        service: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)
        self.service = service
        self.details["service"] = service


class ConfigurationError(CreatorError):
    """A required setting is missing or invalid."""

    def __init__(self, message: str, setting: Optional[str] = None):
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details={"setting": setting} if setting else {},
        )
