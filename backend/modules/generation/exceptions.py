"""
Generation module exceptions.

Raised when the generation gateway fails. Any of these raised inside the
consumption guard means the account is not charged.
"""

from typing import Any, Optional

from shared.exceptions import ExternalServiceError


class GenerationError(ExternalServiceError):
    """Base exception for generation gateway errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, service="generation", code=code, details=details)


class ProviderRateLimitedError(GenerationError):
    """The gateway is rate limiting us (HTTP 429)."""

    def __init__(self, retry_after: Optional[str] = None):
        super().__init__(
            "Generation provider is rate limited. Try again shortly.",
            code="PROVIDER_RATE_LIMITED",
            details={"retry_after": retry_after} if retry_after else {},
        )


class ProviderCreditsExhaustedError(GenerationError):
    """The gateway account itself ran out of credits (HTTP 402)."""

    def __init__(self):
        super().__init__(
            "Generation provider credits exhausted",
            code="PROVIDER_CREDITS_EXHAUSTED",
        )


class GenerationFailedError(GenerationError):
    def __init__(self, feature: str, reason: str, status_code: Optional[int] = None):
        details: dict[str, Any] = {"feature": feature, "reason": reason}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            f"Generation failed for {feature}: {reason}",
            code="GENERATION_FAILED",
            details=details,
        )
