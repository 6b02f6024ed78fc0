"""
Generation module interfaces.
"""

from typing import Any, Optional, Protocol, runtime_checkable

from modules.credits.models import AccountRef, Feature
from shared.models import AuthenticatedUser

from .models import GenerationResult


@runtime_checkable
class IGenerationGateway(Protocol):
    """Client for the external generation API."""

    async def generate(self, feature: Feature, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Run one generation call.

        Raises:
            ProviderRateLimitedError: On HTTP 429
            ProviderCreditsExhaustedError: On HTTP 402
            GenerationFailedError: On any other failure
        """
        ...


@runtime_checkable
class IGenerationService(Protocol):
    async def generate(
        self,
        user: AuthenticatedUser,
        feature: Feature,
        payload: dict[str, Any],
        account: Optional[AccountRef] = None,
    ) -> GenerationResult:
        """
        Generate content and charge the feature cost on success.

        Raises:
            InsufficientCreditsError: Before calling the gateway
            GenerationError: If the gateway fails (nothing is charged)
        """
        ...
