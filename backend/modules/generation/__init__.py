"""
Generation module.

Paid content generation (images, captions, reviews, plans, video) proxied
to the generation gateway and metered by the credits consumption guard.
"""

from .interfaces import IGenerationGateway, IGenerationService
from .models import GenerationRequest, GenerationResult
from .exceptions import (
    GenerationError,
    GenerationFailedError,
    ProviderCreditsExhaustedError,
    ProviderRateLimitedError,
)

__all__ = [
    "IGenerationGateway",
    "IGenerationService",
    "GenerationRequest",
    "GenerationResult",
    "GenerationError",
    "GenerationFailedError",
    "ProviderCreditsExhaustedError",
    "ProviderRateLimitedError",
]
