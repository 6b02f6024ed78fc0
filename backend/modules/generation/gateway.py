"""
HTTP client for the generation gateway.
"""

import logging
from typing import Any

import httpx

from modules.credits.models import Feature
from shared.exceptions import ConfigurationError

from .exceptions import (
    GenerationFailedError,
    ProviderCreditsExhaustedError,
    ProviderRateLimitedError,
)

logger = logging.getLogger(__name__)


class HttpGenerationGateway:
    """
    POSTs `{base_url}/{feature}` with the request payload as JSON.

    One short-lived AsyncClient per call.
    """

    def __init__(self, base_url: str, api_key: str = "", timeout: float = 120.0):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout

    async def generate(self, feature: Feature, payload: dict[str, Any]) -> dict[str, Any]:
        if not self._base_url:
            raise ConfigurationError("Generation gateway URL is not configured", "generation_gateway_url")

        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        url = f"{self._base_url}/{feature.value}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Generation request for {feature.value} failed: {e}")
            raise GenerationFailedError(feature.value, str(e) or e.__class__.__name__)

        if response.status_code == 429:
            raise ProviderRateLimitedError(response.headers.get("retry-after"))
        if response.status_code == 402:
            raise ProviderCreditsExhaustedError()
        if response.is_error:
            logger.error(
                f"Generation gateway returned {response.status_code} for {feature.value}: "
                f"{response.text[:500]}"
            )
            raise GenerationFailedError(
                feature.value,
                "gateway returned an error",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            raise GenerationFailedError(feature.value, "gateway returned invalid JSON")

        return data if isinstance(data, dict) else {"result": data}
