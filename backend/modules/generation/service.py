"""
Generation service implementation.

Every gateway call runs inside the credits consumption guard: the balance is
checked first and the feature cost is deducted only after a successful call.
"""

import logging
from typing import Any, Optional

from modules.credits.interfaces import ICreditService
from modules.credits.models import AccountRef, Feature
from shared.models import AuthenticatedUser

from .interfaces import IGenerationGateway, IGenerationService
from .models import GenerationResult

logger = logging.getLogger(__name__)


class GenerationService(IGenerationService):
    def __init__(self, credits: ICreditService, gateway: IGenerationGateway):
        self._credits = credits
        self._gateway = gateway

    async def generate(
        self,
        user: AuthenticatedUser,
        feature: Feature,
        payload: dict[str, Any],
        account: Optional[AccountRef] = None,
    ) -> GenerationResult:
        ref = account or AccountRef.user(user.id)
        logger.info(f"Generating {feature.value} for user {user.id} ({ref.type.value}/{ref.id})")

        async def call_gateway() -> dict[str, Any]:
            return await self._gateway.generate(feature, payload)

        output, charge = await self._credits.charge(
            ref,
            feature,
            call_gateway,
            actor_id=user.id,
        )

        return GenerationResult(
            feature=feature,
            output=output,
            credits_charged=charge.credits_charged,
            credits_before=charge.credits_before,
            new_balance=charge.credits_after,
            history_entry_id=charge.entry_id or None,
        )
