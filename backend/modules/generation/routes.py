"""
Generation API endpoints.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_generation_service
from api.middleware.auth import get_current_user
from modules.credits.models import AccountRef, Feature
from modules.credits.routes import get_account_ref
from shared.models import AuthenticatedUser

from .interfaces import IGenerationService
from .models import GenerationRequest, GenerationResult

router = APIRouter()


@router.post("/{feature}", response_model=GenerationResult)
async def generate(
    feature: Feature,
    request: GenerationRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    ref: AccountRef = Depends(get_account_ref),
    service: IGenerationService = Depends(get_generation_service),
) -> GenerationResult:
    """
    Run a paid generation feature.

    Returns 402 without calling the provider when the balance is below
    the feature cost. Failed generations are not charged.
    """
    return await service.generate(user, feature, request.payload, account=ref)
