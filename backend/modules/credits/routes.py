"""
Credit API endpoints.

Balance, history and the public feature cost table.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_auth_service, get_credit_service
from api.middleware.auth import get_current_user
from modules.auth.exceptions import NotTeamMemberError
from modules.auth.interfaces import IAuthService
from shared.models import AuthenticatedUser

from .interfaces import ICreditService
from .models import (
    AccountRef,
    AccountType,
    CreditBalance,
    CreditHistoryPage,
    FEATURE_COSTS,
    FeatureCostResponse,
)

router = APIRouter()


async def get_account_ref(
    account_type: AccountType = Query(default=AccountType.USER),
    team_id: Optional[str] = Query(default=None),
    user: AuthenticatedUser = Depends(get_current_user),
    auth: IAuthService = Depends(get_auth_service),
) -> AccountRef:
    """
    Resolve which account a request reads.

    Defaults to the caller's own profile. Team balances are visible
    to team members only.
    """
    if account_type == AccountType.USER:
        return AccountRef.user(user.id)

    if not team_id or not await auth.is_team_member(user.id, team_id):
        raise NotTeamMemberError(user.id, team_id or "")
    return AccountRef.team(team_id)


@router.get("/balance", response_model=CreditBalance)
async def get_balance(
    ref: AccountRef = Depends(get_account_ref),
    service: ICreditService = Depends(get_credit_service),
) -> CreditBalance:
    """
    Get the current balance of the caller's account or team.
    """
    return await service.get_balance(ref)


@router.get("/history", response_model=CreditHistoryPage)
async def get_history(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    ref: AccountRef = Depends(get_account_ref),
    service: ICreditService = Depends(get_credit_service),
) -> CreditHistoryPage:
    """List credit history entries, most recent first."""
    return await service.get_history(ref, limit, offset)


@router.get("/costs", response_model=list[FeatureCostResponse])
async def get_costs() -> list[FeatureCostResponse]:
    """Credit cost of every metered feature."""
    return [
        FeatureCostResponse(feature=feature, credits=credits)
        for feature, credits in FEATURE_COSTS.items()
    ]
