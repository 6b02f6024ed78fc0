"""
Billing API endpoints.

Checkout, payment verification, the Stripe webhook, plans, purchase
history, coupons and the renewal job trigger.
"""

import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request

from api.dependencies import get_billing_service
from api.middleware.auth import get_current_user
from modules.credits.models import AccountRef
from modules.credits.routes import get_account_ref
from shared.config import Settings, get_settings
from shared.exceptions import AuthorizationError
from shared.models import AuthenticatedUser

from .interfaces import IBillingService
from .models import (
    CheckoutRequest,
    CheckoutSession,
    CouponRedemption,
    PaymentVerification,
    Plan,
    PurchaseListResponse,
    RedeemCouponRequest,
    RenewalReport,
    VerifyPaymentRequest,
    WebhookResult,
)

router = APIRouter()


@router.post("/checkout", response_model=CheckoutSession)
async def create_checkout(
    request: CheckoutRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: IBillingService = Depends(get_billing_service),
) -> CheckoutSession:
    """
    Start a Stripe checkout for a plan or a custom number of credits.

    Redirect the browser to the returned URL.
    """
    return await service.create_checkout_session(user, request)


@router.post("/verify-payment", response_model=PaymentVerification)
async def verify_payment(
    request: VerifyPaymentRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: IBillingService = Depends(get_billing_service),
) -> PaymentVerification:
    """
    Reconcile a checkout session after the redirect back from Stripe.

    Safe to call repeatedly; the account is credited once per session.
    """
    return await service.verify_payment(request.session_id)


@router.post("/webhook", response_model=WebhookResult)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="stripe-signature"),
    service: IBillingService = Depends(get_billing_service),
) -> WebhookResult:
    """Stripe webhook receiver. The raw body is needed for signature checks."""
    payload = await request.body()
    return await service.handle_webhook(payload, stripe_signature)


@router.get("/plans", response_model=list[Plan])
async def list_plans(
    service: IBillingService = Depends(get_billing_service),
) -> list[Plan]:
    return await service.list_plans()


@router.get("/purchases", response_model=PurchaseListResponse)
async def list_purchases(
    limit: int = Query(default=50, ge=1, le=200),
    ref: AccountRef = Depends(get_account_ref),
    service: IBillingService = Depends(get_billing_service),
) -> PurchaseListResponse:
    """Purchases credited to the caller's account or team, newest first."""
    return PurchaseListResponse(purchases=await service.list_purchases(ref, limit))


@router.post("/coupons/redeem", response_model=CouponRedemption)
async def redeem_coupon(
    request: RedeemCouponRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: IBillingService = Depends(get_billing_service),
) -> CouponRedemption:
    return await service.redeem_coupon(user, request.code)


@router.post("/renewals/run", response_model=RenewalReport)
async def run_renewals(
    x_cron_secret: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
    service: IBillingService = Depends(get_billing_service),
) -> RenewalReport:
    """
    Renew subscription credits. Called by the scheduler with X-Cron-Secret.
    """
    if not settings.cron_secret or not x_cron_secret or not hmac.compare_digest(
        x_cron_secret, settings.cron_secret
    ):
        raise AuthorizationError("Invalid cron secret", code="INVALID_CRON_SECRET")
    return await service.run_renewal_check()
