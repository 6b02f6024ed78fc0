"""
Billing module.

Stripe checkout, payment reconciliation (verify-payment and webhook),
the plan catalog, coupons and subscription renewals.
"""

from .interfaces import IBillingRepository, IBillingService, IPaymentGateway
from .models import (
    CheckoutRequest,
    CheckoutSession,
    CreditPurchase,
    CustomPurchase,
    PaymentVerification,
    Plan,
    PlanPurchase,
    PurchaseContext,
    PurchaseType,
    VerificationStatus,
    WebhookResult,
)
from .exceptions import (
    BillingError,
    CouponAlreadyUsedError,
    CouponNotApplicableError,
    InvalidCouponError,
    InvalidPurchaseError,
    InvalidSessionMetadataError,
    PaymentProviderError,
    PlanNotFoundError,
    TeamAdminRequiredError,
    WebhookVerificationError,
)

__all__ = [
    # Interfaces
    "IBillingRepository",
    "IBillingService",
    "IPaymentGateway",
    # Models
    "CheckoutRequest",
    "CheckoutSession",
    "CreditPurchase",
    "CustomPurchase",
    "PaymentVerification",
    "Plan",
    "PlanPurchase",
    "PurchaseContext",
    "PurchaseType",
    "VerificationStatus",
    "WebhookResult",
    # Exceptions
    "BillingError",
    "CouponAlreadyUsedError",
    "CouponNotApplicableError",
    "InvalidCouponError",
    "InvalidPurchaseError",
    "InvalidSessionMetadataError",
    "PaymentProviderError",
    "PlanNotFoundError",
    "TeamAdminRequiredError",
    "WebhookVerificationError",
]
