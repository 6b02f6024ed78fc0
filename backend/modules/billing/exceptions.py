"""
Billing module exceptions.

These exceptions are raised by the billing module and can be caught
by API error handlers to return appropriate HTTP responses.
"""

from typing import Any, Optional

from shared.exceptions import (
    AuthorizationError,
    ConflictError,
    CreatorError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)


class BillingError(CreatorError):
    """Base exception for billing-related errors."""

    pass


class InvalidPurchaseError(ValidationError):
    """Raised when a checkout request is malformed."""

    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        super().__init__(
            f"Invalid purchase: {reason}",
            code="INVALID_PURCHASE",
            details={"reason": reason, **(details or {})},
        )


class InvalidSessionMetadataError(ValidationError):
    """Raised when a checkout session's metadata cannot be interpreted."""

    def __init__(self, reason: str, metadata: Optional[dict[str, Any]] = None):
        super().__init__(
            f"Invalid checkout session metadata: {reason}",
            code="INVALID_SESSION_METADATA",
            details={"reason": reason, "metadata": dict(metadata or {})},
        )


class PlanNotFoundError(NotFoundError):
    """Raised when a purchase references an unknown plan."""

    def __init__(self, plan_id: str):
        super().__init__(
            f"Plan not found: {plan_id}",
            code="PLAN_NOT_FOUND",
            details={"plan_id": plan_id},
        )


class PaymentProviderError(ExternalServiceError):
    """Raised when a Stripe call fails."""

    def __init__(self, message: str, stripe_error: Optional[str] = None):
        super().__init__(
            message,
            service="stripe",
            code="PAYMENT_PROVIDER_ERROR",
            details={"stripe_error": stripe_error} if stripe_error else {},
        )


class WebhookVerificationError(ValidationError):
    """Raised when Stripe webhook signature verification fails."""

    def __init__(self, reason: str = "Webhook signature verification failed"):
        super().__init__(reason, code="WEBHOOK_VERIFICATION_FAILED")


class TeamAdminRequiredError(AuthorizationError):
    """Raised when a non-admin tries to buy credits for a team."""

    def __init__(self, user_id: str, team_id: str):
        super().__init__(
            "Only the team admin can purchase credits for the team",
            code="TEAM_ADMIN_REQUIRED",
            details={"user_id": user_id, "team_id": team_id},
        )


class InvalidCouponError(ValidationError):
    def __init__(self, code: str, reason: str = "Invalid coupon code"):
        super().__init__(
            reason,
            code="INVALID_COUPON",
            details={"coupon": code},
        )


class CouponAlreadyUsedError(ConflictError):
    """Raised when a coupon code has already been redeemed."""

    def __init__(self, code: str):
        super().__init__(
            f"Coupon already used: {code}",
            code="COUPON_ALREADY_USED",
            details={"coupon": code},
        )


class CouponNotApplicableError(ValidationError):
    """Raised when a plan coupon can't apply to the account's current plan."""

    def __init__(self, code: str, current_plan: str):
        super().__init__(
            f"Coupon {code} cannot be applied to the {current_plan} plan",
            code="COUPON_NOT_APPLICABLE",
            details={"coupon": code, "current_plan": current_plan},
        )
