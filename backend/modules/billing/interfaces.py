"""
Billing module interfaces.

The API layer depends on IBillingService. The service itself depends on
IBillingRepository for persistence and IPaymentGateway for Stripe, so
tests can swap either out without touching the reconciliation logic.
"""

from typing import Any, Optional, Protocol, runtime_checkable

from modules.credits.models import AccountRef
from shared.models import AuthenticatedUser

from .models import (
    CheckoutRequest,
    CheckoutSession,
    CouponPrize,
    CouponRedemption,
    CreditPurchase,
    FulfillmentOutcome,
    NewPurchase,
    Notification,
    PaymentVerification,
    Plan,
    ProviderEvent,
    ProviderSession,
    ProviderSubscription,
    RenewalReport,
    WebhookResult,
)

@runtime_checkable
class IPaymentGateway(Protocol):
    """The subset of Stripe the billing flows use."""

    async def find_customer_id(self, email: str) -> Optional[str]:
        ...

    async def create_checkout_session(
        self,
        *,
        line_items: list[dict[str, Any]],
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
        customer_id: Optional[str] = None,
        customer_email: Optional[str] = None,
    ) -> ProviderSession:
        """
        Raises:
            PaymentProviderError: If Stripe rejects the request
        """
        ...

    async def retrieve_checkout_session(self, session_id: str) -> ProviderSession:
        ...

    async def get_session_product_id(self, session_id: str) -> Optional[str]:
        """Product id of the session's first line item."""
        ...

    def construct_event(self, payload: bytes, signature: str) -> ProviderEvent:
        """
        Verify a webhook signature and parse the event.

        Raises:
            WebhookVerificationError: If the signature doesn't match
        """
        ...

    async def retrieve_subscription(self, subscription_id: str) -> ProviderSubscription:
        ...

@runtime_checkable
class IBillingRepository(Protocol):
    """Persistence for plans, purchases, notifications and coupons."""

    def get_plan(self, plan_id: str) -> Optional[Plan]:
        ...

    def get_plan_by_product(self, product_id: str) -> Optional[Plan]:
        ...

    def list_plans(self, active_only: bool = True) -> list[Plan]:
        ...

    def get_purchase(self, session_id: str) -> Optional[CreditPurchase]:
        ...

    def list_purchases(self, ref: AccountRef, limit: int = 50) -> list[CreditPurchase]:
        ...

    def complete_purchase(self, purchase: NewPurchase) -> Optional[FulfillmentOutcome]:
        """
        Atomically record the purchase, credit the account and append history.

        Returns:
            The outcome if this call completed the purchase, or None if the
            session had already been completed by someone else
        """
        ...

    def create_notification(self, notification: Notification) -> None:
        ...

    def claim_coupon(
        self,
        code: str,
        user_id: str,
        team_id: Optional[str],
        prize: CouponPrize,
    ) -> bool:
        """
        Mark a coupon code as used.

        Returns:
            False if the code was already claimed
        """
        ...

@runtime_checkable
class IBillingService(Protocol):
    """
    Interface for purchases and payment reconciliation.

    Crediting is idempotent per checkout session: the verifier and the
    webhook may both run for the same payment and only one of them credits.
    """

    async def create_checkout_session(
        self,
        user: AuthenticatedUser,
        request: CheckoutRequest,
    ) -> CheckoutSession:
        """
        Start a Stripe checkout for a plan or a custom credit amount.

        Raises:
            InvalidPurchaseError: If the request is malformed (no Stripe call is made)
            TeamAdminRequiredError: If buying for a team the user doesn't administer
            PaymentProviderError: If Stripe fails
        """
        ...

    async def verify_payment(self, session_id: str) -> PaymentVerification:
        """
        Reconcile a session after the client returns from checkout.

        Raises:
            InvalidSessionMetadataError: If the session can't be interpreted
            PlanNotFoundError: If a plan purchase references an unknown plan
        """
        ...

    async def handle_webhook(self, payload: bytes, signature: Optional[str]) -> WebhookResult:
        """
        Process a Stripe webhook delivery.

        Raises:
            WebhookVerificationError: If the delivery is unsigned or forged
        """
        ...

    async def list_plans(self) -> list[Plan]:
        ...

    async def list_purchases(self, ref: AccountRef, limit: int = 50) -> list[CreditPurchase]:
        ...

    async def redeem_coupon(self, user: AuthenticatedUser, code: str) -> CouponRedemption:
        """
        Raises:
            InvalidCouponError: If the code fails format/checksum validation
            CouponAlreadyUsedError: If the code was redeemed before
            CouponNotApplicableError: If a plan coupon doesn't fit the current plan
        """
        ...

    async def run_renewal_check(self) -> RenewalReport:
        """Renew credits for subscriptions whose Stripe period has rolled over."""
        ...
