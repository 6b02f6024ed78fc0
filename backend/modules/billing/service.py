"""
Billing service implementation.

Checkout creation, payment reconciliation (verify-payment and webhook),
coupon redemption and subscription renewals.

Both reconciliation paths end in `_fulfil`, which hands the purchase to the
repository's atomic completion. The checkout session id is the idempotence
key, so a verifier call and a webhook delivery racing on the same session
credit the account once.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from postgrest.exceptions import APIError

from modules.auth.interfaces import IAuthService
from modules.credits.interfaces import ICreditService
from modules.credits.models import Account, AccountRef, AccountType, CreditAction, CreditHistoryEntry
from shared.config import Settings
from shared.exceptions import ConfigurationError, CreatorError
from shared.models import AuthenticatedUser

from .coupons import parse_coupon
from .exceptions import (
    CouponAlreadyUsedError,
    CouponNotApplicableError,
    InvalidPurchaseError,
    InvalidSessionMetadataError,
    PlanNotFoundError,
    TeamAdminRequiredError,
    WebhookVerificationError,
)
from .interfaces import IBillingRepository, IBillingService, IPaymentGateway
from .models import (
    PRODUCT_PLAN_MAP,
    CheckoutRequest,
    CheckoutSession,
    CouponPrizeType,
    CouponRedemption,
    CreditPurchase,
    CustomPurchase,
    FulfillmentOutcome,
    FulfillmentSource,
    NewPurchase,
    Notification,
    PaymentVerification,
    Plan,
    PlanPurchase,
    ProviderSession,
    PurchaseContext,
    PurchaseStatus,
    PurchaseType,
    RenewalReport,
    VerificationStatus,
    WebhookResult,
)

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


def renewal_balance(current: int, plan_credits: int) -> int:
    """
    Balance after a subscription renewal.

    Unused credits roll over up to twice the plan allowance; an account
    already at or above that cap is reset to one allowance.
    """
    cap = plan_credits * 2
    if current >= cap:
        return plan_credits
    return min(current + plan_credits, cap)


class BillingService(IBillingService):
    """
    Billing service backed by Stripe and an IBillingRepository.

    Credits and debits for coupons/renewals go through ICreditService;
    purchases go through the repository's atomic completion.
    """

    def __init__(
        self,
        repository: IBillingRepository,
        credits: ICreditService,
        gateway: IPaymentGateway,
        auth: IAuthService,
        settings: Settings,
    ):
        self._repo = repository
        self._credits = credits
        self._gateway = gateway
        self._auth = auth
        self._settings = settings

    # -------------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------------

    async def create_checkout_session(
        self,
        user: AuthenticatedUser,
        request: CheckoutRequest,
    ) -> CheckoutSession:
        context = await self._build_context(user, request)
        line_items = self._line_items(request, context)

        logger.info(
            f"Creating checkout for user {user.id}: {context.purchase.purchase_type} "
            f"({context.account.type.value}/{context.account.id})"
        )

        customer_id = await self._gateway.find_customer_id(user.email)
        frontend = self._settings.frontend_url.rstrip("/")
        session = await self._gateway.create_checkout_session(
            line_items=line_items,
            metadata=context.to_metadata(),
            success_url=f"{frontend}{context.return_url}?success=true&session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{frontend}/credits?canceled=true",
            customer_id=customer_id,
            customer_email=None if customer_id else user.email,
        )

        if not session.url:
            raise InvalidPurchaseError("Payment provider returned no checkout URL")

        logger.info(f"Checkout session {session.id} created for user {user.id}")
        return CheckoutSession(session_id=session.id, url=session.url)

    async def _build_context(
        self,
        user: AuthenticatedUser,
        request: CheckoutRequest,
    ) -> PurchaseContext:
        """Validate the request and build the metadata context. No Stripe calls."""
        if request.type == PurchaseType.PLAN:
            plan_id = request.plan_id or request.package_id
            if not plan_id or not request.price_id:
                raise InvalidPurchaseError("plan purchases require price_id and plan_id")
            plan = self._repo.get_plan(plan_id)
            if plan is None:
                raise PlanNotFoundError(plan_id)
            if plan.stripe_price_id and plan.stripe_price_id != request.price_id:
                raise InvalidPurchaseError(
                    "price_id does not match the plan",
                    {"plan_id": plan_id, "price_id": request.price_id},
                )
            purchase: Any = PlanPurchase(plan_id=plan_id)
        else:
            minimum = self._settings.min_custom_credits
            if request.credits is None or request.credits < minimum:
                raise InvalidPurchaseError(
                    f"custom purchases require at least {minimum} credits",
                    {"credits": request.credits, "minimum": minimum},
                )
            purchase = CustomPurchase(credits=request.credits)

        return_url = request.return_url or "/credits"
        if not return_url.startswith("/") or return_url.startswith("//"):
            raise InvalidPurchaseError("return_url must be a relative path")

        profile = await self._auth.get_user_by_id(user.id)
        team_id = profile.team_id if profile else None

        if request.account_type == AccountType.TEAM:
            team_id = request.team_id or team_id
            if not team_id:
                raise InvalidPurchaseError("team purchases require team_id")
            if not await self._auth.is_team_admin(user.id, team_id):
                raise TeamAdminRequiredError(user.id, team_id)

        return PurchaseContext(
            user_id=user.id,
            team_id=team_id,
            account_type=request.account_type,
            purchase=purchase,
            return_url=return_url,
        )

    def _line_items(self, request: CheckoutRequest, context: PurchaseContext) -> list[dict[str, Any]]:
        purchase = context.purchase
        if isinstance(purchase, PlanPurchase):
            return [{"price": request.price_id, "quantity": 1}]

        return [
            {
                "price_data": {
                    "currency": self._settings.stripe_currency,
                    "product_data": {
                        "name": f"{purchase.credits} Creator credits",
                        "description": f"Custom purchase of {purchase.credits} credits",
                    },
                    "unit_amount": purchase.credits * self._settings.custom_credit_unit_price,
                },
                "quantity": 1,
            }
        ]

    # -------------------------------------------------------------------------
    # Payment verification
    # -------------------------------------------------------------------------

    async def verify_payment(self, session_id: str) -> PaymentVerification:
        existing = self._repo.get_purchase(session_id)
        if existing and existing.status == PurchaseStatus.COMPLETED:
            logger.info(f"Session {session_id} already processed")
            return self._already_processed(session_id, existing)

        session = await self._gateway.retrieve_checkout_session(session_id)
        if not session.is_paid:
            logger.info(f"Session {session_id} not paid yet ({session.payment_status})")
            return PaymentVerification(
                success=False,
                status=VerificationStatus.PENDING,
                session_id=session_id,
                payment_status=session.payment_status,
                message="Payment not completed yet",
            )

        context = PurchaseContext.from_metadata(session.metadata)
        credits, plan = self._resolve_credits(context)

        outcome = await self._fulfil(context, credits, session, FulfillmentSource.VERIFIER, plan)
        if outcome is None:
            logger.info(f"Session {session_id} was completed concurrently")
            return self._already_processed(session_id, self._repo.get_purchase(session_id))

        return PaymentVerification(
            success=True,
            status=VerificationStatus.COMPLETED,
            session_id=session_id,
            credits_added=outcome.credits_added,
            new_balance=outcome.credits_after,
            payment_status=session.payment_status,
            message=f"{outcome.credits_added} credits added",
        )

    @staticmethod
    def _already_processed(
        session_id: str,
        purchase: Optional[CreditPurchase],
    ) -> PaymentVerification:
        return PaymentVerification(
            success=True,
            status=VerificationStatus.ALREADY_PROCESSED,
            session_id=session_id,
            already_processed=True,
            credits_added=purchase.credits_purchased if purchase else None,
            payment_status="paid",
            message="Payment already processed",
        )

    def _resolve_credits(self, context: PurchaseContext) -> tuple[int, Optional[Plan]]:
        purchase = context.purchase
        if isinstance(purchase, CustomPurchase):
            return purchase.credits, None

        plan = self._repo.get_plan(purchase.plan_id)
        if plan is None:
            raise PlanNotFoundError(purchase.plan_id)
        if plan.credits <= 0:
            raise InvalidSessionMetadataError(f"plan {plan.id} grants no credits")
        return plan.credits, plan

    # -------------------------------------------------------------------------
    # Webhook
    # -------------------------------------------------------------------------

    async def handle_webhook(self, payload: bytes, signature: Optional[str]) -> WebhookResult:
        if not self._settings.stripe_webhook_secret:
            raise ConfigurationError("Stripe webhook secret is not configured", "stripe_webhook_secret")
        if not signature:
            raise WebhookVerificationError("Missing Stripe-Signature header")

        event = self._gateway.construct_event(payload, signature)
        logger.info(f"Webhook event received: {event.type} ({event.id})")

        result = WebhookResult(event_id=event.id, event_type=event.type)
        if event.type != CHECKOUT_COMPLETED or event.session is None:
            result.message = "Event ignored"
            return result

        session = event.session
        if not session.is_paid:
            result.message = f"Session not paid ({session.payment_status})"
            return result

        existing = self._repo.get_purchase(session.id)
        if existing and existing.status == PurchaseStatus.COMPLETED:
            logger.info(f"Webhook: session {session.id} already processed")
            result.message = "Already processed"
            return result

        resolved = await self._context_for_webhook(session)
        if resolved is None:
            result.message = "Could not resolve purchase"
            return result
        context, credits, plan = resolved

        outcome = await self._fulfil(context, credits, session, FulfillmentSource.WEBHOOK, plan)
        if outcome is None:
            result.message = "Already processed"
            return result

        result.processed = True
        result.message = f"{outcome.credits_added} credits added"
        return result

    async def _context_for_webhook(
        self,
        session: ProviderSession,
    ) -> Optional[tuple[PurchaseContext, int, Optional[Plan]]]:
        """
        Work out who paid for what.

        Sessions created by this service carry full metadata. Payment links and
        older sessions don't, so fall back to the customer email and the
        purchased product.
        """
        if session.metadata.get("user_id"):
            context = PurchaseContext.from_metadata(session.metadata)
            credits, plan = self._resolve_credits(context)
            return context, credits, plan

        if not session.customer_email:
            logger.error(f"Webhook: paid session {session.id} has no metadata and no customer email")
            return None

        account = await self._credits.find_user_by_email(session.customer_email)
        if account is None:
            logger.error(f"Webhook: no user for {session.customer_email} (session {session.id})")
            return None

        product_id = await self._gateway.get_session_product_id(session.id)
        grant = PRODUCT_PLAN_MAP.get(product_id or "")
        if grant is not None:
            plan_id, credits = grant.plan_id, grant.credits
        else:
            plan = self._repo.get_plan_by_product(product_id) if product_id else None
            if plan is None or plan.credits <= 0:
                logger.error(f"Webhook: unknown product {product_id} (session {session.id})")
                return None
            plan_id, credits = plan.id, plan.credits

        context = PurchaseContext(
            user_id=account.ref.id,
            team_id=account.team_id,
            account_type=AccountType.USER,
            purchase=PlanPurchase(plan_id=plan_id),
        )
        return context, credits, self._repo.get_plan(plan_id)

    # -------------------------------------------------------------------------
    # Fulfilment
    # -------------------------------------------------------------------------

    async def _fulfil(
        self,
        context: PurchaseContext,
        credits: int,
        session: ProviderSession,
        source: FulfillmentSource,
        plan: Optional[Plan] = None,
    ) -> Optional[FulfillmentOutcome]:
        """Complete the purchase atomically, then notify. Returns None if already completed."""
        if plan is not None:
            description = f"Purchase: {plan.name} ({credits} credits)"
            period_end = datetime.now(timezone.utc) + timedelta(
                days=self._settings.subscription_period_days
            )
        else:
            description = f"Purchase: {credits} credits"
            period_end = None

        outcome = self._repo.complete_purchase(
            NewPurchase(
                session_id=session.id,
                context=context,
                credits=credits,
                amount_paid=session.amount_paid,
                payment_intent_id=session.payment_intent_id,
                source=source,
                description=description,
                subscription_period_end=period_end,
            )
        )
        if outcome is None:
            return None

        account = context.account
        logger.info(
            f"Purchase {session.id} completed via {source.value}: "
            f"{account.type.value}/{account.id} {outcome.credits_before} -> {outcome.credits_after}"
        )
        self._notify_purchase(context, outcome, session.id)
        return outcome

    def _notify_purchase(
        self,
        context: PurchaseContext,
        outcome: FulfillmentOutcome,
        session_id: str,
    ) -> None:
        try:
            self._repo.create_notification(
                Notification(
                    user_id=context.user_id,
                    team_id=context.team_id,
                    type="payment_success",
                    title="Payment confirmed",
                    message=f"{outcome.credits_added} credits were added to your account.",
                    metadata={
                        "session_id": session_id,
                        "credits_added": outcome.credits_added,
                        "new_balance": outcome.credits_after,
                    },
                )
            )
        except APIError as e:
            logger.warning(f"Failed to create payment notification for {session_id}: {e}")

    # -------------------------------------------------------------------------
    # Catalog and purchase history
    # -------------------------------------------------------------------------

    async def list_plans(self) -> list[Plan]:
        return self._repo.list_plans(active_only=True)

    async def list_purchases(self, ref: AccountRef, limit: int = 50) -> list[CreditPurchase]:
        return self._repo.list_purchases(ref, limit)

    # -------------------------------------------------------------------------
    # Coupons
    # -------------------------------------------------------------------------

    async def redeem_coupon(self, user: AuthenticatedUser, code: str) -> CouponRedemption:
        normalized, prize = parse_coupon(code)
        ref = AccountRef.user(user.id)
        account = await self._credits.get_account(ref)

        plan: Optional[Plan] = None
        if prize.type == CouponPrizeType.PLAN_DAYS:
            if account.plan_id not in (prize.eligible_plans or []):
                raise CouponNotApplicableError(normalized, account.plan_id)
            plan = self._repo.get_plan(prize.plan_id or "")
            if plan is None:
                raise PlanNotFoundError(prize.plan_id or "")

        # Claim before applying so a code can never be applied twice
        if not self._repo.claim_coupon(normalized, user.id, account.team_id, prize):
            raise CouponAlreadyUsedError(normalized)
        logger.info(f"Coupon {normalized} claimed by user {user.id}")

        metadata = {"coupon": normalized, "prize_type": prize.type.value}
        if plan is None:
            entry = await self._credits.add_credits(
                ref,
                prize.value,
                CreditAction.COUPON,
                description=f"Coupon {normalized}: {prize.description}",
                actor_id=user.id,
                reference_id=normalized,
                metadata=metadata,
            )
        else:
            fields = {
                "plan_id": plan.id,
                "subscription_status": "active",
                "subscription_period_end": datetime.now(timezone.utc) + timedelta(days=prize.value),
            }
            description = f"Coupon {normalized}: {prize.description}"
            if plan.credits > 0:
                entry = await self._credits.add_credits(
                    ref,
                    plan.credits,
                    CreditAction.COUPON,
                    description=description,
                    actor_id=user.id,
                    reference_id=normalized,
                    metadata=metadata,
                    fields=fields,
                )
            else:
                entry = await self._credits.update_balance(
                    ref,
                    lambda current: current,
                    CreditAction.COUPON,
                    description=description,
                    actor_id=user.id,
                    metadata=metadata,
                    fields=fields,
                )

        logger.info(f"Coupon {normalized} applied for user {user.id}: {prize.description}")
        return CouponRedemption(
            code=normalized,
            prize=prize,
            new_balance=entry.credits_after,
            plan_id=plan.id if plan else None,
        )

    # -------------------------------------------------------------------------
    # Renewals
    # -------------------------------------------------------------------------

    async def run_renewal_check(self) -> RenewalReport:
        accounts = await self._credits.list_subscribed_accounts()
        report = RenewalReport(accounts_checked=len(accounts))
        logger.info(f"Renewal check: {len(accounts)} subscribed accounts")

        for account in accounts:
            try:
                renewed = await self._renew(account)
            except (CreatorError, APIError) as e:
                logger.error(f"Renewal failed for {account.ref.type.value}/{account.ref.id}: {e}")
                report.errors.append(
                    {
                        "account_type": account.ref.type.value,
                        "account_id": account.ref.id,
                        "error": str(e),
                    }
                )
                continue

            if renewed:
                report.renewed += 1
            else:
                report.skipped += 1

        logger.info(
            f"Renewal check done: {report.renewed} renewed, {report.skipped} skipped, "
            f"{len(report.errors)} errors"
        )
        return report

    async def _renew(self, account: Account) -> bool:
        subscription = await self._gateway.retrieve_subscription(account.stripe_subscription_id or "")
        if subscription.status != "active":
            return False

        stored_end = account.subscription_period_end
        if stored_end is not None and stored_end.tzinfo is None:
            stored_end = stored_end.replace(tzinfo=timezone.utc)
        if stored_end is not None and subscription.current_period_end <= stored_end:
            return False

        plan = self._repo.get_plan(account.plan_id)
        if plan is None:
            raise PlanNotFoundError(account.plan_id)

        entry = await self._credits.update_balance(
            account.ref,
            lambda current: renewal_balance(current, plan.credits),
            CreditAction.RENEWAL,
            description=f"Renewal: {plan.name}",
            metadata={"subscription_id": subscription.id, "plan_id": plan.id},
            fields={
                "subscription_status": subscription.status,
                "subscription_period_end": subscription.current_period_end,
            },
        )
        logger.info(
            f"Renewed {account.ref.type.value}/{account.ref.id} on {plan.id}: "
            f"{entry.credits_before} -> {entry.credits_after}"
        )
        self._notify_renewal(account, entry, subscription.current_period_end)
        return True

    def _notify_renewal(
        self,
        account: Account,
        entry: CreditHistoryEntry,
        period_end: datetime,
    ) -> None:
        if entry.user_id is None:
            logger.info(
                f"No user to notify about renewal of {account.ref.type.value}/{account.ref.id}"
            )
            return

        try:
            self._repo.create_notification(
                Notification(
                    user_id=entry.user_id,
                    team_id=entry.team_id,
                    type="credits_reset",
                    title="Credits renewed",
                    message=f"Your credits were renewed. New balance: {entry.credits_after} credits.",
                    metadata={
                        "credits_added": entry.credits_after - entry.credits_before,
                        "new_balance": entry.credits_after,
                        "period_end": period_end.isoformat(),
                    },
                )
            )
        except APIError as e:
            logger.warning(
                f"Failed to create renewal notification for {account.ref.type.value}/{account.ref.id}: {e}"
            )
