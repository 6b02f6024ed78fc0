"""
Billing repository for database access.

Encapsulates all Supabase queries and data mapping for billing tables:
- plans (catalog)
- credit_purchases (one row per checkout session)
- notifications
- coupons_used

Purchase completion goes through the `complete_credit_purchase` Postgres
function, which inserts the purchase row, credits the account and appends
the history entry in one transaction. The unique checkout session id makes
it a no-op when the session was already completed.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from postgrest.exceptions import APIError
from supabase import Client

from modules.credits.exceptions import AccountNotFoundError
from modules.credits.models import (
    AccountRef,
    AccountType,
    CreditAction,
    CreditDirection,
    NewHistoryEntry,
)
from modules.credits.repository import InMemoryCreditRepository
from shared.repository import BaseRepository, is_unique_violation
from .models import (
    CouponPrize,
    CreditPurchase,
    FulfillmentOutcome,
    FulfillmentSource,
    NewPurchase,
    Notification,
    Plan,
    PurchaseStatus,
    PurchaseType,
)


class BillingRepository(BaseRepository):
    """
    Supabase-backed billing storage.

    Note: This repository does NOT perform authorization checks.
    Authorization is handled at the service layer.
    """

    # -------------------------------------------------------------------------
    # Plans
    # -------------------------------------------------------------------------

    def get_plan(self, plan_id: str) -> Optional[Plan]:
        row = self._first(self._db.table("plans").select("*").eq("id", plan_id).execute())
        return self._map_to_plan(row) if row else None

    def get_plan_by_product(self, product_id: str) -> Optional[Plan]:
        row = self._first(
            self._db.table("plans").select("*").eq("stripe_product_id", product_id).execute()
        )
        return self._map_to_plan(row) if row else None

    def list_plans(self, active_only: bool = True) -> list[Plan]:
        query = self._db.table("plans").select("*")
        if active_only:
            query = query.eq("is_active", True)
        result = query.order("price_monthly").execute()
        return [self._map_to_plan(row) for row in result.data]

    # -------------------------------------------------------------------------
    # Purchases
    # -------------------------------------------------------------------------

    def get_purchase(self, session_id: str) -> Optional[CreditPurchase]:
        row = self._first(
            self._db.table("credit_purchases")
            .select("*")
            .eq("stripe_checkout_session_id", session_id)
            .execute()
        )
        return self._map_to_purchase(row) if row else None

    def list_purchases(self, ref: AccountRef, limit: int = 50) -> list[CreditPurchase]:
        result = (
            self._db.table("credit_purchases")
            .select("*")
            .eq("account_type", ref.type.value)
            .eq("account_id", ref.id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [self._map_to_purchase(row) for row in result.data]

    def complete_purchase(self, purchase: NewPurchase) -> Optional[FulfillmentOutcome]:
        """
        Call complete_credit_purchase.

        Returns None when the function returned no row (session already completed).

        Raises:
            AccountNotFoundError: If the account to credit doesn't exist
        """
        context = purchase.context
        account = context.account
        params = {
            "p_session_id": purchase.session_id,
            "p_user_id": context.user_id,
            "p_team_id": context.team_id,
            "p_account_type": account.type.value,
            "p_account_id": account.id,
            "p_purchase_type": context.purchase.purchase_type,
            "p_plan_id": purchase.plan_id,
            "p_credits": purchase.credits,
            "p_amount_paid": str(purchase.amount_paid),
            "p_payment_intent_id": purchase.payment_intent_id,
            "p_source": purchase.source.value,
            "p_description": purchase.description,
            "p_subscription_period_end": (
                purchase.subscription_period_end.isoformat()
                if purchase.subscription_period_end
                else None
            ),
        }
        try:
            result = self._db.rpc("complete_credit_purchase", params).execute()
        except APIError as e:
            if e.code == "P0002":  # no_data_found, raised when the account row is missing
                raise AccountNotFoundError(account.type.value, account.id)
            raise

        row = self._first(result)
        if row is None:
            return None
        return FulfillmentOutcome(
            purchase_id=str(row["purchase_id"]),
            credits_added=purchase.credits,
            credits_before=row["credits_before"],
            credits_after=row["credits_after"],
        )

    # -------------------------------------------------------------------------
    # Notifications and coupons
    # -------------------------------------------------------------------------

    def create_notification(self, notification: Notification) -> None:
        self._db.table("notifications").insert(
            {
                "user_id": notification.user_id,
                "team_id": notification.team_id,
                "type": notification.type,
                "title": notification.title,
                "message": notification.message,
                "metadata": notification.metadata,
            }
        ).execute()

    def claim_coupon(
        self,
        code: str,
        user_id: str,
        team_id: Optional[str],
        prize: CouponPrize,
    ) -> bool:
        try:
            self._db.table("coupons_used").insert(
                {
                    "coupon_code": code,
                    "coupon_prefix": code[:2],
                    "user_id": user_id,
                    "team_id": team_id,
                    "prize_type": prize.type.value,
                    "prize_value": prize.value,
                }
            ).execute()
        except APIError as e:
            if is_unique_violation(e):
                return False
            raise
        return True

    # -------------------------------------------------------------------------
    # Mapping helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _map_to_plan(row: dict[str, Any]) -> Plan:
        return Plan(
            id=row["id"],
            name=row.get("name") or row["id"],
            credits=row.get("credits") or 0,
            price=Decimal(str(row.get("price_monthly") or 0)),
            stripe_price_id=row.get("stripe_price_id"),
            stripe_product_id=row.get("stripe_product_id"),
            is_active=row.get("is_active", True),
        )

    @staticmethod
    def _map_to_purchase(row: dict[str, Any]) -> CreditPurchase:
        source = row.get("source")
        return CreditPurchase(
            id=str(row["id"]),
            session_id=row["stripe_checkout_session_id"],
            user_id=str(row["user_id"]),
            team_id=row.get("team_id"),
            account=AccountRef(
                type=AccountType(row.get("account_type") or AccountType.USER.value),
                id=str(row.get("account_id") or row["user_id"]),
            ),
            purchase_type=PurchaseType(row["purchase_type"]),
            plan_id=row.get("plan_id"),
            credits_purchased=row["credits_purchased"],
            amount_paid=Decimal(str(row.get("amount_paid") or 0)),
            payment_intent_id=row.get("stripe_payment_intent_id"),
            status=PurchaseStatus(row["status"]),
            source=FulfillmentSource(source) if source else None,
            completed_at=row.get("completed_at"),
            created_at=row.get("created_at"),
        )


class InMemoryBillingRepository:
    """
    In-memory billing storage sharing accounts with an InMemoryCreditRepository.

    complete_purchase runs without awaiting, so under asyncio it is as atomic
    as the Postgres function it stands in for.
    """

    def __init__(self, credits: InMemoryCreditRepository) -> None:
        self.credits = credits
        self.plans: dict[str, Plan] = {}
        self.purchases: dict[str, CreditPurchase] = {}
        self.notifications: list[Notification] = []
        self.coupons: dict[str, dict[str, Any]] = {}

    def add_plan(self, plan: Plan) -> Plan:
        self.plans[plan.id] = plan
        return plan

    def get_plan(self, plan_id: str) -> Optional[Plan]:
        return self.plans.get(plan_id)

    def get_plan_by_product(self, product_id: str) -> Optional[Plan]:
        for plan in self.plans.values():
            if plan.stripe_product_id == product_id:
                return plan
        return None

    def list_plans(self, active_only: bool = True) -> list[Plan]:
        plans = [p for p in self.plans.values() if p.is_active or not active_only]
        return sorted(plans, key=lambda p: p.price)

    def get_purchase(self, session_id: str) -> Optional[CreditPurchase]:
        return self.purchases.get(session_id)

    def list_purchases(self, ref: AccountRef, limit: int = 50) -> list[CreditPurchase]:
        matching = [p for p in reversed(list(self.purchases.values())) if p.account == ref]
        return matching[:limit]

    def complete_purchase(self, purchase: NewPurchase) -> Optional[FulfillmentOutcome]:
        existing = self.purchases.get(purchase.session_id)
        if existing is not None and existing.status != PurchaseStatus.PENDING:
            return None

        context = purchase.context
        ref = context.account
        account = self.credits.get_account(ref)
        if account is None:
            raise AccountNotFoundError(ref.type.value, ref.id)

        now = datetime.now(timezone.utc)
        before = account.credits
        after = before + purchase.credits

        fields: dict[str, Any] = {}
        if purchase.plan_id:
            fields = {
                "plan_id": purchase.plan_id,
                "subscription_status": "active",
                "subscription_period_end": purchase.subscription_period_end,
            }
        self.credits.compare_and_set_balance(ref, before, after, fields)

        stored = CreditPurchase(
            id=existing.id if existing else str(uuid.uuid4()),
            session_id=purchase.session_id,
            user_id=context.user_id,
            team_id=context.team_id,
            account=ref,
            purchase_type=PurchaseType(context.purchase.purchase_type),
            plan_id=purchase.plan_id,
            credits_purchased=purchase.credits,
            amount_paid=purchase.amount_paid,
            payment_intent_id=purchase.payment_intent_id,
            status=PurchaseStatus.COMPLETED,
            source=purchase.source,
            completed_at=now,
            created_at=existing.created_at if existing else now,
        )
        self.purchases[purchase.session_id] = stored

        self.credits.insert_history(
            NewHistoryEntry(
                user_id=context.user_id,
                team_id=context.team_id,
                account=ref,
                action_type=CreditAction.PURCHASE,
                direction=CreditDirection.CREDIT,
                amount=purchase.credits,
                credits_before=before,
                credits_after=after,
                description=purchase.description,
                reference_id=purchase.session_id,
                metadata={"source": purchase.source.value, "purchase_id": stored.id},
            )
        )
        return FulfillmentOutcome(
            purchase_id=stored.id,
            credits_added=purchase.credits,
            credits_before=before,
            credits_after=after,
        )

    def create_notification(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def claim_coupon(
        self,
        code: str,
        user_id: str,
        team_id: Optional[str],
        prize: CouponPrize,
    ) -> bool:
        if code in self.coupons:
            return False
        self.coupons[code] = {
            "user_id": user_id,
            "team_id": team_id,
            "prize_type": prize.type.value,
            "prize_value": prize.value,
        }
        return True
