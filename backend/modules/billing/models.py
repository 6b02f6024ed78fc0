"""
Billing module data models.

Purchase intents, the plan catalog, purchase records, and the provider-side
views (checkout session, webhook event, subscription) the billing service
consumes from the payment gateway.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from modules.credits.models import AccountRef, AccountType
from .exceptions import InvalidSessionMetadataError


class PurchaseType(str, Enum):
    """What a checkout session buys."""

    PLAN = "plan"      # A catalog plan / credit package
    CUSTOM = "custom"  # An arbitrary number of credits


class PurchaseStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class FulfillmentSource(str, Enum):
    """Which path completed a purchase."""

    VERIFIER = "verify_payment"
    WEBHOOK = "webhook"


# -----------------------------------------------------------------------------
# Purchase intent (the checkout session metadata, typed)
# -----------------------------------------------------------------------------


class PlanPurchase(BaseModel):
    purchase_type: Literal["plan"] = "plan"
    plan_id: str = Field(..., min_length=1)


class CustomPurchase(BaseModel):
    purchase_type: Literal["custom"] = "custom"
    credits: int = Field(..., gt=0)


Purchase = Annotated[Union[PlanPurchase, CustomPurchase], Field(discriminator="purchase_type")]

_purchase_adapter: TypeAdapter = TypeAdapter(Purchase)

# Metadata written by older checkout sessions used "credits" + package_id
_LEGACY_PLAN_TYPES = {"credits"}


class PurchaseContext(BaseModel):
    """
    Everything needed to reconcile a checkout session after payment.

    Serialized into Stripe metadata at session creation and parsed back
    at verification / webhook time.
    """

    user_id: str = Field(..., min_length=1)
    team_id: Optional[str] = None
    account_type: AccountType = AccountType.USER
    purchase: Purchase
    return_url: str = "/credits"

    @property
    def account(self) -> AccountRef:
        if self.account_type == AccountType.TEAM:
            return AccountRef.team(self.team_id or "")
        return AccountRef.user(self.user_id)

    def to_metadata(self) -> dict[str, str]:
        """Flatten to Stripe metadata (string values only)."""
        metadata = {
            "user_id": self.user_id,
            "team_id": self.team_id or "",
            "account_type": self.account_type.value,
            "purchase_type": self.purchase.purchase_type,
            "return_url": self.return_url,
        }
        if isinstance(self.purchase, PlanPurchase):
            metadata["plan_id"] = self.purchase.plan_id
        else:
            metadata["credits"] = str(self.purchase.credits)
        return metadata

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any]) -> "PurchaseContext":
        """
        Parse Stripe metadata back into a context.

        Raises:
            InvalidSessionMetadataError: If required fields are missing or malformed
        """
        user_id = metadata.get("user_id")
        purchase_type = metadata.get("purchase_type")
        if not user_id or not purchase_type:
            raise InvalidSessionMetadataError("user_id and purchase_type are required", metadata)

        if purchase_type in _LEGACY_PLAN_TYPES:
            purchase_type = PurchaseType.PLAN.value

        raw_purchase: dict[str, Any] = {"purchase_type": purchase_type}
        if purchase_type == PurchaseType.PLAN.value:
            raw_purchase["plan_id"] = metadata.get("plan_id") or metadata.get("package_id")
        elif purchase_type == PurchaseType.CUSTOM.value:
            raw_purchase["credits"] = metadata.get("credits")

        team_id = metadata.get("team_id") or None
        account_type = metadata.get("account_type") or AccountType.USER.value

        try:
            return cls(
                user_id=user_id,
                team_id=team_id,
                account_type=AccountType(account_type),
                purchase=_purchase_adapter.validate_python(raw_purchase),
                return_url=metadata.get("return_url") or "/credits",
            )
        except (PydanticValidationError, ValueError) as e:
            raise InvalidSessionMetadataError(str(e), metadata)


# -----------------------------------------------------------------------------
# Catalog and records
# -----------------------------------------------------------------------------


class Plan(BaseModel):
    """A catalog entry mapping a plan/package to a credit grant and price."""

    id: str = Field(..., description="Plan ID (e.g. pack_basic)")
    name: str = Field(..., description="Display name")
    credits: int = Field(..., ge=0, description="Credits granted on purchase")
    price: Decimal = Field(default=Decimal("0"), description="Price in major currency units")
    stripe_price_id: Optional[str] = None
    stripe_product_id: Optional[str] = None
    is_active: bool = True


class ProductGrant(BaseModel):
    """What a Stripe product grants when no session metadata is available."""

    plan_id: str
    credits: int

    model_config = {"frozen": True}


# Stripe product -> plan mapping used by the webhook fallback path
PRODUCT_PLAN_MAP: dict[str, ProductGrant] = {
    "prod_TQFRF4g5MPxoSG": ProductGrant(plan_id="pack_basic", credits=80),
    "prod_TQFSnXcPofocWV": ProductGrant(plan_id="pack_pro", credits=160),
    "prod_TQFSDtV5XhpDH0": ProductGrant(plan_id="pack_premium", credits=320),
    "prod_TQFTk9Rh4tMH3U": ProductGrant(plan_id="pack_business", credits=640),
    "prod_TQFTH5994CZA2y": ProductGrant(plan_id="pack_enterprise", credits=1280),
}


class CreditPurchase(BaseModel):
    """
    Persisted record of a payment, keyed by checkout session id.

    The unique session id is the idempotence key for crediting.
    """

    id: str
    session_id: str
    user_id: str
    team_id: Optional[str] = None
    account: AccountRef
    purchase_type: PurchaseType
    plan_id: Optional[str] = None
    credits_purchased: int
    amount_paid: Decimal = Decimal("0")
    payment_intent_id: Optional[str] = None
    status: PurchaseStatus
    source: Optional[FulfillmentSource] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class NewPurchase(BaseModel):
    """Input to the atomic purchase completion."""

    session_id: str
    context: PurchaseContext
    credits: int = Field(..., gt=0)
    amount_paid: Decimal = Decimal("0")
    payment_intent_id: Optional[str] = None
    source: FulfillmentSource
    description: str
    subscription_period_end: Optional[datetime] = None

    @property
    def plan_id(self) -> Optional[str]:
        if isinstance(self.context.purchase, PlanPurchase):
            return self.context.purchase.plan_id
        return None


class FulfillmentOutcome(BaseModel):
    """Balances after a purchase was completed by this call."""

    purchase_id: str
    credits_added: int
    credits_before: int
    credits_after: int


class Notification(BaseModel):
    """In-app notification row."""

    user_id: str
    team_id: Optional[str] = None
    type: str
    title: str
    message: str
    metadata: dict[str, Any] = Field(default_factory=dict)


# -----------------------------------------------------------------------------
# Payment provider views
# -----------------------------------------------------------------------------


class ProviderSession(BaseModel):
    """The fields of a Stripe checkout session that reconciliation reads."""

    id: str
    url: Optional[str] = None
    payment_status: str = "unpaid"
    metadata: dict[str, Any] = Field(default_factory=dict)
    customer_id: Optional[str] = None
    customer_email: Optional[str] = None
    amount_total: Optional[int] = None  # minor units
    payment_intent_id: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    @property
    def amount_paid(self) -> Decimal:
        return Decimal(self.amount_total or 0) / 100


class ProviderEvent(BaseModel):
    """A verified webhook event."""

    id: str
    type: str
    session: Optional[ProviderSession] = None


class ProviderSubscription(BaseModel):
    id: str
    status: str
    current_period_end: datetime


# -----------------------------------------------------------------------------
# API request/response models
# -----------------------------------------------------------------------------


class CheckoutRequest(BaseModel):
    """Request to start a checkout."""

    type: PurchaseType = Field(..., description="plan or custom")
    price_id: Optional[str] = Field(None, description="Stripe price ID (plan purchases)")
    plan_id: Optional[str] = Field(None, description="Plan/package ID (plan purchases)")
    package_id: Optional[str] = Field(None, description="Alias of plan_id")
    credits: Optional[int] = Field(None, description="Credit count (custom purchases)")
    account_type: AccountType = Field(default=AccountType.USER)
    team_id: Optional[str] = Field(None, description="Team to credit (team purchases)")
    return_url: Optional[str] = Field(None, description="Path to return to after payment")


class CheckoutSession(BaseModel):
    """Returned when initiating a purchase."""

    session_id: str = Field(..., description="Stripe checkout session ID")
    url: str = Field(..., description="Checkout URL to redirect user to")


class VerifyPaymentRequest(BaseModel):
    session_id: str = Field(..., min_length=1)


class VerificationStatus(str, Enum):
    COMPLETED = "completed"
    ALREADY_PROCESSED = "already_processed"
    PENDING = "pending"


class PaymentVerification(BaseModel):
    """Result of verifying a checkout session."""

    success: bool
    status: VerificationStatus
    session_id: str
    already_processed: bool = False
    credits_added: Optional[int] = None
    new_balance: Optional[int] = None
    payment_status: Optional[str] = None
    message: str = ""


class WebhookResult(BaseModel):
    received: bool = True
    event_id: str
    event_type: str
    processed: bool = False
    message: str = ""


class RedeemCouponRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)


class CouponPrizeType(str, Enum):
    CREDITS = "credits"
    PLAN_DAYS = "plan_days"


class CouponPrize(BaseModel):
    type: CouponPrizeType
    value: int = Field(..., gt=0, description="Credits, or days of plan access")
    plan_id: Optional[str] = None
    eligible_plans: Optional[list[str]] = None
    description: str


class CouponRedemption(BaseModel):
    valid: bool = True
    code: str
    prize: CouponPrize
    new_balance: int
    plan_id: Optional[str] = None


class RenewalReport(BaseModel):
    accounts_checked: int = 0
    renewed: int = 0
    skipped: int = 0
    errors: list[dict[str, Any]] = Field(default_factory=list)


class PurchaseListResponse(BaseModel):
    purchases: list[CreditPurchase]
