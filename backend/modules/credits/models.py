"""
Credits module data models.

These models define the ledger (account balances), the append-only credit
history, and the per-feature cost table used by the consumption guard.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class AccountType(str, Enum):
    """Which record holds the balance."""

    USER = "user"  # profiles.credits
    TEAM = "team"  # teams.credits


class AccountRef(BaseModel):
    """Reference to a credit-holding account."""

    type: AccountType = Field(default=AccountType.USER, description="Account type")
    id: str = Field(..., description="Profile or team ID")

    model_config = {"frozen": True}

    @classmethod
    def user(cls, user_id: str) -> "AccountRef":
        return cls(type=AccountType.USER, id=user_id)

    @classmethod
    def team(cls, team_id: str) -> "AccountRef":
        return cls(type=AccountType.TEAM, id=team_id)


class Account(BaseModel):
    """
    A credit-holding account (user profile or team).

    Only ledger operations mutate `credits`.
    """

    ref: AccountRef
    credits: int = Field(default=0, ge=0, description="Current credit balance")
    plan_id: str = Field(default="free", description="Current plan")
    team_id: Optional[str] = Field(None, description="Team of a user account")
    email: Optional[str] = Field(None, description="Contact email (user accounts)")
    subscription_status: Optional[str] = None
    subscription_period_end: Optional[datetime] = None
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None


class CreditAction(str, Enum):
    """Why a balance changed."""

    PURCHASE = "purchase"        # Checkout session paid
    CONSUMPTION = "consumption"  # Paid feature used
    COUPON = "coupon"            # Coupon redeemed
    RENEWAL = "renewal"          # Subscription period renewed
    RESET = "reset"              # Balance reset by policy
    REFUND = "refund"            # Credits returned
    ADJUSTMENT = "adjustment"    # Manual adjustment by an admin


class CreditDirection(str, Enum):
    """Direction of a balance change. Amounts are always positive."""

    CREDIT = "credit"
    DEBIT = "debit"


class CreditHistoryEntry(BaseModel):
    """
    Immutable record of one balance mutation.

    Append-only: created by every ledger mutation, never updated or deleted.
    """

    id: str = Field(..., description="Entry ID (UUID)")
    user_id: Optional[str] = Field(None, description="Acting user")
    team_id: Optional[str] = Field(None, description="Team context")
    account: AccountRef = Field(..., description="Account whose balance changed")
    action_type: CreditAction
    direction: CreditDirection
    amount: int = Field(..., ge=0, description="Size of the change, always positive")
    credits_before: int
    credits_after: int
    description: str = ""
    reference_id: Optional[str] = Field(
        None,
        description="External reference (checkout session, coupon code, feature run)",
    )
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @property
    def signed_amount(self) -> int:
        """Amount with sign derived from direction (+credit, -debit)."""
        return self.amount if self.direction == CreditDirection.CREDIT else -self.amount


class NewHistoryEntry(BaseModel):
    """History entry before persistence assigns id and timestamp."""

    user_id: Optional[str] = None
    team_id: Optional[str] = None
    account: AccountRef
    action_type: CreditAction
    direction: CreditDirection
    amount: int = Field(..., ge=0)
    credits_before: int
    credits_after: int
    description: str = ""
    reference_id: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class Feature(str, Enum):
    """Credit-metered features."""

    QUICK_IMAGE = "quick_image"
    COMPLETE_IMAGE = "complete_image"
    IMAGE_GENERATION = "image_generation"
    IMAGE_EDIT = "image_edit"
    IMAGE_REVIEW = "image_review"
    CAPTION_REVIEW = "caption_review"
    TEXT_REVIEW = "text_review"
    CONTENT_PLAN = "content_plan"
    VIDEO_GENERATION = "video_generation"
    CAPTION_GENERATION = "caption_generation"


FEATURE_COSTS: dict[Feature, int] = {
    Feature.QUICK_IMAGE: 5,
    Feature.COMPLETE_IMAGE: 6,
    Feature.IMAGE_GENERATION: 5,
    Feature.IMAGE_EDIT: 1,
    Feature.IMAGE_REVIEW: 2,
    Feature.CAPTION_REVIEW: 2,
    Feature.TEXT_REVIEW: 2,
    Feature.CONTENT_PLAN: 3,
    Feature.VIDEO_GENERATION: 20,
    Feature.CAPTION_GENERATION: 1,
}


def get_feature_cost(feature: Feature) -> int:
    """Credit cost of a feature."""
    return FEATURE_COSTS[feature]


class CreditBalance(BaseModel):
    """An account's current balance."""

    account: AccountRef
    balance: int
    plan_id: str = "free"


class CreditCheck(BaseModel):
    """Result of a pre-flight balance check."""

    has_credits: bool
    required: int
    available: int


class ChargeResult(BaseModel):
    """Outcome of a guarded, charged feature run."""

    feature: Feature
    credits_charged: int
    credits_before: int
    credits_after: int
    entry_id: str


class CreditHistoryPage(BaseModel):
    """API response for history queries."""

    entries: list[CreditHistoryEntry]
    total: int
    has_more: bool


class FeatureCostResponse(BaseModel):
    """One row of the public cost table."""

    feature: Feature
    credits: int
