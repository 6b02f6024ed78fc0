"""
Credits module interfaces.

Other modules should depend on ICreditService, not the concrete implementation.
The billing module credits accounts through it and the generation module
wraps paid calls in its consumption guard.
"""

from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar, runtime_checkable

from .models import (
    Account,
    AccountRef,
    ChargeResult,
    CreditAction,
    CreditBalance,
    CreditCheck,
    CreditHistoryEntry,
    CreditHistoryPage,
    Feature,
    NewHistoryEntry,
)

T = TypeVar("T")


@runtime_checkable
class ICreditRepository(Protocol):
    """Persistence contract for balances and credit history."""

    def get_account(self, ref: AccountRef) -> Optional[Account]:
        ...

    def find_user_by_email(self, email: str) -> Optional[Account]:
        ...

    def list_subscribed_accounts(self) -> list[Account]:
        ...

    def compare_and_set_balance(
        self,
        ref: AccountRef,
        expected: int,
        new_balance: int,
        fields: Optional[dict[str, Any]] = None,
    ) -> bool:
        """
        Set the balance only if it still equals `expected`.

        `fields` are extra account columns written in the same update
        (plan_id, subscription_status, subscription_period_end).

        Returns:
            True if the row was updated, False if the balance had changed
        """
        ...

    def insert_history(self, entry: NewHistoryEntry) -> CreditHistoryEntry:
        ...

    def list_history(
        self,
        ref: AccountRef,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[CreditHistoryEntry], int]:
        ...


@runtime_checkable
class ICreditService(Protocol):
    """
    Interface for ledger operations.

    All amounts are positive integers; direction is implied by the operation.
    """

    async def get_account(self, ref: AccountRef) -> Account:
        """
        Load an account.

        Raises:
            AccountNotFoundError: If the profile/team doesn't exist
        """
        ...

    async def get_balance(self, ref: AccountRef) -> CreditBalance:
        ...

    async def find_user_by_email(self, email: str) -> Optional[Account]:
        ...

    async def list_subscribed_accounts(self) -> list[Account]:
        """Accounts with a Stripe subscription attached."""
        ...

    async def check_credits(self, ref: AccountRef, required: int) -> CreditCheck:
        """Non-blocking check; doesn't reserve anything."""
        ...

    async def require_credits(self, ref: AccountRef, required: int) -> int:
        """
        Fail fast when the balance is too low.

        Returns:
            The available balance

        Raises:
            InsufficientCreditsError: If balance < required
        """
        ...

    async def deduct_credits(
        self,
        ref: AccountRef,
        amount: int,
        action: CreditAction = CreditAction.CONSUMPTION,
        description: str = "",
        actor_id: Optional[str] = None,
        reference_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> CreditHistoryEntry:
        """
        Deduct credits and record history.

        Raises:
            InsufficientCreditsError: If the deduction would go negative
            InvalidAmountError: If amount is not positive
        """
        ...

    async def add_credits(
        self,
        ref: AccountRef,
        amount: int,
        action: CreditAction,
        description: str = "",
        actor_id: Optional[str] = None,
        reference_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
        fields: Optional[dict[str, Any]] = None,
    ) -> CreditHistoryEntry:
        ...

    async def set_balance(
        self,
        ref: AccountRef,
        new_balance: int,
        action: CreditAction,
        description: str = "",
        actor_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
        fields: Optional[dict[str, Any]] = None,
    ) -> CreditHistoryEntry:
        ...

    async def update_balance(
        self,
        ref: AccountRef,
        compute: Callable[[int], int],
        action: CreditAction,
        description: str = "",
        actor_id: Optional[str] = None,
        reference_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
        fields: Optional[dict[str, Any]] = None,
    ) -> CreditHistoryEntry:
        """Set the balance to `compute(current)` using the balance at write time."""
        ...

    async def get_history(
        self,
        ref: AccountRef,
        limit: int = 50,
        offset: int = 0,
    ) -> CreditHistoryPage:
        ...

    async def charge(
        self,
        ref: AccountRef,
        feature: Feature,
        operation: Callable[[], Awaitable[T]],
        actor_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> tuple[T, ChargeResult]:
        """
        Run a paid operation behind the consumption guard.

        Checks the balance, awaits `operation`, and deducts the feature cost
        only if it returned normally. An exception from `operation`
        propagates and leaves the balance untouched.

        Raises:
            InsufficientCreditsError: Before running `operation` if the
                balance is below the feature cost
        """
        ...
