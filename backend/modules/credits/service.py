"""
Credit service implementation.

Owns every balance mutation: read the current balance, compute the new one,
write it with a compare-and-set update, then append a history entry.
The consumption guard (`charge`) builds on the same primitives.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, TypeVar

from postgrest.exceptions import APIError

from .interfaces import ICreditRepository, ICreditService
from .models import (
    Account,
    AccountRef,
    AccountType,
    ChargeResult,
    CreditAction,
    CreditBalance,
    CreditCheck,
    CreditDirection,
    CreditHistoryEntry,
    CreditHistoryPage,
    Feature,
    NewHistoryEntry,
    get_feature_cost,
)
from .exceptions import (
    AccountNotFoundError,
    ConcurrentBalanceUpdateError,
    InsufficientCreditsError,
    InvalidAmountError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Compare-and-set retries before giving up on a hot account
MAX_BALANCE_UPDATE_ATTEMPTS = 3


class CreditService(ICreditService):
    """
    Ledger service backed by an ICreditRepository.

    Works with both CreditRepository (Supabase) and InMemoryCreditRepository.
    """

    def __init__(self, repository: ICreditRepository):
        self._repo = repository

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_account(self, ref: AccountRef) -> Account:
        account = self._repo.get_account(ref)
        if account is None:
            raise AccountNotFoundError(ref.type.value, ref.id)
        return account

    async def get_balance(self, ref: AccountRef) -> CreditBalance:
        account = await self.get_account(ref)
        return CreditBalance(account=ref, balance=account.credits, plan_id=account.plan_id)

    async def find_user_by_email(self, email: str) -> Optional[Account]:
        return self._repo.find_user_by_email(email.strip().lower())

    async def list_subscribed_accounts(self) -> list[Account]:
        return self._repo.list_subscribed_accounts()

    async def check_credits(self, ref: AccountRef, required: int) -> CreditCheck:
        account = self._repo.get_account(ref)
        available = account.credits if account else 0
        return CreditCheck(
            has_credits=account is not None and available >= required,
            required=required,
            available=available,
        )

    async def require_credits(self, ref: AccountRef, required: int) -> int:
        account = await self.get_account(ref)
        if account.credits < required:
            raise InsufficientCreditsError(
                required=required,
                available=account.credits,
                account_id=ref.id,
            )
        return account.credits

    async def get_history(
        self,
        ref: AccountRef,
        limit: int = 50,
        offset: int = 0,
    ) -> CreditHistoryPage:
        entries, total = self._repo.list_history(ref, limit, offset)
        return CreditHistoryPage(
            entries=entries,
            total=total,
            has_more=(offset + len(entries)) < total,
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

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
        if amount <= 0:
            raise InvalidAmountError(amount, "Amount must be positive")

        def compute(current: int) -> int:
            if current < amount:
                raise InsufficientCreditsError(
                    required=amount,
                    available=current,
                    account_id=ref.id,
                )
            return current - amount

        return await self._apply(
            ref,
            compute,
            action=action,
            description=description,
            actor_id=actor_id,
            reference_id=reference_id,
            metadata=metadata,
        )

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
        if amount <= 0:
            raise InvalidAmountError(amount, "Amount must be positive")

        return await self._apply(
            ref,
            lambda current: current + amount,
            action=action,
            description=description,
            actor_id=actor_id,
            reference_id=reference_id,
            metadata=metadata,
            fields=fields,
        )

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
        if new_balance < 0:
            raise InvalidAmountError(new_balance, "Balance cannot be negative")

        return await self._apply(
            ref,
            lambda current: new_balance,
            action=action,
            description=description,
            actor_id=actor_id,
            metadata=metadata,
            fields=fields,
        )

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
        """
        Apply `compute` to the balance as it is at write time.

        `compute` is re-run against the fresh balance on every compare-and-set
        attempt. Prefer it over set_balance when the result depends on the old
        balance.
        """

        def checked(current: int) -> int:
            after = compute(current)
            if after < 0:
                raise InvalidAmountError(after, "Balance cannot be negative")
            return after

        return await self._apply(
            ref,
            checked,
            action=action,
            description=description,
            actor_id=actor_id,
            reference_id=reference_id,
            metadata=metadata,
            fields=fields,
        )

    async def _apply(
        self,
        ref: AccountRef,
        compute: Callable[[int], int],
        action: CreditAction,
        description: str,
        actor_id: Optional[str] = None,
        reference_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
        fields: Optional[dict[str, Any]] = None,
    ) -> CreditHistoryEntry:
        """
        Read-compute-write with compare-and-set, then record history.

        `compute` maps the current balance to the new one and may raise
        to veto the change (e.g. insufficient credits).
        """
        for attempt in range(1, MAX_BALANCE_UPDATE_ATTEMPTS + 1):
            account = await self.get_account(ref)
            before = account.credits
            after = compute(before)

            if self._repo.compare_and_set_balance(ref, before, after, fields):
                break

            logger.info(
                f"Balance for {ref.type.value}/{ref.id} changed during update "
                f"(attempt {attempt}/{MAX_BALANCE_UPDATE_ATTEMPTS})"
            )
        else:
            raise ConcurrentBalanceUpdateError(ref.id, MAX_BALANCE_UPDATE_ATTEMPTS)

        direction = CreditDirection.CREDIT if after >= before else CreditDirection.DEBIT
        entry = NewHistoryEntry(
            user_id=actor_id or (ref.id if ref.type == AccountType.USER else None),
            team_id=ref.id if ref.type == AccountType.TEAM else account.team_id,
            account=ref,
            action_type=action,
            direction=direction,
            amount=abs(after - before),
            credits_before=before,
            credits_after=after,
            description=description,
            reference_id=reference_id,
            metadata=metadata or {},
        )
        logger.info(
            f"Ledger {action.value}: {ref.type.value}/{ref.id} {before} -> {after}"
        )
        return self._record(entry)

    def _record(self, entry: NewHistoryEntry) -> CreditHistoryEntry:
        """
        Append the history entry for a balance change that already happened.

        The balance write is the committed fact; if the audit insert fails the
        entry is still returned (with an empty id) so the caller's result isn't lost.
        """
        try:
            return self._repo.insert_history(entry)
        except APIError:
            logger.exception(
                f"Failed to record credit history for {entry.account.type.value}/"
                f"{entry.account.id} ({entry.credits_before} -> {entry.credits_after})"
            )
            return CreditHistoryEntry(id="", created_at=datetime.now(timezone.utc), **entry.model_dump())

    # -------------------------------------------------------------------------
    # Consumption guard
    # -------------------------------------------------------------------------

    async def charge(
        self,
        ref: AccountRef,
        feature: Feature,
        operation: Callable[[], Awaitable[T]],
        actor_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> tuple[T, ChargeResult]:
        cost = get_feature_cost(feature)
        await self.require_credits(ref, cost)

        # Failed work is never charged: an exception here skips the deduction.
        result = await operation()

        entry = await self.deduct_credits(
            ref,
            cost,
            action=CreditAction.CONSUMPTION,
            description=f"{feature.value} ({cost} credits)",
            actor_id=actor_id,
            metadata={"feature": feature.value, **(metadata or {})},
        )
        return result, ChargeResult(
            feature=feature,
            credits_charged=cost,
            credits_before=entry.credits_before,
            credits_after=entry.credits_after,
            entry_id=entry.id,
        )

