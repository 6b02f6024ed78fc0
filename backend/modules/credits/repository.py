"""
Credit repository for database access.

Encapsulates all Supabase queries and data mapping for ledger tables:
- profiles (user balances)
- teams (team balances)
- credit_history (append-only audit trail)

Balance writes are compare-and-set updates keyed on the previous balance,
so two requests racing on the same account can't both win.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from supabase import Client

from shared.repository import BaseRepository, escape_like
from .models import (
    Account,
    AccountRef,
    AccountType,
    CreditAction,
    CreditDirection,
    CreditHistoryEntry,
    NewHistoryEntry,
)

ACCOUNT_TABLES = {
    AccountType.USER: "profiles",
    AccountType.TEAM: "teams",
}


class CreditRepository(BaseRepository):
    """
    Supabase-backed ledger storage.

    Note: This repository does NOT perform authorization checks.
    The service layer decides which account a request may touch.
    """

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    def get_account(self, ref: AccountRef) -> Optional[Account]:
        table = ACCOUNT_TABLES[ref.type]
        row = self._first(self._db.table(table).select("*").eq("id", ref.id).execute())
        return self._map_to_account(ref.type, row) if row else None

    def find_user_by_email(self, email: str) -> Optional[Account]:
        row = self._first(
            self._db.table("profiles").select("*").ilike("email", escape_like(email)).execute()
        )
        return self._map_to_account(AccountType.USER, row) if row else None

    def list_subscribed_accounts(self) -> list[Account]:
        """Accounts that carry a Stripe subscription id."""
        accounts: list[Account] = []
        for account_type, table in ACCOUNT_TABLES.items():
            result = (
                self._db.table(table)
                .select("*")
                .not_.is_("stripe_subscription_id", "null")
                .execute()
            )
            accounts.extend(self._map_to_account(account_type, row) for row in result.data)
        return accounts

    def compare_and_set_balance(
        self,
        ref: AccountRef,
        expected: int,
        new_balance: int,
        fields: Optional[dict[str, Any]] = None,
    ) -> bool:
        data: dict[str, Any] = {"credits": new_balance, "updated_at": self._now()}
        for key, value in (fields or {}).items():
            data[key] = value.isoformat() if isinstance(value, datetime) else value

        result = (
            self._db.table(ACCOUNT_TABLES[ref.type])
            .update(data)
            .eq("id", ref.id)
            .eq("credits", expected)
            .execute()
        )
        return bool(result.data)

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def insert_history(self, entry: NewHistoryEntry) -> CreditHistoryEntry:
        data = {
            "user_id": entry.user_id,
            "team_id": entry.team_id,
            "account_type": entry.account.type.value,
            "account_id": entry.account.id,
            "action_type": entry.action_type.value,
            "direction": entry.direction.value,
            "amount": entry.amount,
            "credits_before": entry.credits_before,
            "credits_after": entry.credits_after,
            "description": entry.description,
            "reference_id": entry.reference_id,
            "metadata": entry.metadata,
        }
        result = self._db.table("credit_history").insert(data).execute()
        return self._map_to_history(result.data[0])

    def list_history(
        self,
        ref: AccountRef,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[CreditHistoryEntry], int]:
        result = (
            self._db.table("credit_history")
            .select("*", count="exact")
            .eq("account_type", ref.type.value)
            .eq("account_id", ref.id)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        entries = [self._map_to_history(row) for row in result.data]
        return entries, result.count or len(entries)

    # -------------------------------------------------------------------------
    # Mapping helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _map_to_account(account_type: AccountType, row: dict[str, Any]) -> Account:
        return Account(
            ref=AccountRef(type=account_type, id=str(row["id"])),
            credits=row.get("credits") or 0,
            plan_id=row.get("plan_id") or "free",
            team_id=row.get("team_id"),
            email=row.get("email"),
            subscription_status=row.get("subscription_status"),
            subscription_period_end=row.get("subscription_period_end"),
            stripe_customer_id=row.get("stripe_customer_id"),
            stripe_subscription_id=row.get("stripe_subscription_id"),
        )

    @staticmethod
    def _map_to_history(row: dict[str, Any]) -> CreditHistoryEntry:
        return CreditHistoryEntry(
            id=str(row["id"]),
            user_id=row.get("user_id"),
            team_id=row.get("team_id"),
            account=AccountRef(
                type=AccountType(row["account_type"]),
                id=str(row["account_id"]),
            ),
            action_type=CreditAction(row["action_type"]),
            direction=CreditDirection(row["direction"]),
            amount=row["amount"],
            credits_before=row["credits_before"],
            credits_after=row["credits_after"],
            description=row.get("description") or "",
            reference_id=row.get("reference_id"),
            metadata=row.get("metadata") or {},
            created_at=row["created_at"],
        )


class InMemoryCreditRepository:
    """
    In-memory ledger storage with the same semantics as CreditRepository.

    For tests and local development.
    """

    def __init__(self) -> None:
        self.accounts: dict[AccountRef, Account] = {}
        self.history: list[CreditHistoryEntry] = []

    def add_account(self, account: Account) -> Account:
        self.accounts[account.ref] = account
        return account

    def get_account(self, ref: AccountRef) -> Optional[Account]:
        return self.accounts.get(ref)

    def find_user_by_email(self, email: str) -> Optional[Account]:
        for account in self.accounts.values():
            if (
                account.ref.type == AccountType.USER
                and account.email is not None
                and account.email.lower() == email.lower()
            ):
                return account
        return None

    def list_subscribed_accounts(self) -> list[Account]:
        return [a for a in self.accounts.values() if a.stripe_subscription_id]

    def compare_and_set_balance(
        self,
        ref: AccountRef,
        expected: int,
        new_balance: int,
        fields: Optional[dict[str, Any]] = None,
    ) -> bool:
        account = self.accounts.get(ref)
        if account is None or account.credits != expected:
            return False
        self.accounts[ref] = account.model_copy(
            update={"credits": new_balance, **(fields or {})}
        )
        return True

    def insert_history(self, entry: NewHistoryEntry) -> CreditHistoryEntry:
        stored = CreditHistoryEntry(
            id=str(uuid.uuid4()),
            created_at=datetime.now(timezone.utc),
            **entry.model_dump(),
        )
        self.history.append(stored)
        return stored

    def list_history(
        self,
        ref: AccountRef,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[CreditHistoryEntry], int]:
        entries = [e for e in reversed(self.history) if e.account == ref]
        return entries[offset : offset + limit], len(entries)
