"""
Credits module.

Account balances (the ledger), the append-only credit history, and the
consumption guard that wraps paid features.

Public API:
- ICreditService: Interface for ledger operations
- AccountRef / Account: Credit-holding accounts (user or team)
- CreditHistoryEntry: Audit record of a balance change
- Feature / FEATURE_COSTS: Metered features and their costs
- Credit exceptions: InsufficientCreditsError, etc.
"""

from .interfaces import ICreditService, ICreditRepository
from .models import (
    Account,
    AccountRef,
    AccountType,
    ChargeResult,
    CreditAction,
    CreditBalance,
    CreditDirection,
    CreditHistoryEntry,
    Feature,
    FEATURE_COSTS,
)
from .exceptions import (
    CreditsError,
    InsufficientCreditsError,
    InvalidAmountError,
    AccountNotFoundError,
    ConcurrentBalanceUpdateError,
)

__all__ = [
    # Interfaces
    "ICreditService",
    "ICreditRepository",
    # Models
    "Account",
    "AccountRef",
    "AccountType",
    "ChargeResult",
    "CreditAction",
    "CreditBalance",
    "CreditDirection",
    "CreditHistoryEntry",
    "Feature",
    "FEATURE_COSTS",
    # Exceptions
    "CreditsError",
    "InsufficientCreditsError",
    "InvalidAmountError",
    "AccountNotFoundError",
    "ConcurrentBalanceUpdateError",
]
