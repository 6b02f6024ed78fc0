"""
Credits module exceptions.

These exceptions are raised by the ledger and the consumption guard and
are mapped to HTTP responses by the API error handler.
"""

from typing import Optional

from shared.exceptions import ConflictError, CreatorError, NotFoundError, ValidationError


class CreditsError(CreatorError):
    """Base exception for credit-related errors."""

    pass


class InsufficientCreditsError(CreditsError):
    """
    Raised when an account doesn't have enough credits for an operation.

    The UI shows the exact required/available numbers from `details`.
    """

    def __init__(
        self,
        required: int,
        available: int,
        account_id: Optional[str] = None,
    ):
        message = f"Insufficient credits. Required: {required}, available: {available}"
        super().__init__(
            message,
            code="INSUFFICIENT_CREDITS",
            details={
                "required": required,
                "available": available,
                "shortfall": max(required - available, 0),
            },
        )
        self.required = required
        self.available = available
        if account_id:
            self.details["account_id"] = account_id


class InvalidAmountError(ValidationError):
    """Raised when a credit amount is invalid."""

    def __init__(self, amount: int, reason: str):
        super().__init__(
            f"Invalid amount: {amount}. {reason}",
            code="INVALID_AMOUNT",
            details={"amount": amount, "reason": reason},
        )


class AccountNotFoundError(NotFoundError):
    """Raised when a profile or team does not exist."""

    def __init__(self, account_type: str, account_id: str):
        super().__init__(
            f"Account not found: {account_type}/{account_id}",
            code="ACCOUNT_NOT_FOUND",
            details={"account_type": account_type, "account_id": account_id},
        )


class ConcurrentBalanceUpdateError(CreditsError, ConflictError):
    """Raised when the balance kept changing under a compare-and-set update."""

    def __init__(self, account_id: str, attempts: int):
        super().__init__(
            f"Balance for {account_id} changed concurrently; gave up after {attempts} attempts",
            code="CONCURRENT_BALANCE_UPDATE",
            details={"account_id": account_id, "attempts": attempts},
        )
