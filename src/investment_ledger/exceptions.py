"""Domain exception hierarchy for Investment Ledger.

All domain-specific exceptions inherit from InvestmentLedgerError.
This allows catching all application errors with a single base class
while preserving specificity for individual error types.
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Any
from uuid import UUID


class InvestmentLedgerError(Exception):
    """Base exception for all Investment Ledger errors.

    Includes optional error_code for API responses and extra context.
    """

    error_code: str = "ILG_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Not Found Errors
# =============================================================================


class NotFoundError(InvestmentLedgerError):
    """Base exception for lookups of missing or foreign-owned records."""

    error_code = "NOT_FOUND"
    status_code = 404


class TransactionNotFoundError(NotFoundError):
    """Raised when a transaction does not exist or belongs to another owner."""

    error_code = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: UUID | str) -> None:
        super().__init__(
            f"Transaction not found: {transaction_id}",
            context={"transaction_id": str(transaction_id)},
        )


class TaxLotNotFoundError(NotFoundError):
    """Raised when a tax lot cannot be found."""

    error_code = "TAX_LOT_NOT_FOUND"

    def __init__(self, lot_id: UUID | str) -> None:
        super().__init__(
            f"Tax lot not found: {lot_id}",
            context={"lot_id": str(lot_id)},
        )


class AssetNotFoundError(NotFoundError):
    """Raised when an asset cannot be found."""

    error_code = "ASSET_NOT_FOUND"

    def __init__(self, asset_id: UUID | str) -> None:
        super().__init__(
            f"Asset not found: {asset_id}",
            context={"asset_id": str(asset_id)},
        )


# =============================================================================
# Accounting Errors
# =============================================================================


class AccountingError(InvestmentLedgerError):
    """Base exception for lot accounting failures."""

    error_code = "ACCOUNTING_ERROR"
    status_code = 400


class InsufficientHoldingsError(AccountingError):
    """Raised when a sale asks for more than the open lots hold."""

    error_code = "INSUFFICIENT_HOLDINGS"

    def __init__(self, asset: str, requested: Decimal, available: Decimal) -> None:
        self.asset = asset
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient holdings of {asset}: "
            f"trying to sell {requested} but only {available} available",
            context={
                "asset": asset,
                "requested": str(requested),
                "available": str(available),
            },
        )


class HasDependentSalesError(AccountingError):
    """Raised when deleting a BUY whose lot has already been sold from."""

    error_code = "HAS_DEPENDENT_SALES"
    status_code = 409

    def __init__(
        self, transaction_id: UUID | str, dependent_ids: Iterable[UUID | str]
    ) -> None:
        self.transaction_id = transaction_id
        self.dependent_ids = [str(dep) for dep in dependent_ids]
        super().__init__(
            f"Cannot delete buy transaction {transaction_id}: it has associated "
            f"sell transactions ({', '.join(self.dependent_ids)}). Delete those first.",
            context={
                "transaction_id": str(transaction_id),
                "dependent_sell_transaction_ids": self.dependent_ids,
            },
        )


class LedgerIntegrityError(AccountingError):
    """Raised when a write would break a lot quantity invariant."""

    error_code = "LEDGER_INTEGRITY_ERROR"
    status_code = 500


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(InvestmentLedgerError):
    """Base exception for validation errors."""

    error_code = "VALIDATION_ERROR"
    status_code = 422


class InvalidTransactionError(ValidationError):
    """Raised when a transaction request is malformed."""

    error_code = "INVALID_TRANSACTION"

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, context={"field": field} if field else None)


# =============================================================================
# Collaborator and Database Errors
# =============================================================================


class PriceUnavailableError(InvestmentLedgerError):
    """Raised by a price feed that has no price for an asset."""

    error_code = "PRICE_UNAVAILABLE"
    status_code = 503

    def __init__(self, symbol: str, reason: str | None = None) -> None:
        message = f"No current price available for {symbol}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, context={"symbol": symbol})


class DatabaseError(InvestmentLedgerError):
    """Base exception for database-related errors."""

    error_code = "DATABASE_ERROR"
    status_code = 500


class LedgerConflictError(DatabaseError):
    """Raised when a unit of work loses a lock race; safe to retry."""

    error_code = "LEDGER_CONFLICT"
    status_code = 409

    def __init__(self, message: str) -> None:
        super().__init__(f"Concurrent ledger update conflict: {message}")
