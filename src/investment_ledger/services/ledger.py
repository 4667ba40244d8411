"""Transaction ledger: the system of record for BUY and SELL events."""

from datetime import date
from decimal import Decimal, InvalidOperation
from uuid import UUID

from investment_ledger.domain.assets import Asset
from investment_ledger.domain.transactions import Transaction
from investment_ledger.domain.value_objects import (
    AssetClass,
    TransactionType,
    quantize_quantity,
    quantize_unit_price,
    to_decimal,
)
from investment_ledger.exceptions import (
    InvalidTransactionError,
    TransactionNotFoundError,
)
from investment_ledger.logging_config import LogContext, get_logger
from investment_ledger.repositories.interfaces import (
    LedgerDatabase,
    TransactionQuery,
    TransactionRepository,
)
from investment_ledger.services.interfaces import (
    AssetResolver,
    RecordedTransaction,
    TransactionLedger,
    TransactionPage,
    TransactionView,
)
from investment_ledger.services.lot_matching import GainRealizationEngine
from investment_ledger.services.reversal import ReversalCoordinator
from investment_ledger.services.tax_lots import TaxLotStore

logger = get_logger(__name__)


def _parse_amount(value: object, field: str, quantize) -> Decimal:
    try:
        amount = to_decimal(value)  # type: ignore[arg-type]
        if not amount.is_finite():
            raise InvalidTransactionError(f"{field} must be finite", field=field)
        return quantize(amount)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvalidTransactionError(
            f"{field} must be a number, got {value!r}", field=field
        ) from e


def _parse_enum(enum_type, value, field: str):
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(str(value).strip().upper())
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_type)
        raise InvalidTransactionError(
            f"{field} must be one of {allowed}, got {value!r}", field=field
        ) from e


class TransactionLedgerService(TransactionLedger):
    """Records BUY/SELL transactions and keeps lots and gains in step.

    A BUY opens exactly one lot and a SELL is settled against open lots,
    each in the same unit of work as the transaction insert, so a failed
    settlement leaves no trace of the transaction.
    """

    def __init__(
        self,
        asset_resolver: AssetResolver,
        transaction_repo: TransactionRepository,
        tax_lot_store: TaxLotStore,
        gain_engine: GainRealizationEngine,
        reversal_coordinator: ReversalCoordinator,
        database: LedgerDatabase,
    ) -> None:
        self._asset_resolver = asset_resolver
        self._transaction_repo = transaction_repo
        self._tax_lot_store = tax_lot_store
        self._gain_engine = gain_engine
        self._reversal = reversal_coordinator
        self._db = database

    def record_transaction(
        self,
        owner_id: UUID,
        symbol: str,
        asset_class: AssetClass | str,
        transaction_type: TransactionType | str,
        quantity: Decimal | int | str,
        price_per_unit: Decimal | int | str,
        transaction_date: date,
        fees: Decimal | int | str = Decimal("0"),
        notes: str = "",
    ) -> RecordedTransaction:
        """Record a BUY or SELL.

        Args:
            owner_id: Owner of the transaction
            symbol: Ticker or coin symbol, case-insensitive
            asset_class: STOCK or CRYPTO
            transaction_type: BUY or SELL
            quantity: Units bought or sold, must be positive
            price_per_unit: Price of one unit, must be positive
            transaction_date: Trade date
            fees: Commission paid; added to cost basis on a BUY
            notes: Free text

        Returns:
            The stored transaction with its lot (BUY) or realized gains (SELL)

        Raises:
            InvalidTransactionError: If any input is malformed
            InsufficientHoldingsError: If a SELL exceeds the open lots
        """
        asset_class = _parse_enum(AssetClass, asset_class, "asset_class")
        transaction_type = _parse_enum(
            TransactionType, transaction_type, "transaction_type"
        )
        qty, price, fee = self._validate_amounts(quantity, price_per_unit, fees)
        if isinstance(transaction_date, str):
            try:
                transaction_date = date.fromisoformat(transaction_date)
            except ValueError as e:
                raise InvalidTransactionError(
                    f"transaction_date must be YYYY-MM-DD, got {transaction_date!r}",
                    field="transaction_date",
                ) from e
        if not isinstance(transaction_date, date):
            raise InvalidTransactionError(
                "transaction_date is required", field="transaction_date"
            )

        # Resolve before the accounting unit of work so no lot lock is held
        asset = self._asset_resolver.resolve_or_create_asset(symbol, asset_class)

        txn = Transaction(
            owner_id=owner_id,
            asset_id=asset.id,
            transaction_type=transaction_type,
            quantity=qty,
            price_per_unit=price,
            transaction_date=transaction_date,
            fees=fee,
            notes=notes or "",
        )
        result = RecordedTransaction(transaction=txn, asset=asset)

        with LogContext(owner_id=str(owner_id), transaction_id=str(txn.id)):
            with self._db.unit_of_work():
                self._transaction_repo.add(txn)
                if txn.is_buy:
                    result.tax_lot = self._tax_lot_store.open_lot(
                        owner_id=owner_id,
                        buy_transaction_id=txn.id,
                        asset_id=asset.id,
                        quantity=qty,
                        price_per_unit=price,
                        fees=fee,
                        purchase_date=transaction_date,
                    )
                else:
                    result.realized_gains = self._gain_engine.settle_sale(
                        owner_id=owner_id,
                        sell_transaction_id=txn.id,
                        asset_id=asset.id,
                        quantity_sold=qty,
                        price_per_unit=price,
                        sale_date=transaction_date,
                        symbol=asset.symbol,
                    )

            logger.info(
                "transaction_recorded",
                transaction_type=transaction_type.value,
                symbol=asset.symbol,
                quantity=qty,
                total_amount=txn.total_amount,
            )
        return result

    def get_transaction(self, owner_id: UUID, transaction_id: UUID) -> TransactionView:
        txn = self._transaction_repo.get(transaction_id)
        if txn is None or txn.owner_id != owner_id:
            raise TransactionNotFoundError(transaction_id)
        return self._to_view(txn, self._asset_resolver.get_asset(txn.asset_id))

    def list_transactions(
        self, owner_id: UUID, query: TransactionQuery | None = None
    ) -> TransactionPage:
        """List an owner's transactions, newest first, filtered and paged."""
        query = query or TransactionQuery()
        if query.limit < 1:
            raise InvalidTransactionError("limit must be at least 1", field="limit")
        if query.offset < 0:
            raise InvalidTransactionError("offset cannot be negative", field="offset")

        assets: dict[UUID, Asset] = {}
        items: list[TransactionView] = []
        for txn in self._transaction_repo.list_by_owner(owner_id, query):
            if txn.asset_id not in assets:
                assets[txn.asset_id] = self._asset_resolver.get_asset(txn.asset_id)
            items.append(self._to_view(txn, assets[txn.asset_id]))

        return TransactionPage(
            items=items,
            total=self._transaction_repo.count_by_owner(owner_id, query),
            limit=query.limit,
            offset=query.offset,
        )

    def delete_transaction(self, owner_id: UUID, transaction_id: UUID) -> None:
        """Delete a transaction, undoing its lot or its realized gains.

        Raises:
            TransactionNotFoundError: If the transaction is missing or foreign
            HasDependentSalesError: If a BUY's lot has been sold from
        """
        txn = self._transaction_repo.get(transaction_id)
        if txn is None or txn.owner_id != owner_id:
            raise TransactionNotFoundError(transaction_id)
        if txn.is_buy:
            self._reversal.reverse_buy(owner_id, transaction_id)
        else:
            self._reversal.reverse_sell(owner_id, transaction_id)

    def _validate_amounts(
        self,
        quantity: Decimal | int | str,
        price_per_unit: Decimal | int | str,
        fees: Decimal | int | str,
    ) -> tuple[Decimal, Decimal, Decimal]:
        qty = _parse_amount(quantity, "quantity", quantize_quantity)
        if qty <= Decimal("0"):
            raise InvalidTransactionError("quantity must be positive", field="quantity")

        price = _parse_amount(price_per_unit, "price_per_unit", quantize_unit_price)
        if price <= Decimal("0"):
            raise InvalidTransactionError(
                "price_per_unit must be positive", field="price_per_unit"
            )

        fee = _parse_amount(
            fees if fees is not None else Decimal("0"), "fees", quantize_unit_price
        )
        if fee < Decimal("0"):
            raise InvalidTransactionError("fees cannot be negative", field="fees")
        return qty, price, fee

    @staticmethod
    def _to_view(txn: Transaction, asset: Asset) -> TransactionView:
        return TransactionView(
            transaction=txn,
            symbol=asset.symbol,
            asset_name=asset.name,
            asset_class=asset.asset_class,
        )
