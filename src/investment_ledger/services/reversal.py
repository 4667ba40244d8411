"""Reversal of ledger entries: undo a BUY or a SELL and everything it caused."""

from uuid import UUID

from investment_ledger.domain.transactions import Transaction
from investment_ledger.domain.value_objects import TransactionType
from investment_ledger.exceptions import (
    HasDependentSalesError,
    InvalidTransactionError,
    LedgerIntegrityError,
    TaxLotNotFoundError,
    TransactionNotFoundError,
)
from investment_ledger.logging_config import get_logger
from investment_ledger.repositories.interfaces import (
    LedgerDatabase,
    RealizedGainRepository,
    TaxLotRepository,
    TransactionRepository,
)

logger = get_logger(__name__)


class ReversalCoordinator:
    """Deletes transactions while keeping lots and gains consistent.

    Deleting a BUY is refused while any realized gain still references its
    lot; dependent sales are never cascaded away.
    """

    def __init__(
        self,
        transaction_repo: TransactionRepository,
        tax_lot_repo: TaxLotRepository,
        realized_gain_repo: RealizedGainRepository,
        database: LedgerDatabase,
    ) -> None:
        self._transaction_repo = transaction_repo
        self._tax_lot_repo = tax_lot_repo
        self._realized_gain_repo = realized_gain_repo
        self._db = database

    def reverse_buy(self, owner_id: UUID, transaction_id: UUID) -> None:
        """Delete a BUY and its lot.

        Raises:
            TransactionNotFoundError: If the transaction is missing or foreign.
            InvalidTransactionError: If the transaction is not a BUY.
            HasDependentSalesError: If any sale has drawn from the lot.
        """
        with self._db.unit_of_work():
            txn = self._load(owner_id, transaction_id, TransactionType.BUY)
            lot = self._tax_lot_repo.get_by_buy_transaction(txn.id)
            if lot is None:
                logger.warning("buy_without_tax_lot", transaction_id=str(txn.id))
            else:
                gains = self._realized_gain_repo.list_by_tax_lot(lot.id)
                if gains:
                    dependent_ids = list(
                        dict.fromkeys(g.sell_transaction_id for g in gains)
                    )
                    logger.info(
                        "buy_reversal_refused",
                        transaction_id=str(txn.id),
                        dependent_sells=len(dependent_ids),
                    )
                    raise HasDependentSalesError(txn.id, dependent_ids)
                if not lot.is_untouched:
                    raise LedgerIntegrityError(
                        f"Lot {lot.id} has been drawn down but no realized gains "
                        f"reference it"
                    )
                self._tax_lot_repo.delete(lot.id)
            self._transaction_repo.delete(txn.id)

        logger.info(
            "transaction_reversed",
            transaction_id=str(transaction_id),
            transaction_type=TransactionType.BUY.value,
        )

    def reverse_sell(self, owner_id: UUID, transaction_id: UUID) -> None:
        """Delete a SELL, restoring every unit it drew to the lot it came from.

        Raises:
            TransactionNotFoundError: If the transaction is missing or foreign.
            InvalidTransactionError: If the transaction is not a SELL.
        """
        with self._db.unit_of_work():
            txn = self._load(owner_id, transaction_id, TransactionType.SELL)
            gains = self._realized_gain_repo.list_by_sell_transaction(txn.id)
            for gain in gains:
                lot = self._tax_lot_repo.get(gain.tax_lot_id, lock=True)
                if lot is None:
                    raise TaxLotNotFoundError(gain.tax_lot_id)
                lot.restore(gain.quantity_sold)
                self._tax_lot_repo.update(lot)
            deleted = self._realized_gain_repo.delete_by_sell_transaction(txn.id)
            self._transaction_repo.delete(txn.id)

        logger.info(
            "transaction_reversed",
            transaction_id=str(transaction_id),
            transaction_type=TransactionType.SELL.value,
            gains_removed=deleted,
        )

    def _load(
        self, owner_id: UUID, transaction_id: UUID, expected: TransactionType
    ) -> Transaction:
        txn = self._transaction_repo.get(transaction_id)
        if txn is None or txn.owner_id != owner_id:
            raise TransactionNotFoundError(transaction_id)
        if txn.transaction_type != expected:
            raise InvalidTransactionError(
                f"Transaction {transaction_id} is a {txn.transaction_type.value}, "
                f"not a {expected.value}",
                field="transaction_type",
            )
        return txn
