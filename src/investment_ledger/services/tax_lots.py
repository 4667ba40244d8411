"""Tax lot store: lot creation and FIFO-ordered lot access."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from investment_ledger.domain.transactions import TaxLot
from investment_ledger.logging_config import get_logger
from investment_ledger.repositories.interfaces import LedgerDatabase, TaxLotRepository

logger = get_logger(__name__)


class TaxLotStore:
    """Owns the lots of every (owner, asset) pair."""

    def __init__(self, tax_lot_repo: TaxLotRepository, database: LedgerDatabase) -> None:
        self._tax_lot_repo = tax_lot_repo
        self._db = database

    def open_lot(
        self,
        owner_id: UUID,
        buy_transaction_id: UUID,
        asset_id: UUID,
        quantity: Decimal,
        price_per_unit: Decimal,
        fees: Decimal,
        purchase_date: date,
    ) -> TaxLot:
        """Open a new lot for a BUY.

        Cost basis per unit is ``(quantity * price + fees) / quantity`` and the
        lot starts with ``remaining == original == quantity``.
        """
        lot = TaxLot.from_purchase(
            owner_id=owner_id,
            buy_transaction_id=buy_transaction_id,
            asset_id=asset_id,
            quantity=quantity,
            price_per_unit=price_per_unit,
            fees=fees,
            purchase_date=purchase_date,
        )
        with self._db.unit_of_work():
            self._tax_lot_repo.add(lot)
        logger.debug(
            "tax_lot_opened",
            lot_id=str(lot.id),
            asset_id=str(asset_id),
            quantity=quantity,
            cost_basis_per_unit=lot.cost_basis_per_unit,
            sequence=lot.sequence,
        )
        return lot

    def lots_for_sale(self, owner_id: UUID, asset_id: UUID) -> list[TaxLot]:
        """Open lots of one asset, oldest first, ties broken by creation order."""
        return self._tax_lot_repo.list_open_for_sale(owner_id, asset_id)

    def lots_for_owner(
        self, owner_id: UUID, include_exhausted: bool = False
    ) -> list[TaxLot]:
        return list(self._tax_lot_repo.list_by_owner(owner_id, include_exhausted))

    def available_quantity(self, owner_id: UUID, asset_id: UUID) -> Decimal:
        return sum(
            (lot.remaining_quantity for lot in self.lots_for_sale(owner_id, asset_id)),
            Decimal("0"),
        )

    def save(self, lot: TaxLot) -> None:
        self._tax_lot_repo.update(lot)
