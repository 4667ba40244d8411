from datetime import date
from decimal import Decimal
from uuid import UUID

from investment_ledger.container import Container
from investment_ledger.domain.assets import Asset
from investment_ledger.domain.transactions import Transaction
from investment_ledger.domain.value_objects import TransactionType
from investment_ledger.repositories.sqlite import SQLiteTransactionRepository
from investment_ledger.services.tax_lots import TaxLotStore


def _buy(
    transaction_repo: SQLiteTransactionRepository,
    owner_id: UUID,
    asset: Asset,
    on: date,
) -> Transaction:
    txn = Transaction(
        owner_id=owner_id,
        asset_id=asset.id,
        transaction_type=TransactionType.BUY,
        quantity=Decimal("10"),
        price_per_unit=Decimal("100"),
        transaction_date=on,
        fees=Decimal("5"),
    )
    transaction_repo.add(txn)
    return txn


class TestTaxLotStore:
    def test_open_lot_sets_basis_and_quantities(
        self,
        container: Container,
        transaction_repo: SQLiteTransactionRepository,
        aapl: Asset,
        owner_id: UUID,
    ) -> None:
        store: TaxLotStore = container.tax_lot_store
        txn = _buy(transaction_repo, owner_id, aapl, date(2023, 1, 1))

        lot = store.open_lot(
            owner_id=owner_id,
            buy_transaction_id=txn.id,
            asset_id=aapl.id,
            quantity=Decimal("10"),
            price_per_unit=Decimal("100"),
            fees=Decimal("5"),
            purchase_date=date(2023, 1, 1),
        )

        assert lot.cost_basis_per_unit == Decimal("100.50")
        assert lot.original_quantity == lot.remaining_quantity == Decimal("10")
        assert lot.sequence is not None
        assert store.lots_for_owner(owner_id)[0].id == lot.id

    def test_lots_for_sale_fifo_regardless_of_insert_order(
        self,
        container: Container,
        transaction_repo: SQLiteTransactionRepository,
        aapl: Asset,
        owner_id: UUID,
    ) -> None:
        store = container.tax_lot_store
        dates = [date(2023, 3, 1), date(2023, 1, 1), date(2023, 2, 1)]
        for on in dates:
            txn = _buy(transaction_repo, owner_id, aapl, on)
            store.open_lot(
                owner_id, txn.id, aapl.id, Decimal("1"), Decimal("10"), Decimal("0"), on
            )

        lots = store.lots_for_sale(owner_id, aapl.id)

        assert [lot.purchase_date for lot in lots] == sorted(dates)

    def test_lots_are_scoped_to_owner(
        self,
        container: Container,
        transaction_repo: SQLiteTransactionRepository,
        aapl: Asset,
        owner_id: UUID,
        other_owner_id: UUID,
    ) -> None:
        store = container.tax_lot_store
        txn = _buy(transaction_repo, other_owner_id, aapl, date(2023, 1, 1))
        store.open_lot(
            other_owner_id,
            txn.id,
            aapl.id,
            Decimal("10"),
            Decimal("100"),
            Decimal("0"),
            date(2023, 1, 1),
        )

        assert store.lots_for_sale(owner_id, aapl.id) == []
        assert store.available_quantity(owner_id, aapl.id) == Decimal("0")
        assert store.available_quantity(other_owner_id, aapl.id) == Decimal("10")
