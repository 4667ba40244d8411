"""Tests for FIFO gain realization."""

import sqlite3
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from investment_ledger.container import Container
from investment_ledger.domain.transactions import TaxLot
from investment_ledger.domain.value_objects import AssetClass, TransactionType
from investment_ledger.exceptions import InsufficientHoldingsError
from investment_ledger.repositories.sqlite import (
    SQLiteRealizedGainRepository,
    SQLiteTaxLotRepository,
)
from investment_ledger.services.lot_matching import GainRealizationEngine

BUY = TransactionType.BUY
SELL = TransactionType.SELL


def lot(quantity: str, purchased: date, cost: str = "10") -> TaxLot:
    return TaxLot(
        owner_id=uuid4(),
        asset_id=uuid4(),
        buy_transaction_id=uuid4(),
        purchase_date=purchased,
        cost_basis_per_unit=Decimal(cost),
        original_quantity=Decimal(quantity),
    )


class TestPlanSale:
    @pytest.fixture
    def engine(self, container: Container) -> GainRealizationEngine:
        return container.gain_engine

    def test_takes_from_first_lot_only_when_it_suffices(
        self, engine: GainRealizationEngine
    ) -> None:
        lots = [lot("10", date(2023, 1, 1)), lot("5", date(2023, 2, 1))]

        draws = engine.plan_sale(lots, Decimal("4"))

        assert [(d.lot, d.quantity) for d in draws] == [(lots[0], Decimal("4"))]

    def test_spills_into_later_lots(self, engine: GainRealizationEngine) -> None:
        lots = [lot("10", date(2023, 1, 1)), lot("5", date(2023, 2, 1))]

        draws = engine.plan_sale(lots, Decimal("12"))

        assert [d.quantity for d in draws] == [Decimal("10"), Decimal("2")]

    def test_planning_does_not_mutate_lots(self, engine: GainRealizationEngine) -> None:
        lots = [lot("10", date(2023, 1, 1))]

        engine.plan_sale(lots, Decimal("3"))

        assert lots[0].remaining_quantity == Decimal("10")

    def test_insufficient_reports_requested_and_available(
        self, engine: GainRealizationEngine
    ) -> None:
        lots = [lot("2", date(2023, 1, 1)), lot("1", date(2023, 2, 1))]

        with pytest.raises(InsufficientHoldingsError) as exc_info:
            engine.plan_sale(lots, Decimal("4"), "AAPL")

        assert exc_info.value.requested == Decimal("4")
        assert exc_info.value.available == Decimal("3")
        assert "AAPL" in str(exc_info.value)

    def test_shortfall_within_tolerance_accepted(
        self, engine: GainRealizationEngine
    ) -> None:
        lots = [lot("1", date(2023, 1, 1))]

        draws = engine.plan_sale(lots, Decimal("1.0000000005"))

        assert [d.quantity for d in draws] == [Decimal("1")]

    def test_shortfall_beyond_tolerance_rejected(
        self, engine: GainRealizationEngine
    ) -> None:
        lots = [lot("1", date(2023, 1, 1))]

        with pytest.raises(InsufficientHoldingsError):
            engine.plan_sale(lots, Decimal("1.00000001"))


class TestSettleSale:
    def test_scenario_two_lots_fifo(self, record, owner_id: UUID) -> None:
        first = record(BUY, "10", "100", date(2023, 1, 1), fees="5")
        second = record(BUY, "5", "120", date(2023, 6, 1))

        sale = record(SELL, "12", "150", date(2024, 2, 1))

        gains = sale.realized_gains
        assert len(gains) == 2

        assert gains[0].tax_lot_id == first.tax_lot.id
        assert gains[0].quantity_sold == Decimal("10")
        assert gains[0].cost_basis == Decimal("1005.00")
        assert gains[0].proceeds == Decimal("1500.00")
        assert gains[0].gain_loss == Decimal("495.00")
        assert gains[0].holding_period_days == 396
        assert gains[0].is_long_term is True

        assert gains[1].tax_lot_id == second.tax_lot.id
        assert gains[1].quantity_sold == Decimal("2")
        assert gains[1].gain_loss == Decimal("60.00")
        assert gains[1].holding_period_days == 245
        assert gains[1].is_long_term is False

    def test_lots_are_decremented(
        self, record, tax_lot_repo: SQLiteTaxLotRepository
    ) -> None:
        first = record(BUY, "10", "100", date(2023, 1, 1), fees="5")
        second = record(BUY, "5", "120", date(2023, 6, 1))

        record(SELL, "12", "150", date(2024, 2, 1))

        assert tax_lot_repo.get(first.tax_lot.id).remaining_quantity == Decimal("0")
        assert tax_lot_repo.get(second.tax_lot.id).remaining_quantity == Decimal("3")

    def test_fifo_by_purchase_date_not_entry_order(
        self, record, tax_lot_repo: SQLiteTaxLotRepository
    ) -> None:
        late = record(BUY, "5", "30", date(2023, 3, 1))
        early = record(BUY, "5", "10", date(2023, 1, 1))
        middle = record(BUY, "5", "20", date(2023, 2, 1))

        sale = record(SELL, "7", "50", date(2023, 4, 1))

        assert [g.tax_lot_id for g in sale.realized_gains] == [
            early.tax_lot.id,
            middle.tax_lot.id,
        ]
        assert tax_lot_repo.get(late.tax_lot.id).is_untouched

    def test_same_day_lots_drawn_in_creation_order(self, record) -> None:
        first = record(BUY, "1", "10", date(2023, 1, 1))
        second = record(BUY, "1", "11", date(2023, 1, 1))

        sale = record(SELL, "1.5", "20", date(2023, 2, 1))

        assert [g.tax_lot_id for g in sale.realized_gains] == [
            first.tax_lot.id,
            second.tax_lot.id,
        ]

    def test_selling_everything_empties_every_lot(
        self, record, owner_id: UUID, container: Container
    ) -> None:
        record(BUY, "3", "10", date(2023, 1, 1))
        record(BUY, "4", "11", date(2023, 2, 1))

        record(SELL, "7", "12", date(2023, 3, 1))

        assert container.tax_lot_store.lots_for_owner(owner_id) == []
        exhausted = container.tax_lot_store.lots_for_owner(
            owner_id, include_exhausted=True
        )
        assert all(lot.remaining_quantity == Decimal("0") for lot in exhausted)

    def test_fractional_crypto_quantities(self, record) -> None:
        record(
            BUY, "0.12345678", "30000", date(2023, 1, 1), symbol="BTC",
            asset_class=AssetClass.CRYPTO,
        )
        record(
            BUY, "0.00000001", "31000", date(2023, 1, 2), symbol="BTC",
            asset_class=AssetClass.CRYPTO,
        )

        sale = record(
            SELL, "0.12345679", "40000", date(2023, 2, 1), symbol="BTC",
            asset_class=AssetClass.CRYPTO,
        )

        assert [g.quantity_sold for g in sale.realized_gains] == [
            Decimal("0.12345678"),
            Decimal("0.00000001"),
        ]

    def test_smallest_unit_sale_draws_from_a_lot(
        self, record, tax_lot_repo: SQLiteTaxLotRepository
    ) -> None:
        buy = record(
            BUY, "1", "30000", date(2023, 1, 1), symbol="BTC",
            asset_class=AssetClass.CRYPTO,
        )

        sale = record(
            SELL, "0.00000001", "40000", date(2023, 2, 1), symbol="BTC",
            asset_class=AssetClass.CRYPTO,
        )

        assert len(sale.realized_gains) == 1
        assert sale.realized_gains[0].quantity_sold == Decimal("0.00000001")
        assert tax_lot_repo.get(buy.tax_lot.id).remaining_quantity == Decimal(
            "0.99999999"
        )

    def test_smallest_unit_sale_without_holdings_rejected(
        self, record, owner_id: UUID, container: Container
    ) -> None:
        with pytest.raises(InsufficientHoldingsError) as exc_info:
            record(
                SELL, "0.00000001", "40000", date(2023, 2, 1), symbol="BTC",
                asset_class=AssetClass.CRYPTO,
            )

        assert exc_info.value.requested == Decimal("0.00000001")
        assert container.transaction_repository.count_by_owner(owner_id) == 0

    def test_one_unit_short_rejected(self, record) -> None:
        record(
            BUY, "0.5", "30000", date(2023, 1, 1), symbol="BTC",
            asset_class=AssetClass.CRYPTO,
        )

        with pytest.raises(InsufficientHoldingsError):
            record(
                SELL, "0.50000001", "40000", date(2023, 2, 1), symbol="BTC",
                asset_class=AssetClass.CRYPTO,
            )

    @pytest.mark.parametrize(
        ("held_days", "expected"), [(365, False), (366, True), (367, True)]
    )
    def test_long_term_boundary(self, record, held_days: int, expected: bool) -> None:
        bought = date(2023, 1, 1)
        record(BUY, "1", "10", bought)

        sale = record(SELL, "1", "12", bought + timedelta(days=held_days))

        assert sale.realized_gains[0].holding_period_days == held_days
        assert sale.realized_gains[0].is_long_term is expected

    def test_insufficient_holdings_changes_nothing(
        self,
        record,
        owner_id: UUID,
        tax_lot_repo: SQLiteTaxLotRepository,
        realized_gain_repo: SQLiteRealizedGainRepository,
    ) -> None:
        buy = record(BUY, "3", "10", date(2023, 1, 1))

        with pytest.raises(InsufficientHoldingsError) as exc_info:
            record(SELL, "4", "12", date(2023, 2, 1))

        assert exc_info.value.requested == Decimal("4")
        assert exc_info.value.available == Decimal("3")
        assert tax_lot_repo.get(buy.tax_lot.id).remaining_quantity == Decimal("3")
        assert list(realized_gain_repo.list_by_owner(owner_id)) == []

    def test_other_owners_lots_are_invisible(
        self, record, other_owner_id: UUID
    ) -> None:
        record(BUY, "10", "10", date(2023, 1, 1), owner=other_owner_id)

        with pytest.raises(InsufficientHoldingsError):
            record(SELL, "1", "12", date(2023, 2, 1))

    def test_failed_settlement_rolls_back_lot_draws(
        self, container: Container, record, owner_id: UUID
    ) -> None:
        buy = record(BUY, "5", "10", date(2023, 1, 1))
        sell_id = uuid4()
        engine = container.gain_engine

        # No SELL row exists for sell_id, so the gain insert fails.
        with pytest.raises(sqlite3.IntegrityError):
            engine.settle_sale(
                owner_id, sell_id, buy.asset.id, Decimal("2"), Decimal("11"),
                date(2023, 2, 1),
            )

        lot_after = container.tax_lot_repository.get(buy.tax_lot.id)
        assert lot_after.remaining_quantity == Decimal("5")

    def test_custom_threshold(self, container: Container) -> None:
        engine = GainRealizationEngine(
            tax_lot_store=container.tax_lot_store,
            realized_gain_repo=container.realized_gain_repository,
            database=container.database,
            long_term_threshold_days=30,
        )

        assert engine.long_term_threshold_days == 30
        assert engine.quantity_tolerance == Decimal("1e-9")
