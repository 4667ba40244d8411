"""Tests for Asset, Transaction, TaxLot and RealizedGain domain objects."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from investment_ledger.domain.assets import Asset
from investment_ledger.domain.transactions import RealizedGain, TaxLot, Transaction
from investment_ledger.domain.value_objects import AssetClass, TransactionType
from investment_ledger.exceptions import LedgerIntegrityError


def make_lot(quantity: str = "10", cost: str = "100") -> TaxLot:
    return TaxLot(
        owner_id=uuid4(),
        asset_id=uuid4(),
        buy_transaction_id=uuid4(),
        purchase_date=date(2023, 1, 1),
        cost_basis_per_unit=Decimal(cost),
        original_quantity=Decimal(quantity),
    )


class TestAsset:
    def test_symbol_is_normalised(self) -> None:
        asset = Asset(symbol="  btc ", asset_class=AssetClass.CRYPTO)

        assert asset.symbol == "BTC"

    def test_name_defaults_to_symbol(self) -> None:
        asset = Asset(symbol="msft", asset_class=AssetClass.STOCK)

        assert asset.name == "MSFT"

    def test_explicit_name_kept(self) -> None:
        asset = Asset(symbol="AAPL", asset_class=AssetClass.STOCK, name="Apple Inc.")

        assert asset.name == "Apple Inc."


class TestTransaction:
    def test_total_amount_adds_fees(self) -> None:
        txn = Transaction(
            owner_id=uuid4(),
            asset_id=uuid4(),
            transaction_type=TransactionType.BUY,
            quantity=Decimal("10"),
            price_per_unit=Decimal("100"),
            transaction_date=date(2023, 1, 1),
            fees=Decimal("5"),
        )

        assert txn.total_amount == Decimal("1005.00")
        assert txn.is_buy
        assert not txn.is_sell

    def test_sell_total_amount_also_adds_fees(self) -> None:
        txn = Transaction(
            owner_id=uuid4(),
            asset_id=uuid4(),
            transaction_type=TransactionType.SELL,
            quantity=Decimal("2"),
            price_per_unit=Decimal("150"),
            transaction_date=date(2024, 2, 1),
            fees=Decimal("1.50"),
        )

        assert txn.total_amount == Decimal("301.50")
        assert txn.is_sell


class TestTaxLot:
    def test_from_purchase_folds_fees_into_basis(self) -> None:
        lot = TaxLot.from_purchase(
            owner_id=uuid4(),
            buy_transaction_id=uuid4(),
            asset_id=uuid4(),
            quantity=Decimal("10"),
            price_per_unit=Decimal("100"),
            fees=Decimal("5"),
            purchase_date=date(2023, 1, 1),
        )

        assert lot.cost_basis_per_unit == Decimal("100.50")
        assert lot.original_quantity == Decimal("10")
        assert lot.remaining_quantity == Decimal("10")
        assert lot.total_cost_basis == Decimal("1005.00")
        assert lot.is_untouched

    def test_from_purchase_repeating_fraction_quantized(self) -> None:
        lot = TaxLot.from_purchase(
            owner_id=uuid4(),
            buy_transaction_id=uuid4(),
            asset_id=uuid4(),
            quantity=Decimal("3"),
            price_per_unit=Decimal("10"),
            fees=Decimal("1"),
            purchase_date=date(2023, 1, 1),
        )

        assert lot.cost_basis_per_unit == Decimal("10.33333333")

    def test_draw_reduces_remaining(self) -> None:
        lot = make_lot()

        lot.draw(Decimal("4"))

        assert lot.remaining_quantity == Decimal("6")
        assert lot.sold_quantity == Decimal("4")
        assert lot.remaining_cost_basis == Decimal("600.00")
        assert lot.is_open
        assert not lot.is_untouched

    def test_draw_entire_lot_closes_it(self) -> None:
        lot = make_lot()

        lot.draw(Decimal("10"))

        assert lot.remaining_quantity == Decimal("0")
        assert not lot.is_open

    def test_overdraw_rejected(self) -> None:
        lot = make_lot()

        with pytest.raises(LedgerIntegrityError):
            lot.draw(Decimal("10.00000001"))
        assert lot.remaining_quantity == Decimal("10")

    @pytest.mark.parametrize("quantity", ["0", "-1"])
    def test_non_positive_draw_rejected(self, quantity: str) -> None:
        lot = make_lot()

        with pytest.raises(LedgerIntegrityError):
            lot.draw(Decimal(quantity))

    def test_restore_returns_quantity(self) -> None:
        lot = make_lot()
        lot.draw(Decimal("7"))

        lot.restore(Decimal("7"))

        assert lot.remaining_quantity == Decimal("10")
        assert lot.is_untouched

    def test_restore_beyond_original_rejected(self) -> None:
        lot = make_lot()
        lot.draw(Decimal("2"))

        with pytest.raises(LedgerIntegrityError):
            lot.restore(Decimal("3"))
        assert lot.remaining_quantity == Decimal("8")

    def test_holding_period_days(self) -> None:
        lot = make_lot()

        assert lot.holding_period_days(date(2024, 2, 1)) == 396
        assert lot.holding_period_days(date(2023, 1, 1)) == 0


class TestRealizedGain:
    def test_gain_loss_is_proceeds_minus_basis(self) -> None:
        gain = RealizedGain(
            owner_id=uuid4(),
            sell_transaction_id=uuid4(),
            tax_lot_id=uuid4(),
            asset_id=uuid4(),
            quantity_sold=Decimal("10"),
            cost_basis=Decimal("1005.00"),
            proceeds=Decimal("1500.00"),
            holding_period_days=396,
            is_long_term=True,
            sale_date=date(2024, 2, 1),
        )

        assert gain.gain_loss == Decimal("495.00")
        assert not gain.is_loss

    def test_loss_is_negative(self) -> None:
        gain = RealizedGain(
            owner_id=uuid4(),
            sell_transaction_id=uuid4(),
            tax_lot_id=uuid4(),
            asset_id=uuid4(),
            quantity_sold=Decimal("1"),
            cost_basis=Decimal("120.00"),
            proceeds=Decimal("80.00"),
            holding_period_days=10,
            is_long_term=False,
            sale_date=date(2024, 2, 1),
        )

        assert gain.gain_loss == Decimal("-40.00")
        assert gain.is_loss
