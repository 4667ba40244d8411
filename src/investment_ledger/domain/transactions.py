from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from investment_ledger.domain.value_objects import (
    TransactionType,
    quantize_money,
    quantize_unit_price,
)
from investment_ledger.exceptions import LedgerIntegrityError


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class Transaction:
    owner_id: UUID
    asset_id: UUID
    transaction_type: TransactionType
    quantity: Decimal
    price_per_unit: Decimal
    transaction_date: date
    fees: Decimal = Decimal("0")
    notes: str = ""
    id: UUID = field(default_factory=uuid4)
    total_amount: Decimal = field(init=False)
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        # Fees are added for both types; on a SELL they are informational only
        self.total_amount = quantize_money(
            self.quantity * self.price_per_unit + self.fees
        )

    @property
    def is_buy(self) -> bool:
        return self.transaction_type == TransactionType.BUY

    @property
    def is_sell(self) -> bool:
        return self.transaction_type == TransactionType.SELL


@dataclass
class TaxLot:
    owner_id: UUID
    asset_id: UUID
    buy_transaction_id: UUID
    purchase_date: date
    cost_basis_per_unit: Decimal
    original_quantity: Decimal
    id: UUID = field(default_factory=uuid4)
    remaining_quantity: Decimal = field(init=False)
    sequence: int | None = None
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        self.remaining_quantity = self.original_quantity

    @classmethod
    def from_purchase(
        cls,
        owner_id: UUID,
        buy_transaction_id: UUID,
        asset_id: UUID,
        quantity: Decimal,
        price_per_unit: Decimal,
        fees: Decimal,
        purchase_date: date,
    ) -> "TaxLot":
        """Open a lot whose per-unit cost basis absorbs the purchase fees."""
        total_cost = quantity * price_per_unit + fees
        return cls(
            owner_id=owner_id,
            asset_id=asset_id,
            buy_transaction_id=buy_transaction_id,
            purchase_date=purchase_date,
            cost_basis_per_unit=quantize_unit_price(total_cost / quantity),
            original_quantity=quantity,
        )

    @property
    def total_cost_basis(self) -> Decimal:
        return quantize_money(self.original_quantity * self.cost_basis_per_unit)

    @property
    def remaining_cost_basis(self) -> Decimal:
        return quantize_money(self.remaining_quantity * self.cost_basis_per_unit)

    @property
    def sold_quantity(self) -> Decimal:
        return self.original_quantity - self.remaining_quantity

    @property
    def is_open(self) -> bool:
        return self.remaining_quantity > Decimal("0")

    @property
    def is_untouched(self) -> bool:
        return self.remaining_quantity == self.original_quantity

    def holding_period_days(self, as_of: date) -> int:
        return (as_of - self.purchase_date).days

    def draw(self, quantity: Decimal) -> None:
        if quantity <= Decimal("0"):
            raise LedgerIntegrityError(
                f"Cannot draw non-positive quantity {quantity} from lot {self.id}"
            )
        if quantity > self.remaining_quantity:
            raise LedgerIntegrityError(
                f"Cannot draw {quantity} from lot {self.id}: "
                f"only {self.remaining_quantity} remaining"
            )
        self.remaining_quantity -= quantity

    def restore(self, quantity: Decimal) -> None:
        if quantity <= Decimal("0"):
            raise LedgerIntegrityError(
                f"Cannot restore non-positive quantity {quantity} to lot {self.id}"
            )
        if self.remaining_quantity + quantity > self.original_quantity:
            raise LedgerIntegrityError(
                f"Restoring {quantity} to lot {self.id} would exceed its "
                f"original quantity {self.original_quantity}"
            )
        self.remaining_quantity += quantity


@dataclass
class RealizedGain:
    owner_id: UUID
    sell_transaction_id: UUID
    tax_lot_id: UUID
    asset_id: UUID
    quantity_sold: Decimal
    cost_basis: Decimal
    proceeds: Decimal
    holding_period_days: int
    is_long_term: bool
    sale_date: date
    id: UUID = field(default_factory=uuid4)
    gain_loss: Decimal = field(init=False)
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        self.gain_loss = self.proceeds - self.cost_basis

    @property
    def is_loss(self) -> bool:
        return self.gain_loss < Decimal("0")
