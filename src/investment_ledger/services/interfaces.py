from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from investment_ledger.domain.assets import Asset
from investment_ledger.domain.transactions import RealizedGain, TaxLot, Transaction
from investment_ledger.domain.value_objects import AssetClass, TransactionType


@dataclass
class RecordedTransaction:
    """Result of recording a BUY (with its lot) or a SELL (with its gains)."""

    transaction: Transaction
    asset: Asset
    tax_lot: TaxLot | None = None
    realized_gains: list[RealizedGain] = field(default_factory=list)

    @property
    def total_gain_loss(self) -> Decimal:
        return sum((g.gain_loss for g in self.realized_gains), Decimal("0"))


@dataclass
class TransactionView:
    transaction: Transaction
    symbol: str
    asset_name: str
    asset_class: AssetClass


@dataclass
class TransactionPage:
    items: list[TransactionView]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


@dataclass
class CostBasisLine:
    lot_id: UUID
    symbol: str
    name: str
    asset_class: AssetClass
    purchase_date: date
    original_quantity: Decimal
    remaining_quantity: Decimal
    cost_basis_per_unit: Decimal
    total_cost_basis: Decimal


@dataclass
class CostBasisGroup:
    asset_class: AssetClass
    lots: list[CostBasisLine] = field(default_factory=list)
    total_cost_basis: Decimal = Decimal("0")


@dataclass
class CostBasisReport:
    groups: dict[AssetClass, CostBasisGroup]
    total_cost_basis: Decimal


@dataclass
class UnrealizedGainLine:
    lot_id: UUID
    symbol: str
    name: str
    asset_class: AssetClass
    purchase_date: date
    quantity: Decimal
    cost_basis_per_unit: Decimal
    cost_basis: Decimal
    holding_days: int
    would_be_long_term: bool
    current_price: Decimal | None = None
    current_value: Decimal | None = None
    unrealized_gain: Decimal | None = None
    unrealized_gain_percent: Decimal | None = None

    @property
    def is_priced(self) -> bool:
        return self.current_price is not None


@dataclass
class UnrealizedGainsReport:
    lots: list[UnrealizedGainLine]
    total_cost_basis: Decimal
    total_current_value: Decimal
    total_unrealized_gain: Decimal
    unpriced_symbols: list[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.unpriced_symbols


@dataclass
class HoldingLine:
    """One asset's open position summed over its live lots.

    ``realized_gain`` covers every sale of the asset to date. Market figures
    and ``total_return`` stay ``None`` when the asset has no price.
    """

    asset_id: UUID
    symbol: str
    name: str
    asset_class: AssetClass
    quantity: Decimal
    cost_basis: Decimal
    first_purchase: date
    lot_count: int
    realized_gain: Decimal
    current_price: Decimal | None = None
    current_value: Decimal | None = None
    unrealized_gain: Decimal | None = None
    unrealized_gain_percent: Decimal | None = None
    total_return: Decimal | None = None

    @property
    def is_priced(self) -> bool:
        return self.current_price is not None


@dataclass
class HoldingsReport:
    holdings: list[HoldingLine]
    total_cost_basis: Decimal
    total_current_value: Decimal
    total_unrealized_gain: Decimal
    total_realized_gain: Decimal
    unpriced_symbols: list[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.unpriced_symbols


@dataclass
class AssetGainBreakdown:
    symbol: str
    asset_class: AssetClass
    is_long_term: bool
    quantity_sold: Decimal
    cost_basis: Decimal
    proceeds: Decimal
    gain_loss: Decimal


@dataclass
class AssetClassTaxTotals:
    short_term: Decimal = Decimal("0")
    long_term: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return self.short_term + self.long_term


@dataclass
class TaxSummary:
    year: int
    short_term_gains: Decimal
    short_term_losses: Decimal
    long_term_gains: Decimal
    long_term_losses: Decimal
    by_asset: list[AssetGainBreakdown]
    by_asset_class: dict[AssetClass, AssetClassTaxTotals]

    @property
    def net_short_term(self) -> Decimal:
        return self.short_term_gains - self.short_term_losses

    @property
    def net_long_term(self) -> Decimal:
        return self.long_term_gains - self.long_term_losses

    @property
    def total_net_gain(self) -> Decimal:
        return self.net_short_term + self.net_long_term


@dataclass
class TaxLotView:
    lot: TaxLot
    symbol: str
    name: str
    asset_class: AssetClass


@dataclass
class RealizedGainView:
    gain: RealizedGain
    symbol: str
    name: str
    asset_class: AssetClass


@dataclass
class RealizedGainsReport:
    gains: list[RealizedGainView]
    total_gain_loss: Decimal
    short_term_gain_loss: Decimal
    long_term_gain_loss: Decimal

    @property
    def count(self) -> int:
        return len(self.gains)


class AssetResolver(ABC):
    @abstractmethod
    def resolve_or_create_asset(self, symbol: str, asset_class: AssetClass) -> Asset:
        """Return the asset for (symbol, asset_class), creating it if unseen."""
        pass

    @abstractmethod
    def get_asset(self, asset_id: UUID) -> Asset:
        pass


class PriceFeed(ABC):
    """Market data source consulted by reports, never by settlement."""

    @abstractmethod
    def current_price(
        self, asset_id: UUID, symbol: str, asset_class: AssetClass
    ) -> Decimal:
        """Return the latest known price.

        Raises:
            PriceUnavailableError: If no price can be produced for the asset.
        """
        pass


class TransactionLedger(ABC):
    @abstractmethod
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
        pass

    @abstractmethod
    def get_transaction(self, owner_id: UUID, transaction_id: UUID) -> TransactionView:
        pass

    @abstractmethod
    def delete_transaction(self, owner_id: UUID, transaction_id: UUID) -> None:
        pass
