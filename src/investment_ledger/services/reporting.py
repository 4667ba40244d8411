"""Read-only rollups over tax lots and realized gains."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from investment_ledger.domain.assets import Asset
from investment_ledger.domain.transactions import TaxLot
from investment_ledger.domain.value_objects import (
    DEFAULT_LONG_TERM_THRESHOLD_DAYS,
    AssetClass,
    is_long_term,
    quantize_money,
    to_decimal,
)
from investment_ledger.exceptions import PriceUnavailableError
from investment_ledger.logging_config import get_logger
from investment_ledger.repositories.interfaces import RealizedGainRepository
from investment_ledger.services.interfaces import (
    AssetClassTaxTotals,
    AssetGainBreakdown,
    AssetResolver,
    CostBasisGroup,
    CostBasisLine,
    CostBasisReport,
    HoldingLine,
    HoldingsReport,
    PriceFeed,
    RealizedGainsReport,
    RealizedGainView,
    TaxLotView,
    TaxSummary,
    UnrealizedGainLine,
    UnrealizedGainsReport,
)
from investment_ledger.services.tax_lots import TaxLotStore

logger = get_logger(__name__)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def _percent_of(gain: Decimal, cost_basis: Decimal) -> Decimal:
    if cost_basis <= _ZERO:
        return _ZERO
    return (gain / cost_basis * _HUNDRED).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class ReportingService:
    """Builds cost-basis, unrealized-gain, tax and lot reports for one owner."""

    def __init__(
        self,
        tax_lot_store: TaxLotStore,
        realized_gain_repo: RealizedGainRepository,
        asset_resolver: AssetResolver,
        long_term_threshold_days: int = DEFAULT_LONG_TERM_THRESHOLD_DAYS,
    ) -> None:
        self._tax_lot_store = tax_lot_store
        self._realized_gain_repo = realized_gain_repo
        self._asset_resolver = asset_resolver
        self._long_term_threshold_days = long_term_threshold_days

    def get_cost_basis_report(self, owner_id: UUID) -> CostBasisReport:
        """Group live lots by asset class and total their remaining cost basis."""
        groups = {asset_class: CostBasisGroup(asset_class) for asset_class in AssetClass}
        for lot, asset in self._live_lots(owner_id):
            line = CostBasisLine(
                lot_id=lot.id,
                symbol=asset.symbol,
                name=asset.name,
                asset_class=asset.asset_class,
                purchase_date=lot.purchase_date,
                original_quantity=lot.original_quantity,
                remaining_quantity=lot.remaining_quantity,
                cost_basis_per_unit=lot.cost_basis_per_unit,
                total_cost_basis=lot.remaining_cost_basis,
            )
            group = groups[asset.asset_class]
            group.lots.append(line)
            group.total_cost_basis += line.total_cost_basis

        return CostBasisReport(
            groups=groups,
            total_cost_basis=sum(
                (group.total_cost_basis for group in groups.values()), _ZERO
            ),
        )

    def get_unrealized_gains(
        self,
        owner_id: UUID,
        price_by_symbol: Mapping[str, Decimal | int | str],
        as_of: date | None = None,
    ) -> UnrealizedGainsReport:
        """Paper gains for every live lot at the supplied prices.

        A lot whose symbol has no price keeps ``None`` for its market figures,
        is left out of the totals and its symbol is reported in
        ``unpriced_symbols``.
        """
        as_of = as_of or date.today()
        prices = {
            symbol.strip().upper(): to_decimal(price)
            for symbol, price in price_by_symbol.items()
            if price is not None
        }

        lines: list[UnrealizedGainLine] = []
        unpriced: list[str] = []
        total_cost = _ZERO
        total_value = _ZERO
        total_gain = _ZERO
        for lot, asset in self._live_lots(owner_id):
            holding_days = lot.holding_period_days(as_of)
            cost_basis = lot.remaining_cost_basis
            line = UnrealizedGainLine(
                lot_id=lot.id,
                symbol=asset.symbol,
                name=asset.name,
                asset_class=asset.asset_class,
                purchase_date=lot.purchase_date,
                quantity=lot.remaining_quantity,
                cost_basis_per_unit=lot.cost_basis_per_unit,
                cost_basis=cost_basis,
                holding_days=holding_days,
                would_be_long_term=is_long_term(
                    holding_days, self._long_term_threshold_days
                ),
            )
            price = prices.get(asset.symbol)
            if price is None:
                if asset.symbol not in unpriced:
                    unpriced.append(asset.symbol)
            else:
                line.current_price = price
                line.current_value = quantize_money(lot.remaining_quantity * price)
                line.unrealized_gain = line.current_value - cost_basis
                line.unrealized_gain_percent = _percent_of(line.unrealized_gain, cost_basis)
                total_cost += cost_basis
                total_value += line.current_value
                total_gain += line.unrealized_gain
            lines.append(line)

        if unpriced:
            logger.info(
                "unrealized_gains_incomplete",
                owner_id=str(owner_id),
                unpriced_symbols=unpriced,
            )
        return UnrealizedGainsReport(
            lots=lines,
            total_cost_basis=total_cost,
            total_current_value=total_value,
            total_unrealized_gain=total_gain,
            unpriced_symbols=unpriced,
        )

    def get_holdings(
        self, owner_id: UUID, price_by_symbol: Mapping[str, Decimal | int | str]
    ) -> HoldingsReport:
        """Per-asset position: live lots summed, valued, and joined with realized gains.

        Holdings are ordered by cost basis, largest first. An asset without a
        price keeps ``None`` market figures and is left out of the value and
        unrealized totals; its realized gain still counts.
        """
        prices = {
            symbol.strip().upper(): to_decimal(price)
            for symbol, price in price_by_symbol.items()
            if price is not None
        }
        realized: dict[UUID, Decimal] = {}
        for gain in self._realized_gain_repo.list_by_owner(owner_id):
            realized[gain.asset_id] = realized.get(gain.asset_id, _ZERO) + gain.gain_loss

        by_asset: dict[UUID, HoldingLine] = {}
        for lot, asset in self._live_lots(owner_id):
            line = by_asset.get(asset.id)
            if line is None:
                line = HoldingLine(
                    asset_id=asset.id,
                    symbol=asset.symbol,
                    name=asset.name,
                    asset_class=asset.asset_class,
                    quantity=_ZERO,
                    cost_basis=_ZERO,
                    first_purchase=lot.purchase_date,
                    lot_count=0,
                    realized_gain=realized.get(asset.id, _ZERO),
                )
                by_asset[asset.id] = line
            line.quantity += lot.remaining_quantity
            line.cost_basis += lot.remaining_cost_basis
            line.first_purchase = min(line.first_purchase, lot.purchase_date)
            line.lot_count += 1

        holdings = sorted(by_asset.values(), key=lambda h: (-h.cost_basis, h.symbol))
        unpriced: list[str] = []
        total_value = total_unrealized = _ZERO
        for line in holdings:
            price = prices.get(line.symbol)
            if price is None:
                unpriced.append(line.symbol)
                continue
            line.current_price = price
            line.current_value = quantize_money(line.quantity * price)
            line.unrealized_gain = line.current_value - line.cost_basis
            line.unrealized_gain_percent = _percent_of(line.unrealized_gain, line.cost_basis)
            line.total_return = line.unrealized_gain + line.realized_gain
            total_value += line.current_value
            total_unrealized += line.unrealized_gain

        if unpriced:
            logger.info(
                "holdings_incomplete", owner_id=str(owner_id), unpriced_symbols=unpriced
            )
        return HoldingsReport(
            holdings=holdings,
            total_cost_basis=sum((h.cost_basis for h in holdings), _ZERO),
            total_current_value=total_value,
            total_unrealized_gain=total_unrealized,
            total_realized_gain=sum(realized.values(), _ZERO),
            unpriced_symbols=unpriced,
        )

    def collect_prices(self, owner_id: UUID, price_feed: PriceFeed) -> dict[str, Decimal]:
        """Ask ``price_feed`` for every asset the owner holds.

        Assets the feed cannot price are skipped so the unrealized report can
        mark them as indeterminate.
        """
        prices: dict[str, Decimal] = {}
        seen: set[UUID] = set()
        for lot, asset in self._live_lots(owner_id):
            if asset.id in seen:
                continue
            seen.add(asset.id)
            try:
                prices[asset.symbol] = price_feed.current_price(
                    asset.id, asset.symbol, asset.asset_class
                )
            except PriceUnavailableError as e:
                logger.warning("price_unavailable", symbol=asset.symbol, reason=str(e))
        return prices

    def get_tax_summary(self, owner_id: UUID, year: int) -> TaxSummary:
        """Short- and long-term gains and losses realized in calendar ``year``.

        Gains are grouped by (symbol, asset class, term). Each group's net is
        counted as a gain when non-negative and as a loss otherwise.
        """
        gains = self._realized_gain_repo.list_by_owner(
            owner_id, start_date=date(year, 1, 1), end_date=date(year, 12, 31)
        )

        grouped: dict[tuple[str, AssetClass, bool], AssetGainBreakdown] = {}
        assets: dict[UUID, Asset] = {}
        for gain in gains:
            asset = self._asset(gain.asset_id, assets)
            key = (asset.symbol, asset.asset_class, gain.is_long_term)
            row = grouped.get(key)
            if row is None:
                row = AssetGainBreakdown(
                    symbol=asset.symbol,
                    asset_class=asset.asset_class,
                    is_long_term=gain.is_long_term,
                    quantity_sold=_ZERO,
                    cost_basis=_ZERO,
                    proceeds=_ZERO,
                    gain_loss=_ZERO,
                )
                grouped[key] = row
            row.quantity_sold += gain.quantity_sold
            row.cost_basis += gain.cost_basis
            row.proceeds += gain.proceeds
            row.gain_loss += gain.gain_loss

        short_gains = short_losses = long_gains = long_losses = _ZERO
        by_asset_class = {asset_class: AssetClassTaxTotals() for asset_class in AssetClass}
        by_asset = sorted(
            grouped.values(),
            key=lambda r: (r.asset_class.value, r.symbol, r.is_long_term),
        )
        for row in by_asset:
            totals = by_asset_class[row.asset_class]
            if row.is_long_term:
                if row.gain_loss >= _ZERO:
                    long_gains += row.gain_loss
                else:
                    long_losses += abs(row.gain_loss)
                totals.long_term += row.gain_loss
            else:
                if row.gain_loss >= _ZERO:
                    short_gains += row.gain_loss
                else:
                    short_losses += abs(row.gain_loss)
                totals.short_term += row.gain_loss

        return TaxSummary(
            year=year,
            short_term_gains=short_gains,
            short_term_losses=short_losses,
            long_term_gains=long_gains,
            long_term_losses=long_losses,
            by_asset=by_asset,
            by_asset_class=by_asset_class,
        )

    def get_tax_lots(
        self, owner_id: UUID, include_exhausted: bool = False
    ) -> list[TaxLotView]:
        assets: dict[UUID, Asset] = {}
        views: list[TaxLotView] = []
        for lot in self._tax_lot_store.lots_for_owner(owner_id, include_exhausted):
            asset = self._asset(lot.asset_id, assets)
            views.append(
                TaxLotView(
                    lot=lot,
                    symbol=asset.symbol,
                    name=asset.name,
                    asset_class=asset.asset_class,
                )
            )
        # Stable sort keeps (purchase_date, sequence) order within a symbol
        views.sort(key=lambda view: view.symbol)
        return views

    def get_realized_gains(
        self,
        owner_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
        asset_class: AssetClass | None = None,
    ) -> RealizedGainsReport:
        assets: dict[UUID, Asset] = {}
        views: list[RealizedGainView] = []
        total = short_term = long_term = _ZERO
        for gain in self._realized_gain_repo.list_by_owner(owner_id, start_date, end_date):
            asset = self._asset(gain.asset_id, assets)
            if asset_class is not None and asset.asset_class != asset_class:
                continue
            views.append(
                RealizedGainView(
                    gain=gain,
                    symbol=asset.symbol,
                    name=asset.name,
                    asset_class=asset.asset_class,
                )
            )
            total += gain.gain_loss
            if gain.is_long_term:
                long_term += gain.gain_loss
            else:
                short_term += gain.gain_loss

        return RealizedGainsReport(
            gains=views,
            total_gain_loss=total,
            short_term_gain_loss=short_term,
            long_term_gain_loss=long_term,
        )

    def _live_lots(self, owner_id: UUID) -> list[tuple[TaxLot, Asset]]:
        """Open lots with their assets, ordered by asset class, symbol, purchase."""
        assets: dict[UUID, Asset] = {}
        pairs = [
            (lot, self._asset(lot.asset_id, assets))
            for lot in self._tax_lot_store.lots_for_owner(owner_id)
        ]
        pairs.sort(key=lambda pair: (pair[1].asset_class.value, pair[1].symbol))
        return pairs

    def _asset(self, asset_id: UUID, cache: dict[UUID, Asset]) -> Asset:
        if asset_id not in cache:
            cache[asset_id] = self._asset_resolver.get_asset(asset_id)
        return cache[asset_id]
