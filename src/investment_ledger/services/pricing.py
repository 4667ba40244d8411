"""Price feeds consumed by unrealized-gain reporting."""

from collections.abc import Mapping
from decimal import Decimal
from uuid import UUID

from investment_ledger.domain.value_objects import AssetClass, to_decimal
from investment_ledger.exceptions import PriceUnavailableError
from investment_ledger.services.interfaces import PriceFeed


class StaticPriceFeed(PriceFeed):
    """Serves prices from a fixed symbol -> price mapping."""

    def __init__(self, prices: Mapping[str, Decimal | int | str] | None = None) -> None:
        self._prices: dict[str, Decimal] = {}
        for symbol, price in (prices or {}).items():
            self.set_price(symbol, price)

    def set_price(self, symbol: str, price: Decimal | int | str) -> None:
        self._prices[symbol.strip().upper()] = to_decimal(price)

    def current_price(
        self, asset_id: UUID, symbol: str, asset_class: AssetClass
    ) -> Decimal:
        price = self._prices.get(symbol.strip().upper())
        if price is None:
            raise PriceUnavailableError(symbol, "no price configured")
        return price
