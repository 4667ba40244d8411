from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

QUANTITY_PLACES = Decimal("0.00000001")
UNIT_PRICE_PLACES = Decimal("0.00000001")
MONEY_PLACES = Decimal("0.01")

# Below the 8-place quantum so a one-unit shortfall is never absorbed
DEFAULT_QUANTITY_TOLERANCE = Decimal("1e-9")
DEFAULT_LONG_TERM_THRESHOLD_DAYS = 366


class AssetClass(str, Enum):
    STOCK = "STOCK"
    CRYPTO = "CRYPTO"


class TransactionType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Coerce user input to Decimal without going through binary floats."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_quantity(value: Decimal) -> Decimal:
    return value.quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def quantize_unit_price(value: Decimal) -> Decimal:
    return value.quantize(UNIT_PRICE_PLACES, rounding=ROUND_HALF_UP)


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def is_long_term(holding_period_days: int, threshold_days: int) -> bool:
    """Long-term means held at least ``threshold_days`` raw calendar days."""
    return holding_period_days >= threshold_days


__all__ = [
    "AssetClass",
    "TransactionType",
    "QUANTITY_PLACES",
    "UNIT_PRICE_PLACES",
    "MONEY_PLACES",
    "DEFAULT_QUANTITY_TOLERANCE",
    "DEFAULT_LONG_TERM_THRESHOLD_DAYS",
    "to_decimal",
    "quantize_quantity",
    "quantize_unit_price",
    "quantize_money",
    "is_long_term",
]
