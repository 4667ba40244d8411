from investment_ledger.domain.assets import Asset
from investment_ledger.domain.transactions import RealizedGain, TaxLot, Transaction
from investment_ledger.domain.value_objects import AssetClass, TransactionType

__all__ = [
    "Asset",
    "AssetClass",
    "RealizedGain",
    "TaxLot",
    "Transaction",
    "TransactionType",
]
