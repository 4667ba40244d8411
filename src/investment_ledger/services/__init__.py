from investment_ledger.services.assets import AssetResolverImpl
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
    RecordedTransaction,
    TaxLotView,
    TaxSummary,
    TransactionLedger,
    TransactionPage,
    TransactionView,
    UnrealizedGainLine,
    UnrealizedGainsReport,
)
from investment_ledger.services.ledger import TransactionLedgerService
from investment_ledger.services.lot_matching import GainRealizationEngine, LotDraw
from investment_ledger.services.pricing import StaticPriceFeed
from investment_ledger.services.reporting import ReportingService
from investment_ledger.services.reversal import ReversalCoordinator
from investment_ledger.services.tax_lots import TaxLotStore

__all__ = [
    "AssetClassTaxTotals",
    "AssetGainBreakdown",
    "AssetResolver",
    "AssetResolverImpl",
    "CostBasisGroup",
    "CostBasisLine",
    "CostBasisReport",
    "GainRealizationEngine",
    "HoldingLine",
    "HoldingsReport",
    "LotDraw",
    "PriceFeed",
    "RealizedGainsReport",
    "RealizedGainView",
    "RecordedTransaction",
    "ReportingService",
    "ReversalCoordinator",
    "StaticPriceFeed",
    "TaxLotStore",
    "TaxLotView",
    "TaxSummary",
    "TransactionLedger",
    "TransactionLedgerService",
    "TransactionPage",
    "TransactionView",
    "UnrealizedGainLine",
    "UnrealizedGainsReport",
]
