from investment_ledger.repositories.interfaces import (
    AssetRepository,
    LedgerDatabase,
    RealizedGainRepository,
    TaxLotRepository,
    TransactionQuery,
    TransactionRepository,
)
from investment_ledger.repositories.sqlite import (
    SQLiteAssetRepository,
    SQLiteDatabase,
    SQLiteRealizedGainRepository,
    SQLiteTaxLotRepository,
    SQLiteTransactionRepository,
)

__all__ = [
    "AssetRepository",
    "LedgerDatabase",
    "RealizedGainRepository",
    "TaxLotRepository",
    "TransactionQuery",
    "TransactionRepository",
    "SQLiteAssetRepository",
    "SQLiteDatabase",
    "SQLiteRealizedGainRepository",
    "SQLiteTaxLotRepository",
    "SQLiteTransactionRepository",
]

# PostgreSQL support is optional - only available if psycopg2 is installed
try:
    from investment_ledger.repositories.postgres import (
        PostgresAssetRepository,
        PostgresDatabase,
        PostgresRealizedGainRepository,
        PostgresTaxLotRepository,
        PostgresTransactionRepository,
    )

    __all__ += [
        "PostgresAssetRepository",
        "PostgresDatabase",
        "PostgresRealizedGainRepository",
        "PostgresTaxLotRepository",
        "PostgresTransactionRepository",
    ]
except ImportError:
    pass
