from collections.abc import Iterator
from datetime import date
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

import pytest

from investment_ledger.config import Settings
from investment_ledger.container import Container
from investment_ledger.domain.assets import Asset
from investment_ledger.domain.value_objects import AssetClass, TransactionType
from investment_ledger.repositories.sqlite import (
    SQLiteAssetRepository,
    SQLiteDatabase,
    SQLiteRealizedGainRepository,
    SQLiteTaxLotRepository,
    SQLiteTransactionRepository,
)
from investment_ledger.services.interfaces import RecordedTransaction
from investment_ledger.services.ledger import TransactionLedgerService
from investment_ledger.services.reporting import ReportingService


@pytest.fixture
def settings() -> Settings:
    return Settings(sqlite_path=Path(":memory:"), _env_file=None)


@pytest.fixture
def container(settings: Settings) -> Iterator[Container]:
    with Container(settings=settings) as c:
        yield c


@pytest.fixture
def db(container: Container) -> SQLiteDatabase:
    """In-memory SQLite database shared by the container's services."""
    database = container.database
    assert isinstance(database, SQLiteDatabase)
    return database


@pytest.fixture
def asset_repo(container: Container) -> SQLiteAssetRepository:
    return container.asset_repository  # type: ignore[return-value]


@pytest.fixture
def transaction_repo(container: Container) -> SQLiteTransactionRepository:
    return container.transaction_repository  # type: ignore[return-value]


@pytest.fixture
def tax_lot_repo(container: Container) -> SQLiteTaxLotRepository:
    return container.tax_lot_repository  # type: ignore[return-value]


@pytest.fixture
def realized_gain_repo(container: Container) -> SQLiteRealizedGainRepository:
    return container.realized_gain_repository  # type: ignore[return-value]


@pytest.fixture
def ledger(container: Container) -> TransactionLedgerService:
    return container.ledger_service


@pytest.fixture
def reporting(container: Container) -> ReportingService:
    return container.reporting_service


@pytest.fixture
def owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def aapl(asset_repo: SQLiteAssetRepository) -> Asset:
    asset = Asset(symbol="AAPL", asset_class=AssetClass.STOCK, name="Apple Inc.")
    asset_repo.add(asset)
    return asset


@pytest.fixture
def record(ledger: TransactionLedgerService, owner_id: UUID):
    """Shorthand for recording a transaction for the default test owner."""

    def _record(
        transaction_type: TransactionType,
        quantity: str,
        price: str,
        on: date,
        symbol: str = "AAPL",
        asset_class: AssetClass = AssetClass.STOCK,
        fees: str = "0",
        owner: UUID | None = None,
    ) -> RecordedTransaction:
        return ledger.record_transaction(
            owner_id=owner or owner_id,
            symbol=symbol,
            asset_class=asset_class,
            transaction_type=transaction_type,
            quantity=Decimal(quantity),
            price_per_unit=Decimal(price),
            transaction_date=on,
            fees=Decimal(fees),
        )

    return _record
