"""Dependency injection container for Investment Ledger.

Builds the database, repositories and services lazily from settings so the
CLI and the test suite can share one wiring.

Usage:
    from investment_ledger.container import Container, get_container

    container = get_container()
    ledger = container.ledger_service
    report = container.reporting_service.get_cost_basis_report(owner_id)
"""

from functools import cached_property, lru_cache

from investment_ledger.config import DatabaseType, Settings, get_settings
from investment_ledger.logging_config import get_logger
from investment_ledger.repositories.interfaces import (
    AssetRepository,
    LedgerDatabase,
    RealizedGainRepository,
    TaxLotRepository,
    TransactionRepository,
)
from investment_ledger.services.assets import AssetResolverImpl
from investment_ledger.services.ledger import TransactionLedgerService
from investment_ledger.services.lot_matching import GainRealizationEngine
from investment_ledger.services.reporting import ReportingService
from investment_ledger.services.reversal import ReversalCoordinator
from investment_ledger.services.tax_lots import TaxLotStore

logger = get_logger(__name__)


class Container:
    """Dependency injection container.

    Services are instantiated on first access and cached for reuse. Tests
    build one with custom settings:

        settings = Settings(sqlite_path=":memory:")
        container = Container(settings=settings)
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        logger.debug(
            "container_created",
            database_type=self._settings.database_type.value,
            environment=self._settings.environment.value,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @cached_property
    def database(self) -> LedgerDatabase:
        """The database, initialized on first access.

        SQLite unless settings select PostgreSQL.
        """
        if self._settings.database_type == DatabaseType.POSTGRES:
            return self._create_postgres_database()
        return self._create_sqlite_database()

    def _create_sqlite_database(self) -> LedgerDatabase:
        from investment_ledger.repositories.sqlite import SQLiteDatabase

        db_path = str(self._settings.sqlite_path)
        logger.info("initializing_sqlite_database", path=db_path)

        db = SQLiteDatabase(db_path)
        db.initialize()
        return db

    def _create_postgres_database(self) -> LedgerDatabase:
        url = self._settings.database_url
        if not url:
            raise ValueError("database_url must be set when database_type is postgres")

        from investment_ledger.repositories.postgres import PostgresDatabase

        logger.info(
            "initializing_postgres_database",
            # Don't log the full URL as it may contain credentials
            host=url.split("@")[-1].split("/")[0] if "@" in url else "localhost",
        )

        db = PostgresDatabase(url)
        db.initialize()
        return db

    @property
    def _is_postgres(self) -> bool:
        return self._settings.database_type == DatabaseType.POSTGRES

    @cached_property
    def asset_repository(self) -> AssetRepository:
        if self._is_postgres:
            from investment_ledger.repositories.postgres import PostgresAssetRepository

            return PostgresAssetRepository(self.database)  # type: ignore[arg-type]
        from investment_ledger.repositories.sqlite import SQLiteAssetRepository

        return SQLiteAssetRepository(self.database)  # type: ignore[arg-type]

    @cached_property
    def transaction_repository(self) -> TransactionRepository:
        if self._is_postgres:
            from investment_ledger.repositories.postgres import (
                PostgresTransactionRepository,
            )

            return PostgresTransactionRepository(self.database)  # type: ignore[arg-type]
        from investment_ledger.repositories.sqlite import SQLiteTransactionRepository

        return SQLiteTransactionRepository(self.database)  # type: ignore[arg-type]

    @cached_property
    def tax_lot_repository(self) -> TaxLotRepository:
        if self._is_postgres:
            from investment_ledger.repositories.postgres import PostgresTaxLotRepository

            return PostgresTaxLotRepository(self.database)  # type: ignore[arg-type]
        from investment_ledger.repositories.sqlite import SQLiteTaxLotRepository

        return SQLiteTaxLotRepository(self.database)  # type: ignore[arg-type]

    @cached_property
    def realized_gain_repository(self) -> RealizedGainRepository:
        if self._is_postgres:
            from investment_ledger.repositories.postgres import (
                PostgresRealizedGainRepository,
            )

            return PostgresRealizedGainRepository(self.database)  # type: ignore[arg-type]
        from investment_ledger.repositories.sqlite import SQLiteRealizedGainRepository

        return SQLiteRealizedGainRepository(self.database)  # type: ignore[arg-type]

    @cached_property
    def asset_resolver(self) -> AssetResolverImpl:
        return AssetResolverImpl(self.asset_repository, self.database)

    @cached_property
    def tax_lot_store(self) -> TaxLotStore:
        return TaxLotStore(self.tax_lot_repository, self.database)

    @cached_property
    def gain_engine(self) -> GainRealizationEngine:
        return GainRealizationEngine(
            tax_lot_store=self.tax_lot_store,
            realized_gain_repo=self.realized_gain_repository,
            database=self.database,
            long_term_threshold_days=self._settings.long_term_threshold_days,
            quantity_tolerance=self._settings.quantity_tolerance,
        )

    @cached_property
    def reversal_coordinator(self) -> ReversalCoordinator:
        return ReversalCoordinator(
            transaction_repo=self.transaction_repository,
            tax_lot_repo=self.tax_lot_repository,
            realized_gain_repo=self.realized_gain_repository,
            database=self.database,
        )

    @cached_property
    def ledger_service(self) -> TransactionLedgerService:
        return TransactionLedgerService(
            asset_resolver=self.asset_resolver,
            transaction_repo=self.transaction_repository,
            tax_lot_store=self.tax_lot_store,
            gain_engine=self.gain_engine,
            reversal_coordinator=self.reversal_coordinator,
            database=self.database,
        )

    @cached_property
    def reporting_service(self) -> ReportingService:
        return ReportingService(
            tax_lot_store=self.tax_lot_store,
            realized_gain_repo=self.realized_gain_repository,
            asset_resolver=self.asset_resolver,
            long_term_threshold_days=self._settings.long_term_threshold_days,
        )

    def close(self) -> None:
        """Close the database connection if one was opened."""
        if "database" in self.__dict__:
            logger.info("closing_database_connection")
            self.database.close()

    def __enter__(self) -> "Container":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


# Module-level container instance
_container: Container | None = None


@lru_cache
def get_container() -> Container:
    """Get the global container singleton.

    For testing, create a Container directly with custom settings instead
    of using this function.
    """
    global _container
    if _container is None:
        _container = Container()
    return _container


def reset_container() -> None:
    """Reset the global container.

    Used primarily for testing to ensure a fresh container state.
    """
    global _container
    if _container is not None:
        _container.close()
        _container = None
    get_container.cache_clear()
