"""Asset resolution by (symbol, asset class)."""

from uuid import UUID

from investment_ledger.domain.assets import Asset
from investment_ledger.domain.value_objects import AssetClass
from investment_ledger.exceptions import AssetNotFoundError, InvalidTransactionError
from investment_ledger.logging_config import get_logger
from investment_ledger.repositories.interfaces import AssetRepository, LedgerDatabase
from investment_ledger.services.interfaces import AssetResolver

logger = get_logger(__name__)


class AssetResolverImpl(AssetResolver):
    def __init__(self, asset_repo: AssetRepository, database: LedgerDatabase) -> None:
        self._asset_repo = asset_repo
        self._db = database

    def resolve_or_create_asset(self, symbol: str, asset_class: AssetClass) -> Asset:
        normalized = symbol.strip().upper() if symbol else ""
        if not normalized:
            raise InvalidTransactionError("Asset symbol is required", field="symbol")

        asset = self._asset_repo.get_by_symbol(normalized, asset_class)
        if asset is not None:
            return asset

        # Re-check under the write lock so two callers cannot both insert
        with self._db.unit_of_work():
            asset = self._asset_repo.get_by_symbol(normalized, asset_class)
            if asset is None:
                asset = Asset(symbol=normalized, asset_class=asset_class)
                self._asset_repo.add(asset)
                logger.info(
                    "asset_created",
                    asset_id=str(asset.id),
                    symbol=asset.symbol,
                    asset_class=asset_class.value,
                )
        return asset

    def get_asset(self, asset_id: UUID) -> Asset:
        asset = self._asset_repo.get(asset_id)
        if asset is None:
            raise AssetNotFoundError(asset_id)
        return asset
