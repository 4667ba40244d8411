from abc import ABC, abstractmethod
from collections.abc import Iterable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from investment_ledger.domain.assets import Asset
from investment_ledger.domain.transactions import RealizedGain, TaxLot, Transaction
from investment_ledger.domain.value_objects import AssetClass, TransactionType


@dataclass
class TransactionQuery:
    """Filters and paging for listing an owner's transactions."""

    asset_class: AssetClass | None = None
    symbol: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    transaction_type: TransactionType | None = None
    limit: int = 100
    offset: int = 0


class LedgerDatabase(ABC):
    """A connection manager that can run several writes as one unit of work."""

    @abstractmethod
    def initialize(self) -> None:
        """Create all tables and indexes if they do not exist."""
        pass

    @abstractmethod
    def unit_of_work(self) -> AbstractContextManager[None]:
        """Open a database transaction; commit on success, roll back on error.

        Nested calls join the outermost unit of work.
        """
        pass

    @property
    @abstractmethod
    def in_unit_of_work(self) -> bool:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


class AssetRepository(ABC):
    @abstractmethod
    def add(self, asset: Asset) -> None:
        pass

    @abstractmethod
    def get(self, asset_id: UUID) -> Asset | None:
        pass

    @abstractmethod
    def get_by_symbol(self, symbol: str, asset_class: AssetClass) -> Asset | None:
        pass

    @abstractmethod
    def list_all(self) -> Iterable[Asset]:
        pass


class TransactionRepository(ABC):
    @abstractmethod
    def add(self, txn: Transaction) -> None:
        pass

    @abstractmethod
    def get(self, txn_id: UUID) -> Transaction | None:
        pass

    @abstractmethod
    def list_by_owner(
        self, owner_id: UUID, query: TransactionQuery | None = None
    ) -> Iterable[Transaction]:
        pass

    @abstractmethod
    def count_by_owner(
        self, owner_id: UUID, query: TransactionQuery | None = None
    ) -> int:
        pass

    @abstractmethod
    def delete(self, txn_id: UUID) -> None:
        pass


class TaxLotRepository(ABC):
    @abstractmethod
    def add(self, lot: TaxLot) -> None:
        """Insert a lot and assign its creation sequence number."""
        pass

    @abstractmethod
    def get(self, lot_id: UUID, *, lock: bool = False) -> TaxLot | None:
        pass

    @abstractmethod
    def get_by_buy_transaction(self, txn_id: UUID) -> TaxLot | None:
        pass

    @abstractmethod
    def list_open_for_sale(self, owner_id: UUID, asset_id: UUID) -> list[TaxLot]:
        """Open lots for one asset, oldest first, locked against concurrent sales."""
        pass

    @abstractmethod
    def list_by_owner(
        self, owner_id: UUID, include_exhausted: bool = False
    ) -> Iterable[TaxLot]:
        pass

    @abstractmethod
    def update(self, lot: TaxLot) -> None:
        pass

    @abstractmethod
    def delete(self, lot_id: UUID) -> None:
        pass


class RealizedGainRepository(ABC):
    @abstractmethod
    def add(self, gain: RealizedGain) -> None:
        pass

    @abstractmethod
    def list_by_sell_transaction(self, txn_id: UUID) -> list[RealizedGain]:
        pass

    @abstractmethod
    def list_by_tax_lot(self, lot_id: UUID) -> list[RealizedGain]:
        pass

    @abstractmethod
    def list_by_owner(
        self,
        owner_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Iterable[RealizedGain]:
        pass

    @abstractmethod
    def delete_by_sell_transaction(self, txn_id: UUID) -> int:
        pass
