from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

from investment_ledger.domain.value_objects import AssetClass


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class Asset:
    symbol: str
    asset_class: AssetClass
    name: str = ""
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        self.symbol = self.symbol.strip().upper()
        if not self.name:
            self.name = self.symbol
