"""PostgreSQL implementations of repository interfaces."""

from __future__ import annotations

import contextlib
from collections.abc import Iterable, Iterator
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import psycopg2
import psycopg2.errors
import psycopg2.extras

from investment_ledger.domain.assets import Asset
from investment_ledger.domain.transactions import RealizedGain, TaxLot, Transaction
from investment_ledger.domain.value_objects import AssetClass, TransactionType
from investment_ledger.exceptions import LedgerConflictError
from investment_ledger.logging_config import get_logger
from investment_ledger.repositories.interfaces import (
    AssetRepository,
    LedgerDatabase,
    RealizedGainRepository,
    TaxLotRepository,
    TransactionQuery,
    TransactionRepository,
)

logger = get_logger(__name__)

_CONFLICT_ERRORS = (
    psycopg2.errors.DeadlockDetected,
    psycopg2.errors.SerializationFailure,
    psycopg2.errors.LockNotAvailable,
)


class PostgresDatabase(LedgerDatabase):
    """PostgreSQL database connection manager.

    The connection runs in autocommit mode so plain reads never leave an idle
    transaction open. ``unit_of_work`` issues an explicit ``BEGIN`` and the
    lot repository takes ``FOR UPDATE`` row locks inside it.
    """

    def __init__(self, connection_string: str) -> None:
        self._connection_string = connection_string
        self._connection: psycopg2.extensions.connection | None = None
        self._depth = 0

    def get_connection(self) -> psycopg2.extensions.connection:
        """Get or create the database connection."""
        if self._connection is None or self._connection.closed:
            self._connection = psycopg2.connect(
                self._connection_string,
                cursor_factory=psycopg2.extras.RealDictCursor,
            )
            self._connection.autocommit = True
            self._depth = 0
        return self._connection

    def close(self) -> None:
        if self._connection is not None and not self._connection.closed:
            self._connection.close()
        self._connection = None
        self._depth = 0

    @property
    def in_unit_of_work(self) -> bool:
        return self._depth > 0

    @contextlib.contextmanager
    def unit_of_work(self) -> Iterator[None]:
        conn = self.get_connection()
        if self._depth > 0:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        with conn.cursor() as cur:
            cur.execute("BEGIN")
        self._depth = 1
        try:
            yield
        except BaseException as exc:
            self._depth = 0
            with conn.cursor() as cur:
                cur.execute("ROLLBACK")
            logger.debug("unit_of_work_rolled_back", error=type(exc).__name__)
            if isinstance(exc, _CONFLICT_ERRORS):
                raise LedgerConflictError(str(exc).strip()) from exc
            raise
        else:
            self._depth = 0
            try:
                with conn.cursor() as cur:
                    cur.execute("COMMIT")
            except _CONFLICT_ERRORS as e:
                raise LedgerConflictError(str(e).strip()) from e

    def initialize(self) -> None:
        """Create all database tables."""
        conn = self.get_connection()
        with conn.cursor() as cur:
            cur.execute(
                """
                -- Assets table
                CREATE TABLE IF NOT EXISTS assets (
                    id TEXT PRIMARY KEY,
                    symbol TEXT NOT NULL,
                    name TEXT NOT NULL,
                    asset_class TEXT NOT NULL CHECK (asset_class IN ('STOCK', 'CRYPTO')),
                    created_at TEXT NOT NULL,
                    UNIQUE(symbol, asset_class)
                );

                -- Transactions table (buys and sells)
                CREATE TABLE IF NOT EXISTS transactions (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    asset_id TEXT NOT NULL REFERENCES assets(id),
                    transaction_type TEXT NOT NULL CHECK (transaction_type IN ('BUY', 'SELL')),
                    quantity NUMERIC NOT NULL,
                    price_per_unit NUMERIC NOT NULL,
                    fees NUMERIC NOT NULL DEFAULT 0,
                    total_amount NUMERIC NOT NULL,
                    transaction_date TEXT NOT NULL,
                    notes TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL
                );

                -- Tax lots table (one per BUY)
                CREATE TABLE IF NOT EXISTS tax_lots (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    asset_id TEXT NOT NULL REFERENCES assets(id),
                    buy_transaction_id TEXT NOT NULL UNIQUE REFERENCES transactions(id),
                    sequence BIGSERIAL NOT NULL UNIQUE,
                    original_quantity NUMERIC NOT NULL,
                    remaining_quantity NUMERIC NOT NULL,
                    cost_basis_per_unit NUMERIC NOT NULL,
                    purchase_date TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    CHECK (remaining_quantity >= 0 AND remaining_quantity <= original_quantity)
                );

                -- Realized gains table (one per lot drawn by a SELL)
                CREATE TABLE IF NOT EXISTS realized_gains (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    sell_transaction_id TEXT NOT NULL REFERENCES transactions(id),
                    tax_lot_id TEXT NOT NULL REFERENCES tax_lots(id),
                    asset_id TEXT NOT NULL REFERENCES assets(id),
                    quantity_sold NUMERIC NOT NULL,
                    cost_basis NUMERIC NOT NULL,
                    proceeds NUMERIC NOT NULL,
                    gain_loss NUMERIC NOT NULL,
                    holding_period_days INTEGER NOT NULL,
                    is_long_term BOOLEAN NOT NULL,
                    sale_date TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_transactions_owner_id ON transactions(owner_id);
                CREATE INDEX IF NOT EXISTS idx_transactions_asset_id ON transactions(asset_id);
                CREATE INDEX IF NOT EXISTS idx_transactions_date ON transactions(transaction_date);
                CREATE INDEX IF NOT EXISTS idx_tax_lots_owner_asset ON tax_lots(owner_id, asset_id);
                CREATE INDEX IF NOT EXISTS idx_tax_lots_fifo ON tax_lots(purchase_date, sequence);
                CREATE INDEX IF NOT EXISTS idx_realized_gains_owner_id ON realized_gains(owner_id);
                CREATE INDEX IF NOT EXISTS idx_realized_gains_sale_date ON realized_gains(sale_date);
                CREATE INDEX IF NOT EXISTS idx_realized_gains_sell_txn ON realized_gains(sell_transaction_id);
                CREATE INDEX IF NOT EXISTS idx_realized_gains_tax_lot ON realized_gains(tax_lot_id);
                """
            )

    def drop_all(self) -> None:
        """Drop every ledger table. Used by the test suite."""
        conn = self.get_connection()
        with conn.cursor() as cur:
            cur.execute(
                "DROP TABLE IF EXISTS realized_gains, tax_lots, transactions, assets CASCADE"
            )


class PostgresAssetRepository(AssetRepository):
    """PostgreSQL implementation of AssetRepository."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add(self, asset: Asset) -> None:
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO assets (id, symbol, name, asset_class, created_at)
                VALUES (%s, %s, %s, %s, %s)
                """,
                (
                    str(asset.id),
                    asset.symbol,
                    asset.name,
                    asset.asset_class.value,
                    asset.created_at.isoformat(),
                ),
            )

    def get(self, asset_id: UUID) -> Asset | None:
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute("SELECT * FROM assets WHERE id = %s", (str(asset_id),))
            row = cur.fetchone()
        if row is None:
            return None
        return self._row_to_asset(row)

    def get_by_symbol(self, symbol: str, asset_class: AssetClass) -> Asset | None:
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute(
                "SELECT * FROM assets WHERE symbol = %s AND asset_class = %s",
                (symbol.strip().upper(), asset_class.value),
            )
            row = cur.fetchone()
        if row is None:
            return None
        return self._row_to_asset(row)

    def list_all(self) -> Iterable[Asset]:
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute("SELECT * FROM assets ORDER BY asset_class, symbol")
            rows = cur.fetchall()
        return [self._row_to_asset(row) for row in rows]

    def _row_to_asset(self, row: dict[str, Any]) -> Asset:
        return Asset(
            symbol=row["symbol"],
            asset_class=AssetClass(row["asset_class"]),
            name=row["name"],
            id=UUID(row["id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class PostgresTransactionRepository(TransactionRepository):
    """PostgreSQL implementation of TransactionRepository."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add(self, txn: Transaction) -> None:
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO transactions (id, owner_id, asset_id, transaction_type, quantity,
                                          price_per_unit, fees, total_amount, transaction_date,
                                          notes, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    str(txn.id),
                    str(txn.owner_id),
                    str(txn.asset_id),
                    txn.transaction_type.value,
                    txn.quantity,
                    txn.price_per_unit,
                    txn.fees,
                    txn.total_amount,
                    txn.transaction_date.isoformat(),
                    txn.notes,
                    txn.created_at.isoformat(),
                ),
            )

    def get(self, txn_id: UUID) -> Transaction | None:
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute("SELECT * FROM transactions WHERE id = %s", (str(txn_id),))
            row = cur.fetchone()
        if row is None:
            return None
        return self._row_to_transaction(row)

    def list_by_owner(
        self, owner_id: UUID, query: TransactionQuery | None = None
    ) -> Iterable[Transaction]:
        query = query or TransactionQuery()
        where, params = self._build_filters(owner_id, query)
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute(
                f"""
                SELECT t.* FROM transactions t
                JOIN assets a ON t.asset_id = a.id
                WHERE {where}
                ORDER BY t.transaction_date DESC, t.created_at DESC
                LIMIT %s OFFSET %s
                """,
                (*params, query.limit, query.offset),
            )
            rows = cur.fetchall()
        return [self._row_to_transaction(row) for row in rows]

    def count_by_owner(
        self, owner_id: UUID, query: TransactionQuery | None = None
    ) -> int:
        where, params = self._build_filters(owner_id, query or TransactionQuery())
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute(
                f"""
                SELECT COUNT(*) AS total FROM transactions t
                JOIN assets a ON t.asset_id = a.id
                WHERE {where}
                """,
                params,
            )
            row = cur.fetchone()
        return int(row["total"])

    def delete(self, txn_id: UUID) -> None:
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute("DELETE FROM transactions WHERE id = %s", (str(txn_id),))

    def _build_filters(
        self, owner_id: UUID, query: TransactionQuery
    ) -> tuple[str, list[Any]]:
        clauses = ["t.owner_id = %s"]
        params: list[Any] = [str(owner_id)]
        if query.asset_class is not None:
            clauses.append("a.asset_class = %s")
            params.append(query.asset_class.value)
        if query.symbol:
            clauses.append("a.symbol = %s")
            params.append(query.symbol.strip().upper())
        if query.start_date is not None:
            clauses.append("t.transaction_date >= %s")
            params.append(query.start_date.isoformat())
        if query.end_date is not None:
            clauses.append("t.transaction_date <= %s")
            params.append(query.end_date.isoformat())
        if query.transaction_type is not None:
            clauses.append("t.transaction_type = %s")
            params.append(query.transaction_type.value)
        return " AND ".join(clauses), params

    def _row_to_transaction(self, row: dict[str, Any]) -> Transaction:
        txn = Transaction(
            owner_id=UUID(row["owner_id"]),
            asset_id=UUID(row["asset_id"]),
            transaction_type=TransactionType(row["transaction_type"]),
            quantity=Decimal(row["quantity"]),
            price_per_unit=Decimal(row["price_per_unit"]),
            transaction_date=date.fromisoformat(row["transaction_date"]),
            fees=Decimal(row["fees"]),
            notes=row["notes"],
            id=UUID(row["id"]),
        )
        txn.total_amount = Decimal(row["total_amount"])
        object.__setattr__(txn, "created_at", datetime.fromisoformat(row["created_at"]))
        return txn


class PostgresTaxLotRepository(TaxLotRepository):
    """PostgreSQL implementation of TaxLotRepository."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add(self, lot: TaxLot) -> None:
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO tax_lots (id, owner_id, asset_id, buy_transaction_id,
                                      original_quantity, remaining_quantity,
                                      cost_basis_per_unit, purchase_date, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING sequence
                """,
                (
                    str(lot.id),
                    str(lot.owner_id),
                    str(lot.asset_id),
                    str(lot.buy_transaction_id),
                    lot.original_quantity,
                    lot.remaining_quantity,
                    lot.cost_basis_per_unit,
                    lot.purchase_date.isoformat(),
                    lot.created_at.isoformat(),
                ),
            )
            row = cur.fetchone()
        lot.sequence = int(row["sequence"])

    def get(self, lot_id: UUID, *, lock: bool = False) -> TaxLot | None:
        sql = "SELECT * FROM tax_lots WHERE id = %s"
        if lock and self._db.in_unit_of_work:
            sql += " FOR UPDATE"
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute(sql, (str(lot_id),))
            row = cur.fetchone()
        if row is None:
            return None
        return self._row_to_tax_lot(row)

    def get_by_buy_transaction(self, txn_id: UUID) -> TaxLot | None:
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute(
                "SELECT * FROM tax_lots WHERE buy_transaction_id = %s", (str(txn_id),)
            )
            row = cur.fetchone()
        if row is None:
            return None
        return self._row_to_tax_lot(row)

    def list_open_for_sale(self, owner_id: UUID, asset_id: UUID) -> list[TaxLot]:
        sql = """
            SELECT * FROM tax_lots
            WHERE owner_id = %s AND asset_id = %s AND remaining_quantity > 0
            ORDER BY purchase_date, sequence
        """
        if self._db.in_unit_of_work:
            sql += " FOR UPDATE"
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute(sql, (str(owner_id), str(asset_id)))
            rows = cur.fetchall()
        return [self._row_to_tax_lot(row) for row in rows]

    def list_by_owner(
        self, owner_id: UUID, include_exhausted: bool = False
    ) -> Iterable[TaxLot]:
        sql = "SELECT * FROM tax_lots WHERE owner_id = %s"
        if not include_exhausted:
            sql += " AND remaining_quantity > 0"
        sql += " ORDER BY purchase_date, sequence"
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute(sql, (str(owner_id),))
            rows = cur.fetchall()
        return [self._row_to_tax_lot(row) for row in rows]

    def update(self, lot: TaxLot) -> None:
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute(
                "UPDATE tax_lots SET remaining_quantity = %s WHERE id = %s",
                (lot.remaining_quantity, str(lot.id)),
            )

    def delete(self, lot_id: UUID) -> None:
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute("DELETE FROM tax_lots WHERE id = %s", (str(lot_id),))

    def _row_to_tax_lot(self, row: dict[str, Any]) -> TaxLot:
        lot = TaxLot(
            owner_id=UUID(row["owner_id"]),
            asset_id=UUID(row["asset_id"]),
            buy_transaction_id=UUID(row["buy_transaction_id"]),
            purchase_date=date.fromisoformat(row["purchase_date"]),
            cost_basis_per_unit=Decimal(row["cost_basis_per_unit"]),
            original_quantity=Decimal(row["original_quantity"]),
            id=UUID(row["id"]),
            sequence=int(row["sequence"]),
        )
        lot.remaining_quantity = Decimal(row["remaining_quantity"])
        object.__setattr__(lot, "created_at", datetime.fromisoformat(row["created_at"]))
        return lot


class PostgresRealizedGainRepository(RealizedGainRepository):
    """PostgreSQL implementation of RealizedGainRepository."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add(self, gain: RealizedGain) -> None:
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO realized_gains (id, owner_id, sell_transaction_id, tax_lot_id,
                                            asset_id, quantity_sold, cost_basis, proceeds,
                                            gain_loss, holding_period_days, is_long_term,
                                            sale_date, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    str(gain.id),
                    str(gain.owner_id),
                    str(gain.sell_transaction_id),
                    str(gain.tax_lot_id),
                    str(gain.asset_id),
                    gain.quantity_sold,
                    gain.cost_basis,
                    gain.proceeds,
                    gain.gain_loss,
                    gain.holding_period_days,
                    gain.is_long_term,
                    gain.sale_date.isoformat(),
                    gain.created_at.isoformat(),
                ),
            )

    def list_by_sell_transaction(self, txn_id: UUID) -> list[RealizedGain]:
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT rg.* FROM realized_gains rg
                JOIN tax_lots tl ON rg.tax_lot_id = tl.id
                WHERE rg.sell_transaction_id = %s
                ORDER BY tl.purchase_date, tl.sequence
                """,
                (str(txn_id),),
            )
            rows = cur.fetchall()
        return [self._row_to_gain(row) for row in rows]

    def list_by_tax_lot(self, lot_id: UUID) -> list[RealizedGain]:
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute(
                "SELECT * FROM realized_gains WHERE tax_lot_id = %s ORDER BY sale_date",
                (str(lot_id),),
            )
            rows = cur.fetchall()
        return [self._row_to_gain(row) for row in rows]

    def list_by_owner(
        self,
        owner_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Iterable[RealizedGain]:
        sql = "SELECT * FROM realized_gains WHERE owner_id = %s"
        params: list[Any] = [str(owner_id)]
        if start_date is not None:
            sql += " AND sale_date >= %s"
            params.append(start_date.isoformat())
        if end_date is not None:
            sql += " AND sale_date <= %s"
            params.append(end_date.isoformat())
        sql += " ORDER BY sale_date DESC, created_at"
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute(sql, params)
            rows = cur.fetchall()
        return [self._row_to_gain(row) for row in rows]

    def delete_by_sell_transaction(self, txn_id: UUID) -> int:
        conn = self._db.get_connection()
        with conn.cursor() as cur:
            cur.execute(
                "DELETE FROM realized_gains WHERE sell_transaction_id = %s",
                (str(txn_id),),
            )
            return cur.rowcount

    def _row_to_gain(self, row: dict[str, Any]) -> RealizedGain:
        gain = RealizedGain(
            owner_id=UUID(row["owner_id"]),
            sell_transaction_id=UUID(row["sell_transaction_id"]),
            tax_lot_id=UUID(row["tax_lot_id"]),
            asset_id=UUID(row["asset_id"]),
            quantity_sold=Decimal(row["quantity_sold"]),
            cost_basis=Decimal(row["cost_basis"]),
            proceeds=Decimal(row["proceeds"]),
            holding_period_days=int(row["holding_period_days"]),
            is_long_term=bool(row["is_long_term"]),
            sale_date=date.fromisoformat(row["sale_date"]),
            id=UUID(row["id"]),
        )
        gain.gain_loss = Decimal(row["gain_loss"])
        object.__setattr__(gain, "created_at", datetime.fromisoformat(row["created_at"]))
        return gain
