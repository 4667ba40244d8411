"""SQLite implementations of repository interfaces."""

from __future__ import annotations

import contextlib
import sqlite3
from collections.abc import Iterable, Iterator
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any
from uuid import UUID

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


def _dec(value: Decimal) -> str:
    # Fixed-point text keeps CAST(... AS REAL) comparisons working for zero
    return format(value, "f")


def _is_lock_error(exc: BaseException) -> bool:
    return isinstance(exc, sqlite3.OperationalError) and "locked" in str(exc)


class SQLiteDatabase(LedgerDatabase):
    """SQLite database connection manager.

    The connection runs in autocommit mode; ``unit_of_work`` opens an explicit
    ``BEGIN IMMEDIATE`` transaction, which takes the database write lock up
    front so concurrent sales are serialised before they read any lot.
    """

    def __init__(
        self,
        path: str | Path = ":memory:",
        check_same_thread: bool = True,
        timeout: float = 5.0,
    ) -> None:
        self._path = str(path)
        self._check_same_thread = check_same_thread
        self._timeout = timeout
        self._connection: sqlite3.Connection | None = None
        self._depth = 0

    @property
    def path(self) -> str:
        return self._path

    def get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._connection is None:
            self._connection = sqlite3.connect(
                self._path,
                check_same_thread=self._check_same_thread,
                timeout=self._timeout,
                isolation_level=None,
            )
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    def close(self) -> None:
        if self._connection is not None:
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

        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.OperationalError as e:
            if _is_lock_error(e):
                raise LedgerConflictError(str(e)) from e
            raise
        self._depth = 1
        try:
            yield
        except BaseException as exc:
            self._depth = 0
            conn.execute("ROLLBACK")
            logger.debug("unit_of_work_rolled_back", error=type(exc).__name__)
            if _is_lock_error(exc):
                raise LedgerConflictError(str(exc)) from exc
            raise
        else:
            self._depth = 0
            try:
                conn.execute("COMMIT")
            except sqlite3.OperationalError as e:
                conn.execute("ROLLBACK")
                if _is_lock_error(e):
                    raise LedgerConflictError(str(e)) from e
                raise

    def initialize(self) -> None:
        """Create all database tables."""
        conn = self.get_connection()
        conn.executescript(
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
                asset_id TEXT NOT NULL,
                transaction_type TEXT NOT NULL CHECK (transaction_type IN ('BUY', 'SELL')),
                quantity TEXT NOT NULL,
                price_per_unit TEXT NOT NULL,
                fees TEXT NOT NULL DEFAULT '0',
                total_amount TEXT NOT NULL,
                transaction_date TEXT NOT NULL,
                notes TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL,
                FOREIGN KEY (asset_id) REFERENCES assets(id)
            );

            -- Tax lots table (one per BUY)
            CREATE TABLE IF NOT EXISTS tax_lots (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                asset_id TEXT NOT NULL,
                buy_transaction_id TEXT NOT NULL UNIQUE,
                sequence INTEGER NOT NULL UNIQUE,
                original_quantity TEXT NOT NULL,
                remaining_quantity TEXT NOT NULL,
                cost_basis_per_unit TEXT NOT NULL,
                purchase_date TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY (asset_id) REFERENCES assets(id),
                FOREIGN KEY (buy_transaction_id) REFERENCES transactions(id)
            );

            -- Realized gains table (one per lot drawn by a SELL)
            CREATE TABLE IF NOT EXISTS realized_gains (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                sell_transaction_id TEXT NOT NULL,
                tax_lot_id TEXT NOT NULL,
                asset_id TEXT NOT NULL,
                quantity_sold TEXT NOT NULL,
                cost_basis TEXT NOT NULL,
                proceeds TEXT NOT NULL,
                gain_loss TEXT NOT NULL,
                holding_period_days INTEGER NOT NULL,
                is_long_term INTEGER NOT NULL,
                sale_date TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY (sell_transaction_id) REFERENCES transactions(id),
                FOREIGN KEY (tax_lot_id) REFERENCES tax_lots(id),
                FOREIGN KEY (asset_id) REFERENCES assets(id)
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


class SQLiteAssetRepository(AssetRepository):
    """SQLite implementation of AssetRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, asset: Asset) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO assets (id, symbol, name, asset_class, created_at)
            VALUES (?, ?, ?, ?, ?)
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
        row = conn.execute(
            "SELECT * FROM assets WHERE id = ?", (str(asset_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_asset(row)

    def get_by_symbol(self, symbol: str, asset_class: AssetClass) -> Asset | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM assets WHERE symbol = ? AND asset_class = ?",
            (symbol.strip().upper(), asset_class.value),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_asset(row)

    def list_all(self) -> Iterable[Asset]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM assets ORDER BY asset_class, symbol"
        ).fetchall()
        return [self._row_to_asset(row) for row in rows]

    def _row_to_asset(self, row: sqlite3.Row) -> Asset:
        return Asset(
            symbol=row["symbol"],
            asset_class=AssetClass(row["asset_class"]),
            name=row["name"],
            id=UUID(row["id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteTransactionRepository(TransactionRepository):
    """SQLite implementation of TransactionRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, txn: Transaction) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO transactions (id, owner_id, asset_id, transaction_type, quantity,
                                      price_per_unit, fees, total_amount, transaction_date,
                                      notes, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(txn.id),
                str(txn.owner_id),
                str(txn.asset_id),
                txn.transaction_type.value,
                _dec(txn.quantity),
                _dec(txn.price_per_unit),
                _dec(txn.fees),
                _dec(txn.total_amount),
                txn.transaction_date.isoformat(),
                txn.notes,
                txn.created_at.isoformat(),
            ),
        )

    def get(self, txn_id: UUID) -> Transaction | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM transactions WHERE id = ?", (str(txn_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_transaction(row)

    def list_by_owner(
        self, owner_id: UUID, query: TransactionQuery | None = None
    ) -> Iterable[Transaction]:
        query = query or TransactionQuery()
        where, params = self._build_filters(owner_id, query)
        conn = self._db.get_connection()
        rows = conn.execute(
            f"""
            SELECT t.* FROM transactions t
            JOIN assets a ON t.asset_id = a.id
            WHERE {where}
            ORDER BY t.transaction_date DESC, t.created_at DESC
            LIMIT ? OFFSET ?
            """,
            (*params, query.limit, query.offset),
        ).fetchall()
        return [self._row_to_transaction(row) for row in rows]

    def count_by_owner(
        self, owner_id: UUID, query: TransactionQuery | None = None
    ) -> int:
        where, params = self._build_filters(owner_id, query or TransactionQuery())
        conn = self._db.get_connection()
        row = conn.execute(
            f"""
            SELECT COUNT(*) AS total FROM transactions t
            JOIN assets a ON t.asset_id = a.id
            WHERE {where}
            """,
            params,
        ).fetchone()
        return int(row["total"])

    def delete(self, txn_id: UUID) -> None:
        conn = self._db.get_connection()
        conn.execute("DELETE FROM transactions WHERE id = ?", (str(txn_id),))

    def _build_filters(
        self, owner_id: UUID, query: TransactionQuery
    ) -> tuple[str, list[Any]]:
        clauses = ["t.owner_id = ?"]
        params: list[Any] = [str(owner_id)]
        if query.asset_class is not None:
            clauses.append("a.asset_class = ?")
            params.append(query.asset_class.value)
        if query.symbol:
            clauses.append("a.symbol = ?")
            params.append(query.symbol.strip().upper())
        if query.start_date is not None:
            clauses.append("t.transaction_date >= ?")
            params.append(query.start_date.isoformat())
        if query.end_date is not None:
            clauses.append("t.transaction_date <= ?")
            params.append(query.end_date.isoformat())
        if query.transaction_type is not None:
            clauses.append("t.transaction_type = ?")
            params.append(query.transaction_type.value)
        return " AND ".join(clauses), params

    def _row_to_transaction(self, row: sqlite3.Row) -> Transaction:
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


class SQLiteTaxLotRepository(TaxLotRepository):
    """SQLite implementation of TaxLotRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, lot: TaxLot) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO tax_lots (id, owner_id, asset_id, buy_transaction_id, sequence,
                                  original_quantity, remaining_quantity,
                                  cost_basis_per_unit, purchase_date, created_at)
            VALUES (?, ?, ?, ?, (SELECT COALESCE(MAX(sequence), 0) + 1 FROM tax_lots),
                    ?, ?, ?, ?, ?)
            """,
            (
                str(lot.id),
                str(lot.owner_id),
                str(lot.asset_id),
                str(lot.buy_transaction_id),
                _dec(lot.original_quantity),
                _dec(lot.remaining_quantity),
                _dec(lot.cost_basis_per_unit),
                lot.purchase_date.isoformat(),
                lot.created_at.isoformat(),
            ),
        )
        row = conn.execute(
            "SELECT sequence FROM tax_lots WHERE id = ?", (str(lot.id),)
        ).fetchone()
        lot.sequence = int(row["sequence"])

    def get(self, lot_id: UUID, *, lock: bool = False) -> TaxLot | None:
        # SQLite has no row locks; the unit of work already holds the write lock
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM tax_lots WHERE id = ?", (str(lot_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_tax_lot(row)

    def get_by_buy_transaction(self, txn_id: UUID) -> TaxLot | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM tax_lots WHERE buy_transaction_id = ?", (str(txn_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_tax_lot(row)

    def list_open_for_sale(self, owner_id: UUID, asset_id: UUID) -> list[TaxLot]:
        conn = self._db.get_connection()
        rows = conn.execute(
            """
            SELECT * FROM tax_lots
            WHERE owner_id = ? AND asset_id = ? AND CAST(remaining_quantity AS REAL) > 0
            ORDER BY purchase_date, sequence
            """,
            (str(owner_id), str(asset_id)),
        ).fetchall()
        return [self._row_to_tax_lot(row) for row in rows]

    def list_by_owner(
        self, owner_id: UUID, include_exhausted: bool = False
    ) -> Iterable[TaxLot]:
        sql = "SELECT * FROM tax_lots WHERE owner_id = ?"
        if not include_exhausted:
            sql += " AND CAST(remaining_quantity AS REAL) > 0"
        sql += " ORDER BY purchase_date, sequence"
        conn = self._db.get_connection()
        rows = conn.execute(sql, (str(owner_id),)).fetchall()
        return [self._row_to_tax_lot(row) for row in rows]

    def update(self, lot: TaxLot) -> None:
        conn = self._db.get_connection()
        conn.execute(
            "UPDATE tax_lots SET remaining_quantity = ? WHERE id = ?",
            (_dec(lot.remaining_quantity), str(lot.id)),
        )

    def delete(self, lot_id: UUID) -> None:
        conn = self._db.get_connection()
        conn.execute("DELETE FROM tax_lots WHERE id = ?", (str(lot_id),))

    def _row_to_tax_lot(self, row: sqlite3.Row) -> TaxLot:
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
        # remaining_quantity starts equal to original in __post_init__
        lot.remaining_quantity = Decimal(row["remaining_quantity"])
        object.__setattr__(lot, "created_at", datetime.fromisoformat(row["created_at"]))
        return lot


class SQLiteRealizedGainRepository(RealizedGainRepository):
    """SQLite implementation of RealizedGainRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, gain: RealizedGain) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO realized_gains (id, owner_id, sell_transaction_id, tax_lot_id, asset_id,
                                        quantity_sold, cost_basis, proceeds, gain_loss,
                                        holding_period_days, is_long_term, sale_date, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(gain.id),
                str(gain.owner_id),
                str(gain.sell_transaction_id),
                str(gain.tax_lot_id),
                str(gain.asset_id),
                _dec(gain.quantity_sold),
                _dec(gain.cost_basis),
                _dec(gain.proceeds),
                _dec(gain.gain_loss),
                gain.holding_period_days,
                1 if gain.is_long_term else 0,
                gain.sale_date.isoformat(),
                gain.created_at.isoformat(),
            ),
        )

    def list_by_sell_transaction(self, txn_id: UUID) -> list[RealizedGain]:
        conn = self._db.get_connection()
        rows = conn.execute(
            """
            SELECT rg.* FROM realized_gains rg
            JOIN tax_lots tl ON rg.tax_lot_id = tl.id
            WHERE rg.sell_transaction_id = ?
            ORDER BY tl.purchase_date, tl.sequence
            """,
            (str(txn_id),),
        ).fetchall()
        return [self._row_to_gain(row) for row in rows]

    def list_by_tax_lot(self, lot_id: UUID) -> list[RealizedGain]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM realized_gains WHERE tax_lot_id = ? ORDER BY sale_date",
            (str(lot_id),),
        ).fetchall()
        return [self._row_to_gain(row) for row in rows]

    def list_by_owner(
        self,
        owner_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Iterable[RealizedGain]:
        sql = "SELECT * FROM realized_gains WHERE owner_id = ?"
        params: list[Any] = [str(owner_id)]
        if start_date is not None:
            sql += " AND sale_date >= ?"
            params.append(start_date.isoformat())
        if end_date is not None:
            sql += " AND sale_date <= ?"
            params.append(end_date.isoformat())
        sql += " ORDER BY sale_date DESC, created_at"
        conn = self._db.get_connection()
        rows = conn.execute(sql, params).fetchall()
        return [self._row_to_gain(row) for row in rows]

    def delete_by_sell_transaction(self, txn_id: UUID) -> int:
        conn = self._db.get_connection()
        cursor = conn.execute(
            "DELETE FROM realized_gains WHERE sell_transaction_id = ?", (str(txn_id),)
        )
        return cursor.rowcount

    def _row_to_gain(self, row: sqlite3.Row) -> RealizedGain:
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
