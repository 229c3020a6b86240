"""SQLite database operations for SharedLedger."""

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from .exceptions import (
    AssetNotFoundError,
    ExpenseNotFoundError,
    RecordNotFoundError,
    SplitPeriodNotFoundError,
)
from .models import Asset, Expense, OwedLine, SourceType, SplitPeriod

logger = logging.getLogger(__name__)


class Database:
    """SQLite database manager implementing the ledger repository.

    Decimals are stored as TEXT so amounts round-trip exactly. A single
    connection is shared, guarded by a re-entrant lock; ``transaction()``
    holds the lock until it commits or rolls back.
    """

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS split_periods (
                id TEXT PRIMARY KEY,
                settlement_id TEXT NOT NULL,
                start_date DATE NOT NULL,
                end_date DATE,
                person1_share_pct TEXT NOT NULL,
                person2_share_pct TEXT NOT NULL,
                note TEXT
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expenses (
                id TEXT PRIMARY KEY,
                settlement_id TEXT NOT NULL,
                date DATE NOT NULL,
                description TEXT NOT NULL,
                category TEXT NOT NULL,
                total_amount TEXT NOT NULL,
                paid_by TEXT NOT NULL,
                manual_person1_pct TEXT,
                manual_person2_pct TEXT,
                attachment_url TEXT
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS assets (
                id TEXT PRIMARY KEY,
                settlement_id TEXT NOT NULL,
                name TEXT NOT NULL,
                purchase_date DATE NOT NULL,
                purchase_price TEXT NOT NULL,
                paid_by TEXT NOT NULL,
                manual_original_person1_pct TEXT,
                manual_original_person2_pct TEXT,
                current_estimated_value TEXT,
                valuation_date DATE,
                kept_by TEXT,
                notes TEXT
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS owed_lines (
                id TEXT PRIMARY KEY,
                settlement_id TEXT NOT NULL,
                source_type TEXT NOT NULL,
                source_id TEXT NOT NULL,
                date DATE NOT NULL,
                description TEXT NOT NULL,
                category TEXT,
                total_amount TEXT NOT NULL,
                owed_to_person1 TEXT NOT NULL,
                owed_to_person2 TEXT NOT NULL,
                paid_status INTEGER NOT NULL DEFAULT 0,
                notes TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        cursor.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_owed_lines_source
            ON owed_lines (source_type, source_id)
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Group writes so they commit together.

        Nested calls join the outermost transaction. Any exception rolls
        back everything written since the outermost call began.
        """
        with self._lock:
            self._depth += 1
            try:
                yield
            except BaseException:
                self._depth -= 1
                if self._depth == 0:
                    self.conn.rollback()
                    logger.debug("Rolled back transaction")
                raise
            else:
                self._depth -= 1
                if self._depth == 0:
                    self.conn.commit()

    # ========================================================================
    # Generic helpers
    # ========================================================================

    def _insert(self, table: str, record: BaseModel):
        values = record.model_dump(mode="json")
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        with self.transaction():
            self.conn.execute(
                f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
                tuple(values.values()),
            )

    def _update(
        self, table: str, record: BaseModel, not_found: type[RecordNotFoundError]
    ):
        values = record.model_dump(mode="json", exclude={"id"})
        assignments = ", ".join(f"{column} = ?" for column in values)
        with self.transaction():
            cursor = self.conn.execute(
                f"UPDATE {table} SET {assignments} WHERE id = ?",
                (*values.values(), record.id),
            )
            if cursor.rowcount == 0:
                raise not_found(record.id)

    def _select(self, query: str, params: tuple[Any, ...]) -> list[sqlite3.Row]:
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _select_one(self, query: str, params: tuple[Any, ...]) -> sqlite3.Row | None:
        rows = self._select(query, params)
        return rows[0] if rows else None

    # ========================================================================
    # Split period operations
    # ========================================================================

    def list_split_periods(self, settlement_id: str) -> list[SplitPeriod]:
        """Get all split periods of a settlement, in insertion order."""
        rows = self._select(
            "SELECT * FROM split_periods WHERE settlement_id = ? ORDER BY rowid",
            (settlement_id,),
        )
        return [SplitPeriod.model_validate(dict(row)) for row in rows]

    def get_split_period(self, period_id: str) -> SplitPeriod | None:
        """Get a split period by id."""
        row = self._select_one(
            "SELECT * FROM split_periods WHERE id = ?", (period_id,)
        )
        return SplitPeriod.model_validate(dict(row)) if row else None

    def add_split_period(self, period: SplitPeriod) -> SplitPeriod:
        """Save a new split period."""
        self._insert("split_periods", period)
        return period

    def update_split_period(self, period: SplitPeriod) -> SplitPeriod:
        """Overwrite an existing split period.

        Raises:
            RecordNotFoundError: If no stored split period has this id
        """
        self._update("split_periods", period, SplitPeriodNotFoundError)
        return period

    # ========================================================================
    # Expense operations
    # ========================================================================

    def list_expenses(self, settlement_id: str) -> list[Expense]:
        """Get all expenses of a settlement, in insertion order."""
        rows = self._select(
            "SELECT * FROM expenses WHERE settlement_id = ? ORDER BY rowid",
            (settlement_id,),
        )
        return [Expense.model_validate(dict(row)) for row in rows]

    def get_expense(self, expense_id: str) -> Expense | None:
        """Get an expense by id."""
        row = self._select_one("SELECT * FROM expenses WHERE id = ?", (expense_id,))
        return Expense.model_validate(dict(row)) if row else None

    def add_expense(self, expense: Expense) -> Expense:
        """Save a new expense."""
        self._insert("expenses", expense)
        return expense

    def update_expense(self, expense: Expense) -> Expense:
        """Overwrite an existing expense.

        Raises:
            RecordNotFoundError: If no stored expense has this id
        """
        self._update("expenses", expense, ExpenseNotFoundError)
        return expense

    # ========================================================================
    # Asset operations
    # ========================================================================

    def list_assets(self, settlement_id: str) -> list[Asset]:
        """Get all assets of a settlement, in insertion order."""
        rows = self._select(
            "SELECT * FROM assets WHERE settlement_id = ? ORDER BY rowid",
            (settlement_id,),
        )
        return [Asset.model_validate(dict(row)) for row in rows]

    def get_asset(self, asset_id: str) -> Asset | None:
        """Get an asset by id."""
        row = self._select_one("SELECT * FROM assets WHERE id = ?", (asset_id,))
        return Asset.model_validate(dict(row)) if row else None

    def add_asset(self, asset: Asset) -> Asset:
        """Save a new asset."""
        self._insert("assets", asset)
        return asset

    def update_asset(self, asset: Asset) -> Asset:
        """Overwrite an existing asset.

        Raises:
            RecordNotFoundError: If no stored asset has this id
        """
        self._update("assets", asset, AssetNotFoundError)
        return asset

    # ========================================================================
    # Owed line operations
    # ========================================================================

    def list_owed_lines(self, settlement_id: str) -> list[OwedLine]:
        """Get all owed lines of a settlement, oldest first."""
        rows = self._select(
            """
            SELECT * FROM owed_lines
            WHERE settlement_id = ?
            ORDER BY date, rowid
            """,
            (settlement_id,),
        )
        return [OwedLine.model_validate(dict(row)) for row in rows]

    def get_owed_line(self, line_id: str) -> OwedLine | None:
        """Get an owed line by id."""
        row = self._select_one("SELECT * FROM owed_lines WHERE id = ?", (line_id,))
        return OwedLine.model_validate(dict(row)) if row else None

    def add_owed_line(self, line: OwedLine) -> OwedLine:
        """Save a new owed line."""
        self._insert("owed_lines", line)
        return line

    def set_owed_line_paid(self, line_id: str, paid: bool) -> OwedLine | None:
        """Set the paid flag of an owed line."""
        with self.transaction():
            cursor = self.conn.execute(
                "UPDATE owed_lines SET paid_status = ? WHERE id = ?",
                (int(paid), line_id),
            )
            if cursor.rowcount == 0:
                return None
        return self.get_owed_line(line_id)

    def delete_owed_lines_by_source(
        self, source_type: SourceType, source_id: str
    ) -> int:
        """Delete every owed line derived from a source record."""
        with self.transaction():
            cursor = self.conn.execute(
                "DELETE FROM owed_lines WHERE source_type = ? AND source_id = ?",
                (source_type.value, source_id),
            )
        return cursor.rowcount
