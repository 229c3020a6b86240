"""Storage interface the ledger engine depends on."""

from contextlib import AbstractContextManager
from typing import Protocol

from .models import Asset, Expense, OwedLine, SourceType, SplitPeriod


class LedgerRepository(Protocol):
    """Settlement-scoped storage for source records and derived owed lines.

    Writes made inside ``transaction()`` must become visible together or not
    at all. Implementations may nest transactions; only the outermost one
    commits.
    """

    def transaction(self) -> AbstractContextManager[None]: ...

    # Split periods
    def list_split_periods(self, settlement_id: str) -> list[SplitPeriod]: ...
    def get_split_period(self, period_id: str) -> SplitPeriod | None: ...
    def add_split_period(self, period: SplitPeriod) -> SplitPeriod: ...
    def update_split_period(self, period: SplitPeriod) -> SplitPeriod: ...

    # Expenses
    def list_expenses(self, settlement_id: str) -> list[Expense]: ...
    def get_expense(self, expense_id: str) -> Expense | None: ...
    def add_expense(self, expense: Expense) -> Expense: ...
    def update_expense(self, expense: Expense) -> Expense: ...

    # Assets
    def list_assets(self, settlement_id: str) -> list[Asset]: ...
    def get_asset(self, asset_id: str) -> Asset | None: ...
    def add_asset(self, asset: Asset) -> Asset: ...
    def update_asset(self, asset: Asset) -> Asset: ...

    # Owed lines
    def list_owed_lines(self, settlement_id: str) -> list[OwedLine]: ...
    def get_owed_line(self, line_id: str) -> OwedLine | None: ...
    def add_owed_line(self, line: OwedLine) -> OwedLine: ...
    def set_owed_line_paid(self, line_id: str, paid: bool) -> OwedLine | None: ...
    def delete_owed_lines_by_source(
        self, source_type: SourceType, source_id: str
    ) -> int: ...
