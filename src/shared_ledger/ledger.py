"""Ledger service that keeps owed lines derived from expenses and assets.

Owed lines are never patched incrementally: every create or update of a
split period, expense or asset rebuilds the whole settlement's ledger from
its source records inside one transaction.
"""

import logging
import threading
from collections import defaultdict
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from datetime import date
from typing import Any, TypeVar

from pydantic import BaseModel

from .calculator import ZERO, calculate_buyback, split_expense
from .exceptions import (
    AssetNotFoundError,
    ExpenseNotFoundError,
    OwedLineNotFoundError,
    SplitPeriodNotFoundError,
)
from .models import (
    Asset,
    Expense,
    ExpenseSplit,
    LedgerSummary,
    LedgerView,
    OwedLine,
    Participants,
    Person,
    SourceType,
    SplitPeriod,
)
from .repository import LedgerRepository

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

SourceKey = tuple[SourceType, str]

IMMUTABLE_FIELDS = {"id"}


class LedgerService:
    """Service for maintaining and reading a settlement's ledger."""

    def __init__(
        self,
        repository: LedgerRepository,
        participants: Participants | None = None,
        preserve_paid_status: bool = True,
    ):
        """Initialize the ledger service."""
        self.repository = repository
        self.participants = participants or Participants()
        self.preserve_paid_status = preserve_paid_status
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ========================================================================
    # Source record operations
    # ========================================================================

    def create_split_period(self, period: SplitPeriod) -> SplitPeriod:
        """Save a split period and rebuild its settlement's ledger."""
        with self._locked(period.settlement_id), self.repository.transaction():
            self.repository.add_split_period(period)
            self._rebuild(period.settlement_id)
        logger.info(f"Created split period {period.id} from {period.start_date}")
        return period

    def update_split_period(self, period_id: str, **changes: Any) -> SplitPeriod:
        """
        Apply changes to a split period and rebuild the ledger.

        Raises:
            SplitPeriodNotFoundError: If no period has this id
        """
        existing = self.repository.get_split_period(period_id)
        if existing is None:
            raise SplitPeriodNotFoundError(period_id)

        updated = _apply_changes(existing, changes)
        with self._locked(existing.settlement_id, updated.settlement_id):
            with self.repository.transaction():
                self.repository.update_split_period(updated)
                self._rebuild(existing.settlement_id, updated.settlement_id)
        logger.info(f"Updated split period {period_id}")
        return updated

    def create_expense(self, expense: Expense) -> Expense:
        """Save an expense and rebuild its settlement's ledger."""
        with self._locked(expense.settlement_id), self.repository.transaction():
            self.repository.add_expense(expense)
            self._rebuild(expense.settlement_id)
        logger.info(f"Created expense {expense.id}: {expense.description}")
        return expense

    def update_expense(self, expense_id: str, **changes: Any) -> Expense:
        """
        Apply changes to an expense and rebuild the ledger.

        Raises:
            ExpenseNotFoundError: If no expense has this id
        """
        existing = self.repository.get_expense(expense_id)
        if existing is None:
            raise ExpenseNotFoundError(expense_id)

        updated = _apply_changes(existing, changes)
        with self._locked(existing.settlement_id, updated.settlement_id):
            with self.repository.transaction():
                self.repository.update_expense(updated)
                self._rebuild(existing.settlement_id, updated.settlement_id)
        logger.info(f"Updated expense {expense_id}")
        return updated

    def create_asset(self, asset: Asset) -> Asset:
        """Save an asset and rebuild its settlement's ledger."""
        with self._locked(asset.settlement_id), self.repository.transaction():
            self.repository.add_asset(asset)
            self._rebuild(asset.settlement_id)
        logger.info(f"Created asset {asset.id}: {asset.name}")
        return asset

    def update_asset(self, asset_id: str, **changes: Any) -> Asset:
        """
        Apply changes to an asset and rebuild the ledger.

        Raises:
            AssetNotFoundError: If no asset has this id
        """
        existing = self.repository.get_asset(asset_id)
        if existing is None:
            raise AssetNotFoundError(asset_id)

        updated = _apply_changes(existing, changes)
        with self._locked(existing.settlement_id, updated.settlement_id):
            with self.repository.transaction():
                self.repository.update_asset(updated)
                self._rebuild(existing.settlement_id, updated.settlement_id)
        logger.info(f"Updated asset {asset_id}")
        return updated

    def update_valuation(
        self,
        asset_id: str,
        current_estimated_value: Any,
        kept_by: Person | None,
        valuation_date: date | None = None,
    ) -> Asset:
        """
        Record an asset's current value and keeper.

        Args:
            asset_id: The asset to value
            current_estimated_value: Current value in currency units
            kept_by: Party keeping the asset, or None if undecided
            valuation_date: Date of the valuation. Defaults to today when a
                value and keeper are set; otherwise the stored date is kept.

        Returns:
            The updated asset
        """
        changes: dict[str, Any] = {
            "current_estimated_value": current_estimated_value,
            "kept_by": kept_by,
        }
        if valuation_date is not None:
            changes["valuation_date"] = valuation_date
        elif current_estimated_value is not None and kept_by is not None:
            changes["valuation_date"] = date.today()
        return self.update_asset(asset_id, **changes)

    # ========================================================================
    # Ledger operations
    # ========================================================================

    def recalculate(self, settlement_id: str) -> None:
        """
        Rebuild every owed line of a settlement from its source records.

        Idempotent: running it twice without data changes yields the same
        lines apart from ids and timestamps.
        """
        with self._locked(settlement_id), self.repository.transaction():
            self._rebuild(settlement_id)

    def get_ledger(self, settlement_id: str) -> LedgerView:
        """Get current owed lines by debt direction plus the net summary."""
        lines = self.repository.list_owed_lines(settlement_id)
        by_creditor: dict[Person, list[OwedLine]] = defaultdict(list)
        for line in lines:
            if line.creditor:
                by_creditor[line.creditor].append(line)

        return LedgerView(
            owed_to_person1=by_creditor[Person.PERSON1],
            owed_to_person2=by_creditor[Person.PERSON2],
            summary=summarize(lines),
        )

    def expense_splits(self, settlement_id: str) -> list[tuple[Expense, ExpenseSplit]]:
        """Pair each expense of a settlement with its current split."""
        periods = self.repository.list_split_periods(settlement_id)
        return [
            (expense, split_expense(expense, periods))
            for expense in self.repository.list_expenses(settlement_id)
        ]

    def unresolved_expenses(self, settlement_id: str) -> list[Expense]:
        """Expenses with no manual shares and no covering period (split 50/50)."""
        return [
            expense
            for expense, split in self.expense_splits(settlement_id)
            if split.share_source == "default"
        ]

    def set_paid_status(self, line_id: str, paid: bool) -> OwedLine:
        """
        Mark an owed line as paid or unpaid.

        Raises:
            OwedLineNotFoundError: If no line has this id
        """
        line = self.repository.set_owed_line_paid(line_id, paid)
        if line is None:
            raise OwedLineNotFoundError(line_id)

        logger.info(f"Marked owed line {line_id} as {'paid' if paid else 'unpaid'}")
        return line

    # ========================================================================
    # Internals
    # ========================================================================

    @contextmanager
    def _locked(self, *settlement_ids: str) -> Iterator[None]:
        """Hold the recompute lock of each settlement, in a stable order."""
        with ExitStack() as stack:
            for settlement_id in sorted(set(settlement_ids)):
                stack.enter_context(self._settlement_lock(settlement_id))
            yield

    def _settlement_lock(self, settlement_id: str) -> threading.Lock:
        with self._locks_guard:
            if settlement_id not in self._locks:
                self._locks[settlement_id] = threading.Lock()
            return self._locks[settlement_id]

    def _rebuild(self, *settlement_ids: str) -> None:
        """Rebuild ledgers. Callers hold the locks and an open transaction."""
        for settlement_id in dict.fromkeys(settlement_ids):
            self._rebuild_settlement(settlement_id)

    def _rebuild_settlement(self, settlement_id: str) -> None:
        periods = self.repository.list_split_periods(settlement_id)
        expenses = self.repository.list_expenses(settlement_id)
        assets = self.repository.list_assets(settlement_id)

        previous: dict[SourceKey, list[OwedLine]] = defaultdict(list)
        for line in self.repository.list_owed_lines(settlement_id):
            previous[(line.source_type, line.source_id)].append(line)

        written = 0

        for expense in expenses:
            self.repository.delete_owed_lines_by_source(SourceType.EXPENSE, expense.id)
            split = split_expense(expense, periods)
            payer = self.participants.name_of(expense.paid_by)

            line = OwedLine(
                settlement_id=settlement_id,
                source_type=SourceType.EXPENSE,
                source_id=expense.id,
                date=expense.date,
                description=f"{expense.description} ({payer} paid)",
                category=expense.category,
                total_amount=expense.total_amount,
                owed_to_person1=split.owed_to_person1,
                owed_to_person2=split.owed_to_person2,
            )
            old_lines = previous.pop((SourceType.EXPENSE, expense.id), [])
            line.paid_status = self._carried_paid_status(old_lines, line)
            self.repository.add_owed_line(line)
            written += 1

        awaiting_valuation = 0

        for asset in assets:
            self.repository.delete_owed_lines_by_source(SourceType.ASSET, asset.id)
            old_lines = previous.pop((SourceType.ASSET, asset.id), [])

            buyback = calculate_buyback(asset, periods)
            if buyback is None:
                awaiting_valuation += 1
                continue

            # Both are set whenever a buyback was computed
            assert asset.kept_by is not None
            assert asset.current_estimated_value is not None
            keeper = self.participants.name_of(asset.kept_by)

            line = OwedLine(
                settlement_id=settlement_id,
                source_type=SourceType.ASSET,
                source_id=asset.id,
                date=asset.valuation_date or asset.purchase_date,
                description=f"{asset.name} - Buyback (Kept by {keeper})",
                category=None,
                total_amount=asset.current_estimated_value,
                owed_to_person1=buyback.owed_to_person1,
                owed_to_person2=buyback.owed_to_person2,
                notes=f"Original price: ${asset.purchase_price:.2f}",
            )
            line.paid_status = self._carried_paid_status(old_lines, line)
            self.repository.add_owed_line(line)
            written += 1

        # Lines whose source record left this settlement
        for source_type, source_id in previous:
            self.repository.delete_owed_lines_by_source(source_type, source_id)
            logger.debug(f"Removed orphaned lines for {source_type.value} {source_id}")

        logger.info(
            f"Recalculated ledger for settlement {settlement_id}: "
            f"{written} lines, {awaiting_valuation} assets awaiting valuation"
        )

    def _carried_paid_status(self, old_lines: list[OwedLine], line: OwedLine) -> bool:
        """Keep a paid flag only while the debt it settled is unchanged."""
        if not self.preserve_paid_status:
            return False
        return any(
            old.paid_status
            and old.owed_to_person1 == line.owed_to_person1
            and old.owed_to_person2 == line.owed_to_person2
            for old in old_lines
        )


def summarize(lines: list[OwedLine]) -> LedgerSummary:
    """
    Compute the net settlement over unpaid owed lines.

    Args:
        lines: Owed lines of one settlement

    Returns:
        Totals per direction, the absolute net amount and who owes it
    """
    total_to_person1 = sum(
        (line.owed_to_person1 for line in lines if not line.paid_status),
        ZERO,
    )
    total_to_person2 = sum(
        (line.owed_to_person2 for line in lines if not line.paid_status),
        ZERO,
    )

    net = total_to_person1 - total_to_person2
    if net > 0:
        net_debtor = Person.PERSON2
    elif net < 0:
        net_debtor = Person.PERSON1
    else:
        net_debtor = None

    return LedgerSummary(
        total_owed_to_person1=total_to_person1,
        total_owed_to_person2=total_to_person2,
        net_amount=abs(net),
        net_debtor=net_debtor,
    )


def _apply_changes(record: RecordT, changes: dict[str, Any]) -> RecordT:
    """Merge field changes into a record and re-validate the result."""
    unknown = set(changes) - set(type(record).model_fields)
    if unknown:
        raise ValueError(f"Unknown fields: {', '.join(sorted(unknown))}")
    frozen = set(changes) & IMMUTABLE_FIELDS
    if frozen:
        raise ValueError(f"Fields cannot be changed: {', '.join(sorted(frozen))}")
    return type(record).model_validate({**record.model_dump(), **changes})
