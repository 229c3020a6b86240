"""Pydantic domain models for SharedLedger."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field


def new_id() -> str:
    """Generate a random record identifier."""
    return uuid.uuid4().hex


class Person(str, Enum):
    """One of the two parties sharing the ledger."""

    PERSON1 = "person1"
    PERSON2 = "person2"

    @property
    def other(self) -> "Person":
        return Person.PERSON2 if self is Person.PERSON1 else Person.PERSON1


class SourceType(str, Enum):
    """Kind of record an owed line is derived from."""

    EXPENSE = "expense"
    ASSET = "asset"


ShareSource = Literal["manual", "period", "default"]

Percentage = Annotated[Decimal, Field(ge=0, le=100)]


class Participants(BaseModel):
    """Display names for the two parties."""

    person1: str = "Person 1"
    person2: str = "Person 2"

    def name_of(self, person: Person) -> str:
        return self.person1 if person is Person.PERSON1 else self.person2


# ============================================================================
# Source Records
# ============================================================================


class SplitPeriod(BaseModel):
    """Ownership shares that apply to events within a date range.

    An ``end_date`` of None means the period is ongoing.
    """

    id: str = Field(default_factory=new_id)
    settlement_id: str
    start_date: date
    end_date: date | None = None
    person1_share_pct: Percentage
    person2_share_pct: Percentage
    note: str | None = None

    def covers(self, on_date: date) -> bool:
        """Whether ``on_date`` falls inside this period (inclusive)."""
        return self.start_date <= on_date and (
            self.end_date is None or on_date <= self.end_date
        )


class Expense(BaseModel):
    """A shared expense paid by one of the two parties."""

    id: str = Field(default_factory=new_id)
    settlement_id: str
    date: date
    description: str = Field(min_length=1)
    category: str = "Other"
    total_amount: Decimal = Field(gt=0)
    paid_by: Person
    manual_person1_pct: Percentage | None = None
    manual_person2_pct: Percentage | None = None
    attachment_url: str | None = None


class Asset(BaseModel):
    """A jointly owned item that one party may keep and buy out."""

    id: str = Field(default_factory=new_id)
    settlement_id: str
    name: str = Field(min_length=1)
    purchase_date: date
    purchase_price: Decimal = Field(gt=0)
    paid_by: Person
    manual_original_person1_pct: Percentage | None = None
    manual_original_person2_pct: Percentage | None = None
    current_estimated_value: Decimal | None = Field(default=None, ge=0)
    valuation_date: date | None = None
    kept_by: Person | None = None
    notes: str | None = None


# ============================================================================
# Derived Records
# ============================================================================


class OwedLine(BaseModel):
    """A single directional debt derived from an expense or asset.

    owed_to_person1 is the amount person2 owes person1, owed_to_person2 the
    amount person1 owes person2. At most one of them is nonzero.
    """

    id: str = Field(default_factory=new_id)
    settlement_id: str
    source_type: SourceType
    source_id: str
    date: date
    description: str
    category: str | None = None
    total_amount: Decimal
    owed_to_person1: Decimal = Field(ge=0)
    owed_to_person2: Decimal = Field(ge=0)
    paid_status: bool = False
    notes: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def creditor(self) -> Person | None:
        """The party this line is owed to, if any."""
        if self.owed_to_person1 > 0:
            return Person.PERSON1
        if self.owed_to_person2 > 0:
            return Person.PERSON2
        return None


# ============================================================================
# Calculation Results
# ============================================================================


class ExpenseSplit(BaseModel):
    """Result of splitting one expense between the two parties."""

    person1_pct: Decimal
    person2_pct: Decimal
    share_source: ShareSource
    person1_share: Decimal
    person2_share: Decimal
    owed_to_person1: Decimal
    owed_to_person2: Decimal


class AssetBuyback(BaseModel):
    """Result of buying out the non-keeper's original stake in an asset."""

    person1_pct: Decimal
    person2_pct: Decimal
    share_source: ShareSource
    buyback: Decimal
    owed_to_person1: Decimal
    owed_to_person2: Decimal


class LedgerSummary(BaseModel):
    """Net settlement position over all unpaid lines."""

    total_owed_to_person1: Decimal
    total_owed_to_person2: Decimal
    net_amount: Decimal  # absolute value
    net_debtor: Person | None = None


class LedgerView(BaseModel):
    """Current owed lines split by debt direction, plus the summary."""

    owed_to_person1: list[OwedLine]
    owed_to_person2: list[OwedLine]
    summary: LedgerSummary
