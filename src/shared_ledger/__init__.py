"""SharedLedger - Settle shared expenses and assets between two people."""

__version__ = "0.1.0"

from .calculator import calculate_buyback, resolve_period, round_cents, split_expense
from .config import Settings, load_settings
from .db import Database
from .ledger import LedgerService, summarize
from .models import (
    Asset,
    Expense,
    LedgerSummary,
    LedgerView,
    OwedLine,
    Person,
    SourceType,
    SplitPeriod,
)

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "LedgerService",
    "summarize",
    "calculate_buyback",
    "resolve_period",
    "round_cents",
    "split_expense",
    "Asset",
    "Expense",
    "LedgerSummary",
    "LedgerView",
    "OwedLine",
    "Person",
    "SourceType",
    "SplitPeriod",
]
