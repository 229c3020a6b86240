"""Custom exceptions for SharedLedger."""


class SharedLedgerError(Exception):
    """Base exception for all SharedLedger errors."""

    pass


class ConfigurationError(SharedLedgerError):
    """Raised when configuration is invalid or missing."""

    pass


class RecordNotFoundError(SharedLedgerError):
    """Raised when a record referenced by id does not exist."""

    record_type = "Record"

    def __init__(self, record_id: str, message: str | None = None):
        self.record_id = record_id
        super().__init__(message or f"{self.record_type} not found: {record_id}")


class SplitPeriodNotFoundError(RecordNotFoundError):
    """Raised when a split period does not exist."""

    record_type = "Split period"


class ExpenseNotFoundError(RecordNotFoundError):
    """Raised when an expense does not exist."""

    record_type = "Expense"


class AssetNotFoundError(RecordNotFoundError):
    """Raised when an asset does not exist."""

    record_type = "Asset"


class OwedLineNotFoundError(RecordNotFoundError):
    """Raised when a ledger line does not exist."""

    record_type = "Owed line"
