"""Tests for CSV export of owed lines and source records."""

import csv
from datetime import date
from decimal import Decimal

from shared_ledger.export import (
    COLUMNS,
    RECORD_TYPES,
    export_owed_lines,
    export_records,
)
from shared_ledger.models import (
    Asset,
    Expense,
    OwedLine,
    Person,
    SourceType,
    SplitPeriod,
)


def make_line(source_id: str, to_person1: str, to_person2: str) -> OwedLine:
    """Create an OwedLine for testing."""
    return OwedLine(
        settlement_id="s1",
        source_type=SourceType.EXPENSE,
        source_id=source_id,
        date=date(2024, 2, 1),
        description=f"Expense {source_id}",
        category="Dining",
        total_amount=Decimal("30.00"),
        owed_to_person1=Decimal(to_person1),
        owed_to_person2=Decimal(to_person2),
    )


def read_rows(path) -> list[dict]:
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def test_export_all(tmp_path):
    path = tmp_path / "ledger.csv"
    lines = [make_line("a", "15.00", "0.00"), make_line("b", "0.00", "12.50")]

    count = export_owed_lines(lines, path)

    rows = read_rows(path)
    assert count == 2
    assert list(rows[0]) == COLUMNS
    assert rows[0]["source_id"] == "a"
    assert rows[0]["date"] == "2024-02-01"
    assert rows[0]["owed_to_person1"] == "15.00"
    assert rows[1]["owed_to_person2"] == "12.50"


def test_export_one_direction(tmp_path):
    path = tmp_path / "ledger.csv"
    lines = [make_line("a", "15.00", "0.00"), make_line("b", "0.00", "12.50")]

    count = export_owed_lines(lines, path, direction="to-person2")

    rows = read_rows(path)
    assert count == 1
    assert [row["source_id"] for row in rows] == ["b"]


def test_export_empty(tmp_path):
    path = tmp_path / "ledger.csv"

    assert export_owed_lines([], path) == 0
    assert read_rows(path) == []


class TestRecordExport:
    """CSV export of split periods, expenses and assets."""

    def test_split_periods(self, tmp_path):
        path = tmp_path / "periods.csv"
        period = SplitPeriod(
            settlement_id="s1",
            start_date=date(2024, 1, 1),
            person1_share_pct=Decimal("60"),
            person2_share_pct=Decimal("40"),
            note="New flat",
        )

        assert export_records([period], path, RECORD_TYPES["split-periods"]) == 1

        rows = read_rows(path)
        assert list(rows[0]) == list(SplitPeriod.model_fields)
        assert rows[0]["id"] == period.id
        assert rows[0]["start_date"] == "2024-01-01"
        assert rows[0]["end_date"] == ""
        assert rows[0]["person1_share_pct"] == "60"
        assert rows[0]["note"] == "New flat"

    def test_expenses(self, tmp_path):
        path = tmp_path / "expenses.csv"
        expense = Expense(
            settlement_id="s1",
            date=date(2024, 3, 15),
            description="Groceries",
            total_amount=Decimal("120.51"),
            paid_by=Person.PERSON2,
        )

        assert export_records([expense], path, Expense) == 1

        rows = read_rows(path)
        assert rows[0]["total_amount"] == "120.51"
        assert rows[0]["paid_by"] == "person2"
        assert rows[0]["category"] == "Other"
        assert rows[0]["manual_person1_pct"] == ""

    def test_assets(self, tmp_path):
        path = tmp_path / "assets.csv"
        asset = Asset(
            settlement_id="s1",
            name="Sofa",
            purchase_date=date(2021, 6, 1),
            purchase_price=Decimal("1000.00"),
            paid_by=Person.PERSON1,
            current_estimated_value=Decimal("500.00"),
            kept_by=Person.PERSON1,
        )

        assert export_records([asset], path, Asset) == 1

        rows = read_rows(path)
        assert rows[0]["name"] == "Sofa"
        assert rows[0]["current_estimated_value"] == "500.00"
        assert rows[0]["kept_by"] == "person1"

    def test_empty_records_still_write_header(self, tmp_path):
        path = tmp_path / "assets.csv"

        assert export_records([], path, Asset) == 0

        with open(path, encoding="utf-8") as f:
            assert f.readline().strip() == ",".join(Asset.model_fields)
