"""CSV export of owed lines and source records."""

import csv
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Literal

from pydantic import BaseModel

from .models import Asset, Expense, OwedLine, SplitPeriod

logger = logging.getLogger(__name__)

Direction = Literal["all", "to-person1", "to-person2"]

RECORD_TYPES: dict[str, type[BaseModel]] = {
    "split-periods": SplitPeriod,
    "expenses": Expense,
    "assets": Asset,
}

COLUMNS = [
    "id",
    "source_type",
    "source_id",
    "date",
    "description",
    "category",
    "total_amount",
    "owed_to_person1",
    "owed_to_person2",
    "paid_status",
    "notes",
]


def filter_by_direction(lines: list[OwedLine], direction: Direction) -> list[OwedLine]:
    """Keep only lines owed in the given direction."""
    if direction == "to-person1":
        return [line for line in lines if line.owed_to_person1 > 0]
    if direction == "to-person2":
        return [line for line in lines if line.owed_to_person2 > 0]
    return list(lines)


def export_owed_lines(
    lines: list[OwedLine], path: Path, direction: Direction = "all"
) -> int:
    """
    Write owed lines to a CSV file.

    Args:
        lines: Owed lines to export
        path: Destination file, overwritten if it exists
        direction: Which debt direction to include

    Returns:
        Number of rows written
    """
    selected = filter_by_direction(lines, direction)

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=COLUMNS)
        writer.writeheader()
        for line in selected:
            writer.writerow(line.model_dump(mode="json", include=set(COLUMNS)))

    logger.info(f"Exported {len(selected)} owed lines to {path}")
    return len(selected)


def export_records(
    records: Sequence[BaseModel], path: Path, model: type[BaseModel]
) -> int:
    """
    Write split periods, expenses or assets to a CSV file.

    Args:
        records: Records of a single type
        path: Destination file, overwritten if it exists
        model: The record type, which fixes the columns

    Returns:
        Number of rows written
    """
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=list(model.model_fields))
        writer.writeheader()
        for record in records:
            writer.writerow(record.model_dump(mode="json"))

    logger.info(f"Exported {len(records)} {model.__name__} records to {path}")
    return len(records)
