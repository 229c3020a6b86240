"""CLI for SharedLedger using Typer."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, cast

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .calculator import check_periods
from .config import Settings, load_settings
from .db import Database
from .export import RECORD_TYPES, Direction, export_owed_lines, export_records
from .ledger import LedgerService
from .models import Asset, Expense, OwedLine, Participants, Person, SplitPeriod

app = typer.Typer(
    name="shared-ledger",
    help="Track shared expenses and assets between two people and settle up",
)

console = Console()

DATE_FORMATS = ["%Y-%m-%d"]

SettlementOption = typer.Option(
    None, "--settlement", "-s", help="Settlement id (defaults to configured one)"
)
VerboseOption = typer.Option(False, "--verbose", "-v", help="Verbose output")


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@contextmanager
def open_service(verbose: bool) -> Iterator[tuple[Settings, LedgerService]]:
    """Load settings, open the database and build the service.

    Errors are printed and turn into exit code 1; with --verbose they are
    re-raised for the traceback.
    """
    setup_logging(verbose)
    db = None
    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = LedgerService(
            db,
            participants=settings.participants,
            preserve_paid_status=settings.preserve_paid_status,
        )
        yield settings, service
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {escape(str(e))}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if db is not None:
            db.close()


def to_date(value: datetime | None) -> date | None:
    return value.date() if value else None


def collect_changes(**values: Any) -> dict[str, Any]:
    """Keep only the options that were given on the command line."""
    return {field: value for field, value in values.items() if value is not None}


def require_changes(changes: dict[str, Any]):
    if not changes:
        raise ValueError("Nothing to change: pass at least one option")


def print_unresolved(count: int):
    """Warn about expenses that fell back to an even split."""
    if count:
        console.print(
            f"[yellow]⚠️  {count} unresolved expenses: no split period or "
            "manual shares, split 50/50[/yellow]"
        )


@app.command("add-period")
def add_period(
    start: datetime = typer.Argument(..., formats=DATE_FORMATS, help="Start date"),
    person1_pct: str = typer.Argument(..., help="Person 1 share in percent"),
    person2_pct: str = typer.Argument(..., help="Person 2 share in percent"),
    end: datetime | None = typer.Option(
        None, "--end", formats=DATE_FORMATS, help="End date (omit if ongoing)"
    ),
    note: str | None = typer.Option(None, "--note", help="Free-form note"),
    settlement: str | None = SettlementOption,
    verbose: bool = VerboseOption,
):
    """Add a split period defining ownership shares for a date range."""
    with open_service(verbose) as (settings, service):
        period = service.create_split_period(
            SplitPeriod(
                settlement_id=settlement or settings.settlement_id,
                start_date=start.date(),
                end_date=to_date(end),
                person1_share_pct=person1_pct,
                person2_share_pct=person2_pct,
                note=note,
            )
        )
        console.print(f"[green]✓ Added split period {period.id}[/green]")
        for warning in check_periods(
            service.repository.list_split_periods(period.settlement_id)
        ):
            console.print(f"[yellow]⚠️  {warning}[/yellow]")


@app.command("add-expense")
def add_expense(
    expense_date: datetime = typer.Argument(
        ..., formats=DATE_FORMATS, help="Expense date"
    ),
    description: str = typer.Argument(..., help="What the expense was for"),
    amount: str = typer.Argument(..., help="Total amount"),
    paid_by: Person = typer.Option(..., "--paid-by", help="Who paid"),
    category: str = typer.Option("Other", "--category", "-c", help="Category"),
    person1_pct: str | None = typer.Option(
        None, "--p1-pct", help="Manual person 1 share (needs --p2-pct)"
    ),
    person2_pct: str | None = typer.Option(
        None, "--p2-pct", help="Manual person 2 share (needs --p1-pct)"
    ),
    settlement: str | None = SettlementOption,
    verbose: bool = VerboseOption,
):
    """Add a shared expense."""
    with open_service(verbose) as (settings, service):
        expense = service.create_expense(
            Expense(
                settlement_id=settlement or settings.settlement_id,
                date=expense_date.date(),
                description=description,
                category=category,
                total_amount=amount,
                paid_by=paid_by,
                manual_person1_pct=person1_pct,
                manual_person2_pct=person2_pct,
            )
        )
        console.print(f"[green]✓ Added expense {expense.id}[/green]")


@app.command("add-asset")
def add_asset(
    name: str = typer.Argument(..., help="Asset name"),
    purchase_date: datetime = typer.Argument(
        ..., formats=DATE_FORMATS, help="Purchase date"
    ),
    price: str = typer.Argument(..., help="Purchase price"),
    paid_by: Person = typer.Option(..., "--paid-by", help="Who paid"),
    person1_pct: str | None = typer.Option(
        None, "--p1-pct", help="Manual original person 1 share (needs --p2-pct)"
    ),
    person2_pct: str | None = typer.Option(
        None, "--p2-pct", help="Manual original person 2 share (needs --p1-pct)"
    ),
    notes: str | None = typer.Option(None, "--notes", help="Free-form notes"),
    settlement: str | None = SettlementOption,
    verbose: bool = VerboseOption,
):
    """Add a jointly owned asset."""
    with open_service(verbose) as (settings, service):
        asset = service.create_asset(
            Asset(
                settlement_id=settlement or settings.settlement_id,
                name=name,
                purchase_date=purchase_date.date(),
                purchase_price=price,
                paid_by=paid_by,
                manual_original_person1_pct=person1_pct,
                manual_original_person2_pct=person2_pct,
                notes=notes,
            )
        )
        console.print(f"[green]✓ Added asset {asset.id}[/green]")


@app.command("value-asset")
def value_asset(
    asset_id: str = typer.Argument(..., help="Asset id"),
    value: str = typer.Argument(..., help="Current estimated value"),
    kept_by: Person = typer.Option(..., "--kept-by", help="Who keeps the asset"),
    valuation_date: datetime | None = typer.Option(
        None, "--date", formats=DATE_FORMATS, help="Valuation date (default today)"
    ),
    verbose: bool = VerboseOption,
):
    """Record an asset's current value and who keeps it."""
    with open_service(verbose) as (settings, service):
        asset = service.update_valuation(
            asset_id,
            current_estimated_value=value,
            kept_by=kept_by,
            valuation_date=to_date(valuation_date),
        )
        keeper = settings.participants.name_of(kept_by)
        valued = format_money(Decimal(value))
        console.print(
            f"[green]✓ {asset.name} valued at {valued} "
            f"(kept by {keeper})[/green]"
        )


@app.command("edit-period")
def edit_period(
    period_id: str = typer.Argument(..., help="Split period id"),
    start: datetime | None = typer.Option(
        None, "--start", formats=DATE_FORMATS, help="New start date"
    ),
    end: datetime | None = typer.Option(
        None, "--end", formats=DATE_FORMATS, help="New end date"
    ),
    ongoing: bool = typer.Option(False, "--ongoing", help="Remove the end date"),
    person1_pct: str | None = typer.Option(None, "--p1-pct", help="Person 1 share"),
    person2_pct: str | None = typer.Option(None, "--p2-pct", help="Person 2 share"),
    note: str | None = typer.Option(None, "--note", help="Free-form note"),
    verbose: bool = VerboseOption,
):
    """Change a split period and recompute its settlement's ledger."""
    with open_service(verbose) as (_settings, service):
        changes = collect_changes(
            start_date=to_date(start),
            end_date=to_date(end),
            person1_share_pct=person1_pct,
            person2_share_pct=person2_pct,
            note=note,
        )
        if ongoing:
            changes["end_date"] = None
        require_changes(changes)

        period = service.update_split_period(period_id, **changes)
        console.print(f"[green]✓ Updated split period {period.id}[/green]")
        for warning in check_periods(
            service.repository.list_split_periods(period.settlement_id)
        ):
            console.print(f"[yellow]⚠️  {warning}[/yellow]")


@app.command("edit-expense")
def edit_expense(
    expense_id: str = typer.Argument(..., help="Expense id"),
    expense_date: datetime | None = typer.Option(
        None, "--date", formats=DATE_FORMATS, help="New date"
    ),
    description: str | None = typer.Option(None, "--description", help="New text"),
    amount: str | None = typer.Option(None, "--amount", help="New total amount"),
    paid_by: Person | None = typer.Option(None, "--paid-by", help="Who paid"),
    category: str | None = typer.Option(None, "--category", "-c", help="Category"),
    person1_pct: str | None = typer.Option(None, "--p1-pct", help="Manual share"),
    person2_pct: str | None = typer.Option(None, "--p2-pct", help="Manual share"),
    clear_split: bool = typer.Option(
        False, "--clear-split", help="Drop manual shares and use the split periods"
    ),
    verbose: bool = VerboseOption,
):
    """Change an expense and recompute its settlement's ledger."""
    with open_service(verbose) as (_settings, service):
        changes = collect_changes(
            date=to_date(expense_date),
            description=description,
            total_amount=amount,
            paid_by=paid_by,
            category=category,
            manual_person1_pct=person1_pct,
            manual_person2_pct=person2_pct,
        )
        if clear_split:
            changes.update(manual_person1_pct=None, manual_person2_pct=None)
        require_changes(changes)

        expense = service.update_expense(expense_id, **changes)
        console.print(f"[green]✓ Updated expense {expense.id}[/green]")


@app.command("edit-asset")
def edit_asset(
    asset_id: str = typer.Argument(..., help="Asset id"),
    name: str | None = typer.Option(None, "--name", help="New name"),
    purchase_date: datetime | None = typer.Option(
        None, "--purchase-date", formats=DATE_FORMATS, help="New purchase date"
    ),
    price: str | None = typer.Option(None, "--price", help="New purchase price"),
    paid_by: Person | None = typer.Option(None, "--paid-by", help="Who paid"),
    person1_pct: str | None = typer.Option(None, "--p1-pct", help="Manual share"),
    person2_pct: str | None = typer.Option(None, "--p2-pct", help="Manual share"),
    clear_split: bool = typer.Option(
        False, "--clear-split", help="Drop manual shares and use the split periods"
    ),
    clear_keeper: bool = typer.Option(
        False, "--clear-keeper", help="Forget who keeps the asset"
    ),
    notes: str | None = typer.Option(None, "--notes", help="Free-form notes"),
    verbose: bool = VerboseOption,
):
    """Change an asset and recompute its settlement's ledger."""
    with open_service(verbose) as (_settings, service):
        changes = collect_changes(
            name=name,
            purchase_date=to_date(purchase_date),
            purchase_price=price,
            paid_by=paid_by,
            manual_original_person1_pct=person1_pct,
            manual_original_person2_pct=person2_pct,
            notes=notes,
        )
        if clear_split:
            changes.update(
                manual_original_person1_pct=None, manual_original_person2_pct=None
            )
        if clear_keeper:
            changes["kept_by"] = None
        require_changes(changes)

        asset = service.update_asset(asset_id, **changes)
        console.print(f"[green]✓ Updated asset {asset.id}[/green]")


@app.command()
def recalculate(
    settlement: str | None = SettlementOption,
    verbose: bool = VerboseOption,
):
    """Rebuild the ledger from all expenses, assets and split periods."""
    with open_service(verbose) as (settings, service):
        settlement_id = settlement or settings.settlement_id
        service.recalculate(settlement_id)
        console.print(f"[green]✓ Ledger for '{settlement_id}' recalculated[/green]")


@app.command("mark-paid")
def mark_paid(
    line_id: str = typer.Argument(..., help="Owed line id"),
    unpaid: bool = typer.Option(False, "--unpaid", help="Mark as unpaid instead"),
    verbose: bool = VerboseOption,
):
    """Mark an owed line as paid (or unpaid)."""
    with open_service(verbose) as (_settings, service):
        line = service.set_paid_status(line_id, not unpaid)
        state = "paid" if line.paid_status else "unpaid"
        console.print(f"[green]✓ {line.description} marked {state}[/green]")


@app.command("list-periods")
def list_periods(
    settlement: str | None = SettlementOption,
    verbose: bool = VerboseOption,
):
    """List split periods with their ownership shares."""
    with open_service(verbose) as (settings, service):
        participants = settings.participants
        periods = service.repository.list_split_periods(
            settlement or settings.settlement_id
        )

        table = Table(title="Split Periods", show_header=True, header_style="bold")
        table.add_column("ID", style="dim", no_wrap=True)
        table.add_column("Start", width=10)
        table.add_column("End", width=10)
        table.add_column(escape(participants.person1), justify="right")
        table.add_column(escape(participants.person2), justify="right")
        table.add_column("Note")

        for period in periods:
            table.add_row(
                period.id,
                str(period.start_date),
                str(period.end_date) if period.end_date else "ongoing",
                f"{period.person1_share_pct}%",
                f"{period.person2_share_pct}%",
                escape(period.note or ""),
            )

        console.print(table)
        for warning in check_periods(periods):
            console.print(f"[yellow]⚠️  {warning}[/yellow]")


@app.command("list-expenses")
def list_expenses(
    settlement: str | None = SettlementOption,
    verbose: bool = VerboseOption,
):
    """List expenses with the split each one resolves to."""
    with open_service(verbose) as (settings, service):
        participants = settings.participants
        splits = service.expense_splits(settlement or settings.settlement_id)

        table = Table(title="Expenses", show_header=True, header_style="bold")
        table.add_column("ID", style="dim", no_wrap=True)
        table.add_column("Date", width=10)
        table.add_column("Description", style="cyan")
        table.add_column("Category", style="yellow")
        table.add_column("Amount", justify="right")
        table.add_column("Paid by")
        table.add_column("Split", justify="right")

        unresolved = 0
        for expense, split in splits:
            shares = f"{split.person1_pct}/{split.person2_pct}"
            if split.share_source == "default":
                unresolved += 1
                shares = f"[yellow]{shares} (unresolved)[/yellow]"
            elif split.share_source == "manual":
                shares += " (manual)"
            table.add_row(
                expense.id,
                str(expense.date),
                escape(expense.description),
                escape(expense.category),
                format_money(expense.total_amount),
                escape(participants.name_of(expense.paid_by)),
                shares,
            )

        console.print(table)
        print_unresolved(unresolved)


@app.command("list-assets")
def list_assets(
    settlement: str | None = SettlementOption,
    verbose: bool = VerboseOption,
):
    """List jointly owned assets and their valuations."""
    with open_service(verbose) as (settings, service):
        participants = settings.participants
        assets = service.repository.list_assets(settlement or settings.settlement_id)

        table = Table(title="Assets", show_header=True, header_style="bold")
        table.add_column("ID", style="dim", no_wrap=True)
        table.add_column("Name", style="cyan")
        table.add_column("Purchased", width=10)
        table.add_column("Price", justify="right")
        table.add_column("Paid by")
        table.add_column("Value", justify="right")
        table.add_column("Kept by")

        for asset in assets:
            value = asset.current_estimated_value
            table.add_row(
                asset.id,
                escape(asset.name),
                str(asset.purchase_date),
                format_money(asset.purchase_price),
                escape(participants.name_of(asset.paid_by)),
                format_money(value) if value is not None else "-",
                escape(participants.name_of(asset.kept_by)) if asset.kept_by else "-",
            )

        console.print(table)


@app.command()
def show(
    settlement: str | None = SettlementOption,
    verbose: bool = VerboseOption,
):
    """Show owed lines in both directions and the net settlement."""
    with open_service(verbose) as (settings, service):
        settlement_id = settlement or settings.settlement_id
        participants = settings.participants
        ledger = service.get_ledger(settlement_id)

        console.print(
            display_lines(
                ledger.owed_to_person1,
                f"{participants.person2} owes {participants.person1}",
                lambda line: line.owed_to_person1,
            )
        )
        console.print(
            display_lines(
                ledger.owed_to_person2,
                f"{participants.person1} owes {participants.person2}",
                lambda line: line.owed_to_person2,
            )
        )

        summary = ledger.summary
        console.print("\n[bold]Summary (unpaid lines):[/bold]")
        console.print(
            f"  Owed to {participants.person1}: "
            f"{format_money(summary.total_owed_to_person1)}"
        )
        console.print(
            f"  Owed to {participants.person2}: "
            f"{format_money(summary.total_owed_to_person2)}"
        )
        net = describe_net(summary.net_debtor, participants)
        if summary.net_debtor:
            net += f" {format_money(summary.net_amount)}"
        console.print(f"  {net}")

        periods = service.repository.list_split_periods(settlement_id)
        for warning in check_periods(periods):
            console.print(f"[yellow]⚠️  {warning}[/yellow]")
        print_unresolved(len(service.unresolved_expenses(settlement_id)))


@app.command()
def export(
    path: Path = typer.Argument(..., help="CSV file to write"),
    record_type: str = typer.Option(
        "ledger", "--type", "-t", help="ledger, split-periods, expenses or assets"
    ),
    direction: str = typer.Option(
        "all", "--direction", "-d", help="all, to-person1 or to-person2 (ledger only)"
    ),
    settlement: str | None = SettlementOption,
    verbose: bool = VerboseOption,
):
    """Export owed lines or source records to CSV."""
    with open_service(verbose) as (settings, service):
        settlement_id = settlement or settings.settlement_id
        repository = service.repository

        if record_type == "ledger":
            if direction not in ("all", "to-person1", "to-person2"):
                raise ValueError(f"Unknown direction: {direction}")
            lines = repository.list_owed_lines(settlement_id)
            count = export_owed_lines(lines, path, cast(Direction, direction))
        elif record_type in RECORD_TYPES:
            list_records = {
                "split-periods": repository.list_split_periods,
                "expenses": repository.list_expenses,
                "assets": repository.list_assets,
            }[record_type]
            records = list_records(settlement_id)
            count = export_records(records, path, RECORD_TYPES[record_type])
        else:
            raise ValueError(f"Unknown export type: {record_type}")

        console.print(
            f"[green]✓ Exported {count} {record_type} rows to {path}[/green]"
        )


def format_money(amount: Decimal) -> str:
    """Format money with thousands separators, e.g. $1,234.50."""
    return f"${amount:,.2f}"


def describe_net(net_debtor: Person | None, participants: Participants) -> str:
    """One-line description of who owes whom overall."""
    if net_debtor is None:
        return "[green]✓ All settled[/green]"
    debtor = participants.name_of(net_debtor)
    creditor = participants.name_of(net_debtor.other)
    return f"[bold]{debtor} owes {creditor}[/bold]"


def display_lines(lines: list[OwedLine], title: str, amount_of) -> Table:
    """Build a table of owed lines in one direction."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Date", width=10)
    table.add_column("Description", style="cyan", width=40)
    table.add_column("Category", style="yellow")
    table.add_column("Amount", justify="right", width=12)
    table.add_column("Paid", justify="center", width=4)

    for line in lines:
        table.add_row(
            line.id,
            str(line.date),
            escape(
                line.description[:40] + "..."
                if len(line.description) > 40
                else line.description
            ),
            line.category or "",
            format_money(amount_of(line)),
            "✓" if line.paid_status else "",
        )

    return table


if __name__ == "__main__":
    app()
