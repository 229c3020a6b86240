"""Core split logic: rounding, period resolution, expense splits and buybacks."""

import logging
from datetime import date
from decimal import ROUND_HALF_EVEN, Decimal

from .models import (
    Asset,
    AssetBuyback,
    Expense,
    ExpenseSplit,
    Person,
    ShareSource,
    SplitPeriod,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
DEFAULT_PCT = Decimal("50")


def round_cents(value: Decimal | int | float | str) -> Decimal:
    """
    Round a currency amount to whole cents.

    Ties go to the even cent (banker's rounding), so repeated 50/50 splits of
    odd-cent totals carry no upward bias. Floats are read through their
    shortest repr, so 0.125 is rounded as the decimal 0.125 and not as its
    binary approximation.

    Args:
        value: Amount in currency units

    Returns:
        Amount quantized to two decimal places
    """
    if isinstance(value, float):
        value = repr(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_EVEN)


def resolve_period(on_date: date, periods: list[SplitPeriod]) -> SplitPeriod | None:
    """
    Find the split period covering a date.

    Periods are checked in the order given and the first match wins, so
    overlapping periods resolve to whichever the caller lists first.

    Args:
        on_date: Date of the financial event
        periods: Candidate periods

    Returns:
        The first covering period, or None if no period covers the date
    """
    for period in periods:
        if period.covers(on_date):
            return period
    return None


def resolve_shares(
    on_date: date,
    periods: list[SplitPeriod],
    manual_person1_pct: Decimal | None,
    manual_person2_pct: Decimal | None,
) -> tuple[Decimal, Decimal, ShareSource]:
    """
    Determine ownership percentages for an event.

    Priority:
    1. Manual override, when both percentages are present
    2. The split period covering the date
    3. 50/50

    Returns:
        Tuple of (person1_pct, person2_pct, source)
    """
    if manual_person1_pct is not None and manual_person2_pct is not None:
        return manual_person1_pct, manual_person2_pct, "manual"

    period = resolve_period(on_date, periods)
    if period:
        return period.person1_share_pct, period.person2_share_pct, "period"

    logger.debug(f"No split period covers {on_date}, defaulting to 50/50")
    return DEFAULT_PCT, DEFAULT_PCT, "default"


def split_expense(expense: Expense, periods: list[SplitPeriod]) -> ExpenseSplit:
    """
    Compute who owes whom for a single expense.

    person1's share is rounded to the cent and person2's share is whatever
    remains, so the two shares always add up to the total exactly. The party
    who did not pay owes the payer their own share.

    Args:
        expense: The expense to split
        periods: Split periods of the expense's settlement

    Returns:
        Shares and directional debt for the expense
    """
    person1_pct, person2_pct, source = resolve_shares(
        expense.date,
        periods,
        expense.manual_person1_pct,
        expense.manual_person2_pct,
    )

    total = expense.total_amount
    person1_share = round_cents(total * person1_pct / HUNDRED)
    person2_share = total - person1_share

    if expense.paid_by is Person.PERSON1:
        owed_to_person1, owed_to_person2 = person2_share, ZERO
    else:
        owed_to_person1, owed_to_person2 = ZERO, person1_share

    return ExpenseSplit(
        person1_pct=person1_pct,
        person2_pct=person2_pct,
        share_source=source,
        person1_share=person1_share,
        person2_share=person2_share,
        owed_to_person1=owed_to_person1,
        owed_to_person2=owed_to_person2,
    )


def calculate_buyback(asset: Asset, periods: list[SplitPeriod]) -> AssetBuyback | None:
    """
    Compute what the keeper of an asset owes to buy out the other party.

    The other party's stake is their share at purchase time, applied to the
    current estimated value.

    Args:
        asset: The asset being kept
        periods: Split periods of the asset's settlement

    Returns:
        Buyback and directional debt, or None while the asset has no
        valuation or keeper yet
    """
    if asset.current_estimated_value is None or asset.kept_by is None:
        return None

    person1_pct, person2_pct, source = resolve_shares(
        asset.purchase_date,
        periods,
        asset.manual_original_person1_pct,
        asset.manual_original_person2_pct,
    )

    other_pct = person2_pct if asset.kept_by is Person.PERSON1 else person1_pct
    buyback = round_cents(asset.current_estimated_value * other_pct / HUNDRED)

    if asset.kept_by is Person.PERSON1:
        owed_to_person1, owed_to_person2 = ZERO, buyback
    else:
        owed_to_person1, owed_to_person2 = buyback, ZERO

    return AssetBuyback(
        person1_pct=person1_pct,
        person2_pct=person2_pct,
        share_source=source,
        buyback=buyback,
        owed_to_person1=owed_to_person1,
        owed_to_person2=owed_to_person2,
    )


def check_periods(periods: list[SplitPeriod]) -> list[str]:
    """
    Report data-quality problems in a set of split periods.

    Shares that do not add up to 100 and overlapping date ranges are not
    rejected anywhere, but both make splits ambiguous.

    Returns:
        Human-readable warnings, empty when the periods look consistent
    """
    warnings = []

    for period in periods:
        total = period.person1_share_pct + period.person2_share_pct
        if total != HUNDRED:
            warnings.append(
                f"Period starting {period.start_date} has shares adding up to "
                f"{total}%, not 100%"
            )

    for i, first in enumerate(periods):
        for second in periods[i + 1 :]:
            if _overlaps(first, second):
                warnings.append(
                    f"Periods starting {first.start_date} and "
                    f"{second.start_date} overlap"
                )

    for warning in warnings:
        logger.warning(warning)

    return warnings


def _overlaps(first: SplitPeriod, second: SplitPeriod) -> bool:
    first_ends_after = first.end_date is None or second.start_date <= first.end_date
    second_ends_after = second.end_date is None or first.start_date <= second.end_date
    return first_ends_after and second_ends_after
