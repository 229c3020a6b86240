"""Tests for period resolution, expense splits and asset buybacks."""

from datetime import date
from decimal import Decimal

import pytest

from shared_ledger.calculator import (
    calculate_buyback,
    check_periods,
    resolve_period,
    resolve_shares,
    split_expense,
)
from shared_ledger.models import Asset, Expense, Person, SplitPeriod


# Helper functions for tests
def make_period(
    start: date, end: date | None, person1_pct: str, person2_pct: str
) -> SplitPeriod:
    """Create a SplitPeriod for testing."""
    return SplitPeriod(
        settlement_id="test",
        start_date=start,
        end_date=end,
        person1_share_pct=Decimal(person1_pct),
        person2_share_pct=Decimal(person2_pct),
    )


def make_expense(
    total: str,
    paid_by: Person = Person.PERSON1,
    on: date = date(2024, 3, 15),
    manual: tuple[str, str] | None = None,
) -> Expense:
    """Create an Expense for testing."""
    return Expense(
        settlement_id="test",
        date=on,
        description="Test expense",
        total_amount=Decimal(total),
        paid_by=paid_by,
        manual_person1_pct=Decimal(manual[0]) if manual else None,
        manual_person2_pct=Decimal(manual[1]) if manual else None,
    )


def make_asset(
    value: str | None,
    kept_by: Person | None,
    purchased: date = date(2021, 6, 1),
    manual: tuple[str, str] | None = None,
) -> Asset:
    """Create an Asset for testing."""
    return Asset(
        settlement_id="test",
        name="Sofa",
        purchase_date=purchased,
        purchase_price=Decimal("1000.00"),
        paid_by=Person.PERSON1,
        manual_original_person1_pct=Decimal(manual[0]) if manual else None,
        manual_original_person2_pct=Decimal(manual[1]) if manual else None,
        current_estimated_value=Decimal(value) if value is not None else None,
        valuation_date=date(2024, 1, 10) if value is not None else None,
        kept_by=kept_by,
    )


class TestResolvePeriod:
    """Tests for resolve_period."""

    def test_date_inside_period(self):
        period = make_period(date(2024, 1, 1), date(2024, 12, 31), "60", "40")
        assert resolve_period(date(2024, 6, 1), [period]) is period

    def test_boundaries_are_inclusive(self):
        """Both start and end dates belong to the period."""
        period = make_period(date(2024, 1, 1), date(2024, 12, 31), "60", "40")
        assert resolve_period(date(2024, 1, 1), [period]) is period
        assert resolve_period(date(2024, 12, 31), [period]) is period

    def test_outside_period(self):
        period = make_period(date(2024, 1, 1), date(2024, 12, 31), "60", "40")
        assert resolve_period(date(2023, 12, 31), [period]) is None
        assert resolve_period(date(2025, 1, 1), [period]) is None

    def test_open_ended_period(self):
        """A period without an end date covers every later date."""
        period = make_period(date(2024, 1, 1), None, "60", "40")
        assert resolve_period(date(2099, 1, 1), [period]) is period

    def test_first_match_wins_on_overlap(self):
        """Overlapping periods resolve to whichever comes first."""
        first = make_period(date(2024, 1, 1), None, "70", "30")
        second = make_period(date(2024, 6, 1), None, "20", "80")
        assert resolve_period(date(2024, 7, 1), [first, second]) is first
        assert resolve_period(date(2024, 7, 1), [second, first]) is second

    def test_no_periods(self):
        assert resolve_period(date(2024, 1, 1), []) is None


class TestResolveShares:
    """Tests for share precedence."""

    def test_manual_override_beats_matching_period(self):
        period = make_period(date(2024, 1, 1), None, "60", "40")
        shares = resolve_shares(
            date(2024, 3, 1), [period], Decimal("10"), Decimal("90")
        )
        assert shares == (Decimal("10"), Decimal("90"), "manual")

    def test_single_manual_pct_is_ignored(self):
        """Only a complete pair of manual percentages overrides periods."""
        period = make_period(date(2024, 1, 1), None, "60", "40")
        shares = resolve_shares(date(2024, 3, 1), [period], Decimal("10"), None)
        assert shares == (Decimal("60"), Decimal("40"), "period")

    def test_defaults_to_even_split(self):
        shares = resolve_shares(date(2024, 3, 1), [], None, None)
        assert shares == (Decimal("50"), Decimal("50"), "default")


class TestSplitExpense:
    """Tests for split_expense."""

    def test_fifty_fifty_odd_cents_paid_by_person1(self):
        """$120.51 at 50/50: person1's share rounds to $60.26, person2 owes $60.25."""
        period = make_period(date(2024, 1, 1), None, "50", "50")
        split = split_expense(make_expense("120.51"), [period])

        assert split.person1_share == Decimal("60.26")
        assert split.person2_share == Decimal("60.25")
        assert split.owed_to_person1 == Decimal("60.25")
        assert split.owed_to_person2 == 0
        assert split.share_source == "period"

    def test_paid_by_person2(self):
        """When person2 pays, person1 owes their own share."""
        period = make_period(date(2024, 1, 1), None, "60", "40")
        split = split_expense(make_expense("100.00", Person.PERSON2), [period])

        assert split.owed_to_person1 == 0
        assert split.owed_to_person2 == Decimal("60.00")

    def test_no_period_defaults_to_even_split(self):
        split = split_expense(make_expense("80.00"), [])

        assert split.share_source == "default"
        assert split.person1_pct == Decimal("50")
        assert split.owed_to_person1 == Decimal("40.00")

    def test_manual_override_applies_regardless_of_period(self):
        period = make_period(date(2024, 1, 1), None, "50", "50")
        split = split_expense(make_expense("100.00", manual=("25", "75")), [period])

        assert split.share_source == "manual"
        assert split.person1_share == Decimal("25.00")
        assert split.owed_to_person1 == Decimal("75.00")

    def test_manual_shares_need_not_sum_to_100(self):
        """Person2 absorbs whatever person1's share leaves of the total."""
        split = split_expense(make_expense("100.00", manual=("30", "30")), [])

        assert split.person1_share == Decimal("30.00")
        assert split.person2_share == Decimal("70.00")

    def test_thirds(self):
        period = make_period(date(2024, 1, 1), None, "33.33", "66.67")
        split = split_expense(make_expense("100.00"), [period])

        assert split.person1_share == Decimal("33.33")
        assert split.person2_share == Decimal("66.67")

    def test_single_cent_fifty_fifty(self):
        """$0.01 split evenly: person1's half cent rounds to zero."""
        split = split_expense(make_expense("0.01"), [])

        assert split.person1_share == Decimal("0.00")
        assert split.person2_share == Decimal("0.01")
        assert split.owed_to_person1 == Decimal("0.01")

    @pytest.mark.parametrize("total", ["0.01", "0.03", "10.05", "120.51", "999.99"])
    @pytest.mark.parametrize(
        "pcts", [("50", "50"), ("33.33", "66.67"), ("60", "40"), ("12.5", "87.5")]
    )
    @pytest.mark.parametrize("paid_by", [Person.PERSON1, Person.PERSON2])
    def test_shares_sum_to_total(self, total, pcts, paid_by):
        """The two shares always add up to the total, to the cent."""
        split = split_expense(make_expense(total, paid_by, manual=pcts), [])

        assert split.person1_share + split.person2_share == Decimal(total)

        # Only the party who paid is owed anything
        if paid_by is Person.PERSON1:
            assert split.owed_to_person2 == 0
            assert split.owed_to_person1 == split.person2_share
        else:
            assert split.owed_to_person1 == 0
            assert split.owed_to_person2 == split.person1_share


class TestCalculateBuyback:
    """Tests for calculate_buyback."""

    def test_keeper_buys_out_other_share(self):
        """60/40 asset worth $500 kept by person1: person1 owes person2 $200."""
        asset = make_asset("500.00", Person.PERSON1, manual=("60", "40"))
        buyback = calculate_buyback(asset, [])

        assert buyback is not None
        assert buyback.buyback == Decimal("200.00")
        assert buyback.owed_to_person2 == Decimal("200.00")
        assert buyback.owed_to_person1 == 0

    def test_kept_by_person2(self):
        asset = make_asset("500.00", Person.PERSON2, manual=("60", "40"))
        buyback = calculate_buyback(asset, [])

        assert buyback is not None
        assert buyback.buyback == Decimal("300.00")
        assert buyback.owed_to_person1 == Decimal("300.00")
        assert buyback.owed_to_person2 == 0

    def test_no_value_yet(self):
        assert calculate_buyback(make_asset(None, Person.PERSON1), []) is None

    def test_no_keeper_yet(self):
        assert calculate_buyback(make_asset("500.00", None), []) is None

    def test_uses_shares_at_purchase_date(self):
        """The period covering the purchase applies, not the one at valuation."""
        periods = [
            make_period(date(2020, 1, 1), date(2021, 12, 31), "60", "40"),
            make_period(date(2022, 1, 1), None, "20", "80"),
        ]
        buyback = calculate_buyback(make_asset("500.00", Person.PERSON1), periods)

        assert buyback is not None
        assert buyback.person2_pct == Decimal("40")
        assert buyback.buyback == Decimal("200.00")

    def test_buyback_rounds_half_to_even(self):
        """Half of $333.33 is 16666.5 cents, which rounds to 16666."""
        buyback = calculate_buyback(make_asset("333.33", Person.PERSON1), [])

        assert buyback is not None
        assert buyback.share_source == "default"
        assert buyback.buyback == Decimal("166.66")


class TestCheckPeriods:
    """Tests for period data-quality warnings."""

    def test_consistent_periods(self):
        periods = [
            make_period(date(2023, 1, 1), date(2023, 12, 31), "50", "50"),
            make_period(date(2024, 1, 1), None, "60", "40"),
        ]
        assert check_periods(periods) == []

    def test_shares_not_summing_to_100(self):
        warnings = check_periods([make_period(date(2024, 1, 1), None, "60", "30")])

        assert len(warnings) == 1
        assert "90%" in warnings[0]

    def test_overlapping_periods(self):
        periods = [
            make_period(date(2023, 1, 1), None, "50", "50"),
            make_period(date(2024, 1, 1), date(2024, 6, 30), "60", "40"),
        ]
        warnings = check_periods(periods)

        assert len(warnings) == 1
        assert "overlap" in warnings[0]

    def test_shared_boundary_day_overlaps(self):
        """Inclusive ends mean a period ending on another's start overlaps it."""
        periods = [
            make_period(date(2023, 1, 1), date(2024, 1, 1), "50", "50"),
            make_period(date(2024, 1, 1), None, "60", "40"),
        ]
        assert len(check_periods(periods)) == 1
