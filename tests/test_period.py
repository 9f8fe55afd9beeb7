"""Tests for the statement period calculator."""

from datetime import date, timedelta

import pytest

from household_ledger.config import ClosingDayOverflow
from household_ledger.errors import ValidationError
from household_ledger.statements.period import (
    calculate_period,
    check_closing_day,
    closing_date,
    next_period,
    shift_month,
)


class TestCalculatePeriod:
    """Tests for calculate_period."""

    def test_reference_before_closing_day(self):
        """closing 15, due 20, 2024-01-10 -> 2023-12-16 .. 2024-01-15, due 2024-02-04."""
        period = calculate_period(15, 20, date(2024, 1, 10))
        assert period.period_start == date(2023, 12, 16)
        assert period.period_end == date(2024, 1, 15)
        assert period.due_date == date(2024, 2, 4)

    def test_reference_on_closing_day(self):
        """The closing day itself belongs to the period it closes."""
        period = calculate_period(15, 20, date(2024, 1, 15))
        assert period.period_end == date(2024, 1, 15)

    def test_reference_after_closing_day(self):
        """Past the closing day, the period ends next month."""
        period = calculate_period(15, 20, date(2024, 1, 16))
        assert period.period_start == date(2024, 1, 16)
        assert period.period_end == date(2024, 2, 15)
        assert period.due_date == date(2024, 3, 6)

    def test_year_rollover(self):
        """A December reference after closing ends in January."""
        period = calculate_period(10, 5, date(2023, 12, 20))
        assert period.period_start == date(2023, 12, 11)
        assert period.period_end == date(2024, 1, 10)

    @pytest.mark.parametrize("closing_day", [1, 5, 15, 28])
    def test_periods_are_contiguous(self, closing_day):
        """Each period starts the day after the previous one ends."""
        period = calculate_period(closing_day, 10, date(2024, 1, 1))
        for _ in range(14):
            following = calculate_period(closing_day, 10, period.period_end + timedelta(days=1))
            assert following.period_start == period.period_end + timedelta(days=1)
            period = following

    def test_next_period(self):
        """next_period rolls to the following cycle."""
        period = calculate_period(15, 20, date(2024, 1, 10))
        following = next_period(period, 15, 20)
        assert following.period_start == date(2024, 1, 16)
        assert following.period_end == date(2024, 2, 15)

    def test_rejects_out_of_range_days(self):
        """Closing and due days must be 1-31."""
        with pytest.raises(ValidationError) as exc:
            calculate_period(0, 10, date(2024, 1, 10))
        assert exc.value.field == "closing_day"
        with pytest.raises(ValidationError):
            calculate_period(15, 32, date(2024, 1, 10))


class TestClosingDayOverflow:
    """Closing days that some months do not have."""

    def test_reject_names_the_month(self):
        """Default policy refuses a closing day February lacks."""
        with pytest.raises(ValidationError) as exc:
            calculate_period(30, 10, date(2024, 2, 10))
        assert "2024-02" in str(exc.value)

    def test_reject_applies_to_previous_period_boundary(self):
        """A short previous month is rejected too."""
        with pytest.raises(ValidationError):
            calculate_period(31, 10, date(2024, 5, 10))  # April has 30 days

    def test_clamp_uses_last_day(self):
        """Clamp closes on the month's last day."""
        period = calculate_period(31, 10, date(2024, 2, 10), ClosingDayOverflow.CLAMP)
        assert period.period_start == date(2024, 2, 1)
        assert period.period_end == date(2024, 2, 29)

    def test_clamp_keeps_periods_contiguous(self):
        """Clamped periods still chain without gaps."""
        period = calculate_period(31, 10, date(2024, 1, 5), ClosingDayOverflow.CLAMP)
        for _ in range(14):
            following = next_period(period, 31, 10, ClosingDayOverflow.CLAMP)
            assert following.period_start == period.period_end + timedelta(days=1)
            period = following

    def test_closing_date_within_month(self):
        assert closing_date(2024, 4, 30) == date(2024, 4, 30)

    @pytest.mark.parametrize("closing_day", [1, 15, 28])
    def test_check_accepts_days_every_month_has(self, closing_day):
        check_closing_day(closing_day)

    @pytest.mark.parametrize("closing_day", [29, 30, 31])
    def test_check_refuses_late_days_under_reject(self, closing_day):
        """Such a card would work in some months and fail in others."""
        with pytest.raises(ValidationError) as exc:
            check_closing_day(closing_day)
        assert exc.value.field == "closing_day"

    def test_check_allows_late_days_under_clamp(self):
        check_closing_day(30, ClosingDayOverflow.CLAMP)
        with pytest.raises(ValidationError):
            check_closing_day(32, ClosingDayOverflow.CLAMP)

    def test_clamp_march_after_short_february(self):
        """Closing 30 in March starts the day after February's last day."""
        period = calculate_period(30, 10, date(2024, 3, 10), ClosingDayOverflow.CLAMP)
        assert period.period_start == date(2024, 3, 1)
        assert period.period_end == date(2024, 3, 30)


class TestShiftMonth:
    """Tests for month arithmetic."""

    @pytest.mark.parametrize(
        "year,month,delta,expected",
        [
            (2024, 1, -1, (2023, 12)),
            (2024, 12, 1, (2025, 1)),
            (2024, 6, -18, (2022, 12)),
            (2024, 3, 0, (2024, 3)),
        ],
    )
    def test_shift_month(self, year, month, delta, expected):
        assert shift_month(year, month, delta) == expected
