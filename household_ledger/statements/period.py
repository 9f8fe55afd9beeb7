"""
Statement Period Calculator

Maps a card's billing cycle (closing day of month + days until due) and a
reference date to the boundaries of the billing period containing it.

    closing_day=15, due_day=20, reference 2024-01-10
        period_start = 2023-12-16
        period_end   = 2024-01-15
        due_date     = 2024-02-04

DESIGN DECISION: A closing day that does not exist in a month (31 in
April, 30 in February) is never silently moved. The overflow policy is
explicit: REJECT raises a ValidationError naming the month, CLAMP uses
the month's last day. The same rule computes the previous period's end,
so consecutive periods are always contiguous.

Under REJECT a card may only close on a day every month has (1-28);
check_closing_day enforces that before any period is computed, so such a
card is refused consistently instead of failing in some months only.
"""

import calendar
from datetime import date, timedelta

from household_ledger.config import ClosingDayOverflow
from household_ledger.errors import ValidationError
from household_ledger.models.statement import StatementPeriod


# Last closing day present in every month
LAST_SAFE_CLOSING_DAY = 28


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """(year, month) moved by delta months."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def check_closing_day(closing_day: int, overflow: ClosingDayOverflow = ClosingDayOverflow.REJECT) -> None:
    """
    Refuse a closing day the overflow policy cannot honour in every month.

    Raises:
        ValidationError: day outside 1-31, or past the 28th under REJECT
    """
    if not 1 <= closing_day <= 31:
        raise ValidationError(f"Closing day must be 1-31, got {closing_day}", field="closing_day")
    if overflow == ClosingDayOverflow.REJECT and closing_day > LAST_SAFE_CLOSING_DAY:
        raise ValidationError(
            f"Closing day {closing_day} does not exist in every month; "
            f"use a day from 1 to {LAST_SAFE_CLOSING_DAY} or the clamp policy",
            field="closing_day",
        )


def closing_date(
    year: int,
    month: int,
    closing_day: int,
    overflow: ClosingDayOverflow = ClosingDayOverflow.REJECT,
) -> date:
    """
    The closing-day occurrence in one month.

    Raises:
        ValidationError: the month is too short and overflow is REJECT
    """
    last_day = calendar.monthrange(year, month)[1]
    if closing_day <= last_day:
        return date(year, month, closing_day)

    if overflow == ClosingDayOverflow.CLAMP:
        return date(year, month, last_day)

    raise ValidationError(
        f"Closing day {closing_day} does not exist in {year}-{month:02d}",
        field="closing_day",
    )


def calculate_period(
    closing_day: int,
    due_day: int,
    reference_date: date,
    overflow: ClosingDayOverflow = ClosingDayOverflow.REJECT,
) -> StatementPeriod:
    """
    Billing period containing reference_date.

    period_end is this month's closing date when reference_date is on or
    before it, otherwise next month's. period_start is the day after the
    previous closing date. due_date is period_end + due_day calendar days.
    """
    if not 1 <= closing_day <= 31:
        raise ValidationError(f"Closing day must be 1-31, got {closing_day}", field="closing_day")
    if not 1 <= due_day <= 31:
        raise ValidationError(f"Due day must be 1-31, got {due_day}", field="due_day")

    year, month = reference_date.year, reference_date.month
    period_end = closing_date(year, month, closing_day, overflow)
    if reference_date > period_end:
        year, month = shift_month(year, month, 1)
        period_end = closing_date(year, month, closing_day, overflow)

    prev_year, prev_month = shift_month(year, month, -1)
    period_start = closing_date(prev_year, prev_month, closing_day, overflow) + timedelta(days=1)

    return StatementPeriod(
        period_start=period_start,
        period_end=period_end,
        due_date=period_end + timedelta(days=due_day),
    )


def next_period(
    period: StatementPeriod,
    closing_day: int,
    due_day: int,
    overflow: ClosingDayOverflow = ClosingDayOverflow.REJECT,
) -> StatementPeriod:
    """The period that starts the day after ``period`` ends."""
    return calculate_period(closing_day, due_day, period.period_end + timedelta(days=1), overflow)
