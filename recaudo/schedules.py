"""
Payment Schedule Module

Validation and generation of installment due-date schedules.
"""

import calendar
from datetime import date, timedelta
from enum import Enum
from typing import List, Sequence

from .errors import ValidationError


class PaymentFrequency(Enum):
    """Collection frequency for generated schedules"""
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"  # every 15 days
    MONTHLY = "monthly"


_FIXED_STEP_DAYS = {
    PaymentFrequency.DAILY: 1,
    PaymentFrequency.WEEKLY: 7,
    PaymentFrequency.BIWEEKLY: 15,
}


def _add_months(start_date: date, months: int) -> date:
    """Add months to a date, clamping the day to the target month's length"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def generate_payment_schedule(first_due_date: date, installment_count: int,
                              frequency: PaymentFrequency) -> List[date]:
    """
    Build ``installment_count`` due dates starting at ``first_due_date``.

    Monthly schedules keep the first date's day of month, clamped to shorter
    months (Jan 31 -> Feb 28 -> Mar 31).
    """
    if installment_count <= 0:
        raise ValidationError("Installment count must be positive")

    if frequency == PaymentFrequency.MONTHLY:
        return [_add_months(first_due_date, i) for i in range(installment_count)]

    step = timedelta(days=_FIXED_STEP_DAYS[frequency])
    return [first_due_date + step * i for i in range(installment_count)]


def validate_payment_schedule(dates: Sequence[date], installment_count: int,
                              created_on: date, today: date) -> None:
    """
    Check a schedule before it is attached to a credit.

    Raises:
        ValidationError: Wrong length, not strictly increasing, or a date before
            the credit's creation date or before ``today``
    """
    if len(dates) != installment_count:
        raise ValidationError(
            f"Schedule has {len(dates)} dates but the credit has {installment_count} installments"
        )

    for previous, current in zip(dates, dates[1:]):
        if current <= previous:
            raise ValidationError("Payment dates must be strictly increasing")

    if dates and dates[0] < created_on:
        raise ValidationError(f"Payment date {dates[0]} is before the credit was granted ({created_on})")

    if dates and dates[0] < today:
        raise ValidationError(f"Payment date {dates[0]} is in the past")


def shift_unpaid_dates(dates: Sequence[date], paid_installments: int) -> List[date]:
    """
    Push every unpaid due date forward by the schedule's first gap, keeping
    the dates already covered.

    Raises:
        ValidationError: Fewer than two dates, or nothing left to reschedule
    """
    if len(dates) < 2:
        raise ValidationError("The payment schedule is not valid for rescheduling")
    if paid_installments >= len(dates):
        raise ValidationError("Every installment is already paid")

    gap = dates[1] - dates[0]
    return list(dates[:paid_installments]) + [d + gap for d in dates[paid_installments:]]


def describe_frequency(dates: Sequence[date]) -> str:
    """Spanish label for a schedule's cadence, from its average gap in days"""
    if len(dates) < 2:
        return "unicos"

    ordered = sorted(dates)
    gaps = [(b - a).days for a, b in zip(ordered, ordered[1:])]
    average = sum(gaps) / len(gaps)

    if average <= 1.5:
        return "diarios"
    if average <= 7.5:
        return "semanales"
    if average <= 16:
        return "quincenales"
    if average <= 31:
        return "mensuales"
    return "personalizados"
