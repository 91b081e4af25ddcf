"""
Late Fee Accrual Module

Computes how late a credit is and the late fee it has accrued as of a given
date. Two counters can make a credit late: the calendar (days past the next
unpaid due date) and the collector's manual missed-payment counter. The larger
of the two wins, everywhere.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass

from .credits import Credit
from .providers import LateInterestConfig
from .money import ZERO, percentage_of

BASIS_NONE = "none"
BASIS_SCHEDULE = "schedule"
BASIS_MANUAL = "manual"


@dataclass(frozen=True)
class LateCharge:
    """Late-fee breakdown for one credit on one date"""
    schedule_days_late: int
    missed_payment_days: int
    installment_amount: Decimal
    rate: Decimal
    active: bool

    @property
    def days_late(self) -> int:
        return max(self.schedule_days_late, self.missed_payment_days)

    @property
    def basis(self) -> str:
        """Which counter determined ``days_late``"""
        if self.days_late == 0:
            return BASIS_NONE
        if self.schedule_days_late >= self.missed_payment_days:
            return BASIS_SCHEDULE
        return BASIS_MANUAL

    @property
    def late_fee(self) -> Decimal:
        if not self.active or self.days_late == 0:
            return ZERO
        return percentage_of(self.installment_amount, self.rate) * self.days_late


def schedule_days_late(credit: Credit, as_of: date) -> int:
    """Days ``as_of`` is past the next unpaid due date, floored at 0"""
    due = credit.next_due_date
    if due is None:
        return 0
    return max(0, (as_of - due).days)


def compute_late_charge(credit: Credit, late_interest: LateInterestConfig, as_of: date) -> LateCharge:
    """
    Compute the late charge for ``credit`` as of ``as_of``.

    Example: principal 1,000,000 with commission 200,000 over 10 installments
    at 2% daily for 3 days late gives 120,000 * 0.02 * 3 = 7,200.
    """
    return LateCharge(
        schedule_days_late=schedule_days_late(credit, as_of),
        missed_payment_days=credit.missed_payment_days,
        installment_amount=credit.installment_amount,
        rate=late_interest.rate,
        active=late_interest.active,
    )
