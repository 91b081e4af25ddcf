"""
Credit Ledger Module

Derives balances from a credit's payment sequence and applies new payments to
the credit's counters and state. The ledger never stores a balance; it folds
the payments every time.
"""

from decimal import Decimal
from datetime import date
from typing import Iterable, List

from .credits import Credit, CreditState, Payment, PaymentType, COUNTER_RESET_TYPES
from .late_fees import compute_late_charge
from .providers import LateInterestConfig
from .money import ZERO


class CreditLedger:
    """Balance arithmetic for a single credit"""

    @staticmethod
    def paid_amount(payments: Iterable[Payment]) -> Decimal:
        """Sum of balance-reducing payments"""
        return sum((p.amount for p in payments if p.reduces_balance), ZERO)

    def outstanding_balance(self, credit: Credit, payments: Iterable[Payment]) -> Decimal:
        """
        ``principal + commission - paid``, never below zero. A remainder no
        larger than the credit's rounding residual counts as settled.
        """
        payments = list(payments)
        if any(p.type == PaymentType.TOTAL for p in payments):
            return ZERO
        balance = credit.total_obligation - self.paid_amount(payments)
        if balance <= credit.rounding_residual:
            return ZERO
        return balance

    def remaining_balance(self, credit: Credit, payments: Iterable[Payment]) -> Decimal:
        """Balance carried into a renewal"""
        return self.outstanding_balance(credit, payments)

    def payoff_amount(self, credit: Credit, payments: Iterable[Payment]) -> Decimal:
        """
        Balance component of a settlement. A payment agreement caps it at the
        agreed amount; it never raises it.
        """
        outstanding = self.outstanding_balance(credit, payments)
        if credit.agreement_amount is not None:
            return min(outstanding, credit.agreement_amount)
        return outstanding

    def total_debt(self, credit: Credit, payments: Iterable[Payment],
                   late_interest: LateInterestConfig, as_of: date) -> Decimal:
        """Payoff amount plus the late fee accrued as of ``as_of``"""
        late_fee = compute_late_charge(credit, late_interest, as_of).late_fee
        return self.payoff_amount(credit, payments) + late_fee

    def apply_payment(self, credit: Credit, payments: List[Payment], payment: Payment) -> Credit:
        """
        Append ``payment`` to ``payments`` and update the credit's counters and
        state in place. Validation (amount, terminal state, payoff coverage) is
        the caller's job.
        """
        payments.append(payment)

        if payment.type == PaymentType.INSTALLMENT:
            if payment.amount >= credit.installment_due:
                credit.paid_installments = min(credit.installment_count, credit.paid_installments + 1)
        elif payment.type == PaymentType.TOTAL:
            credit.paid_installments = credit.installment_count

        if payment.type in COUNTER_RESET_TYPES:
            credit.missed_payment_days = 0

        if self.outstanding_balance(credit, payments) == ZERO:
            credit.state = CreditState.PAID
            credit.end_date = payment.payment_date
        elif credit.paid_installments > 0:
            credit.state = CreditState.PARTIALLY_PAID

        return credit
