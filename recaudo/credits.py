"""
Credit Module

Data model for microcredits, their payments and the clients that hold them.
A credit's balance is never stored: it is always derived by folding its
append-only payment sequence (see ``recaudo.ledger``).
"""

from decimal import Decimal
from datetime import datetime, date
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum

from .money import ZERO, round_money
from .storage import StorageRecord


class CreditState(Enum):
    """Credit lifecycle states"""
    ACTIVE = "active"                  # Granted, nothing paid yet
    PARTIALLY_PAID = "partially_paid"  # At least one installment covered
    PAID = "paid"                      # Balance reached zero
    RENEWED = "renewed"                # Closed by a renewal
    REFINANCED = "refinanced"          # Closed by a refinancing
    DEFAULTED = "defaulted"            # Written off


TERMINAL_STATES = frozenset({
    CreditState.PAID,
    CreditState.RENEWED,
    CreditState.REFINANCED,
    CreditState.DEFAULTED,
})

OPEN_STATES = frozenset({CreditState.ACTIVE, CreditState.PARTIALLY_PAID})


class PaymentType(Enum):
    """Kinds of payment a collector can register"""
    INSTALLMENT = "installment"  # Regular cuota
    TOTAL = "total"              # Full settlement
    AGREEMENT = "agreement"      # Payment under a negotiated agreement
    COMMISSION = "commission"    # Commission only, does not reduce balance
    INTEREST = "interest"        # Late interest only, does not reduce balance


# Payment types that reduce the outstanding balance
BALANCE_REDUCING_TYPES = frozenset({
    PaymentType.INSTALLMENT,
    PaymentType.TOTAL,
    PaymentType.AGREEMENT,
})

# Payment types that reset the manual missed-payment counter
COUNTER_RESET_TYPES = frozenset({
    PaymentType.INSTALLMENT,
    PaymentType.TOTAL,
    PaymentType.INTEREST,
})


def _parse_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(value)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _parse_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass
class Credit(StorageRecord):
    """A microcredit granted by a provider to a client through a collector"""
    client_id: str
    collector_id: str
    provider_id: str
    principal: Decimal
    commission_amount: Decimal
    commission_percentage: Decimal
    installment_count: int
    created_on: date
    paid_installments: int = 0
    payment_schedule: List[date] = field(default_factory=list)
    state: CreditState = CreditState.ACTIVE
    missed_payment_days: int = 0
    agreement_amount: Optional[Decimal] = None
    end_date: Optional[date] = None
    predecessor_credit_id: Optional[str] = None
    successor_credit_id: Optional[str] = None
    awaiting_acceptance: bool = False
    contract_accepted_at: Optional[datetime] = None
    version: int = 0

    @property
    def total_obligation(self) -> Decimal:
        """Principal plus commission: what the client owes before late fees"""
        return self.principal + self.commission_amount

    @property
    def installment_amount(self) -> Decimal:
        """Per-installment base, unrounded"""
        return self.total_obligation / Decimal(self.installment_count)

    @property
    def installment_due(self) -> Decimal:
        """Installment rounded to cents: what the collector asks for"""
        return round_money(self.installment_amount)

    @property
    def rounding_residual(self) -> Decimal:
        """
        Cents lost when every installment is rounded down. Paying all
        ``installment_due`` amounts leaves at most this much, which the ledger
        treats as settled.
        """
        return max(ZERO, self.total_obligation - self.installment_due * self.installment_count)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def has_complete_schedule(self) -> bool:
        return len(self.payment_schedule) == self.installment_count

    @property
    def next_due_date(self) -> Optional[date]:
        """First unpaid due date, or None when every installment is covered"""
        if self.paid_installments < len(self.payment_schedule):
            return self.payment_schedule[self.paid_installments]
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Credit':
        data = dict(data)
        data['created_at'] = _parse_datetime(data['created_at'])
        data['updated_at'] = _parse_datetime(data['updated_at'])
        data['created_on'] = _parse_date(data['created_on'])
        data['end_date'] = _parse_date(data.get('end_date'))
        data['contract_accepted_at'] = _parse_datetime(data.get('contract_accepted_at'))
        data['payment_schedule'] = [_parse_date(d) for d in data.get('payment_schedule', [])]
        data['state'] = CreditState(data['state'])
        for key in ('principal', 'commission_amount', 'commission_percentage', 'agreement_amount'):
            data[key] = _parse_decimal(data.get(key))
        return cls(**data)


@dataclass
class Payment(StorageRecord):
    """
    A registered payment. Append-only: never deleted, and its amount and type
    never change. ``reinvested`` is set once, when the provider moves the
    payment's commission share into base capital.
    """
    credit_id: str
    payment_date: date
    amount: Decimal
    type: PaymentType
    collector_id: str
    provider_id: str
    client_id: str
    reinvested: bool = False

    @property
    def reduces_balance(self) -> bool:
        return self.type in BALANCE_REDUCING_TYPES

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Payment':
        data = dict(data)
        data['created_at'] = _parse_datetime(data['created_at'])
        data['updated_at'] = _parse_datetime(data['updated_at'])
        data['payment_date'] = _parse_date(data['payment_date'])
        data['amount'] = _parse_decimal(data['amount'])
        data['type'] = PaymentType(data['type'])
        return cls(**data)


@dataclass
class Client(StorageRecord):
    """Borrower as seen from the collection route"""
    name: str
    collector_id: str
    provider_id: str
    address: str = ""
    phone: str = ""
    document_number: str = ""
