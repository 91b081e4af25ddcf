"""
Credit Simulator Module

Quotes a hypothetical credit with the same arithmetic the engine applies to
real ones, so a collector can show a client what they would owe.
"""

from decimal import Decimal
from dataclasses import dataclass

from .commissions import resolve_commission_tier
from .errors import InvalidAmountError, ValidationError
from .money import ZERO, percentage_of, round_money, to_decimal, Amount
from .providers import ProviderSettings


@dataclass(frozen=True)
class CreditSimulation:
    principal: Decimal
    installment_count: int
    commission_percentage: Decimal
    commission_amount: Decimal
    installment_amount: Decimal
    late_days: int
    late_fee: Decimal
    total_to_pay: Decimal


def simulate_credit(settings: ProviderSettings, principal: Amount, installment_count: int,
                    late_days: int = 0) -> CreditSimulation:
    """
    Quote ``principal`` over ``installment_count`` installments, optionally
    ``late_days`` late.

    Raises:
        InvalidAmountError: Principal not positive
        ValidationError: Installment count not positive or negative late days
        ConfigurationError: No commission tier covers the principal
    """
    principal = to_decimal(principal)
    if principal <= ZERO:
        raise InvalidAmountError("Principal must be greater than zero")
    if installment_count <= 0:
        raise ValidationError("Installment count must be greater than zero")
    if late_days < 0:
        raise ValidationError("Late days cannot be negative")

    tier = resolve_commission_tier(principal, settings.commission_tiers)
    commission = percentage_of(principal, tier.percentage)
    installment = (principal + commission) / Decimal(installment_count)

    late_fee = ZERO
    if settings.late_interest.active and late_days > 0:
        late_fee = percentage_of(installment, settings.late_interest.rate) * late_days

    return CreditSimulation(
        principal=principal,
        installment_count=installment_count,
        commission_percentage=tier.percentage,
        commission_amount=round_money(commission),
        installment_amount=round_money(installment),
        late_days=late_days,
        late_fee=round_money(late_fee),
        total_to_pay=round_money(principal + commission + late_fee),
    )
