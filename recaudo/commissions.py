"""
Commission Calculator Module

Resolves the commission a provider charges on a principal from its tiered
schedule. Tiers are half-open ranges ``[min_amount, max_amount)``; a
``max_amount`` of zero marks the last, unbounded tier.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from .errors import ConfigurationError, ValidationError
from .money import ZERO, HUNDRED, percentage_of, to_decimal


@dataclass(frozen=True)
class CommissionTier:
    """One commission bracket"""
    min_amount: Decimal
    max_amount: Decimal  # 0 = unbounded
    percentage: Decimal  # e.g. Decimal("20") for 20%

    @property
    def is_unbounded(self) -> bool:
        return self.max_amount == ZERO

    def contains(self, principal: Decimal) -> bool:
        if principal < self.min_amount:
            return False
        return self.is_unbounded or principal < self.max_amount

    def to_dict(self) -> Dict[str, str]:
        return {
            'min_amount': str(self.min_amount),
            'max_amount': str(self.max_amount),
            'percentage': str(self.percentage),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CommissionTier':
        return cls(
            min_amount=to_decimal(data['min_amount']),
            max_amount=to_decimal(data['max_amount']),
            percentage=to_decimal(data['percentage']),
        )


def resolve_commission_tier(principal: Decimal, tiers: Sequence[CommissionTier]) -> CommissionTier:
    """
    Return the first tier whose range contains ``principal``.

    Raises:
        ConfigurationError: No tier covers the principal
    """
    for tier in tiers:
        if tier.contains(principal):
            return tier
    raise ConfigurationError(f"No commission tier covers principal {principal}")


def resolve_commission(principal: Decimal, tiers: Sequence[CommissionTier]) -> Decimal:
    """Commission owed on ``principal``: ``principal * percentage / 100``"""
    tier = resolve_commission_tier(principal, tiers)
    return percentage_of(principal, tier.percentage)


def validate_tiers(tiers: List[CommissionTier]) -> None:
    """
    Validate a commission schedule at configuration time.

    A valid schedule is sorted by ``min_amount``, starts at zero, has no gaps or
    overlaps, and only its last tier may be unbounded. Every percentage is in
    (0, 100].

    Raises:
        ValidationError: Describing the first problem found
    """
    if not tiers:
        raise ValidationError("At least one commission tier is required")

    if tiers[0].min_amount != ZERO:
        raise ValidationError("The first commission tier must start at 0")

    for index, tier in enumerate(tiers):
        is_last = index == len(tiers) - 1

        if tier.min_amount < ZERO or tier.max_amount < ZERO:
            raise ValidationError(f"Tier {index + 1}: amounts cannot be negative")

        if not (ZERO < tier.percentage <= HUNDRED):
            raise ValidationError(
                f"Tier {index + 1}: percentage must be greater than 0 and at most 100"
            )

        if tier.is_unbounded:
            if not is_last:
                raise ValidationError(f"Tier {index + 1}: only the last tier may be unbounded")
        elif tier.min_amount >= tier.max_amount:
            raise ValidationError(f"Tier {index + 1}: min_amount must be below max_amount")

        if not is_last and tiers[index + 1].min_amount != tier.max_amount:
            raise ValidationError(
                f"Tier {index + 2} must start where tier {index + 1} ends ({tier.max_amount})"
            )
