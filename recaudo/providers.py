"""
Provider Settings Module

Per-provider configuration that drives the credit engine: commission tiers,
late interest, contract acceptance, base capital and the business timezone.
Tiers are validated when settings are saved, never when they are used.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .commissions import CommissionTier, validate_tiers
from .config import get_config
from .errors import NotFoundError, ValidationError
from .logging_config import get_logger, log_action
from .money import ZERO, to_decimal

logger = get_logger("recaudo.providers")


@dataclass(frozen=True)
class LateInterestConfig:
    """Daily late interest: ``rate`` percent of one installment per day late"""
    rate: Decimal = ZERO
    active: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {'rate': str(self.rate), 'active': self.active}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LateInterestConfig':
        return cls(rate=to_decimal(data.get('rate', '0')), active=bool(data.get('active', False)))


@dataclass
class ProviderSettings(StorageRecord):
    """Configuration of a lender. ``id`` is the provider id."""
    commission_tiers: List[CommissionTier] = field(default_factory=list)
    late_interest: LateInterestConfig = field(default_factory=LateInterestConfig)
    requires_contract_acceptance: bool = False
    base_capital: Decimal = ZERO
    timezone: str = field(default_factory=lambda: get_config().default_timezone)
    is_active: bool = True
    name: str = ""

    @property
    def provider_id(self) -> str:
        return self.id

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['commission_tiers'] = [tier.to_dict() for tier in self.commission_tiers]
        result['late_interest'] = self.late_interest.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProviderSettings':
        data = dict(data)
        data['created_at'] = datetime.fromisoformat(data['created_at'])
        data['updated_at'] = datetime.fromisoformat(data['updated_at'])
        data['commission_tiers'] = [CommissionTier.from_dict(t) for t in data.get('commission_tiers', [])]
        data['late_interest'] = LateInterestConfig.from_dict(data.get('late_interest', {}))
        data['base_capital'] = to_decimal(data.get('base_capital', '0'))
        return cls(**data)


class ProviderSettingsManager:
    """Stores provider settings, validating tiers on every write"""

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.table_name = "provider_settings"

    def save_settings(
        self,
        provider_id: str,
        commission_tiers: List[CommissionTier],
        late_interest: Optional[LateInterestConfig] = None,
        requires_contract_acceptance: bool = False,
        base_capital: Decimal = ZERO,
        timezone_name: Optional[str] = None,
        is_active: bool = True,
        name: str = "",
        user_id: Optional[str] = None
    ) -> ProviderSettings:
        """
        Create or replace a provider's settings.

        Raises:
            ValidationError: Invalid commission tiers, late-interest rate or capital
        """
        validate_tiers(commission_tiers)

        late_interest = late_interest or LateInterestConfig()
        if late_interest.rate < ZERO:
            raise ValidationError("Late interest rate cannot be negative")
        if base_capital < ZERO:
            raise ValidationError("Base capital cannot be negative")

        now = datetime.now(timezone.utc)
        existing = self.storage.load(self.table_name, provider_id)

        settings = ProviderSettings(
            id=provider_id,
            created_at=datetime.fromisoformat(existing['created_at']) if existing else now,
            updated_at=now,
            commission_tiers=list(commission_tiers),
            late_interest=late_interest,
            requires_contract_acceptance=requires_contract_acceptance,
            base_capital=base_capital,
            timezone=timezone_name or get_config().default_timezone,
            is_active=is_active,
            name=name,
        )

        with self.storage.atomic():
            self.storage.save(self.table_name, provider_id, settings.to_dict())
            self.audit_trail.log_event(
                event_type=AuditEventType.PROVIDER_SETTINGS_UPDATED,
                entity_type="provider",
                entity_id=provider_id,
                metadata={
                    "tiers": len(commission_tiers),
                    "late_interest_rate": late_interest.rate,
                    "late_interest_active": late_interest.active,
                    "requires_contract_acceptance": requires_contract_acceptance,
                    "is_active": is_active,
                },
                user_id=user_id
            )

        log_action(logger, "info", f"Provider settings saved for {provider_id}",
                   user_id=user_id, action="save_provider_settings", resource=provider_id)
        return settings

    def get_settings(self, provider_id: str) -> ProviderSettings:
        """
        Raises:
            NotFoundError: Provider has no settings
        """
        data = self.storage.load(self.table_name, provider_id)
        if not data:
            raise NotFoundError(f"Provider {provider_id} not found")
        return ProviderSettings.from_dict(data)

    def list_settings(self) -> List[ProviderSettings]:
        return [ProviderSettings.from_dict(d) for d in self.storage.load_all(self.table_name)]
