"""
Shared fixtures: an in-memory engine with one configured provider
"""

from datetime import date
from decimal import Decimal

import pytest

from recaudo.storage import InMemoryStorage
from recaudo.audit import AuditTrail
from recaudo.commissions import CommissionTier
from recaudo.providers import LateInterestConfig, ProviderSettingsManager
from recaudo.repository import CreditRepository
from recaudo.lifecycle import CreditLifecycleManager


GRANT_DATE = date(2024, 3, 1)

STANDARD_TIERS = [
    CommissionTier(Decimal("0"), Decimal("2000000"), Decimal("20")),
    CommissionTier(Decimal("2000000"), Decimal("0"), Decimal("15")),
]


class Engine:
    """Storage, audit trail, repository and managers wired together"""

    def __init__(self, late_rate: str = "2", late_active: bool = True,
                 requires_contract_acceptance: bool = False):
        self.storage = InMemoryStorage()
        self.audit_trail = AuditTrail(self.storage)
        self.repository = CreditRepository(self.storage, lock_timeout=1.0)
        self.lifecycle = CreditLifecycleManager(self.repository, self.audit_trail)
        self.providers = ProviderSettingsManager(self.storage, self.audit_trail)
        self.settings = self.providers.save_settings(
            provider_id="PROV001",
            commission_tiers=STANDARD_TIERS,
            late_interest=LateInterestConfig(rate=Decimal(late_rate), active=late_active),
            requires_contract_acceptance=requires_contract_acceptance,
            base_capital=Decimal("10000000"),
            name="Prestamos La Esquina",
        )

    def grant(self, principal: str = "1000000", installments: int = 10,
              client_id: str = "CLI001", collector_id: str = "COL001",
              first_due: date = date(2024, 3, 2), schedule: bool = True):
        """Create a credit and give it a daily schedule starting at ``first_due``"""
        credit = self.lifecycle.create_credit(
            client_id=client_id,
            collector_id=collector_id,
            provider_id="PROV001",
            principal=Decimal(principal),
            installment_count=installments,
            as_of=GRANT_DATE,
        )
        if schedule:
            dates = [date.fromordinal(first_due.toordinal() + i) for i in range(installments)]
            credit = self.lifecycle.save_payment_schedule(credit.id, dates, today=GRANT_DATE)
        return credit


@pytest.fixture
def engine():
    return Engine()


@pytest.fixture
def engine_without_late_interest():
    return Engine(late_active=False)
