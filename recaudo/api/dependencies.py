"""
Engine wiring and request-scoped helpers shared by the routers
"""

from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from ..storage import InMemoryStorage, SQLiteStorage, StorageInterface
from ..audit import AuditTrail
from ..repository import CreditRepository
from ..lifecycle import CreditLifecycleManager
from ..providers import ProviderSettingsManager
from ..reporting import ReportingEngine
from ..routes import PaymentRouteBuilder
from ..advisory_client import AdvisoryClient
from ..config import RecaudoConfig, get_config


class RecaudoSystem:
    """Credit engine with all components initialized"""

    def __init__(self, storage: Optional[StorageInterface] = None,
                 advisory_client: Optional[AdvisoryClient] = None,
                 config: Optional[RecaudoConfig] = None):
        self.config = config or get_config()

        if storage is None:
            if self.config.storage_backend == "memory":
                storage = InMemoryStorage()
            else:
                storage = SQLiteStorage(self.config.sqlite_path)
        self.storage = storage

        self.audit_trail = AuditTrail(self.storage, enabled=self.config.enable_audit_logging)
        self.repository = CreditRepository(self.storage, lock_timeout=self.config.lock_timeout_seconds)
        self.lifecycle = CreditLifecycleManager(self.repository, self.audit_trail)
        self.provider_manager = ProviderSettingsManager(self.storage, self.audit_trail)
        self.reporting_engine = ReportingEngine(self.repository, audit_trail=self.audit_trail)
        self.route_builder = PaymentRouteBuilder()
        self.advisory_client = advisory_client or self._create_advisory_client()

    def _create_advisory_client(self) -> AdvisoryClient:
        """Create advisory client based on configuration (disabled without a URL)"""
        return AdvisoryClient(
            base_url=self.config.advisory_url,
            timeout=self.config.advisory_timeout,
            api_key=self.config.advisory_api_key or None,
            fallback_recommendation=self.config.advisory_fallback,
        )

    def business_date(self, provider_id: Optional[str] = None,
                      requested: Optional[date] = None) -> date:
        """
        The date an operation applies to: the caller's explicit date, else
        today in the provider's timezone (default timezone without a provider).
        """
        if requested is not None:
            return requested
        tz_name = self.config.default_timezone
        if provider_id:
            tz_name = self.repository.get_provider_settings(provider_id).timezone
        return datetime.now(ZoneInfo(tz_name)).date()


_system: Optional[RecaudoSystem] = None


def get_recaudo_system() -> RecaudoSystem:
    """Dependency returning the process-wide engine, built on first use"""
    global _system
    if _system is None:
        _system = RecaudoSystem()
    return _system
