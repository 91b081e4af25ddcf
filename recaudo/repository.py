"""
Credit Repository Module

Storage reads for credits, payments, clients and provider settings, and the
per-credit transaction every mutation runs in.

A transaction takes the credit's lock, re-reads the credit, its payments and
its provider settings, and on exit writes everything back inside
``storage.atomic()`` after checking that the stored version is still the one
it read. Nothing is retried: a conflict surfaces as ``ConcurrencyError``.
"""

import threading
from contextlib import contextmanager
from datetime import date
from typing import Dict, Iterator, List, Optional, Set

from .storage import StorageInterface
from .credits import Client, Credit, OPEN_STATES, Payment
from .providers import ProviderSettings
from .errors import ConcurrencyError, NotFoundError
from .config import get_config
from .logging_config import get_logger

logger = get_logger("recaudo.repository")


class CreditUnitOfWork:
    """State loaded for one credit transaction, plus what it will write"""

    def __init__(self, credit: Credit, payments: List[Payment], settings: ProviderSettings):
        self.credit = credit
        self.payments = payments
        self.settings = settings
        self.new_credits: List[Credit] = []
        self._read_version = credit.version
        self._loaded_payment_ids: Set[str] = {p.id for p in payments}

    @property
    def read_version(self) -> int:
        return self._read_version

    @property
    def new_payments(self) -> List[Payment]:
        return [p for p in self.payments if p.id not in self._loaded_payment_ids]

    def stage_credit(self, credit: Credit) -> None:
        """Queue a new credit (renewal/refinance successor) for insertion"""
        self.new_credits.append(credit)


class _CreditLock:
    """A credit's lock plus the number of transactions holding or waiting on it"""

    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class CreditRepository:
    """Document-store access for the credit engine"""

    def __init__(self, storage: StorageInterface, lock_timeout: Optional[float] = None):
        self.storage = storage
        self.lock_timeout = lock_timeout if lock_timeout is not None else get_config().lock_timeout_seconds
        self.credits_table = "credits"
        self.payments_table = "payments"
        self.clients_table = "clients"
        self.providers_table = "provider_settings"
        self._locks: Dict[str, _CreditLock] = {}
        self._locks_guard = threading.Lock()

    # Credits

    def find_credit(self, credit_id: str) -> Optional[Credit]:
        data = self.storage.load(self.credits_table, credit_id)
        return Credit.from_dict(data) if data else None

    def get_credit(self, credit_id: str) -> Credit:
        """
        Raises:
            NotFoundError: Unknown credit
        """
        credit = self.find_credit(credit_id)
        if credit is None:
            raise NotFoundError(f"Credit {credit_id} not found")
        return credit

    def insert_credit(self, credit: Credit) -> Credit:
        """Persist a brand-new credit at version 1"""
        credit.version = 1
        self.storage.save(self.credits_table, credit.id, credit.to_dict())
        return credit

    def list_credits_by_collector(self, collector_id: str) -> List[Credit]:
        records = self.storage.find(self.credits_table, {'collector_id': collector_id})
        return [Credit.from_dict(r) for r in records]

    def list_active_credits_by_collector(self, collector_id: str) -> List[Credit]:
        """Credits still being collected (active or partially paid)"""
        return [c for c in self.list_credits_by_collector(collector_id) if c.state in OPEN_STATES]

    def list_credits_by_provider(self, provider_id: str) -> List[Credit]:
        records = self.storage.find(self.credits_table, {'provider_id': provider_id})
        return [Credit.from_dict(r) for r in records]

    def list_credits_by_client(self, client_id: str) -> List[Credit]:
        records = self.storage.find(self.credits_table, {'client_id': client_id})
        credits = [Credit.from_dict(r) for r in records]
        credits.sort(key=lambda c: (c.created_on, c.created_at))
        return credits

    # Payments

    @staticmethod
    def _in_registration_order(payments: List[Payment]) -> List[Payment]:
        payments.sort(key=lambda p: (p.payment_date, p.created_at))
        return payments

    def list_payments_by_credit(self, credit_id: str) -> List[Payment]:
        """Payments for a credit in registration order"""
        records = self.storage.find(self.payments_table, {'credit_id': credit_id})
        return self._in_registration_order([Payment.from_dict(r) for r in records])

    def group_payments_by_credit(self, payments: List[Payment]) -> Dict[str, List[Payment]]:
        """Split a payment listing per credit, each in registration order"""
        grouped: Dict[str, List[Payment]] = {}
        for payment in payments:
            grouped.setdefault(payment.credit_id, []).append(payment)
        for credit_payments in grouped.values():
            self._in_registration_order(credit_payments)
        return grouped

    def list_payments_by_collector(self, collector_id: str,
                                   on: Optional[date] = None) -> List[Payment]:
        filters = {'collector_id': collector_id}
        if on is not None:
            filters['payment_date'] = on.isoformat()
        return [Payment.from_dict(r) for r in self.storage.find(self.payments_table, filters)]

    def list_payments_by_provider(self, provider_id: str,
                                  on: Optional[date] = None) -> List[Payment]:
        filters = {'provider_id': provider_id}
        if on is not None:
            filters['payment_date'] = on.isoformat()
        return [Payment.from_dict(r) for r in self.storage.find(self.payments_table, filters)]

    def mark_payment_reinvested(self, payment: Payment) -> None:
        """Set the reinvested mark on a stored payment; amounts are never rewritten"""
        payment.reinvested = True
        self.storage.save(self.payments_table, payment.id, payment.to_dict())

    # Clients and providers

    def save_client(self, client: Client) -> Client:
        self.storage.save(self.clients_table, client.id, client.to_dict())
        return client

    def find_client(self, client_id: str) -> Optional[Client]:
        data = self.storage.load(self.clients_table, client_id)
        return Client.from_dict(data) if data else None

    def get_client(self, client_id: str) -> Client:
        """
        Raises:
            NotFoundError: Unknown client
        """
        client = self.find_client(client_id)
        if client is None:
            raise NotFoundError(f"Client {client_id} not found")
        return client

    def get_provider_settings(self, provider_id: str) -> ProviderSettings:
        """
        Raises:
            NotFoundError: Provider has no settings
        """
        data = self.storage.load(self.providers_table, provider_id)
        if not data:
            raise NotFoundError(f"Provider {provider_id} not found")
        return ProviderSettings.from_dict(data)

    def save_provider_settings(self, settings: ProviderSettings) -> ProviderSettings:
        self.storage.save(self.providers_table, settings.id, settings.to_dict())
        return settings

    # Transactions

    def _checkout_lock(self, credit_id: str) -> _CreditLock:
        with self._locks_guard:
            entry = self._locks.get(credit_id)
            if entry is None:
                entry = self._locks[credit_id] = _CreditLock()
            entry.users += 1
            return entry

    def _return_lock(self, credit_id: str, entry: _CreditLock) -> None:
        # The last user drops the entry so the map only holds credits in use
        with self._locks_guard:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[credit_id]

    @contextmanager
    def transaction(self, credit_id: str) -> Iterator[CreditUnitOfWork]:
        """
        Run a read-validate-write cycle on one credit.

        Raises:
            ConcurrencyError: The credit lock could not be acquired in time, or
                the credit was written by someone else since it was read
            NotFoundError: Unknown credit or provider
        """
        entry = self._checkout_lock(credit_id)
        try:
            if not entry.lock.acquire(timeout=self.lock_timeout):
                raise ConcurrencyError(f"Credit {credit_id} is busy, try again")
            try:
                with self.storage.atomic():
                    credit = self.get_credit(credit_id)
                    uow = CreditUnitOfWork(
                        credit=credit,
                        payments=self.list_payments_by_credit(credit_id),
                        settings=self.get_provider_settings(credit.provider_id),
                    )
                    yield uow
                    self._flush(uow)
            finally:
                entry.lock.release()
        finally:
            self._return_lock(credit_id, entry)

    def _flush(self, uow: CreditUnitOfWork) -> None:
        stored = self.storage.load(self.credits_table, uow.credit.id)
        stored_version = stored.get('version', 0) if stored else None
        if stored_version != uow.read_version:
            logger.warning(
                f"Version conflict on credit {uow.credit.id}: "
                f"read {uow.read_version}, stored {stored_version}"
            )
            raise ConcurrencyError(f"Credit {uow.credit.id} was modified concurrently")

        uow.credit.version = uow.read_version + 1
        self.storage.save(self.credits_table, uow.credit.id, uow.credit.to_dict())

        for payment in uow.new_payments:
            self.storage.save(self.payments_table, payment.id, payment.to_dict())

        for credit in uow.new_credits:
            self.insert_credit(credit)
