"""
Tests for the credit repository and its per-credit transactions
"""

import threading

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from recaudo.credits import Client, PaymentType
from recaudo.errors import ConcurrencyError, NotFoundError
from recaudo.repository import CreditRepository

from conftest import Engine


class TestRepositoryReads:

    def setup_method(self):
        self.engine = Engine()
        self.repository = self.engine.repository

    def test_unknown_credit(self):
        assert self.repository.find_credit("missing") is None
        with pytest.raises(NotFoundError):
            self.repository.get_credit("missing")

    def test_client_round_trip(self):
        now = datetime.now(timezone.utc)
        client = Client(id="CLI001", created_at=now, updated_at=now, name="Ana Ruiz",
                        collector_id="COL001", provider_id="PROV001", address="Cra 7 # 12-30")
        self.repository.save_client(client)
        loaded = self.repository.get_client("CLI001")
        assert loaded.name == "Ana Ruiz"
        assert loaded.address == "Cra 7 # 12-30"
        with pytest.raises(NotFoundError):
            self.repository.get_client("CLI999")

    def test_lists_by_collector_and_client(self):
        first = self.engine.grant(client_id="CLI001", collector_id="COL001")
        self.engine.grant(client_id="CLI002", collector_id="COL002")
        self.engine.lifecycle.mark_defaulted(first.id, date(2024, 4, 1))

        assert len(self.repository.list_credits_by_collector("COL001")) == 1
        assert self.repository.list_active_credits_by_collector("COL001") == []
        assert len(self.repository.list_active_credits_by_collector("COL002")) == 1
        assert [c.id for c in self.repository.list_credits_by_client("CLI001")] == [first.id]
        assert len(self.repository.list_credits_by_provider("PROV001")) == 2

    def test_payments_by_day(self):
        credit = self.engine.grant()
        self.engine.lifecycle.register_payment(credit.id, Decimal("120000"), PaymentType.INSTALLMENT, date(2024, 3, 2))
        self.engine.lifecycle.register_payment(credit.id, Decimal("120000"), PaymentType.INSTALLMENT, date(2024, 3, 3))

        assert len(self.repository.list_payments_by_collector("COL001")) == 2
        assert len(self.repository.list_payments_by_collector("COL001", on=date(2024, 3, 3))) == 1
        assert len(self.repository.list_payments_by_provider("PROV001", on=date(2024, 3, 4))) == 0
        dates = [p.payment_date for p in self.repository.list_payments_by_credit(credit.id)]
        assert dates == [date(2024, 3, 2), date(2024, 3, 3)]

    def test_group_payments_by_credit(self):
        first = self.engine.grant(client_id="CLI001")
        second = self.engine.grant(client_id="CLI002")
        self.engine.lifecycle.register_payment(second.id, Decimal("120000"), PaymentType.INSTALLMENT, date(2024, 3, 3))
        self.engine.lifecycle.register_payment(first.id, Decimal("120000"), PaymentType.INSTALLMENT, date(2024, 3, 2))
        self.engine.lifecycle.register_payment(second.id, Decimal("120000"), PaymentType.INSTALLMENT, date(2024, 3, 2))

        grouped = self.repository.group_payments_by_credit(self.repository.list_payments_by_collector("COL001"))

        assert set(grouped) == {first.id, second.id}
        assert len(grouped[first.id]) == 1
        assert [p.payment_date for p in grouped[second.id]] == [date(2024, 3, 2), date(2024, 3, 3)]


class TestTransactions:

    def setup_method(self):
        self.engine = Engine()
        self.credit = self.engine.grant()

    def test_version_increments_on_write(self):
        before = self.engine.repository.get_credit(self.credit.id).version
        with self.engine.repository.transaction(self.credit.id) as uow:
            uow.credit.missed_payment_days = 1
        assert self.engine.repository.get_credit(self.credit.id).version == before + 1

    def test_conflicting_write_is_rejected(self):
        storage = self.engine.storage
        before = self.engine.repository.get_credit(self.credit.id)

        with pytest.raises(ConcurrencyError):
            with self.engine.repository.transaction(self.credit.id) as uow:
                # Someone else writes the credit after it was read
                data = storage.load("credits", self.credit.id)
                data["version"] += 1
                storage.save("credits", self.credit.id, data)
                uow.credit.missed_payment_days = 9

        after = self.engine.repository.get_credit(self.credit.id)
        assert after.version == before.version
        assert after.missed_payment_days == 0

    def test_error_inside_transaction_writes_nothing(self):
        with pytest.raises(RuntimeError):
            with self.engine.repository.transaction(self.credit.id) as uow:
                uow.credit.missed_payment_days = 4
                raise RuntimeError("boom")
        assert self.engine.repository.get_credit(self.credit.id).missed_payment_days == 0

    def test_busy_credit_times_out(self):
        repository = CreditRepository(self.engine.storage, lock_timeout=0.05)
        with repository.transaction(self.credit.id):
            with pytest.raises(ConcurrencyError, match="busy"):
                with repository.transaction(self.credit.id):
                    pass
        assert repository._locks == {}

    def test_concurrent_payments_are_serialized(self):
        errors = []

        def pay():
            try:
                self.engine.lifecycle.register_payment(
                    self.credit.id, Decimal("1000"), PaymentType.INSTALLMENT, date(2024, 3, 2)
                )
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=pay) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(self.engine.repository.list_payments_by_credit(self.credit.id)) == 8
        # Schedule save + 8 payments on top of the inserted version
        assert self.engine.repository.get_credit(self.credit.id).version == 10
        # No lock entries outlive the transactions that used them
        assert self.engine.repository._locks == {}
