"""
Tests for provider and client reports
"""

import pytest
from datetime import date
from decimal import Decimal

from recaudo.credits import CreditState, PaymentType
from recaudo.audit import AuditEventType
from recaudo.errors import IneligibleError, NotFoundError
from recaudo.reporting import ReportingEngine


@pytest.fixture
def reporting_engine(engine):
    return ReportingEngine(engine.repository, audit_trail=engine.audit_trail)


class TestDailyCollectionSummary:

    def test_totals_per_collector(self, engine, reporting_engine):
        first = engine.grant(collector_id="COL001")
        second = engine.grant(client_id="CLI002", collector_id="COL002")
        engine.lifecycle.register_payment(first.id, Decimal("120000"), PaymentType.INSTALLMENT, date(2024, 3, 2))
        engine.lifecycle.register_payment(first.id, Decimal("5000"), PaymentType.INTEREST, date(2024, 3, 2))
        engine.lifecycle.register_payment(second.id, Decimal("60000"), PaymentType.INSTALLMENT, date(2024, 3, 2))
        engine.lifecycle.register_payment(second.id, Decimal("60000"), PaymentType.INSTALLMENT, date(2024, 3, 3))

        summary = reporting_engine.daily_collection_summary("PROV001", date(2024, 3, 2))

        assert [c.collector_id for c in summary.collectors] == ["COL001", "COL002"]
        assert summary.collectors[0].collected_amount == Decimal("125000")
        assert summary.collectors[0].payment_count == 2
        assert summary.collectors[1].collected_amount == Decimal("60000")
        assert summary.total_collected == Decimal("185000")

    def test_empty_day(self, reporting_engine):
        summary = reporting_engine.daily_collection_summary("PROV001", date(2024, 3, 2))
        assert summary.collectors == []
        assert summary.total_collected == Decimal("0")


class TestProviderFinancialSummary:

    def test_capital_position(self, engine, reporting_engine):
        first = engine.grant(client_id="CLI001")
        engine.grant(client_id="CLI002")
        # Half of the first credit repaid
        engine.lifecycle.register_payment(first.id, Decimal("600000"), PaymentType.INSTALLMENT, date(2024, 3, 2))

        summary = reporting_engine.provider_financial_summary("PROV001", date(2024, 3, 2))

        # 1,000,000 - 600,000 * (1,000,000 / 1,200,000) + 1,000,000
        assert summary.active_capital == Decimal("1500000.00")
        assert summary.collected_commission == Decimal("100000.00")
        assert summary.available_capital == Decimal("8500000.00")
        assert summary.unique_client_count == 2
        assert summary.active_client_count == 2
        # Second credit is due March 2 and nothing was paid yet; not late on that day
        assert summary.clients_in_arrears == 0

    def test_arrears_and_closed_credits(self, engine, reporting_engine):
        late = engine.grant(client_id="CLI001")
        closed = engine.grant(client_id="CLI002")
        engine.lifecycle.register_payment(closed.id, Decimal("1200000"), PaymentType.TOTAL, date(2024, 3, 2))

        summary = reporting_engine.provider_financial_summary("PROV001", date(2024, 3, 10))

        assert summary.clients_in_arrears == 1
        assert summary.active_client_count == 1
        assert summary.unique_client_count == 2
        assert summary.active_capital == Decimal("1000000.00")
        assert summary.collected_commission == Decimal("200000.00")
        assert engine.repository.get_credit(late.id).state == CreditState.ACTIVE

    def test_unknown_provider(self, reporting_engine):
        with pytest.raises(NotFoundError):
            reporting_engine.provider_financial_summary("NOPE", date(2024, 3, 2))


class TestClientCreditHistory:

    def test_history_includes_closed_credits(self, engine, reporting_engine):
        old = engine.grant(client_id="CLI001", principal="500000")
        for i in range(5):
            engine.lifecycle.register_payment(old.id, Decimal("60000"), PaymentType.INSTALLMENT, date(2024, 3, 2 + i))
        engine.lifecycle.renew_credit(old.id, Decimal("0"), 10, date(2024, 3, 7))

        history = reporting_engine.client_credit_history("CLI001", date(2024, 3, 7))

        assert len(history) == 2
        assert history[0].credit_id == old.id
        assert history[0].state == CreditState.RENEWED
        assert history[0].paid_installments == 5
        assert history[1].state == CreditState.ACTIVE
        assert history[1].principal == Decimal("300000.00")

    def test_days_late_reported_for_open_credits(self, engine, reporting_engine):
        engine.grant(client_id="CLI001")
        history = reporting_engine.client_credit_history("CLI001", date(2024, 3, 5))
        assert history[0].days_late == 3


class TestCommissionReinvestment:

    def test_reinvests_commission_share_once(self, engine, reporting_engine):
        credit = engine.grant()
        engine.lifecycle.register_payment(credit.id, Decimal("600000"), PaymentType.INSTALLMENT, date(2024, 3, 2))
        engine.lifecycle.register_payment(credit.id, Decimal("5000"), PaymentType.INTEREST, date(2024, 3, 2))

        result = reporting_engine.reinvest_commission("PROV001", user_id="PROV001")

        # 600,000 * 200,000 / 1,200,000; interest carries no commission
        assert result.reinvested_amount == Decimal("100000.00")
        assert result.payment_count == 2
        assert result.base_capital == Decimal("10100000.00")
        assert engine.providers.get_settings("PROV001").base_capital == Decimal("10100000.00")
        assert all(p.reinvested for p in engine.repository.list_payments_by_credit(credit.id))

        with pytest.raises(IneligibleError):
            reporting_engine.reinvest_commission("PROV001")
        assert engine.providers.get_settings("PROV001").base_capital == Decimal("10100000.00")

    def test_only_new_payments_count(self, engine, reporting_engine):
        credit = engine.grant()
        engine.lifecycle.register_payment(credit.id, Decimal("120000"), PaymentType.INSTALLMENT, date(2024, 3, 2))
        reporting_engine.reinvest_commission("PROV001")
        engine.lifecycle.register_payment(credit.id, Decimal("120000"), PaymentType.INSTALLMENT, date(2024, 3, 3))

        result = reporting_engine.reinvest_commission("PROV001")

        assert result.reinvested_amount == Decimal("20000.00")
        assert result.payment_count == 1
        assert result.base_capital == Decimal("10040000.00")

    def test_nothing_to_reinvest(self, engine, reporting_engine):
        credit = engine.grant()
        engine.lifecycle.register_payment(credit.id, Decimal("5000"), PaymentType.INTEREST, date(2024, 3, 2))

        with pytest.raises(IneligibleError, match="no commission"):
            reporting_engine.reinvest_commission("PROV001")

        assert engine.providers.get_settings("PROV001").base_capital == Decimal("10000000")
        assert not engine.repository.list_payments_by_credit(credit.id)[0].reinvested

    def test_reinvestment_is_audited(self, engine, reporting_engine):
        credit = engine.grant()
        engine.lifecycle.register_payment(credit.id, Decimal("120000"), PaymentType.INSTALLMENT, date(2024, 3, 2))
        reporting_engine.reinvest_commission("PROV001", user_id="PROV001")

        events = engine.audit_trail.get_events_by_type(AuditEventType.COMMISSION_REINVESTED)
        assert len(events) == 1
        assert events[0].metadata["amount"] == "20000.00"
        assert events[0].user_id == "PROV001"
        assert engine.audit_trail.verify_integrity()["valid"] is True

    def test_unknown_provider(self, reporting_engine):
        with pytest.raises(NotFoundError):
            reporting_engine.reinvest_commission("NOPE")
