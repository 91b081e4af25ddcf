"""
Reporting Module

Provider- and client-level figures derived from credits and payments:
the day's collection per collector, the provider's capital position, and a
client's credit history (the input of reputation analysis). Also moves
collected commission back into a provider's base capital.
"""

from decimal import Decimal
from datetime import date, datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .audit import AuditEventType, AuditTrail
from .credits import CreditState, OPEN_STATES
from .errors import IneligibleError
from .late_fees import compute_late_charge
from .ledger import CreditLedger
from .repository import CreditRepository
from .logging_config import get_logger, log_action
from .money import ZERO, round_money

logger = get_logger("recaudo.reporting")


@dataclass(frozen=True)
class CollectorCollection:
    """What one collector brought in on a day"""
    collector_id: str
    collected_amount: Decimal
    payment_count: int


@dataclass(frozen=True)
class DailyCollectionSummary:
    provider_id: str
    day: date
    collectors: List[CollectorCollection] = field(default_factory=list)
    total_collected: Decimal = ZERO


@dataclass(frozen=True)
class ProviderFinancialSummary:
    """Capital position of a provider as of a date"""
    provider_id: str
    base_capital: Decimal
    active_capital: Decimal          # Principal still out on open credits
    collected_commission: Decimal    # Commission earned in proportion to repayment
    unique_client_count: int
    active_client_count: int
    clients_in_arrears: int

    @property
    def available_capital(self) -> Decimal:
        return max(ZERO, self.base_capital - self.active_capital)


@dataclass(frozen=True)
class CommissionReinvestment:
    """Result of moving collected commission into base capital"""
    provider_id: str
    reinvested_amount: Decimal
    payment_count: int
    base_capital: Decimal


@dataclass(frozen=True)
class ClientCreditRecord:
    """One credit in a client's history"""
    credit_id: str
    provider_id: str
    principal: Decimal
    state: CreditState
    installment_count: int
    paid_installments: int
    missed_payment_days: int
    days_late: int
    created_on: date
    end_date: Optional[date]


class ReportingEngine:
    """Reports over the credit repository, plus commission reinvestment"""

    def __init__(self, repository: CreditRepository, ledger: Optional[CreditLedger] = None,
                 audit_trail: Optional[AuditTrail] = None):
        self.repository = repository
        self.ledger = ledger or CreditLedger()
        self.audit_trail = audit_trail or AuditTrail(repository.storage)

    def daily_collection_summary(self, provider_id: str, day: date) -> DailyCollectionSummary:
        """Payments registered on ``day`` for the provider, per collector"""
        totals: Dict[str, Decimal] = {}
        counts: Dict[str, int] = {}

        for payment in self.repository.list_payments_by_provider(provider_id, on=day):
            totals[payment.collector_id] = totals.get(payment.collector_id, ZERO) + payment.amount
            counts[payment.collector_id] = counts.get(payment.collector_id, 0) + 1

        collectors = [
            CollectorCollection(collector_id=cid, collected_amount=totals[cid], payment_count=counts[cid])
            for cid in sorted(totals)
        ]
        return DailyCollectionSummary(
            provider_id=provider_id,
            day=day,
            collectors=collectors,
            total_collected=sum(totals.values(), ZERO),
        )

    def provider_financial_summary(self, provider_id: str, as_of: date) -> ProviderFinancialSummary:
        """
        Active capital counts only the principal share of repayments on open
        credits. Collected commission is each credit's commission times the
        share of principal + commission already repaid (capped at 1).
        """
        settings = self.repository.get_provider_settings(provider_id)
        payments_by_credit = self.repository.group_payments_by_credit(
            self.repository.list_payments_by_provider(provider_id)
        )

        active_capital = ZERO
        collected_commission = ZERO
        clients = set()
        active_clients = set()
        late_clients = set()

        for credit in self.repository.list_credits_by_provider(provider_id):
            clients.add(credit.client_id)
            payments = payments_by_credit.get(credit.id, [])
            paid = self.ledger.paid_amount(payments)
            obligation = credit.total_obligation

            if obligation > ZERO:
                paid_share = min(Decimal(1), paid / obligation)
                collected_commission += credit.commission_amount * paid_share

            if credit.state in OPEN_STATES:
                active_clients.add(credit.client_id)
                principal_share = credit.principal / obligation if obligation > ZERO else ZERO
                active_capital += credit.principal - paid * principal_share
                if compute_late_charge(credit, settings.late_interest, as_of).days_late > 0:
                    late_clients.add(credit.client_id)

        return ProviderFinancialSummary(
            provider_id=provider_id,
            base_capital=settings.base_capital,
            active_capital=round_money(max(ZERO, active_capital)),
            collected_commission=round_money(collected_commission),
            unique_client_count=len(clients),
            active_client_count=len(active_clients),
            clients_in_arrears=len(late_clients),
        )

    def client_credit_history(self, client_id: str, as_of: date) -> List[ClientCreditRecord]:
        """Every credit the client has held, oldest first"""
        records = []
        for credit in self.repository.list_credits_by_client(client_id):
            settings = self.repository.get_provider_settings(credit.provider_id)
            days_late = 0
            if credit.state in OPEN_STATES:
                days_late = compute_late_charge(credit, settings.late_interest, as_of).days_late
            records.append(ClientCreditRecord(
                credit_id=credit.id,
                provider_id=credit.provider_id,
                principal=credit.principal,
                state=credit.state,
                installment_count=credit.installment_count,
                paid_installments=credit.paid_installments,
                missed_payment_days=credit.missed_payment_days,
                days_late=days_late,
                created_on=credit.created_on,
                end_date=credit.end_date,
            ))
        return records

    def reinvest_commission(self, provider_id: str,
                            user_id: Optional[str] = None) -> CommissionReinvestment:
        """
        Add the commission share of every not-yet-reinvested payment to the
        provider's base capital and mark those payments reinvested, so each
        payment contributes once. A payment's share is its amount times
        ``commission / (principal + commission)`` of its credit; payments that
        do not reduce the balance contribute nothing.

        Raises:
            NotFoundError: Provider has no settings
            IneligibleError: No commission left to reinvest
        """
        with self.repository.storage.atomic():
            settings = self.repository.get_provider_settings(provider_id)
            credits = {c.id: c for c in self.repository.list_credits_by_provider(provider_id)}
            pending = [p for p in self.repository.list_payments_by_provider(provider_id) if not p.reinvested]

            commission = ZERO
            for payment in pending:
                credit = credits.get(payment.credit_id)
                if credit is not None and payment.reduces_balance and credit.total_obligation > ZERO:
                    commission += payment.amount * credit.commission_amount / credit.total_obligation
            commission = round_money(commission)

            if commission <= ZERO:
                raise IneligibleError(f"Provider {provider_id} has no commission to reinvest")

            for payment in pending:
                self.repository.mark_payment_reinvested(payment)

            previous_capital = settings.base_capital
            settings.base_capital = previous_capital + commission
            settings.updated_at = datetime.now(timezone.utc)
            self.repository.save_provider_settings(settings)

            self.audit_trail.log_event(
                event_type=AuditEventType.COMMISSION_REINVESTED,
                entity_type="provider",
                entity_id=provider_id,
                metadata={
                    "amount": commission,
                    "payments": len(pending),
                    "previous_base_capital": previous_capital,
                    "base_capital": settings.base_capital,
                },
                user_id=user_id
            )

        log_action(logger, "info", f"Reinvested {commission} of commission for provider {provider_id}",
                   user_id=user_id, action="reinvest_commission", resource=provider_id)
        return CommissionReinvestment(
            provider_id=provider_id,
            reinvested_amount=commission,
            payment_count=len(pending),
            base_capital=settings.base_capital,
        )
