"""
Credit Lifecycle Module

Every state change a credit goes through: origination, schedule assignment,
contract acceptance, payments, missed-payment marks, payment agreements,
renewal, refinancing and write-off.

    ACTIVE -> PARTIALLY_PAID -> PAID
       |            |
       +------------+-> RENEWED | REFINANCED | DEFAULTED

PAID, RENEWED, REFINANCED and DEFAULTED are terminal: any further mutation
fails with ``IneligibleError``. Each mutation runs in a per-credit repository
transaction, writes one audit event per change and one structured log line.
"""

import uuid
from decimal import Decimal
from datetime import datetime, timezone, date
from typing import Any, Dict, Optional, Sequence

from .audit import AuditTrail, AuditEventType
from .commissions import resolve_commission_tier
from .credits import Credit, CreditState, Payment, PaymentType
from .errors import IneligibleError, InvalidAmountError, NotApplicableError, ValidationError
from .late_fees import LateCharge, compute_late_charge
from .ledger import CreditLedger
from .logging_config import get_logger, log_action
from .money import ZERO, percentage_of, round_money, to_decimal, Amount
from .providers import ProviderSettings
from .repository import CreditRepository, CreditUnitOfWork
from .schedules import shift_unpaid_dates, validate_payment_schedule

# Share of principal + commission that must be repaid before renewing
RENEWAL_PAID_RATIO = Decimal("0.5")


class CreditLifecycleManager:
    """
    Applies business operations to credits
    """

    def __init__(self, repository: CreditRepository, audit_trail: AuditTrail,
                 ledger: Optional[CreditLedger] = None):
        self.repository = repository
        self.audit_trail = audit_trail
        self.ledger = ledger or CreditLedger()
        self.logger = get_logger("recaudo.lifecycle")

    # Queries

    def can_renew(self, credit: Credit, payments: Sequence[Payment]) -> bool:
        """At least half of principal + commission repaid, and still open"""
        if credit.is_terminal:
            return False
        threshold = credit.total_obligation * RENEWAL_PAID_RATIO
        return self.ledger.paid_amount(payments) >= threshold

    def can_refinance(self, credit: Credit, payments: Sequence[Payment],
                      settings: ProviderSettings, as_of: date) -> bool:
        """Open credit that still owes something"""
        if credit.is_terminal:
            return False
        return self.ledger.total_debt(credit, payments, settings.late_interest, as_of) > ZERO

    def compute_late_charge(self, credit_id: str, as_of: date) -> LateCharge:
        credit = self.repository.get_credit(credit_id)
        settings = self.repository.get_provider_settings(credit.provider_id)
        return compute_late_charge(credit, settings.late_interest, as_of)

    def total_debt(self, credit_id: str, as_of: date) -> Decimal:
        """What the client must pay to close the credit today, late fees included"""
        credit = self.repository.get_credit(credit_id)
        settings = self.repository.get_provider_settings(credit.provider_id)
        payments = self.repository.list_payments_by_credit(credit_id)
        return self.ledger.total_debt(credit, payments, settings.late_interest, as_of)

    def get_credit_summary(self, credit_id: str, as_of: date) -> Dict[str, Any]:
        """Derived figures for one credit as of a date"""
        credit = self.repository.get_credit(credit_id)
        settings = self.repository.get_provider_settings(credit.provider_id)
        payments = self.repository.list_payments_by_credit(credit_id)
        charge = compute_late_charge(credit, settings.late_interest, as_of)

        return {
            "credit": credit,
            "installment_amount": credit.installment_due,
            "paid_amount": self.ledger.paid_amount(payments),
            "outstanding_balance": round_money(self.ledger.outstanding_balance(credit, payments)),
            "payoff_amount": round_money(self.ledger.payoff_amount(credit, payments)),
            "total_debt": round_money(self.ledger.total_debt(credit, payments, settings.late_interest, as_of)),
            "late_charge": charge,
            "next_due_date": credit.next_due_date,
            "can_renew": self.can_renew(credit, payments),
            "can_refinance": self.can_refinance(credit, payments, settings, as_of),
            "payments": payments,
        }

    # Origination

    def _build_credit(self, client_id: str, collector_id: str, settings: ProviderSettings,
                      principal: Decimal, installment_count: int, as_of: date,
                      predecessor_credit_id: Optional[str] = None) -> Credit:
        if principal <= ZERO:
            raise InvalidAmountError("Principal must be greater than zero")
        if installment_count <= 0:
            raise ValidationError("Installment count must be greater than zero")
        if not settings.is_active:
            raise IneligibleError(f"Provider {settings.provider_id} is not active")

        tier = resolve_commission_tier(principal, settings.commission_tiers)
        now = datetime.now(timezone.utc)

        return Credit(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            client_id=client_id,
            collector_id=collector_id,
            provider_id=settings.provider_id,
            principal=principal,
            commission_amount=percentage_of(principal, tier.percentage),
            commission_percentage=tier.percentage,
            installment_count=installment_count,
            created_on=as_of,
            awaiting_acceptance=settings.requires_contract_acceptance,
            predecessor_credit_id=predecessor_credit_id,
        )

    def _log_created(self, credit: Credit, user_id: Optional[str]) -> None:
        self.audit_trail.log_event(
            event_type=AuditEventType.CREDIT_CREATED,
            entity_type="credit",
            entity_id=credit.id,
            metadata={
                "client_id": credit.client_id,
                "collector_id": credit.collector_id,
                "provider_id": credit.provider_id,
                "principal": credit.principal,
                "commission_amount": credit.commission_amount,
                "installment_count": credit.installment_count,
                "predecessor_credit_id": credit.predecessor_credit_id,
            },
            user_id=user_id
        )

    def create_credit(
        self,
        client_id: str,
        collector_id: str,
        provider_id: str,
        principal: Amount,
        installment_count: int,
        as_of: date,
        user_id: Optional[str] = None
    ) -> Credit:
        """
        Grant a new credit. The schedule is assigned later with
        ``save_payment_schedule``.

        Raises:
            InvalidAmountError: Principal is not positive
            IneligibleError: Provider is inactive
            ConfigurationError: No commission tier covers the principal
        """
        settings = self.repository.get_provider_settings(provider_id)
        credit = self._build_credit(client_id, collector_id, settings,
                                    to_decimal(principal), installment_count, as_of)

        with self.repository.storage.atomic():
            self.repository.insert_credit(credit)
            self._log_created(credit, user_id)

        log_action(self.logger, "info", f"Credit {credit.id} created for client {client_id}",
                   user_id=user_id, action="create_credit", resource=credit.id,
                   extra={"principal": str(credit.principal), "commission": str(credit.commission_amount)})
        return credit

    # Schedule and contract

    def save_payment_schedule(self, credit_id: str, dates: Sequence[date], today: date,
                              user_id: Optional[str] = None) -> Credit:
        """
        Attach the due dates of every installment.

        Raises:
            ValidationError: Wrong length, unordered dates, or dates before the
                credit's creation or before ``today``
            IneligibleError: Credit is closed
        """
        dates = list(dates)
        with self.repository.transaction(credit_id) as uow:
            credit = uow.credit
            self._ensure_open(credit)
            validate_payment_schedule(dates, credit.installment_count, credit.created_on, today)

            credit.payment_schedule = dates
            credit.updated_at = datetime.now(timezone.utc)

            self.audit_trail.log_event(
                event_type=AuditEventType.PAYMENT_SCHEDULE_SAVED,
                entity_type="credit",
                entity_id=credit_id,
                metadata={"first_due_date": dates[0], "last_due_date": dates[-1], "count": len(dates)},
                user_id=user_id
            )

        log_action(self.logger, "info", f"Payment schedule saved for credit {credit_id}",
                   user_id=user_id, action="save_payment_schedule", resource=credit_id)
        return credit

    def accept_contract(self, credit_id: str, accepted_at: datetime,
                        user_id: Optional[str] = None) -> Credit:
        """
        Record the client's acceptance of the contract, making the credit routable.

        Raises:
            IneligibleError: Closed credit, no schedule yet, or nothing to accept
        """
        with self.repository.transaction(credit_id) as uow:
            credit = uow.credit
            self._ensure_open(credit)
            if not credit.has_complete_schedule:
                raise IneligibleError("The payment schedule must be saved before accepting the contract")
            if not credit.awaiting_acceptance:
                raise IneligibleError(f"Credit {credit_id} is not awaiting contract acceptance")

            credit.awaiting_acceptance = False
            credit.contract_accepted_at = accepted_at
            credit.updated_at = datetime.now(timezone.utc)

            self.audit_trail.log_event(
                event_type=AuditEventType.CONTRACT_ACCEPTED,
                entity_type="credit",
                entity_id=credit_id,
                metadata={"accepted_at": accepted_at},
                user_id=user_id
            )

        log_action(self.logger, "info", f"Contract accepted for credit {credit_id}",
                   user_id=user_id, action="accept_contract", resource=credit_id)
        return credit

    # Collection

    def register_payment(self, credit_id: str, amount: Amount, payment_type: PaymentType,
                         as_of: date, user_id: Optional[str] = None) -> Payment:
        """
        Register a payment collected on ``as_of``.

        Under-payment of an installment is accepted: it reduces the balance but
        does not advance the installment counter.

        Raises:
            InvalidAmountError: Amount is not positive, or a TOTAL payment does
                not cover the payoff amount
            IneligibleError: Credit is closed
        """
        amount = to_decimal(amount)
        if amount <= ZERO:
            raise InvalidAmountError("Payment amount must be greater than zero")

        with self.repository.transaction(credit_id) as uow:
            credit = uow.credit
            self._ensure_open(credit)

            if payment_type == PaymentType.TOTAL:
                payoff = round_money(self.ledger.payoff_amount(credit, uow.payments))
                if amount < payoff:
                    raise InvalidAmountError(
                        f"A total payment must cover the payoff amount of {payoff}"
                    )

            now = datetime.now(timezone.utc)
            payment = Payment(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                credit_id=credit.id,
                payment_date=as_of,
                amount=amount,
                type=payment_type,
                collector_id=credit.collector_id,
                provider_id=credit.provider_id,
                client_id=credit.client_id,
            )
            self.ledger.apply_payment(credit, uow.payments, payment)
            credit.updated_at = now
            balance = self.ledger.outstanding_balance(credit, uow.payments)

            self.audit_trail.log_event(
                event_type=AuditEventType.PAYMENT_REGISTERED,
                entity_type="credit",
                entity_id=credit.id,
                metadata={
                    "payment_id": payment.id,
                    "amount": amount,
                    "type": payment_type,
                    "paid_installments": credit.paid_installments,
                    "outstanding_balance": balance,
                },
                user_id=user_id
            )
            if credit.state == CreditState.PAID:
                self.audit_trail.log_event(
                    event_type=AuditEventType.CREDIT_PAID_OFF,
                    entity_type="credit",
                    entity_id=credit.id,
                    metadata={"end_date": credit.end_date},
                    user_id=user_id
                )

        log_action(self.logger, "info", f"Payment of {amount} registered on credit {credit_id}",
                   user_id=user_id, action="register_payment", resource=credit_id,
                   extra={"type": payment_type.value, "state": credit.state.value})
        return payment

    def register_missed_payment(self, credit_id: str, as_of: date,
                                user_id: Optional[str] = None) -> Credit:
        """
        Mark one more day of non-payment. Creates no payment.

        Raises:
            NotApplicableError: Provider's late interest is inactive
            IneligibleError: Credit is closed
        """
        with self.repository.transaction(credit_id) as uow:
            credit = uow.credit
            self._ensure_open(credit)
            if not uow.settings.late_interest.active:
                raise NotApplicableError("Late interest is not active for this provider")

            credit.missed_payment_days += 1
            credit.updated_at = datetime.now(timezone.utc)

            self.audit_trail.log_event(
                event_type=AuditEventType.MISSED_PAYMENT_REGISTERED,
                entity_type="credit",
                entity_id=credit_id,
                metadata={"missed_payment_days": credit.missed_payment_days, "as_of": as_of},
                user_id=user_id
            )

        log_action(self.logger, "info", f"Missed payment registered on credit {credit_id}",
                   user_id=user_id, action="register_missed_payment", resource=credit_id,
                   extra={"missed_payment_days": credit.missed_payment_days})
        return credit

    def register_payment_agreement(self, credit_id: str, agreed_amount: Amount, as_of: date,
                                   reschedule: bool = False,
                                   user_id: Optional[str] = None) -> Credit:
        """
        Record a negotiated settlement amount. Moves no money: a later TOTAL
        payment of at least the agreed amount closes the credit.

        With ``reschedule`` every unpaid due date is pushed forward by the
        schedule's first gap and the missed-payment counter is cleared.

        Raises:
            InvalidAmountError: Agreed amount not positive or above the balance
            ValidationError: Rescheduling a schedule with fewer than two dates
            IneligibleError: Credit is closed
        """
        agreed_amount = to_decimal(agreed_amount)
        if agreed_amount <= ZERO:
            raise InvalidAmountError("Agreed amount must be greater than zero")

        with self.repository.transaction(credit_id) as uow:
            credit = uow.credit
            self._ensure_open(credit)

            outstanding = self.ledger.outstanding_balance(credit, uow.payments)
            if agreed_amount > outstanding:
                raise InvalidAmountError(
                    f"Agreed amount cannot exceed the outstanding balance of {round_money(outstanding)}"
                )

            credit.agreement_amount = agreed_amount
            if reschedule:
                credit.payment_schedule = shift_unpaid_dates(credit.payment_schedule, credit.paid_installments)
                credit.missed_payment_days = 0
            credit.updated_at = datetime.now(timezone.utc)

            self.audit_trail.log_event(
                event_type=AuditEventType.PAYMENT_AGREEMENT_REGISTERED,
                entity_type="credit",
                entity_id=credit_id,
                metadata={"agreed_amount": agreed_amount, "rescheduled": reschedule, "as_of": as_of},
                user_id=user_id
            )

        log_action(self.logger, "info", f"Payment agreement registered on credit {credit_id}",
                   user_id=user_id, action="register_payment_agreement", resource=credit_id,
                   extra={"agreed_amount": str(agreed_amount), "rescheduled": reschedule})
        return credit

    # Closing transitions

    def renew_credit(self, old_credit_id: str, additional_amount: Amount,
                     new_installment_count: int, as_of: date,
                     user_id: Optional[str] = None) -> Credit:
        """
        Close a credit and open a successor for the remaining balance plus
        fresh funds. Commission is resolved again on the new principal.

        Raises:
            IneligibleError: Less than half repaid, closed credit or inactive provider
            InvalidAmountError: Negative additional amount
            ConfigurationError: No commission tier covers the new principal
        """
        additional_amount = to_decimal(additional_amount)
        if additional_amount < ZERO:
            raise InvalidAmountError("Additional amount cannot be negative")

        with self.repository.transaction(old_credit_id) as uow:
            old = uow.credit
            self._ensure_open(old)
            if not self.can_renew(old, uow.payments):
                raise IneligibleError(
                    "At least half of the credit must be paid before it can be renewed"
                )

            remaining = self.ledger.remaining_balance(old, uow.payments)
            new_credit = self._build_credit(
                old.client_id, old.collector_id, uow.settings,
                round_money(remaining + additional_amount), new_installment_count, as_of,
                predecessor_credit_id=old.id,
            )
            self._close_into(uow, old, new_credit, CreditState.RENEWED, as_of)

            self.audit_trail.log_event(
                event_type=AuditEventType.CREDIT_RENEWED,
                entity_type="credit",
                entity_id=old.id,
                metadata={
                    "successor_credit_id": new_credit.id,
                    "remaining_balance": remaining,
                    "additional_amount": additional_amount,
                },
                user_id=user_id
            )
            self._log_created(new_credit, user_id)

        log_action(self.logger, "info", f"Credit {old_credit_id} renewed into {new_credit.id}",
                   user_id=user_id, action="renew_credit", resource=old_credit_id,
                   extra={"new_principal": str(new_credit.principal)})
        return new_credit

    def refinance_credit(self, old_credit_id: str, new_installment_count: int, as_of: date,
                         user_id: Optional[str] = None) -> Credit:
        """
        Roll the whole debt, late fees included, into a new credit. No new funds.

        Raises:
            IneligibleError: Closed credit, nothing owed, or inactive provider
            ConfigurationError: No commission tier covers the new principal
        """
        with self.repository.transaction(old_credit_id) as uow:
            old = uow.credit
            self._ensure_open(old)
            if not self.can_refinance(old, uow.payments, uow.settings, as_of):
                raise IneligibleError(f"Credit {old_credit_id} has no debt to refinance")

            debt = self.ledger.total_debt(old, uow.payments, uow.settings.late_interest, as_of)
            new_credit = self._build_credit(
                old.client_id, old.collector_id, uow.settings,
                round_money(debt), new_installment_count, as_of,
                predecessor_credit_id=old.id,
            )
            self._close_into(uow, old, new_credit, CreditState.REFINANCED, as_of)

            self.audit_trail.log_event(
                event_type=AuditEventType.CREDIT_REFINANCED,
                entity_type="credit",
                entity_id=old.id,
                metadata={"successor_credit_id": new_credit.id, "total_debt": debt},
                user_id=user_id
            )
            self._log_created(new_credit, user_id)

        log_action(self.logger, "info", f"Credit {old_credit_id} refinanced into {new_credit.id}",
                   user_id=user_id, action="refinance_credit", resource=old_credit_id,
                   extra={"new_principal": str(new_credit.principal)})
        return new_credit

    def mark_defaulted(self, credit_id: str, as_of: date,
                       user_id: Optional[str] = None) -> Credit:
        """
        Write a credit off.

        Raises:
            IneligibleError: Credit is already closed
        """
        with self.repository.transaction(credit_id) as uow:
            credit = uow.credit
            self._ensure_open(credit)
            balance = self.ledger.outstanding_balance(credit, uow.payments)

            credit.state = CreditState.DEFAULTED
            credit.end_date = as_of
            credit.updated_at = datetime.now(timezone.utc)

            self.audit_trail.log_event(
                event_type=AuditEventType.CREDIT_DEFAULTED,
                entity_type="credit",
                entity_id=credit_id,
                metadata={"outstanding_balance": balance, "end_date": as_of},
                user_id=user_id
            )

        log_action(self.logger, "warning", f"Credit {credit_id} written off",
                   user_id=user_id, action="mark_defaulted", resource=credit_id,
                   extra={"outstanding_balance": str(balance)})
        return credit

    # Helpers

    @staticmethod
    def _ensure_open(credit: Credit) -> None:
        if credit.is_terminal:
            raise IneligibleError(f"Credit {credit.id} is {credit.state.value} and cannot change")

    @staticmethod
    def _close_into(uow: CreditUnitOfWork, old: Credit, successor: Credit, state: CreditState, as_of: date) -> None:
        old.state = state
        old.end_date = as_of
        old.successor_credit_id = successor.id
        old.updated_at = datetime.now(timezone.utc)
        uow.stage_credit(successor)
