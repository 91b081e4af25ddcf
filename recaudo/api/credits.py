"""
Credit endpoints
"""

from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, status

from .dependencies import RecaudoSystem, get_recaudo_system
from .schemas import (
    AcceptContractRequest, CreateCreditRequest, DefaultCreditRequest, MissedPaymentRequest,
    PaymentAgreementRequest, PaymentRequest, PaymentScheduleRequest, RefinanceCreditRequest,
    RenewCreditRequest, late_charge_response, parse_decimal
)
from ..credits import PaymentType
from ..errors import ValidationError
from ..schedules import PaymentFrequency, describe_frequency, generate_payment_schedule


router = APIRouter()


def _credit_body(system: RecaudoSystem, credit_id: str, as_of) -> dict:
    summary = system.lifecycle.get_credit_summary(credit_id, as_of)
    credit = summary["credit"]
    body = credit.to_dict()
    body.update({
        "as_of": as_of.isoformat(),
        "installment_amount": str(summary["installment_amount"]),
        "paid_amount": str(summary["paid_amount"]),
        "outstanding_balance": str(summary["outstanding_balance"]),
        "payoff_amount": str(summary["payoff_amount"]),
        "total_debt": str(summary["total_debt"]),
        "next_due_date": summary["next_due_date"].isoformat() if summary["next_due_date"] else None,
        "payment_frequency": describe_frequency(credit.payment_schedule),
        "late_charge": late_charge_response(summary["late_charge"]),
        "can_renew": summary["can_renew"],
        "can_refinance": summary["can_refinance"],
    })
    return body


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_credit(
    request: CreateCreditRequest,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Grant a new credit"""
    as_of = system.business_date(request.provider_id, request.as_of)
    credit = system.lifecycle.create_credit(
        client_id=request.client_id,
        collector_id=request.collector_id,
        provider_id=request.provider_id,
        principal=parse_decimal(request.principal, "principal"),
        installment_count=request.installment_count,
        as_of=as_of,
        user_id=request.collector_id
    )
    return credit.to_dict()


@router.get("/{credit_id}")
async def get_credit(
    credit_id: str,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Credit details with derived balances as of today"""
    credit = system.repository.get_credit(credit_id)
    return _credit_body(system, credit_id, system.business_date(credit.provider_id))


@router.get("/{credit_id}/late-charge")
async def get_late_charge(
    credit_id: str,
    as_of: Optional[date] = None,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Late-fee breakdown and total debt as of a date"""
    credit = system.repository.get_credit(credit_id)
    as_of = system.business_date(credit.provider_id, as_of)
    body = late_charge_response(system.lifecycle.compute_late_charge(credit_id, as_of))
    body["total_debt"] = str(system.lifecycle.total_debt(credit_id, as_of))
    body["as_of"] = as_of.isoformat()
    return body


@router.put("/{credit_id}/schedule")
async def save_payment_schedule(
    credit_id: str,
    request: PaymentScheduleRequest,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Attach explicit due dates, or generate them from a first date and frequency"""
    credit = system.repository.get_credit(credit_id)

    if request.dates is not None:
        dates = request.dates
    elif request.first_due_date and request.frequency:
        try:
            frequency = PaymentFrequency(request.frequency)
        except ValueError:
            raise ValidationError(f"Unknown frequency {request.frequency!r}")
        dates = generate_payment_schedule(request.first_due_date, credit.installment_count, frequency)
    else:
        raise ValidationError("Provide either dates or first_due_date and frequency")

    today = system.business_date(credit.provider_id, request.today)
    updated = system.lifecycle.save_payment_schedule(credit_id, dates, today)
    return {
        "credit_id": credit_id,
        "payment_schedule": [d.isoformat() for d in updated.payment_schedule],
        "payment_frequency": describe_frequency(updated.payment_schedule),
    }


@router.post("/{credit_id}/accept-contract")
async def accept_contract(
    credit_id: str,
    request: AcceptContractRequest,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Record the client's contract acceptance"""
    accepted_at = request.accepted_at or datetime.now(timezone.utc)
    credit = system.lifecycle.accept_contract(credit_id, accepted_at)
    return {"credit_id": credit.id, "contract_accepted_at": credit.contract_accepted_at.isoformat()}


@router.post("/{credit_id}/payments", status_code=status.HTTP_201_CREATED)
async def register_payment(
    credit_id: str,
    request: PaymentRequest,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Register a collected payment"""
    try:
        payment_type = PaymentType(request.type)
    except ValueError:
        raise ValidationError(f"Unknown payment type {request.type!r}")

    credit = system.repository.get_credit(credit_id)
    as_of = system.business_date(credit.provider_id, request.as_of)
    payment = system.lifecycle.register_payment(
        credit_id, parse_decimal(request.amount, "amount"), payment_type, as_of,
        user_id=credit.collector_id
    )
    updated = system.repository.get_credit(credit_id)
    return {
        "payment": payment.to_dict(),
        "credit_state": updated.state.value,
        "paid_installments": updated.paid_installments,
    }


@router.get("/{credit_id}/payments")
async def list_payments(
    credit_id: str,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Payments of a credit in registration order"""
    system.repository.get_credit(credit_id)
    return {"payments": [p.to_dict() for p in system.repository.list_payments_by_credit(credit_id)]}


@router.post("/{credit_id}/missed-payments")
async def register_missed_payment(
    credit_id: str,
    request: MissedPaymentRequest,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Mark one more day without payment"""
    credit = system.repository.get_credit(credit_id)
    as_of = system.business_date(credit.provider_id, request.as_of)
    updated = system.lifecycle.register_missed_payment(credit_id, as_of, user_id=credit.collector_id)
    return {"credit_id": credit_id, "missed_payment_days": updated.missed_payment_days}


@router.post("/{credit_id}/agreement")
async def register_payment_agreement(
    credit_id: str,
    request: PaymentAgreementRequest,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Record a negotiated settlement amount"""
    credit = system.repository.get_credit(credit_id)
    as_of = system.business_date(credit.provider_id, request.as_of)
    updated = system.lifecycle.register_payment_agreement(
        credit_id, parse_decimal(request.agreed_amount, "agreed_amount"), as_of,
        reschedule=request.reschedule, user_id=credit.collector_id
    )
    return {
        "credit_id": credit_id,
        "agreement_amount": str(updated.agreement_amount),
        "payment_schedule": [d.isoformat() for d in updated.payment_schedule],
    }


@router.post("/{credit_id}/renew", status_code=status.HTTP_201_CREATED)
async def renew_credit(
    credit_id: str,
    request: RenewCreditRequest,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Close the credit into a successor with additional funds"""
    credit = system.repository.get_credit(credit_id)
    as_of = system.business_date(credit.provider_id, request.as_of)
    successor = system.lifecycle.renew_credit(
        credit_id, parse_decimal(request.additional_amount, "additional_amount"),
        request.installment_count, as_of, user_id=credit.collector_id
    )
    return successor.to_dict()


@router.post("/{credit_id}/refinance", status_code=status.HTTP_201_CREATED)
async def refinance_credit(
    credit_id: str,
    request: RefinanceCreditRequest,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Roll the whole debt into a successor credit"""
    credit = system.repository.get_credit(credit_id)
    as_of = system.business_date(credit.provider_id, request.as_of)
    successor = system.lifecycle.refinance_credit(
        credit_id, request.installment_count, as_of, user_id=credit.collector_id
    )
    return successor.to_dict()


@router.post("/{credit_id}/default")
async def mark_defaulted(
    credit_id: str,
    request: DefaultCreditRequest,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Write the credit off"""
    credit = system.repository.get_credit(credit_id)
    as_of = system.business_date(credit.provider_id, request.as_of)
    updated = system.lifecycle.mark_defaulted(credit_id, as_of)
    return {"credit_id": credit_id, "state": updated.state.value, "end_date": updated.end_date.isoformat()}


@router.get("/{credit_id}/audit")
async def get_credit_audit(
    credit_id: str,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Audit events of a credit, oldest first"""
    events = system.audit_trail.get_events_for_entity("credit", credit_id)
    return {"events": [e.to_dict() for e in events]}
