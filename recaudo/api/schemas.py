"""
Pydantic schemas for API requests and responses
"""

from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..commissions import CommissionTier
from ..errors import ValidationError
from ..money import to_decimal
from ..providers import LateInterestConfig
from ..storage import serialize_value


def parse_decimal(text: str, field_name: str) -> Decimal:
    """Decimal from a request string; bad or non-finite input is a ValidationError, not a 500"""
    try:
        return to_decimal(text)
    except ValidationError:
        raise ValidationError(f"{field_name} must be a finite decimal number, got {text!r}")


class CommissionTierModel(BaseModel):
    min_amount: str = Field(..., description="Decimal amount as string, inclusive")
    max_amount: str = Field(..., description="Decimal amount as string, exclusive; 0 = unbounded")
    percentage: str = Field(..., description="Commission percentage, e.g. '20'")

    def to_tier(self) -> CommissionTier:
        return CommissionTier(
            min_amount=parse_decimal(self.min_amount, "min_amount"),
            max_amount=parse_decimal(self.max_amount, "max_amount"),
            percentage=parse_decimal(self.percentage, "percentage"),
        )


class LateInterestModel(BaseModel):
    rate: str = Field("0", description="Daily percentage of one installment")
    active: bool = False

    def to_config(self) -> LateInterestConfig:
        return LateInterestConfig(rate=parse_decimal(self.rate, "rate"), active=self.active)


# Provider schemas
class ProviderSettingsRequest(BaseModel):
    commission_tiers: List[CommissionTierModel]
    late_interest: LateInterestModel = LateInterestModel()
    requires_contract_acceptance: bool = False
    base_capital: str = "0"
    timezone: Optional[str] = None
    is_active: bool = True
    name: str = ""


class SimulationRequest(BaseModel):
    principal: str
    installment_count: int
    late_days: int = 0


# Client schemas
class CreateClientRequest(BaseModel):
    name: str
    collector_id: str
    provider_id: str
    address: str = ""
    phone: str = ""
    document_number: str = ""
    client_id: Optional[str] = Field(None, description="Defaults to the document number")


# Credit schemas
class CreateCreditRequest(BaseModel):
    client_id: str
    collector_id: str
    provider_id: str
    principal: str
    installment_count: int
    as_of: Optional[date] = None


class PaymentScheduleRequest(BaseModel):
    dates: Optional[List[date]] = Field(None, description="Explicit due dates")
    first_due_date: Optional[date] = Field(None, description="Generate from this date")
    frequency: Optional[str] = Field(None, description="daily, weekly, biweekly or monthly")
    today: Optional[date] = None


class AcceptContractRequest(BaseModel):
    accepted_at: Optional[datetime] = None


class PaymentRequest(BaseModel):
    amount: str
    type: str = Field("installment", description="installment, total, agreement, commission, interest")
    as_of: Optional[date] = None


class MissedPaymentRequest(BaseModel):
    as_of: Optional[date] = None


class PaymentAgreementRequest(BaseModel):
    agreed_amount: str
    reschedule: bool = False
    as_of: Optional[date] = None


class RenewCreditRequest(BaseModel):
    additional_amount: str = "0"
    installment_count: int
    as_of: Optional[date] = None


class RefinanceCreditRequest(BaseModel):
    installment_count: int
    as_of: Optional[date] = None


class DefaultCreditRequest(BaseModel):
    as_of: Optional[date] = None


def to_response(value: Any) -> Any:
    """JSON-ready form of a dataclass (or list of them); Decimals become strings"""
    if isinstance(value, list):
        return [to_response(v) for v in value]
    if hasattr(value, "__dataclass_fields__"):
        return serialize_value(asdict(value))
    return serialize_value(value)


def late_charge_response(charge) -> Dict[str, Any]:
    return {
        "schedule_days_late": charge.schedule_days_late,
        "missed_payment_days": charge.missed_payment_days,
        "days_late": charge.days_late,
        "basis": charge.basis,
        "installment_amount": str(charge.installment_amount),
        "rate": str(charge.rate),
        "active": charge.active,
        "late_fee": str(charge.late_fee),
    }
