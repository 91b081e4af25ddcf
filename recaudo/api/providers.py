"""
Provider endpoints: settings, commission quotes, simulation and reports
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from .dependencies import RecaudoSystem, get_recaudo_system
from .schemas import ProviderSettingsRequest, SimulationRequest, parse_decimal, to_response
from ..commissions import resolve_commission_tier
from ..money import percentage_of
from ..simulator import simulate_credit


router = APIRouter()


@router.get("")
async def list_providers(system: RecaudoSystem = Depends(get_recaudo_system)):
    """All configured providers"""
    return {"providers": [s.to_dict() for s in system.provider_manager.list_settings()]}


@router.put("/{provider_id}/settings")
async def save_provider_settings(
    provider_id: str,
    request: ProviderSettingsRequest,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Create or replace a provider's configuration"""
    settings = system.provider_manager.save_settings(
        provider_id=provider_id,
        commission_tiers=[t.to_tier() for t in request.commission_tiers],
        late_interest=request.late_interest.to_config(),
        requires_contract_acceptance=request.requires_contract_acceptance,
        base_capital=parse_decimal(request.base_capital, "base_capital"),
        timezone_name=request.timezone,
        is_active=request.is_active,
        name=request.name,
        user_id=provider_id
    )
    return settings.to_dict()


@router.get("/{provider_id}/settings")
async def get_provider_settings(
    provider_id: str,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    return system.provider_manager.get_settings(provider_id).to_dict()


@router.get("/{provider_id}/commission")
async def quote_commission(
    provider_id: str,
    principal: str,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Commission the provider would charge on a principal"""
    amount = parse_decimal(principal, "principal")
    settings = system.provider_manager.get_settings(provider_id)
    tier = resolve_commission_tier(amount, settings.commission_tiers)
    return {
        "principal": str(amount),
        "percentage": str(tier.percentage),
        "commission": str(percentage_of(amount, tier.percentage)),
    }


@router.post("/{provider_id}/simulate")
async def simulate(
    provider_id: str,
    request: SimulationRequest,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Quote a hypothetical credit"""
    settings = system.provider_manager.get_settings(provider_id)
    simulation = simulate_credit(settings, parse_decimal(request.principal, "principal"),
                                 request.installment_count, request.late_days)
    return to_response(simulation)


@router.get("/{provider_id}/daily-summary")
async def daily_summary(
    provider_id: str,
    day: Optional[date] = None,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Collection per collector on a day"""
    day = system.business_date(provider_id, day)
    return to_response(system.reporting_engine.daily_collection_summary(provider_id, day))


@router.get("/{provider_id}/financial-summary")
async def financial_summary(
    provider_id: str,
    as_of: Optional[date] = None,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Capital position of the provider"""
    as_of = system.business_date(provider_id, as_of)
    summary = system.reporting_engine.provider_financial_summary(provider_id, as_of)
    body = to_response(summary)
    body["available_capital"] = str(summary.available_capital)
    return body


@router.get("/{provider_id}/advice")
async def financial_advice(
    provider_id: str,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Advice from the external advisory service (empty fallback when unavailable)"""
    as_of = system.business_date(provider_id)
    summary = system.reporting_engine.provider_financial_summary(provider_id, as_of)
    return to_response(system.advisory_client.get_financial_advice(summary))


@router.post("/{provider_id}/reinvest")
async def reinvest_commission(
    provider_id: str,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Move collected commission into the provider's base capital"""
    result = system.reporting_engine.reinvest_commission(provider_id, user_id=provider_id)
    return to_response(result)
