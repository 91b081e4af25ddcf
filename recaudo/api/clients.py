"""
Client endpoints
"""

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, status

from .dependencies import RecaudoSystem, get_recaudo_system
from .schemas import CreateClientRequest, to_response
from ..credits import Client


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_client(
    request: CreateClientRequest,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Register a client on a collector's route"""
    now = datetime.now(timezone.utc)
    client = Client(
        id=request.client_id or request.document_number or str(uuid.uuid4()),
        created_at=now,
        updated_at=now,
        name=request.name,
        collector_id=request.collector_id,
        provider_id=request.provider_id,
        address=request.address,
        phone=request.phone,
        document_number=request.document_number,
    )
    system.repository.save_client(client)
    return client.to_dict()


@router.get("/{client_id}")
async def get_client(
    client_id: str,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    return system.repository.get_client(client_id).to_dict()


@router.get("/{client_id}/history")
async def get_credit_history(
    client_id: str,
    as_of: Optional[date] = None,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Every credit the client has held"""
    as_of = system.business_date(requested=as_of)
    return {"client_id": client_id,
            "credits": to_response(system.reporting_engine.client_credit_history(client_id, as_of))}


@router.get("/{client_id}/reputation")
async def get_reputation(
    client_id: str,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """Reputation analysis from the advisory service (neutral fallback when unavailable)"""
    as_of = system.business_date()
    history = system.reporting_engine.client_credit_history(client_id, as_of)
    return to_response(system.advisory_client.analyze_client_reputation(client_id, history))
