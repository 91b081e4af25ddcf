"""
Collection route endpoints
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from .dependencies import RecaudoSystem, get_recaudo_system
from .schemas import to_response
from ..routes import build_payment_route


router = APIRouter()


@router.get("/{collector_id}")
async def get_payment_route(
    collector_id: str,
    as_of: Optional[date] = None,
    until: Optional[date] = None,
    system: RecaudoSystem = Depends(get_recaudo_system)
):
    """A collector's route grouped by due date"""
    as_of = system.business_date(requested=as_of)
    route = build_payment_route(system.repository, collector_id, as_of, until=until,
                                builder=system.route_builder)
    body = to_response(route)
    body["collector_id"] = collector_id
    body["overdue_count"] = route.overdue_count
    return body
