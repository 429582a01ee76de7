"""
Damage record endpoints. Incidents are reported through ``/loans/{id}/damage``.
"""
from uuid import UUID

from fastapi import APIRouter, Depends

from wellness_lending.api import deps
from wellness_lending.schemas.damage import (
    DamageRecordResponse,
    DamageStatusUpdate,
    FineQuoteRequest,
    FineQuoteResponse,
)
from wellness_lending.services import ServiceFactory

router = APIRouter(prefix="/damages", tags=["damages"])


@router.post("/quote", response_model=FineQuoteResponse)
def quote_fine(payload: FineQuoteRequest, services: ServiceFactory = Depends(deps.get_services)):
    fine = deps.unwrap(services.damage().quote_fine(payload.damage_type, payload.severity, payload.resource_id))
    return FineQuoteResponse(
        resource_id=payload.resource_id,
        damage_type=payload.damage_type,
        severity=payload.severity,
        fine_amount=fine,
    )


@router.get("/loans/{loan_id}", response_model=DamageRecordResponse)
def get_for_loan(loan_id: UUID, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.damage().get_for_loan(loan_id))


@router.patch("/{record_id}/status", response_model=DamageRecordResponse)
def update_status(record_id: UUID, payload: DamageStatusUpdate, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.damage().update_record_status(payload.admin_id, record_id, payload.status))
