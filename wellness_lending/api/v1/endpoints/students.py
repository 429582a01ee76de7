"""
Student trust score, sanctions, wellness hours and per-student listings.
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from wellness_lending.api import deps
from wellness_lending.models.base import LoanStatus
from wellness_lending.schemas.damage import DamageRecordResponse
from wellness_lending.schemas.loan import LoanResponse
from wellness_lending.schemas.queue import QueueEntryResponse
from wellness_lending.schemas.student import (
    BehavioralStatusResponse,
    BlockRequest,
    LiftBlockRequest,
    TrustSummaryResponse,
    WellnessEntryResponse,
    WellnessSummaryResponse,
)
from wellness_lending.schemas.system import AlertResponse
from wellness_lending.services import ServiceFactory

router = APIRouter(prefix="/students", tags=["students"])


@router.get("/blocked", response_model=List[BehavioralStatusResponse])
def list_blocked(services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.trust().list_blocked())


@router.get("/{user_id}/trust", response_model=TrustSummaryResponse)
def get_trust_summary(user_id: UUID, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.trust().get_summary(user_id))


@router.get("/{user_id}/status", response_model=BehavioralStatusResponse)
def get_status(user_id: UUID, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.trust().get_status(user_id))


@router.post("/{user_id}/block", response_model=BehavioralStatusResponse)
def block_student(user_id: UUID, payload: BlockRequest, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.trust().block_student(payload.admin_id, user_id, payload.days, payload.reason))


@router.post("/{user_id}/unblock", response_model=BehavioralStatusResponse)
def lift_block(user_id: UUID, payload: LiftBlockRequest, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.trust().lift_block(payload.admin_id, user_id, payload.reason))


@router.post("/{user_id}/recalculate", response_model=BehavioralStatusResponse)
def recalculate(user_id: UUID, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.trust().recalculate(user_id))


@router.get("/{user_id}/loans", response_model=List[LoanResponse])
def list_loans(
    user_id: UUID,
    loan_status: Optional[LoanStatus] = Query(None, alias="status"),
    services: ServiceFactory = Depends(deps.get_services),
):
    return deps.unwrap(services.loans().list_loans_for_user(user_id, loan_status))


@router.get("/{user_id}/queue", response_model=List[QueueEntryResponse])
def list_queue_entries(user_id: UUID, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.queue().list_for_user(user_id))


@router.get("/{user_id}/damages", response_model=List[DamageRecordResponse])
def list_damages(user_id: UUID, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.damage().list_for_user(user_id))


@router.get("/{user_id}/wellness", response_model=WellnessSummaryResponse)
def get_wellness_summary(user_id: UUID, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.wellness().get_summary(user_id))


@router.get("/{user_id}/wellness/entries", response_model=List[WellnessEntryResponse])
def list_wellness_entries(user_id: UUID, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.wellness().list_entries(user_id))


@router.get("/{user_id}/alerts", response_model=List[AlertResponse])
def list_alerts(
    user_id: UUID,
    unread_only: bool = Query(False),
    services: ServiceFactory = Depends(deps.get_services),
):
    return deps.unwrap(services.alerts().list_for_user(user_id, unread_only))
