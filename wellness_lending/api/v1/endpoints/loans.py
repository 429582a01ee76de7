"""
Loan lifecycle endpoints.
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from wellness_lending.api import deps
from wellness_lending.models.base import LoanStatus
from wellness_lending.schemas.damage import DamageRecordResponse, DamageReportCreate
from wellness_lending.schemas.loan import (
    LoanApprove,
    LoanPickup,
    LoanReject,
    LoanRequestCreate,
    LoanRequestOutcomeResponse,
    LoanResponse,
    LoanReturn,
    LoanStatusHistoryResponse,
    PresentialLoanCreate,
)
from wellness_lending.schemas.queue import QueueEntryResponse
from wellness_lending.services import ServiceFactory

router = APIRouter(prefix="/loans", tags=["loans"])


@router.post("", response_model=LoanRequestOutcomeResponse, status_code=status.HTTP_201_CREATED)
def request_loan(payload: LoanRequestCreate, services: ServiceFactory = Depends(deps.get_services)):
    """
    Request a resource.

    Returns the new loan (``approved`` or ``pending``), or the queue entry
    when the resource is unavailable and queueing is enabled.
    """
    outcome = deps.unwrap(services.loans().request_loan(payload.student_id, payload.resource_id))
    return LoanRequestOutcomeResponse(
        kind=outcome.kind.value,
        loan=LoanResponse.model_validate(outcome.loan) if outcome.loan is not None else None,
        queue_entry=QueueEntryResponse.model_validate(outcome.queue_entry) if outcome.queue_entry is not None else None,
    )


@router.post("/presential", response_model=LoanResponse, status_code=status.HTTP_201_CREATED)
def create_presential_loan(payload: PresentialLoanCreate, services: ServiceFactory = Depends(deps.get_services)):
    """Lend an available resource at the desk. The loan starts ``active``."""
    return deps.unwrap(
        services.loans().create_presential_loan(
            payload.admin_id, payload.student_id, payload.resource_id, payload.due_date, payload.notes
        )
    )


@router.get("", response_model=List[LoanResponse])
def list_loans(
    loan_status: LoanStatus = Query(..., alias="status", description="Loans in this status"),
    services: ServiceFactory = Depends(deps.get_services),
):
    return deps.unwrap(services.loans().list_by_status(loan_status))


@router.get("/{loan_id}", response_model=LoanResponse)
def get_loan(loan_id: UUID, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.loans().get_loan(loan_id))


@router.get("/{loan_id}/history", response_model=List[LoanStatusHistoryResponse])
def get_loan_history(loan_id: UUID, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.loans().get_history(loan_id))


@router.post("/{loan_id}/approve", response_model=LoanResponse)
def approve_loan(loan_id: UUID, payload: LoanApprove, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.loans().approve_loan(payload.admin_id, loan_id, payload.notes))


@router.post("/{loan_id}/reject", response_model=LoanResponse)
def reject_loan(loan_id: UUID, payload: LoanReject, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.loans().reject_loan(payload.admin_id, loan_id, payload.reason))


@router.post("/{loan_id}/pickup", response_model=LoanResponse)
def record_pickup(
    loan_id: UUID,
    payload: Optional[LoanPickup] = None,
    services: ServiceFactory = Depends(deps.get_services),
):
    payload = payload or LoanPickup()
    return deps.unwrap(services.loans().record_pickup(loan_id, payload.due_date, payload.actor_id))


@router.post("/{loan_id}/return", response_model=LoanResponse)
def return_loan(
    loan_id: UUID,
    payload: Optional[LoanReturn] = None,
    services: ServiceFactory = Depends(deps.get_services),
):
    payload = payload or LoanReturn()
    return deps.unwrap(services.loans().return_loan(loan_id, payload.actor_id))


@router.post("/{loan_id}/damage", response_model=DamageRecordResponse, status_code=status.HTTP_201_CREATED)
def report_damage(
    loan_id: UUID,
    payload: DamageReportCreate,
    services: ServiceFactory = Depends(deps.get_services),
):
    return deps.unwrap(
        services.loans().report_damage(
            payload.admin_id,
            loan_id,
            payload.damage_type,
            payload.severity,
            payload.description,
            payload.images,
            payload.estimated_cost,
        )
    )


@router.post("/{loan_id}/reconcile", response_model=LoanResponse)
def reconcile_loan(loan_id: UUID, services: ServiceFactory = Depends(deps.get_services)):
    """Apply a due expiry or overdue flag now."""
    return deps.unwrap(services.loans().reconcile_loan(loan_id))
