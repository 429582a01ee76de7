"""
Waiting list endpoints.
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status

from wellness_lending.api import deps
from wellness_lending.schemas.loan import LoanResponse
from wellness_lending.schemas.queue import QueueAction, QueueEnqueue, QueueEntryResponse
from wellness_lending.services import ServiceFactory

router = APIRouter(prefix="/queue", tags=["queue"])


@router.post("", response_model=QueueEntryResponse, status_code=status.HTTP_201_CREATED)
def enqueue(payload: QueueEnqueue, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.queue().enqueue(payload.user_id, payload.resource_id))


@router.get("/resources/{resource_id}", response_model=List[QueueEntryResponse])
def list_queue(resource_id: UUID, services: ServiceFactory = Depends(deps.get_services)):
    """Notified entry first, then waiting entries by position."""
    return deps.unwrap(services.queue().list_queue(resource_id))


@router.post("/resources/{resource_id}/promote", response_model=Optional[QueueEntryResponse])
def promote(resource_id: UUID, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.queue().promote(resource_id))


@router.post("/{entry_id}/convert", response_model=LoanResponse, status_code=status.HTTP_201_CREATED)
def convert_to_loan(entry_id: UUID, payload: QueueAction, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.queue().convert_to_loan(entry_id, payload.user_id))


@router.post("/{entry_id}/cancel", response_model=QueueEntryResponse)
def cancel(entry_id: UUID, payload: QueueAction, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.queue().cancel(entry_id, payload.user_id))
