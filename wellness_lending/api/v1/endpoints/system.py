"""
Policy settings, admin alerts and the sweep trigger.
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from wellness_lending.api import deps
from wellness_lending.models.base import SettingCategory
from wellness_lending.schemas.system import (
    AlertResponse,
    SettingResponse,
    SettingsUpdate,
    SettingUpdate,
    SweepReportResponse,
)
from wellness_lending.services import ServiceFactory

router = APIRouter(tags=["system"])


@router.get("/settings", response_model=List[SettingResponse])
def list_settings(
    category: Optional[SettingCategory] = Query(None),
    services: ServiceFactory = Depends(deps.get_services),
):
    return deps.unwrap(services.settings().list_settings(category))


@router.put("/settings/{key}", response_model=List[SettingResponse])
def update_setting(key: str, payload: SettingUpdate, services: ServiceFactory = Depends(deps.get_services)):
    settings_service = services.settings()
    deps.unwrap(settings_service.update_setting(key, payload.value, payload.actor_id))
    return deps.unwrap(settings_service.list_settings())


@router.patch("/settings", response_model=List[SettingResponse])
def update_settings(payload: SettingsUpdate, services: ServiceFactory = Depends(deps.get_services)):
    settings_service = services.settings()
    deps.unwrap(settings_service.update_settings(payload.values, payload.actor_id))
    return deps.unwrap(settings_service.list_settings())


@router.post("/settings/seed")
def seed_settings(services: ServiceFactory = Depends(deps.get_services)):
    """Store the default of every key that has never been written."""
    return {"written": deps.unwrap(services.settings().seed_defaults())}


@router.get("/alerts", response_model=List[AlertResponse])
def list_admin_alerts(
    unread_only: bool = Query(False),
    services: ServiceFactory = Depends(deps.get_services),
):
    return deps.unwrap(services.alerts().list_for_admins(unread_only))


@router.post("/alerts/{alert_id}/read", response_model=AlertResponse)
def mark_alert_read(alert_id: UUID, services: ServiceFactory = Depends(deps.get_services)):
    return deps.unwrap(services.alerts().mark_read(alert_id))


@router.post("/sweep", response_model=SweepReportResponse)
def run_sweep(services: ServiceFactory = Depends(deps.get_services)):
    """Apply due time-driven transitions to every loan. Meant for a scheduler."""
    return deps.unwrap(services.sweep().sweep())
