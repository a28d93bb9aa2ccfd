# maintenance_api/schedules.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel

from maintenance_api.dependencies import get_analytics
from maintenance_core.services import MaintenanceAnalytics

router = APIRouter()


class CompletionRequest(BaseModel):
    # the due date the user was looking at when they confirmed
    expected_next_due: Optional[datetime] = None


# --- Schedules with their live status ---
@router.get("/")
def list_schedules(analytics: MaintenanceAnalytics = Depends(get_analytics)):
    return {"schedules": analytics.get_schedule_statuses()}


@router.get("/kpis")
def schedule_kpis(analytics: MaintenanceAnalytics = Depends(get_analytics)):
    return analytics.get_schedule_kpis()


@router.get("/completed-events")
def completed_events(
    limit: int = Query(50, ge=1, le=500),
    analytics: MaintenanceAnalytics = Depends(get_analytics),
):
    return {"events": analytics.get_completed_events(limit)}


# --- Mark a schedule as done ---
@router.post("/{schedule_id}/complete")
def complete_schedule(
    schedule_id: str,
    request: Optional[CompletionRequest] = Body(None),
    analytics: MaintenanceAnalytics = Depends(get_analytics),
):
    expected = request.expected_next_due if request else None
    schedule = analytics.complete_schedule(schedule_id, expected_next_due=expected)
    return {"message": f"Maintenance schedule {schedule_id} completed", "schedule": schedule}
