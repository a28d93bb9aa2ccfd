# maintenance_core/schedules.py
"""Maintenance schedule status and completion.

Status is derived from ``next_due`` on every read and never stored, so it
cannot go stale when time passes without a write.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from pydantic import ValidationError

from maintenance_core.errors import Conflict, InvalidArgument, NotFound
from maintenance_core.models import (
    EventType,
    MaintenanceSchedule,
    ScheduleKpis,
    ScheduleState,
    ScheduleStatus,
)
from maintenance_core.numbers import ceil_days
from maintenance_core.storage import EVENTS, SCHEDULES, Storage

logger = logging.getLogger(__name__)

DUE_SOON_DAYS = 7


def as_naive(value: Optional[datetime]) -> Optional[datetime]:
    # stored dates carry no offset; aware input is compared on the UTC clock
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def days_until_due(next_due: Optional[datetime], now: datetime) -> int:
    # a schedule that was never given a due date is due now
    if next_due is None:
        return 0
    return ceil_days(next_due, now)


def derive_state(days: int, due_soon_days: int = DUE_SOON_DAYS) -> ScheduleState:
    if days < 0:
        return ScheduleState.OVERDUE
    if days <= due_soon_days:
        return ScheduleState.DUE_SOON
    return ScheduleState.UPCOMING


def schedule_status(schedule: MaintenanceSchedule, now: datetime,
                    due_soon_days: int = DUE_SOON_DAYS) -> ScheduleStatus:
    days = days_until_due(schedule.next_due, now)
    return ScheduleStatus(
        schedule_id=schedule.id,
        name=schedule.name,
        status=derive_state(days, due_soon_days),
        days_until_due=days,
        next_due=schedule.next_due,
    )


def summarize(statuses: Iterable[ScheduleStatus]) -> ScheduleKpis:
    kpis = ScheduleKpis()
    for status in statuses:
        if status.status == ScheduleState.OVERDUE:
            kpis.overdue += 1
        elif status.status == ScheduleState.DUE_SOON:
            kpis.due_within_week += 1
        else:
            kpis.future += 1
    return kpis


def complete_schedule(
    storage: Storage,
    schedule_id: str,
    now: datetime,
    expected_next_due: Optional[datetime] = None,
    timeout: Optional[float] = None,
) -> MaintenanceSchedule:
    """Mark a schedule done: advance it by its frequency and log an audit event.

    The read, the conditional update and the event insert run in one
    transaction. The update only applies if ``next_due`` still holds the
    value that was read, so two racing completions can never both advance
    from the same base date; the loser gets ``Conflict``.

    Pass ``expected_next_due`` (the due date the user saw) to turn a late
    duplicate of an already applied completion into a ``Conflict`` too.
    """
    if not schedule_id:
        raise InvalidArgument("A schedule id is required")

    with storage.transaction() as tx:
        rows = tx.find_many(SCHEDULES, where={"id": schedule_id}, limit=1, timeout=timeout)
        if not rows:
            raise NotFound(f"Maintenance schedule {schedule_id} not found")
        row = rows[0]
        try:
            schedule = MaintenanceSchedule.model_validate(row)
        except ValidationError as e:
            raise InvalidArgument(f"Maintenance schedule {schedule_id} is invalid: {e}") from e

        if expected_next_due is not None and as_naive(schedule.next_due) != as_naive(expected_next_due):
            logger.warning(
                "Schedule %s was already advanced (next due %s, caller saw %s)",
                schedule_id, schedule.next_due, expected_next_due,
            )
            raise Conflict(f"Maintenance schedule {schedule_id} was completed by someone else")

        new_next_due = now + timedelta(days=schedule.frequency_days)
        try:
            updated = tx.update(
                SCHEDULES,
                schedule_id,
                {"last_executed": now, "next_due": new_next_due},
                expected={"next_due": row["next_due"]},
            )
        except Conflict:
            logger.warning("Lost completion race for schedule %s", schedule_id)
            raise

        event = tx.create(EVENTS, {
            "event_type": EventType.SCHEDULED_MAINTENANCE,
            "description": f"Completed scheduled maintenance: {schedule.name}",
            "scheduled_date": schedule.next_due,
            "completed_date": now,
            "created_by": "system",
            "created_at": now,
            "equipment_id": schedule.equipment_id,
            "schedule_id": schedule.id,
        })

    logger.info(
        "Completed schedule %s: next due %s -> %s (event %s)",
        schedule_id, schedule.next_due, new_next_due, event["id"],
    )
    return MaintenanceSchedule.model_validate(updated)
