# maintenance_core/reliability.py
"""Reliability statistics over maintenance events and parts.

All functions are pure. When there is nothing to measure they raise
``NoData`` rather than returning zero: a mean duration of 0 would read as
"instant", an MTBF of 0 as "fails constantly".
"""
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from maintenance_core.aggregator import bucket
from maintenance_core.errors import NoData
from maintenance_core.models import (
    CompletionRate,
    EventType,
    MaintenanceDuration,
    MaintenanceEvent,
    MaintenanceMix,
    MaintenanceMixPoint,
    MTBF,
    Part,
    StockCompliance,
    TimeWindow,
)
from maintenance_core.numbers import ceil_days, percentage, round_half_up

PREVENTIVE_TYPES = frozenset({EventType.SCHEDULED_MAINTENANCE, EventType.INSPECTION})

Classifier = Callable[[MaintenanceEvent], bool]


def is_preventive(event: MaintenanceEvent) -> bool:
    """Default classification: scheduled work and inspections are preventive."""
    return event.event_type in PREVENTIVE_TYPES


def replacement_as_preventive(event: MaintenanceEvent) -> bool:
    """Alternative classification that counts planned replacements as preventive."""
    return event.event_type in PREVENTIVE_TYPES or event.event_type == EventType.REPLACEMENT


def event_moment(event: MaintenanceEvent) -> Optional[datetime]:
    """When an event happened, for bucketing purposes."""
    return event.completed_date or event.scheduled_date or event.created_at


def mean_maintenance_duration(events: Iterable[MaintenanceEvent]) -> MaintenanceDuration:
    durations = [
        ceil_days(event.completed_date, event.scheduled_date)
        for event in events
        if event.scheduled_date is not None and event.completed_date is not None
    ]
    if not durations:
        raise NoData("No maintenance events with both a scheduled and a completed date")

    total = sum(durations)
    return MaintenanceDuration(
        average_days=round_half_up(total / len(durations)),
        total_days=total,
        sample_count=len(durations),
    )


def mean_time_between_failures(events: Iterable[MaintenanceEvent]) -> MTBF:
    failures = sorted(
        (e.completed_date for e in events
         if e.event_type == EventType.BREAKDOWN and e.completed_date is not None),
    )
    if len(failures) < 2:
        # one failure has no interval to measure
        raise NoData(f"MTBF needs at least 2 completed breakdowns, found {len(failures)}")

    gaps = [ceil_days(current, previous) for previous, current in zip(failures, failures[1:])]
    return MTBF(
        average_days=round_half_up(sum(gaps) / len(gaps)),
        interval_count=len(gaps),
    )


def completion_rate(events: Iterable[MaintenanceEvent]) -> CompletionRate:
    events = list(events)
    completed = sum(1 for e in events if e.completed_date is not None)
    return CompletionRate(
        percentage=percentage(completed, len(events)),
        completed_count=completed,
        total_count=len(events),
    )


def stock_compliance(parts: Iterable[Part]) -> StockCompliance:
    """Share of parts holding at least their minimum stock. 0% for no parts."""
    parts = list(parts)
    compliant = sum(1 for p in parts if p.current_stock >= p.minimum_stock)
    return StockCompliance(
        percentage=percentage(compliant, len(parts)),
        compliant_count=compliant,
        total_count=len(parts),
    )


def preventive_reactive_split(
    events: Iterable[MaintenanceEvent],
    windows: List[TimeWindow],
    classifier: Classifier = is_preventive,
) -> MaintenanceMix:
    def tally(counts, event):
        preventive, reactive = counts
        if classifier(event):
            return preventive + 1, reactive
        return preventive, reactive + 1

    buckets = bucket(events, windows, key_of=event_moment, reduce_init=(0, 0), reduce=tally)
    series = [
        MaintenanceMixPoint(
            period=b.window.label,
            preventive_count=b.value[0],
            reactive_count=b.value[1],
        )
        for b in buckets
    ]
    preventive = sum(point.preventive_count for point in series)
    reactive = sum(point.reactive_count for point in series)
    return MaintenanceMix(
        series=series,
        preventive_count=preventive,
        reactive_count=reactive,
        preventive_percentage=percentage(preventive, preventive + reactive),
    )
