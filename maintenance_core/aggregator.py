# maintenance_core/aggregator.py
"""Bucketing of timestamped records into reporting windows.

Every window shows up in the output, empty ones with the initial value, so
charts and trend maths always get one point per period.
"""
import copy
import logging
from bisect import bisect_right
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Generic, Hashable, Iterable, List, Optional, TypeVar

from maintenance_core.errors import InvalidArgument
from maintenance_core.models import TimeWindow

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")
K = TypeVar("K", bound=Hashable)


@dataclass(frozen=True)
class Bucket(Generic[R]):
    window: TimeWindow
    value: R


def _check_windows(windows: List[TimeWindow]) -> None:
    for window in windows:
        if window.end < window.start:
            raise InvalidArgument(f"Window {window.label} ends before it starts")
    for previous, current in zip(windows, windows[1:]):
        if current.start < previous.end:
            raise InvalidArgument(
                f"Windows must be chronological and non-overlapping: "
                f"{previous.label} overlaps {current.label}"
            )


def bucket(
    records: Iterable[T],
    windows: List[TimeWindow],
    key_of: Callable[[T], Optional[datetime]],
    reduce_init: R,
    reduce: Callable[[R, T], R],
) -> List[Bucket[R]]:
    """Reduce ``records`` per window, in window order.

    A record goes to the window whose ``[start, end)`` holds ``key_of(record)``.
    Records without a timestamp or outside every window are dropped.
    """
    _check_windows(windows)
    values = [copy.deepcopy(reduce_init) for _ in windows]
    starts = [window.start for window in windows]

    dropped = 0
    for record in records:
        moment = key_of(record)
        if moment is None:
            dropped += 1
            continue
        # windows are sorted and disjoint, so only the last one starting at
        # or before the moment can hold it
        index = bisect_right(starts, moment) - 1
        if index < 0 or not windows[index].contains(moment):
            dropped += 1
            continue
        values[index] = reduce(values[index], record)

    logger.debug("Bucketed records into %d windows, %d dropped", len(windows), dropped)
    return [Bucket(window=window, value=value) for window, value in zip(windows, values)]


def group_by(records: Iterable[T], key_of: Callable[[T], K]) -> Dict[K, List[T]]:
    """Group records by key, keeping first-seen key order and input order within a group."""
    groups: Dict[K, List[T]] = {}
    for record in records:
        groups.setdefault(key_of(record), []).append(record)
    return groups


# --- common reducers ---

def count(total: int, _record) -> int:
    return total + 1


def sum_of(value_of: Callable[[T], float]) -> Callable[[float, T], float]:
    def reducer(total: float, record: T) -> float:
        return total + value_of(record)
    return reducer
