# maintenance_core/timewindow.py
"""Calendar-aligned reporting windows.

``windows(3, TimeUnit.MONTH, now)`` on 2024-03-15 gives January, February and
March-so-far. Windows are half open ``[start, end)`` and contiguous; the last
one ends at the anchor itself, not at the end of its calendar unit.
"""
from datetime import datetime
from typing import List, Union

import pandas as pd

from maintenance_core.errors import InvalidArgument
from maintenance_core.models import TimeUnit, TimeWindow

# Weeks start on Monday (pandas "W-SUN" periods end on Sunday)
PERIOD_FREQ = {
    TimeUnit.DAY: "D",
    TimeUnit.WEEK: "W-SUN",
    TimeUnit.MONTH: "M",
}


def parse_unit(unit: Union[str, TimeUnit]) -> TimeUnit:
    try:
        return TimeUnit(unit)
    except ValueError:
        raise InvalidArgument(f"Unknown time unit {unit!r}; expected one of day, week, month")


def _as_datetime(ts: pd.Timestamp, tzinfo) -> datetime:
    moment = ts.to_pydatetime()
    if tzinfo is not None:
        moment = moment.replace(tzinfo=tzinfo)
    return moment


def windows(count: int, unit: Union[str, TimeUnit], anchor: datetime) -> List[TimeWindow]:
    """Return ``count`` windows of ``unit`` ending at ``anchor``, oldest first."""
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise InvalidArgument(f"Window count must be an integer >= 1, got {count!r}")
    unit = parse_unit(unit)

    tzinfo = anchor.tzinfo
    current = pd.Period(anchor.replace(tzinfo=None), freq=PERIOD_FREQ[unit])

    result = []
    for offset in range(count - 1, -1, -1):
        period = current - offset
        start = _as_datetime(period.start_time, tzinfo)
        if offset == 0:
            end = anchor
        else:
            end = _as_datetime((period + 1).start_time, tzinfo)
        result.append(TimeWindow(start=start, end=end, label=str(period)))
    return result
