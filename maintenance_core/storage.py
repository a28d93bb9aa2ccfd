# maintenance_core/storage.py
"""The storage collaborator the engine talks to.

Filters are plain dicts of ``column__op`` lookups::

    {"event_type": "BREAKDOWN", "completed_date__isnull": False,
     "completed_date__gte": start}

Supported ops: exact (no suffix), ne, in, isnull, gt, gte, lt, lte.
"""
import copy
import re
import threading
import uuid
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol, Sequence, Tuple

import pandas as pd

from maintenance_core.errors import Conflict, InvalidArgument, NotFound

EQUIPMENT = "equipment"
PARTS = "parts"
EQUIPMENT_PARTS = "equipment_parts"
SUPPLIERS = "suppliers"
SUPPLIER_PARTS = "supplier_parts"
ORDERS = "orders"
ORDER_ITEMS = "order_items"
SCHEDULES = "maintenance_schedules"
EVENTS = "maintenance_events"

TABLES = (
    EQUIPMENT, PARTS, EQUIPMENT_PARTS, SUPPLIERS, SUPPLIER_PARTS,
    ORDERS, ORDER_ITEMS, SCHEDULES, EVENTS,
)

LOOKUPS = ("exact", "ne", "in", "isnull", "gt", "gte", "lt", "lte")
AGGREGATE_FUNCS = ("count", "size", "sum", "mean", "min", "max")

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

Row = Dict[str, Any]
Aggregates = Mapping[str, Tuple[str, str]]


class Storage(Protocol):
    def find_many(
        self,
        table: str,
        where: Optional[Mapping[str, Any]] = None,
        columns: Optional[Sequence[str]] = None,
        order_by: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> List[Row]: ...

    def group_by(
        self,
        table: str,
        by: Sequence[str],
        aggregates: Aggregates,
        where: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> List[Row]: ...

    def update(
        self,
        table: str,
        row_id: str,
        patch: Mapping[str, Any],
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Row: ...

    def create(self, table: str, data: Mapping[str, Any]) -> Row: ...

    def transaction(self): ...


# --- helpers shared by the implementations ---

def check_table(table: str) -> str:
    if table not in TABLES:
        raise InvalidArgument(f"Unknown table {table!r}")
    return table


def check_identifier(name: str) -> str:
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise InvalidArgument(f"Invalid column name {name!r}")
    return name


def split_lookup(key: str) -> Tuple[str, str]:
    column, _, op = key.partition("__")
    op = op or "exact"
    if op not in LOOKUPS:
        raise InvalidArgument(f"Unsupported lookup {op!r} in {key!r}")
    return check_identifier(column), op


def split_order(entry: str) -> Tuple[str, bool]:
    """'-completed_date' -> ('completed_date', True)"""
    descending = entry.startswith("-")
    return check_identifier(entry.lstrip("-")), descending


def check_aggregates(by: Sequence[str], aggregates: Aggregates) -> None:
    if not by:
        raise InvalidArgument("group_by needs at least one column to group on")
    if not aggregates:
        raise InvalidArgument("group_by needs at least one aggregate")
    for column in by:
        check_identifier(column)
    for name, (column, func) in aggregates.items():
        check_identifier(name)
        check_identifier(column)
        if func not in AGGREGATE_FUNCS:
            raise InvalidArgument(f"Unsupported aggregate {func!r} for {name!r}")


def plain(value):
    """Enum members compare and store by their value."""
    if isinstance(value, Enum):
        return value.value
    return value


def new_id() -> str:
    return uuid.uuid4().hex


def _matches_one(actual, op: str, expected) -> bool:
    actual, expected = plain(actual), plain(expected)
    if op == "isnull":
        return (actual is None) == bool(expected)
    if op == "exact":
        return actual == expected
    if op == "ne":
        return actual != expected
    if op == "in":
        return actual in [plain(v) for v in expected]
    if actual is None or expected is None:
        return False
    if op == "gt":
        return actual > expected
    if op == "gte":
        return actual >= expected
    if op == "lt":
        return actual < expected
    return actual <= expected


def matches(row: Mapping[str, Any], where: Optional[Mapping[str, Any]]) -> bool:
    for key, expected in (where or {}).items():
        column, op = split_lookup(key)
        if not _matches_one(row.get(column), op, expected):
            return False
    return True


def aggregate_frame(frame: pd.DataFrame, by: Sequence[str], aggregates: Aggregates) -> List[Row]:
    """Named aggregation over ``frame``; NaN results come back as None."""
    if frame.empty:
        return []
    missing = [c for c in list(by) + [col for col, _ in aggregates.values()] if c not in frame.columns]
    if missing:
        raise InvalidArgument(f"Unknown columns: {', '.join(missing)}")

    named = {name: pd.NamedAgg(column=column, aggfunc=func) for name, (column, func) in aggregates.items()}
    grouped = frame.groupby(list(by), dropna=False, sort=True).agg(**named).reset_index()
    grouped = grouped.astype(object).where(grouped.notna(), None)
    return grouped.to_dict("records")


def _sort_key(column: str):
    def key(row):
        value = plain(row.get(column))
        return (value is None, value if value is not None else 0)
    return key


class InMemoryStorage:
    """Dict-backed storage; one lock serialises transactions across threads."""

    def __init__(self, tables: Optional[Mapping[str, Sequence[Row]]] = None):
        self._tables: Dict[str, Dict[str, Row]] = {name: {} for name in TABLES}
        self._lock = threading.RLock()
        for table, rows in (tables or {}).items():
            for row in rows:
                self.create(table, row)

    def find_many(self, table, where=None, columns=None, order_by=None, limit=None, timeout=None):
        check_table(table)
        with self._lock:
            rows = [dict(row) for row in self._tables[table].values() if matches(row, where)]
        for entry in reversed(list(order_by or [])):
            column, descending = split_order(entry)
            rows.sort(key=_sort_key(column), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        if columns:
            rows = [{c: row.get(check_identifier(c)) for c in columns} for row in rows]
        return rows

    def group_by(self, table, by, aggregates, where=None, timeout=None):
        check_aggregates(by, aggregates)
        rows = self.find_many(table, where=where)
        frame = pd.DataFrame([{k: plain(v) for k, v in row.items()} for row in rows])
        return aggregate_frame(frame, by, aggregates)

    def update(self, table, row_id, patch, expected=None):
        check_table(table)
        with self._lock:
            current = self._tables[table].get(row_id)
            if current is None:
                raise NotFound(f"No {table} row with id {row_id!r}")
            for column, value in (expected or {}).items():
                if plain(current.get(column)) != plain(value):
                    raise Conflict(
                        f"{table} row {row_id!r} changed concurrently: "
                        f"{column} is {current.get(column)!r}, expected {value!r}"
                    )
            for column in patch:
                check_identifier(column)
            current.update(patch)
            return dict(current)

    def create(self, table, data):
        check_table(table)
        row = dict(data)
        row.setdefault("id", new_id())
        for column in row:
            check_identifier(column)
        with self._lock:
            if row["id"] in self._tables[table]:
                raise Conflict(f"{table} row {row['id']!r} already exists")
            self._tables[table][row["id"]] = row
        return dict(row)

    @contextmanager
    def transaction(self) -> Iterator["InMemoryStorage"]:
        with self._lock:
            snapshot = copy.deepcopy(self._tables)
            try:
                yield self
            except BaseException:
                self._tables = snapshot
                raise
