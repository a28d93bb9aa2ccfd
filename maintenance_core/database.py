# maintenance_core/database.py
import logging
import os
import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

import pandas as pd

from maintenance_core.config import DB_FILENAME, get_settings
from maintenance_core.errors import Conflict, NotFound, Unavailable
from maintenance_core.storage import (
    aggregate_frame,
    check_aggregates,
    check_identifier,
    check_table,
    new_id,
    plain,
    split_lookup,
    split_order,
)

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS equipment (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'HEALTHY'
);
CREATE TABLE IF NOT EXISTS parts (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    current_stock INTEGER NOT NULL DEFAULT 0,
    minimum_stock INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS equipment_parts (
    id TEXT PRIMARY KEY,
    equipment_id TEXT NOT NULL REFERENCES equipment(id),
    part_id TEXT NOT NULL REFERENCES parts(id),
    quantity INTEGER NOT NULL DEFAULT 1
);
CREATE TABLE IF NOT EXISTS suppliers (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS supplier_parts (
    id TEXT PRIMARY KEY,
    supplier_id TEXT NOT NULL REFERENCES suppliers(id),
    part_id TEXT NOT NULL REFERENCES parts(id),
    price REAL NOT NULL,
    is_preferred INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS orders (
    id TEXT PRIMARY KEY,
    supplier_id TEXT REFERENCES suppliers(id),
    order_date TEXT NOT NULL,
    delivery_date TEXT,
    status TEXT NOT NULL DEFAULT 'PENDING'
);
CREATE TABLE IF NOT EXISTS order_items (
    id TEXT PRIMARY KEY,
    order_id TEXT NOT NULL REFERENCES orders(id),
    part_id TEXT REFERENCES parts(id),
    quantity INTEGER NOT NULL,
    unit_price REAL NOT NULL
);
CREATE TABLE IF NOT EXISTS maintenance_schedules (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT,
    frequency_days INTEGER NOT NULL CHECK (frequency_days > 0),
    last_executed TEXT,
    next_due TEXT,
    equipment_id TEXT REFERENCES equipment(id)
);
CREATE TABLE IF NOT EXISTS maintenance_events (
    id TEXT PRIMARY KEY,
    equipment_id TEXT REFERENCES equipment(id),
    part_id TEXT REFERENCES parts(id),
    schedule_id TEXT REFERENCES maintenance_schedules(id),
    event_type TEXT NOT NULL,
    scheduled_date TEXT,
    completed_date TEXT,
    description TEXT,
    created_by TEXT NOT NULL DEFAULT 'system',
    created_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_events_completed ON maintenance_events(completed_date);
CREATE INDEX IF NOT EXISTS idx_events_equipment ON maintenance_events(equipment_id);
"""

# progress handler granularity, in SQLite VM instructions
PROGRESS_STEPS = 1000


def resolve_db_path(db_path: Optional[str] = None) -> str:
    """
    Find the database file: explicit path, MAINTENANCE_DB_PATH, then known locations
    """
    db_path = db_path or get_settings().db_path
    if db_path:
        return db_path

    possible_paths = [
        # Next to the package
        os.path.join(os.path.dirname(__file__), DB_FILENAME),
        # Project root
        os.path.join(os.path.dirname(__file__), "..", DB_FILENAME),
        # Current directory
        DB_FILENAME,
    ]
    for path in possible_paths:
        if os.path.exists(path):
            return path

    # If no existing database found, create in current directory
    return DB_FILENAME


def to_db(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    return plain(value)


def init_db(db_path: Optional[str] = None) -> str:
    path = resolve_db_path(db_path)
    conn = sqlite3.connect(path)
    try:
        conn.executescript(SCHEMA)
        conn.commit()
    finally:
        conn.close()
    logger.info("Database ready at %s", os.path.abspath(path))
    return path


def compile_where(where):
    clauses, params = [], []
    for key, value in (where or {}).items():
        column, op = split_lookup(key)
        if op == "isnull":
            clauses.append(f"{column} IS NULL" if value else f"{column} IS NOT NULL")
        elif op == "exact" and value is None:
            clauses.append(f"{column} IS NULL")
        elif op == "ne" and value is None:
            clauses.append(f"{column} IS NOT NULL")
        elif op == "in":
            values = list(value)
            if not values:
                clauses.append("0")
                continue
            clauses.append(f"{column} IN ({','.join('?' * len(values))})")
            params.extend(to_db(v) for v in values)
        else:
            operator = {"exact": "=", "ne": "!=", "gt": ">", "gte": ">=", "lt": "<", "lte": "<="}[op]
            if op == "ne":
                clauses.append(f"({column} != ? OR {column} IS NULL)")
            else:
                clauses.append(f"{column} {operator} ?")
            params.append(to_db(value))
    sql = " WHERE " + " AND ".join(clauses) if clauses else ""
    return sql, params


@contextmanager
def translate_errors(what: str):
    try:
        yield
    except sqlite3.IntegrityError as e:
        raise Conflict(f"{what} violated a constraint: {e}") from e
    except sqlite3.OperationalError as e:
        if "interrupted" in str(e):
            logger.warning("%s timed out", what)
            raise Unavailable(f"{what} timed out") from e
        logger.warning("%s failed: %s", what, e)
        raise Unavailable(f"{what} failed: {e}") from e
    except sqlite3.DatabaseError as e:
        raise Unavailable(f"{what} failed: {e}") from e
    except pd.errors.DatabaseError as e:
        # pandas wraps the sqlite3 error; the original is the cause
        if "interrupted" in f"{e} {e.__cause__}":
            logger.warning("%s timed out", what)
            raise Unavailable(f"{what} timed out") from e
        logger.warning("%s failed: %s", what, e)
        raise Unavailable(f"{what} failed: {e.__cause__ or e}") from e


@contextmanager
def deadline(conn: sqlite3.Connection, timeout: Optional[float]):
    """Interrupt any statement still running after ``timeout`` seconds."""
    if timeout is None:
        yield
        return
    expires = time.monotonic() + timeout
    conn.set_progress_handler(lambda: 1 if time.monotonic() > expires else 0, PROGRESS_STEPS)
    try:
        yield
    finally:
        conn.set_progress_handler(None, PROGRESS_STEPS)


class SQLiteStorage:
    """Storage collaborator over a SQLite file.

    Each call opens its own connection, so instances can be shared between
    threads. ``transaction()`` hands out a storage bound to one connection
    holding the write lock (``BEGIN IMMEDIATE``) until commit or rollback.
    """

    def __init__(self, db_path: Optional[str] = None, timeout: Optional[float] = None, _conn=None):
        self.db_path = resolve_db_path(db_path)
        self.timeout = get_settings().storage_timeout if timeout is None else timeout
        self._conn = _conn

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None: we issue BEGIN/COMMIT ourselves
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        except sqlite3.Error as e:
            raise Unavailable(f"Cannot open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _session(self):
        if self._conn is not None:
            yield self._conn
            return
        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    def _execute(self, sql, params=(), timeout=None, what="query"):
        logger.debug("SQL %s %s", sql, params)
        with self._session() as conn, translate_errors(what), deadline(conn, timeout or self.timeout):
            cursor = conn.execute(sql, params)
            if cursor.description is None:
                return cursor.rowcount, []
            return cursor.rowcount, [dict(row) for row in cursor.fetchall()]

    def find_many(self, table, where=None, columns=None, order_by=None, limit=None, timeout=None):
        check_table(table)
        selected = ", ".join(check_identifier(c) for c in columns) if columns else "*"
        where_sql, params = compile_where(where)
        sql = f"SELECT {selected} FROM {table}{where_sql}"
        if order_by:
            parts = []
            for entry in order_by:
                column, descending = split_order(entry)
                parts.append(f"{column} {'DESC' if descending else 'ASC'}")
            sql += " ORDER BY " + ", ".join(parts)
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        _, rows = self._execute(sql, params, timeout, what=f"Reading {table}")
        return rows

    def group_by(self, table, by, aggregates, where=None, timeout=None):
        check_table(table)
        check_aggregates(by, aggregates)
        columns = list(dict.fromkeys(list(by) + [column for column, _ in aggregates.values()]))
        where_sql, params = compile_where(where)
        sql = f"SELECT {', '.join(columns)} FROM {table}{where_sql}"
        logger.debug("SQL %s %s", sql, params)
        with self._session() as conn, translate_errors(f"Grouping {table}"), deadline(conn, timeout or self.timeout):
            frame = pd.read_sql_query(sql, conn, params=params)
        return aggregate_frame(frame, by, aggregates)

    def _get(self, table, row_id):
        _, rows = self._execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,), what=f"Reading {table}")
        return rows[0] if rows else None

    def update(self, table, row_id, patch, expected=None):
        check_table(table)
        assignments = ", ".join(f"{check_identifier(c)} = ?" for c in patch)
        params = [to_db(v) for v in patch.values()] + [row_id]
        sql = f"UPDATE {table} SET {assignments} WHERE id = ?"
        for column, value in (expected or {}).items():
            # IS compares NULLs as equal
            sql += f" AND {check_identifier(column)} IS ?"
            params.append(to_db(value))

        rowcount, _ = self._execute(sql, params, what=f"Updating {table}")
        if rowcount == 0:
            if self._get(table, row_id) is None:
                raise NotFound(f"No {table} row with id {row_id!r}")
            raise Conflict(f"{table} row {row_id!r} changed concurrently")
        return self._get(table, row_id)

    def create(self, table, data):
        check_table(table)
        row = dict(data)
        row.setdefault("id", new_id())
        columns = [check_identifier(c) for c in row]
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join('?' * len(columns))})"
        self._execute(sql, [to_db(v) for v in row.values()], what=f"Inserting into {table}")
        return self._get(table, row["id"])

    @contextmanager
    def transaction(self):
        if self._conn is not None:
            # already inside one; join it
            yield self
            return

        conn = self._connect()
        try:
            with translate_errors("Starting transaction"):
                conn.execute("BEGIN IMMEDIATE")
            bound = SQLiteStorage(self.db_path, self.timeout, _conn=conn)
            try:
                yield bound
            except BaseException:
                # an interrupted statement may already have ended it
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            with translate_errors("Committing transaction"):
                conn.execute("COMMIT")
        finally:
            conn.close()
