"""Tests for the SQLite storage: queries, optimistic updates, transactions, timeouts."""

import sqlite3
import threading
from datetime import datetime, timedelta

import pytest

from maintenance_core.database import SQLiteStorage, compile_where, resolve_db_path, to_db
from maintenance_core.errors import Conflict, InvalidArgument, NotFound, Unavailable
from maintenance_core.models import EventType, MaintenanceSchedule
from maintenance_core.schedules import complete_schedule
from maintenance_core.services import MaintenanceAnalytics
from maintenance_core.storage import EQUIPMENT, EVENTS, PARTS, SCHEDULES

NOW = datetime(2024, 3, 15, 12, 0)


class TestCompileWhere:
    def test_operators(self):
        sql, params = compile_where({
            "event_type": EventType.BREAKDOWN,
            "completed_date__gte": datetime(2024, 1, 1),
            "part_id__isnull": False,
        })
        assert sql == " WHERE event_type = ? AND completed_date >= ? AND part_id IS NOT NULL"
        assert params == ["BREAKDOWN", "2024-01-01T00:00:00"]

    def test_null_and_empty_in(self):
        sql, params = compile_where({"equipment_id": None, "id__in": []})
        assert sql == " WHERE equipment_id IS NULL AND 0"
        assert params == []

    def test_no_filter(self):
        assert compile_where(None) == ("", [])

    def test_rejects_injection(self):
        with pytest.raises(InvalidArgument):
            compile_where({"id; DROP TABLE parts": 1})

    def test_to_db(self):
        assert to_db(True) == 1
        assert to_db(EventType.REPAIR) == "REPAIR"


def test_explicit_path_wins(tmp_path):
    assert resolve_db_path(str(tmp_path / "x.db")) == str(tmp_path / "x.db")


class TestQueries:
    def test_find_many_round_trips_through_models(self, sqlite_storage):
        rows = sqlite_storage.find_many(SCHEDULES, order_by=["next_due"])
        schedules = [MaintenanceSchedule.model_validate(row) for row in rows]
        assert [s.id for s in schedules] == ["sc1", "sc2", "sc3"]
        assert schedules[1].next_due == datetime(2024, 3, 20, 12)

    def test_date_range_filter(self, sqlite_storage):
        rows = sqlite_storage.find_many(EVENTS, where={
            "completed_date__gte": datetime(2024, 1, 11),
            "completed_date__lt": datetime(2024, 2, 1),
        }, order_by=["completed_date"])
        assert [r["id"] for r in rows] == ["ev2", "ev3"]

    def test_limit_and_columns(self, sqlite_storage):
        rows = sqlite_storage.find_many(PARTS, columns=["id"], order_by=["-current_stock"], limit=1)
        assert rows == [{"id": "p1"}]

    def test_group_by(self, sqlite_storage):
        groups = sqlite_storage.group_by(EVENTS, ["equipment_id"], {
            "n": ("id", "count"),
        })
        assert {g["equipment_id"]: g["n"] for g in groups} == {"e1": 3, "e2": 3}

    def test_unknown_column_is_unavailable(self, sqlite_storage):
        with pytest.raises(Unavailable):
            sqlite_storage.find_many(PARTS, where={"colour": "red"})


class TestWrites:
    def test_update_with_stale_expected_conflicts(self, sqlite_storage):
        with pytest.raises(Conflict):
            sqlite_storage.update(SCHEDULES, "sc1", {"next_due": NOW}, expected={"next_due": "2020-01-01T00:00:00"})

    def test_update_expected_null(self, sqlite_storage):
        row = sqlite_storage.update(SCHEDULES, "sc3", {"last_executed": NOW}, expected={"last_executed": None})
        assert row["last_executed"] == NOW.isoformat()

    def test_update_missing_row(self, sqlite_storage):
        with pytest.raises(NotFound):
            sqlite_storage.update(SCHEDULES, "nope", {"next_due": NOW})

    def test_duplicate_id_conflicts(self, sqlite_storage):
        with pytest.raises(Conflict):
            sqlite_storage.create(EQUIPMENT, {"id": "e1", "name": "Again"})

    def test_foreign_keys_enforced(self, sqlite_storage):
        with pytest.raises(Conflict):
            sqlite_storage.create(EVENTS, {"event_type": "REPAIR", "equipment_id": "ghost"})

    def test_check_constraint(self, sqlite_storage):
        with pytest.raises(Conflict):
            sqlite_storage.create(SCHEDULES, {"name": "Broken", "frequency_days": 0})

    def test_transaction_rolls_back(self, sqlite_storage):
        with pytest.raises(RuntimeError):
            with sqlite_storage.transaction() as tx:
                tx.update(PARTS, "p1", {"current_stock": 0})
                raise RuntimeError("boom")
        assert sqlite_storage.find_many(PARTS, where={"id": "p1"})[0]["current_stock"] == 10

    def test_nested_transaction_joins_outer(self, sqlite_storage):
        with pytest.raises(RuntimeError):
            with sqlite_storage.transaction() as outer:
                with outer.transaction() as inner:
                    inner.update(PARTS, "p1", {"current_stock": 1})
                raise RuntimeError("boom")
        assert sqlite_storage.find_many(PARTS, where={"id": "p1"})[0]["current_stock"] == 10


class TestCompletion:
    def test_advances_and_logs_event(self, sqlite_storage):
        updated = complete_schedule(sqlite_storage, "sc1", now=NOW)
        assert updated.next_due == NOW + timedelta(days=30)

        (event,) = sqlite_storage.find_many(EVENTS, where={"schedule_id": "sc1"})
        assert event["event_type"] == "SCHEDULED_MAINTENANCE"
        assert event["scheduled_date"] == datetime(2024, 3, 10).isoformat()
        assert event["equipment_id"] == "e1"

    def test_concurrent_completions(self, db_path, sqlite_storage):
        barrier = threading.Barrier(2)
        outcomes = []

        def worker():
            storage = SQLiteStorage(db_path, timeout=5.0)
            barrier.wait()
            try:
                complete_schedule(storage, "sc1", now=NOW, expected_next_due=datetime(2024, 3, 10))
                outcomes.append("ok")
            except Conflict:
                outcomes.append("conflict")

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert sorted(outcomes) == ["conflict", "ok"]
        assert len(sqlite_storage.find_many(EVENTS, where={"schedule_id": "sc1"})) == 1


class TestTimeouts:
    def test_held_write_lock_is_unavailable(self, db_path, sqlite_storage):
        blocker = sqlite3.connect(db_path, isolation_level=None)
        try:
            blocker.execute("BEGIN IMMEDIATE")
            impatient = SQLiteStorage(db_path, timeout=0.2)
            with pytest.raises(Unavailable):
                complete_schedule(impatient, "sc1", now=NOW)
        finally:
            blocker.execute("ROLLBACK")
            blocker.close()

        (row,) = sqlite_storage.find_many(SCHEDULES, where={"id": "sc1"})
        assert row["next_due"] == datetime(2024, 3, 10).isoformat()

    def test_group_by_failure_is_unavailable(self, sqlite_storage):
        with pytest.raises(Unavailable):
            sqlite_storage.group_by(PARTS, ["colour"], {"n": ("id", "count")})

    def test_report_over_unmigrated_database_is_unavailable(self, tmp_path):
        analytics = MaintenanceAnalytics(SQLiteStorage(str(tmp_path / "empty.db"), timeout=0.5), clock=lambda: NOW)
        with pytest.raises(Unavailable):
            analytics.get_stock_out_counts()
        with pytest.raises(Unavailable):
            analytics.get_equipment_status_counts()

    def test_interrupted_group_by_is_unavailable(self, db_path, caplog):
        conn = sqlite3.connect(db_path)
        conn.executemany(
            "INSERT INTO parts (id, name) VALUES (?, ?)",
            ((f"bulk{i}", f"name{i % 7}") for i in range(20000)),
        )
        conn.commit()
        conn.close()

        storage = SQLiteStorage(db_path, timeout=5.0)
        with pytest.raises(Unavailable, match="timed out"):
            storage.group_by(PARTS, ["name"], {"n": ("id", "count")}, timeout=1e-9)
        assert "timed out" in caplog.text

    def test_missing_directory_is_unavailable(self, tmp_path):
        storage = SQLiteStorage(str(tmp_path / "no" / "such" / "dir.db"), timeout=0.2)
        with pytest.raises(Unavailable):
            storage.find_many(PARTS)
