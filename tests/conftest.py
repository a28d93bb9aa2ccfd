from datetime import datetime

import pytest

from maintenance_core.database import SQLiteStorage, init_db
from maintenance_core.services import MaintenanceAnalytics
from maintenance_core.storage import (
    EQUIPMENT,
    EQUIPMENT_PARTS,
    EVENTS,
    ORDER_ITEMS,
    ORDERS,
    PARTS,
    SCHEDULES,
    SUPPLIER_PARTS,
    SUPPLIERS,
    InMemoryStorage,
)

NOW = datetime(2024, 3, 15, 12, 0)


def dataset():
    """A small plant: two machines, three parts, four orders, six events, three schedules.

    Insertion order matters for SQLite foreign keys.
    """
    return {
        EQUIPMENT: [
            {"id": "e1", "name": "Press", "status": "HEALTHY"},
            {"id": "e2", "name": "Lathe", "status": "NEEDS_REPAIR"},
        ],
        PARTS: [
            {"id": "p1", "name": "Bearing", "current_stock": 10, "minimum_stock": 5},
            {"id": "p2", "name": "Belt", "current_stock": 0, "minimum_stock": 2},
            {"id": "p3", "name": "Seal", "current_stock": 3, "minimum_stock": 4},
        ],
        EQUIPMENT_PARTS: [
            {"id": "ep1", "equipment_id": "e1", "part_id": "p1", "quantity": 2},
            {"id": "ep2", "equipment_id": "e2", "part_id": "p1", "quantity": 1},
            {"id": "ep3", "equipment_id": "e1", "part_id": "p2", "quantity": 1},
        ],
        SUPPLIERS: [
            {"id": "s1", "name": "Acme"},
            {"id": "s2", "name": "Globex"},
        ],
        SUPPLIER_PARTS: [
            {"id": "sp1", "supplier_id": "s1", "part_id": "p1", "price": 12.5, "is_preferred": True},
            {"id": "sp2", "supplier_id": "s2", "part_id": "p1", "price": 11.0, "is_preferred": False},
            {"id": "sp3", "supplier_id": "s1", "part_id": "p2", "price": 4.0, "is_preferred": True},
        ],
        ORDERS: [
            {"id": "o1", "supplier_id": "s1", "order_date": datetime(2024, 2, 5),
             "delivery_date": datetime(2024, 2, 10), "status": "DELIVERED"},
            {"id": "o2", "supplier_id": "s1", "order_date": datetime(2024, 3, 1),
             "delivery_date": None, "status": "PENDING"},
            {"id": "o3", "supplier_id": "s2", "order_date": datetime(2024, 3, 2),
             "delivery_date": None, "status": "CANCELLED"},
            {"id": "o4", "supplier_id": "s2", "order_date": datetime(2024, 1, 20),
             "delivery_date": None, "status": "SHIPPED"},
        ],
        ORDER_ITEMS: [
            {"id": "oi1", "order_id": "o1", "part_id": "p1", "quantity": 2, "unit_price": 10.0},
            {"id": "oi2", "order_id": "o2", "part_id": "p2", "quantity": 1, "unit_price": 5.0},
            {"id": "oi3", "order_id": "o3", "part_id": "p1", "quantity": 10, "unit_price": 10.0},
            {"id": "oi4", "order_id": "o4", "part_id": "p3", "quantity": 3, "unit_price": 2.0},
        ],
        SCHEDULES: [
            {"id": "sc1", "name": "Lubrication", "frequency_days": 30,
             "last_executed": datetime(2024, 2, 9), "next_due": datetime(2024, 3, 10),
             "equipment_id": "e1"},
            {"id": "sc2", "name": "Filter replacement", "frequency_days": 14,
             "last_executed": datetime(2024, 3, 6, 12), "next_due": datetime(2024, 3, 20, 12),
             "equipment_id": "e2"},
            {"id": "sc3", "name": "Safety inspection", "frequency_days": 90,
             "last_executed": None, "next_due": datetime(2024, 5, 1), "equipment_id": None},
        ],
        EVENTS: [
            {"id": "ev1", "equipment_id": "e1", "event_type": "BREAKDOWN",
             "scheduled_date": datetime(2023, 12, 30), "completed_date": datetime(2024, 1, 1)},
            {"id": "ev2", "equipment_id": "e1", "part_id": "p1", "event_type": "BREAKDOWN",
             "completed_date": datetime(2024, 1, 11)},
            {"id": "ev3", "equipment_id": "e1", "event_type": "BREAKDOWN",
             "completed_date": datetime(2024, 1, 31)},
            {"id": "ev4", "equipment_id": "e2", "part_id": "p1", "event_type": "SCHEDULED_MAINTENANCE",
             "scheduled_date": datetime(2024, 3, 1), "completed_date": datetime(2024, 3, 2)},
            {"id": "ev5", "equipment_id": "e2", "event_type": "INSPECTION",
             "scheduled_date": datetime(2024, 3, 10)},
            {"id": "ev6", "equipment_id": "e2", "part_id": "p2", "event_type": "REPAIR",
             "scheduled_date": datetime(2024, 2, 14), "completed_date": datetime(2024, 2, 15, 6)},
        ],
    }


def load(storage, tables):
    with storage.transaction() as tx:
        for table, rows in tables.items():
            for row in rows:
                tx.create(table, row)
    return storage


@pytest.fixture
def memory_storage():
    return InMemoryStorage(dataset())


@pytest.fixture
def db_path(tmp_path):
    return init_db(str(tmp_path / "maintenance.db"))


@pytest.fixture
def sqlite_storage(db_path):
    return load(SQLiteStorage(db_path, timeout=5.0), dataset())


@pytest.fixture(params=["memory", "sqlite"])
def storage(request):
    return request.getfixturevalue(f"{request.param}_storage")


@pytest.fixture
def analytics(storage):
    return MaintenanceAnalytics(storage, clock=lambda: NOW, timeout=5.0, due_soon_days=7)
