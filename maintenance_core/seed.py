# maintenance_core/seed.py
"""Fill an empty database with plausible demo data.

    python -m maintenance_core.seed [db_path]
"""
import logging
import random
import sys
from datetime import datetime, timedelta
from typing import Dict, Optional

from maintenance_core.database import SQLiteStorage, init_db
from maintenance_core.models import EquipmentStatus, EventType, OrderStatus
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
    Storage,
)

logger = logging.getLogger(__name__)

EQUIPMENT_NAMES = ["Hydraulic Press", "CNC Lathe", "Conveyor Belt", "Air Compressor", "Packaging Robot"]
PART_NAMES = ["Bearing 6204", "V-Belt A42", "Hydraulic Seal", "Air Filter", "Drive Motor", "Proximity Sensor"]
SUPPLIER_NAMES = ["Acme Industrial", "Northwind Parts", "Globex Supply"]
SCHEDULE_NAMES = ["Lubrication", "Filter replacement", "Belt tension check", "Safety inspection"]
FREQUENCIES = [7, 14, 30, 90, 180, 365]


def seed(storage: Storage, now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> Dict[str, int]:
    """Create demo rows through ``storage`` in one transaction and return per-table counts."""
    now = now or datetime.now()
    rng = rng or random.Random(42)
    counts = {}

    with storage.transaction() as tx:
        equipment = [
            tx.create(EQUIPMENT, {"name": name, "status": rng.choice(list(EquipmentStatus))})
            for name in EQUIPMENT_NAMES
        ]
        parts = [
            tx.create(PARTS, {
                "name": name,
                "current_stock": rng.randint(0, 40),
                "minimum_stock": rng.randint(5, 15),
            })
            for name in PART_NAMES
        ]
        suppliers = [tx.create(SUPPLIERS, {"name": name}) for name in SUPPLIER_NAMES]

        links = 0
        for machine in equipment:
            for part in rng.sample(parts, 2):
                tx.create(EQUIPMENT_PARTS, {
                    "equipment_id": machine["id"], "part_id": part["id"], "quantity": rng.randint(1, 4),
                })
                links += 1

        offers = 0
        for part in parts:
            for index, supplier in enumerate(rng.sample(suppliers, rng.randint(1, len(suppliers)))):
                tx.create(SUPPLIER_PARTS, {
                    "supplier_id": supplier["id"],
                    "part_id": part["id"],
                    "price": round(rng.uniform(10, 500), 2),
                    "is_preferred": index == 0,
                })
                offers += 1

        items = 0
        for _ in range(30):
            order_date = now - timedelta(days=rng.randint(0, 360))
            status = rng.choice(list(OrderStatus))
            order = tx.create(ORDERS, {
                "supplier_id": rng.choice(suppliers)["id"],
                "order_date": order_date,
                "delivery_date": order_date + timedelta(days=rng.randint(3, 20))
                if status == OrderStatus.DELIVERED else None,
                "status": status,
            })
            for part in rng.sample(parts, rng.randint(1, 3)):
                tx.create(ORDER_ITEMS, {
                    "order_id": order["id"],
                    "part_id": part["id"],
                    "quantity": rng.randint(1, 10),
                    "unit_price": round(rng.uniform(10, 500), 2),
                })
                items += 1

        for name in SCHEDULE_NAMES:
            frequency = rng.choice(FREQUENCIES)
            last_executed = now - timedelta(days=rng.randint(1, int(frequency * 1.5)))
            tx.create(SCHEDULES, {
                "name": name,
                "frequency_days": frequency,
                "last_executed": last_executed,
                "next_due": last_executed + timedelta(days=frequency),
                "equipment_id": rng.choice(equipment)["id"],
            })

        events = 0
        for _ in range(60):
            scheduled = now - timedelta(days=rng.randint(0, 180))
            completed = scheduled + timedelta(hours=rng.randint(1, 96)) if rng.random() < 0.85 else None
            tx.create(EVENTS, {
                "equipment_id": rng.choice(equipment)["id"],
                "part_id": rng.choice(parts)["id"] if rng.random() < 0.5 else None,
                "event_type": rng.choice(list(EventType)),
                "scheduled_date": scheduled,
                "completed_date": completed,
                "created_by": "seed",
                "created_at": scheduled,
            })
            events += 1

    counts.update({
        EQUIPMENT: len(equipment), PARTS: len(parts), SUPPLIERS: len(suppliers),
        EQUIPMENT_PARTS: links, SUPPLIER_PARTS: offers, ORDERS: 30, ORDER_ITEMS: items,
        SCHEDULES: len(SCHEDULE_NAMES), EVENTS: events,
    })
    logger.info("Seeded demo data: %s", counts)
    return counts


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    path = init_db(sys.argv[1] if len(sys.argv) > 1 else None)
    seed(SQLiteStorage(path))
