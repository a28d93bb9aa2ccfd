# maintenance_api/dependencies.py
from functools import lru_cache

from fastapi import Depends

from maintenance_core.database import SQLiteStorage, init_db
from maintenance_core.services import MaintenanceAnalytics
from maintenance_core.storage import Storage


@lru_cache(maxsize=1)
def get_db_path() -> str:
    # creates the schema on first use
    return init_db()


def get_storage() -> Storage:
    return SQLiteStorage(get_db_path())


def get_analytics(storage: Storage = Depends(get_storage)) -> MaintenanceAnalytics:
    return MaintenanceAnalytics(storage)
