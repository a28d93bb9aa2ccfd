# maintenance_core/models.py
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    SCHEDULED_MAINTENANCE = "SCHEDULED_MAINTENANCE"
    BREAKDOWN = "BREAKDOWN"
    REPAIR = "REPAIR"
    REPLACEMENT = "REPLACEMENT"
    INSPECTION = "INSPECTION"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class EquipmentStatus(str, Enum):
    HEALTHY = "HEALTHY"
    NEEDS_REPAIR = "NEEDS_REPAIR"
    NEEDS_REPLACEMENT = "NEEDS_REPLACEMENT"


class ScheduleState(str, Enum):
    OVERDUE = "overdue"
    DUE_SOON = "due-soon"
    UPCOMING = "upcoming"


class TimeUnit(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


# --- Storage rows (read as snapshots) ---

class Record(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Equipment(Record):
    id: str
    name: str = ""
    status: EquipmentStatus = EquipmentStatus.HEALTHY


class Part(Record):
    id: str
    name: str = ""
    current_stock: int = Field(ge=0)
    minimum_stock: int = Field(ge=0)


class Supplier(Record):
    id: str
    name: str


class SupplierPart(Record):
    id: Optional[str] = None
    supplier_id: str
    part_id: str
    price: float = Field(ge=0)
    is_preferred: bool = False


class OrderItem(Record):
    id: Optional[str] = None
    order_id: Optional[str] = None
    part_id: Optional[str] = None
    quantity: int = Field(ge=0)
    unit_price: float = Field(ge=0)


class Order(Record):
    id: str
    supplier_id: Optional[str] = None
    order_date: datetime
    delivery_date: Optional[datetime] = None
    status: OrderStatus = OrderStatus.PENDING
    items: List[OrderItem] = Field(default_factory=list)

    @property
    def total(self) -> float:
        return sum(item.quantity * item.unit_price for item in self.items)


class MaintenanceSchedule(Record):
    id: str
    name: str
    description: Optional[str] = None
    frequency_days: int = Field(gt=0)
    last_executed: Optional[datetime] = None
    next_due: Optional[datetime] = None
    equipment_id: Optional[str] = None


class MaintenanceEvent(Record):
    id: Optional[str] = None
    equipment_id: Optional[str] = None
    part_id: Optional[str] = None
    schedule_id: Optional[str] = None
    event_type: EventType
    scheduled_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    description: Optional[str] = None
    created_by: str = "system"
    created_at: Optional[datetime] = None


# --- Computed results ---

class TimeWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    label: str

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


class StockCompliance(BaseModel):
    percentage: int
    compliant_count: int
    total_count: int


class TurnoverPoint(BaseModel):
    period: str
    rate: float


class InventoryTurnover(BaseModel):
    series: List[TurnoverPoint]
    trend: float
    average_inventory: float


class MaintenanceMixPoint(BaseModel):
    period: str
    preventive_count: int = 0
    reactive_count: int = 0


class MaintenanceMix(BaseModel):
    series: List[MaintenanceMixPoint]
    preventive_count: int
    reactive_count: int
    preventive_percentage: int


class MTBF(BaseModel):
    average_days: int
    interval_count: int


class MaintenanceDuration(BaseModel):
    average_days: int
    total_days: int
    sample_count: int


class CompletionRate(BaseModel):
    percentage: int
    completed_count: int
    total_count: int


class OrderFinancialPoint(BaseModel):
    period: str
    delivered: float = 0.0
    pending: float = 0.0


class CancellationRatio(BaseModel):
    percentage: int
    cancelled_count: int
    total_count: int


class SupplierPriceRow(BaseModel):
    part_id: str
    part: str
    prices: Dict[str, float]
    cheapest_supplier: str
    preferred_supplier: Optional[str] = None


class SupplierPriceComparison(BaseModel):
    rows: List[SupplierPriceRow]
    suppliers: List[str]


class PartPrice(BaseModel):
    supplier: str
    price: float
    is_preferred: bool


class ScheduleStatus(BaseModel):
    schedule_id: str
    name: str
    status: ScheduleState
    days_until_due: int
    next_due: Optional[datetime] = None


class ScheduleKpis(BaseModel):
    overdue: int = 0
    due_within_week: int = 0
    future: int = 0


class OutOfStockPart(BaseModel):
    id: str
    name: str
    current_stock: int
    minimum_stock: int
    shortfall: int


class StockOutCount(BaseModel):
    name: str
    stock_outs: int


class PartUsage(BaseModel):
    part_id: str
    name: str
    count: int


class EquipmentStatusCounts(BaseModel):
    # part links per status of the equipment they are fitted to
    counts: Dict[str, int]
    total: int
    healthy_percentage: int
