# maintenance_core/services.py
"""Report-facing operations over an injected storage collaborator.

``MaintenanceAnalytics`` fetches rows, hands them to the pure calculators
and returns view-ready results. Storage failures propagate as
``Unavailable``; nothing here substitutes zeros for missing data.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Type, TypeVar, Union

from pydantic import ValidationError

from maintenance_core import kpis, reliability, schedules
from maintenance_core.aggregator import group_by
from maintenance_core.config import get_settings
from maintenance_core.errors import InvalidArgument, NotFound
from maintenance_core.models import (
    CancellationRatio,
    CompletionRate,
    EquipmentStatus,
    EquipmentStatusCounts,
    EventType,
    InventoryTurnover,
    MaintenanceDuration,
    MaintenanceEvent,
    MaintenanceMix,
    MaintenanceSchedule,
    MTBF,
    Order,
    OrderFinancialPoint,
    OrderItem,
    OutOfStockPart,
    Part,
    PartPrice,
    PartUsage,
    ScheduleKpis,
    ScheduleStatus,
    StockCompliance,
    StockOutCount,
    Supplier,
    SupplierPart,
    SupplierPriceComparison,
    TimeUnit,
)
from maintenance_core.numbers import percentage
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
    plain,
)
from maintenance_core.timewindow import windows

logger = logging.getLogger(__name__)

M = TypeVar("M")


def _check_positive(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidArgument(f"{name} must be an integer >= 1, got {value!r}")
    return value


class MaintenanceAnalytics:
    def __init__(
        self,
        storage: Storage,
        clock: Callable[[], datetime] = datetime.now,
        timeout: Optional[float] = None,
        due_soon_days: Optional[int] = None,
        classifier: reliability.Classifier = reliability.is_preventive,
    ):
        settings = get_settings()
        self.storage = storage
        self.clock = clock
        self.timeout = settings.storage_timeout if timeout is None else timeout
        self.due_soon_days = settings.due_soon_days if due_soon_days is None else due_soon_days
        self.classifier = classifier

    # --- loading ---

    def _load(self, model: Type[M], table: str, **query) -> List[M]:
        rows = self.storage.find_many(table, timeout=self.timeout, **query)
        result = []
        for row in rows:
            try:
                result.append(model.model_validate(row))
            except ValidationError as e:
                raise InvalidArgument(f"Invalid {table} row {row.get('id')!r}: {e}") from e
        return result

    def _events(self, equipment_id: Optional[str] = None, **where) -> List[MaintenanceEvent]:
        if equipment_id is not None:
            where["equipment_id"] = equipment_id
        return self._load(MaintenanceEvent, EVENTS, where=where)

    def _orders(self) -> List[Order]:
        orders = self._load(Order, ORDERS)
        if not orders:
            return orders
        by_order = group_by(self._load(OrderItem, ORDER_ITEMS), lambda item: item.order_id)
        return [order.model_copy(update={"items": by_order.get(order.id, [])}) for order in orders]

    def _names(self, table: str) -> Dict[str, str]:
        rows = self.storage.find_many(table, columns=["id", "name"], timeout=self.timeout)
        return {row["id"]: row["name"] for row in rows}

    # --- inventory ---

    def get_stock_compliance(self) -> StockCompliance:
        return reliability.stock_compliance(self._load(Part, PARTS))

    def get_inventory_turnover(self, periods: int = 6) -> InventoryTurnover:
        periods = _check_positive("periods", periods)
        months = windows(periods, TimeUnit.MONTH, self.clock())
        events = self._events(
            part_id__isnull=False,
            completed_date__gte=months[0].start,
            completed_date__lt=months[-1].end,
        )
        return kpis.inventory_turnover(events, self._load(Part, PARTS), months)

    def get_out_of_stock_parts(self) -> List[OutOfStockPart]:
        short = [
            OutOfStockPart(
                id=part.id,
                name=part.name,
                current_stock=part.current_stock,
                minimum_stock=part.minimum_stock,
                shortfall=part.minimum_stock - part.current_stock,
            )
            for part in self._load(Part, PARTS, order_by=["name"])
            if part.current_stock < part.minimum_stock
        ]
        return sorted(short, key=lambda p: p.shortfall, reverse=True)

    def get_stock_out_counts(self) -> List[StockOutCount]:
        groups = self.storage.group_by(
            PARTS, ["name"], {"stock_outs": ("id", "count")},
            where={"current_stock": 0}, timeout=self.timeout,
        )
        return [StockOutCount(name=g["name"], stock_outs=int(g["stock_outs"])) for g in groups]

    def get_most_used_parts(self, limit: int = 10) -> List[PartUsage]:
        limit = _check_positive("limit", limit)
        usage: Dict[str, int] = {}
        linked = self.storage.group_by(
            EQUIPMENT_PARTS, ["part_id"], {"uses": ("id", "count")}, timeout=self.timeout,
        )
        serviced = self.storage.group_by(
            EVENTS, ["part_id"], {"uses": ("id", "count")},
            where={"part_id__isnull": False}, timeout=self.timeout,
        )
        for group in linked + serviced:
            usage[group["part_id"]] = usage.get(group["part_id"], 0) + int(group["uses"])

        names = self._names(PARTS)
        ranked = sorted(usage.items(), key=lambda item: (-item[1], names.get(item[0], item[0])))
        return [
            PartUsage(part_id=part_id, name=names.get(part_id, part_id), count=uses)
            for part_id, uses in ranked[:limit]
        ]

    # --- reliability ---

    def get_mtbf(self, equipment_id: Optional[str] = None) -> MTBF:
        events = self._events(
            equipment_id,
            event_type=EventType.BREAKDOWN,
            completed_date__isnull=False,
        )
        return reliability.mean_time_between_failures(events)

    def get_average_maintenance_duration(self, equipment_id: Optional[str] = None) -> MaintenanceDuration:
        events = self._events(
            equipment_id,
            scheduled_date__isnull=False,
            completed_date__isnull=False,
        )
        return reliability.mean_maintenance_duration(events)

    def get_completion_rate(self, equipment_id: Optional[str] = None) -> CompletionRate:
        return reliability.completion_rate(self._events(equipment_id))

    def get_preventive_reactive_series(
        self,
        periods: int = 3,
        unit: Union[str, TimeUnit] = TimeUnit.MONTH,
        classifier: Optional[reliability.Classifier] = None,
    ) -> MaintenanceMix:
        buckets = windows(_check_positive("periods", periods), unit, self.clock())
        return reliability.preventive_reactive_split(
            self._events(), buckets, classifier or self.classifier,
        )

    def get_equipment_status_counts(self) -> EquipmentStatusCounts:
        """Equipment-part links counted by the status of the linked equipment.

        Links to equipment that no longer exists are not counted.
        """
        counts = {status.value: 0 for status in EquipmentStatus}
        statuses = {
            row["id"]: plain(row["status"])
            for row in self.storage.find_many(EQUIPMENT, columns=["id", "status"], timeout=self.timeout)
        }
        links = self.storage.group_by(
            EQUIPMENT_PARTS, ["equipment_id"], {"links": ("id", "count")}, timeout=self.timeout,
        )
        for group in links:
            status = statuses.get(group["equipment_id"])
            if status is None:
                continue
            if status in counts:
                counts[status] += int(group["links"])
            else:
                logger.warning("Ignoring unknown equipment status %r", status)

        total = sum(counts.values())
        return EquipmentStatusCounts(
            counts=counts,
            total=total,
            healthy_percentage=percentage(counts[EquipmentStatus.HEALTHY.value], total),
        )

    # --- orders and suppliers ---

    def get_order_financials(self, periods: int = 12) -> List[OrderFinancialPoint]:
        months = windows(_check_positive("periods", periods), TimeUnit.MONTH, self.clock())
        return kpis.order_financials(self._orders(), months)

    def get_order_cancellation_ratio(self) -> CancellationRatio:
        rows = self.storage.find_many(ORDERS, columns=["status"], timeout=self.timeout)
        return kpis.cancellation_ratio(row["status"] for row in rows)

    def get_supplier_price_comparison(self, limit: Optional[int] = 6) -> SupplierPriceComparison:
        if limit is not None:
            _check_positive("limit", limit)
        offers = self._load(SupplierPart, SUPPLIER_PARTS, order_by=["part_id", "price"])
        return kpis.supplier_price_comparison(
            offers,
            part_names=self._names(PARTS),
            supplier_names=self._names(SUPPLIERS),
            limit=limit,
        )

    def get_part_prices(self, part_id: str) -> List[PartPrice]:
        if not self.storage.find_many(PARTS, where={"id": part_id}, columns=["id"], limit=1,
                                      timeout=self.timeout):
            raise NotFound(f"Part {part_id} not found")
        offers = self._load(SupplierPart, SUPPLIER_PARTS, where={"part_id": part_id}, order_by=["price"])
        suppliers = {s.id: s.name for s in self._load(Supplier, SUPPLIERS)}
        return [
            PartPrice(
                supplier=suppliers.get(offer.supplier_id, offer.supplier_id),
                price=offer.price,
                is_preferred=offer.is_preferred,
            )
            for offer in offers
        ]

    # --- schedules ---

    def get_schedule_statuses(self) -> List[ScheduleStatus]:
        now = self.clock()
        return [
            schedules.schedule_status(schedule, now, self.due_soon_days)
            for schedule in self._load(MaintenanceSchedule, SCHEDULES, order_by=["next_due"])
        ]

    def get_schedule_kpis(self) -> ScheduleKpis:
        return schedules.summarize(self.get_schedule_statuses())

    def get_completed_events(self, limit: int = 50) -> List[MaintenanceEvent]:
        return self._load(
            MaintenanceEvent, EVENTS,
            where={"completed_date__isnull": False},
            order_by=["-completed_date"],
            limit=_check_positive("limit", limit),
        )

    def complete_schedule(self, schedule_id: str,
                          expected_next_due: Optional[datetime] = None) -> MaintenanceSchedule:
        return schedules.complete_schedule(
            self.storage,
            schedule_id,
            now=self.clock(),
            expected_next_due=expected_next_due,
            timeout=self.timeout,
        )
