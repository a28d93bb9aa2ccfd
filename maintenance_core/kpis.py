# maintenance_core/kpis.py
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from maintenance_core.aggregator import bucket, count, group_by
from maintenance_core.models import (
    CancellationRatio,
    InventoryTurnover,
    MaintenanceEvent,
    Order,
    OrderFinancialPoint,
    OrderStatus,
    Part,
    SupplierPart,
    SupplierPriceComparison,
    SupplierPriceRow,
    TimeWindow,
    TurnoverPoint,
)
from maintenance_core.numbers import percentage, round_half_up, safe_ratio

PENDING_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.APPROVED, OrderStatus.SHIPPED})


def trend(series: Sequence[float]) -> float:
    """Percent change from the second-to-last to the last value.

    A previous value of exactly 0 reports 0 (no change) instead of an
    infinite or undefined percentage.
    """
    if len(series) < 2:
        return 0.0
    previous, last = series[-2], series[-1]
    if previous == 0:
        return 0.0
    return round_half_up((last - previous) / previous * 100, 1)


def average_stock(parts: Iterable[Part]) -> float:
    levels = [part.current_stock for part in parts]
    return safe_ratio(sum(levels), len(levels))


def inventory_turnover(
    events: Iterable[MaintenanceEvent],
    parts: Iterable[Part],
    windows: List[TimeWindow],
) -> InventoryTurnover:
    """Parts consumed per period divided by the average stock level.

    The average is taken over current stock for every period; historical
    stock levels are not reconstructed.
    """
    average_inventory = average_stock(parts)
    consumed = bucket(
        (e for e in events if e.part_id is not None),
        windows,
        key_of=lambda e: e.completed_date,
        reduce_init=0,
        reduce=count,
    )
    series = [
        TurnoverPoint(
            period=b.window.label,
            rate=round_half_up(safe_ratio(b.value, average_inventory), 2),
        )
        for b in consumed
    ]
    return InventoryTurnover(
        series=series,
        trend=trend([point.rate for point in series]),
        average_inventory=average_inventory,
    )


def order_moment(order: Order):
    return order.delivery_date or order.order_date


def order_financials(orders: Iterable[Order], windows: List[TimeWindow]) -> List[OrderFinancialPoint]:
    """Delivered and still-open order value per period. Cancelled orders count nowhere."""
    def rollup(totals, order: Order):
        delivered, pending = totals
        if order.status == OrderStatus.DELIVERED:
            return delivered + order.total, pending
        if order.status in PENDING_STATUSES:
            return delivered, pending + order.total
        return totals

    buckets = bucket(orders, windows, key_of=order_moment, reduce_init=(0.0, 0.0), reduce=rollup)
    return [
        OrderFinancialPoint(period=b.window.label, delivered=b.value[0], pending=b.value[1])
        for b in buckets
    ]


def cancellation_ratio(statuses: Iterable[OrderStatus]) -> CancellationRatio:
    statuses = list(statuses)
    cancelled = sum(1 for status in statuses if status == OrderStatus.CANCELLED)
    return CancellationRatio(
        percentage=percentage(cancelled, len(statuses)),
        cancelled_count=cancelled,
        total_count=len(statuses),
    )


def supplier_price_comparison(
    supplier_parts: Iterable[SupplierPart],
    part_names: Optional[Mapping[str, str]] = None,
    supplier_names: Optional[Mapping[str, str]] = None,
    limit: Optional[int] = None,
) -> SupplierPriceComparison:
    """One row per part offered by two or more suppliers, one price column per supplier."""
    part_names = part_names or {}
    supplier_names = supplier_names or {}

    rows: List[SupplierPriceRow] = []
    suppliers: List[str] = []
    for part_id, offers in group_by(supplier_parts, lambda sp: sp.part_id).items():
        prices: Dict[str, float] = {}
        preferred = None
        for offer in offers:
            name = supplier_names.get(offer.supplier_id, offer.supplier_id)
            # a supplier listed twice for the same part competes with its best price
            if name not in prices or offer.price < prices[name]:
                prices[name] = offer.price
            if offer.is_preferred and preferred is None:
                preferred = name
        if len(prices) < 2:
            continue

        rows.append(SupplierPriceRow(
            part_id=part_id,
            part=part_names.get(part_id, part_id),
            prices=prices,
            cheapest_supplier=min(prices, key=prices.get),
            preferred_supplier=preferred,
        ))
        for name in prices:
            if name not in suppliers:
                suppliers.append(name)
        if limit is not None and len(rows) >= limit:
            break

    return SupplierPriceComparison(rows=rows, suppliers=suppliers)
