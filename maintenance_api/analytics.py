# maintenance_api/analytics.py
from typing import Optional

from fastapi import APIRouter, Depends, Query

from maintenance_api.dependencies import get_analytics
from maintenance_core.models import TimeUnit
from maintenance_core.services import MaintenanceAnalytics

router = APIRouter()


# --- Inventory KPIs ---
@router.get("/stock-compliance")
def stock_compliance(analytics: MaintenanceAnalytics = Depends(get_analytics)):
    return analytics.get_stock_compliance()


@router.get("/inventory-turnover")
def inventory_turnover(
    periods: int = Query(6, ge=1, le=60),
    analytics: MaintenanceAnalytics = Depends(get_analytics),
):
    return analytics.get_inventory_turnover(periods)


@router.get("/out-of-stock")
def out_of_stock(analytics: MaintenanceAnalytics = Depends(get_analytics)):
    return {"parts": analytics.get_out_of_stock_parts()}


@router.get("/stock-outs")
def stock_outs(analytics: MaintenanceAnalytics = Depends(get_analytics)):
    return {"parts": analytics.get_stock_out_counts()}


@router.get("/most-used-parts")
def most_used_parts(
    limit: int = Query(10, ge=1, le=100),
    analytics: MaintenanceAnalytics = Depends(get_analytics),
):
    return {"parts": analytics.get_most_used_parts(limit)}


# --- Reliability ---
@router.get("/mtbf")
def mtbf(
    equipment_id: Optional[str] = Query(None),
    analytics: MaintenanceAnalytics = Depends(get_analytics),
):
    return analytics.get_mtbf(equipment_id)


@router.get("/maintenance-duration")
def maintenance_duration(
    equipment_id: Optional[str] = Query(None),
    analytics: MaintenanceAnalytics = Depends(get_analytics),
):
    return analytics.get_average_maintenance_duration(equipment_id)


@router.get("/completion-rate")
def completion_rate(
    equipment_id: Optional[str] = Query(None),
    analytics: MaintenanceAnalytics = Depends(get_analytics),
):
    return analytics.get_completion_rate(equipment_id)


@router.get("/maintenance-mix")
def maintenance_mix(
    periods: int = Query(3, ge=1, le=60),
    unit: TimeUnit = Query(TimeUnit.MONTH),
    analytics: MaintenanceAnalytics = Depends(get_analytics),
):
    return analytics.get_preventive_reactive_series(periods, unit)


@router.get("/equipment-status")
def equipment_status(analytics: MaintenanceAnalytics = Depends(get_analytics)):
    return analytics.get_equipment_status_counts()


# --- Orders and suppliers ---
@router.get("/order-financials")
def order_financials(
    periods: int = Query(12, ge=1, le=60),
    analytics: MaintenanceAnalytics = Depends(get_analytics),
):
    return {"series": analytics.get_order_financials(periods)}


@router.get("/order-cancellations")
def order_cancellations(analytics: MaintenanceAnalytics = Depends(get_analytics)):
    return analytics.get_order_cancellation_ratio()


@router.get("/supplier-prices")
def supplier_prices(
    limit: int = Query(6, ge=1, le=100),
    analytics: MaintenanceAnalytics = Depends(get_analytics),
):
    return analytics.get_supplier_price_comparison(limit)


@router.get("/parts/{part_id}/prices")
def part_prices(part_id: str, analytics: MaintenanceAnalytics = Depends(get_analytics)):
    return {"part_id": part_id, "prices": analytics.get_part_prices(part_id)}
