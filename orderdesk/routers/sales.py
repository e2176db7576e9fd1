# orderdesk/routers/sales.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from orderdesk.db import get_db
from orderdesk.services import analytics

router = APIRouter(prefix="/sales", tags=["sales"])


@router.get("/stats")
def stats(period: str = "today", db: Session = Depends(get_db)):
    return {"success": True, "data": analytics.aggregated_stats(db, period)}


@router.get("/top-items")
def top_items(period: str = "today", limit: int = Query(default=5, ge=1, le=100), db: Session = Depends(get_db)):
    return {"success": True, "data": analytics.top_items(db, period, limit)}


@router.get("/least-items")
def least_items(period: str = "today", limit: int = Query(default=5, ge=1, le=100), db: Session = Depends(get_db)):
    return {"success": True, "data": analytics.least_items(db, period, limit)}


@router.get("/peak-hours")
def peak_hours(period: str = "today", db: Session = Depends(get_db)):
    out = analytics.peak_hours(db, period)
    return {"success": True, **out}


@router.get("/revenue")
def revenue(period: str = "week", db: Session = Depends(get_db)):
    """Legacy daily revenue, read from per-order sales records."""
    return {"success": True, "data": analytics.revenue_by_day(db, period)}


@router.get("/revenue-by-hour")
def revenue_by_hour(period: str = "today", db: Session = Depends(get_db)):
    out = analytics.revenue_by_hour(db, period)
    return {"success": True, **out}


@router.get("/recent")
def recent(limit: int = Query(default=10, ge=1, le=100), db: Session = Depends(get_db)):
    return {"success": True, "data": analytics.recent_sales(db, limit)}


@router.get("/new-customers")
def new_customers(period: str = "week", db: Session = Depends(get_db)):
    return {"success": True, "data": analytics.new_customers(db, period)}


@router.get("/popular-combos")
def popular_combos(period: str = "today", limit: int = Query(default=5, ge=1, le=100), db: Session = Depends(get_db)):
    return {"success": True, "data": analytics.popular_combos(db, period, limit)}


@router.get("/growth-metrics")
def growth_metrics(period: str = "today", db: Session = Depends(get_db)):
    return {"success": True, "data": analytics.growth_metrics(db, period)}
