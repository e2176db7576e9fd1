"""Read-only sales analytics over paid bills (and the legacy sales table).

Windows are resolved in the business timezone (``settings.BUSINESS_TZ``); every
bucket (hour, day) is taken on local time, then the results are returned
as plain dicts ready for the dashboard charts.
"""
import math
from collections import Counter, defaultdict
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from itertools import combinations

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orderdesk.errors import QueryError
from orderdesk.models.common import utcnow
from orderdesk.models.core import Bill, BillingStatus, SalesRecord
from orderdesk.schemas.orders import OrderItemOut
from orderdesk.services.billing import money
from orderdesk.util.timeutil import as_utc, business_tz, local

PERIOD_DAYS = {"today": 0, "week": 7, "month": 30, "year": 365}


def _round(x: float, places: int = 0) -> float:
    q = Decimal(1).scaleb(-places)
    return float(Decimal(str(x)).quantize(q, rounding=ROUND_HALF_UP))


def resolve_period(period: str, now: datetime | None = None) -> tuple[datetime, datetime]:
    """(start, end) in UTC. Unknown periods mean today."""
    tz = business_tz()
    today = local(now or utcnow()).date()
    first_day = today - timedelta(days=PERIOD_DAYS.get(period, 0))
    start = datetime.combine(first_day, time.min, tzinfo=tz)
    end = datetime.combine(today, time.max, tzinfo=tz)
    return as_utc(start), as_utc(end)


def _paid_bills(db: Session, start: datetime | None = None, end: datetime | None = None) -> list[Bill]:
    try:
        q = db.query(Bill).filter(Bill.billing_status == BillingStatus.PAID)
        if start is not None:
            q = q.filter(Bill.paid_at >= start)
        if end is not None:
            q = q.filter(Bill.paid_at <= end)
        return q.order_by(Bill.paid_at.asc()).all()
    except SQLAlchemyError as e:
        raise QueryError(f"Failed to read paid bills: {e}")


def _days(start: datetime, end: datetime) -> list[date]:
    d, last = local(start).date(), local(end).date()
    out = []
    while d <= last:
        out.append(d)
        d += timedelta(days=1)
    return out


def _day_fields(d: date) -> dict:
    # Sunday=1 .. Saturday=7, as the dashboard charts expect
    return {"year": d.year, "month": d.month, "day": d.day, "dayOfWeek": d.isoweekday() % 7 + 1, "date": d.isoformat()}


def _totals(bills: list[Bill]) -> tuple[float, int, float]:
    revenue = sum(b.total for b in bills)
    orders = sum(b.order_count for b in bills)
    return revenue, orders, (revenue / orders if orders else 0.0)


def _repeat_rate(bills: list[Bill]) -> float:
    visits = Counter(b.customer_phone for b in bills if b.customer_phone)
    if not visits:
        return 0.0
    return sum(1 for n in visits.values() if n > 1) / len(visits) * 100


def aggregated_stats(db: Session, period: str = "today") -> dict:
    start, end = resolve_period(period)
    bills = _paid_bills(db, start, end)
    revenue, orders, avg = _totals(bills)
    return {
        "totalRevenue": money(revenue),
        "totalOrders": orders,
        "avgOrderValue": money(avg),
        "customerRepeatRate": int(_round(_repeat_rate(bills))),
        "period": period,
    }


def _item_totals(bills: list[Bill]) -> dict[str, dict]:
    totals: dict[str, dict] = defaultdict(lambda: {"quantity": 0, "revenue": 0.0})
    for b in bills:
        for i in b.items or []:
            t = totals[i["name"]]
            t["quantity"] += int(i["quantity"])
            t["revenue"] += float(i["quantity"]) * float(i["price"])
    return totals


def top_items(db: Session, period: str = "today", limit: int = 5) -> list[dict]:
    start, end = resolve_period(period)
    totals = _item_totals(_paid_bills(db, start, end))
    ranked = sorted(totals.items(), key=lambda kv: kv[1]["quantity"], reverse=True)[:limit]
    return [{"name": n, "quantity": t["quantity"], "revenue": money(t["revenue"])} for n, t in ranked]


def least_items(db: Session, period: str = "today", limit: int = 5) -> list[dict]:
    start, end = resolve_period(period)
    totals = _item_totals(_paid_bills(db, start, end))
    ranked = sorted(totals.items(), key=lambda kv: kv[1]["quantity"])[:limit]
    return [{"name": n, "quantity": t["quantity"]} for n, t in ranked]


def peak_hours(db: Session, period: str = "today") -> dict:
    start, end = resolve_period(period)
    per_hour: Counter = Counter()
    for b in _paid_bills(db, start, end):
        per_hour[local(b.paid_at).hour] += b.order_count

    days = math.ceil((end - start) / timedelta(days=1)) or 1
    rows = []
    for hour in range(24):
        total = per_hour.get(hour, 0)
        rows.append({
            "hour": hour,
            "orderCount": total if period == "today" else _round(total / days, 1),
            "totalOrders": total,
        })
    return {"data": rows, "period": period, "daysInPeriod": days}


def revenue_by_day(db: Session, period: str = "week") -> list[dict]:
    """Daily revenue from the legacy per-order sales records."""
    start, end = resolve_period(period)
    try:
        sales = (
            db.query(SalesRecord)
            .filter(SalesRecord.served_at >= start, SalesRecord.served_at <= end)
            .all()
        )
    except SQLAlchemyError as e:
        raise QueryError(f"Failed to read sales records: {e}")

    buckets: dict[date, dict] = defaultdict(lambda: {"revenue": 0.0, "orders": 0})
    for s in sales:
        b = buckets[local(s.served_at).date()]
        b["revenue"] += s.total
        b["orders"] += 1
    return [
        {"date": d.isoformat(), "revenue": money(v["revenue"]), "orders": v["orders"]}
        for d, v in sorted(buckets.items())
    ]


def recent_sales(db: Session, limit: int = 10) -> list[dict]:
    try:
        bills = (
            db.query(Bill)
            .filter(Bill.billing_status == BillingStatus.PAID)
            .order_by(Bill.paid_at.desc())
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as e:
        raise QueryError(f"Failed to read recent bills: {e}")
    return [
        {
            "orderNumber": b.bill_number,
            "customerName": b.customer_name,
            "items": [OrderItemOut.model_validate(i).wire() for i in b.items or []],
            "total": b.total,
            "servedAt": as_utc(b.paid_at).isoformat() if b.paid_at else None,
            "tableNumber": b.table_number,
        }
        for b in bills
    ]


def revenue_by_hour(db: Session, period: str = "today") -> dict:
    """Hourly rows for today, one row per local day for longer windows."""
    start, end = resolve_period(period)
    bills = _paid_bills(db, start, end)

    if period == "today":
        hours: dict[int, dict] = defaultdict(lambda: {"revenue": 0.0, "orderCount": 0})
        for b in bills:
            h = hours[local(b.paid_at).hour]
            h["revenue"] += b.total
            h["orderCount"] += b.order_count
        data = [
            {"hour": hour, "revenue": money(hours[hour]["revenue"]) if hour in hours else 0,
             "orderCount": hours[hour]["orderCount"] if hour in hours else 0}
            for hour in range(24)
        ]
        return {"data": data, "type": "hourly"}

    days: dict[date, dict] = defaultdict(lambda: {"revenue": 0.0, "orderCount": 0})
    for b in bills:
        d = days[local(b.paid_at).date()]
        d["revenue"] += b.total
        d["orderCount"] += b.order_count
    data = []
    for d in _days(start, end):
        v = days.get(d, {"revenue": 0.0, "orderCount": 0})
        data.append({**_day_fields(d), "revenue": money(v["revenue"]), "orderCount": v["orderCount"]})
    return {"data": data, "type": "daily", "period": period}


def new_customers(db: Session, period: str = "week") -> list[dict]:
    """Phones whose first-ever paid bill lands in the window, per local day."""
    start, end = resolve_period(period)
    first_paid = func.min(Bill.paid_at)
    try:
        rows = (
            db.query(Bill.customer_phone, first_paid)
            .filter(Bill.billing_status == BillingStatus.PAID, Bill.customer_phone != "", Bill.paid_at.is_not(None))
            .group_by(Bill.customer_phone)
            .having(first_paid >= start, first_paid <= end)
            .all()
        )
    except SQLAlchemyError as e:
        raise QueryError(f"Failed to read first visits: {e}")

    per_day = Counter(local(first).date() for _, first in rows)
    return [
        {k: v for k, v in _day_fields(d).items() if k != "year"} | {"count": per_day.get(d, 0)}
        for d in _days(start, end)
    ]


def popular_combos(db: Session, period: str = "today", limit: int = 5) -> list[dict]:
    start, end = resolve_period(period)
    counts: Counter = Counter()
    for b in _paid_bills(db, start, end):
        names = sorted(i["name"] for i in b.items or [])
        if len(names) < 2:
            continue
        for a, c in combinations(names, 2):
            counts[f"{a} + {c}"] += 1

    ranked = counts.most_common(limit)
    max_count = ranked[0][1] if ranked else 1
    return [{"name": name, "count": n, "maxCount": max_count} for name, n in ranked]


def _growth(current: float, previous: float) -> int:
    if previous == 0:
        return 100 if current > 0 else 0
    # halves round towards +inf, so -2.5% reports as -2
    return math.floor((current - previous) * 100 / previous + 0.5)


def growth_metrics(db: Session, period: str = "today") -> dict:
    """Current window against the equally long window right before it."""
    start, end = resolve_period(period)
    prev_start = start - (end - start)
    prev_end = start - timedelta(microseconds=1)

    current = _paid_bills(db, start, end)
    previous = _paid_bills(db, prev_start, prev_end)
    cur_rev, cur_orders, cur_avg = _totals(current)
    prev_rev, prev_orders, prev_avg = _totals(previous)
    return {
        "revenueGrowth": _growth(cur_rev, prev_rev),
        "ordersGrowth": _growth(cur_orders, prev_orders),
        "avgValueGrowth": _growth(cur_avg, prev_avg),
        "repeatRateGrowth": _growth(_repeat_rate(current), _repeat_rate(previous)),
    }
