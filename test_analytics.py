# test_analytics.py
from datetime import date, datetime, timedelta, timezone
from itertools import count

import pytest

from orderdesk.models import Bill, BillingStatus
from orderdesk.models.common import utcnow
from orderdesk.services.analytics import resolve_period
from orderdesk.util.timeutil import local

WEEKDAYS = {"Sunday": 1, "Monday": 2, "Tuesday": 3, "Wednesday": 4, "Thursday": 5, "Friday": 6, "Saturday": 7}

_seq = count(1)


def jprint(step, r):
    """Helper to print response and assert on failure."""
    assert 200 <= r.status_code < 300, f"{step} -> {r.status_code}: {r.text}"
    return r.json()


@pytest.fixture
def bill(db):
    """Insert a bill straight into the table; paid now unless told otherwise."""
    def make(total=220, paid_at=None, phone="", items=None, order_count=1, status=BillingStatus.PAID):
        n = next(_seq)
        b = Bill(
            bill_number=f"BILL-TEST-{n:04d}",
            session_id=f"S-{n}",
            table_number=1,
            customer_name="Guest",
            customer_phone=phone,
            items=items or [{"name": "Momo", "quantity": 1, "price": total}],
            subtotal=total,
            tax=0,
            total=total,
            order_count=order_count,
            orders=[{"order_id": f"o-{n}", "order_number": f"O-{n}"}],
            billing_status=status,
            paid_at=(paid_at or utcnow()) if status == BillingStatus.PAID else None,
        )
        db.add(b)
        db.commit()
        return b
    return make


def _get(client, path, **params):
    return jprint(path, client.get(path, params=params))


def test_resolve_period():
    now = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)  # 17:30 in Kolkata
    start, end = resolve_period("today", now)
    assert local(start).date() == date(2024, 3, 10)
    assert (local(start).hour, local(start).minute) == (0, 0)
    assert local(end).date() == date(2024, 3, 10)
    assert end - start < timedelta(days=1)

    start, _ = resolve_period("week", now)
    assert local(start).date() == date(2024, 3, 3)
    start, _ = resolve_period("month", now)
    assert local(start).date() == date(2024, 2, 9)
    start, _ = resolve_period("year", now)
    assert local(start).date() == date(2023, 3, 11)

    assert resolve_period("fortnight", now) == resolve_period("today", now)


def test_stats_one_paid_bill_today(client, bill):
    bill(total=220)
    data = _get(client, "/sales/stats", period="today")["data"]
    assert data["totalRevenue"] == 220
    assert data["totalOrders"] == 1
    assert data["avgOrderValue"] == 220
    assert data["period"] == "today"


def test_stats_only_counts_paid_bills_in_window(client, bill):
    bill(total=100, order_count=2)
    bill(total=500, status=BillingStatus.PENDING_PAYMENT)
    bill(total=300, paid_at=utcnow() - timedelta(days=40))

    data = _get(client, "/sales/stats")["data"]
    assert (data["totalRevenue"], data["totalOrders"], data["avgOrderValue"]) == (100, 2, 50)

    data = _get(client, "/sales/stats", period="year")["data"]
    assert (data["totalRevenue"], data["totalOrders"]) == (400, 3)


def test_stats_empty(client):
    data = _get(client, "/sales/stats", period="month")["data"]
    assert data == {"totalRevenue": 0, "totalOrders": 0, "avgOrderValue": 0, "customerRepeatRate": 0, "period": "month"}


def test_repeat_rate(client, bill):
    bill(phone="9800000001")
    bill(phone="9800000001")
    bill(phone="9800000002")
    bill(phone="")
    assert _get(client, "/sales/stats")["data"]["customerRepeatRate"] == 50


def test_top_and_least_items(client, bill):
    bill(items=[{"name": "Momo", "quantity": 5, "price": 100}, {"name": "Tea", "quantity": 1, "price": 20}])
    bill(items=[{"name": "Coke", "quantity": 2, "price": 40}, {"name": "Momo", "quantity": 1, "price": 100}])

    top = _get(client, "/sales/top-items")["data"]
    assert top == [
        {"name": "Momo", "quantity": 6, "revenue": 600},
        {"name": "Coke", "quantity": 2, "revenue": 80},
        {"name": "Tea", "quantity": 1, "revenue": 20},
    ]
    assert len(_get(client, "/sales/top-items", limit=1)["data"]) == 1

    least = _get(client, "/sales/least-items", limit=2)["data"]
    assert least == [{"name": "Tea", "quantity": 1}, {"name": "Coke", "quantity": 2}]


def test_bad_limit(client):
    r = client.get("/sales/top-items", params={"limit": 0})
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_peak_hours(client, bill):
    bill(order_count=3)
    hour = local(utcnow()).hour

    out = _get(client, "/sales/peak-hours")
    assert len(out["data"]) == 24
    assert out["daysInPeriod"] == 1
    row = out["data"][hour]
    assert row == {"hour": hour, "orderCount": 3, "totalOrders": 3}

    out = _get(client, "/sales/peak-hours", period="week")
    assert out["daysInPeriod"] == 8
    row = out["data"][local(utcnow()).hour]
    assert row["totalOrders"] == 3
    assert row["orderCount"] == 0.4


def test_revenue_by_hour_today(client, bill):
    bill(total=120, order_count=2)
    out = _get(client, "/sales/revenue-by-hour")
    assert out["type"] == "hourly"
    assert len(out["data"]) == 24
    hour = local(utcnow()).hour
    assert out["data"][hour] == {"hour": hour, "revenue": 120, "orderCount": 2}
    assert sum(r["revenue"] for r in out["data"]) == 120


def test_revenue_by_hour_daily_fill(client, bill):
    bill(total=120)
    bill(total=80, paid_at=utcnow() - timedelta(days=2))

    out = _get(client, "/sales/revenue-by-hour", period="week")
    assert out["type"] == "daily"
    rows = out["data"]
    assert len(rows) == 8
    today = local(utcnow()).date()
    assert rows[-1]["date"] == today.isoformat()
    assert rows[-1]["revenue"] == 120
    assert rows[-3]["revenue"] == 80
    assert sum(r["orderCount"] for r in rows) == 2

    for r in rows:
        d = date.fromisoformat(r["date"])
        assert (r["year"], r["month"], r["day"]) == (d.year, d.month, d.day)
        assert r["dayOfWeek"] == WEEKDAYS[d.strftime("%A")]


def test_new_customers(client, bill):
    bill(phone="9800000001", paid_at=utcnow() - timedelta(days=40))
    bill(phone="9800000001")
    bill(phone="9800000002")
    bill(phone="9800000002")
    bill(phone="9800000003", paid_at=utcnow() - timedelta(days=1))

    rows = _get(client, "/sales/new-customers")["data"]
    assert len(rows) == 8
    assert rows[-1]["date"] == local(utcnow()).date().isoformat()
    assert rows[-1]["count"] == 1
    assert rows[-2]["count"] == 1
    assert sum(r["count"] for r in rows) == 2
    assert set(rows[0]) == {"date", "day", "month", "dayOfWeek", "count"}


def test_popular_combos(client, bill):
    momo = {"name": "Momo", "quantity": 1, "price": 100}
    tea = {"name": "Tea", "quantity": 1, "price": 20}
    coke = {"name": "Coke", "quantity": 1, "price": 40}
    bill(items=[tea, momo, coke])
    bill(items=[momo, tea])
    bill(items=[momo])

    combos = _get(client, "/sales/popular-combos")["data"]
    assert combos[0] == {"name": "Momo + Tea", "count": 2, "maxCount": 2}
    assert {c["name"] for c in combos} == {"Momo + Tea", "Coke + Momo", "Coke + Tea"}
    assert all(c["maxCount"] == 2 for c in combos)


def test_growth_metrics(client, bill):
    assert _get(client, "/sales/growth-metrics")["data"] == {
        "revenueGrowth": 0, "ordersGrowth": 0, "avgValueGrowth": 0, "repeatRateGrowth": 0,
    }

    bill(total=200)
    data = _get(client, "/sales/growth-metrics")["data"]
    assert data["revenueGrowth"] == 100
    assert data["ordersGrowth"] == 100

    bill(total=100, paid_at=utcnow() - timedelta(days=1))
    data = _get(client, "/sales/growth-metrics")["data"]
    assert data["revenueGrowth"] == 100
    assert data["ordersGrowth"] == 0
    assert data["avgValueGrowth"] == 100


def test_growth_halves_round_up(client, bill):
    bill(total=195)
    bill(total=200, paid_at=utcnow() - timedelta(days=1))
    data = _get(client, "/sales/growth-metrics")["data"]
    # -2.5% lands on -2, not -3
    assert data["revenueGrowth"] == -2
    assert data["avgValueGrowth"] == -2
    assert data["ordersGrowth"] == 0


def test_new_customers_ignores_unpaid_and_anonymous(client, bill):
    bill(phone="9800000004", status=BillingStatus.PENDING_PAYMENT)
    bill(phone="")
    bill(phone="9800000005", paid_at=utcnow() - timedelta(days=3))
    bill(phone="9800000005")

    rows = _get(client, "/sales/new-customers")["data"]
    assert sum(r["count"] for r in rows) == 1
    assert rows[-4]["count"] == 1


def test_recent_sales(client, bill):
    bill(total=50, paid_at=utcnow() - timedelta(hours=2))
    bill(total=70)
    bill(total=90, status=BillingStatus.UNPAID)

    rows = _get(client, "/sales/recent")["data"]
    assert [r["total"] for r in rows] == [70, 50]
    assert rows[0]["orderNumber"].startswith("BILL-TEST-")
    assert rows[0]["servedAt"]
    assert rows[0]["items"][0]["name"] == "Momo"
    assert len(_get(client, "/sales/recent", limit=1)["data"]) == 1


def test_legacy_revenue_from_served_orders(client, order_body):
    o = jprint("POST /orders", client.post("/orders", json=order_body()))["data"]
    jprint("served", client.patch(f"/orders/{o['id']}", json={"status": "served"}))

    rows = _get(client, "/sales/revenue")["data"]
    assert rows == [{"date": local(utcnow()).date().isoformat(), "revenue": 220, "orders": 1}]
    assert _get(client, "/sales/revenue", period="today")["data"][0]["orders"] == 1
