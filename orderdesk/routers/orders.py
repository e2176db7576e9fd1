# orderdesk/routers/orders.py
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from orderdesk.db import get_db
from orderdesk.deps import get_notifier, optional_customer
from orderdesk.errors import NotFoundError
from orderdesk.realtime import Notifier
from orderdesk.schemas.orders import BillingStatusIn, OrderIn, StatusIn
from orderdesk.services import billing, orders
from orderdesk.services.billing import bill_out
from orderdesk.services.orders import order_out

router = APIRouter(prefix="/orders", tags=["orders"])


def _many(rows: list[dict]) -> dict:
    return {"success": True, "count": len(rows), "data": rows}


# ------------------------------------------------------------------
# Static paths first, otherwise "/{order_id}" would swallow them
# ------------------------------------------------------------------
@router.get("/payments")
def pending_payments(db: Session = Depends(get_db)):
    """Payments tab: bills still waiting for money, newest request first."""
    return _many(billing.list_pending(db))


@router.get("/bills")
def list_bills(
    status: str | None = None,
    start_date: datetime | None = Query(default=None, alias="startDate"),
    end_date: datetime | None = Query(default=None, alias="endDate"),
    db: Session = Depends(get_db),
):
    return _many([bill_out(b) for b in billing.list_bills(db, status, start_date, end_date)])


@router.get("/bills/phone/{phone}")
def bills_for_phone(phone: str, db: Session = Depends(get_db)):
    return _many([bill_out(b) for b in billing.bills_for_phone(db, phone)])


@router.get("/table/{table_number}")
def orders_for_table(table_number: int, db: Session = Depends(get_db)):
    return _many([order_out(o) for o in orders.orders_for_table(db, table_number)])


@router.get("/phone/{phone}")
def orders_for_phone(phone: str, db: Session = Depends(get_db)):
    return _many([order_out(o) for o in orders.orders_for_phone(db, phone)])


@router.get("/session/{session_id}")
def orders_for_session(session_id: str, db: Session = Depends(get_db)):
    rows = orders.get_by_session(db, session_id)
    return _many([order_out(o) for o in rows])


@router.get("/session/{session_id}/bill")
def consolidated_bill(session_id: str, db: Session = Depends(get_db)):
    return {"success": True, "data": orders.consolidated_view(db, session_id)}


@router.get("/session/{session_id}/bill-record")
def bill_record(session_id: str, db: Session = Depends(get_db)):
    bill = billing.bill_for_session(db, session_id)
    if not bill:
        raise NotFoundError("No bill found for this session")
    return {"success": True, "data": bill_out(bill)}


@router.post("/session/{session_id}/pay-request")
def pay_request(
    session_id: str,
    response: Response,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    bill, created = billing.request_payment(db, session_id, notifier)
    response.status_code = 201 if created else 200
    return {
        "success": True,
        "message": "Payment request sent to staff" if created else "Bill already exists for this session",
        "data": bill_out(bill),
    }


@router.patch("/session/{session_id}/billing-status")
def billing_status(
    session_id: str,
    body: BillingStatusIn,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    result = billing.set_billing_status(db, session_id, body.billing_status, body.payment_method, notifier)
    data = result if isinstance(result, dict) else bill_out(result)
    return {"success": True, "message": "Billing status updated", "data": data}


# ------------------------------------------------------------------
# Orders
# ------------------------------------------------------------------
@router.post("", status_code=201)
def create_order(
    body: OrderIn,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    customer_id: str | None = Depends(optional_customer),
):
    o = orders.create_order(db, body, notifier, customer_id)
    return {"success": True, "message": "Order placed", "data": order_out(o)}


@router.get("")
def list_orders(status: str | None = None, db: Session = Depends(get_db)):
    return _many([order_out(o) for o in orders.list_orders(db, status)])


@router.get("/{order_id}")
def get_order(order_id: str, db: Session = Depends(get_db)):
    return {"success": True, "data": order_out(orders.get_order(db, order_id))}


@router.patch("/{order_id}")
def update_status(
    order_id: str,
    body: StatusIn,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    o = orders.update_status(db, order_id, body.status, notifier)
    return {"success": True, "message": f"Order {o.status.value}", "data": order_out(o)}


@router.delete("/{order_id}")
def delete_order(
    order_id: str,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    snapshot = orders.delete_order(db, order_id, notifier)
    return {"success": True, "message": "Order deleted", "data": snapshot}
