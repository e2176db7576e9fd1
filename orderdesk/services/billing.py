import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderdesk.errors import DuplicateError, NotFoundError, ValidationError
from orderdesk.models.common import utcnow
from orderdesk.models.core import (
    Bill, BillSequence, BillingStatus, Order, OrderStatus, PaymentMethod,
)
from orderdesk.realtime import Notifier
from orderdesk.schemas.orders import BillOut
from orderdesk.util.timeutil import as_utc, local

logger = logging.getLogger(__name__)

VALID_BILLING = ", ".join(s.value for s in BillingStatus)
VALID_METHODS = ", ".join(m.value for m in PaymentMethod)


def money(x) -> float:
    return float(Decimal(str(x or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def bill_out(b: Bill) -> dict:
    return BillOut.model_validate(b).wire()


def billable_orders(db: Session, session_id: str) -> list[Order]:
    """Non-cancelled orders of a session, earliest first."""
    return (
        db.query(Order)
        .filter(Order.session_id == session_id, Order.status != OrderStatus.CANCELLED)
        .order_by(Order.created_at.asc())
        .all()
    )


def bill_for_session(db: Session, session_id: str) -> Bill | None:
    return db.query(Bill).filter(Bill.session_id == session_id).first()


def _upsert_insert(dialect: str):
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        return None
    return insert


def next_bill_number(db: Session, at: datetime) -> str:
    """Allocate BILL-YYYYMMDD-NNN from the per-day counter.

    Runs inside the caller's transaction, so a bill that fails to commit
    gives its number back. The day is the business-timezone date of ``at``.
    """
    day = local(at).strftime("%Y%m%d")
    insert = _upsert_insert(db.get_bind().dialect.name)
    if insert is not None:
        stmt = (
            insert(BillSequence)
            .values(day=day, last_seq=1)
            .on_conflict_do_update(
                index_elements=[BillSequence.day],
                set_={"last_seq": BillSequence.last_seq + 1},
            )
            .returning(BillSequence.last_seq)
        )
        seq = db.execute(stmt).scalar_one()
        return f"BILL-{day}-{seq:03d}"

    # no native upsert: bump, or create the day's row and retry on conflict
    for _ in range(3):
        bumped = db.execute(
            update(BillSequence)
            .where(BillSequence.day == day)
            .values(last_seq=BillSequence.last_seq + 1)
        )
        if bumped.rowcount:
            seq = db.get(BillSequence, day, populate_existing=True).last_seq
            return f"BILL-{day}-{seq:03d}"
        try:
            with db.begin_nested():
                db.add(BillSequence(day=day, last_seq=1))
            return f"BILL-{day}-001"
        except IntegrityError:
            continue
    raise DuplicateError("Could not allocate a bill number")


def request_payment(db: Session, session_id: str, notifier: Notifier) -> tuple[Bill, bool]:
    """Snapshot the session into its one bill. Returns (bill, created)."""
    existing = bill_for_session(db, session_id)
    if existing:
        return existing, False

    orders = billable_orders(db, session_id)
    if not orders:
        raise NotFoundError("No orders found for this session")

    first = orders[0]
    now = utcnow()
    items = [
        {
            "menu_item_id": i.get("menu_item_id"),
            "name": i["name"],
            "quantity": i["quantity"],
            "price": i["price"],
            "description": i.get("description") or "",
            "image_link": i.get("image_link") or "",
        }
        for o in orders for i in o.items
    ]

    try:
        bill = Bill(
            bill_number=next_bill_number(db, now),
            session_id=session_id,
            table_number=first.table_number,
            customer_name=first.customer_name,
            customer_phone=first.customer_phone or "",
            customer_email=first.customer_email or "",
            customer_address=first.customer_address or "",
            user_id=first.user_id,
            items=items,
            subtotal=money(sum(o.subtotal for o in orders)),
            tax=money(sum(o.tax for o in orders)),
            total=money(sum(o.total for o in orders)),
            order_count=len(orders),
            orders=[{"order_id": o.id, "order_number": o.order_number} for o in orders],
            billing_status=BillingStatus.PENDING_PAYMENT,
            payment_requested_at=now,
        )
        db.add(bill)
        # mirror onto the contributing orders in the same transaction
        db.execute(
            update(Order)
            .where(Order.id.in_([o.id for o in orders]))
            .values(billing_status=BillingStatus.PENDING_PAYMENT, payment_requested_at=now)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except IntegrityError:
        # lost the race on bill.session_id: the other request's bill stands
        db.rollback()
        existing = bill_for_session(db, session_id)
        if existing:
            return existing, False
        raise DuplicateError("Could not create bill for this session")
    db.refresh(bill)

    logger.info(
        "payment requested: table %s bill %s customer %s total %.2f",
        bill.table_number, bill.bill_number, bill.customer_name, bill.total,
    )
    notifier.emit("payment:request", {
        "sessionId": session_id,
        "billNumber": bill.bill_number,
        "tableNumber": bill.table_number,
        "customerName": bill.customer_name,
        "customerPhone": bill.customer_phone,
        "customerEmail": bill.customer_email,
        "customerAddress": bill.customer_address,
        "userId": bill.user_id,
        "total": bill.total,
        "orderCount": bill.order_count,
        "timestamp": now.isoformat(),
    })
    return bill, True


def set_billing_status(
    db: Session,
    session_id: str,
    status: str | None,
    payment_method: str | None,
    notifier: Notifier,
) -> Bill | dict:
    try:
        wanted = BillingStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid billing status. Must be one of: {VALID_BILLING}")
    method = None
    if payment_method:
        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationError(f"Invalid payment method. Must be one of: {VALID_METHODS}")

    paid_at = utcnow() if wanted == BillingStatus.PAID else None

    bill = bill_for_session(db, session_id)
    if bill:
        bill.billing_status = wanted
        # moving back to unpaid keeps the earlier paid_at / payment_method on record
        if paid_at:
            bill.paid_at = paid_at
            if method:
                bill.payment_method = method
    touched = db.execute(
        update(Order)
        .where(Order.session_id == session_id)
        .values(billing_status=wanted, paid_at=paid_at)
        .execution_options(synchronize_session=False)
    ).rowcount

    if not bill and not touched:
        db.rollback()
        raise NotFoundError("No bill or orders found for this session")
    db.commit()
    if bill:
        db.refresh(bill)

    logger.info("billing status for session %s -> %s", session_id, wanted.value)
    notifier.emit("billing:statusUpdate", {
        "sessionId": session_id,
        "billingStatus": wanted.value,
        "billNumber": bill.bill_number if bill else None,
        "tableNumber": bill.table_number if bill else None,
        "paidAt": paid_at.isoformat() if paid_at else None,
        "paymentMethod": method.value if (method and paid_at) else None,
    })
    if bill:
        return bill
    return {"sessionId": session_id, "billingStatus": wanted.value, "ordersUpdated": touched}


def list_pending(db: Session) -> list[dict]:
    bills = (
        db.query(Bill)
        .filter(Bill.billing_status.in_([BillingStatus.UNPAID, BillingStatus.PENDING_PAYMENT]))
        .order_by(Bill.payment_requested_at.desc(), Bill.created_at.desc())
        .all()
    )
    rows = []
    for b in bills:
        out = BillOut.model_validate(b)
        rows.append({
            "sessionId": b.session_id,
            "billId": b.id,
            "billNumber": b.bill_number,
            "tableNumber": b.table_number,
            "customerName": b.customer_name,
            "customerPhone": b.customer_phone,
            "total": b.total,
            "orderCount": b.order_count,
            "billingStatus": b.billing_status.value,
            "paymentRequestedAt": out.payment_requested_at.isoformat() if out.payment_requested_at else None,
            "createdAt": out.created_at.isoformat(),
        })
    return rows


def list_bills(
    db: Session,
    status: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Bill]:
    q = db.query(Bill)
    if status:
        try:
            q = q.filter(Bill.billing_status == BillingStatus(status))
        except ValueError:
            return []
    if start:
        q = q.filter(Bill.created_at >= as_utc(start))
    if end:
        q = q.filter(Bill.created_at <= as_utc(end))
    return q.order_by(Bill.created_at.desc()).all()


def bills_for_phone(db: Session, phone: str) -> list[Bill]:
    return (
        db.query(Bill)
        .filter(Bill.customer_phone == phone)
        .order_by(Bill.created_at.desc())
        .all()
    )
