import logging
import uuid

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from orderdesk.config import settings
from orderdesk.errors import DuplicateError, NotFoundError, ValidationError
from orderdesk.models.common import utcnow
from orderdesk.models.core import Order, OrderStatus, SalesRecord, STATUS_FLOW
from orderdesk.realtime import Notifier
from orderdesk.schemas.orders import OrderIn, OrderOut, SalesRecordOut
from orderdesk.services.billing import billable_orders, money

logger = logging.getLogger(__name__)

VALID_STATUSES = ", ".join(s.value for s in OrderStatus)


def order_out(o: Order) -> dict:
    return OrderOut.model_validate(o).wire()


def _check_id(order_id: str) -> str:
    try:
        uuid.UUID(order_id)
    except (ValueError, AttributeError, TypeError):
        raise ValidationError(f"Invalid order id: {order_id}")
    return order_id


def get_order(db: Session, order_id: str) -> Order:
    o = db.get(Order, _check_id(order_id))
    if not o:
        raise NotFoundError("Order not found")
    return o


def create_order(db: Session, body: OrderIn, notifier: Notifier, customer_id: str | None = None) -> Order:
    # totals are the caller's numbers; they are stored, never recomputed
    o = Order(
        session_id=body.session_id,
        order_number=body.order_number,
        table_number=body.table_number,
        customer_name=body.customer_name or "Guest",
        customer_phone=body.customer_phone or "",
        customer_email=body.customer_email or "",
        customer_address=body.customer_address or "",
        user_id=body.user_id or customer_id,
        items=[i.model_dump() for i in body.items],
        subtotal=body.subtotal,
        tax=body.tax,
        total=body.total,
        estimated_time=body.estimated_time or settings.DEFAULT_ESTIMATED_TIME,
        status=OrderStatus.PENDING,
    )
    db.add(o)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateError("Order number already exists")
    db.refresh(o)

    notifier.emit("order:new", order_out(o))
    return o


def list_orders(db: Session, status: str | None = None) -> list[Order]:
    q = db.query(Order)
    if status:
        try:
            q = q.filter(Order.status == OrderStatus(status))
        except ValueError:
            return []
    return q.order_by(Order.created_at.desc()).all()


def orders_for_table(db: Session, table_number: int) -> list[Order]:
    return (
        db.query(Order)
        .filter(Order.table_number == table_number)
        .order_by(Order.created_at.desc())
        .all()
    )


def orders_for_phone(db: Session, phone: str) -> list[Order]:
    return (
        db.query(Order)
        .filter(Order.customer_phone == phone)
        .order_by(Order.created_at.desc())
        .all()
    )


def get_by_session(db: Session, session_id: str) -> list[Order]:
    """Visit history, oldest order first."""
    return (
        db.query(Order)
        .filter(Order.session_id == session_id)
        .order_by(Order.created_at.asc())
        .all()
    )


def update_status(db: Session, order_id: str, new_status: str | None, notifier: Notifier) -> Order:
    try:
        wanted = OrderStatus(new_status)
    except ValueError:
        raise ValidationError(f"Invalid status. Must be one of: {VALID_STATUSES}")

    o = get_order(db, order_id)
    if settings.STRICT_STATUS_FLOW and wanted != o.status and wanted not in STATUS_FLOW[o.status]:
        raise ValidationError(f"Cannot move order from {o.status.value} to {wanted.value}")

    o.status = wanted
    db.commit()
    db.refresh(o)

    if wanted == OrderStatus.SERVED:
        sale = record_sale(db, o)
        if sale is not None:
            notifier.emit("sales:new", SalesRecordOut.model_validate(sale).wire())

    notifier.emit("order:statusUpdate", order_out(o))
    return o


def record_sale(db: Session, o: Order) -> SalesRecord | None:
    """Post-commit hook for served orders.

    Runs in its own transaction after the status change is committed. A
    failure is logged and swallowed; the status update has already happened.
    """
    try:
        sale = SalesRecord(
            order_id=o.id,
            order_number=o.order_number,
            table_number=o.table_number,
            customer_name=o.customer_name,
            customer_phone=o.customer_phone or "",
            customer_email=o.customer_email or "",
            customer_address=o.customer_address or "",
            user_id=o.user_id,
            items=[
                {
                    "menu_item_id": i.get("menu_item_id"),
                    "name": i["name"],
                    "quantity": i["quantity"],
                    "price": i["price"],
                    "category": i.get("category") or "Uncategorized",
                }
                for i in o.items
            ],
            subtotal=o.subtotal,
            tax=o.tax,
            total=o.total,
            served_at=utcnow(),
            order_created_at=o.created_at,
        )
        db.add(sale)
        db.commit()
        db.refresh(sale)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("could not record sale for order %s", o.order_number)
        return None
    logger.info("sale recorded for order %s (%s)", o.order_number, o.customer_name)
    return sale


def consolidated_view(db: Session, session_id: str) -> dict:
    """Live, recomputed-on-read totals for a session. Writes nothing."""
    orders = billable_orders(db, session_id)
    if not orders:
        raise NotFoundError("No orders found for this session")

    outs = [OrderOut.model_validate(o) for o in orders]
    return {
        "sessionId": session_id,
        "tableNumber": orders[0].table_number,
        "customerName": orders[0].customer_name,
        "items": [i.wire() for out in outs for i in out.items],
        "subtotal": money(sum(o.subtotal for o in orders)),
        "tax": money(sum(o.tax for o in orders)),
        "total": money(sum(o.total for o in orders)),
        "orderCount": len(orders),
        "orders": [
            {"orderNumber": out.order_number, "createdAt": out.created_at.isoformat(), "status": out.status.value}
            for out in outs
        ],
    }


def delete_order(db: Session, order_id: str, notifier: Notifier) -> dict:
    """Permanent delete. Staff should normally cancel instead."""
    o = get_order(db, order_id)
    snapshot = order_out(o)
    db.delete(o)
    db.commit()
    logger.info("order %s permanently deleted", o.order_number)
    notifier.emit("order:deleted", {"id": order_id})
    return snapshot
