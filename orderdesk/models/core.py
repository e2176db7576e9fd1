from sqlalchemy import String, Enum, Integer, DateTime, JSON, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from enum import Enum as PyEnum
from datetime import datetime
from orderdesk.db import Base
from orderdesk.models.common import IdMixin, TSMMixin, CustomerMixin, TicketMixin

# ── Enums ───────────────────────────────────────────────────────────────────
class OrderStatus(str, PyEnum):
    PENDING = "pending"
    PREPARING = "preparing"
    SERVED = "served"
    CANCELLED = "cancelled"

class BillingStatus(str, PyEnum):
    UNPAID = "unpaid"
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"

class PaymentMethod(str, PyEnum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    OTHER = "other"

# Only consulted when STRICT_STATUS_FLOW is on; served/cancelled are terminal.
STATUS_FLOW: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.SERVED, OrderStatus.CANCELLED},
    OrderStatus.SERVED: set(),
    OrderStatus.CANCELLED: set(),
}

def _enum(cls):
    # persist the lowercase values the API speaks, not the member names
    return Enum(cls, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20)

# ── Orders ──────────────────────────────────────────────────────────────────
class Order(Base, IdMixin, TSMMixin, CustomerMixin, TicketMixin):
    __tablename__ = "order"
    session_id: Mapped[str] = mapped_column(String(80), index=True)
    order_number: Mapped[str] = mapped_column(String(60), unique=True)
    table_number: Mapped[int] = mapped_column(Integer)
    status: Mapped[OrderStatus] = mapped_column(_enum(OrderStatus), default=OrderStatus.PENDING, index=True)
    estimated_time: Mapped[str | None] = mapped_column(String(40))
    # legacy mirror of Bill.billing_status for clients that still read orders
    billing_status: Mapped[BillingStatus] = mapped_column(_enum(BillingStatus), default=BillingStatus.UNPAID)
    payment_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    __table_args__ = (
        CheckConstraint("table_number >= 1", name="ck_order_table_number"),
    )

# ── Bills ───────────────────────────────────────────────────────────────────
class Bill(Base, IdMixin, TSMMixin, CustomerMixin, TicketMixin):
    __tablename__ = "bill"
    bill_number: Mapped[str] = mapped_column(String(40), unique=True)
    # one bill per dining session; the constraint is what makes pay-requests idempotent
    session_id: Mapped[str] = mapped_column(String(80), unique=True)
    table_number: Mapped[int] = mapped_column(Integer)
    order_count: Mapped[int] = mapped_column(Integer)
    orders: Mapped[list] = mapped_column(JSON, default=list)  # [{orderId, orderNumber}]
    billing_status: Mapped[BillingStatus] = mapped_column(_enum(BillingStatus), default=BillingStatus.PENDING_PAYMENT, index=True)
    payment_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    payment_method: Mapped[PaymentMethod | None] = mapped_column(_enum(PaymentMethod))
    __table_args__ = (
        CheckConstraint("order_count >= 1", name="ck_bill_order_count"),
    )

class BillSequence(Base):
    __tablename__ = "bill_sequence"
    day: Mapped[str] = mapped_column(String(8), primary_key=True)  # YYYYMMDD
    last_seq: Mapped[int] = mapped_column(Integer, default=0)

# ── Legacy sales (one row per served order) ─────────────────────────────────
class SalesRecord(Base, IdMixin, TSMMixin, CustomerMixin, TicketMixin):
    __tablename__ = "sales_record"
    order_id: Mapped[str] = mapped_column(String(36), unique=True)
    order_number: Mapped[str] = mapped_column(String(60))
    table_number: Mapped[int] = mapped_column(Integer)
    served_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    order_created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
