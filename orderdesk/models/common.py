import uuid
from sqlalchemy import String, DateTime, Numeric, JSON, Text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IdMixin:
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

class TSMMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

class CustomerMixin:
    # copied onto bills and sales records, never looked up live
    customer_name: Mapped[str] = mapped_column(String(160), default="Guest")
    customer_phone: Mapped[str] = mapped_column(String(20), default="", index=True)
    customer_email: Mapped[str] = mapped_column(String(160), default="")
    customer_address: Mapped[str] = mapped_column(Text, default="")
    user_id: Mapped[str | None] = mapped_column(String(36), index=True)

class TicketMixin:
    """Denormalized line items plus the money columns every ticket carries."""
    items: Mapped[list] = mapped_column(JSON, default=list)
    subtotal: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False))
    tax: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False))
    total: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False))

    @property
    def item_count(self) -> int:
        return sum(int(i.get("quantity") or 0) for i in (self.items or []))
