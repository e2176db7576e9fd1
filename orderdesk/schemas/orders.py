from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from orderdesk.models.core import OrderStatus, BillingStatus, PaymentMethod
from orderdesk.schemas.common import CamelIn, CamelOut


class OrderItemIn(CamelIn):
    menu_item_id: Optional[str] = None
    name: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    price: float = Field(ge=0)
    description: str = ""
    image_link: str = ""
    category: Optional[str] = None


class OrderIn(CamelIn):
    session_id: str = Field(min_length=1)
    order_number: str = Field(min_length=1)
    table_number: int = Field(ge=1)
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    customer_address: Optional[str] = None
    user_id: Optional[str] = None
    items: list[OrderItemIn] = Field(min_length=1)
    subtotal: float = Field(ge=0)
    tax: float = Field(ge=0)
    total: float = Field(ge=0)
    estimated_time: Optional[str] = None

    @field_validator("customer_name", "customer_phone", "customer_address", mode="after")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("customer_email", mode="after")
    @classmethod
    def _email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


# status fields stay plain strings so the service can answer with the valid set
class StatusIn(CamelIn):
    status: Optional[str] = None


class BillingStatusIn(CamelIn):
    billing_status: Optional[str] = None
    payment_method: Optional[str] = None


class OrderItemOut(CamelOut):
    menu_item_id: Optional[str] = None
    name: str
    quantity: int
    price: float
    description: str = ""
    image_link: str = ""
    category: Optional[str] = None


class OrderOut(CamelOut):
    id: str
    session_id: str
    order_number: str
    table_number: int
    customer_name: str
    customer_phone: str
    customer_email: str
    customer_address: str
    user_id: Optional[str] = None
    items: list[OrderItemOut]
    item_count: int
    subtotal: float
    tax: float
    total: float
    status: OrderStatus
    estimated_time: Optional[str] = None
    billing_status: BillingStatus
    payment_requested_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class BillOrderRef(CamelOut):
    order_id: str
    order_number: str


class BillOut(CamelOut):
    id: str
    bill_number: str
    session_id: str
    table_number: int
    customer_name: str
    customer_phone: str
    customer_email: str
    customer_address: str
    user_id: Optional[str] = None
    items: list[OrderItemOut]
    item_count: int
    subtotal: float
    tax: float
    total: float
    order_count: int
    orders: list[BillOrderRef]
    billing_status: BillingStatus
    payment_requested_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    payment_method: Optional[PaymentMethod] = None
    created_at: datetime
    updated_at: datetime


class SalesRecordOut(CamelOut):
    id: str
    order_id: str
    order_number: str
    table_number: int
    customer_name: str
    customer_phone: str
    customer_email: str
    customer_address: str
    user_id: Optional[str] = None
    items: list[OrderItemOut]
    subtotal: float
    tax: float
    total: float
    served_at: datetime
    order_created_at: datetime
