# Importing the module registers tables with Base for create_all()
from .core import (  # noqa: F401
    # Enums
    OrderStatus, BillingStatus, PaymentMethod, STATUS_FLOW,

    # Tables
    Order, Bill, BillSequence, SalesRecord,
)

__all__ = [
    "OrderStatus", "BillingStatus", "PaymentMethod", "STATUS_FLOW",
    "Order", "Bill", "BillSequence", "SalesRecord",
]
