"""
Domain layer for storefront.

Money, ProductSnapshot and OrderItem are the building blocks of the Order
aggregate; Payment is a separate aggregate tied to an order by id, and
``reconcile_order_payment`` keeps the two consistent. All domain operations
are synchronous, free of I/O, and report business-rule violations as
``Result`` failures.
"""

from .results import Error, ErrorType, Result
from .errors import (
    MoneyErrors,
    OrderErrors,
    PaymentErrors,
    ProductSnapshotErrors,
)
from .money import Money
from .aggregate import AggregateRoot
from .events import DomainEvent
from .product_snapshot import ProductSnapshot
from .order_item import OrderItem
from .payment import (
    Payment,
    PaymentMethodType,
    PaymentProvider,
    PaymentStatus,
)
from .order import Order, OrderStatus
from .reconciliation import reconcile_order_payment

__all__ = [
    "AggregateRoot",
    "DomainEvent",
    "Error",
    "ErrorType",
    "Money",
    "MoneyErrors",
    "Order",
    "OrderErrors",
    "OrderItem",
    "OrderStatus",
    "Payment",
    "PaymentErrors",
    "PaymentMethodType",
    "PaymentProvider",
    "PaymentStatus",
    "ProductSnapshot",
    "ProductSnapshotErrors",
    "Result",
    "reconcile_order_payment",
]
