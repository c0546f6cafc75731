"""
Domain events raised by the Order and Payment aggregates.

Aggregates buffer these records while a unit of work runs. The orchestration
layer drains the buffers and hands the events to an EventPublisher only after
the unit of work has committed.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DomainEvent(BaseModel):
    """Base record for something that happened inside an aggregate."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: f"evt-{uuid.uuid4()}")
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def event_type(self) -> str:
        return type(self).__name__


# --- Order events ---


class OrderEvent(DomainEvent):
    order_id: str


class OrderCreatedEvent(OrderEvent):
    pass


class OrderItemAddedEvent(OrderEvent):
    item_id: str


class OrderItemUpdatedEvent(OrderEvent):
    item_id: str


class OrderItemRemovedEvent(OrderEvent):
    item_id: str


class OrderStatusChangedEvent(OrderEvent):
    old_status: str
    new_status: str


class OrderPaymentStatusChangedEvent(OrderEvent):
    old_status: str
    new_status: str


class OrderPaidEvent(OrderEvent):
    pass


class OrderShippedEvent(OrderEvent):
    tracking_number: Optional[str] = None


class OrderDeliveredEvent(OrderEvent):
    pass


class OrderReturnedEvent(OrderEvent):
    reason: Optional[str] = None


class OrderCancelledEvent(OrderEvent):
    reason: Optional[str] = None


class OrderRefundedEvent(OrderEvent):
    amount: Decimal
    currency: str
    reason: Optional[str] = None


class OrderPartiallyRefundedEvent(OrderEvent):
    amount: Decimal
    currency: str
    reason: Optional[str] = None


# --- Payment events ---


class PaymentEvent(DomainEvent):
    payment_id: str


class PaymentCreatedEvent(PaymentEvent):
    order_id: str


class PaymentStatusChangedEvent(PaymentEvent):
    old_status: str
    new_status: str


class PaymentSucceededEvent(PaymentEvent):
    order_id: str


class PaymentFailedEvent(PaymentEvent):
    order_id: str
    error_message: Optional[str] = None


class PaymentRefundedEvent(PaymentEvent):
    order_id: str


class PaymentCancelledEvent(PaymentEvent):
    order_id: str


class PaymentUpdatedEvent(PaymentEvent):
    pass
