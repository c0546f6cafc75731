"""
Pydantic models for API responses.
These define the contract between the API and external clients.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from storefront.domain import Money, Order, OrderItem, Payment


class MoneyResponse(BaseModel):
    amount: Decimal
    currency: str

    @classmethod
    def from_money(cls, money: Money) -> "MoneyResponse":
        return cls(amount=money.amount, currency=money.currency)


class OrderItemResponse(BaseModel):
    order_item_id: str
    product_id: str
    variant_id: Optional[str] = None
    quantity: int
    unit_price: MoneyResponse
    total_price: MoneyResponse
    product: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_item(cls, item: OrderItem) -> "OrderItemResponse":
        return cls(
            order_item_id=item.order_item_id,
            product_id=item.product_id,
            variant_id=item.variant_id,
            quantity=item.quantity,
            unit_price=MoneyResponse.from_money(item.unit_price),
            total_price=MoneyResponse.from_money(item.total_price),
            product=item.product_snapshot.to_dict(),
        )


class OrderResponse(BaseModel):
    """Current state of an order"""

    order_id: str
    user_id: Optional[str] = None
    status: str
    payment_status: str
    shipping_address_id: str
    billing_address_id: Optional[str] = None
    shipping_method: Optional[str] = None
    payment_method_id: Optional[str] = None
    items: List[OrderItemResponse] = Field(default_factory=list)
    subtotal: MoneyResponse
    tax: MoneyResponse
    shipping_cost: MoneyResponse
    total: MoneyResponse
    refunded_amount: MoneyResponse
    refund_reason: Optional[str] = None
    refunded_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            order_id=order.order_id,
            user_id=order.user_id,
            status=order.status.value,
            payment_status=order.payment_status.value,
            shipping_address_id=order.shipping_address_id,
            billing_address_id=order.billing_address_id,
            shipping_method=order.shipping_method,
            payment_method_id=order.payment_method_id,
            items=[OrderItemResponse.from_item(item) for item in order.items],
            subtotal=MoneyResponse.from_money(order.subtotal),
            tax=MoneyResponse.from_money(order.tax),
            shipping_cost=MoneyResponse.from_money(order.shipping_cost),
            total=MoneyResponse.from_money(order.total),
            refunded_amount=MoneyResponse.from_money(order.refunded_amount),
            refund_reason=order.refund_reason,
            refunded_at=order.refunded_at,
            metadata=order.metadata,
            version=order.version,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class PaymentResponse(BaseModel):
    """Current state of a payment attempt"""

    payment_id: str
    order_id: str
    status: str
    amount: MoneyResponse
    method_type: str
    provider: str
    transaction_id: Optional[str] = None
    external_reference: Optional[str] = None
    error_message: Optional[str] = None
    processed_at: Optional[datetime] = None

    @classmethod
    def from_payment(cls, payment: Payment) -> "PaymentResponse":
        return cls(
            payment_id=payment.payment_id,
            order_id=payment.order_id,
            status=payment.status.value,
            amount=MoneyResponse.from_money(payment.amount),
            method_type=payment.method_type.value,
            provider=payment.provider.value,
            transaction_id=payment.transaction_id,
            external_reference=payment.external_reference,
            error_message=payment.error_message,
            processed_at=payment.processed_at,
        )


class WebhookResponse(BaseModel):
    """Acknowledgement of a webhook delivery"""

    event_id: str
    event_type: str
    processed: bool
    payment_id: Optional[str] = None
    payment_status: Optional[str] = None


class ErrorResponse(BaseModel):
    code: str
    message: str


class HealthCheckResponse(BaseModel):
    status: str
    version: str
