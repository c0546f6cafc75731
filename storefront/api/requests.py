"""
Pydantic models for API requests.
These define the contract between the API and external clients.

Amounts are decimal strings or numbers in major units. A request that omits
its currency uses the configured default currency.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from storefront.domain import PaymentMethodType, PaymentProvider


class OrderLineRequest(BaseModel):
    """A product line of a new order, with the product details captured at
    purchase time."""

    product_id: str
    variant_id: Optional[str] = None
    quantity: int
    unit_price: Decimal
    product_name: str
    sku: Optional[str] = None
    slug: Optional[str] = None
    variant_sku: Optional[str] = None
    variant_attributes: Dict[str, Any] = Field(default_factory=dict)


class CreateOrderRequest(BaseModel):
    """Request model for creating an order.

    When ``items`` are given the subtotal is computed from them and the
    ``subtotal`` field is ignored.
    """

    user_id: Optional[str] = None
    billing_address_id: Optional[str] = None
    shipping_address_id: str
    shipping_method: Optional[str] = None
    currency: Optional[str] = None
    subtotal: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    shipping_cost: Decimal = Decimal("0")
    items: List[OrderLineRequest] = Field(default_factory=list)


class ShipOrderRequest(BaseModel):
    tracking_number: Optional[str] = None


class ReasonRequest(BaseModel):
    """Request model for return, cancel and refund commands."""

    reason: Optional[str] = None


class PartialRefundRequest(BaseModel):
    amount: Decimal
    currency: Optional[str] = None
    reason: Optional[str] = None


class ProcessPaymentRequest(BaseModel):
    """Request model for charging an order."""

    method_type: PaymentMethodType
    provider: PaymentProvider
    payment_token: Optional[str] = None
    payment_method_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
