"""
OrderItem entity.

Order items belong to exactly one Order and are created and changed through
it. The product snapshot is fixed at creation; only the quantity (and with it
the total price) may change, and only while the owning order is still in its
mutable phase.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, Field, field_validator

from storefront.domain.aggregate import utc_now
from storefront.domain.errors import OrderErrors
from storefront.domain.money import Money
from storefront.domain.product_snapshot import ProductSnapshot
from storefront.domain.results import Result

if TYPE_CHECKING:
    from storefront.domain.order import Order


class OrderItem(BaseModel):
    order_item_id: str = Field(default_factory=lambda: f"item-{uuid.uuid4()}")
    order_id: str
    product_id: str
    variant_id: Optional[str] = None
    quantity: int
    unit_price: Money
    total_price: Money
    product_snapshot: ProductSnapshot
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Quantity must be positive")
        return v

    @classmethod
    def create(
        cls,
        order: Optional["Order"],
        product_id: Optional[str],
        variant_id: Optional[str],
        quantity: int,
        unit_price: Optional[Money],
        product_snapshot: Optional[ProductSnapshot],
    ) -> Result["OrderItem"]:
        """Create a line item for ``order``.

        Used by ``Order.add_item``; callers outside the aggregate should go
        through the order so that its totals stay consistent.
        """
        if order is None:
            return Result.failure(OrderErrors.ORDER_REQUIRED)
        if not product_id or not product_id.strip():
            return Result.failure(OrderErrors.PRODUCT_ID_REQUIRED)
        if quantity <= 0:
            return Result.failure(OrderErrors.INVALID_QUANTITY)
        if unit_price is None or unit_price.amount < 0:
            return Result.failure(OrderErrors.NEGATIVE_AMOUNT)
        if product_snapshot is None:
            return Result.failure(OrderErrors.PRODUCT_SNAPSHOT_REQUIRED)

        total_result = unit_price.multiply(quantity)
        if total_result.is_failure:
            return Result.failure(total_result.error)

        return Result.success(
            cls(
                order_id=order.order_id,
                product_id=product_id,
                variant_id=variant_id,
                quantity=quantity,
                unit_price=unit_price,
                total_price=total_result.value,
                product_snapshot=product_snapshot,
            )
        )

    def update_quantity(self, quantity: int) -> Result[None]:
        if quantity <= 0:
            return Result.failure(OrderErrors.INVALID_QUANTITY)

        total_result = self.unit_price.multiply(quantity)
        if total_result.is_failure:
            return Result.failure(total_result.error)

        self.quantity = quantity
        self.total_price = total_result.value
        self.updated_at = utc_now()
        return Result.success()
