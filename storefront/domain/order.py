"""
Order aggregate and its lifecycle state machine.

Fulfilment status::

    PENDING -> PROCESSING
    PENDING | PROCESSING -> SHIPPED -> DELIVERED -> RETURNED
    PENDING | PROCESSING -> CANCELLED           (payment not succeeded)
    any paid state -> RETURNED_AND_REFUNDED     (full refund)

Payment status is tracked alongside it (pending, processing, succeeded,
failed, refunded) and constrains fulfilment: an order cannot ship or be
delivered until its payment has succeeded, and cannot be cancelled once it
has.

The total is never set directly. It is recomputed from subtotal, tax and
shipping cost whenever one of them changes, so ``total == subtotal + tax +
shipping_cost`` holds after every operation. Refunds accumulate in
``refunded_amount``, which can never exceed the amount actually paid.

Every operation is synchronous and free of I/O. Failures are returned as
Results; the aggregate is left unchanged when an operation fails.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from storefront.domain.aggregate import AggregateRoot, utc_now
from storefront.domain.errors import OrderErrors
from storefront.domain.events import (
    OrderCancelledEvent,
    OrderCreatedEvent,
    OrderDeliveredEvent,
    OrderItemAddedEvent,
    OrderItemRemovedEvent,
    OrderItemUpdatedEvent,
    OrderPaidEvent,
    OrderPartiallyRefundedEvent,
    OrderPaymentStatusChangedEvent,
    OrderRefundedEvent,
    OrderReturnedEvent,
    OrderShippedEvent,
    OrderStatusChangedEvent,
)
from storefront.domain.money import Money
from storefront.domain.order_item import OrderItem
from storefront.domain.payment import PaymentStatus
from storefront.domain.product_snapshot import ProductSnapshot
from storefront.domain.results import Result


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    RETURNED = "returned"
    RETURNED_AND_REFUNDED = "returned_and_refunded"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {
        OrderStatus.CANCELLED,
        OrderStatus.RETURNED,
        OrderStatus.RETURNED_AND_REFUNDED,
    }
)

PRE_SHIPMENT_STATUSES = frozenset(
    {OrderStatus.PENDING, OrderStatus.PROCESSING}
)


class Order(AggregateRoot):
    order_id: str = Field(default_factory=lambda: f"order-{uuid.uuid4()}")
    user_id: Optional[str] = None
    billing_address_id: Optional[str] = None
    shipping_address_id: str
    payment_method_id: Optional[str] = None
    shipping_method: Optional[str] = None

    items: List[OrderItem] = Field(default_factory=list)
    subtotal: Money
    tax: Money
    shipping_cost: Money
    total: Money

    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING

    refunded_amount: Money
    refund_reason: Optional[str] = None
    refunded_at: Optional[datetime] = None

    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("shipping_address_id")
    @classmethod
    def shipping_address_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Shipping address ID cannot be empty")
        return v

    # --- Construction ---

    @classmethod
    def create(
        cls,
        user_id: Optional[str],
        billing_address_id: Optional[str],
        shipping_address_id: Optional[str],
        subtotal: Optional[Money],
        tax: Optional[Money],
        shipping_cost: Optional[Money],
        shipping_method: Optional[str] = None,
        acting_user_id: Optional[str] = None,
    ) -> Result["Order"]:
        """Create a pending, unpaid order.

        All three money components must share one currency.
        """
        if subtotal is None or tax is None or shipping_cost is None:
            return Result.failure(OrderErrors.NEGATIVE_AMOUNT)
        if not shipping_address_id or not shipping_address_id.strip():
            return Result.failure(OrderErrors.SHIPPING_ADDRESS_REQUIRED)

        total_result = subtotal.add_safe(tax)
        if total_result.is_success:
            total_result = total_result.value.add_safe(shipping_cost)
        if total_result.is_failure:
            return Result.failure(OrderErrors.CURRENCY_MISMATCH)

        order = cls(
            user_id=user_id,
            billing_address_id=billing_address_id,
            shipping_address_id=shipping_address_id,
            shipping_method=shipping_method,
            subtotal=subtotal,
            tax=tax,
            shipping_cost=shipping_cost,
            total=total_result.value,
            refunded_amount=Money.zero(subtotal.currency),
            created_by=acting_user_id or user_id,
        )
        order.add_domain_event(OrderCreatedEvent(order_id=order.order_id))
        return Result.success(order)

    @classmethod
    def create_paid_order(
        cls,
        user_id: Optional[str],
        billing_address_id: Optional[str],
        shipping_address_id: Optional[str],
        subtotal: Optional[Money],
        tax: Optional[Money],
        shipping_cost: Optional[Money],
        shipping_method: Optional[str] = None,
        acting_user_id: Optional[str] = None,
    ) -> Result["Order"]:
        """Create an order whose payment was already captured."""
        result = cls.create(
            user_id,
            billing_address_id,
            shipping_address_id,
            subtotal,
            tax,
            shipping_cost,
            shipping_method=shipping_method,
            acting_user_id=acting_user_id,
        )
        if result.is_failure:
            return result

        order = result.value
        paid = order.mark_as_paid(acting_user_id=acting_user_id)
        if paid.is_failure:
            return Result.failure(paid.error)
        return Result.success(order)

    # --- Read helpers ---

    @property
    def currency(self) -> str:
        return self.total.currency

    @property
    def is_paid(self) -> bool:
        return self.payment_status in (
            PaymentStatus.SUCCEEDED,
            PaymentStatus.REFUNDED,
        )

    @property
    def paid_amount(self) -> Money:
        return self.total if self.is_paid else Money.zero(self.currency)

    @property
    def refundable_amount(self) -> Money:
        remaining = self.paid_amount.subtract(self.refunded_amount)
        return remaining.value if remaining.is_success else Money.zero(
            self.currency
        )

    @property
    def is_fully_refunded(self) -> bool:
        return self.is_paid and self.refunded_amount == self.total

    def get_item(self, item_id: str) -> Optional[OrderItem]:
        for item in self.items:
            if item.order_item_id == item_id:
                return item
        return None

    # --- Internal helpers ---

    def _is_mutable(self) -> bool:
        return (
            self.status == OrderStatus.PENDING
            and self.payment_status != PaymentStatus.SUCCEEDED
            and self.payment_status != PaymentStatus.REFUNDED
        )

    def _recalculate_totals(self) -> None:
        subtotal = Money.zero(self.subtotal.currency)
        for item in self.items:
            subtotal = subtotal.add(item.total_price)
        self.subtotal = subtotal
        self.total = subtotal.add(self.tax).add(self.shipping_cost)

    def _change_status(self, new_status: OrderStatus) -> None:
        old_status = self.status
        self.status = new_status
        self.add_domain_event(
            OrderStatusChangedEvent(
                order_id=self.order_id,
                old_status=old_status.value,
                new_status=new_status.value,
            )
        )

    def _change_payment_status(self, new_status: PaymentStatus) -> None:
        old_status = self.payment_status
        self.payment_status = new_status
        self.add_domain_event(
            OrderPaymentStatusChangedEvent(
                order_id=self.order_id,
                old_status=old_status.value,
                new_status=new_status.value,
            )
        )

    # --- Item management (pending, unpaid orders only) ---

    def add_item(
        self,
        product_id: str,
        quantity: int,
        unit_price: Optional[Money],
        product_snapshot: Optional[ProductSnapshot],
        variant_id: Optional[str] = None,
        acting_user_id: Optional[str] = None,
    ) -> Result[OrderItem]:
        if not self._is_mutable():
            return Result.failure(OrderErrors.invalid_status("add item"))
        if unit_price is not None and unit_price.currency != self.currency:
            return Result.failure(OrderErrors.CURRENCY_MISMATCH)

        item_result = OrderItem.create(
            self,
            product_id,
            variant_id,
            quantity,
            unit_price,
            product_snapshot,
        )
        if item_result.is_failure:
            return item_result

        item = item_result.value
        self.items.append(item)
        self._recalculate_totals()
        self._touch(acting_user_id)
        self.add_domain_event(
            OrderItemAddedEvent(
                order_id=self.order_id, item_id=item.order_item_id
            )
        )
        return Result.success(item)

    def update_item_quantity(
        self,
        item_id: str,
        quantity: int,
        acting_user_id: Optional[str] = None,
    ) -> Result[None]:
        if not self._is_mutable():
            return Result.failure(
                OrderErrors.invalid_status("update item quantity")
            )

        item = self.get_item(item_id)
        if item is None:
            return Result.failure(OrderErrors.item_not_found(item_id))

        updated = item.update_quantity(quantity)
        if updated.is_failure:
            return updated

        self._recalculate_totals()
        self._touch(acting_user_id)
        self.add_domain_event(
            OrderItemUpdatedEvent(order_id=self.order_id, item_id=item_id)
        )
        return Result.success()

    def remove_item(
        self, item_id: str, acting_user_id: Optional[str] = None
    ) -> Result[None]:
        if not self._is_mutable():
            return Result.failure(OrderErrors.invalid_status("remove item"))

        item = self.get_item(item_id)
        if item is None:
            return Result.failure(OrderErrors.item_not_found(item_id))

        self.items.remove(item)
        self._recalculate_totals()
        self._touch(acting_user_id)
        self.add_domain_event(
            OrderItemRemovedEvent(order_id=self.order_id, item_id=item_id)
        )
        return Result.success()

    # --- Payment ---

    def mark_as_paid(self, acting_user_id: Optional[str] = None) -> Result[None]:
        if self.status not in PRE_SHIPMENT_STATUSES:
            return Result.failure(
                OrderErrors.invalid_status("mark order as paid")
            )
        if self.is_paid:
            return Result.failure(
                OrderErrors.invalid_status("mark order as paid - already paid")
            )

        self._change_payment_status(PaymentStatus.SUCCEEDED)
        self._touch(acting_user_id)
        self.add_domain_event(OrderPaidEvent(order_id=self.order_id))
        return Result.success()

    def update_payment_status(
        self, status: PaymentStatus, acting_user_id: Optional[str] = None
    ) -> Result[None]:
        """Mirror a non-final payment report (pending, processing, failed).

        Success is recorded with ``mark_as_paid`` and refunds through the
        refund operations, so those statuses are refused here.
        """
        if status == self.payment_status:
            return Result.success()
        if status in (PaymentStatus.SUCCEEDED, PaymentStatus.REFUNDED):
            return Result.failure(
                OrderErrors.invalid_status(f"set payment status to {status.value}")
            )
        if self.is_paid or self.status in TERMINAL_STATUSES:
            return Result.failure(
                OrderErrors.invalid_status("update payment status")
            )

        self._change_payment_status(status)
        self._touch(acting_user_id)
        return Result.success()

    def set_payment_method(
        self, payment_method_id: Optional[str], acting_user_id: Optional[str] = None
    ) -> Result[None]:
        if not payment_method_id or not payment_method_id.strip():
            return Result.failure(OrderErrors.PAYMENT_METHOD_REQUIRED)

        self.payment_method_id = payment_method_id
        self._touch(acting_user_id)
        return Result.success()

    # --- Fulfilment ---

    def mark_as_processing(
        self, acting_user_id: Optional[str] = None
    ) -> Result[None]:
        if self.status != OrderStatus.PENDING:
            return Result.failure(
                OrderErrors.invalid_status("start processing")
            )

        self._change_status(OrderStatus.PROCESSING)
        self._touch(acting_user_id)
        return Result.success()

    def mark_as_shipped(
        self,
        tracking_number: Optional[str] = None,
        acting_user_id: Optional[str] = None,
    ) -> Result[None]:
        if self.status not in PRE_SHIPMENT_STATUSES:
            return Result.failure(OrderErrors.invalid_status("ship"))
        if self.payment_status != PaymentStatus.SUCCEEDED:
            return Result.failure(OrderErrors.PAYMENT_REQUIRED)

        self._change_status(OrderStatus.SHIPPED)
        if tracking_number is not None:
            self.metadata["tracking_number"] = tracking_number
        self._touch(acting_user_id)
        self.add_domain_event(
            OrderShippedEvent(
                order_id=self.order_id, tracking_number=tracking_number
            )
        )
        return Result.success()

    def mark_as_delivered(
        self, acting_user_id: Optional[str] = None
    ) -> Result[None]:
        if self.status != OrderStatus.SHIPPED:
            return Result.failure(
                OrderErrors.invalid_status("mark as delivered")
            )
        if self.payment_status != PaymentStatus.SUCCEEDED:
            return Result.failure(OrderErrors.PAYMENT_REQUIRED)

        self._change_status(OrderStatus.DELIVERED)
        self._touch(acting_user_id)
        self.add_domain_event(OrderDeliveredEvent(order_id=self.order_id))
        return Result.success()

    def mark_as_returned(
        self, reason: Optional[str] = None, acting_user_id: Optional[str] = None
    ) -> Result[None]:
        if self.status != OrderStatus.DELIVERED:
            return Result.failure(
                OrderErrors.invalid_status(
                    "mark as returned - only delivered orders can be returned"
                )
            )

        self._change_status(OrderStatus.RETURNED)
        if reason is not None:
            self.metadata["return_reason"] = reason
        self.metadata["returned_at"] = utc_now().isoformat()
        self._touch(acting_user_id)
        self.add_domain_event(
            OrderReturnedEvent(order_id=self.order_id, reason=reason)
        )
        return Result.success()

    def cancel(
        self, reason: Optional[str] = None, acting_user_id: Optional[str] = None
    ) -> Result[None]:
        """Cancel an order that has neither shipped nor been paid.

        Orders that were paid or fulfilled are unwound through the return
        and refund operations instead.
        """
        if self.status not in PRE_SHIPMENT_STATUSES:
            return Result.failure(
                OrderErrors.invalid_status(
                    "cancel - only pending or processing orders can be "
                    "cancelled"
                )
            )
        if self.is_paid:
            return Result.failure(
                OrderErrors.invalid_status(
                    "cancel - paid orders must be refunded instead"
                )
            )

        self._change_status(OrderStatus.CANCELLED)
        if reason is not None:
            self.metadata["cancellation_reason"] = reason
        self._touch(acting_user_id)
        self.add_domain_event(
            OrderCancelledEvent(order_id=self.order_id, reason=reason)
        )
        return Result.success()

    # --- Refunds ---

    def _check_refundable(self) -> Result[None]:
        if self.is_fully_refunded:
            return Result.failure(
                OrderErrors.invalid_status(
                    "refund - order has already been fully refunded"
                )
            )
        if self.payment_status != PaymentStatus.SUCCEEDED:
            return Result.failure(
                OrderErrors.invalid_status("refund - order has not been paid")
            )
        if self.status == OrderStatus.CANCELLED:
            return Result.failure(
                OrderErrors.invalid_status("refund a cancelled order")
            )
        return Result.success()

    def _complete_refund(
        self,
        refunded_now: Money,
        reason: Optional[str],
        acting_user_id: Optional[str],
    ) -> None:
        self.refunded_amount = self.total
        self.refunded_at = utc_now()
        self.refund_reason = reason

        self.metadata["refunded"] = True
        self.metadata["refunded_at"] = self.refunded_at.isoformat()
        if reason:
            self.metadata["refund_reason"] = reason

        self.add_domain_event(
            OrderRefundedEvent(
                order_id=self.order_id,
                amount=refunded_now.amount,
                currency=refunded_now.currency,
                reason=reason,
            )
        )
        self._change_status(OrderStatus.RETURNED_AND_REFUNDED)
        self._change_payment_status(PaymentStatus.REFUNDED)
        self._touch(acting_user_id)

    def process_refund(
        self, reason: Optional[str] = None, acting_user_id: Optional[str] = None
    ) -> Result[None]:
        """Refund whatever part of the paid total has not been refunded yet.

        After earlier partial refunds only the remaining balance is
        refunded, so ``refunded_amount`` ends at exactly ``total``.
        """
        refundable = self._check_refundable()
        if refundable.is_failure:
            return refundable

        remaining = self.total.subtract(self.refunded_amount)
        if remaining.is_failure:
            return Result.failure(remaining.error)

        self._complete_refund(remaining.value, reason, acting_user_id)
        return Result.success()

    def process_partial_refund(
        self,
        amount: Optional[Money],
        reason: Optional[str] = None,
        acting_user_id: Optional[str] = None,
    ) -> Result[None]:
        refundable = self._check_refundable()
        if refundable.is_failure:
            return refundable
        if amount is None or amount.amount <= 0:
            return Result.failure(OrderErrors.INVALID_AMOUNT)
        if amount.currency != self.currency:
            return Result.failure(OrderErrors.CURRENCY_MISMATCH)

        # Refunding past the paid total fails in Money.subtract
        balance = self.refundable_amount.subtract(amount)
        if balance.is_failure:
            return Result.failure(balance.error)

        if balance.value.is_zero:
            self._complete_refund(amount, reason, acting_user_id)
            return Result.success()

        self.refunded_amount = self.refunded_amount.add(amount)
        self.refunded_at = utc_now()

        partial_refunds = list(self.metadata.get("partial_refunds", []))
        partial_refunds.append(
            {
                "amount": str(amount.amount),
                "currency": amount.currency,
                "date": self.refunded_at.isoformat(),
                "reason": reason or "Partial refund",
            }
        )
        self.metadata["partial_refunds"] = partial_refunds
        self._touch(acting_user_id)
        self.add_domain_event(
            OrderPartiallyRefundedEvent(
                order_id=self.order_id,
                amount=amount.amount,
                currency=amount.currency,
                reason=reason,
            )
        )
        return Result.success()

    # --- Metadata ---

    def update_metadata(
        self, key: Optional[str], value: Any, acting_user_id: Optional[str] = None
    ) -> Result[None]:
        if not key or not key.strip():
            return Result.failure(OrderErrors.INVALID_METADATA_KEY)

        self.metadata[key] = value
        self._touch(acting_user_id)
        return Result.success()
