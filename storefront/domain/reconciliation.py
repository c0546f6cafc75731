"""
Order-payment reconciliation rules.

Order and Payment are separate aggregates: a payment attempt can fail and be
retried without rewriting order history. Their states still have to agree, so
whenever a payment changes the orchestration layer calls
``reconcile_order_payment`` inside the same unit of work and commits both
aggregates together. An order must never look paid without a succeeded
payment record, and a succeeded payment must never leave its order unpaid.
"""

import logging

from storefront.domain.errors import PaymentErrors
from storefront.domain.order import Order, TERMINAL_STATUSES
from storefront.domain.payment import Payment, PaymentStatus
from storefront.domain.results import Result

logger = logging.getLogger(__name__)


def reconcile_order_payment(order: Order, payment: Payment) -> Result[None]:
    """Bring ``order`` in line with the current status of ``payment``.

    Idempotent: reconciling an order that already reflects the payment
    changes nothing.
    """
    if payment.order_id != order.order_id:
        return Result.failure(PaymentErrors.INVALID_ORDER_ID)

    if payment.status == PaymentStatus.SUCCEEDED:
        if payment.currency != order.currency:
            return Result.failure(PaymentErrors.CURRENCY_MISMATCH)
        if payment.amount.amount != order.total.amount:
            return Result.failure(PaymentErrors.AMOUNT_MISMATCH)
        if order.is_paid:
            return Result.success()
        return order.mark_as_paid()

    if payment.status in (PaymentStatus.PROCESSING, PaymentStatus.FAILED):
        if order.is_paid or order.status in TERMINAL_STATUSES:
            # A stale attempt reporting after the order settled
            logger.debug(
                "Ignoring payment report for settled order",
                extra={
                    "order_id": order.order_id,
                    "payment_id": payment.payment_id,
                    "payment_status": payment.status.value,
                },
            )
            return Result.success()
        return order.update_payment_status(payment.status)

    if payment.status == PaymentStatus.REFUNDED:
        if order.is_fully_refunded:
            return Result.success()
        return order.process_refund(
            reason=payment.metadata.get("refund_reason")
        )

    return Result.success()
