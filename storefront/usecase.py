"""
usecase logic must be clean, without direct dependencies.
dependencies are injected via protocol instances.

Every command runs inside its own unit of work: load the aggregates, call the
domain, commit, then publish the events the commit returned. Business-rule
violations come back from the domain as failure Results and roll the unit of
work back; a stale write surfaces as a conflict error the caller may retry.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel

from storefront.domain import (
    DomainEvent,
    Error,
    Money,
    Order,
    OrderErrors,
    OrderStatus,
    Payment,
    PaymentErrors,
    PaymentMethodType,
    PaymentProvider,
    PaymentStatus,
    ProductSnapshot,
    Result,
    reconcile_order_payment,
)
from storefront.domain.gateway import (
    GatewayPaymentOutcome,
    PaymentWebhookEvent,
    WebhookEventType,
    WebhookResult,
)
from storefront.repositories import (
    ConcurrencyConflictError,
    EventPublisher,
    PaymentGateway,
    UnitOfWork,
)
from storefront.validation import (
    ensure_event_publisher,
    ensure_payment_gateway,
    ensure_unit_of_work,
)

logger = logging.getLogger(__name__)

UnitOfWorkFactory = Callable[[], UnitOfWork]
OrderAction = Callable[[UnitOfWork, Order], Awaitable[Result[None]]]

UNEXPECTED_ERROR = Error.failure(
    code="Storefront.UnexpectedError",
    message="An unexpected error occurred. Please try again later.",
)

INVALID_WEBHOOK = "Payment.InvalidWebhook"

WEBHOOK_TARGET_STATUS: Dict[WebhookEventType, PaymentStatus] = {
    "payment.processing": PaymentStatus.PROCESSING,
    "payment.succeeded": PaymentStatus.SUCCEEDED,
    "payment.failed": PaymentStatus.FAILED,
    "payment.refunded": PaymentStatus.REFUNDED,
    "payment.canceled": PaymentStatus.CANCELED,
}


class NewOrderLine(BaseModel):
    """A line to add to an order while creating it."""

    product_id: str
    quantity: int
    unit_price: Money
    product_snapshot: ProductSnapshot
    variant_id: Optional[str] = None


def _conflict_error(exc: ConcurrencyConflictError) -> Error:
    if exc.aggregate_type == "Payment":
        return PaymentErrors.concurrency_conflict(exc.aggregate_id)
    return OrderErrors.concurrency_conflict(exc.aggregate_id)


def refund_idempotency_key(payment: Payment, refund_number: int) -> str:
    """Key for the next refund of ``payment``.

    Built from committed state only, so a command retried after a conflict
    presents the same key and the gateway replays the refund it already
    issued instead of issuing another one.
    """
    return f"{payment.payment_id}:refund:{refund_number}"


def charge_idempotency_key(order: Order, attempt_number: int) -> str:
    """Key for the next charge of ``order``; see refund_idempotency_key."""
    return f"{order.order_id}:charge:{attempt_number}"


def _may_act_on(
    order: Order, acting_user_id: Optional[str], is_staff: bool
) -> bool:
    return is_staff or acting_user_id is None or order.user_id == acting_user_id


class UnitOfWorkUseCase:
    """Shared plumbing for use cases that run commands in a unit of work."""

    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        event_publisher: EventPublisher,
    ) -> None:
        # Validate at construction time for early error detection
        ensure_unit_of_work(unit_of_work_factory())
        self.unit_of_work_factory = unit_of_work_factory
        self.event_publisher = ensure_event_publisher(event_publisher)

    async def _publish(self, events: List[DomainEvent]) -> None:
        """Publish committed events.

        The state change is already durable at this point, so a publisher
        failure is logged rather than reported as a failed command.
        """
        if not events:
            return
        try:
            await self.event_publisher.publish(events)
        except Exception as e:
            logger.error(
                "Failed to publish domain events",
                extra={
                    "event_count": len(events),
                    "event_types": [event.event_type for event in events],
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )

    async def _execute_order_command(
        self,
        command: str,
        order_id: str,
        action: OrderAction,
        **context: Any,
    ) -> Result[Order]:
        """Load an order, apply ``action`` to it and commit.

        ``action`` may load and update further aggregates through the unit
        of work it receives; they are committed together with the order.
        """
        log_context = {"command": command, "order_id": order_id, **context}
        logger.debug("Starting order command", extra=log_context)

        try:
            async with self.unit_of_work_factory() as unit_of_work:
                order = await unit_of_work.orders.get(order_id)
                if order is None:
                    logger.warning(
                        "Order command failed: order not found",
                        extra=log_context,
                    )
                    return Result.failure(OrderErrors.not_found(order_id))

                result = await action(unit_of_work, order)
                if result.is_failure:
                    logger.warning(
                        "Order command rejected",
                        extra={
                            **log_context,
                            "order_status": order.status.value,
                            "error_code": result.error.code,  # type: ignore[union-attr]
                        },
                    )
                    await unit_of_work.rollback()
                    return Result.failure(result.error)  # type: ignore[arg-type]

                await unit_of_work.orders.update(order)
                events = await unit_of_work.commit()
        except ConcurrencyConflictError as e:
            logger.warning(
                "Order command lost a concurrent update",
                extra={
                    **log_context,
                    "aggregate_type": e.aggregate_type,
                    "aggregate_id": e.aggregate_id,
                },
            )
            return Result.failure(_conflict_error(e))
        except Exception as e:
            logger.error(
                "Unexpected error during order command",
                extra={
                    **log_context,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            return Result.failure(UNEXPECTED_ERROR)

        await self._publish(events)
        logger.info(
            "Order command completed",
            extra={
                **log_context,
                "order_status": order.status.value,
                "payment_status": order.payment_status.value,
                "version": order.version,
            },
        )
        return Result.success(order)


class OrderLifecycleUseCase(UnitOfWorkUseCase):
    """
    Use case for moving orders through fulfilment, cancellation and refunds.

    Refunds of captured payments are issued through the payment gateway
    before the unit of work commits; if the gateway refuses, nothing is
    written. Each refund carries an idempotency key, so a refund whose
    commit lost a concurrent update is replayed, not repeated, by the
    retry.
    """

    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        event_publisher: EventPublisher,
        payment_gateway: PaymentGateway,
    ) -> None:
        super().__init__(unit_of_work_factory, event_publisher)
        self.payment_gateway = ensure_payment_gateway(payment_gateway)

    async def create_order(
        self,
        user_id: Optional[str],
        billing_address_id: Optional[str],
        shipping_address_id: Optional[str],
        subtotal: Optional[Money],
        tax: Optional[Money],
        shipping_cost: Optional[Money],
        shipping_method: Optional[str] = None,
        items: Optional[List[NewOrderLine]] = None,
        acting_user_id: Optional[str] = None,
    ) -> Result[Order]:
        """
        Create a pending order, optionally with its lines.

        When lines are given the subtotal is recomputed from them.
        """
        logger.debug(
            "Creating order",
            extra={
                "user_id": user_id,
                "item_count": len(items or []),
                "subtotal": str(subtotal) if subtotal else None,
            },
        )

        created = Order.create(
            user_id,
            billing_address_id,
            shipping_address_id,
            subtotal,
            tax,
            shipping_cost,
            shipping_method=shipping_method,
            acting_user_id=acting_user_id,
        )
        if created.is_failure:
            logger.warning(
                "Order creation rejected",
                extra={"user_id": user_id, "error_code": created.error.code},  # type: ignore[union-attr]
            )
            return created

        order = created.value
        for line in items or []:
            added = order.add_item(
                line.product_id,
                line.quantity,
                line.unit_price,
                line.product_snapshot,
                variant_id=line.variant_id,
                acting_user_id=acting_user_id,
            )
            if added.is_failure:
                logger.warning(
                    "Order creation rejected: invalid line",
                    extra={
                        "user_id": user_id,
                        "product_id": line.product_id,
                        "error_code": added.error.code,  # type: ignore[union-attr]
                    },
                )
                return Result.failure(added.error)  # type: ignore[arg-type]

        try:
            async with self.unit_of_work_factory() as unit_of_work:
                await unit_of_work.orders.add(order)
                events = await unit_of_work.commit()
        except ConcurrencyConflictError as e:
            return Result.failure(_conflict_error(e))
        except Exception as e:
            logger.error(
                "Unexpected error while creating order",
                extra={
                    "order_id": order.order_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            return Result.failure(UNEXPECTED_ERROR)

        await self._publish(events)
        logger.info(
            "Order created",
            extra={
                "order_id": order.order_id,
                "user_id": user_id,
                "total": str(order.total),
            },
        )
        return Result.success(order)

    async def get_order(
        self,
        order_id: str,
        acting_user_id: Optional[str] = None,
        is_staff: bool = False,
    ) -> Result[Order]:
        logger.debug("Getting order", extra={"order_id": order_id})

        async with self.unit_of_work_factory() as unit_of_work:
            order = await unit_of_work.orders.get(order_id)

        if order is None:
            return Result.failure(OrderErrors.not_found(order_id))
        if not _may_act_on(order, acting_user_id, is_staff):
            logger.warning(
                "Order access denied",
                extra={"order_id": order_id, "acting_user_id": acting_user_id},
            )
            return Result.failure(OrderErrors.ACCESS_DENIED)
        return Result.success(order)

    async def mark_as_processing(
        self, order_id: str, acting_user_id: Optional[str] = None
    ) -> Result[Order]:
        async def action(unit_of_work: UnitOfWork, order: Order) -> Result[None]:
            return order.mark_as_processing(acting_user_id=acting_user_id)

        return await self._execute_order_command(
            "mark_as_processing", order_id, action
        )

    async def mark_as_shipped(
        self,
        order_id: str,
        tracking_number: Optional[str] = None,
        acting_user_id: Optional[str] = None,
    ) -> Result[Order]:
        async def action(unit_of_work: UnitOfWork, order: Order) -> Result[None]:
            return order.mark_as_shipped(
                tracking_number, acting_user_id=acting_user_id
            )

        return await self._execute_order_command(
            "mark_as_shipped",
            order_id,
            action,
            tracking_number=tracking_number,
        )

    async def mark_as_delivered(
        self, order_id: str, acting_user_id: Optional[str] = None
    ) -> Result[Order]:
        async def action(unit_of_work: UnitOfWork, order: Order) -> Result[None]:
            return order.mark_as_delivered(acting_user_id=acting_user_id)

        return await self._execute_order_command(
            "mark_as_delivered", order_id, action
        )

    async def mark_as_returned(
        self,
        order_id: str,
        reason: Optional[str] = None,
        acting_user_id: Optional[str] = None,
    ) -> Result[Order]:
        async def action(unit_of_work: UnitOfWork, order: Order) -> Result[None]:
            return order.mark_as_returned(reason, acting_user_id=acting_user_id)

        return await self._execute_order_command(
            "mark_as_returned", order_id, action, reason=reason
        )

    async def cancel_order(
        self,
        order_id: str,
        reason: Optional[str] = None,
        acting_user_id: Optional[str] = None,
        is_staff: bool = False,
    ) -> Result[Order]:
        """
        Cancel an order together with its in-flight payment attempts.

        A customer may only cancel their own orders; staff may cancel any.
        """

        async def action(unit_of_work: UnitOfWork, order: Order) -> Result[None]:
            if not _may_act_on(order, acting_user_id, is_staff):
                return Result.failure(OrderErrors.CANCEL_DENIED)

            cancelled = order.cancel(reason, acting_user_id=acting_user_id)
            if cancelled.is_failure:
                return cancelled

            for payment in await unit_of_work.payments.list_by_order(
                order.order_id
            ):
                if payment.is_final:
                    continue
                payment_cancelled = payment.cancel(
                    reason or "Order cancelled", acting_user_id=acting_user_id
                )
                if payment_cancelled.is_failure:
                    return payment_cancelled
                await unit_of_work.payments.update(payment)
                logger.debug(
                    "Cancelled in-flight payment with its order",
                    extra={
                        "order_id": order.order_id,
                        "payment_id": payment.payment_id,
                    },
                )
            return Result.success()

        return await self._execute_order_command(
            "cancel_order",
            order_id,
            action,
            reason=reason,
            acting_user_id=acting_user_id,
        )

    async def process_refund(
        self,
        order_id: str,
        reason: Optional[str] = None,
        acting_user_id: Optional[str] = None,
    ) -> Result[Order]:
        """Refund the remaining paid balance of an order."""

        async def action(unit_of_work: UnitOfWork, order: Order) -> Result[None]:
            amount = order.refundable_amount
            refunded = order.process_refund(reason, acting_user_id=acting_user_id)
            if refunded.is_failure:
                return refunded
            return await self._refund_captured_payment(
                unit_of_work, order, amount, reason, acting_user_id
            )

        return await self._execute_order_command(
            "process_refund", order_id, action, reason=reason
        )

    async def process_partial_refund(
        self,
        order_id: str,
        amount: Optional[Money],
        reason: Optional[str] = None,
        acting_user_id: Optional[str] = None,
    ) -> Result[Order]:
        async def action(unit_of_work: UnitOfWork, order: Order) -> Result[None]:
            refunded = order.process_partial_refund(
                amount, reason, acting_user_id=acting_user_id
            )
            if refunded.is_failure:
                return refunded
            return await self._refund_captured_payment(
                unit_of_work, order, amount, reason, acting_user_id  # type: ignore[arg-type]
            )

        return await self._execute_order_command(
            "process_partial_refund",
            order_id,
            action,
            amount=str(amount) if amount else None,
            reason=reason,
        )

    async def _refund_captured_payment(
        self,
        unit_of_work: UnitOfWork,
        order: Order,
        amount: Money,
        reason: Optional[str],
        acting_user_id: Optional[str],
    ) -> Result[None]:
        """Return ``amount`` through the gateway and record it on the
        captured payment. Marks the payment refunded once the order is."""
        payments = await unit_of_work.payments.list_by_order(order.order_id)
        captured = [
            p
            for p in payments
            if p.status == PaymentStatus.SUCCEEDED and p.transaction_id
        ]
        if not captured:
            logger.info(
                "No captured payment on record, refund recorded on the "
                "order only",
                extra={"order_id": order.order_id, "amount": str(amount)},
            )
            return Result.success()

        payment = captured[-1]
        refunds = list(payment.metadata.get("refunds", []))
        try:
            refund_id = await self.payment_gateway.refund_payment(
                payment.transaction_id,  # type: ignore[arg-type]
                amount.amount,
                amount.currency,
                reason,
                idempotency_key=refund_idempotency_key(payment, len(refunds)),
            )
        except Exception as e:
            logger.error(
                "Payment gateway refused the refund",
                extra={
                    "order_id": order.order_id,
                    "payment_id": payment.payment_id,
                    "amount": str(amount),
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            return Result.failure(PaymentErrors.processing_failed(str(e)))

        refunds.append(
            {
                "refund_id": refund_id,
                "amount": str(amount.amount),
                "currency": amount.currency,
                "reason": reason,
            }
        )
        payment.update_metadata("refunds", refunds)
        if reason:
            payment.update_metadata("refund_reason", reason)

        if order.is_fully_refunded:
            marked = payment.mark_as_refunded(
                refund_id, acting_user_id=acting_user_id
            )
            if marked.is_failure:
                return marked

        await unit_of_work.payments.update(payment)
        logger.info(
            "Refund issued",
            extra={
                "order_id": order.order_id,
                "payment_id": payment.payment_id,
                "refund_id": refund_id,
                "amount": str(amount),
            },
        )
        return Result.success()


class PaymentReconciliationUseCase(UnitOfWorkUseCase):
    """
    Use case for taking payments and applying gateway notifications.

    Payment and Order are separate aggregates; every change to a payment is
    reconciled onto its order and both are committed in one unit of work.
    """

    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        payment_gateway: PaymentGateway,
        event_publisher: EventPublisher,
    ) -> None:
        super().__init__(unit_of_work_factory, event_publisher)
        self.payment_gateway = ensure_payment_gateway(payment_gateway)

    async def process_order_payment(
        self,
        order_id: str,
        method_type: PaymentMethodType,
        provider: PaymentProvider,
        payment_token: Optional[str] = None,
        payment_method_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        acting_user_id: Optional[str] = None,
    ) -> Result[Payment]:
        """
        Charge the order total through the gateway.

        This method:
        1. Creates a payment attempt for the order total.
        2. Submits it to the gateway.
        3. Applies the outcome to the payment and reconciles the order.
        4. Commits both aggregates together.

        A declined or failed charge is still recorded as a failed attempt
        before the failure is returned, so it can be inspected and retried.
        """
        log_context = {
            "order_id": order_id,
            "method_type": method_type.value,
            "provider": provider.value,
        }
        logger.debug("Starting order payment", extra=log_context)

        declined: Optional[Error] = None
        try:
            async with self.unit_of_work_factory() as unit_of_work:
                order = await unit_of_work.orders.get(order_id)
                if order is None:
                    return Result.failure(OrderErrors.not_found(order_id))
                if acting_user_id is not None and order.user_id != acting_user_id:
                    logger.warning(
                        "Unauthorized payment attempt",
                        extra={**log_context, "acting_user_id": acting_user_id},
                    )
                    return Result.failure(PaymentErrors.UNAUTHORIZED_ACCESS)
                if order.status not in (
                    OrderStatus.PENDING,
                    OrderStatus.PROCESSING,
                ):
                    return Result.failure(
                        OrderErrors.invalid_status("take payment")
                    )
                if order.is_paid:
                    return Result.failure(
                        PaymentErrors.invalid_status("take a duplicate payment")
                    )

                if payment_method_id is not None:
                    method_set = order.set_payment_method(
                        payment_method_id, acting_user_id=acting_user_id
                    )
                    if method_set.is_failure:
                        return Result.failure(method_set.error)  # type: ignore[arg-type]

                attempt_number = len(
                    await unit_of_work.payments.list_by_order(order.order_id)
                )
                created = Payment.create(
                    order.order_id,
                    order.total,
                    method_type,
                    provider,
                    user_id=order.user_id,
                    payment_method_id=payment_method_id,
                )
                if created.is_failure:
                    return created
                payment = created.value
                payment.mark_as_processing(acting_user_id=acting_user_id)

                try:
                    outcome = await self.payment_gateway.process_payment(
                        order.total,
                        method_type,
                        provider,
                        payment_token=payment_token,
                        metadata={
                            **(metadata or {}),
                            "order_id": order.order_id,
                            "payment_id": payment.payment_id,
                        },
                        idempotency_key=charge_idempotency_key(
                            order, attempt_number
                        ),
                    )
                except Exception as e:
                    logger.error(
                        "Payment gateway call failed",
                        extra={
                            **log_context,
                            "payment_id": payment.payment_id,
                            "error_type": type(e).__name__,
                            "error_message": str(e),
                        },
                        exc_info=True,
                    )
                    outcome = GatewayPaymentOutcome(
                        status="failed", error_message=str(e)
                    )
                    declined = PaymentErrors.processing_failed(str(e))

                applied = self._apply_outcome(payment, outcome, acting_user_id)
                if applied.is_failure:
                    # Unusable outcomes are still recorded as failed attempts
                    logger.error(
                        "Gateway outcome rejected by payment",
                        extra={
                            **log_context,
                            "payment_id": payment.payment_id,
                            "outcome": outcome.status,
                            "transaction_id": outcome.transaction_id,
                            "error_code": applied.error.code,  # type: ignore[union-attr]
                        },
                    )
                    if outcome.transaction_id:
                        payment.update_metadata(
                            "gateway_transaction_id", outcome.transaction_id
                        )
                    payment.mark_as_failed(
                        f"Gateway outcome rejected: {applied.error.message}",  # type: ignore[union-attr]
                        acting_user_id=acting_user_id,
                    )
                    declined = PaymentErrors.processing_failed(
                        applied.error.message  # type: ignore[union-attr]
                    )
                if outcome.status == "failed" and declined is None:
                    declined = PaymentErrors.declined(
                        outcome.error_message or "no reason given"
                    )

                reconciled = reconcile_order_payment(order, payment)
                if reconciled.is_failure:
                    logger.error(
                        "Payment could not be reconciled with its order",
                        extra={
                            **log_context,
                            "payment_id": payment.payment_id,
                            "error_code": reconciled.error.code,  # type: ignore[union-attr]
                        },
                    )
                    return Result.failure(reconciled.error)  # type: ignore[arg-type]

                await unit_of_work.payments.add(payment)
                await unit_of_work.orders.update(order)
                events = await unit_of_work.commit()
        except ConcurrencyConflictError as e:
            logger.warning(
                "Order payment lost a concurrent update",
                extra={**log_context, "aggregate_id": e.aggregate_id},
            )
            return Result.failure(_conflict_error(e))
        except Exception as e:
            logger.error(
                "Unexpected error during order payment",
                extra={
                    **log_context,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            return Result.failure(UNEXPECTED_ERROR)

        await self._publish(events)

        if declined is not None:
            logger.warning(
                "Order payment failed",
                extra={
                    **log_context,
                    "payment_id": payment.payment_id,
                    "error_code": declined.code,
                },
            )
            return Result.failure(declined)

        logger.info(
            "Order payment recorded",
            extra={
                **log_context,
                "payment_id": payment.payment_id,
                "payment_status": payment.status.value,
            },
        )
        return Result.success(payment)

    def _apply_outcome(
        self,
        payment: Payment,
        outcome: GatewayPaymentOutcome,
        acting_user_id: Optional[str],
    ) -> Result[None]:
        if outcome.external_reference:
            payment.update_external_reference(outcome.external_reference)

        if outcome.status == "succeeded":
            return payment.mark_as_succeeded(
                outcome.transaction_id, acting_user_id=acting_user_id
            )
        if outcome.status == "processing":
            if outcome.transaction_id and not outcome.external_reference:
                payment.update_external_reference(outcome.transaction_id)
            return Result.success()
        return payment.mark_as_failed(
            outcome.error_message, acting_user_id=acting_user_id
        )

    async def process_webhook(
        self,
        provider: str,
        payload: str,
        signature: Optional[str] = None,
    ) -> Result[WebhookResult]:
        """
        Apply a gateway webhook delivery to the payment it refers to.

        Events that do not change payment state, and stale events for
        payments that already reached a final status, are acknowledged
        without changes so the provider stops redelivering them.
        """
        try:
            payment_provider = PaymentProvider(provider.lower())
        except ValueError:
            logger.warning(
                "Webhook for unknown provider", extra={"provider": provider}
            )
            return Result.failure(PaymentErrors.INVALID_PROVIDER)

        try:
            event = await self.payment_gateway.parse_webhook(
                payment_provider, payload, signature
            )
        except ValueError as e:
            logger.warning(
                "Rejected webhook delivery",
                extra={"provider": provider, "error_message": str(e)},
            )
            return Result.failure(Error.validation(INVALID_WEBHOOK, str(e)))

        log_context = {
            "provider": provider,
            "event_id": event.event_id,
            "event_type": event.event_type,
        }
        target = WEBHOOK_TARGET_STATUS.get(event.event_type)  # type: ignore[call-overload]
        if target is None:
            logger.info("Webhook event ignored", extra=log_context)
            return Result.success(
                WebhookResult(
                    event_id=event.event_id,
                    event_type=event.event_type,
                    processed=False,
                )
            )

        reference = event.external_reference or event.transaction_id
        if not reference:
            return Result.failure(
                Error.validation(
                    INVALID_WEBHOOK,
                    "Webhook event does not identify a payment.",
                )
            )

        try:
            async with self.unit_of_work_factory() as unit_of_work:
                payment = await self._find_payment(unit_of_work, event)
                if payment is None:
                    logger.warning(
                        "Webhook for unknown payment",
                        extra={**log_context, "reference": reference},
                    )
                    return Result.failure(PaymentErrors.not_found(reference))

                if (
                    payment.is_final
                    and payment.status != target
                    and not (
                        payment.status == PaymentStatus.SUCCEEDED
                        and target == PaymentStatus.REFUNDED
                    )
                ):
                    logger.info(
                        "Stale webhook event for settled payment ignored",
                        extra={
                            **log_context,
                            "payment_id": payment.payment_id,
                            "payment_status": payment.status.value,
                        },
                    )
                    return Result.success(
                        WebhookResult(
                            event_id=event.event_id,
                            event_type=event.event_type,
                            processed=False,
                            payment_id=payment.payment_id,
                            order_id=payment.order_id,
                            payment_status=payment.status.value,
                        )
                    )

                order = await unit_of_work.orders.get(payment.order_id)
                if order is None:
                    return Result.failure(OrderErrors.not_found(payment.order_id))

                applied = self._apply_webhook_event(payment, order, event)
                if applied.is_failure:
                    logger.warning(
                        "Webhook event rejected by payment",
                        extra={
                            **log_context,
                            "payment_id": payment.payment_id,
                            "error_code": applied.error.code,  # type: ignore[union-attr]
                        },
                    )
                    return Result.failure(applied.error)  # type: ignore[arg-type]

                reconciled = reconcile_order_payment(order, payment)
                if reconciled.is_failure:
                    logger.error(
                        "Webhook payment could not be reconciled with its "
                        "order",
                        extra={
                            **log_context,
                            "payment_id": payment.payment_id,
                            "order_id": order.order_id,
                            "error_code": reconciled.error.code,  # type: ignore[union-attr]
                        },
                    )
                    return Result.failure(reconciled.error)  # type: ignore[arg-type]

                await unit_of_work.payments.update(payment)
                await unit_of_work.orders.update(order)
                events = await unit_of_work.commit()
        except ConcurrencyConflictError as e:
            logger.warning(
                "Webhook lost a concurrent update",
                extra={**log_context, "aggregate_id": e.aggregate_id},
            )
            return Result.failure(_conflict_error(e))
        except Exception as e:
            logger.error(
                "Unexpected error while processing webhook",
                extra={
                    **log_context,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            return Result.failure(
                PaymentErrors.processing_failed(f"Unexpected error: {e}")
            )

        await self._publish(events)
        logger.info(
            "Webhook processed",
            extra={
                **log_context,
                "payment_id": payment.payment_id,
                "order_id": order.order_id,
                "payment_status": payment.status.value,
                "order_status": order.status.value,
            },
        )
        return Result.success(
            WebhookResult(
                event_id=event.event_id,
                event_type=event.event_type,
                processed=True,
                payment_id=payment.payment_id,
                order_id=order.order_id,
                payment_status=payment.status.value,
            )
        )

    async def _find_payment(
        self, unit_of_work: UnitOfWork, event: PaymentWebhookEvent
    ) -> Optional[Payment]:
        if event.external_reference:
            payment = await unit_of_work.payments.get_by_external_reference(
                event.external_reference
            )
            if payment is not None:
                return payment
        if event.transaction_id:
            payment = await unit_of_work.payments.get_by_transaction_id(
                event.transaction_id
            )
            if payment is not None:
                return payment
            return await unit_of_work.payments.get_by_external_reference(
                event.transaction_id
            )
        return None

    def _apply_webhook_event(
        self, payment: Payment, order: Order, event: PaymentWebhookEvent
    ) -> Result[None]:
        if event.event_type == "payment.processing":
            return payment.mark_as_processing(event.external_reference)

        if event.event_type == "payment.succeeded":
            return payment.mark_as_succeeded(
                event.transaction_id or payment.transaction_id
            )

        if event.event_type == "payment.failed":
            return payment.mark_as_failed(
                event.failure_reason or "Payment failed"
            )

        if event.event_type == "payment.refunded":
            reason = event.data.get("reason")
            if reason:
                payment.update_metadata("refund_reason", reason)
            return payment.mark_as_refunded(
                event.data.get("refund_id")
                or event.transaction_id
                or payment.transaction_id
            )

        # payment.canceled
        cancelled = payment.cancel(event.failure_reason or "Payment was canceled")
        if cancelled.is_failure:
            return cancelled
        if not order.is_paid and order.status in (
            OrderStatus.PENDING,
            OrderStatus.PROCESSING,
        ):
            order.cancel("Payment was canceled")
        return Result.success()
