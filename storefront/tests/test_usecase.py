"""
Tests for the order lifecycle and payment reconciliation use cases.

These run the use cases against the memory unit of work, gateway and event
publisher, so each test exercises the commit and publish path as well as the
domain rules.
"""

import asyncio
import json
from decimal import Decimal
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from storefront.domain import (
    OrderStatus,
    PaymentMethodType,
    PaymentProvider,
    PaymentStatus,
)
from storefront.domain.gateway import GatewayPaymentOutcome
from storefront.domain.tests.factories import (
    OrderFactory,
    ProductSnapshotFactory,
    paid_order,
    usd,
)
from storefront.repos.memory import (
    MemoryEventPublisher,
    MemoryPaymentGateway,
    MemoryStore,
    MemoryUnitOfWork,
)
from storefront.repositories import ConcurrencyConflictError, UnitOfWork
from storefront.usecase import (
    NewOrderLine,
    OrderLifecycleUseCase,
    PaymentReconciliationUseCase,
)
from storefront.validation import RepositoryValidationError


class Harness:
    def __init__(self, gateway: Optional[MemoryPaymentGateway] = None) -> None:
        self.store = MemoryStore()
        self.gateway = gateway or MemoryPaymentGateway()
        self.publisher = MemoryEventPublisher()
        self.lifecycle = OrderLifecycleUseCase(
            self.unit_of_work, self.publisher, self.gateway
        )
        self.payments = PaymentReconciliationUseCase(
            self.unit_of_work, self.gateway, self.publisher
        )

    def unit_of_work(self) -> UnitOfWork:
        return MemoryUnitOfWork(self.store)

    async def save(self, *aggregates) -> None:
        async with self.unit_of_work() as unit_of_work:
            for aggregate in aggregates:
                if hasattr(aggregate, "payment_id"):
                    await unit_of_work.payments.add(aggregate)
                else:
                    await unit_of_work.orders.add(aggregate)
            await unit_of_work.commit()

    async def create_order(self, user_id: str = "user-1"):
        result = await self.lifecycle.create_order(
            user_id=user_id,
            billing_address_id="addr-bill",
            shipping_address_id="addr-ship",
            subtotal=usd("100.00"),
            tax=usd("10.00"),
            shipping_cost=usd("5.00"),
        )
        assert result.is_success
        return result.value

    async def pay(self, order_id: str):
        result = await self.payments.process_order_payment(
            order_id, PaymentMethodType.CREDIT_CARD, PaymentProvider.STRIPE
        )
        assert result.is_success, result
        return result.value

    async def webhook(self, event_type: str, **data):
        payload = json.dumps(
            {"id": f"evt_{event_type}", "type": event_type, "data": data}
        )
        return await self.payments.process_webhook("stripe", payload)


@pytest.fixture
def harness() -> Harness:
    return Harness()


def test_use_case_rejects_invalid_collaborators() -> None:
    with pytest.raises(RepositoryValidationError):
        OrderLifecycleUseCase(
            lambda: MemoryUnitOfWork(), object(), MemoryPaymentGateway()
        )
    with pytest.raises(RepositoryValidationError):
        PaymentReconciliationUseCase(
            lambda: object(), MemoryPaymentGateway(), MemoryEventPublisher()
        )


class TestCreateOrder:
    @pytest.mark.asyncio
    async def test_create_order_persists_and_publishes(self, harness) -> None:
        order = await harness.create_order()

        assert order.total == usd("115.00")
        assert order.version == 1
        assert order.order_id in harness.store.orders
        assert harness.publisher.event_types() == ["OrderCreatedEvent"]

    @pytest.mark.asyncio
    async def test_create_order_with_lines(self, harness) -> None:
        result = await harness.lifecycle.create_order(
            user_id="user-1",
            billing_address_id=None,
            shipping_address_id="addr-ship",
            subtotal=usd("0"),
            tax=usd("2.00"),
            shipping_cost=usd("3.00"),
            items=[
                NewOrderLine(
                    product_id="prod-1",
                    quantity=2,
                    unit_price=usd("10.00"),
                    product_snapshot=ProductSnapshotFactory(),
                )
            ],
        )

        order = result.value
        assert order.subtotal == usd("20.00")
        assert order.total == usd("25.00")
        assert len(order.items) == 1

    @pytest.mark.asyncio
    async def test_create_order_validation_failure(self, harness) -> None:
        result = await harness.lifecycle.create_order(
            user_id="user-1",
            billing_address_id=None,
            shipping_address_id="",
            subtotal=usd("1"),
            tax=usd("0"),
            shipping_cost=usd("0"),
        )

        assert result.error.code == "Order.ShippingAddressRequired"
        assert harness.store.orders == {}
        assert harness.publisher.published == []


class TestOrderLifecycle:
    @pytest.mark.asyncio
    async def test_full_journey(self, harness) -> None:
        order = await harness.create_order()
        payment = await harness.pay(order.order_id)
        assert payment.status == PaymentStatus.SUCCEEDED

        assert (await harness.lifecycle.mark_as_processing(order.order_id)).is_success
        shipped = await harness.lifecycle.mark_as_shipped(
            order.order_id, tracking_number="TRACK-1"
        )
        assert shipped.value.status == OrderStatus.SHIPPED
        delivered = await harness.lifecycle.mark_as_delivered(order.order_id)
        assert delivered.value.status == OrderStatus.DELIVERED
        returned = await harness.lifecycle.mark_as_returned(
            order.order_id, reason="wrong size"
        )
        assert returned.value.status == OrderStatus.RETURNED

        refunded = await harness.lifecycle.process_refund(
            order.order_id, reason="wrong size"
        )

        assert refunded.value.status == OrderStatus.RETURNED_AND_REFUNDED
        assert refunded.value.refunded_amount == usd("115.00")
        stored_payment = harness.store.payments[payment.payment_id]
        assert stored_payment.status == PaymentStatus.REFUNDED
        assert harness.gateway.refunds[0]["amount"] == Decimal("115.00")
        assert "OrderRefundedEvent" in harness.publisher.event_types()

    @pytest.mark.asyncio
    async def test_unknown_order(self, harness) -> None:
        result = await harness.lifecycle.mark_as_shipped("order-missing")
        assert result.error.code == "Order.NotFound"

    @pytest.mark.asyncio
    async def test_rejected_command_rolls_back(self, harness) -> None:
        order = await harness.create_order()
        harness.publisher.clear()

        result = await harness.lifecycle.mark_as_shipped(order.order_id)

        assert result.error.code == "Order.PaymentRequired"
        assert harness.store.orders[order.order_id].version == 1
        assert harness.publisher.published == []

    @pytest.mark.asyncio
    async def test_get_order_access(self, harness) -> None:
        order = await harness.create_order(user_id="owner")

        assert (
            await harness.lifecycle.get_order(order.order_id, "owner")
        ).is_success
        denied = await harness.lifecycle.get_order(order.order_id, "stranger")
        assert denied.error.code == "Order.AccessDenied"
        assert (
            await harness.lifecycle.get_order(
                order.order_id, "support", is_staff=True
            )
        ).is_success
        assert (
            await harness.lifecycle.get_order("order-missing")
        ).error.code == "Order.NotFound"


class TestCancelOrder:
    @pytest.mark.asyncio
    async def test_cancel_also_cancels_in_flight_payment(self, harness) -> None:
        order = await harness.create_order()
        harness.gateway.queue_outcome(
            GatewayPaymentOutcome(
                status="processing", external_reference="pi_1"
            )
        )
        payment = await harness.pay(order.order_id)
        assert payment.status == PaymentStatus.PROCESSING

        result = await harness.lifecycle.cancel_order(
            order.order_id, reason="too slow", acting_user_id="user-1"
        )

        assert result.value.status == OrderStatus.CANCELLED
        stored_payment = harness.store.payments[payment.payment_id]
        assert stored_payment.status == PaymentStatus.CANCELED

    @pytest.mark.asyncio
    async def test_customer_cannot_cancel_someone_elses_order(
        self, harness
    ) -> None:
        order = await harness.create_order(user_id="owner")

        result = await harness.lifecycle.cancel_order(
            order.order_id, acting_user_id="stranger"
        )

        assert result.error.code == "Order.CancelDenied"
        assert harness.store.orders[order.order_id].status == OrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_staff_can_cancel_any_order(self, harness) -> None:
        order = await harness.create_order(user_id="owner")

        result = await harness.lifecycle.cancel_order(
            order.order_id, acting_user_id="support", is_staff=True
        )

        assert result.value.status == OrderStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_delivered_order_fails(self, harness) -> None:
        order = paid_order()
        order.mark_as_shipped()
        order.mark_as_delivered()
        await harness.save(order)

        result = await harness.lifecycle.cancel_order(order.order_id)

        assert result.error.code == "Order.InvalidStatus"


class TestRefunds:
    @pytest.mark.asyncio
    async def test_partial_then_full_refund(self, harness) -> None:
        order = await harness.create_order()
        payment = await harness.pay(order.order_id)

        partial = await harness.lifecycle.process_partial_refund(
            order.order_id, usd("15.00"), reason="scratched"
        )
        assert partial.value.refunded_amount == usd("15.00")
        assert (
            harness.store.payments[payment.payment_id].status
            == PaymentStatus.SUCCEEDED
        )

        full = await harness.lifecycle.process_refund(order.order_id)

        assert full.value.refunded_amount == usd("115.00")
        assert [r["amount"] for r in harness.gateway.refunds] == [
            Decimal("15.00"),
            Decimal("100.00"),
        ]
        stored_payment = harness.store.payments[payment.payment_id]
        assert stored_payment.status == PaymentStatus.REFUNDED
        assert len(stored_payment.metadata["refunds"]) == 2

    @pytest.mark.asyncio
    async def test_refund_of_unpaid_order_fails(self, harness) -> None:
        order = await harness.create_order()

        result = await harness.lifecycle.process_refund(order.order_id)

        assert result.error.code == "Order.InvalidStatus"
        assert harness.gateway.refunds == []

    @pytest.mark.asyncio
    async def test_gateway_refusal_writes_nothing(self, harness) -> None:
        order = await harness.create_order()
        await harness.pay(order.order_id)
        harness.gateway.fail_refunds = True

        result = await harness.lifecycle.process_refund(order.order_id)

        assert result.error.code == "Payment.ProcessingFailed"
        stored = harness.store.orders[order.order_id]
        assert stored.refunded_amount.is_zero
        assert stored.payment_status == PaymentStatus.SUCCEEDED

    @pytest.mark.asyncio
    async def test_refund_without_payment_record(self, harness) -> None:
        order = paid_order()
        await harness.save(order)

        result = await harness.lifecycle.process_refund(order.order_id)

        assert result.is_success
        assert harness.gateway.refunds == []


class TestProcessOrderPayment:
    @pytest.mark.asyncio
    async def test_successful_payment_marks_order_paid(self, harness) -> None:
        order = await harness.create_order()
        harness.publisher.clear()

        payment = await harness.pay(order.order_id)

        stored_order = harness.store.orders[order.order_id]
        assert stored_order.is_paid
        assert payment.transaction_id
        assert payment.amount == usd("115.00")
        assert harness.gateway.charges[0]["metadata"]["order_id"] == (
            order.order_id
        )
        published = harness.publisher.event_types()
        assert "PaymentSucceededEvent" in published
        assert "OrderPaidEvent" in published

    @pytest.mark.asyncio
    async def test_declined_payment_is_recorded(self, harness) -> None:
        order = await harness.create_order()
        harness.gateway.queue_outcome(
            GatewayPaymentOutcome(status="failed", error_message="card declined")
        )

        result = await harness.payments.process_order_payment(
            order.order_id,
            PaymentMethodType.CREDIT_CARD,
            PaymentProvider.STRIPE,
        )

        assert result.error.code == "Payment.Declined"
        [payment] = harness.store.payments.values()
        assert payment.status == PaymentStatus.FAILED
        assert payment.error_message == "card declined"
        stored_order = harness.store.orders[order.order_id]
        assert stored_order.payment_status == PaymentStatus.FAILED

        # The order can still be paid after a failed attempt
        assert (await harness.payments.process_order_payment(
            order.order_id,
            PaymentMethodType.CREDIT_CARD,
            PaymentProvider.STRIPE,
        )).is_success

    @pytest.mark.asyncio
    async def test_gateway_error_is_recorded_as_failed_attempt(
        self, harness
    ) -> None:
        order = await harness.create_order()
        harness.gateway.process_payment = AsyncMock(
            side_effect=ConnectionError("provider unreachable")
        )

        result = await harness.payments.process_order_payment(
            order.order_id,
            PaymentMethodType.CREDIT_CARD,
            PaymentProvider.STRIPE,
        )

        assert result.error.code == "Payment.ProcessingFailed"
        [payment] = harness.store.payments.values()
        assert payment.status == PaymentStatus.FAILED

    @pytest.mark.asyncio
    async def test_duplicate_payment_rejected(self, harness) -> None:
        order = await harness.create_order()
        await harness.pay(order.order_id)

        result = await harness.payments.process_order_payment(
            order.order_id,
            PaymentMethodType.CREDIT_CARD,
            PaymentProvider.STRIPE,
        )

        assert result.error.code == "Payment.InvalidStatus"
        assert len(harness.gateway.charges) == 1

    @pytest.mark.asyncio
    async def test_only_owner_may_pay(self, harness) -> None:
        order = await harness.create_order(user_id="owner")

        result = await harness.payments.process_order_payment(
            order.order_id,
            PaymentMethodType.CREDIT_CARD,
            PaymentProvider.STRIPE,
            acting_user_id="stranger",
        )

        assert result.error.code == "Payment.UnauthorizedAccess"


class TestWebhooks:
    async def processing_payment(self, harness):
        order = await harness.create_order()
        harness.gateway.queue_outcome(
            GatewayPaymentOutcome(status="processing", external_reference="pi_1")
        )
        payment = await harness.pay(order.order_id)
        return order, payment

    @pytest.mark.asyncio
    async def test_succeeded_webhook_pays_order(self, harness) -> None:
        order, payment = await self.processing_payment(harness)

        result = await harness.webhook(
            "payment.succeeded", external_reference="pi_1", transaction_id="ch_1"
        )

        assert result.value.processed
        assert result.value.payment_status == "succeeded"
        assert harness.store.orders[order.order_id].is_paid
        assert harness.store.payments[payment.payment_id].transaction_id == "ch_1"

    @pytest.mark.asyncio
    async def test_repeated_webhook_is_harmless(self, harness) -> None:
        order, _ = await self.processing_payment(harness)
        await harness.webhook(
            "payment.succeeded", external_reference="pi_1", transaction_id="ch_1"
        )

        result = await harness.webhook(
            "payment.succeeded", external_reference="pi_1", transaction_id="ch_1"
        )

        assert result.is_success
        assert harness.store.orders[order.order_id].is_paid

    @pytest.mark.asyncio
    async def test_failed_webhook(self, harness) -> None:
        order, payment = await self.processing_payment(harness)

        result = await harness.webhook(
            "payment.failed", external_reference="pi_1",
            failure_reason="insufficient funds",
        )

        assert result.is_success
        stored = harness.store.payments[payment.payment_id]
        assert stored.status == PaymentStatus.FAILED
        assert stored.error_message == "insufficient funds"
        assert (
            harness.store.orders[order.order_id].payment_status
            == PaymentStatus.FAILED
        )

    @pytest.mark.asyncio
    async def test_stale_failure_after_success_is_ignored(self, harness) -> None:
        order, _ = await self.processing_payment(harness)
        await harness.webhook(
            "payment.succeeded", external_reference="pi_1", transaction_id="ch_1"
        )

        result = await harness.webhook(
            "payment.failed", external_reference="pi_1"
        )

        assert result.is_success
        assert not result.value.processed
        assert harness.store.orders[order.order_id].is_paid

    @pytest.mark.asyncio
    async def test_canceled_webhook_cancels_unpaid_order(self, harness) -> None:
        order, payment = await self.processing_payment(harness)

        await harness.webhook("payment.canceled", external_reference="pi_1")

        assert (
            harness.store.payments[payment.payment_id].status
            == PaymentStatus.CANCELED
        )
        assert (
            harness.store.orders[order.order_id].status
            == OrderStatus.CANCELLED
        )

    @pytest.mark.asyncio
    async def test_refunded_webhook_refunds_order(self, harness) -> None:
        order = await harness.create_order()
        payment = await harness.pay(order.order_id)

        result = await harness.webhook(
            "payment.refunded",
            transaction_id=payment.transaction_id,
            reason="chargeback",
        )

        assert result.value.processed
        stored = harness.store.orders[order.order_id]
        assert stored.is_fully_refunded
        assert stored.refund_reason == "chargeback"

    @pytest.mark.asyncio
    async def test_unknown_event_is_acknowledged(self, harness) -> None:
        result = await harness.webhook("customer.created", id="cus_1")

        assert result.is_success
        assert not result.value.processed

    @pytest.mark.asyncio
    async def test_unknown_payment(self, harness) -> None:
        result = await harness.webhook(
            "payment.succeeded", external_reference="pi_missing",
            transaction_id="ch_1",
        )
        assert result.error.code == "Payment.NotFound"

    @pytest.mark.asyncio
    async def test_unknown_provider(self, harness) -> None:
        result = await harness.payments.process_webhook("acme", "{}")
        assert result.error.code == "Payment.InvalidProvider"

    @pytest.mark.asyncio
    async def test_malformed_payload(self, harness) -> None:
        result = await harness.payments.process_webhook("stripe", "not json")
        assert result.error.code == "Payment.InvalidWebhook"

    @pytest.mark.asyncio
    async def test_signature_checked_when_configured(self, harness) -> None:
        harness.gateway.webhook_secret = "whsec"
        payload = json.dumps({"id": "evt_1", "type": "customer.created"})

        rejected = await harness.payments.process_webhook(
            "stripe", payload, signature="bogus"
        )
        accepted = await harness.payments.process_webhook(
            "stripe", payload, signature=harness.gateway.sign(payload)
        )

        assert rejected.error.code == "Payment.InvalidWebhook"
        assert accepted.is_success


class TestFailureHandling:
    @pytest.mark.asyncio
    async def test_concurrency_conflict_becomes_conflict_error(
        self, harness
    ) -> None:
        order = await harness.create_order()

        class RacingUnitOfWork(MemoryUnitOfWork):
            async def commit(self):
                raise ConcurrencyConflictError("Order", order.order_id, 1, 2)

        harness.lifecycle.unit_of_work_factory = (
            lambda: RacingUnitOfWork(harness.store)
        )

        result = await harness.lifecycle.mark_as_processing(order.order_id)

        assert result.error.code == "Order.ConcurrencyConflict"
        assert result.error.type.value == "conflict"

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_generic_failure(
        self, harness
    ) -> None:
        order = await harness.create_order()
        class BrokenUnitOfWork(MemoryUnitOfWork):
            async def begin(self):
                raise RuntimeError("disk full")

        harness.lifecycle.unit_of_work_factory = (
            lambda: BrokenUnitOfWork(harness.store)
        )

        result = await harness.lifecycle.mark_as_processing(order.order_id)

        assert result.error.code == "Storefront.UnexpectedError"
        assert "disk full" not in result.error.message

    @pytest.mark.asyncio
    async def test_publisher_failure_does_not_fail_command(
        self, harness
    ) -> None:
        harness.lifecycle.event_publisher = MagicMock()
        harness.lifecycle.event_publisher.publish = AsyncMock(
            side_effect=RuntimeError("broker down")
        )

        order = await harness.create_order()

        assert order.order_id in harness.store.orders

    @pytest.mark.asyncio
    async def test_stale_order_is_reported_as_conflict(self, harness) -> None:
        order = OrderFactory()
        await harness.save(order)

        async with MemoryUnitOfWork(harness.store) as racer:
            loaded = await racer.orders.get(order.order_id)
            loaded.mark_as_processing()
            await racer.orders.update(loaded)

            assert (
                await harness.lifecycle.mark_as_processing(order.order_id)
            ).is_success

            with pytest.raises(ConcurrencyConflictError):
                await racer.commit()


class YieldingGateway(MemoryPaymentGateway):
    """Hands control back to the event loop before every charge and refund,
    the way a network call would."""

    def __init__(self) -> None:
        super().__init__()
        self.before_refund = None

    async def process_payment(self, *args, **kwargs):
        await asyncio.sleep(0)
        return await super().process_payment(*args, **kwargs)

    async def refund_payment(self, *args, **kwargs):
        await asyncio.sleep(0)
        if self.before_refund is not None:
            interleaved, self.before_refund = self.before_refund, None
            await interleaved()
        return await super().refund_payment(*args, **kwargs)


class TestGatewayCallsUnderContention:
    @pytest.mark.asyncio
    async def test_racing_partial_refunds_move_money_once(self) -> None:
        harness = Harness(YieldingGateway())
        order = await harness.create_order()
        await harness.pay(order.order_id)

        results = await asyncio.gather(
            harness.lifecycle.process_partial_refund(
                order.order_id, usd("10.00"), reason="dent"
            ),
            harness.lifecycle.process_partial_refund(
                order.order_id, usd("10.00"), reason="dent"
            ),
        )

        assert sorted(r.is_success for r in results) == [False, True]
        [lost] = [r for r in results if r.is_failure]
        assert lost.error.type.value == "conflict"
        assert len(harness.gateway.refunds) == 1
        stored = harness.store.orders[order.order_id]
        assert stored.refunded_amount == usd("10.00")

    @pytest.mark.asyncio
    async def test_racing_refunds_of_different_amounts(self) -> None:
        harness = Harness(YieldingGateway())
        order = await harness.create_order()
        await harness.pay(order.order_id)

        results = await asyncio.gather(
            harness.lifecycle.process_partial_refund(
                order.order_id, usd("10.00")
            ),
            harness.lifecycle.process_partial_refund(
                order.order_id, usd("20.00")
            ),
        )

        assert sum(r.is_success for r in results) == 1
        [refund] = harness.gateway.refunds
        stored = harness.store.orders[order.order_id]
        assert stored.refunded_amount.amount == refund["amount"]

    @pytest.mark.asyncio
    async def test_refund_retried_after_conflict_is_not_repeated(self) -> None:
        gateway = YieldingGateway()
        harness = Harness(gateway)
        order = await harness.create_order()
        payment = await harness.pay(order.order_id)

        async def concurrent_update() -> None:
            assert (
                await harness.lifecycle.mark_as_processing(order.order_id)
            ).is_success

        gateway.before_refund = concurrent_update
        first = await harness.lifecycle.process_refund(order.order_id)
        assert first.error.code == "Order.ConcurrencyConflict"

        retried = await harness.lifecycle.process_refund(order.order_id)

        assert retried.is_success
        [refund] = gateway.refunds
        assert refund["amount"] == Decimal("115.00")
        stored_payment = harness.store.payments[payment.payment_id]
        assert stored_payment.status == PaymentStatus.REFUNDED
        assert stored_payment.metadata["refunds"][0]["refund_id"] == (
            refund["refund_id"]
        )

    @pytest.mark.asyncio
    async def test_racing_payments_charge_once(self) -> None:
        harness = Harness(YieldingGateway())
        order = await harness.create_order()

        results = await asyncio.gather(
            harness.payments.process_order_payment(
                order.order_id,
                PaymentMethodType.CREDIT_CARD,
                PaymentProvider.STRIPE,
            ),
            harness.payments.process_order_payment(
                order.order_id,
                PaymentMethodType.CREDIT_CARD,
                PaymentProvider.STRIPE,
            ),
        )

        assert sum(r.is_success for r in results) == 1
        assert len(harness.gateway.charges) == 1
        assert len(harness.store.payments) == 1
        assert harness.store.orders[order.order_id].is_paid

    @pytest.mark.asyncio
    async def test_new_attempt_after_decline_gets_a_fresh_charge(
        self, harness
    ) -> None:
        order = await harness.create_order()
        harness.gateway.queue_outcome(
            GatewayPaymentOutcome(status="failed", error_message="declined")
        )
        await harness.payments.process_order_payment(
            order.order_id,
            PaymentMethodType.CREDIT_CARD,
            PaymentProvider.STRIPE,
        )

        await harness.pay(order.order_id)

        keys = [charge["idempotency_key"] for charge in harness.gateway.charges]
        assert len(keys) == 2
        assert keys[0] != keys[1]

    @pytest.mark.asyncio
    async def test_unusable_gateway_outcome_is_kept_as_failed_attempt(
        self, harness
    ) -> None:
        order = await harness.create_order()
        # A misbehaving adapter that skipped validation
        harness.gateway.queue_outcome(
            GatewayPaymentOutcome.model_construct(status="succeeded")
        )

        result = await harness.payments.process_order_payment(
            order.order_id,
            PaymentMethodType.CREDIT_CARD,
            PaymentProvider.STRIPE,
        )

        assert result.error.code == "Payment.ProcessingFailed"
        [payment] = harness.store.payments.values()
        assert payment.status == PaymentStatus.FAILED
        assert not harness.store.orders[order.order_id].is_paid
