"""
Collaborator interfaces defined as Protocols.

The domain never performs I/O. Use cases load aggregates through these
protocols, call domain operations, and persist the result through a unit of
work. The principles every implementation follows:

- **Tracked aggregates**: repositories return live aggregate instances.
  ``add`` and ``update`` only register an aggregate with the unit of work;
  nothing is written until ``commit``.

- **Optimistic concurrency**: each aggregate carries the ``version`` it was
  loaded at. ``commit`` compares it with the stored version and raises
  ``ConcurrencyConflictError`` when another writer got there first. A commit
  is all-or-nothing across every tracked aggregate.

- **Events after commit**: ``commit`` drains the domain events of every
  tracked aggregate and returns them; use cases publish them only once the
  commit succeeded.

- **Domain Objects**: methods accept and return domain objects or
  primitives, never storage-specific types.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from storefront.domain import (
    DomainEvent,
    Money,
    Order,
    Payment,
    PaymentMethodType,
    PaymentProvider,
)
from storefront.domain.gateway import GatewayPaymentOutcome, PaymentWebhookEvent


class ConcurrencyConflictError(Exception):
    """Raised at commit when an aggregate changed since it was loaded."""

    def __init__(
        self,
        aggregate_type: str,
        aggregate_id: str,
        expected_version: int,
        actual_version: Optional[int],
    ) -> None:
        self.aggregate_type = aggregate_type
        self.aggregate_id = aggregate_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"{aggregate_type} {aggregate_id} was loaded at version "
            f"{expected_version} but is stored at version {actual_version}"
        )


@runtime_checkable
class OrderRepository(Protocol):
    """Loads and tracks Order aggregates within a unit of work."""

    async def get(self, order_id: str) -> Optional[Order]:
        """Retrieve an order by ID.

        Returns:
            A live, tracked Order if found, None otherwise
        """
        ...

    async def get_by_item_id(self, item_id: str) -> Optional[Order]:
        """Retrieve the order that owns the given order item."""
        ...

    async def add(self, order: Order) -> None:
        """Register a new order to be inserted at commit."""
        ...

    async def update(self, order: Order) -> None:
        """Register a modified order to be written at commit.

        The write is rejected at commit if ``order.version`` no longer
        matches the stored version.
        """
        ...


@runtime_checkable
class PaymentRepository(Protocol):
    """Loads and tracks Payment aggregates within a unit of work."""

    async def get(self, payment_id: str) -> Optional[Payment]:
        ...

    async def get_by_transaction_id(
        self, transaction_id: str
    ) -> Optional[Payment]:
        ...

    async def get_by_external_reference(
        self, external_reference: str
    ) -> Optional[Payment]:
        ...

    async def list_by_order(self, order_id: str) -> List[Payment]:
        """All payment attempts for an order, oldest first."""
        ...

    async def add(self, payment: Payment) -> None:
        ...

    async def update(self, payment: Payment) -> None:
        ...


@runtime_checkable
class UnitOfWork(Protocol):
    """Atomic persistence boundary around a sequence of domain calls.

    Typical use::

        async with unit_of_work:
            order = await unit_of_work.orders.get(order_id)
            order.mark_as_shipped()
            await unit_of_work.orders.update(order)
            events = await unit_of_work.commit()

    Leaving the ``async with`` block without committing rolls back.
    """

    orders: OrderRepository
    payments: PaymentRepository

    async def begin(self) -> None:
        ...

    async def commit(self) -> List[DomainEvent]:
        """Persist every tracked aggregate atomically.

        Returns:
            The domain events drained from the committed aggregates, in the
            order they were raised

        Raises:
            ConcurrencyConflictError: if any tracked aggregate is stale. No
                aggregate is written in that case.
        """
        ...

    async def rollback(self) -> None:
        ...

    async def __aenter__(self) -> "UnitOfWork":
        ...

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        ...


@runtime_checkable
class EventPublisher(Protocol):
    """Publishes committed domain events to downstream listeners
    (notification e-mails, search reindexing, analytics)."""

    async def publish(self, events: List[DomainEvent]) -> None:
        ...


@runtime_checkable
class PaymentGateway(Protocol):
    """Adapter to an external payment provider."""

    async def process_payment(
        self,
        amount: Money,
        method_type: PaymentMethodType,
        provider: PaymentProvider,
        payment_token: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> GatewayPaymentOutcome:
        """Submit a charge to the provider.

        Declines are reported through the outcome's ``failed`` status.
        Exceptions mean the provider could not be reached or answered
        nonsense; the caller records the attempt as failed.

        A repeated call with the same ``idempotency_key`` returns the
        original outcome without charging again.
        """
        ...

    async def parse_webhook(
        self,
        provider: PaymentProvider,
        payload: str,
        signature: Optional[str] = None,
    ) -> PaymentWebhookEvent:
        """Verify and decode a webhook delivery.

        Raises:
            ValueError: if the signature is invalid or the payload cannot be
                decoded
        """
        ...

    async def refund_payment(
        self,
        transaction_id: str,
        amount: Decimal,
        currency: str,
        reason: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> str:
        """Refund (part of) a captured charge.

        A repeated call with the same ``idempotency_key`` returns the
        original refund ID without refunding again.

        Returns:
            The provider's refund transaction ID

        Raises:
            ValueError: if ``idempotency_key`` was already used for a
                different refund
        """
        ...
