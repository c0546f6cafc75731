"""
Dependency injection for FastAPI endpoints.
"""

import logging
import os
from typing import Any, Callable, Dict

from storefront.repos.memory import (
    MemoryEventPublisher,
    MemoryPaymentGateway,
    MemoryStore,
    MemoryUnitOfWork,
)
from storefront.repositories import EventPublisher, PaymentGateway, UnitOfWork
from storefront.usecase import (
    OrderLifecycleUseCase,
    PaymentReconciliationUseCase,
)

logger = logging.getLogger(__name__)


class DependencyContainer:
    """
    Dependency injection container with singleton lifecycle management.
    Always creates the configured backends; tests replace them through
    FastAPI dependency overrides.
    """

    def __init__(self) -> None:
        self._instances: Dict[str, Any] = {}

    async def get_or_create(self, key: str, factory: Any) -> Any:
        """Get or create a singleton instance."""
        if key not in self._instances:
            self._instances[key] = await factory()
        return self._instances[key]

    async def get_memory_store(self) -> MemoryStore:
        store = await self.get_or_create("memory_store", self._create_store)
        return store  # type: ignore[no-any-return]

    async def get_payment_gateway(self) -> PaymentGateway:
        gateway = await self.get_or_create(
            "payment_gateway", self._create_payment_gateway
        )
        return gateway  # type: ignore[no-any-return]

    async def get_event_publisher(self) -> EventPublisher:
        publisher = await self.get_or_create(
            "event_publisher", self._create_event_publisher
        )
        return publisher  # type: ignore[no-any-return]

    async def _create_store(self) -> MemoryStore:
        logger.debug("Creating memory store")
        return MemoryStore()

    async def _create_payment_gateway(self) -> PaymentGateway:
        webhook_secret = os.environ.get("STOREFRONT_WEBHOOK_SECRET") or None
        logger.debug(
            "Creating payment gateway",
            extra={
                "gateway_type": "memory",
                "webhook_signatures": webhook_secret is not None,
            },
        )
        return MemoryPaymentGateway(webhook_secret=webhook_secret)

    async def _create_event_publisher(self) -> EventPublisher:
        return MemoryEventPublisher()


# Global container instance
_container = DependencyContainer()


async def get_unit_of_work_factory() -> Callable[[], UnitOfWork]:
    """FastAPI dependency for a factory of units of work over the shared
    store."""
    store = await _container.get_memory_store()
    return lambda: MemoryUnitOfWork(store)


async def get_order_lifecycle_use_case() -> OrderLifecycleUseCase:
    """FastAPI dependency for OrderLifecycleUseCase."""
    return OrderLifecycleUseCase(
        unit_of_work_factory=await get_unit_of_work_factory(),
        event_publisher=await _container.get_event_publisher(),
        payment_gateway=await _container.get_payment_gateway(),
    )


async def get_payment_reconciliation_use_case() -> (
    PaymentReconciliationUseCase
):
    """FastAPI dependency for PaymentReconciliationUseCase."""
    return PaymentReconciliationUseCase(
        unit_of_work_factory=await get_unit_of_work_factory(),
        payment_gateway=await _container.get_payment_gateway(),
        event_publisher=await _container.get_event_publisher(),
    )
