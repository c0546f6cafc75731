"""
Memory implementation of OrderRepository.

Orders are read from the unit of work's MemoryStore as detached copies and
tracked in its identity map, so loading the same order twice within one
unit of work returns the same instance.
"""

import logging
from typing import TYPE_CHECKING, Optional

from storefront.domain import Order
from storefront.repositories import OrderRepository

if TYPE_CHECKING:
    from .unit_of_work import MemoryUnitOfWork

logger = logging.getLogger(__name__)


class MemoryOrderRepository(OrderRepository):
    def __init__(self, unit_of_work: "MemoryUnitOfWork") -> None:
        self.unit_of_work = unit_of_work

    async def get(self, order_id: str) -> Optional[Order]:
        order = self.unit_of_work.load(("Order", order_id))
        if order is None:
            logger.debug("Order not found", extra={"order_id": order_id})
        return order  # type: ignore[return-value]

    async def get_by_item_id(self, item_id: str) -> Optional[Order]:
        for key, tracked in self.unit_of_work.tracked("Order"):
            if tracked.get_item(item_id) is not None:  # type: ignore[attr-defined]
                return tracked  # type: ignore[return-value]

        for order_id, stored in self.unit_of_work.store.orders.items():
            if stored.get_item(item_id) is not None:
                return await self.get(order_id)

        logger.debug("No order owns item", extra={"item_id": item_id})
        return None

    async def add(self, order: Order) -> None:
        logger.debug(
            "Registering new order",
            extra={"order_id": order.order_id, "user_id": order.user_id},
        )
        self.unit_of_work.register(order, is_new=True)

    async def update(self, order: Order) -> None:
        self.unit_of_work.register(order, is_new=False)
