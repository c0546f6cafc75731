"""
Memory implementation of EventPublisher.

Published events are kept in a list so tests and the local API can inspect
what would have been sent downstream.
"""

import logging
from typing import List

from storefront.domain import DomainEvent
from storefront.repositories import EventPublisher

logger = logging.getLogger(__name__)


class MemoryEventPublisher(EventPublisher):
    def __init__(self) -> None:
        self.published: List[DomainEvent] = []

    async def publish(self, events: List[DomainEvent]) -> None:
        for event in events:
            logger.info(
                "Domain event published",
                extra={
                    "event_id": event.event_id,
                    "event_type": event.event_type,
                    "aggregate_id": getattr(
                        event, "order_id", getattr(event, "payment_id", None)
                    ),
                },
            )
            self.published.append(event)

    def event_types(self) -> List[str]:
        return [event.event_type for event in self.published]

    def clear(self) -> None:
        self.published.clear()
