"""
Shared in-memory storage for the memory repositories.

A MemoryStore plays the part of the relational database: it holds the last
committed copy of every aggregate together with its version. Units of work
read copies out of it and write copies back in at commit, so an aggregate
being mutated inside one unit of work is never visible to another until it
commits.
"""

import asyncio
import logging
from typing import Dict, TypeVar

from storefront.domain import AggregateRoot, Order, Payment

logger = logging.getLogger(__name__)

A = TypeVar("A", bound=AggregateRoot)


def detached_copy(aggregate: A) -> A:
    """Deep copy of an aggregate with an empty event buffer."""
    copied = aggregate.model_copy(deep=True)
    copied.pull_domain_events()
    return copied


class MemoryStore:
    def __init__(self) -> None:
        logger.debug("Initializing MemoryStore")
        self.orders: Dict[str, Order] = {}
        self.payments: Dict[str, Payment] = {}
        # Serialises commits so the version check and the write are atomic
        self.lock = asyncio.Lock()

    def table(self, aggregate_type: str) -> Dict[str, AggregateRoot]:
        if aggregate_type == "Order":
            return self.orders  # type: ignore[return-value]
        if aggregate_type == "Payment":
            return self.payments  # type: ignore[return-value]
        raise ValueError(f"Unknown aggregate type: {aggregate_type}")
