"""
Memory implementation of UnitOfWork.

Each unit of work keeps an identity map of the aggregates it loaded and the
ordered set of aggregates registered for writing. ``commit`` takes the
store lock, checks every registered aggregate's version against the stored
one, and only if all match writes them all and bumps their versions. A stale
aggregate raises ConcurrencyConflictError and nothing is written.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from storefront.domain import AggregateRoot, DomainEvent, Order, Payment
from storefront.repositories import ConcurrencyConflictError, UnitOfWork
from .order import MemoryOrderRepository
from .payment import MemoryPaymentRepository
from .store import MemoryStore, detached_copy

logger = logging.getLogger(__name__)

AggregateKey = Tuple[str, str]


def aggregate_key(aggregate: AggregateRoot) -> AggregateKey:
    if isinstance(aggregate, Order):
        return ("Order", aggregate.order_id)
    if isinstance(aggregate, Payment):
        return ("Payment", aggregate.payment_id)
    raise ValueError(f"Unsupported aggregate: {type(aggregate).__name__}")


class MemoryUnitOfWork(UnitOfWork):
    def __init__(self, store: Optional[MemoryStore] = None) -> None:
        self.store = store if store is not None else MemoryStore()
        self._identity_map: Dict[AggregateKey, AggregateRoot] = {}
        self._pending: Dict[AggregateKey, Tuple[AggregateRoot, bool]] = {}
        self._committed = False
        self.orders = MemoryOrderRepository(self)
        self.payments = MemoryPaymentRepository(self)

    # --- Tracking, used by the repositories ---

    def load(self, key: AggregateKey) -> Optional[AggregateRoot]:
        tracked = self._identity_map.get(key)
        if tracked is not None:
            return tracked

        stored = self.store.table(key[0]).get(key[1])
        if stored is None:
            return None

        aggregate = detached_copy(stored)
        self._identity_map[key] = aggregate
        return aggregate

    def tracked(
        self, aggregate_type: str
    ) -> List[Tuple[AggregateKey, AggregateRoot]]:
        return [
            (key, aggregate)
            for key, aggregate in self._identity_map.items()
            if key[0] == aggregate_type
        ]

    def register(self, aggregate: AggregateRoot, is_new: bool) -> None:
        key = aggregate_key(aggregate)
        self._identity_map[key] = aggregate
        if key in self._pending:
            # An aggregate added then updated in the same unit stays an insert
            is_new = self._pending[key][1] or is_new
        self._pending[key] = (aggregate, is_new)

    # --- UnitOfWork protocol ---

    async def begin(self) -> None:
        self._identity_map.clear()
        self._pending.clear()
        self._committed = False

    async def commit(self) -> List[DomainEvent]:
        async with self.store.lock:
            for key, (aggregate, is_new) in self._pending.items():
                stored = self.store.table(key[0]).get(key[1])
                if is_new:
                    if stored is not None:
                        raise ConcurrencyConflictError(
                            key[0], key[1], 0, stored.version
                        )
                elif stored is None or stored.version != aggregate.version:
                    logger.warning(
                        "Concurrency conflict detected at commit",
                        extra={
                            "aggregate_type": key[0],
                            "aggregate_id": key[1],
                            "expected_version": aggregate.version,
                            "actual_version": (
                                stored.version if stored else None
                            ),
                        },
                    )
                    raise ConcurrencyConflictError(
                        key[0],
                        key[1],
                        aggregate.version,
                        stored.version if stored else None,
                    )

            events: List[DomainEvent] = []
            for key, (aggregate, _) in self._pending.items():
                aggregate.version += 1
                events.extend(aggregate.pull_domain_events())
                self.store.table(key[0])[key[1]] = detached_copy(aggregate)

        logger.debug(
            "Unit of work committed",
            extra={
                "aggregates": [f"{k[0]}:{k[1]}" for k in self._pending],
                "event_count": len(events),
            },
        )
        self._pending.clear()
        self._committed = True
        return events

    async def rollback(self) -> None:
        if self._pending:
            logger.debug(
                "Unit of work rolled back",
                extra={
                    "aggregates": [f"{k[0]}:{k[1]}" for k in self._pending]
                },
            )
        self._identity_map.clear()
        self._pending.clear()

    async def __aenter__(self) -> "MemoryUnitOfWork":
        await self.begin()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if exc_type is not None or not self._committed:
            await self.rollback()
