"""
Memory implementations of the storefront collaborator protocols.

A MemoryStore holds committed aggregates; each MemoryUnitOfWork works on
copies of them and writes back atomically at commit with optimistic version
checks. The memory gateway and event publisher record what they are asked
to do so tests can assert on it.
"""

from .events import MemoryEventPublisher
from .gateway import MemoryPaymentGateway
from .order import MemoryOrderRepository
from .payment import MemoryPaymentRepository
from .store import MemoryStore
from .unit_of_work import MemoryUnitOfWork

__all__ = [
    "MemoryEventPublisher",
    "MemoryOrderRepository",
    "MemoryPaymentGateway",
    "MemoryPaymentRepository",
    "MemoryStore",
    "MemoryUnitOfWork",
]
