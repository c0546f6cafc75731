"""
Memory implementation of PaymentRepository.
"""

import logging
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from storefront.domain import Payment
from storefront.repositories import PaymentRepository

if TYPE_CHECKING:
    from .unit_of_work import MemoryUnitOfWork

logger = logging.getLogger(__name__)


class MemoryPaymentRepository(PaymentRepository):
    def __init__(self, unit_of_work: "MemoryUnitOfWork") -> None:
        self.unit_of_work = unit_of_work

    async def get(self, payment_id: str) -> Optional[Payment]:
        return self.unit_of_work.load(("Payment", payment_id))  # type: ignore[return-value]

    async def get_by_transaction_id(
        self, transaction_id: str
    ) -> Optional[Payment]:
        return await self._find_one(
            lambda p: p.transaction_id == transaction_id
        )

    async def get_by_external_reference(
        self, external_reference: str
    ) -> Optional[Payment]:
        return await self._find_one(
            lambda p: p.external_reference == external_reference
        )

    async def list_by_order(self, order_id: str) -> List[Payment]:
        found: Dict[str, Payment] = {}
        for _, tracked in self.unit_of_work.tracked("Payment"):
            if tracked.order_id == order_id:  # type: ignore[attr-defined]
                found[tracked.payment_id] = tracked  # type: ignore[attr-defined]

        for payment_id, stored in self.unit_of_work.store.payments.items():
            if stored.order_id == order_id and payment_id not in found:
                payment = await self.get(payment_id)
                if payment is not None:
                    found[payment_id] = payment

        return sorted(found.values(), key=lambda p: p.created_at)

    async def add(self, payment: Payment) -> None:
        logger.debug(
            "Registering new payment",
            extra={
                "payment_id": payment.payment_id,
                "order_id": payment.order_id,
            },
        )
        self.unit_of_work.register(payment, is_new=True)

    async def update(self, payment: Payment) -> None:
        self.unit_of_work.register(payment, is_new=False)

    async def _find_one(
        self, predicate: Callable[[Payment], bool]
    ) -> Optional[Payment]:
        for _, tracked in self.unit_of_work.tracked("Payment"):
            if predicate(tracked):  # type: ignore[arg-type]
                return tracked  # type: ignore[return-value]

        for payment_id, stored in self.unit_of_work.store.payments.items():
            if predicate(stored):
                payment = await self.get(payment_id)
                if payment is not None and predicate(payment):
                    return payment
        return None
