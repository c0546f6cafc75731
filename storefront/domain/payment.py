"""
Payment aggregate.

A Payment tracks one payment attempt for an Order through the gateway
lifecycle::

    PENDING -> PROCESSING -> SUCCEEDED | FAILED
    FAILED -> PROCESSING            (retry)
    SUCCEEDED -> REFUNDED
    PENDING | PROCESSING | FAILED -> CANCELED

Transitions only move forward, except that a failed attempt may be retried.
Re-applying the current status is accepted without raising an event because
gateway webhooks are routinely delivered more than once. Payments are never
deleted; they are kept as the audit trail of every attempt.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field, field_validator

from storefront.domain.aggregate import AggregateRoot, utc_now
from storefront.domain.errors import PaymentErrors
from storefront.domain.events import (
    PaymentCancelledEvent,
    PaymentCreatedEvent,
    PaymentFailedEvent,
    PaymentRefundedEvent,
    PaymentStatusChangedEvent,
    PaymentSucceededEvent,
    PaymentUpdatedEvent,
)
from storefront.domain.money import Money
from storefront.domain.results import Result


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELED = "canceled"


class PaymentMethodType(str, Enum):
    CREDIT_CARD = "credit_card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"
    WALLET = "wallet"


class PaymentProvider(str, Enum):
    STRIPE = "stripe"
    PAYPAL = "paypal"
    CUSTOM = "custom"


class Payment(AggregateRoot):
    payment_id: str = Field(default_factory=lambda: f"pmt-{uuid.uuid4()}")
    order_id: str
    user_id: Optional[str] = None
    amount: Money
    method_type: PaymentMethodType
    provider: PaymentProvider
    status: PaymentStatus = PaymentStatus.PENDING
    external_reference: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_method_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("amount")
    @classmethod
    def amount_must_be_positive(cls, v: Money) -> Money:
        if v.amount <= 0:
            raise ValueError("Payment amount must be positive")
        return v

    @field_validator("order_id")
    @classmethod
    def order_id_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Order ID cannot be empty")
        return v

    @classmethod
    def create(
        cls,
        order_id: Optional[str],
        amount: Optional[Money],
        method_type: PaymentMethodType,
        provider: PaymentProvider,
        user_id: Optional[str] = None,
        external_reference: Optional[str] = None,
        payment_method_id: Optional[str] = None,
    ) -> Result["Payment"]:
        if not order_id or not order_id.strip():
            return Result.failure(PaymentErrors.INVALID_ORDER_ID)
        if amount is None or amount.amount <= 0:
            return Result.failure(PaymentErrors.NEGATIVE_AMOUNT)

        payment = cls(
            order_id=order_id,
            user_id=user_id,
            amount=amount,
            method_type=method_type,
            provider=provider,
            external_reference=external_reference,
            payment_method_id=payment_method_id,
            created_by=user_id,
        )
        payment.add_domain_event(
            PaymentCreatedEvent(
                payment_id=payment.payment_id, order_id=order_id
            )
        )
        return Result.success(payment)

    @property
    def currency(self) -> str:
        return self.amount.currency

    @property
    def is_final(self) -> bool:
        return self.status in (
            PaymentStatus.SUCCEEDED,
            PaymentStatus.REFUNDED,
            PaymentStatus.CANCELED,
        )

    def _change_status(
        self, new_status: PaymentStatus, acting_user_id: Optional[str]
    ) -> None:
        old_status = self.status
        self.status = new_status
        self._touch(acting_user_id)
        self.add_domain_event(
            PaymentStatusChangedEvent(
                payment_id=self.payment_id,
                old_status=old_status.value,
                new_status=new_status.value,
            )
        )

    def mark_as_processing(
        self,
        external_reference: Optional[str] = None,
        acting_user_id: Optional[str] = None,
    ) -> Result[None]:
        """Record that the attempt was submitted to the provider.

        A failed attempt may be moved back to processing to retry it.
        """
        if self.status == PaymentStatus.PROCESSING:
            return Result.success()
        if self.status not in (PaymentStatus.PENDING, PaymentStatus.FAILED):
            return Result.failure(
                PaymentErrors.invalid_status("start processing")
            )

        if self.status == PaymentStatus.FAILED:
            self.error_message = None
        if external_reference and external_reference.strip():
            self.external_reference = external_reference
        self._change_status(PaymentStatus.PROCESSING, acting_user_id)
        return Result.success()

    def mark_as_succeeded(
        self, transaction_id: Optional[str], acting_user_id: Optional[str] = None
    ) -> Result[None]:
        if self.status == PaymentStatus.SUCCEEDED:
            return Result.success()
        if not transaction_id or not transaction_id.strip():
            return Result.failure(PaymentErrors.TOKEN_REQUIRED)
        if self.status not in (
            PaymentStatus.PENDING,
            PaymentStatus.PROCESSING,
        ):
            return Result.failure(
                PaymentErrors.invalid_status("mark payment as succeeded")
            )

        self.transaction_id = transaction_id
        self.processed_at = utc_now()
        self._change_status(PaymentStatus.SUCCEEDED, acting_user_id)
        self.add_domain_event(
            PaymentSucceededEvent(
                payment_id=self.payment_id, order_id=self.order_id
            )
        )
        return Result.success()

    def mark_as_failed(
        self,
        error_message: Optional[str] = None,
        acting_user_id: Optional[str] = None,
    ) -> Result[None]:
        if self.status == PaymentStatus.FAILED:
            return Result.success()
        if self.status not in (
            PaymentStatus.PENDING,
            PaymentStatus.PROCESSING,
        ):
            return Result.failure(
                PaymentErrors.invalid_status("mark payment as failed")
            )

        if error_message and error_message.strip():
            self.error_message = error_message
        self._change_status(PaymentStatus.FAILED, acting_user_id)
        self.add_domain_event(
            PaymentFailedEvent(
                payment_id=self.payment_id,
                order_id=self.order_id,
                error_message=error_message,
            )
        )
        return Result.success()

    def mark_as_refunded(
        self, transaction_id: Optional[str], acting_user_id: Optional[str] = None
    ) -> Result[None]:
        if self.status == PaymentStatus.REFUNDED:
            return Result.success()
        if self.status != PaymentStatus.SUCCEEDED:
            return Result.failure(PaymentErrors.invalid_status("refund"))
        if not transaction_id or not transaction_id.strip():
            return Result.failure(PaymentErrors.TOKEN_REQUIRED)

        self.metadata["refund_transaction_id"] = transaction_id
        self._change_status(PaymentStatus.REFUNDED, acting_user_id)
        self.add_domain_event(
            PaymentRefundedEvent(
                payment_id=self.payment_id, order_id=self.order_id
            )
        )
        return Result.success()

    def cancel(
        self, reason: Optional[str] = None, acting_user_id: Optional[str] = None
    ) -> Result[None]:
        if self.status == PaymentStatus.CANCELED:
            return Result.success()
        if self.status in (PaymentStatus.SUCCEEDED, PaymentStatus.REFUNDED):
            return Result.failure(PaymentErrors.invalid_status("cancel"))

        if reason is not None:
            self.metadata["cancellation_reason"] = reason
        self._change_status(PaymentStatus.CANCELED, acting_user_id)
        self.add_domain_event(
            PaymentCancelledEvent(
                payment_id=self.payment_id, order_id=self.order_id
            )
        )
        return Result.success()

    def update_external_reference(
        self, external_reference: Optional[str]
    ) -> Result[None]:
        if not external_reference or not external_reference.strip():
            return Result.failure(PaymentErrors.TOKEN_REQUIRED)

        self.external_reference = external_reference
        self._touch()
        self.add_domain_event(PaymentUpdatedEvent(payment_id=self.payment_id))
        return Result.success()

    def update_metadata(self, key: Optional[str], value: Any) -> Result[None]:
        if not key or not key.strip():
            return Result.failure(PaymentErrors.INVALID_METADATA_KEY)

        self.metadata[key] = value
        self._touch()
        self.add_domain_event(PaymentUpdatedEvent(payment_id=self.payment_id))
        return Result.success()
