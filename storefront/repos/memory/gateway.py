"""
Memory implementation of PaymentGateway.

Stands in for a real provider during tests and local runs. Charges succeed
unless an outcome has been queued with ``queue_outcome``. Webhook payloads
are JSON documents of the form::

    {"id": "evt_1", "type": "payment.succeeded",
     "data": {"transaction_id": "txn_1", "external_reference": "ref_1"}}

When a ``webhook_secret`` is configured the signature must be the hex
HMAC-SHA256 of the raw payload.

Charges and refunds made with an idempotency key are remembered; repeating
the key replays the first result instead of moving money again.
"""

import hashlib
import hmac
import json
import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from storefront.domain import Money, PaymentMethodType, PaymentProvider
from storefront.domain.gateway import GatewayPaymentOutcome, PaymentWebhookEvent
from storefront.repositories import PaymentGateway

logger = logging.getLogger(__name__)


class MemoryPaymentGateway(PaymentGateway):
    def __init__(self, webhook_secret: Optional[str] = None) -> None:
        self.webhook_secret = webhook_secret
        self.charges: List[Dict[str, Any]] = []
        self.refunds: List[Dict[str, Any]] = []
        self._queued: List[GatewayPaymentOutcome] = []
        self.fail_refunds = False
        self._charge_keys: Dict[str, Tuple[Money, GatewayPaymentOutcome]] = {}
        self._refund_keys: Dict[str, Dict[str, Any]] = {}

    def queue_outcome(self, outcome: GatewayPaymentOutcome) -> None:
        """Make the next ``process_payment`` call return ``outcome``."""
        self._queued.append(outcome)

    def sign(self, payload: str) -> str:
        if not self.webhook_secret:
            raise ValueError("No webhook secret configured")
        return hmac.new(
            self.webhook_secret.encode("utf-8"),
            payload.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    async def process_payment(
        self,
        amount: Money,
        method_type: PaymentMethodType,
        provider: PaymentProvider,
        payment_token: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> GatewayPaymentOutcome:
        if idempotency_key is not None and idempotency_key in self._charge_keys:
            charged_amount, outcome = self._charge_keys[idempotency_key]
            if charged_amount != amount:
                raise ValueError(
                    f"Idempotency key {idempotency_key} was used for a "
                    f"charge of {charged_amount}"
                )
            logger.info(
                "Charge replayed by memory gateway",
                extra={"idempotency_key": idempotency_key},
            )
            return outcome

        if self._queued:
            outcome = self._queued.pop(0)
        else:
            outcome = GatewayPaymentOutcome(
                status="succeeded",
                transaction_id=f"txn-{uuid.uuid4()}",
                external_reference=f"ref-{uuid.uuid4()}",
            )

        self.charges.append(
            {
                "amount": amount,
                "method_type": method_type,
                "provider": provider,
                "payment_token": payment_token,
                "metadata": dict(metadata or {}),
                "idempotency_key": idempotency_key,
                "status": outcome.status,
            }
        )
        if idempotency_key is not None:
            self._charge_keys[idempotency_key] = (amount, outcome)
        logger.info(
            "Charge submitted to memory gateway",
            extra={
                "amount": str(amount),
                "provider": provider.value,
                "outcome": outcome.status,
            },
        )
        return outcome

    async def parse_webhook(
        self,
        provider: PaymentProvider,
        payload: str,
        signature: Optional[str] = None,
    ) -> PaymentWebhookEvent:
        if self.webhook_secret:
            if not signature or not hmac.compare_digest(
                self.sign(payload), signature
            ):
                raise ValueError("Invalid webhook signature")

        try:
            document = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed webhook payload: {e}") from e

        if not isinstance(document, dict):
            raise ValueError("Webhook payload must be a JSON object")

        data = document.get("data") or {}
        if not isinstance(data, dict):
            raise ValueError("Webhook 'data' must be a JSON object")

        try:
            return PaymentWebhookEvent(
                event_id=document.get("id") or "",
                event_type=document.get("type") or "",
                transaction_id=data.get("transaction_id"),
                external_reference=data.get("external_reference"),
                failure_reason=data.get("failure_reason"),
                data=data,
            )
        except ValidationError as e:
            raise ValueError(f"Invalid webhook event: {e}") from e

    async def refund_payment(
        self,
        transaction_id: str,
        amount: Decimal,
        currency: str,
        reason: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> str:
        if self.fail_refunds:
            raise RuntimeError("Provider rejected the refund")

        if idempotency_key is not None and idempotency_key in self._refund_keys:
            refund = self._refund_keys[idempotency_key]
            if (
                refund["transaction_id"] != transaction_id
                or refund["amount"] != amount
                or refund["currency"] != currency
            ):
                raise ValueError(
                    f"Idempotency key {idempotency_key} was used for refund "
                    f"{refund['refund_id']}"
                )
            logger.info(
                "Refund replayed by memory gateway",
                extra={
                    "idempotency_key": idempotency_key,
                    "refund_id": refund["refund_id"],
                },
            )
            return refund["refund_id"]  # type: ignore[no-any-return]

        refund_id = f"re-{uuid.uuid4()}"
        refund = {
            "refund_id": refund_id,
            "transaction_id": transaction_id,
            "amount": amount,
            "currency": currency,
            "reason": reason,
            "idempotency_key": idempotency_key,
        }
        self.refunds.append(refund)
        if idempotency_key is not None:
            self._refund_keys[idempotency_key] = refund
        logger.info(
            "Refund issued by memory gateway",
            extra={
                "refund_id": refund_id,
                "transaction_id": transaction_id,
                "amount": str(amount),
                "currency": currency,
            },
        )
        return refund_id
