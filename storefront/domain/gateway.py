"""
Records exchanged with payment gateways.

Gateways are external services; these models are the domain-side view of
what a gateway reports back, either synchronously when a payment is submitted
or later through a webhook.
"""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

WebhookEventType = Literal[
    "payment.processing",
    "payment.succeeded",
    "payment.failed",
    "payment.refunded",
    "payment.canceled",
]


class GatewayPaymentOutcome(BaseModel):
    """Result of submitting a payment to a gateway."""

    status: Literal["succeeded", "processing", "failed"]
    transaction_id: Optional[str] = None
    external_reference: Optional[str] = None
    error_message: Optional[str] = None

    @model_validator(mode="after")
    def transaction_id_must_be_present_if_succeeded(
        self,
    ) -> "GatewayPaymentOutcome":
        if self.status == "succeeded" and not self.transaction_id:
            raise ValueError(
                "Transaction ID must be present if status is 'succeeded'"
            )
        return self


class PaymentWebhookEvent(BaseModel):
    """A verified gateway notification about a payment."""

    event_id: str
    event_type: str = Field(
        description="Gateway event name. Only WebhookEventType values change "
        "payment state; anything else is acknowledged and ignored."
    )
    transaction_id: Optional[str] = None
    external_reference: Optional[str] = None
    failure_reason: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("event_id")
    @classmethod
    def event_id_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Webhook event ID cannot be empty")
        return v


class WebhookResult(BaseModel):
    """What a webhook delivery did to the payment it refers to."""

    event_id: str
    event_type: str
    processed: bool
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    payment_status: Optional[str] = None
