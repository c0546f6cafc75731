"""
FastAPI application for order lifecycle and payment commands.
"""

import logging
import os
from decimal import Decimal
from typing import List, NoReturn, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request

from storefront.domain import (
    Error,
    ErrorType,
    Money,
    ProductSnapshot,
    Result,
)
from storefront.api.dependencies import (
    get_order_lifecycle_use_case,
    get_payment_reconciliation_use_case,
)
from storefront.api.requests import (
    CreateOrderRequest,
    PartialRefundRequest,
    ProcessPaymentRequest,
    ReasonRequest,
    ShipOrderRequest,
)
from storefront.api.responses import (
    HealthCheckResponse,
    OrderResponse,
    PaymentResponse,
    WebhookResponse,
)
from storefront.usecase import (
    INVALID_WEBHOOK,
    NewOrderLine,
    OrderLifecycleUseCase,
    PaymentReconciliationUseCase,
)


def setup_logging() -> None:
    """Configure logging based on environment variables"""
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    log_format = os.environ.get(
        "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Validate log level
    numeric_level = getattr(logging, log_level, None)
    if not isinstance(numeric_level, int):
        print(f"Invalid log level: {log_level}, defaulting to INFO")
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format=log_format,
        force=True,  # Override any existing configuration
    )


# Setup logging when module is imported
setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Storefront Orders API")

STATUS_CODES = {
    ErrorType.VALIDATION: 400,
    ErrorType.UNAUTHORIZED: 401,
    ErrorType.FORBIDDEN: 403,
    ErrorType.NOT_FOUND: 404,
    ErrorType.CONFLICT: 409,
    ErrorType.FAILURE: 500,
}


def default_currency() -> str:
    return os.environ.get("STOREFRONT_DEFAULT_CURRENCY", "USD")


def raise_for_error(error: Error) -> NoReturn:
    """Translate a domain error into an HTTP error response."""
    status_code = STATUS_CODES.get(error.type, 500)
    raise HTTPException(
        status_code=status_code,
        detail={"code": error.code, "message": error.message},
    )


def unwrap(result: Result):  # type: ignore[no-untyped-def]
    if result.is_failure:
        raise_for_error(result.error)  # type: ignore[arg-type]
    return result.value


def to_money(amount: Decimal, currency: Optional[str]) -> Money:
    return unwrap(Money.create(amount, currency or default_currency()))


def is_staff(roles: Optional[str]) -> bool:
    if not roles:
        return False
    return "staff" in [role.strip().lower() for role in roles.split(",")]


@app.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint"""
    logger.debug("Health check requested")
    return HealthCheckResponse(status="ok", version="1.0.0")


@app.post("/orders", response_model=OrderResponse, status_code=201)
async def create_order(
    request: CreateOrderRequest,
    x_user_id: Optional[str] = Header(None),
    use_case: OrderLifecycleUseCase = Depends(get_order_lifecycle_use_case),
) -> OrderResponse:
    """
    Create a pending order. The order total is the subtotal plus tax and
    shipping cost, all in one currency.
    """
    logger.info(
        "Order creation requested",
        extra={
            "user_id": request.user_id,
            "item_count": len(request.items),
        },
    )

    currency = request.currency or default_currency()
    lines: List[NewOrderLine] = []
    for line in request.items:
        snapshot = unwrap(
            ProductSnapshot.create(
                line.product_name,
                sku=line.sku,
                slug=line.slug,
                variant_sku=line.variant_sku,
                variant_attributes=line.variant_attributes,
            )
        )
        lines.append(
            NewOrderLine(
                product_id=line.product_id,
                variant_id=line.variant_id,
                quantity=line.quantity,
                unit_price=to_money(line.unit_price, currency),
                product_snapshot=snapshot,
            )
        )

    subtotal = (
        Money.zero(currency) if lines else to_money(request.subtotal, currency)
    )
    result = await use_case.create_order(
        user_id=request.user_id or x_user_id,
        billing_address_id=request.billing_address_id,
        shipping_address_id=request.shipping_address_id,
        subtotal=subtotal,
        tax=to_money(request.tax, currency),
        shipping_cost=to_money(request.shipping_cost, currency),
        shipping_method=request.shipping_method,
        items=lines,
        acting_user_id=x_user_id,
    )
    return OrderResponse.from_order(unwrap(result))


@app.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    x_user_id: Optional[str] = Header(None),
    x_user_roles: Optional[str] = Header(None),
    use_case: OrderLifecycleUseCase = Depends(get_order_lifecycle_use_case),
) -> OrderResponse:
    logger.debug("Getting order", extra={"order_id": order_id})
    result = await use_case.get_order(
        order_id, acting_user_id=x_user_id, is_staff=is_staff(x_user_roles)
    )
    return OrderResponse.from_order(unwrap(result))


@app.post("/orders/{order_id}/processing", response_model=OrderResponse)
async def mark_order_as_processing(
    order_id: str,
    x_user_id: Optional[str] = Header(None),
    use_case: OrderLifecycleUseCase = Depends(get_order_lifecycle_use_case),
) -> OrderResponse:
    result = await use_case.mark_as_processing(
        order_id, acting_user_id=x_user_id
    )
    return OrderResponse.from_order(unwrap(result))


@app.post("/orders/{order_id}/ship", response_model=OrderResponse)
async def ship_order(
    order_id: str,
    request: Optional[ShipOrderRequest] = None,
    x_user_id: Optional[str] = Header(None),
    use_case: OrderLifecycleUseCase = Depends(get_order_lifecycle_use_case),
) -> OrderResponse:
    tracking_number = request.tracking_number if request else None
    logger.info(
        "Order shipment requested",
        extra={"order_id": order_id, "tracking_number": tracking_number},
    )
    result = await use_case.mark_as_shipped(
        order_id, tracking_number=tracking_number, acting_user_id=x_user_id
    )
    return OrderResponse.from_order(unwrap(result))


@app.post("/orders/{order_id}/deliver", response_model=OrderResponse)
async def deliver_order(
    order_id: str,
    x_user_id: Optional[str] = Header(None),
    use_case: OrderLifecycleUseCase = Depends(get_order_lifecycle_use_case),
) -> OrderResponse:
    result = await use_case.mark_as_delivered(
        order_id, acting_user_id=x_user_id
    )
    return OrderResponse.from_order(unwrap(result))


@app.post("/orders/{order_id}/return", response_model=OrderResponse)
async def return_order(
    order_id: str,
    request: Optional[ReasonRequest] = None,
    x_user_id: Optional[str] = Header(None),
    use_case: OrderLifecycleUseCase = Depends(get_order_lifecycle_use_case),
) -> OrderResponse:
    result = await use_case.mark_as_returned(
        order_id,
        reason=request.reason if request else None,
        acting_user_id=x_user_id,
    )
    return OrderResponse.from_order(unwrap(result))


@app.post("/orders/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    request: Optional[ReasonRequest] = None,
    x_user_id: Optional[str] = Header(None),
    x_user_roles: Optional[str] = Header(None),
    use_case: OrderLifecycleUseCase = Depends(get_order_lifecycle_use_case),
) -> OrderResponse:
    """
    Cancel a pending or processing order that has not been paid, along with
    any payment attempts still in flight.
    """
    reason = request.reason if request else None
    logger.info(
        "Order cancellation requested",
        extra={"order_id": order_id, "reason": reason},
    )
    result = await use_case.cancel_order(
        order_id,
        reason=reason,
        acting_user_id=x_user_id,
        is_staff=is_staff(x_user_roles),
    )
    return OrderResponse.from_order(unwrap(result))


@app.post("/orders/{order_id}/refund", response_model=OrderResponse)
async def refund_order(
    order_id: str,
    request: Optional[ReasonRequest] = None,
    x_user_id: Optional[str] = Header(None),
    use_case: OrderLifecycleUseCase = Depends(get_order_lifecycle_use_case),
) -> OrderResponse:
    reason = request.reason if request else None
    logger.info(
        "Order refund requested",
        extra={"order_id": order_id, "reason": reason},
    )
    result = await use_case.process_refund(
        order_id, reason=reason, acting_user_id=x_user_id
    )
    return OrderResponse.from_order(unwrap(result))


@app.post("/orders/{order_id}/partial-refund", response_model=OrderResponse)
async def partially_refund_order(
    order_id: str,
    request: PartialRefundRequest,
    x_user_id: Optional[str] = Header(None),
    use_case: OrderLifecycleUseCase = Depends(get_order_lifecycle_use_case),
) -> OrderResponse:
    logger.info(
        "Partial refund requested",
        extra={
            "order_id": order_id,
            "amount": str(request.amount),
            "reason": request.reason,
        },
    )
    # Zero and negative amounts are rejected by the order itself
    amount = Money.create(
        request.amount, request.currency or default_currency()
    )
    result = await use_case.process_partial_refund(
        order_id,
        amount.value if amount.is_success else None,
        reason=request.reason,
        acting_user_id=x_user_id,
    )
    return OrderResponse.from_order(unwrap(result))


@app.post(
    "/orders/{order_id}/payments",
    response_model=PaymentResponse,
    status_code=201,
)
async def process_order_payment(
    order_id: str,
    request: ProcessPaymentRequest,
    x_user_id: Optional[str] = Header(None),
    use_case: PaymentReconciliationUseCase = Depends(
        get_payment_reconciliation_use_case
    ),
) -> PaymentResponse:
    logger.info(
        "Order payment requested",
        extra={
            "order_id": order_id,
            "method_type": request.method_type.value,
            "provider": request.provider.value,
        },
    )
    result = await use_case.process_order_payment(
        order_id,
        request.method_type,
        request.provider,
        payment_token=request.payment_token,
        payment_method_id=request.payment_method_id,
        metadata=request.metadata,
        acting_user_id=x_user_id,
    )
    return PaymentResponse.from_payment(unwrap(result))


@app.post("/webhooks/{provider}", response_model=WebhookResponse)
async def receive_webhook(
    provider: str,
    request: Request,
    x_webhook_signature: Optional[str] = Header(None),
    use_case: PaymentReconciliationUseCase = Depends(
        get_payment_reconciliation_use_case
    ),
) -> WebhookResponse:
    """
    Apply a payment provider notification. Unknown event types are
    acknowledged without changes.
    """
    try:
        payload = (await request.body()).decode("utf-8", errors="strict")
    except UnicodeDecodeError as e:
        logger.warning(
            "Rejected webhook body that is not UTF-8",
            extra={"provider": provider, "error_message": str(e)},
        )
        raise_for_error(
            Error.validation(INVALID_WEBHOOK, "Webhook payload must be UTF-8.")
        )

    logger.debug(
        "Webhook received",
        extra={"provider": provider, "payload_bytes": len(payload)},
    )
    result = await use_case.process_webhook(
        provider, payload, signature=x_webhook_signature
    )
    outcome = unwrap(result)
    return WebhookResponse(
        event_id=outcome.event_id,
        event_type=outcome.event_type,
        processed=outcome.processed,
        payment_id=outcome.payment_id,
        payment_status=outcome.payment_status,
    )
