import json
from decimal import Decimal
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from storefront.api.app import app, is_staff
from storefront.api.dependencies import (
    get_order_lifecycle_use_case,
    get_payment_reconciliation_use_case,
)
from storefront.domain.gateway import GatewayPaymentOutcome
from storefront.repos.memory import (
    MemoryEventPublisher,
    MemoryPaymentGateway,
    MemoryStore,
    MemoryUnitOfWork,
)
from storefront.usecase import (
    OrderLifecycleUseCase,
    PaymentReconciliationUseCase,
)

ORDER = {
    "user_id": "user-1",
    "shipping_address_id": "addr-ship",
    "subtotal": "100.00",
    "tax": "10.00",
    "shipping_cost": "5.00",
}

CARD_PAYMENT = {"method_type": "credit_card", "provider": "stripe"}


@pytest.fixture
def gateway() -> MemoryPaymentGateway:
    return MemoryPaymentGateway(webhook_secret="whsec_test")


@pytest.fixture
def client(gateway: MemoryPaymentGateway) -> Iterator[TestClient]:
    store = MemoryStore()
    publisher = MemoryEventPublisher()

    def unit_of_work() -> MemoryUnitOfWork:
        return MemoryUnitOfWork(store)

    app.dependency_overrides[get_order_lifecycle_use_case] = (
        lambda: OrderLifecycleUseCase(unit_of_work, publisher, gateway)
    )
    app.dependency_overrides[get_payment_reconciliation_use_case] = (
        lambda: PaymentReconciliationUseCase(unit_of_work, gateway, publisher)
    )

    yield TestClient(app)

    # Clean up dependency overrides
    app.dependency_overrides = {}


def create_order(client: TestClient, **overrides) -> dict:
    response = client.post("/orders", json={**ORDER, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


def test_health_check(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_is_staff_reads_role_list() -> None:
    assert is_staff("customer, Staff")
    assert not is_staff("customer")
    assert not is_staff(None)


def test_create_order_endpoint(client: TestClient) -> None:
    """Test that the create_order endpoint computes the order total"""
    order = create_order(client)

    assert order["status"] == "pending"
    assert order["payment_status"] == "pending"
    assert Decimal(order["total"]["amount"]) == Decimal("115.00")
    assert order["total"]["currency"] == "USD"
    assert order["version"] == 1


def test_create_order_with_lines(client: TestClient) -> None:
    order = create_order(
        client,
        subtotal="0",
        items=[
            {
                "product_id": "prod-1",
                "quantity": 3,
                "unit_price": "4.50",
                "product_name": "Mug",
                "sku": "MUG-1",
            }
        ],
    )

    assert Decimal(order["subtotal"]["amount"]) == Decimal("13.50")
    assert order["items"][0]["product"]["name"] == "Mug"


def test_create_order_rejects_bad_input(client: TestClient) -> None:
    response = client.post("/orders", json={**ORDER, "tax": "-1"})

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "Money.NegativeAmount"


def test_get_order_enforces_ownership(client: TestClient) -> None:
    order = create_order(client)
    path = f"/orders/{order['order_id']}"

    assert client.get(path, headers={"X-User-Id": "user-1"}).status_code == 200
    denied = client.get(path, headers={"X-User-Id": "user-2"})
    assert denied.status_code == 403
    assert denied.json()["detail"]["code"] == "Order.AccessDenied"
    staff = client.get(
        path, headers={"X-User-Id": "agent", "X-User-Roles": "staff"}
    )
    assert staff.status_code == 200


def test_get_missing_order(client: TestClient) -> None:
    response = client.get("/orders/order-missing")
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "Order.NotFound"


def test_ship_unpaid_order_is_rejected(client: TestClient) -> None:
    order = create_order(client)

    response = client.post(
        f"/orders/{order['order_id']}/ship", json={"tracking_number": "T1"}
    )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "Order.PaymentRequired"


def test_pay_ship_deliver_return_refund(client: TestClient) -> None:
    order = create_order(client)
    order_id = order["order_id"]

    payment = client.post(f"/orders/{order_id}/payments", json=CARD_PAYMENT)
    assert payment.status_code == 201
    assert payment.json()["status"] == "succeeded"

    shipped = client.post(
        f"/orders/{order_id}/ship", json={"tracking_number": "T1"}
    )
    assert shipped.status_code == 200
    assert shipped.json()["status"] == "shipped"
    assert client.post(f"/orders/{order_id}/deliver").status_code == 200
    returned = client.post(
        f"/orders/{order_id}/return", json={"reason": "too big"}
    )
    assert returned.json()["status"] == "returned"

    refunded = client.post(
        f"/orders/{order_id}/refund", json={"reason": "too big"}
    )

    assert refunded.status_code == 200
    body = refunded.json()
    assert body["status"] == "returned_and_refunded"
    assert body["payment_status"] == "refunded"
    assert Decimal(body["refunded_amount"]["amount"]) == Decimal("115.00")


def test_partial_refund_endpoint(client: TestClient) -> None:
    order = create_order(client)
    order_id = order["order_id"]
    client.post(f"/orders/{order_id}/payments", json=CARD_PAYMENT)

    response = client.post(
        f"/orders/{order_id}/partial-refund",
        json={"amount": "20.00", "reason": "late"},
    )

    assert response.status_code == 200
    body = response.json()
    assert Decimal(body["refunded_amount"]["amount"]) == Decimal("20.00")
    assert body["metadata"]["partial_refunds"][0]["reason"] == "late"

    too_much = client.post(
        f"/orders/{order_id}/partial-refund", json={"amount": "500.00"}
    )
    assert too_much.status_code == 400


def test_partial_refund_rejects_negative_amount(client: TestClient) -> None:
    order = create_order(client)
    client.post(f"/orders/{order['order_id']}/payments", json=CARD_PAYMENT)

    response = client.post(
        f"/orders/{order['order_id']}/partial-refund", json={"amount": "-5"}
    )

    assert response.status_code == 400


def test_cancel_endpoint(client: TestClient) -> None:
    order = create_order(client)
    path = f"/orders/{order['order_id']}/cancel"

    denied = client.post(
        path, json={"reason": "changed mind"}, headers={"X-User-Id": "user-2"}
    )
    assert denied.status_code == 403
    assert denied.json()["detail"]["code"] == "Order.CancelDenied"

    cancelled = client.post(
        path, json={"reason": "changed mind"}, headers={"X-User-Id": "user-1"}
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["metadata"]["cancellation_reason"] == "changed mind"


def test_declined_payment_endpoint(
    client: TestClient, gateway: MemoryPaymentGateway
) -> None:
    order = create_order(client)
    gateway.queue_outcome(
        GatewayPaymentOutcome(status="failed", error_message="card declined")
    )

    response = client.post(
        f"/orders/{order['order_id']}/payments", json=CARD_PAYMENT
    )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "Payment.Declined"
    stored = client.get(f"/orders/{order['order_id']}").json()
    assert stored["payment_status"] == "failed"


def test_payment_by_another_user(client: TestClient) -> None:
    order = create_order(client)

    response = client.post(
        f"/orders/{order['order_id']}/payments",
        json=CARD_PAYMENT,
        headers={"X-User-Id": "user-2"},
    )

    assert response.status_code == 401


def test_webhook_confirms_pending_payment(
    client: TestClient, gateway: MemoryPaymentGateway
) -> None:
    order = create_order(client)
    gateway.queue_outcome(
        GatewayPaymentOutcome(status="processing", external_reference="pi_42")
    )
    payment = client.post(
        f"/orders/{order['order_id']}/payments", json=CARD_PAYMENT
    )
    assert payment.json()["status"] == "processing"

    payload = json.dumps(
        {
            "id": "evt_1",
            "type": "payment.succeeded",
            "data": {"external_reference": "pi_42", "transaction_id": "ch_42"},
        }
    )
    response = client.post(
        "/webhooks/stripe",
        content=payload,
        headers={"X-Webhook-Signature": gateway.sign(payload)},
    )

    assert response.status_code == 200
    assert response.json()["processed"] is True
    assert response.json()["payment_status"] == "succeeded"
    stored = client.get(f"/orders/{order['order_id']}").json()
    assert stored["payment_status"] == "succeeded"


def test_webhook_rejects_bad_signature(client: TestClient) -> None:
    payload = json.dumps({"id": "evt_1", "type": "payment.succeeded"})

    response = client.post(
        "/webhooks/stripe",
        content=payload,
        headers={"X-Webhook-Signature": "not-a-signature"},
    )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "Payment.InvalidWebhook"


def test_webhook_for_unknown_payment(
    client: TestClient, gateway: MemoryPaymentGateway
) -> None:
    payload = json.dumps(
        {
            "id": "evt_2",
            "type": "payment.failed",
            "data": {"external_reference": "pi_unknown"},
        }
    )

    response = client.post(
        "/webhooks/stripe",
        content=payload,
        headers={"X-Webhook-Signature": gateway.sign(payload)},
    )

    assert response.status_code == 404


def test_webhook_rejects_body_that_is_not_utf8(client: TestClient) -> None:
    response = client.post(
        "/webhooks/stripe",
        content=b"\xff\xfe{not utf-8",
        headers={"X-Webhook-Signature": "irrelevant"},
    )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "Payment.InvalidWebhook"
