"""PayPal checkout against a stubbed Orders v2 API."""

import httpx
import pytest
from bson import ObjectId

from config import PayPalConfig
from services import paypal


def order_payload(product, method="cash_on_delivery"):
    return {
        "customer_info": {
            "first_name": "Omar",
            "last_name": "Saleh",
            "email": "omar@example.com",
            "phone": "+201001234567",
            "address": "3 Tahrir Sq",
            "city": "Cairo",
            "country": "Egypt",
        },
        "items": [{"product_id": str(product["_id"]), "product_name": "Rose Oud", "price": 120.0, "quantity": 2}],
        "shipping_cost": 0.0,
        "tax": 33.6,
        "total": 273.6,
        "payment_method": method,
    }


def paypal_handler(capture_status="COMPLETED"):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append((request.method, request.url.path))
        path = request.url.path
        if path == "/v1/oauth2/token":
            return httpx.Response(200, json={"access_token": "A21AA", "expires_in": 32400})
        if path == "/v2/checkout/orders":
            return httpx.Response(201, json={
                "id": "5O190127TN364715T",
                "status": "CREATED",
                "links": [
                    {"href": "https://api-m.sandbox.paypal.com/v2/checkout/orders/5O190127TN364715T", "rel": "self"},
                    {"href": "https://www.sandbox.paypal.com/checkoutnow?token=5O190127TN364715T", "rel": "approve"},
                ],
            })
        if path.endswith("/capture"):
            return httpx.Response(201, json={
                "id": "5O190127TN364715T",
                "status": capture_status,
                "payer": {"email_address": "buyer@example.com"},
                "purchase_units": [{"payments": {"captures": [{"id": "3C679366HH908993F"}]}}],
            })
        return httpx.Response(404, json={"name": "RESOURCE_NOT_FOUND"})

    return handler, requests


@pytest.fixture
def stub_paypal(monkeypatch):
    def install(capture_status="COMPLETED"):
        handler, requests = paypal_handler(capture_status)
        stub = paypal.PayPalClient(
            PayPalConfig(client_id="client", client_secret="secret"),
            transport=httpx.MockTransport(handler),
        )
        monkeypatch.setattr(paypal, "client", stub)
        return requests
    return install


@pytest.fixture
def paypal_order(client, product):
    resp = client.post("/api/orders", json=order_payload(product, method="paypal"))
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def test_public_config(client):
    data = client.get("/api/payments/paypal/config").json()["data"]
    assert set(data) == {"client_id", "currency", "mode", "configured"}
    assert "client_secret" not in data


def test_unconfigured_paypal(client, paypal_order, monkeypatch):
    monkeypatch.setattr(paypal, "client", paypal.PayPalClient(PayPalConfig()))
    resp = client.post("/api/payments/paypal/orders", json={"order_id": paypal_order["order_id"]})
    assert resp.status_code == 502
    assert resp.json()["error"]["code"] == "EXTERNAL_SERVICE_ERROR"


class TestCheckout:

    def test_create_returns_approval_url(self, client, paypal_order, stub_paypal, db):
        requests = stub_paypal()
        resp = client.post("/api/payments/paypal/orders", json={"order_id": paypal_order["order_id"]})
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["paypal_order_id"] == "5O190127TN364715T"
        assert data["approval_url"].startswith("https://www.sandbox.paypal.com/checkoutnow")
        assert requests == [("POST", "/v1/oauth2/token"), ("POST", "/v2/checkout/orders")]
        stored = db["order"].find_one({"_id": ObjectId(paypal_order["order_id"])})
        assert stored["paypal_order_id"] == "5O190127TN364715T"

    def test_capture_marks_order_paid(self, client, paypal_order, stub_paypal, db):
        stub_paypal()
        client.post("/api/payments/paypal/orders", json={"order_id": paypal_order["order_id"]})
        resp = client.post("/api/payments/paypal/orders/5O190127TN364715T/capture")
        assert resp.status_code == 200
        assert resp.json()["data"]["capture_id"] == "3C679366HH908993F"

        stored = db["order"].find_one({"_id": ObjectId(paypal_order["order_id"])})
        assert stored["payment_status"] == "paid"
        assert stored["status"] == "confirmed"
        assert stored["payment_details"]["payer"]["email_address"] == "buyer@example.com"
        assert stored["status_history"][-1]["status"] == "confirmed"

    def test_incomplete_capture_marks_failed(self, client, paypal_order, stub_paypal, db):
        stub_paypal(capture_status="PAYER_ACTION_REQUIRED")
        client.post("/api/payments/paypal/orders", json={"order_id": paypal_order["order_id"]})
        resp = client.post("/api/payments/paypal/orders/5O190127TN364715T/capture")
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "PAYMENT_NOT_COMPLETED"
        stored = db["order"].find_one({"_id": ObjectId(paypal_order["order_id"])})
        assert stored["payment_status"] == "failed"
        assert stored["status"] == "pending"

    def test_capture_unknown_paypal_order(self, client, stub_paypal):
        stub_paypal()
        assert client.post("/api/payments/paypal/orders/NOPE/capture").status_code == 404

    def test_rejects_other_payment_methods(self, client, product, stub_paypal):
        stub_paypal()
        order_id = client.post("/api/orders", json=order_payload(product)).json()["data"]["order_id"]
        resp = client.post("/api/payments/paypal/orders", json={"order_id": order_id})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "INVALID_PAYMENT_METHOD"

    def test_rejects_paid_orders(self, client, paypal_order, stub_paypal, db):
        stub_paypal()
        db["order"].update_one({"_id": ObjectId(paypal_order["order_id"])}, {"$set": {"payment_status": "paid"}})
        resp = client.post("/api/payments/paypal/orders", json={"order_id": paypal_order["order_id"]})
        assert resp.json()["error"]["code"] == "ORDER_ALREADY_PAID"


def test_amount_is_sent_with_two_decimals():
    bodies = []

    def handler(request):
        if request.url.path == "/v1/oauth2/token":
            return httpx.Response(200, json={"access_token": "t"})
        bodies.append(request.read())
        return httpx.Response(201, json={"id": "X", "status": "CREATED"})

    stub = paypal.PayPalClient(PayPalConfig(client_id="c", client_secret="s"),
                               transport=httpx.MockTransport(handler))
    stub.create_order("MD-20250101-001", 255)
    assert b'"value":"255.00"' in bodies[0].replace(b" ", b"")


def test_capture_retries_reuse_request_id():
    request_ids = []

    def handler(request):
        if request.url.path == "/v1/oauth2/token":
            return httpx.Response(200, json={"access_token": "t"})
        request_ids.append(request.headers["PayPal-Request-Id"])
        return httpx.Response(201, json={"id": "5O190127TN364715T", "status": "COMPLETED"})

    stub = paypal.PayPalClient(PayPalConfig(client_id="c", client_secret="s"),
                               transport=httpx.MockTransport(handler))
    stub.capture_order("5O190127TN364715T")
    stub.capture_order("5O190127TN364715T")
    stub.capture_order("8AB12345CD678901E")
    assert request_ids == ["capture-5O190127TN364715T", "capture-5O190127TN364715T",
                           "capture-8AB12345CD678901E"]
