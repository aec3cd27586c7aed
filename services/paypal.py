"""
PayPal checkout (Orders v2 REST API).

The storefront creates a PayPal order for a local order, sends the
buyer to the approval URL and then asks the API to capture it.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from config import PayPalConfig, settings
from database import get_collection, utcnow
from errors import BusinessLogicError, ExternalServiceError, NotFoundError
from services.orders import get_order

logger = logging.getLogger(__name__)


class PayPalClient:
    """
    OAuth2 client-credentials plus the two Orders v2 calls checkout needs.
    """

    def __init__(self, config: PayPalConfig, transport: Optional[httpx.BaseTransport] = None,
                 timeout: float = 30.0):
        self.config = config
        self.transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.Client:
        if not self.config.configured:
            raise ExternalServiceError("PayPal is not configured", service="paypal")
        return httpx.Client(base_url=self.config.base_url, timeout=self.timeout, transport=self.transport)

    @staticmethod
    def _check(response: httpx.Response, action: str) -> dict:
        if response.status_code >= 400:
            logger.error(f"PayPal {action} returned {response.status_code}: {response.text}")
            raise ExternalServiceError(
                f"PayPal {action} failed",
                service="paypal",
                details={"status_code": response.status_code},
            )
        return response.json()

    def _token(self, client: httpx.Client) -> str:
        response = client.post(
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self.config.client_id, self.config.client_secret),
        )
        return self._check(response, "authentication")["access_token"]

    def create_order(self, reference_id: str, amount: float, currency: Optional[str] = None) -> dict:
        body = {
            "intent": "CAPTURE",
            "purchase_units": [{
                "reference_id": reference_id,
                "amount": {"currency_code": currency or self.config.currency, "value": f"{amount:.2f}"},
            }],
        }
        try:
            with self._client() as client:
                token = self._token(client)
                response = client.post(
                    "/v2/checkout/orders",
                    json=body,
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.HTTPError as e:
            logger.error(f"PayPal create order failed: {e}")
            raise ExternalServiceError("PayPal create order failed", service="paypal")
        return self._check(response, "create order")

    def capture_order(self, paypal_order_id: str) -> dict:
        try:
            with self._client() as client:
                token = self._token(client)
                response = client.post(
                    f"/v2/checkout/orders/{paypal_order_id}/capture",
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Content-Type": "application/json",
                        "PayPal-Request-Id": f"capture-{paypal_order_id}",
                    },
                )
        except httpx.HTTPError as e:
            logger.error(f"PayPal capture failed: {e}")
            raise ExternalServiceError("PayPal capture failed", service="paypal")
        return self._check(response, "capture")


client = PayPalClient(settings.paypal)


def public_config() -> Dict[str, Any]:
    return {
        "client_id": settings.paypal.client_id,
        "currency": settings.paypal.currency,
        "mode": settings.paypal.mode,
        "configured": settings.paypal.configured,
    }


def create_paypal_payment(order_id: str) -> Dict[str, Any]:
    order = get_order(order_id)
    if order.get("payment_method") != "paypal":
        raise BusinessLogicError("Order does not use PayPal", code="INVALID_PAYMENT_METHOD")
    if order.get("payment_status") == "paid":
        raise BusinessLogicError("Order is already paid", code="ORDER_ALREADY_PAID")

    result = client.create_order(order["order_number"], order["total"])
    approval_url = next(
        (link["href"] for link in result.get("links", []) if link.get("rel") in ("approve", "payer-action")),
        None,
    )
    get_collection("order").update_one(
        {"_id": order["_id"]},
        {"$set": {"paypal_order_id": result["id"], "updated_at": utcnow()}},
    )
    logger.info(f"PayPal order {result['id']} created for {order['order_number']}")
    return {"paypal_order_id": result["id"], "approval_url": approval_url, "status": result.get("status")}


def capture_paypal_payment(paypal_order_id: str) -> Dict[str, Any]:
    orders = get_collection("order")
    order = orders.find_one({"paypal_order_id": paypal_order_id})
    if not order:
        raise NotFoundError("Order not found for PayPal payment", code="ORDER_NOT_FOUND")

    result = client.capture_order(paypal_order_id)
    now = utcnow()
    if result.get("status") != "COMPLETED":
        orders.update_one({"_id": order["_id"]}, {"$set": {"payment_status": "failed", "updated_at": now}})
        logger.warning(f"PayPal capture for {order['order_number']} not completed: {result.get('status')}")
        raise BusinessLogicError(
            "Payment was not completed",
            code="PAYMENT_NOT_COMPLETED",
            details={"paypal_status": result.get("status")},
        )

    captures = [
        capture
        for unit in result.get("purchase_units", [])
        for capture in unit.get("payments", {}).get("captures", [])
    ]
    capture_id = captures[0]["id"] if captures else None
    changes: Dict[str, Any] = {
        "payment_status": "paid",
        "paypal_capture_id": capture_id,
        "payment_details": {
            "provider": "paypal",
            "paypal_order_id": paypal_order_id,
            "capture_id": capture_id,
            "payer": result.get("payer"),
            "captured_at": now,
        },
        "updated_at": now,
    }
    update: Dict[str, Any] = {"$set": changes}
    if order["status"] == "pending":
        changes["status"] = "confirmed"
        update["$push"] = {"status_history": {"status": "confirmed", "changed_at": now, "note": "Paid with PayPal"}}
    orders.update_one({"_id": order["_id"]}, update)
    logger.info(f"PayPal payment captured for {order['order_number']}")
    return {"order_id": str(order["_id"]), "payment_status": "paid", "capture_id": capture_id}
