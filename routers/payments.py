from fastapi import APIRouter

from routers.common import ok
from schemas import PayPalCreateRequest
from services import paypal

router = APIRouter(prefix="/api/payments/paypal", tags=["payments"])


@router.get("/config")
def config():
    return ok(paypal.public_config())


@router.post("/orders", status_code=201)
def create_payment(payload: PayPalCreateRequest):
    return ok(paypal.create_paypal_payment(payload.order_id))


@router.post("/orders/{paypal_order_id}/capture")
def capture_payment(paypal_order_id: str):
    return ok(paypal.capture_paypal_payment(paypal_order_id), message="Payment captured")
