from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from routers.common import ok, out
from schemas import Order, OrderStatusUpdate, ReasonRequest
from security import require_admin
from services import orders

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("", status_code=201)
def create_order(payload: Order):
    order = orders.create_order(payload)
    return ok(
        {"order_id": str(order["_id"]), "order_number": order["order_number"], "order": out(order)},
        message="Order created",
    )


@router.get("/track/{order_number}")
def track(order_number: str, email: str = Query(..., min_length=3)):
    return ok(out(orders.track_order(order_number, email)))


@router.get("")
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
    customer_email: Optional[str] = None,
    order_number: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
    admin: dict = Depends(require_admin),
):
    docs, pagination = orders.list_orders(
        page, limit, sort_by, sort_order,
        status=status, payment_status=payment_status, customer_email=customer_email,
        order_number=order_number, start_date=start_date, end_date=end_date, search=search,
    )
    return ok({"orders": out(docs), "pagination": pagination})


@router.get("/stats")
def stats(admin: dict = Depends(require_admin)):
    return ok(orders.order_stats())


@router.get("/{order_id}")
def get_order(order_id: str, admin: dict = Depends(require_admin)):
    return ok(out(orders.get_order(order_id)))


@router.put("/{order_id}/status")
def update_status(order_id: str, payload: OrderStatusUpdate, admin: dict = Depends(require_admin)):
    order = orders.update_status(order_id, payload.status, admin, payload.note, payload.tracking_number)
    return ok(out(order), message="Order status updated")


@router.put("/{order_id}/confirm")
def confirm(order_id: str, admin: dict = Depends(require_admin)):
    return ok(out(orders.confirm_order(order_id, admin)), message="Order confirmed")


@router.put("/{order_id}/cancel")
def cancel(order_id: str, payload: ReasonRequest = ReasonRequest(), admin: dict = Depends(require_admin)):
    return ok(out(orders.cancel_order(order_id, payload.reason, admin)), message="Order cancelled")


@router.get("/{order_id}/refund-eligibility")
def refund_eligibility(order_id: str, admin: dict = Depends(require_admin)):
    return ok(orders.refund_eligibility(order_id))


@router.put("/{order_id}/refund")
def refund(order_id: str, payload: ReasonRequest = ReasonRequest(), admin: dict = Depends(require_admin)):
    return ok(out(orders.refund_order(order_id, payload.reason, admin)), message="Order refunded")


@router.delete("/{order_id}")
def delete_order(order_id: str, admin: dict = Depends(require_admin)):
    orders.delete_order(order_id)
    return ok(message="Order deleted")
