"""
Order service: checkout, fulfilment status machine, refunds and stats.
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from database import create_document, get_collection, paginate, sort_spec, to_object_id, utcnow
from errors import BusinessLogicError, ConflictError, NotFoundError, ValidationError
from schemas import Order
from services import store_settings

logger = logging.getLogger(__name__)

COLLECTION = "order"

STATUS_TRANSITIONS = {
    "pending": ["confirmed", "cancelled"],
    "confirmed": ["processing", "cancelled"],
    "processing": ["shipped", "cancelled"],
    "shipped": ["delivered"],
    "delivered": [],
    "cancelled": [],
}

SORT_FIELDS = {"created_at", "updated_at", "total", "status", "order_number"}
ORDER_NUMBER_ATTEMPTS = 5

QUOTED_FIELDS = (
    ("shipping_cost", "SHIPPING_COST_MISMATCH", "Shipping cost"),
    ("tax", "TAX_MISMATCH", "Tax"),
)


def generate_order_number(now: Optional[datetime] = None) -> str:
    """MD-YYYYMMDD-NNN, NNN counting up from 001 each UTC day."""
    now = now or utcnow()
    prefix = f"MD-{now:%Y%m%d}-"
    last = get_collection(COLLECTION).find_one(
        {"order_number": {"$regex": f"^{prefix}"}},
        sort=[("order_number", DESCENDING)],
    )
    sequence = int(last["order_number"].rsplit("-", 1)[1]) + 1 if last else 1
    return f"{prefix}{sequence:03d}"


def _history_entry(status: str, user: Optional[dict] = None, note: Optional[str] = None) -> dict:
    entry = {"status": status, "changed_at": utcnow()}
    if user is not None:
        entry["changed_by"] = str(user["_id"])
    if note:
        entry["note"] = note
    return entry


def _adjust_stock(items: List[dict], sign: int) -> None:
    """Decrement (sign=-1) or restore (sign=1) product stock for order items."""
    products = get_collection("product")
    for item in items:
        try:
            oid = to_object_id(item["product_id"])
        except ValidationError:
            logger.warning(f"Skipping stock update for unknown product id {item['product_id']}")
            continue
        product = products.find_one({"_id": oid}, {"stock": 1})
        if not product:
            logger.warning(f"Product {item['product_id']} not found for stock update")
            continue
        stock = product.get("stock", 0)
        if sign < 0 and stock < item["quantity"]:
            logger.warning(
                f"Insufficient stock for product {item['product_id']}: "
                f"{stock} available, {item['quantity']} ordered"
            )
            continue
        new_stock = stock + sign * item["quantity"]
        products.update_one(
            {"_id": oid},
            {"$set": {"stock": new_stock, "in_stock": new_stock > 0, "updated_at": utcnow()}},
        )


def _insert_with_number(doc: dict) -> str:
    """Insert under a fresh order number, drawing a new one when a concurrent checkout took it."""
    for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
        doc["order_number"] = generate_order_number()
        try:
            return create_document(COLLECTION, doc)
        except DuplicateKeyError:
            logger.warning(f"Order number {doc['order_number']} already taken (attempt {attempt})")
    raise ConflictError("Could not allocate an order number, please retry", code="ORDER_NUMBER_CONFLICT")


def create_order(data: Order) -> dict:
    doc = data.model_dump()
    for item in doc["items"]:
        item["subtotal"] = round(item["price"] * item["quantity"], 2)
    subtotal = round(sum(item["subtotal"] for item in doc["items"]), 2)
    quote = store_settings.checkout_quote(subtotal, doc["customer_info"]["country"], doc["shipping_method"])
    for field, code, label in QUOTED_FIELDS:
        if abs(doc[field] - quote[field]) > 0.01:
            raise ValidationError(
                f"{label} does not match store rates",
                code=code,
                details={"expected": quote[field], "provided": doc[field]},
            )
    calculated_total = round(subtotal + doc["shipping_cost"] + doc["tax"], 2)

    if abs(calculated_total - doc["total"]) > 0.01:
        raise ValidationError(
            "Order total does not match calculated total",
            details={"calculated_total": calculated_total, "provided_total": doc["total"]},
        )

    doc.update({
        "subtotal": subtotal,
        "tax_rate": quote["tax_rate"],
        "total": calculated_total,
        "status": "pending",
        "payment_status": "pending",
        "tracking_number": None,
        "admin_notes": None,
        "status_history": [_history_entry("pending", note="Order placed")],
    })
    order_id = _insert_with_number(doc)
    _adjust_stock(doc["items"], -1)
    logger.info(f"Order created: {doc['order_number']} total={calculated_total}")
    return get_order(order_id)


def get_order(order_id: str) -> dict:
    order = get_collection(COLLECTION).find_one({"_id": to_object_id(order_id)})
    if not order:
        raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")
    return order


def track_order(order_number: str, email: str) -> dict:
    order = get_collection(COLLECTION).find_one({"order_number": order_number.strip().upper()})
    if not order or order["customer_info"]["email"] != email.strip().lower():
        raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")
    return {
        "order_number": order["order_number"],
        "status": order["status"],
        "payment_status": order["payment_status"],
        "tracking_number": order.get("tracking_number"),
        "items": [
            {"product_name": i["product_name"], "quantity": i["quantity"], "subtotal": i["subtotal"]}
            for i in order["items"]
        ],
        "total": order["total"],
        "status_history": [
            {"status": h["status"], "changed_at": h["changed_at"]} for h in order.get("status_history", [])
        ],
        "created_at": order["created_at"],
    }


def build_order_query(status: Optional[str] = None, payment_status: Optional[str] = None,
                      customer_email: Optional[str] = None, order_number: Optional[str] = None,
                      start_date: Optional[datetime] = None, end_date: Optional[datetime] = None,
                      search: Optional[str] = None) -> dict:
    query: Dict[str, Any] = {}
    if status:
        query["status"] = status
    if payment_status:
        query["payment_status"] = payment_status
    if customer_email:
        query["customer_info.email"] = {"$regex": re.escape(customer_email), "$options": "i"}
    if order_number:
        query["order_number"] = {"$regex": re.escape(order_number), "$options": "i"}
    if start_date or end_date:
        query["created_at"] = {}
        if start_date:
            query["created_at"]["$gte"] = start_date
        if end_date:
            query["created_at"]["$lte"] = end_date
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [
            {"order_number": pattern},
            {"customer_info.email": pattern},
            {"customer_info.first_name": pattern},
            {"customer_info.last_name": pattern},
        ]
    return query


def list_orders(page: int = 1, limit: int = 20, sort_by: str = "created_at",
                sort_order: str = "desc", **filters):
    if sort_by not in SORT_FIELDS:
        raise ValidationError(f"Cannot sort by {sort_by}")
    return paginate(COLLECTION, build_order_query(**filters), page, limit, sort_spec(sort_by, sort_order))


def update_status(order_id: str, new_status: str, user: Optional[dict] = None,
                  note: Optional[str] = None, tracking_number: Optional[str] = None) -> dict:
    order = get_order(order_id)
    current = order["status"]
    if new_status not in STATUS_TRANSITIONS.get(current, []):
        raise BusinessLogicError(
            f"Cannot change order status from {current} to {new_status}",
            code="INVALID_STATUS_TRANSITION",
            details={"current_status": current, "allowed": STATUS_TRANSITIONS.get(current, [])},
        )

    changes: Dict[str, Any] = {"status": new_status, "updated_at": utcnow()}
    if tracking_number:
        changes["tracking_number"] = tracking_number
    if note:
        changes["admin_notes"] = note
    get_collection(COLLECTION).update_one(
        {"_id": order["_id"]},
        {"$set": changes, "$push": {"status_history": _history_entry(new_status, user, note)}},
    )
    if new_status == "cancelled":
        _adjust_stock(order["items"], 1)
    logger.info(f"Order {order['order_number']}: {current} -> {new_status}")
    return get_order(order_id)


def confirm_order(order_id: str, user: Optional[dict] = None) -> dict:
    return update_status(order_id, "confirmed", user, note="Order confirmed")


def cancel_order(order_id: str, reason: str = "", user: Optional[dict] = None) -> dict:
    return update_status(order_id, "cancelled", user, note=reason or "Order cancelled")


def refund_eligibility(order_id: str) -> Dict[str, Any]:
    order = get_order(order_id)
    eligible = order.get("payment_status") == "paid" and order["status"] != "cancelled"
    if eligible:
        reason = None
    elif order["status"] == "cancelled":
        reason = "Order is cancelled"
    else:
        reason = f"Payment status is {order.get('payment_status')}"
    return {"eligible": eligible, "reason": reason, "amount": order["total"] if eligible else 0}


def refund_order(order_id: str, reason: str = "", user: Optional[dict] = None) -> dict:
    eligibility = refund_eligibility(order_id)
    if not eligibility["eligible"]:
        raise BusinessLogicError(f"Order is not eligible for refund: {eligibility['reason']}",
                                 code="REFUND_NOT_ALLOWED")
    order = get_order(order_id)
    note = f"Refunded: {reason}" if reason else "Refunded"
    get_collection(COLLECTION).update_one(
        {"_id": order["_id"]},
        {
            "$set": {"payment_status": "refunded", "updated_at": utcnow()},
            "$push": {"status_history": _history_entry(order["status"], user, note)},
        },
    )
    if order["status"] in ("shipped", "delivered"):
        _adjust_stock(order["items"], 1)
    logger.info(f"Order {order['order_number']} refunded ({order['total']})")
    return get_order(order_id)


def delete_order(order_id: str) -> None:
    order = get_order(order_id)
    if order.get("payment_status") == "paid":
        raise ConflictError("Paid orders cannot be deleted", code="ORDER_PAID")
    get_collection(COLLECTION).delete_one({"_id": order["_id"]})
    logger.info(f"Order deleted: {order['order_number']}")


def _count_by(field: str) -> Dict[str, int]:
    pipeline = [{"$group": {"_id": f"${field}", "count": {"$sum": 1}}}]
    return {row["_id"]: row["count"] for row in get_collection(COLLECTION).aggregate(pipeline)}


def order_stats() -> Dict[str, Any]:
    coll = get_collection(COLLECTION)
    revenue = list(coll.aggregate([
        {"$match": {"payment_status": "paid"}},
        {"$group": {"_id": None, "total": {"$sum": "$total"}, "count": {"$sum": 1}}},
    ]))
    paid_total = revenue[0]["total"] if revenue else 0
    paid_count = revenue[0]["count"] if revenue else 0
    return {
        "total_orders": coll.count_documents({}),
        "by_status": {**{status: 0 for status in STATUS_TRANSITIONS}, **_count_by("status")},
        "by_payment_status": _count_by("payment_status"),
        "total_revenue": round(paid_total, 2),
        "average_order_value": round(paid_total / paid_count, 2) if paid_count else 0,
    }
