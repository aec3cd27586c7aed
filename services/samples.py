"""
Sample request service.

A sample request moves through its own lifecycle:

    pending -> approved -> processing -> shipped -> delivered
       |          |            |
       +----------+------------+--> rejected -> pending (reprocess)
       +----------+--> cancelled

delivered and cancelled are terminal. Requests are soft deleted.
"""

import hashlib
import logging
import re
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import DESCENDING

from database import create_document, generate_number, get_collection, paginate, sort_spec, to_object_id, utcnow
from errors import BusinessLogicError, ConflictError, NotFoundError, ValidationError
from schemas import SampleRequest

logger = logging.getLogger(__name__)

COLLECTION = "sample_request"

MAX_PER_PRODUCT = 5
MAX_TOTAL_SAMPLES = 10
DUPLICATE_WINDOW_DAYS = 30

STATUS_TRANSITIONS = {
    "pending": ["approved", "rejected", "cancelled"],
    "approved": ["processing", "rejected", "cancelled"],
    "processing": ["shipped", "rejected"],
    "shipped": ["delivered"],
    "rejected": ["pending"],
    "delivered": [],
    "cancelled": [],
}

SORT_FIELDS = {"created_at", "updated_at", "status", "priority", "request_number"}


def duplicate_hash(email: str, product_ids: List[str]) -> str:
    source = f"{email.lower()}:{','.join(sorted(product_ids))}"
    return hashlib.md5(source.encode("utf-8")).hexdigest()


def _resolve_products(requested: List[dict]) -> List[dict]:
    """Check every requested product exists and is in stock; attach names."""
    products = get_collection("product")
    missing = []
    resolved = []
    for item in requested:
        product = None
        if ObjectId.is_valid(item["product"]):
            product = products.find_one({"_id": ObjectId(item["product"])}, {"name": 1, "in_stock": 1})
        if not product or not product.get("in_stock"):
            missing.append(item["product"])
            continue
        resolved.append({**item, "product_name": product.get("name")})
    if missing:
        raise ValidationError(
            "Some requested products are not available",
            code="PRODUCTS_NOT_AVAILABLE",
            details={"unavailable_products": missing},
        )
    return resolved


def _check_limits(requested: List[dict]) -> None:
    per_product: Counter = Counter()
    for item in requested:
        per_product[item["product"]] += item["quantity"]
    over = [pid for pid, qty in per_product.items() if qty > MAX_PER_PRODUCT]
    if over:
        raise ValidationError(
            f"Maximum {MAX_PER_PRODUCT} samples per product",
            code="QUANTITY_LIMIT_EXCEEDED",
            details={"products": over},
        )
    total = sum(per_product.values())
    if total > MAX_TOTAL_SAMPLES:
        raise ValidationError(
            f"Maximum {MAX_TOTAL_SAMPLES} samples per request",
            code="TOTAL_SAMPLES_LIMIT_EXCEEDED",
            details={"total_samples": total},
        )


def create_sample_request(data: SampleRequest) -> dict:
    doc = data.model_dump()
    requested = doc["requested_products"]
    if not requested:
        raise ValidationError("At least one product must be requested", code="NO_PRODUCTS_REQUESTED")

    doc["requested_products"] = _resolve_products(requested)
    _check_limits(requested)

    email = doc["customer_info"]["email"]
    check_hash = duplicate_hash(email, [item["product"] for item in requested])
    since = utcnow() - timedelta(days=DUPLICATE_WINDOW_DAYS)
    existing = get_collection(COLLECTION).find_one({
        "duplicate_check_hash": check_hash,
        "created_at": {"$gte": since},
        "is_deleted": {"$ne": True},
    })
    if existing:
        raise ConflictError(
            "A similar sample request was submitted recently",
            code="DUPLICATE_REQUEST",
            details={
                "existing_request_id": str(existing["_id"]),
                "request_number": existing["request_number"],
                "submitted_at": existing["created_at"].isoformat(),
            },
        )

    doc.update({
        "request_number": generate_number("SR", COLLECTION),
        "status": "pending",
        "admin_notes": [],
        "status_history": [{"status": "pending", "changed_by": None, "changed_at": utcnow(), "reason": None}],
        "shipping_info": {},
        "duplicate_check_hash": check_hash,
        "is_deleted": False,
    })
    request_id = create_document(COLLECTION, doc)
    logger.info(f"Sample request created: {doc['request_number']} ({email})")
    return get_sample_request(request_id)


def get_sample_request(request_id: str) -> dict:
    request = get_collection(COLLECTION).find_one({"_id": to_object_id(request_id), "is_deleted": {"$ne": True}})
    if not request:
        raise NotFoundError("Sample request not found", code="SAMPLE_REQUEST_NOT_FOUND")
    return request


def build_sample_query(status: Optional[str] = None, priority: Optional[str] = None,
                       customer_email: Optional[str] = None, start_date: Optional[datetime] = None,
                       end_date: Optional[datetime] = None, search: Optional[str] = None) -> dict:
    query: Dict[str, Any] = {"is_deleted": {"$ne": True}}
    if status:
        query["status"] = status
    if priority:
        query["priority"] = priority
    if customer_email:
        query["customer_info.email"] = customer_email.strip().lower()
    if start_date or end_date:
        query["created_at"] = {}
        if start_date:
            query["created_at"]["$gte"] = start_date
        if end_date:
            query["created_at"]["$lte"] = end_date
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [
            {"customer_info.first_name": pattern},
            {"customer_info.last_name": pattern},
            {"customer_info.email": pattern},
            {"request_number": pattern},
            {"message": pattern},
        ]
    return query


def list_sample_requests(page: int = 1, limit: int = 20, sort_by: str = "created_at",
                         sort_order: str = "desc", **filters):
    if sort_by not in SORT_FIELDS:
        raise ValidationError(f"Cannot sort by {sort_by}")
    return paginate(COLLECTION, build_sample_query(**filters), page, limit, sort_spec(sort_by, sort_order))


def update_status(request_id: str, new_status: str, user: Optional[dict] = None,
                  reason: Optional[str] = None) -> dict:
    request = get_sample_request(request_id)
    current = request["status"]
    if new_status not in STATUS_TRANSITIONS.get(current, []):
        raise BusinessLogicError(
            f"Cannot change sample request status from {current} to {new_status}",
            code="INVALID_STATUS_TRANSITION",
            details={"current_status": current, "allowed": STATUS_TRANSITIONS.get(current, [])},
        )

    now = utcnow()
    changes: Dict[str, Any] = {"status": new_status, "updated_at": now}
    shipping = request.get("shipping_info") or {}
    if new_status == "shipped" and not shipping.get("shipped_at"):
        changes["shipping_info.shipped_at"] = now
    if new_status == "delivered" and not shipping.get("delivered_at"):
        changes["shipping_info.delivered_at"] = now

    entry = {
        "status": new_status,
        "changed_by": str(user["_id"]) if user else None,
        "changed_at": now,
        "reason": reason,
    }
    get_collection(COLLECTION).update_one(
        {"_id": request["_id"]}, {"$set": changes, "$push": {"status_history": entry}}
    )
    logger.info(f"Sample request {request['request_number']}: {current} -> {new_status}")
    return get_sample_request(request_id)


def add_admin_note(request_id: str, note: str, user: dict) -> dict:
    request = get_sample_request(request_id)
    entry = {"note": note, "added_by": str(user["_id"]), "added_at": utcnow()}
    get_collection(COLLECTION).update_one(
        {"_id": request["_id"]},
        {"$push": {"admin_notes": entry}, "$set": {"updated_at": utcnow()}},
    )
    return get_sample_request(request_id)


def update_shipping_info(request_id: str, info: Dict[str, Any]) -> dict:
    request = get_sample_request(request_id)
    changes = {f"shipping_info.{k}": v for k, v in info.items() if v is not None}
    if not changes:
        raise ValidationError("No shipping fields to update")
    changes["updated_at"] = utcnow()
    get_collection(COLLECTION).update_one({"_id": request["_id"]}, {"$set": changes})
    return get_sample_request(request_id)


def delete_sample_request(request_id: str) -> None:
    request = get_sample_request(request_id)
    get_collection(COLLECTION).update_one(
        {"_id": request["_id"]},
        {"$set": {"is_deleted": True, "updated_at": utcnow()}},
    )
    logger.info(f"Sample request deleted: {request['request_number']}")


def statistics(start_date: Optional[datetime] = None, end_date: Optional[datetime] = None) -> Dict[str, Any]:
    query = build_sample_query(start_date=start_date, end_date=end_date)
    requests = list(get_collection(COLLECTION).find(query).sort("created_at", DESCENDING))

    by_status = Counter(r["status"] for r in requests)
    by_priority = Counter(r.get("priority", "normal") for r in requests)
    by_month = Counter(r["created_at"].strftime("%Y-%m") for r in requests)

    product_counts: Counter = Counter()
    names: Dict[str, Any] = {}
    total_samples = 0
    for r in requests:
        for item in r.get("requested_products", []):
            product_counts[item["product"]] += item["quantity"]
            names[item["product"]] = item.get("product_name")
            total_samples += item["quantity"]

    return {
        "total": len(requests),
        "by_status": {status: by_status.get(status, 0) for status in STATUS_TRANSITIONS},
        "by_priority": dict(by_priority),
        "by_month": dict(sorted(by_month.items())),
        "top_products": [
            {"product": pid, "product_name": names.get(pid), "count": count}
            for pid, count in product_counts.most_common(5)
        ],
        "total_samples": total_samples,
    }
