"""
Admin dashboard aggregates.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

from database import get_collection, utcnow

LOW_STOCK_THRESHOLD = 5


def _paid_revenue(since: Optional[datetime] = None) -> float:
    match: Dict[str, Any] = {"payment_status": "paid"}
    if since is not None:
        match["created_at"] = {"$gte": since}
    rows = list(get_collection("order").aggregate([
        {"$match": match},
        {"$group": {"_id": None, "total": {"$sum": "$total"}}},
    ]))
    return round(rows[0]["total"], 2) if rows else 0


def overview() -> Dict[str, Any]:
    products = get_collection("product")
    orders = get_collection("order")
    now = utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    month_start = today.replace(day=1)
    return {
        "products": {
            "total": products.count_documents({}),
            "in_stock": products.count_documents({"in_stock": True}),
            "out_of_stock": products.count_documents({"stock": 0}),
            "low_stock": products.count_documents({"stock": {"$gt": 0, "$lte": LOW_STOCK_THRESHOLD}}),
        },
        "orders": {
            "total": orders.count_documents({}),
            "pending": orders.count_documents({"status": "pending"}),
            "today": orders.count_documents({"created_at": {"$gte": today}}),
        },
        "revenue": {
            "total": _paid_revenue(),
            "this_month": _paid_revenue(month_start),
        },
        "pending_sample_requests": get_collection("sample_request").count_documents(
            {"status": "pending", "is_deleted": {"$ne": True}}
        ),
        "new_contact_messages": get_collection("contact_message").count_documents(
            {"status": "new", "is_spam": False}
        ),
    }


def recent_orders(limit: int = 5) -> List[dict]:
    cursor = get_collection("order").find(
        {}, {"order_number": 1, "customer_info": 1, "total": 1, "status": 1, "payment_status": 1, "created_at": 1}
    ).sort("created_at", DESCENDING).limit(limit)
    return list(cursor)


def revenue_by_day(days: int = 30) -> List[dict]:
    today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    start = today - timedelta(days=days - 1)
    buckets = {
        (start + timedelta(days=i)).strftime("%Y-%m-%d"): {"revenue": 0.0, "orders": 0}
        for i in range(days)
    }
    paid = get_collection("order").find(
        {"payment_status": "paid", "created_at": {"$gte": start}}, {"total": 1, "created_at": 1}
    )
    for order in paid:
        bucket = buckets.get(order["created_at"].strftime("%Y-%m-%d"))
        if bucket is not None:
            bucket["revenue"] += order["total"]
            bucket["orders"] += 1
    return [
        {"date": day, "revenue": round(values["revenue"], 2), "orders": values["orders"]}
        for day, values in buckets.items()
    ]


def top_products(limit: int = 5) -> List[dict]:
    sold: Counter = Counter()
    names: Dict[str, str] = {}
    for order in get_collection("order").find({"status": {"$ne": "cancelled"}}, {"items": 1}):
        for item in order.get("items", []):
            sold[item["product_id"]] += item["quantity"]
            names[item["product_id"]] = item.get("product_name")
    return [
        {"product_id": pid, "product_name": names.get(pid), "units_sold": units}
        for pid, units in sold.most_common(limit)
    ]
