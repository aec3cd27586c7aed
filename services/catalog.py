"""
Product catalog service.

Products carry bilingual names and descriptions. Writes keep the
stock/in_stock pair consistent: a product with zero stock is never
marked in stock.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING, ReturnDocument

from database import create_document, get_collection, paginate, sort_spec, to_object_id, utcnow
from errors import BusinessLogicError, NotFoundError, ValidationError
from schemas import Product, ProductUpdate

logger = logging.getLogger(__name__)

COLLECTION = "product"

CATEGORY_LABELS = [
    {"value": "floral", "label": {"en": "Floral", "ar": "زهري"}},
    {"value": "oriental", "label": {"en": "Oriental", "ar": "شرقي"}},
    {"value": "fresh", "label": {"en": "Fresh", "ar": "منعش"}},
    {"value": "woody", "label": {"en": "Woody", "ar": "خشبي"}},
    {"value": "citrus", "label": {"en": "Citrus", "ar": "حمضي"}},
    {"value": "spicy", "label": {"en": "Spicy", "ar": "حار"}},
    {"value": "aquatic", "label": {"en": "Aquatic", "ar": "مائي"}},
    {"value": "gourmand", "label": {"en": "Gourmand", "ar": "حلو"}},
]

SORT_FIELDS = {"created_at", "updated_at", "price", "stock", "name.en", "name.ar"}


def _sync_stock_flag(doc: Dict[str, Any]) -> Dict[str, Any]:
    if doc.get("stock") == 0:
        doc["in_stock"] = False
    return doc


def build_product_query(category: Optional[str] = None, min_price: Optional[float] = None,
                        max_price: Optional[float] = None, in_stock: Optional[bool] = None,
                        featured: Optional[bool] = None, search: Optional[str] = None,
                        lang: str = "en") -> dict:
    query: Dict[str, Any] = {}
    if category:
        query["category"] = category.lower()
    if min_price is not None or max_price is not None:
        query["price"] = {}
        if min_price is not None:
            query["price"]["$gte"] = min_price
        if max_price is not None:
            query["price"]["$lte"] = max_price
    if in_stock is not None:
        query["in_stock"] = in_stock
    if featured is not None:
        query["featured"] = featured
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [
            {f"name.{lang}": pattern},
            {f"description.{lang}": pattern},
            {f"long_description.{lang}": pattern},
        ]
    return query


def list_products(page: int = 1, limit: int = 12, sort_by: str = "created_at",
                  sort_order: str = "desc", **filters):
    if sort_by not in SORT_FIELDS:
        raise ValidationError(f"Cannot sort by {sort_by}")
    query = build_product_query(**filters)
    return paginate(COLLECTION, query, page, limit, sort_spec(sort_by, sort_order))


def get_product(product_id: str) -> dict:
    product = get_collection(COLLECTION).find_one({"_id": to_object_id(product_id)})
    if not product:
        raise NotFoundError("Product not found", code="PRODUCT_NOT_FOUND")
    return product


def create_product(data: Product) -> dict:
    doc = _sync_stock_flag(data.model_dump())
    product_id = create_document(COLLECTION, doc)
    logger.info(f"Product created: {product_id} ({doc['name']['en']})")
    return get_product(product_id)


def update_product(product_id: str, data: ProductUpdate) -> dict:
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ValidationError("No fields to update")
    if changes.get("stock") == 0:
        changes["in_stock"] = False
    changes["updated_at"] = utcnow()

    product = get_collection(COLLECTION).find_one_and_update(
        {"_id": to_object_id(product_id)},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not product:
        raise NotFoundError("Product not found", code="PRODUCT_NOT_FOUND")
    # in_stock=True sent together with a zero stock already on record
    if product.get("stock") == 0 and product.get("in_stock"):
        get_collection(COLLECTION).update_one({"_id": product["_id"]}, {"$set": {"in_stock": False}})
        product["in_stock"] = False
    return product


def delete_product(product_id: str) -> None:
    result = get_collection(COLLECTION).delete_one({"_id": to_object_id(product_id)})
    if result.deleted_count == 0:
        raise NotFoundError("Product not found", code="PRODUCT_NOT_FOUND")
    logger.info(f"Product deleted: {product_id}")


def featured_products(limit: int = 10) -> List[dict]:
    cursor = (
        get_collection(COLLECTION)
        .find({"featured": True, "in_stock": True})
        .sort("created_at", DESCENDING)
        .limit(limit)
    )
    return list(cursor)


def categories() -> List[dict]:
    return [dict(c) for c in CATEGORY_LABELS]


def category_stats() -> List[dict]:
    pipeline = [
        {"$group": {
            "_id": "$category",
            "count": {"$sum": 1},
            "average_price": {"$avg": "$price"},
        }},
        {"$sort": {"_id": 1}},
    ]
    return [
        {
            "category": row["_id"],
            "count": row["count"],
            "average_price": round(row["average_price"] or 0, 2),
        }
        for row in get_collection(COLLECTION).aggregate(pipeline)
    ]


def update_stock(product_id: str, quantity: Any) -> dict:
    """
    Apply a signed stock delta.

    Raises:
        ValidationError: quantity is not an integer
        BusinessLogicError: the result would go below zero
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Quantity must be an integer")
    product = get_product(product_id)
    new_stock = product.get("stock", 0) + quantity
    if new_stock < 0:
        raise BusinessLogicError("Insufficient stock", code="INSUFFICIENT_STOCK")

    changes = {"stock": new_stock, "in_stock": new_stock > 0, "updated_at": utcnow()}
    get_collection(COLLECTION).update_one({"_id": product["_id"]}, {"$set": changes})
    product.update(changes)
    return product


def bulk_update_stock(updates: List[dict]) -> Dict[str, Any]:
    results = []
    for item in updates:
        product_id = item.get("product_id")
        try:
            product = update_stock(product_id, item.get("quantity"))
            results.append({"product_id": product_id, "success": True, "stock": product["stock"]})
        except (NotFoundError, ValidationError, BusinessLogicError) as e:
            results.append({"product_id": product_id, "success": False, "error": e.message})
    succeeded = sum(1 for r in results if r["success"])
    return {"results": results, "succeeded": succeeded, "failed": len(results) - succeeded}


def check_availability(product_id: str, quantity: int = 1) -> Dict[str, Any]:
    product = get_product(product_id)
    stock = product.get("stock", 0)
    in_stock = bool(product.get("in_stock"))
    return {
        "product_id": str(product["_id"]),
        "available": in_stock and stock >= quantity,
        "in_stock": in_stock,
        "stock": stock,
        "requested": quantity,
    }


def inventory_report(low_stock_threshold: int = 5) -> Dict[str, Any]:
    products = list(get_collection(COLLECTION).find({}, {"name": 1, "stock": 1, "price": 1, "in_stock": 1}))
    out_of_stock = [p for p in products if p.get("stock", 0) == 0]
    low_stock = [p for p in products if 0 < p.get("stock", 0) <= low_stock_threshold]
    total_value = sum(p.get("stock", 0) * p.get("price", 0) for p in products)

    def brief(p):
        return {"id": str(p["_id"]), "name": p.get("name"), "stock": p.get("stock", 0)}

    return {
        "total_products": len(products),
        "in_stock": len(products) - len(out_of_stock),
        "out_of_stock": len(out_of_stock),
        "low_stock": len(low_stock),
        "total_stock_value": round(total_value, 2),
        "out_of_stock_products": [brief(p) for p in out_of_stock],
        "low_stock_products": [brief(p) for p in low_stock],
        "low_stock_threshold": low_stock_threshold,
    }
