"""
Managed categories: bilingual, slug-addressed records that the
storefront uses for navigation. Products refer to a category by slug.
"""

import logging
import re
from typing import Any, Dict, List

from pymongo import ASCENDING, DESCENDING, ReturnDocument

from database import create_document, get_collection, to_object_id, utcnow
from errors import ConflictError, NotFoundError, ValidationError
from schemas import Category, CategoryUpdate

logger = logging.getLogger(__name__)

COLLECTION = "category"


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    if not slug:
        raise ValidationError("Cannot derive a slug from the category name")
    return slug


def list_categories(active_only: bool = False) -> List[dict]:
    query = {"is_active": True} if active_only else {}
    cursor = get_collection(COLLECTION).find(query).sort([("sort_order", ASCENDING), ("name.en", ASCENDING)])
    return list(cursor)


def get_category(category_id: str) -> dict:
    category = get_collection(COLLECTION).find_one({"_id": to_object_id(category_id)})
    if not category:
        raise NotFoundError("Category not found", code="CATEGORY_NOT_FOUND")
    return category


def get_by_slug(slug: str) -> dict:
    category = get_collection(COLLECTION).find_one({"slug": slug.lower()})
    if not category:
        raise NotFoundError("Category not found", code="CATEGORY_NOT_FOUND")
    return category


def search_categories(term: str, limit: int = 20) -> List[dict]:
    pattern = {"$regex": re.escape(term), "$options": "i"}
    query = {"$or": [{"name.en": pattern}, {"name.ar": pattern}]}
    return list(get_collection(COLLECTION).find(query).limit(limit))


def create_category(data: Category) -> dict:
    doc = data.model_dump()
    doc["slug"] = doc.get("slug") or slugify(doc["name"]["en"])
    if get_collection(COLLECTION).find_one({"slug": doc["slug"]}):
        raise ConflictError(f"Category slug '{doc['slug']}' already exists", code="DUPLICATE_SLUG")
    category_id = create_document(COLLECTION, doc)
    logger.info(f"Category created: {doc['slug']}")
    return get_category(category_id)


def update_category(category_id: str, data: CategoryUpdate) -> dict:
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ValidationError("No fields to update")
    oid = to_object_id(category_id)
    if changes.get("slug"):
        clash = get_collection(COLLECTION).find_one({"slug": changes["slug"], "_id": {"$ne": oid}})
        if clash:
            raise ConflictError(f"Category slug '{changes['slug']}' already exists", code="DUPLICATE_SLUG")
    changes["updated_at"] = utcnow()
    category = get_collection(COLLECTION).find_one_and_update(
        {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    if not category:
        raise NotFoundError("Category not found", code="CATEGORY_NOT_FOUND")
    return category


def delete_category(category_id: str) -> None:
    category = get_category(category_id)
    in_use = get_collection("product").count_documents({"category": category["slug"]})
    if in_use:
        raise ConflictError(
            f"Category is used by {in_use} product(s)",
            code="CATEGORY_IN_USE",
            details={"product_count": in_use},
        )
    get_collection(COLLECTION).delete_one({"_id": category["_id"]})
    logger.info(f"Category deleted: {category['slug']}")


def toggle_status(category_id: str) -> dict:
    category = get_category(category_id)
    is_active = not category.get("is_active", True)
    get_collection(COLLECTION).update_one(
        {"_id": category["_id"]}, {"$set": {"is_active": is_active, "updated_at": utcnow()}}
    )
    category["is_active"] = is_active
    return category


def reorder(items: List[dict]) -> int:
    coll = get_collection(COLLECTION)
    updated = 0
    for item in items:
        result = coll.update_one(
            {"_id": to_object_id(item["id"])},
            {"$set": {"sort_order": item["sort_order"], "updated_at": utcnow()}},
        )
        updated += result.matched_count
    return updated


def category_products(category_id: str, limit: int = 50) -> List[dict]:
    category = get_category(category_id)
    cursor = get_collection("product").find({"category": category["slug"]}).sort("created_at", DESCENDING)
    return list(cursor.limit(limit))


def category_stats() -> Dict[str, Any]:
    categories = list(get_collection(COLLECTION).find({}, {"slug": 1, "name": 1, "is_active": 1}))
    products = get_collection("product")
    return {
        "total": len(categories),
        "active": sum(1 for c in categories if c.get("is_active", True)),
        "categories": [
            {
                "id": str(c["_id"]),
                "slug": c["slug"],
                "name": c.get("name"),
                "product_count": products.count_documents({"category": c["slug"]}),
            }
            for c in categories
        ],
    }
