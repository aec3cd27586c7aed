from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ratelimit import search_limiter
from routers.common import lang_query, ok, out
from schemas import Category, CategoryUpdate, ReorderItem
from security import require_admin
from services import categories

router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("")
def list_categories(active_only: bool = False, lang: Optional[str] = Depends(lang_query)):
    return ok(out(categories.list_categories(active_only), lang))


@router.get("/search", dependencies=[Depends(search_limiter)])
def search(q: str = Query(..., min_length=1), limit: int = Query(20, ge=1, le=100),
           lang: Optional[str] = Depends(lang_query)):
    return ok(out(categories.search_categories(q, limit), lang))


@router.get("/stats")
def stats(admin: dict = Depends(require_admin)):
    return ok(categories.category_stats())


@router.get("/slug/{slug}")
def get_by_slug(slug: str, lang: Optional[str] = Depends(lang_query)):
    return ok(out(categories.get_by_slug(slug), lang))


@router.put("/reorder")
def reorder(payload: List[ReorderItem], admin: dict = Depends(require_admin)):
    updated = categories.reorder([item.model_dump() for item in payload])
    return ok({"updated": updated}, message="Categories reordered")


@router.get("/{category_id}")
def get_category(category_id: str, lang: Optional[str] = Depends(lang_query)):
    return ok(out(categories.get_category(category_id), lang))


@router.get("/{category_id}/products")
def category_products(category_id: str, limit: int = Query(50, ge=1, le=100),
                      lang: Optional[str] = Depends(lang_query)):
    return ok(out(categories.category_products(category_id, limit), lang))


@router.post("", status_code=201)
def create_category(payload: Category, admin: dict = Depends(require_admin)):
    return ok(out(categories.create_category(payload)), message="Category created")


@router.put("/{category_id}")
def update_category(category_id: str, payload: CategoryUpdate, admin: dict = Depends(require_admin)):
    return ok(out(categories.update_category(category_id, payload)), message="Category updated")


@router.patch("/{category_id}/toggle")
def toggle(category_id: str, admin: dict = Depends(require_admin)):
    return ok(out(categories.toggle_status(category_id)))


@router.delete("/{category_id}")
def delete_category(category_id: str, admin: dict = Depends(require_admin)):
    categories.delete_category(category_id)
    return ok(message="Category deleted")
