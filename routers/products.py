from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ratelimit import search_limit
from routers.common import lang_query, ok, out
from schemas import BulkStockItem, Product, ProductUpdate, StockUpdate
from security import require_admin
from services import catalog

router = APIRouter(prefix="/api/products", tags=["products"])


@router.get("", dependencies=[Depends(search_limit)])
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    category: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    in_stock: Optional[bool] = None,
    featured: Optional[bool] = None,
    search: Optional[str] = None,
    lang: Optional[str] = Depends(lang_query),
):
    docs, pagination = catalog.list_products(
        page, limit, sort_by, sort_order,
        category=category, min_price=min_price, max_price=max_price,
        in_stock=in_stock, featured=featured, search=search, lang=lang or "en",
    )
    return ok({"products": out(docs, lang), "pagination": pagination})


@router.get("/featured")
def featured(limit: int = Query(10, ge=1, le=50), lang: Optional[str] = Depends(lang_query)):
    return ok(out(catalog.featured_products(limit), lang))


@router.get("/categories")
def categories(lang: Optional[str] = Depends(lang_query)):
    return ok(out(catalog.categories(), lang))


@router.get("/categories/stats")
def category_stats():
    return ok(catalog.category_stats())


@router.get("/inventory/report")
def inventory_report(threshold: int = Query(5, ge=0), admin: dict = Depends(require_admin)):
    return ok(catalog.inventory_report(threshold))


@router.patch("/bulk/stock")
def bulk_stock(payload: List[BulkStockItem], admin: dict = Depends(require_admin)):
    return ok(catalog.bulk_update_stock([item.model_dump() for item in payload]))


@router.get("/{product_id}")
def get_product(product_id: str, lang: Optional[str] = Depends(lang_query)):
    return ok(out(catalog.get_product(product_id), lang))


@router.get("/{product_id}/availability")
def availability(product_id: str, quantity: int = Query(1, ge=1)):
    return ok(catalog.check_availability(product_id, quantity))


@router.post("", status_code=201)
def create_product(payload: Product, admin: dict = Depends(require_admin)):
    return ok(out(catalog.create_product(payload)), message="Product created")


@router.put("/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, admin: dict = Depends(require_admin)):
    return ok(out(catalog.update_product(product_id, payload)), message="Product updated")


@router.delete("/{product_id}")
def delete_product(product_id: str, admin: dict = Depends(require_admin)):
    catalog.delete_product(product_id)
    return ok(message="Product deleted")


@router.patch("/{product_id}/stock")
def update_stock(product_id: str, payload: StockUpdate, admin: dict = Depends(require_admin)):
    return ok(out(catalog.update_stock(product_id, payload.quantity)), message="Stock updated")
