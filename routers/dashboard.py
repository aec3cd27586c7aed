from fastapi import APIRouter, Depends, Query

from routers.common import ok, out
from security import require_admin
from services import dashboard

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"], dependencies=[Depends(require_admin)])


@router.get("/overview")
def overview():
    return ok(dashboard.overview())


@router.get("/recent-orders")
def recent_orders(limit: int = Query(5, ge=1, le=50)):
    return ok(out(dashboard.recent_orders(limit)))


@router.get("/revenue")
def revenue(days: int = Query(30, ge=1, le=365)):
    return ok(dashboard.revenue_by_day(days))


@router.get("/top-products")
def top_products(limit: int = Query(5, ge=1, le=50)):
    return ok(dashboard.top_products(limit))
