from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ratelimit import submit_limiter
from routers.common import lang_query, ok, out
from schemas import AdminNoteRequest, SampleRequest, SampleStatusUpdate, ShippingInfoUpdate
from security import require_admin
from services import samples

router = APIRouter(prefix="/api/samples", tags=["samples"])


@router.post("/request", status_code=201, dependencies=[Depends(submit_limiter)])
def request_samples(payload: SampleRequest):
    request = samples.create_sample_request(payload)
    return ok(
        {
            "request_id": str(request["_id"]),
            "request_number": request["request_number"],
            "status": request["status"],
        },
        message="Sample request submitted",
    )


@router.get("")
def list_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    status: Optional[str] = None,
    priority: Optional[str] = None,
    customer_email: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
    lang: Optional[str] = Depends(lang_query),
    admin: dict = Depends(require_admin),
):
    docs, pagination = samples.list_sample_requests(
        page, limit, sort_by, sort_order,
        status=status, priority=priority, customer_email=customer_email,
        start_date=start_date, end_date=end_date, search=search,
    )
    return ok({"requests": out(docs, lang), "pagination": pagination})


@router.get("/statistics")
def statistics(start_date: Optional[datetime] = None, end_date: Optional[datetime] = None,
               admin: dict = Depends(require_admin)):
    return ok(out(samples.statistics(start_date, end_date)))


@router.get("/{request_id}")
def get_request(request_id: str, lang: Optional[str] = Depends(lang_query),
                admin: dict = Depends(require_admin)):
    return ok(out(samples.get_sample_request(request_id), lang))


@router.put("/{request_id}/status")
def update_status(request_id: str, payload: SampleStatusUpdate, admin: dict = Depends(require_admin)):
    request = samples.update_status(request_id, payload.status, admin, payload.reason)
    return ok(out(request), message="Status updated")


@router.post("/{request_id}/notes")
def add_note(request_id: str, payload: AdminNoteRequest, admin: dict = Depends(require_admin)):
    return ok(out(samples.add_admin_note(request_id, payload.note, admin)), message="Note added")


@router.put("/{request_id}/shipping")
def update_shipping(request_id: str, payload: ShippingInfoUpdate, admin: dict = Depends(require_admin)):
    request = samples.update_shipping_info(request_id, payload.model_dump(exclude_unset=True))
    return ok(out(request), message="Shipping information updated")


@router.delete("/{request_id}")
def delete_request(request_id: str, admin: dict = Depends(require_admin)):
    samples.delete_sample_request(request_id)
    return ok(message="Sample request deleted")
